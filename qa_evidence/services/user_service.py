"""
User Service - CRUD, login and first-start seeding of administrators.

Acronyms are stored upper-case and compared case-insensitively.
Transaction policy: flush() only; callers commit.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import func

from qa_evidence.core.exceptions import ConflictError, NotFoundError, ValidationError
from qa_evidence.models import db
from qa_evidence.models.auth import USER_ROLES, User
from qa_evidence.utils.crypto import hash_password, verify_password

logger = logging.getLogger(__name__)

# (acronym, name) - initial password is the acronym itself
DEFAULT_ADMINS = (
    ("VTP", "Valeria"),
    ("GAF", "Guilherme"),
    ("KPS", "Karina"),
    ("RFP", "Renan"),
    ("EDS", "Everton"),
    ("YEB", "Ygor"),
)


def _normalize_acronym(acronym) -> str:
    return (acronym or "").strip().upper()


def get_user(user_id) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError(resource="User", resource_id=user_id)
    return user


def find_by_acronym(acronym) -> User | None:
    return User.query.filter(func.upper(User.acronym) == _normalize_acronym(acronym)).first()


def list_users(include_inactive=True):
    query = User.query
    if not include_inactive:
        query = query.filter_by(is_active=True)
    return query.order_by(User.acronym).all()


def create_user(data: dict) -> User:
    acronym = _normalize_acronym(data.get("acronym"))
    name = (data.get("name") or "").strip()
    password = data.get("password") or ""
    role = (data.get("role") or "USER").upper()

    missing = [f for f, v in (("acronym", acronym), ("name", name), ("password", password)) if not v]
    if missing:
        raise ValidationError(f"Required: {', '.join(missing)}", details={"missing": missing})
    if role not in USER_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(sorted(USER_ROLES))}")
    if find_by_acronym(acronym):
        raise ConflictError(resource="User", field="acronym", value=acronym)

    user = User(
        acronym=acronym,
        name=name,
        password_hash=hash_password(password),
        role=role,
        is_active=bool(data.get("is_active", True)),
    )
    db.session.add(user)
    db.session.flush()
    logger.info("User %s created (%s)", acronym, role)
    return user


def update_user(user_id, data: dict) -> User:
    """Update name / role / active flag / password. Acronym changes are checked for clashes."""
    user = get_user(user_id)
    if "acronym" in data:
        acronym = _normalize_acronym(data["acronym"])
        if not acronym:
            raise ValidationError("acronym cannot be empty")
        clash = find_by_acronym(acronym)
        if clash and clash.id != user.id:
            raise ConflictError(resource="User", field="acronym", value=acronym)
        user.acronym = acronym
    if "name" in data:
        name = (data["name"] or "").strip()
        if not name:
            raise ValidationError("name cannot be empty")
        user.name = name
    if "role" in data:
        role = (data["role"] or "").upper()
        if role not in USER_ROLES:
            raise ValidationError(f"role must be one of: {', '.join(sorted(USER_ROLES))}")
        user.role = role
    if "is_active" in data:
        user.is_active = bool(data["is_active"])
    if data.get("password"):
        user.password_hash = hash_password(data["password"])
    db.session.flush()
    return user


def delete_user(user_id):
    user = get_user(user_id)
    db.session.delete(user)
    db.session.flush()
    logger.info("User %s deleted", user.acronym)


def authenticate(acronym, password) -> User | None:
    """Return the user for valid credentials, else None. Inactive users never log in."""
    user = find_by_acronym(acronym)
    if user is None or not verify_password(password or "", user.password_hash):
        logger.info("Login failed for %s", _normalize_acronym(acronym))
        return None
    if not user.is_active:
        logger.info("Login refused for inactive user %s", user.acronym)
        return None
    user.last_login_at = datetime.now(timezone.utc)
    db.session.flush()
    return user


def seed_default_admins() -> int:
    """Create the default administrators that are missing. Returns how many were added."""
    created = 0
    for acronym, name in DEFAULT_ADMINS:
        if find_by_acronym(acronym):
            continue
        db.session.add(User(
            acronym=acronym,
            name=name,
            password_hash=hash_password(acronym),
            role="ADMIN",
            is_active=True,
        ))
        created += 1
    db.session.flush()
    if created:
        logger.info("Seeded %d default administrators", created)
    return created

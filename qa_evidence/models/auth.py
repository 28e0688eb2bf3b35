"""
Auth Models - QA analysts who record evidence.

Users log in with their acronym (e.g. "VTP"); the acronym is what gets
stamped as ``created_by`` on tickets, evidences and bug reports.
"""

import uuid
from datetime import datetime, timezone

from qa_evidence.models import db
from qa_evidence.models.evidence import Identity, UserRole

USER_ROLES = {r.value for r in UserRole}


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    acronym = db.Column(db.String(10), unique=True, nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    role = db.Column(db.String(10), default="USER", comment="ADMIN | USER")
    is_active = db.Column(db.Boolean, default=True)
    last_login_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def is_admin(self):
        return self.role == UserRole.ADMIN.value

    def to_identity(self) -> Identity:
        return Identity(acronym=self.acronym, name=self.name, role=UserRole(self.role))

    def to_dict(self):
        return {
            "id": self.id,
            "acronym": self.acronym,
            "name": self.name,
            "role": self.role,
            "is_active": self.is_active,
            "last_login_at": self.last_login_at.isoformat() if self.last_login_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<User {self.acronym}>"

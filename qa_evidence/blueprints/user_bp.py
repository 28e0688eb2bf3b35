"""
User Blueprint - analysts and login.

Endpoints:
    GET    /api/v1/users        - List users
    POST   /api/v1/users        - Create user
    PUT    /api/v1/users/<id>   - Update user (name, role, active, password)
    DELETE /api/v1/users/<id>   - Delete user
    POST   /api/v1/login        - Acronym + password login
"""

import logging

from flask import Blueprint, jsonify, request

from qa_evidence import limiter
from qa_evidence.services import user_service
from qa_evidence.utils.errors import E, api_error
from qa_evidence.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

user_bp = Blueprint("user", __name__, url_prefix="/api/v1")


@user_bp.route("/users", methods=["GET"])
def list_users():
    active_only = request.args.get("active") == "true"
    users = user_service.list_users(include_inactive=not active_only)
    return jsonify([u.to_dict() for u in users])


@user_bp.route("/users", methods=["POST"])
def create_user():
    data = request.get_json(silent=True) or {}
    user = user_service.create_user(data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(user.to_dict()), 201


@user_bp.route("/users/<user_id>", methods=["PUT"])
def update_user(user_id):
    data = request.get_json(silent=True) or {}
    user = user_service.update_user(user_id, data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(user.to_dict())


@user_bp.route("/users/<user_id>", methods=["DELETE"])
def delete_user(user_id):
    user_service.delete_user(user_id)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"deleted": True, "id": user_id})


@user_bp.route("/login", methods=["POST"])
@limiter.limit("10 per minute")
def login():
    data = request.get_json(silent=True) or {}
    acronym = (data.get("acronym") or "").strip()
    password = data.get("password") or ""
    if not acronym or not password:
        return api_error(E.VALIDATION_REQUIRED, "acronym and password are required")

    user = user_service.authenticate(acronym, password)
    if user is None:
        return api_error(E.UNAUTHORIZED, "Invalid credentials or inactive user")
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(user.to_dict())

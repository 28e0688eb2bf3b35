"""
Bug Report Blueprint.

Endpoints:
    GET    /api/v1/bugs        - List (optional ?created_by=, ?status=)
    GET    /api/v1/bugs/<id>   - Detail
    POST   /api/v1/bugs        - Report a bug (summary + description required)
    PUT    /api/v1/bugs/<id>   - Update
    DELETE /api/v1/bugs/<id>   - Delete
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from qa_evidence.blueprints import current_actor
from qa_evidence.services import bug_report_service
from qa_evidence.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

bug_report_bp = Blueprint("bug_report", __name__, url_prefix="/api/v1")


@bug_report_bp.route("/bugs", methods=["GET"])
def list_bugs():
    bugs = bug_report_service.list_bugs(
        created_by=request.args.get("created_by") or None,
        status=request.args.get("status") or None,
    )
    return jsonify([b.to_dict() for b in bugs])


@bug_report_bp.route("/bugs/<bug_id>", methods=["GET"])
def get_bug(bug_id):
    return jsonify(bug_report_service.get_bug(bug_id).to_dict())


@bug_report_bp.route("/bugs", methods=["POST"])
def create_bug():
    data = request.get_json(silent=True) or {}
    actor = current_actor(required=False)
    bug = bug_report_service.create_bug(
        data,
        created_by=actor.acronym if actor else "",
        tz_name=current_app.config["EVIDENCE_TIMEZONE"],
    )
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(bug.to_dict()), 201


@bug_report_bp.route("/bugs/<bug_id>", methods=["PUT"])
def update_bug(bug_id):
    data = request.get_json(silent=True) or {}
    bug = bug_report_service.update_bug(bug_id, data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(bug.to_dict())


@bug_report_bp.route("/bugs/<bug_id>", methods=["DELETE"])
def delete_bug(bug_id):
    bug_report_service.delete_bug(bug_id)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"deleted": True, "id": bug_id})

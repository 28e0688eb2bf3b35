"""
Dashboard Blueprint.

Endpoints:
    GET /api/v1/dashboard/metrics?viewer=<acronym>&mode=ALL|MINE
"""

import logging

from flask import Blueprint, jsonify, request

from qa_evidence.services import ticket_service, user_service
from qa_evidence.services.dashboard_service import VIEW_MODES, compute_metrics
from qa_evidence.utils.errors import E, api_error

logger = logging.getLogger(__name__)

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/v1/dashboard")


@dashboard_bp.route("/metrics", methods=["GET"])
def metrics():
    acronym = request.args.get("viewer") or request.headers.get("X-User") or ""
    if not acronym:
        return api_error(E.VALIDATION_REQUIRED, "viewer is required")
    viewer = user_service.find_by_acronym(acronym)
    if viewer is None:
        return api_error(E.NOT_FOUND, f"User {acronym} not found")

    mode = (request.args.get("mode") or "ALL").upper()
    if mode not in VIEW_MODES:
        return api_error(E.VALIDATION_INVALID, f"mode must be one of: {', '.join(sorted(VIEW_MODES))}")

    result = compute_metrics(
        ticket_service.list_tickets(),
        [u.to_identity() for u in user_service.list_users()],
        viewer.to_identity(),
        mode,
    )
    return jsonify(result)

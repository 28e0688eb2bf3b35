"""
Health check blueprint.

Endpoints:
    GET /api/v1/health/ready  - simple 200 for load balancers
    GET /api/v1/health/live   - database round-trip and table presence
"""

import logging
import time

import sqlalchemy as sa
from flask import Blueprint, current_app, jsonify

from qa_evidence.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health_bp", __name__, url_prefix="/api/v1/health")

_EXPECTED_TABLES = ("users", "tickets", "evidences", "evidence_steps", "bug_reports")


@health_bp.route("/ready", methods=["GET"])
def ready():
    """Simple readiness probe; always 200 if the app is running."""
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """Liveness check with dependency status."""
    checks = {}
    overall = True

    # ── Database ─────────────────────────────────────────────────────
    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        db_ms = (time.perf_counter() - t0) * 1000
        checks["database"] = {"status": "ok", "latency_ms": round(db_ms, 1)}
    except Exception as exc:
        checks["database"] = {"status": "error", "detail": str(exc)}
        overall = False
        logger.error("Health check, database failed: %s", exc)

    # ── Schema ───────────────────────────────────────────────────────
    if overall:
        present = set(sa.inspect(db.engine).get_table_names())
        missing = [t for t in _EXPECTED_TABLES if t not in present]
        checks["schema"] = {"status": "ok"} if not missing else {"status": "error", "missing": missing}
        overall = not missing

    checks["app"] = {
        "name": "QA Evidence Hub",
        "debug": current_app.debug,
        "testing": current_app.testing,
    }

    status_code = 200 if overall else 503
    return jsonify({
        "status": "healthy" if overall else "degraded",
        "checks": checks,
    }), status_code

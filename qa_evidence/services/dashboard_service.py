"""
Dashboard metrics over archived tickets.

Each ticket counts once, under its rollup status (worst item status wins).
Non-admin viewers, and admins in MINE mode, only see their own tickets.

Returns:
    {
      "mode": "ALL" | "MINE",
      "totals": {"total", "pass", "fail", "blocked", "pending", "pct_*"},
      "users": [{"acronym", "name", "role", "total", "pass", ...}, ...]
    }
"""

import logging

from qa_evidence.models.evidence import TestStatus, UserRole
from qa_evidence.services.scenario_aggregator import ticket_rollup_status

logger = logging.getLogger(__name__)

VIEW_MODES = {"ALL", "MINE"}
UNKNOWN_USER_NAME = "Unknown"


def _empty_counts():
    return {"total": 0, "pass": 0, "fail": 0, "blocked": 0, "pending": 0}


def _count(stats, status):
    stats["total"] += 1
    if status == TestStatus.PASS:
        stats["pass"] += 1
    elif status == TestStatus.FAIL:
        stats["fail"] += 1
    elif status == TestStatus.BLOCKED:
        stats["blocked"] += 1
    else:
        stats["pending"] += 1


def _percentages(stats):
    """Whole percentages; pending takes the rounding remainder."""
    total = stats["total"] or 1
    pct_pass = round(stats["pass"] / total * 100)
    pct_fail = round(stats["fail"] / total * 100)
    pct_blocked = round(stats["blocked"] / total * 100)
    return {
        "pct_pass": pct_pass,
        "pct_fail": pct_fail,
        "pct_blocked": pct_blocked,
        "pct_pending": 100 - pct_pass - pct_fail - pct_blocked if stats["total"] else 0,
    }


def compute_metrics(tickets, users, viewer, mode="ALL"):
    """Aggregate ticket outcomes for ``viewer`` (an Identity).

    ``users`` are domain Identities or User rows; anything with
    ``acronym``/``name``/``role`` works.
    """
    mode = (mode or "ALL").upper()
    if mode not in VIEW_MODES:
        raise ValueError(f"mode must be one of: {', '.join(sorted(VIEW_MODES))}")
    own_only = viewer.role != UserRole.ADMIN or mode == "MINE"
    if own_only:
        mode = "MINE"
        tickets = [t for t in tickets if t.created_by == viewer.acronym]
        users = [u for u in users if u.acronym == viewer.acronym]

    totals = _empty_counts()
    per_user = {}
    for user in users:
        per_user[user.acronym] = {
            "acronym": user.acronym,
            "name": user.name,
            "role": getattr(user.role, "value", user.role),
            **_empty_counts(),
        }

    for ticket in tickets:
        status = ticket_rollup_status(ticket.items)
        _count(totals, status)
        stats = per_user.get(ticket.created_by)
        if stats is None:
            stats = per_user[ticket.created_by] = {
                "acronym": ticket.created_by,
                "name": UNKNOWN_USER_NAME,
                "role": UserRole.USER.value,
                **_empty_counts(),
            }
        _count(stats, status)

    logger.debug("Dashboard for %s (%s): %d tickets", viewer.acronym, mode, totals["total"])
    return {
        "mode": mode,
        "totals": {**totals, **_percentages(totals)},
        "users": sorted(per_user.values(), key=lambda s: s["total"], reverse=True),
    }

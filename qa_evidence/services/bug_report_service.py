"""Bug report service layer.

Transaction policy: flush() only; the route handler commits.
A bug needs a summary and a description; everything else is optional.
"""
import logging

from qa_evidence.core.exceptions import NotFoundError, ValidationError
from qa_evidence.models import db
from qa_evidence.models.bug_report import BUG_PRIORITIES, BUG_STATUSES, BugAttachment, BugReport
from qa_evidence.utils.helpers import parse_date, today_in_timezone

logger = logging.getLogger(__name__)

_TEXT_FIELDS = (
    "screen", "module", "environment", "developer", "analyst",
    "scenario_description", "expected_result", "dev_feedback", "observation",
)


def _join_prerequisites(value) -> str:
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v).strip() for v in value if str(v).strip())
    return value or ""


def _validate(data: dict, partial=False):
    missing = []
    for key, label in (("summary", "Summary"), ("description", "Description")):
        if partial and key not in data:
            continue
        value = data.get(key)
        if value is not None and not isinstance(value, str):
            raise ValidationError(f"{key} must be text", details={"invalid": [label]})
        if not (value or "").strip():
            missing.append(label)
    if missing:
        raise ValidationError(
            f"Fill in the bug {' and '.join(missing).lower()}.", details={"missing": missing},
        )
    status = data.get("status")
    if status is not None and status not in BUG_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(sorted(BUG_STATUSES))}")
    priority = data.get("priority")
    if priority is not None and priority not in BUG_PRIORITIES:
        raise ValidationError(f"priority must be one of: {', '.join(sorted(BUG_PRIORITIES))}")


def _set_attachments(bug: BugReport, images):
    bug.attachments = [
        BugAttachment(position=pos, image_url=url) for pos, url in enumerate(images or []) if url
    ]


def get_bug(bug_id) -> BugReport:
    bug = db.session.get(BugReport, bug_id)
    if not bug:
        raise NotFoundError(resource="BugReport", resource_id=bug_id)
    return bug


def list_bugs(created_by=None, status=None):
    query = BugReport.query
    if created_by:
        query = query.filter_by(created_by=created_by)
    if status:
        query = query.filter_by(status=status)
    return query.order_by(BugReport.created_at.desc()).all()


def create_bug(data: dict, created_by: str = "", tz_name: str = "America/Sao_Paulo") -> BugReport:
    _validate(data)
    bug = BugReport(
        summary=data["summary"].strip(),
        description=data["description"].strip(),
        status=data.get("status") or "PENDING",
        priority=data.get("priority") or "MEDIUM",
        bug_date=parse_date(data.get("date")) or parse_date(today_in_timezone(tz_name)),
        pre_requisites=_join_prerequisites(data.get("pre_requisites")),
        created_by=data.get("created_by") or created_by,
        **{f: data.get(f) or "" for f in _TEXT_FIELDS},
    )
    if data.get("id"):
        bug.id = data["id"]
    _set_attachments(bug, data.get("attachments"))
    db.session.add(bug)
    db.session.flush()
    logger.info("Bug %s reported by %s", bug.id, bug.created_by)
    return bug


def update_bug(bug_id, data: dict) -> BugReport:
    """Overwrite the given fields; attachments are replaced as a whole."""
    bug = get_bug(bug_id)
    _validate(data, partial=True)
    for key in ("summary", "description"):
        if key in data:
            setattr(bug, key, data[key].strip())
    for key in ("status", "priority"):
        if data.get(key):
            setattr(bug, key, data[key])
    for key in _TEXT_FIELDS:
        if key in data:
            setattr(bug, key, data[key] or "")
    if "date" in data:
        bug.bug_date = parse_date(data["date"])
    if "pre_requisites" in data:
        bug.pre_requisites = _join_prerequisites(data["pre_requisites"])
    if "attachments" in data:
        _set_attachments(bug, data["attachments"])
    db.session.flush()
    return bug


def delete_bug(bug_id):
    bug = get_bug(bug_id)
    db.session.delete(bug)
    db.session.flush()
    logger.info("Bug %s deleted", bug_id)

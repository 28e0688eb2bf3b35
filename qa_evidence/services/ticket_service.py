"""Ticket service layer - archived tickets ↔ relational rows.

Transaction policy: functions use flush(), never commit(). The caller
(route handler or SqlTicketRepository) owns db.session.commit().

Operations:
- list / get archived tickets as domain objects (ArchivedTicket)
- create a ticket with its evidences, steps and blockage images
- replace a ticket: delete-all-then-reinsert of every child row
- delete a ticket (children cascade)
- search and group-by-creator over archived tickets
"""
import logging
from collections import Counter, defaultdict

from sqlalchemy.exc import IntegrityError

from qa_evidence.core.exceptions import ConflictError, NotFoundError, ValidationError
from qa_evidence.models import db
from qa_evidence.models.auth import User
from qa_evidence.models.evidence import (
    ArchivedTicket,
    EvidenceItem,
    TestCaseDetails,
    TestStep,
    TicketInfo,
    split_prerequisites,
)
from qa_evidence.models.ticket import Evidence, EvidenceStep, Ticket, TicketBlockageImage
from qa_evidence.utils.helpers import parse_date

logger = logging.getLogger(__name__)


# ── Row mapping ──────────────────────────────────────────────────────────────

def _iso(value):
    return value.isoformat() if value else ""


def _ticket_info_from_row(row: Ticket) -> TicketInfo:
    info = TicketInfo(
        sprint=row.sprint or "",
        ticket_id=row.external_id or "",
        ticket_title=row.title or "",
        ticket_summary=row.summary or "",
        client_system=row.client_system or "",
        requester=row.requester or "",
        analyst=row.analyst or "",
        request_date=_iso(row.request_date),
        evidence_date=_iso(row.evidence_date),
        environments=row.environment or "",
        environment_version=row.environment_version or "",
        ticket_description=row.description or "",
        solution=row.solution or "",
        priority=row.priority or "MEDIUM",
        ticket_status=row.ticket_status or "PENDING",
    )
    if row.ticket_status == "BLOCKED":
        info.blockage_reason = row.blockage_reason
        info.blockage_image_urls = [img.image_url for img in row.blockage_images]
    return info


def _apply_ticket_info(row: Ticket, info: TicketInfo):
    row.external_id = info.ticket_id
    row.title = info.ticket_title
    row.summary = info.ticket_summary
    row.sprint = info.sprint
    row.client_system = info.client_system
    row.requester = info.requester
    row.analyst = info.analyst
    row.request_date = parse_date(info.request_date)
    row.evidence_date = parse_date(info.evidence_date)
    row.environment = info.environment
    row.environment_version = info.environment_version
    row.description = info.ticket_description
    row.solution = info.solution
    row.priority = info.priority.value
    row.ticket_status = info.ticket_status.value
    row.blockage_reason = info.blockage_reason
    row.blockage_images = [
        TicketBlockageImage(position=pos, image_url=url)
        for pos, url in enumerate(info.blockage_image_urls)
    ]


def _evidence_row(item: EvidenceItem, position: int) -> Evidence:
    row = Evidence(
        id=item.id,
        position=position,
        title=item.title,
        description=item.description,
        image_url=item.image_url,
        status=item.status.value,
        severity=item.severity.value,
        created_by=item.created_by,
        created_at=item.created_at,
    )
    details = item.test_case_details
    if details is not None:
        row.scenario_number = details.scenario_number
        row.case_number = details.case_number
        row.case_id = details.case_id
        row.screen = details.screen
        row.objective = details.objective
        row.pre_requisites = details.pre_requisite_text
        row.condition = details.condition
        row.expected_result = details.expected_result
        row.result = details.result.value
        row.failure_reason = details.failure_reason
        row.steps = [
            EvidenceStep(step_number=s.step_number, description=s.description, image_url=s.image_url)
            for s in details.steps
        ]
    return row


def _evidence_item(row: Evidence, info: TicketInfo) -> EvidenceItem:
    details = None
    if row.has_case:
        details = TestCaseDetails(
            scenario_number=row.scenario_number,
            case_number=row.case_number,
            case_id=row.case_id,
            screen=row.screen or "",
            objective=row.objective or "",
            pre_requisites=split_prerequisites(row.pre_requisites),
            condition=row.condition or "",
            expected_result=row.expected_result or "",
            result=row.result or "PENDING",
            failure_reason=row.failure_reason,
            steps=[TestStep(s.step_number, s.description or "", s.image_url) for s in row.steps],
        )
    return EvidenceItem(
        id=row.id,
        title=row.title or "",
        description=row.description or "",
        image_url=row.image_url,
        status=row.status,
        severity=row.severity,
        created_at=row.created_at,
        ticket_info=info,
        test_case_details=details,
        created_by=row.created_by or "",
    )


def ticket_from_row(row: Ticket) -> ArchivedTicket:
    """Domain snapshot of a ticket row; every item shares one TicketInfo."""
    info = _ticket_info_from_row(row)
    return ArchivedTicket(
        id=row.id,
        ticket_info=info,
        items=[_evidence_item(ev, info) for ev in row.evidences],
        archived_at=row.archived_at,
        created_by=row.created_by or "",
    )


def _validate_case_slots(ticket: ArchivedTicket):
    """Reject duplicate (scenario, case) slots, case ids or evidence ids within one ticket."""
    cases = [i.test_case_details for i in ticket.items if i.test_case_details]
    slots = Counter(f"{c.scenario_number}.{c.case_number}" for c in cases)
    case_ids = Counter(c.case_id for c in cases)
    item_ids = Counter(i.id for i in ticket.items)
    details = {
        "duplicate_slots": sorted(k for k, n in slots.items() if n > 1),
        "duplicate_case_ids": sorted(k for k, n in case_ids.items() if n > 1),
        "duplicate_evidence_ids": sorted(k for k, n in item_ids.items() if n > 1),
    }
    details = {k: v for k, v in details.items() if v}
    if details:
        raise ValidationError("Ticket contains conflicting evidence", details=details)


def _flush_children(ticket_id):
    try:
        db.session.flush()
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Ticket %s rejected: %s", ticket_id, exc.orig, extra={"ticket_id": ticket_id})
        raise ConflictError(resource="Evidence", field="ticket_id", value=str(ticket_id)) from exc


def _replace_children(row: Ticket, ticket: ArchivedTicket):
    row.evidences = []
    row.blockage_images = []
    db.session.flush()
    _apply_ticket_info(row, ticket.ticket_info)
    row.evidences = [_evidence_row(item, pos) for pos, item in enumerate(ticket.items)]
    row.created_by = ticket.created_by
    row.archived_at = ticket.archived_at


# ── CRUD ─────────────────────────────────────────────────────────────────────

def list_tickets(created_by=None, search=None):
    """Archived tickets, most recently archived first."""
    query = Ticket.query
    if created_by:
        query = query.filter(Ticket.created_by == created_by)
    tickets = [ticket_from_row(row) for row in query.order_by(Ticket.archived_at.desc()).all()]
    if search:
        tickets = filter_tickets(tickets, search, User.query.all())
    return tickets


def get_ticket(ticket_id):
    row = db.session.get(Ticket, ticket_id)
    if row is None:
        raise NotFoundError(resource="Ticket", resource_id=ticket_id)
    return ticket_from_row(row)


def create_ticket(ticket: ArchivedTicket) -> ArchivedTicket:
    if db.session.get(Ticket, ticket.id) is not None:
        raise ConflictError(resource="Ticket", field="id", value=ticket.id)
    _validate_case_slots(ticket)
    row = Ticket(id=ticket.id)
    db.session.add(row)
    _replace_children(row, ticket)
    _flush_children(ticket.id)
    logger.info("Ticket %s created by %s (%d evidences)", row.id, row.created_by, len(ticket.items),
                extra={"ticket_id": row.id})
    return ticket_from_row(row)


def replace_ticket(ticket_id, ticket: ArchivedTicket) -> ArchivedTicket:
    """Overwrite header and all children of an existing ticket."""
    row = db.session.get(Ticket, ticket_id)
    if row is None:
        raise NotFoundError(resource="Ticket", resource_id=ticket_id)
    _validate_case_slots(ticket)
    _replace_children(row, ticket)
    _flush_children(ticket_id)
    logger.info("Ticket %s replaced (%d evidences)", ticket_id, len(ticket.items), extra={"ticket_id": ticket_id})
    return ticket_from_row(row)


def delete_ticket(ticket_id):
    row = db.session.get(Ticket, ticket_id)
    if row is None:
        raise NotFoundError(resource="Ticket", resource_id=ticket_id)
    db.session.delete(row)
    db.session.flush()
    logger.info("Ticket %s deleted", ticket_id, extra={"ticket_id": ticket_id})


# ── Search / grouping ────────────────────────────────────────────────────────

def matches_search(ticket: ArchivedTicket, term: str, users_by_acronym: dict) -> bool:
    """Case-insensitive match on creator, title, evidence date or case ids."""
    term = (term or "").strip().lower()
    if not term:
        return True
    user = users_by_acronym.get(ticket.created_by)
    case_ids = " ".join(
        i.test_case_details.case_id.lower() for i in ticket.items if i.test_case_details
    )
    haystacks = (
        user.name.lower() if user else "",
        (ticket.created_by or "").lower(),
        (ticket.ticket_info.ticket_title or "").lower(),
        (ticket.ticket_info.evidence_date or "").lower(),
        case_ids,
    )
    return any(term in h for h in haystacks)


def filter_tickets(tickets, term, users):
    by_acronym = {u.acronym: u for u in users}
    return [t for t in tickets if matches_search(t, term, by_acronym)]


def group_by_creator(tickets) -> dict:
    """{creator acronym: [tickets]} with keys in alphabetical order."""
    groups = defaultdict(list)
    for ticket in tickets:
        groups[ticket.created_by].append(ticket)
    return {key: groups[key] for key in sorted(groups)}


# ── Repository adapter for the lifecycle controller ──────────────────────────

class SqlTicketRepository:
    """Persistence collaborator: each call is one committed transaction."""

    def _commit(self, fn, *args):
        try:
            result = fn(*args)
            db.session.commit()
            return result
        except Exception:
            db.session.rollback()
            raise

    def list_tickets(self):
        return list_tickets()

    def create_ticket(self, ticket):
        return self._commit(create_ticket, ticket)

    def replace_ticket(self, ticket_id, ticket):
        return self._commit(replace_ticket, ticket_id, ticket)

    def delete_ticket(self, ticket_id):
        return self._commit(delete_ticket, ticket_id)

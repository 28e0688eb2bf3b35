"""
QA Evidence Hub
Ticket Lifecycle Controller - working set vs. archive.

States of the working ticket:
    EMPTY ──add──▶ DRAFTING ──required fields filled──▶ READY_TO_FINALIZE
    READY_TO_FINALIZE ──finalize──▶ archived, back to EMPTY
    (any) ──load_archived──▶ DRAFTING on a copy of the archived ticket

The controller is the only writer of ``working`` and ``archive``. The
persistence and export collaborators are awaited before anything is cleared:
if either fails, the working set is left exactly as it was.

Usage:
    controller = TicketLifecycleController(actor, repository=SqlTicketRepository())
    wizard = controller.make_wizard()
    wizard.open_from_trigger(controller.new_scenario_trigger())
    ...
    wizard.save()
    result = controller.finalize()
    if not result:
        show(result.message, result.missing_fields)
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Callable

from qa_evidence.core.exceptions import PermissionDenied
from qa_evidence.core.results import OperationResult
from qa_evidence.models.evidence import (
    ArchivedTicket,
    EvidenceItem,
    Identity,
    TicketInfo,
    TicketStatus,
    derive_title,
    new_id,
    normalize_ticket_id,
)
from qa_evidence.services.scenario_aggregator import (
    apply_shared_ticket_info,
    collect_case_ids,
    generate_case_id,
    items_in_scenario,
    next_case_number,
    next_scenario_number,
)
from qa_evidence.services.scenario_wizard import ScenarioWizard, WizardMode, WizardTrigger
from qa_evidence.utils.helpers import today_in_timezone

logger = logging.getLogger(__name__)

Confirm = Callable[[str], bool]

DEFAULT_TIMEZONE = "America/Sao_Paulo"

# (attribute, label) in the order labels are reported
REQUIRED_FIELDS: tuple[tuple[str, str], ...] = (
    ("request_date", "Request Date"),
    ("ticket_id", "Ticket ID"),
    ("sprint", "Sprint"),
    ("requester", "Requester"),
    ("analyst", "Analyst"),
    ("ticket_title", "Ticket Title"),
)

# Fields that feed the automatic title
_TITLE_SOURCES = frozenset({
    "ticket_id", "client_system", "ticket_summary", "environments", "sprint", "requester", "analyst",
})


class LifecycleState(str, Enum):
    EMPTY = "EMPTY"
    DRAFTING = "DRAFTING"
    READY_TO_FINALIZE = "READY_TO_FINALIZE"


def missing_required_fields(info: TicketInfo) -> list[str]:
    """Labels of the mandatory fields that are empty or blank."""
    missing = []
    for attr, label in REQUIRED_FIELDS:
        value = getattr(info, attr, None)
        if not value or (isinstance(value, str) and not value.strip()):
            missing.append(label)
    return missing


class TicketLifecycleController:
    """Owns the in-progress ticket and the archive of finalized tickets.

    Collaborators (duck-typed):
        repository.create_ticket(ticket) / replace_ticket(id, ticket) /
        delete_ticket(id) / list_tickets()
        exporter.export(ticket_info, items, author) -> bytes
    """

    def __init__(
        self,
        actor: Identity,
        repository=None,
        exporter=None,
        tz_name: str = DEFAULT_TIMEZONE,
        confirm: Confirm | None = None,
        id_factory: Callable[[], str] = new_id,
        archive: list[ArchivedTicket] | None = None,
    ):
        self.actor = actor
        self.repository = repository
        self.exporter = exporter
        self.tz_name = tz_name
        self.confirm = confirm
        self._id_factory = id_factory

        self.working: list[EvidenceItem] = []
        self.archive: list[ArchivedTicket] = list(archive or [])
        self.editing_id: str | None = None
        self.ticket_info = self._blank_ticket_info()
        self.title_overridden = False
        self.draft_key = 0
        self.last_document: bytes | None = None

    # ── State ─────────────────────────────────────────────────────────

    @property
    def state(self) -> LifecycleState:
        if not self.working:
            return LifecycleState.EMPTY
        if self.required_fields_present():
            return LifecycleState.READY_TO_FINALIZE
        return LifecycleState.DRAFTING

    @property
    def is_editing_archive(self) -> bool:
        return self.editing_id is not None

    def _blank_ticket_info(self) -> TicketInfo:
        return TicketInfo(analyst=self.actor.acronym)

    def _today(self) -> str:
        return today_in_timezone(self.tz_name)

    def _confirmed(self, message: str, confirm: Confirm | None) -> bool:
        callback = confirm or self.confirm
        if callback is None:
            return False
        return bool(callback(message))

    def _find(self, evidence_id: str) -> int | None:
        for idx, item in enumerate(self.working):
            if item.id == evidence_id:
                return idx
        return None

    # ── Ticket info ───────────────────────────────────────────────────

    def update_ticket_info(self, **changes) -> TicketInfo:
        """Apply field changes; the title is re-derived unless manually overridden."""
        title = changes.pop("ticket_title", None)
        unknown = [name for name in changes if not hasattr(self.ticket_info, name)]
        if unknown:
            raise ValueError(f"Unknown ticket field: {unknown[0]}")
        # Status first: blockage fields only stick on a BLOCKED ticket.
        ordered = sorted(changes.items(), key=lambda kv: kv[0] != "ticket_status")
        for name, value in ordered:
            setattr(self.ticket_info, name, value)
        if title is not None:
            self.override_title(title)
        elif not self.title_overridden and _TITLE_SOURCES & changes.keys():
            self.ticket_info.ticket_title = derive_title(self.ticket_info)
        return self.ticket_info

    def override_title(self, title: str) -> None:
        self.ticket_info.ticket_title = title
        self.title_overridden = True

    def add_environment(self, tag: str) -> bool:
        added = self.ticket_info.add_environment(tag)
        if added and not self.title_overridden:
            self.ticket_info.ticket_title = derive_title(self.ticket_info)
        return added

    def remove_environment(self, tag: str) -> bool:
        removed = self.ticket_info.remove_environment(tag)
        if removed and not self.title_overridden:
            self.ticket_info.ticket_title = derive_title(self.ticket_info)
        return removed

    def set_ticket_status(self, status: TicketStatus, reason: str | None = None, images=None) -> None:
        """Change the ticket status; leaving BLOCKED drops reason and exhibits."""
        status = TicketStatus(status)
        if status == TicketStatus.BLOCKED:
            self.ticket_info.block(reason or "", images)
        else:
            self.ticket_info.ticket_status = status

    # ── Working set ───────────────────────────────────────────────────

    def _stamp(self, item: EvidenceItem) -> EvidenceItem:
        stamped = item.copy()
        stamped.created_by = self.actor.acronym
        stamped.ticket_info.analyst = self.actor.acronym
        return stamped

    def _slot_conflict(self, item: EvidenceItem) -> str | None:
        details = item.test_case_details
        if details is None:
            return None
        for other in self.working:
            other_details = other.test_case_details
            if other.id == item.id or other_details is None:
                continue
            if (other_details.scenario_number, other_details.case_number) == (
                details.scenario_number, details.case_number,
            ):
                return f"Case {details.scenario_number}.{details.case_number} already exists"
            if other_details.case_id == details.case_id:
                return f"Case id {details.case_id} already in use"
        return None

    def add_evidence(self, item: EvidenceItem) -> OperationResult:
        """Add a new item at the top of the working set."""
        if self._find(item.id) is not None:
            return OperationResult.fail(f"Evidence {item.id} is already in the ticket")
        conflict = self._slot_conflict(item)
        if conflict:
            return OperationResult.fail(conflict)
        stamped = self._stamp(item)
        self.working.insert(0, stamped)
        logger.debug("Evidence %s added (%d in working set)", stamped.id, len(self.working),
                     extra={"evidence_id": stamped.id, "actor": self.actor.acronym})
        return OperationResult.success(payload=stamped)

    def update_evidence(self, item: EvidenceItem) -> OperationResult:
        """Replace the item with the same id in place."""
        idx = self._find(item.id)
        if idx is None:
            return OperationResult.fail(f"Evidence {item.id} is not in the ticket")
        conflict = self._slot_conflict(item)
        if conflict:
            return OperationResult.fail(conflict)
        stamped = self._stamp(item)
        self.working[idx] = stamped
        logger.debug("Evidence %s updated", stamped.id, extra={"evidence_id": stamped.id, "actor": self.actor.acronym})
        return OperationResult.success(payload=stamped)

    def remove_evidence(self, evidence_id: str) -> bool:
        idx = self._find(evidence_id)
        if idx is None:
            return False
        del self.working[idx]
        return True

    def receive_wizard_item(self, item: EvidenceItem) -> OperationResult:
        """Wizard save hook: update when the id is known, add otherwise."""
        if self._find(item.id) is not None:
            return self.update_evidence(item)
        return self.add_evidence(item)

    def remove_scenario(self, scenario_number: int, confirm: Confirm | None = None) -> OperationResult:
        """Drop every case of one scenario; manual items stay."""
        targets = items_in_scenario(self.working, scenario_number)
        if not targets:
            return OperationResult.fail(f"Scenario #{scenario_number} has no cases")
        message = f"Delete scenario #{scenario_number} and all its test cases? This cannot be undone."
        if not self._confirmed(message, confirm):
            return OperationResult.fail("Deletion cancelled")
        ids = {t.id for t in targets}
        self.working = [i for i in self.working if i.id not in ids]
        logger.info("Scenario #%s removed (%d cases)", scenario_number, len(ids))
        return OperationResult.success(payload=len(ids))

    # ── Wizard triggers ───────────────────────────────────────────────

    def make_wizard(self, **kwargs) -> ScenarioWizard:
        """Wizard wired to deliver its items to this controller.

        Case ids it assigns are unique against the current working set.
        """
        kwargs.setdefault(
            "case_id_factory",
            lambda existing=None: generate_case_id(self.existing_case_ids() | set(existing or ())),
        )
        return ScenarioWizard(on_save=self.receive_wizard_item, base_ticket_info=lambda: self.ticket_info, **kwargs)

    def existing_case_ids(self) -> set[str]:
        return collect_case_ids(self.working)

    def new_scenario_trigger(self) -> WizardTrigger:
        return WizardTrigger(
            mode=WizardMode.CREATE,
            scenario_number=next_scenario_number(self.working),
            next_case_number=1,
            ticket_info=self.ticket_info,
        )

    def add_case_trigger(self, origin_id: str) -> WizardTrigger | None:
        """Open a new case in the same scenario as ``origin_id``."""
        idx = self._find(origin_id)
        if idx is None or self.working[idx].test_case_details is None:
            return None
        origin = self.working[idx]
        scenario = origin.test_case_details.scenario_number
        return WizardTrigger(
            mode=WizardMode.CREATE,
            scenario_number=scenario,
            next_case_number=next_case_number(self.working, scenario),
            ticket_info=origin.ticket_info,
        )

    def edit_case_trigger(self, evidence_id: str) -> WizardTrigger | None:
        idx = self._find(evidence_id)
        if idx is None or self.working[idx].test_case_details is None:
            return None
        item = self.working[idx]
        return WizardTrigger(
            mode=WizardMode.EDIT,
            scenario_number=item.test_case_details.scenario_number,
            next_case_number=item.test_case_details.case_number,
            ticket_info=item.ticket_info,
            existing_details=item.test_case_details,
            evidence_id=item.id,
        )

    # ── Validation ────────────────────────────────────────────────────

    def missing_required_fields(self, info: TicketInfo | None = None) -> list[str]:
        return missing_required_fields(info or self.ticket_info)

    def required_fields_present(self, info: TicketInfo | None = None) -> bool:
        return not self.missing_required_fields(info)

    # ── Archive ───────────────────────────────────────────────────────

    def finalize(self, ticket_info: TicketInfo | None = None) -> OperationResult:
        """Validate, export, persist, archive, then clear the working set."""
        return self._archive_working(ticket_info, validate=True)

    def save_draft(self, ticket_info: TicketInfo | None = None) -> OperationResult:
        """Archive without the required-field gate or document export."""
        return self._archive_working(ticket_info, validate=False)

    def _archive_index(self, ticket_id: str) -> int | None:
        for idx, ticket in enumerate(self.archive):
            if ticket.id == ticket_id:
                return idx
        return None

    def _archive_working(self, ticket_info: TicketInfo | None, validate: bool) -> OperationResult:
        if not self.working:
            return OperationResult.fail("There is no evidence to finalize. Add at least one case.")

        info = (ticket_info or self.ticket_info).copy()
        if validate:
            missing = self.missing_required_fields(info)
            if missing:
                logger.info("Finalize refused, missing: %s", ", ".join(missing))
                return OperationResult.fail(
                    f"Fill in the required fields to finalize: {', '.join(missing)}.", missing,
                )

        author = self.actor.acronym
        info.evidence_date = self._today()
        info.ticket_id = normalize_ticket_id(info.ticket_id)
        items = apply_shared_ticket_info(self.working, info, created_by=author)
        replacing = self.editing_id is not None and self._archive_index(self.editing_id) is not None
        ticket = ArchivedTicket(
            id=self.editing_id or self._id_factory(),
            ticket_info=info,
            items=items,
            archived_at=datetime.now(timezone.utc),
            created_by=author,
        )

        document = None
        try:
            if validate and self.exporter is not None:
                document = self.exporter.export(info, items, author)
            if self.repository is not None:
                if replacing:
                    self.repository.replace_ticket(ticket.id, ticket)
                else:
                    self.repository.create_ticket(ticket)
        except Exception as exc:
            logger.exception("Ticket %s could not be archived", ticket.id)
            return OperationResult.fail(f"Could not save the ticket: {exc}")

        idx = self._archive_index(ticket.id)
        if idx is not None:
            self.archive[idx] = ticket
        else:
            self.archive.insert(0, ticket)
        self.last_document = document
        logger.info("Ticket %s %s by %s (%d items)", ticket.id,
                    "replaced" if replacing else "archived", author, len(items),
                    extra={"ticket_id": ticket.id, "actor": author})
        self._reset_working()
        return OperationResult.success(payload=ticket)

    def can_edit(self, ticket: ArchivedTicket) -> bool:
        return not ticket.created_by or ticket.created_by == self.actor.acronym

    def load_archived(self, ticket: ArchivedTicket, confirm: Confirm | None = None) -> OperationResult:
        """Reopen an archived ticket in the working set for editing."""
        if not self.can_edit(ticket):
            denied = PermissionDenied("edit this ticket", actor=self.actor.acronym, owner=ticket.created_by)
            logger.info("%s: %s", self.actor.acronym, denied,
                        extra={"ticket_id": ticket.id, "actor": self.actor.acronym})
            return OperationResult.fail(str(denied))
        if self.working:
            message = "A ticket is in progress. Replace it with the archived one?"
            if not self._confirmed(message, confirm):
                return OperationResult.fail("Open cancelled; the ticket in progress was kept")

        info = ticket.ticket_info.copy()
        self.working = apply_shared_ticket_info(ticket.items, info)
        self.ticket_info = info
        self.editing_id = ticket.id
        self.title_overridden = False
        self.draft_key += 1
        logger.debug("Archived ticket %s loaded for editing", ticket.id,
                     extra={"ticket_id": ticket.id, "actor": self.actor.acronym})
        return OperationResult.success(payload=ticket)

    def delete_archived(self, ticket_id: str, confirm: Confirm | None = None) -> OperationResult:
        idx = self._archive_index(ticket_id)
        if idx is None:
            return OperationResult.fail(f"Ticket {ticket_id} is not in the archive")
        title = self.archive[idx].ticket_info.ticket_title or ticket_id
        if not self._confirmed(f"Delete ticket '{title}' permanently?", confirm):
            return OperationResult.fail("Deletion cancelled")
        try:
            if self.repository is not None:
                self.repository.delete_ticket(ticket_id)
        except Exception as exc:
            logger.exception("Ticket %s could not be deleted", ticket_id)
            return OperationResult.fail(f"Could not delete the ticket: {exc}")
        removed = self.archive.pop(idx)
        if self.editing_id == ticket_id:
            self._reset_working()
        return OperationResult.success(payload=removed)

    def refresh_archive(self) -> OperationResult:
        if self.repository is None:
            return OperationResult.success(payload=self.archive)
        try:
            self.archive = list(self.repository.list_tickets())
        except Exception as exc:
            logger.exception("Archive refresh failed")
            return OperationResult.fail(f"Could not load tickets: {exc}")
        return OperationResult.success(payload=self.archive)

    # ── Reset ─────────────────────────────────────────────────────────

    def _reset_working(self) -> None:
        self.working = []
        self.editing_id = None
        self.ticket_info = self._blank_ticket_info()
        self.title_overridden = False
        self.draft_key += 1

    def clear_working(self, confirm: Confirm | None = None) -> OperationResult:
        """Discard the draft. Needs confirmation unless editing an archived ticket."""
        if self.working and not self.is_editing_archive:
            if not self._confirmed("Clear all data and restart the flow?", confirm):
                return OperationResult.fail("Clear cancelled")
        self._reset_working()
        return OperationResult.success()

"""
QA Evidence Hub
Scenario Wizard - create / edit one test case of a scenario.

States:
    CLOSED ──open_for_create──▶ OPEN(CREATE) ──save──▶ SAVED ──▶ CLOSED
    CLOSED ──open_for_edit────▶ OPEN(EDIT)   ──save──▶ SAVED ──▶ CLOSED
    OPEN ──cancel──▶ CLOSED (nothing emitted)

Execution sub-state:
    NOT_STARTED ──start_execution──▶ IN_PROGRESS
    IN_PROGRESS ──remove last step──▶ NOT_STARTED

There is no validation gate: unset texts are saved as "N/A" so documentation
never stalls on an incomplete draft.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Callable

from qa_evidence.core.results import OperationResult
from qa_evidence.models.evidence import (
    FAILURE_RESULTS,
    CaseResult,
    EvidenceItem,
    TestCaseDetails,
    TestStep,
    TicketInfo,
    new_id,
    outcome_for,
    split_prerequisites,
)
from qa_evidence.services.image_editor import bytes_to_data_url
from qa_evidence.services.scenario_aggregator import generate_case_id

logger = logging.getLogger(__name__)

PLACEHOLDER = "N/A"

# Draft fields settable through set_field()
EDITABLE_FIELDS = frozenset({
    "screen", "objective", "pre_requisites", "condition", "expected_result", "failure_reason",
})


class WizardState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    SAVED = "SAVED"


class WizardMode(str, Enum):
    CREATE = "CREATE"
    EDIT = "EDIT"


class ExecutionState(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"


class WizardStateError(RuntimeError):
    """Raised when an operation needs an open wizard and it is closed."""


@dataclass
class WizardTrigger:
    """Request from the ticket controller to open the wizard on a given case slot."""

    mode: WizardMode
    scenario_number: int
    next_case_number: int
    ticket_info: TicketInfo | None = None
    existing_details: TestCaseDetails | None = None
    evidence_id: str | None = None


def default_ticket_info(scenario_number: int, today: str) -> TicketInfo:
    """Placeholder ticket metadata for a case saved without any ticket context."""
    return TicketInfo(
        ticket_id=PLACEHOLDER,
        ticket_title=f"Test Scenario #{scenario_number}",
        sprint=PLACEHOLDER,
        ticket_summary="Test Scenario",
        client_system=PLACEHOLDER,
        requester="QA",
        analyst="QA",
        request_date=today,
        evidence_date=today,
        environments=[PLACEHOLDER],
        environment_version=PLACEHOLDER,
    )


class ScenarioWizard:
    """Draft holder for a single case; emits one EvidenceItem per save."""

    def __init__(
        self,
        on_save: Callable[[EvidenceItem], object] | None = None,
        base_ticket_info: TicketInfo | Callable[[], TicketInfo | None] | None = None,
        id_factory: Callable[[], str] = new_id,
        case_id_factory: Callable[..., str] = generate_case_id,
        today: Callable[[], str] | None = None,
    ):
        self.on_save = on_save
        self.base_ticket_info = base_ticket_info
        self._id_factory = id_factory
        self._case_id_factory = case_id_factory
        self._today = today or (lambda: date.today().isoformat())
        self._reset()

    def _reset(self):
        self.state = WizardState.CLOSED
        self.mode: WizardMode | None = None
        self.execution = ExecutionState.NOT_STARTED
        self.draft: TestCaseDetails | None = None
        self.evidence_id: str | None = None
        self.ticket_info: TicketInfo | None = None

    @property
    def is_open(self) -> bool:
        return self.state == WizardState.OPEN

    @property
    def steps(self) -> list[TestStep]:
        return self.draft.steps if self.draft else []

    def _require_open(self):
        if self.state != WizardState.OPEN or self.draft is None:
            raise WizardStateError("Wizard is not open")

    # ── Opening ───────────────────────────────────────────────────────

    def open_for_create(
        self,
        scenario_number: int,
        next_case_number: int,
        ticket_info: TicketInfo | None = None,
        existing_case_ids=None,
    ) -> TestCaseDetails:
        """Blank draft for a new case with a freshly assigned case id."""
        if self.is_open:
            logger.debug("Wizard re-opened; discarding draft %s", self.draft.case_id)
        self._reset()
        self.state = WizardState.OPEN
        self.mode = WizardMode.CREATE
        self.ticket_info = ticket_info
        self.draft = TestCaseDetails(
            scenario_number=scenario_number,
            case_number=next_case_number,
            case_id=self._case_id_factory(existing_case_ids),
        )
        logger.debug("Wizard opened for case %s.%s (%s)",
                     scenario_number, next_case_number, self.draft.case_id)
        return self.draft

    def open_for_edit(
        self,
        existing_details: TestCaseDetails,
        evidence_id: str,
        ticket_info: TicketInfo | None = None,
    ) -> TestCaseDetails:
        """Draft copied from an existing case; the stored case is not touched until save."""
        self._reset()
        self.state = WizardState.OPEN
        self.mode = WizardMode.EDIT
        self.evidence_id = evidence_id
        self.ticket_info = ticket_info
        self.draft = existing_details.copy()
        if self.draft.steps:
            self.execution = ExecutionState.IN_PROGRESS
        logger.debug("Wizard opened to edit %s (evidence %s)", self.draft.case_id, evidence_id)
        return self.draft

    def open_from_trigger(self, trigger: WizardTrigger, existing_case_ids=None) -> TestCaseDetails:
        if trigger.mode == WizardMode.EDIT and trigger.existing_details is not None:
            return self.open_for_edit(trigger.existing_details, trigger.evidence_id, trigger.ticket_info)
        return self.open_for_create(
            trigger.scenario_number, trigger.next_case_number, trigger.ticket_info, existing_case_ids,
        )

    # ── Draft fields ──────────────────────────────────────────────────

    def set_field(self, name: str, value) -> None:
        self._require_open()
        if name not in EDITABLE_FIELDS:
            raise ValueError(f"Unknown case field: {name}")
        if name == "pre_requisites":
            value = split_prerequisites(value)
        setattr(self.draft, name, value)

    def set_result(self, result: CaseResult) -> None:
        self._require_open()
        self.draft.result = CaseResult(result)

    # ── Steps ─────────────────────────────────────────────────────────

    def start_execution(self) -> None:
        self._require_open()
        self.execution = ExecutionState.IN_PROGRESS
        if not self.draft.steps:
            self.draft.steps.append(TestStep(step_number=1))

    def add_step(self) -> TestStep | None:
        self._require_open()
        if self.execution != ExecutionState.IN_PROGRESS:
            return None
        step = TestStep(step_number=len(self.draft.steps) + 1)
        self.draft.steps.append(step)
        return step

    def remove_step(self, index: int) -> bool:
        """Remove a step and renumber the rest 1..N. Unknown index is a no-op."""
        self._require_open()
        steps = self.draft.steps
        if not 0 <= index < len(steps):
            return False
        del steps[index]
        for number, step in enumerate(steps, start=1):
            step.step_number = number
        if not steps:
            self.execution = ExecutionState.NOT_STARTED
        return True

    def _step(self, index: int) -> TestStep | None:
        self._require_open()
        if 0 <= index < len(self.draft.steps):
            return self.draft.steps[index]
        return None

    def set_step_description(self, index: int, text: str) -> bool:
        step = self._step(index)
        if step is None:
            return False
        step.description = text or ""
        return True

    def attach_step_image(self, index: int, image: bytes | str) -> bool:
        """Attach an edited image (raw PNG bytes or a data URL) to a step."""
        step = self._step(index)
        if step is None:
            return False
        step.image_url = bytes_to_data_url(image) if isinstance(image, (bytes, bytearray)) else image
        return True

    def remove_step_image(self, index: int) -> bool:
        step = self._step(index)
        if step is None:
            return False
        step.image_url = None
        return True

    # ── Save / cancel ─────────────────────────────────────────────────

    def _resolve_ticket_info(self, scenario_number: int) -> TicketInfo:
        base = self.base_ticket_info() if callable(self.base_ticket_info) else self.base_ticket_info
        source = self.ticket_info or base
        fallback = default_ticket_info(scenario_number, self._today())
        if source is None:
            return fallback
        info = source.copy()
        info.ticket_id = info.ticket_id or fallback.ticket_id
        info.ticket_title = info.ticket_title or fallback.ticket_title
        return info

    def build_item(self) -> EvidenceItem:
        """Final EvidenceItem for the current draft (no state change)."""
        self._require_open()
        draft = self.draft
        result = CaseResult(draft.result)
        details = TestCaseDetails(
            scenario_number=draft.scenario_number,
            case_number=draft.case_number,
            case_id=draft.case_id or self._case_id_factory(None),
            screen=draft.screen or PLACEHOLDER,
            objective=draft.objective or PLACEHOLDER,
            pre_requisites=list(draft.pre_requisites) or [PLACEHOLDER],
            condition=draft.condition or PLACEHOLDER,
            expected_result=draft.expected_result or PLACEHOLDER,
            result=result,
            failure_reason=draft.failure_reason if result in FAILURE_RESULTS else None,
            steps=[TestStep(s.step_number, s.description, s.image_url) for s in draft.steps],
        )
        status, severity = outcome_for(result)
        is_edit = self.mode == WizardMode.EDIT and self.evidence_id
        return EvidenceItem(
            id=self.evidence_id if is_edit else self._id_factory(),
            title=f"Test Scenario {details.scenario_number}: {details.screen}",
            description=details.objective,
            image_url=details.steps[-1].image_url if details.steps else None,
            status=status,
            severity=severity,
            created_at=datetime.now(timezone.utc),
            ticket_info=self._resolve_ticket_info(details.scenario_number),
            test_case_details=details,
        )

    def save(self) -> OperationResult:
        """Emit the item to ``on_save`` and close.

        A receiver that answers with a failed OperationResult keeps the
        wizard open with the draft intact.
        """
        item = self.build_item()
        self.state = WizardState.SAVED
        if self.on_save is not None:
            outcome = self.on_save(item)
            if isinstance(outcome, OperationResult) and not outcome.ok:
                self.state = WizardState.OPEN
                return outcome
        logger.info("Case %s saved (%s, %s)", item.test_case_details.case_id,
                    self.mode.value, item.status.value)
        self._reset()
        return OperationResult.success(payload=item)

    def cancel(self) -> None:
        """Discard the draft without emitting anything."""
        if self.draft is not None:
            logger.debug("Wizard cancelled; draft %s discarded", self.draft.case_id)
        self._reset()

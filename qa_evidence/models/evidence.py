"""
QA Evidence Hub
Evidence domain types - the in-memory working set.

Types:
    - TicketInfo:       metadata of one support ticket (shared by all its evidences)
    - TestStep:         ordered sub-step of a test case, optionally illustrated
    - TestCaseDetails:  one case of a scenario (numbers, texts, result, steps)
    - EvidenceItem:     atomic evidence record (wizard case or manual entry)
    - ArchivedTicket:   finalized snapshot of a ticket and its evidences
    - Identity:         the acting user as supplied by the identity collaborator

Architecture ref:
    ArchivedTicket ──1:1──▶ TicketInfo
    ArchivedTicket ──1:N──▶ EvidenceItem ──0..1──▶ TestCaseDetails ──1:N──▶ TestStep

These are plain dataclasses; persistence rows live in ``models.ticket``.
"""

from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum


def _utcnow():
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Collision-resistant record id."""
    return str(uuid.uuid4())


# ═════════════════════════════════════════════════════════════════════════════
# Enums
# ═════════════════════════════════════════════════════════════════════════════

class TestStatus(str, Enum):
    __test__ = False  # not a pytest class

    PASS = "PASS"
    FAIL = "FAIL"
    BLOCKED = "BLOCKED"
    SKIPPED = "SKIPPED"
    PENDING = "PENDING"


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class TicketPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class TicketStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    BLOCKED = "BLOCKED"
    DONE = "DONE"


class CaseResult(str, Enum):
    SUCCESS = "SUCCESS"
    FAIL = "FAIL"
    BLOCKED = "BLOCKED"
    PENDING = "PENDING"


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    USER = "USER"


# Case result → (evidence status, severity)
RESULT_OUTCOME: dict[CaseResult, tuple[TestStatus, Severity]] = {
    CaseResult.SUCCESS: (TestStatus.PASS, Severity.LOW),
    CaseResult.FAIL: (TestStatus.FAIL, Severity.HIGH),
    CaseResult.BLOCKED: (TestStatus.BLOCKED, Severity.MEDIUM),
    CaseResult.PENDING: (TestStatus.PENDING, Severity.LOW),
}

# Results that carry a failure reason
FAILURE_RESULTS = frozenset({CaseResult.FAIL, CaseResult.BLOCKED})


def outcome_for(result: CaseResult) -> tuple[TestStatus, Severity]:
    """Return the (status, severity) pair derived from a case result."""
    return RESULT_OUTCOME[CaseResult(result)]


# ═════════════════════════════════════════════════════════════════════════════
# Helpers
# ═════════════════════════════════════════════════════════════════════════════

def normalize_ticket_id(value: str | None) -> str:
    """Display form of an external ticket id: ``"123"`` → ``"#123"``."""
    value = (value or "").strip()
    if not value:
        return ""
    return value if value.startswith("#") else f"#{value}"


def split_environments(value: str | list | None) -> list[str]:
    """Parse ``"Trunk V12, Protheus"`` into ordered, deduplicated tags."""
    if not value:
        return []
    raw = value if isinstance(value, list) else str(value).split(",")
    tags: list[str] = []
    for tag in raw:
        tag = str(tag).strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def split_prerequisites(value: str | list | None) -> list[str]:
    """Parse pre-requisite text into an ordered list.

    Multi-line text is split on newlines; a single line is split on commas.
    """
    if not value:
        return []
    if isinstance(value, list):
        return [str(v).strip() for v in value if str(v).strip()]
    text = str(value)
    parts = text.splitlines() if "\n" in text else text.split(",")
    return [p.strip() for p in parts if p.strip()]


def derive_title(info: "TicketInfo") -> str:
    """Build the automatic ticket title from the other ticket fields.

    Order: ticket id, client/system, summary, environments (``+``-joined),
    sprint, requester/analyst. Empty parts are skipped; returns "" when
    nothing is filled in.
    """
    parts: list[str] = []
    if info.ticket_id:
        parts.append(normalize_ticket_id(info.ticket_id))
    if info.client_system:
        parts.append(info.client_system)
    if info.ticket_summary:
        parts.append(info.ticket_summary)
    if info.environments:
        parts.append(" + ".join(info.environments))
    if info.sprint:
        sprint = info.sprint
        parts.append(sprint if "sprint" in sprint.lower() else f"Sprint {sprint}")
    people = [p for p in (info.requester, info.analyst) if p]
    if people:
        parts.append("/".join(people))
    return " - ".join(parts)


# ═════════════════════════════════════════════════════════════════════════════
# Data classes
# ═════════════════════════════════════════════════════════════════════════════

_BLOCKAGE_FIELDS = ("blockage_reason", "blockage_image_urls")


@dataclass
class TicketInfo:
    """Metadata of one ticket.

    Blockage fields only hold data while ``ticket_status`` is BLOCKED: moving
    the status anywhere else clears them, and writes to them are dropped
    while the ticket is not blocked.
    """

    sprint: str = ""
    ticket_id: str = ""
    ticket_title: str = ""
    ticket_summary: str = ""
    client_system: str = ""
    requester: str = ""
    analyst: str = ""
    request_date: str = ""
    evidence_date: str = ""
    environments: list[str] = field(default_factory=list)
    environment_version: str = ""
    ticket_description: str = ""
    solution: str = ""
    priority: TicketPriority = TicketPriority.MEDIUM
    ticket_status: TicketStatus = TicketStatus.PENDING
    blockage_reason: str | None = None
    blockage_image_urls: list[str] = field(default_factory=list)

    def __setattr__(self, name, value):
        if name == "ticket_status":
            value = TicketStatus(value)
            object.__setattr__(self, name, value)
            if value != TicketStatus.BLOCKED:
                object.__setattr__(self, "blockage_reason", None)
                object.__setattr__(self, "blockage_image_urls", [])
            return
        if name in _BLOCKAGE_FIELDS and getattr(self, "ticket_status", None) != TicketStatus.BLOCKED:
            value = None if name == "blockage_reason" else []
        elif name == "priority":
            value = TicketPriority(value)
        elif name == "environments":
            value = split_environments(value)
        object.__setattr__(self, name, value)

    # ── Environment tags ──────────────────────────────────────────────

    @property
    def environment(self) -> str:
        """Environment tags as stored text (comma-joined)."""
        return ", ".join(self.environments)

    def add_environment(self, tag: str) -> bool:
        tag = (tag or "").strip()
        if not tag or tag in self.environments:
            return False
        self.environments.append(tag)
        return True

    def remove_environment(self, tag: str) -> bool:
        if tag not in self.environments:
            return False
        self.environments.remove(tag)
        return True

    # ── Blockage ──────────────────────────────────────────────────────

    def block(self, reason: str, images: list[str] | None = None) -> None:
        """Move to BLOCKED and record why, with optional exhibit images."""
        self.ticket_status = TicketStatus.BLOCKED
        self.blockage_reason = reason
        self.blockage_image_urls = list(images or [])

    def copy(self) -> "TicketInfo":
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        return {
            "sprint": self.sprint,
            "ticket_id": self.ticket_id,
            "ticket_title": self.ticket_title,
            "ticket_summary": self.ticket_summary,
            "client_system": self.client_system,
            "requester": self.requester,
            "analyst": self.analyst,
            "request_date": self.request_date,
            "evidence_date": self.evidence_date,
            "environment": self.environment,
            "environments": list(self.environments),
            "environment_version": self.environment_version,
            "ticket_description": self.ticket_description,
            "solution": self.solution,
            "priority": self.priority.value,
            "ticket_status": self.ticket_status.value,
            "blockage_reason": self.blockage_reason,
            "blockage_image_urls": list(self.blockage_image_urls),
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "TicketInfo":
        data = data or {}
        info = cls(
            sprint=data.get("sprint") or "",
            ticket_id=data.get("ticket_id") or "",
            ticket_title=data.get("ticket_title") or "",
            ticket_summary=data.get("ticket_summary") or "",
            client_system=data.get("client_system") or "",
            requester=data.get("requester") or "",
            analyst=data.get("analyst") or "",
            request_date=data.get("request_date") or "",
            evidence_date=data.get("evidence_date") or "",
            environments=data.get("environments") or data.get("environment") or [],
            environment_version=data.get("environment_version") or "",
            ticket_description=data.get("ticket_description") or "",
            solution=data.get("solution") or "",
            priority=data.get("priority") or TicketPriority.MEDIUM,
            ticket_status=data.get("ticket_status") or TicketStatus.PENDING,
        )
        if info.ticket_status == TicketStatus.BLOCKED:
            info.blockage_reason = data.get("blockage_reason")
            info.blockage_image_urls = list(data.get("blockage_image_urls") or [])
        return info


@dataclass
class TestStep:
    """One step of a case execution. Owned by exactly one TestCaseDetails."""

    __test__ = False

    step_number: int
    description: str = ""
    image_url: str | None = None

    def to_dict(self) -> dict:
        return {
            "step_number": self.step_number,
            "description": self.description,
            "image_url": self.image_url,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TestStep":
        return cls(
            step_number=int(data["step_number"]),
            description=data.get("description") or "",
            image_url=data.get("image_url"),
        )


@dataclass
class TestCaseDetails:
    """One test case inside a scenario.

    ``(scenario_number, case_number)`` is unique inside a ticket's working
    set; ``case_id`` is assigned once at creation and never regenerated.
    """

    __test__ = False

    scenario_number: int
    case_number: int
    case_id: str
    screen: str = ""
    objective: str = ""
    pre_requisites: list[str] = field(default_factory=list)
    condition: str = ""
    expected_result: str = ""
    result: CaseResult = CaseResult.PENDING
    failure_reason: str | None = None
    steps: list[TestStep] = field(default_factory=list)

    def __post_init__(self):
        self.result = CaseResult(self.result)

    @property
    def pre_requisite_text(self) -> str:
        return "\n".join(self.pre_requisites)

    def copy(self) -> "TestCaseDetails":
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        return {
            "scenario_number": self.scenario_number,
            "case_number": self.case_number,
            "case_id": self.case_id,
            "screen": self.screen,
            "objective": self.objective,
            "pre_requisites": list(self.pre_requisites),
            "condition": self.condition,
            "expected_result": self.expected_result,
            "result": CaseResult(self.result).value,
            "failure_reason": self.failure_reason,
            "steps": [s.to_dict() for s in self.steps],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TestCaseDetails":
        return cls(
            scenario_number=int(data["scenario_number"]),
            case_number=int(data["case_number"]),
            case_id=data["case_id"],
            screen=data.get("screen") or "",
            objective=data.get("objective") or "",
            pre_requisites=split_prerequisites(data.get("pre_requisites")),
            condition=data.get("condition") or "",
            expected_result=data.get("expected_result") or "",
            result=CaseResult(data.get("result") or CaseResult.PENDING),
            failure_reason=data.get("failure_reason"),
            steps=[TestStep.from_dict(s) for s in data.get("steps") or []],
        )


@dataclass
class EvidenceItem:
    """Atomic evidence record.

    Wizard-created items carry ``test_case_details`` and derive status from
    its result; manual entries have none.
    """

    id: str
    title: str
    description: str = ""
    image_url: str | None = None
    status: TestStatus = TestStatus.PENDING
    severity: Severity = Severity.LOW
    created_at: datetime = field(default_factory=_utcnow)
    ticket_info: TicketInfo = field(default_factory=TicketInfo)
    test_case_details: TestCaseDetails | None = None
    created_by: str = ""

    def __post_init__(self):
        self.status = TestStatus(self.status)
        self.severity = Severity(self.severity)

    def copy(self) -> "EvidenceItem":
        return copy.deepcopy(self)

    def with_ticket_info(self, info: TicketInfo, **changes) -> "EvidenceItem":
        """Deep copy of this item that points at ``info`` (not a copy of it)."""
        clone = replace(self, ticket_info=TicketInfo(), **changes)
        clone.test_case_details = copy.deepcopy(self.test_case_details)
        clone.ticket_info = info
        return clone

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "image_url": self.image_url,
            "status": TestStatus(self.status).value,
            "severity": Severity(self.severity).value,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "ticket_info": self.ticket_info.to_dict(),
            "test_case_details": self.test_case_details.to_dict() if self.test_case_details else None,
            "created_by": self.created_by,
        }

    @classmethod
    def from_dict(cls, data: dict, ticket_info: TicketInfo | None = None) -> "EvidenceItem":
        details = data.get("test_case_details")
        created_at = data.get("created_at")
        return cls(
            id=data.get("id") or new_id(),
            title=data.get("title") or "",
            description=data.get("description") or "",
            image_url=data.get("image_url"),
            status=TestStatus(data.get("status") or TestStatus.PENDING),
            severity=Severity(data.get("severity") or Severity.LOW),
            created_at=datetime.fromisoformat(created_at) if created_at else _utcnow(),
            ticket_info=ticket_info or TicketInfo.from_dict(data.get("ticket_info")),
            test_case_details=TestCaseDetails.from_dict(details) if details else None,
            created_by=data.get("created_by") or "",
        )


@dataclass
class ArchivedTicket:
    """Finalized ticket. Every item points at the same ``ticket_info`` instance."""

    id: str
    ticket_info: TicketInfo
    items: list[EvidenceItem] = field(default_factory=list)
    archived_at: datetime = field(default_factory=_utcnow)
    created_by: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ticket_info": self.ticket_info.to_dict(),
            "items": [i.to_dict() for i in self.items],
            "archived_at": self.archived_at.isoformat() if self.archived_at else None,
            "created_by": self.created_by,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ArchivedTicket":
        """Build from a request body; all items share the ticket-level info."""
        info = TicketInfo.from_dict(data.get("ticket_info"))
        archived_at = data.get("archived_at")
        return cls(
            id=data.get("id") or new_id(),
            ticket_info=info,
            items=[EvidenceItem.from_dict(i, ticket_info=info) for i in data.get("items") or []],
            archived_at=datetime.fromisoformat(archived_at) if archived_at else _utcnow(),
            created_by=data.get("created_by") or "",
        )


@dataclass(frozen=True)
class Identity:
    """Acting user, as supplied by the identity collaborator."""

    acronym: str
    name: str = ""
    role: UserRole = UserRole.USER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN



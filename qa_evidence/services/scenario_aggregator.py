"""
QA Evidence Hub
Scenario / case aggregation over a flat evidence list.

Pure functions, no I/O:
    - group_by_scenario      → scenarios in first-seen order, cases sorted
    - next_scenario_number   → max + 1 (1 when none)
    - next_case_number       → max + 1 within one scenario (1 when none)
    - generate_case_id       → "QA-NNNNN", unique within the working set
    - ticket_rollup_status   → single badge status for a whole ticket
    - apply_shared_ticket_info → every item points at one TicketInfo

Deleting a case never renumbers the others; the next number is recomputed
from the current maximum.
"""

from __future__ import annotations

import random
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable

from qa_evidence.models.evidence import EvidenceItem, TestStatus, TicketInfo

CASE_ID_PREFIX = "QA-"
_CASE_ID_MIN = 10000
_CASE_ID_MAX = 99999


@dataclass
class ScenarioGroup:
    scenario_number: int
    cases: list[EvidenceItem] = field(default_factory=list)

    @property
    def case_numbers(self) -> list[int]:
        return [c.test_case_details.case_number for c in self.cases]


@dataclass
class GroupedEvidence:
    scenarios: list[ScenarioGroup] = field(default_factory=list)
    standalone: list[EvidenceItem] = field(default_factory=list)

    def scenario(self, number: int) -> ScenarioGroup | None:
        return next((g for g in self.scenarios if g.scenario_number == number), None)


def group_by_scenario(items: Iterable[EvidenceItem]) -> GroupedEvidence:
    """Group items by scenario number in first-seen order.

    Cases inside a group are sorted by case number; items without case
    details stay standalone in their original relative order.
    """
    grouped = GroupedEvidence()
    index: dict[int, ScenarioGroup] = {}
    for item in items:
        details = item.test_case_details
        if details is None:
            grouped.standalone.append(item)
            continue
        group = index.get(details.scenario_number)
        if group is None:
            group = index[details.scenario_number] = ScenarioGroup(details.scenario_number)
            grouped.scenarios.append(group)
        group.cases.append(item)
    for group in grouped.scenarios:
        group.cases.sort(key=lambda i: i.test_case_details.case_number)
    return grouped


def next_scenario_number(items: Iterable[EvidenceItem]) -> int:
    numbers = [i.test_case_details.scenario_number for i in items if i.test_case_details]
    return max(numbers) + 1 if numbers else 1


def next_case_number(items: Iterable[EvidenceItem], scenario_number: int) -> int:
    numbers = [
        i.test_case_details.case_number
        for i in items
        if i.test_case_details and i.test_case_details.scenario_number == scenario_number
    ]
    return max(numbers) + 1 if numbers else 1


def collect_case_ids(items: Iterable[EvidenceItem]) -> set[str]:
    return {i.test_case_details.case_id for i in items if i.test_case_details}


def generate_case_id(existing_ids: Iterable[str] | None = None, rng: random.Random | None = None) -> str:
    """Return a fresh ``QA-NNNNN`` id not present in ``existing_ids``."""
    taken = set(existing_ids or ())
    rng = rng or random
    while True:
        candidate = f"{CASE_ID_PREFIX}{rng.randint(_CASE_ID_MIN, _CASE_ID_MAX)}"
        if candidate not in taken:
            return candidate


def sorted_cases(items: Iterable[EvidenceItem]) -> list[EvidenceItem]:
    """Case items ordered by (scenario, case); manual items are dropped."""
    cases = [i for i in items if i.test_case_details]
    return sorted(cases, key=lambda i: (i.test_case_details.scenario_number, i.test_case_details.case_number))


def items_in_scenario(items: Iterable[EvidenceItem], scenario_number: int) -> list[EvidenceItem]:
    return [
        i for i in items
        if i.test_case_details and i.test_case_details.scenario_number == scenario_number
    ]


def status_breakdown(items: Iterable[EvidenceItem]) -> dict[str, int]:
    counts = Counter(TestStatus(i.status).value for i in items)
    return {s.value: counts.get(s.value, 0) for s in TestStatus}


def ticket_rollup_status(items: Iterable[EvidenceItem]) -> TestStatus:
    """Worst status wins: FAIL > BLOCKED > PENDING/SKIPPED > PASS."""
    statuses = {TestStatus(i.status) for i in items}
    if TestStatus.FAIL in statuses:
        return TestStatus.FAIL
    if TestStatus.BLOCKED in statuses:
        return TestStatus.BLOCKED
    if statuses & {TestStatus.PENDING, TestStatus.SKIPPED}:
        return TestStatus.PENDING
    return TestStatus.PASS


def apply_shared_ticket_info(items: Iterable[EvidenceItem], info: TicketInfo, **changes) -> list[EvidenceItem]:
    """Copies of ``items`` that all reference the very same ``info`` object."""
    return [item.with_ticket_info(info, **changes) for item in items]


# Badge order for the status chips of one ticket
_BADGE_ORDER = {TestStatus.FAIL: 0, TestStatus.BLOCKED: 1, TestStatus.PASS: 2, TestStatus.PENDING: 3}


def ticket_status_badges(items: Iterable[EvidenceItem]) -> list[TestStatus]:
    """Distinct statuses present in a ticket, worst first.

    SKIPPED is shown as PENDING; a ticket without items shows PENDING.
    """
    statuses = {
        TestStatus.PENDING if TestStatus(i.status) == TestStatus.SKIPPED else TestStatus(i.status)
        for i in items
    }
    if not statuses:
        return [TestStatus.PENDING]
    return sorted(statuses, key=_BADGE_ORDER.__getitem__)

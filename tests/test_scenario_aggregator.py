"""
Tests - Scenario / case aggregation.

Covers:
    - group_by_scenario ordering (first-seen groups, sorted cases, standalone)
    - next scenario / case numbering, including after deletions
    - case id generation and uniqueness
    - ticket rollup status and status badges
    - shared TicketInfo application
"""

import random

from qa_evidence.models.evidence import CaseResult, TestStatus, TicketInfo
from qa_evidence.services.scenario_aggregator import (
    apply_shared_ticket_info,
    collect_case_ids,
    generate_case_id,
    group_by_scenario,
    items_in_scenario,
    next_case_number,
    next_scenario_number,
    sorted_cases,
    status_breakdown,
    ticket_rollup_status,
    ticket_status_badges,
)

from tests.factories import case_item, manual_item


class TestGrouping:
    def test_groups_in_first_seen_order(self):
        items = [case_item(2, 2), case_item(1, 3), case_item(2, 1), case_item(1, 1)]
        grouped = group_by_scenario(items)
        assert [g.scenario_number for g in grouped.scenarios] == [2, 1]
        assert grouped.scenario(2).case_numbers == [1, 2]
        assert grouped.scenario(1).case_numbers == [1, 3]

    def test_manual_items_stay_standalone_in_order(self):
        first, second = manual_item("first"), manual_item("second")
        grouped = group_by_scenario([first, case_item(1, 1), second])
        assert grouped.standalone == [first, second]
        assert len(grouped.scenarios) == 1

    def test_empty(self):
        grouped = group_by_scenario([])
        assert grouped.scenarios == []
        assert grouped.standalone == []
        assert grouped.scenario(1) is None

    def test_sorted_cases_drops_manual(self):
        items = [case_item(2, 1), manual_item(), case_item(1, 2), case_item(1, 1)]
        keys = [(i.test_case_details.scenario_number, i.test_case_details.case_number) for i in sorted_cases(items)]
        assert keys == [(1, 1), (1, 2), (2, 1)]

    def test_items_in_scenario(self):
        items = [case_item(1, 1), case_item(2, 1), manual_item()]
        assert len(items_in_scenario(items, 1)) == 1


class TestNumbering:
    def test_first_scenario_is_one(self):
        assert next_scenario_number([]) == 1
        assert next_scenario_number([manual_item()]) == 1

    def test_next_scenario_is_max_plus_one(self):
        assert next_scenario_number([case_item(1, 1), case_item(4, 1)]) == 5

    def test_first_case_is_one(self):
        assert next_case_number([case_item(1, 1)], scenario_number=2) == 1

    def test_sequential_insertions_are_contiguous(self):
        items = []
        for _ in range(5):
            items.append(case_item(1, next_case_number(items, 1)))
        assert [i.test_case_details.case_number for i in items] == [1, 2, 3, 4, 5]

    def test_deletion_does_not_renumber(self):
        items = [case_item(1, n) for n in (1, 2, 3)]
        del items[1]
        assert [i.test_case_details.case_number for i in items] == [1, 3]
        assert next_case_number(items, 1) == 4

    def test_deleting_the_last_case_reuses_its_number(self):
        items = [case_item(1, n) for n in (1, 2, 3)]
        items.pop()
        assert next_case_number(items, 1) == 3


class TestCaseIds:
    def test_format(self):
        case_id = generate_case_id()
        assert case_id.startswith("QA-")
        assert 10000 <= int(case_id[3:]) <= 99999

    def test_skips_existing_ids(self):
        rng = random.Random(7)
        first = generate_case_id(rng=random.Random(7))
        second = generate_case_id({first}, rng=rng)
        assert second != first

    def test_collect_case_ids(self):
        items = [case_item(1, 1, case_id="QA-11111"), manual_item(), case_item(1, 2, case_id="QA-22222")]
        assert collect_case_ids(items) == {"QA-11111", "QA-22222"}


class TestRollup:
    def test_fail_wins(self):
        items = [case_item(1, 1), case_item(1, 2, CaseResult.BLOCKED), case_item(1, 3, CaseResult.FAIL)]
        assert ticket_rollup_status(items) == TestStatus.FAIL

    def test_blocked_over_pending(self):
        items = [case_item(1, 1, CaseResult.PENDING), case_item(1, 2, CaseResult.BLOCKED)]
        assert ticket_rollup_status(items) == TestStatus.BLOCKED

    def test_skipped_counts_as_pending(self):
        assert ticket_rollup_status([case_item(1, 1), manual_item(status="SKIPPED")]) == TestStatus.PENDING

    def test_all_pass(self):
        assert ticket_rollup_status([case_item(1, 1), case_item(1, 2)]) == TestStatus.PASS

    def test_badges_sorted_worst_first(self):
        items = [
            case_item(1, 1), manual_item(status="SKIPPED"),
            case_item(1, 2, CaseResult.FAIL), case_item(1, 3, CaseResult.BLOCKED),
        ]
        assert ticket_status_badges(items) == [
            TestStatus.FAIL, TestStatus.BLOCKED, TestStatus.PASS, TestStatus.PENDING,
        ]

    def test_badges_for_empty_ticket(self):
        assert ticket_status_badges([]) == [TestStatus.PENDING]

    def test_status_breakdown(self):
        counts = status_breakdown([case_item(1, 1), case_item(1, 2, CaseResult.FAIL), case_item(1, 3)])
        assert counts["PASS"] == 2
        assert counts["FAIL"] == 1
        assert counts["SKIPPED"] == 0


class TestSharedTicketInfo:
    def test_all_items_reference_the_same_instance(self):
        items = [case_item(1, 1, info=TicketInfo(sprint="1")), case_item(1, 2, info=TicketInfo(sprint="2"))]
        shared = TicketInfo(sprint="9")
        result = apply_shared_ticket_info(items, shared, created_by="ANA")
        assert all(i.ticket_info is shared for i in result)
        assert all(i.created_by == "ANA" for i in result)

    def test_originals_untouched(self):
        original = case_item(1, 1, info=TicketInfo(sprint="1"))
        result = apply_shared_ticket_info([original], TicketInfo(sprint="9"))
        assert original.ticket_info.sprint == "1"
        assert result[0].test_case_details is not original.test_case_details

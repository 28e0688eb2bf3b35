"""
Tests - Scenario wizard (create / edit one test case).

Covers:
    - open for create / edit, reopen discards the draft
    - execution sub-state and step management with renumbering
    - build_item defaults, failure-reason gating, status/severity mapping
    - save emits exactly once and closes; refusal keeps the draft open
    - cancel emits nothing
"""

import pytest

from qa_evidence.core.results import OperationResult
from qa_evidence.models.evidence import CaseResult, Severity, TestStatus, TicketInfo
from qa_evidence.services.scenario_wizard import (
    ExecutionState,
    ScenarioWizard,
    WizardMode,
    WizardState,
    WizardStateError,
    WizardTrigger,
)

from tests.factories import case_item


def _wizard(received=None, **kwargs):
    sink = received if received is not None else []
    kwargs.setdefault("today", lambda: "2026-10-18")
    return ScenarioWizard(on_save=sink.append, **kwargs), sink


class TestOpening:
    def test_open_for_create_assigns_case_id(self):
        wizard, _ = _wizard(case_id_factory=lambda existing=None: "QA-12345")
        draft = wizard.open_for_create(2, 3)
        assert wizard.state == WizardState.OPEN
        assert wizard.mode == WizardMode.CREATE
        assert (draft.scenario_number, draft.case_number, draft.case_id) == (2, 3, "QA-12345")
        assert wizard.execution == ExecutionState.NOT_STARTED

    def test_case_id_factory_sees_existing_ids(self):
        seen = []
        wizard, _ = _wizard(case_id_factory=lambda existing=None: seen.append(existing) or "QA-11111")
        wizard.open_for_create(1, 1, existing_case_ids={"QA-22222"})
        assert seen == [{"QA-22222"}]

    def test_reopen_discards_previous_draft(self):
        wizard, sink = _wizard()
        wizard.open_for_create(1, 1)
        wizard.set_field("screen", "Login")
        draft = wizard.open_for_create(1, 2)
        assert draft.screen == ""
        assert sink == []

    def test_open_for_edit_copies_details(self):
        item = case_item(1, 2)
        item.test_case_details.steps = []
        wizard, _ = _wizard()
        draft = wizard.open_for_edit(item.test_case_details, item.id)
        draft.screen = "Changed"
        assert item.test_case_details.screen == "Screen"
        assert wizard.mode == WizardMode.EDIT

    def test_open_for_edit_with_steps_is_in_progress(self):
        wizard, _ = _wizard()
        wizard.open_for_create(1, 1)
        wizard.start_execution()
        details = wizard.draft.copy()
        wizard.open_for_edit(details, "ev-1")
        assert wizard.execution == ExecutionState.IN_PROGRESS

    def test_open_from_trigger(self):
        item = case_item(3, 1)
        wizard, _ = _wizard()
        trigger = WizardTrigger(
            mode=WizardMode.EDIT, scenario_number=3, next_case_number=1,
            existing_details=item.test_case_details, evidence_id=item.id,
        )
        wizard.open_from_trigger(trigger)
        assert wizard.evidence_id == item.id

    def test_closed_wizard_rejects_edits(self):
        wizard, _ = _wizard()
        with pytest.raises(WizardStateError):
            wizard.set_field("screen", "x")
        with pytest.raises(WizardStateError):
            wizard.save()

    def test_unknown_field(self):
        wizard, _ = _wizard()
        wizard.open_for_create(1, 1)
        with pytest.raises(ValueError):
            wizard.set_field("case_id", "QA-1")


class TestSteps:
    def test_add_step_requires_execution(self):
        wizard, _ = _wizard()
        wizard.open_for_create(1, 1)
        assert wizard.add_step() is None
        assert wizard.steps == []

    def test_start_execution_seeds_first_step(self):
        wizard, _ = _wizard()
        wizard.open_for_create(1, 1)
        wizard.start_execution()
        assert [s.step_number for s in wizard.steps] == [1]

    def test_remove_step_renumbers(self):
        wizard, _ = _wizard()
        wizard.open_for_create(1, 1)
        wizard.start_execution()
        wizard.add_step()
        wizard.add_step()
        for idx, text in enumerate(["a", "b", "c"]):
            wizard.set_step_description(idx, text)
        assert wizard.remove_step(1) is True
        assert [(s.step_number, s.description) for s in wizard.steps] == [(1, "a"), (2, "c")]

    def test_removing_last_step_returns_to_not_started(self):
        wizard, _ = _wizard()
        wizard.open_for_create(1, 1)
        wizard.start_execution()
        wizard.remove_step(0)
        assert wizard.execution == ExecutionState.NOT_STARTED
        assert wizard.add_step() is None

    def test_invalid_index_is_noop(self):
        wizard, _ = _wizard()
        wizard.open_for_create(1, 1)
        wizard.start_execution()
        assert wizard.remove_step(5) is False
        assert wizard.set_step_description(-1, "x") is False
        assert len(wizard.steps) == 1

    def test_attach_and_remove_image(self, png_bytes):
        wizard, _ = _wizard()
        wizard.open_for_create(1, 1)
        wizard.start_execution()
        assert wizard.attach_step_image(0, png_bytes)
        assert wizard.steps[0].image_url.startswith("data:image/png;base64,")
        assert wizard.remove_step_image(0)
        assert wizard.steps[0].image_url is None


class TestSave:
    def test_blank_draft_saves_placeholders(self):
        wizard, sink = _wizard(id_factory=lambda: "ev-1")
        wizard.open_for_create(1, 1)
        result = wizard.save()
        assert result.ok
        item = sink[0]
        details = item.test_case_details
        assert details.screen == "N/A"
        assert details.objective == "N/A"
        assert details.pre_requisites == ["N/A"]
        assert details.condition == "N/A"
        assert details.expected_result == "N/A"
        assert item.id == "ev-1"
        assert item.title == "Test Scenario 1: N/A"
        assert item.status == TestStatus.PENDING

    def test_fallback_ticket_info(self):
        wizard, sink = _wizard()
        wizard.open_for_create(4, 1)
        wizard.save()
        info = sink[0].ticket_info
        assert info.ticket_id == "N/A"
        assert info.ticket_title == "Test Scenario #4"
        assert info.requester == "QA"
        assert info.request_date == "2026-10-18"

    def test_ticket_info_is_copied(self):
        shared = TicketInfo(ticket_id="#1", ticket_title="Ticket")
        wizard, sink = _wizard()
        wizard.open_for_create(1, 1, ticket_info=shared)
        wizard.save()
        assert sink[0].ticket_info.ticket_title == "Ticket"
        assert sink[0].ticket_info is not shared

    @pytest.mark.parametrize("result,status,severity", [
        (CaseResult.SUCCESS, TestStatus.PASS, Severity.LOW),
        (CaseResult.FAIL, TestStatus.FAIL, Severity.HIGH),
        (CaseResult.BLOCKED, TestStatus.BLOCKED, Severity.MEDIUM),
        (CaseResult.PENDING, TestStatus.PENDING, Severity.LOW),
    ])
    def test_result_mapping(self, result, status, severity):
        wizard, sink = _wizard()
        wizard.open_for_create(1, 1)
        wizard.set_result(result)
        wizard.save()
        assert (sink[0].status, sink[0].severity) == (status, severity)

    def test_failure_reason_dropped_on_success(self):
        wizard, sink = _wizard()
        wizard.open_for_create(1, 1)
        wizard.set_field("failure_reason", "timeout")
        wizard.set_result(CaseResult.SUCCESS)
        wizard.save()
        assert sink[0].test_case_details.failure_reason is None

    def test_failure_reason_kept_on_fail(self):
        wizard, sink = _wizard()
        wizard.open_for_create(1, 1)
        wizard.set_field("failure_reason", "timeout")
        wizard.set_result(CaseResult.FAIL)
        wizard.save()
        assert sink[0].test_case_details.failure_reason == "timeout"

    def test_prerequisites_text_is_split(self):
        wizard, sink = _wizard()
        wizard.open_for_create(1, 1)
        wizard.set_field("pre_requisites", "user exists\nproduct in stock")
        wizard.save()
        assert sink[0].test_case_details.pre_requisites == ["user exists", "product in stock"]

    def test_cover_image_is_last_step_image(self):
        wizard, sink = _wizard()
        wizard.open_for_create(1, 1)
        wizard.start_execution()
        wizard.add_step()
        wizard.attach_step_image(0, "data:image/png;base64,AAA")
        wizard.attach_step_image(1, "data:image/png;base64,BBB")
        wizard.save()
        assert sink[0].image_url == "data:image/png;base64,BBB"

    def test_edit_keeps_id_and_case_id(self):
        original = case_item(1, 2, case_id="QA-55555")
        wizard, sink = _wizard(id_factory=lambda: "new-id")
        wizard.open_for_edit(original.test_case_details, original.id)
        wizard.set_field("screen", "Checkout")
        wizard.save()
        assert sink[0].id == original.id
        assert sink[0].test_case_details.case_id == "QA-55555"
        assert sink[0].title == "Test Scenario 1: Checkout"

    def test_save_emits_once_and_closes(self):
        wizard, sink = _wizard()
        wizard.open_for_create(1, 1)
        wizard.save()
        assert len(sink) == 1
        assert wizard.state == WizardState.CLOSED
        assert wizard.draft is None

    def test_refused_save_keeps_draft(self):
        wizard = ScenarioWizard(on_save=lambda item: OperationResult.fail("slot taken"))
        wizard.open_for_create(1, 1)
        wizard.set_field("screen", "Login")
        result = wizard.save()
        assert not result.ok
        assert result.message == "slot taken"
        assert wizard.is_open
        assert wizard.draft.screen == "Login"

    def test_cancel_emits_nothing(self):
        wizard, sink = _wizard()
        wizard.open_for_create(1, 1)
        wizard.cancel()
        assert sink == []
        assert wizard.state == WizardState.CLOSED

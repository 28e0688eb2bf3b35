"""Small builders for domain objects used across the test modules."""

from qa_evidence.models.evidence import (
    ArchivedTicket,
    CaseResult,
    EvidenceItem,
    TestCaseDetails,
    TicketInfo,
    new_id,
    outcome_for,
)


def complete_ticket_info(**overrides) -> TicketInfo:
    values = dict(
        sprint="42",
        ticket_id="1234",
        ticket_title="#1234 - Billing - Invoice rounding",
        ticket_summary="Invoice rounding",
        client_system="Billing",
        requester="Marcos",
        analyst="ANA",
        request_date="2026-10-01",
    )
    values.update(overrides)
    return TicketInfo(**values)


def case_item(scenario, case, result=CaseResult.SUCCESS, case_id=None, item_id=None, info=None):
    status, severity = outcome_for(result)
    return EvidenceItem(
        id=item_id or new_id(),
        title=f"Test Scenario {scenario}: Screen",
        status=status,
        severity=severity,
        ticket_info=info or TicketInfo(),
        test_case_details=TestCaseDetails(
            scenario_number=scenario,
            case_number=case,
            case_id=case_id or f"QA-{scenario:02d}{case:03d}",
            screen="Screen",
            result=result,
        ),
    )


def manual_item(title="Manual evidence", status="PASS", item_id=None):
    return EvidenceItem(id=item_id or new_id(), title=title, status=status)


def archived(created_by="ANA", items=None, info=None, ticket_id=None):
    info = info or complete_ticket_info(analyst=created_by)
    items = items if items is not None else [case_item(1, 1, info=info)]
    for item in items:
        item.ticket_info = info
        item.created_by = created_by
    return ArchivedTicket(id=ticket_id or new_id(), ticket_info=info, items=items, created_by=created_by)

"""
QA Evidence Hub
Tests - Ticket API.

Covers:
    - Ticket create / get / list with rollup status and badges
    - Creator required; duplicate id conflict
    - Replace keeps one ticket and rewrites every evidence
    - Only the creator may replace or delete
    - Search by name, acronym, title, date and case id; grouping by creator
    - Workbook export download
    - Lifecycle controller wired to the SQL repository
"""

from qa_evidence.models import db as _db
from qa_evidence.models.evidence import Identity
from qa_evidence.models.ticket import Evidence, EvidenceStep, Ticket
from qa_evidence.services.ticket_lifecycle import TicketLifecycleController
from qa_evidence.services.ticket_service import SqlTicketRepository

from tests.factories import complete_ticket_info


def _case(scenario, case, case_id, result="SUCCESS", status="PASS", steps=None):
    return {
        "title": f"Test Scenario {scenario}: Login",
        "status": status,
        "severity": "LOW",
        "test_case_details": {
            "scenario_number": scenario,
            "case_number": case,
            "case_id": case_id,
            "screen": "Login",
            "objective": "Log in",
            "pre_requisites": ["user exists"],
            "result": result,
            "steps": steps or [],
        },
    }


def _payload(**kw):
    payload = {
        "ticket_info": complete_ticket_info().to_dict(),
        "items": [
            _case(1, 1, "QA-10001", steps=[{"step_number": 1, "description": "open page"}]),
            _case(1, 2, "QA-10002", result="FAIL", status="FAIL"),
        ],
    }
    payload.update(kw)
    return payload


def _create_ticket(client, user="ANA", **kw):
    res = client.post("/api/v1/tickets", json=_payload(**kw), headers={"X-User": user})
    assert res.status_code == 201, res.get_json()
    return res.get_json()


class TestTicketCrud:
    def test_create_and_get(self, client, analyst):
        body = _create_ticket(client, id="t-1")
        assert body["id"] == "t-1"
        assert body["created_by"] == "ANA"
        assert body["rollup_status"] == "FAIL"
        assert body["status_badges"] == ["FAIL", "PASS"]

        res = client.get("/api/v1/tickets/t-1")
        assert res.status_code == 200
        data = res.get_json()
        assert data["ticket_info"]["sprint"] == "42"
        first = data["items"][0]["test_case_details"]
        assert first["case_id"] == "QA-10001"
        assert first["steps"][0]["description"] == "open page"
        assert first["pre_requisites"] == ["user exists"]

    def test_get_not_found(self, client):
        res = client.get("/api/v1/tickets/missing")
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_create_requires_creator(self, client):
        res = client.post("/api/v1/tickets", json=_payload())
        assert res.status_code == 422

    def test_create_with_body_creator(self, client):
        res = client.post("/api/v1/tickets", json=_payload(created_by="RFP"))
        assert res.status_code == 201
        assert res.get_json()["created_by"] == "RFP"

    def test_unknown_actor_forbidden(self, client):
        res = client.post("/api/v1/tickets", json=_payload(), headers={"X-User": "ZZZ"})
        assert res.status_code == 403

    def test_duplicate_id_conflict(self, client, analyst):
        _create_ticket(client, id="t-1")
        res = client.post("/api/v1/tickets", json=_payload(id="t-1"), headers={"X-User": "ANA"})
        assert res.status_code == 409

    def test_duplicate_case_slot_rejected(self, client, analyst):
        payload = _payload(items=[_case(1, 1, "QA-10001"), _case(1, 1, "QA-10002")])
        res = client.post("/api/v1/tickets", json=payload, headers={"X-User": "ANA"})
        assert res.status_code == 422
        body = res.get_json()
        assert body["code"] == "ERR_VALIDATION_RULE"
        assert body["details"] == {"duplicate_slots": ["1.1"]}
        assert Ticket.query.count() == 0

    def test_duplicate_case_id_rejected(self, client, analyst):
        payload = _payload(items=[_case(1, 1, "QA-10001"), _case(1, 2, "QA-10001")])
        res = client.post("/api/v1/tickets", json=payload, headers={"X-User": "ANA"})
        assert res.status_code == 422
        assert res.get_json()["details"] == {"duplicate_case_ids": ["QA-10001"]}

    def test_replace_with_duplicate_slot_keeps_ticket(self, client, analyst):
        _create_ticket(client, id="t-1")
        payload = _payload(items=[_case(2, 1, "QA-20001"), _case(2, 1, "QA-20002")])
        res = client.put("/api/v1/tickets/t-1", json=payload, headers={"X-User": "ANA"})
        assert res.status_code == 422
        assert Evidence.query.count() == 2

    def test_evidence_id_owned_by_other_ticket_conflicts(self, client, analyst):
        first = _case(1, 1, "QA-10001")
        first["id"] = "ev-1"
        _create_ticket(client, id="t-1", items=[first])
        _db.session.expunge_all()
        second = _case(1, 1, "QA-10009")
        second["id"] = "ev-1"
        res = client.post("/api/v1/tickets", json=_payload(id="t-2", items=[second]), headers={"X-User": "ANA"})
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONFLICT_DUPLICATE"
        assert _db.session.get(Ticket, "t-2") is None

    def test_unknown_route_is_json(self, client):
        res = client.get("/api/v1/nothing-here")
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_create_requires_json(self, client, analyst):
        res = client.post("/api/v1/tickets", data="nope", headers={"X-User": "ANA"})
        assert res.status_code == 422

    def test_blocked_ticket_keeps_exhibits(self, client, analyst):
        info = complete_ticket_info()
        info.block("waiting for client data", ["data:image/png;base64,AAA"])
        body = _create_ticket(client, ticket_info=info.to_dict())
        assert body["ticket_info"]["blockage_reason"] == "waiting for client data"
        assert body["ticket_info"]["blockage_image_urls"] == ["data:image/png;base64,AAA"]


class TestReplaceDelete:
    def test_replace_rewrites_children(self, client, analyst):
        _create_ticket(client, id="t-1")
        payload = _payload(items=[_case(2, 1, "QA-20001")])
        payload["ticket_info"]["sprint"] = "43"
        res = client.put("/api/v1/tickets/t-1", json=payload, headers={"X-User": "ANA"})
        assert res.status_code == 200
        data = res.get_json()
        assert data["ticket_info"]["sprint"] == "43"
        assert [i["test_case_details"]["case_id"] for i in data["items"]] == ["QA-20001"]
        assert Ticket.query.count() == 1
        assert Evidence.query.count() == 1
        assert EvidenceStep.query.count() == 0

    def test_replace_by_other_user_forbidden(self, client, analyst, admin):
        _create_ticket(client, id="t-1")
        res = client.put("/api/v1/tickets/t-1", json=_payload(), headers={"X-User": "VTP"})
        assert res.status_code == 403

    def test_replace_requires_actor(self, client, analyst):
        _create_ticket(client, id="t-1")
        res = client.put("/api/v1/tickets/t-1", json=_payload())
        assert res.status_code == 403

    def test_delete(self, client, analyst):
        _create_ticket(client, id="t-1")
        res = client.delete("/api/v1/tickets/t-1", headers={"X-User": "ANA"})
        assert res.status_code == 200
        assert _db.session.get(Ticket, "t-1") is None
        assert Evidence.query.count() == 0

    def test_delete_by_other_user_forbidden(self, client, analyst, admin):
        _create_ticket(client, id="t-1")
        res = client.delete("/api/v1/tickets/t-1", headers={"X-User": "VTP"})
        assert res.status_code == 403
        assert _db.session.get(Ticket, "t-1") is not None


class TestSearch:
    def test_search_by_case_id(self, client, analyst):
        _create_ticket(client, id="t-1")
        _create_ticket(client, id="t-2", items=[_case(1, 1, "QA-77777")])
        res = client.get("/api/v1/tickets?q=qa-77777")
        assert [t["id"] for t in res.get_json()] == ["t-2"]

    def test_search_by_creator_name(self, client, analyst):
        _create_ticket(client, id="t-1")
        assert len(client.get("/api/v1/tickets?q=ana costa").get_json()) == 1
        assert client.get("/api/v1/tickets?q=nobody").get_json() == []

    def test_search_by_title(self, client, analyst):
        _create_ticket(client, id="t-1")
        assert len(client.get("/api/v1/tickets?q=INVOICE").get_json()) == 1

    def test_filter_by_creator(self, client, analyst, admin):
        _create_ticket(client, id="t-1")
        _create_ticket(client, user="VTP", id="t-2")
        res = client.get("/api/v1/tickets?created_by=VTP")
        assert [t["id"] for t in res.get_json()] == ["t-2"]

    def test_grouped(self, client, analyst, admin):
        _create_ticket(client, user="VTP", id="t-2")
        _create_ticket(client, id="t-1")
        data = client.get("/api/v1/tickets/grouped").get_json()
        assert list(data.keys()) == ["ANA", "VTP"]


class TestExport:
    def test_export_download(self, client, analyst):
        _create_ticket(client, id="t-1", ticket_info=complete_ticket_info(ticket_title="#1/2: rounding").to_dict())
        res = client.get("/api/v1/tickets/t-1/export.xlsx")
        assert res.status_code == 200
        assert res.mimetype == "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        assert "#1-2- rounding.xlsx" in res.headers["Content-Disposition"]
        assert res.data[:2] == b"PK"


class TestSqlRepository:
    def test_controller_finalize_persists(self, analyst):
        controller = TicketLifecycleController(
            Identity("ANA"), repository=SqlTicketRepository(), confirm=lambda m: True,
        )
        wizard = controller.make_wizard()
        wizard.open_from_trigger(controller.new_scenario_trigger())
        wizard.set_field("screen", "Checkout")
        wizard.save()
        result = controller.finalize(complete_ticket_info())
        assert result.ok
        row = _db.session.get(Ticket, result.payload.id)
        assert row.external_id == "#1234"
        assert row.evidences[0].screen == "Checkout"

    def test_controller_reedit_replaces_row(self, analyst):
        repo = SqlTicketRepository()
        controller = TicketLifecycleController(Identity("ANA"), repository=repo, confirm=lambda m: True)
        wizard = controller.make_wizard()
        wizard.open_from_trigger(controller.new_scenario_trigger())
        wizard.save()
        ticket = controller.finalize(complete_ticket_info()).payload

        assert controller.refresh_archive().ok
        assert controller.load_archived(controller.archive[0])
        wizard = controller.make_wizard()
        wizard.open_from_trigger(controller.new_scenario_trigger())
        wizard.save()
        assert controller.finalize().ok

        assert Ticket.query.count() == 1
        assert Evidence.query.count() == 2
        assert controller.archive[0].id == ticket.id

    def test_delete_through_controller(self, analyst):
        repo = SqlTicketRepository()
        controller = TicketLifecycleController(Identity("ANA"), repository=repo, confirm=lambda m: True)
        wizard = controller.make_wizard()
        wizard.open_from_trigger(controller.new_scenario_trigger())
        wizard.save()
        ticket = controller.finalize(complete_ticket_info()).payload
        assert controller.delete_archived(ticket.id)
        assert Ticket.query.count() == 0

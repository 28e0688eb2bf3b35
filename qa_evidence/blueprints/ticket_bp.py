"""
Ticket Blueprint - archived tickets with their evidences.

Endpoints:
    GET    /api/v1/tickets                  - List (optional ?q= search, ?created_by=)
    GET    /api/v1/tickets/<id>             - Detail
    POST   /api/v1/tickets                  - Archive a new ticket
    PUT    /api/v1/tickets/<id>             - Replace ticket and all its evidences
    DELETE /api/v1/tickets/<id>             - Delete ticket
    GET    /api/v1/tickets/<id>/export.xlsx - Evidence workbook download
    GET    /api/v1/tickets/grouped          - Tickets grouped by creator

Only the creator (``X-User`` header) may replace or delete a ticket.
"""

import logging

from flask import Blueprint, jsonify, request, send_file

from qa_evidence.blueprints import current_actor
from qa_evidence.core.exceptions import PermissionDenied, ValidationError
from qa_evidence.models.evidence import ArchivedTicket
from qa_evidence.services import ticket_service
from qa_evidence.services.export_service import XLSX_MIMETYPE, export_ticket_xlsx, safe_filename
from qa_evidence.services.scenario_aggregator import ticket_rollup_status, ticket_status_badges
from qa_evidence.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

ticket_bp = Blueprint("ticket", __name__, url_prefix="/api/v1")


def _ticket_json(ticket: ArchivedTicket) -> dict:
    body = ticket.to_dict()
    body["rollup_status"] = ticket_rollup_status(ticket.items).value
    body["status_badges"] = [s.value for s in ticket_status_badges(ticket.items)]
    return body


def _ticket_from_body(ticket_id=None) -> ArchivedTicket:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("JSON body required")
    try:
        ticket = ArchivedTicket.from_dict(data)
    except (KeyError, TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid ticket payload: {exc}") from exc
    if ticket_id is not None:
        ticket.id = ticket_id
    return ticket


def _require_owner(ticket: ArchivedTicket, action: str):
    actor = current_actor()
    if ticket.created_by and ticket.created_by != actor.acronym:
        raise PermissionDenied(action, actor=actor.acronym, owner=ticket.created_by)
    return actor


@ticket_bp.route("/tickets", methods=["GET"])
def list_tickets():
    tickets = ticket_service.list_tickets(
        created_by=request.args.get("created_by") or None,
        search=request.args.get("q") or None,
    )
    return jsonify([_ticket_json(t) for t in tickets])


@ticket_bp.route("/tickets/grouped", methods=["GET"])
def grouped_tickets():
    tickets = ticket_service.list_tickets(search=request.args.get("q") or None)
    groups = ticket_service.group_by_creator(tickets)
    return jsonify({
        creator: [_ticket_json(t) for t in items] for creator, items in groups.items()
    })


@ticket_bp.route("/tickets/<ticket_id>", methods=["GET"])
def get_ticket(ticket_id):
    return jsonify(_ticket_json(ticket_service.get_ticket(ticket_id)))


@ticket_bp.route("/tickets", methods=["POST"])
def create_ticket():
    ticket = _ticket_from_body()
    actor = current_actor(required=False)
    if actor is not None:
        ticket.created_by = actor.acronym
    if not ticket.created_by:
        raise ValidationError("created_by is required")
    created = ticket_service.create_ticket(ticket)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(_ticket_json(created)), 201


@ticket_bp.route("/tickets/<ticket_id>", methods=["PUT"])
def replace_ticket(ticket_id):
    existing = ticket_service.get_ticket(ticket_id)
    actor = _require_owner(existing, "edit this ticket")
    ticket = _ticket_from_body(ticket_id)
    ticket.created_by = actor.acronym
    replaced = ticket_service.replace_ticket(ticket_id, ticket)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(_ticket_json(replaced))


@ticket_bp.route("/tickets/<ticket_id>", methods=["DELETE"])
def delete_ticket(ticket_id):
    existing = ticket_service.get_ticket(ticket_id)
    _require_owner(existing, "delete this ticket")
    ticket_service.delete_ticket(ticket_id)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"deleted": True, "id": ticket_id})


@ticket_bp.route("/tickets/<ticket_id>/export.xlsx", methods=["GET"])
def export_ticket(ticket_id):
    ticket = ticket_service.get_ticket(ticket_id)
    output = export_ticket_xlsx(ticket)
    return send_file(
        output,
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name=safe_filename(ticket.ticket_info.ticket_title or ticket.id),
    )

"""
QA Evidence Hub
Archived ticket persistence models.

Models:
    - Ticket:               finalized ticket header (one TicketInfo)
    - Evidence:             one evidence item, with its flattened case details
    - EvidenceStep:         ordered step of a case
    - TicketBlockageImage:  exhibit image of a blocked ticket

Images are stored as data URLs in TEXT columns. Children are replaced
wholesale on update (delete-all-then-reinsert), never patched.
"""

import uuid
from datetime import datetime, timezone

from qa_evidence.models import db


def _uuid():
    return str(uuid.uuid4())


def _now():
    return datetime.now(timezone.utc)


class Ticket(db.Model):
    __tablename__ = "tickets"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    external_id = db.Column(db.String(100), default="", comment="Ticket number in the support tool, e.g. #1234")
    title = db.Column(db.String(500), default="")
    summary = db.Column(db.String(500), default="")
    sprint = db.Column(db.String(100), default="")
    client_system = db.Column(db.String(200), default="")
    requester = db.Column(db.String(100), default="")
    analyst = db.Column(db.String(100), default="")
    request_date = db.Column(db.Date, nullable=True)
    evidence_date = db.Column(db.Date, nullable=True)
    environment = db.Column(db.Text, default="", comment="Comma-joined environment tags")
    environment_version = db.Column(db.String(100), default="")
    description = db.Column(db.Text, default="")
    solution = db.Column(db.Text, default="")
    priority = db.Column(db.String(10), default="MEDIUM", comment="LOW | MEDIUM | HIGH")
    ticket_status = db.Column(
        db.String(20), default="PENDING", comment="PENDING | IN_PROGRESS | BLOCKED | DONE",
    )
    blockage_reason = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.String(20), default="", index=True)
    archived_at = db.Column(db.DateTime, default=_now)
    created_at = db.Column(db.DateTime, default=_now)
    updated_at = db.Column(db.DateTime, default=_now, onupdate=_now)

    # ── Relationships
    evidences = db.relationship(
        "Evidence", backref="ticket", cascade="all, delete-orphan",
        order_by="Evidence.position",
    )
    blockage_images = db.relationship(
        "TicketBlockageImage", backref="ticket", cascade="all, delete-orphan",
        order_by="TicketBlockageImage.position",
    )

    def __repr__(self):
        return f"<Ticket {self.id}: {self.external_id}>"


class Evidence(db.Model):
    __tablename__ = "evidences"
    __table_args__ = (
        db.UniqueConstraint("ticket_pk", "scenario_number", "case_number", name="uq_evidence_case_slot"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    ticket_pk = db.Column(
        db.String(36), db.ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    position = db.Column(db.Integer, default=0, comment="Order inside the ticket")
    title = db.Column(db.String(500), default="")
    description = db.Column(db.Text, default="")
    image_url = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(10), default="PENDING", comment="PASS | FAIL | BLOCKED | SKIPPED | PENDING")
    severity = db.Column(db.String(10), default="LOW")
    created_by = db.Column(db.String(20), default="")
    created_at = db.Column(db.DateTime, default=_now)

    # Case details; all NULL for manual evidence
    scenario_number = db.Column(db.Integer, nullable=True)
    case_number = db.Column(db.Integer, nullable=True)
    case_id = db.Column(db.String(20), nullable=True, index=True)
    screen = db.Column(db.String(200), nullable=True)
    objective = db.Column(db.Text, nullable=True)
    pre_requisites = db.Column(db.Text, nullable=True, comment="Newline-joined list")
    condition = db.Column(db.Text, nullable=True)
    expected_result = db.Column(db.Text, nullable=True)
    result = db.Column(db.String(10), nullable=True, comment="SUCCESS | FAIL | BLOCKED | PENDING")
    failure_reason = db.Column(db.Text, nullable=True)

    steps = db.relationship(
        "EvidenceStep", backref="evidence", cascade="all, delete-orphan",
        order_by="EvidenceStep.step_number",
    )

    @property
    def has_case(self):
        return self.scenario_number is not None

    def __repr__(self):
        return f"<Evidence {self.id}: {self.case_id or self.title}>"


class EvidenceStep(db.Model):
    __tablename__ = "evidence_steps"

    id = db.Column(db.Integer, primary_key=True)
    evidence_id = db.Column(
        db.String(36), db.ForeignKey("evidences.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    step_number = db.Column(db.Integer, nullable=False)
    description = db.Column(db.Text, default="")
    image_url = db.Column(db.Text, nullable=True)


class TicketBlockageImage(db.Model):
    __tablename__ = "ticket_blockage_images"

    id = db.Column(db.Integer, primary_key=True)
    ticket_pk = db.Column(
        db.String(36), db.ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    position = db.Column(db.Integer, default=0)
    image_url = db.Column(db.Text, nullable=False)

"""
QA Evidence Hub
Bug report models.

Models:
    - BugReport:      defect found while testing, tracked until dev feedback
    - BugAttachment:  screenshot attached to a bug (data URL)
"""

import uuid
from datetime import datetime, timezone

from qa_evidence.models import db

# PENDING → IN_TEST / BLOCKED / DEV (returned to development)
BUG_STATUSES = {"PENDING", "IN_TEST", "BLOCKED", "DEV"}
BUG_PRIORITIES = {"LOW", "MEDIUM", "HIGH"}


class BugReport(db.Model):
    __tablename__ = "bug_reports"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    summary = db.Column(db.String(500), nullable=False)
    status = db.Column(db.String(20), default="PENDING", comment="PENDING | IN_TEST | BLOCKED | DEV")
    priority = db.Column(db.String(10), default="MEDIUM")
    screen = db.Column(db.String(200), default="")
    module = db.Column(db.String(200), default="")
    environment = db.Column(db.String(200), default="")
    bug_date = db.Column(db.Date, nullable=True)
    developer = db.Column(db.String(100), default="", comment="Developer responsible for the fix")
    analyst = db.Column(db.String(100), default="")
    pre_requisites = db.Column(db.Text, default="", comment="Comma-joined list")
    scenario_description = db.Column(db.Text, default="")
    expected_result = db.Column(db.Text, default="")
    description = db.Column(db.Text, nullable=False)
    dev_feedback = db.Column(db.Text, default="")
    observation = db.Column(db.Text, default="")
    created_by = db.Column(db.String(20), default="", index=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    attachments = db.relationship(
        "BugAttachment", backref="bug", cascade="all, delete-orphan",
        order_by="BugAttachment.position",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "summary": self.summary,
            "status": self.status,
            "priority": self.priority,
            "screen": self.screen,
            "module": self.module,
            "environment": self.environment,
            "date": self.bug_date.isoformat() if self.bug_date else "",
            "developer": self.developer,
            "analyst": self.analyst,
            "pre_requisites": [p.strip() for p in (self.pre_requisites or "").split(",") if p.strip()],
            "scenario_description": self.scenario_description,
            "expected_result": self.expected_result,
            "description": self.description,
            "dev_feedback": self.dev_feedback,
            "observation": self.observation,
            "created_by": self.created_by,
            "attachments": [a.image_url for a in self.attachments],
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<BugReport {self.id}: {self.summary[:30]}>"


class BugAttachment(db.Model):
    __tablename__ = "bug_attachments"

    id = db.Column(db.Integer, primary_key=True)
    bug_id = db.Column(
        db.String(36), db.ForeignKey("bug_reports.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    position = db.Column(db.Integer, default=0)
    image_url = db.Column(db.Text, nullable=False)

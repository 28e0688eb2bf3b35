"""
QA Evidence Hub
SQLAlchemy extension instance shared by all ORM models.

The in-memory working-set types (TicketInfo, EvidenceItem, ArchivedTicket …)
live in ``qa_evidence.models.evidence`` and do not depend on the database.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

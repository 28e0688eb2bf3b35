"""
Ticket document export - styled Excel workbook via openpyxl.

Sheets:
    Ticket  - ticket metadata, rollup status, author
    Cases   - one row per test case / manual evidence, scenario order
    Steps   - every case step, with its screenshot embedded

The lifecycle controller calls ``XlsxEvidenceExporter.export`` before it
persists a finalized ticket; the REST layer serves the same bytes for
archived tickets.
"""

import io
import logging
import re
from datetime import datetime, timezone

from openpyxl import Workbook
from openpyxl.drawing.image import Image as XLImage
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from PIL import Image as PILImage

from qa_evidence.models.evidence import TestStatus
from qa_evidence.services.image_editor import ImageLoadError, data_url_to_bytes
from qa_evidence.services.scenario_aggregator import group_by_scenario, ticket_rollup_status

logger = logging.getLogger(__name__)

STATUS_FILLS = {
    TestStatus.PASS: PatternFill(start_color="27AE60", end_color="27AE60", fill_type="solid"),
    TestStatus.FAIL: PatternFill(start_color="E74C3C", end_color="E74C3C", fill_type="solid"),
    TestStatus.BLOCKED: PatternFill(start_color="F39C12", end_color="F39C12", fill_type="solid"),
    TestStatus.PENDING: PatternFill(start_color="95A5A6", end_color="95A5A6", fill_type="solid"),
    TestStatus.SKIPPED: PatternFill(start_color="95A5A6", end_color="95A5A6", fill_type="solid"),
}
WHITE_FONT = Font(color="FFFFFF", bold=True)
HEADER_FILL = PatternFill(start_color="354A5F", end_color="354A5F", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True, size=11)
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)
WRAP = Alignment(wrap_text=True, vertical="top")

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
THUMBNAIL_HEIGHT = 160  # px
_UNSAFE_FILENAME = re.compile(r'[/\\?%*:|"<>]')


def safe_filename(title: str, extension: str = "xlsx") -> str:
    """Ticket title turned into a download name: ``/\\?%*:|"<>`` become ``-``."""
    base = _UNSAFE_FILENAME.sub("-", (title or "").strip()) or "evidence"
    return f"{base}.{extension}"


def _header_row(ws, row, headers, widths=None):
    for col, header in enumerate(headers, 1):
        cell = ws.cell(row=row, column=col, value=header)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.border = THIN_BORDER
    for col, width in enumerate(widths or [], 1):
        ws.column_dimensions[get_column_letter(col)].width = width


def _status_cell(cell, status):
    status = TestStatus(status)
    cell.value = status.value
    cell.fill = STATUS_FILLS[status]
    cell.font = WHITE_FONT
    cell.alignment = Alignment(horizontal="center")


def _thumbnail(image_url):
    """openpyxl image scaled to THUMBNAIL_HEIGHT, or None when undecodable."""
    if not image_url:
        return None
    try:
        blob = data_url_to_bytes(image_url)
        with PILImage.open(io.BytesIO(blob)) as src:
            width, height = src.size
    except (ImageLoadError, OSError) as exc:
        logger.warning("Skipping undecodable step image: %s", exc)
        return None
    img = XLImage(io.BytesIO(blob))
    scale = THUMBNAIL_HEIGHT / height if height else 1
    img.height = THUMBNAIL_HEIGHT
    img.width = int(width * scale)
    return img


def _ticket_sheet(ws, info, items, author):
    ws.title = "Ticket"
    ws.merge_cells("A1:D1")
    ws["A1"] = f"Test Evidence: {info.ticket_title or info.ticket_id or 'Untitled ticket'}"
    ws["A1"].font = Font(size=16, bold=True)
    ws["A2"] = f"Generated: {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M UTC')} by {author}"
    ws["A2"].font = Font(size=10, italic=True, color="666666")

    rows = [
        ("Ticket ID", info.ticket_id),
        ("Title", info.ticket_title),
        ("Summary", info.ticket_summary),
        ("Client / System", info.client_system),
        ("Sprint", info.sprint),
        ("Requester", info.requester),
        ("Analyst", info.analyst),
        ("Request Date", info.request_date),
        ("Evidence Date", info.evidence_date),
        ("Environment", info.environment),
        ("Environment Version", info.environment_version),
        ("Priority", info.priority.value),
        ("Ticket Status", info.ticket_status.value),
        ("Description", info.ticket_description),
        ("Solution", info.solution),
    ]
    if info.blockage_reason:
        rows.append(("Blockage Reason", info.blockage_reason))

    row = 4
    ws.cell(row=row, column=1, value="Result").font = Font(bold=True)
    _status_cell(ws.cell(row=row, column=2), ticket_rollup_status(items))
    for label, value in rows:
        row += 1
        ws.cell(row=row, column=1, value=label).font = Font(bold=True)
        cell = ws.cell(row=row, column=2, value=value or "")
        cell.alignment = WRAP
    ws.column_dimensions["A"].width = 22
    ws.column_dimensions["B"].width = 80


def _cases_sheet(ws, items):
    ws.title = "Cases"
    headers = [
        "Scenario", "Case", "Case ID", "Screen", "Objective", "Pre-requisites",
        "Condition", "Expected Result", "Result", "Failure Reason", "Status", "Severity", "Steps",
    ]
    _header_row(ws, 1, headers, [10, 8, 12, 20, 35, 30, 30, 30, 12, 30, 12, 12, 8])

    grouped = group_by_scenario(items)
    row = 1
    for group in grouped.scenarios:
        for item in group.cases:
            d = item.test_case_details
            row += 1
            values = [
                d.scenario_number, d.case_number, d.case_id, d.screen, d.objective,
                "\n".join(d.pre_requisites), d.condition, d.expected_result, d.result.value,
                d.failure_reason or "", None, item.severity.value, len(d.steps),
            ]
            for col, value in enumerate(values, 1):
                cell = ws.cell(row=row, column=col, value=value)
                cell.border = THIN_BORDER
                cell.alignment = WRAP
            _status_cell(ws.cell(row=row, column=11), item.status)
    for item in grouped.standalone:
        row += 1
        ws.cell(row=row, column=4, value=item.title).alignment = WRAP
        ws.cell(row=row, column=5, value=item.description).alignment = WRAP
        _status_cell(ws.cell(row=row, column=11), item.status)
        ws.cell(row=row, column=12, value=item.severity.value)


def _steps_sheet(ws, items):
    ws.title = "Steps"
    _header_row(ws, 1, ["Case ID", "Step", "Description", "Screenshot"], [12, 8, 50, 60])
    row = 1
    for group in group_by_scenario(items).scenarios:
        for item in group.cases:
            d = item.test_case_details
            for step in d.steps:
                row += 1
                ws.cell(row=row, column=1, value=d.case_id).border = THIN_BORDER
                ws.cell(row=row, column=2, value=step.step_number).border = THIN_BORDER
                desc = ws.cell(row=row, column=3, value=step.description)
                desc.alignment = WRAP
                desc.border = THIN_BORDER
                thumb = _thumbnail(step.image_url)
                if thumb is not None:
                    ws.add_image(thumb, f"D{row}")
                    ws.row_dimensions[row].height = THUMBNAIL_HEIGHT * 0.75  # px → pt


def build_workbook(ticket_info, items, author="") -> Workbook:
    wb = Workbook()
    _ticket_sheet(wb.active, ticket_info, items, author)
    _cases_sheet(wb.create_sheet(), items)
    _steps_sheet(wb.create_sheet(), items)
    return wb


def export_ticket_xlsx(ticket) -> io.BytesIO:
    """
    Generate the workbook for an archived ticket.
    Returns a BytesIO buffer ready for Flask send_file.
    """
    wb = build_workbook(ticket.ticket_info, ticket.items, ticket.created_by)
    output = io.BytesIO()
    wb.save(output)
    output.seek(0)
    return output


class XlsxEvidenceExporter:
    """Export collaborator used by the lifecycle controller at finalize."""

    def export(self, ticket_info, items, author) -> bytes:
        wb = build_workbook(ticket_info, items, author)
        output = io.BytesIO()
        wb.save(output)
        logger.info("Exported %d evidences for ticket %s", len(items), ticket_info.ticket_id)
        return output.getvalue()

"""
Export of reimbursement records for download.

This module writes the record list as a UTF-8 CSV with a byte order mark (so
spreadsheet programs detect the encoding of the Chinese headers), and as an
Excel workbook for admins.
"""

import csv
import io
import logging
from pathlib import Path
from typing import Any, Iterable, Optional

import openpyxl
from openpyxl.styles import Font, PatternFill

from reimburse_assistant.core.models import SubmissionRecord, now_ms

logger = logging.getLogger(__name__)

EXPORT_HEADERS = ["发票号", "金额", "分类", "提交人", "学号", "导师", "状态", "当前进度"]
PAID_LABEL = "已付"
UNPAID_LABEL = "待付"
UTF8_BOM = "\ufeff"


def format_amount(amount: float) -> str:
    """Write whole amounts without a trailing '.0'."""
    if float(amount).is_integer():
        return str(int(amount))
    return repr(float(amount))


def record_row(record: SubmissionRecord) -> list[str]:
    return [
        record.invoice_number,
        format_amount(record.amount),
        record.category,
        record.name,
        record.student_id,
        record.supervisor,
        PAID_LABEL if record.is_paid else UNPAID_LABEL,
        record.status.value,
    ]


def format_csv(records: Iterable[SubmissionRecord]) -> str:
    """Render records as CSV text, header first, in the given order."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(EXPORT_HEADERS)
    for record in records:
        writer.writerow(record_row(record))
    return UTF8_BOM + buffer.getvalue()


def parse_csv(text: str) -> list[dict[str, str]]:
    """Read an export back into one dict per row, keyed by header."""
    if text.startswith(UTF8_BOM):
        text = text[len(UTF8_BOM):]
    return list(csv.DictReader(io.StringIO(text)))


def export_filename(epoch_ms: int) -> str:
    return f"报销清单_{epoch_ms}.csv"


def select_records(records: Iterable[SubmissionRecord], owner_id: Optional[str] = None) -> list[SubmissionRecord]:
    """Records owned by owner_id, or all of them for an admin export."""
    if owner_id is None:
        return list(records)
    return [record for record in records if record.student_id == owner_id]


def export_records(
    records: Iterable[SubmissionRecord],
    output_dir: Path | str,
    owner_id: Optional[str] = None,
    now: Optional[int] = None
) -> Optional[Path]:
    """
    Write the CSV export and return its path.

    Args:
        records: Records in display order
        output_dir: Directory for the export file
        owner_id: Only export this student's records; None exports everything
        now: Epoch milliseconds for the file name (defaults to now)

    Returns:
        Path of the written file, or None when there was nothing to export
    """
    selected = select_records(records, owner_id)
    if not selected:
        logger.info("No records to export")
        return None

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / export_filename(now if now is not None else now_ms())
    output_path.write_text(format_csv(selected), encoding="utf-8")
    logger.info(f"Exported {len(selected)} record(s) to {output_path}")
    return output_path


def create_worksheet(workbook, sheet_name: str, headers: list[str], data_rows: list[list[Any]], header_color: str = "366092"):
    """
    Helper function to create a worksheet with headers and data.

    Args:
        workbook: openpyxl workbook object
        sheet_name: Name of the worksheet
        headers: List of header strings
        data_rows: List of lists, each containing row data
        header_color: Hex color for header background (default: blue)
    """
    ws = workbook.create_sheet(sheet_name)

    for col, header in enumerate(headers, 1):
        cell = ws.cell(row=1, column=col, value=header)
        cell.font = Font(bold=True)
        cell.fill = PatternFill(start_color=header_color, end_color=header_color, fill_type="solid")

    for row_idx, row_data in enumerate(data_rows, 2):
        for col, value in enumerate(row_data, 1):
            ws.cell(row=row_idx, column=col, value=value)

    return ws


def export_records_xlsx(
    records: Iterable[SubmissionRecord],
    output_path: Path | str,
    owner_id: Optional[str] = None
) -> Optional[Path]:
    """Write the same columns as the CSV export into an Excel workbook."""
    selected = select_records(records, owner_id)
    if not selected:
        logger.info("No records to export")
        return None

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    workbook = openpyxl.Workbook()
    workbook.remove(workbook.active)
    data_rows = []
    for record in selected:
        row: list[Any] = record_row(record)
        row[1] = record.amount
        data_rows.append(row)
    create_worksheet(workbook, "报销清单", EXPORT_HEADERS, data_rows)
    workbook.save(output_path)
    logger.info(f"Exported {len(selected)} record(s) to {output_path}")
    return output_path

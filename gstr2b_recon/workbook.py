"""
Excel input and output for the reconciliation.

Reading turns an uploaded .xlsx into raw cell rows for the sheet parser;
writing turns any result category back into a downloadable workbook.
"""

import io
import logging
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any, BinaryIO, Dict, List, Optional, Sequence, Tuple, Union

import openpyxl
import pandas as pd
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from gstr2b_recon.error_handler import MalformedSource, SheetNotFound
from gstr2b_recon.helpers import is_blank
from gstr2b_recon.matching import (STATUS_COLUMN, STATUS_MATCHED, STATUS_ONLY_BOOKS,
                                   STATUS_ONLY_GSTR2B, STATUS_PARTIAL)
from gstr2b_recon.reconciliation import BOOKS_SOURCE, GSTR2B_SOURCE
from gstr2b_recon.reports import ReportType
from gstr2b_recon.settings import ReconciliationSettings, DEFAULT_SETTINGS
from gstr2b_recon.sheet_parser import parse_sheet

logger = logging.getLogger(__name__)

Record = Dict[str, Any]
Source = Union[str, bytes, BinaryIO]

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# (button label, result attribute, download file name)
EXPORT_CATEGORIES: Tuple[Tuple[str, str, str], ...] = (
    ("Final Reconciliation", 'final_report', 'Final_Reconciliation_Report'),
    ("Partially Matched", 'partially_matched_records', 'Partially_Matched_Report'),
    ("Invoices in Book, not in 2B", 'invoices_in_book_not_in_gstr2b', 'Invoices_in_Book_not_in_GSTR2B'),
    ("Invoices in 2B, not in Book", 'invoices_in_gstr2b_not_in_book', 'Invoices_in_GSTR2B_not_in_Book'),
    ("Credit Notes in Book, not in 2B", 'credit_notes_in_book_not_in_gstr2b', 'CN_in_Book_not_in_GSTR2B'),
    ("Credit Notes in 2B, not in Book", 'credit_notes_in_gstr2b_not_in_book', 'CN_in_GSTR2B_not_in_Book'),
)

STATUS_COLORS = {
    STATUS_MATCHED: '43a047',
    STATUS_PARTIAL: 'fbc02d',
    STATUS_ONLY_BOOKS: '1976d2',
    STATUS_ONLY_GSTR2B: 'e53935',
}


def resolve_sheet_name(sheet_names: Sequence[str], hint: Optional[str], source: str) -> str:
    """Pick the sheet to read: first sheet, exact name, then name containing the hint."""
    if not sheet_names:
        raise MalformedSource(
            f"The Excel file '{source}' seems to be empty or corrupted as it contains no sheets.",
            source=source
        )
    if not hint:
        return sheet_names[0]
    if hint in sheet_names:
        return hint
    for name in sheet_names:
        if hint.lower() in name.lower():
            return name
    raise SheetNotFound(
        f"Sheet containing '{hint}' not found in {source}. "
        f"Please check the sheet name or select 'Others'.",
        source=source
    )


def _as_buffer(file: Source) -> Union[str, BinaryIO]:
    if isinstance(file, (bytes, bytearray)):
        return io.BytesIO(file)
    if hasattr(file, 'seek'):
        file.seek(0)
    return file


def read_raw_rows(file: Source, sheet_hint: Optional[str] = None,
                  source: str = 'workbook') -> List[List[Any]]:
    """Read one sheet as rows of cell values; blank cells become None.

    Blank rows are kept so row indexes match the sheet.
    """
    try:
        workbook = openpyxl.load_workbook(_as_buffer(file), data_only=True)
    except Exception as e:
        logger.error(f"Could not open {source}: {e}")
        raise MalformedSource(
            f"Failed to parse {source}. Please ensure it is a valid .xlsx file, "
            f"not password protected, and the format is correct.",
            source=source
        ) from e

    try:
        sheet_name = resolve_sheet_name(workbook.sheetnames, sheet_hint, source)
        worksheet = workbook[sheet_name]
        rows = [[None if is_blank(value) else value for value in row]
                for row in worksheet.iter_rows(min_row=1, max_row=worksheet.max_row,
                                               min_col=1, max_col=worksheet.max_column,
                                               values_only=True)]
    finally:
        workbook.close()

    # An untouched sheet still reports one empty row
    if len(rows) == 1 and all(value is None for value in rows[0]):
        rows = []

    logger.info(f"Read {len(rows)} rows from sheet '{sheet_name}' of {source}")
    return rows


def load_records(file: Source, sheet_hint: Optional[str], source: str,
                 settings: ReconciliationSettings = DEFAULT_SETTINGS) -> List[Record]:
    """Read a sheet and materialize the records under its header row."""
    raw_rows = read_raw_rows(file, sheet_hint, source)
    return parse_sheet(raw_rows, settings.aliases, settings.header_scan_rows, source=source)


def load_sources(books_file: Source, gstr2b_file: Source,
                 report_type: Union[ReportType, str] = ReportType.B2B,
                 settings: Optional[ReconciliationSettings] = None) -> Tuple[List[Record], List[Record]]:
    """
    Parse both uploads concurrently.

    Both loads are allowed to finish; if either failed, its error is raised
    (Books first) and no records are returned.
    """
    settings = settings or DEFAULT_SETTINGS
    report_type = ReportType(report_type)

    with ThreadPoolExecutor(max_workers=2) as executor:
        books_future = executor.submit(load_records, books_file, None, BOOKS_SOURCE, settings)
        gstr2b_future = executor.submit(load_records, gstr2b_file, report_type.sheet_hint,
                                        GSTR2B_SOURCE, settings)
        wait([books_future, gstr2b_future])

    for future in (books_future, gstr2b_future):
        error = future.exception()
        if error is not None:
            raise error

    return books_future.result(), gstr2b_future.result()


def _style_sheet(worksheet) -> None:
    header = [cell.value for cell in worksheet[1]]
    for cell in worksheet[1]:
        cell.font = Font(bold=True)
    for index, name in enumerate(header, start=1):
        width = max(12, min(40, len(str(name or '')) + 2))
        worksheet.column_dimensions[get_column_letter(index)].width = width

    if STATUS_COLUMN not in header:
        return
    status_idx = header.index(STATUS_COLUMN)
    for row in worksheet.iter_rows(min_row=2, max_row=worksheet.max_row):
        color = STATUS_COLORS.get(row[status_idx].value)
        if color:
            row[status_idx].fill = PatternFill(start_color=color, end_color=color, fill_type='solid')


def export_records(records: Sequence[Record], sheet_name: str = 'Reconciliation') -> Optional[bytes]:
    """Workbook bytes for the given records, or None when there is nothing to export."""
    if not records:
        logger.warning("No data to export for this category")
        return None

    df = pd.DataFrame(list(records))
    output = io.BytesIO()
    with pd.ExcelWriter(output, engine='openpyxl') as writer:
        df.to_excel(writer, sheet_name=sheet_name, index=False)
        _style_sheet(writer.sheets[sheet_name])
    logger.info(f"Exported {len(df)} records to sheet '{sheet_name}'")
    return output.getvalue()

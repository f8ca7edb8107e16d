"""
Header row discovery and record materialization for loosely structured sheets.

GST portal downloads and accounting exports often carry title rows, filing
period details or blank lines above the real table. The header row is the first
row (within a small scan window) that names both a GSTIN column and an invoice
number column; everything below it becomes records keyed by those headers.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence
import logging

from gstr2b_recon.error_handler import EmptyDataset, EmptySheet, HeaderNotFound
from gstr2b_recon.helpers import cell_text, is_blank
from gstr2b_recon.settings import ColumnAliases, DEFAULT_SETTINGS

logger = logging.getLogger(__name__)

RawRow = Sequence[Any]
Record = Dict[str, Any]


@dataclass(frozen=True)
class HeaderRow:
    index: int
    headers: List[str]


def _row_matches(cells: List[str], alias_set: Sequence[str]) -> bool:
    wanted = {alias.strip().lower() for alias in alias_set}
    return any(cell.lower() in wanted for cell in cells)


def locate_header_row(raw_rows: Sequence[RawRow], aliases: ColumnAliases,
                      max_rows: int = DEFAULT_SETTINGS.header_scan_rows,
                      source: str = 'sheet') -> HeaderRow:
    """Find the first row within max_rows that contains every required alias set."""
    required = aliases.required_sets()

    for index, row in enumerate(raw_rows[:max_rows]):
        cells = [cell_text(value) for value in (row or [])]
        if not cells:
            continue
        match_count = sum(1 for alias_set in required if _row_matches(cells, alias_set))
        if match_count >= len(required):
            logger.info(f"Header row for {source} found at index {index}")
            return HeaderRow(index=index, headers=cells)

    raise HeaderNotFound(
        f"Could not find a valid header row containing both GSTIN and Invoice Number "
        f"columns in {source}. Please ensure the headers are present in the first "
        f"{max_rows} rows of the sheet.",
        source=source
    )


def materialize_records(raw_rows: Sequence[RawRow], header_row: HeaderRow,
                        source: str = 'sheet') -> List[Record]:
    """Turn the rows below the header into records, dropping blank rows."""
    records = []
    for row in raw_rows[header_row.index + 1:]:
        row = row or []
        record = {}
        for position, header in enumerate(header_row.headers):
            if header and position < len(row):
                record[header] = row[position]
        if any(not is_blank(value) for value in record.values()):
            records.append(record)

    if not records:
        raise EmptyDataset(
            f"Found headers in {source}, but no data rows underneath.",
            source=source
        )

    logger.info(f"Materialized {len(records)} records from {source}")
    return records


def parse_sheet(raw_rows: Sequence[RawRow], aliases: ColumnAliases = DEFAULT_SETTINGS.aliases,
                max_rows: int = DEFAULT_SETTINGS.header_scan_rows,
                source: str = 'sheet') -> List[Record]:
    """Locate the header row and materialize the records beneath it."""
    if not raw_rows:
        raise EmptySheet(f"The sheet in {source} is empty.", source=source)

    header_row = locate_header_row(raw_rows, aliases, max_rows=max_rows, source=source)
    return materialize_records(raw_rows, header_row, source=source)

"""
Multi-line invoice consolidation.
"""

from typing import Any, Dict, List, Optional, Sequence
import logging

from gstr2b_recon.helpers import cell_text, column_amount, is_blank

logger = logging.getLogger(__name__)


def consolidation_key(record: Dict[str, Any], gstin_header: str, bill_no_header: str) -> str:
    """GSTIN and invoice number, trimmed and uppercased. Empty if either is missing."""
    gstin = cell_text(record.get(gstin_header)).upper()
    bill_no = cell_text(record.get(bill_no_header)).upper()
    if not gstin or not bill_no:
        return ''
    return f"{gstin}-{bill_no}"


def consolidate_invoices(records: Sequence[Dict[str, Any]], gstin_header: str, bill_no_header: str,
                         legal_name_header: Optional[str],
                         numeric_headers: Sequence[Optional[str]]) -> List[Dict[str, Any]]:
    """
    Merge line items of the same invoice into one record.

    Records are grouped by GSTIN + invoice number in order of first appearance.
    Amount columns are summed; every other column keeps the value of the first
    line, except a blank legal name which is filled from a later line. Records
    without a GSTIN or an invoice number are dropped.
    """
    valid_numeric_headers = [h for h in dict.fromkeys(numeric_headers) if h]
    consolidated: Dict[str, Dict[str, Any]] = {}
    skipped = 0

    for record in records:
        key = consolidation_key(record, gstin_header, bill_no_header)
        if not key:
            skipped += 1
            continue

        existing = consolidated.get(key)
        if existing is None:
            new_record = dict(record)
            for header in valid_numeric_headers:
                new_record[header] = column_amount(record, header)
            consolidated[key] = new_record
            continue

        for header in valid_numeric_headers:
            existing[header] = existing.get(header, 0.0) + column_amount(record, header)
        if (legal_name_header and is_blank(existing.get(legal_name_header))
                and not is_blank(record.get(legal_name_header))):
            existing[legal_name_header] = record[legal_name_header]

    if skipped:
        logger.warning(f"Skipped {skipped} rows without GSTIN or invoice number")
    logger.info(f"Consolidated {len(records)} rows into {len(consolidated)} invoices")
    return list(consolidated.values())

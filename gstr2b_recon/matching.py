"""
Two-pass invoice matching between consolidated Books and GSTR-2B records.

Pass 1 pairs records whose GSTIN + invoice number keys are identical. Pass 2
takes what is left and pairs a Books record with the first GSTR-2B record of the
same supplier whose legal name agrees and whose taxable value is within the
tolerance band. This catches invoice numbers keyed differently on each side
(e.g. 'INV-001' vs 'INV001').
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple
import logging

from gstr2b_recon.columns import ResolvedColumns
from gstr2b_recon.helpers import (build_match_key, cell_text, clean_gstin, column_amount,
                                  format_difference, is_within_tolerance)
from gstr2b_recon.settings import ReconciliationSettings, DEFAULT_SETTINGS

logger = logging.getLogger(__name__)

Record = Dict[str, Any]

STATUS_COLUMN = 'Recon Status'
STATUS_MATCHED = 'Matched'
STATUS_PARTIAL = 'Partially Matched'
STATUS_ONLY_BOOKS = 'Only in Books'
STATUS_ONLY_GSTR2B = 'Only in GSTR-2B'

# (canonical field, difference column)
DIFF_COLUMNS: Tuple[Tuple[str, str], ...] = (
    ('taxable_value', 'Diff Taxable Value (₹)'),
    ('integrated_tax', 'Diff Integrated Tax(₹)'),
    ('central_tax', 'Diff Central Tax(₹)'),
    ('state_tax', 'Diff State/UT Tax(₹)'),
    ('cess', 'Diff Cess(₹)'),
)


@dataclass
class MatchOutcome:
    matched: List[Record] = field(default_factory=list)
    partially_matched: List[Record] = field(default_factory=list)
    only_in_books: List[Record] = field(default_factory=list)
    only_in_gstr2b: List[Record] = field(default_factory=list)


def prefix_fields(record: Record, prefix: str) -> Record:
    """Namespace GSTR-2B fields so they sit beside the Books fields."""
    return {f"{prefix}{key}": value for key, value in record.items()}


def compute_differences(book_row: Record, gstr_row: Record, books_cols: ResolvedColumns,
                        gstr2b_cols: ResolvedColumns, tolerance: float) -> Dict[str, str]:
    """Books minus GSTR-2B for the five amount columns."""
    differences = {}
    for field_name, diff_column in DIFF_COLUMNS:
        book_value = column_amount(book_row, getattr(books_cols, field_name))
        gstr_value = column_amount(gstr_row, getattr(gstr2b_cols, field_name))
        differences[diff_column] = format_difference(book_value - gstr_value, tolerance)
    return differences


def match_exact(books: Sequence[Record], gstr2b: Sequence[Record], books_cols: ResolvedColumns,
                gstr2b_cols: ResolvedColumns,
                settings: ReconciliationSettings = DEFAULT_SETTINGS) -> Tuple[List[Record], List[Record], List[Record]]:
    """
    Pair records with identical match keys.

    Returns (matched, unmatched_books, remaining_gstr2b). Each GSTR-2B record is
    consumed at most once; the remaining ones keep their original order.
    """
    gstr2b_map: Dict[str, Record] = {}
    for row in gstr2b:
        key = build_match_key(row.get(gstr2b_cols.gstin), row.get(gstr2b_cols.bill_no))
        if key:
            gstr2b_map[key] = row

    matched = []
    unmatched_books = []
    for book_row in books:
        key = build_match_key(book_row.get(books_cols.gstin), book_row.get(books_cols.bill_no))
        gstr_row = gstr2b_map.pop(key, None) if key else None
        if gstr_row is None:
            unmatched_books.append(book_row)
            continue

        output = dict(book_row)
        output[STATUS_COLUMN] = STATUS_MATCHED
        output.update(compute_differences(book_row, gstr_row, books_cols, gstr2b_cols,
                                          settings.amount_tolerance))
        output.update(prefix_fields(gstr_row, settings.gstr2b_prefix))
        matched.append(output)

    logger.info(f"Exact pass: {len(matched)} matched, {len(unmatched_books)} Books records left")
    return matched, unmatched_books, list(gstr2b_map.values())


def _legal_name(row: Record, header: Optional[str]) -> Optional[str]:
    if not header:
        return None
    return cell_text(row.get(header)).lower()


def _find_candidate(book_row: Record, pool: List[Record], books_cols: ResolvedColumns,
                    gstr2b_cols: ResolvedColumns, tolerance: float) -> int:
    """Index of the first pool record that qualifies, -1 if none does."""
    book_gstin = clean_gstin(book_row.get(books_cols.gstin))
    book_name = _legal_name(book_row, books_cols.legal_name)
    book_taxable = column_amount(book_row, books_cols.taxable_value)

    for index, gstr_row in enumerate(pool):
        if clean_gstin(gstr_row.get(gstr2b_cols.gstin)) != book_gstin:
            continue
        gstr_name = _legal_name(gstr_row, gstr2b_cols.legal_name)
        if book_name is not None and gstr_name is not None and book_name != gstr_name:
            continue
        if is_within_tolerance(book_taxable, column_amount(gstr_row, gstr2b_cols.taxable_value),
                               tolerance):
            return index
    return -1


def match_tolerant(unmatched_books: Sequence[Record], remaining_gstr2b: Sequence[Record],
                   books_cols: ResolvedColumns, gstr2b_cols: ResolvedColumns,
                   settings: ReconciliationSettings = DEFAULT_SETTINGS) -> Tuple[List[Record], List[Record], List[Record]]:
    """
    First-fit pass over the GSTR-2B records the exact pass left behind.

    Returns (partially_matched, only_in_books, only_in_gstr2b).
    """
    pool = list(remaining_gstr2b)
    partially_matched = []
    only_in_books = []

    for book_row in unmatched_books:
        index = _find_candidate(book_row, pool, books_cols, gstr2b_cols, settings.amount_tolerance)
        if index == -1:
            output = dict(book_row)
            output[STATUS_COLUMN] = STATUS_ONLY_BOOKS
            only_in_books.append(output)
            continue

        gstr_row = pool.pop(index)
        output = dict(book_row)
        output.update(prefix_fields(gstr_row, settings.gstr2b_prefix))
        output[STATUS_COLUMN] = STATUS_PARTIAL
        partially_matched.append(output)

    only_in_gstr2b = []
    for gstr_row in pool:
        output = dict(gstr_row)
        output[STATUS_COLUMN] = STATUS_ONLY_GSTR2B
        only_in_gstr2b.append(output)

    logger.info(f"Tolerant pass: {len(partially_matched)} partially matched, "
                f"{len(only_in_books)} only in Books, {len(only_in_gstr2b)} only in GSTR-2B")
    return partially_matched, only_in_books, only_in_gstr2b


def match_records(books: Sequence[Record], gstr2b: Sequence[Record], books_cols: ResolvedColumns,
                  gstr2b_cols: ResolvedColumns,
                  settings: ReconciliationSettings = DEFAULT_SETTINGS) -> MatchOutcome:
    """Run both passes over consolidated records."""
    matched, unmatched_books, remaining = match_exact(books, gstr2b, books_cols, gstr2b_cols, settings)
    partial, only_books, only_gstr2b = match_tolerant(unmatched_books, remaining, books_cols,
                                                      gstr2b_cols, settings)
    return MatchOutcome(matched=matched, partially_matched=partial,
                        only_in_books=only_books, only_in_gstr2b=only_gstr2b)

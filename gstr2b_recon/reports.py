"""
Report assembly: summary counts, invoice / credit note buckets and the final
combined report.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple
import logging

import pandas as pd

from gstr2b_recon.helpers import column_amount
from gstr2b_recon.matching import DIFF_COLUMNS, MatchOutcome

logger = logging.getLogger(__name__)

Record = Dict[str, Any]

# Only the taxable value difference is kept in the combined report.
FINAL_REPORT_DROPPED_COLUMNS = tuple(column for _, column in DIFF_COLUMNS[1:])


class ReportType(str, Enum):
    """Which GSTR-2B table was uploaded."""
    B2B = 'B2B'
    CDNR = 'CDNR'
    OTHER = 'Other'

    @property
    def sheet_hint(self) -> Optional[str]:
        """Sheet to look for in the workbook; None means the first sheet."""
        if self is ReportType.OTHER:
            return None
        return self.value

    @property
    def label(self) -> str:
        return {
            ReportType.B2B: 'B2B Invoices',
            ReportType.CDNR: 'Credit/Debit Notes (CDNR)',
            ReportType.OTHER: 'Others (use first sheet)',
        }[self]


@dataclass(frozen=True)
class Summary:
    total_in_books: int
    total_in_gstr2b: int
    matched: int
    partially_matched: int
    only_in_books: int
    only_in_gstr2b: int

    def to_frame(self) -> pd.DataFrame:
        """Summary as a two-column table for display and export."""
        return pd.DataFrame([
            {'Metric': 'In Books', 'Count': self.total_in_books},
            {'Metric': 'In GSTR-2B', 'Count': self.total_in_gstr2b},
            {'Metric': 'Matched', 'Count': self.matched},
            {'Metric': 'Partially Matched', 'Count': self.partially_matched},
            {'Metric': 'Only in Books', 'Count': self.only_in_books},
            {'Metric': 'Only in GSTR-2B', 'Count': self.only_in_gstr2b},
        ])


@dataclass(frozen=True)
class ReconciliationResult:
    summary: Summary
    matched_records: Tuple[Record, ...]
    partially_matched_records: Tuple[Record, ...]
    invoices_in_book_not_in_gstr2b: Tuple[Record, ...]
    credit_notes_in_book_not_in_gstr2b: Tuple[Record, ...]
    invoices_in_gstr2b_not_in_book: Tuple[Record, ...]
    credit_notes_in_gstr2b_not_in_book: Tuple[Record, ...]
    final_report: Tuple[Record, ...]

    def category(self, name: str) -> Tuple[Record, ...]:
        """Record sequence by attribute name, e.g. 'final_report'."""
        records = getattr(self, name, None)
        if not isinstance(records, tuple):
            raise KeyError(f"Unknown result category: {name}")
        return records

    def to_frame(self, name: str) -> pd.DataFrame:
        return pd.DataFrame(list(self.category(name)))


def split_by_sign(records: Sequence[Record], taxable_header: Optional[str]) -> Tuple[List[Record], List[Record]]:
    """(invoices, credit notes): taxable value >= 0 vs < 0."""
    invoices = [r for r in records if column_amount(r, taxable_header) >= 0]
    credit_notes = [r for r in records if column_amount(r, taxable_header) < 0]
    return invoices, credit_notes


def split_gstr2b_residual(records: Sequence[Record], taxable_header: Optional[str],
                          report_type: ReportType) -> Tuple[List[Record], List[Record]]:
    """B2B and CDNR sheets are homogeneous; only 'Other' is split by sign."""
    if report_type is ReportType.B2B:
        return list(records), []
    if report_type is ReportType.CDNR:
        return [], list(records)
    return split_by_sign(records, taxable_header)


def build_final_report(outcome: MatchOutcome) -> List[Record]:
    final_report = []
    for record in (outcome.matched + outcome.partially_matched
                   + outcome.only_in_books + outcome.only_in_gstr2b):
        final_report.append({k: v for k, v in record.items()
                             if k not in FINAL_REPORT_DROPPED_COLUMNS})
    return final_report


def assemble_report(outcome: MatchOutcome, total_in_books: int, total_in_gstr2b: int,
                    books_taxable_header: Optional[str], gstr2b_taxable_header: Optional[str],
                    report_type: ReportType) -> ReconciliationResult:
    """
    Build the result object from the matcher output.

    total_in_books / total_in_gstr2b are the row counts before consolidation,
    so they can exceed the sum of the status buckets when rows were merged or
    dropped for a missing GSTIN or invoice number.
    """
    books_invoices, books_credit_notes = split_by_sign(outcome.only_in_books, books_taxable_header)
    gstr_invoices, gstr_credit_notes = split_gstr2b_residual(
        outcome.only_in_gstr2b, gstr2b_taxable_header, report_type)

    summary = Summary(
        total_in_books=total_in_books,
        total_in_gstr2b=total_in_gstr2b,
        matched=len(outcome.matched),
        partially_matched=len(outcome.partially_matched),
        only_in_books=len(outcome.only_in_books),
        only_in_gstr2b=len(outcome.only_in_gstr2b),
    )
    logger.info(f"Reconciliation summary: {summary}")

    return ReconciliationResult(
        summary=summary,
        matched_records=tuple(outcome.matched),
        partially_matched_records=tuple(outcome.partially_matched),
        invoices_in_book_not_in_gstr2b=tuple(books_invoices),
        credit_notes_in_book_not_in_gstr2b=tuple(books_credit_notes),
        invoices_in_gstr2b_not_in_book=tuple(gstr_invoices),
        credit_notes_in_gstr2b_not_in_book=tuple(gstr_credit_notes),
        final_report=tuple(build_final_report(outcome)),
    )

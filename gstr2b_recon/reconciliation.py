from typing import Any, Dict, List, Optional, Sequence, Union
import logging

from gstr2b_recon.columns import ResolvedColumns, resolve_columns
from gstr2b_recon.consolidation import consolidate_invoices
from gstr2b_recon.error_handler import EmptyDataset
from gstr2b_recon.matching import match_records
from gstr2b_recon.reports import ReconciliationResult, ReportType, assemble_report
from gstr2b_recon.settings import ReconciliationSettings, DEFAULT_SETTINGS
from gstr2b_recon.sheet_parser import parse_sheet

logger = logging.getLogger(__name__)

Record = Dict[str, Any]

BOOKS_SOURCE = 'Purchase Report'
GSTR2B_SOURCE = 'GSTR-2B Report'


class GSTReconciliation:
    """
    Reconciles Books records against GSTR-2B records.

    The whole run happens in the constructor; the outcome is available as
    `result`. Nothing is kept between instances.
    """

    def __init__(self, books_records: Sequence[Record], gstr2b_records: Sequence[Record],
                 report_type: Union[ReportType, str] = ReportType.B2B,
                 settings: Optional[ReconciliationSettings] = None):
        self.settings = settings or DEFAULT_SETTINGS
        self.report_type = ReportType(report_type)

        if not books_records:
            raise EmptyDataset(f"No data rows found in the {BOOKS_SOURCE}.", source=BOOKS_SOURCE)
        if not gstr2b_records:
            raise EmptyDataset(f"No data rows found in the {GSTR2B_SOURCE}.", source=GSTR2B_SOURCE)

        logger.info(f"Original Books count: {len(books_records)}")
        logger.info(f"Original GSTR-2B count: {len(gstr2b_records)}")

        self.books_columns = self._resolve(books_records, BOOKS_SOURCE)
        self.gstr2b_columns = self._resolve(gstr2b_records, GSTR2B_SOURCE)

        self.books = self._consolidate(books_records, self.books_columns)
        self.gstr2b = self._consolidate(gstr2b_records, self.gstr2b_columns)

        outcome = match_records(self.books, self.gstr2b, self.books_columns,
                                self.gstr2b_columns, self.settings)

        self.result = assemble_report(
            outcome,
            total_in_books=len(books_records),
            total_in_gstr2b=len(gstr2b_records),
            books_taxable_header=self.books_columns.taxable_value,
            gstr2b_taxable_header=self.gstr2b_columns.taxable_value,
            report_type=self.report_type,
        )

    def _resolve(self, records: Sequence[Record], source: str) -> ResolvedColumns:
        # The first record defines the header set
        headers = list(records[0].keys())
        columns = resolve_columns(headers, self.settings.aliases)
        columns.require_keys(source)
        return columns

    def _consolidate(self, records: Sequence[Record], columns: ResolvedColumns) -> List[Record]:
        return consolidate_invoices(records, columns.gstin, columns.bill_no,
                                    columns.legal_name, columns.numeric_headers)

    def get_results(self) -> ReconciliationResult:
        return self.result


def reconcile_records(books_records: Sequence[Record], gstr2b_records: Sequence[Record],
                      report_type: Union[ReportType, str] = ReportType.B2B,
                      settings: Optional[ReconciliationSettings] = None) -> ReconciliationResult:
    """Reconcile two materialized record sets."""
    return GSTReconciliation(books_records, gstr2b_records, report_type, settings).get_results()


def reconcile(books_rows: Sequence[Sequence[Any]], gstr2b_rows: Sequence[Sequence[Any]],
              report_type: Union[ReportType, str] = ReportType.B2B,
              settings: Optional[ReconciliationSettings] = None) -> ReconciliationResult:
    """Reconcile two raw sheets (lists of cell rows, header row somewhere near the top)."""
    settings = settings or DEFAULT_SETTINGS
    books_records = parse_sheet(books_rows, settings.aliases, settings.header_scan_rows,
                                source=BOOKS_SOURCE)
    gstr2b_records = parse_sheet(gstr2b_rows, settings.aliases, settings.header_scan_rows,
                                 source=GSTR2B_SOURCE)
    return reconcile_records(books_records, gstr2b_records, report_type, settings)

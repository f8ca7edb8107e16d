"""
Reconciliation errors and user feedback
"""

import traceback
import logging
from typing import Dict, List, Any, Optional
from datetime import datetime

logger = logging.getLogger(__name__)


class ReconciliationError(Exception):
    """Base class for errors that abort a reconciliation run."""

    error_type = 'RECONCILIATION_ERROR'

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.source = source


class EmptySheet(ReconciliationError):
    """The selected sheet has no rows at all."""
    error_type = 'EMPTY_SHEET'


class HeaderNotFound(ReconciliationError):
    """No row in the scan window carries both GSTIN and invoice headers."""
    error_type = 'HEADER_NOT_FOUND'


class EmptyDataset(ReconciliationError):
    """Header row found but nothing below it."""
    error_type = 'EMPTY_DATASET'


class MissingRequiredColumn(ReconciliationError):
    """GSTIN or invoice number column could not be resolved."""
    error_type = 'MISSING_REQUIRED_COLUMN'


class MalformedSource(ReconciliationError):
    """The upload could not be read as a workbook."""
    error_type = 'MALFORMED_SOURCE'


class SheetNotFound(MalformedSource):
    error_type = 'SHEET_NOT_FOUND'


SUGGESTIONS = {
    'EMPTY_SHEET': [
        "Check that the selected sheet contains data",
        "Select 'Others' to use the first sheet of the workbook",
    ],
    'HEADER_NOT_FOUND': [
        "Make sure the header row is within the first 15 rows of the sheet",
        "Ensure the headers include a GSTIN column and an Invoice Number column",
        "Remove merged title cells that hide the header row",
    ],
    'EMPTY_DATASET': [
        "Check that invoice rows are present below the header row",
        "Ensure the data is not in hidden rows",
    ],
    'MISSING_REQUIRED_COLUMN': [
        "Rename the GSTIN and Invoice Number columns to a supported header",
        "Add your column names to the aliases in reconciliation_settings.json",
    ],
    'MALFORMED_SOURCE': [
        "Ensure the file is a valid .xlsx workbook",
        "Check that the file is not password protected",
        "Try opening the file in Excel and saving it again",
    ],
    'SHEET_NOT_FOUND': [
        "Check the sheet name in the GSTR-2B workbook",
        "Select 'Others' to use the first sheet of the workbook",
    ],
}


class ErrorHandler:
    """Turns reconciliation failures into logged, user-facing entries."""

    def __init__(self):
        self.error_log = []
        self.warning_log = []
        self.session_id = datetime.now().strftime("%Y%m%d_%H%M%S")

    def log_error(self, error_type: str, message: str, details: Optional[Dict] = None,
                  source: Optional[str] = None, recoverable: bool = False) -> Dict[str, Any]:
        """Log an error with detailed context."""
        error_entry = {
            'timestamp': datetime.now().isoformat(),
            'session_id': self.session_id,
            'type': 'ERROR',
            'error_type': error_type,
            'message': message,
            'details': details or {},
            'source': source,
            'recoverable': recoverable,
            'suggestions': SUGGESTIONS.get(error_type, []),
            'traceback': traceback.format_exc() if logger.isEnabledFor(logging.DEBUG) else None
        }

        self.error_log.append(error_entry)
        logger.error(f"[{error_type}] {message}")

        return error_entry

    def log_warning(self, warning_type: str, message: str,
                    details: Optional[Dict] = None) -> Dict[str, Any]:
        warning_entry = {
            'timestamp': datetime.now().isoformat(),
            'session_id': self.session_id,
            'type': 'WARNING',
            'warning_type': warning_type,
            'message': message,
            'details': details or {},
        }

        self.warning_log.append(warning_entry)
        logger.warning(f"[{warning_type}] {message}")

        return warning_entry

    def handle_error(self, error: Exception) -> Dict[str, Any]:
        """Log any exception raised by a reconciliation run.

        Reconciliation errors keep their own code and message. Anything else is
        reported as an unexpected failure.
        """
        if isinstance(error, ReconciliationError):
            return self.log_error(
                error.error_type,
                error.message,
                {'error_class': type(error).__name__},
                source=error.source,
                recoverable=True
            )

        return self.log_error(
            'UNKNOWN_ERROR',
            f"An unknown error occurred during reconciliation: {error}",
            {'error_class': type(error).__name__},
            recoverable=False
        )

    def get_error_suggestions(self, error_entry: Dict[str, Any]) -> List[str]:
        """Get recovery suggestions for an error."""
        return list(SUGGESTIONS.get(error_entry.get('error_type'), []))

    def get_session_summary(self) -> Dict[str, Any]:
        return {
            'session_id': self.session_id,
            'total_errors': len(self.error_log),
            'total_warnings': len(self.warning_log),
            'recoverable_errors': len([e for e in self.error_log if e.get('recoverable', False)]),
            'critical_errors': len([e for e in self.error_log if not e.get('recoverable', False)]),
            'sources_failed': sorted({e['source'] for e in self.error_log if e.get('source')}),
        }

    def clear_logs(self):
        """Clear all logged messages."""
        self.error_log.clear()
        self.warning_log.clear()
        self.session_id = datetime.now().strftime("%Y%m%d_%H%M%S")

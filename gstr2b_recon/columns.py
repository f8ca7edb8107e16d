"""
Column alias resolution.

Maps the literal headers of a sheet to the canonical reconciliation fields.
"""

from dataclasses import dataclass, fields
from typing import Iterable, List, Optional, Sequence
import logging

from gstr2b_recon.error_handler import MissingRequiredColumn
from gstr2b_recon.settings import ColumnAliases

logger = logging.getLogger(__name__)


def find_header(headers: Sequence[str], aliases: Iterable[str]) -> Optional[str]:
    """Return the first header matching an alias, trying aliases in priority order.

    Matching is exact after trimming and lowercasing both sides; substrings do
    not count.
    """
    for alias in aliases:
        wanted = alias.strip().lower()
        for header in headers:
            if str(header).strip().lower() == wanted:
                return header
    return None


@dataclass(frozen=True)
class ResolvedColumns:
    """Literal header per canonical field, None where unresolved."""
    gstin: Optional[str] = None
    bill_no: Optional[str] = None
    legal_name: Optional[str] = None
    taxable_value: Optional[str] = None
    integrated_tax: Optional[str] = None
    central_tax: Optional[str] = None
    state_tax: Optional[str] = None
    cess: Optional[str] = None

    @property
    def numeric_headers(self) -> List[Optional[str]]:
        """Amount columns in report order, including unresolved ones."""
        return [self.taxable_value, self.integrated_tax, self.central_tax,
                self.state_tax, self.cess]

    def require_keys(self, source: str) -> None:
        if not self.gstin or not self.bill_no:
            raise MissingRequiredColumn(
                f"Could not find required columns (GSTIN, Invoice Number) in the {source}.",
                source=source
            )


def resolve_columns(headers: Sequence[str], aliases: ColumnAliases) -> ResolvedColumns:
    """Resolve every canonical field against the given headers."""
    resolved = ResolvedColumns(**{
        f.name: find_header(headers, getattr(aliases, f.name))
        for f in fields(ResolvedColumns)
    })
    missing = [f.name for f in fields(ResolvedColumns) if getattr(resolved, f.name) is None]
    if missing:
        logger.info(f"Unresolved columns: {', '.join(missing)}")
    return resolved

"""
Configuration for the Books vs GSTR-2B reconciliation.

Column aliases and matching parameters live in immutable dataclasses so they can
be passed explicitly into the parser and matcher. Overrides can be stored in
reconciliation_settings.json next to the app.
"""

import json
import os
from dataclasses import dataclass, field, asdict, replace
from typing import Dict, Any, List, Tuple
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ColumnAliases:
    """Header aliases per canonical field, highest priority first."""
    gstin: Tuple[str, ...] = (
        'GSTIN', 'GSTIN/UIN of Recipient', 'GSTIN of Supplier', 'Supplier GSTIN',
    )
    bill_no: Tuple[str, ...] = (
        'Invoice Number', 'Bill No', 'Bill Number', 'Document Number', 'Invoice No.', 'Inv No',
    )
    legal_name: Tuple[str, ...] = (
        'Supplier Name', 'Party Name', 'Supplier Legal Name', 'Trade/Legal name of the supplier',
    )
    taxable_value: Tuple[str, ...] = (
        'Taxable Value (₹)', 'Taxable Value', 'Taxable Amt', 'Taxable Amount',
    )
    integrated_tax: Tuple[str, ...] = (
        'Integrated Tax(₹)', 'Integrated Tax', 'IGST', 'IGST Amt',
    )
    central_tax: Tuple[str, ...] = (
        'Central Tax(₹)', 'Central Tax', 'CGST', 'CGST Amt',
    )
    state_tax: Tuple[str, ...] = (
        'State/UT Tax(₹)', 'State/UT Tax', 'State Tax', 'SGST', 'SGST Amt',
    )
    cess: Tuple[str, ...] = (
        'Cess(₹)', 'Cess', 'Cess Amt',
    )

    @classmethod
    def from_dict(cls, data: Dict[str, List[str]]) -> 'ColumnAliases':
        """Build aliases from a JSON-style dict; unknown keys are ignored."""
        known = {name: tuple(str(a) for a in values)
                 for name, values in data.items()
                 if name in cls.__dataclass_fields__ and values}
        return cls(**known)

    def required_sets(self) -> Tuple[Tuple[str, ...], ...]:
        """Alias sets that must all appear in a header row."""
        return (self.gstin, self.bill_no)


@dataclass(frozen=True)
class ReconciliationSettings:
    """Parameters for a single reconciliation run."""
    header_scan_rows: int = 15
    amount_tolerance: float = 2.0
    gstr2b_prefix: str = 'GSTR2B_'
    aliases: ColumnAliases = field(default_factory=ColumnAliases)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['aliases'] = {k: list(v) for k, v in data['aliases'].items()}
        return data


DEFAULT_SETTINGS = ReconciliationSettings()


class SettingsManager:
    """Loads and saves reconciliation settings from a JSON file."""

    def __init__(self, settings_file: str = "reconciliation_settings.json"):
        self.settings_file = settings_file
        self.settings = self.load_settings()

    def load_settings(self) -> ReconciliationSettings:
        """Load settings from file or return defaults."""
        if not os.path.exists(self.settings_file):
            logger.info("No settings file found, using defaults")
            return DEFAULT_SETTINGS
        try:
            with open(self.settings_file, 'r', encoding='utf-8') as f:
                loaded = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Error loading settings: {e}")
            return DEFAULT_SETTINGS

        is_valid, message = self.validate_settings(loaded)
        if not is_valid:
            logger.error(f"Ignoring invalid settings file: {message}")
            return DEFAULT_SETTINGS

        settings = self._dict_to_settings(loaded)
        logger.info("Settings loaded successfully")
        return settings

    def save_settings(self, settings: ReconciliationSettings) -> bool:
        """Save settings to file."""
        try:
            with open(self.settings_file, 'w', encoding='utf-8') as f:
                json.dump(settings.to_dict(), f, indent=2, ensure_ascii=False)
        except OSError as e:
            logger.error(f"Error saving settings: {e}")
            return False
        self.settings = settings
        logger.info("Settings saved successfully")
        return True

    def validate_settings(self, settings: Dict[str, Any]) -> Tuple[bool, str]:
        """Validate settings and return (is_valid, error_message)."""
        if not isinstance(settings, dict):
            return False, "Settings must be a JSON object"

        if 'header_scan_rows' in settings:
            rows = settings['header_scan_rows']
            if not isinstance(rows, int) or isinstance(rows, bool) or rows < 1:
                return False, "Header Scan Rows must be a positive integer"

        if 'amount_tolerance' in settings:
            tolerance = settings['amount_tolerance']
            if not isinstance(tolerance, (int, float)) or isinstance(tolerance, bool):
                return False, "Amount Tolerance must be a number"
            if tolerance < 0:
                return False, "Amount Tolerance must be non-negative"

        if 'gstr2b_prefix' in settings:
            prefix = settings['gstr2b_prefix']
            if not isinstance(prefix, str) or not prefix:
                return False, "GSTR-2B column prefix must be a non-empty string"

        aliases = settings.get('aliases', {})
        if not isinstance(aliases, dict):
            return False, "Aliases must be a mapping of field name to list of headers"
        for name, values in aliases.items():
            if name not in ColumnAliases.__dataclass_fields__:
                return False, f"Unknown alias field: {name}"
            if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
                return False, f"Aliases for {name} must be a list of strings"

        return True, ""

    def _dict_to_settings(self, data: Dict[str, Any]) -> ReconciliationSettings:
        overrides = {k: data[k] for k in ('header_scan_rows', 'amount_tolerance', 'gstr2b_prefix')
                     if k in data}
        if data.get('aliases'):
            overrides['aliases'] = ColumnAliases.from_dict(data['aliases'])
        return replace(DEFAULT_SETTINGS, **overrides)

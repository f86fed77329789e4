"""
Transform Layer - Deterministic record normalization.

This module implements:
1. Integer coercion for customer id and age (0 = unknown sentinel)
2. Monetary coercion that strips currency symbols and separators
3. Calendar date parsing for transaction and account-opening dates
4. Gender normalization and text-field defaulting

A malformed field never fails the batch. Each coercer returns a
Parsed/Defaulted outcome and every Defaulted outcome leaves a diagnostic.
"""
import logging
import re
from datetime import date
from typing import Dict, List, Any, Optional, Sequence

import pandas as pd

from .models import CleanedTransaction, Defaulted, FieldDiagnostic, Gender, ParseOutcome, Parsed
from .schema import (
    COL_CUSTOMER_ID, COL_TRANSACTION_DATE, COL_TRANSACTION_TYPE, COL_TRANSACTION_AMOUNT,
    COL_ACCOUNT_BALANCE, COL_AGE, COL_GENDER, COL_ACCOUNT_TYPE, COL_BRANCH_ID,
    COL_ACCOUNT_OPENING_DATE, COL_BALANCE_AFTER, RawRecord,
)

UNKNOWN = "Unknown"

GENDER_ALIASES = {
    "m": Gender.MALE,
    "male": Gender.MALE,
    "f": Gender.FEMALE,
    "female": Gender.FEMALE,
}


class RecordNormalizer:
    """
    Converts raw string-keyed rows into CleanedTransaction records.
    One output per input row, order preserved.
    """

    def __init__(self):
        self.int_pattern = re.compile(r'^\s*([+-]?\d+)')
        self.non_numeric_pattern = re.compile(r'[^0-9.\-]+')
        self.diagnostics: List[FieldDiagnostic] = []

    def normalize(self, rows: Sequence[RawRecord]) -> List[CleanedTransaction]:
        """
        Main entry point: raw rows -> cleaned transactions.

        Args:
            rows: Header-mapped raw rows from the extract layer

        Returns:
            List of CleanedTransaction, same length and order as rows
        """
        self.diagnostics = []
        return [self._normalize_row(row_num, row) for row_num, row in enumerate(rows, 1)]

    def get_diagnostics(self) -> List[FieldDiagnostic]:
        return self.diagnostics.copy()

    # ─────────────────────────────────────────────────────────────
    # Row Mapping
    # ─────────────────────────────────────────────────────────────

    def _normalize_row(self, row_num: int, row: Dict[str, Any]) -> CleanedTransaction:
        def take(column: str, outcome: ParseOutcome) -> Any:
            if isinstance(outcome, Defaulted):
                self._add_diagnostic(row_num, column, outcome)
            return outcome.value

        return CleanedTransaction(
            customer_id=take(COL_CUSTOMER_ID, parse_customer_id(row.get(COL_CUSTOMER_ID), self.int_pattern)),
            transaction_date=take(COL_TRANSACTION_DATE, parse_date(row.get(COL_TRANSACTION_DATE))),
            transaction_type=take(COL_TRANSACTION_TYPE, parse_text(row.get(COL_TRANSACTION_TYPE))),
            transaction_amount=take(COL_TRANSACTION_AMOUNT, parse_amount(row.get(COL_TRANSACTION_AMOUNT), self.non_numeric_pattern)),
            account_balance=take(COL_ACCOUNT_BALANCE, parse_amount(row.get(COL_ACCOUNT_BALANCE), self.non_numeric_pattern)),
            customer_age=take(COL_AGE, parse_int(row.get(COL_AGE), self.int_pattern)),
            customer_gender=normalize_gender(row.get(COL_GENDER)),
            account_type=take(COL_ACCOUNT_TYPE, parse_text(row.get(COL_ACCOUNT_TYPE))),
            branch_code=take(COL_BRANCH_ID, parse_text(row.get(COL_BRANCH_ID))),
            account_opening_date=take(COL_ACCOUNT_OPENING_DATE, parse_date(row.get(COL_ACCOUNT_OPENING_DATE))),
            balance_after_transaction=take(COL_BALANCE_AFTER, parse_amount(row.get(COL_BALANCE_AFTER), self.non_numeric_pattern)),
        )

    def _add_diagnostic(self, row_num: int, column: str, outcome: Defaulted) -> None:
        logging.warning(f"[Record Normalizer] Row {row_num}: {outcome.reason}")
        self.diagnostics.append(FieldDiagnostic(
            row=row_num,
            field=column,
            raw_value=outcome.original_text,
            default=outcome.value,
            reason=outcome.reason,
        ))


# ─────────────────────────────────────────────────────────────
# Field Coercers
# ─────────────────────────────────────────────────────────────

def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def parse_int(value: Any, pattern: Optional[re.Pattern] = None, label: str = "Age") -> ParseOutcome:
    """Leading-integer parse: "42", " 42 " and "42.0" all give 42."""
    text = _as_text(value)
    match = (pattern or re.compile(r'^\s*([+-]?\d+)')).match(text or "")
    if not match:
        return Defaulted(0, text, f'Invalid {label} found: "{text}". Defaulting to 0.')
    return Parsed(int(match.group(1)))


def parse_customer_id(value: Any, pattern: Optional[re.Pattern] = None) -> ParseOutcome:
    outcome = parse_int(value, pattern, label="Customer ID")
    if isinstance(outcome, Parsed) and outcome.value < 0:
        text = _as_text(value)
        return Defaulted(0, text, f'Invalid Customer ID found: "{text}". Defaulting to 0.')
    return outcome


LEADING_NUMBER = re.compile(r'^-?(?:\d+(?:\.\d*)?|\.\d+)')


def parse_amount(value: Any, pattern: Optional[re.Pattern] = None) -> ParseOutcome:
    """
    Strip everything but digits, '.' and '-', then read the leading number.
    "KES 1,200.50" gives 1200.5, "12.50-" gives 12.5 and "1.2.3" gives 1.2.
    """
    text = _as_text(value)
    if not text:
        return Defaulted(0.0, text, f'Invalid amount found: "{text}". Defaulting to 0.')

    cleaned = (pattern or re.compile(r'[^0-9.\-]+')).sub('', text)
    if cleaned == "":
        return Defaulted(0.0, text, f'Invalid amount found: "{text}". Defaulting to 0.')

    match = LEADING_NUMBER.match(cleaned)
    if not match:
        return Defaulted(0.0, text, f'Could not parse amount from: "{text}". Defaulting to 0.')
    return Parsed(float(match.group(0)))


def parse_date(value: Any) -> ParseOutcome:
    """Empty input is simply "no date"; only unparseable text is reported."""
    text = _as_text(value)
    if text is None or not text.strip():
        return Parsed(None)

    parsed = pd.to_datetime(text.strip(), errors="coerce")
    if pd.isna(parsed):
        return Defaulted(None, text, f'Could not parse date from: "{text}". Treating as missing.')
    return Parsed(date(parsed.year, parsed.month, parsed.day))


def parse_text(value: Any) -> ParseOutcome:
    """Passes text through verbatim; only a missing or empty value is defaulted."""
    text = _as_text(value)
    if not text:
        return Defaulted(UNKNOWN, text, f'Empty value found. Defaulting to "{UNKNOWN}".')
    return Parsed(text)


def normalize_gender(value: Any) -> Gender:
    text = _as_text(value)
    if not text:
        return Gender.OTHER
    return GENDER_ALIASES.get(text.strip().lower(), Gender.OTHER)

"""Unit tests for record normalization."""
from datetime import date

import pytest

from backend.analytics.models import Defaulted, Gender, Parsed
from backend.analytics.schema import (
    COL_AGE, COL_BRANCH_ID, COL_CUSTOMER_ID, COL_GENDER, COL_TRANSACTION_AMOUNT,
    COL_TRANSACTION_DATE, COL_TRANSACTION_TYPE,
)
from backend.analytics.transform import (
    RecordNormalizer, normalize_gender, parse_amount, parse_date, parse_int, parse_text,
)


def test_normalize_maps_every_field(raw_row):
    tx = RecordNormalizer().normalize([raw_row()])[0]

    assert tx.customer_id == 1
    assert tx.transaction_date == date(2023, 1, 1)
    assert tx.transaction_type == "Deposit"
    assert tx.transaction_amount == 500.0
    assert tx.account_balance == 1000.0
    assert tx.customer_age == 30
    assert tx.customer_gender is Gender.MALE
    assert tx.account_type == "Savings"
    assert tx.branch_code == "B1"
    assert tx.account_opening_date == date(2020, 1, 1)
    assert tx.balance_after_transaction == 1500.0


def test_normalize_preserves_length_and_order(raw_row):
    rows = [raw_row(**{COL_CUSTOMER_ID: str(i)}) for i in (7, 3, 9)]

    cleaned = RecordNormalizer().normalize(rows)

    assert [tx.customer_id for tx in cleaned] == [7, 3, 9]


def test_invalid_customer_id_defaults_to_zero_with_diagnostic(raw_row):
    normalizer = RecordNormalizer()

    tx = normalizer.normalize([raw_row(**{COL_CUSTOMER_ID: "abc"})])[0]

    assert tx.customer_id == 0
    diagnostics = normalizer.get_diagnostics()
    assert len(diagnostics) == 1
    assert diagnostics[0].field == COL_CUSTOMER_ID
    assert diagnostics[0].raw_value == "abc"
    assert diagnostics[0].row == 1
    assert '"abc"' in diagnostics[0].reason


def test_negative_customer_id_is_treated_as_invalid(raw_row):
    tx = RecordNormalizer().normalize([raw_row(**{COL_CUSTOMER_ID: "-4"})])[0]

    assert tx.customer_id == 0


@pytest.mark.parametrize("text,expected", [("42", 42), (" 42 ", 42), ("42.0", 42), ("42 years", 42)])
def test_parse_int_uses_leading_integer(text, expected):
    assert parse_int(text) == Parsed(expected)


@pytest.mark.parametrize("text", ["", None, "n/a", "  "])
def test_parse_int_defaults_when_no_digits(text):
    outcome = parse_int(text)

    assert isinstance(outcome, Defaulted)
    assert outcome.value == 0


@pytest.mark.parametrize("text,expected", [
    ("1500.00", 1500.0),
    ("$1,234.50", 1234.5),
    ("KES 99", 99.0),
    ("-20.5", -20.5),
])
def test_parse_amount_strips_non_numeric_characters(text, expected):
    assert parse_amount(text) == Parsed(expected)


@pytest.mark.parametrize("text", ["", None, "abc", "--", "-", "."])
def test_parse_amount_defaults_to_zero(text):
    outcome = parse_amount(text)

    assert isinstance(outcome, Defaulted)
    assert outcome.value == 0.0
    assert outcome.original_text == text


@pytest.mark.parametrize("text,expected", [
    ("12.50-", 12.5),
    ("1.2.3", 1.2),
    ("5.", 5.0),
    (".5", 0.5),
])
def test_parse_amount_reads_leading_number(text, expected):
    assert parse_amount(text) == Parsed(expected)


@pytest.mark.parametrize("text,expected", [
    ("2023-03-15", date(2023, 3, 15)),
    ("3/15/2023", date(2023, 3, 15)),
    ("15 Mar 2023", date(2023, 3, 15)),
])
def test_parse_date_accepts_common_formats(text, expected):
    assert parse_date(text) == Parsed(expected)


def test_parse_date_empty_is_absent_without_diagnostic():
    assert parse_date("") == Parsed(None)
    assert parse_date(None) == Parsed(None)


def test_unparseable_date_is_absent_with_diagnostic(raw_row):
    normalizer = RecordNormalizer()

    tx = normalizer.normalize([raw_row(**{COL_TRANSACTION_DATE: "not a date"})])[0]

    assert tx.transaction_date is None
    assert [d.field for d in normalizer.get_diagnostics()] == [COL_TRANSACTION_DATE]


@pytest.mark.parametrize("text,expected", [
    ("m", Gender.MALE),
    ("MALE", Gender.MALE),
    (" Female ", Gender.FEMALE),
    ("f", Gender.FEMALE),
    ("x", Gender.OTHER),
    ("", Gender.OTHER),
    (None, Gender.OTHER),
])
def test_normalize_gender(text, expected):
    assert normalize_gender(text) is expected


def test_empty_text_fields_default_to_unknown(raw_row):
    row = raw_row(**{COL_TRANSACTION_TYPE: "", COL_BRANCH_ID: ""})
    normalizer = RecordNormalizer()

    tx = normalizer.normalize([row])[0]

    assert tx.transaction_type == "Unknown"
    assert tx.branch_code == "Unknown"
    assert {d.field for d in normalizer.get_diagnostics()} == {COL_TRANSACTION_TYPE, COL_BRANCH_ID}


def test_missing_columns_degrade_to_defaults():
    normalizer = RecordNormalizer()

    tx = normalizer.normalize([{}])[0]

    assert tx.customer_id == 0
    assert tx.customer_age == 0
    assert tx.transaction_amount == 0.0
    assert tx.transaction_date is None
    assert tx.customer_gender is Gender.OTHER
    assert tx.account_type == "Unknown"
    assert len(normalizer.get_diagnostics()) > 0


def test_parse_text_passes_value_through():
    assert parse_text(" Savings ") == Parsed(" Savings ")
    assert parse_text("   ") == Parsed("   ")


def test_padded_text_fields_are_kept_verbatim(raw_row):
    row = raw_row(**{COL_TRANSACTION_TYPE: " deposit ", COL_BRANCH_ID: " B1"})
    normalizer = RecordNormalizer()

    tx = normalizer.normalize([row])[0]

    assert tx.transaction_type == " deposit "
    assert tx.branch_code == " B1"
    assert normalizer.get_diagnostics() == []


def test_diagnostics_reset_between_runs(raw_row):
    normalizer = RecordNormalizer()
    normalizer.normalize([raw_row(**{COL_AGE: "old"})])

    normalizer.normalize([raw_row()])

    assert normalizer.get_diagnostics() == []


def test_normalizing_cleaned_output_again_is_idempotent(raw_row):
    rows = [
        raw_row(),
        raw_row(**{COL_TRANSACTION_AMOUNT: "$2,500.75", COL_GENDER: "f"}),
        raw_row(**{COL_CUSTOMER_ID: "bad", COL_TRANSACTION_DATE: "", COL_TRANSACTION_TYPE: ""}),
        raw_row(**{COL_TRANSACTION_AMOUNT: "0.00001"}),
    ]
    normalizer = RecordNormalizer()
    first = normalizer.normalize(rows)

    second = normalizer.normalize([tx.to_raw() for tx in first])

    assert second == first

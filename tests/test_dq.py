"""Unit tests for consistency validation."""
from datetime import date

import pytest

from backend.analytics.dq import ConsistencyValidator, REJECTION_RULES, build_reference_points


def _validate(transactions):
    validator = ConsistencyValidator()
    return validator, validator.validate(transactions)


def test_deposit_within_tolerance_is_valid(make_tx):
    tx = make_tx(account_balance=1000.0, transaction_amount=500.0, balance_after_transaction=1500.00)

    _, result = _validate([tx])

    assert result.valid_transactions == [tx]
    assert result.invalid_record_count == 0
    assert result.error_log == []


def test_deposit_outside_tolerance_is_rejected(make_tx):
    tx = make_tx(account_balance=1000.0, transaction_amount=500.0, balance_after_transaction=1500.02)

    validator, result = _validate([tx])

    assert result.valid_transactions == []
    assert result.invalid_record_count == 1
    assert "Balance after deposit" in result.error_log[0]
    assert validator.get_rejected_rows()[0].rule == "BALANCE_MISMATCH"


def test_withdrawal_balance_identity(make_tx):
    good = make_tx(transaction_type="Withdrawal", account_balance=1000.0,
                   transaction_amount=300.0, balance_after_transaction=700.0)
    bad = make_tx(transaction_type="Withdrawal", account_balance=1000.0,
                  transaction_amount=300.0, balance_after_transaction=1300.0)

    _, result = _validate([good, bad])

    assert result.valid_transactions == [good]
    assert "Balance after withdrawal" in result.error_log[0]


@pytest.mark.parametrize("after", [1200.0, 800.0])
def test_transfer_accepts_either_direction(make_tx, after):
    tx = make_tx(transaction_type="Transfer", account_balance=1000.0,
                 transaction_amount=200.0, balance_after_transaction=after)

    _, result = _validate([tx])

    assert result.valid_transactions == [tx]


def test_transfer_matching_neither_direction_is_rejected(make_tx):
    tx = make_tx(transaction_type="Transfer", account_balance=1000.0,
                 transaction_amount=200.0, balance_after_transaction=1000.0)

    _, result = _validate([tx])

    assert result.invalid_record_count == 1
    assert "Balance after transfer" in result.error_log[0]


def test_transaction_type_is_case_insensitive(make_tx):
    tx = make_tx(transaction_type="DEPOSIT")

    _, result = _validate([tx])

    assert result.valid_transactions == [tx]


def test_unknown_type_is_rejected(make_tx):
    tx = make_tx(transaction_type="Payment")

    validator, result = _validate([tx])

    assert "Unknown transaction type 'Payment'" in result.error_log[0]
    assert validator.get_stats()["UNKNOWN_TYPE"] == 1


@pytest.mark.parametrize("age,valid", [(17, False), (18, True), (120, True), (121, False)])
def test_age_range_bounds(make_tx, age, valid):
    tx = make_tx(customer_age=age)

    _, result = _validate([tx])

    assert (result.valid_transactions == [tx]) is valid


@pytest.mark.parametrize("amount", [0.0, -50.0])
def test_non_positive_amount_is_rejected(make_tx, amount):
    tx = make_tx(transaction_amount=amount)

    _, result = _validate([tx])

    assert "not positive" in result.error_log[0]


@pytest.mark.parametrize("overrides,rule,fragment", [
    ({"transaction_date": None, "customer_age": 5, "transaction_amount": -1.0}, "MISSING_DATE", "Missing or invalid transaction date"),
    ({"customer_age": 5, "transaction_amount": -1.0}, "AGE_RANGE", "outside the valid range"),
    ({"transaction_amount": -1.0, "transaction_type": "Payment"}, "NON_POSITIVE_AMOUNT", "not positive"),
    ({"balance_after_transaction": 0.0}, "BALANCE_MISMATCH", "does not match"),
])
def test_first_failing_rule_wins(make_tx, overrides, rule, fragment):
    validator, result = _validate([make_tx(**overrides)])

    assert len(result.error_log) == 1
    assert fragment in result.error_log[0]
    assert [r.rule for r in validator.get_rejected_rows()] == [rule]


def test_age_progression_within_one_year_is_valid(make_tx):
    first = make_tx(transaction_date=date(2020, 1, 1), customer_age=30)
    later = make_tx(transaction_date=date(2023, 1, 2), customer_age=33)
    drifted = make_tx(transaction_date=date(2023, 1, 2), customer_age=34)

    _, result = _validate([first, later, drifted])

    assert result.valid_transactions == [first, later, drifted]


def test_age_progression_outside_tolerance_is_rejected(make_tx):
    first = make_tx(transaction_date=date(2020, 1, 1), customer_age=30)
    wrong = make_tx(transaction_date=date(2023, 1, 2), customer_age=35)

    validator, result = _validate([first, wrong])

    assert result.valid_transactions == [first]
    assert "Expected ~33, but found 35" in result.error_log[0]
    assert validator.get_rejected_rows()[0].rule == "AGE_INCONSISTENT"


def test_reference_point_uses_earliest_date_not_input_order(make_tx):
    later = make_tx(transaction_date=date(2024, 6, 1), customer_age=40)
    earliest = make_tx(transaction_date=date(2020, 6, 1), customer_age=36)

    _, result = _validate([later, earliest])

    assert result.valid_transactions == [later, earliest]


def test_reference_points_are_per_customer(make_tx):
    a = make_tx(customer_id=1, transaction_date=date(2020, 1, 1), customer_age=30)
    b = make_tx(customer_id=2, transaction_date=date(2020, 1, 1), customer_age=60)

    _, result = _validate([a, b])

    assert result.invalid_record_count == 0


def test_build_reference_points_keeps_first_on_ties_and_skips_undated(make_tx):
    transactions = [
        make_tx(transaction_date=None, customer_age=99),
        make_tx(transaction_date=date(2021, 5, 5), customer_age=40),
        make_tx(transaction_date=date(2021, 5, 5), customer_age=41),
    ]

    references = build_reference_points(transactions)

    assert references[1].age == 40
    assert references[1].date == date(2021, 5, 5)


def test_valid_records_keep_input_order_and_counts_add_up(make_tx):
    transactions = [
        make_tx(customer_id=1),
        make_tx(customer_id=2, transaction_date=None),
        make_tx(customer_id=3),
        make_tx(customer_id=4, customer_age=10),
    ]

    validator, result = _validate(transactions)

    assert [tx.customer_id for tx in result.valid_transactions] == [1, 3]
    assert result.invalid_record_count == 2
    assert len(result.error_log) == 2
    stats = validator.get_stats()
    assert stats["total"] == 4
    assert stats["valid"] == 2
    assert stats["invalid"] == 2
    assert [r.row for r in validator.get_rejected_rows()] == [2, 4]


def test_every_valid_record_satisfies_its_balance_identity(make_tx):
    transactions = [
        make_tx(transaction_type="Deposit", transaction_amount=10.0),
        make_tx(transaction_type="Withdrawal", transaction_amount=10.0, balance_after_transaction=990.0),
        make_tx(transaction_type="Transfer", transaction_amount=10.0, balance_after_transaction=990.0),
        make_tx(transaction_type="Withdrawal", transaction_amount=10.0, balance_after_transaction=1010.0),
    ]

    _, result = _validate(transactions)

    for tx in result.valid_transactions:
        plus = abs(tx.balance_after_transaction - (tx.account_balance + tx.transaction_amount)) <= 0.01
        minus = abs(tx.balance_after_transaction - (tx.account_balance - tx.transaction_amount)) <= 0.01
        expected = {"deposit": plus, "withdrawal": minus, "transfer": plus or minus}
        assert expected[tx.transaction_type.lower()]
    assert result.invalid_record_count == 1


def test_state_resets_between_runs(make_tx):
    validator = ConsistencyValidator()
    validator.validate([make_tx(transaction_date=None)])

    validator.validate([make_tx()])

    assert validator.get_rejected_rows() == []
    assert validator.get_stats()["invalid"] == 0


def test_full_report_lists_only_triggered_rules(make_tx):
    validator = ConsistencyValidator()
    validator.validate([make_tx(transaction_date=None), make_tx()])

    report = validator.get_full_report()

    assert report["summary"]["rejections_by_rule"] == {"MISSING_DATE": 1}
    assert set(REJECTION_RULES) <= set(report["stats"])

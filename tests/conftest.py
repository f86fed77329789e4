"""Shared fixtures for the analytics test suite."""
from datetime import date

import pytest

from backend.analytics.models import CleanedTransaction, Gender
from backend.analytics.schema import RAW_COLUMNS

SAMPLE_CSV = """Customer ID,Transaction Date,Transaction Type,Transaction Amount,Account Balance,Age,Gender,Account Type,Branch ID,Date Of Account Opening,Account Balance After Transaction
1,1/1/2023,Deposit,500.00,1000.00,30,M,Savings,B1,1/1/2020,1500.00
1,2/15/2023,Withdrawal,200.00,1500.00,30,M,Savings,B1,1/1/2020,1300.00
2,3/10/2023,Transfer,"$1,000.00",5000.00,45,Female,Current,B2,5/5/2019,4000.00
3,,Deposit,100.00,100.00,25,F,Savings,B1,1/1/2021,200.00
4,4/1/2023,Deposit,50.00,100.00,15,Male,Savings,B2,1/1/2021,150.00

5,4/2/2023,Payment,50.00,100.00,40,Male,Savings,B2,1/1/2021,150.00
"""


def _raw_row(**overrides):
    row = dict(zip(RAW_COLUMNS, [
        "1", "2023-01-01", "Deposit", "500.00", "1000.00", "30", "Male",
        "Savings", "B1", "2020-01-01", "1500.00",
    ]))
    row.update(overrides)
    return row


def _make_tx(**overrides):
    amount = overrides.get("transaction_amount", 500.0)
    balance = overrides.get("account_balance", 1000.0)
    fields = {
        "customer_id": 1,
        "transaction_date": date(2023, 1, 1),
        "transaction_type": "Deposit",
        "transaction_amount": amount,
        "account_balance": balance,
        "customer_age": 30,
        "customer_gender": Gender.MALE,
        "account_type": "Savings",
        "branch_code": "B1",
        "account_opening_date": date(2020, 1, 1),
        "balance_after_transaction": balance + amount,
    }
    fields.update(overrides)
    return CleanedTransaction(**fields)


@pytest.fixture
def raw_row():
    """Factory for a valid raw row keyed by source headers."""
    return _raw_row


@pytest.fixture
def make_tx():
    """Factory for a consistent deposit; balance_after follows the amount unless overridden."""
    return _make_tx


@pytest.fixture
def sample_csv(tmp_path):
    path = tmp_path / "transactions.csv"
    path.write_text(SAMPLE_CSV)
    return path

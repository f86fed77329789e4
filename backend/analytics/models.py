from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional, List, Dict, Any, Union

from .schema import (
    COL_CUSTOMER_ID, COL_TRANSACTION_DATE, COL_TRANSACTION_TYPE, COL_TRANSACTION_AMOUNT,
    COL_ACCOUNT_BALANCE, COL_AGE, COL_GENDER, COL_ACCOUNT_TYPE, COL_BRANCH_ID,
    COL_ACCOUNT_OPENING_DATE, COL_BALANCE_AFTER, MonthlyVolumeIndex,
)


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"


class AnomalyType(str, Enum):
    HIGH_VALUE = "high-value"
    LOW_VALUE = "low-value"
    NEW_CUSTOMER_HIGH_VALUE = "new-customer-high-value"


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def _plain_number(value: float) -> str:
    # Positional notation so "1e-05" style reprs survive the monetary cleaner.
    return format(Decimal(repr(value)), "f")


# ─────────────────────────────────────────────────────────────
# Parse Outcomes
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Parsed:
    value: Any


@dataclass(frozen=True)
class Defaulted:
    """A field that fell back to its documented default."""
    value: Any
    original_text: Optional[str]
    reason: str


ParseOutcome = Union[Parsed, Defaulted]


@dataclass(frozen=True)
class FieldDiagnostic:
    row: int
    field: str
    raw_value: Optional[str]
    default: Any
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        default = self.default
        if isinstance(default, date):
            default = default.isoformat()
        return {
            "row": self.row,
            "field": self.field,
            "raw_value": self.raw_value,
            "default": default,
            "reason": self.reason,
        }


# ─────────────────────────────────────────────────────────────
# Records
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class CleanedTransaction:
    customer_id: int
    transaction_date: Optional[date]
    transaction_type: str
    transaction_amount: float
    account_balance: float
    customer_age: int
    customer_gender: Gender
    account_type: str
    branch_code: str
    account_opening_date: Optional[date]
    balance_after_transaction: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "customer_id": self.customer_id,
            "transaction_date": _iso(self.transaction_date),
            "transaction_type": self.transaction_type,
            "transaction_amount": self.transaction_amount,
            "account_balance": self.account_balance,
            "customer_age": self.customer_age,
            "customer_gender": self.customer_gender.value,
            "account_type": self.account_type,
            "branch_code": self.branch_code,
            "account_opening_date": _iso(self.account_opening_date),
            "balance_after_transaction": self.balance_after_transaction,
        }

    def to_raw(self) -> Dict[str, str]:
        """Render back into a source-shaped row (inverse of normalization)."""
        return {
            COL_CUSTOMER_ID: str(self.customer_id),
            COL_TRANSACTION_DATE: _iso(self.transaction_date) or "",
            COL_TRANSACTION_TYPE: self.transaction_type,
            COL_TRANSACTION_AMOUNT: _plain_number(self.transaction_amount),
            COL_ACCOUNT_BALANCE: _plain_number(self.account_balance),
            COL_AGE: str(self.customer_age),
            COL_GENDER: self.customer_gender.value,
            COL_ACCOUNT_TYPE: self.account_type,
            COL_BRANCH_ID: self.branch_code,
            COL_ACCOUNT_OPENING_DATE: _iso(self.account_opening_date) or "",
            COL_BALANCE_AFTER: _plain_number(self.balance_after_transaction),
        }


@dataclass(frozen=True)
class CustomerReferencePoint:
    age: int
    date: date


@dataclass(frozen=True)
class CustomerStatisticalProfile:
    mean: float
    std_dev: float
    transaction_count: int


@dataclass(frozen=True)
class Anomaly:
    transaction: CleanedTransaction
    type: AnomalyType
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "reason": self.reason,
            "transaction": self.transaction.to_dict(),
        }


@dataclass(frozen=True)
class CustomerLTV:
    customer_id: int
    total_volume: float
    active_months: int
    value_per_month: float
    first_transaction_date: Optional[date]
    last_transaction_date: Optional[date]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "customer_id": self.customer_id,
            "total_volume": self.total_volume,
            "active_months": self.active_months,
            "value_per_month": self.value_per_month,
            "first_transaction_date": _iso(self.first_transaction_date),
            "last_transaction_date": _iso(self.last_transaction_date),
        }


@dataclass(frozen=True)
class RejectedRecord:
    row: int
    customer_id: int
    rule: str
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {"row": self.row, "customer_id": self.customer_id, "rule": self.rule, "reason": self.reason}


# ─────────────────────────────────────────────────────────────
# Results
# ─────────────────────────────────────────────────────────────

@dataclass
class ValidationResult:
    valid_transactions: List[CleanedTransaction]
    invalid_record_count: int
    error_log: List[str]

    def error_sample(self, limit: int) -> List[str]:
        return self.error_log[:limit]


@dataclass
class PipelineResult:
    validation: ValidationResult
    monthly_volume: MonthlyVolumeIndex
    anomalies: List[Anomaly]
    customer_ltv: List[CustomerLTV]
    monthly_trend: Dict[str, float] = field(default_factory=dict)
    new_customers: Dict[str, int] = field(default_factory=dict)
    diagnostics: List[FieldDiagnostic] = field(default_factory=list)
    rejected_rows: List[RejectedRecord] = field(default_factory=list)
    dq_report: Dict[str, Any] = field(default_factory=dict)
    stats: Dict[str, Any] = field(default_factory=dict)

"""
Data Quality Engine - Cross-record consistency validation.

Rejection rules, applied in order (first failure wins):
- MISSING_DATE: transaction date absent or unparseable
- AGE_RANGE: customer age outside the configured bounds
- NON_POSITIVE_AMOUNT: transaction amount <= 0
- BALANCE_MISMATCH / UNKNOWN_TYPE: balance arithmetic per transaction type
- AGE_INCONSISTENT: age drifts from the customer's earliest reference point

The age check needs every customer's earliest (age, date) before any record
is judged, so validation is two passes: reference build, then filter.
All logic is rule-based and fully traceable.
"""
import logging
import math
from datetime import date
from typing import Dict, List, Any, Optional, Sequence

from .config import Config
from .models import CleanedTransaction, CustomerReferencePoint, RejectedRecord, ValidationResult


# Rule codes in evaluation order
REJECTION_RULES = [
    "MISSING_DATE",
    "AGE_RANGE",
    "NON_POSITIVE_AMOUNT",
    "BALANCE_MISMATCH",
    "UNKNOWN_TYPE",
    "AGE_INCONSISTENT",
]


def build_reference_points(transactions: Sequence[CleanedTransaction]) -> Dict[int, CustomerReferencePoint]:
    """Earliest-dated (age, date) per customer; ties keep the first seen."""
    references: Dict[int, CustomerReferencePoint] = {}
    for tx in transactions:
        if tx.transaction_date is None:
            continue
        current = references.get(tx.customer_id)
        if current is None or tx.transaction_date < current.date:
            references[tx.customer_id] = CustomerReferencePoint(age=tx.customer_age, date=tx.transaction_date)
    return references


def elapsed_years(start: date, end: date, days_per_year: float = Config.DAYS_PER_YEAR) -> float:
    return (end - start).days / days_per_year


class ConsistencyValidator:
    """
    Deterministic record filter with a per-rule rejection audit trail.
    """

    def __init__(self, tolerance: float = Config.BALANCE_TOLERANCE,
                 min_age: int = Config.MIN_CUSTOMER_AGE,
                 max_age: int = Config.MAX_CUSTOMER_AGE):
        self.tolerance = tolerance
        self.min_age = min_age
        self.max_age = max_age
        self.stats = self._empty_stats()
        self.rejected_rows: List[RejectedRecord] = []

    def _empty_stats(self) -> Dict[str, int]:
        stats = {"total": 0, "valid": 0, "invalid": 0}
        stats.update({rule: 0 for rule in REJECTION_RULES})
        return stats

    def validate(self, transactions: Sequence[CleanedTransaction]) -> ValidationResult:
        """
        Split cleaned records into valid and rejected.

        Args:
            transactions: Every cleaned record of the run, in input order

        Returns:
            ValidationResult with the valid subsequence, reject count and reasons
        """
        self.stats = self._empty_stats()
        self.rejected_rows = []

        # Pass 1: reference points must be complete before any record is judged
        references = build_reference_points(transactions)

        # Pass 2: filter
        valid: List[CleanedTransaction] = []
        error_log: List[str] = []

        for idx, tx in enumerate(transactions):
            self.stats["total"] += 1
            failure = self._first_failure(tx, references.get(tx.customer_id))

            if failure is None:
                valid.append(tx)
                self.stats["valid"] += 1
                continue

            rule, reason = failure
            error_log.append(reason)
            self.stats["invalid"] += 1
            self.stats[rule] += 1
            self.rejected_rows.append(RejectedRecord(
                row=idx + 1, customer_id=tx.customer_id, rule=rule, reason=reason
            ))

        if error_log:
            logging.warning(f"[Data Validator] Found {len(error_log)} invalid records.")

        return ValidationResult(
            valid_transactions=valid,
            invalid_record_count=len(transactions) - len(valid),
            error_log=error_log,
        )

    # ─────────────────────────────────────────────────────────────
    # Rules
    # ─────────────────────────────────────────────────────────────

    def _first_failure(self, tx: CleanedTransaction,
                       reference: Optional[CustomerReferencePoint]) -> Optional[tuple]:
        prefix = f"Invalid Record (ID: {tx.customer_id}):"

        if tx.transaction_date is None:
            return "MISSING_DATE", f"{prefix} Missing or invalid transaction date."

        if tx.customer_age < self.min_age or tx.customer_age > self.max_age:
            return "AGE_RANGE", (
                f"{prefix} Age {tx.customer_age} is outside the valid range ({self.min_age}-{self.max_age})."
            )

        if tx.transaction_amount <= 0:
            return "NON_POSITIVE_AMOUNT", f"{prefix} Transaction amount is not positive ({tx.transaction_amount})."

        balance_failure = self._check_balance(tx, prefix)
        if balance_failure:
            return balance_failure

        if reference is not None:
            years = elapsed_years(reference.date, tx.transaction_date)
            expected_age = reference.age + math.floor(years)
            if abs(tx.customer_age - expected_age) > 1:
                return "AGE_INCONSISTENT", (
                    f"{prefix} Inconsistent age. Expected ~{expected_age}, but found {tx.customer_age}."
                )

        return None

    def _check_balance(self, tx: CleanedTransaction, prefix: str) -> Optional[tuple]:
        tx_type = tx.transaction_type.lower()
        before = tx.account_balance
        amount = tx.transaction_amount
        after = tx.balance_after_transaction

        if tx_type == "deposit":
            expected = before + amount
            if not self._matches(after, expected):
                return "BALANCE_MISMATCH", (
                    f"{prefix} Balance after deposit ({after:.2f}) does not match "
                    f"{before:.2f} + {amount:.2f} = {expected:.2f}."
                )
        elif tx_type == "withdrawal":
            expected = before - amount
            if not self._matches(after, expected):
                return "BALANCE_MISMATCH", (
                    f"{prefix} Balance after withdrawal ({after:.2f}) does not match "
                    f"{before:.2f} - {amount:.2f} = {expected:.2f}."
                )
        elif tx_type == "transfer":
            # Direction is not recorded, so either sign is accepted.
            if not self._matches(after, before + amount) and not self._matches(after, before - amount):
                return "BALANCE_MISMATCH", (
                    f"{prefix} Balance after transfer ({after:.2f}) is not consistent with "
                    f"{before:.2f} ± {amount:.2f}."
                )
        else:
            return "UNKNOWN_TYPE", f"{prefix} Unknown transaction type '{tx.transaction_type}'."

        return None

    def _matches(self, actual: float, expected: float) -> bool:
        return abs(actual - expected) <= self.tolerance

    # ─────────────────────────────────────────────────────────────
    # Reporting
    # ─────────────────────────────────────────────────────────────

    def get_stats(self) -> Dict[str, int]:
        return self.stats.copy()

    def get_rejected_rows(self) -> List[RejectedRecord]:
        return self.rejected_rows.copy()

    def get_full_report(self) -> Dict[str, Any]:
        return {
            "stats": self.get_stats(),
            "rejected_rows": [r.to_dict() for r in self.rejected_rows],
            "summary": {
                "valid_count": self.stats["valid"],
                "invalid_count": self.stats["invalid"],
                "rejections_by_rule": {rule: self.stats[rule] for rule in REJECTION_RULES if self.stats[rule]},
            }
        }

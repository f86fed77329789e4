"""
Aggregation Engine - Read-only analyses over validated transactions.

1. Monthly volume by branch
2. Anomaly detection (profile table first, then classify every record)
3. Customer lifetime value normalized by active tenure
4. Month-level trend views (all-branch totals, new customers)

Every accumulator is local to the call; inputs are never mutated.
"""
import logging
import math
from datetime import date
from typing import Dict, List, Optional, Sequence

import pandas as pd

from .config import Config
from .errors import AnalyticsConfigError
from .models import Anomaly, AnomalyType, CleanedTransaction, CustomerLTV, CustomerStatisticalProfile
from .schema import MonthlyVolumeIndex


def month_key(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


# ─────────────────────────────────────────────────────────────
# Monthly Volume
# ─────────────────────────────────────────────────────────────

def monthly_volume_by_branch(transactions: Sequence[CleanedTransaction]) -> MonthlyVolumeIndex:
    """
    Total transaction volume per branch, bucketed by YYYY-MM.
    Records without a branch code or date are left out of this view only.
    """
    volumes: MonthlyVolumeIndex = {}
    for tx in transactions:
        if not tx.branch_code or tx.transaction_date is None:
            continue
        monthly = volumes.setdefault(tx.branch_code, {})
        key = month_key(tx.transaction_date)
        monthly[key] = monthly.get(key, 0.0) + tx.transaction_amount
    return volumes


def monthly_totals(volume_index: MonthlyVolumeIndex) -> Dict[str, float]:
    """All-branch volume per month, in chronological order."""
    totals: Dict[str, float] = {}
    for monthly in volume_index.values():
        for key, volume in monthly.items():
            totals[key] = totals.get(key, 0.0) + volume
    return dict(sorted(totals.items()))


# ─────────────────────────────────────────────────────────────
# Anomaly Detection
# ─────────────────────────────────────────────────────────────

class AnomalyDetector:
    """
    Two-pass detector.

    Pass 1 groups the complete amount history per customer into an immutable
    profile table. Pass 2 judges each record against that final profile, so a
    customer's first transaction is measured by the same yardstick as the last.
    A single running pass would judge early records against a partial history.

    Usage:
        detector = AnomalyDetector(std_dev_threshold=2.5)
        anomalies = detector.detect(valid_transactions)
    """

    def __init__(self, std_dev_threshold: float = Config.STD_DEV_THRESHOLD,
                 history_threshold: int = Config.HISTORY_THRESHOLD,
                 first_transaction_threshold: float = Config.FIRST_TRANSACTION_THRESHOLD):
        if history_threshold < 1:
            raise AnalyticsConfigError(f"history_threshold must be >= 1, got {history_threshold}")
        if std_dev_threshold < 0:
            raise AnalyticsConfigError(f"std_dev_threshold must be >= 0, got {std_dev_threshold}")
        if first_transaction_threshold < 0:
            raise AnalyticsConfigError(
                f"first_transaction_threshold must be >= 0, got {first_transaction_threshold}"
            )
        self.std_dev_threshold = std_dev_threshold
        self.history_threshold = history_threshold
        self.first_transaction_threshold = first_transaction_threshold

    def detect(self, transactions: Sequence[CleanedTransaction]) -> List[Anomaly]:
        history_counts, profiles = self.build_profiles(transactions)
        return self.classify(transactions, history_counts, profiles)

    def build_profiles(self, transactions: Sequence[CleanedTransaction]):
        """
        Pass 1: per-customer history counts and population mean/std-dev.

        Returns:
            Tuple of (history_counts, profiles). Only customers with at least
            history_threshold transactions receive a profile.
        """
        if not transactions:
            return {}, {}

        frame = pd.DataFrame({
            "customer_id": [tx.customer_id for tx in transactions],
            "amount": [tx.transaction_amount for tx in transactions],
        })
        grouped = frame.groupby("customer_id")["amount"].agg(
            count="count",
            mean="mean",
            std_dev=lambda amounts: amounts.std(ddof=0),
        )

        history_counts: Dict[int, int] = {}
        profiles: Dict[int, CustomerStatisticalProfile] = {}
        for customer_id, row in grouped.iterrows():
            count = int(row["count"])
            history_counts[int(customer_id)] = count
            if count >= self.history_threshold:
                profiles[int(customer_id)] = CustomerStatisticalProfile(
                    mean=float(row["mean"]),
                    std_dev=float(row["std_dev"]),
                    transaction_count=count,
                )
        return history_counts, profiles

    def classify(self, transactions: Sequence[CleanedTransaction],
                 history_counts: Dict[int, int],
                 profiles: Dict[int, CustomerStatisticalProfile]) -> List[Anomaly]:
        """Pass 2: stateless lookup-and-classify, in input order."""
        anomalies: List[Anomaly] = []
        for tx in transactions:
            anomaly = self._classify_one(tx, history_counts.get(tx.customer_id, 0), profiles.get(tx.customer_id))
            if anomaly:
                logging.warning(f"[ANOMALY] {anomaly.reason}")
                anomalies.append(anomaly)
        return anomalies

    def _classify_one(self, tx: CleanedTransaction, history_count: int,
                      profile: Optional[CustomerStatisticalProfile]) -> Optional[Anomaly]:
        amount = tx.transaction_amount

        # Established customer with a usable profile
        if profile is not None and profile.std_dev > 0:
            deviation = (amount - profile.mean) / profile.std_dev
            if abs(deviation) <= self.std_dev_threshold:
                return None
            if deviation > 0:
                anomaly_type, direction = AnomalyType.HIGH_VALUE, "ABOVE"
            else:
                anomaly_type, direction = AnomalyType.LOW_VALUE, "BELOW"
            reason = (
                f"Customer {tx.customer_id}: Tx of {amount:.2f} is {abs(deviation):.1f} std devs "
                f"{direction} their avg of {profile.mean:.2f}."
            )
            return Anomaly(transaction=tx, type=anomaly_type, reason=reason)

        # Too little history for a profile: fall back to the global threshold
        if history_count < self.history_threshold:
            if amount > self.first_transaction_threshold:
                reason = (
                    f"Customer {tx.customer_id} (New): Early transaction of {amount:.2f} exceeds "
                    f"global threshold of {self.first_transaction_threshold:.2f}."
                )
                return Anomaly(transaction=tx, type=AnomalyType.NEW_CUSTOMER_HIGH_VALUE, reason=reason)

        # Flat profile (identical amounts): nothing to deviate from
        return None


def detect_anomalies(transactions: Sequence[CleanedTransaction],
                     std_dev_threshold: float = Config.STD_DEV_THRESHOLD,
                     history_threshold: int = Config.HISTORY_THRESHOLD,
                     first_transaction_threshold: float = Config.FIRST_TRANSACTION_THRESHOLD) -> List[Anomaly]:
    detector = AnomalyDetector(
        std_dev_threshold=std_dev_threshold,
        history_threshold=history_threshold,
        first_transaction_threshold=first_transaction_threshold,
    )
    return detector.detect(transactions)


# ─────────────────────────────────────────────────────────────
# Customer LTV
# ─────────────────────────────────────────────────────────────

def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def active_months(first: Optional[date], last: Optional[date],
                  days_per_month: float = Config.DAYS_PER_MONTH) -> int:
    if first is None or last is None:
        return 0
    return _round_half_up(abs((last - first).days) / days_per_month) + 1


def calculate_customer_ltv(transactions: Sequence[CleanedTransaction]) -> List[CustomerLTV]:
    """
    Lifetime value per customer with a tenure-normalized value per month.

    Amounts always count toward total volume; undated records only drop out
    of the first/last date tracking.

    Returns:
        CustomerLTV list sorted by value_per_month, highest first
    """
    accumulators: Dict[int, dict] = {}

    for tx in transactions:
        acc = accumulators.setdefault(tx.customer_id, {"total": 0.0, "min": None, "max": None})
        acc["total"] += tx.transaction_amount

        tx_date = tx.transaction_date
        if tx_date is not None:
            if acc["min"] is None or tx_date < acc["min"]:
                acc["min"] = tx_date
            if acc["max"] is None or tx_date > acc["max"]:
                acc["max"] = tx_date

    results: List[CustomerLTV] = []
    for customer_id, acc in accumulators.items():
        months = active_months(acc["min"], acc["max"])
        total = acc["total"]
        results.append(CustomerLTV(
            customer_id=customer_id,
            total_volume=total,
            active_months=months,
            value_per_month=total / months if months > 0 else total,
            first_transaction_date=acc["min"],
            last_transaction_date=acc["max"],
        ))

    # sorted() is stable, so ties keep first-seen customer order
    return sorted(results, key=lambda ltv: ltv.value_per_month, reverse=True)


def new_customers_by_month(customer_ltv: Sequence[CustomerLTV]) -> Dict[str, int]:
    """Count of customers per month of their first transaction; undated customers are skipped."""
    counts: Dict[str, int] = {}
    for ltv in customer_ltv:
        if ltv.first_transaction_date is None:
            continue
        key = month_key(ltv.first_transaction_date)
        counts[key] = counts.get(key, 0) + 1
    return dict(sorted(counts.items()))

"""
Transaction Schema - Column names and TypedDict payloads for the analytics pipeline.

Raw rows arrive keyed by the source dataset's human-readable headers. Every
layer reads them through the constants below so a header rename touches one
place only.
"""
from typing import TypedDict, Dict, List

# ─────────────────────────────────────────────────────────────
# Source Columns
# ─────────────────────────────────────────────────────────────
COL_CUSTOMER_ID = "Customer ID"
COL_TRANSACTION_DATE = "Transaction Date"
COL_TRANSACTION_TYPE = "Transaction Type"
COL_TRANSACTION_AMOUNT = "Transaction Amount"
COL_ACCOUNT_BALANCE = "Account Balance"
COL_AGE = "Age"
COL_GENDER = "Gender"
COL_ACCOUNT_TYPE = "Account Type"
COL_BRANCH_ID = "Branch ID"
COL_ACCOUNT_OPENING_DATE = "Date Of Account Opening"
COL_BALANCE_AFTER = "Account Balance After Transaction"

RAW_COLUMNS = [
    COL_CUSTOMER_ID,
    COL_TRANSACTION_DATE,
    COL_TRANSACTION_TYPE,
    COL_TRANSACTION_AMOUNT,
    COL_ACCOUNT_BALANCE,
    COL_AGE,
    COL_GENDER,
    COL_ACCOUNT_TYPE,
    COL_BRANCH_ID,
    COL_ACCOUNT_OPENING_DATE,
    COL_BALANCE_AFTER,
]

# Header names contain spaces, so the functional TypedDict form is required.
RawRecord = TypedDict("RawRecord", {
    COL_CUSTOMER_ID: str,
    COL_TRANSACTION_DATE: str,
    COL_TRANSACTION_TYPE: str,
    COL_TRANSACTION_AMOUNT: str,
    COL_ACCOUNT_BALANCE: str,
    COL_AGE: str,
    COL_GENDER: str,
    COL_ACCOUNT_TYPE: str,
    COL_BRANCH_ID: str,
    COL_ACCOUNT_OPENING_DATE: str,
    COL_BALANCE_AFTER: str,
}, total=False)

# branch code -> month key (YYYY-MM) -> summed amount
MonthlyVolumeIndex = Dict[str, Dict[str, float]]


class ExtractionPayload(TypedDict):
    """Output from Extract layer"""
    document_hash: str            # SHA256 for idempotency
    rows: List[RawRecord]         # Header-mapped raw rows, blank lines skipped
    source_file: str              # Original filename


class PipelineStats(TypedDict):
    """Run counters and dashboard KPIs"""
    total_rows: int
    valid_count: int
    invalid_record_count: int
    diagnostic_count: int
    anomaly_count: int
    customer_count: int
    branch_count: int
    total_volume: float
    processing_time_ms: float
    rejections_by_rule: Dict[str, int]
    anomalies_by_type: Dict[str, int]


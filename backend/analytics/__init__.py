"""
Analytics Package - Banking Transaction Analytics Pipeline

Modules:
- extract: CSV loading into header-mapped raw rows
- transform: Record normalization with Parsed/Defaulted outcomes
- dq: Two-pass consistency validation (balance arithmetic, age progression)
- aggregate: Branch monthly volume, anomaly detection, customer LTV
- load: Multi-sheet Excel / CSV / text report generation
- pipeline: Main orchestrator
- schema: Column names and TypedDict definitions
- models: Frozen record dataclasses
"""
from .aggregate import (
    AnomalyDetector, calculate_customer_ltv, detect_anomalies, monthly_totals, monthly_volume_by_branch,
    new_customers_by_month,
)
from .dq import ConsistencyValidator
from .models import Anomaly, CleanedTransaction, CustomerLTV, PipelineResult, ValidationResult
from .pipeline import AnalyticsPipeline
from .transform import RecordNormalizer

__all__ = [
    'AnalyticsPipeline', 'RecordNormalizer', 'ConsistencyValidator', 'AnomalyDetector',
    'monthly_volume_by_branch', 'monthly_totals', 'detect_anomalies', 'calculate_customer_ltv',
    'new_customers_by_month',
    'CleanedTransaction', 'Anomaly', 'CustomerLTV', 'ValidationResult', 'PipelineResult',
]

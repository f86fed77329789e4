"""
Analytics Pipeline Orchestrator - Coordinates Extract, Normalize, Validate, Aggregate, and Load.

Flow: Extract → Normalize → Validate → Aggregate (volume / anomalies / LTV) → Load

Aggregation only ever sees validated records; rejected rows surface in the
error log and the Data Quality report instead.
"""
import logging
import time
from datetime import datetime
from typing import Dict, Any, List, Optional, Sequence

from .aggregate import (
    AnomalyDetector, calculate_customer_ltv, monthly_totals, monthly_volume_by_branch, new_customers_by_month,
)
from .config import Config
from .dq import ConsistencyValidator, REJECTION_RULES
from .extract import ParserFactory
from .load import ReportLoader
from .models import AnomalyType, PipelineResult
from .schema import PipelineStats, RawRecord
from .transform import RecordNormalizer


class AnalyticsPipeline:
    """
    Batch analytics over one load of raw transaction rows.
    """

    def __init__(self, std_dev_threshold: float = Config.STD_DEV_THRESHOLD,
                 history_threshold: int = Config.HISTORY_THRESHOLD,
                 first_transaction_threshold: float = Config.FIRST_TRANSACTION_THRESHOLD):
        # Only configuration lives here; per-run engines are built inside run()
        self.detector = AnomalyDetector(
            std_dev_threshold=std_dev_threshold,
            history_threshold=history_threshold,
            first_transaction_threshold=first_transaction_threshold,
        )
        self.loader = ReportLoader()

    def run(self, rows: Sequence[RawRecord], detector: Optional[AnomalyDetector] = None) -> PipelineResult:
        """
        Run the in-memory core over already-loaded rows.

        Args:
            rows: Header-mapped raw rows
            detector: Optional detector overriding the pipeline's thresholds

        Returns:
            PipelineResult with all four output structures and run stats
        """
        start_time = time.time()
        detector = detector or self.detector
        normalizer = RecordNormalizer()
        validator = ConsistencyValidator()

        logging.info("1. Parsing data...")
        cleaned = normalizer.normalize(rows)

        logging.info("2. Validating data...")
        validation = validator.validate(cleaned)
        valid = validation.valid_transactions

        logging.info("3. Running analytics...")
        customer_ltv = calculate_customer_ltv(valid)
        anomalies = detector.detect(valid)
        monthly_volume = monthly_volume_by_branch(valid)

        result = PipelineResult(
            validation=validation,
            monthly_volume=monthly_volume,
            anomalies=anomalies,
            customer_ltv=customer_ltv,
            monthly_trend=monthly_totals(monthly_volume),
            new_customers=new_customers_by_month(customer_ltv),
            diagnostics=normalizer.get_diagnostics(),
            rejected_rows=validator.get_rejected_rows(),
            dq_report=validator.get_full_report(),
        )
        result.stats = self._build_stats(result, validator.get_stats(), len(rows), (time.time() - start_time) * 1000)
        logging.info(f"4. Data processing complete! {len(valid)} valid of {len(rows)} rows.")
        return result

    def process(self, file_path: str, file_type: str, target_format: str = "xlsx",
                detector: Optional[AnomalyDetector] = None):
        """
        Process a file through the complete pipeline.
        Yields (percentage, message, result_dict)
        """
        try:
            # ─── 1. Extract (0-20%) ───
            yield 10, "Reading Document...", None
            parser = ParserFactory.get_parser(file_type)
            payload = parser.parse(file_path)
            yield 20, f"Read {len(payload['rows'])} rows.", None

            # ─── 2-4. Normalize, Validate, Aggregate (20-80%) ───
            yield 30, "Normalizing and validating records...", None
            result = self.run(payload["rows"], detector=detector)
            stats = result.stats
            yield 80, (
                f"Found {stats['valid_count']} valid transactions, "
                f"{stats['invalid_record_count']} invalid records, {stats['anomaly_count']} anomalies."
            ), None

            audit_data = {
                **stats,
                "document_hash": payload["document_hash"],
                "source_file": payload["source_file"],
                "timestamp": datetime.now().isoformat(),
                "dq_report": result.dq_report,
            }

            # ─── 5. Load (80-100%) ───
            yield 85, "Preparing report...", None
            output_buffer = self.loader.generate(result, audit_data, target_format)
            yield 95, "Finalizing...", None

            yield 100, "Done", {
                "success": True,
                "output_buffer": output_buffer,
                "stats": audit_data,
                "result": result,
            }

        except Exception as e:
            logging.exception("PIPELINE_ERROR")
            yield 0, f"Error: {str(e)}", {
                "success": False,
                "error": str(e),
                "stats": {}
            }

    def _build_stats(self, result: PipelineResult, validator_stats: Dict[str, int],
                     total_rows: int, processing_time_ms: float) -> PipelineStats:
        anomalies_by_type: Dict[str, int] = {t.value: 0 for t in AnomalyType}
        for anomaly in result.anomalies:
            anomalies_by_type[anomaly.type.value] += 1

        total_volume = sum(
            volume for monthly in result.monthly_volume.values() for volume in monthly.values()
        )

        return {
            "total_rows": total_rows,
            "valid_count": len(result.validation.valid_transactions),
            "invalid_record_count": result.validation.invalid_record_count,
            "diagnostic_count": len(result.diagnostics),
            "anomaly_count": len(result.anomalies),
            "customer_count": len(result.customer_ltv),
            "branch_count": len(result.monthly_volume),
            "total_volume": total_volume,
            "processing_time_ms": processing_time_ms,
            "rejections_by_rule": {rule: validator_stats.get(rule, 0) for rule in REJECTION_RULES},
            "anomalies_by_type": anomalies_by_type,
        }


def top_customers(result: PipelineResult, limit: int = 5) -> List[Dict[str, Any]]:
    return [ltv.to_dict() for ltv in result.customer_ltv[:limit]]

"""
Command-line analytics report.

Usage:
    txn-analytics-report data/Comprehensive_Banking_Database.csv --history-threshold 5
    txn-analytics-report data.csv --output report.xlsx --format xlsx
"""
import argparse
import logging
import os
import sys
from datetime import datetime

from backend.analytics.aggregate import AnomalyDetector
from backend.analytics.config import Config
from backend.analytics.errors import AnalyticsError
from backend.analytics.extract import ParserFactory
from backend.analytics.load import ReportLoader
from backend.analytics.pipeline import AnalyticsPipeline


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Banking transaction analytics report")
    parser.add_argument("source", help="Path to the transactions CSV")
    parser.add_argument("--std-dev-threshold", type=float, default=Config.STD_DEV_THRESHOLD)
    parser.add_argument("--history-threshold", type=int, default=Config.HISTORY_THRESHOLD)
    parser.add_argument("--first-transaction-threshold", type=float, default=Config.FIRST_TRANSACTION_THRESHOLD)
    parser.add_argument("--output", help="Also write the report to this file")
    parser.add_argument("--format", dest="target_format", choices=["xlsx", "csv", "txt"], default="txt")
    parser.add_argument("--log-level", default="WARNING")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        stream=sys.stderr,
        level=getattr(logging, args.log_level.upper(), logging.WARNING),
        format='%(asctime)s %(levelname)s: %(message)s'
    )

    try:
        detector = AnomalyDetector(
            std_dev_threshold=args.std_dev_threshold,
            history_threshold=args.history_threshold,
            first_transaction_threshold=args.first_transaction_threshold,
        )
        file_type = os.path.splitext(args.source)[1] or "csv"
        payload = ParserFactory.get_parser(file_type).parse(args.source)
    except AnalyticsError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    pipeline = AnalyticsPipeline()
    result = pipeline.run(payload["rows"], detector=detector)

    audit_data = {
        **result.stats,
        "document_hash": payload["document_hash"],
        "source_file": payload["source_file"],
        "timestamp": datetime.now().isoformat(),
    }
    loader = ReportLoader()
    print(loader.render_text_report(result, audit_data), end="")

    if args.output:
        buffer = loader.generate(result, audit_data, args.target_format)
        with open(args.output, "wb") as f:
            f.write(buffer.getvalue())
        print(f"Report written to {args.output}")

    return 0


if __name__ == "__main__":
    sys.exit(main())

"""
Load Layer - Analytics report generation.

Generates dashboard-ready output with:
1. Summary sheet - KPIs and validation counts
2. Branch Volume sheet - Branch x month volume grid
3. Monthly Trend sheet - All-branch volume per month
4. New Customers sheet - Customers by month of first transaction
5. Anomalies sheet - Flagged transactions with reasons
6. Customer LTV sheet - Customers ranked by value per month
7. Data Quality sheet - Rejections by rule and a sample of the error log
"""
from io import BytesIO
from typing import Dict, Any, List

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side
from openpyxl.utils import get_column_letter

from .config import Config
from .formatters import format_currency, format_large_number, format_month
from .models import PipelineResult


class ReportLoader:
    """
    Report exporter for multiple formats.
    Supported: 'xlsx', 'csv', 'txt'
    """

    def __init__(self, error_sample_size: int = Config.ERROR_SAMPLE_SIZE):
        self.error_sample_size = error_sample_size
        self.currency_format = '#,##0.00'
        self.header_font = Font(bold=True, color="FFFFFF")
        self.header_fill = PatternFill(start_color="1E3A8A", end_color="1E3A8A", fill_type="solid")
        self.warning_fill = PatternFill(start_color="FEE2E2", end_color="FEE2E2", fill_type="solid")
        self.success_fill = PatternFill(start_color="DCFCE7", end_color="DCFCE7", fill_type="solid")
        self.border = Border(bottom=Side(style='thin', color='DDDDDD'))

    def generate(self, result: PipelineResult, audit_data: Dict[str, Any], target_format: str = "xlsx") -> BytesIO:
        """
        Generate output in the requested format.
        """
        if target_format == "csv":
            return self._generate_csv(result)
        elif target_format in ("txt", "text"):
            return self._generate_text(result, audit_data)
        else:
            return self._generate_excel(result, audit_data)

    # ─────────────────────────────────────────────────────────────
    # Excel
    # ─────────────────────────────────────────────────────────────

    def _generate_excel(self, result: PipelineResult, audit_data: Dict[str, Any]) -> BytesIO:
        output = BytesIO()
        wb = Workbook()

        # ════════════════════════════════════════════════════════════════
        # SHEET 1: SUMMARY
        # ════════════════════════════════════════════════════════════════
        ws1 = wb.active
        ws1.title = "Summary"
        ws1.cell(row=1, column=1, value="ANALYTICS SUMMARY").font = Font(bold=True, size=14)
        ws1.merge_cells('A1:B1')

        stats = result.stats
        summary_items = [
            ("Total Volume", stats.get("total_volume", 0.0)),
            ("Customers", stats.get("customer_count", 0)),
            ("Branches", stats.get("branch_count", 0)),
            ("Anomalies", stats.get("anomaly_count", 0)),
            ("Rows Read", stats.get("total_rows", 0)),
            ("Valid Transactions", stats.get("valid_count", 0)),
            ("Invalid Records", stats.get("invalid_record_count", 0)),
            ("Field Diagnostics", stats.get("diagnostic_count", 0)),
            ("Source File", audit_data.get("source_file", "")),
            ("Document Hash", audit_data.get("document_hash", "")),
            ("Generated", audit_data.get("timestamp", "")),
        ]
        row = 3
        for key, val in summary_items:
            ws1.cell(row=row, column=1, value=key).font = Font(bold=True)
            c = ws1.cell(row=row, column=2, value=val)
            if key == "Total Volume":
                c.number_format = self.currency_format
            if key == "Invalid Records":
                c.fill = self.warning_fill if val else self.success_fill
            row += 1
        self._auto_width(ws1)

        # ════════════════════════════════════════════════════════════════
        # SHEET 2: BRANCH VOLUME
        # ════════════════════════════════════════════════════════════════
        ws2 = wb.create_sheet("Branch Volume")
        months = sorted({m for monthly in result.monthly_volume.values() for m in monthly})
        self._write_header(ws2, ["Branch"] + months + ["Total"])

        for row_idx, branch in enumerate(sorted(result.monthly_volume), 2):
            monthly = result.monthly_volume[branch]
            ws2.cell(row=row_idx, column=1, value=branch)
            for col_idx, month in enumerate(months, 2):
                c = ws2.cell(row=row_idx, column=col_idx, value=monthly.get(month))
                c.number_format = self.currency_format
            c = ws2.cell(row=row_idx, column=len(months) + 2, value=sum(monthly.values()))
            c.number_format = self.currency_format
            c.font = Font(bold=True)
        self._auto_width(ws2)
        ws2.freeze_panes = "B2"

        # ════════════════════════════════════════════════════════════════
        # SHEET 3: MONTHLY TREND
        # ════════════════════════════════════════════════════════════════
        ws_trend = wb.create_sheet("Monthly Trend")
        self._write_header(ws_trend, ["Month", "Label", "Total Volume"])
        for row_idx, (month, volume) in enumerate(result.monthly_trend.items(), 2):
            ws_trend.cell(row=row_idx, column=1, value=month)
            ws_trend.cell(row=row_idx, column=2, value=format_month(month))
            ws_trend.cell(row=row_idx, column=3, value=volume).number_format = self.currency_format
        self._auto_width(ws_trend)

        # ════════════════════════════════════════════════════════════════
        # SHEET 4: NEW CUSTOMERS
        # ════════════════════════════════════════════════════════════════
        ws_new = wb.create_sheet("New Customers")
        self._write_header(ws_new, ["Month", "Label", "New Customers"])
        for row_idx, (month, count) in enumerate(result.new_customers.items(), 2):
            ws_new.cell(row=row_idx, column=1, value=month)
            ws_new.cell(row=row_idx, column=2, value=format_month(month))
            ws_new.cell(row=row_idx, column=3, value=count)
        self._auto_width(ws_new)

        # ════════════════════════════════════════════════════════════════
        # SHEET 5: ANOMALIES
        # ════════════════════════════════════════════════════════════════
        ws3 = wb.create_sheet("Anomalies")
        self._write_header(ws3, ["Customer ID", "Date", "Type", "Amount", "Branch", "Anomaly", "Reason"])
        for row_idx, anomaly in enumerate(result.anomalies, 2):
            tx = anomaly.transaction
            row_data = [
                tx.customer_id,
                tx.transaction_date.isoformat() if tx.transaction_date else None,
                tx.transaction_type,
                tx.transaction_amount,
                tx.branch_code,
                anomaly.type.value.upper(),
                anomaly.reason,
            ]
            for col_idx, val in enumerate(row_data, 1):
                cell = ws3.cell(row=row_idx, column=col_idx, value=val)
                if col_idx == 4:
                    cell.number_format = self.currency_format
                cell.border = self.border
        self._auto_width(ws3)
        ws3.freeze_panes = "A2"

        # ════════════════════════════════════════════════════════════════
        # SHEET 6: CUSTOMER LTV
        # ════════════════════════════════════════════════════════════════
        ws4 = wb.create_sheet("Customer LTV")
        self._write_header(ws4, ["Rank", "Customer ID", "Total Volume", "Active Months",
                                 "Value / Month", "First Transaction", "Last Transaction"])
        for row_idx, ltv in enumerate(result.customer_ltv, 2):
            row_data = [
                row_idx - 1,
                ltv.customer_id,
                ltv.total_volume,
                ltv.active_months,
                ltv.value_per_month,
                ltv.first_transaction_date.isoformat() if ltv.first_transaction_date else None,
                ltv.last_transaction_date.isoformat() if ltv.last_transaction_date else None,
            ]
            for col_idx, val in enumerate(row_data, 1):
                cell = ws4.cell(row=row_idx, column=col_idx, value=val)
                if col_idx in [3, 5]:
                    cell.number_format = self.currency_format
                cell.border = self.border
        self._auto_width(ws4)
        ws4.freeze_panes = "A2"

        # ════════════════════════════════════════════════════════════════
        # SHEET 7: DATA QUALITY
        # ════════════════════════════════════════════════════════════════
        ws5 = wb.create_sheet("Data Quality")
        ws5.cell(row=1, column=1, value="DATA QUALITY REPORT").font = Font(bold=True, size=14)
        ws5.merge_cells('A1:D1')

        row = 3
        ws5.cell(row=row, column=1, value="Rejections by Rule").font = Font(bold=True, size=12)
        row += 1
        for rule, count in stats.get("rejections_by_rule", {}).items():
            ws5.cell(row=row, column=1, value=rule)
            ws5.cell(row=row, column=2, value=count)
            row += 1

        row += 1
        ws5.cell(row=row, column=1, value="Rejected Rows").font = Font(bold=True, size=12)
        row += 1
        if result.rejected_rows:
            self._write_header(ws5, ["Row #", "Customer ID", "Rule", "Reason"], row=row)
            row += 1
            for rejected in result.rejected_rows:
                ws5.cell(row=row, column=1, value=rejected.row)
                ws5.cell(row=row, column=2, value=rejected.customer_id)
                ws5.cell(row=row, column=3, value=rejected.rule)
                ws5.cell(row=row, column=4, value=rejected.reason)
                row += 1
        else:
            ws5.cell(row=row, column=1, value="No rejected rows - all records passed consistency checks").fill = self.success_fill
            row += 1

        row += 1
        ws5.cell(row=row, column=1, value="Field Diagnostics").font = Font(bold=True, size=12)
        row += 1
        if result.diagnostics:
            self._write_header(ws5, ["Row #", "Field", "Raw Value", "Reason"], row=row)
            row += 1
            for diag in result.diagnostics:
                ws5.cell(row=row, column=1, value=diag.row)
                ws5.cell(row=row, column=2, value=diag.field)
                ws5.cell(row=row, column=3, value=diag.raw_value)
                ws5.cell(row=row, column=4, value=diag.reason)
                row += 1
        self._auto_width(ws5)

        wb.save(output)
        output.seek(0)
        return output

    def _write_header(self, ws, headers: List[str], row: int = 1) -> None:
        for col_idx, header in enumerate(headers, 1):
            cell = ws.cell(row=row, column=col_idx, value=header)
            cell.font = self.header_font
            cell.fill = self.header_fill
            cell.alignment = Alignment(horizontal='center')

    # ─────────────────────────────────────────────────────────────
    # CSV / Text
    # ─────────────────────────────────────────────────────────────

    def _generate_csv(self, result: PipelineResult) -> BytesIO:
        """Customer LTV table, highest value per month first"""
        columns = ["customer_id", "total_volume", "active_months", "value_per_month",
                   "first_transaction_date", "last_transaction_date"]
        df = pd.DataFrame([ltv.to_dict() for ltv in result.customer_ltv], columns=columns)
        output = BytesIO()
        df.to_csv(output, index=False)
        output.seek(0)
        return output

    def _generate_text(self, result: PipelineResult, audit_data: Dict[str, Any]) -> BytesIO:
        output = BytesIO()
        output.write(self.render_text_report(result, audit_data).encode('utf-8'))
        output.seek(0)
        return output

    def render_text_report(self, result: PipelineResult, audit_data: Dict[str, Any]) -> str:
        rule = "-" * 38
        total_volume = sum(v for monthly in result.monthly_volume.values() for v in monthly.values())
        lines = [
            "=" * 38,
            "        Analytics Report",
            "=" * 38,
            "",
            f"Source: {audit_data.get('source_file', 'in-memory')}",
            f"Valid transactions analyzed: {len(result.validation.valid_transactions)}",
            f"Total branch volume: KES {format_large_number(total_volume)}",
            "",
            "--- Monthly Volume by Branch (Sample) ---",
        ]
        if result.monthly_volume:
            branch = next(iter(result.monthly_volume))
            lines.append(f"Sample data for Branch ID: {branch}")
            for month, volume in sorted(result.monthly_volume[branch].items()):
                lines.append(f"  {month} ({format_month(month)}): {format_currency(volume)}")
        else:
            lines.append("No branch volume available.")
        lines += [rule, "", "--- Monthly Trend (All Branches) ---"]
        for month, volume in result.monthly_trend.items():
            lines.append(f"  {month} ({format_month(month)}): {format_currency(volume)}")
        lines += ["", "--- New Customers by Month ---"]
        for month, count in result.new_customers.items():
            lines.append(f"  {month} ({format_month(month)}): {count}")
        lines += [rule, "", "--- Anomaly Detection Report ---",
                  f"Total anomalous transactions found: {len(result.anomalies)}",
                  "Sample Anomalies (first 5):"]
        for anomaly in result.anomalies[:5]:
            lines.append(f"- [{anomaly.type.value}] {anomaly.reason}")
        lines += [rule, "", "--- Customer LTV Report ---",
                  f"Calculated LTV for {len(result.customer_ltv)} customers.",
                  "Top 5 Customers by Value Per Month:"]
        for ltv in result.customer_ltv[:5]:
            lines.append(
                f"- Customer ID: {ltv.customer_id}, Value/Month: {format_currency(ltv.value_per_month)}, "
                f"Total Volume: {format_currency(ltv.total_volume)} ({ltv.active_months} months)"
            )
        lines += [rule, "", "--- Data Quality ---",
                  f"Invalid records: {result.validation.invalid_record_count}",
                  f"Field diagnostics: {len(result.diagnostics)}"]
        sample = result.validation.error_sample(self.error_sample_size)
        for reason in sample:
            lines.append(f"- {reason}")
        hidden = len(result.validation.error_log) - len(sample)
        if hidden > 0:
            lines.append(f"... and {hidden} more")
        lines.append(rule)
        return "\n".join(lines) + "\n"

    def _auto_width(self, ws) -> None:
        """Auto-adjust column widths"""
        for col_idx, column in enumerate(ws.columns, 1):
            max_length = 0
            for cell in column:
                if cell.value is not None:
                    max_length = max(max_length, len(str(cell.value)))
            ws.column_dimensions[get_column_letter(col_idx)].width = min(max_length + 4, 60)

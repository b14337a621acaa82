"""
BudgetPace - Excel Report Generation Module.

This module writes a dashboard snapshot to an Excel workbook: a Pacing
Summary tab with the KPI grid and status counts, and a Campaign Pacing
tab with one colour-coded row per campaign.

Status colours follow the dashboard's status dot:
    - green: On Track
    - yellow: Attention
    - red: Critical
    - grey: Disabled

Classes:
    ExcelReporter: Generates Excel workbooks from dashboard snapshots.
"""

from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Optional, Union

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from budgetpace.schema import DashboardSnapshot, PacingStatus


def _fill(colour: str) -> PatternFill:
    return PatternFill(start_color=colour, end_color=colour, fill_type="solid")


class ExcelReporter:
    """
    Generates Excel pacing reports.

    Attributes:
        MONEY_FORMAT: Excel number format for amounts.
        PERCENTAGE_FORMAT: Excel number format for percentages.

    Example:
        >>> reporter = ExcelReporter()
        >>> reporter.generate_report(snapshot, "pacing_report.xlsx")
    """

    MONEY_FORMAT = '#,##0.00'
    PERCENTAGE_FORMAT = '0.00%'

    STATUS_FILLS = {
        PacingStatus.ON_TRACK: _fill("C6EFCE"),
        PacingStatus.ATTENTION: _fill("FFEB9C"),
        PacingStatus.CRITICAL: _fill("FFC7CE"),
        PacingStatus.DISABLED: _fill("D9D9D9"),
    }

    HEADER_FONT = Font(bold=True, color="FFFFFF")
    HEADER_FILL = _fill("2F5496")
    HEADER_ALIGNMENT = Alignment(horizontal="center", vertical="center")
    OVER_BUDGET_FONT = Font(bold=True, color="9C0006")

    THIN_BORDER = Border(
        left=Side(style="thin"),
        right=Side(style="thin"),
        top=Side(style="thin"),
        bottom=Side(style="thin")
    )

    DETAIL_HEADERS = [
        "Client",
        "Campaign",
        "Platform",
        "Campaign Status",
        "Allocated Budget",
        "Gross Spend",
        "Remaining",
        "Spend %",
        "Days Left",
        "Recommended Daily",
        "Live Daily Budget",
        "Projected Spend",
        "Projected %",
        "Deviation",
        "Pacing Status",
    ]

    def generate_report(
        self,
        snapshot: DashboardSnapshot,
        output_path: Union[str, Path]
    ) -> None:
        """
        Generates a complete Excel report from a dashboard snapshot.

        Args:
            snapshot: Dashboard snapshot.
            output_path: Path for the output .xlsx file.
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        workbook = Workbook()
        workbook.remove(workbook.active)

        self._create_summary_sheet(workbook, snapshot)
        self._create_detail_sheet(workbook, snapshot)

        workbook.save(output_path)

    def _create_summary_sheet(
        self,
        workbook: Workbook,
        snapshot: DashboardSnapshot
    ) -> None:
        ws = workbook.create_sheet("Pacing Summary")

        ws["A1"] = "BudgetPace - Pacing Summary"
        ws["A1"].font = Font(bold=True, size=16)
        ws.merge_cells("A1:D1")

        ws["A3"] = "Report Generated:"
        ws["B3"] = datetime.now().strftime("%Y-%m-%d %H:%M")
        ws["A4"] = "Snapshot Time:"
        ws["B4"] = snapshot.timestamp.strftime("%Y-%m-%d %H:%M")
        ws["A5"] = "Reporting Window:"
        ws["B5"] = f"{snapshot.window_start.isoformat()} ~ {snapshot.window_end.isoformat()}"
        ws["A6"] = "Version:"
        ws["B6"] = snapshot.version

        ws["A8"] = "KPI OVERVIEW"
        ws["A8"].font = Font(bold=True, size=14)
        ws.merge_cells("A8:D8")

        metrics = [
            ("Total Spend (Gross)", snapshot.total_spend, self.MONEY_FORMAT),
            ("Total Budget", snapshot.total_budget, self.MONEY_FORMAT),
            ("Remaining Budget", snapshot.total_budget - snapshot.total_spend, self.MONEY_FORMAT),
            ("Budget Usage", snapshot.usage_percentage / Decimal("100"), self.PERCENTAGE_FORMAT),
        ]

        row = 10
        for label, value, number_format in metrics:
            ws[f"A{row}"] = label
            ws[f"A{row}"].font = Font(bold=True)
            ws[f"B{row}"] = float(value)
            ws[f"B{row}"].number_format = number_format
            row += 1
        ws[f"A{row}"] = "Usage Trend"
        ws[f"A{row}"].font = Font(bold=True)
        ws[f"B{row}"] = snapshot.usage_trend
        if snapshot.usage_trend == "Critical":
            ws[f"B{row}"].fill = self.STATUS_FILLS[PacingStatus.CRITICAL]

        ws["A17"] = "PACING STATUS"
        ws["A17"].font = Font(bold=True, size=14)
        ws.merge_cells("A17:D17")

        row = 19
        for col, header in zip("ABC", ("Status", "Count", "Meaning")):
            cell = ws[f"{col}{row}"]
            cell.value = header
            cell.font = self.HEADER_FONT
            cell.fill = self.HEADER_FILL
            cell.alignment = self.HEADER_ALIGNMENT
            cell.border = self.THIN_BORDER

        for status in PacingStatus:
            row += 1
            ws[f"A{row}"] = status.value
            ws[f"A{row}"].fill = self.STATUS_FILLS[status]
            ws[f"B{row}"] = snapshot.count_by_status(status)
            ws[f"C{row}"] = status.label
            for col in "ABC":
                ws[f"{col}{row}"].border = self.THIN_BORDER

        row += 2
        ws[f"A{row}"] = "Total Campaigns:"
        ws[f"A{row}"].font = Font(bold=True)
        ws[f"B{row}"] = len(snapshot.rows)

        self._auto_adjust_columns(ws)

    def _create_detail_sheet(
        self,
        workbook: Workbook,
        snapshot: DashboardSnapshot
    ) -> None:
        ws = workbook.create_sheet("Campaign Pacing")

        for col, header in enumerate(self.DETAIL_HEADERS, start=1):
            cell = ws.cell(row=1, column=col, value=header)
            cell.font = self.HEADER_FONT
            cell.fill = self.HEADER_FILL
            cell.alignment = self.HEADER_ALIGNMENT
            cell.border = self.THIN_BORDER

        for row_idx, row in enumerate(snapshot.rows, start=2):
            pacing = row.pacing
            campaign = row.campaign
            row_data = [
                row.client_name,
                campaign.name,
                campaign.platform.value,
                campaign.status.value,
                float(pacing.allocated_budget),
                float(pacing.gross_spend),
                float(pacing.remaining_budget),
                float(pacing.spend_percentage) / 100,
                pacing.days_left,
                float(pacing.recommended_daily),
                float(campaign.live_daily_budget),
                float(pacing.projected_spend),
                float(pacing.projected_percentage) / 100,
                self._optional_float(pacing.deviation),
                pacing.status.value,
            ]

            for col_idx, value in enumerate(row_data, start=1):
                cell = ws.cell(row=row_idx, column=col_idx, value=value)
                cell.border = self.THIN_BORDER

                if col_idx in (5, 6, 7, 10, 11, 12):
                    cell.number_format = self.MONEY_FORMAT
                elif col_idx in (8, 13, 14):
                    cell.number_format = self.PERCENTAGE_FORMAT

            if pacing.is_projected_over_budget:
                ws.cell(row=row_idx, column=13).font = self.OVER_BUDGET_FONT

            status_cell = ws.cell(row=row_idx, column=len(self.DETAIL_HEADERS))
            status_cell.fill = self.STATUS_FILLS[pacing.status]

        ws.freeze_panes = "C2"
        self._auto_adjust_columns(ws)

    def _optional_float(self, value: Optional[Decimal]) -> Optional[float]:
        return float(value) if value is not None else None

    def _auto_adjust_columns(self, worksheet: Worksheet) -> None:
        """
        Auto-adjusts column widths based on content.

        Args:
            worksheet: Target worksheet.
        """
        for col_idx in range(1, worksheet.max_column + 1):
            column_letter = get_column_letter(col_idx)
            lengths = [
                len(str(worksheet.cell(row=row_idx, column=col_idx).value))
                for row_idx in range(1, worksheet.max_row + 1)
                if worksheet.cell(row=row_idx, column=col_idx).value is not None
            ]
            worksheet.column_dimensions[column_letter].width = max(max(lengths, default=0) + 2, 10)

    def generate_filename(self, prefix: str = "pacing_report") -> str:
        """
        Generates a timestamped filename for reports.

        Returns:
            Filename like "pacing_report_2025-12-18_143052.xlsx".
        """
        timestamp = datetime.now().strftime("%Y-%m-%d_%H%M%S")
        return f"{prefix}_{timestamp}.xlsx"

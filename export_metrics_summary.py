"""
Export module for usage summary metrics to Excel format.
Writes the key usage figures, the top languages and the premium request
cost breakdown to a formatted workbook.
"""

import logging
from typing import Optional

from openpyxl import Workbook
from openpyxl.styles import Font, Alignment, PatternFill

from error_handling import handle_pipeline_phase, ExportError
from models import PremiumMetrics, UsageSummary

logger = logging.getLogger(__name__)

HEADER_FONT = Font(bold=True, size=12, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
HEADER_ALIGNMENT = Alignment(horizontal="center", vertical="center")
SECTION_FONT = Font(bold=True, size=13)
SECTION_FILL = PatternFill(start_color="D9E1F2", end_color="D9E1F2", fill_type="solid")


def _write_header(ws, row: int, labels) -> None:
    for column, label in enumerate(labels, start=1):
        cell = ws.cell(row=row, column=column, value=label)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = HEADER_ALIGNMENT


@handle_pipeline_phase(phase_name="EXPORT_EXCEL", error_cls=ExportError)
def export_summary_to_excel(
    summary: UsageSummary,
    premium: Optional[PremiumMetrics] = None,
    output_filename: str = 'copilot_usage_summary.xlsx'
) -> None:
    """
    Export the usage summary (and optionally premium costs) to Excel.

    Args:
        summary: UsageSummary built by build_usage_summary()
        premium: PremiumMetrics for the billing period, if available
        output_filename: Output Excel filename
    """
    logger.info("[EXPORT_EXCEL] Exporting usage summary to %s", output_filename)

    wb = Workbook()
    ws = wb.active
    ws.title = "Usage Summary"
    ws.column_dimensions['A'].width = 35
    ws.column_dimensions['B'].width = 20

    aggregate = summary.aggregate
    date_range = summary.date_range

    ws['A1'] = f"Copilot usage {date_range.start_label} - {date_range.end_label}"
    ws['A1'].font = SECTION_FONT
    ws['A1'].fill = SECTION_FILL
    ws.merge_cells('A1:B1')

    _write_header(ws, 2, ["METRIC", "VALUE"])
    figures = [
        ("Days", date_range.day_count),
        ("Active users", aggregate.total_active_users),
        ("Engaged users", aggregate.total_engaged_users),
        ("Total suggestions", aggregate.total_suggestions),
        ("Accepted suggestions", aggregate.total_acceptances),
        ("Acceptance rate (%)", aggregate.overall_acceptance_rate),
        ("Lines suggested", aggregate.total_lines_suggested),
        ("Lines accepted", aggregate.total_lines_accepted),
        ("Lines acceptance rate (%)", aggregate.lines_acceptance_rate),
        ("Total chats", aggregate.total_chats),
        ("PR summaries", aggregate.total_pr_summaries),
    ]
    row = 3
    for label, value in figures:
        ws[f'A{row}'] = label
        ws[f'B{row}'] = value
        ws[f'B{row}'].alignment = Alignment(horizontal="right")
        row += 1

    ws_lang = wb.create_sheet(title="Top Languages")
    ws_lang.column_dimensions['B'].width = 25
    _write_header(ws_lang, 1, ["Rank", "Language", "Users", "Acceptance rate (%)", "Accepted", "Suggested"])
    for offset, language in enumerate(summary.top_languages, start=2):
        ws_lang.cell(row=offset, column=1, value=language.rank)
        ws_lang.cell(row=offset, column=2, value=language.name)
        ws_lang.cell(row=offset, column=3, value=language.engaged_users)
        ws_lang.cell(row=offset, column=4, value=language.acceptance_rate)
        ws_lang.cell(row=offset, column=5, value=language.acceptances)
        ws_lang.cell(row=offset, column=6, value=language.suggestions)

    if premium is not None:
        ws_premium = wb.create_sheet(title="Premium Requests")
        ws_premium.column_dimensions['A'].width = 30
        _write_header(ws_premium, 1, ["Model", "Requests", "Gross", "Discount", "Net"])
        row = 2
        for model in premium.model_breakdown:
            ws_premium.cell(row=row, column=1, value=model.model)
            ws_premium.cell(row=row, column=2, value=float(model.requests))
            for column, amount in ((3, model.gross_amount), (4, model.discount_amount), (5, model.net_amount)):
                cell = ws_premium.cell(row=row, column=column, value=float(amount))
                cell.number_format = '0.00'
            row += 1
        ws_premium.cell(row=row, column=1, value=f"Total ({premium.currency})").font = Font(bold=True)
        ws_premium.cell(row=row, column=2, value=float(premium.total_gross_requests))
        for column, amount in (
            (3, premium.total_gross_amount),
            (4, premium.total_discount_amount),
            (5, premium.total_net_amount),
        ):
            cell = ws_premium.cell(row=row, column=column, value=float(amount))
            cell.number_format = '0.00'
            cell.font = Font(bold=True)
    else:
        logger.warning("[EXPORT_EXCEL] No premium metrics provided, skipping 'Premium Requests' sheet")

    wb.save(output_filename)
    logger.info("[EXPORT_EXCEL] Successfully exported summary to %s", output_filename)

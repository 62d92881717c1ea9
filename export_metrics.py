"""
Export module for usage metrics data.
Writes the daily series, ranked entity tables and premium model breakdown of
an already computed summary to CSV.
"""

import logging
from typing import List

import pandas as pd

from error_handling import handle_pipeline_phase, ExportError
from models import PremiumMetrics, RankedEntity, UsageSummary

logger = logging.getLogger(__name__)

RANKED_COLUMNS = [
    'rank',
    'group',
    'dimension',
    'name',
    'engaged_users',
    'suggestions',
    'acceptances',
    'acceptance_rate',
    'chats',
    'pr_summaries',
]


def ranked_entities_to_dataframe(rows: List[RankedEntity]) -> pd.DataFrame:
    """Tabulate ranked rows with stable columns, even when there are none."""
    records = [row.model_dump(mode='json') for row in rows]
    return pd.DataFrame(records, columns=RANKED_COLUMNS)


@handle_pipeline_phase(phase_name="EXPORT_CSV", error_cls=ExportError)
def export_daily_series_to_csv(
    summary: UsageSummary,
    output_filename: str = 'daily_usage_metrics.csv'
) -> int:
    """
    Export one row per day of the window to CSV.

    Args:
        summary: UsageSummary built by build_usage_summary()
        output_filename: Output CSV filename

    Returns:
        Number of rows written
    """
    df = pd.DataFrame([day.model_dump(mode='json') for day in summary.daily_series])
    df.to_csv(output_filename, index=False)

    logger.info(
        "[EXPORT_CSV] Exported %d days to %s",
        len(df),
        output_filename,
    )
    return len(df)


@handle_pipeline_phase(phase_name="EXPORT_CSV", error_cls=ExportError)
def export_rankings_to_csv(
    summary: UsageSummary,
    output_filename: str = 'usage_rankings.csv'
) -> int:
    """
    Export the top languages, editors and model usage tables to one CSV.

    Returns:
        Number of rows written
    """
    rows = summary.top_languages + summary.editor_stats + summary.chat_editor_stats + summary.model_usage
    df = ranked_entities_to_dataframe(rows)
    df.to_csv(output_filename, index=False)

    logger.info("[EXPORT_CSV] Exported %d ranked rows to %s", len(df), output_filename)
    return len(df)


@handle_pipeline_phase(phase_name="EXPORT_CSV", error_cls=ExportError)
def export_premium_breakdown_to_csv(
    metrics: PremiumMetrics,
    output_filename: str = 'premium_requests_by_model.csv'
) -> int:
    """
    Export the per-model premium request costs to CSV.

    Returns:
        Number of model rows written
    """
    df = pd.DataFrame(
        [row.model_dump(mode='json') for row in metrics.model_breakdown],
        columns=[
            'model',
            'requests',
            'included_requests',
            'billed_requests',
            'gross_amount',
            'discount_amount',
            'net_amount',
            'item_count',
        ],
    )
    df.to_csv(output_filename, index=False)

    logger.info(
        "[EXPORT_CSV] Exported %d premium model rows to %s",
        len(df),
        output_filename,
    )
    return len(df)

"""
Metrics Service Module for the Copilot usage dashboard.
Wires the normalizer, aggregator, rankings and date range resolver into the
complete usage summary, and the premium request feed into its cost summary.
"""

import logging
from typing import Any, Iterable, Optional, Union

from aggregator import aggregate_window
from config import MetricsConfig
from daily_metrics import build_daily_series, get_latest_usage
from date_range import resolve_date_range
from models import NoDataResult, PremiumMetrics, UsageSummary
from normalizer import normalize_window
from premium_costs import calculate_premium_metrics, extract_usage_items
from rankings import (
    get_chat_editor_stats,
    get_chat_stats,
    get_editor_stats,
    get_feature_adoption,
    get_model_usage_metrics,
    get_pr_summary,
    get_top_languages,
)

logger = logging.getLogger(__name__)


def setup_logging(log_file: str = 'copilot_metrics.log'):
    """Configure centralized logging for the metrics pipeline."""
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    root_logger.handlers.clear()

    file_handler = logging.FileHandler(log_file, mode='a')
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    file_handler.setFormatter(file_formatter)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.ERROR)
    console_formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s'
    )
    console_handler.setFormatter(console_formatter)

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)


def build_usage_summary(
    raw_snapshots: Optional[Iterable[Any]],
    config: Optional[MetricsConfig] = None,
) -> Union[UsageSummary, NoDataResult]:
    """
    Build everything the usage dashboard renders for one telemetry window.

    Args:
        raw_snapshots: Raw daily snapshots from the telemetry feed, any order
        config: MetricsConfig object; defaults are used when None

    Returns:
        UsageSummary, or NoDataResult when no valid snapshot remains
    """
    config = config or MetricsConfig()
    snapshots, report = normalize_window(raw_snapshots or [])

    aggregate = aggregate_window(snapshots, config)
    if isinstance(aggregate, NoDataResult):
        return NoDataResult(
            feed="telemetry",
            message=aggregate.message,
            input_records=report.input_records,
            skipped_records=report.skipped_records,
        )

    summary = UsageSummary(
        aggregate=aggregate,
        date_range=resolve_date_range(snapshots, config),
        latest_day=get_latest_usage(snapshots),
        daily_series=build_daily_series(snapshots),
        top_languages=get_top_languages(aggregate, config.top_n),
        editor_stats=get_editor_stats(aggregate),
        chat_editor_stats=get_chat_editor_stats(aggregate),
        model_usage=get_model_usage_metrics(aggregate),
        chat_stats=get_chat_stats(aggregate),
        feature_adoption=get_feature_adoption(aggregate),
        pr_summary=get_pr_summary(aggregate),
        normalization=report,
    )

    logger.info(
        "[SUMMARY] Usage summary for %s to %s: %d days, %d skipped snapshots",
        summary.date_range.start_label,
        summary.date_range.end_label,
        summary.date_range.day_count,
        report.skipped_records,
    )
    return summary


def build_premium_summary(
    raw_usage: Any,
    config: Optional[MetricsConfig] = None,
) -> Union[PremiumMetrics, NoDataResult]:
    """
    Build the premium request cost summary for one billing period.

    Args:
        raw_usage: List of usage items, or the billing response object
            carrying a 'usageItems' list
        config: MetricsConfig object; defaults are used when None

    Returns:
        PremiumMetrics, or NoDataResult when the period holds no usable item
    """
    return calculate_premium_metrics(extract_usage_items(raw_usage), config)

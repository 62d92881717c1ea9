"""
Daily Metrics Reducer.

Extracts the scalar KPIs of a single normalized day: field selection plus
intra-day summation over the primary-dimension entities of each metric group.
No state is carried between days.
"""

import logging
from typing import Dict, Iterable, List, Optional

from models import (
    COUNTER_FIELDS,
    PRIMARY_DIMENSION,
    DailyMetrics,
    DailySnapshot,
    MetricGroup,
)
from rankings import calculate_acceptance_rate

logger = logging.getLogger(__name__)


def sum_group_counters(snapshot: DailySnapshot, group: MetricGroup) -> Dict[str, int]:
    """
    Sum every counter over the primary-dimension entities of one group.

    Only the primary dimension is summed: its entities cover each event of
    the group exactly once, while the other dimensions re-slice the same events.
    """
    dimension = PRIMARY_DIMENSION[group]
    totals = dict.fromkeys(COUNTER_FIELDS, 0)
    for entity in snapshot.group(group).entities:
        if entity.dimension != dimension:
            continue
        for field in COUNTER_FIELDS:
            totals[field] += getattr(entity, field)
    return totals


def reduce_daily_metrics(snapshot: DailySnapshot) -> DailyMetrics:
    """
    Calculate the single-day KPIs of one normalized snapshot.

    Args:
        snapshot: Normalized DailySnapshot

    Returns:
        DailyMetrics for the snapshot's date
    """
    completions = sum_group_counters(snapshot, MetricGroup.CODE_COMPLETIONS)
    ide_chat = sum_group_counters(snapshot, MetricGroup.IDE_CHAT)
    dotcom_chat = sum_group_counters(snapshot, MetricGroup.DOTCOM_CHAT)
    pull_requests = sum_group_counters(snapshot, MetricGroup.PULL_REQUESTS)

    return DailyMetrics(
        date=snapshot.date,
        active_users=snapshot.total_active_users,
        engaged_users=snapshot.total_engaged_users,
        code_completion_users=snapshot.group(MetricGroup.CODE_COMPLETIONS).total_engaged_users,
        ide_chat_users=snapshot.group(MetricGroup.IDE_CHAT).total_engaged_users,
        dotcom_chat_users=snapshot.group(MetricGroup.DOTCOM_CHAT).total_engaged_users,
        pr_summary_users=snapshot.group(MetricGroup.PULL_REQUESTS).total_engaged_users,
        suggestions=completions["suggestions"],
        acceptances=completions["acceptances"],
        lines_suggested=completions["lines_suggested"],
        lines_accepted=completions["lines_accepted"],
        acceptance_rate=calculate_acceptance_rate(completions["acceptances"], completions["suggestions"]),
        lines_acceptance_rate=calculate_acceptance_rate(
            completions["lines_accepted"], completions["lines_suggested"]
        ),
        ide_chats=ide_chat["chats"],
        dotcom_chats=dotcom_chat["chats"],
        total_chats=ide_chat["chats"] + dotcom_chat["chats"],
        copy_events=ide_chat["copy_events"],
        insertion_events=ide_chat["insertion_events"],
        pr_summaries=pull_requests["pr_summaries"],
    )


def get_latest_usage(snapshots: Iterable[DailySnapshot]) -> Optional[DailyMetrics]:
    """KPIs of the most recent day in the window, or None for an empty window."""
    latest = max(snapshots, key=lambda snapshot: snapshot.date, default=None)
    if latest is None:
        return None
    return reduce_daily_metrics(latest)


def build_daily_series(snapshots: Iterable[DailySnapshot]) -> List[DailyMetrics]:
    """One DailyMetrics row per snapshot, in ascending date order."""
    series = [reduce_daily_metrics(snapshot) for snapshot in snapshots]
    series.sort(key=lambda metrics: metrics.date)
    logger.debug("[DAILY] Built daily series with %d days", len(series))
    return series

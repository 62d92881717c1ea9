"""
Multi-Day Aggregator.

Folds a window of normalized daily snapshots into period totals and one
accumulated BreakdownEntity per (group, dimension, name), in a single pass.
Counts are only ever summed; rates are computed once, from window sums.
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, Optional, Tuple, Union

from config import MetricsConfig
from error_handling import handle_pipeline_phase, MetricsCalculationError
from models import (
    COUNTER_FIELDS,
    PRIMARY_DIMENSION,
    AggregateResult,
    BreakdownEntity,
    DailySnapshot,
    Dimension,
    MetricGroup,
    NoDataResult,
)
from rankings import calculate_acceptance_rate

logger = logging.getLogger(__name__)

EntityKey = Tuple[MetricGroup, Dimension, str]


class _WindowUserCounter:
    """Tracks a per-day user count under the configured window statistic."""

    def __init__(self, statistic: str):
        self.statistic = statistic
        self.value = 0
        self._latest_day = None

    def observe(self, day, count: int) -> None:
        if self.statistic == "max":
            self.value = max(self.value, count)
        elif self._latest_day is None or day > self._latest_day:
            self._latest_day = day
            self.value = count


@handle_pipeline_phase(phase_name="AGGREGATE", error_cls=MetricsCalculationError)
def aggregate_window(
    snapshots: Iterable[DailySnapshot],
    config: Optional[MetricsConfig] = None,
) -> Union[AggregateResult, NoDataResult]:
    """
    Aggregate a window of normalized snapshots.

    Args:
        snapshots: Normalized snapshots, in any order
        config: MetricsConfig; selects the window statistic for user counts

    Returns:
        AggregateResult, or NoDataResult when the window holds no snapshots
    """
    config = config or MetricsConfig()

    accumulator: Dict[EntityKey, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
    custom_models = set()
    active_users = _WindowUserCounter(config.window_user_statistic)
    engaged_users = _WindowUserCounter(config.window_user_statistic)
    group_users = {group: _WindowUserCounter(config.window_user_statistic) for group in MetricGroup}
    days = set()
    snapshot_count = 0

    for snapshot in snapshots:
        snapshot_count += 1
        days.add(snapshot.date)
        active_users.observe(snapshot.date, snapshot.total_active_users)
        engaged_users.observe(snapshot.date, snapshot.total_engaged_users)

        for group, group_snapshot in snapshot.groups.items():
            group_users[group].observe(snapshot.date, group_snapshot.total_engaged_users)
            for entity in group_snapshot.entities:
                key = (group, entity.dimension, entity.name)
                bucket = accumulator[key]
                for field in COUNTER_FIELDS:
                    bucket[field] += getattr(entity, field)
                bucket["days_present"] += 1
                if entity.is_custom_model:
                    custom_models.add(key)

    if snapshot_count == 0:
        logger.warning("[AGGREGATE] Empty telemetry window, no data to aggregate")
        return NoDataResult(feed="telemetry", message="No usage data available for the selected window")

    if snapshot_count != len(days):
        logger.warning(
            "[AGGREGATE] Window holds %d snapshots for %d distinct days",
            snapshot_count,
            len(days),
        )

    entities: Dict[MetricGroup, Dict[Dimension, Dict[str, BreakdownEntity]]] = {}
    totals = {group: dict.fromkeys(COUNTER_FIELDS, 0) for group in MetricGroup}

    for key in sorted(accumulator):
        group, dimension, name = key
        counters = accumulator[key]
        entity = BreakdownEntity(
            group=group,
            dimension=dimension,
            name=name,
            is_custom_model=key in custom_models,
            acceptance_rate=calculate_acceptance_rate(counters["acceptances"], counters["suggestions"]),
            lines_acceptance_rate=calculate_acceptance_rate(
                counters["lines_accepted"], counters["lines_suggested"]
            ),
            **counters,
        )
        entities.setdefault(group, {}).setdefault(dimension, {})[name] = entity
        if dimension == PRIMARY_DIMENSION[group]:
            for field in COUNTER_FIELDS:
                totals[group][field] += counters[field]

    completions = totals[MetricGroup.CODE_COMPLETIONS]
    ide_chat = totals[MetricGroup.IDE_CHAT]
    dotcom_chat = totals[MetricGroup.DOTCOM_CHAT]

    result = AggregateResult(
        day_count=len(days),
        total_active_users=active_users.value,
        total_engaged_users=engaged_users.value,
        group_engaged_users={group: counter.value for group, counter in group_users.items()},
        total_suggestions=completions["suggestions"],
        total_acceptances=completions["acceptances"],
        total_lines_suggested=completions["lines_suggested"],
        total_lines_accepted=completions["lines_accepted"],
        total_ide_chats=ide_chat["chats"],
        total_dotcom_chats=dotcom_chat["chats"],
        total_chats=ide_chat["chats"] + dotcom_chat["chats"],
        total_copy_events=ide_chat["copy_events"],
        total_insertion_events=ide_chat["insertion_events"],
        total_pr_summaries=totals[MetricGroup.PULL_REQUESTS]["pr_summaries"],
        overall_acceptance_rate=calculate_acceptance_rate(
            completions["acceptances"], completions["suggestions"]
        ),
        lines_acceptance_rate=calculate_acceptance_rate(
            completions["lines_accepted"], completions["lines_suggested"]
        ),
        entities=entities,
    )

    logger.info(
        "[AGGREGATE] Aggregated %d days into %d entities",
        result.day_count,
        len(accumulator),
    )
    return result

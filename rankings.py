"""
Ranking & Rate Module.

Computes weighted acceptance rates and deterministic Top-N lists from the
window-level entity mapping built by the aggregator, plus the chat, feature
adoption and pull request summary views of the usage dashboard.
"""

import logging
from typing import Dict, List, Mapping, Optional

from models import (
    AdoptionRates,
    AggregateResult,
    BreakdownEntity,
    ChatStats,
    Dimension,
    FeatureAdoption,
    MetricGroup,
    PullRequestSummary,
    RankedEntity,
)

logger = logging.getLogger(__name__)

DEFAULT_TOP_N = 5


def calculate_percentage(numerator: int, denominator: int) -> int:
    """
    Percentage numerator/denominator, rounded half-up to an integer.

    Uses integer arithmetic so 12.5 rounds to 13 and no float error creeps in.
    A zero denominator yields 0.
    """
    if denominator <= 0:
        return 0
    return (200 * numerator + denominator) // (2 * denominator)


def calculate_acceptance_rate(acceptances: int, suggestions: int) -> int:
    """Weighted acceptance rate; pass window sums, never per-day rates."""
    return calculate_percentage(acceptances, suggestions)


def _sort_key(entity: BreakdownEntity):
    return (-entity.engaged_users, entity.name)


def rank_entities(
    entities: Mapping[str, BreakdownEntity],
    top_n: Optional[int] = DEFAULT_TOP_N,
) -> List[RankedEntity]:
    """
    Order entities by engaged users (descending), then name (ascending).

    Args:
        entities: Mapping from entity name to accumulated BreakdownEntity
        top_n: Maximum number of entities returned; None returns all

    Returns:
        At most top_n RankedEntity rows, ranks starting at 1

    Raises:
        ValueError: If top_n is negative.
    """
    if top_n is not None and top_n < 0:
        raise ValueError(f"top_n must be non-negative, got {top_n}")

    ordered = sorted(entities.values(), key=_sort_key)
    if top_n is not None:
        ordered = ordered[:top_n]
    logger.debug("[RANK] Kept %d of %d entities", len(ordered), len(entities))

    return [
        RankedEntity(
            rank=position,
            group=entity.group,
            dimension=entity.dimension,
            name=entity.name,
            engaged_users=entity.engaged_users,
            suggestions=entity.suggestions,
            acceptances=entity.acceptances,
            lines_suggested=entity.lines_suggested,
            lines_accepted=entity.lines_accepted,
            chats=entity.chats,
            copy_events=entity.copy_events,
            insertion_events=entity.insertion_events,
            pr_summaries=entity.pr_summaries,
            is_custom_model=entity.is_custom_model,
            acceptance_rate=entity.acceptance_rate,
        )
        for position, entity in enumerate(ordered, start=1)
    ]


def get_top_languages(aggregate: AggregateResult, top_n: Optional[int] = DEFAULT_TOP_N) -> List[RankedEntity]:
    """Top code completion languages by engaged users."""
    return rank_entities(
        aggregate.group_entities(MetricGroup.CODE_COMPLETIONS, Dimension.LANGUAGE),
        top_n,
    )


def get_editor_stats(aggregate: AggregateResult, top_n: Optional[int] = None) -> List[RankedEntity]:
    """Code completion editors with their acceptance rates, all by default."""
    return rank_entities(
        aggregate.group_entities(MetricGroup.CODE_COMPLETIONS, Dimension.EDITOR),
        top_n,
    )


def get_chat_editor_stats(aggregate: AggregateResult, top_n: Optional[int] = None) -> List[RankedEntity]:
    return rank_entities(
        aggregate.group_entities(MetricGroup.IDE_CHAT, Dimension.EDITOR),
        top_n,
    )


def get_repository_stats(aggregate: AggregateResult, top_n: Optional[int] = None) -> List[RankedEntity]:
    return rank_entities(
        aggregate.group_entities(MetricGroup.PULL_REQUESTS, Dimension.REPOSITORY),
        top_n,
    )


def get_model_usage_metrics(aggregate: AggregateResult, top_n: Optional[int] = None) -> List[RankedEntity]:
    """
    Model rows for every feature a model was used in.

    A model is reported once per metric group: the same model name under
    code completions and under chat stays two separate rows. Groups follow
    their declaration order; rows within a group follow the ranking order.
    """
    rows: List[RankedEntity] = []
    for group in MetricGroup:
        rows.extend(rank_entities(aggregate.group_entities(group, Dimension.MODEL), top_n))
    return rows


def get_chat_stats(aggregate: AggregateResult) -> ChatStats:
    return ChatStats(
        total_chats=aggregate.total_chats,
        ide_chats=aggregate.total_ide_chats,
        dotcom_chats=aggregate.total_dotcom_chats,
        total_copy_events=aggregate.total_copy_events,
        total_insertion_events=aggregate.total_insertion_events,
        ide_users=aggregate.group_engaged_users.get(MetricGroup.IDE_CHAT, 0),
        dotcom_users=aggregate.group_engaged_users.get(MetricGroup.DOTCOM_CHAT, 0),
    )


def get_feature_adoption(aggregate: AggregateResult) -> FeatureAdoption:
    """
    Engaged users per feature and their share of the window's active users.
    """
    active = aggregate.total_active_users
    users: Dict[MetricGroup, int] = {
        group: aggregate.group_engaged_users.get(group, 0) for group in MetricGroup
    }

    return FeatureAdoption(
        total_active_users=active,
        code_completion_users=users[MetricGroup.CODE_COMPLETIONS],
        ide_chat_users=users[MetricGroup.IDE_CHAT],
        dotcom_chat_users=users[MetricGroup.DOTCOM_CHAT],
        pr_summary_users=users[MetricGroup.PULL_REQUESTS],
        adoption_rates=AdoptionRates(
            code_completion=calculate_percentage(users[MetricGroup.CODE_COMPLETIONS], active),
            ide_chat=calculate_percentage(users[MetricGroup.IDE_CHAT], active),
            dotcom_chat=calculate_percentage(users[MetricGroup.DOTCOM_CHAT], active),
            pr_summary=calculate_percentage(users[MetricGroup.PULL_REQUESTS], active),
        ),
    )


def get_pr_summary(aggregate: AggregateResult, top_n: Optional[int] = 10) -> PullRequestSummary:
    repositories = aggregate.group_entities(MetricGroup.PULL_REQUESTS, Dimension.REPOSITORY)
    return PullRequestSummary(
        total_engaged_users=aggregate.group_engaged_users.get(MetricGroup.PULL_REQUESTS, 0),
        total_pr_summaries=aggregate.total_pr_summaries,
        repository_count=len(repositories),
        repository_stats=get_repository_stats(aggregate, top_n),
    )

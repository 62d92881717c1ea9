from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Dict, List
import datetime
from decimal import Decimal
from enum import Enum

from error_handling import EmptyWindowError


class MetricGroup(str, Enum):
    CODE_COMPLETIONS = "code_completions"
    IDE_CHAT = "ide_chat"
    DOTCOM_CHAT = "dotcom_chat"
    PULL_REQUESTS = "pull_requests"


class Dimension(str, Enum):
    LANGUAGE = "language"
    EDITOR = "editor"
    MODEL = "model"
    REPOSITORY = "repository"


# Entities of the primary dimension cover every event of their group exactly once.
PRIMARY_DIMENSION = {
    MetricGroup.CODE_COMPLETIONS: Dimension.LANGUAGE,
    MetricGroup.IDE_CHAT: Dimension.EDITOR,
    MetricGroup.DOTCOM_CHAT: Dimension.MODEL,
    MetricGroup.PULL_REQUESTS: Dimension.REPOSITORY,
}

COUNTER_FIELDS = (
    "engaged_users",
    "suggestions",
    "acceptances",
    "lines_suggested",
    "lines_accepted",
    "chats",
    "copy_events",
    "insertion_events",
    "pr_summaries",
)


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, protected_namespaces=())


class EntityCounts(_Frozen):
    """Counters of one breakdown entity on one day."""

    group: MetricGroup
    dimension: Dimension
    name: str = Field(..., min_length=1)
    engaged_users: int = 0
    suggestions: int = 0
    acceptances: int = 0
    lines_suggested: int = 0
    lines_accepted: int = 0
    chats: int = 0
    copy_events: int = 0
    insertion_events: int = 0
    pr_summaries: int = 0
    is_custom_model: bool = False


class GroupSnapshot(_Frozen):
    group: MetricGroup
    total_engaged_users: int = 0
    entities: List[EntityCounts] = Field(default_factory=list)


class DailySnapshot(_Frozen):
    """A fully populated day of telemetry: every group present, every counter set."""

    date: datetime.date
    total_active_users: int = 0
    total_engaged_users: int = 0
    groups: Dict[MetricGroup, GroupSnapshot]

    def group(self, group: MetricGroup) -> GroupSnapshot:
        return self.groups[group]


class NormalizationReport(_Frozen):
    input_records: int = 0
    skipped_records: int = 0
    dropped_entities: int = 0
    skipped_reasons: List[str] = Field(default_factory=list)


class NoDataResult(_Frozen):
    """Explicit result for a window with no usable records."""

    feed: str = Field(..., description="'telemetry' or 'billing'")
    message: str
    input_records: int = 0
    skipped_records: int = 0
    has_data: bool = False

    def to_error(self) -> EmptyWindowError:
        return EmptyWindowError(
            self.message,
            feed=self.feed,
            details={
                "input_records": self.input_records,
                "skipped_records": self.skipped_records,
            },
        )


class BreakdownEntity(_Frozen):
    """An entity's counters accumulated over a whole window."""

    group: MetricGroup
    dimension: Dimension
    name: str
    engaged_users: int = 0
    suggestions: int = 0
    acceptances: int = 0
    lines_suggested: int = 0
    lines_accepted: int = 0
    chats: int = 0
    copy_events: int = 0
    insertion_events: int = 0
    pr_summaries: int = 0
    is_custom_model: bool = False
    days_present: int = 0
    acceptance_rate: int = 0
    lines_acceptance_rate: int = 0


class AggregateResult(_Frozen):
    day_count: int
    total_active_users: int = 0
    total_engaged_users: int = 0
    group_engaged_users: Dict[MetricGroup, int] = Field(default_factory=dict)
    total_suggestions: int = 0
    total_acceptances: int = 0
    total_lines_suggested: int = 0
    total_lines_accepted: int = 0
    total_ide_chats: int = 0
    total_dotcom_chats: int = 0
    total_chats: int = 0
    total_copy_events: int = 0
    total_insertion_events: int = 0
    total_pr_summaries: int = 0
    overall_acceptance_rate: int = 0
    lines_acceptance_rate: int = 0
    entities: Dict[MetricGroup, Dict[Dimension, Dict[str, BreakdownEntity]]] = Field(default_factory=dict)
    has_data: bool = True

    def group_entities(self, group: MetricGroup, dimension: Dimension) -> Dict[str, BreakdownEntity]:
        return self.entities.get(group, {}).get(dimension, {})

    def entity(self, group: MetricGroup, dimension: Dimension, name: str) -> Optional[BreakdownEntity]:
        return self.group_entities(group, dimension).get(name)


class DailyMetrics(_Frozen):
    date: datetime.date
    active_users: int = 0
    engaged_users: int = 0
    code_completion_users: int = 0
    ide_chat_users: int = 0
    dotcom_chat_users: int = 0
    pr_summary_users: int = 0
    suggestions: int = 0
    acceptances: int = 0
    lines_suggested: int = 0
    lines_accepted: int = 0
    acceptance_rate: int = 0
    lines_acceptance_rate: int = 0
    ide_chats: int = 0
    dotcom_chats: int = 0
    total_chats: int = 0
    copy_events: int = 0
    insertion_events: int = 0
    pr_summaries: int = 0


class DateRange(_Frozen):
    start_date: datetime.date
    end_date: datetime.date
    start_label: str
    end_label: str
    day_count: int


class RankedEntity(_Frozen):
    rank: int
    group: MetricGroup
    dimension: Dimension
    name: str
    engaged_users: int
    suggestions: int = 0
    acceptances: int = 0
    lines_suggested: int = 0
    lines_accepted: int = 0
    chats: int = 0
    copy_events: int = 0
    insertion_events: int = 0
    pr_summaries: int = 0
    is_custom_model: bool = False
    acceptance_rate: int = 0


class ChatStats(_Frozen):
    total_chats: int = 0
    ide_chats: int = 0
    dotcom_chats: int = 0
    total_copy_events: int = 0
    total_insertion_events: int = 0
    ide_users: int = 0
    dotcom_users: int = 0


class AdoptionRates(_Frozen):
    code_completion: int = 0
    ide_chat: int = 0
    dotcom_chat: int = 0
    pr_summary: int = 0


class FeatureAdoption(_Frozen):
    total_active_users: int = 0
    code_completion_users: int = 0
    ide_chat_users: int = 0
    dotcom_chat_users: int = 0
    pr_summary_users: int = 0
    adoption_rates: AdoptionRates = Field(default_factory=AdoptionRates)


class PullRequestSummary(_Frozen):
    total_engaged_users: int = 0
    total_pr_summaries: int = 0
    repository_count: int = 0
    repository_stats: List[RankedEntity] = Field(default_factory=list)


class ModelCost(_Frozen):
    model: str
    requests: Decimal = Decimal("0")
    included_requests: Decimal = Decimal("0")
    billed_requests: Decimal = Decimal("0")
    gross_amount: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")
    net_amount: Decimal = Decimal("0")
    item_count: int = 0


class PremiumMetrics(_Frozen):
    currency: str = "USD"
    item_count: int = 0
    skipped_records: int = 0
    total_gross_requests: Decimal = Decimal("0")
    total_included_requests: Decimal = Decimal("0")
    total_billed_requests: Decimal = Decimal("0")
    total_gross_amount: Decimal = Decimal("0")
    total_discount_amount: Decimal = Decimal("0")
    total_net_amount: Decimal = Decimal("0")
    model_breakdown: List[ModelCost] = Field(default_factory=list)
    has_data: bool = True


class UsageSummary(_Frozen):
    """Everything the usage dashboard renders for one window."""

    aggregate: AggregateResult
    date_range: DateRange
    latest_day: DailyMetrics
    daily_series: List[DailyMetrics]
    top_languages: List[RankedEntity]
    editor_stats: List[RankedEntity]
    chat_editor_stats: List[RankedEntity]
    model_usage: List[RankedEntity]
    chat_stats: ChatStats
    feature_adoption: FeatureAdoption
    pr_summary: PullRequestSummary
    normalization: NormalizationReport
    has_data: bool = True

"""
Pydantic Validation Models for the Usage Metrics Engine.
Describes the raw telemetry and billing feeds as delivered by the retrieval
collaborators. Every nested group, list and counter may be absent; absent
values default to zero or an empty list so downstream code can assume presence.
"""

import datetime
import logging
from collections.abc import Mapping
from decimal import Decimal
from typing import Optional, List, Any, Union, get_args, get_origin
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

logger = logging.getLogger(__name__)


def _coerce_date(value: Any) -> Any:
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()[:10]
    return value


class _RawModel(BaseModel):
    """Base for raw feed records: unknown keys are ignored, None means zero."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, protected_namespaces=())

    @field_validator("*", mode="before")
    @classmethod
    def none_to_default(cls, value: Any, info) -> Any:
        if value is not None:
            return value
        field = cls.model_fields[info.field_name]
        if field.default_factory is not None:
            return field.default_factory()
        return field.default


_FLAG_STRINGS = {"true", "false", "t", "f", "yes", "no", "y", "n", "on", "off", "1", "0"}


def _field_kind(annotation: Any) -> Any:
    if get_origin(annotation) is Union:
        args = [arg for arg in get_args(annotation) if arg is not type(None)]
        if len(args) == 1:
            annotation = args[0]
    if get_origin(annotation) is list:
        return list
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        return BaseModel
    return annotation


def _is_counter(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return value >= 0
    if isinstance(value, float):
        return value >= 0 and value.is_integer()
    if isinstance(value, str):
        return value.isascii() and value.isdigit()
    return False


def _is_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return True
    if isinstance(value, int):
        return value in (0, 1)
    return isinstance(value, str) and value.strip().lower() in _FLAG_STRINGS


class _RawTelemetryModel(_RawModel):
    """Raw telemetry record whose malformed fields are repaired, not rejected.

    Only a snapshot's date may invalidate a whole day. A field of the wrong
    type or a negative counter is reset to its default and listed in
    ``repaired_fields``; a list element that is not a mapping becomes an
    empty, unnamed entry the normalizer drops.
    """

    repaired_fields: List[str] = Field(default_factory=list, exclude=True)

    @model_validator(mode="before")
    @classmethod
    def repair_fields(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        data = dict(data)
        repaired = []

        for field_name, field in cls.model_fields.items():
            value = data.get(field_name)
            if value is None or field_name in ("date", "repaired_fields"):
                continue
            kind = _field_kind(field.annotation)
            if kind is list:
                if not isinstance(value, (list, tuple)):
                    data[field_name] = None
                    repaired.append(field_name)
                else:
                    data[field_name] = [
                        item if isinstance(item, (Mapping, BaseModel)) else {}
                        for item in value
                    ]
            elif kind is BaseModel:
                if not isinstance(value, (Mapping, BaseModel)):
                    data[field_name] = None
                    repaired.append(field_name)
            elif kind is bool:
                if not _is_flag(value):
                    data[field_name] = None
                    repaired.append(field_name)
            elif kind is int:
                if not _is_counter(value):
                    data[field_name] = None
                    repaired.append(field_name)
            elif kind is str:
                if not isinstance(value, str):
                    data[field_name] = None
                    repaired.append(field_name)

        if repaired:
            data["repaired_fields"] = repaired
        return data


class RawNamedEntry(_RawTelemetryModel):
    name: Optional[str] = Field(default=None, description="Entity name, the merge key")
    total_engaged_users: int = Field(default=0, ge=0)


class RawModelEntry(RawNamedEntry):
    is_custom_model: bool = Field(default=False)
    custom_model_training_date: Optional[str] = Field(default=None)


class RawCompletionLanguage(RawNamedEntry):
    total_code_suggestions: int = Field(default=0, ge=0)
    total_code_acceptances: int = Field(default=0, ge=0)
    total_code_lines_suggested: int = Field(default=0, ge=0)
    total_code_lines_accepted: int = Field(default=0, ge=0)


class RawCompletionModel(RawModelEntry):
    languages: List[RawCompletionLanguage] = Field(default_factory=list)


class RawCompletionEditor(RawNamedEntry):
    models: List[RawCompletionModel] = Field(default_factory=list)


class RawCodeCompletions(_RawTelemetryModel):
    total_engaged_users: int = Field(default=0, ge=0)
    languages: List[RawNamedEntry] = Field(default_factory=list)
    editors: List[RawCompletionEditor] = Field(default_factory=list)


class RawIdeChatModel(RawModelEntry):
    total_chats: int = Field(default=0, ge=0)
    total_chat_insertion_events: int = Field(default=0, ge=0)
    total_chat_copy_events: int = Field(default=0, ge=0)


class RawIdeChatEditor(RawNamedEntry):
    models: List[RawIdeChatModel] = Field(default_factory=list)


class RawIdeChat(_RawTelemetryModel):
    total_engaged_users: int = Field(default=0, ge=0)
    editors: List[RawIdeChatEditor] = Field(default_factory=list)


class RawDotcomChatModel(RawModelEntry):
    total_chats: int = Field(default=0, ge=0)


class RawDotcomChat(_RawTelemetryModel):
    total_engaged_users: int = Field(default=0, ge=0)
    models: List[RawDotcomChatModel] = Field(default_factory=list)


class RawPullRequestModel(RawModelEntry):
    total_pr_summaries_created: int = Field(default=0, ge=0)


class RawPullRequestRepository(RawNamedEntry):
    models: List[RawPullRequestModel] = Field(default_factory=list)


class RawPullRequests(_RawTelemetryModel):
    total_engaged_users: int = Field(default=0, ge=0)
    repositories: List[RawPullRequestRepository] = Field(default_factory=list)


class RawDailySnapshot(_RawTelemetryModel):
    """One day of telemetry exactly as the metrics feed returns it."""

    date: Optional[str] = Field(default=None, description="Calendar day in YYYY-MM-DD format")
    total_active_users: int = Field(default=0, ge=0)
    total_engaged_users: int = Field(default=0, ge=0)
    copilot_ide_code_completions: RawCodeCompletions = Field(default_factory=RawCodeCompletions)
    copilot_ide_chat: RawIdeChat = Field(default_factory=RawIdeChat)
    copilot_dotcom_chat: RawDotcomChat = Field(default_factory=RawDotcomChat)
    copilot_dotcom_pull_requests: RawPullRequests = Field(default_factory=RawPullRequests)

    coerce_date = field_validator("date", mode="before")(_coerce_date)


class RawPremiumUsageItem(_RawModel):
    """One metered premium request line item from the billing feed."""

    date: Optional[str] = Field(default=None)
    model_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("model_name", "modelName", "model"),
    )
    request_count: Decimal = Field(
        default=Decimal("0"),
        validation_alias=AliasChoices("request_count", "requestCount", "grossQuantity"),
    )
    included_requests: Decimal = Field(
        default=Decimal("0"),
        validation_alias=AliasChoices("included_requests", "includedRequests", "discountQuantity"),
    )
    gross_amount: Decimal = Field(
        default=Decimal("0"),
        validation_alias=AliasChoices("gross_amount", "grossAmount"),
    )
    discount_amount: Decimal = Field(
        default=Decimal("0"),
        validation_alias=AliasChoices("discount_amount", "discountAmount"),
    )
    multiplier: Decimal = Field(default=Decimal("1"), ge=0)
    product: Optional[str] = Field(default=None)
    sku: Optional[str] = Field(default=None)
    unit_type: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("unit_type", "unitType"),
    )
    price_per_unit: Optional[Decimal] = Field(
        default=None,
        validation_alias=AliasChoices("price_per_unit", "pricePerUnit"),
    )

    coerce_date = field_validator("date", mode="before")(_coerce_date)


class MetricsConfigInput(BaseModel):
    """Validation model for metrics configuration parameters."""

    top_n: int = Field(
        default=5,
        ge=0,
        description="Default number of entities in ranked lists",
    )
    window_user_statistic: str = Field(
        default="max",
        pattern=r"^(max|latest)$",
        description="Window statistic for active/engaged users",
    )
    unknown_model_key: str = Field(
        default="unknown",
        min_length=1,
        description="Breakdown key for billing items without a model name",
    )
    currency: str = Field(
        default="USD",
        min_length=3,
        max_length=3,
        description="ISO 4217 currency code",
    )
    date_label_format: str = Field(
        default="%Y-%m-%d",
        min_length=1,
        description="strftime format for date range labels",
    )


def validate_premium_items(raw_items: List[Any]) -> tuple[List[RawPremiumUsageItem], List[dict]]:
    """
    Validate a list of raw billing items, returning valid and invalid records.

    Args:
        raw_items: List of billing item dictionaries or RawPremiumUsageItem models.

    Returns:
        Tuple of (valid_items, invalid_items).
    """
    valid = []
    invalid = []

    for idx, item in enumerate(raw_items):
        if isinstance(item, RawPremiumUsageItem):
            valid.append(item)
            continue
        try:
            valid.append(RawPremiumUsageItem.model_validate(item))
        except Exception as exc:
            logger.warning(
                "[VALIDATION] Skipping invalid premium usage item at index %d: %s",
                idx,
                exc,
            )
            invalid.append({"index": idx, "data": item, "error": str(exc)})

    if invalid:
        logger.warning(
            "[VALIDATION] %d of %d premium usage items failed validation",
            len(invalid),
            len(raw_items),
        )

    return valid, invalid

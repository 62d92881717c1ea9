"""
Ingestion Normalizer for Copilot usage telemetry.

Converts raw, partially populated daily snapshots into fully populated
DailySnapshot records. All defaulting happens here, once: downstream stages
receive every metric group, every counter and every entity list, and never
check for absence again.

The nested feed (editors -> models -> languages, repositories -> models) is
flattened per day into one EntityCounts record per (group, dimension, name).
"""

import datetime
import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from error_handling import InvalidSnapshotError, MalformedEntityWarning
from models import (
    DailySnapshot,
    Dimension,
    EntityCounts,
    GroupSnapshot,
    MetricGroup,
    NormalizationReport,
)
from validators import RawDailySnapshot

logger = logging.getLogger(__name__)


class _DayBreakdown:
    """Per-day accumulator for one metric group, keyed by (dimension, name)."""

    def __init__(self, group: MetricGroup, day: str):
        self.group = group
        self.day = day
        self.counts: Dict[Tuple[Dimension, str], Dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self.custom_models: set = set()
        self.warnings: List[MalformedEntityWarning] = []

    def _warn(self, warning: MalformedEntityWarning) -> None:
        logger.warning("[NORMALIZE] %s", warning)
        self.warnings.append(warning)

    def accept(self, dimension: Dimension, entry) -> Optional[Tuple[Dimension, str]]:
        """Merge key of a raw entry, or None when the entry must be dropped."""
        name = entry.name
        if not name or not name.strip():
            self._warn(MalformedEntityWarning(self.group.value, dimension.value, self.day))
            return None
        if entry.repaired_fields:
            self._warn(MalformedEntityWarning(
                self.group.value,
                dimension.value,
                self.day,
                name=name,
                repaired_fields=entry.repaired_fields,
            ))
        return (dimension, name)

    def add(self, key: Tuple[Dimension, str], **counters: int) -> None:
        bucket = self.counts[key]
        for field, value in counters.items():
            bucket[field] += value

    def set_max(self, key: Tuple[Dimension, str], field: str, value: int) -> None:
        bucket = self.counts[key]
        bucket[field] = max(bucket[field], value)

    def snapshot(self, total_engaged_users: int) -> GroupSnapshot:
        entities = [
            EntityCounts(
                group=self.group,
                dimension=dimension,
                name=name,
                is_custom_model=(dimension, name) in self.custom_models,
                **counters,
            )
            for (dimension, name), counters in sorted(self.counts.items())
        ]
        return GroupSnapshot(
            group=self.group,
            total_engaged_users=total_engaged_users,
            entities=entities,
        )


def _parse_day(value: Optional[str], index: Optional[int]) -> datetime.date:
    if not value:
        raise InvalidSnapshotError(
            "Snapshot has no date",
            index=index,
            details={"index": index},
        )
    try:
        return datetime.date.fromisoformat(value[:10])
    except ValueError as exc:
        raise InvalidSnapshotError(
            f"Snapshot date is not a calendar day: {value!r}",
            index=index,
            details={"index": index, "date": value},
        ) from exc


def _normalize_code_completions(raw, day: str) -> Tuple[GroupSnapshot, List[MalformedEntityWarning]]:
    breakdown = _DayBreakdown(MetricGroup.CODE_COMPLETIONS, day)
    top_level_languages = {}

    for language in raw.languages:
        key = breakdown.accept(Dimension.LANGUAGE, language)
        if key is not None:
            top_level_languages[key] = top_level_languages.get(key, 0) + language.total_engaged_users

    nested_language_users = defaultdict(int)
    for editor in raw.editors:
        editor_key = breakdown.accept(Dimension.EDITOR, editor)
        if editor_key is not None:
            breakdown.add(editor_key, engaged_users=editor.total_engaged_users)
        for model in editor.models:
            model_key = breakdown.accept(Dimension.MODEL, model)
            if model_key is not None:
                breakdown.add(model_key, engaged_users=model.total_engaged_users)
                if model.is_custom_model:
                    breakdown.custom_models.add(model_key)
            for language in model.languages:
                counters = {
                    "suggestions": language.total_code_suggestions,
                    "acceptances": language.total_code_acceptances,
                    "lines_suggested": language.total_code_lines_suggested,
                    "lines_accepted": language.total_code_lines_accepted,
                }
                if editor_key is not None:
                    breakdown.add(editor_key, **counters)
                if model_key is not None:
                    breakdown.add(model_key, **counters)
                language_key = breakdown.accept(Dimension.LANGUAGE, language)
                if language_key is None:
                    continue
                breakdown.add(language_key, **counters)
                nested_language_users[language_key] = max(
                    nested_language_users[language_key], language.total_engaged_users
                )

    # Group-level language list is authoritative for engaged users; nested
    # counts only fill in languages missing from it.
    for key, users in top_level_languages.items():
        breakdown.add(key, engaged_users=users)
    for key, users in nested_language_users.items():
        if key not in top_level_languages:
            breakdown.set_max(key, "engaged_users", users)

    return breakdown.snapshot(raw.total_engaged_users), breakdown.warnings


def _normalize_ide_chat(raw, day: str) -> Tuple[GroupSnapshot, List[MalformedEntityWarning]]:
    breakdown = _DayBreakdown(MetricGroup.IDE_CHAT, day)

    for editor in raw.editors:
        editor_key = breakdown.accept(Dimension.EDITOR, editor)
        if editor_key is not None:
            breakdown.add(editor_key, engaged_users=editor.total_engaged_users)
        for model in editor.models:
            counters = {
                "chats": model.total_chats,
                "copy_events": model.total_chat_copy_events,
                "insertion_events": model.total_chat_insertion_events,
            }
            if editor_key is not None:
                breakdown.add(editor_key, **counters)
            model_key = breakdown.accept(Dimension.MODEL, model)
            if model_key is None:
                continue
            breakdown.add(model_key, engaged_users=model.total_engaged_users, **counters)
            if model.is_custom_model:
                breakdown.custom_models.add(model_key)

    return breakdown.snapshot(raw.total_engaged_users), breakdown.warnings


def _normalize_dotcom_chat(raw, day: str) -> Tuple[GroupSnapshot, List[MalformedEntityWarning]]:
    breakdown = _DayBreakdown(MetricGroup.DOTCOM_CHAT, day)

    for model in raw.models:
        model_key = breakdown.accept(Dimension.MODEL, model)
        if model_key is None:
            continue
        breakdown.add(model_key, engaged_users=model.total_engaged_users, chats=model.total_chats)
        if model.is_custom_model:
            breakdown.custom_models.add(model_key)

    return breakdown.snapshot(raw.total_engaged_users), breakdown.warnings


def _normalize_pull_requests(raw, day: str) -> Tuple[GroupSnapshot, List[MalformedEntityWarning]]:
    breakdown = _DayBreakdown(MetricGroup.PULL_REQUESTS, day)

    for repository in raw.repositories:
        repository_key = breakdown.accept(Dimension.REPOSITORY, repository)
        if repository_key is not None:
            breakdown.add(repository_key, engaged_users=repository.total_engaged_users)
        for model in repository.models:
            if repository_key is not None:
                breakdown.add(repository_key, pr_summaries=model.total_pr_summaries_created)
            model_key = breakdown.accept(Dimension.MODEL, model)
            if model_key is None:
                continue
            breakdown.add(
                model_key,
                engaged_users=model.total_engaged_users,
                pr_summaries=model.total_pr_summaries_created,
            )
            if model.is_custom_model:
                breakdown.custom_models.add(model_key)

    return breakdown.snapshot(raw.total_engaged_users), breakdown.warnings


def normalize_snapshot(
    raw: Any,
    index: Optional[int] = None,
) -> Tuple[DailySnapshot, List[MalformedEntityWarning]]:
    """
    Normalize one raw daily snapshot.

    Args:
        raw: Snapshot dictionary as returned by the metrics feed, or a
            RawDailySnapshot model
        index: Position of the record in its window, used in diagnostics

    Returns:
        Tuple of (DailySnapshot, warnings for dropped or repaired entries)

    Raises:
        InvalidSnapshotError: If the snapshot has no usable date or is not a
            snapshot record at all. Malformed nested entries never raise.
    """
    if isinstance(raw, RawDailySnapshot):
        validated = raw
    else:
        try:
            validated = RawDailySnapshot.model_validate(raw)
        except ValidationError as exc:
            raise InvalidSnapshotError(
                f"Snapshot failed validation: {exc}",
                index=index,
                details={"index": index, "error": str(exc)},
            ) from exc

    day = _parse_day(validated.date, index)
    label = day.isoformat()

    warnings: List[MalformedEntityWarning] = []
    if validated.repaired_fields:
        logger.warning(
            "[NORMALIZE] Reset invalid %s of snapshot on %s",
            ", ".join(validated.repaired_fields),
            label,
        )

    groups = {}
    for group, field_name, normalize in (
        (MetricGroup.CODE_COMPLETIONS, "copilot_ide_code_completions", _normalize_code_completions),
        (MetricGroup.IDE_CHAT, "copilot_ide_chat", _normalize_ide_chat),
        (MetricGroup.DOTCOM_CHAT, "copilot_dotcom_chat", _normalize_dotcom_chat),
        (MetricGroup.PULL_REQUESTS, "copilot_dotcom_pull_requests", _normalize_pull_requests),
    ):
        raw_group = getattr(validated, field_name)
        repaired = list(raw_group.repaired_fields)
        if field_name in validated.repaired_fields:
            repaired.append(field_name)
        if repaired:
            warning = MalformedEntityWarning(group.value, None, label, repaired_fields=repaired)
            logger.warning("[NORMALIZE] %s", warning)
            warnings.append(warning)
        groups[group], group_warnings = normalize(raw_group, label)
        warnings.extend(group_warnings)

    snapshot = DailySnapshot(
        date=day,
        total_active_users=validated.total_active_users,
        total_engaged_users=validated.total_engaged_users,
        groups=groups,
    )
    return snapshot, warnings


def normalize_window(raw_snapshots: Iterable[Any]) -> Tuple[List[DailySnapshot], NormalizationReport]:
    """
    Normalize a window of raw snapshots, skipping and counting invalid records.

    Args:
        raw_snapshots: Sequence of raw snapshot records in any order

    Returns:
        Tuple of (normalized snapshots in input order, NormalizationReport)
    """
    snapshots = []
    skipped_reasons = []
    dropped_entities = 0
    input_records = 0

    for idx, raw in enumerate(raw_snapshots):
        input_records += 1
        try:
            snapshot, warnings = normalize_snapshot(raw, index=idx)
        except InvalidSnapshotError as exc:
            logger.warning("[NORMALIZE] Skipping snapshot at index %d: %s", idx, exc)
            skipped_reasons.append(f"index {idx}: {exc}")
            continue
        dropped_entities += len(warnings)
        snapshots.append(snapshot)

    if skipped_reasons or dropped_entities:
        logger.warning(
            "[NORMALIZE] %d of %d snapshots skipped, %d malformed entries dropped or repaired",
            len(skipped_reasons),
            input_records,
            dropped_entities,
        )
    logger.info("[NORMALIZE] Normalized %d snapshots", len(snapshots))

    report = NormalizationReport(
        input_records=input_records,
        skipped_records=len(skipped_reasons),
        dropped_entities=dropped_entities,
        skipped_reasons=skipped_reasons,
    )
    return snapshots, report

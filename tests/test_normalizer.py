"""
Unit tests for the Ingestion Normalizer.
Covers defaulting of absent groups and counters, flattening of the nested
feed, dropped unnamed entities and skipped undated snapshots.
"""

import unittest
import datetime
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from error_handling import InvalidSnapshotError, MalformedEntityWarning
from mock_data import completions_group, language_entry, make_snapshot
from models import Dimension, MetricGroup
from normalizer import normalize_snapshot, normalize_window
from validators import RawDailySnapshot


def _entities(snapshot, group, dimension):
    return {
        entity.name: entity
        for entity in snapshot.group(group).entities
        if entity.dimension == dimension
    }


class TestNormalizeSnapshotDefaults(unittest.TestCase):
    """Absent groups, lists and counters become explicit zeros."""

    def test_date_only_snapshot_is_fully_populated(self):
        snapshot, warnings = normalize_snapshot({"date": "2025-01-03"})
        self.assertEqual(snapshot.date, datetime.date(2025, 1, 3))
        self.assertEqual(snapshot.total_active_users, 0)
        self.assertEqual(snapshot.total_engaged_users, 0)
        self.assertEqual(set(snapshot.groups), set(MetricGroup))
        for group in MetricGroup:
            self.assertEqual(snapshot.group(group).total_engaged_users, 0)
            self.assertEqual(snapshot.group(group).entities, [])
        self.assertEqual(warnings, [])

    def test_null_groups_and_counters_default_to_zero(self):
        raw = {
            "date": "2025-01-03",
            "total_active_users": None,
            "copilot_ide_code_completions": None,
            "copilot_ide_chat": {"total_engaged_users": None, "editors": None},
            "copilot_dotcom_chat": {"models": [{"name": "default", "total_chats": None}]},
        }
        snapshot, _ = normalize_snapshot(raw)
        self.assertEqual(snapshot.total_active_users, 0)
        self.assertEqual(snapshot.group(MetricGroup.CODE_COMPLETIONS).entities, [])
        self.assertEqual(snapshot.group(MetricGroup.IDE_CHAT).entities, [])
        model = _entities(snapshot, MetricGroup.DOTCOM_CHAT, Dimension.MODEL)["default"]
        self.assertEqual(model.chats, 0)
        self.assertEqual(model.engaged_users, 0)

    def test_unknown_keys_are_ignored(self):
        snapshot, _ = normalize_snapshot({"date": "2025-01-03", "copilot_cli": {"total_engaged_users": 4}})
        self.assertEqual(snapshot.total_engaged_users, 0)

    def test_accepts_validated_raw_model_and_date_object(self):
        raw = RawDailySnapshot.model_validate({"date": datetime.date(2025, 2, 1), "total_active_users": 9})
        snapshot, _ = normalize_snapshot(raw)
        self.assertEqual(snapshot.date, datetime.date(2025, 2, 1))
        self.assertEqual(snapshot.total_active_users, 9)


class TestNormalizeSnapshotFlattening(unittest.TestCase):
    """The nested feed is flattened into (group, dimension, name) entities."""

    def setUp(self):
        completions = completions_group(
            {
                "vscode": {
                    "default": [
                        language_entry("python", 100, 40, 300, 90, engaged_users=5),
                        language_entry("go", 10, 5, 20, 10, engaged_users=2),
                    ],
                    "custom-model": [language_entry("python", 50, 10, 100, 20, engaged_users=3)],
                },
                "neovim": {
                    "default": [language_entry("python", 20, 10, 40, 20, engaged_users=1)],
                },
            },
            languages={"python": 7},
            engaged_users=8,
        )
        completions["editors"][0]["models"][1]["is_custom_model"] = True
        raw = make_snapshot(
            "2025-01-03",
            active_users=12,
            engaged_users=9,
            completions=completions,
            ide_chat={
                "total_engaged_users": 4,
                "editors": [{
                    "name": "vscode",
                    "total_engaged_users": 4,
                    "models": [
                        {"name": "default", "total_engaged_users": 3, "total_chats": 10,
                         "total_chat_copy_events": 2, "total_chat_insertion_events": 1},
                        {"name": "gpt-4.1", "total_engaged_users": 1, "total_chats": 5,
                         "total_chat_copy_events": 1, "total_chat_insertion_events": 0},
                    ],
                }],
            },
            pull_requests={
                "total_engaged_users": 2,
                "repositories": [
                    {"name": "navikt/aksel", "total_engaged_users": 2,
                     "models": [{"name": "default", "total_engaged_users": 2, "total_pr_summaries_created": 3}]},
                ],
            },
        )
        self.snapshot, self.warnings = normalize_snapshot(raw)

    def test_language_counts_summed_across_editors_and_models(self):
        python = _entities(self.snapshot, MetricGroup.CODE_COMPLETIONS, Dimension.LANGUAGE)["python"]
        self.assertEqual(python.suggestions, 170)
        self.assertEqual(python.acceptances, 60)
        self.assertEqual(python.lines_suggested, 440)
        self.assertEqual(python.lines_accepted, 130)

    def test_language_users_come_from_group_level_list(self):
        languages = _entities(self.snapshot, MetricGroup.CODE_COMPLETIONS, Dimension.LANGUAGE)
        self.assertEqual(languages["python"].engaged_users, 7)

    def test_nested_only_language_uses_largest_nested_user_count(self):
        languages = _entities(self.snapshot, MetricGroup.CODE_COMPLETIONS, Dimension.LANGUAGE)
        self.assertIn("go", languages)
        self.assertEqual(languages["go"].engaged_users, 2)
        self.assertEqual(languages["go"].suggestions, 10)

    def test_editor_counts_are_sum_of_nested_languages(self):
        editors = _entities(self.snapshot, MetricGroup.CODE_COMPLETIONS, Dimension.EDITOR)
        self.assertEqual(editors["vscode"].suggestions, 160)
        self.assertEqual(editors["vscode"].engaged_users, 8)
        self.assertEqual(editors["neovim"].suggestions, 20)

    def test_model_counts_summed_across_editors(self):
        models = _entities(self.snapshot, MetricGroup.CODE_COMPLETIONS, Dimension.MODEL)
        self.assertEqual(models["default"].suggestions, 130)
        self.assertTrue(models["custom-model"].is_custom_model)
        self.assertFalse(models["default"].is_custom_model)

    def test_same_model_name_stays_separate_per_group(self):
        completion_model = _entities(self.snapshot, MetricGroup.CODE_COMPLETIONS, Dimension.MODEL)["default"]
        chat_model = _entities(self.snapshot, MetricGroup.IDE_CHAT, Dimension.MODEL)["default"]
        pr_model = _entities(self.snapshot, MetricGroup.PULL_REQUESTS, Dimension.MODEL)["default"]
        self.assertEqual(completion_model.chats, 0)
        self.assertEqual(chat_model.chats, 10)
        self.assertEqual(chat_model.suggestions, 0)
        self.assertEqual(pr_model.pr_summaries, 3)

    def test_chat_editor_sums_model_events(self):
        editor = _entities(self.snapshot, MetricGroup.IDE_CHAT, Dimension.EDITOR)["vscode"]
        self.assertEqual(editor.chats, 15)
        self.assertEqual(editor.copy_events, 3)
        self.assertEqual(editor.insertion_events, 1)
        self.assertEqual(editor.engaged_users, 4)

    def test_repository_sums_pr_summaries(self):
        repository = _entities(self.snapshot, MetricGroup.PULL_REQUESTS, Dimension.REPOSITORY)["navikt/aksel"]
        self.assertEqual(repository.pr_summaries, 3)
        self.assertEqual(repository.engaged_users, 2)

    def test_group_totals_preserved(self):
        self.assertEqual(self.snapshot.total_active_users, 12)
        self.assertEqual(self.snapshot.group(MetricGroup.CODE_COMPLETIONS).total_engaged_users, 8)
        self.assertEqual(self.warnings, [])


class TestNormalizeSnapshotAnomalies(unittest.TestCase):
    """Missing dates are fatal for the record; missing names drop the entity."""

    def test_missing_date_raises_invalid_snapshot(self):
        with self.assertRaises(InvalidSnapshotError):
            normalize_snapshot({"total_active_users": 3})

    def test_empty_date_raises_invalid_snapshot(self):
        with self.assertRaises(InvalidSnapshotError):
            normalize_snapshot({"date": ""})

    def test_unparseable_date_raises_invalid_snapshot(self):
        with self.assertRaises(InvalidSnapshotError) as ctx:
            normalize_snapshot({"date": "yesterday"}, index=4)
        self.assertEqual(ctx.exception.index, 4)
        self.assertEqual(ctx.exception.phase, "VALIDATION")

    def test_non_mapping_record_raises_invalid_snapshot(self):
        with self.assertRaises(InvalidSnapshotError):
            normalize_snapshot(["2025-01-01", 12])

    def test_wrong_shape_list_is_reset_not_fatal(self):
        snapshot, warnings = normalize_snapshot({"date": "2025-01-01", "copilot_ide_chat": {"editors": "vscode"}})
        self.assertEqual(snapshot.group(MetricGroup.IDE_CHAT).entities, [])
        self.assertEqual(len(warnings), 1)
        self.assertEqual(warnings[0].group, "ide_chat")
        self.assertIsNone(warnings[0].dimension)
        self.assertEqual(warnings[0].repaired_fields, ["editors"])

    def test_whitespace_name_is_dropped(self):
        raw = make_snapshot("2025-01-03", dotcom_chat={"models": [
            {"name": "   ", "total_chats": 4},
            {"name": "default", "total_chats": 2},
        ]})
        snapshot, warnings = normalize_snapshot(raw)
        models = _entities(snapshot, MetricGroup.DOTCOM_CHAT, Dimension.MODEL)
        self.assertEqual(list(models), ["default"])
        self.assertEqual(len(warnings), 1)

    def test_unnamed_entities_are_dropped_with_warning(self):
        raw = make_snapshot(
            "2025-01-03",
            completions=completions_group(
                {"vscode": {"default": [
                    language_entry(None, 10, 5),
                    language_entry("", 10, 5),
                    language_entry("rust", 4, 1),
                ]}},
            ),
        )
        snapshot, warnings = normalize_snapshot(raw)
        languages = _entities(snapshot, MetricGroup.CODE_COMPLETIONS, Dimension.LANGUAGE)
        self.assertEqual(list(languages), ["rust"])
        self.assertEqual(len(warnings), 2)
        self.assertTrue(all(isinstance(w, MalformedEntityWarning) for w in warnings))
        self.assertEqual(warnings[0].group, "code_completions")
        self.assertEqual(warnings[0].dimension, "language")

    def test_unnamed_editor_still_counts_its_languages(self):
        completions = completions_group({"vscode": {"default": [language_entry("rust", 4, 1)]}})
        completions["editors"][0]["name"] = None
        snapshot, warnings = normalize_snapshot(make_snapshot("2025-01-03", completions=completions))
        self.assertEqual(_entities(snapshot, MetricGroup.CODE_COMPLETIONS, Dimension.EDITOR), {})
        self.assertEqual(_entities(snapshot, MetricGroup.CODE_COMPLETIONS, Dimension.LANGUAGE)["rust"].suggestions, 4)
        self.assertEqual(len(warnings), 1)


class TestNormalizeSnapshotLocalRepairs(unittest.TestCase):
    """A malformed nested entry never costs the rest of the day."""

    def _day(self, dotcom_models):
        return make_snapshot(
            "2025-01-04",
            active_users=6,
            completions=completions_group(
                {"vscode": {"default": [language_entry("python", 100, 30)]}},
                languages={"python": 4},
            ),
            dotcom_chat={"total_engaged_users": 2, "models": dotcom_models},
        )

    def _suggestions(self, snapshot):
        return _entities(snapshot, MetricGroup.CODE_COMPLETIONS, Dimension.LANGUAGE)["python"].suggestions

    def test_null_list_element_is_dropped(self):
        snapshot, warnings = normalize_snapshot(self._day([None, {"name": "default", "total_chats": 5}]))
        self.assertEqual(self._suggestions(snapshot), 100)
        models = _entities(snapshot, MetricGroup.DOTCOM_CHAT, Dimension.MODEL)
        self.assertEqual(list(models), ["default"])
        self.assertEqual(models["default"].chats, 5)
        self.assertEqual(len(warnings), 1)
        self.assertEqual(warnings[0].group, "dotcom_chat")

    def test_non_string_name_is_dropped(self):
        snapshot, warnings = normalize_snapshot(self._day([{"name": 42, "total_chats": 5}]))
        self.assertEqual(self._suggestions(snapshot), 100)
        self.assertEqual(_entities(snapshot, MetricGroup.DOTCOM_CHAT, Dimension.MODEL), {})
        self.assertEqual(len(warnings), 1)

    def test_negative_counter_is_reset_and_entity_kept(self):
        snapshot, warnings = normalize_snapshot(
            self._day([{"name": "gpt-4.1", "total_engaged_users": 2, "total_chats": -1}])
        )
        self.assertEqual(self._suggestions(snapshot), 100)
        model = _entities(snapshot, MetricGroup.DOTCOM_CHAT, Dimension.MODEL)["gpt-4.1"]
        self.assertEqual(model.chats, 0)
        self.assertEqual(model.engaged_users, 2)
        self.assertEqual(len(warnings), 1)
        self.assertEqual(warnings[0].name, "gpt-4.1")
        self.assertEqual(warnings[0].repaired_fields, ["total_chats"])

    def test_invalid_flag_is_reset(self):
        snapshot, warnings = normalize_snapshot(
            self._day([{"name": "custom", "is_custom_model": "perhaps", "total_chats": 3}])
        )
        model = _entities(snapshot, MetricGroup.DOTCOM_CHAT, Dimension.MODEL)["custom"]
        self.assertFalse(model.is_custom_model)
        self.assertEqual(model.chats, 3)
        self.assertEqual(warnings[0].repaired_fields, ["is_custom_model"])

    def test_group_that_is_not_a_mapping_becomes_empty(self):
        raw = self._day([])
        raw["copilot_dotcom_chat"] = "unavailable"
        snapshot, warnings = normalize_snapshot(raw)
        self.assertEqual(self._suggestions(snapshot), 100)
        self.assertEqual(snapshot.group(MetricGroup.DOTCOM_CHAT).entities, [])
        self.assertEqual(len(warnings), 1)
        self.assertEqual(warnings[0].repaired_fields, ["copilot_dotcom_chat"])

    def test_negative_snapshot_totals_are_reset(self):
        raw = self._day([])
        raw["total_active_users"] = -6
        snapshot, warnings = normalize_snapshot(raw)
        self.assertEqual(snapshot.total_active_users, 0)
        self.assertEqual(self._suggestions(snapshot), 100)
        self.assertEqual(warnings, [])

    def test_window_keeps_day_and_counts_malformed_entry(self):
        snapshots, report = normalize_window([self._day([None])])
        self.assertEqual(len(snapshots), 1)
        self.assertEqual(report.skipped_records, 0)
        self.assertEqual(report.dropped_entities, 1)


class TestNormalizeWindow(unittest.TestCase):
    """Window normalization skips and counts invalid records."""

    def test_skips_and_counts_undated_snapshots(self):
        raws = [
            make_snapshot("2025-01-02", active_users=3),
            make_snapshot(None, active_users=5),
            make_snapshot("2025-01-01", active_users=4),
        ]
        snapshots, report = normalize_window(raws)
        self.assertEqual([s.date.isoformat() for s in snapshots], ["2025-01-02", "2025-01-01"])
        self.assertEqual(report.input_records, 3)
        self.assertEqual(report.skipped_records, 1)
        self.assertIn("index 1", report.skipped_reasons[0])

    def test_counts_dropped_entities(self):
        raw = make_snapshot("2025-01-01", dotcom_chat={"models": [{"total_chats": 3}, {"name": "default"}]})
        _, report = normalize_window([raw, raw])
        self.assertEqual(report.dropped_entities, 2)
        self.assertEqual(report.skipped_records, 0)

    def test_empty_window(self):
        snapshots, report = normalize_window([])
        self.assertEqual(snapshots, [])
        self.assertEqual(report.input_records, 0)


if __name__ == '__main__':
    unittest.main()

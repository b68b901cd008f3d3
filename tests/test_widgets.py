"""
Tests for the stateless trackers: severity rules, calculated values,
metadata and tier-dependent behaviour.
"""

from datetime import timedelta

import pytest

from spiral_app.core.errors import LimitReached, ValidationFailed
from spiral_app.modules.coping_logger import CopingLogger
from spiral_app.modules.daily_checkin import DailyCheckin
from spiral_app.modules.mood_tracker import MoodTracker, mood_category
from spiral_app.modules.overthinking_logger import OverthinkingLogger
from spiral_app.modules.sleep_tracker import SleepTracker, sleep_duration_minutes
from spiral_app.modules.trigger_tracker import TriggerTracker


class TestMoodTracker:
    def test_low_mood_is_severe(self, make_context):
        episode = MoodTracker().process_data(
            {"mood": 3, "note": "rough start", "activities": ["work"]}, make_context()
        )
        assert episode.severity == 8
        assert episode.widget_id == "mood-tracker"
        assert episode.data["mood"] == 3

    def test_metadata(self, make_context):
        episode = MoodTracker().process_data(
            {"mood": 8, "note": "good", "activities": ["exercise", "social"]}, make_context()
        )
        meta = episode.episode_metadata
        assert meta["time_of_day"] == "morning"
        assert meta["day_of_week"] == "thursday"
        assert meta["completeness_score"] == 30
        assert meta["mood_category"] == "positive"
        assert meta["ip_address"] == "203.0.113.7"
        assert meta["form_version"] == "1.0.0"

    def test_premium_fields_dropped_for_free_tier(self, make_context):
        episode = MoodTracker().process_data({"mood": 5, "emotions": ["calm"]}, make_context("free"))
        assert "emotions" not in episode.data

        episode = MoodTracker().process_data({"mood": 5, "emotions": ["calm"]}, make_context("silver"))
        assert episode.data["emotions"] == ["calm"]

    def test_missing_mood(self, make_context):
        with pytest.raises(ValidationFailed) as exc:
            MoodTracker().process_data({"note": "?"}, make_context())
        assert exc.value.errors == {"mood": "Please select your mood."}

    @pytest.mark.parametrize("mood,category", [(1, "negative"), (3, "negative"), (4, "neutral"), (6, "neutral"), (7, "positive")])
    def test_mood_category(self, mood, category):
        assert mood_category(mood) == category


class TestSleepTracker:
    def test_duration_across_midnight(self):
        assert sleep_duration_minutes("23:00", "07:00") == 480
        assert sleep_duration_minutes("13:00", "13:45") == 45
        assert sleep_duration_minutes("07:00", "07:00") == 24 * 60

    def test_night_entry(self, make_context):
        episode = SleepTracker().process_data(
            {
                "bedtime": "23:00",
                "wake_time": "07:00",
                "quality_rating": 4,
                "refreshed_level": 7,
                "wake_ups": 1,
                "fall_asleep_time": "15-30",
            },
            make_context(),
        )
        assert episode.severity == 3
        assert episode.data["sleep_type"] == "night"
        assert episode.data["calculated"] == {"duration_minutes": 480, "duration_hours": 8.0}

        meta = episode.episode_metadata
        assert meta["sleep_quality_score"] == 64
        assert meta["sleep_efficiency"] == 96
        assert meta["sleep_debt"] is False
        assert meta["is_weekend"] is False

    def test_short_sleep_is_debt(self, make_context):
        episode = SleepTracker().process_data(
            {"bedtime": "02:00", "wake_time": "06:30", "quality_rating": 1}, make_context()
        )
        assert episode.severity == 9
        assert episode.episode_metadata["sleep_debt"] is True
        assert "sleep_efficiency" not in episode.episode_metadata

    def test_duration_hours_round_half_up(self, make_context):
        episode = SleepTracker().process_data(
            {"bedtime": "23:00", "wake_time": "05:15", "quality_rating": 3}, make_context()
        )
        assert episode.data["calculated"] == {"duration_minutes": 375, "duration_hours": 6.3}

    def test_negative_wake_ups_rejected(self, make_context):
        with pytest.raises(ValidationFailed) as exc:
            SleepTracker().process_data(
                {"bedtime": "23:00", "wake_time": "07:00", "quality_rating": 3, "wake_ups": -1},
                make_context(),
            )
        assert "wake_ups" in exc.value.errors

    def test_bad_time(self, make_context):
        with pytest.raises(ValidationFailed) as exc:
            SleepTracker().process_data(
                {"bedtime": "late", "wake_time": "07:00", "quality_rating": 3}, make_context()
            )
        assert exc.value.errors["bedtime"] == "Bedtime must be a valid time."


class TestCopingLogger:
    BASE = {"skill_category": "breathing", "skill_used": "Box breathing", "effectiveness": 8}

    def test_severity_and_stamp(self, make_context):
        episode = CopingLogger().process_data(dict(self.BASE), make_context())
        assert episode.severity == 3
        calculated = episode.data["calculated"]
        assert calculated["skill_date"] == "2024-03-14"
        assert calculated["skill_time"] == "09:30:00"
        assert calculated["day_of_week"] == "thursday"

    def test_mood_improvement(self, make_context):
        data = dict(self.BASE, mood_before=4, mood_after=7)
        episode = CopingLogger().process_data(data, make_context("silver"))
        assert episode.data["calculated"]["mood_improvement"] == 3
        assert episode.data["calculated"]["mood_improvement_percent"] == 75

    def test_improvement_percent_rounds_half_up(self, make_context):
        data = dict(self.BASE, mood_before=8, mood_after=9)
        episode = CopingLogger().process_data(data, make_context("silver"))
        assert episode.data["calculated"]["mood_improvement_percent"] == 13

    def test_mood_pair_required(self, make_context):
        with pytest.raises(ValidationFailed) as exc:
            CopingLogger().process_data(dict(self.BASE, mood_before=4), make_context("silver"))
        assert "mood_after" in exc.value.errors

    def test_mood_fields_ignored_below_silver(self, make_context):
        episode = CopingLogger().process_data(dict(self.BASE, mood_before=4), make_context("free"))
        assert "mood_before" not in episode.data

    def test_cross_field_errors_reported_with_field_errors(self, make_context):
        data = {"skill_category": "breathing", "effectiveness": 8, "mood_after": 6}
        with pytest.raises(ValidationFailed) as exc:
            CopingLogger().process_data(data, make_context("silver"))
        assert set(exc.value.errors) == {"skill_used", "mood_before"}


class TestOverthinkingLogger:
    def test_quality_score(self, make_context):
        episode = OverthinkingLogger().process_data(
            {"thought": "Did I upset them?", "severity": 7, "trigger": "text message", "category": "relationships"},
            make_context(),
        )
        assert episode.severity == 7
        meta = episode.episode_metadata
        assert meta["quality_score"] == 30
        assert meta["has_reframe"] is False

    def test_full_gold_entry(self, make_context):
        episode = OverthinkingLogger().process_data(
            {
                "thought": "Presentation tomorrow",
                "severity": 6,
                "trigger": "calendar reminder",
                "category": "performance",
                "symptoms": ["tension"],
                "distortions": ["jumping"],
                "reframe": "I have prepared well.",
                "coping_strategy": "breathing",
            },
            make_context("gold"),
        )
        meta = episode.episode_metadata
        assert meta["quality_score"] == 100
        assert meta["has_symptoms"] and meta["has_distortions"] and meta["has_reframe"]

    def test_nothing_yet_does_not_score(self, make_context):
        episode = OverthinkingLogger().process_data(
            {"thought": "x", "severity": 2, "coping_strategy": "none-yet"}, make_context("gold")
        )
        assert episode.episode_metadata["quality_score"] == 0

    def test_required_messages(self, make_context):
        with pytest.raises(ValidationFailed) as exc:
            OverthinkingLogger().process_data({}, make_context())
        assert exc.value.errors["severity"] == "Severity must be between 1 and 10."
        assert "thought" in exc.value.errors


class TestTriggerTracker:
    @staticmethod
    def entry(**overrides):
        data = {
            "trigger_category": "interpersonal",
            "trigger_description": "Argument with my manager about deadlines",
            "intensity": 6,
            "emotional_response": ["anger"],
        }
        data.update(overrides)
        return data

    def test_severity_and_impact(self, make_context):
        episode = TriggerTracker().process_data(
            self.entry(intensity=9, emotional_response=["anger", "fear", "shame", "overwhelm"]),
            make_context(),
        )
        assert episode.severity == 9
        calculated = episode.data["calculated"]
        assert calculated["emotional_count"] == 4
        assert calculated["impact_score"] == 10
        assert calculated["is_recurring"] is False

    def test_recurring_trigger(self, make_context, now):
        tracker = TriggerTracker()
        tracker.process_data(self.entry(), make_context(when=now - timedelta(days=3)))
        episode = tracker.process_data(
            self.entry(trigger_description="ARGUMENT WITH MY MANAGER again"), make_context()
        )
        assert episode.data["calculated"]["is_recurring"] is True

    def test_old_trigger_not_recurring(self, make_context, now):
        tracker = TriggerTracker()
        tracker.process_data(self.entry(), make_context(when=now - timedelta(days=45)))
        episode = tracker.process_data(self.entry(), make_context())
        assert episode.data["calculated"]["is_recurring"] is False

    def test_daily_limit_free(self, make_context, now):
        tracker = TriggerTracker()
        for _ in range(3):
            tracker.process_data(self.entry(), make_context())
        with pytest.raises(LimitReached) as exc:
            tracker.process_data(self.entry(), make_context())
        assert exc.value.code == "daily_limit_reached"
        assert "3" in exc.value.message

        tracker.process_data(self.entry(), make_context(when=now + timedelta(days=1)))

    def test_gold_is_unlimited(self, make_context):
        tracker = TriggerTracker()
        for _ in range(12):
            tracker.process_data(self.entry(), make_context("gold"))

    def test_bronze_inherits_free_limit(self):
        assert TriggerTracker().tier_feature("bronze", "max_daily_entries") == 3

    def test_coping_effectiveness_required_with_response(self, make_context):
        with pytest.raises(ValidationFailed) as exc:
            TriggerTracker().process_data(
                self.entry(coping_response="Went for a walk"), make_context("silver")
            )
        assert "coping_effectiveness" in exc.value.errors

        episode = TriggerTracker().process_data(
            self.entry(coping_response="Went for a walk", coping_effectiveness=4),
            make_context("silver"),
        )
        assert episode.data["coping_effectiveness"] == 4

    def test_emotional_response_required(self, make_context):
        with pytest.raises(ValidationFailed) as exc:
            TriggerTracker().process_data(self.entry(emotional_response=[]), make_context())
        assert exc.value.errors["emotional_response"] == "Please select at least one emotional response."


class TestDailyCheckin:
    def test_severity_and_wellness(self, make_context):
        episode = DailyCheckin().process_data(
            {"overall_mood": 7, "energy_level": 4, "checkin_time": "morning"}, make_context()
        )
        assert episode.severity == 5
        calculated = episode.data["calculated"]
        assert calculated["wellness_score"] == 5.5
        assert calculated["checkin_date"] == "2024-03-14"
        assert calculated["checkin_hour"] == "09"
        assert "symptom_count" not in calculated

    def test_counts(self, make_context):
        episode = DailyCheckin().process_data(
            {
                "overall_mood": 6,
                "energy_level": 6,
                "checkin_time": "evening",
                "symptoms_check": ["fatigue", "anxiety"],
                "self_care": ["exercise", "rest", "nature"],
            },
            make_context("gold"),
        )
        assert episode.data["calculated"]["symptom_count"] == 2
        assert episode.data["calculated"]["selfcare_count"] == 3

    def test_one_checkin_per_day_on_free(self, make_context):
        widget = DailyCheckin()
        data = {"overall_mood": 6, "energy_level": 6, "checkin_time": "morning"}
        widget.process_data(dict(data), make_context())
        with pytest.raises(LimitReached):
            widget.process_data(dict(data), make_context())
        widget.process_data(dict(data), make_context("silver"))

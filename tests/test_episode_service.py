"""
Tests for EpisodeService: access checks, monthly limits, AI usage
accounting, history, deletion, export and analytics.
"""

import csv
import io
import json
from datetime import timedelta

import pytest

from spiral_app.config.constants import OPTION_TIER_LIMITS
from spiral_app.core.episode_service import EpisodeService
from spiral_app.core.errors import AccessDenied, LimitReached, UnknownWidget, ValidationFailed
from spiral_app.persistence.repository import EpisodeEventLogRepository, OptionRepository

MOOD = {"mood": 6, "note": "steady"}


@pytest.fixture
def service(db_session):
    return EpisodeService(db_session)


class TestSaveEpisode:
    def test_saves_and_logs(self, service, db_session, now):
        episode = service.save_episode("mood-tracker", 1, dict(MOOD), now=now, client_ip="198.51.100.4")
        assert episode.id is not None
        assert episode.severity == 5
        assert episode.created_at == now
        assert episode.episode_metadata["ip_address"] == "198.51.100.4"

        logs = EpisodeEventLogRepository(db_session).get_logs_for_user(1)
        assert [log.event_type for log in logs] == ["saved"]
        assert logs[0].episode_id == episode.id
        assert logs[0].tier_at_event == "free"

    def test_requires_user(self, service):
        with pytest.raises(AccessDenied) as exc:
            service.save_episode("mood-tracker", None, dict(MOOD))
        assert exc.value.code == "not_logged_in"

    def test_unknown_widget(self, service):
        with pytest.raises(UnknownWidget):
            service.save_episode("dream-journal", 1, {})

    def test_disabled_widget(self, service):
        service.widget_settings.disable("mood-tracker")
        with pytest.raises(AccessDenied) as exc:
            service.save_episode("mood-tracker", 1, dict(MOOD))
        assert exc.value.code == "widget_disabled"

    def test_widget_outside_tier(self, service, db_session):
        OptionRepository(db_session).set(OPTION_TIER_LIMITS, {"free": {"widgets": ["daily-checkin"]}})
        with pytest.raises(AccessDenied) as exc:
            service.save_episode("mood-tracker", 1, dict(MOOD))
        assert exc.value.code == "tier_required"

    def test_monthly_limit(self, service, set_tier, now):
        set_tier(1, "free", custom_limits={"episodes_per_month": 1})
        service.save_episode("mood-tracker", 1, dict(MOOD), now=now)
        with pytest.raises(LimitReached) as exc:
            service.save_episode("mood-tracker", 1, dict(MOOD), now=now)
        assert exc.value.code == "monthly_limit_reached"

    def test_validation_errors_propagate(self, service):
        with pytest.raises(ValidationFailed):
            service.save_episode("mood-tracker", 1, {"note": "no mood"})

    def test_ai_request_counts_usage(self, service, db_session, set_tier, now):
        set_tier(1, "platinum", custom_limits={"ai_analyses": 1})
        data = dict(MOOD, request_ai_insights="1")

        service.save_episode("mood-tracker", 1, dict(data), now=now)
        assert service.membership.get_usage("ai_analyses", 1, now) == 1

        service.save_episode("mood-tracker", 1, dict(data), now=now)
        assert service.membership.get_usage("ai_analyses", 1, now) == 1

        logs = EpisodeEventLogRepository(db_session).get_logs_for_user(1)
        assert [log.event_metadata["ai_queued"] for log in logs] == [True, False]

    def test_ai_flag_ignored_below_platinum(self, service, now):
        service.save_episode("mood-tracker", 1, dict(MOOD, request_ai_insights=True), now=now)
        assert service.membership.get_usage("ai_analyses", 1, now) == 0


class TestHistory:
    def test_pagination(self, service, now):
        for day in range(3):
            service.save_episode("mood-tracker", 1, dict(MOOD), now=now - timedelta(days=day))

        page, has_more = service.list_episodes(1, "mood-tracker", limit=2)
        assert len(page) == 2
        assert has_more is True
        assert page[0]["created_at"] == now.isoformat()

        page, has_more = service.list_episodes(1, "mood-tracker", limit=2, offset=2)
        assert len(page) == 1
        assert has_more is False

    def test_delete_own_episode(self, service, db_session, now):
        episode = service.save_episode("mood-tracker", 1, dict(MOOD), now=now)
        assert service.delete_episode(1, episode.id) is True
        assert service.list_episodes(1)[0] == []

        logs = EpisodeEventLogRepository(db_session).get_logs_for_user(1)
        assert logs[-1].event_type == "deleted"

    def test_delete_someone_elses_episode(self, service, now):
        episode = service.save_episode("mood-tracker", 1, dict(MOOD), now=now)
        with pytest.raises(AccessDenied):
            service.delete_episode(2, episode.id)

    def test_delete_missing(self, service):
        assert service.delete_episode(1, 999) is False


class TestExport:
    def test_csv(self, service, now):
        service.save_episode("mood-tracker", 1, dict(MOOD), now=now - timedelta(days=1))
        service.save_episode("mood-tracker", 1, {"mood": 2}, now=now)

        rows = list(csv.DictReader(io.StringIO(service.export_csv(1))))
        assert len(rows) == 2
        assert rows[0]["widget_id"] == "mood-tracker"
        assert json.loads(rows[0]["data"])["note"] == "steady"
        assert rows[1]["severity"] == "9"

    def test_csv_not_in_tier(self, service, db_session):
        OptionRepository(db_session).set(
            OPTION_TIER_LIMITS, {"free": {"widgets": "all", "export_formats": []}}
        )
        with pytest.raises(AccessDenied):
            service.export_csv(1)


class TestAnalytics:
    def test_mood_report(self, service, now):
        for offset in range(14):
            mood = 4 if offset >= 7 else 8
            service.save_episode(
                "mood-tracker", 1, {"mood": mood, "energy": 5}, now=now - timedelta(days=offset)
            )

        report = service.analytics(1, "mood-tracker", now=now)
        assert report["summary"]["count"] == 14
        assert report["streaks"]["current"] == 14
        assert report["trend"]["percent_change"] == 100.0
        assert report["mood"]["average_mood"] == 6.0
        assert report["mood"]["categories"]["positive"] == 7

    def test_widget_summary_included(self, service, now):
        service.save_episode(
            "goal-setting",
            1,
            {"action_type": "new_goal", "goal_title": "Read", "motivation": "Calm"},
            now=now,
        )
        report = service.analytics(1, "goal-setting", now=now)
        assert report["widget_summary"]["active_goals"] == 1
        assert "mood" not in report

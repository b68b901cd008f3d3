# spiral_app/core/episode_service.py

"""
EpisodeService coordinates everything around a widget submission:
access checks, monthly limits, the widget pipeline itself, usage
accounting and event logging. It also serves episode history, exports and
per-widget analytics.
"""

import csv
import io
import json
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from spiral_app.config.constants import EPISODE_PAGE_SIZE, USAGE_AI_ANALYSES, USAGE_EPISODES
from spiral_app.core.errors import AccessDenied, LimitReached
from spiral_app.core.fields import to_bool
from spiral_app.core.membership import MembershipManager
from spiral_app.core.registry import WidgetRegistry, WidgetSettings, default_registry
from spiral_app.core.utils import utcnow
from spiral_app.core.widget import Widget, WidgetContext
from spiral_app.modules.logging_tracking import EpisodeEventLogger
from spiral_app.modules.pattern_id import EpisodePatternEngine
from spiral_app.persistence.models import EpisodeModel
from spiral_app.persistence.repository import EpisodeRepository, OptionRepository

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

AI_REQUEST_FIELDS = ("request_ai_insights", "request_ai_analysis")
EXPORT_COLUMNS = ["id", "widget_id", "severity", "created_at", "data", "metadata"]


class EpisodeService:
    """Per-request façade over widgets, membership and episode storage."""

    def __init__(self, db: Session, registry: Optional[WidgetRegistry] = None):
        self.db = db
        self.registry = registry or default_registry()
        self.membership = MembershipManager(db)
        self.widget_settings = WidgetSettings(OptionRepository(db), self.registry)
        self.episodes = EpisodeRepository(db)
        self.event_logger = EpisodeEventLogger(db)
        self.patterns = EpisodePatternEngine()

    # ------------------------------------------------------------------
    # Context and access
    # ------------------------------------------------------------------
    def build_context(
        self,
        user_id: int,
        now: Optional[datetime] = None,
        client_ip: str = "0.0.0.0",
        user_agent: str = "",
    ) -> WidgetContext:
        return WidgetContext(
            self.db,
            user_id=user_id,
            tier=self.membership.get_user_tier(user_id),
            now=now or utcnow(),
            client_ip=client_ip,
            user_agent=user_agent,
        )

    def can_access(self, widget: Widget, user_id: int) -> bool:
        if not self.widget_settings.is_enabled(widget.widget_id):
            return False
        if not self.membership.meets_tier(user_id, widget.min_tier):
            return False
        return self.membership.can_access_widget(widget.widget_id, user_id, self.registry.ids())

    def ensure_access(self, widget: Widget, user_id: Optional[int]):
        if not user_id:
            raise AccessDenied("You must be logged in to use this widget.", code="not_logged_in")
        if not self.widget_settings.is_enabled(widget.widget_id):
            raise AccessDenied("This widget is currently disabled.", code="widget_disabled")
        if not self.can_access(widget, user_id):
            raise AccessDenied(
                "Your membership tier does not include %s." % widget.name,
                code="tier_required",
            )

    def list_widgets(self, user_id: Optional[int] = None) -> List[Dict[str, Any]]:
        configs = []
        for widget in self.registry.all():
            config = widget.get_config()
            config["settings"] = self.widget_settings.get_settings(widget.widget_id)
            config["enabled"] = self.widget_settings.is_enabled(widget.widget_id)
            config["accessible"] = bool(user_id) and self.can_access(widget, user_id)
            configs.append(config)
        return configs

    def get_schema(self, widget_id: str, user_id: Optional[int] = None) -> Dict[str, Any]:
        widget = self.registry.get(widget_id)
        context = self.build_context(user_id) if user_id else None
        tier = context.tier if context else self.membership.get_user_tier(None)
        return {
            "widget": widget.get_config(),
            "tier": tier,
            "fields": widget.get_schema(tier, context),
        }

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------
    def save_episode(
        self,
        widget_id: str,
        user_id: int,
        data: Dict[str, Any],
        now: Optional[datetime] = None,
        client_ip: str = "0.0.0.0",
        user_agent: str = "",
    ) -> EpisodeModel:
        widget = self.registry.get(widget_id)
        self.ensure_access(widget, user_id)
        context = self.build_context(user_id, now, client_ip, user_agent)

        if not self.membership.check_usage_limit(USAGE_EPISODES, user_id, context.now):
            limit = self.membership.get_limit(USAGE_EPISODES, user_id)
            raise LimitReached(
                "You have reached your monthly limit of %s episodes. Upgrade to track more." % limit,
                code="monthly_limit_reached",
            )

        episode = widget.process_data(data, context)

        ai_requested = any(to_bool(episode.data.get(name)) for name in AI_REQUEST_FIELDS)
        ai_queued = False
        if ai_requested:
            if self.membership.check_usage_limit(USAGE_AI_ANALYSES, user_id, context.now):
                self.membership.update_usage(USAGE_AI_ANALYSES, user_id, context.now)
                ai_queued = True
            else:
                logger.info("AI analysis limit reached for user %s", user_id)

        self.event_logger.log_episode_event(
            user_id=user_id,
            widget_id=widget_id,
            event_type="saved",
            episode_id=episode.id,
            severity=episode.severity,
            tier=context.tier,
            event_metadata={"ai_requested": ai_requested, "ai_queued": ai_queued},
            timestamp=context.now,
        )
        logger.info(
            "Saved %s episode %s for user %s (severity %s)",
            widget_id,
            episode.id,
            user_id,
            episode.severity,
        )
        return episode

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------
    def list_episodes(
        self,
        user_id: int,
        widget_id: Optional[str] = None,
        limit: int = EPISODE_PAGE_SIZE,
        offset: int = 0,
    ) -> Tuple[List[Dict[str, Any]], bool]:
        """A page of episodes, newest first, and whether another page may follow."""
        if widget_id:
            self.registry.get(widget_id)
        rows = self.episodes.list_for_user(user_id, widget_id, limit=limit, offset=offset)
        return [row.to_dict() for row in rows], len(rows) == limit

    def delete_episode(self, user_id: int, episode_id: int) -> bool:
        episode = self.episodes.get_episode(episode_id)
        if episode is None:
            return False
        if episode.user_id != user_id:
            raise AccessDenied("You can only delete your own episodes.", code="not_owner")
        widget_id = episode.widget_id
        self.episodes.delete_episode(episode)
        self.event_logger.log_episode_event(
            user_id=user_id, widget_id=widget_id, event_type="deleted", episode_id=episode_id
        )
        return True

    def export_csv(self, user_id: int, widget_id: Optional[str] = None) -> str:
        tier = self.membership.get_user_tier(user_id)
        formats = self.membership.get_tier_limits(tier).get("export_formats", [])
        if "csv" not in formats:
            raise AccessDenied("CSV export is not included in your tier.", code="export_not_allowed")

        rows = self.episodes.list_for_user(user_id, widget_id)
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=EXPORT_COLUMNS)
        writer.writeheader()
        for row in reversed(rows):
            item = row.to_dict()
            writer.writerow(
                {
                    "id": item["id"],
                    "widget_id": item["widget_id"],
                    "severity": item["severity"],
                    "created_at": item["created_at"],
                    "data": json.dumps(item["data"], sort_keys=True),
                    "metadata": json.dumps(item["metadata"], sort_keys=True),
                }
            )
        self.event_logger.log_episode_event(
            user_id=user_id,
            widget_id=widget_id or "all",
            event_type="exported",
            event_metadata={"format": "csv", "rows": len(rows)},
        )
        return buffer.getvalue()

    # ------------------------------------------------------------------
    # Analytics
    # ------------------------------------------------------------------
    def analytics(
        self, user_id: int, widget_id: str, days: int = 30, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        widget = self.registry.get(widget_id)
        context = self.build_context(user_id, now)
        since = context.now - timedelta(days=days)
        episodes = [row.to_dict() for row in self.episodes.list_since(user_id, since, widget_id)]

        report = self.patterns.analyze_episodes(
            episodes,
            today=context.now.date(),
            trend_field=widget.trend_field,
            top_fields=widget.top_fields,
        )
        report["widget_id"] = widget_id
        report["days"] = days
        report["widget_summary"] = widget.user_summary(context)
        if widget.trend_field == "mood":
            report["mood"] = self.patterns.mood_analytics(episodes)
        return report

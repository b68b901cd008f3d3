# spiral_app/core/widget.py

"""
Shared base for every tracking widget.

A widget is mostly data: a field schema with per-field tier gates, a
severity rule and a handful of derived values. The base class runs the
common pipeline (limits, validation, severity, calculated values, per-user
side effects, metadata, persistence) and exposes hooks for the parts that
differ between widgets.
"""

import copy
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from spiral_app.config.constants import (
    BASE_CAPABILITIES,
    DEFAULT_SEVERITY,
    DEFAULT_TIER,
    SEVERITY_MAX,
    SEVERITY_MIN,
    TIER_HIERARCHY,
    UNLIMITED,
    WIDGET_VERSION,
)
from spiral_app.core.errors import LimitReached, ValidationFailed
from spiral_app.core.fields import build_fields, build_schema, tier_level, validate_fields
from spiral_app.core.utils import clamp, day_of_week, day_start, utcnow
from spiral_app.persistence.models import EpisodeModel
from spiral_app.persistence.repository import EpisodeRepository, UserMetaRepository

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class WidgetContext:
    """Who is submitting, when, from where, and the stores a widget may touch."""

    def __init__(
        self,
        db: Session,
        user_id: int,
        tier: str = DEFAULT_TIER,
        now: Optional[datetime] = None,
        client_ip: str = "0.0.0.0",
        user_agent: str = "",
    ):
        self.db = db
        self.user_id = user_id
        self.tier = tier or DEFAULT_TIER
        self.now = now or utcnow()
        self.client_ip = client_ip
        self.user_agent = user_agent
        self.episodes = EpisodeRepository(db)
        self.user_meta = UserMetaRepository(db)


class Widget:
    widget_id: str = ""
    name: str = ""
    description: str = ""
    icon: str = ""
    version: str = WIDGET_VERSION
    min_tier: str = DEFAULT_TIER
    capabilities: List[str] = []
    default_settings: Dict[str, Any] = {}
    field_definitions: Dict[str, Dict[str, Any]] = {}
    tier_features: Dict[str, Dict[str, Any]] = {}

    # Analytics hints: numeric field to trend, list/choice fields to rank
    trend_field: Optional[str] = None
    top_fields: List[str] = []

    def __init__(self):
        self.fields = build_fields(self.field_definitions)

    def __repr__(self):
        return f"<{self.__class__.__name__}(id='{self.widget_id}')>"

    # ------------------------------------------------------------------
    # Description
    # ------------------------------------------------------------------
    def get_config(self) -> Dict[str, Any]:
        return {
            "id": self.widget_id,
            "name": self.name,
            "description": self.description,
            "version": self.version,
            "icon": self.icon,
            "min_tier": self.min_tier,
            "capabilities": self.get_capabilities(),
            "settings": dict(self.default_settings),
        }

    def get_capabilities(self) -> List[str]:
        caps = list(BASE_CAPABILITIES)
        for cap in self.capabilities:
            if cap not in caps:
                caps.append(cap)
        return caps

    def get_schema(
        self, user_tier: str, context: Optional[WidgetContext] = None
    ) -> List[Dict[str, Any]]:
        return build_schema(self.fields_for(context), user_tier)

    def fields_for(self, context: Optional[WidgetContext]) -> Dict[str, Any]:
        """Field specs with per-user option lists filled in."""
        overrides = self.field_options(context) if context is not None else {}
        if not overrides:
            return self.fields
        fields = dict(self.fields)
        for name, options in overrides.items():
            spec = copy.copy(fields[name])
            spec.options = dict(options)
            fields[name] = spec
        return fields

    def tier_feature(self, tier: str, key: str, default: Any = None) -> Any:
        """
        Feature value for ``tier``. Tiers without their own entry inherit
        from the closest lower tier that defines the key.
        """
        level = tier_level(tier)
        ranked = sorted(
            (t for t in self.tier_features if t in TIER_HIERARCHY),
            key=lambda t: TIER_HIERARCHY[t],
            reverse=True,
        )
        for candidate in ranked:
            if TIER_HIERARCHY[candidate] <= level and key in self.tier_features[candidate]:
                return self.tier_features[candidate][key]
        return default

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------
    def field_options(self, context: WidgetContext) -> Dict[str, Dict[str, str]]:
        """Options that depend on the user, e.g. their own medication list."""
        return {}

    def user_summary(self, context: WidgetContext) -> Dict[str, Any]:
        """Widget-specific figures derived from per-user state."""
        return {}

    def check_limits(self, data: Dict[str, Any], context: WidgetContext):
        """Raise LimitReached when the user's tier does not allow this entry."""

    def clean(
        self, validated: Dict[str, Any], data: Dict[str, Any], context: WidgetContext
    ) -> Dict[str, str]:
        """Cross-field checks. Returns extra errors keyed by field name."""
        return {}

    def compute_severity(self, validated: Dict[str, Any], context: WidgetContext) -> Optional[int]:
        return validated.get("severity")

    def calculate(self, validated: Dict[str, Any], context: WidgetContext) -> Dict[str, Any]:
        return {}

    def apply(
        self, validated: Dict[str, Any], calculated: Dict[str, Any], context: WidgetContext
    ):
        """Per-user side effects; may add entries to ``calculated``."""

    def prepare_metadata(
        self, metadata: Dict[str, Any], validated: Dict[str, Any], context: WidgetContext
    ) -> Dict[str, Any]:
        return metadata

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------
    def validate_data(self, data: Dict[str, Any], context: WidgetContext) -> Dict[str, Any]:
        self.check_limits(data or {}, context)
        validated, errors = validate_fields(self.fields_for(context), data or {}, context.tier)
        for name, message in self.clean(validated, data or {}, context).items():
            errors.setdefault(name, message)
        if errors:
            logger.info(
                "Validation failed for %s (user %s): %s",
                self.widget_id,
                context.user_id,
                sorted(errors),
            )
            raise ValidationFailed(errors)
        return validated

    def resolve_severity(self, validated: Dict[str, Any], context: WidgetContext) -> int:
        severity = self.compute_severity(validated, context)
        if severity is None:
            return DEFAULT_SEVERITY
        return int(clamp(int(severity), SEVERITY_MIN, SEVERITY_MAX))

    def build_metadata(self, validated: Dict[str, Any], context: WidgetContext) -> Dict[str, Any]:
        metadata = {
            "ip_address": context.client_ip,
            "user_agent": context.user_agent,
            "form_version": self.version,
        }
        return self.prepare_metadata(metadata, validated, context)

    def process_data(self, data: Dict[str, Any], context: WidgetContext) -> EpisodeModel:
        """Validates, scores and stores one submission. Returns the episode."""
        validated = self.validate_data(data, context)
        severity = self.resolve_severity(validated, context)

        calculated = self.calculate(validated, context)
        self.apply(validated, calculated, context)
        if calculated:
            validated["calculated"] = calculated

        metadata = self.build_metadata(validated, context)
        return context.episodes.create_episode(
            user_id=context.user_id,
            widget_id=self.widget_id,
            severity=severity,
            data=validated,
            metadata=metadata,
            created_at=context.now,
        )

    # ------------------------------------------------------------------
    # Helpers for subclasses
    # ------------------------------------------------------------------
    def count_today(self, context: WidgetContext) -> int:
        return context.episodes.count_since(
            context.user_id, day_start(context.now), widget_id=self.widget_id
        )

    def enforce_count_limit(self, feature: str, current: int, context: WidgetContext, message: str, code: str):
        limit = self.tier_feature(context.tier, feature, UNLIMITED)
        if limit == UNLIMITED:
            return
        if current >= int(limit):
            logger.info(
                "User %s hit %s=%s on %s", context.user_id, feature, limit, self.widget_id
            )
            raise LimitReached(message % int(limit), code=code)

    def stamp(self, context: WidgetContext, prefix: str) -> Dict[str, Any]:
        """Date, time and weekday of the submission under ``prefix``."""
        return {
            "%s_date" % prefix: context.now.strftime("%Y-%m-%d"),
            "%s_time" % prefix: context.now.strftime("%H:%M:%S"),
            "day_of_week": day_of_week(context.now),
        }

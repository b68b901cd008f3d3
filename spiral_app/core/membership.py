# spiral_app/core/membership.py

"""
Membership tiers, usage limits and expirations.

Two ladders live here. Widget and field gating use the paid tier ladder
(free < bronze < silver < gold < platinum). Content blocks use the
membership level ladder (discovery < explorer < navigator < voyager),
stored per user as the ``membership_level`` meta value.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from spiral_app.config.constants import (
    DEFAULT_MEMBERSHIP_LEVEL,
    DEFAULT_TIER_LIMITS,
    MEMBERSHIP_LEVELS,
    MEMBERSHIP_STATUS_EXPIRED,
    OPTION_TIER_LIMITS,
    UNLIMITED,
    USAGE_AI_ANALYSES,
    USAGE_EPISODES,
    VALID_TIERS,
)
from spiral_app.config.settings import settings
from spiral_app.core.fields import tier_level
from spiral_app.core.utils import month_start, utcnow
from spiral_app.modules.logging_tracking import AdminActionLogger
from spiral_app.persistence.models import MembershipModel
from spiral_app.persistence.repository import (
    EpisodeRepository,
    MembershipRepository,
    OptionRepository,
    UserMetaRepository,
)

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

MEMBERSHIP_LEVEL_META = "membership_level"


def usage_key(usage_type: str, now: datetime) -> str:
    """User meta key holding a monthly usage counter."""
    return "usage_%s_%s" % (usage_type, now.strftime("%Y_%m"))


def membership_level_rank(level: Optional[str]) -> int:
    return MEMBERSHIP_LEVELS.get(level or DEFAULT_MEMBERSHIP_LEVEL, 0)


def has_membership_level(user_level: Optional[str], required_level: Optional[str]) -> bool:
    """
    True when ``user_level`` sits at or above ``required_level`` on the
    discovery < explorer < navigator < voyager ladder. An empty requirement
    always passes; unknown levels rank as discovery.
    """
    if not required_level:
        return True
    return membership_level_rank(user_level) >= membership_level_rank(required_level)


class MembershipManager:
    """Tier lookups, usage accounting and expiry handling for one session."""

    def __init__(self, db: Session):
        self.repo = MembershipRepository(db)
        self.episodes = EpisodeRepository(db)
        self.options = OptionRepository(db)
        self.user_meta = UserMetaRepository(db)
        self.audit = AdminActionLogger(db)
        self._cache: Dict[int, Optional[MembershipModel]] = {}

    # ------------------------------------------------------------------
    # Tier lookups
    # ------------------------------------------------------------------
    def get_membership(self, user_id: int) -> Optional[MembershipModel]:
        if user_id not in self._cache:
            self._cache[user_id] = self.repo.get_active(user_id)
        return self._cache[user_id]

    def clear_membership_cache(self, user_id: int):
        self._cache.pop(user_id, None)

    def get_user_tier(self, user_id: Optional[int]) -> str:
        if not user_id:
            return settings.default_tier
        membership = self.get_membership(user_id)
        if membership is None:
            return settings.default_tier
        return membership.tier

    def update_tier(
        self,
        user_id: int,
        tier: str,
        expires_at: Optional[datetime] = None,
        custom_limits: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> MembershipModel:
        """Moves a user to ``tier``, creating the membership row if needed."""
        if tier not in VALID_TIERS:
            raise ValueError("Invalid tier '%s'" % tier)
        now = now or utcnow()

        old_tier = self.get_user_tier(user_id)
        membership = self.repo.get_active(user_id)
        if membership is None:
            membership = self.repo.create_membership(
                user_id, tier, starts_at=now, expires_at=expires_at, custom_limits=custom_limits
            )
        else:
            changes: Dict[str, Any] = {"tier": tier}
            if expires_at is not None:
                changes["expires_at"] = expires_at
            if custom_limits is not None:
                changes["custom_limits"] = custom_limits
            membership = self.repo.update_membership(membership, changes)

        self.clear_membership_cache(user_id)
        self.audit.log_action(
            "tier_updated",
            user_id,
            {"old_tier": old_tier, "new_tier": tier},
            timestamp=now,
        )
        logger.info("User %s tier changed %s -> %s", user_id, old_tier, tier)
        return membership

    def get_capabilities(self, tier: str) -> List[str]:
        caps = []
        if tier in ("gold", "platinum"):
            caps.append("premium_features")
        if tier == "platinum":
            caps.extend(["platinum_features", "unlimited_exports", "unlimited_ai"])
        return caps

    # ------------------------------------------------------------------
    # Limits and usage
    # ------------------------------------------------------------------
    def get_tier_limits(self, tier: str) -> Dict[str, Any]:
        configured = self.options.get(OPTION_TIER_LIMITS, {}) or {}
        limits = configured.get(tier)
        if limits:
            return limits
        return dict(DEFAULT_TIER_LIMITS)

    def get_limit(self, usage_type: str, user_id: int) -> Any:
        """Custom per-membership limit first, then the tier's, else None."""
        membership = self.get_membership(user_id)
        if membership is not None and membership.custom_limits:
            custom = membership.custom_limits.get(usage_type)
            if custom:
                return custom
        limits = self.get_tier_limits(self.get_user_tier(user_id))
        return limits.get(usage_type)

    def check_usage_limit(
        self, usage_type: str, user_id: int, now: Optional[datetime] = None
    ) -> bool:
        if not user_id:
            return False
        limit = self.get_limit(usage_type, user_id)
        if limit is None or limit == UNLIMITED:
            return True
        try:
            limit = int(limit)
        except (TypeError, ValueError):
            logger.warning("Ignoring non-numeric %s limit %r", usage_type, limit)
            return True
        return self.get_usage(usage_type, user_id, now) < limit

    def get_usage(self, usage_type: str, user_id: int, now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        if usage_type == USAGE_EPISODES:
            return self.episodes.count_since(user_id, month_start(now))
        if usage_type == USAGE_AI_ANALYSES:
            return int(self.user_meta.get(user_id, usage_key(usage_type, now), 0) or 0)
        return 0

    def update_usage(
        self, usage_type: str, user_id: int, now: Optional[datetime] = None, amount: int = 1
    ) -> int:
        now = now or utcnow()
        key = usage_key(usage_type, now)
        current = int(self.user_meta.get(user_id, key, 0) or 0) + amount
        self.user_meta.set(user_id, key, current)
        return current

    # ------------------------------------------------------------------
    # Widget access
    # ------------------------------------------------------------------
    def get_tier_widgets(self, tier: str, all_widget_ids: List[str]) -> List[str]:
        widgets = self.get_tier_limits(tier).get("widgets")
        if widgets is None:
            return []
        if widgets == "all":
            return list(all_widget_ids)
        return list(widgets)

    def can_access_widget(self, widget_id: str, user_id: int, all_widget_ids: List[str]) -> bool:
        tier = self.get_user_tier(user_id)
        return widget_id in self.get_tier_widgets(tier, all_widget_ids)

    def meets_tier(self, user_id: int, required_tier: str) -> bool:
        return tier_level(self.get_user_tier(user_id)) >= tier_level(required_tier)

    # ------------------------------------------------------------------
    # Expirations
    # ------------------------------------------------------------------
    def check_expirations(self, now: Optional[datetime] = None) -> List[int]:
        """Expires active memberships past their end date. Returns user ids."""
        now = now or utcnow()
        expired_users = []
        for membership in self.repo.list_expired(now):
            self.repo.update_membership(membership, {"status": MEMBERSHIP_STATUS_EXPIRED})
            self.clear_membership_cache(membership.user_id)
            self.audit.log_action(
                "membership_expired",
                membership.user_id,
                {"tier": membership.tier, "reason": "time_based_expiration"},
                timestamp=now,
            )
            expired_users.append(membership.user_id)

        if expired_users:
            logger.info("Expired %d memberships", len(expired_users))
        return expired_users

    # ------------------------------------------------------------------
    # Content membership level
    # ------------------------------------------------------------------
    def get_membership_level(self, user_id: Optional[int]) -> str:
        if not user_id:
            return DEFAULT_MEMBERSHIP_LEVEL
        level = self.user_meta.get(user_id, MEMBERSHIP_LEVEL_META)
        if level not in MEMBERSHIP_LEVELS:
            return DEFAULT_MEMBERSHIP_LEVEL
        return level

    def set_membership_level(self, user_id: int, level: str):
        if level not in MEMBERSHIP_LEVELS:
            raise ValueError("Invalid membership level '%s'" % level)
        self.user_meta.set(user_id, MEMBERSHIP_LEVEL_META, level)

# spiral_app/persistence/models.py

import logging
from sqlalchemy.orm import declarative_base
from sqlalchemy import Column, Integer, String, DateTime, JSON, UniqueConstraint
from datetime import datetime

logger = logging.getLogger(__name__)

# Base class for SQLAlchemy models
Base = declarative_base()


# --- Episodes ---
class EpisodeModel(Base):
    """One submitted widget entry."""

    __tablename__ = "episodes"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, index=True, nullable=False)
    widget_id = Column(String(50), index=True, nullable=False)
    severity = Column(Integer, nullable=False)
    data = Column(JSON, nullable=False)  # validated fields + "calculated"
    episode_metadata = Column("metadata", JSON, nullable=True)  # ip, user agent, widget extras
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "widget_id": self.widget_id,
            "severity": self.severity,
            "data": self.data or {},
            "metadata": self.episode_metadata or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<EpisodeModel(id={self.id}, user_id={self.user_id}, widget='{self.widget_id}')>"


# --- Memberships ---
class MembershipModel(Base):
    __tablename__ = "memberships"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, index=True, nullable=False)
    tier = Column(String(20), nullable=False, default="free")
    status = Column(String(20), nullable=False, default="active", index=True)
    starts_at = Column(DateTime, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=True, index=True)
    custom_limits = Column(JSON, nullable=True)  # overrides tier limits per usage type
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def __repr__(self):
        return f"<MembershipModel(user_id={self.user_id}, tier='{self.tier}', status='{self.status}')>"


# --- Site-wide options (enabled widgets, tier limits, widget settings) ---
class OptionModel(Base):
    __tablename__ = "options"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(191), unique=True, nullable=False)
    value = Column(JSON, nullable=True)

    def __repr__(self):
        return f"<OptionModel(key='{self.key}')>"


# --- Per-user state (medication lists, goals, usage counters) ---
class UserMetaModel(Base):
    __tablename__ = "user_meta"
    __table_args__ = (UniqueConstraint("user_id", "key", name="uq_user_meta_user_key"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, index=True, nullable=False)
    key = Column(String(191), nullable=False)
    value = Column(JSON, nullable=True)

    def __repr__(self):
        return f"<UserMetaModel(user_id={self.user_id}, key='{self.key}')>"


# --- Episode Event Log ---
class EpisodeEventLog(Base):
    """SQLAlchemy model for logging episode-related events."""

    __tablename__ = "episode_event_logs"

    id = Column(Integer, primary_key=True, index=True)
    episode_id = Column(Integer, index=True, nullable=True)
    user_id = Column(Integer, index=True, nullable=False)
    widget_id = Column(String(50), nullable=False)
    event_type = Column(String, nullable=False)  # e.g., saved, deleted, exported
    timestamp = Column(DateTime, default=datetime.utcnow, index=True)
    severity_at_event = Column(Integer, nullable=True)
    tier_at_event = Column(String(20), nullable=True)
    event_metadata = Column(JSON, nullable=True)

    def __repr__(self):
        return f"<EpisodeEventLog(id={self.id}, episode_id={self.episode_id}, event='{self.event_type}')>"


# --- Admin Action Log ---
class AdminActionLog(Base):
    """Audit trail for membership changes."""

    __tablename__ = "admin_action_logs"

    id = Column(Integer, primary_key=True, index=True)
    action = Column(String(50), nullable=False)  # e.g., tier_updated, membership_expired
    target_user_id = Column(Integer, index=True, nullable=True)
    details = Column(JSON, nullable=True)
    timestamp = Column(DateTime, default=datetime.utcnow, index=True)

    def __repr__(self):
        return f"<AdminActionLog(id={self.id}, action='{self.action}', user={self.target_user_id})>"

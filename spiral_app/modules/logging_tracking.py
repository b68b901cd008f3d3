# spiral_app/modules/logging_tracking.py

import logging
from datetime import datetime
from sqlalchemy.orm import Session
from typing import Optional, Dict, Any

# Import repositories for logging events
from spiral_app.persistence.repository import (
    EpisodeEventLogRepository,
    AdminActionLogRepository,
)

# Configure module logger
logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class EpisodeEventLogger:
    """
    Logs episode events (saved, deleted, exported) with the tier and
    severity in effect at the time. Requires a database session to operate.
    """

    def __init__(self, db: Session):
        self.repo = EpisodeEventLogRepository(db)

    def log_episode_event(
        self,
        user_id: int,
        widget_id: str,
        event_type: str,
        episode_id: Optional[int] = None,
        severity: Optional[int] = None,
        tier: Optional[str] = None,
        event_metadata: Optional[Dict[str, Any]] = None,
        timestamp: Optional[datetime] = None,
    ):
        log_data = {
            "episode_id": episode_id,
            "user_id": user_id,
            "widget_id": widget_id,
            "event_type": event_type,
            "timestamp": timestamp or datetime.utcnow(),
            "severity_at_event": severity,
            "tier_at_event": tier,
            "event_metadata": event_metadata or {},
        }

        try:
            self.repo.create_log(log_data)
        except Exception as e:
            logger.error(
                "Failed to log episode event '%s' for user %s: %s", event_type, user_id, e
            )


class AdminActionLogger:
    """
    Audit trail for membership changes (tier updates, expirations).
    """

    def __init__(self, db: Session):
        self.repo = AdminActionLogRepository(db)

    def log_action(
        self,
        action: str,
        target_user_id: Optional[int],
        details: Optional[Dict[str, Any]] = None,
        timestamp: Optional[datetime] = None,
    ):
        log_data = {
            "action": action,
            "target_user_id": target_user_id,
            "details": details or {},
            "timestamp": timestamp or datetime.utcnow(),
        }

        try:
            self.repo.create_log(log_data)
            logger.info("Admin action '%s' recorded for user %s.", action, target_user_id)
        except Exception as e:
            logger.error(
                "Failed to log admin action '%s' for user %s: %s", action, target_user_id, e
            )

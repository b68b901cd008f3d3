# spiral_app/persistence/repository.py

import copy
import logging
from datetime import datetime
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.exc import SQLAlchemyError
from typing import Optional, Dict, Any, List

from spiral_app.config.constants import MEMBERSHIP_STATUS_ACTIVE

# Import your ORM models
from .models import (
    EpisodeModel,
    MembershipModel,
    OptionModel,
    UserMetaModel,
    EpisodeEventLog,
    AdminActionLog,
)

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


# --- EpisodeRepository ---
class EpisodeRepository:
    """Repository for managing Episode persistence."""

    def __init__(self, db: Session):
        self.db = db

    def create_episode(
        self,
        user_id: int,
        widget_id: str,
        severity: int,
        data: Dict[str, Any],
        metadata: Optional[Dict[str, Any]] = None,
        created_at: Optional[datetime] = None,
    ) -> EpisodeModel:
        """Creates and persists a new episode."""
        model = EpisodeModel(
            user_id=user_id,
            widget_id=widget_id,
            severity=severity,
            data=data,
            episode_metadata=metadata or {},
        )
        if created_at:
            model.created_at = created_at
            model.updated_at = created_at
        try:
            self.db.add(model)
            self.db.commit()
            self.db.refresh(model)
            logger.info(
                "Created %s episode %s for user %s", widget_id, model.id, user_id
            )
            return model
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                "Database error creating %s episode for user %s: %s",
                widget_id,
                user_id,
                e,
            )
            raise

    def get_episode(self, episode_id: int) -> Optional[EpisodeModel]:
        try:
            return self.db.query(EpisodeModel).filter(EpisodeModel.id == episode_id).first()
        except SQLAlchemyError as e:
            logger.error("Database error retrieving episode %s: %s", episode_id, e)
            raise

    def list_for_user(
        self,
        user_id: int,
        widget_id: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[EpisodeModel]:
        """Newest first, optionally restricted to one widget."""
        try:
            query = self.db.query(EpisodeModel).filter(EpisodeModel.user_id == user_id)
            if widget_id:
                query = query.filter(EpisodeModel.widget_id == widget_id)
            query = query.order_by(EpisodeModel.created_at.desc(), EpisodeModel.id.desc())
            if offset:
                query = query.offset(offset)
            if limit is not None:
                query = query.limit(limit)
            return query.all()
        except SQLAlchemyError as e:
            logger.error("Database error listing episodes for user %s: %s", user_id, e)
            raise

    def list_since(
        self, user_id: int, since: datetime, widget_id: Optional[str] = None
    ) -> List[EpisodeModel]:
        """Oldest first, created at or after ``since``."""
        try:
            query = self.db.query(EpisodeModel).filter(
                EpisodeModel.user_id == user_id, EpisodeModel.created_at >= since
            )
            if widget_id:
                query = query.filter(EpisodeModel.widget_id == widget_id)
            return query.order_by(EpisodeModel.created_at.asc()).all()
        except SQLAlchemyError as e:
            logger.error(
                "Database error listing episodes since %s for user %s: %s",
                since,
                user_id,
                e,
            )
            raise

    def count_since(
        self, user_id: int, since: datetime, widget_id: Optional[str] = None
    ) -> int:
        try:
            query = self.db.query(EpisodeModel).filter(
                EpisodeModel.user_id == user_id, EpisodeModel.created_at >= since
            )
            if widget_id:
                query = query.filter(EpisodeModel.widget_id == widget_id)
            return query.count()
        except SQLAlchemyError as e:
            logger.error("Database error counting episodes for user %s: %s", user_id, e)
            raise

    def delete_episode(self, episode: EpisodeModel):
        """Deletes an existing episode from the database."""
        if not episode:
            logger.warning("Attempted to delete a non-existent episode.")
            return

        episode_id = episode.id
        try:
            self.db.delete(episode)
            self.db.commit()
            logger.info("Deleted episode id %s", episode_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Database error deleting episode id %s: %s", episode_id, e)
            raise


# --- MembershipRepository ---
class MembershipRepository:
    """Repository for managing Membership persistence."""

    def __init__(self, db: Session):
        self.db = db

    def get_active(self, user_id: int) -> Optional[MembershipModel]:
        try:
            return (
                self.db.query(MembershipModel)
                .filter(
                    MembershipModel.user_id == user_id,
                    MembershipModel.status == MEMBERSHIP_STATUS_ACTIVE,
                )
                .order_by(MembershipModel.id.desc())
                .first()
            )
        except SQLAlchemyError as e:
            logger.error(
                "Database error retrieving membership for user %s: %s", user_id, e
            )
            raise

    def create_membership(
        self,
        user_id: int,
        tier: str,
        starts_at: datetime,
        expires_at: Optional[datetime] = None,
        custom_limits: Optional[Dict[str, Any]] = None,
    ) -> MembershipModel:
        model = MembershipModel(
            user_id=user_id,
            tier=tier,
            status=MEMBERSHIP_STATUS_ACTIVE,
            starts_at=starts_at,
            expires_at=expires_at,
            custom_limits=custom_limits,
        )
        try:
            self.db.add(model)
            self.db.commit()
            self.db.refresh(model)
            logger.info("Created %s membership for user %s", tier, user_id)
            return model
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                "Database error creating membership for user %s: %s", user_id, e
            )
            raise

    def update_membership(
        self, membership: MembershipModel, changes: Dict[str, Any]
    ) -> MembershipModel:
        for key, value in changes.items():
            setattr(membership, key, value)
        try:
            self.db.commit()
            self.db.refresh(membership)
            logger.info(
                "Updated membership %s for user %s", membership.id, membership.user_id
            )
            return membership
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                "Database error updating membership %s: %s", membership.id, e
            )
            raise

    def list_expired(self, now: datetime) -> List[MembershipModel]:
        """Active memberships whose expiry date has passed."""
        try:
            return (
                self.db.query(MembershipModel)
                .filter(
                    MembershipModel.status == MEMBERSHIP_STATUS_ACTIVE,
                    MembershipModel.expires_at.isnot(None),
                    MembershipModel.expires_at < now,
                )
                .all()
            )
        except SQLAlchemyError as e:
            logger.error("Database error listing expired memberships: %s", e)
            raise


# --- OptionRepository ---
class OptionRepository:
    """Key/value store for site-wide settings."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, key: str, default: Any = None) -> Any:
        try:
            row = self.db.query(OptionModel).filter(OptionModel.key == key).first()
        except SQLAlchemyError as e:
            logger.error("Database error reading option '%s': %s", key, e)
            raise
        if row is None or row.value is None:
            return default
        return copy.deepcopy(row.value)

    def set(self, key: str, value: Any) -> None:
        try:
            row = self.db.query(OptionModel).filter(OptionModel.key == key).first()
            if row is None:
                self.db.add(OptionModel(key=key, value=value))
            else:
                row.value = value
                flag_modified(row, "value")
            self.db.commit()
            logger.info("Stored option '%s'", key)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Database error writing option '%s': %s", key, e)
            raise


# --- UserMetaRepository ---
class UserMetaRepository:
    """Per-user key/value state."""

    def __init__(self, db: Session):
        self.db = db

    def _row(self, user_id: int, key: str) -> Optional[UserMetaModel]:
        return (
            self.db.query(UserMetaModel)
            .filter(UserMetaModel.user_id == user_id, UserMetaModel.key == key)
            .first()
        )

    def get(self, user_id: int, key: str, default: Any = None) -> Any:
        """Returns a copy; callers write changes back with set()."""
        try:
            row = self._row(user_id, key)
        except SQLAlchemyError as e:
            logger.error(
                "Database error reading meta '%s' for user %s: %s", key, user_id, e
            )
            raise
        if row is None or row.value is None:
            return default
        return copy.deepcopy(row.value)

    def set(self, user_id: int, key: str, value: Any) -> None:
        try:
            row = self._row(user_id, key)
            if row is None:
                self.db.add(UserMetaModel(user_id=user_id, key=key, value=value))
            else:
                row.value = value
                flag_modified(row, "value")
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                "Database error writing meta '%s' for user %s: %s", key, user_id, e
            )
            raise


# --- EpisodeEventLogRepository ---
class EpisodeEventLogRepository:
    """Repository for managing EpisodeEventLog persistence."""

    def __init__(self, db: Session):
        self.db = db

    def create_log(self, log_data: Dict[str, Any]) -> Optional[EpisodeEventLog]:
        """Creates a new episode event log entry in the database."""
        if not log_data.get("user_id") or not log_data.get("event_type"):
            logger.error("User ID and Event Type are required for Episode Event Log.")
            return None

        log_entry = EpisodeEventLog(**log_data)
        try:
            self.db.add(log_entry)
            self.db.commit()
            self.db.refresh(log_entry)
            logger.info(
                "Created Episode Event Log entry ID %s for episode %s",
                log_entry.id,
                log_entry.episode_id,
            )
            return log_entry
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                "Database error creating episode event log for user %s: %s",
                log_data.get("user_id"),
                e,
            )
            raise

    def get_logs_for_user(self, user_id: int) -> List[EpisodeEventLog]:
        try:
            return (
                self.db.query(EpisodeEventLog)
                .filter(EpisodeEventLog.user_id == user_id)
                .order_by(EpisodeEventLog.timestamp.asc(), EpisodeEventLog.id.asc())
                .all()
            )
        except SQLAlchemyError as e:
            logger.error("Database error retrieving logs for user %s: %s", user_id, e)
            raise


# --- AdminActionLogRepository ---
class AdminActionLogRepository:
    """Repository for managing AdminActionLog persistence."""

    def __init__(self, db: Session):
        self.db = db

    def create_log(self, log_data: Dict[str, Any]) -> Optional[AdminActionLog]:
        if not log_data.get("action"):
            logger.error("Action is required for Admin Action Log.")
            return None

        log_entry = AdminActionLog(**log_data)
        try:
            self.db.add(log_entry)
            self.db.commit()
            self.db.refresh(log_entry)
            logger.info(
                "Created Admin Action Log entry ID %s (%s)",
                log_entry.id,
                log_entry.action,
            )
            return log_entry
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                "Database error creating admin action log '%s': %s",
                log_data.get("action"),
                e,
            )
            raise

    def get_logs_for_user(self, user_id: int) -> List[AdminActionLog]:
        try:
            return (
                self.db.query(AdminActionLog)
                .filter(AdminActionLog.target_user_id == user_id)
                .order_by(AdminActionLog.timestamp.asc(), AdminActionLog.id.asc())
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(
                "Database error retrieving admin logs for user %s: %s", user_id, e
            )
            raise

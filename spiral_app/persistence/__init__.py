from .database import engine, SessionLocal, get_db
from .models import (
    Base,
    EpisodeModel,
    MembershipModel,
    OptionModel,
    UserMetaModel,
    EpisodeEventLog,
    AdminActionLog,
)
from .repository import (
    EpisodeRepository,
    MembershipRepository,
    OptionRepository,
    UserMetaRepository,
    EpisodeEventLogRepository,
    AdminActionLogRepository,
)


def init_db():
    """
    Initializes the database by creating all tables.
    This should be called at application startup if the schema hasn't been created yet.
    """
    Base.metadata.create_all(bind=engine)


__all__ = [
    "engine",
    "SessionLocal",
    "get_db",
    "Base",
    "EpisodeModel",
    "MembershipModel",
    "OptionModel",
    "UserMetaModel",
    "EpisodeEventLog",
    "AdminActionLog",
    "EpisodeRepository",
    "MembershipRepository",
    "OptionRepository",
    "UserMetaRepository",
    "EpisodeEventLogRepository",
    "AdminActionLogRepository",
    "init_db",
]

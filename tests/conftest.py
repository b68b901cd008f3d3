import pytest
from datetime import datetime

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from spiral_app.core.membership import MembershipManager
from spiral_app.core.widget import WidgetContext
from spiral_app.persistence.models import Base

# Thursday, mid-morning
NOW = datetime(2024, 3, 14, 9, 30)


@pytest.fixture
def db_session():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = Session()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_context(db_session, now):
    """Build a WidgetContext for a user/tier, optionally at another time."""

    def _make(tier="free", user_id=1, when=None):
        return WidgetContext(
            db_session,
            user_id=user_id,
            tier=tier,
            now=when or now,
            client_ip="203.0.113.7",
            user_agent="pytest",
        )

    return _make


@pytest.fixture
def set_tier(db_session, now):
    """Give a user an active membership on the given tier."""

    def _set(user_id, tier, **kwargs):
        return MembershipManager(db_session).update_tier(user_id, tier, now=now, **kwargs)

    return _set


@pytest.fixture
def client(db_session):
    """TestClient whose requests all share the test database session."""
    from fastapi.testclient import TestClient

    from spiral_app.main import app
    from spiral_app.persistence.database import get_db

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()

"""
Pytest configuration and fixtures
"""
import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Add backend directory to path for imports
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

# Tests run against in-memory SQLite; settings are cached, so set env before importing innet
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from innet.core.database import Base, build_engine, get_db  # noqa: E402
from innet.models import ShareLink  # noqa: E402,F401
from innet.services.alias_store import SqlAlchemyAliasStore  # noqa: E402
from innet.services.share_link_service import ShareLinkService  # noqa: E402

FIXED_NOW = datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Controllable replacement for utc_now()"""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(scope="function")
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(scope="function")
def engine():
    """One in-memory database per test; StaticPool keeps it on a single connection"""
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db(engine) -> Session:
    """Create a database session for testing"""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture(scope="function")
def share_service(db, clock) -> ShareLinkService:
    return ShareLinkService(SqlAlchemyAliasStore(db), clock=clock)


@pytest.fixture(scope="function")
def client(db: Session, share_service: ShareLinkService):
    """Create test client with database and clock overrides"""
    from fastapi.testclient import TestClient

    from innet.api.routes.share_links import get_share_link_service
    from innet.main import app

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_share_link_service] = lambda: share_service
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def sample_payload():
    """Payload as the owner's device would build it"""
    return {
        "v": 1,
        "owner": {
            "id": "owner-anna",
            "name": "Анна",
            "avatar": "https://cdn.innet.app/a/anna.png",
            "phone": "+7 900 000-00-00",
            "telegram": "@anna",
        },
        "groups": [
            {
                "id": "g-work",
                "name": "Работа",
                "color": "#0EA5E9",
                "facts": [
                    {"id": "f-1", "text": "Дизайнер"},
                    {"id": "f-2", "text": "Любит кофе"},
                ],
            },
            {
                "id": "g-hobby",
                "name": "Хобби",
                "color": "#22C55E",
                "facts": [{"id": "f-3", "text": "Бегает по утрам"}],
            },
        ],
        "generatedAt": 1740830400000,
    }

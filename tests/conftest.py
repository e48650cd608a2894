"""
Pytest configuration and shared fixtures.

Default environment variables are set here so the suite runs without a
.env file. Settings are reloaded with them before any app module is used.
"""

import os
import tempfile

os.environ.setdefault(
    "DATABASE_URL",
    "sqlite:///" + os.path.join(tempfile.gettempdir(), "social_media_test.db"),
)
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from sqlalchemy.pool import StaticPool

# Clear settings cache before any app imports to ensure test env vars are used
from app.config import get_settings
get_settings.cache_clear()

from app import models  # noqa: F401  registers tables on Base.metadata
from app.services import AccountService, MessageService
from app.storage import Base, StorageGateway, create_db_engine
from sqlalchemy.orm import sessionmaker


@pytest.fixture
def db_engine():
    """Isolated in-memory SQLite engine with the schema applied."""
    engine = create_db_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def gateway(session_factory):
    return StorageGateway(session_factory)


@pytest.fixture
def account_service(gateway):
    return AccountService(gateway)


@pytest.fixture
def message_service(gateway):
    return MessageService(gateway)


@pytest.fixture
def broken_gateway():
    """Gateway over a database without tables: every statement fails."""
    engine = create_db_engine("sqlite://", poolclass=StaticPool)
    yield StorageGateway(sessionmaker(bind=engine))
    engine.dispose()


@pytest.fixture(scope="function")
def client():
    """Create test client with fresh database for each test."""
    from fastapi.testclient import TestClient

    from app.main import app
    from app.storage import engine

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    # Cleanup - drop all tables after test
    Base.metadata.drop_all(bind=engine)

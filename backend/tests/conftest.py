"""
Test configuration and shared fixtures.

Each test gets a fresh in-memory SQLite database (StaticPool keeps the
single connection alive across threads used by TestClient). Redis is a
MagicMock wherever cache or event behaviour is exercised.
"""

import os

# Must be set before slotengine.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_URL"] = ""

from typing import Generator
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from slotengine.database import get_db
from slotengine.dependencies import get_redis
from slotengine.models import Base
from slotengine.services.slots import SlotService

from tests.utils import PROVIDER_ID, RULE_SAVED_ON, make_rule


def _enable_fk(engine):
    @event.listens_for(engine, "connect")
    def enable_sqlite_fk(dbapi_connection, _):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    _enable_fk(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def redis_mock():
    """Redis stand-in: empty cache, every write accepted."""
    redis = MagicMock()
    redis.get.return_value = None
    redis.keys.return_value = []
    redis.delete.return_value = 0
    return redis


@pytest.fixture
def service(db_session):
    return SlotService(db_session)


@pytest.fixture
def service_with_rule(service):
    service.set_rule(PROVIDER_ID, make_rule(), today=RULE_SAVED_ON)
    return service


@pytest.fixture
def client(db_session):
    from slotengine.main import app

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = lambda: None
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def file_db(tmp_path):
    """File-backed SQLite for tests that need real concurrent connections."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'slots.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    _enable_fk(engine)
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()

"""Test configuration and fixtures."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from dataspace_broker.config import Settings
from dataspace_broker.db import audit_models, models  # noqa: F401
from dataspace_broker.db.base import Base
from dataspace_broker.services.artifacts import ArtifactDataBroker

from helpers import FIXED_NOW


@pytest.fixture
def engine():
    """Create a fresh in-memory database shared across sessions."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db_session(session_factory):
    """Create a session on a fresh in-memory database for each test."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def settings():
    return Settings(
        connector_id="https://consumer/connector",
        security_profile="BASE_SECURITY_PROFILE",
        usage_control_enabled=True,
        usage_control_framework="internal",
        allowed_connectors="",
        default_max_access=None,
    )


@pytest.fixture
def broker(db_session, settings):
    return ArtifactDataBroker(db_session, settings=settings, clock=lambda: FIXED_NOW)

"""
Pytest fixtures for testing
"""
from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from tacohut.config import Settings
from tacohut.infrastructure.db.session import Base
from tacohut.infrastructure.analytics.gateway import SqlAlchemyBucketGateway
import tacohut.infrastructure.db.models  # noqa: F401  (register tables)

UTC = timezone.utc


@pytest.fixture
def db_engine():
    """In-memory SQLite engine, one connection shared across threads (TestClient)"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine) -> Session:
    """Create database session for tests"""
    SessionLocal = sessionmaker(bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def settings():
    """Settings pinned for tests (UTC reference zone, daily primary period)"""
    return Settings(
        DATABASE_URL="sqlite://",
        TIMEZONE="UTC",
        AGGREGATION_TIMEOUT_SECONDS=15.0,
        PRIMARY_PERIOD="daily",
    )


@pytest.fixture
def gateway(db_session):
    return SqlAlchemyBucketGateway(db_session, clock=lambda: datetime(2024, 3, 15, 12, 0, tzinfo=UTC))

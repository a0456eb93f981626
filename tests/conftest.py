"""
Global pytest configuration and fixtures.

Provides an isolated in-memory database per test and a FastAPI test client
with database, auth and chat service dependencies overridden.
"""

import os
from typing import Generator

# Settings are read at import time, so the environment must be set first
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

# Register all tables on SQLModel.metadata
import app.models.conversation  # noqa: F401
from app.config import Settings
from app.models.user import User


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from the developer's .env file."""
    return Settings(
        _env_file=None,
        OPENAI_API_KEY="test-key",
        JWT_SECRET="test-secret",
        DATABASE_URL="sqlite://",
    )


@pytest.fixture
def test_database_engine():
    """In-memory database shared across threads for one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def test_database_session(test_database_engine) -> Generator[Session, None, None]:
    with Session(test_database_engine) as session:
        yield session


@pytest.fixture
def sample_user(test_database_session) -> User:
    user = User(name="Test User", email="test-user@example.com")
    test_database_session.add(user)
    test_database_session.commit()
    test_database_session.refresh(user)
    return user

"""Pytest configuration and shared fixtures."""

import os

# Settings are read at import time; point them at an in-memory database first
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app import models  # noqa: F401
from app.db.base import Base
from app.db.session import get_db
from app.main import app
from tests.helpers.seed import create_question, create_quiz

# Configure pytest-asyncio
pytest_plugins = ("pytest_asyncio",)


@pytest.fixture(scope="function")
def engine() -> Generator[Engine, None, None]:
    """In-memory SQLite engine with a fresh schema per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def db(engine: Engine) -> Generator[Session, None, None]:
    """Database session bound to the per-test engine."""
    TestingSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
        expire_on_commit=False,
    )
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db: Session) -> Generator[TestClient, None, None]:
    """Create a FastAPI test client with database dependency override."""

    def override_get_db():
        try:
            yield db
        finally:
            pass  # Don't close the session, it's managed by the db fixture

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def architecture_quiz(db: Session):
    """Scenario D setup: ten single-answer Architecture questions in one quiz."""
    questions = [
        create_question(db, text=f"Architecture question {i}", topic="Architecture", correct=(1,))
        for i in range(10)
    ]
    return create_quiz(db, questions, user_id="user-1")

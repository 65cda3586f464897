"""Tests for settings validation."""

import pytest
from pydantic import ValidationError

from app.core.config import Settings


def test_cors_origins_parsed_from_comma_string():
    s = Settings(CORS_ORIGINS="http://a.test, http://b.test,", _env_file=None)
    assert s.CORS_ORIGINS == ["http://a.test", "http://b.test"]


def test_default_topic_must_be_canonical():
    with pytest.raises(ValidationError):
        Settings(DEFAULT_CANONICAL_TOPIC="Marketing", _env_file=None)


def test_default_quiz_size_cannot_exceed_max():
    with pytest.raises(ValueError):
        Settings(DEFAULT_QUESTIONS_PER_QUIZ=40, MAX_QUESTIONS_PER_QUIZ=30, _env_file=None)


def test_pass_percentage_bounds():
    with pytest.raises(ValidationError):
        Settings(DEFAULT_PASS_PERCENTAGE=101, _env_file=None)


def test_prod_requires_database_url():
    with pytest.raises(ValueError):
        Settings(ENV="prod", DATABASE_URL="sqlite:///./quiz.db", _env_file=None)

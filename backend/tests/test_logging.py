"""Tests for the JSON log format and request logging."""

import json
import logging

from fastapi.testclient import TestClient

from app.core.logging import CustomJsonFormatter
from tests.helpers.seed import create_question, create_quiz


def make_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("app.services.quiz_completion", logging.INFO, __file__, 1, "Quiz %s done", ("q1",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_emits_standard_fields():
    formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(logger)s")
    payload = json.loads(formatter.format(make_record(event="quiz_completed", quiz_id="q1")))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "app.services.quiz_completion"
    assert payload["msg"] == "Quiz q1 done"
    assert payload["event"] == "quiz_completed"
    assert payload["quiz_id"] == "q1"
    assert "message" not in payload


def test_formatter_defaults_event():
    formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(logger)s")
    payload = json.loads(formatter.format(make_record()))
    assert payload["event"] == "log"


def test_request_log_carries_quiz_id(client: TestClient, db, caplog):
    quiz = create_quiz(db, [create_question(db)])

    with caplog.at_level(logging.INFO, logger="app.common.request_id"):
        response = client.get(f"/v1/quizzes/{quiz.id}", headers={"X-Request-ID": "req-42"})

    assert response.status_code == 200
    completed = [r for r in caplog.records if r.getMessage() == "Request completed"]
    assert completed[-1].request_id == "req-42"
    assert completed[-1].quiz_id == quiz.id
    assert completed[-1].status_code == 200

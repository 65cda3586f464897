"""Tests for the SQL-backed quiz store."""

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from app.core.app_exceptions import AlreadyCompletedError, NotFoundError, PersistenceError
from app.models.quiz import Quiz, QuizQuestion, TopicPerformance
from app.scoring.types import Complete, Incomplete, TopicPerformanceEntry
from app.services.quiz_store import SqlQuizStore
from tests.helpers.seed import create_question, create_quiz


@pytest.mark.asyncio
async def test_snapshot_reflects_questions_and_state(db):
    questions = [
        create_question(db, topic="Architecture", correct=(2,)),
        create_question(db, topic=None, correct=(1, 3)),
    ]
    quiz = create_quiz(db, questions, user_id="user-7")
    store = SqlQuizStore(db)

    snapshot = await store.get_quiz_by_id(quiz.id)

    assert snapshot.user_id == "user-7"
    assert isinstance(snapshot.state, Incomplete)
    assert snapshot.is_completed is False
    assert [slot.position for slot in snapshot.questions] == [1, 2]
    first, second = (slot.question for slot in snapshot.questions)
    assert [o.is_correct for o in first.options] == [False, True, False, False]
    assert second.topic is None
    assert second.has_multiple_correct_answers is True
    assert snapshot.stored_outcomes == {}


@pytest.mark.asyncio
async def test_missing_quiz_returns_none(db):
    assert await SqlQuizStore(db).get_quiz_by_id("does-not-exist") is None


@pytest.mark.asyncio
async def test_upsert_records_outcome(db):
    question = create_question(db)
    quiz = create_quiz(db, [question])
    store = SqlQuizStore(db)

    await store.upsert_question_outcome(quiz.id, question.id, None, False)
    snapshot = await store.get_quiz_by_id(quiz.id)

    outcome = snapshot.stored_outcomes[question.id]
    assert outcome.option_id is None
    assert outcome.is_correct is False


@pytest.mark.asyncio
async def test_upsert_maps_database_errors(db, monkeypatch):
    question = create_question(db)
    quiz = create_quiz(db, [question])
    store = SqlQuizStore(db)

    def broken_commit():
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(db, "commit", broken_commit)

    with pytest.raises(PersistenceError) as exc_info:
        await store.upsert_question_outcome(quiz.id, question.id, None, True)

    assert exc_info.value.code == "PERSISTENCE_ERROR"
    assert exc_info.value.details["question_id"] == question.id


@pytest.mark.asyncio
async def test_complete_quiz_is_one_way(db):
    question = create_question(db)
    quiz = create_quiz(db, [question])
    store = SqlQuizStore(db)
    entries = [TopicPerformanceEntry(topic="Architecture", correct=1, total=1, percentage=100)]

    completed_at = await store.complete_quiz(quiz.id, 100, entries)

    snapshot = await store.get_quiz_by_id(quiz.id)
    assert isinstance(snapshot.state, Complete)
    assert snapshot.state.score == 100
    assert completed_at is not None

    # A second (racing) completion loses and writes no extra rows
    with pytest.raises(AlreadyCompletedError):
        await store.complete_quiz(quiz.id, 0, entries)

    rows = db.execute(select(TopicPerformance).where(TopicPerformance.quiz_id == quiz.id)).scalars().all()
    assert len(rows) == 1


@pytest.mark.asyncio
async def test_complete_missing_quiz(db):
    with pytest.raises(NotFoundError):
        await SqlQuizStore(db).complete_quiz("missing", 10, [])


@pytest.mark.asyncio
async def test_upsert_inserts_row_when_absent(db):
    first = create_question(db)
    extra = create_question(db)
    quiz = create_quiz(db, [first])
    store = SqlQuizStore(db)

    await store.upsert_question_outcome(quiz.id, extra.id, None, True)

    rows = (
        db.execute(select(QuizQuestion).where(QuizQuestion.quiz_id == quiz.id).order_by(QuizQuestion.position))
        .scalars()
        .all()
    )
    assert [(r.question_id, r.position) for r in rows] == [(first.id, 1), (extra.id, 2)]


@pytest.mark.asyncio
async def test_failed_completion_leaves_quiz_incomplete(db):
    question = create_question(db)
    quiz = create_quiz(db, [question])
    store = SqlQuizStore(db)
    entries = [
        TopicPerformanceEntry(topic="Architecture", correct=1, total=1, percentage=100),
        TopicPerformanceEntry(topic="Assets", correct=0, total=1, percentage=None),
    ]

    with pytest.raises(PersistenceError) as exc_info:
        await store.complete_quiz(quiz.id, 50, entries)
    assert exc_info.value.details == {"quiz_id": quiz.id}

    # Score, flag and topic rows are written together or not at all
    state = db.execute(select(Quiz.is_completed, Quiz.score, Quiz.completed_at).where(Quiz.id == quiz.id)).one()
    assert tuple(state) == (False, None, None)
    rows = db.execute(select(TopicPerformance).where(TopicPerformance.quiz_id == quiz.id)).scalars().all()
    assert rows == []

    snapshot = await store.get_quiz_by_id(quiz.id)
    assert isinstance(snapshot.state, Incomplete)

    # The quiz can still be completed afterwards
    await store.complete_quiz(quiz.id, 100, entries[:1])
    assert isinstance((await store.get_quiz_by_id(quiz.id)).state, Complete)

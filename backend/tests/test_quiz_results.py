"""Tests for quiz results, history and user statistics."""

from datetime import UTC, datetime

import pytest

from app.core.app_exceptions import NotFoundError, QuizNotCompletedError
from app.scoring.types import SubmittedAnswer
from app.services.quiz_completion import QuizCompletionService
from app.services.quiz_results import (
    format_duration,
    get_quiz_history,
    get_quiz_results,
    get_user_stats,
    get_user_topic_performance,
)
from app.services.quiz_store import SqlQuizStore
from tests.helpers.seed import create_question, create_quiz


@pytest.mark.parametrize(
    "seconds,expected",
    [
        (0, "00:00:00"),
        (59, "00:00:59"),
        (3725, "01:02:05"),
        (90000, "25:00:00"),
    ],
)
def test_format_duration(seconds, expected):
    start = datetime(2026, 1, 1, tzinfo=UTC)
    end = datetime.fromtimestamp(start.timestamp() + seconds, tz=UTC)
    assert format_duration(start, end) == expected


def test_format_duration_mixes_naive_and_aware():
    start = datetime(2026, 1, 1, 10, 0, 0)
    end = datetime(2026, 1, 1, 10, 1, 30, tzinfo=UTC)
    assert format_duration(start, end) == "00:01:30"


async def finish_quiz(db, topics, correct_flags, user_id="user-1"):
    """Create a quiz over fresh questions and complete it with the given correctness."""
    questions = [create_question(db, topic=topic, correct=(1,)) for topic in topics]
    quiz = create_quiz(db, questions, user_id=user_id)
    answers = [
        SubmittedAnswer(str(q.id), ("1" if ok else "2",)) for q, ok in zip(questions, correct_flags)
    ]
    await QuizCompletionService(SqlQuizStore(db)).submit_answers(quiz.id, answers, mark_complete=True)
    return quiz, questions


@pytest.mark.asyncio
async def test_results_for_completed_quiz(db):
    quiz, questions = await finish_quiz(
        db,
        ["Architecture", "Architecture", "Access Control", "Access Control"],
        [True, True, True, False],
    )

    results = await get_quiz_results(db, quiz.id)

    assert results["score"] == 75
    assert results["passed"] is True
    assert results["total_questions"] == 4
    assert results["correct_answers"] == 3
    assert results["duration"].count(":") == 2
    assert [q["correct_answer_index"] for q in results["questions"]] == [1, 1, 1, 1]
    assert results["questions"][3]["is_correct"] is False
    assert results["topic_scores"] == [
        {"name": "Architecture", "score": 2, "possible": 2, "weight": 0.5},
        {"name": "Access", "score": 1, "possible": 2, "weight": 0.5},
    ]


@pytest.mark.asyncio
async def test_results_require_completion(db):
    quiz = create_quiz(db, [create_question(db)])

    with pytest.raises(QuizNotCompletedError):
        await get_quiz_results(db, quiz.id)
    with pytest.raises(NotFoundError):
        await get_quiz_results(db, "missing")


@pytest.mark.asyncio
async def test_user_stats_and_topic_performance(db):
    # 2/2 Architecture -> 100%, then 1/4 Architecture -> 25%
    await finish_quiz(db, ["Architecture"] * 2, [True, True])
    await finish_quiz(db, ["Architecture"] * 4, [True, False, False, False])
    create_quiz(db, [create_question(db)])  # still open
    await finish_quiz(db, ["Architecture"], [True], user_id="someone-else")

    stats = await get_user_stats(db, "user-1")

    assert stats["total_quizzes"] == 3
    assert stats["completed_quizzes"] == 2
    assert stats["average_score"] == 63  # mean of 100 and 25, rounded half up
    assert stats["pass_rate"] == 50
    assert len(stats["recent_quizzes"]) == 3

    topics = await get_user_topic_performance(db, "user-1")
    # Percentage is the mean of per-quiz percentages, not 3/6
    assert topics == [{"topic": "Architecture", "correct": 3, "total": 6, "percentage": 63}]


@pytest.mark.asyncio
async def test_history_marks_passed_only_for_completed(db):
    await finish_quiz(db, ["Architecture"], [True])
    create_quiz(db, [create_question(db)])

    history = await get_quiz_history(db, "user-1")

    assert len(history) == 2
    assert {item["passed"] for item in history} == {True, None}


@pytest.mark.asyncio
async def test_stats_for_unknown_user(db):
    stats = await get_user_stats(db, "nobody")
    assert stats["total_quizzes"] == 0
    assert stats["average_score"] == 0
    assert stats["pass_rate"] == 0
    assert stats["topic_performance"] == []

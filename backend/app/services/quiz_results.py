"""Quiz read models: quiz detail, results, history and per-user statistics."""

from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.core.app_exceptions import NotFoundError, QuizNotCompletedError
from app.models.quiz import Question, Quiz, QuizQuestion, TopicPerformance
from app.scoring.aggregator import percentage

HISTORY_LIMIT = 20


def load_quiz(db: Session, quiz_id: str) -> Quiz:
    """
    Load a quiz with questions, options and topic performance.

    Raises:
        NotFoundError: If the quiz does not exist
    """
    stmt = (
        select(Quiz)
        .where(Quiz.id == quiz_id)
        .options(
            selectinload(Quiz.questions)
            .selectinload(QuizQuestion.question)
            .selectinload(Question.options),
            selectinload(Quiz.topic_performance),
        )
        .execution_options(populate_existing=True)
    )
    quiz = db.execute(stmt).scalar_one_or_none()
    if quiz is None:
        raise NotFoundError("Quiz not found", {"quiz_id": quiz_id})
    return quiz


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def format_duration(started_at: datetime, finished_at: datetime) -> str:
    """Elapsed time as hh:mm:ss (hours may exceed 24)."""
    seconds = max(0, int((_as_utc(finished_at) - _as_utc(started_at)).total_seconds()))
    hours, rest = divmod(seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def _rounded_mean(values: list[int]) -> int:
    """Mean rounded half up, 0 for no values."""
    if not values:
        return 0
    return (2 * sum(values) + len(values)) // (2 * len(values))


def correct_answer_index(quiz_question: QuizQuestion) -> int | None:
    """1-based position of the first correct option."""
    for position, option in enumerate(
        sorted(quiz_question.question.options, key=lambda o: o.position), start=1
    ):
        if option.is_correct:
            return position
    return None


def _topic_rows(quiz: Quiz) -> list[dict]:
    return [
        {
            "topic": row.topic,
            "correct": row.correct,
            "total": row.total,
            "percentage": row.percentage,
        }
        for row in quiz.topic_performance
    ]


async def get_quiz_results(db: Session, quiz_id: str) -> dict:
    """
    Results of a completed quiz.

    Topic scores weigh each topic by its share of the quiz's questions.

    Raises:
        NotFoundError: If the quiz does not exist
        QuizNotCompletedError: If the quiz is still in progress
    """
    quiz = load_quiz(db, quiz_id)
    if not quiz.is_completed:
        raise QuizNotCompletedError(quiz_id)

    num_questions = quiz.num_questions or len(quiz.questions)
    questions = [
        {
            "question_id": qq.question_id,
            "question": qq.question.question,
            "user_answer": qq.user_answer,
            "is_correct": qq.is_correct,
            "correct_answer_index": correct_answer_index(qq),
            "explanation": qq.question.explanation or "",
        }
        for qq in quiz.questions
    ]
    topic_scores = [
        {
            "name": row.topic,
            "score": row.correct,
            "possible": row.total,
            "weight": row.total / num_questions if num_questions else 0.0,
        }
        for row in quiz.topic_performance
    ]

    return {
        "quiz_id": quiz.id,
        "score": quiz.score,
        "pass_percentage": quiz.pass_percentage,
        "passed": quiz.score >= quiz.pass_percentage,
        "total_questions": num_questions,
        "correct_answers": sum(1 for qq in quiz.questions if qq.is_correct),
        "duration": format_duration(quiz.created_at, quiz.completed_at),
        "completed_at": quiz.completed_at,
        "questions": questions,
        "topic_performance": _topic_rows(quiz),
        "topic_scores": topic_scores,
    }


def _history_item(quiz: Quiz) -> dict:
    return {
        "id": quiz.id,
        "num_questions": quiz.num_questions,
        "is_completed": quiz.is_completed,
        "score": quiz.score,
        "passed": quiz.score >= quiz.pass_percentage if quiz.is_completed else None,
        "pass_percentage": quiz.pass_percentage,
        "created_at": quiz.created_at,
        "completed_at": quiz.completed_at,
    }


async def get_quiz_history(db: Session, user_id: str, limit: int = HISTORY_LIMIT) -> list[dict]:
    """A user's most recent quizzes, newest first."""
    quizzes = (
        db.execute(
            select(Quiz)
            .where(Quiz.user_id == user_id)
            .order_by(Quiz.created_at.desc(), Quiz.id)
            .limit(limit)
        )
        .scalars()
        .all()
    )
    return [_history_item(quiz) for quiz in quizzes]


async def get_user_topic_performance(db: Session, user_id: str) -> list[dict]:
    """
    Topic performance across all of a user's completed quizzes.

    correct and total are summed; percentage is the mean of the per-quiz
    percentages, so every quiz weighs the same regardless of its size.
    """
    rows = db.execute(
        select(TopicPerformance)
        .join(Quiz, Quiz.id == TopicPerformance.quiz_id)
        .where(Quiz.user_id == user_id, Quiz.is_completed.is_(True))
        .order_by(TopicPerformance.id)
    ).scalars()

    buckets: dict[str, dict] = {}
    for row in rows:
        bucket = buckets.setdefault(row.topic, {"correct": 0, "total": 0, "percentages": []})
        bucket["correct"] += row.correct
        bucket["total"] += row.total
        bucket["percentages"].append(row.percentage)

    return [
        {
            "topic": topic,
            "correct": bucket["correct"],
            "total": bucket["total"],
            "percentage": _rounded_mean(bucket["percentages"]),
        }
        for topic, bucket in buckets.items()
    ]


async def get_user_stats(db: Session, user_id: str) -> dict:
    """Totals, average score, pass rate and topic performance for one user."""
    quizzes = (
        db.execute(select(Quiz).where(Quiz.user_id == user_id).order_by(Quiz.created_at.desc()))
        .scalars()
        .all()
    )
    completed = [quiz for quiz in quizzes if quiz.is_completed]
    passed = sum(1 for quiz in completed if quiz.score >= quiz.pass_percentage)

    return {
        "user_id": user_id,
        "total_quizzes": len(quizzes),
        "completed_quizzes": len(completed),
        "average_score": _rounded_mean([quiz.score for quiz in completed]),
        "pass_rate": percentage(passed, len(completed)),
        "recent_quizzes": [_history_item(quiz) for quiz in quizzes[:HISTORY_LIMIT]],
        "topic_performance": await get_user_topic_performance(db, user_id),
    }

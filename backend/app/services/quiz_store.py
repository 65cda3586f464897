"""Quiz store: persistence boundary for the completion orchestrator."""

import logging
from datetime import UTC, datetime
from typing import Protocol

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from app.core.app_exceptions import AlreadyCompletedError, NotFoundError, PersistenceError
from app.models.quiz import Question, Quiz, QuizQuestion, TopicPerformance
from app.scoring.types import (
    Complete,
    Incomplete,
    OptionSnapshot,
    QuestionOutcome,
    QuestionSnapshot,
    QuizQuestionSnapshot,
    QuizSnapshot,
    TopicPerformanceEntry,
)

logger = logging.getLogger(__name__)


def question_snapshot(question: Question) -> QuestionSnapshot:
    """Freeze an ORM question (options in display order) for scoring."""
    difficulty = question.difficulty
    return QuestionSnapshot(
        id=question.id,
        text=question.question,
        options=tuple(
            OptionSnapshot(id=option.id, text=option.text, is_correct=bool(option.is_correct))
            for option in sorted(question.options, key=lambda o: o.position)
        ),
        topic=question.topic,
        difficulty=getattr(difficulty, "value", difficulty) or "medium",
        has_multiple_correct_answers=bool(question.has_multiple_correct_answers),
        correct_answers=tuple(question.correct_answers or ()),
    )


def quiz_snapshot(quiz: Quiz) -> QuizSnapshot:
    """Freeze an ORM quiz with its question slots and stored outcomes."""
    if quiz.is_completed:
        state = Complete(score=quiz.score, completed_at=quiz.completed_at)
    else:
        state = Incomplete()

    slots = []
    for quiz_question in quiz.questions:
        outcome = None
        if quiz_question.is_correct is not None:
            outcome = QuestionOutcome(
                quiz_id=quiz.id,
                question_id=quiz_question.question_id,
                option_id=quiz_question.user_answer,
                is_correct=quiz_question.is_correct,
            )
        slots.append(
            QuizQuestionSnapshot(
                position=quiz_question.position,
                question=question_snapshot(quiz_question.question),
                outcome=outcome,
            )
        )

    return QuizSnapshot(
        id=quiz.id,
        user_id=quiz.user_id,
        pass_percentage=quiz.pass_percentage,
        state=state,
        questions=tuple(slots),
        created_at=quiz.created_at,
    )


class QuizStore(Protocol):
    """Persistence operations the completion orchestrator depends on."""

    async def get_quiz_by_id(self, quiz_id: str) -> QuizSnapshot | None: ...

    async def upsert_question_outcome(
        self,
        quiz_id: str,
        question_id: int,
        option_id: int | None,
        is_correct: bool,
    ) -> None: ...

    async def complete_quiz(
        self,
        quiz_id: str,
        score: int,
        topic_performance: list[TopicPerformanceEntry],
    ) -> datetime: ...


class SqlQuizStore:
    """QuizStore backed by a SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    async def get_quiz_by_id(self, quiz_id: str) -> QuizSnapshot | None:
        stmt = (
            select(Quiz)
            .where(Quiz.id == quiz_id)
            .options(
                selectinload(Quiz.questions)
                .selectinload(QuizQuestion.question)
                .selectinload(Question.options)
            )
            .execution_options(populate_existing=True)
        )
        quiz = self.db.execute(stmt).scalar_one_or_none()
        if quiz is None:
            return None
        return quiz_snapshot(quiz)

    async def upsert_question_outcome(
        self,
        quiz_id: str,
        question_id: int,
        option_id: int | None,
        is_correct: bool,
    ) -> None:
        """
        Overwrite the stored outcome for one quiz question, inserting the row if absent.

        Commits on its own so a later failure cannot roll this outcome back.

        Raises:
            PersistenceError: If the write fails
        """
        try:
            row = self.db.execute(
                select(QuizQuestion).where(
                    QuizQuestion.quiz_id == quiz_id,
                    QuizQuestion.question_id == question_id,
                )
            ).scalar_one_or_none()

            if row is None:
                position = (
                    self.db.query(QuizQuestion).filter(QuizQuestion.quiz_id == quiz_id).count() + 1
                )
                row = QuizQuestion(quiz_id=quiz_id, question_id=question_id, position=position)
                self.db.add(row)

            row.user_answer = option_id
            row.is_correct = is_correct
            row.answered_at = datetime.now(UTC)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(
                f"Failed to store outcome for question {question_id}",
                {"quiz_id": quiz_id, "question_id": question_id, "reason": str(e)},
            ) from e

    async def complete_quiz(
        self,
        quiz_id: str,
        score: int,
        topic_performance: list[TopicPerformanceEntry],
    ) -> datetime:
        """
        Mark a quiz complete and write its TopicPerformance rows in one transaction.

        The completion flag is flipped with a conditional UPDATE, so of two racing
        completions exactly one succeeds.

        Returns:
            Completion timestamp

        Raises:
            NotFoundError: If the quiz does not exist
            AlreadyCompletedError: If the quiz was already complete
            PersistenceError: If the transaction fails
        """
        completed_at = datetime.now(UTC)
        try:
            result = self.db.execute(
                update(Quiz)
                .where(Quiz.id == quiz_id, Quiz.is_completed.is_(False))
                .values(is_completed=True, score=score, completed_at=completed_at)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.db.rollback()
                exists = self.db.execute(select(Quiz.id).where(Quiz.id == quiz_id)).first()
                if exists is None:
                    raise NotFoundError("Quiz not found", {"quiz_id": quiz_id})
                raise AlreadyCompletedError(quiz_id)

            for entry in topic_performance:
                self.db.add(
                    TopicPerformance(
                        quiz_id=quiz_id,
                        topic=entry.topic,
                        correct=entry.correct,
                        total=entry.total,
                        percentage=entry.percentage,
                    )
                )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                f"Failed to complete quiz {quiz_id}: {e}",
                extra={"event": "quiz_completion_failed", "quiz_id": quiz_id},
            )
            raise PersistenceError("Failed to complete quiz", {"quiz_id": quiz_id}) from e

        return completed_at

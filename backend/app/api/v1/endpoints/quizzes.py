"""Quiz endpoints: creation, answer submission, completion and results."""

import logging
from dataclasses import asdict
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.schemas.quiz import (
    AnswerSubmission,
    AnswerSubmissionResponse,
    QuizCompletionResponse,
    QuizCreate,
    QuizHistoryItem,
    QuizOut,
    QuizQuestionOut,
    QuizResultsOut,
)
from app.scoring.topics import TopicTaxonomy
from app.scoring.types import SubmittedAnswer
from app.services.quiz_builder import create_quiz
from app.services.quiz_completion import QuizCompletionService, default_taxonomy
from app.services.quiz_results import (
    HISTORY_LIMIT,
    get_quiz_history,
    get_quiz_results,
    load_quiz,
)
from app.services.quiz_store import SqlQuizStore

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# Helper Functions
# ============================================================================


def get_completion_service(
    db: Annotated[Session, Depends(get_db)],
    taxonomy: Annotated[TopicTaxonomy, Depends(default_taxonomy)],
) -> QuizCompletionService:
    """Completion orchestrator bound to the request's session."""
    return QuizCompletionService(SqlQuizStore(db), taxonomy=taxonomy, logger=logger)


def quiz_out(quiz) -> QuizOut:
    """Serialize a quiz with its questions; option correctness is not exposed."""
    return QuizOut(
        id=quiz.id,
        user_id=quiz.user_id,
        num_questions=quiz.num_questions,
        is_completed=quiz.is_completed,
        score=quiz.score,
        pass_percentage=quiz.pass_percentage,
        created_at=quiz.created_at,
        completed_at=quiz.completed_at,
        questions=[
            QuizQuestionOut(
                id=qq.question.id,
                position=qq.position,
                question=qq.question.question,
                topic=qq.question.topic,
                difficulty=getattr(qq.question.difficulty, "value", qq.question.difficulty),
                has_multiple_correct_answers=qq.question.has_multiple_correct_answers,
                options=[
                    {"id": o.id, "text": o.text, "position": o.position}
                    for o in sorted(qq.question.options, key=lambda o: o.position)
                ],
            )
            for qq in quiz.questions
        ],
    )


# ============================================================================
# Endpoints
# ============================================================================


@router.post("", response_model=QuizOut, status_code=status.HTTP_201_CREATED)
async def create_quiz_endpoint(
    payload: QuizCreate,
    db: Annotated[Session, Depends(get_db)],
    taxonomy: Annotated[TopicTaxonomy, Depends(default_taxonomy)],
):
    """
    Create a quiz.

    Questions are either given explicitly (questionIds) or drawn per canonical topic
    in proportion to the taxonomy weights. The same seed yields the same selection.
    """
    quiz = await create_quiz(db, payload, taxonomy)
    return quiz_out(quiz)


@router.get("", response_model=list[QuizHistoryItem])
async def quiz_history(
    db: Annotated[Session, Depends(get_db)],
    user_id: Annotated[str, Query(alias="userId", min_length=1)],
    limit: Annotated[int, Query(ge=1, le=100)] = HISTORY_LIMIT,
):
    """A user's most recent quizzes, newest first."""
    return await get_quiz_history(db, user_id, limit)


@router.post("/answers", response_model=AnswerSubmissionResponse)
async def submit_answers(
    submission: AnswerSubmission,
    service: Annotated[QuizCompletionService, Depends(get_completion_service)],
):
    """
    Submit answers for a quiz, optionally completing it.

    Each answer token is an option id or its 1-based position. Resubmitting a
    question before completion overwrites its earlier outcome. Submitting against
    a completed quiz fails with QUIZ_ALREADY_COMPLETED.
    """
    result = await service.submit_answers(
        submission.quiz_id,
        [SubmittedAnswer(question_id=a.question_id, tokens=tuple(a.answer)) for a in submission.answers],
        mark_complete=submission.is_complete,
    )
    return AnswerSubmissionResponse(
        success=True,
        processed=result.processed,
        correct=result.correct,
        score=result.score,
        passed=result.passed,
        topic_performance=[asdict(entry) for entry in result.topic_performance],
    )


@router.get("/{quiz_id}", response_model=QuizOut)
async def read_quiz(
    quiz_id: str,
    db: Annotated[Session, Depends(get_db)],
):
    """Quiz with its questions and options."""
    return quiz_out(load_quiz(db, quiz_id))


@router.post("/{quiz_id}/complete", response_model=QuizCompletionResponse)
async def complete_quiz(
    quiz_id: str,
    service: Annotated[QuizCompletionService, Depends(get_completion_service)],
):
    """Complete a quiz from the answers already submitted."""
    result = await service.complete(quiz_id)
    return QuizCompletionResponse(
        quiz_id=result.quiz_id,
        score=result.score,
        passed=result.passed,
        correct=result.correct,
        total=result.total,
        completed_at=result.completed_at,
        topic_performance=[asdict(entry) for entry in result.topic_performance],
    )


@router.get("/{quiz_id}/results", response_model=QuizResultsOut)
async def quiz_results(
    quiz_id: str,
    db: Annotated[Session, Depends(get_db)],
):
    """Results of a completed quiz, including per-topic scores."""
    return await get_quiz_results(db, quiz_id)

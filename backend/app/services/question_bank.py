"""Question bank: create, edit, retire, fetch and summarize questions."""

import logging
from collections import Counter
from datetime import UTC, datetime

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, selectinload

from app.core.app_exceptions import (
    InvalidQuestionError,
    NotFoundError,
    QuestionInUseError,
)
from app.models.quiz import Option, Question, QuestionStatus, QuizQuestion
from app.schemas.question import OptionIn, QuestionCreate, QuestionUpdate
from app.scoring.topics import TopicTaxonomy, map_to_canonical_topic

logger = logging.getLogger(__name__)

MIN_OPTIONS = 2


def validate_options(options: list[OptionIn], has_multiple_correct_answers: bool) -> None:
    """
    Enforce the question invariants the scorer relies on.

    Raises:
        InvalidQuestionError: Fewer than two options, no correct option, duplicate
            option texts, or a multi-answer flag with fewer than two correct options
    """
    if len(options) < MIN_OPTIONS:
        raise InvalidQuestionError(f"A question needs at least {MIN_OPTIONS} options")

    correct = [option for option in options if option.is_correct]
    if not correct:
        raise InvalidQuestionError("At least one option must be marked correct")

    texts = [option.text.strip() for option in options]
    if len(set(texts)) != len(texts):
        raise InvalidQuestionError("Option texts must be unique within a question")

    if has_multiple_correct_answers and len(correct) < 2:
        raise InvalidQuestionError("Multiple-answer questions need at least two correct options")


def _correct_texts(options, multiple: bool) -> list[str] | None:
    return [o.text for o in options if o.is_correct] if multiple else None


async def create_question(db: Session, payload: QuestionCreate) -> Question:
    """
    Create a question with its options.

    Options are stored in payload order with 1-based positions. For multi-answer
    questions the correct option texts are also stored as correct_answers.
    """
    multiple = bool(payload.has_multiple_correct_answers)
    validate_options(payload.options, multiple)

    question = Question(
        question=payload.question,
        explanation=payload.explanation,
        topic=payload.topic,
        difficulty=payload.difficulty,
        has_multiple_correct_answers=multiple,
        correct_answers=_correct_texts(payload.options, multiple),
        status=QuestionStatus.ACTIVE,
        source=payload.source,
    )
    question.options = [
        Option(text=option.text, is_correct=option.is_correct, position=position)
        for position, option in enumerate(payload.options, start=1)
    ]
    db.add(question)
    db.commit()
    db.refresh(question)

    logger.info(
        f"Created question {question.id}",
        extra={"event": "question_created", "question_id": question.id, "topic": question.topic},
    )
    return question


def find_question(db: Session, ref: str) -> Question | None:
    """Look up a question by numeric id or uuid."""
    stmt = select(Question).options(selectinload(Question.options))
    if ref.isdigit():
        stmt = stmt.where(Question.id == int(ref))
    else:
        stmt = stmt.where(Question.uuid == ref)
    return db.execute(stmt).scalar_one_or_none()


async def get_question(db: Session, ref: str) -> Question:
    """
    Fetch a question by numeric id or uuid.

    Raises:
        NotFoundError: If no question matches
    """
    question = find_question(db, ref)
    if question is None:
        raise NotFoundError("Question not found", {"question_id": ref})
    return question


def _replace_options(db: Session, question: Question, options: list[OptionIn]) -> None:
    """
    Rewrite options in place by position so option ids recorded as answers stay valid.

    Options beyond the new count are removed and answers that pointed at them are
    cleared.
    """
    existing = {option.position: option for option in question.options}
    for position, option in enumerate(options, start=1):
        row = existing.pop(position, None)
        if row is None:
            question.options.append(
                Option(text=option.text, is_correct=option.is_correct, position=position)
            )
        else:
            row.text = option.text
            row.is_correct = option.is_correct

    if existing:
        removed_ids = [row.id for row in existing.values()]
        db.execute(
            update(QuizQuestion)
            .where(QuizQuestion.user_answer.in_(removed_ids))
            .values(user_answer=None)
            .execution_options(synchronize_session=False)
        )
        for row in existing.values():
            question.options.remove(row)


async def update_question(db: Session, ref: str, payload: QuestionUpdate) -> Question:
    """
    Edit a question; only the fields present in the payload change.

    When options are replaced the multi-answer flag is derived from them unless
    given, and correct_answers is rewritten to match.

    Raises:
        NotFoundError: If no question matches
        InvalidQuestionError: If the edited question breaks the question invariants
    """
    question = await get_question(db, ref)
    changes = payload.model_dump(exclude_unset=True)
    new_options = payload.options if "options" in changes else None
    changes.pop("options", None)
    multiple = changes.pop("has_multiple_correct_answers", None)

    if new_options is not None:
        if multiple is None:
            multiple = sum(o.is_correct for o in new_options) >= 2
        validate_options(new_options, multiple)
    elif multiple is not None:
        current = [OptionIn(text=o.text, is_correct=o.is_correct) for o in question.options]
        validate_options(current, multiple)

    for field, value in changes.items():
        if value is None and field != "topic":
            continue  # non-nullable columns
        setattr(question, field, value)

    if new_options is not None:
        _replace_options(db, question, new_options)
    if multiple is not None:
        question.has_multiple_correct_answers = multiple
        question.correct_answers = _correct_texts(question.options, multiple)

    db.commit()
    db.refresh(question)

    logger.info(
        f"Updated question {question.id}",
        extra={"event": "question_updated", "question_id": question.id, "fields": sorted(payload.model_fields_set)},
    )
    return question


async def set_question_status(db: Session, ref: str, new_status: QuestionStatus) -> Question:
    """
    Move a question between active, review and deleted.

    Deleting is a soft delete: the row stays so past quizzes keep their questions,
    but it is no longer drawn into new quizzes. Reactivating clears deleted_at.

    Raises:
        NotFoundError: If no question matches
    """
    question = await get_question(db, ref)
    now = datetime.now(UTC)

    question.status = new_status
    question.updated_at = now
    if new_status == QuestionStatus.DELETED:
        question.deleted_at = now
    elif new_status == QuestionStatus.ACTIVE:
        question.deleted_at = None

    db.commit()
    db.refresh(question)

    logger.info(
        f"Question {question.id} status set to {new_status.value}",
        extra={"event": "question_status_changed", "question_id": question.id, "status": new_status.value},
    )
    return question


async def delete_question(db: Session, ref: str) -> None:
    """
    Hard-delete a question and its options.

    Raises:
        NotFoundError: If no question matches
        QuestionInUseError: If any quiz includes the question
    """
    question = await get_question(db, ref)
    quiz_count = db.execute(
        select(func.count(QuizQuestion.id)).where(QuizQuestion.question_id == question.id)
    ).scalar_one()
    if quiz_count:
        raise QuestionInUseError(question.id, quiz_count)

    question_id = question.id
    db.delete(question)
    db.commit()

    logger.info(
        f"Deleted question {question_id}",
        extra={"event": "question_deleted", "question_id": question_id},
    )


async def get_question_stats(db: Session, taxonomy: TopicTaxonomy) -> dict:
    """Counts of questions by raw topic, canonical topic, difficulty and status."""
    rows = db.execute(
        select(
            Question.topic,
            Question.difficulty,
            Question.status,
            Question.has_multiple_correct_answers,
        )
    ).all()

    by_topic: Counter[str] = Counter()
    by_canonical: Counter[str] = Counter()
    by_difficulty: Counter[str] = Counter()
    by_status: Counter[str] = Counter()
    multiple = 0

    for topic, difficulty, status, has_multiple in rows:
        label = topic or "Uncategorized"
        by_topic[label] += 1
        if topic:
            by_canonical[map_to_canonical_topic(topic, taxonomy)] += 1
        by_difficulty[getattr(difficulty, "value", difficulty)] += 1
        by_status[getattr(status, "value", status)] += 1
        if has_multiple:
            multiple += 1

    return {
        "total": len(rows),
        "active": by_status[QuestionStatus.ACTIVE.value],
        "multiple_answer": multiple,
        "by_topic": dict(by_topic),
        "by_canonical_topic": dict(by_canonical),
        "by_difficulty": dict(by_difficulty),
        "by_status": dict(by_status),
    }

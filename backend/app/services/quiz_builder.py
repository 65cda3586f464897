"""Quiz creation with topic-weighted, seeded question selection."""

import logging
import random
import uuid

from fastapi import status
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from app.core.app_exceptions import AppError, NotEnoughQuestionsError
from app.core.config import settings
from app.models.quiz import Difficulty, Question, QuestionStatus, Quiz, QuizQuestion
from app.schemas.quiz import QuizCreate
from app.scoring.topics import TopicTaxonomy, map_to_canonical_topic
from app.services.quiz_results import load_quiz

logger = logging.getLogger(__name__)


def allocate_topic_quotas(
    weights: dict[str, float],
    supply: dict[str, int],
    total_count: int,
) -> dict[str, int]:
    """
    Split total_count across topics in proportion to their weights.

    Largest-remainder apportionment: every topic first gets the floor of its exact
    share (capped by its supply), then leftover slots go to topics in order of
    largest fractional remainder, then by weight, while they have supply left.
    Topics with zero weight receive nothing.

    Args:
        weights: Topic -> selection weight (insertion order breaks ties)
        supply: Topic -> number of eligible questions
        total_count: Questions to allocate

    Returns:
        Topic -> quota; quotas sum to min(total_count, supply of weighted topics)
    """
    topics = [topic for topic, weight in weights.items() if weight > 0]
    if not topics or total_count <= 0:
        return {topic: 0 for topic in weights}

    total_weight = sum(weights[topic] for topic in topics)
    quotas: dict[str, int] = {topic: 0 for topic in weights}
    remainders: dict[str, float] = {}

    for topic in topics:
        exact = weights[topic] / total_weight * total_count
        quotas[topic] = min(int(exact), supply.get(topic, 0))
        remainders[topic] = exact - int(exact)

    remaining = total_count - sum(quotas.values())
    order = sorted(topics, key=lambda t: (-remainders[t], -weights[t], topics.index(t)))

    # Repeated passes: a capped topic's share flows to the next topic in line
    while remaining > 0:
        progressed = False
        for topic in order:
            if remaining <= 0:
                break
            if quotas[topic] < supply.get(topic, 0):
                quotas[topic] += 1
                remaining -= 1
                progressed = True
        if not progressed:
            break

    return quotas


def _canonical_topic(topic: str | None, taxonomy: TopicTaxonomy) -> str:
    if not topic:
        return taxonomy.default_topic
    return map_to_canonical_topic(topic, taxonomy)


def resolve_question_ids(db: Session, refs: list[str]) -> list[int]:
    """Resolve numeric ids or uuids to question ids; unknown and deleted refs are dropped."""
    numeric = [int(ref) for ref in refs if ref.isdigit()]
    rows = db.execute(
        select(Question.id, Question.uuid).where(
            or_(Question.id.in_(numeric), Question.uuid.in_(refs)),
            Question.status != QuestionStatus.DELETED,
        )
    ).all()
    by_ref: dict[str, int] = {}
    for question_id, question_uuid in rows:
        by_ref[str(question_id)] = question_id
        by_ref[question_uuid] = question_id

    resolved = [by_ref[ref] for ref in refs if ref in by_ref]
    unknown = [ref for ref in refs if ref not in by_ref]
    if unknown:
        logger.warning(
            f"Ignoring {len(unknown)} unknown question id(s) in quiz request",
            extra={"event": "unknown_question", "question_ids": unknown},
        )
    return list(dict.fromkeys(resolved))


def select_questions(
    db: Session,
    num_questions: int,
    taxonomy: TopicTaxonomy,
    topics: list[str] | None = None,
    difficulty: Difficulty | None = None,
    seed: str | None = None,
) -> list[int]:
    """
    Select question ids for a new quiz.

    Only active questions (optionally of one difficulty) are eligible. When topics
    are given they are mapped to canonical topics and only those are drawn from.

    Raises:
        NotEnoughQuestionsError: If fewer eligible questions than requested
    """
    stmt = select(Question.id, Question.topic).where(Question.status == QuestionStatus.ACTIVE)
    if difficulty:
        stmt = stmt.where(Question.difficulty == difficulty)
    rows = db.execute(stmt.order_by(Question.id)).all()

    requested = None
    if topics:
        requested = list(dict.fromkeys(map_to_canonical_topic(t, taxonomy) for t in topics))

    pool: dict[str, list[int]] = {}
    for question_id, topic in rows:
        canonical = _canonical_topic(topic, taxonomy)
        if requested is None or canonical in requested:
            pool.setdefault(canonical, []).append(question_id)

    available = sum(len(ids) for ids in pool.values())
    if available < num_questions:
        raise NotEnoughQuestionsError(num_questions, available)

    # Deterministic shuffle using seed
    rng = random.Random(seed or uuid.uuid4().hex)
    for ids in pool.values():
        rng.shuffle(ids)

    weighted_topics = requested or list(taxonomy.topics)
    weights = {topic: taxonomy.weight_for(topic) for topic in weighted_topics if topic in pool}
    quotas = allocate_topic_quotas(
        weights, {topic: len(ids) for topic, ids in pool.items()}, num_questions
    )

    selected: list[int] = []
    for topic, quota in quotas.items():
        selected.extend(pool[topic][:quota])

    shortfall = num_questions - len(selected)
    if shortfall > 0:
        chosen = set(selected)
        leftovers = [qid for ids in pool.values() for qid in ids if qid not in chosen]
        rng.shuffle(leftovers)
        selected.extend(leftovers[:shortfall])

    rng.shuffle(selected)
    return selected


def _check_quiz_size(count: int) -> None:
    if count > settings.MAX_QUESTIONS_PER_QUIZ:
        raise AppError(
            status.HTTP_400_BAD_REQUEST,
            "QUIZ_TOO_LARGE",
            f"A quiz can have at most {settings.MAX_QUESTIONS_PER_QUIZ} questions",
            {"requested_count": count, "max_count": settings.MAX_QUESTIONS_PER_QUIZ},
        )


async def create_quiz(db: Session, payload: QuizCreate, taxonomy: TopicTaxonomy) -> Quiz:
    """
    Create a quiz with a fixed question set.

    Explicit question_ids take precedence over topic-weighted selection.

    Raises:
        AppError: If more questions are requested than MAX_QUESTIONS_PER_QUIZ
        NotEnoughQuestionsError: If the question set cannot be filled
    """
    if payload.question_ids:
        question_ids = resolve_question_ids(db, payload.question_ids)
        if not question_ids:
            raise NotEnoughQuestionsError(len(payload.question_ids), 0)
        _check_quiz_size(len(question_ids))
    else:
        num_questions = payload.num_questions or settings.DEFAULT_QUESTIONS_PER_QUIZ
        _check_quiz_size(num_questions)
        question_ids = select_questions(
            db,
            num_questions,
            taxonomy,
            topics=payload.topics,
            difficulty=payload.difficulty,
            seed=payload.seed,
        )

    quiz = Quiz(
        user_id=payload.user_id,
        num_questions=len(question_ids),
        is_completed=False,
        pass_percentage=settings.DEFAULT_PASS_PERCENTAGE,
    )
    db.add(quiz)
    db.flush()

    for position, question_id in enumerate(question_ids, start=1):
        db.add(QuizQuestion(quiz_id=quiz.id, question_id=question_id, position=position))

    db.commit()

    logger.info(
        f"Created quiz {quiz.id} with {len(question_ids)} questions",
        extra={"event": "quiz_created", "quiz_id": quiz.id, "user_id": payload.user_id},
    )
    return load_quiz(db, quiz.id)

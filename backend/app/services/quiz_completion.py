"""Quiz completion orchestrator: normalize, evaluate, persist and finalize answers."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from app.core.app_exceptions import AlreadyCompletedError, NotFoundError, PersistenceError
from app.core.config import settings
from app.scoring.aggregator import aggregate_topic_performance, percentage
from app.scoring.evaluator import evaluate_detailed, resolve_selected_option_id
from app.scoring.normalizer import deduplicate_answers, remove_duplicate_tokens
from app.scoring.topics import TopicTaxonomy
from app.scoring.types import (
    QuestionOutcome,
    QuestionSnapshot,
    QuizSnapshot,
    SubmittedAnswer,
    TopicPerformanceEntry,
)
from app.services.quiz_store import QuizStore


@dataclass(frozen=True)
class SubmissionResult:
    """Result of one submit_answers call."""

    processed: int
    correct: int
    score: int | None = None
    passed: bool | None = None
    topic_performance: list[TopicPerformanceEntry] = field(default_factory=list)


@dataclass(frozen=True)
class CompletionResult:
    """Final state of a quiz after the one-way transition to complete."""

    quiz_id: str
    score: int
    passed: bool
    correct: int
    total: int
    completed_at: datetime
    topic_performance: list[TopicPerformanceEntry]


def default_taxonomy() -> TopicTaxonomy:
    """Built-in taxonomy with the configured fallback topic."""
    return TopicTaxonomy(default_topic=settings.DEFAULT_CANONICAL_TOPIC)


class QuizCompletionService:
    """
    Drives a quiz through Incomplete -> Complete.

    The logger is injected so callers can route scoring diagnostics (topic fallbacks,
    skipped questions, persistence failures) to their own handlers.
    """

    def __init__(
        self,
        store: QuizStore,
        taxonomy: TopicTaxonomy | None = None,
        merge_canonical_topics: bool | None = None,
        logger: logging.Logger | None = None,
    ):
        self.store = store
        self.taxonomy = taxonomy or default_taxonomy()
        self.merge_canonical_topics = (
            settings.MERGE_CANONICAL_TOPICS if merge_canonical_topics is None else merge_canonical_topics
        )
        self.log = logger or logging.getLogger(__name__)

    async def _load_open_quiz(self, quiz_id: str) -> QuizSnapshot:
        quiz = await self.store.get_quiz_by_id(quiz_id)
        if quiz is None:
            raise NotFoundError("Quiz not found", {"quiz_id": quiz_id})
        if quiz.is_completed:
            raise AlreadyCompletedError(quiz_id)
        return quiz

    def _normalize(self, quiz_id: str, raw_answers: list[SubmittedAnswer]) -> list[SubmittedAnswer]:
        deduplicated = deduplicate_answers(raw_answers)
        answers = remove_duplicate_tokens(deduplicated)

        dropped = len(raw_answers) - len(deduplicated)
        if dropped:
            self.log.info(
                f"Deduplicated {dropped} repeated answer(s) for quiz {quiz_id}",
                extra={"event": "answer_deduplicated", "quiz_id": quiz_id, "dropped": dropped},
            )

        repeated = sum(
            len(before.tokens) != len(after.tokens) for before, after in zip(deduplicated, answers)
        )
        if repeated:
            self.log.info(
                f"Removed repeated options from {repeated} answer(s) for quiz {quiz_id}",
                extra={"event": "duplicate_options_removed", "quiz_id": quiz_id, "answers": repeated},
            )
        return answers

    def _score(self, quiz: QuizSnapshot, outcomes: dict[int, QuestionOutcome]) -> tuple[int, int, list[TopicPerformanceEntry]]:
        correct = sum(1 for outcome in outcomes.values() if outcome.is_correct)
        total = len(quiz.questions)
        entries = aggregate_topic_performance(
            ((slot.question, outcomes.get(slot.question.id)) for slot in quiz.questions),
            taxonomy=self.taxonomy,
            merge_canonical=self.merge_canonical_topics,
            log=self.log,
        )
        return correct, percentage(correct, total), entries

    async def _finalize(self, quiz: QuizSnapshot, outcomes: dict[int, QuestionOutcome]) -> CompletionResult:
        correct, score, entries = self._score(quiz, outcomes)
        completed_at = await self.store.complete_quiz(quiz.id, score, entries)
        passed = score >= quiz.pass_percentage

        self.log.info(
            f"Quiz {quiz.id} completed with score {score}%",
            extra={
                "event": "quiz_completed",
                "quiz_id": quiz.id,
                "score": score,
                "passed": passed,
                "correct": correct,
                "total": len(quiz.questions),
            },
        )
        return CompletionResult(
            quiz_id=quiz.id,
            score=score,
            passed=passed,
            correct=correct,
            total=len(quiz.questions),
            completed_at=completed_at,
            topic_performance=entries,
        )

    async def submit_answers(
        self,
        quiz_id: str,
        raw_answers: Iterable[SubmittedAnswer],
        mark_complete: bool = False,
    ) -> SubmissionResult:
        """
        Evaluate and store a batch of answers, optionally completing the quiz.

        A failed write for one question is logged and that question is left out of
        the processed count; the rest of the batch continues. The completion write is
        all-or-nothing.

        Args:
            quiz_id: Quiz ID
            raw_answers: Answers as submitted (may contain duplicates)
            mark_complete: Flip the quiz to complete after storing outcomes

        Returns:
            SubmissionResult with processed/correct counts for this batch, plus the
            score and topic performance when the quiz was completed

        Raises:
            NotFoundError: If the quiz does not exist
            AlreadyCompletedError: If the quiz is already complete
            PersistenceError: If the completion transaction fails
        """
        quiz = await self._load_open_quiz(quiz_id)
        answers = self._normalize(quiz_id, list(raw_answers))

        questions: dict[str, QuestionSnapshot] = {
            str(slot.question.id): slot.question for slot in quiz.questions
        }
        outcomes = quiz.stored_outcomes
        processed = 0
        correct = 0

        for answer in answers:
            question = questions.get(answer.question_id)
            if question is None:
                self.log.warning(
                    f"Question {answer.question_id} is not part of quiz {quiz_id}, skipping",
                    extra={"event": "unknown_question", "quiz_id": quiz_id, "question_id": answer.question_id},
                )
                continue

            evaluation = evaluate_detailed(question, answer.tokens)
            if evaluation.reduced_confidence:
                self.log.warning(
                    f"Question {question.id} scored with tolerance rule {evaluation.rule_fired}",
                    extra={
                        "event": "reduced_confidence_scoring",
                        "quiz_id": quiz_id,
                        "question_id": question.id,
                        "rule_fired": evaluation.rule_fired,
                    },
                )

            option_id = resolve_selected_option_id(question, answer.tokens)
            try:
                await self.store.upsert_question_outcome(
                    quiz_id, question.id, option_id, evaluation.is_correct
                )
            except PersistenceError as e:
                self.log.error(
                    f"Failed to store outcome for question {question.id}: {e}",
                    extra={
                        "event": "outcome_persist_failed",
                        "quiz_id": quiz_id,
                        "question_id": question.id,
                    },
                )
                continue

            outcomes[question.id] = QuestionOutcome(
                quiz_id=quiz_id,
                question_id=question.id,
                option_id=option_id,
                is_correct=evaluation.is_correct,
            )
            processed += 1
            if evaluation.is_correct:
                correct += 1

        if not mark_complete:
            return SubmissionResult(processed=processed, correct=correct)

        completion = await self._finalize(quiz, outcomes)
        return SubmissionResult(
            processed=processed,
            correct=correct,
            score=completion.score,
            passed=completion.passed,
            topic_performance=completion.topic_performance,
        )

    async def complete(self, quiz_id: str) -> CompletionResult:
        """
        Complete a quiz from the outcomes stored by earlier submissions.

        Raises:
            NotFoundError: If the quiz does not exist
            AlreadyCompletedError: If the quiz is already complete
            PersistenceError: If the completion transaction fails
        """
        quiz = await self._load_open_quiz(quiz_id)
        return await self._finalize(quiz, quiz.stored_outcomes)

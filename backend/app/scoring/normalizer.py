"""Answer normalization: collapse duplicate submissions before evaluation."""

from collections.abc import Iterable

from app.scoring.types import SubmittedAnswer


def deduplicate_answers(raw_answers: Iterable[SubmittedAnswer]) -> list[SubmittedAnswer]:
    """
    Keep one answer per question.

    When a question id repeats, the answer with the most tokens wins; ties keep the
    first one seen. The surviving answer takes the slot of the question's first
    occurrence, so distinct questions keep their relative order.
    """
    unique: dict[str, SubmittedAnswer] = {}
    for answer in raw_answers:
        existing = unique.get(answer.question_id)
        if existing is None or len(answer.tokens) > len(existing.tokens):
            unique[answer.question_id] = answer
    return list(unique.values())


def remove_duplicate_tokens(answers: Iterable[SubmittedAnswer]) -> list[SubmittedAnswer]:
    """Drop repeated tokens inside each answer, keeping first-occurrence order."""
    return [
        SubmittedAnswer(question_id=answer.question_id, tokens=tuple(dict.fromkeys(answer.tokens)))
        for answer in answers
    ]


def normalize(raw_answers: Iterable[SubmittedAnswer]) -> list[SubmittedAnswer]:
    """Cross-question deduplication followed by intra-answer deduplication."""
    return remove_duplicate_tokens(deduplicate_answers(raw_answers))

"""Per-topic performance aggregation for one quiz attempt."""

import logging
from collections.abc import Iterable

from app.scoring.topics import (
    DEFAULT_TAXONOMY,
    TopicTaxonomy,
    detect_collisions,
    map_to_canonical_topic,
)
from app.scoring.types import QuestionOutcome, QuestionSnapshot, TopicPerformanceEntry

logger = logging.getLogger(__name__)


def percentage(correct: int, total: int) -> int:
    """Integer percentage with halves rounded up; 0 when total is 0."""
    if total <= 0:
        return 0
    return (200 * correct + total) // (2 * total)


def aggregate_topic_performance(
    items: Iterable[tuple[QuestionSnapshot, QuestionOutcome | None]],
    taxonomy: TopicTaxonomy = DEFAULT_TAXONOMY,
    merge_canonical: bool = False,
    log: logging.Logger | None = None,
) -> list[TopicPerformanceEntry]:
    """
    Build TopicPerformance entries for every question of a quiz.

    Every question counts toward its topic's total, answered or not; only outcomes
    marked correct count toward correct. Questions without a string topic are logged
    and skipped.

    Grouping:
        merge_canonical=False groups on the raw label and maps each bucket afterwards,
        so two raw labels mapping to one canonical topic yield two entries with the
        same label. merge_canonical=True groups on the canonical label directly.

    Args:
        items: (question, outcome or None) for each quiz question
        taxonomy: Taxonomy used for canonical mapping
        merge_canonical: Group by canonical label instead of raw label
        log: Logger for data-quality warnings (defaults to module logger)

    Returns:
        One entry per bucket, in order of first appearance
    """
    log = log or logger
    buckets: dict[str, list[int]] = {}

    for question, outcome in items:
        topic = question.topic
        if not isinstance(topic, str) or not topic:
            log.warning(
                f"Skipping question {question.id} with invalid topic in aggregation",
                extra={"event": "invalid_topic", "question_id": question.id},
            )
            continue

        key = map_to_canonical_topic(topic, taxonomy, log) if merge_canonical else topic
        counts = buckets.setdefault(key, [0, 0])
        counts[1] += 1
        if outcome is not None and outcome.is_correct:
            counts[0] += 1

    if merge_canonical:
        labels = list(buckets)
    else:
        labels = [map_to_canonical_topic(raw, taxonomy, log) for raw in buckets]
        report = detect_collisions(labels)
        if report.has_duplicates:
            log.info(
                f"Raw topics collapsed onto shared canonical topics: {report.duplicates}",
                extra={"event": "topic_collision", "duplicates": report.duplicates},
            )

    return [
        TopicPerformanceEntry(
            topic=label,
            correct=correct,
            total=total,
            percentage=percentage(correct, total),
        )
        for label, (correct, total) in zip(labels, buckets.values())
    ]

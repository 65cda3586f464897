"""Canonical topic taxonomy and free-form topic label mapping.

Raw topic labels come from several authoring paths (seeded markdown, generated
questions, admin edits) and rarely match the reporting taxonomy exactly. Labels are
mapped by keyword containment, checking groups in a fixed priority order.
"""

import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


TOPIC_PRODUCTS = "Products"
TOPIC_ARCHITECTURE = "Architecture"
TOPIC_LIFECYCLE = "Lifecycle"
TOPIC_WIDGETS = "Widgets"
TOPIC_ASSETS = "Assets"
TOPIC_TRANSFORMATIONS = "Transformations"
TOPIC_MANAGEMENT = "Management"
TOPIC_ACCESS = "Access"

CANONICAL_TOPICS: tuple[str, ...] = (
    TOPIC_PRODUCTS,
    TOPIC_ARCHITECTURE,
    TOPIC_LIFECYCLE,
    TOPIC_WIDGETS,
    TOPIC_ASSETS,
    TOPIC_TRANSFORMATIONS,
    TOPIC_MANAGEMENT,
    TOPIC_ACCESS,
)

# Priority order matters: "Asset Management" is Assets, not Management.
DEFAULT_KEYWORD_GROUPS: tuple[tuple[str, tuple[str, ...]], ...] = (
    (TOPIC_PRODUCTS, ("Products", "Value", "Environment")),
    (TOPIC_ARCHITECTURE, ("Architecture",)),
    (TOPIC_LIFECYCLE, ("Lifecycle", "Emerging")),
    (TOPIC_WIDGETS, ("Widget", "Add-on", "Integration")),
    (TOPIC_ASSETS, ("Upload", "Migrate", "Asset")),
    (TOPIC_TRANSFORMATIONS, ("Transform",)),
    (TOPIC_MANAGEMENT, ("Media", "Management")),
    (TOPIC_ACCESS, ("User", "Role", "Access", "Control")),
)


@dataclass(frozen=True)
class TopicTaxonomy:
    """Static taxonomy configuration: keyword groups, fallback and selection weights."""

    keyword_groups: tuple[tuple[str, tuple[str, ...]], ...] = DEFAULT_KEYWORD_GROUPS
    default_topic: str = TOPIC_PRODUCTS
    weights: dict[str, float] = field(default_factory=dict)  # missing topics weigh 1.0

    def __post_init__(self) -> None:
        topics = self.topics
        if self.default_topic not in topics:
            raise ValueError(f"Default topic {self.default_topic!r} is not in the taxonomy")
        unknown = set(self.weights) - set(topics)
        if unknown:
            raise ValueError(f"Weights given for unknown topics: {sorted(unknown)}")
        if any(weight < 0 for weight in self.weights.values()):
            raise ValueError("Topic weights must be non-negative")

    @property
    def topics(self) -> tuple[str, ...]:
        return tuple(topic for topic, _ in self.keyword_groups)

    def weight_for(self, topic: str) -> float:
        return self.weights.get(topic, 1.0)


DEFAULT_TAXONOMY = TopicTaxonomy()


@dataclass(frozen=True)
class CollisionReport:
    """Canonical values that more than one mapped label landed on."""

    has_duplicates: bool
    duplicates: list[str]


def map_to_canonical_topic(
    label: str,
    taxonomy: TopicTaxonomy = DEFAULT_TAXONOMY,
    log: logging.Logger | None = None,
) -> str:
    """
    Map a free-form topic label onto the canonical taxonomy.

    Keyword groups are checked in priority order with case-sensitive substring
    containment; the first group with a matching keyword wins. Unmatched labels fall
    back to the taxonomy default and emit a warning.

    Args:
        label: Raw topic label
        taxonomy: Taxonomy configuration
        log: Logger for the fallback warning (defaults to module logger)

    Returns:
        Canonical topic name
    """
    for topic, keywords in taxonomy.keyword_groups:
        if any(keyword in label for keyword in keywords):
            return topic

    (log or logger).warning(
        f"Could not map topic {label!r} to a canonical topic, using default {taxonomy.default_topic!r}",
        extra={"event": "topic_unmapped", "topic": label, "fallback": taxonomy.default_topic},
    )
    return taxonomy.default_topic


def detect_collisions(mapped_labels: list[str]) -> CollisionReport:
    """
    Report canonical values that occur more than once in a mapped batch.

    Each colliding value is listed once, in the order its first repeat was seen.
    """
    seen: set[str] = set()
    duplicates: list[str] = []
    for label in mapped_labels:
        if label in seen:
            if label not in duplicates:
                duplicates.append(label)
        else:
            seen.add(label)
    return CollisionReport(has_duplicates=bool(duplicates), duplicates=duplicates)

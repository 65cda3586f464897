"""Answer scoring and topic performance core.

Pure functions over immutable snapshots; persistence lives in app.services.
"""

from app.scoring.aggregator import aggregate_topic_performance, percentage
from app.scoring.evaluator import Evaluation, evaluate, evaluate_detailed, resolve_selected_option_id
from app.scoring.normalizer import normalize
from app.scoring.topics import (
    CANONICAL_TOPICS,
    DEFAULT_TAXONOMY,
    TopicTaxonomy,
    detect_collisions,
    map_to_canonical_topic,
)

__all__ = [
    "CANONICAL_TOPICS",
    "DEFAULT_TAXONOMY",
    "Evaluation",
    "TopicTaxonomy",
    "aggregate_topic_performance",
    "detect_collisions",
    "evaluate",
    "evaluate_detailed",
    "map_to_canonical_topic",
    "normalize",
    "percentage",
    "resolve_selected_option_id",
]

"""Analytics engine services."""

from raid_analytics.services.aggregation_engine import AggregationEngine, filter_events
from raid_analytics.services.event_normalizer import normalize_encounters
from raid_analytics.services.resource_estimator import estimate_resources, evaluate_token
from raid_analytics.services.team_classifier import TeamClassifier

__all__ = [
    "AggregationEngine",
    "filter_events",
    "normalize_encounters",
    "estimate_resources",
    "evaluate_token",
    "TeamClassifier",
]

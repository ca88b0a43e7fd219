"""
Search Application Module

Pipeline stages of one event search:
- QueryValidator: raw parameters -> SearchQuery
- FanoutCoordinator + ProviderGuard: concurrent, protected provider calls
- Deduplicator: cross-provider merging
- filter_events / RelevanceRanker: bounds check, scoring and ordering
- EventAggregator: runs the stages and the result cache
"""

from __future__ import annotations

from .aggregator import AggregatedResponse, EventAggregator
from .deduplicator import DeduplicationStats, Deduplicator, MatchKind
from .fanout import FanoutCoordinator, FanoutOutcome
from .filters import filter_events
from .provider_guard import GuardConfig, GuardRegistry, ProviderGuard
from .query_validator import QueryValidationResult, QueryValidator, validate_search_params
from .relevance_ranker import RankingConfig, RelevanceRanker

__all__ = [
    # Pipeline
    "EventAggregator",
    "AggregatedResponse",
    # Validation
    "QueryValidator",
    "QueryValidationResult",
    "validate_search_params",
    # Fan-out
    "FanoutCoordinator",
    "FanoutOutcome",
    "GuardConfig",
    "GuardRegistry",
    "ProviderGuard",
    # Merge and rank
    "Deduplicator",
    "DeduplicationStats",
    "MatchKind",
    "filter_events",
    "RankingConfig",
    "RelevanceRanker",
]

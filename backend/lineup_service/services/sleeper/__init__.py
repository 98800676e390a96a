"""
Sleeper Fantasy Service Module
Modular components for Sleeper API integration and lineup enrichment.
"""

from lineup_service.services.ratelimit import RateLimitWindow, PendingRequestRegistry, RateLimitedClient
from .client import SleeperHTTPClient
from .cache import TTLCache
from .processors import SleeperDataProcessor
from .scoring import ScoringClass, derive_scoring_class, points_field_for
from .snapshot import SnapshotStore
from .league import LeagueDataAccess
from .projections import ProjectionStatAccess
from .enrichment import EnrichmentPipeline
from .service import FantasyDataService

__all__ = [
    "RateLimitWindow",
    "PendingRequestRegistry",
    "RateLimitedClient",
    "SleeperHTTPClient",
    "TTLCache",
    "SleeperDataProcessor",
    "ScoringClass",
    "derive_scoring_class",
    "points_field_for",
    "SnapshotStore",
    "LeagueDataAccess",
    "ProjectionStatAccess",
    "EnrichmentPipeline",
    "FantasyDataService",
]

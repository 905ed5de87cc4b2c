"""
Analytics store backends.

- InMemoryAnalyticsStore: dict-backed, for tests and local development
- CosmosAnalyticsStore: Azure Cosmos DB (requires azure-cosmos)
"""

from .base import SESSIONS_COLLECTION, STEP_EVENTS_COLLECTION, AnalyticsStore, SessionQuery
from .memory import InMemoryAnalyticsStore

try:
    from .cosmos import CosmosAnalyticsStore  # noqa: F401
    from .cosmos_client import CosmosClientWrapper, CosmosConfig  # noqa: F401

    _has_cosmos = True
except ImportError:
    _has_cosmos = False

__all__ = [
    "AnalyticsStore",
    "SessionQuery",
    "InMemoryAnalyticsStore",
    "SESSIONS_COLLECTION",
    "STEP_EVENTS_COLLECTION",
]

if _has_cosmos:
    __all__.extend(["CosmosAnalyticsStore", "CosmosClientWrapper", "CosmosConfig"])

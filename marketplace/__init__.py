"""
PropertyHub marketplace client.

Exposes the filter state, the query builder and the list synchronizer that
keeps a listing page in step with whichever backend it is given.
"""

from .backend import MarketplaceBackend
from .filters import FilterState
from .query import build_query
from .session import Session
from .synchronizer import ListSynchronizer, Page, SyncState

__all__ = [
    "FilterState",
    "ListSynchronizer",
    "MarketplaceBackend",
    "Page",
    "Session",
    "SyncState",
    "build_query",
]

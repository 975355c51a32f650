"""
Backend selection for the command line.

Kept apart from argument parsing so another front end can build the same
backends from a Settings object.
"""

from __future__ import annotations

from typing import Callable

from marketplace.api import RestBackend
from marketplace.backend import MarketplaceBackend
from marketplace.config import Settings
from marketplace.session import Session

BackendFactory = Callable[[Settings, Session], MarketplaceBackend]


def _rest_backend(settings: Settings, session: Session) -> MarketplaceBackend:
    return RestBackend(session, base_url=settings.api_base_url, timeout=settings.request_timeout)


def _supabase_backend(settings: Settings, session: Session) -> MarketplaceBackend:
    from storage.supabase_store import SupabaseStore

    return SupabaseStore(settings.supabase_url, settings.supabase_anon_key, session)


def _memory_backend(settings: Settings, session: Session) -> MarketplaceBackend:
    from storage.memory_store import InMemoryStore

    return InMemoryStore(session, seed_demo=True)


BACKEND_CHOICES = {
    "rest": _rest_backend,
    "supabase": _supabase_backend,
    "memory": _memory_backend,
}


def select_backend(name: str) -> BackendFactory:
    normalized = (name or "").strip().lower()
    factory = BACKEND_CHOICES.get(normalized)
    if not factory:
        raise ValueError(f"Unsupported backend {name!r}")
    return factory


def build_backend(settings: Settings, session: Session) -> MarketplaceBackend:
    """Instantiate the backend named by ``settings.backend`` around ``session``."""
    return select_backend(settings.backend)(settings, session)


def persists_sessions(settings: Settings) -> bool:
    """The demo store lives only as long as the process, so its tokens are not saved."""
    return settings.backend != "memory"

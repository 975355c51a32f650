from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from telemetry.logging_utils import get_logger

from .backend import MarketplaceBackend
from .errors import AuthenticationRequired, MarketplaceError
from .models import Favorite
from .notices import DESTRUCTIVE, Notice, Notifier, error_notice, log_notice

logger = get_logger(__name__)


class FavoriteSet:
    """
    Listing id -> favorite record id for the signed-in user.

    A listing added optimistically maps to None until the backend returns the
    record id.
    """

    def __init__(self, favorites: Iterable[Favorite] = ()) -> None:
        self._entries: Dict[str, Optional[str]] = {}
        self.replace(favorites)

    def replace(self, favorites: Iterable[Favorite]) -> None:
        self._entries = {}
        for fav in favorites:
            listing_id = fav.listing_id
            if listing_id:
                self._entries[listing_id] = fav.id

    def clear(self) -> None:
        self._entries = {}

    def __contains__(self, listing_id: object) -> bool:
        return listing_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def favorite_id(self, listing_id: str) -> Optional[str]:
        return self._entries.get(listing_id)

    def add(self, listing_id: str, favorite_id: Optional[str] = None) -> None:
        self._entries[listing_id] = favorite_id

    def discard(self, listing_id: str) -> Optional[str]:
        return self._entries.pop(listing_id, None)


class FavoritesList:
    """The "your favorites" page: saved listings with a remove action."""

    def __init__(self, backend: MarketplaceBackend, notify: Optional[Notifier] = None) -> None:
        self.backend = backend
        self.notify = notify or log_notice
        self.favorites: List[Favorite] = []
        self.loading = False

    async def load(self) -> List[Favorite]:
        if self.backend.session.current_user() is None:
            self.favorites = []
            return self.favorites
        self.loading = True
        try:
            self.favorites = await self.backend.list_favorites()
        except MarketplaceError as exc:
            logger.warning("favorites_load_failed", extra={"error": str(exc)})
            self.notify(error_notice(str(exc)))
        finally:
            self.loading = False
        return self.favorites

    async def remove(self, listing_id: str) -> bool:
        if self.backend.session.current_user() is None:
            self.notify(Notice("Authentication required", "Please sign in to manage favorites", DESTRUCTIVE))
            return False
        favorite = next((f for f in self.favorites if f.listing_id == listing_id), None)
        if favorite is None:
            logger.info("favorite_not_loaded", extra={"listing_id": listing_id})
            return False
        try:
            await self.backend.remove_favorite(favorite.id)
        except AuthenticationRequired as exc:
            self.notify(error_notice(str(exc), title="Authentication required"))
            return False
        except MarketplaceError as exc:
            self.notify(error_notice(str(exc)))
            return False
        self.favorites = [f for f in self.favorites if f.listing_id != listing_id]
        self.notify(Notice("Removed from favorites", "Property removed from your favorites"))
        return True

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

from .models import (
    CurrentUser,
    Favorite,
    Listing,
    ListingPage,
    ReceivedRecommendations,
    Recommendation,
    UserProfile,
)
from .query import QueryParams
from .session import Session


class MarketplaceBackend(ABC):
    """
    Operations the client needs from wherever listings live.

    Implementations raise ``ApiError`` for backend failures and
    ``AuthenticationRequired`` when a call needs a user the session lacks.
    """

    def __init__(self, session: Optional[Session] = None) -> None:
        self.session = session or Session()

    # Auth -----------------------------------------------------------------
    @abstractmethod
    async def register(self, email: str, password: str) -> Tuple[str, CurrentUser]:
        """Create an account; returns (token, user)."""

    @abstractmethod
    async def login(self, email: str, password: str) -> Tuple[str, CurrentUser]:
        """Exchange credentials for (token, user)."""

    async def get_current_user(self) -> Optional[CurrentUser]:
        return self.session.current_user()

    # Listings ---------------------------------------------------------------
    @abstractmethod
    async def list_listings(self, query: QueryParams) -> ListingPage:
        ...

    @abstractmethod
    async def get_listing(self, listing_id: str) -> Listing:
        ...

    @abstractmethod
    async def create_listing(self, data: Dict[str, Any]) -> Listing:
        ...

    @abstractmethod
    async def update_listing(self, listing_id: str, data: Dict[str, Any]) -> Listing:
        ...

    @abstractmethod
    async def delete_listing(self, listing_id: str) -> None:
        ...

    # Favorites --------------------------------------------------------------
    @abstractmethod
    async def list_favorites(self) -> List[Favorite]:
        ...

    @abstractmethod
    async def add_favorite(self, listing_id: str) -> Favorite:
        ...

    @abstractmethod
    async def remove_favorite(self, favorite_id: str) -> None:
        ...

    # Profile ----------------------------------------------------------------
    @abstractmethod
    async def get_profile(self) -> UserProfile:
        ...

    @abstractmethod
    async def update_profile(self, changes: Dict[str, Any]) -> UserProfile:
        ...

    # Recommendations --------------------------------------------------------
    @abstractmethod
    async def send_recommendation(self, listing_id: str, recipient_email: str, message: str = "") -> Recommendation:
        ...

    @abstractmethod
    async def list_received_recommendations(self) -> ReceivedRecommendations:
        ...

    async def aclose(self) -> None:
        """Release network resources; no-op by default."""

"""
Keeps the visible listing page in step with the backend.

Events and what they do:

    FilterChanged      update filters, reset to page 1, debounce a fetch
    PageChanged        fetch immediately
    MutationSucceeded  refetch the current page with the current filters

Every fetch is numbered. A response is applied only if no newer fetch (or
filter change) happened while it was in flight, so a slow old response can
never overwrite a newer page.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from telemetry.logging_utils import get_logger

from .backend import MarketplaceBackend
from .debounce import Debouncer
from .errors import AuthenticationRequired, ListingValidationError, MarketplaceError, PermissionDenied
from .favorites import FavoriteSet
from .filters import FilterState
from .models import CurrentUser, Listing, parse_listing_draft
from .notices import DESTRUCTIVE, Notice, Notifier, error_notice, log_notice
from .query import build_query, to_query_string
from .session import Session

logger = get_logger(__name__)

PAGE_SIZE = 12
DEBOUNCE_SECONDS = 0.5


class SyncState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    ERROR = "error"
    READY = "ready"


@dataclass(frozen=True)
class Page:
    items: List[Listing] = field(default_factory=list)
    total_count: int = 0
    page_number: int = 1
    page_size: int = PAGE_SIZE

    @property
    def total_pages(self) -> int:
        return max(1, math.ceil(self.total_count / self.page_size))

    @property
    def has_next(self) -> bool:
        return self.page_number < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page_number > 1


@dataclass(frozen=True)
class EditorState:
    """Which listing form is open: none, "create", or "edit" for a listing."""

    mode: Optional[str] = None
    listing: Optional[Listing] = None

    @property
    def is_open(self) -> bool:
        return self.mode is not None


def _failure_notice(exc: MarketplaceError) -> Notice:
    if isinstance(exc, AuthenticationRequired):
        return error_notice(str(exc), title="Authentication required")
    if isinstance(exc, PermissionDenied):
        return error_notice(str(exc), title="Permission denied")
    return error_notice(str(exc))


class ListSynchronizer:
    def __init__(
        self,
        backend: MarketplaceBackend,
        *,
        page_size: int = PAGE_SIZE,
        debounce_seconds: float = DEBOUNCE_SECONDS,
        notify: Optional[Notifier] = None,
    ) -> None:
        self.backend = backend
        self.notify = notify or log_notice
        self.filters = FilterState()
        self.page = Page(page_size=page_size)
        self.state = SyncState.IDLE
        self.last_error: Optional[str] = None
        self.favorites = FavoriteSet()
        self.editor = EditorState()
        self._debouncer = Debouncer(debounce_seconds, self._fetch)
        self._generation = 0
        self._favorites_in_flight: Set[str] = set()
        self._fetches_in_flight = 0
        # What the list showed before the current LOADING began.
        self._settled_state = SyncState.IDLE

    @property
    def session(self) -> Session:
        return self.backend.session

    # Lifecycle --------------------------------------------------------------
    async def start(self) -> None:
        """Initial load: favorites for the signed-in user, then the first page."""
        await self.load_favorites()
        await self._fetch()

    async def close(self) -> None:
        self._debouncer.cancel()
        await self._debouncer.wait()
        self._settle_if_idle()

    async def wait_for_settle(self) -> None:
        """Wait for a pending debounced fetch to fire and finish."""
        await self._debouncer.wait()

    # Filters and paging -----------------------------------------------------
    def set_filters(self, **changes: Any) -> None:
        """FilterChanged. Must be called from inside the running event loop."""
        self._apply_filters(self.filters.with_changes(**changes))

    def toggle_amenity(self, amenity: str) -> None:
        self._apply_filters(self.filters.toggle_amenity(amenity))

    def toggle_tag(self, tag: str) -> None:
        self._apply_filters(self.filters.toggle_tag(tag))

    def clear_filters(self) -> None:
        self._apply_filters(FilterState())

    def _apply_filters(self, filters: FilterState) -> None:
        if filters == self.filters:
            return
        self.filters = filters
        self.page = replace(self.page, page_number=1)
        # Anything still in flight was asked for under the old filters.
        self._generation += 1
        self._debouncer.trigger()

    async def change_page(self, page_number: int) -> None:
        """PageChanged: no debounce, page turns are already user-paced."""
        if page_number < 1:
            raise ValueError("page number must be at least 1")
        self._debouncer.cancel()
        self.page = replace(self.page, page_number=page_number)
        await self._fetch()

    async def refresh(self) -> bool:
        self._debouncer.cancel()
        return await self._fetch()

    async def _fetch(self) -> bool:
        self._generation += 1
        generation = self._generation
        page_number = self.page.page_number
        query = build_query(self.filters, page_number, self.page.page_size)
        self.state = SyncState.LOADING
        logger.info("listing_fetch_start", extra={"generation": generation, "query": to_query_string(query)})

        self._fetches_in_flight += 1
        try:
            result = await self.backend.list_listings(query)
        except MarketplaceError as exc:
            if generation != self._generation:
                logger.info("listing_fetch_discarded", extra={"generation": generation, "error": str(exc)})
                return False
            # Last good page stays on screen.
            self.state = self._settled_state = SyncState.ERROR
            self.last_error = str(exc)
            logger.warning("listing_fetch_failed", extra={"generation": generation, "error": str(exc)})
            self.notify(_failure_notice(exc))
            return False
        finally:
            self._fetches_in_flight -= 1
            if generation != self._generation:
                self._settle_if_idle()

        if generation != self._generation:
            logger.info("listing_fetch_discarded", extra={"generation": generation})
            return False

        items = list(result.items)
        if len(items) > self.page.page_size:
            logger.warning(
                "listing_page_oversized",
                extra={"received": len(items), "page_size": self.page.page_size},
            )
            items = items[: self.page.page_size]
        self.page = Page(
            items=items,
            total_count=result.total_count,
            page_number=page_number,
            page_size=self.page.page_size,
        )
        self.state = self._settled_state = SyncState.READY
        self.last_error = None
        logger.info(
            "listing_fetch_complete",
            extra={"generation": generation, "items": len(items), "total": result.total_count},
        )
        return True

    def _settle_if_idle(self) -> None:
        if self.state is SyncState.LOADING and not self._fetches_in_flight and not self._debouncer.pending:
            self.state = self._settled_state

    # Ownership and the listing form -----------------------------------------
    def can_modify(self, listing: Listing) -> bool:
        user = self.session.current_user()
        return user is not None and listing.is_owned_by(user.id)

    def open_create_form(self) -> None:
        self.editor = EditorState(mode="create")

    def open_edit_form(self, listing: Listing) -> None:
        self.editor = EditorState(mode="edit", listing=listing)

    def close_form(self) -> None:
        self.editor = EditorState()

    def _find_listing(self, listing_id: str) -> Optional[Listing]:
        if self.editor.listing is not None and self.editor.listing.id == listing_id:
            return self.editor.listing
        return next((item for item in self.page.items if item.id == listing_id), None)

    def _require_user(self, action: str) -> Optional[CurrentUser]:
        try:
            return self.session.require_user()
        except AuthenticationRequired:
            logger.info("action_requires_sign_in", extra={"action": action})
            self.notify(Notice("Authentication required", f"Please sign in to {action}", DESTRUCTIVE))
            return None

    def _require_owner(self, listing_id: str, action: str) -> bool:
        user = self._require_user(action)
        if user is None:
            return False
        listing = self._find_listing(listing_id)
        if listing is not None and not listing.is_owned_by(user.id):
            logger.info("action_not_owner", extra={"action": action, "listing_id": listing_id})
            self.notify(Notice("Permission denied", f"Only the owner can {action}", DESTRUCTIVE))
            return False
        return True

    def _validated(self, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        try:
            return parse_listing_draft(data).to_payload()
        except ListingValidationError as exc:
            self.notify(error_notice(str(exc), title="Invalid listing"))
            return None

    # Mutations --------------------------------------------------------------
    async def create_listing(self, data: Dict[str, Any]) -> bool:
        if self._require_user("add properties") is None:
            return False
        payload = self._validated(data)
        if payload is None:
            return False
        try:
            await self.backend.create_listing(payload)
        except MarketplaceError as exc:
            logger.warning("listing_create_failed", extra={"error": str(exc)})
            self.notify(_failure_notice(exc))
            return False
        self.notify(Notice("Property added", "New property has been added successfully."))
        self.close_form()
        await self.refresh()
        return True

    async def update_listing(self, listing_id: str, data: Dict[str, Any]) -> bool:
        if not self._require_owner(listing_id, "edit this property"):
            return False
        payload = self._validated(data)
        if payload is None:
            return False
        try:
            await self.backend.update_listing(listing_id, payload)
        except MarketplaceError as exc:
            logger.warning("listing_update_failed", extra={"listing_id": listing_id, "error": str(exc)})
            self.notify(_failure_notice(exc))
            return False
        self.notify(Notice("Property updated", "Property updated successfully."))
        self.close_form()
        await self.refresh()
        return True

    async def delete_listing(self, listing_id: str) -> bool:
        if not self._require_owner(listing_id, "delete this property"):
            return False
        try:
            await self.backend.delete_listing(listing_id)
        except MarketplaceError as exc:
            logger.warning("listing_delete_failed", extra={"listing_id": listing_id, "error": str(exc)})
            self.notify(_failure_notice(exc))
            return False
        self.favorites.discard(listing_id)
        self.notify(Notice("Property deleted", "Property has been deleted successfully."))
        await self.refresh()
        return True

    # Favorites --------------------------------------------------------------
    def is_favorite(self, listing_id: str) -> bool:
        return listing_id in self.favorites

    async def load_favorites(self) -> None:
        if self.session.current_user() is None:
            self.favorites.clear()
            return
        try:
            self.favorites.replace(await self.backend.list_favorites())
        except MarketplaceError as exc:
            logger.warning("favorites_load_failed", extra={"error": str(exc)})
            self.notify(_failure_notice(exc))

    async def toggle_favorite(self, listing_id: str) -> bool:
        """Flip the favorite locally first, then confirm with the backend."""
        if self._require_user("save favorites") is None:
            return False
        if listing_id in self._favorites_in_flight:
            logger.debug("favorite_toggle_in_flight", extra={"listing_id": listing_id})
            return False
        self._favorites_in_flight.add(listing_id)
        try:
            if listing_id in self.favorites:
                ok = await self._unfavorite(listing_id)
            else:
                ok = await self._favorite(listing_id)
        finally:
            self._favorites_in_flight.discard(listing_id)
        if ok:
            await self.refresh()
        return ok

    async def _favorite(self, listing_id: str) -> bool:
        self.favorites.add(listing_id)
        try:
            favorite = await self.backend.add_favorite(listing_id)
        except MarketplaceError as exc:
            self.favorites.discard(listing_id)
            logger.warning("favorite_toggle_failed", extra={"listing_id": listing_id, "error": str(exc)})
            self.notify(_failure_notice(exc))
            return False
        self.favorites.add(listing_id, favorite.id)
        self.notify(Notice("Added to favorites", "Property added to your favorites."))
        return True

    async def _unfavorite(self, listing_id: str) -> bool:
        favorite_id = self.favorites.discard(listing_id)
        if favorite_id is None:
            logger.warning("favorite_record_unknown", extra={"listing_id": listing_id})
            return False
        try:
            await self.backend.remove_favorite(favorite_id)
        except MarketplaceError as exc:
            self.favorites.add(listing_id, favorite_id)
            logger.warning("favorite_toggle_failed", extra={"listing_id": listing_id, "error": str(exc)})
            self.notify(_failure_notice(exc))
            return False
        self.notify(Notice("Removed from favorites", "Property removed from your favorites."))
        return True

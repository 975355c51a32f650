from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
from postgrest import APIError

from marketplace.backend import MarketplaceBackend
from marketplace.errors import ApiError, AuthenticationRequired, SessionExpired
from marketplace.models import (
    CurrentUser,
    Favorite,
    Listing,
    ListingPage,
    ReceivedRecommendations,
    Recommendation,
    UserProfile,
    validate_listings,
)
from marketplace.query import LIMIT_PARAM, PAGE_PARAM, QueryParams, split_param_key
from marketplace.session import Session
from supabase import AuthError, Client, create_client
from telemetry.logging_utils import get_logger

logger = get_logger(__name__)

DEFAULT_LIMIT = 12

# REST query field -> properties column. Fields without a column are skipped.
ROW_COLUMNS = {
    "state": "state",
    "city": "city",
    "search": "city",
    "price": "price",
    "areaSqFt": "square_feet",
    "bedrooms": "bedrooms",
    "bathrooms": "bathrooms",
    "type": "property_type",
    "amenities": "amenities",
}

LISTING_COLUMNS = {
    "title": "title",
    "type": "property_type",
    "price": "price",
    "state": "state",
    "city": "city",
    "areaSqFt": "square_feet",
    "bedrooms": "bedrooms",
    "bathrooms": "bathrooms",
    "amenities": "amenities",
    "furnished": "furnished",
    "description": "description",
    "address": "address",
    "zip_code": "zip_code",
    "images": "images",
}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def apply_row_filters(query: Any, params: QueryParams) -> Tuple[Any, int, int]:
    """
    Map REST query parameters onto a postgrest builder.

    Returns the filtered builder plus (page, limit). Range suffixes become
    gte/lte, amenities become an array-contains filter, ``search`` a
    case-insensitive city match.
    """
    page, limit = 1, DEFAULT_LIMIT
    for key, value in params:
        if key == PAGE_PARAM:
            page = max(1, int(value)) if value.isdigit() else 1
            continue
        if key == LIMIT_PARAM:
            limit = max(1, int(value)) if value.isdigit() else DEFAULT_LIMIT
            continue
        name, op = split_param_key(key)
        column = ROW_COLUMNS.get(name)
        if column is None:
            logger.warning("row_store_filter_unsupported", extra={"param": key})
            continue
        if op == "gte":
            query = query.gte(column, value)
        elif op == "lte":
            query = query.lte(column, value)
        elif op is not None:
            logger.warning("row_store_filter_unsupported", extra={"param": key})
        elif name == "amenities":
            query = query.contains(column, [v for v in value.split(",") if v])
        elif name == "search":
            query = query.ilike(column, f"%{value}%")
        elif name == "type":
            query = query.eq(column, value.lower())
        else:
            query = query.eq(column, value)
    return query, page, limit


def row_to_listing(row: Dict[str, Any]) -> Dict[str, Any]:
    """Reshape a ``properties`` row into the REST listing shape."""
    listing = {key: row.get(column) for key, column in LISTING_COLUMNS.items() if column in row}
    listing["_id"] = row["id"]
    listing["createdBy"] = row.get("owner_id")
    listing["createdAt"] = row.get("created_at")
    listing["updatedAt"] = row.get("updated_at")
    listing["status"] = row.get("status")
    return listing


def listing_to_row(data: Dict[str, Any]) -> Dict[str, Any]:
    row: Dict[str, Any] = {}
    for key, value in data.items():
        column = LISTING_COLUMNS.get(key)
        if column is None:
            logger.debug("row_store_field_dropped", extra={"field": key})
            continue
        row[column] = value
    if "property_type" in row and isinstance(row["property_type"], str):
        row["property_type"] = row["property_type"].lower()
    if "furnished" in row and not isinstance(row["furnished"], bool):
        row["furnished"] = str(row["furnished"]).lower() not in ("", "unfurnished", "false", "no")
    return row


class SupabaseStore(MarketplaceBackend):
    """Row-store backend: Supabase tables plus Supabase auth."""

    def __init__(
        self,
        url: Optional[str] = None,
        key: Optional[str] = None,
        session: Optional[Session] = None,
        *,
        client: Optional[Client] = None,
    ) -> None:
        super().__init__(session)
        if client is None:
            if not url or not key:
                raise RuntimeError("Supabase is required. Set SUPABASE_URL and SUPABASE_ANON_KEY in .env")
            client = create_client(url, key)
        self.client: Client = client

    def _table(self, name: str):
        return self.client.table(name)

    async def _run(self, fn: Callable[[], Any]) -> Any:
        token = self.session.valid_token()
        if token:
            self.client.postgrest.auth(token)
        try:
            return await asyncio.to_thread(fn)
        except APIError as exc:
            raise ApiError(exc.message or str(exc)) from exc
        except httpx.HTTPError as exc:
            raise ApiError(str(exc) or exc.__class__.__name__) from exc

    def _user_id(self) -> str:
        had_token = self.session.token is not None
        user = self.session.current_user()
        if user is None:
            raise SessionExpired() if had_token else AuthenticationRequired()
        return user.id

    # Auth -----------------------------------------------------------------
    async def _authenticate(self, fn: Callable[[], Any]) -> Tuple[str, CurrentUser]:
        try:
            resp = await asyncio.to_thread(fn)
        except AuthError as exc:
            raise ApiError(str(exc), getattr(exc, "status", None)) from exc
        if resp.session is None or resp.user is None:
            raise ApiError("Check your email to confirm your account before signing in")
        user = CurrentUser.model_validate({"_id": resp.user.id, "email": resp.user.email or ""})
        return resp.session.access_token, user

    async def register(self, email: str, password: str) -> Tuple[str, CurrentUser]:
        return await self._authenticate(lambda: self.client.auth.sign_up({"email": email, "password": password}))

    async def login(self, email: str, password: str) -> Tuple[str, CurrentUser]:
        return await self._authenticate(
            lambda: self.client.auth.sign_in_with_password({"email": email, "password": password})
        )

    # Listings -------------------------------------------------------------
    async def list_listings(self, query: QueryParams) -> ListingPage:
        builder = self._table("properties").select("*", count="exact")
        builder, page, limit = apply_row_filters(builder, query)
        start = (page - 1) * limit
        builder = builder.order("created_at", desc=True).range(start, start + limit - 1)
        resp = await self._run(lambda: builder.execute())
        rows = resp.data or []
        items = validate_listings([row_to_listing(r) for r in rows])
        return ListingPage(items=items, total_count=resp.count if resp.count is not None else len(items))

    async def get_listing(self, listing_id: str) -> Listing:
        resp = await self._run(
            lambda: self._table("properties").select("*").eq("id", listing_id).maybe_single().execute()
        )
        if resp is None or not resp.data:
            raise ApiError("Property not found", 404)
        return Listing.model_validate(row_to_listing(resp.data))

    async def create_listing(self, data: Dict[str, Any]) -> Listing:
        row = {**listing_to_row(data), "owner_id": self._user_id()}
        row.setdefault("address", "")
        row.setdefault("zip_code", "")
        resp = await self._run(lambda: self._table("properties").insert(row).execute())
        if not resp.data:
            raise ApiError("Failed to insert property")
        return Listing.model_validate(row_to_listing(resp.data[0]))

    async def update_listing(self, listing_id: str, data: Dict[str, Any]) -> Listing:
        user_id = self._user_id()
        row = {**listing_to_row(data), "updated_at": _now_iso()}
        resp = await self._run(
            lambda: self._table("properties").update(row).eq("id", listing_id).eq("owner_id", user_id).execute()
        )
        if not resp.data:
            raise ApiError("Property not found or not owned by you", 404)
        return Listing.model_validate(row_to_listing(resp.data[0]))

    async def delete_listing(self, listing_id: str) -> None:
        user_id = self._user_id()
        await self._run(
            lambda: self._table("properties").delete().eq("id", listing_id).eq("owner_id", user_id).execute()
        )

    # Favorites --------------------------------------------------------------
    @staticmethod
    def _favorite(row: Dict[str, Any]) -> Favorite:
        listing_row = row.get("properties")
        return Favorite.model_validate(
            {
                "_id": row["id"],
                "user": row.get("user_id"),
                "property": row_to_listing(listing_row) if listing_row else None,
                "propertyId": row.get("property_id"),
                "createdAt": row.get("created_at"),
            }
        )

    async def list_favorites(self) -> List[Favorite]:
        user_id = self._user_id()
        resp = await self._run(
            lambda: self._table("favorites").select("*, properties (*)").eq("user_id", user_id).execute()
        )
        return [self._favorite(row) for row in resp.data or []]

    async def add_favorite(self, listing_id: str) -> Favorite:
        user_id = self._user_id()
        resp = await self._run(
            lambda: self._table("favorites").insert({"user_id": user_id, "property_id": listing_id}).execute()
        )
        if not resp.data:
            raise ApiError("Failed to save favorite")
        return self._favorite(resp.data[0])

    async def remove_favorite(self, favorite_id: str) -> None:
        user_id = self._user_id()
        await self._run(
            lambda: self._table("favorites").delete().eq("id", favorite_id).eq("user_id", user_id).execute()
        )

    # Profile ----------------------------------------------------------------
    async def get_profile(self) -> UserProfile:
        user_id = self._user_id()
        resp = await self._run(lambda: self._table("profiles").select("*").eq("id", user_id).maybe_single().execute())
        if resp is None or not resp.data:
            raise ApiError("Profile not found", 404)
        return UserProfile.model_validate(resp.data)

    async def update_profile(self, changes: Dict[str, Any]) -> UserProfile:
        user_id = self._user_id()
        payload = {**changes, "updated_at": _now_iso()}
        resp = await self._run(lambda: self._table("profiles").update(payload).eq("id", user_id).execute())
        if not resp.data:
            raise ApiError("Profile not found", 404)
        return UserProfile.model_validate(resp.data[0])

    # Recommendations --------------------------------------------------------
    async def send_recommendation(self, listing_id: str, recipient_email: str, message: str = "") -> Recommendation:
        user_id = self._user_id()
        found = await self._run(
            lambda: self._table("profiles").select("id, email").eq("email", recipient_email.lower()).maybe_single().execute()
        )
        if found is None or not found.data:
            raise ApiError("No user found with that email", 404)
        row = {
            "from_user_id": user_id,
            "to_user_id": found.data["id"],
            "property_id": listing_id,
            "message": message,
        }
        resp = await self._run(lambda: self._table("recommendations").insert(row).execute())
        if not resp.data:
            raise ApiError("Failed to send recommendation")
        saved = resp.data[0]
        return Recommendation.model_validate(
            {
                "_id": saved["id"],
                "fromUser": {"_id": user_id, "email": self.session.user.email if self.session.user else ""},
                "message": saved.get("message") or "",
                "createdAt": saved.get("created_at"),
            }
        )

    async def list_received_recommendations(self) -> ReceivedRecommendations:
        user_id = self._user_id()
        resp = await self._run(
            lambda: self._table("recommendations")
            .select("*, properties (*)")
            .eq("to_user_id", user_id)
            .order("created_at", desc=True)
            .execute()
        )
        rows = resp.data or []
        sender_ids = sorted({r["from_user_id"] for r in rows if r.get("from_user_id")})
        senders: Dict[str, str] = {}
        if sender_ids:
            found = await self._run(
                lambda: self._table("profiles").select("id, email").in_("id", sender_ids).execute()
            )
            senders = {p["id"]: p.get("email") or "" for p in found.data or []}

        live = [r for r in rows if r.get("properties")]
        recommendations = [
            Recommendation.model_validate(
                {
                    "_id": r["id"],
                    "fromUser": {"_id": r.get("from_user_id") or "unknown", "email": senders.get(r.get("from_user_id"), "")},
                    "property": row_to_listing(r["properties"]),
                    "message": r.get("message") or "",
                    "createdAt": r.get("created_at"),
                }
            )
            for r in live
        ]
        return ReceivedRecommendations(recommendations=recommendations, deleted_count=len(rows) - len(live))

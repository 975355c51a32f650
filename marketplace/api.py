"""
REST backend: the listings API reached over HTTP with a bearer token.

Endpoints (relative to API_BASE_URL):

    POST   /auth/register, /auth/login
    GET    /properties?…              -> {status, results, total, page, pages, data}
    GET    /properties/{id}
    POST   /properties/create
    PUT    /properties/{id}
    DELETE /properties/{id}
    GET    /favorites   POST /favorites   DELETE /favorites/{id}
    GET    /users/me    PUT /users/me
    POST   /recommendations
    GET    /recommendations/received  -> {recommendations, deletedPropertiesCount}
"""

from __future__ import annotations

import time
from typing import Any, Dict, List, Optional, Tuple

import httpx

from telemetry.logging_utils import get_logger

from .backend import MarketplaceBackend
from .errors import ApiError, AuthenticationRequired, PermissionDenied, SessionExpired
from .models import (
    CurrentUser,
    Favorite,
    Listing,
    ListingPage,
    ReceivedRecommendations,
    Recommendation,
    UserProfile,
    validate_listings,
)
from .query import QueryParams
from .session import Session

logger = get_logger(__name__)


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("error", "message", "detail"):
            if body.get(key):
                return str(body[key])
    return f"Request failed with status code {resp.status_code}"


class RestBackend(MarketplaceBackend):
    def __init__(
        self,
        session: Optional[Session] = None,
        *,
        base_url: str = "http://localhost:3000/api",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(session)
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, *, auth_required: bool = False, **kwargs) -> Any:
        had_token = self.session.token is not None
        token = self.session.valid_token()
        if auth_required and token is None:
            raise SessionExpired() if had_token else AuthenticationRequired()

        headers = kwargs.pop("headers", {})
        if token:
            headers["Authorization"] = f"Bearer {token}"

        started = time.perf_counter()
        try:
            resp = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("api_request_failed", extra={"method": method, "path": path, "error": str(exc)})
            raise ApiError(str(exc) or exc.__class__.__name__) from exc

        logger.debug(
            "api_request",
            extra={
                "method": method,
                "path": path,
                "status": resp.status_code,
                "latency_ms": round((time.perf_counter() - started) * 1000, 3),
            },
        )
        if resp.status_code == 401 and token:
            self.session.clear()
            raise SessionExpired(_error_message(resp))
        if resp.status_code == 403:
            raise PermissionDenied(_error_message(resp))
        if resp.is_error:
            raise ApiError(_error_message(resp), resp.status_code)
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise ApiError("Invalid JSON response", resp.status_code) from exc

    def _auth_result(self, body: Any) -> Tuple[str, CurrentUser]:
        if not isinstance(body, dict) or not body.get("token"):
            raise ApiError("Authentication response did not include a token")
        user = (body.get("data") or {}).get("user") or body.get("user")
        if not user:
            raise ApiError("Authentication response did not include a user")
        return body["token"], CurrentUser.model_validate(user)

    async def register(self, email: str, password: str) -> Tuple[str, CurrentUser]:
        body = await self._request("POST", "/auth/register", json={"email": email, "password": password})
        return self._auth_result(body)

    async def login(self, email: str, password: str) -> Tuple[str, CurrentUser]:
        body = await self._request("POST", "/auth/login", json={"email": email, "password": password})
        return self._auth_result(body)

    async def list_listings(self, query: QueryParams) -> ListingPage:
        body = await self._request("GET", "/properties", params=query)
        if isinstance(body, list):
            items = validate_listings(body)
            return ListingPage(items=items, total_count=len(items))
        body = body or {}
        items = validate_listings(body.get("data"))
        total = body.get("total")
        return ListingPage(items=items, total_count=int(total) if total is not None else len(items))

    async def get_listing(self, listing_id: str) -> Listing:
        body = await self._request("GET", f"/properties/{listing_id}")
        return Listing.model_validate(body.get("data", body) if isinstance(body, dict) else body)

    async def create_listing(self, data: Dict[str, Any]) -> Listing:
        body = await self._request("POST", "/properties/create", auth_required=True, json=data)
        return Listing.model_validate(body.get("data", body) if isinstance(body, dict) else body)

    async def update_listing(self, listing_id: str, data: Dict[str, Any]) -> Listing:
        body = await self._request("PUT", f"/properties/{listing_id}", auth_required=True, json=data)
        return Listing.model_validate(body.get("data", body) if isinstance(body, dict) else body)

    async def delete_listing(self, listing_id: str) -> None:
        await self._request("DELETE", f"/properties/{listing_id}", auth_required=True)

    async def list_favorites(self) -> List[Favorite]:
        body = await self._request("GET", "/favorites", auth_required=True)
        entries = body.get("data", []) if isinstance(body, dict) else (body or [])
        return [Favorite.model_validate(entry) for entry in entries]

    async def add_favorite(self, listing_id: str) -> Favorite:
        body = await self._request("POST", "/favorites", auth_required=True, json={"propertyId": listing_id})
        return Favorite.model_validate(body)

    async def remove_favorite(self, favorite_id: str) -> None:
        await self._request("DELETE", f"/favorites/{favorite_id}", auth_required=True)

    async def get_profile(self) -> UserProfile:
        body = await self._request("GET", "/users/me", auth_required=True)
        return UserProfile.model_validate(body)

    async def update_profile(self, changes: Dict[str, Any]) -> UserProfile:
        body = await self._request("PUT", "/users/me", auth_required=True, json=changes)
        return UserProfile.model_validate(body)

    async def send_recommendation(self, listing_id: str, recipient_email: str, message: str = "") -> Recommendation:
        body = await self._request(
            "POST",
            "/recommendations",
            auth_required=True,
            json={"propertyId": listing_id, "recipientEmail": recipient_email, "message": message},
        )
        return Recommendation.model_validate(body.get("data", body) if isinstance(body, dict) else body)

    async def list_received_recommendations(self) -> ReceivedRecommendations:
        body = await self._request("GET", "/recommendations/received", auth_required=True) or {}
        return ReceivedRecommendations(
            recommendations=[Recommendation.model_validate(r) for r in body.get("recommendations") or []],
            deleted_count=int(body.get("deletedPropertiesCount") or 0),
        )

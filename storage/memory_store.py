from __future__ import annotations

import copy
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from marketplace.backend import MarketplaceBackend
from marketplace.errors import ApiError, AuthenticationRequired, PermissionDenied, SessionExpired
from marketplace.models import (
    CurrentUser,
    Favorite,
    Listing,
    ListingPage,
    ReceivedRecommendations,
    Recommendation,
    UserProfile,
)
from marketplace.query import LIMIT_PARAM, PAGE_PARAM, QueryParams, split_param_key
from marketplace.session import Session
from storage.security import hash_password, issue_token, verify_password
from telemetry.logging_utils import get_logger

logger = get_logger(__name__)

DEFAULT_LIMIT = 12
SET_FIELDS = {"amenities", "tags"}

DEMO_LISTINGS: List[Dict[str, Any]] = [
    {
        "title": "Sunny 2BHK near Indiranagar metro",
        "type": "Apartment",
        "price": 32000,
        "state": "Karnataka",
        "city": "Bangalore",
        "areaSqFt": 1150,
        "bedrooms": 2,
        "bathrooms": 2,
        "amenities": ["wifi", "lift", "security"],
        "furnished": "semi",
        "availableFrom": "2026-11-01",
        "listedBy": "Owner",
        "tags": ["near-metro"],
        "rating": 4.5,
        "isVerified": True,
        "listingType": "rent",
    },
    {
        "title": "Sea-facing villa with pool",
        "type": "Villa",
        "price": 45000000,
        "state": "Goa",
        "city": "Panaji",
        "areaSqFt": 4200,
        "bedrooms": 4,
        "bathrooms": 5,
        "amenities": ["pool", "parking", "wifi", "security"],
        "furnished": "furnished",
        "availableFrom": "2026-12-15",
        "listedBy": "Agent",
        "tags": ["sea-view", "luxury"],
        "rating": 4.8,
        "isVerified": True,
        "listingType": "sale",
    },
    {
        "title": "Compact studio in Koregaon Park",
        "type": "Studio",
        "price": 18000,
        "state": "Maharashtra",
        "city": "Pune",
        "areaSqFt": 450,
        "bedrooms": 1,
        "bathrooms": 1,
        "amenities": ["wifi", "power-backup"],
        "furnished": "furnished",
        "availableFrom": "2026-10-25",
        "listedBy": "Owner",
        "tags": ["affordable"],
        "rating": 3.9,
        "isVerified": False,
        "listingType": "rent",
    },
    {
        "title": "3BHK family flat with clubhouse",
        "type": "Apartment",
        "price": 55000,
        "state": "Telangana",
        "city": "Hyderabad",
        "areaSqFt": 1800,
        "bedrooms": 3,
        "bathrooms": 3,
        "amenities": ["clubhouse", "pool", "parking", "lift"],
        "furnished": "unfurnished",
        "availableFrom": "2027-01-01",
        "listedBy": "Builder",
        "tags": ["luxury"],
        "rating": 4.2,
        "isVerified": True,
        "listingType": "rent",
    },
]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _compare(actual: Any, op: str, expected: str) -> bool:
    """Numeric comparison when both sides parse, ISO-string comparison otherwise."""
    if actual is None or actual == "":
        return False
    left, right = _as_number(actual), _as_number(expected)
    if left is None or right is None:
        left, right = str(actual), expected
    if op == "gte":
        return left >= right
    if op == "lte":
        return left <= right
    if op == "gt":
        return left > right
    if op == "lt":
        return left < right
    return False


def listing_matches(listing: Dict[str, Any], params: QueryParams) -> bool:
    """Evaluate the REST query parameters against one stored listing."""
    for key, value in params:
        if key in (PAGE_PARAM, LIMIT_PARAM):
            continue
        name, op = split_param_key(key)
        if op is not None:
            if not _compare(listing.get(name), op, value):
                return False
        elif name in SET_FIELDS:
            wanted = {v.strip().lower() for v in value.split(",") if v.strip()}
            have = {str(v).lower() for v in listing.get(name) or []}
            if not wanted <= have:
                return False
        elif name == "search":
            needle = value.lower()
            haystack = f"{listing.get('title', '')} {listing.get('city', '')}".lower()
            if needle not in haystack:
                return False
        elif name == "isVerified":
            if bool(listing.get("isVerified")) != (value.lower() == "true"):
                return False
        elif str(listing.get(name, "")).lower() != value.lower():
            return False
    return True


def _paging(params: QueryParams) -> Tuple[int, int]:
    values = dict(params)
    try:
        page = max(1, int(values.get(PAGE_PARAM, 1)))
    except ValueError:
        page = 1
    try:
        limit = max(1, int(values.get(LIMIT_PARAM, DEFAULT_LIMIT)))
    except ValueError:
        limit = DEFAULT_LIMIT
    return page, limit


class InMemoryStore(MarketplaceBackend):
    """Demo-mode and test backend that keeps everything in dicts."""

    def __init__(self, session: Optional[Session] = None, *, seed_demo: bool = False) -> None:
        super().__init__(session)
        self.users: Dict[str, Dict[str, Any]] = {}
        self.tokens: Dict[str, str] = {}
        self.listings: Dict[str, Dict[str, Any]] = {}
        self.favorites: Dict[str, Dict[str, Any]] = {}
        self.profiles: Dict[str, Dict[str, Any]] = {}
        self.recommendations: Dict[str, Dict[str, Any]] = {}

        # Seed a guest user for convenience.
        guest = self._add_user("guest@propertyhub.local", "guest", full_name="Guest Demo")
        if seed_demo:
            for listing in DEMO_LISTINGS:
                self.seed_listing(listing, owner_id=guest["_id"])

    # Seeding ----------------------------------------------------------------
    def _add_user(self, email: str, password: str, *, full_name: str = "") -> Dict[str, Any]:
        user_id = str(uuid.uuid4())
        user = {
            "_id": user_id,
            "email": email.lower(),
            "password_hash": hash_password(password),
            "createdAt": _now_iso(),
        }
        self.users[user_id] = user
        self.profiles[user_id] = {
            "_id": user_id,
            "full_name": full_name,
            "email": email.lower(),
            "phone": "",
            "createdAt": user["createdAt"],
            "updatedAt": user["createdAt"],
        }
        return user

    def seed_listing(self, data: Dict[str, Any], *, owner_id: Optional[str] = None) -> Dict[str, Any]:
        listing_id = data.get("_id") or str(uuid.uuid4())
        now = _now_iso()
        listing = {**copy.deepcopy(data), "_id": listing_id, "createdAt": data.get("createdAt") or now, "updatedAt": now}
        if owner_id is not None:
            listing["createdBy"] = owner_id
        self.listings[listing_id] = listing
        return listing

    def find_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        email = email.strip().lower()
        return next((u for u in self.users.values() if u["email"] == email), None)

    # Auth -------------------------------------------------------------------
    def _public_user(self, user: Dict[str, Any]) -> CurrentUser:
        return CurrentUser.model_validate({"_id": user["_id"], "email": user["email"]})

    def _issue(self, user: Dict[str, Any]) -> Tuple[str, CurrentUser]:
        token = issue_token(user["_id"])
        self.tokens[token] = user["_id"]
        return token, self._public_user(user)

    async def register(self, email: str, password: str) -> Tuple[str, CurrentUser]:
        if self.find_user_by_email(email):
            raise ApiError("Email already registered", 400)
        return self._issue(self._add_user(email, password))

    async def login(self, email: str, password: str) -> Tuple[str, CurrentUser]:
        user = self.find_user_by_email(email)
        if not user or not verify_password(password, user["password_hash"]):
            raise ApiError("Invalid credentials", 401)
        return self._issue(user)

    def _user_id(self) -> str:
        had_token = self.session.token is not None
        token = self.session.valid_token()
        if token is None:
            raise SessionExpired() if had_token else AuthenticationRequired()
        user_id = self.tokens.get(token)
        if user_id is None:
            raise ApiError("Invalid token", 401)
        return user_id

    # Listings ---------------------------------------------------------------
    async def list_listings(self, query: QueryParams) -> ListingPage:
        page, limit = _paging(query)
        matched = [l for l in self.listings.values() if listing_matches(l, query)]
        matched.sort(key=lambda l: l.get("createdAt") or "", reverse=True)
        start = (page - 1) * limit
        window = matched[start : start + limit]
        return ListingPage(
            items=[Listing.model_validate(copy.deepcopy(l)) for l in window],
            total_count=len(matched),
        )

    def _listing(self, listing_id: str) -> Dict[str, Any]:
        listing = self.listings.get(listing_id)
        if listing is None:
            raise ApiError("Property not found", 404)
        return listing

    async def get_listing(self, listing_id: str) -> Listing:
        return Listing.model_validate(copy.deepcopy(self._listing(listing_id)))

    async def create_listing(self, data: Dict[str, Any]) -> Listing:
        user_id = self._user_id()
        data = {k: v for k, v in data.items() if k not in ("_id", "createdBy")}
        listing = self.seed_listing(data, owner_id=user_id)
        logger.info("memory_listing_created", extra={"listing_id": listing["_id"]})
        return Listing.model_validate(copy.deepcopy(listing))

    def _owned_listing(self, listing_id: str) -> Dict[str, Any]:
        user_id = self._user_id()
        listing = self._listing(listing_id)
        if listing.get("createdBy") != user_id:
            raise PermissionDenied()
        return listing

    async def update_listing(self, listing_id: str, data: Dict[str, Any]) -> Listing:
        listing = self._owned_listing(listing_id)
        listing.update({k: copy.deepcopy(v) for k, v in data.items() if k not in ("_id", "createdBy", "createdAt")})
        listing["updatedAt"] = _now_iso()
        return Listing.model_validate(copy.deepcopy(listing))

    async def delete_listing(self, listing_id: str) -> None:
        self._owned_listing(listing_id)
        del self.listings[listing_id]
        for fav_id in [f["_id"] for f in self.favorites.values() if f["property"] == listing_id]:
            del self.favorites[fav_id]

    # Favorites --------------------------------------------------------------
    def _favorite_view(self, fav: Dict[str, Any]) -> Favorite:
        listing = self.listings.get(fav["property"])
        return Favorite.model_validate(
            {
                "_id": fav["_id"],
                "user": fav["user"],
                "property": copy.deepcopy(listing) if listing else None,
                "propertyId": fav["property"],
                "createdAt": fav["createdAt"],
            }
        )

    async def list_favorites(self) -> List[Favorite]:
        user_id = self._user_id()
        return [self._favorite_view(f) for f in self.favorites.values() if f["user"] == user_id]

    async def add_favorite(self, listing_id: str) -> Favorite:
        user_id = self._user_id()
        self._listing(listing_id)
        existing = next(
            (f for f in self.favorites.values() if f["user"] == user_id and f["property"] == listing_id), None
        )
        if existing:
            return self._favorite_view(existing)
        fav = {"_id": str(uuid.uuid4()), "user": user_id, "property": listing_id, "createdAt": _now_iso()}
        self.favorites[fav["_id"]] = fav
        return self._favorite_view(fav)

    async def remove_favorite(self, favorite_id: str) -> None:
        user_id = self._user_id()
        fav = self.favorites.get(favorite_id)
        if fav is None or fav["user"] != user_id:
            raise ApiError("Favorite not found", 404)
        del self.favorites[favorite_id]

    # Profile ----------------------------------------------------------------
    async def get_profile(self) -> UserProfile:
        return UserProfile.model_validate(copy.deepcopy(self.profiles[self._user_id()]))

    async def update_profile(self, changes: Dict[str, Any]) -> UserProfile:
        profile = self.profiles[self._user_id()]
        profile.update({k: v for k, v in changes.items() if k in ("full_name", "email", "phone")})
        profile["updatedAt"] = _now_iso()
        return UserProfile.model_validate(copy.deepcopy(profile))

    # Recommendations --------------------------------------------------------
    async def send_recommendation(self, listing_id: str, recipient_email: str, message: str = "") -> Recommendation:
        user_id = self._user_id()
        self._listing(listing_id)
        recipient = self.find_user_by_email(recipient_email)
        if recipient is None:
            raise ApiError("No user found with that email", 404)
        rec = {
            "_id": str(uuid.uuid4()),
            "fromUser": user_id,
            "toUser": recipient["_id"],
            "property": listing_id,
            "message": message,
            "createdAt": _now_iso(),
        }
        self.recommendations[rec["_id"]] = rec
        return self._recommendation_view(rec)

    def _recommendation_view(self, rec: Dict[str, Any]) -> Recommendation:
        sender = self.users.get(rec["fromUser"], {})
        listing = self.listings.get(rec["property"])
        return Recommendation.model_validate(
            {
                "_id": rec["_id"],
                "fromUser": {"_id": rec["fromUser"], "email": sender.get("email", "")},
                "property": copy.deepcopy(listing) if listing else None,
                "message": rec["message"],
                "createdAt": rec["createdAt"],
            }
        )

    async def list_received_recommendations(self) -> ReceivedRecommendations:
        user_id = self._user_id()
        received = [r for r in self.recommendations.values() if r["toUser"] == user_id]
        received.sort(key=lambda r: r["createdAt"], reverse=True)
        live = [r for r in received if r["property"] in self.listings]
        return ReceivedRecommendations(
            recommendations=[self._recommendation_view(r) for r in live],
            deleted_count=len(received) - len(live),
        )

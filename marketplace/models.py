from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from telemetry.logging_utils import get_logger

from .errors import ListingValidationError
from .locations import STATE_CITY_DATA, cities_for_state

logger = get_logger(__name__)

MAX_PRICE = 100_000_000
MAX_AREA = 10_000
MAX_BEDROOMS = 10
MAX_BATHROOMS = 10
MAX_RATING = 5
LISTING_TYPES = ("rent", "sale")


def _ref_id(value: Any) -> Any:
    """Collapse a populated reference ({"_id": ...}) down to its id."""
    if isinstance(value, dict):
        return value.get("_id") or value.get("id")
    return value


def _mongo_id(data: Any) -> Any:
    if isinstance(data, dict) and "id" in data:
        data = dict(data)
        ident = data.pop("id")
        data.setdefault("_id", ident)
    return data


class _Record(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _accept_plain_id(cls, data: Any) -> Any:
        return _mongo_id(data)


class Listing(_Record):
    id: str = Field(alias="_id")
    title: str = ""
    type: str = ""
    price: Optional[float] = None
    state: str = ""
    city: str = ""
    area_sq_ft: Optional[float] = Field(None, alias="areaSqFt")
    bedrooms: Optional[float] = None
    bathrooms: Optional[float] = None
    amenities: List[str] = Field(default_factory=list)
    furnished: str = ""
    available_from: Optional[str] = Field(None, alias="availableFrom")
    listed_by: str = Field("", alias="listedBy")
    tags: List[str] = Field(default_factory=list)
    rating: Optional[float] = None
    is_verified: bool = Field(False, alias="isVerified")
    listing_type: str = Field("", alias="listingType")
    created_by: Optional[str] = Field(None, alias="createdBy")
    created_at: Optional[str] = Field(None, alias="createdAt")
    updated_at: Optional[str] = Field(None, alias="updatedAt")

    @field_validator("created_by", mode="before")
    @classmethod
    def _creator_id(cls, value: Any) -> Any:
        return _ref_id(value)

    @field_validator("amenities", "tags", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return value or []

    @field_validator("furnished", "listed_by", "listing_type", "title", "type", "state", "city", mode="before")
    @classmethod
    def _text(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, bool):
            return "furnished" if value else "unfurnished"
        return value

    def is_owned_by(self, user_id: Optional[str]) -> bool:
        return bool(user_id) and self.created_by == user_id


class Favorite(_Record):
    id: str = Field(alias="_id")
    user: Optional[str] = None
    listing: Optional[Listing] = Field(None, alias="property")
    property_id: Optional[str] = Field(None, alias="propertyId")
    created_at: Optional[str] = Field(None, alias="createdAt")

    @model_validator(mode="before")
    @classmethod
    def _unpopulated_property(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("property"), str):
            data = dict(data)
            data.setdefault("propertyId", data.pop("property"))
        return data

    @field_validator("user", mode="before")
    @classmethod
    def _user_id(cls, value: Any) -> Any:
        return _ref_id(value)

    @property
    def listing_id(self) -> Optional[str]:
        if self.listing is not None:
            return self.listing.id
        return self.property_id


class CurrentUser(_Record):
    id: str = Field(alias="_id")
    email: str = ""


class UserProfile(_Record):
    id: str = Field(alias="_id")
    full_name: str = ""
    email: str = ""
    phone: str = ""
    avatar_url: Optional[str] = None
    created_at: Optional[str] = Field(None, alias="createdAt")
    updated_at: Optional[str] = Field(None, alias="updatedAt")

    @field_validator("full_name", "email", "phone", mode="before")
    @classmethod
    def _text(cls, value: Any) -> Any:
        return value or ""


class RecommendationSender(_Record):
    id: str = Field("unknown", alias="_id")
    email: str = ""


class Recommendation(_Record):
    id: str = Field(alias="_id")
    from_user: RecommendationSender = Field(default_factory=RecommendationSender, alias="fromUser")
    listing: Optional[Listing] = Field(None, alias="property")
    message: str = ""
    created_at: Optional[str] = Field(None, alias="createdAt")

    @field_validator("message", mode="before")
    @classmethod
    def _text(cls, value: Any) -> Any:
        return value or ""


class ListingPage(BaseModel):
    items: List[Listing] = Field(default_factory=list)
    total_count: int = 0


class ReceivedRecommendations(BaseModel):
    recommendations: List[Recommendation] = Field(default_factory=list)
    deleted_count: int = 0


def validate_listings(raw: Any, *, limit: Optional[int] = None) -> List[Listing]:
    """Coerce listing payloads into models, logging and dropping invalid entries."""
    entries = raw if isinstance(raw, list) else []
    cleaned: List[Listing] = []
    for entry in entries:
        try:
            cleaned.append(Listing.model_validate(entry))
        except ValidationError as exc:
            logger.warning("listing_validation_failed", extra={"error": str(exc)[:200]})
    if limit is not None:
        cleaned = cleaned[:limit]
    return cleaned


class ListingDraft(BaseModel):
    """The create/edit form payload, checked before it is sent anywhere."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    title: str = Field(min_length=1)
    type: str = Field(min_length=1)
    price: float = Field(gt=0, le=MAX_PRICE)
    state: str
    city: str
    area_sq_ft: float = Field(alias="areaSqFt", ge=0, le=MAX_AREA)
    bedrooms: int = Field(ge=0, le=MAX_BEDROOMS)
    bathrooms: int = Field(ge=0, le=MAX_BATHROOMS)
    amenities: List[str] = Field(default_factory=list)
    furnished: str = ""
    available_from: Optional[date] = Field(None, alias="availableFrom")
    listed_by: str = Field("", alias="listedBy")
    tags: List[str] = Field(default_factory=list)
    rating: float = Field(0, ge=0, le=MAX_RATING)
    is_verified: bool = Field(False, alias="isVerified")
    listing_type: str = Field(alias="listingType")

    @field_validator("listing_type")
    @classmethod
    def _known_listing_type(cls, value: str) -> str:
        lowered = value.lower()
        if lowered not in LISTING_TYPES:
            raise ValueError("listing type must be rent or sale")
        return lowered

    @model_validator(mode="after")
    def _known_location(self) -> "ListingDraft":
        if self.state not in STATE_CITY_DATA:
            raise ValueError(f"unknown state {self.state!r}")
        if self.city not in cities_for_state(self.state):
            raise ValueError(f"{self.city!r} is not a city in {self.state}")
        return self

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


def parse_listing_draft(data: Dict[str, Any]) -> ListingDraft:
    """Validate form data, raising ListingValidationError keyed by field."""
    try:
        return ListingDraft.model_validate(data)
    except ValidationError as exc:
        errors: Dict[str, str] = {}
        for err in exc.errors():
            field = ".".join(str(part) for part in err.get("loc", ())) or "listing"
            errors.setdefault(field, err.get("msg", "invalid value"))
        raise ListingValidationError(errors) from exc

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Optional, Tuple


@dataclass(frozen=True)
class FilterState:
    """
    The user's current search constraints.

    Every text field is either "" (no constraint) or the raw value the user
    typed or picked. Range bounds stay strings; parsing them is the backend's
    job. ``amenities`` and ``tags`` keep selection order so the query they
    produce is stable. ``is_verified`` is tri-state: None means "any".
    """

    state: str = ""
    city: str = ""
    min_price: str = ""
    max_price: str = ""
    min_area_sq_ft: str = ""
    max_area_sq_ft: str = ""
    bedrooms: str = ""
    bathrooms: str = ""
    amenities: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()
    furnished: str = ""
    available_from: str = ""
    min_rating: str = ""
    max_rating: str = ""
    is_verified: Optional[bool] = None
    listing_type: str = ""
    property_type: str = ""

    def __post_init__(self) -> None:
        # Lists passed in by callers are frozen into tuples; a bare string is one token.
        for name in ("amenities", "tags"):
            value = getattr(self, name)
            if isinstance(value, str):
                object.__setattr__(self, name, (value,) if value else ())
            elif not isinstance(value, tuple):
                object.__setattr__(self, name, tuple(value or ()))

    @classmethod
    def field_names(cls) -> Tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    def with_changes(self, **changes: Any) -> "FilterState":
        """
        Return a copy with ``changes`` applied.

        Unknown field names raise TypeError. Picking a different state clears
        the city unless the same update also supplies one.
        """
        unknown = set(changes) - set(self.field_names())
        if unknown:
            raise TypeError(f"Unknown filter field(s): {', '.join(sorted(unknown))}")
        if "state" in changes and changes["state"] != self.state and "city" not in changes:
            changes["city"] = ""
        return replace(self, **changes)

    def toggle_amenity(self, amenity: str) -> "FilterState":
        return self.with_changes(amenities=_toggle(self.amenities, amenity))

    def toggle_tag(self, tag: str) -> "FilterState":
        return self.with_changes(tags=_toggle(self.tags, tag))

    def is_empty(self) -> bool:
        return self == FilterState()


def _toggle(values: Tuple[str, ...], item: str) -> Tuple[str, ...]:
    if item in values:
        return tuple(v for v in values if v != item)
    return values + (item,)

"""
Translate a FilterState into the listing query parameters.

The REST API reads bracketed comparison suffixes, so a price range becomes two
independent parameters:

    price[gte]=1000&price[lte]=5000

Parameter order is fixed so the same filters always produce the same query,
and ``page``/``limit`` always come last.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Tuple
from urllib.parse import urlencode

from .filters import FilterState

QueryParams = List[Tuple[str, str]]

PAGE_PARAM = "page"
LIMIT_PARAM = "limit"


def range_params(key: str, low: str, high: str) -> QueryParams:
    """
    Known patterns:
        price[gte]=1000
        price[lte]=5000
    Either bound may be missing; an empty bound adds nothing.
    """
    params: QueryParams = []
    if low:
        params.append((f"{key}[gte]", low))
    if high:
        params.append((f"{key}[lte]", high))
    return params


def set_param(key: str, values: Iterable[str]) -> QueryParams:
    joined = ",".join(v for v in values if v)
    return [(key, joined)] if joined else []


def tri_state_param(key: str, value: Optional[bool]) -> QueryParams:
    if value is None:
        return []
    return [(key, "true" if value else "false")]


def text_param(key: str, value: str) -> QueryParams:
    return [(key, value)] if value else []


def build_query(filters: FilterState, page: int, page_size: int) -> QueryParams:
    """
    Assemble the ordered parameter list for one listing page.

    Never raises: values are passed through as typed, so "12abc" in a price
    box reaches the backend unchanged.
    """
    params: QueryParams = []
    params += text_param("state", filters.state)
    params += text_param("city", filters.city)
    params += range_params("price", filters.min_price, filters.max_price)
    params += range_params("areaSqFt", filters.min_area_sq_ft, filters.max_area_sq_ft)
    params += range_params("bedrooms", filters.bedrooms, "")
    params += range_params("bathrooms", filters.bathrooms, "")
    params += set_param("amenities", filters.amenities)
    params += set_param("tags", filters.tags)
    params += text_param("furnished", filters.furnished)
    params += range_params("availableFrom", filters.available_from, "")
    params += range_params("rating", filters.min_rating, filters.max_rating)
    params += tri_state_param("isVerified", filters.is_verified)
    params += text_param("listingType", filters.listing_type)
    params += text_param("type", filters.property_type)
    params.append((PAGE_PARAM, str(page)))
    params.append((LIMIT_PARAM, str(page_size)))
    return params


def to_query_string(params: QueryParams) -> str:
    return urlencode(params)


def split_param_key(key: str) -> Tuple[str, Optional[str]]:
    """
    Separate a field name from its comparison suffix.

        "price[gte]" -> ("price", "gte")
        "city"       -> ("city", None)
    """
    if key.endswith("]") and "[" in key:
        name, _, op = key[:-1].partition("[")
        return name, op
    return key, None

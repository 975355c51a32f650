import asyncio

import pytest

from marketplace.errors import ApiError, AuthenticationRequired, SessionExpired
from marketplace.filters import FilterState
from marketplace.query import build_query
from marketplace.session import Session
from storage.memory_store import DEMO_LISTINGS, InMemoryStore, listing_matches
from storage.security import issue_token


def _ids(store, filters, page=1, page_size=12):
    page_result = asyncio.run(store.list_listings(build_query(filters, page, page_size)))
    return [item.id for item in page_result.items], page_result.total_count


def test_karnataka_search_with_amenities(store):
    ids, total = _ids(store, FilterState(state="Karnataka", min_price="1000", amenities=("wifi", "pool")))
    assert ids == ["prop-6", "prop-1"]
    assert total == 2


def test_price_range_and_bedrooms(store):
    ids, _ = _ids(store, FilterState(min_price="2000", max_price="5000", bedrooms="3"))
    assert ids == ["prop-6"]


def test_verified_and_listing_type(store):
    ids, _ = _ids(store, FilterState(is_verified=True, listing_type="sale"))
    assert ids == ["prop-4"]
    ids, _ = _ids(store, FilterState(is_verified=False))
    assert sorted(ids) == ["prop-2", "prop-5"]


def test_available_from_compares_dates(store):
    ids, _ = _ids(store, FilterState(available_from="2026-12-01"))
    assert sorted(ids) == ["prop-2", "prop-4", "prop-6"]


def test_text_fields_match_case_insensitively(store):
    ids, _ = _ids(store, FilterState(city="bangalore", property_type="apartment"))
    assert sorted(ids) == ["prop-1", "prop-6"]


def test_paging_reports_full_total(store):
    first, total = _ids(store, FilterState(), page=1, page_size=4)
    second, _ = _ids(store, FilterState(), page=2, page_size=4)
    assert total == 6
    assert len(first) == 4
    assert len(second) == 2
    assert not set(first) & set(second)


def test_search_param_matches_title_or_city():
    listing = {"title": "Lake view duplex", "city": "Mysore"}
    assert listing_matches(listing, [("search", "lake")])
    assert listing_matches(listing, [("search", "mys")])
    assert not listing_matches(listing, [("search", "goa")])


def test_demo_seed():
    store = InMemoryStore(seed_demo=True)
    assert len(store.listings) == len(DEMO_LISTINGS)


def test_register_rejects_duplicate_email(store):
    with pytest.raises(ApiError) as excinfo:
        asyncio.run(store.register("GUEST@propertyhub.local", "x"))
    assert excinfo.value.status_code == 400


def test_login_with_bad_password(store):
    with pytest.raises(ApiError) as excinfo:
        asyncio.run(store.login("guest@propertyhub.local", "nope"))
    assert excinfo.value.status_code == 401


def test_mutations_need_a_session(store):
    with pytest.raises(AuthenticationRequired):
        asyncio.run(store.add_favorite("prop-1"))


def test_expired_session_is_reported(store):
    store.session = Session(issue_token("someone", ttl=1, now=0))
    with pytest.raises(SessionExpired):
        asyncio.run(store.list_favorites())


def test_non_owner_gets_403(store, stranger):
    with pytest.raises(ApiError) as excinfo:
        asyncio.run(store.delete_listing("prop-1"))
    assert excinfo.value.status_code == 403
    assert "prop-1" in store.listings


def test_deleting_listing_removes_its_favorites(store, guest):
    async def scenario():
        await store.add_favorite("prop-1")
        await store.add_favorite("prop-2")
        await store.delete_listing("prop-1")
        return await store.list_favorites()

    favorites = asyncio.run(scenario())
    assert [fav.listing_id for fav in favorites] == ["prop-2"]


def test_add_favorite_is_idempotent(store, guest):
    async def scenario():
        first = await store.add_favorite("prop-3")
        second = await store.add_favorite("prop-3")
        return first, second

    first, second = asyncio.run(scenario())
    assert first.id == second.id
    assert len(store.favorites) == 1


def test_unknown_listing_is_404(store, guest):
    with pytest.raises(ApiError) as excinfo:
        asyncio.run(store.add_favorite("missing"))
    assert excinfo.value.status_code == 404

import asyncio
import json
from collections import Counter
from pathlib import Path

import pytest

from marketplace.errors import ApiError
from marketplace.notices import NoticeCollector
from storage.memory_store import InMemoryStore

FIXTURES = Path(__file__).parent / "fixtures"

GUEST_EMAIL = "guest@propertyhub.local"
GUEST_PASSWORD = "guest"


def _load_fixture(name: str):
    with open(FIXTURES / name, "r", encoding="utf-8") as f:
        return json.load(f)


class RecordingStore(InMemoryStore):
    """In-memory backend that remembers every listing query and mutation call."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.queries = []
        self.calls = Counter()
        self.fail_listings = False

    async def list_listings(self, query):
        self.queries.append(list(query))
        if self.fail_listings:
            raise ApiError("Service unavailable", 503)
        return await super().list_listings(query)

    async def create_listing(self, data):
        self.calls["create_listing"] += 1
        return await super().create_listing(data)

    async def update_listing(self, listing_id, data):
        self.calls["update_listing"] += 1
        return await super().update_listing(listing_id, data)

    async def delete_listing(self, listing_id):
        self.calls["delete_listing"] += 1
        return await super().delete_listing(listing_id)

    async def add_favorite(self, listing_id):
        self.calls["add_favorite"] += 1
        return await super().add_favorite(listing_id)

    async def remove_favorite(self, favorite_id):
        self.calls["remove_favorite"] += 1
        return await super().remove_favorite(favorite_id)


@pytest.fixture()
def listings_data():
    return _load_fixture("listings.json")


@pytest.fixture()
def store(listings_data):
    store = RecordingStore()
    owner = store.find_user_by_email(GUEST_EMAIL)
    for entry in listings_data:
        store.seed_listing(entry, owner_id=owner["_id"])
    return store


@pytest.fixture()
def guest(store):
    """Sign the store's session in as the seeded guest (owner of every fixture listing)."""
    token, user = asyncio.run(store.login(GUEST_EMAIL, GUEST_PASSWORD))
    store.session.sign_in(token, user)
    return user


@pytest.fixture()
def stranger(store):
    """Sign the store's session in as a fresh user who owns nothing."""
    token, user = asyncio.run(store.register("stranger@example.com", "s3cret"))
    store.session.sign_in(token, user)
    return user


@pytest.fixture()
def notices():
    return NoticeCollector()


@pytest.fixture()
def valid_draft():
    return {
        "title": "Corner flat in Indiranagar",
        "type": "Apartment",
        "price": 3100,
        "state": "Karnataka",
        "city": "Bangalore",
        "areaSqFt": 980,
        "bedrooms": 2,
        "bathrooms": 2,
        "amenities": ["wifi", "lift"],
        "furnished": "semi",
        "availableFrom": "2026-11-10",
        "listedBy": "Owner",
        "tags": ["near-metro"],
        "rating": 4,
        "isVerified": False,
        "listingType": "Rent",
    }

import asyncio

import pytest

from marketplace.models import Listing, ListingPage
from marketplace.synchronizer import ListSynchronizer, SyncState
from storage.memory_store import InMemoryStore


def _sync(store, notices, debounce=0.02):
    return ListSynchronizer(store, page_size=12, debounce_seconds=debounce, notify=notices)


async def _until(predicate, attempts=200):
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


class GatedStore(InMemoryStore):
    """Each listing fetch blocks until the test releases it."""

    def __init__(self):
        super().__init__()
        self.gates = []

    async def list_listings(self, query):
        gate = asyncio.Event()
        self.gates.append(gate)
        await gate.wait()
        page = dict(query)["page"]
        listing = Listing.model_validate({"_id": f"page-{page}", "title": f"Result for page {page}"})
        return ListingPage(items=[listing], total_count=40)


def test_start_loads_first_page(store, notices):
    sync = _sync(store, notices)
    asyncio.run(sync.start())

    assert sync.state is SyncState.READY
    assert sync.page.total_count == 6
    assert [item.id for item in sync.page.items][:2] == ["prop-6", "prop-5"]
    assert store.queries == [[("page", "1"), ("limit", "12")]]


def test_rapid_filter_edits_issue_one_fetch_with_final_state(store, notices):
    sync = _sync(store, notices)

    async def scenario():
        sync.set_filters(state="Karnataka")
        sync.set_filters(min_price="1000")
        sync.toggle_amenity("wifi")
        sync.toggle_amenity("pool")
        assert store.queries == []
        await sync.wait_for_settle()

    asyncio.run(scenario())

    assert len(store.queries) == 1
    assert store.queries[0] == [
        ("state", "Karnataka"),
        ("price[gte]", "1000"),
        ("amenities", "wifi,pool"),
        ("page", "1"),
        ("limit", "12"),
    ]
    assert [item.id for item in sync.page.items] == ["prop-6", "prop-1"]


def test_edit_after_window_starts_a_new_cycle(store, notices):
    sync = _sync(store, notices)

    async def scenario():
        sync.set_filters(state="Karnataka")
        await sync.wait_for_settle()
        sync.set_filters(city="Mysore")
        await sync.wait_for_settle()

    asyncio.run(scenario())

    assert len(store.queries) == 2
    assert ("city", "Mysore") in store.queries[1]


def test_filter_change_resets_page(store, notices):
    sync = _sync(store, notices)

    async def scenario():
        await sync.change_page(3)
        assert sync.page.page_number == 3
        sync.set_filters(furnished="semi")
        assert sync.page.page_number == 1
        await sync.wait_for_settle()

    asyncio.run(scenario())

    assert ("page", "1") in store.queries[-1]


def test_page_change_keeps_filters_and_fetches_immediately(store, notices):
    sync = _sync(store, notices, debounce=10)

    async def scenario():
        sync.set_filters(state="Karnataka")
        await sync.change_page(2)

    asyncio.run(scenario())

    assert len(store.queries) == 1
    assert store.queries[0][0] == ("state", "Karnataka")
    assert ("page", "2") in store.queries[0]
    assert sync.page.page_number == 2


def test_unchanged_filters_do_not_trigger_fetch(store, notices):
    sync = _sync(store, notices)

    async def scenario():
        sync.set_filters(state="")
        await sync.wait_for_settle()

    asyncio.run(scenario())
    assert store.queries == []


def test_invalid_page_number_rejected(store, notices):
    sync = _sync(store, notices)
    with pytest.raises(ValueError):
        asyncio.run(sync.change_page(0))


def test_stale_response_is_discarded(notices):
    store = GatedStore()
    sync = _sync(store, notices)

    async def scenario():
        first = asyncio.create_task(sync.change_page(2))
        await _until(lambda: len(store.gates) == 1)
        second = asyncio.create_task(sync.change_page(3))
        await _until(lambda: len(store.gates) == 2)
        store.gates[1].set()
        await second
        store.gates[0].set()
        await first

    asyncio.run(scenario())

    assert sync.state is SyncState.READY
    assert sync.page.page_number == 3
    assert [item.id for item in sync.page.items] == ["page-3"]


def test_filter_change_discards_in_flight_fetch(notices):
    store = GatedStore()
    sync = _sync(store, notices, debounce=10)

    async def scenario():
        first = asyncio.create_task(sync.change_page(2))
        await _until(lambda: len(store.gates) == 1)
        sync.set_filters(city="Pune")
        store.gates[0].set()
        await first
        await sync.close()

    asyncio.run(scenario())

    assert sync.page.items == []
    assert sync.page.page_number == 1
    assert sync.state is SyncState.IDLE


def test_close_after_discarded_fetch_restores_last_page_state(notices):
    store = GatedStore()
    sync = _sync(store, notices, debounce=10)

    async def scenario():
        shown = asyncio.create_task(sync.change_page(1))
        await _until(lambda: len(store.gates) == 1)
        store.gates[0].set()
        await shown
        stale = asyncio.create_task(sync.change_page(2))
        await _until(lambda: len(store.gates) == 2)
        sync.set_filters(city="Pune")
        store.gates[1].set()
        await stale
        # The debounced fetch is still due, so the list is still loading.
        assert sync.state is SyncState.LOADING
        await sync.close()

    asyncio.run(scenario())

    assert sync.state is SyncState.READY
    assert [item.id for item in sync.page.items] == ["page-1"]
    assert len(store.gates) == 2


def test_fetch_failure_keeps_last_page_and_notifies_once(store, notices):
    sync = _sync(store, notices)

    async def scenario():
        await sync.start()
        shown = list(sync.page.items)
        store.fail_listings = True
        await sync.change_page(2)
        return shown

    shown = asyncio.run(scenario())

    assert sync.state is SyncState.ERROR
    assert sync.page.items == shown
    assert sync.last_error == "Service unavailable"
    assert len(notices.notices) == 1
    assert notices.last().is_error


def test_recovers_after_failure(store, notices):
    sync = _sync(store, notices)

    async def scenario():
        store.fail_listings = True
        await sync.start()
        store.fail_listings = False
        await sync.refresh()

    asyncio.run(scenario())

    assert sync.state is SyncState.READY
    assert sync.last_error is None
    assert len(sync.page.items) == 6


def test_oversized_page_is_truncated(store, notices):
    sync = ListSynchronizer(store, page_size=2, debounce_seconds=0.01, notify=notices)

    async def fat_page(query):
        items = [Listing.model_validate({"_id": f"x{i}"}) for i in range(5)]
        return ListingPage(items=items, total_count=5)

    store.list_listings = fat_page
    asyncio.run(sync.refresh())

    assert len(sync.page.items) == 2
    assert sync.page.total_pages == 3
    assert sync.page.has_next and not sync.page.has_previous

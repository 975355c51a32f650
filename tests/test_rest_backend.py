import asyncio
import json

import httpx
import pytest

from marketplace.api import RestBackend
from marketplace.errors import ApiError, AuthenticationRequired, PermissionDenied, SessionExpired
from marketplace.filters import FilterState
from marketplace.models import CurrentUser
from marketplace.query import build_query
from marketplace.session import Session
from storage.security import issue_token

USER = CurrentUser.model_validate({"_id": "user-1", "email": "asha@example.com"})


def _backend(handler, session=None):
    return RestBackend(session, base_url="http://api.test/api", transport=httpx.MockTransport(handler))


def _run(backend, coro_fn):
    async def scenario():
        try:
            return await coro_fn(backend)
        finally:
            await backend.aclose()

    return asyncio.run(scenario())


def test_list_listings_sends_query_in_order(listings_data):
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["params"] = list(request.url.params.multi_items())
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json={"status": "success", "total": 17, "data": listings_data[:2]})

    query = build_query(FilterState(state="Karnataka", min_price="1000", amenities=("wifi", "pool")), 1, 12)
    page = _run(_backend(handler), lambda b: b.list_listings(query))

    assert seen["path"] == "/api/properties"
    assert seen["params"] == query
    assert seen["auth"] is None
    assert page.total_count == 17
    assert [item.id for item in page.items] == ["prop-1", "prop-2"]


def test_bare_list_response_is_accepted(listings_data):
    def handler(request):
        return httpx.Response(200, json=listings_data[:3])

    page = _run(_backend(handler), lambda b: b.list_listings([("page", "1"), ("limit", "12")]))
    assert page.total_count == 3


def test_bearer_token_attached_when_signed_in():
    token = issue_token("user-1")
    seen = {}

    def handler(request):
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json={"data": []})

    _run(_backend(handler, Session(token, USER)), lambda b: b.list_favorites())
    assert seen["auth"] == f"Bearer {token}"


def test_auth_required_call_without_session_never_hits_network():
    def handler(request):
        raise AssertionError("no request expected")

    with pytest.raises(AuthenticationRequired):
        _run(_backend(handler), lambda b: b.add_favorite("prop-1"))


def test_expired_token_is_caught_before_request():
    def handler(request):
        raise AssertionError("no request expected")

    session = Session(issue_token("user-1", ttl=1, now=0), USER)
    with pytest.raises(SessionExpired):
        _run(_backend(handler, session), lambda b: b.create_listing({"title": "x"}))
    assert session.token is None


def test_unauthorized_response_clears_session():
    def handler(request):
        return httpx.Response(401, json={"message": "Token revoked"})

    session = Session(issue_token("user-1"), USER)
    with pytest.raises(SessionExpired, match="Token revoked"):
        _run(_backend(handler, session), lambda b: b.list_favorites())
    assert not session.is_authenticated


def test_server_error_maps_to_api_error():
    def handler(request):
        return httpx.Response(500, json={"error": "Database unavailable"})

    with pytest.raises(ApiError) as excinfo:
        _run(_backend(handler), lambda b: b.list_listings([]))
    assert excinfo.value.status_code == 500
    assert str(excinfo.value) == "Database unavailable"


def test_transport_error_maps_to_api_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ApiError, match="connection refused"):
        _run(_backend(handler), lambda b: b.list_listings([]))


def test_login_returns_token_and_user():
    token = issue_token("user-1")

    def handler(request):
        assert request.url.path == "/api/auth/login"
        assert json.loads(request.content) == {"email": "asha@example.com", "password": "pw"}
        return httpx.Response(200, json={"status": "success", "token": token, "data": {"user": {"_id": "user-1", "email": "asha@example.com"}}})

    got_token, user = _run(_backend(handler), lambda b: b.login("asha@example.com", "pw"))
    assert got_token == token
    assert user == USER


def test_create_listing_posts_payload():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"data": {"_id": "new-1", "title": "Loft", "createdBy": {"_id": "user-1"}}})

    session = Session(issue_token("user-1"), USER)
    listing = _run(_backend(handler, session), lambda b: b.create_listing({"title": "Loft"}))

    assert (seen["method"], seen["path"]) == ("POST", "/api/properties/create")
    assert seen["body"] == {"title": "Loft"}
    assert listing.id == "new-1"
    assert listing.is_owned_by("user-1")


def test_received_recommendations_carry_deleted_count(listings_data):
    def handler(request):
        return httpx.Response(
            200,
            json={
                "recommendations": [
                    {"_id": "rec-1", "fromUser": {"_id": "user-2", "email": "ravi@example.com"}, "property": listings_data[0], "message": "Look!"}
                ],
                "deletedPropertiesCount": 2,
            },
        )

    session = Session(issue_token("user-1"), USER)
    received = _run(_backend(handler, session), lambda b: b.list_received_recommendations())

    assert received.deleted_count == 2
    assert received.recommendations[0].from_user.email == "ravi@example.com"
    assert received.recommendations[0].listing.id == "prop-1"


def test_forbidden_maps_to_permission_denied():
    def handler(request):
        return httpx.Response(403, json={"message": "Not your property"})

    session = Session(issue_token("user-1"), USER)
    with pytest.raises(PermissionDenied, match="Not your property"):
        _run(_backend(handler, session), lambda b: b.delete_listing("prop-1"))

import asyncio

import pytest

from marketplace.auth import sign_in, sign_out, sign_up
from marketplace.favorites import FavoritesList
from marketplace.profile import ProfileEditor
from marketplace.recommendations import RecommendationInbox, deleted_summary, recommender_label
from marketplace.session import SessionStore


def test_sign_up_sign_in_and_out(store, tmp_path):
    session_file = SessionStore(str(tmp_path / "session.json"))

    async def scenario():
        created = await sign_up(store, "  New@Example.com ", "pw", store=session_file)
        sign_out(store, session_file)
        signed_in = await sign_in(store, "new@example.com", "pw", store=session_file)
        return created, signed_in

    created, signed_in = asyncio.run(scenario())

    assert created.email == "new@example.com"
    assert signed_in.id == created.id
    assert store.session.current_user() == signed_in
    assert session_file.load().current_user() == signed_in


def test_sign_in_requires_credentials(store):
    with pytest.raises(ValueError):
        asyncio.run(sign_in(store, "", "pw"))


def test_profile_save_reloads(store, guest, notices):
    editor = ProfileEditor(store, notify=notices)

    async def scenario():
        await editor.load()
        assert editor.form_data()["full_name"] == "Guest Demo"
        return await editor.save(full_name="Asha Rao", phone="+91 98450 12345")

    assert asyncio.run(scenario()) is True
    assert editor.profile.full_name == "Asha Rao"
    assert editor.form_data()["phone"] == "+91 98450 12345"
    assert notices.titles == ["Profile updated"]


def test_profile_rejects_read_only_fields(store, guest):
    editor = ProfileEditor(store)
    with pytest.raises(TypeError):
        asyncio.run(editor.save(created_at="yesterday"))


def test_profile_without_session(store, notices):
    editor = ProfileEditor(store, notify=notices)
    assert asyncio.run(editor.load()) is None
    assert editor.form_data() == {"full_name": "", "email": "", "phone": ""}


def test_favorites_page_remove(store, guest, notices):
    asyncio.run(store.add_favorite("prop-1"))
    page = FavoritesList(store, notify=notices)

    async def scenario():
        await page.load()
        assert [fav.listing_id for fav in page.favorites] == ["prop-1"]
        return await page.remove("prop-1")

    assert asyncio.run(scenario()) is True
    assert page.favorites == []
    assert store.favorites == {}
    assert notices.titles == ["Removed from favorites"]


def test_recommendation_flow(store, guest, notices):
    asyncio.run(store.register("ravi@example.com", "pw"))
    inbox = RecommendationInbox(store, notify=notices)

    assert asyncio.run(inbox.send("prop-1", "guest@propertyhub.local", "mine")) is False
    assert asyncio.run(inbox.send("prop-1", "", "")) is False
    assert asyncio.run(inbox.send("prop-1", "ravi@example.com", " Near your office ")) is True
    assert asyncio.run(inbox.send("prop-2", "ravi@example.com")) is True
    assert asyncio.run(inbox.send("prop-3", "nobody@example.com")) is False
    assert notices.titles == [
        "Recommendation not sent",
        "Recommendation not sent",
        "Recommendation sent",
        "Recommendation sent",
        "Error",
    ]

    asyncio.run(store.delete_listing("prop-2"))
    token, ravi = asyncio.run(store.login("ravi@example.com", "pw"))
    store.session.sign_in(token, ravi)

    received = asyncio.run(inbox.load())

    assert [rec.listing.id for rec in received] == ["prop-1"]
    assert received[0].message == "Near your office"
    assert inbox.deleted_count == 1
    assert "guest@propertyhub.local" in recommender_label(received[0])


def test_inbox_empty_messages(store, stranger):
    inbox = RecommendationInbox(store)
    assert asyncio.run(inbox.load()) == []
    assert inbox.empty_message() == "No recommendations yet."
    inbox.deleted_count = 2
    assert inbox.empty_message() == "All recommended properties are no longer available."


def test_deleted_summary_wording():
    assert deleted_summary(0) == ""
    assert deleted_summary(1) == "1 recommendation has properties that are no longer available."
    assert deleted_summary(3) == "3 recommendations have properties that are no longer available."

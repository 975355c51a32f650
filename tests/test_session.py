import json
import time

import pytest

from marketplace.errors import AuthenticationRequired, SessionExpired
from marketplace.models import CurrentUser
from marketplace.session import Session, SessionStore, is_token_expired, token_expiry
from storage.security import hash_password, issue_token, verify_password

USER = CurrentUser.model_validate({"_id": "user-1", "email": "asha@example.com"})


def _expired_token():
    return issue_token("user-1", ttl=60, now=time.time() - 3600)


def test_token_expiry_reads_exp_claim():
    token = issue_token("user-1", ttl=100, now=1_000)
    assert token_expiry(token) == 1_100
    assert not is_token_expired(token, now=1_050)
    assert is_token_expired(token, now=1_101)


@pytest.mark.parametrize("token", [None, "", "not-a-jwt", "a.!!!.c", "e30.e30.sig"])
def test_unreadable_tokens_count_as_expired(token):
    assert is_token_expired(token)


def test_session_with_live_token_is_authenticated():
    session = Session(issue_token("user-1"), USER)
    assert session.is_authenticated
    assert session.require_user() == USER


def test_expired_token_clears_session():
    session = Session(_expired_token(), USER)

    assert session.valid_token() is None
    assert session.token is None
    assert session.user is None
    assert not session.is_authenticated


def test_require_user_distinguishes_expiry_from_anonymous():
    with pytest.raises(SessionExpired):
        Session(_expired_token(), USER).require_user()
    with pytest.raises(AuthenticationRequired) as excinfo:
        Session().require_user()
    assert not isinstance(excinfo.value, SessionExpired)


def test_session_store_round_trip(tmp_path):
    store = SessionStore(str(tmp_path / "nested" / "session.json"))
    store.save(Session(issue_token("user-1"), USER))

    loaded = store.load()

    assert loaded.current_user() == USER
    assert (tmp_path / "nested" / "session.json").stat().st_mode & 0o777 == 0o600


def test_session_store_drops_expired_session(tmp_path):
    path = tmp_path / "session.json"
    path.write_text(json.dumps(Session(_expired_token(), USER).to_dict()), encoding="utf-8")

    loaded = SessionStore(str(path)).load()

    assert loaded.token is None
    assert not path.exists()


def test_session_store_tolerates_garbage(tmp_path):
    path = tmp_path / "session.json"
    path.write_text("{not json", encoding="utf-8")
    assert SessionStore(str(path)).load().token is None


def test_password_hashing():
    encoded = hash_password("hunter22", iterations=1_000)
    assert encoded.startswith("pbkdf2_sha256$1000$")
    assert verify_password("hunter22", encoded)
    assert not verify_password("hunter23", encoded)
    assert not verify_password("hunter22", "garbage")

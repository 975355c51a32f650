import pytest

from cli.homepage import build_parser, draft_from_args, filter_changes, main
from cli.router import build_backend, select_backend
from marketplace.api import RestBackend
from marketplace.config import Settings
from marketplace.session import Session
from storage.memory_store import InMemoryStore


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    monkeypatch.setenv("SESSION_FILE", str(tmp_path / "session.json"))
    monkeypatch.setenv("DEBOUNCE_SECONDS", "0.01")
    monkeypatch.delenv("BACKEND", raising=False)


def test_select_backend():
    assert isinstance(build_backend(Settings(backend="memory"), Session()), InMemoryStore)
    assert isinstance(build_backend(Settings(backend="rest"), Session()), RestBackend)
    with pytest.raises(ValueError):
        select_backend("graphql")


def test_filter_flags_map_to_filter_fields():
    args = build_parser().parse_args(
        ["browse", "--state", "Goa", "--min-area", "500", "--amenity", "pool", "--amenity", "wifi", "--unverified", "--type", "Villa"]
    )
    assert filter_changes(args) == {
        "state": "Goa",
        "min_area_sq_ft": "500",
        "amenities": ("pool", "wifi"),
        "is_verified": False,
        "property_type": "Villa",
    }
    assert args.page == 1


def test_page_must_be_positive():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["browse", "--page", "0"])


def test_draft_flags_override_base_listing():
    args = build_parser().parse_args(["edit", "prop-1", "--price", "5100", "--amenity", "wifi", "--verified"])
    draft = draft_from_args(args)
    assert draft == {"price": 5100.0, "amenities": ["wifi"], "isVerified": True}


def test_states_command(capsys):
    assert main(["--backend", "memory", "states", "--state", "Goa"]) == 0
    out = capsys.readouterr().out.splitlines()
    assert out[0] == "Panaji"
    assert main(["--backend", "memory", "states", "--state", "Atlantis"]) == 1


def test_browse_demo_listings(capsys):
    assert main(["--backend", "memory", "browse", "--state", "Goa"]) == 0
    out = capsys.readouterr().out
    assert "Sea-facing villa with pool" in out
    assert "Page 1 of 1 (1 properties)" in out


def test_favorites_require_sign_in(capsys):
    assert main(["--backend", "memory", "favorites"]) == 1
    assert "Authentication required" in capsys.readouterr().out


def test_signed_in_favorites_and_profile(capsys):
    creds = ["--backend", "memory", "--email", "guest@propertyhub.local", "--password", "guest"]
    assert main(creds + ["favorites"]) == 0
    assert "You have no favorite properties yet." in capsys.readouterr().out
    assert main(creds + ["profile", "--full-name", "Asha"]) == 0
    out = capsys.readouterr().out
    assert "Profile updated" in out
    assert "full_name: Asha" in out


def test_bad_password_reports_error(capsys):
    code = main(["--backend", "memory", "--email", "guest@propertyhub.local", "--password", "wrong", "inbox"])
    assert code == 1
    assert "Invalid credentials" in capsys.readouterr().out

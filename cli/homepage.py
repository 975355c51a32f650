"""
PropertyHub command line.

Browse and manage listings from the terminal against any backend:

    python -m cli.homepage browse --state Karnataka --min-price 1000
    python -m cli.homepage --backend memory --email guest@propertyhub.local --password guest favorites

Signing in with ``login`` keeps the session in SESSION_FILE for later runs;
``--email``/``--password`` on any other command signs in for that run only.
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import sys
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from cli.router import build_backend, persists_sessions
from marketplace.auth import sign_in, sign_out, sign_up
from marketplace.backend import MarketplaceBackend
from marketplace.config import BACKENDS, Settings, load_settings
from marketplace.errors import MarketplaceError
from marketplace.favorites import FavoritesList
from marketplace.filters import FilterState
from marketplace.locations import all_states, cities_for_state, top_cities
from marketplace.models import Listing
from marketplace.notices import DESTRUCTIVE, Notice, error_notice
from marketplace.profile import ProfileEditor
from marketplace.recommendations import RecommendationInbox, deleted_summary, recommender_label
from marketplace.session import Session, SessionStore
from marketplace.synchronizer import ListSynchronizer
from telemetry.logging_utils import configure_logging, get_logger

logger = get_logger(__name__)

Command = Callable[[MarketplaceBackend, argparse.Namespace, Settings, Optional[SessionStore]], Awaitable[int]]

# Listing form flags -> listing payload keys.
DRAFT_FLAGS = {
    "title": "title",
    "kind": "type",
    "price": "price",
    "state": "state",
    "city": "city",
    "area": "areaSqFt",
    "bedrooms": "bedrooms",
    "bathrooms": "bathrooms",
    "amenity": "amenities",
    "tag": "tags",
    "furnished": "furnished",
    "available_from": "availableFrom",
    "listed_by": "listedBy",
    "rating": "rating",
    "listing_type": "listingType",
}


def print_notice(notice: Notice) -> None:
    marker = "!" if notice.is_error else "*"
    line = f"{marker} {notice.title}"
    print(f"{line}: {notice.description}" if notice.description else line)


def _auth_notice(action: str) -> Notice:
    return Notice("Authentication required", f"Please sign in to {action}", DESTRUCTIVE)


def format_listing(listing: Listing, favorite: bool = False) -> str:
    price = f"{listing.price:,.0f}" if listing.price is not None else "?"
    rooms = []
    if listing.bedrooms is not None:
        rooms.append(f"{listing.bedrooms:g} bd")
    if listing.bathrooms is not None:
        rooms.append(f"{listing.bathrooms:g} ba")
    parts = [f"[{listing.id}] {listing.title}", f"{listing.city}, {listing.state}", f"{price} ({listing.listing_type or 'n/a'})"]
    if rooms:
        parts.append(" / ".join(rooms))
    line = " | ".join(parts)
    return f"{line} *" if favorite else line


def _synchronizer(backend: MarketplaceBackend, settings: Settings) -> ListSynchronizer:
    return ListSynchronizer(
        backend,
        page_size=settings.page_size,
        debounce_seconds=settings.debounce_seconds,
        notify=print_notice,
    )


def filter_changes(args: argparse.Namespace) -> Dict[str, Any]:
    """Filter flags the user actually passed, keyed by FilterState field."""
    changes: Dict[str, Any] = {}
    for name in FilterState.field_names():
        value = getattr(args, name, None)
        if value is None:
            continue
        changes[name] = tuple(value) if isinstance(value, list) else value
    return changes


def draft_from_args(args: argparse.Namespace, base: Optional[Listing] = None) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    if base is not None:
        data = {k: v for k, v in base.model_dump(by_alias=True).items() if v is not None}
    for flag, key in DRAFT_FLAGS.items():
        value = getattr(args, flag, None)
        if value is not None:
            data[key] = value
    if getattr(args, "verified", None) is not None:
        data["isVerified"] = args.verified
    return data


def _credentials(args: argparse.Namespace) -> Tuple[str, str]:
    email = args.email or input("Email: ").strip()
    password = args.password or getpass.getpass("Password: ")
    return email, password


# Commands -------------------------------------------------------------------
async def _login(backend, args, settings, store) -> int:
    user = await sign_in(backend, *_credentials(args), store=store)
    print(f"Signed in as {user.email}")
    return 0


async def _register(backend, args, settings, store) -> int:
    user = await sign_up(backend, *_credentials(args), store=store)
    print(f"Account created for {user.email}")
    return 0


async def _logout(backend, args, settings, store) -> int:
    sign_out(backend, store)
    print("Signed out")
    return 0


async def _browse(backend, args, settings, store) -> int:
    sync = _synchronizer(backend, settings)
    await sync.load_favorites()
    changes = filter_changes(args)
    if changes:
        sync.set_filters(**changes)
    await sync.change_page(args.page)
    await sync.close()
    if sync.last_error:
        return 1
    page = sync.page
    if not page.items:
        print("No properties found matching your criteria.")
    for item in page.items:
        print(format_listing(item, sync.is_favorite(item.id)))
    print(f"Page {page.page_number} of {page.total_pages} ({page.total_count} properties)")
    return 0


async def _favorites(backend, args, settings, store) -> int:
    if backend.session.current_user() is None:
        print_notice(_auth_notice("view favorites"))
        return 1
    favorites_page = FavoritesList(backend, notify=print_notice)
    favorites = await favorites_page.load()
    if args.remove:
        return 0 if await favorites_page.remove(args.remove) else 1
    if not favorites:
        print("You have no favorite properties yet.")
    for fav in favorites:
        if fav.listing is not None:
            print(format_listing(fav.listing, favorite=True))
        else:
            print(f"[{fav.listing_id}] (no longer available)")
    return 0


async def _favorite(backend, args, settings, store) -> int:
    sync = _synchronizer(backend, settings)
    await sync.load_favorites()
    ok = await sync.toggle_favorite(args.listing_id)
    await sync.close()
    return 0 if ok else 1


async def _add(backend, args, settings, store) -> int:
    sync = _synchronizer(backend, settings)
    sync.open_create_form()
    ok = await sync.create_listing(draft_from_args(args))
    await sync.close()
    return 0 if ok else 1


async def _edit(backend, args, settings, store) -> int:
    sync = _synchronizer(backend, settings)
    listing = await backend.get_listing(args.listing_id)
    sync.open_edit_form(listing)
    ok = await sync.update_listing(listing.id, draft_from_args(args, base=listing))
    await sync.close()
    return 0 if ok else 1


async def _delete(backend, args, settings, store) -> int:
    sync = _synchronizer(backend, settings)
    sync.open_edit_form(await backend.get_listing(args.listing_id))
    ok = await sync.delete_listing(args.listing_id)
    await sync.close()
    return 0 if ok else 1


async def _profile(backend, args, settings, store) -> int:
    if backend.session.current_user() is None:
        print_notice(_auth_notice("view your profile"))
        return 1
    editor = ProfileEditor(backend, notify=print_notice)
    requested = {"full_name": args.full_name, "email": args.new_email, "phone": args.phone}
    changes = {name: value for name, value in requested.items() if value is not None}
    if changes:
        if not await editor.save(**changes):
            return 1
    else:
        await editor.load()
    if editor.profile is None:
        return 1
    for name, value in editor.form_data().items():
        print(f"{name}: {value}")
    return 0


async def _recommend(backend, args, settings, store) -> int:
    inbox = RecommendationInbox(backend, notify=print_notice)
    ok = await inbox.send(args.listing_id, args.recipient, args.message or "")
    return 0 if ok else 1


async def _inbox(backend, args, settings, store) -> int:
    if backend.session.current_user() is None:
        print_notice(_auth_notice("view recommendations"))
        return 1
    inbox = RecommendationInbox(backend, notify=print_notice)
    recommendations = await inbox.load()
    if not recommendations:
        print(inbox.empty_message())
    for rec in recommendations:
        print(format_listing(rec.listing))
        print(f"    recommended by {recommender_label(rec)}")
        if rec.message:
            print(f'    "{rec.message}"')
    summary = deleted_summary(inbox.deleted_count)
    if summary and recommendations:
        print(summary)
    return 0


async def _states(backend, args, settings, store) -> int:
    if args.state:
        names = cities_for_state(args.state)
        if not names:
            print(f"Unknown state: {args.state}")
            return 1
    elif args.top:
        names = top_cities()
    else:
        names = all_states()
    for name in names:
        print(name)
    return 0


COMMANDS: Dict[str, Command] = {
    "login": _login,
    "register": _register,
    "logout": _logout,
    "browse": _browse,
    "favorites": _favorites,
    "favorite": _favorite,
    "add": _add,
    "edit": _edit,
    "delete": _delete,
    "profile": _profile,
    "recommend": _recommend,
    "inbox": _inbox,
    "states": _states,
}

# Commands that manage credentials themselves or need no user.
NO_SIGN_IN = {"login", "register", "logout", "states"}


async def run_command(args: argparse.Namespace) -> int:
    settings = load_settings(backend=args.backend, api_base_url=args.api_url)
    store = SessionStore(settings.session_file) if persists_sessions(settings) else None
    session = store.load() if store else Session()
    backend = build_backend(settings, session)
    try:
        if args.email and args.command not in NO_SIGN_IN:
            await sign_in(backend, *_credentials(args))
        return await COMMANDS[args.command](backend, args, settings, store)
    except MarketplaceError as exc:
        logger.warning("cli_command_failed", extra={"command": args.command, "error": str(exc)})
        print_notice(error_notice(str(exc)))
        return 1
    finally:
        await backend.aclose()


# Arguments ------------------------------------------------------------------
def _positive_int(raw: str) -> int:
    value = int(raw)
    if value < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return value


def _add_filter_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--state")
    parser.add_argument("--city")
    parser.add_argument("--min-price", dest="min_price")
    parser.add_argument("--max-price", dest="max_price")
    parser.add_argument("--min-area", dest="min_area_sq_ft")
    parser.add_argument("--max-area", dest="max_area_sq_ft")
    parser.add_argument("--bedrooms", help="Minimum bedrooms")
    parser.add_argument("--bathrooms", help="Minimum bathrooms")
    parser.add_argument("--amenity", dest="amenities", action="append", metavar="NAME")
    parser.add_argument("--tag", dest="tags", action="append", metavar="NAME")
    parser.add_argument("--furnished")
    parser.add_argument("--available-from", dest="available_from", metavar="YYYY-MM-DD")
    parser.add_argument("--min-rating", dest="min_rating")
    parser.add_argument("--max-rating", dest="max_rating")
    verified = parser.add_mutually_exclusive_group()
    verified.add_argument("--verified", dest="is_verified", action="store_const", const=True)
    verified.add_argument("--unverified", dest="is_verified", action="store_const", const=False)
    parser.add_argument("--listing-type", dest="listing_type", choices=["rent", "sale"])
    parser.add_argument("--type", dest="property_type", metavar="KIND")
    parser.add_argument("--page", type=_positive_int, default=1)


def _add_draft_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--title")
    parser.add_argument("--type", dest="kind", metavar="KIND")
    parser.add_argument("--price", type=float)
    parser.add_argument("--state")
    parser.add_argument("--city")
    parser.add_argument("--area", type=float, metavar="SQ_FT")
    parser.add_argument("--bedrooms", type=int)
    parser.add_argument("--bathrooms", type=int)
    parser.add_argument("--amenity", action="append", metavar="NAME")
    parser.add_argument("--tag", action="append", metavar="NAME")
    parser.add_argument("--furnished")
    parser.add_argument("--available-from", dest="available_from", metavar="YYYY-MM-DD")
    parser.add_argument("--listed-by", dest="listed_by")
    parser.add_argument("--rating", type=float)
    parser.add_argument("--listing-type", dest="listing_type")
    verified = parser.add_mutually_exclusive_group()
    verified.add_argument("--verified", dest="verified", action="store_const", const=True)
    verified.add_argument("--unverified", dest="verified", action="store_const", const=False)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="propertyhub", description="PropertyHub listings from the terminal")
    parser.add_argument("--backend", choices=BACKENDS, help="Overrides BACKEND from the environment")
    parser.add_argument("--api-url", dest="api_url", help="Overrides API_BASE_URL")
    parser.add_argument("--email")
    parser.add_argument("--password")
    parser.add_argument("--log-level", dest="log_level", default="WARNING")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("login", help="Sign in and remember the session")
    sub.add_parser("register", help="Create an account and sign in")
    sub.add_parser("logout", help="Forget the saved session")

    browse = sub.add_parser("browse", help="List properties matching filters")
    _add_filter_args(browse)

    favorites = sub.add_parser("favorites", help="Show your favorite properties")
    favorites.add_argument("--remove", metavar="LISTING_ID")

    favorite = sub.add_parser("favorite", help="Toggle a property in your favorites")
    favorite.add_argument("listing_id")

    add = sub.add_parser("add", help="Add a property")
    _add_draft_args(add)

    edit = sub.add_parser("edit", help="Edit one of your properties")
    edit.add_argument("listing_id")
    _add_draft_args(edit)

    delete = sub.add_parser("delete", help="Delete one of your properties")
    delete.add_argument("listing_id")

    profile = sub.add_parser("profile", help="Show or update your profile")
    profile.add_argument("--full-name", dest="full_name")
    profile.add_argument("--profile-email", dest="new_email", metavar="EMAIL")
    profile.add_argument("--phone")

    recommend = sub.add_parser("recommend", help="Recommend a property to another user")
    recommend.add_argument("listing_id")
    recommend.add_argument("recipient", metavar="EMAIL")
    recommend.add_argument("--message", default="")

    sub.add_parser("inbox", help="Properties recommended to you")

    states = sub.add_parser("states", help="List states, or the cities of one state")
    states.add_argument("--state")
    states.add_argument("--top", action="store_true", help="Most searched cities")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    try:
        return asyncio.run(run_command(args))
    except (RuntimeError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())

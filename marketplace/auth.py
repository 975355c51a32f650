from __future__ import annotations

from typing import Optional

from telemetry.logging_utils import get_logger

from .backend import MarketplaceBackend
from .models import CurrentUser
from .session import SessionStore

logger = get_logger(__name__)


def _clean_credentials(email: str, password: str) -> tuple:
    email = (email or "").strip().lower()
    if not email or not password:
        raise ValueError("Email and password are required.")
    return email, password


async def sign_in(
    backend: MarketplaceBackend, email: str, password: str, store: Optional[SessionStore] = None
) -> CurrentUser:
    email, password = _clean_credentials(email, password)
    token, user = await backend.login(email, password)
    backend.session.sign_in(token, user)
    if store is not None:
        store.save(backend.session)
    logger.info("signed_in", extra={"user_id": user.id})
    return user


async def sign_up(
    backend: MarketplaceBackend, email: str, password: str, store: Optional[SessionStore] = None
) -> CurrentUser:
    email, password = _clean_credentials(email, password)
    token, user = await backend.register(email, password)
    backend.session.sign_in(token, user)
    if store is not None:
        store.save(backend.session)
    logger.info("signed_up", extra={"user_id": user.id})
    return user


def sign_out(backend: MarketplaceBackend, store: Optional[SessionStore] = None) -> None:
    backend.session.clear()
    if store is not None:
        store.clear()

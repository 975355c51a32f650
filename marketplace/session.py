"""
Explicit session object shared by the backends and the page controllers.

The signed-in state lives here instead of in ambient storage: the bearer token,
the user it belongs to, and the expiry rule. Backends consult it once per
request; controllers ask it whether a user is present before mutating.
"""

from __future__ import annotations

import base64
import binascii
import json
import os
import time
from pathlib import Path
from typing import Any, Dict, Optional

from telemetry.logging_utils import get_logger

from .errors import AuthenticationRequired, SessionExpired
from .models import CurrentUser

logger = get_logger(__name__)


def _b64url_decode(segment: str) -> bytes:
    padded = segment + "=" * (-len(segment) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


def token_expiry(token: Optional[str]) -> Optional[float]:
    """Return the ``exp`` claim of a JWT, or None when it cannot be read."""
    if not token:
        return None
    parts = token.split(".")
    if len(parts) < 2:
        return None
    try:
        claims = json.loads(_b64url_decode(parts[1]))
    except (binascii.Error, ValueError, UnicodeDecodeError):
        return None
    if not isinstance(claims, dict):
        return None
    exp = claims.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        return None
    return float(exp)


def is_token_expired(token: Optional[str], now: Optional[float] = None) -> bool:
    """Missing, unreadable and claim-less tokens all count as expired."""
    exp = token_expiry(token)
    if exp is None:
        return True
    current = time.time() if now is None else now
    return exp < current


class Session:
    def __init__(self, token: Optional[str] = None, user: Optional[CurrentUser] = None) -> None:
        self.token = token
        self.user = user

    @property
    def is_authenticated(self) -> bool:
        return self.current_user() is not None

    def sign_in(self, token: str, user: CurrentUser) -> None:
        self.token = token
        self.user = user

    def clear(self) -> None:
        self.token = None
        self.user = None

    def valid_token(self) -> Optional[str]:
        """The bearer token if it is still usable; an expired one clears the session."""
        if self.token is None:
            return None
        if is_token_expired(self.token):
            logger.info("session_expired", extra={"user_id": self.user.id if self.user else None})
            self.clear()
            return None
        return self.token

    def current_user(self) -> Optional[CurrentUser]:
        if self.valid_token() is None:
            return None
        return self.user

    def require_user(self) -> CurrentUser:
        had_token = self.token is not None
        user = self.current_user()
        if user is None:
            if had_token:
                raise SessionExpired()
            raise AuthenticationRequired()
        return user

    def to_dict(self) -> Dict[str, Any]:
        return {
            "token": self.token,
            "user": self.user.model_dump(by_alias=True) if self.user else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        user = data.get("user")
        return cls(token=data.get("token"), user=CurrentUser.model_validate(user) if user else None)


class SessionStore:
    """Keeps the session in a small JSON file between CLI invocations."""

    def __init__(self, path: str) -> None:
        self.path = Path(path)

    def load(self) -> Session:
        if not self.path.exists():
            return Session()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            session = Session.from_dict(data if isinstance(data, dict) else {})
        except (OSError, ValueError) as exc:
            logger.warning("session_file_unreadable", extra={"path": str(self.path), "error": str(exc)})
            return Session()
        if session.token and session.valid_token() is None:
            self.clear()
        return session

    def save(self, session: Session) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(session.to_dict()), encoding="utf-8")
        try:
            os.chmod(self.path, 0o600)
        except OSError:
            logger.debug("session_file_chmod_failed", extra={"path": str(self.path)})

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()

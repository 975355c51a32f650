from __future__ import annotations

from typing import Optional


class MarketplaceError(Exception):
    """Base class for client-side failures."""


class ApiError(MarketplaceError):
    """A backend call failed (transport error or non-2xx response)."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AuthenticationRequired(MarketplaceError):
    def __init__(self, message: str = "Please sign in to continue") -> None:
        super().__init__(message)


class SessionExpired(AuthenticationRequired):
    def __init__(self, message: str = "Your session has expired, please sign in again") -> None:
        super().__init__(message)


class PermissionDenied(ApiError):
    """The signed-in user does not own the record they tried to change."""

    def __init__(self, message: str = "You are not allowed to modify this property") -> None:
        super().__init__(message, 403)


class ListingValidationError(MarketplaceError):
    """Raised with a field -> message mapping when a listing draft is invalid."""

    def __init__(self, errors: dict) -> None:
        self.errors = errors
        summary = "; ".join(f"{field}: {msg}" for field, msg in errors.items())
        super().__init__(summary or "Invalid listing")

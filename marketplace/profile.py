from __future__ import annotations

from typing import Dict, Optional

from telemetry.logging_utils import get_logger

from .backend import MarketplaceBackend
from .errors import MarketplaceError
from .models import UserProfile
from .notices import Notice, Notifier, error_notice, log_notice

logger = get_logger(__name__)

EDITABLE_FIELDS = ("full_name", "email", "phone")


class ProfileEditor:
    """Load the signed-in user's profile and save edits to it."""

    def __init__(self, backend: MarketplaceBackend, notify: Optional[Notifier] = None) -> None:
        self.backend = backend
        self.notify = notify or log_notice
        self.profile: Optional[UserProfile] = None
        self.saving = False

    def form_data(self) -> Dict[str, str]:
        if self.profile is None:
            return {name: "" for name in EDITABLE_FIELDS}
        return {name: getattr(self.profile, name) or "" for name in EDITABLE_FIELDS}

    async def load(self) -> Optional[UserProfile]:
        if self.backend.session.current_user() is None:
            return None
        try:
            self.profile = await self.backend.get_profile()
        except MarketplaceError as exc:
            logger.warning("profile_load_failed", extra={"error": str(exc)})
            self.notify(error_notice(str(exc)))
        return self.profile

    async def save(self, **changes: str) -> bool:
        """Send the edited fields, then reload so timestamps come from the backend."""
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise TypeError(f"Not editable: {', '.join(sorted(unknown))}")
        if self.backend.session.current_user() is None:
            return False
        self.saving = True
        try:
            await self.backend.update_profile(changes)
        except MarketplaceError as exc:
            logger.warning("profile_update_failed", extra={"error": str(exc)})
            self.notify(error_notice(str(exc)))
            return False
        finally:
            self.saving = False
        self.notify(Notice("Profile updated", "Your profile has been successfully updated."))
        await self.load()
        return True

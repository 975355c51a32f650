from __future__ import annotations

from typing import List, Optional

from telemetry.logging_utils import get_logger

from .avatars import user_label
from .backend import MarketplaceBackend
from .errors import MarketplaceError
from .models import Recommendation
from .notices import DESTRUCTIVE, Notice, Notifier, error_notice, log_notice

logger = get_logger(__name__)


def recommender_label(rec: Recommendation) -> str:
    """ "<emoji> <name> (<email>)" for the person who sent a recommendation."""
    label = user_label(rec.from_user.id or "unknown")
    return f"{label} ({rec.from_user.email})" if rec.from_user.email else label


def deleted_summary(count: int) -> str:
    if count <= 0:
        return ""
    plural = count > 1
    return (
        f"{count} recommendation{'s' if plural else ''} {'have' if plural else 'has'} "
        "properties that are no longer available."
    )


class RecommendationInbox:
    """Listings other users have recommended to the signed-in user."""

    def __init__(self, backend: MarketplaceBackend, notify: Optional[Notifier] = None) -> None:
        self.backend = backend
        self.notify = notify or log_notice
        self.recommendations: List[Recommendation] = []
        self.deleted_count = 0

    async def load(self) -> List[Recommendation]:
        try:
            received = await self.backend.list_received_recommendations()
        except MarketplaceError as exc:
            logger.warning("recommendations_load_failed", extra={"error": str(exc)})
            self.recommendations = []
            self.deleted_count = 0
            return self.recommendations
        # Entries whose listing was deleted are only counted.
        self.recommendations = [r for r in received.recommendations if r.listing is not None]
        self.deleted_count = received.deleted_count + (len(received.recommendations) - len(self.recommendations))
        return self.recommendations

    def empty_message(self) -> str:
        if self.deleted_count > 0:
            return "All recommended properties are no longer available."
        return "No recommendations yet."

    async def send(self, listing_id: str, recipient_email: str, message: str = "") -> bool:
        recipient_email = (recipient_email or "").strip()
        if not recipient_email:
            self.notify(Notice("Recommendation not sent", "Enter the email of the person to recommend to", DESTRUCTIVE))
            return False
        user = self.backend.session.current_user()
        if user is None:
            self.notify(Notice("Authentication required", "Please sign in to recommend properties", DESTRUCTIVE))
            return False
        if recipient_email.lower() == (user.email or "").lower():
            self.notify(Notice("Recommendation not sent", "You cannot recommend a property to yourself", DESTRUCTIVE))
            return False
        try:
            await self.backend.send_recommendation(listing_id, recipient_email, message.strip())
        except MarketplaceError as exc:
            logger.warning("recommendation_send_failed", extra={"listing_id": listing_id, "error": str(exc)})
            self.notify(error_notice(str(exc)))
            return False
        self.notify(Notice("Recommendation sent", f"Property recommended to {recipient_email}."))
        return True

"""
Notification Service - Resolves recipients and sends push notifications.

Handles:
- Loading recipients (device token + settings) from the profile store
- Degrading to "nobody eligible" when the store is unreachable
- Composing weather alert messages
- Handing the batch to the fan-out dispatcher
"""

import logging
from typing import List, Optional, Sequence

from providers.contracts import PushProvider, RecipientStore

from .composer import compose
from .config import PushSettings
from .credentials import CredentialExchanger
from .dispatcher import FanOutDispatcher
from .errors import PreferenceLookupError
from .models import (
    AlertCandidate,
    BatchResult,
    DeliveryOutcome,
    NotificationMessage,
    Recipient,
)

logger = logging.getLogger(__name__)

PREFERENCE_LOOKUP_FAILED = "preference_lookup_failed"


class NotificationService:
    """Service for sending push notifications to users."""

    def __init__(
        self,
        recipient_store: RecipientStore,
        push_client: PushProvider,
        settings: PushSettings,
        exchanger: Optional[CredentialExchanger] = None,
    ):
        """
        Initialize notification service.

        Args:
            recipient_store: Profile/preference store
            push_client: Push provider client
            settings: Signing identity and delivery tuning
            exchanger: Optional credential exchanger (default: uncached)
        """
        self.recipient_store = recipient_store
        self.push_client = push_client
        self.settings = settings
        self.dispatcher = FanOutDispatcher(
            push_client,
            exchanger=exchanger,
            max_concurrency=settings.max_concurrency,
            send_timeout=settings.send_timeout,
        )

    async def load_recipients(self, user_ids: Sequence[str]) -> List[Recipient]:
        """
        Load recipients for the given users, in request order.

        Users with no profile row come back with no device address and no
        preferences, so the dispatcher suppresses them.

        Raises:
            PreferenceLookupError: If the store is unreachable
        """
        unique_ids = list(dict.fromkeys(user_ids))
        found = await self.recipient_store.get_recipients(unique_ids)
        return [found.get(user_id) or Recipient(user_id=user_id) for user_id in unique_ids]

    async def send(
        self,
        message: NotificationMessage,
        user_ids: Sequence[str],
    ) -> BatchResult:
        """
        Send a rendered message to users.

        Returns:
            BatchResult; every user is Suppressed(preference_lookup_failed)
            if the preference store cannot be read.
        """
        try:
            recipients = await self.load_recipients(user_ids)
        except PreferenceLookupError as e:
            logger.error(f"[PUSH] Preference lookup failed, suppressing batch: {e}")
            return BatchResult(outcomes=tuple(
                DeliveryOutcome.suppressed(user_id, PREFERENCE_LOOKUP_FAILED)
                for user_id in dict.fromkeys(user_ids)
            ))

        return await self.send_to_recipients(message, recipients)

    async def send_to_recipients(
        self,
        message: NotificationMessage,
        recipients: Sequence[Recipient],
    ) -> BatchResult:
        """Send to recipients that were already loaded."""
        return await self.dispatcher.dispatch(message, recipients, self.settings.identity)

    async def send_alerts(
        self,
        category: str,
        user_ids: Sequence[str],
        candidates: Sequence[AlertCandidate],
        trip_label: str,
        destination_label: str,
        entity_id: Optional[str] = None,
    ) -> BatchResult:
        """
        Compose a message from alert candidates and send it.

        Raises:
            NoCandidatesError: If candidates is empty
        """
        message = compose(
            candidates,
            trip_label,
            destination_label,
            category=category,
            entity_id=entity_id,
        )
        return await self.send(message, user_ids)

    async def close(self):
        """Close resources."""
        close = getattr(self.push_client, "close", None)
        if close is not None:
            await close()

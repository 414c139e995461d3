"""
Fan-out Push Dispatcher

Delivers one rendered notification to many recipients:
1. Partition recipients into eligible / suppressed (no network cost)
2. Obtain one bearer token for the whole batch
3. Send to every eligible recipient concurrently (bounded, per-call timeout)
4. Gather every outcome; one recipient's failure never affects another

No retries happen here. Re-invoking the handler is the retry mechanism.
"""

import asyncio
import logging
from typing import List, Optional, Sequence

from common.categories import channel_for
from providers.contracts import PushProvider

from .credentials import CredentialExchanger
from .errors import CredentialError, DeliveryError
from .models import (
    BatchResult,
    DeliveryOutcome,
    NotificationMessage,
    Recipient,
    SigningIdentity,
)
from .preferences import suppression_reason

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 10
DEFAULT_SEND_TIMEOUT_SECONDS = 10.0

NO_DEVICE_ADDRESS = "no_device_address"
CREDENTIAL_UNAVAILABLE = "credential_unavailable"
TIMEOUT = "timeout"
UNEXPECTED_ERROR = "unexpected_error"


class FanOutDispatcher:
    """Sends one notification to a batch of recipients."""

    def __init__(
        self,
        push_client: PushProvider,
        exchanger: Optional[CredentialExchanger] = None,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        send_timeout: float = DEFAULT_SEND_TIMEOUT_SECONDS,
    ):
        """
        Initialize dispatcher.

        Args:
            push_client: Provider client issuing one delivery call per device
            exchanger: Credential exchanger (default: uncached exchanger)
            max_concurrency: Upper bound on in-flight delivery calls
            send_timeout: Seconds before a delivery call is recorded as failed
        """
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        if send_timeout <= 0:
            raise ValueError("send_timeout must be > 0")

        self.push_client = push_client
        self.exchanger = exchanger or CredentialExchanger()
        self.max_concurrency = max_concurrency
        self.send_timeout = send_timeout

    async def dispatch(
        self,
        message: NotificationMessage,
        recipients: Sequence[Recipient],
        identity: SigningIdentity,
    ) -> BatchResult:
        """
        Deliver ``message`` to every eligible recipient.

        Returns:
            BatchResult with one outcome per recipient, in input order.
            If no token could be obtained, every eligible recipient is
            Failed(credential_unavailable) and ``credential_error`` is set.
        """
        outcomes: List[Optional[DeliveryOutcome]] = [None] * len(recipients)
        eligible: List[int] = []

        for index, recipient in enumerate(recipients):
            reason = suppression_reason(recipient, message.category)
            if reason is None and not recipient.device_address:
                reason = NO_DEVICE_ADDRESS
            if reason is not None:
                logger.debug(f"[PUSH] Suppressed {recipient.user_id}: {reason}")
                outcomes[index] = DeliveryOutcome.suppressed(recipient.user_id, reason)
            else:
                eligible.append(index)

        if not eligible:
            return BatchResult(outcomes=tuple(outcomes))

        try:
            token = await self.exchanger.exchange(identity)
        except CredentialError as e:
            logger.error(
                f"[PUSH] No access token, failing {len(eligible)} recipients: {e.reason.value}"
            )
            for index in eligible:
                outcomes[index] = DeliveryOutcome.failed(
                    recipients[index].user_id, CREDENTIAL_UNAVAILABLE
                )
            return BatchResult(outcomes=tuple(outcomes), credential_error=e.reason.value)

        channel_id = channel_for(message.category)
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def deliver(recipient: Recipient) -> DeliveryOutcome:
            async with semaphore:
                try:
                    await asyncio.wait_for(
                        self.push_client.send(
                            recipient.device_address, message, channel_id, token.token
                        ),
                        timeout=self.send_timeout,
                    )
                except asyncio.TimeoutError:
                    logger.warning(f"[PUSH] Delivery to {recipient.user_id} timed out")
                    return DeliveryOutcome.failed(recipient.user_id, TIMEOUT)
                except DeliveryError as e:
                    return DeliveryOutcome.failed(recipient.user_id, e.reason)
            return DeliveryOutcome.sent(recipient.user_id)

        results = await asyncio.gather(
            *(deliver(recipients[index]) for index in eligible),
            return_exceptions=True,
        )

        for index, result in zip(eligible, results):
            if isinstance(result, DeliveryOutcome):
                outcomes[index] = result
            else:
                logger.error(
                    f"[PUSH] Unexpected delivery error for {recipients[index].user_id}: {result!r}"
                )
                outcomes[index] = DeliveryOutcome.failed(
                    recipients[index].user_id, UNEXPECTED_ERROR
                )

        batch = BatchResult(outcomes=tuple(outcomes))
        logger.info(
            f"[PUSH] Dispatch complete ({message.category}): "
            f"{batch.sent} sent, {batch.failed} failed, {batch.suppressed} suppressed"
        )
        return batch


async def dispatch(
    message: NotificationMessage,
    recipients: Sequence[Recipient],
    identity: SigningIdentity,
    push_client: PushProvider,
    exchanger: Optional[CredentialExchanger] = None,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    send_timeout: float = DEFAULT_SEND_TIMEOUT_SECONDS,
) -> BatchResult:
    """Convenience wrapper for a one-off dispatch."""
    dispatcher = FanOutDispatcher(
        push_client,
        exchanger=exchanger,
        max_concurrency=max_concurrency,
        send_timeout=send_timeout,
    )
    return await dispatcher.dispatch(message, recipients, identity)

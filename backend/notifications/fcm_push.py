"""
Firebase Cloud Messaging Push Client

Sends push notifications via the FCM HTTP v1 API.
https://firebase.google.com/docs/cloud-messaging/send-message

One call per device token; the bearer token comes from the credential
exchanger and is passed in per call.
"""

import httpx
import logging
from typing import Any, Dict, Optional

from .errors import DeliveryError
from .models import NotificationMessage

logger = logging.getLogger(__name__)

# FCM HTTP v1 endpoint
FCM_SEND_URL = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"

CLICK_ACTION = "FLUTTER_NOTIFICATION_CLICK"


def _mask(device_address: str) -> str:
    return f"{device_address[:12]}..." if device_address else "<none>"


class FcmPushClient:
    """Client for sending push notifications via FCM."""

    def __init__(
        self,
        project_id: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        """
        Initialize FCM push client.

        Args:
            project_id: Firebase project the service account belongs to
            client: Optional HTTP client (default: create new)
            timeout: Request timeout in seconds
        """
        self.project_id = project_id
        self.send_url = FCM_SEND_URL.format(project_id=project_id)
        self.client = client or httpx.AsyncClient(timeout=timeout)

    def build_payload(
        self,
        device_address: str,
        message: NotificationMessage,
        channel_id: str,
    ) -> Dict[str, Any]:
        """FCM v1 message body for one device."""
        data = dict(message.data)
        data["type"] = message.category or "general"
        data["click_action"] = CLICK_ACTION

        return {
            "message": {
                "token": device_address,
                "notification": {
                    "title": message.title,
                    "body": message.body,
                },
                "data": data,
                "android": {
                    "priority": message.priority,
                    "notification": {
                        "channel_id": channel_id,
                        "sound": "default",
                    },
                },
                "apns": {
                    "payload": {
                        "aps": {
                            "sound": "default",
                            "badge": 1,  # Show badge on app icon
                        },
                    },
                },
            }
        }

    async def send(
        self,
        device_address: str,
        message: NotificationMessage,
        channel_id: str,
        access_token: str,
    ) -> None:
        """
        Send a push notification to one device.

        Args:
            device_address: FCM registration token
            message: Rendered notification
            channel_id: Android notification channel
            access_token: OAuth2 bearer token for FCM

        Raises:
            DeliveryError: On any non-2xx status or transport failure
        """
        if not device_address:
            raise DeliveryError("no_device_address", "Cannot send notification: empty device token")

        try:
            response = await self.client.post(
                self.send_url,
                json=self.build_payload(device_address, message, channel_id),
                headers=self._get_headers(access_token),
            )
        except httpx.TimeoutException as e:
            logger.error(f"[PUSH] FCM request timed out for {_mask(device_address)}: {e}")
            raise DeliveryError("timeout", str(e)) from e
        except httpx.HTTPError as e:
            logger.error(f"[PUSH] FCM request failed for {_mask(device_address)}: {e}")
            raise DeliveryError("network_error", str(e)) from e

        if not response.is_success:
            logger.error(
                f"[PUSH] FCM error for {_mask(device_address)}: "
                f"{response.status_code} {response.text[:200]}"
            )
            raise DeliveryError(f"http_{response.status_code}")

        logger.info(
            f"[PUSH] Push sent to {_mask(device_address)} "
            f"(title: {message.title[:30]})"
        )

    def _get_headers(self, access_token: str) -> dict:
        """Get HTTP headers for FCM API."""
        return {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        """Context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        await self.close()

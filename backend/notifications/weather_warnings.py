"""
Weather Warning Check

Triggered job (cron calls the HTTP endpoint daily) that:
1. Finds planning/active trips with destination coordinates
2. Skips owners who have weather warnings turned off
3. Fetches active weather alerts for each remaining destination
4. Sends the trip owner a push notification led by the most severe alert
"""

import asyncio
import logging
from typing import Dict

from common.categories import WEATHER_WARNINGS
from providers.contracts import TripStore, WeatherAlertsProvider

from .composer import compose
from .errors import PreferenceLookupError
from .models import Recipient
from .preferences import is_eligible
from .service import NotificationService

logger = logging.getLogger(__name__)


class WeatherWarningJob:
    """Checks upcoming trips for weather alerts and notifies owners."""

    # Look ahead window for planning trips
    HORIZON_DAYS = 7

    # Pause between weather API calls
    REQUEST_DELAY_SECONDS = 0.1

    def __init__(
        self,
        trip_store: TripStore,
        weather_provider: WeatherAlertsProvider,
        notification_service: NotificationService,
        request_delay_seconds: float = REQUEST_DELAY_SECONDS,
    ):
        """
        Initialize job.

        Args:
            trip_store: Source of trips to check
            weather_provider: Weather alerts source
            notification_service: NotificationService instance
            request_delay_seconds: Rate limit between weather API calls
        """
        self.trip_store = trip_store
        self.weather_provider = weather_provider
        self.notification_service = notification_service
        self.request_delay_seconds = request_delay_seconds

    async def run(self) -> dict:
        """
        Check all eligible trips and send weather notifications.

        Returns:
            Summary dict: success, checked, alerts_sent, total_trips

        Raises:
            TripLookupError: If trips cannot be loaded
        """
        trips = await self.trip_store.get_trips_for_weather_check(self.HORIZON_DAYS)
        if not trips:
            logger.info("No trips to check for weather warnings")
            return {"success": True, "message": "No trips to check", "checked": 0, "alerts_sent": 0}

        owner_ids = list(dict.fromkeys(trip.owner_id for trip in trips))
        try:
            owners: Dict[str, Recipient] = {
                recipient.user_id: recipient
                for recipient in await self.notification_service.load_recipients(owner_ids)
            }
        except PreferenceLookupError as e:
            logger.error(f"Preference lookup failed, no weather warnings sent: {e}")
            owners = {}

        checked = 0
        alerts_sent = 0

        for trip in trips:
            owner = owners.get(trip.owner_id) or Recipient(user_id=trip.owner_id)
            if not is_eligible(owner, WEATHER_WARNINGS):
                continue

            checked += 1
            alerts = await self.weather_provider.get_alerts(
                trip.destination_lat, trip.destination_lng
            )

            if alerts:
                message = compose(
                    alerts,
                    trip.title,
                    trip.destination,
                    category=WEATHER_WARNINGS,
                    entity_id=trip.trip_id,
                )
                result = await self.notification_service.send_to_recipients(message, [owner])
                if result.credential_error:
                    # No token means no later trip can be delivered either
                    logger.error(f"Weather check aborted: {result.credential_error}")
                    return {
                        "success": False,
                        "checked": checked,
                        "alerts_sent": alerts_sent,
                        "total_trips": len(trips),
                        "credential_error": result.credential_error,
                    }
                if result.sent:
                    alerts_sent += 1
                    logger.info(
                        f"Weather alert sent for trip {trip.trip_id}: {len(alerts)} alerts"
                    )

            if self.request_delay_seconds:
                await asyncio.sleep(self.request_delay_seconds)

        logger.info(
            f"Weather check complete: {checked} checked, {alerts_sent} sent, "
            f"{len(trips)} trips"
        )
        return {
            "success": True,
            "checked": checked,
            "alerts_sent": alerts_sent,
            "total_trips": len(trips),
        }

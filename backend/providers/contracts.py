from __future__ import annotations

from typing import TYPE_CHECKING, Dict, List, Optional, Protocol, Sequence

if TYPE_CHECKING:
    from notifications.models import (
        AlertCandidate,
        NotificationMessage,
        Recipient,
        Tip,
        Trip,
    )


class RecipientStore(Protocol):
    async def get_recipients(self, user_ids: Sequence[str]) -> Dict[str, Recipient]:
        """Recipients keyed by user id; unknown users are simply absent.

        Raises PreferenceLookupError if the store is unreachable.
        """
        ...


class TripStore(Protocol):
    async def get_trips_for_weather_check(self, horizon_days: int = 7) -> List[Trip]:
        """Raises TripLookupError if the store is unreachable."""
        ...


class WeatherAlertsProvider(Protocol):
    async def get_alerts(self, lat: float, lng: float) -> List[AlertCandidate]:
        ...


class TipProvider(Protocol):
    async def generate_tip(self, trip_context: str) -> Optional[Tip]:
        ...


class PushProvider(Protocol):
    async def send(
        self,
        device_address: str,
        message: NotificationMessage,
        channel_id: str,
        access_token: str,
    ) -> None:
        """Raises DeliveryError on any failure."""
        ...

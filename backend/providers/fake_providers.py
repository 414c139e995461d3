from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from notifications.errors import PreferenceLookupError, TripLookupError
from notifications.models import AlertCandidate, Recipient, Tip, Trip
from notifications.preferences import build_recipients

from .contracts import RecipientStore, TipProvider, TripStore, WeatherAlertsProvider

FIXTURES_ROOT = Path(__file__).parent.parent / "fixtures" / "demo"


class _FixtureLoader:
    def __init__(self, fixture_name: str):
        self.path = FIXTURES_ROOT / fixture_name / "data.json"
        with self.path.open("r", encoding="utf-8") as f:
            self.data = json.load(f)


class FakeRecipientStore(RecipientStore, _FixtureLoader):
    def __init__(self, unavailable: bool = False) -> None:
        _FixtureLoader.__init__(self, "recipients")
        self.unavailable = unavailable

    async def get_recipients(self, user_ids: Sequence[str]) -> Dict[str, Recipient]:
        if self.unavailable:
            raise PreferenceLookupError("Fake store unavailable")
        wanted = set(user_ids)
        profiles = [p for p in self.data.get("profiles", []) if p["id"] in wanted]
        settings = [s for s in self.data.get("notification_settings", []) if s["user_id"] in wanted]
        return build_recipients(profiles, settings)


class FakeTripStore(TripStore, _FixtureLoader):
    def __init__(self, unavailable: bool = False) -> None:
        _FixtureLoader.__init__(self, "trips")
        self.unavailable = unavailable

    async def get_trips_for_weather_check(self, horizon_days: int = 7) -> List[Trip]:
        if self.unavailable:
            raise TripLookupError("Fake store unavailable")
        return [
            Trip(
                trip_id=trip["id"],
                title=trip["title"],
                destination=trip["destination"],
                destination_lat=trip["destination_lat"],
                destination_lng=trip["destination_lng"],
                owner_id=trip["owner_id"],
            )
            for trip in self.data.get("trips", [])
            if trip.get("status") in ("planning", "active")
        ]


class FakeWeatherAlertsProvider(WeatherAlertsProvider, _FixtureLoader):
    def __init__(self) -> None:
        _FixtureLoader.__init__(self, "weather_alerts")
        self.calls: List[tuple] = []

    async def get_alerts(self, lat: float, lng: float) -> List[AlertCandidate]:
        self.calls.append((lat, lng))
        coord_key = f"{round(lat, 4)},{round(lng, 4)}"
        alerts = self.data.get("locations", {}).get(coord_key, [])
        return [
            AlertCandidate(
                event=alert["event"],
                description=alert.get("description", ""),
                source=alert.get("sender_name"),
            )
            for alert in alerts
        ]


class FakeTipProvider(TipProvider, _FixtureLoader):
    def __init__(self) -> None:
        _FixtureLoader.__init__(self, "tips")

    async def generate_tip(self, trip_context: str) -> Optional[Tip]:
        tip = self.data.get("tip")
        if not tip:
            return None
        return Tip(title=tip["title"], body=tip["body"])

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence

import httpx
from google import genai
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from notifications.errors import (
    ConfigurationError,
    PreferenceLookupError,
    TripLookupError,
)
from notifications.models import AlertCandidate, Recipient, Tip, Trip
from notifications.preferences import build_recipients

from .contracts import RecipientStore, TipProvider, TripStore, WeatherAlertsProvider

logger = logging.getLogger(__name__)

OPENWEATHER_ONECALL_URL = "https://api.openweathermap.org/data/3.0/onecall"

GEMINI_MODEL = "gemini-2.0-flash"

TIP_SYSTEM_PROMPT = """You are Waylo, a friendly AI travel companion. Generate a short, actionable daily travel tip.

Rules:
- Keep the tip concise (max 2 sentences for the body)
- Be practical and actionable
- Use a warm, encouraging tone
- Include an emoji in the title
- Don't be generic - make it specific and useful
- Vary the topics: packing, budgeting, culture, safety, photography, food, planning, etc.

Format your response as JSON with "title" and "body" fields.
Example: {"title": "Pack Light, Travel Right! 🎒", "body": "Roll your clothes instead of folding to save 30% more space in your luggage."}"""


class MongoRecipientStore(RecipientStore):
    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self.db = db

    async def get_recipients(self, user_ids: Sequence[str]) -> Dict[str, Recipient]:
        if not user_ids:
            return {}
        ids = list(user_ids)
        try:
            profiles = await self.db.profiles.find(
                {"id": {"$in": ids}}, {"_id": 0, "id": 1, "fcm_token": 1}
            ).to_list(length=None)
            settings = await self.db.notification_settings.find(
                {"user_id": {"$in": ids}}, {"_id": 0}
            ).to_list(length=None)
        except PyMongoError as e:
            raise PreferenceLookupError(f"Failed to fetch user profiles: {e}") from e
        return build_recipients(profiles, settings)


class MongoTripStore(TripStore):
    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self.db = db

    async def get_trips_for_weather_check(self, horizon_days: int = 7) -> List[Trip]:
        horizon = (datetime.now(timezone.utc) + timedelta(days=horizon_days)).date().isoformat()
        query = {
            "status": {"$in": ["planning", "active"]},
            "destination_lat": {"$ne": None},
            "destination_lng": {"$ne": None},
            "$or": [{"start_date": {"$lte": horizon}}, {"status": "active"}],
        }
        try:
            docs = await self.db.trips.find(query, {"_id": 0}).to_list(length=None)
        except PyMongoError as e:
            raise TripLookupError(f"Failed to fetch trips: {e}") from e

        return [
            Trip(
                trip_id=doc["id"],
                title=doc.get("title") or "",
                destination=doc.get("destination") or "",
                destination_lat=float(doc["destination_lat"]),
                destination_lng=float(doc["destination_lng"]),
                owner_id=doc["owner_id"],
            )
            for doc in docs
        ]


def _epoch_to_datetime(value) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        return None


def parse_weather_alerts(data: Dict) -> List[AlertCandidate]:
    """Alerts from an OpenWeatherMap One Call response, in provider order."""
    return [
        AlertCandidate(
            event=alert.get("event") or "Weather Alert",
            description=alert.get("description") or "",
            start=_epoch_to_datetime(alert.get("start")),
            end=_epoch_to_datetime(alert.get("end")),
            source=alert.get("sender_name"),
        )
        for alert in data.get("alerts") or []
    ]


class OpenWeatherMapAlertsProvider(WeatherAlertsProvider):
    def __init__(self, api_key: Optional[str], timeout: float = 10.0) -> None:
        if not api_key:
            raise ConfigurationError("WEATHER_API_KEY not configured")
        self.api_key = api_key
        self.timeout = timeout

    async def get_alerts(self, lat: float, lng: float) -> List[AlertCandidate]:
        params = {
            "lat": lat,
            "lon": lng,
            "exclude": "minutely,hourly,daily",
            "appid": self.api_key,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(OPENWEATHER_ONECALL_URL, params=params)
                if response.status_code != 200:
                    logger.error(f"Weather API error: {response.status_code}")
                    return []
                return parse_weather_alerts(response.json())
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to fetch weather: {e}")
            return []


def parse_tip(text: Optional[str]) -> Optional[Tip]:
    """Tip from a model reply; non-JSON replies become the tip body."""
    if not text or not text.strip():
        return None
    content = text.strip()
    if content.startswith("```"):
        content = content.strip("`")
        if content.lower().startswith("json"):
            content = content[4:]
        content = content.strip()
    try:
        parsed = json.loads(content)
    except ValueError:
        return Tip(title="Daily Travel Tip ✨", body=content)
    if not isinstance(parsed, dict):
        return Tip(title="Daily Travel Tip ✨", body=content)
    return Tip(
        title=parsed.get("title") or "Daily Travel Tip",
        body=parsed.get("body") or content,
    )


class GeminiTipProvider(TipProvider):
    def __init__(self, api_key: str, model: str = GEMINI_MODEL) -> None:
        self.client = genai.Client(api_key=api_key)
        self.model = model

    async def generate_tip(self, trip_context: str) -> Optional[Tip]:
        try:
            loop = asyncio.get_event_loop()
            response = await loop.run_in_executor(
                None,
                lambda: self.client.models.generate_content(
                    model=self.model,
                    contents=TIP_SYSTEM_PROMPT + "\n\n" + trip_context,
                ),
            )
            return parse_tip(response.text)
        except Exception as e:
            logger.error(f"Failed to generate tip: {type(e).__name__}: {e}")
            return None

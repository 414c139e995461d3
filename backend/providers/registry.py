from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient

from .contracts import RecipientStore, TipProvider, TripStore, WeatherAlertsProvider
from .fake_providers import (
    FakeRecipientStore,
    FakeTipProvider,
    FakeTripStore,
    FakeWeatherAlertsProvider,
)
from .real_providers import (
    GeminiTipProvider,
    MongoRecipientStore,
    MongoTripStore,
    OpenWeatherMapAlertsProvider,
)

logger = logging.getLogger(__name__)


@dataclass
class ProviderSet:
    recipients: RecipientStore
    trips: TripStore
    weather: Optional[WeatherAlertsProvider]
    tips: Optional[TipProvider]


def _build_prod() -> ProviderSet:
    mongo_url = os.environ.get("MONGO_URL", "mongodb://localhost:27017")
    client = AsyncIOMotorClient(mongo_url, serverSelectionTimeoutMS=5000)
    db = client[os.environ.get("DB_NAME", "waylo")]

    gemini_key = os.environ.get("GEMINI_API_KEY", "") or os.environ.get("GOOGLE_API_KEY", "")
    if not gemini_key:
        logger.warning("GEMINI_API_KEY not configured, daily tips use built-in fallbacks")

    weather_key = os.environ.get("WEATHER_API_KEY", "")
    if not weather_key:
        logger.warning("WEATHER_API_KEY not configured, weather checks are disabled")

    return ProviderSet(
        recipients=MongoRecipientStore(db),
        trips=MongoTripStore(db),
        weather=OpenWeatherMapAlertsProvider(weather_key) if weather_key else None,
        tips=GeminiTipProvider(gemini_key) if gemini_key else None,
    )


def _build_fake() -> ProviderSet:
    return ProviderSet(
        recipients=FakeRecipientStore(),
        trips=FakeTripStore(),
        weather=FakeWeatherAlertsProvider(),
        tips=FakeTipProvider(),
    )


_provider_cache: Optional[ProviderSet] = None


def load_providers(mode: Optional[str] = None) -> ProviderSet:
    global _provider_cache
    active_mode = (mode or os.environ.get("WAYLO_MODE", "prod")).lower()
    if _provider_cache and mode is None:
        return _provider_cache
    if active_mode in {"demo", "test"}:
        _provider_cache = _build_fake()
    else:
        _provider_cache = _build_prod()
    return _provider_cache


def get_providers() -> ProviderSet:
    return load_providers()


def reload_providers(mode: Optional[str] = None) -> ProviderSet:
    global _provider_cache
    _provider_cache = None
    return load_providers(mode)

from .contracts import (
    PushProvider,
    RecipientStore,
    TipProvider,
    TripStore,
    WeatherAlertsProvider,
)
from .registry import get_providers, reload_providers, load_providers, ProviderSet

__all__ = [
    "PushProvider",
    "RecipientStore",
    "TipProvider",
    "TripStore",
    "WeatherAlertsProvider",
    "get_providers",
    "reload_providers",
    "load_providers",
    "ProviderSet",
]

"""
Notifications package - push delivery for weather warnings, tips, and updates

Submodules:
- models: Data models for identities, recipients, alerts, outcomes
- severity: Alert severity classification
- composer: Weather alert message rendering
- preferences: Per-recipient preference filter
- credentials: JWT assertion signing and token exchange
- fcm_push: Firebase Cloud Messaging client
- dispatcher: Fan-out delivery to a batch of recipients
- service: Recipient resolution on top of the dispatcher
- weather_warnings / daily_tips: Triggered handlers
"""

from .models import (
    AlertCandidate,
    BatchResult,
    BearerToken,
    DeliveryOutcome,
    DeliveryStatus,
    NotificationMessage,
    NotificationPreferences,
    Recipient,
    Severity,
    SigningIdentity,
)
from .errors import (
    ConfigurationError,
    CredentialError,
    CredentialFailure,
    DeliveryError,
    NoCandidatesError,
    NotificationError,
    PreferenceLookupError,
    TripLookupError,
)
from .severity import classify
from .composer import compose
from .preferences import is_eligible
from .credentials import CredentialExchanger, TokenCache
from .fcm_push import FcmPushClient
from .dispatcher import FanOutDispatcher, dispatch
from .config import PushSettings, load_push_settings
from .service import NotificationService
from .weather_warnings import WeatherWarningJob
from .daily_tips import DailyTipJob

__all__ = [
    "AlertCandidate",
    "BatchResult",
    "BearerToken",
    "DeliveryOutcome",
    "DeliveryStatus",
    "NotificationMessage",
    "NotificationPreferences",
    "Recipient",
    "Severity",
    "SigningIdentity",
    "ConfigurationError",
    "CredentialError",
    "CredentialFailure",
    "DeliveryError",
    "NoCandidatesError",
    "NotificationError",
    "PreferenceLookupError",
    "TripLookupError",
    "classify",
    "compose",
    "is_eligible",
    "CredentialExchanger",
    "TokenCache",
    "FcmPushClient",
    "FanOutDispatcher",
    "dispatch",
    "PushSettings",
    "load_push_settings",
    "NotificationService",
    "WeatherWarningJob",
    "DailyTipJob",
]

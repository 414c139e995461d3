"""
Notification error taxonomy.

Configuration and credential errors abort a batch and surface to the caller.
Preference lookup and delivery errors are absorbed into batch outcomes.
"""

from enum import Enum


class NotificationError(Exception):
    """Base class for notification pipeline errors."""


class ConfigurationError(NotificationError):
    """Signing key or provider settings are missing or unusable."""


class CredentialFailure(str, Enum):
    """Why a bearer token could not be obtained."""
    SIGNING_FAILED = "signing_failed"
    EXCHANGE_REJECTED = "exchange_rejected"
    MALFORMED_RESPONSE = "malformed_response"


class CredentialError(NotificationError):
    """Signing or token exchange failed."""

    def __init__(self, reason: CredentialFailure, message: str = ""):
        super().__init__(message or reason.value)
        self.reason = reason


class PreferenceLookupError(NotificationError):
    """The profile/preference store could not be queried."""


class TripLookupError(NotificationError):
    """The trip store could not be queried."""


class DeliveryError(NotificationError):
    """One recipient's delivery call failed."""

    def __init__(self, reason: str, message: str = ""):
        super().__init__(message or reason)
        self.reason = reason


class NoCandidatesError(NotificationError):
    """Composition was requested with no alert candidates."""

"""
Notification domain models.

Defines data structures for signing identities, recipients, alert candidates,
rendered messages, and per-recipient delivery outcomes.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, Optional, Tuple


class Severity(str, Enum):
    """Priority tier of a hazard alert."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Sort rank, most severe first."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.HIGH: 0, Severity.MEDIUM: 1, Severity.LOW: 2}


class DeliveryStatus(str, Enum):
    """Per-recipient delivery state."""
    SENT = "sent"
    SUPPRESSED = "suppressed"
    FAILED = "failed"


@dataclass(frozen=True)
class SigningIdentity:
    """Service-account identity used to mint push provider tokens."""
    issuer: str
    private_key: str = field(repr=False)
    audience: str
    scope: str

    @property
    def cache_key(self) -> Tuple[str, str, str]:
        return (self.issuer, self.audience, self.scope)


@dataclass(frozen=True)
class BearerToken:
    """Short-lived access token returned by the token endpoint."""
    token: str = field(repr=False)
    expires_at: datetime

    def is_usable(self, now: Optional[datetime] = None, margin_seconds: int = 60) -> bool:
        """True if the token stays valid for at least ``margin_seconds`` more."""
        now = now or datetime.now(timezone.utc)
        return self.expires_at - timedelta(seconds=margin_seconds) > now


@dataclass(frozen=True)
class NotificationPreferences:
    """A user's stored notification settings row."""
    master_enabled: bool = False
    push_enabled: bool = False
    categories: Dict[str, bool] = field(default_factory=dict)


@dataclass(frozen=True)
class Recipient:
    """A user targeted by a notification.

    ``preferences`` is None when the user has no settings row, and
    ``device_address`` is None when no FCM token is registered.
    """
    user_id: str
    device_address: Optional[str] = None
    preferences: Optional[NotificationPreferences] = None


@dataclass(frozen=True)
class AlertCandidate:
    """A weather alert that may drive a notification."""
    event: str
    description: str = ""
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    source: Optional[str] = None


@dataclass(frozen=True)
class NotificationMessage:
    """A rendered notification ready for fan-out."""
    title: str
    body: str
    category: str
    data: Dict[str, str] = field(default_factory=dict)
    priority: str = "high"


@dataclass(frozen=True)
class DeliveryOutcome:
    """Result of delivering (or not) to one recipient."""
    user_id: str
    status: DeliveryStatus
    reason: Optional[str] = None

    @classmethod
    def sent(cls, user_id: str) -> "DeliveryOutcome":
        return cls(user_id, DeliveryStatus.SENT)

    @classmethod
    def suppressed(cls, user_id: str, reason: str) -> "DeliveryOutcome":
        return cls(user_id, DeliveryStatus.SUPPRESSED, reason)

    @classmethod
    def failed(cls, user_id: str, reason: str) -> "DeliveryOutcome":
        return cls(user_id, DeliveryStatus.FAILED, reason)


@dataclass(frozen=True)
class BatchResult:
    """Aggregated outcomes for one dispatch."""
    outcomes: Tuple[DeliveryOutcome, ...] = ()
    credential_error: Optional[str] = None

    def _count(self, status: DeliveryStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def sent(self) -> int:
        return self._count(DeliveryStatus.SENT)

    @property
    def failed(self) -> int:
        return self._count(DeliveryStatus.FAILED)

    @property
    def suppressed(self) -> int:
        return self._count(DeliveryStatus.SUPPRESSED)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    def outcome_for(self, user_id: str) -> Optional[DeliveryOutcome]:
        for outcome in self.outcomes:
            if outcome.user_id == user_id:
                return outcome
        return None

    def to_dict(self) -> dict:
        """Summary counts for the invocation response."""
        return {
            "sent": self.sent,
            "failed": self.failed,
            "suppressed": self.suppressed,
            "total": self.total,
        }


@dataclass(frozen=True)
class Trip:
    """A trip checked by the weather warning handler."""
    trip_id: str
    title: str
    destination: str
    destination_lat: float
    destination_lng: float
    owner_id: str


@dataclass(frozen=True)
class TripSummary:
    """Upcoming trip context supplied with a daily tip request."""
    destination: str
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    status: Optional[str] = None


@dataclass(frozen=True)
class Tip:
    """A daily travel tip."""
    title: str
    body: str

    def to_dict(self) -> dict:
        return {"title": self.title, "body": self.body}

"""
Weather alert message composition.

Picks the most severe alert from a set of candidates and renders the
notification title/body with tier-specific wording.
"""

from typing import Optional, Sequence, Tuple

from common.categories import WEATHER_WARNINGS

from .errors import NoCandidatesError
from .models import AlertCandidate, NotificationMessage, Severity
from .severity import classify

DESCRIPTION_PREFIX_LENGTH = 100


def _truncate(description: str, limit: int = DESCRIPTION_PREFIX_LENGTH) -> str:
    description = description or ""
    if len(description) > limit:
        return description[:limit] + "..."
    return description


def select_primary(candidates: Sequence[AlertCandidate]) -> AlertCandidate:
    """Most severe candidate; earlier candidates win ties."""
    if not candidates:
        raise NoCandidatesError("At least one alert candidate is required")
    # sorted() is stable, so equal tiers keep their input order
    ranked = sorted(candidates, key=lambda alert: classify(alert.event).rank)
    return ranked[0]


def render(
    alert: AlertCandidate,
    severity: Severity,
    trip_label: str,
    destination_label: str,
) -> Tuple[str, str]:
    """Title and body for the primary alert."""
    description = _truncate(alert.description)

    if severity == Severity.HIGH:
        title = f"⚠️ SEVERE: {alert.event}"
        body = (
            f'Critical weather alert for your trip "{trip_label}" to '
            f"{destination_label}. {description}"
        )
    elif severity == Severity.MEDIUM:
        title = f"🌧️ Weather Warning: {alert.event}"
        body = f'Weather alert for "{trip_label}": {description}'
    else:
        title = f"Weather Advisory for {destination_label}"
        body = f"{alert.event}: {description}"

    return title, body.rstrip()


def compose(
    candidates: Sequence[AlertCandidate],
    trip_label: str,
    destination_label: str,
    category: str = WEATHER_WARNINGS,
    entity_id: Optional[str] = None,
) -> NotificationMessage:
    """
    Build a notification from one or more alert candidates.

    Args:
        candidates: Alerts for the trip destination, in provider order
        trip_label: Trip title shown in the body
        destination_label: Destination name shown in the title/body
        category: Notification category tag
        entity_id: Optional trip/entity identifier added to the payload

    Returns:
        NotificationMessage driven by the most severe alert

    Raises:
        NoCandidatesError: If candidates is empty
    """
    primary = select_primary(candidates)
    severity = classify(primary.event)
    title, body = render(primary, severity, trip_label, destination_label)

    data = {
        "type": category,
        "alert_count": str(len(candidates)),
        "severity": severity.value,
    }
    if entity_id:
        data["id"] = entity_id

    return NotificationMessage(
        title=title,
        body=body,
        category=category,
        data=data,
        priority="normal" if severity == Severity.LOW else "high",
    )

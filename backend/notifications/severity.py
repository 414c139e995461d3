"""
Alert severity classification.

Maps a weather alert event label to a priority tier by case-insensitive
keyword match. High keywords are checked first, so "Severe Storm Warning"
resolves to HIGH even though it also contains Medium keywords.
"""

from typing import Tuple

from .models import Severity

HIGH_SEVERITY_KEYWORDS: Tuple[str, ...] = (
    "tornado",
    "hurricane",
    "typhoon",
    "tsunami",
    "earthquake",
    "extreme",
    "severe",
)

MEDIUM_SEVERITY_KEYWORDS: Tuple[str, ...] = (
    "warning",
    "storm",
    "flood",
    "fire",
    "heat",
    "cold",
    "wind",
)

_TIERS: Tuple[Tuple[Severity, Tuple[str, ...]], ...] = (
    (Severity.HIGH, HIGH_SEVERITY_KEYWORDS),
    (Severity.MEDIUM, MEDIUM_SEVERITY_KEYWORDS),
)


def classify(event_label: str) -> Severity:
    """Return the severity tier for an alert event label."""
    label = (event_label or "").lower()
    for tier, keywords in _TIERS:
        if any(keyword in label for keyword in keywords):
            return tier
    return Severity.LOW

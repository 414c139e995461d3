"""
Notification Category Definitions

Shared constants for notification categories and Android channel routing.
Category identifiers double as the per-category flag names stored in
notification settings, so they must match the mobile app exactly.
"""

from types import MappingProxyType

# Notification category identifiers
WEATHER_WARNINGS = "weather_warnings"
TRIP_REMINDERS = "trip_reminders"
BUDGET_ALERTS = "budget_alerts"
JOURNAL_PROMPTS = "journal_prompts"
SUPPORT_REPLIES = "support_replies"
DAILY_TIPS = "daily_tips"

# All categories a user can toggle
NOTIFICATION_CATEGORIES = frozenset({
    WEATHER_WARNINGS,
    TRIP_REMINDERS,
    BUDGET_ALERTS,
    JOURNAL_PROMPTS,
    SUPPORT_REPLIES,
    DAILY_TIPS,
})

# Android notification channels
CHANNEL_TRIPS = "waylo_trips"
CHANNEL_EXPENSES = "waylo_expenses"
CHANNEL_JOURNAL = "waylo_journal"
CHANNEL_SUPPORT = "waylo_support"
CHANNEL_GENERAL = "waylo_general"

CATEGORY_CHANNELS = MappingProxyType({
    WEATHER_WARNINGS: CHANNEL_TRIPS,
    TRIP_REMINDERS: CHANNEL_TRIPS,
    BUDGET_ALERTS: CHANNEL_EXPENSES,
    JOURNAL_PROMPTS: CHANNEL_JOURNAL,
    SUPPORT_REPLIES: CHANNEL_SUPPORT,
    # Payload type names older app builds send. These route to a channel but
    # are not toggleable categories, so they never pass eligibility.
    "trip_reminder": CHANNEL_TRIPS,
    "trip_status": CHANNEL_TRIPS,
    "weather_warning": CHANNEL_TRIPS,
    "expense_reminder": CHANNEL_EXPENSES,
    "budget_alert": CHANNEL_EXPENSES,
    "journal_ready": CHANNEL_JOURNAL,
    "journal_prompt": CHANNEL_JOURNAL,
    "support_reply": CHANNEL_SUPPORT,
    "ticket_update": CHANNEL_SUPPORT,
})


def is_known_category(category: str) -> bool:
    """Check if a category ID is a valid notification category."""
    return category in NOTIFICATION_CATEGORIES


def channel_for(category: str) -> str:
    """Android channel for a category; unmapped categories use the general channel."""
    return CATEGORY_CHANNELS.get(category, CHANNEL_GENERAL)

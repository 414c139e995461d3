"""
Notification preference filter.

Fails closed: a missing settings row, a disabled master or push switch, an
unknown category, or a category flag that is absent all mean "do not send".
"""

from typing import Any, Dict, Iterable, Mapping, Optional

from common.categories import NOTIFICATION_CATEGORIES, is_known_category

from .models import NotificationPreferences, Recipient

NO_PREFERENCES = "no_preferences"
MASTER_DISABLED = "master_disabled"
PUSH_DISABLED = "push_disabled"
UNKNOWN_CATEGORY = "unknown_category"
CATEGORY_DISABLED = "category_disabled"


def suppression_reason(recipient: Recipient, category: str) -> Optional[str]:
    """Why ``recipient`` must not get ``category`` notifications, or None if allowed."""
    prefs = recipient.preferences
    if prefs is None:
        return NO_PREFERENCES
    if not prefs.master_enabled:
        return MASTER_DISABLED
    if not prefs.push_enabled:
        return PUSH_DISABLED
    if not is_known_category(category):
        return UNKNOWN_CATEGORY
    if prefs.categories.get(category) is not True:
        return CATEGORY_DISABLED
    return None


def is_eligible(recipient: Recipient, category: str) -> bool:
    """Check if recipient may receive a push notification of this category."""
    return suppression_reason(recipient, category) is None


def preferences_from_document(doc: Optional[Mapping[str, Any]]) -> Optional[NotificationPreferences]:
    """Build preferences from a notification_settings row; None stays None."""
    if doc is None:
        return None
    return NotificationPreferences(
        master_enabled=doc.get("master_enabled") is True,
        push_enabled=doc.get("push_notifications") is True,
        categories={
            category: doc.get(category) is True
            for category in NOTIFICATION_CATEGORIES
            if category in doc
        },
    )


def build_recipients(
    profiles: Iterable[Mapping[str, Any]],
    settings_rows: Iterable[Mapping[str, Any]],
) -> Dict[str, Recipient]:
    """Join profile rows (id, fcm_token) with settings rows (user_id, flags)."""
    tokens = {profile["id"]: profile.get("fcm_token") for profile in profiles}
    settings = {row["user_id"]: row for row in settings_rows}

    recipients = {}
    for user_id in list(tokens) + [uid for uid in settings if uid not in tokens]:
        recipients[user_id] = Recipient(
            user_id=user_id,
            device_address=tokens.get(user_id) or None,
            preferences=preferences_from_document(settings.get(user_id)),
        )
    return recipients

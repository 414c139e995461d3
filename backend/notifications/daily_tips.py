"""
Daily Travel Tip

Generates a personalized travel tip for a user and pushes it. The tip
provider (LLM) is optional: when it is unavailable or returns nothing usable,
a built-in tip is used instead.
"""

import logging
import random
from typing import Optional, Sequence

from common.categories import DAILY_TIPS
from providers.contracts import TipProvider

from .models import NotificationMessage, Tip, TripSummary
from .service import NotificationService

logger = logging.getLogger(__name__)

DEFAULT_TIPS = (
    Tip("Save on Currency Exchange 💰",
        "Use a travel-friendly debit card to avoid foreign transaction fees and get better exchange rates."),
    Tip("Pack a Power Strip 🔌",
        "One travel adapter + a power strip means you can charge all your devices at once."),
    Tip("Take Photos of Signs 📸",
        "Snap a photo of your hotel name, metro stops, and street signs to navigate easier without data."),
    Tip("Roll, Don't Fold! 🎒",
        "Rolling clothes instead of folding saves space and reduces wrinkles in your luggage."),
    Tip("Eat Where Locals Eat 🍽️",
        "Restaurants full of locals usually offer better food at lower prices than tourist spots."),
    Tip("Morning is Magic ☀️",
        "Visit popular attractions early morning - fewer crowds and better photos!"),
    Tip("Learn Three Phrases 🗣️",
        "Hello, Thank you, and Excuse me in the local language go a long way in any country."),
    Tip("Email Yourself Copies 📧",
        "Send yourself photos of passport, insurance, and bookings as backup documents."),
)


def default_tip(rng: Optional[random.Random] = None) -> Tip:
    """Pick a built-in tip."""
    return (rng or random).choice(DEFAULT_TIPS)


def build_trip_context(trips: Sequence[TripSummary]) -> str:
    """Describe the user's situation for the tip prompt."""
    active = next((trip for trip in trips if trip.status == "active"), None)
    if active:
        return (
            f"The user is currently traveling to {active.destination}. Generate a tip "
            "relevant to their current trip - could be about exploring, saving money "
            "while traveling, staying safe, making memories, or local customs."
        )

    planning = next((trip for trip in trips if trip.status == "planning"), None)
    if planning:
        return (
            f"The user is planning a trip to {planning.destination} starting on "
            f"{planning.start_date}. Generate a preparation tip - could be about "
            "packing, researching, booking, or getting ready for the trip."
        )

    return (
        "The user doesn't have any upcoming trips. Generate a general travel "
        "inspiration tip - could be about dreaming destinations, travel planning "
        "benefits, or motivation to book their next adventure."
    )


class DailyTipJob:
    """Generates and pushes a daily tip to one user."""

    def __init__(
        self,
        tip_provider: Optional[TipProvider],
        notification_service: NotificationService,
        rng: Optional[random.Random] = None,
    ):
        self.tip_provider = tip_provider
        self.notification_service = notification_service
        self.rng = rng

    async def generate_tip(self, trips: Sequence[TripSummary]) -> Tip:
        if self.tip_provider is None:
            return default_tip(self.rng)

        tip = await self.tip_provider.generate_tip(build_trip_context(trips))
        if tip is None or not tip.title or not tip.body:
            logger.info("Tip provider returned nothing usable, using default tip")
            return default_tip(self.rng)
        return tip

    async def run(self, user_id: str, upcoming_trips: Sequence[TripSummary] = ()) -> dict:
        """
        Generate a tip and push it to ``user_id``.

        Returns:
            Dict with success, sent (bool), tip, and reason when not sent
        """
        tip = await self.generate_tip(upcoming_trips)
        message = NotificationMessage(
            title=tip.title,
            body=tip.body,
            category=DAILY_TIPS,
        )

        result = await self.notification_service.send(message, [user_id])
        response = {"success": True, "sent": result.sent > 0, "tip": tip.to_dict()}

        outcome = result.outcome_for(user_id)
        if outcome is not None and outcome.reason:
            response["reason"] = outcome.reason
        if result.credential_error:
            response["credential_error"] = result.credential_error
        return response

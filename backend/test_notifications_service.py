"""
Tests for the notification service and the triggered handlers

Covers:
- Recipient resolution against the demo fixtures
- Preference store outage degrading to suppression
- Weather warning job (eligibility skip, alert composition, abort on credentials)
- Daily tip job (provider tip, fallbacks, trip context)
- Push settings loaded from the environment
"""

import json
import random

import pytest

from common.categories import CHANNEL_GENERAL, CHANNEL_TRIPS, WEATHER_WARNINGS
from notifications.config import (
    DEFAULT_TOKEN_URI,
    FCM_SCOPE,
    load_push_settings,
    parse_service_account,
)
from notifications.daily_tips import (
    DEFAULT_TIPS,
    DailyTipJob,
    build_trip_context,
    default_tip,
)
from notifications.dispatcher import NO_DEVICE_ADDRESS
from notifications.errors import ConfigurationError, NoCandidatesError, TripLookupError
from notifications.models import AlertCandidate, NotificationMessage, Tip, TripSummary
from notifications.preferences import CATEGORY_DISABLED, NO_PREFERENCES
from notifications.service import PREFERENCE_LOOKUP_FAILED, NotificationService
from notifications.weather_warnings import WeatherWarningJob
from providers.fake_providers import (
    FakeRecipientStore,
    FakeTipProvider,
    FakeTripStore,
    FakeWeatherAlertsProvider,
)

MESSAGE = NotificationMessage(
    title="🌧️ Weather Warning: Flood Watch",
    body="Flooding possible.",
    category=WEATHER_WARNINGS,
)


@pytest.fixture
def service(push_client, exchanger, push_settings):
    return NotificationService(FakeRecipientStore(), push_client, push_settings, exchanger=exchanger)


class TestNotificationService:
    """Recipient lookup on top of the dispatcher."""

    @pytest.mark.asyncio
    async def test_fixture_recipients(self, service, push_client):
        result = await service.send(
            MESSAGE, ["user-alice", "user-bob", "user-carol", "user-dave", "ghost"]
        )

        assert result.to_dict() == {"sent": 1, "failed": 0, "suppressed": 4, "total": 5}
        assert result.outcome_for("user-bob").reason == CATEGORY_DISABLED
        assert result.outcome_for("user-carol").reason == NO_PREFERENCES
        assert result.outcome_for("user-dave").reason == NO_DEVICE_ADDRESS
        assert result.outcome_for("ghost").reason == NO_PREFERENCES
        assert [call["device_address"] for call in push_client.calls] == ["fcm-token-alice-0001"]

    @pytest.mark.asyncio
    async def test_duplicate_ids_sent_once(self, service, push_client):
        result = await service.send(MESSAGE, ["user-alice", "user-alice"])
        assert result.total == 1
        assert len(push_client.calls) == 1

    @pytest.mark.asyncio
    async def test_store_outage_suppresses_everyone(self, push_client, exchanger, push_settings):
        service = NotificationService(
            FakeRecipientStore(unavailable=True), push_client, push_settings, exchanger=exchanger
        )
        result = await service.send(MESSAGE, ["user-alice", "user-bob"])

        assert result.suppressed == 2
        assert {outcome.reason for outcome in result.outcomes} == {PREFERENCE_LOOKUP_FAILED}
        assert exchanger.calls == 0
        assert push_client.calls == []

    @pytest.mark.asyncio
    async def test_send_alerts_composes(self, service, push_client):
        result = await service.send_alerts(
            WEATHER_WARNINGS,
            ["user-alice"],
            [AlertCandidate(event="Wind Advisory"), AlertCandidate(event="Hurricane Warning")],
            trip_label="Beach Week",
            destination_label="Miami, FL",
            entity_id="trip-miami",
        )
        assert result.sent == 1
        message = push_client.calls[0]["message"]
        assert message.title == "⚠️ SEVERE: Hurricane Warning"
        assert message.data["id"] == "trip-miami"

    @pytest.mark.asyncio
    async def test_send_alerts_requires_candidates(self, service):
        with pytest.raises(NoCandidatesError):
            await service.send_alerts(WEATHER_WARNINGS, ["user-alice"], [], "Trip", "Place")

    @pytest.mark.asyncio
    async def test_close(self, service, push_client):
        await service.close()
        assert push_client.closed is True


class _EmptyTripStore:
    async def get_trips_for_weather_check(self, horizon_days=7):
        return []


class TestWeatherWarningJob:
    """Daily weather check over the demo trips."""

    @pytest.mark.asyncio
    async def test_run(self, service, push_client):
        weather = FakeWeatherAlertsProvider()
        job = WeatherWarningJob(FakeTripStore(), weather, service, request_delay_seconds=0)

        summary = await job.run()

        assert summary == {"success": True, "checked": 2, "alerts_sent": 1, "total_trips": 3}
        # Bob turned weather warnings off, so Miami is never fetched
        assert weather.calls == [(35.4676, -97.5164), (39.7392, -104.9903)]

        assert len(push_client.calls) == 1
        call = push_client.calls[0]
        assert call["device_address"] == "fcm-token-alice-0001"
        assert call["channel_id"] == CHANNEL_TRIPS
        assert call["message"].title == "⚠️ SEVERE: Tornado Warning"
        assert call["message"].body.startswith(
            'Critical weather alert for your trip "Route 66 Road Trip" to Oklahoma City, OK. '
        )
        assert call["message"].body.endswith("...")
        assert call["message"].data == {
            "type": WEATHER_WARNINGS,
            "alert_count": "2",
            "severity": "high",
            "id": "trip-okc",
        }

    @pytest.mark.asyncio
    async def test_no_trips(self, service):
        job = WeatherWarningJob(_EmptyTripStore(), FakeWeatherAlertsProvider(), service)
        summary = await job.run()
        assert summary["success"] is True
        assert summary["checked"] == 0
        assert summary["alerts_sent"] == 0

    @pytest.mark.asyncio
    async def test_credential_failure_aborts(self, push_client, failing_exchanger, push_settings):
        service = NotificationService(
            FakeRecipientStore(), push_client, push_settings, exchanger=failing_exchanger
        )
        job = WeatherWarningJob(
            FakeTripStore(), FakeWeatherAlertsProvider(), service, request_delay_seconds=0
        )

        summary = await job.run()

        assert summary["success"] is False
        assert summary["credential_error"] == "exchange_rejected"
        assert summary["checked"] == 1
        assert summary["alerts_sent"] == 0
        assert push_client.calls == []

    @pytest.mark.asyncio
    async def test_preference_outage_checks_nothing(self, push_client, exchanger, push_settings):
        service = NotificationService(
            FakeRecipientStore(unavailable=True), push_client, push_settings, exchanger=exchanger
        )
        weather = FakeWeatherAlertsProvider()
        job = WeatherWarningJob(FakeTripStore(), weather, service, request_delay_seconds=0)

        summary = await job.run()

        assert summary == {"success": True, "checked": 0, "alerts_sent": 0, "total_trips": 3}
        assert weather.calls == []

    @pytest.mark.asyncio
    async def test_trip_store_outage_raises(self, service):
        job = WeatherWarningJob(
            FakeTripStore(unavailable=True), FakeWeatherAlertsProvider(), service
        )
        with pytest.raises(TripLookupError):
            await job.run()


class _NoTipProvider:
    def __init__(self, tip=None):
        self.tip = tip
        self.contexts = []

    async def generate_tip(self, trip_context):
        self.contexts.append(trip_context)
        return self.tip


class TestDailyTipJob:
    """Tip generation and delivery."""

    @pytest.mark.asyncio
    async def test_provider_tip_sent(self, service, push_client):
        response = await DailyTipJob(FakeTipProvider(), service).run("user-alice")

        assert response["success"] is True
        assert response["sent"] is True
        assert response["tip"]["title"] == "Download Offline Maps 🗺️"
        assert push_client.calls[0]["channel_id"] == CHANNEL_GENERAL
        assert push_client.calls[0]["message"].data == {}

    @pytest.mark.asyncio
    async def test_not_sent_without_device(self, service, push_client):
        response = await DailyTipJob(FakeTipProvider(), service).run("user-dave")
        assert response["sent"] is False
        assert response["reason"] == NO_DEVICE_ADDRESS
        assert push_client.calls == []

    @pytest.mark.asyncio
    async def test_no_provider_uses_default(self, service):
        response = await DailyTipJob(None, service, rng=random.Random(7)).run("user-alice")
        assert response["tip"] in [tip.to_dict() for tip in DEFAULT_TIPS]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("tip", [None, Tip(title="", body="Body only"), Tip(title="Title", body="")])
    async def test_unusable_tip_uses_default(self, service, tip):
        provider = _NoTipProvider(tip)
        response = await DailyTipJob(provider, service, rng=random.Random(7)).run("user-alice")
        assert response["tip"] in [default.to_dict() for default in DEFAULT_TIPS]
        assert len(provider.contexts) == 1

    @pytest.mark.asyncio
    async def test_context_passed_to_provider(self, service):
        provider = _NoTipProvider(Tip(title="Hydrate ✈️", body="Drink water on long flights."))
        trips = [TripSummary(destination="Lisbon", start_date="2026-11-02", status="planning")]
        response = await DailyTipJob(provider, service).run("user-alice", trips)

        assert response["tip"] == {"title": "Hydrate ✈️", "body": "Drink water on long flights."}
        assert "Lisbon" in provider.contexts[0]

    @pytest.mark.asyncio
    async def test_credential_error_reported(self, push_client, failing_exchanger, push_settings):
        service = NotificationService(
            FakeRecipientStore(), push_client, push_settings, exchanger=failing_exchanger
        )
        response = await DailyTipJob(FakeTipProvider(), service).run("user-alice")
        assert response["sent"] is False
        assert response["credential_error"] == "exchange_rejected"

    def test_default_tip_deterministic_with_seed(self):
        assert default_tip(random.Random(3)) == default_tip(random.Random(3))


class TestBuildTripContext:
    """Prompt context from upcoming trips."""

    def test_active_wins(self):
        context = build_trip_context([
            TripSummary(destination="Lisbon", start_date="2026-11-02", status="planning"),
            TripSummary(destination="Tokyo", status="active"),
        ])
        assert "currently traveling to Tokyo" in context

    def test_planning(self):
        context = build_trip_context([
            TripSummary(destination="Lisbon", start_date="2026-11-02", status="planning"),
        ])
        assert "planning a trip to Lisbon starting on 2026-11-02" in context

    def test_no_trips(self):
        assert "doesn't have any upcoming trips" in build_trip_context([])


def _service_account(private_key_pem, **overrides):
    account = {
        "type": "service_account",
        "project_id": "waylo-test",
        "client_email": "push-sender@waylo-test.iam.gserviceaccount.com",
        "private_key": private_key_pem,
    }
    account.update(overrides)
    return json.dumps(account)


class TestPushSettings:
    """Environment configuration."""

    def test_defaults(self, private_key_pem):
        settings = load_push_settings({"FCM_SERVICE_ACCOUNT": _service_account(private_key_pem)})
        assert settings.project_id == "waylo-test"
        assert settings.identity.issuer == "push-sender@waylo-test.iam.gserviceaccount.com"
        assert settings.identity.audience == DEFAULT_TOKEN_URI
        assert settings.identity.scope == FCM_SCOPE
        assert settings.send_timeout == 10.0
        assert settings.max_concurrency == 10

    def test_overrides(self, private_key_pem):
        settings = load_push_settings({
            "FCM_SERVICE_ACCOUNT": _service_account(
                private_key_pem, token_uri="https://example.test/token"
            ),
            "PUSH_SEND_TIMEOUT_SECONDS": "2.5",
            "PUSH_MAX_CONCURRENCY": "3",
        })
        assert settings.identity.audience == "https://example.test/token"
        assert settings.send_timeout == 2.5
        assert settings.max_concurrency == 3

    def test_private_key_not_in_repr(self, private_key_pem):
        settings = load_push_settings({"FCM_SERVICE_ACCOUNT": _service_account(private_key_pem)})
        assert "PRIVATE KEY" not in repr(settings)

    @pytest.mark.parametrize("raw", [None, "", "{not json", "[1, 2]", json.dumps({"project_id": "p"})])
    def test_bad_service_account(self, raw):
        with pytest.raises(ConfigurationError):
            parse_service_account(raw)

    @pytest.mark.parametrize("name,value", [
        ("PUSH_SEND_TIMEOUT_SECONDS", "soon"),
        ("PUSH_SEND_TIMEOUT_SECONDS", "0"),
        ("PUSH_SEND_TIMEOUT_SECONDS", "nan"),
        ("PUSH_SEND_TIMEOUT_SECONDS", "inf"),
        ("PUSH_SEND_TIMEOUT_SECONDS", "-inf"),
        ("PUSH_MAX_CONCURRENCY", "-1"),
        ("PUSH_MAX_CONCURRENCY", "2.5"),
    ])
    def test_bad_tuning(self, private_key_pem, name, value):
        with pytest.raises(ConfigurationError):
            load_push_settings({
                "FCM_SERVICE_ACCOUNT": _service_account(private_key_pem),
                name: value,
            })

    def test_missing_env(self):
        with pytest.raises(ConfigurationError):
            load_push_settings({})

"""Shared fixtures for notification tests."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from notifications.config import FCM_SCOPE, PushSettings
from notifications.errors import CredentialError, CredentialFailure
from notifications.models import (
    BearerToken,
    NotificationPreferences,
    Recipient,
    SigningIdentity,
)

ALL_CATEGORIES_ON = {
    "weather_warnings": True,
    "trip_reminders": True,
    "budget_alerts": True,
    "journal_prompts": True,
    "support_replies": True,
    "daily_tips": True,
}


class StubPushClient:
    """Records delivery calls; per-device behaviour can be an exception or a delay."""

    def __init__(self):
        self.calls = []
        self.behaviors = {}
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def send(self, device_address, message, channel_id, access_token):
        self.calls.append({
            "device_address": device_address,
            "message": message,
            "channel_id": channel_id,
            "access_token": access_token,
        })
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            behavior = self.behaviors.get(device_address, 0.001)
            if isinstance(behavior, BaseException):
                raise behavior
            await asyncio.sleep(behavior)
        finally:
            self.in_flight -= 1

    async def close(self):
        self.closed = True


class StubExchanger:
    """Counts exchanges; raises ``error`` when set."""

    def __init__(self, error=None):
        self.calls = 0
        self.error = error

    async def exchange(self, identity):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return BearerToken(
            token="stub-access-token",
            expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        )


@pytest.fixture(scope="session")
def rsa_private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_key_pem(rsa_private_key):
    return rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")


@pytest.fixture
def signing_identity(private_key_pem):
    return SigningIdentity(
        issuer="push-sender@waylo-test.iam.gserviceaccount.com",
        private_key=private_key_pem,
        audience="https://oauth2.googleapis.com/token",
        scope=FCM_SCOPE,
    )


@pytest.fixture
def push_settings(signing_identity):
    return PushSettings(
        identity=signing_identity,
        project_id="waylo-test",
        send_timeout=1.0,
        max_concurrency=4,
    )


@pytest.fixture
def push_client():
    return StubPushClient()


@pytest.fixture
def exchanger():
    return StubExchanger()


@pytest.fixture
def make_recipient():
    """Factory: recipient with every flag on unless overridden."""

    def _make(user_id, device_address="default", master=True, push=True, with_preferences=True, **categories):
        if device_address == "default":
            device_address = f"fcm-{user_id}"
        preferences = None
        if with_preferences:
            flags = dict(ALL_CATEGORIES_ON)
            flags.update(categories)
            preferences = NotificationPreferences(
                master_enabled=master,
                push_enabled=push,
                categories=flags,
            )
        return Recipient(user_id=user_id, device_address=device_address, preferences=preferences)

    return _make


@pytest.fixture
def failing_exchanger():
    return StubExchanger(error=CredentialError(CredentialFailure.EXCHANGE_REJECTED))

"""
Push delivery configuration.

Reads the FCM service account and delivery tuning from the environment once
at startup. Anything missing or unusable raises ConfigurationError before a
single recipient is touched.
"""

import json
import math
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .dispatcher import DEFAULT_MAX_CONCURRENCY, DEFAULT_SEND_TIMEOUT_SECONDS
from .errors import ConfigurationError
from .models import SigningIdentity

FCM_SCOPE = "https://www.googleapis.com/auth/firebase.messaging"
DEFAULT_TOKEN_URI = "https://oauth2.googleapis.com/token"

REQUIRED_SERVICE_ACCOUNT_FIELDS = ("client_email", "private_key", "project_id")


@dataclass(frozen=True)
class PushSettings:
    """Everything the dispatcher needs from the environment."""
    identity: SigningIdentity
    project_id: str
    send_timeout: float = DEFAULT_SEND_TIMEOUT_SECONDS
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY


def parse_service_account(raw: Optional[str]) -> dict:
    """Parse and validate the FCM service account JSON."""
    if not raw:
        raise ConfigurationError("FCM_SERVICE_ACCOUNT not configured")
    try:
        account = json.loads(raw)
    except ValueError as e:
        raise ConfigurationError(f"FCM_SERVICE_ACCOUNT is not valid JSON: {e}") from e
    if not isinstance(account, dict):
        raise ConfigurationError("FCM_SERVICE_ACCOUNT must be a JSON object")

    missing = [name for name in REQUIRED_SERVICE_ACCOUNT_FIELDS if not account.get(name)]
    if missing:
        raise ConfigurationError(
            f"FCM_SERVICE_ACCOUNT missing fields: {', '.join(missing)}"
        )
    return account


def _positive_number(env: Mapping[str, str], name: str, default, cast):
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = cast(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e
    if not math.isfinite(value) or value <= 0:
        raise ConfigurationError(f"{name} must be a finite number > 0, got {raw!r}")
    return value


def load_push_settings(environ: Optional[Mapping[str, str]] = None) -> PushSettings:
    """
    Build PushSettings from environment variables.

    Args:
        environ: Mapping to read from (default: os.environ)

    Raises:
        ConfigurationError: If the service account is missing or invalid
    """
    env = os.environ if environ is None else environ
    account = parse_service_account(env.get("FCM_SERVICE_ACCOUNT"))

    identity = SigningIdentity(
        issuer=account["client_email"],
        private_key=account["private_key"],
        audience=account.get("token_uri") or DEFAULT_TOKEN_URI,
        scope=FCM_SCOPE,
    )

    return PushSettings(
        identity=identity,
        project_id=account["project_id"],
        send_timeout=_positive_number(
            env, "PUSH_SEND_TIMEOUT_SECONDS", DEFAULT_SEND_TIMEOUT_SECONDS, float
        ),
        max_concurrency=_positive_number(
            env, "PUSH_MAX_CONCURRENCY", DEFAULT_MAX_CONCURRENCY, int
        ),
    )

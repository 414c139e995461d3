"""
Push Provider Credential Exchange

Turns a service-account signing key into a short-lived OAuth2 bearer token:
1. Build the JWT assertion claims from the signing identity
2. Sign them with the RSA private key via PyJWT (pure, no I/O)
3. POST the assertion to the token endpoint with the jwt-bearer grant

https://developers.google.com/identity/protocols/oauth2/service-account#httprest
"""

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional, Tuple

import httpx
import jwt
from cryptography.exceptions import UnsupportedAlgorithm

from .errors import CredentialError, CredentialFailure
from .models import BearerToken, SigningIdentity

logger = logging.getLogger(__name__)

JWT_BEARER_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:jwt-bearer"
ASSERTION_ALGORITHM = "RS256"
ASSERTION_LIFETIME_SECONDS = 3600
DEFAULT_TOKEN_LIFETIME_SECONDS = 3600
TOKEN_SAFETY_MARGIN_SECONDS = 60

ASSERTION_HEADERS = {"typ": "JWT"}


def assertion_claims(identity: SigningIdentity, issued_at: int) -> Dict[str, object]:
    """Claims body for the token request."""
    return {
        "iss": identity.issuer,
        "scope": identity.scope,
        "aud": identity.audience,
        "iat": issued_at,
        "exp": issued_at + ASSERTION_LIFETIME_SECONDS,
    }


def sign_assertion(claims: Dict[str, object], private_key_pem: str) -> str:
    """
    Encode and sign ``claims`` as a compact RS256 JWT.

    Args:
        claims: Assertion claims, see ``assertion_claims``
        private_key_pem: PEM-encoded RSA private key (PKCS#8 or PKCS#1)

    Returns:
        Compact JWS ``header.claims.signature``

    Raises:
        CredentialError: SIGNING_FAILED if the key is unusable
    """
    try:
        token = jwt.encode(
            payload=claims,
            key=private_key_pem,
            algorithm=ASSERTION_ALGORITHM,
            headers=ASSERTION_HEADERS,
        )
    except (jwt.PyJWTError, ValueError, TypeError, UnsupportedAlgorithm) as e:
        logger.error(f"[PUSH] Assertion signing failed: {type(e).__name__}")
        raise CredentialError(
            CredentialFailure.SIGNING_FAILED, f"Unable to sign assertion: {e}"
        ) from e
    if isinstance(token, bytes):
        token = token.decode("ascii")
    return token


def build_signed_assertion(identity: SigningIdentity, issued_at: int) -> str:
    return sign_assertion(assertion_claims(identity, issued_at), identity.private_key)


class TokenCache:
    """Bearer tokens keyed by signing identity.

    Never hands out a token that expires within the safety margin.
    """

    def __init__(self, margin_seconds: int = TOKEN_SAFETY_MARGIN_SECONDS):
        self.margin_seconds = margin_seconds
        self._tokens: Dict[Tuple[str, str, str], BearerToken] = {}

    def get(self, identity: SigningIdentity, now: Optional[datetime] = None) -> Optional[BearerToken]:
        token = self._tokens.get(identity.cache_key)
        if token is None:
            return None
        if not token.is_usable(now, self.margin_seconds):
            del self._tokens[identity.cache_key]
            return None
        return token

    def put(self, identity: SigningIdentity, token: BearerToken) -> None:
        self._tokens[identity.cache_key] = token

    def clear(self) -> None:
        self._tokens.clear()


class CredentialExchanger:
    """Exchanges signed assertions for bearer tokens. No retries."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
        cache: Optional[TokenCache] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize credential exchanger.

        Args:
            client: Optional shared HTTP client (default: one client per exchange)
            timeout: Token endpoint timeout in seconds
            cache: Optional token cache; without it every call mints a new token
            clock: Epoch-seconds source, injectable for tests
        """
        self.client = client
        self.timeout = timeout
        self.cache = cache
        self.clock = clock

    async def exchange(self, identity: SigningIdentity) -> BearerToken:
        """
        Obtain a bearer token for ``identity``.

        Raises:
            CredentialError: SIGNING_FAILED, EXCHANGE_REJECTED or MALFORMED_RESPONSE
        """
        issued_at = int(self.clock())
        now = datetime.fromtimestamp(issued_at, tz=timezone.utc)

        if self.cache is not None:
            cached = self.cache.get(identity, now)
            if cached is not None:
                return cached

        assertion = build_signed_assertion(identity, issued_at)
        response = await self._post_assertion(identity.audience, assertion)

        if not response.is_success:
            logger.error(
                f"[PUSH] Token exchange rejected: {response.status_code} {response.text[:200]}"
            )
            raise CredentialError(
                CredentialFailure.EXCHANGE_REJECTED,
                f"Token endpoint returned {response.status_code}",
            )

        token = self._parse_token(response, now)
        if self.cache is not None:
            self.cache.put(identity, token)
        logger.info(f"[PUSH] Obtained access token for {identity.issuer}")
        return token

    async def _post_assertion(self, token_url: str, assertion: str) -> httpx.Response:
        form = {"grant_type": JWT_BEARER_GRANT_TYPE, "assertion": assertion}
        try:
            if self.client is not None:
                return await self.client.post(token_url, data=form)
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await client.post(token_url, data=form)
        except httpx.HTTPError as e:
            logger.error(f"[PUSH] Token endpoint unreachable: {e}")
            raise CredentialError(
                CredentialFailure.EXCHANGE_REJECTED, f"Token endpoint unreachable: {e}"
            ) from e

    @staticmethod
    def _parse_token(response: httpx.Response, now: datetime) -> BearerToken:
        try:
            payload = response.json()
        except ValueError as e:
            raise CredentialError(
                CredentialFailure.MALFORMED_RESPONSE, "Token response is not JSON"
            ) from e

        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not access_token:
            raise CredentialError(
                CredentialFailure.MALFORMED_RESPONSE, "Token response has no access_token"
            )

        try:
            expires_in = int(payload.get("expires_in", DEFAULT_TOKEN_LIFETIME_SECONDS))
        except (TypeError, ValueError):
            expires_in = DEFAULT_TOKEN_LIFETIME_SECONDS

        return BearerToken(token=access_token, expires_at=now + timedelta(seconds=expires_in))

"""
OAuth2 JWT-bearer token provider for Google service accounts.

Signs an RS256 assertion with python-jose and exchanges it at the token
endpoint for a short-lived access token scoped to the Firestore API.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

import httpx
from jose import jwt
from jose.exceptions import JOSEError

from app.core.config import settings
from app.firestore.credentials import ServiceAccountCredentials
from app.firestore.exceptions import AuthenticationError, ConfigurationError
from app.utils.retry_decorator import retry_external_api

logger = logging.getLogger(__name__)

JWT_BEARER_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:jwt-bearer"
MAX_TOKEN_LIFETIME_SECONDS = 3600


@dataclass
class AccessToken:
    token: str
    expires_at: float  # unix seconds

    def is_fresh(self, threshold_seconds: int = 0) -> bool:
        return time.time() < self.expires_at - threshold_seconds


class ServiceAccountTokenProvider:
    def __init__(
        self,
        credentials: ServiceAccountCredentials,
        scope: Optional[str] = None,
        token_url: Optional[str] = None,
        lifetime_seconds: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.credentials = credentials
        self.SCOPE = scope or settings.FIRESTORE_SCOPE
        self.TOKEN_URL = token_url or credentials.token_uri or settings.GOOGLE_TOKEN_URL
        self.LIFETIME_SECONDS = (
            lifetime_seconds
            if lifetime_seconds is not None
            else settings.SERVICE_ACCOUNT_TOKEN_LIFETIME_SECONDS
        )
        if not 0 < self.LIFETIME_SECONDS <= MAX_TOKEN_LIFETIME_SECONDS:
            raise ConfigurationError(
                f"Token lifetime must be between 1 and {MAX_TOKEN_LIFETIME_SECONDS} seconds"
            )
        self._transport = transport
        self._token: Optional[AccessToken] = None

    def build_assertion(self, now: Optional[int] = None) -> str:
        """Build and sign the RS256 assertion sent to the token endpoint."""
        issued_at = int(now if now is not None else time.time())
        claims = {
            "iss": self.credentials.client_email,
            "sub": self.credentials.client_email,
            "aud": self.TOKEN_URL,
            "iat": issued_at,
            "exp": issued_at + self.LIFETIME_SECONDS,
            "scope": self.SCOPE,
        }
        headers = None
        if self.credentials.private_key_id:
            headers = {"kid": self.credentials.private_key_id}

        try:
            return jwt.encode(
                claims,
                self.credentials.private_key,
                algorithm="RS256",
                headers=headers,
            )
        except (JOSEError, ValueError, TypeError) as e:
            raise AuthenticationError(f"Failed to sign service account assertion: {e}")

    async def fetch_token(self) -> AccessToken:
        """
        Exchange a freshly signed assertion for an access token.

        Raises:
            AuthenticationError: rejected exchange, unreadable response or
                a response without access_token
        """
        assertion = self.build_assertion()
        data = {"grant_type": JWT_BEARER_GRANT_TYPE, "assertion": assertion}

        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=settings.HTTP_REQUEST_TIMEOUT_SECONDS,
            ) as client:
                async for attempt in retry_external_api("GoogleOAuth"):
                    with attempt:
                        response = await client.post(self.TOKEN_URL, data=data)
                        if response.status_code != 200:
                            logger.error(
                                f"Token exchange failed with status {response.status_code}: "
                                f"{response.text}"
                            )
                        response.raise_for_status()
                        payload = response.json()
        except httpx.HTTPStatusError as e:
            raise AuthenticationError(
                f"Token exchange rejected: {_error_description(e.response)}",
                status_code=e.response.status_code,
            )
        except httpx.HTTPError as e:
            raise AuthenticationError(f"Token endpoint unreachable: {e}")
        except ValueError:
            raise AuthenticationError("Token endpoint returned a non-JSON response")

        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not access_token:
            logger.error(f"Token exchange returned no access_token: {payload}")
            raise AuthenticationError("Failed to get access token")

        expires_in = payload.get("expires_in") or self.LIFETIME_SECONDS
        self._token = AccessToken(
            token=access_token, expires_at=time.time() + int(expires_in)
        )
        logger.info(
            f"Obtained access token for {self.credentials.client_email} "
            f"(expires in {int(expires_in)}s)"
        )
        return self._token

    async def get_token(self, force_refresh: bool = False) -> str:
        """Return a cached token unless it is about to expire."""
        threshold = settings.SERVICE_ACCOUNT_TOKEN_REFRESH_THRESHOLD_SECONDS
        if force_refresh or not self._token or not self._token.is_fresh(threshold):
            await self.fetch_token()
        return self._token.token


def _error_description(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, dict):
        description = body.get("error_description") or body.get("error")
        if description:
            return f"HTTP {response.status_code} ({description})"
    return f"HTTP {response.status_code}"

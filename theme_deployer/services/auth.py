"""Dataverse authentication.

Exchanges the app registration's client credentials for a bearer token
scoped to one Dataverse environment.
"""

import time
from functools import lru_cache
from dataclasses import dataclass
from typing import Protocol

import httpx

from theme_deployer.config import settings
from theme_deployer.core.exceptions import AuthenticationError
from theme_deployer.utils.logging import get_logger

logger = get_logger(__name__)

# Refresh tokens this many seconds before they actually expire
EXPIRY_MARGIN_SECONDS = 60


class TokenProvider(Protocol):
    """Anything that can hand out a bearer token for an environment."""

    async def get_token(self, environment_url: str) -> str:
        ...


@dataclass
class _CachedToken:
    access_token: str
    expires_at: float


class ClientCredentialTokenProvider:
    """OAuth2 client-credentials token provider for Dataverse."""

    def __init__(
        self,
        tenant_id: str | None = None,
        client_id: str | None = None,
        client_secret: str | None = None,
        authority_host: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ):
        self.tenant_id = tenant_id or settings.dataverse_tenant_id
        self.client_id = client_id or settings.dataverse_client_id
        self.client_secret = client_secret or settings.dataverse_client_secret
        self.authority_host = (
            authority_host or settings.dataverse_authority_host
        ).rstrip("/")
        self.timeout = timeout or settings.dataverse_timeout_seconds
        self._http_client = http_client
        self._cache: dict[str, _CachedToken] = {}

    @property
    def token_url(self) -> str:
        return f"{self.authority_host}/{self.tenant_id}/oauth2/v2.0/token"

    @staticmethod
    def scope_for(environment_url: str) -> str:
        return f"{environment_url.rstrip('/')}/.default"

    async def get_token(self, environment_url: str) -> str:
        """Get a bearer token for the environment, reusing a cached one if still valid.

        Raises:
            AuthenticationError: If credentials are missing or the token request fails
        """
        cached = self._cache.get(environment_url)
        if cached and cached.expires_at > time.monotonic():
            return cached.access_token

        if not (self.tenant_id and self.client_id and self.client_secret):
            raise AuthenticationError(environment_url, "Dataverse credentials are not configured")

        form = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "scope": self.scope_for(environment_url),
        }

        try:
            if self._http_client is not None:
                response = await self._http_client.post(self.token_url, data=form)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.token_url, data=form)
        except httpx.HTTPError as e:
            logger.error("auth.token_request_failed", environment_url=environment_url, error=str(e))
            raise AuthenticationError(environment_url, str(e)) from e

        if response.status_code >= 400:
            logger.error(
                "auth.token_rejected",
                environment_url=environment_url,
                status_code=response.status_code,
            )
            raise AuthenticationError(
                environment_url, f"token endpoint returned {response.status_code}"
            )

        try:
            payload = response.json()
            access_token = payload["access_token"]
            expires_in = int(payload.get("expires_in", 3600))
        except (ValueError, KeyError, TypeError) as e:
            raise AuthenticationError(environment_url, "malformed token response") from e

        self._cache[environment_url] = _CachedToken(
            access_token=access_token,
            expires_at=time.monotonic() + max(expires_in - EXPIRY_MARGIN_SECONDS, 0),
        )
        logger.debug("auth.token_acquired", environment_url=environment_url)
        return access_token


@lru_cache
def get_token_provider() -> ClientCredentialTokenProvider:
    """Get the token provider singleton, configured from settings."""
    return ClientCredentialTokenProvider()

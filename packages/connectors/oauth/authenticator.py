from __future__ import annotations

import logging
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from apps.loadtest.config import OAuthSettings

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3


class AuthenticationError(Exception):
    """Raised when access tokens cannot be acquired."""


class Authenticator:
    """Acquires access tokens from the OAuth authority.

    Use as an async context manager to share one connection pool across
    discovery and every token request; otherwise each request opens its own.
    """

    def __init__(
        self,
        settings: OAuthSettings,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10.0,
        verify: bool = True,
        wait: wait_base | None = None,
    ):
        self.settings = settings
        self.transport = transport
        self.timeout = timeout
        self.verify = verify
        self.wait = wait or wait_exponential(multiplier=0.5, min=0.5, max=5)
        self.token_endpoint = settings.token_endpoint
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> Authenticator:
        self._client = self._new_client()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def initialise(self) -> None:
        """Resolve the token endpoint from the authority's discovery document."""
        if self.token_endpoint:
            return

        url = self.settings.authority.rstrip("/") + "/.well-known/openid-configuration"
        metadata = await self._request("GET", url)
        endpoint = metadata.get("token_endpoint")
        if not endpoint:
            raise AuthenticationError(f"no token_endpoint in metadata from {url}")
        self.token_endpoint = endpoint
        logger.info("Using token endpoint %s", endpoint)

    async def get_access_token(self) -> str:
        if not self.token_endpoint:
            raise AuthenticationError("Authenticator.initialise() has not been called")

        body = await self._request("POST", self.token_endpoint, data=self._grant)
        access_token = body.get("access_token")
        if not access_token:
            raise AuthenticationError("token response did not contain an access_token")
        return access_token

    @property
    def _grant(self) -> dict[str, str]:
        settings = self.settings
        grant = {
            "grant_type": settings.grant_type,
            "client_id": settings.client_id,
            "scope": settings.scope,
        }
        if settings.client_secret:
            grant["client_secret"] = settings.client_secret
        if settings.grant_type == "password":
            grant["username"] = settings.username or ""
            grant["password"] = settings.password or ""
        return grant

    def _new_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport, timeout=self.timeout, verify=self.verify)

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        if self._client is not None:
            return await self._send(self._client, method, url, **kwargs)
        async with self._new_client() as client:
            return await self._send(client, method, url, **kwargs)

    async def _send(
        self, client: httpx.AsyncClient, method: str, url: str, **kwargs: Any
    ) -> dict[str, Any]:
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(httpx.TransportError),
                wait=self.wait,
                stop=stop_after_attempt(MAX_ATTEMPTS),
            ):
                with attempt:
                    response = await client.request(method, url, **kwargs)
        except RetryError as exc:
            raise AuthenticationError(f"{method} {url} failed: {exc.last_attempt.exception()}") from exc
        except httpx.HTTPError as exc:
            raise AuthenticationError(f"{method} {url} failed: {exc}") from exc

        if response.is_error:
            raise AuthenticationError(
                f"{method} {url} returned {response.status_code}: {response.text[:200]}"
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise AuthenticationError(f"{method} {url} did not return JSON") from exc
        if not isinstance(body, dict):
            raise AuthenticationError(f"{method} {url} returned an unexpected payload")
        return body

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from apps.loadtest.models import CallContext

logger = logging.getLogger(__name__)

API_CLIENT_NAME = "LoadTest"


@dataclass
class ApiClient:
    """Calls the target API; every outcome is recorded on the call context.

    Use as an async context manager so one connection pool serves the whole
    session.
    """

    base_url: str
    timeout: float = 10.0
    verify: bool = True
    max_connections: int = 5
    transport: httpx.AsyncBaseTransport | None = None
    _client: httpx.AsyncClient | None = field(default=None, init=False, repr=False)

    async def __aenter__(self) -> ApiClient:
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            verify=self.verify,
            limits=httpx.Limits(max_connections=self.max_connections),
            transport=self.transport,
        )
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def get_user_info(self, access_token: str, context: CallContext) -> CallContext:
        return await self._get("/userinfo", access_token, context)

    async def get_company_list(self, access_token: str, context: CallContext) -> CallContext:
        return await self._get("/companies", access_token, context)

    async def get_company_transactions(
        self, access_token: str, company_id: int, context: CallContext
    ) -> CallContext:
        return await self._get(f"/companies/{company_id}/transactions", access_token, context)

    async def _get(self, path: str, access_token: str, context: CallContext) -> CallContext:
        if self._client is None:
            raise RuntimeError("ApiClient must be entered before sending requests")

        try:
            response = await self._client.get(path, headers=self._headers(access_token, context))
        except httpx.HTTPError as exc:
            logger.debug("GET %s failed: %r", path, exc)
            return context.complete(None, f"{exc.__class__.__name__}: {exc}")

        if response.is_success:
            return context.complete(response.status_code)
        return context.complete(response.status_code, _error_detail(response))

    @staticmethod
    def _headers(access_token: str, context: CallContext) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {access_token}",
            "x-mycompany-api-client": API_CLIENT_NAME,
            "x-mycompany-session-id": context.session_id,
            "x-mycompany-correlation-id": context.correlation_id,
        }
        if context.cause500:
            headers["x-mycompany-test-exception"] = "SampleApi"
        return headers


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict) and ("code" in body or "message" in body):
        code = body.get("code", "error")
        message = body.get("message")
        return f"{code}: {message}" if message else str(code)

    text = response.text.strip()[:200]
    return text or response.reason_phrase or f"HTTP {response.status_code}"

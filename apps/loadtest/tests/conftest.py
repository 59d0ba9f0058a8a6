import asyncio
import io

import pytest
from rich.console import Console

from apps.loadtest import models
from apps.loadtest.reporter import Reporter

TOKENS = ("t0", "t1", "t2", "t3", "t4")


class FakeApiClient:
    """Mimics the sample API: bad tokens get 401, company 3 is forbidden."""

    def __init__(self, valid_tokens=TOKENS, forbidden_company=3):
        self.valid_tokens = set(valid_tokens)
        self.forbidden_company = forbidden_company
        self.calls = []

    async def get_user_info(self, access_token, context):
        return await self._respond("userinfo", access_token, context)

    async def get_company_list(self, access_token, context):
        return await self._respond("companies", access_token, context)

    async def get_company_transactions(self, access_token, company_id, context):
        return await self._respond("transactions", access_token, context, company_id)

    async def _respond(self, name, access_token, context, company_id=None):
        self.calls.append((name, access_token, company_id))
        await asyncio.sleep(0)
        if access_token not in self.valid_tokens:
            return context.complete(401, "unauthorized: Missing, invalid or expired access token")
        if context.cause500:
            return context.complete(500, "exception_simulation: An unexpected exception occurred")
        if company_id == self.forbidden_company:
            return context.complete(403, "forbidden: The user is not authorized to access company 3")
        return context.complete(200)


class FakeAuthenticator:
    def __init__(self, tokens=TOKENS, error=None):
        self.tokens = list(tokens)
        self.error = error
        self.initialised = False

    async def initialise(self):
        self.initialised = True

    async def get_access_token(self):
        if self.error:
            raise self.error
        return self.tokens.pop(0)


@pytest.fixture
def api_client():
    return FakeApiClient()


@pytest.fixture
def authenticator():
    return FakeAuthenticator()


@pytest.fixture
def console():
    return Console(file=io.StringIO(), width=400, color_system=None)


@pytest.fixture
def reporter(console):
    return Reporter(models.RunCounters(), console=console)

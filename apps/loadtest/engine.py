from __future__ import annotations

import asyncio
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Iterator, Sequence

from . import models
from .config import ScenarioSettings
from .plan import RequestPlan
from .reporter import Reporter

logger = logging.getLogger(__name__)


def _batches(
    requests: Sequence[models.RequestDescriptor], size: int
) -> Iterator[Sequence[models.RequestDescriptor]]:
    for start in range(0, len(requests), size):
        yield requests[start : start + size]


class BatchExecutor:
    """Runs request descriptors in fixed size concurrent batches.

    A batch only starts once every request in the previous batch has resolved,
    which caps outstanding connections to the target host at ``batch_size``.
    Results come back in descriptor order; the observer sees each context as
    soon as it completes.
    """

    def __init__(self, batch_size: int = 5, observer: models.Observer | None = None):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.batch_size = batch_size
        self.observer = observer

    async def run(self, requests: Sequence[models.RequestDescriptor]) -> list[models.CallContext]:
        results: list[models.CallContext] = []
        for batch in _batches(requests, self.batch_size):
            results.extend(await asyncio.gather(*(self._execute(r) for r in batch)))
        return results

    async def _execute(self, request: models.RequestDescriptor) -> models.CallContext:
        request.context.start()
        try:
            context = await request()
        except Exception as exc:
            logger.warning(
                "%s request %s raised %s",
                request.operation.value,
                request.context.correlation_id,
                exc.__class__.__name__,
                exc_info=True,
            )
            context = request.context
            if not context.completed:
                context.complete(None, f"{exc.__class__.__name__}: {exc}")

        if self.observer:
            self.observer(context)
        return context


class LoadTest:
    """One scripted load test session: token acquisition, warm-up, then the main run."""

    def __init__(
        self,
        authenticator: models.Authenticator,
        api_client: models.ApiClient,
        scenario: ScenarioSettings | None = None,
        reporter: Reporter | None = None,
        session_id: str | None = None,
    ):
        self.authenticator = authenticator
        self.api_client = api_client
        self.scenario = scenario or ScenarioSettings()
        self.session_id = session_id or str(uuid.uuid4())
        self.reporter = reporter or Reporter()
        self.counters = self.reporter.counters

    async def execute(self) -> list[models.CallContext]:
        self.reporter.start(self.session_id, datetime.now(timezone.utc))
        access_tokens = await self._get_access_tokens()

        start = time.perf_counter()
        self.reporter.header()

        plan = RequestPlan(self.session_id, self.api_client, self.scenario, self.counters)
        executor = BatchExecutor(self.scenario.batch_size, observer=self.reporter)

        # Warm-up must finish before the main phase builds its contexts
        results = await executor.run(plan.warmup(access_tokens))
        results.extend(await executor.run(plan.main_phase(access_tokens)))

        elapsed_ms = int((time.perf_counter() - start) * 1000)
        self.reporter.finish(self.session_id, elapsed_ms)
        return results

    async def _get_access_tokens(self) -> tuple[str, ...]:
        await self.authenticator.initialise()
        tokens = []
        for _ in range(self.scenario.token_count):
            tokens.append(await self.authenticator.get_access_token())
        logger.info("Acquired %d access tokens for session %s", len(tokens), self.session_id)
        return tuple(tokens)

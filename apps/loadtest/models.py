from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Protocol


class Operation(str, Enum):
    user_info = "getUserInfo"
    company_list = "getCompanies"
    transactions = "getTransactions"


@dataclass
class CallContext:
    """State for a single API call, from dispatch until it is reported."""

    session_id: str
    operation_name: str
    correlation_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    cause500: bool = False
    duration_ms: int | None = None
    status_code: int | None = None
    error: str | None = None
    _started: float = field(default_factory=time.perf_counter, init=False, repr=False, compare=False)
    _completed: bool = field(default=False, init=False, repr=False, compare=False)

    @property
    def completed(self) -> bool:
        return self._completed

    @property
    def failed(self) -> bool:
        return self.error is not None

    def start(self) -> CallContext:
        """Restart the latency timer when the request is actually dispatched."""
        if self._completed:
            raise RuntimeError(f"call {self.correlation_id} has already completed")
        self._started = time.perf_counter()
        return self

    def complete(self, status_code: int | None, error: str | None = None) -> CallContext:
        if self._completed:
            raise RuntimeError(f"call {self.correlation_id} has already completed")
        self.duration_ms = int((time.perf_counter() - self._started) * 1000)
        self.status_code = status_code
        self.error = error
        self._completed = True
        return self


@dataclass
class RequestDescriptor:
    """A deferred API call; awaiting the descriptor performs the request."""

    operation: Operation
    access_token: str
    context: CallContext
    send: Callable[[], Awaitable[CallContext]] = field(repr=False)
    company_id: int | None = None

    def __call__(self) -> Awaitable[CallContext]:
        return self.send()


@dataclass
class RunCounters:
    total: int = 0
    errors: int = 0


class ApiClient(Protocol):
    async def get_user_info(self, access_token: str, context: CallContext) -> CallContext:
        ...

    async def get_company_list(self, access_token: str, context: CallContext) -> CallContext:
        ...

    async def get_company_transactions(
        self, access_token: str, company_id: int, context: CallContext
    ) -> CallContext:
        ...


class Authenticator(Protocol):
    async def initialise(self) -> None:
        ...

    async def get_access_token(self) -> str:
        ...


Observer = Callable[[CallContext], None]

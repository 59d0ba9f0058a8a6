from __future__ import annotations

from datetime import datetime
from typing import Any

from rich.console import Console

from . import models

HEADER = (
    "OPERATION...\tSTART TIME ...............\tCORRELATION ID ...................\tSTATUS\tMS\tERROR"
)


class Reporter:
    """Console output for a load test session.

    Called as the executor's observer, so each line is printed the moment its
    request completes. Failed contexts also bump ``counters.errors``.
    """

    def __init__(self, counters: models.RunCounters | None = None, console: Console | None = None):
        self.counters = counters or models.RunCounters()
        self.console = console or Console(highlight=False)

    def start(self, session_id: str, started_at: datetime) -> None:
        self._print(
            f"Load test session {session_id} starting at {started_at.isoformat()}\n", "blue"
        )

    def header(self) -> None:
        self._print(f"\n{HEADER}", "yellow")

    def __call__(self, context: models.CallContext) -> None:
        failed = getattr(context, "error", None) is not None
        if failed:
            self.counters.errors += 1
        self._print(self.format_line(context), "red" if failed else "green")

    def finish(self, session_id: str, elapsed_ms: int) -> None:
        self._print(
            f"\nLoad test session {session_id} completed in {elapsed_ms} milliseconds: "
            f"({self.counters.errors} errors from {self.counters.total} requests)",
            "blue",
        )

    @staticmethod
    def format_line(context: Any) -> str:
        try:
            start_time = context.start_time.isoformat(timespec="milliseconds")
            status = "---" if context.status_code is None else str(context.status_code)
            duration = "---" if context.duration_ms is None else str(context.duration_ms)
            return "\t".join(
                [
                    f"{context.operation_name:<15}",
                    start_time,
                    str(context.correlation_id),
                    status,
                    duration,
                    context.error or "",
                ]
            )
        except (AttributeError, TypeError, ValueError):
            fields = getattr(context, "__dict__", None)
            if fields is None:
                return repr(context)
            return "\t".join(f"{key}={value!r}" for key, value in fields.items() if not key.startswith("_"))

    def _print(self, text: str, style: str) -> None:
        self.console.print(text, style=style, markup=False, highlight=False, soft_wrap=True)

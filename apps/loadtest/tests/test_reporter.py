from datetime import datetime, timezone

import pytest

from apps.loadtest import models
from apps.loadtest.reporter import Reporter


def completed_context(**kwargs):
    context = models.CallContext(
        session_id="s",
        operation_name="getTransactions",
        correlation_id="corr-1",
        start_time=datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc),
    )
    return context.complete(**kwargs)


def test_format_line_includes_outcome():
    context = completed_context(status_code=403, error="forbidden: company 3")

    fields = Reporter.format_line(context).split("\t")

    assert fields[0].strip() == "getTransactions"
    assert fields[1] == "2024-05-01T12:30:00.000+00:00"
    assert fields[2] == "corr-1"
    assert fields[3] == "403"
    assert int(fields[4]) >= 0
    assert fields[5] == "forbidden: company 3"


def test_network_failure_has_no_status():
    line = Reporter.format_line(completed_context(status_code=None, error="ConnectError: refused"))

    assert line.split("\t")[3] == "---"


def test_reporting_twice_prints_the_same_line(reporter, console):
    context = completed_context(status_code=200)

    reporter(context)
    reporter(context)

    first, second = console.file.getvalue().splitlines()
    assert first == second
    assert reporter.counters.errors == 0


def test_errors_are_counted(reporter):
    reporter(completed_context(status_code=500, error="server_error"))
    reporter(completed_context(status_code=200))

    assert reporter.counters.errors == 1


def test_malformed_context_falls_back_to_raw_fields():
    class Partial:
        def __init__(self):
            self.operation_name = "getUserInfo"
            self.error = "boom"

    assert Reporter.format_line(Partial()) == "operation_name='getUserInfo'\terror='boom'"
    assert Reporter.format_line(42) == "42"


def test_reporter_survives_malformed_context(reporter, console):
    reporter(object())

    assert console.file.getvalue().startswith("<object object at")


def test_summary_always_prints(reporter, console):
    reporter.counters.total = 4
    reporter.counters.errors = 4

    reporter.finish("s-9", 1234)

    assert console.file.getvalue().strip() == (
        "Load test session s-9 completed in 1234 milliseconds: (4 errors from 4 requests)"
    )


def test_completing_twice_is_rejected():
    context = completed_context(status_code=200)

    with pytest.raises(RuntimeError):
        context.complete(500, "late")
    assert (context.status_code, context.error) == (200, None)


def test_dispatch_restarts_the_latency_timer():
    context = models.CallContext(session_id="s", operation_name="getUserInfo")
    context._started -= 5.0

    context.start()
    context.complete(200)

    assert context.duration_ms < 1000


def test_completed_context_cannot_be_restarted():
    context = completed_context(status_code=200)

    with pytest.raises(RuntimeError):
        context.start()

from __future__ import annotations

import asyncio

import httpx
import pytest

from loadtest.config import ConfigError, LoadTestConfig
from loadtest.loadgen import runner
from loadtest.loadgen.client import failure_outcome
from loadtest.loadgen.runner import OutcomeStream, dispatch, run_load_test
from loadtest.metrics import Outcome, ProgressEvent

URL = "http://service.test/health"


@pytest.mark.asyncio
async def test_uniform_successes() -> None:
    async def executor(config: LoadTestConfig, slot: int) -> Outcome:
        return Outcome(status_code=200, latency_ms=10.0)

    report = await run_load_test(LoadTestConfig(url=URL, requests=10, concurrency=2), executor)

    assert report.total_requests == 10
    assert report.status_codes == {200: 10}
    assert report.errors == 0
    assert report.min_ms == report.max_ms == report.avg_ms == 10.0
    assert report.std_dev_ms == 0.0
    assert all(value == 10.0 for value in report.percentiles().values())
    assert report.rps > 0


@pytest.mark.asyncio
async def test_interleaved_refused_connections() -> None:
    async def executor(config: LoadTestConfig, slot: int) -> Outcome:
        if slot % 2 == 1:
            raise httpx.ConnectError("[Errno 111] Connection refused")
        return Outcome(status_code=200, latency_ms=5.0)

    report = await run_load_test(LoadTestConfig(url=URL, requests=5, concurrency=1), executor)

    assert report.status_codes == {200: 3, 503: 2}
    assert report.synthetic_codes == {503: 2}
    assert report.errors == 2
    assert report.latencies_ms == (5.0, 5.0, 5.0)
    assert list(report.error_details) == ["[Errno 111] Connection refused"]
    detail = report.error_details["[Errno 111] Connection refused"]
    assert detail.count == 2
    assert detail.code == 503


@pytest.mark.asyncio
@pytest.mark.parametrize("latency_ms", [0.0, 250.0])
async def test_single_timeout(latency_ms: float) -> None:
    async def executor(config: LoadTestConfig, slot: int) -> Outcome:
        return failure_outcome(httpx.ReadTimeout("timed out"), latency_ms)

    report = await run_load_test(LoadTestConfig(url=URL, requests=1, concurrency=1), executor)

    assert report.status_codes == {408: 1}
    assert report.errors == 1
    assert report.error_details["timed out"].code == 408
    assert len(report.latencies_ms) == (1 if latency_ms else 0)
    assert report.percentile(50) == (latency_ms or None)


@pytest.mark.asyncio
async def test_raised_timeout_is_recorded_without_latency() -> None:
    async def executor(config: LoadTestConfig, slot: int) -> Outcome:
        raise httpx.ConnectTimeout("timed out")

    report = await run_load_test(LoadTestConfig(url=URL, requests=1, concurrency=1), executor)

    assert report.status_codes == {408: 1}
    assert report.latencies_ms == ()
    assert report.avg_ms is None
    assert report.std_dev_ms is None


@pytest.mark.asyncio
@pytest.mark.parametrize("concurrency", [1, 3, 8])
async def test_concurrency_bound_is_respected(concurrency: int) -> None:
    in_flight = 0
    peak = 0

    async def executor(config: LoadTestConfig, slot: int) -> Outcome:
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.005)
        in_flight -= 1
        return Outcome(status_code=200, latency_ms=5.0)

    report = await run_load_test(LoadTestConfig(url=URL, requests=24, concurrency=concurrency), executor)

    assert report.total_requests == 24
    assert peak == concurrency


@pytest.mark.asyncio
async def test_every_attempt_runs_exactly_once() -> None:
    seen: list[int] = []

    async def executor(config: LoadTestConfig, slot: int) -> Outcome:
        seen.append(slot)
        await asyncio.sleep(0)
        return Outcome(status_code=204, latency_ms=1.0)

    results: asyncio.Queue[object] = asyncio.Queue()
    await dispatch(LoadTestConfig(url=URL, requests=50, concurrency=7), executor, results)

    delivered = [outcome async for outcome in OutcomeStream(results)]
    assert sorted(seen) == list(range(50))
    assert len(delivered) == 50
    assert results.empty()


@pytest.mark.asyncio
async def test_progress_events_are_monotonic() -> None:
    events: list[ProgressEvent] = []

    async def executor(config: LoadTestConfig, slot: int) -> Outcome:
        await asyncio.sleep(0.001)
        return Outcome(status_code=200, latency_ms=1.0)

    async def on_progress(event: ProgressEvent) -> None:
        events.append(event)

    await run_load_test(LoadTestConfig(url=URL, requests=12, concurrency=4), executor, on_progress)

    completed = [event.completed for event in events]
    assert completed == list(range(1, 13))
    assert events[-1].percent == 100.0
    assert all(event.total == 12 for event in events)


@pytest.mark.asyncio
async def test_failing_progress_callback_does_not_break_run() -> None:
    async def executor(config: LoadTestConfig, slot: int) -> Outcome:
        return Outcome(status_code=200, latency_ms=1.0)

    async def on_progress(event: ProgressEvent) -> None:
        raise RuntimeError("terminal went away")

    report = await run_load_test(LoadTestConfig(url=URL, requests=3, concurrency=1), executor, on_progress)
    assert report.total_requests == 3


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "config",
    [
        LoadTestConfig(url=URL, requests=0),
        LoadTestConfig(url=URL, requests=5, concurrency=0),
        LoadTestConfig(url=URL, requests=5, concurrency=-2),
        LoadTestConfig(url="", requests=5),
    ],
)
async def test_invalid_config_prevents_dispatch(config: LoadTestConfig) -> None:
    calls = 0

    async def executor(config: LoadTestConfig, slot: int) -> Outcome:
        nonlocal calls
        calls += 1
        return Outcome(status_code=200, latency_ms=1.0)

    with pytest.raises(ConfigError):
        await run_load_test(config, executor)
    assert calls == 0


@pytest.mark.asyncio
async def test_end_to_end_through_http_client(monkeypatch: pytest.MonkeyPatch) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/down":
            raise httpx.ConnectError("[Errno 111] Connection refused", request=request)
        return httpx.Response(200)

    real_build_client = runner.build_client
    monkeypatch.setattr(
        runner,
        "build_client",
        lambda config: real_build_client(config, transport=httpx.MockTransport(handler)),
    )

    ok = await run_load_test(LoadTestConfig(url="http://service.test/up", requests=6, concurrency=3))
    down = await run_load_test(LoadTestConfig(url="http://service.test/down", requests=2, concurrency=2))

    assert ok.status_codes == {200: 6}
    assert ok.synthetic_codes == {}
    assert down.status_codes == {503: 2}
    assert down.synthetic_codes == {503: 2}
    assert {d.code for d in down.error_details.values()} == {503}

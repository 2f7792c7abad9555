from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

import httpx

from loadtest.config import LoadTestConfig
from loadtest.loadgen.client import build_client, failure_outcome, send_request
from loadtest.metrics import Outcome, ProgressEvent, Report, consume

logger = logging.getLogger(__name__)

Executor = Callable[[LoadTestConfig, int], Awaitable[Outcome]]
ProgressCallback = Callable[[ProgressEvent], Awaitable[None]]

_CLOSED = object()


class OutcomeStream:
    """Async iterator over the results queue; ends at the close marker."""

    def __init__(self, queue: asyncio.Queue[object]) -> None:
        self._queue = queue

    def __aiter__(self) -> OutcomeStream:
        return self

    async def __anext__(self) -> Outcome:
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item  # type: ignore[return-value]


def http_executor(client: httpx.AsyncClient) -> Executor:
    async def execute(config: LoadTestConfig, slot: int) -> Outcome:
        return await send_request(client, config)

    return execute


async def run_load_test(
    config: LoadTestConfig,
    executor: Executor | None = None,
    on_progress: ProgressCallback | None = None,
) -> Report:
    config.validate()
    if executor is not None:
        return await _execute_load(config, executor, on_progress)
    async with build_client(config) as client:
        return await _execute_load(config, http_executor(client), on_progress)


async def _execute_load(
    config: LoadTestConfig,
    executor: Executor,
    on_progress: ProgressCallback | None,
) -> Report:
    logger.info(
        f"Starting {config.requests} {config.method} requests to {config.url} "
        f"(concurrency={config.concurrency}, timeout={config.timeout_sec}s)"
    )
    results: asyncio.Queue[object] = asyncio.Queue()
    progress: asyncio.Queue[object] | None = None
    observer: asyncio.Task[None] | None = None
    if on_progress is not None:
        progress = asyncio.Queue()
        observer = asyncio.create_task(observe_progress(progress, on_progress))

    started_mono = time.perf_counter()
    dispatcher = asyncio.create_task(dispatch(config, executor, results, progress, started_mono))
    report = await consume(OutcomeStream(results), started_mono)
    await dispatcher
    if observer is not None:
        await observer
    logger.info(f"Finished {report.total_requests} requests in {report.total_time_sec:.2f}s")
    return report


async def dispatch(
    config: LoadTestConfig,
    executor: Executor,
    results: asyncio.Queue[object],
    progress: asyncio.Queue[object] | None = None,
    started_mono: float | None = None,
) -> None:
    """Run exactly ``config.requests`` attempts, at most ``config.concurrency`` at a time.

    Each outcome is put on ``results`` once; the close marker follows only
    after every attempt has delivered. A ProgressEvent is put on ``progress``
    after each delivery.
    """
    config.validate()
    if started_mono is None:
        started_mono = time.perf_counter()
    admission = asyncio.Semaphore(config.concurrency)
    completed = 0

    async def attempt(slot: int) -> None:
        nonlocal completed
        async with admission:
            outcome = await _call_executor(executor, config, slot)
        await results.put(outcome)
        completed += 1
        if progress is not None:
            progress.put_nowait(ProgressEvent(completed, config.requests, time.perf_counter() - started_mono))

    tasks = [asyncio.create_task(attempt(slot)) for slot in range(config.requests)]
    try:
        await asyncio.gather(*tasks)
    finally:
        await results.put(_CLOSED)
        if progress is not None:
            progress.put_nowait(_CLOSED)


async def _call_executor(executor: Executor, config: LoadTestConfig, slot: int) -> Outcome:
    try:
        return await executor(config, slot)
    except Exception as exc:
        # No timing is known for a failure raised out of the executor, so it
        # is recorded without a latency sample.
        logger.debug(f"Executor raised for attempt {slot}: {exc!r}")
        return failure_outcome(exc, 0.0)


async def observe_progress(progress: asyncio.Queue[object], callback: ProgressCallback) -> None:
    while True:
        event = await progress.get()
        if event is _CLOSED:
            return
        try:
            await callback(event)  # type: ignore[arg-type]
        except Exception:
            logger.warning("Progress callback failed", exc_info=True)

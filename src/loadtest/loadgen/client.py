from __future__ import annotations

import asyncio
import logging
import re
import time

import httpx

from loadtest.config import LoadTestConfig
from loadtest.loadgen.classifier import classify, failure_message
from loadtest.metrics import Failure, Outcome, OutcomeKind

logger = logging.getLogger(__name__)

# RFC 9110 token characters
_METHOD_TOKEN = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")

# Errors raised while building a request, before any I/O happens.
_CONSTRUCTION_ERRORS = (httpx.InvalidURL, ValueError, TypeError)


def build_client(config: LoadTestConfig, transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    limits = httpx.Limits(
        max_connections=max(100, config.concurrency),
        max_keepalive_connections=max(100, config.concurrency),
        keepalive_expiry=90.0,
    )
    return httpx.AsyncClient(
        timeout=config.timeout_sec,
        limits=limits,
        follow_redirects=config.follow_redirects,
        max_redirects=config.max_redirects,
        transport=transport,
        trust_env=False,
    )


def build_request(client: httpx.AsyncClient, config: LoadTestConfig) -> httpx.Request:
    if not _METHOD_TOKEN.match(config.method):
        msg = f"invalid method {config.method!r}"
        raise ValueError(msg)
    return client.build_request(
        config.method,
        config.url,
        headers=dict(config.headers),
        content=config.body.encode() if config.body else None,
        timeout=config.timeout_sec,
    )


def failure_outcome(
    failure: BaseException,
    latency_ms: float,
    kind: OutcomeKind = OutcomeKind.TRANSPORT_FAILURE,
) -> Outcome:
    classification = classify(failure)
    return Outcome(
        status_code=classification.code,
        latency_ms=latency_ms,
        kind=kind,
        failure=Failure(
            message=failure_message(failure),
            code=classification.code,
            kind=classification.kind,
        ),
    )


async def send_request(client: httpx.AsyncClient, config: LoadTestConfig) -> Outcome:
    """Perform one attempt. Failures come back as an Outcome, never as an exception."""
    try:
        request = build_request(client, config)
    except _CONSTRUCTION_ERRORS as exc:
        logger.debug(f"Could not build {config.method} {config.url}: {exc!r}")
        return failure_outcome(exc, 0.0, OutcomeKind.CONSTRUCTION_FAILURE)

    start_mono = time.perf_counter()
    try:
        # httpx applies its timeout per connect/read/write step; this caps the whole call
        response = await asyncio.wait_for(client.send(request, stream=True), config.timeout_sec)
    except asyncio.TimeoutError:
        latency_ms = (time.perf_counter() - start_mono) * 1000.0
        logger.debug(f"{config.method} {config.url} timed out after {latency_ms:.1f}ms")
        return failure_outcome(TimeoutError(f"request timed out after {config.timeout_sec}s"), latency_ms)
    except httpx.UnsupportedProtocol as exc:
        # rejected while picking a transport, nothing went on the wire
        logger.debug(f"Unsupported URL {config.url}: {exc!r}")
        return failure_outcome(exc, 0.0, OutcomeKind.CONSTRUCTION_FAILURE)
    except (httpx.HTTPError, OSError) as exc:
        latency_ms = (time.perf_counter() - start_mono) * 1000.0
        logger.debug(f"{config.method} {config.url} failed after {latency_ms:.1f}ms: {exc!r}")
        return failure_outcome(exc, latency_ms)
    latency_ms = (time.perf_counter() - start_mono) * 1000.0
    try:
        await response.aclose()
    except (httpx.HTTPError, OSError) as exc:
        logger.debug(f"Error closing response from {config.url}: {exc!r}")
    return Outcome(status_code=response.status_code, latency_ms=latency_ms)

from __future__ import annotations

import logging
import time
from collections import defaultdict
from typing import AsyncIterable

from loadtest.metrics import stats
from loadtest.metrics.models import ErrorDetail, Outcome, Report

logger = logging.getLogger(__name__)


class Aggregator:
    """Single-owner accumulator fed one Outcome at a time.

    Every update is commutative, so the arrival order of outcomes does not
    change the finalized Report.
    """

    def __init__(self) -> None:
        self.total_requests = 0
        self.errors = 0
        self.status_codes: dict[int, int] = defaultdict(int)
        self.synthetic_codes: dict[int, int] = defaultdict(int)
        self.error_details: dict[str, ErrorDetail] = {}
        self.latencies_ms: list[float] = []
        self._min_ms = float("inf")
        self._max_ms = 0.0

    def add(self, outcome: Outcome) -> None:
        self.total_requests += 1
        self.status_codes[outcome.status_code] += 1
        if outcome.is_synthetic:
            self.synthetic_codes[outcome.status_code] += 1

        if outcome.failure is not None:
            self.errors += 1
            message = outcome.failure.message
            detail = self.error_details.get(message)
            if detail is None:
                detail = ErrorDetail(count=0, message=message, code=outcome.status_code)
                self.error_details[message] = detail
            detail.count += 1

        if outcome.latency_ms > 0:
            self.latencies_ms.append(outcome.latency_ms)
            self._min_ms = min(self._min_ms, outcome.latency_ms)
            self._max_ms = max(self._max_ms, outcome.latency_ms)

    def finalize(self, total_time_sec: float) -> Report:
        has_latencies = bool(self.latencies_ms)
        rps = self.total_requests / total_time_sec if total_time_sec > 0 else 0.0
        avg_ms = stats.mean(self.latencies_ms)
        if avg_ms is not None:
            # float summation can drift a ulp outside the observed range
            avg_ms = min(max(avg_ms, self._min_ms), self._max_ms)
        report = Report(
            total_time_sec=total_time_sec,
            total_requests=self.total_requests,
            status_codes=dict(self.status_codes),
            errors=self.errors,
            latencies_ms=tuple(self.latencies_ms),
            min_ms=self._min_ms if has_latencies else None,
            max_ms=self._max_ms if has_latencies else None,
            avg_ms=avg_ms,
            rps=rps,
            std_dev_ms=stats.std_deviation(self.latencies_ms),
            error_details={
                message: ErrorDetail(count=d.count, message=d.message, code=d.code)
                for message, d in self.error_details.items()
            },
            synthetic_codes=dict(self.synthetic_codes),
        )
        if not has_latencies:
            logger.warning(f"No request reached the network ({report.errors} errors in {report.total_requests} requests)")
        logger.info(
            f"Report finalized: requests={report.total_requests}, errors={report.errors}, "
            f"rps={report.rps:.2f}, elapsed={report.total_time_sec:.3f}s"
        )
        return report


async def consume(stream: AsyncIterable[Outcome], started_mono: float) -> Report:
    """Drain ``stream`` to completion and build the Report.

    ``started_mono`` is the ``time.perf_counter()`` value taken when dispatch
    started; the run's elapsed time ends when the stream closes.
    """
    aggregator = Aggregator()
    async for outcome in stream:
        aggregator.add(outcome)
    return aggregator.finalize(time.perf_counter() - started_mono)

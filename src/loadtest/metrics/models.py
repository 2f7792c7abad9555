from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping

from loadtest.metrics import stats


class OutcomeKind(str, Enum):
    RESPONSE = "response"
    TRANSPORT_FAILURE = "transport_failure"
    CONSTRUCTION_FAILURE = "construction_failure"


class FailureKind(str, Enum):
    TIMEOUT = "timeout"
    TEMPORARY = "temporary"
    CONNECTION_REFUSED = "connection_refused"
    DNS = "dns"
    CERTIFICATE = "certificate"
    TRANSPORT = "transport"
    TOO_MANY_REDIRECTS = "too_many_redirects"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class Failure:
    message: str
    code: int
    kind: FailureKind


@dataclass(frozen=True, slots=True)
class Outcome:
    status_code: int
    latency_ms: float
    kind: OutcomeKind = OutcomeKind.RESPONSE
    failure: Failure | None = None

    @property
    def is_failure(self) -> bool:
        return self.failure is not None

    @property
    def reached_network(self) -> bool:
        return self.latency_ms > 0

    @property
    def is_synthetic(self) -> bool:
        """True when ``status_code`` was produced by the classifier, not by the server."""
        return self.kind is not OutcomeKind.RESPONSE


@dataclass(slots=True)
class ErrorDetail:
    count: int
    message: str
    code: int


@dataclass(frozen=True, slots=True)
class ProgressEvent:
    completed: int
    total: int
    elapsed_sec: float

    @property
    def percent(self) -> float:
        if self.total <= 0:
            return 0.0
        return self.completed / self.total * 100.0

    @property
    def rate(self) -> float:
        if self.elapsed_sec <= 0:
            return 0.0
        return self.completed / self.elapsed_sec


@dataclass(frozen=True, slots=True)
class Report:
    """Aggregated result of one run.

    ``min_ms``, ``max_ms``, ``avg_ms`` and ``std_dev_ms`` are ``None`` when no
    attempt reached the network. ``synthetic_codes`` counts the codes that the
    error classifier produced, so a server 500 and a synthesized 500 can be
    told apart even though both land in ``status_codes``.
    """

    total_time_sec: float
    total_requests: int
    status_codes: Mapping[int, int]
    errors: int
    latencies_ms: tuple[float, ...]
    min_ms: float | None
    max_ms: float | None
    avg_ms: float | None
    rps: float
    std_dev_ms: float | None
    error_details: Mapping[str, ErrorDetail]
    synthetic_codes: Mapping[int, int] = field(default_factory=dict)

    @property
    def reached_network(self) -> int:
        return len(self.latencies_ms)

    def success_count(self) -> int:
        # 310 is synthetic, so only real responses count toward 2xx/3xx successes.
        return sum(
            count - self.synthetic_codes.get(code, 0)
            for code, count in self.status_codes.items()
            if 200 <= code < 400
        )

    def percentile(self, p: float) -> float | None:
        return stats.percentile(self.latencies_ms, p)

    def percentiles(self, ps: Iterable[float] = stats.DEFAULT_PERCENTILES) -> dict[float, float | None]:
        return stats.percentiles(self.latencies_ms, ps)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_time_sec": self.total_time_sec,
            "total_requests": self.total_requests,
            "rps": self.rps,
            "successes": self.success_count(),
            "errors": self.errors,
            "reached_network": self.reached_network,
            "min_ms": self.min_ms,
            "max_ms": self.max_ms,
            "avg_ms": self.avg_ms,
            "std_dev_ms": self.std_dev_ms,
            "percentiles_ms": {f"p{p:g}": value for p, value in self.percentiles().items()},
            "status_codes": {str(code): count for code, count in sorted(self.status_codes.items())},
            "synthetic_codes": {str(code): count for code, count in sorted(self.synthetic_codes.items())},
            "error_details": [
                {"message": detail.message, "code": detail.code, "count": detail.count}
                for detail in self.error_details.values()
            ],
            "latencies_ms": list(self.latencies_ms),
        }

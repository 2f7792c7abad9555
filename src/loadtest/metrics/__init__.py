from __future__ import annotations

from loadtest.metrics.aggregator import Aggregator, consume
from loadtest.metrics.models import (
    ErrorDetail,
    Failure,
    FailureKind,
    Outcome,
    OutcomeKind,
    ProgressEvent,
    Report,
)

__all__ = [
    "Aggregator",
    "ErrorDetail",
    "Failure",
    "FailureKind",
    "Outcome",
    "OutcomeKind",
    "ProgressEvent",
    "Report",
    "consume",
]

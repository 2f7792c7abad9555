from __future__ import annotations

from loadtest.loadgen.classifier import Classification, classify
from loadtest.loadgen.client import failure_outcome, send_request
from loadtest.loadgen.runner import Executor, OutcomeStream, dispatch, run_load_test

__all__ = [
    "Classification",
    "Executor",
    "OutcomeStream",
    "classify",
    "dispatch",
    "failure_outcome",
    "run_load_test",
    "send_request",
]

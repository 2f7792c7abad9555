from __future__ import annotations

import asyncio
import socket

import httpx
import pytest
from hypothesis import given, strategies as st

from loadtest.loadgen.classifier import CLASSIFIER_CODES, classify, failure_message
from loadtest.metrics import FailureKind


@pytest.mark.parametrize(
    ("failure", "code", "kind"),
    [
        (httpx.ConnectTimeout("timed out"), 408, FailureKind.TIMEOUT),
        (httpx.ReadTimeout(""), 408, FailureKind.TIMEOUT),
        (asyncio.TimeoutError(), 408, FailureKind.TIMEOUT),
        (TimeoutError("request timed out after 1.0s"), 408, FailureKind.TIMEOUT),
        (Exception("context deadline exceeded"), 408, FailureKind.TIMEOUT),
        (Exception("net/http: TLS handshake timeout"), 408, FailureKind.TIMEOUT),
        (httpx.ConnectError("[Errno -3] Temporary failure in name resolution"), 503, FailureKind.TEMPORARY),
        (httpx.ConnectError("[Errno 111] Connection refused"), 503, FailureKind.CONNECTION_REFUSED),
        (ConnectionRefusedError(111, "Connection refused"), 503, FailureKind.CONNECTION_REFUSED),
        (Exception("connect to timeout.example.com: connection refused"), 503, FailureKind.CONNECTION_REFUSED),
        (httpx.ConnectError("[Errno -2] Name or service not known"), 404, FailureKind.DNS),
        (socket.gaierror(-2, "Name or service not known"), 404, FailureKind.DNS),
        (
            httpx.ConnectError("[SSL: CERTIFICATE_VERIFY_FAILED] certificate verify failed: self-signed certificate"),
            495,
            FailureKind.CERTIFICATE,
        ),
        (httpx.ReadError("[Errno 104] Connection reset by peer"), 500, FailureKind.TRANSPORT),
        (httpx.RemoteProtocolError("Server disconnected without sending a response."), 500, FailureKind.TRANSPORT),
        (Exception("unexpected EOF"), 500, FailureKind.TRANSPORT),
        (httpx.TooManyRedirects("Exceeded maximum allowed redirects."), 310, FailureKind.TOO_MANY_REDIRECTS),
        (Exception("stopped after 10 redirects"), 310, FailureKind.TOO_MANY_REDIRECTS),
        (ValueError("something odd happened"), 500, FailureKind.UNKNOWN),
    ],
)
def test_classify_known_failures(failure: BaseException, code: int, kind: FailureKind) -> None:
    result = classify(failure)
    assert result.code == code
    assert result.kind is kind
    assert result.key == kind.value


def test_timeout_wins_over_later_rules() -> None:
    # mentions both a timeout and a refused connection
    result = classify(Exception("dial tcp 10.0.0.1:80: i/o timeout, connection refused"))
    assert result.code == 408


def test_classify_follows_exception_chain() -> None:
    err = httpx.ConnectError("All connection attempts failed")
    err.__cause__ = ConnectionRefusedError(111, "Connection refused")
    assert classify(err).kind is FailureKind.CONNECTION_REFUSED


def test_classify_survives_cyclic_chain() -> None:
    first = RuntimeError("first")
    second = RuntimeError("second")
    first.__context__ = second
    second.__context__ = first
    assert classify(first).kind is FailureKind.UNKNOWN


def test_failure_message_falls_back_to_type_name() -> None:
    assert failure_message(httpx.ReadTimeout("")) == "ReadTimeout"
    assert failure_message(ValueError("bad")) == "bad"


@given(st.text())
def test_classify_is_total_and_deterministic(message: str) -> None:
    first = classify(Exception(message))
    second = classify(Exception(message))
    assert first == second
    assert first.code in CLASSIFIER_CODES
    assert classify(message).code in CLASSIFIER_CODES

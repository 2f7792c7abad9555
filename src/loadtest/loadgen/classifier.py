"""Maps transport failures onto status-like codes so they can share the
status histogram with real responses.

The codes are a reporting convention. 310 and 495 are not real HTTP statuses,
and a synthesized 500 or 503 looks identical to a server-sent one in the
histogram; ``Outcome.kind`` and ``Report.synthetic_codes`` keep them apart.
"""

from __future__ import annotations

import asyncio
import socket
import ssl
from dataclasses import dataclass
from typing import Callable, Iterator

import httpx

from loadtest.metrics import FailureKind

CODE_REDIRECTS = 310
CODE_NOT_FOUND = 404
CODE_TIMEOUT = 408
CODE_CERTIFICATE = 495
CODE_INTERNAL = 500
CODE_UNAVAILABLE = 503

CLASSIFIER_CODES = frozenset(
    {CODE_REDIRECTS, CODE_NOT_FOUND, CODE_TIMEOUT, CODE_CERTIFICATE, CODE_INTERNAL, CODE_UNAVAILABLE}
)


@dataclass(frozen=True, slots=True)
class Classification:
    code: int
    kind: FailureKind

    @property
    def key(self) -> str:
        return self.kind.value


@dataclass(frozen=True, slots=True)
class _Failure:
    chain: tuple[BaseException, ...]
    text: str
    lowered: str

    def is_a(self, *types: type[BaseException]) -> bool:
        return any(isinstance(exc, types) for exc in self.chain)

    def mentions(self, *needles: str) -> bool:
        return any(needle in self.lowered for needle in needles)


def _is_timeout(f: _Failure) -> bool:
    return f.is_a(httpx.TimeoutException, TimeoutError, asyncio.TimeoutError, socket.timeout) or f.mentions(
        "timed out", "tls handshake timeout", "i/o timeout", "deadline exceeded"
    )


def _is_temporary(f: _Failure) -> bool:
    return f.mentions("temporary failure", "temporarily unavailable", "try again")


def _is_refused(f: _Failure) -> bool:
    return f.is_a(ConnectionRefusedError) or f.mentions("connection refused")


def _is_dns(f: _Failure) -> bool:
    return f.is_a(socket.gaierror) or f.mentions(
        "name or service not known",
        "nodename nor servname",
        "no such host",
        "getaddrinfo failed",
        "no address associated",
    )


def _is_certificate(f: _Failure) -> bool:
    return f.is_a(ssl.SSLCertVerificationError) or f.mentions("certificate", "x509")


def _is_transport(f: _Failure) -> bool:
    return (
        f.is_a(ConnectionResetError, BrokenPipeError, httpx.TransportError)
        or "EOF" in f.text
        or f.mentions("connection reset", "connection closed", "server disconnected")
    )


def _is_redirect_loop(f: _Failure) -> bool:
    return f.is_a(httpx.TooManyRedirects) or (
        f.mentions("redirects") and f.mentions("exceeded", "stopped after")
    )


# First match wins.
_RULES: tuple[tuple[Callable[[_Failure], bool], Classification], ...] = (
    (_is_timeout, Classification(CODE_TIMEOUT, FailureKind.TIMEOUT)),
    (_is_temporary, Classification(CODE_UNAVAILABLE, FailureKind.TEMPORARY)),
    (_is_refused, Classification(CODE_UNAVAILABLE, FailureKind.CONNECTION_REFUSED)),
    (_is_dns, Classification(CODE_NOT_FOUND, FailureKind.DNS)),
    (_is_certificate, Classification(CODE_CERTIFICATE, FailureKind.CERTIFICATE)),
    (_is_transport, Classification(CODE_INTERNAL, FailureKind.TRANSPORT)),
    (_is_redirect_loop, Classification(CODE_REDIRECTS, FailureKind.TOO_MANY_REDIRECTS)),
)

_FALLBACK = Classification(CODE_INTERNAL, FailureKind.UNKNOWN)


def classify(failure: object) -> Classification:
    """Classify any failure value. Never raises."""
    f = _describe(failure)
    for matches, classification in _RULES:
        if matches(f):
            return classification
    return _FALLBACK


def failure_message(failure: object) -> str:
    """Raw message used to key error details; falls back to the type name."""
    if isinstance(failure, BaseException):
        text = str(failure)
        return text if text else type(failure).__name__
    return str(failure)


def _describe(failure: object) -> _Failure:
    chain = tuple(_walk(failure)) if isinstance(failure, BaseException) else ()
    parts = [failure_message(failure)]
    parts.extend(str(exc) for exc in chain[1:])
    text = " | ".join(part for part in parts if part)
    return _Failure(chain=chain, text=text, lowered=text.lower())


def _walk(exc: BaseException) -> Iterator[BaseException]:
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__

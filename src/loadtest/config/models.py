from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping


class ConfigError(ValueError):
    """Raised when a run cannot start because its configuration is invalid."""


class OutputFormat(str, Enum):
    PLAIN = "plain"
    JSON = "json"
    CSV = "csv"


@dataclass(frozen=True, slots=True)
class LoadTestConfig:
    url: str
    requests: int
    concurrency: int = 1
    timeout_sec: float = 10.0
    method: str = "GET"
    headers: Mapping[str, str] = field(default_factory=dict)
    body: str = ""
    output_format: OutputFormat = OutputFormat.PLAIN
    follow_redirects: bool = True
    max_redirects: int = 10

    def validate(self) -> None:
        if not self.url:
            msg = "URL is required"
            raise ConfigError(msg)
        if self.requests <= 0:
            msg = f"Number of requests must be positive, got {self.requests}"
            raise ConfigError(msg)
        if self.concurrency < 1:
            msg = f"Concurrency must be at least 1, got {self.concurrency}"
            raise ConfigError(msg)
        if self.timeout_sec <= 0:
            msg = f"Timeout must be positive, got {self.timeout_sec}"
            raise ConfigError(msg)
        if self.max_redirects < 0:
            msg = f"Max redirects cannot be negative, got {self.max_redirects}"
            raise ConfigError(msg)

    def to_metadata(self) -> Mapping[str, Any]:
        return {
            "url": self.url,
            "requests": self.requests,
            "concurrency": self.concurrency,
            "timeout_sec": self.timeout_sec,
            "method": self.method,
            "headers": dict(self.headers),
            "body": self.body,
            "output_format": self.output_format.value,
            "follow_redirects": self.follow_redirects,
            "max_redirects": self.max_redirects,
        }

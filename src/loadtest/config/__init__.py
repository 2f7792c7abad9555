from __future__ import annotations

from loadtest.config.models import ConfigError, LoadTestConfig, OutputFormat

__all__ = [
    "ConfigError",
    "LoadTestConfig",
    "OutputFormat",
]

from __future__ import annotations

from loadtest.reporting.progress import ProgressPrinter
from loadtest.reporting.render import describe_status, render, render_csv, render_json, render_plain

__all__ = [
    "ProgressPrinter",
    "describe_status",
    "render",
    "render_csv",
    "render_json",
    "render_plain",
]

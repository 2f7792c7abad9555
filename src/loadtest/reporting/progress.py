from __future__ import annotations

import sys
from typing import TextIO

from loadtest.metrics import ProgressEvent


class ProgressPrinter:
    """Redraws a single progress line on ``stream`` for every event."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self.stream = stream if stream is not None else sys.stderr
        self.last_completed = 0

    async def __call__(self, event: ProgressEvent) -> None:
        if event.completed < self.last_completed:
            return
        self.last_completed = event.completed
        self.stream.write(
            f"\rProgress: {event.percent:.1f}% ({event.completed}/{event.total}) | Rate: {event.rate:.2f} req/s"
        )
        if event.completed >= event.total:
            self.stream.write("\n")
        self.stream.flush()

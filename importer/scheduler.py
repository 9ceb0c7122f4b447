"""Run the importer once or on a fixed period.

Scheduling stays outside the flow control: this loop only decides when to
call `run_once`. Passes are sequential, and the flow control's run lock
rejects any trigger that arrives while a pass is still draining.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

from importer.flow_control import ImporterFlowControl
from importer.models import ImportSummary

logger = logging.getLogger(__name__)


class ImportScheduler:
    """Calls `run_once` immediately and then every `interval_seconds` until stopped."""

    def __init__(self, flow: ImporterFlowControl, *, interval_seconds: float = 0.0) -> None:
        super().__init__()
        self._flow = flow
        self._interval = max(interval_seconds, 0.0)
        self._stop_event = threading.Event()
        self._passes = 0

    @property
    def passes(self) -> int:
        return self._passes

    def run_forever(
        self, on_pass: Callable[[ImportSummary], None] | None = None
    ) -> None:
        """Run passes until `stop()` is called; a zero interval means a single pass."""
        self._stop_event.clear()
        while True:
            summary = self._flow.run_once()
            self._passes += 1
            if on_pass is not None:
                on_pass(summary)

            if self._interval <= 0 or self._stop_event.is_set():
                return
            logger.debug("Next import pass in %.1fs", self._interval)
            if self._stop_event.wait(self._interval):
                return

    def stop(self) -> None:
        """Ask the loop to exit after the current pass."""
        self._stop_event.set()


__all__ = ["ImportScheduler"]

"""
Infrastructure layer: timers backing renewal, keepalive and reconnect.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class ThreadingScheduler:
    """Runs each callback once on a daemon timer thread."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(max(delay, 0.0), self._run, args=(callback,))
        timer.daemon = True
        timer.start()
        return timer

    @staticmethod
    def _run(callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception:
            logger.exception("Scheduled callback failed")

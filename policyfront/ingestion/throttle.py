"""Fixed-spacing throttle for third-party scrape calls."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable


logger = logging.getLogger(__name__)


class ScrapeThrottle:
    """Enforce a minimum interval between successive calls to one provider.

    Thread-safe: concurrent topic workers queue up behind the lock, so calls
    stay serialized even when topics are swept in parallel.
    """

    def __init__(
        self,
        min_interval: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.min_interval = max(0.0, float(min_interval))
        self._clock = clock
        self._sleep = sleep
        self._last_call = None
        self.lock = threading.Lock()

    def wait(self) -> float:
        """Block until the next call is allowed; returns the seconds slept."""
        with self.lock:
            slept = 0.0
            now = self._clock()
            if self._last_call is not None:
                remaining = self.min_interval - (now - self._last_call)
                if remaining > 0:
                    logger.debug(f"Scrape throttle: waiting {remaining:.2f}s")
                    self._sleep(remaining)
                    slept = remaining
                    now = self._clock()
            self._last_call = now
            return slept

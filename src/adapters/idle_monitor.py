"""User idle detection via the ``xprintidle`` helper.

Idle time is polled on demand from scheduler ticks that have something on
screen. The helper is a blocking subprocess, so a reading is reused for
``cache_seconds``; while cached, idle time is assumed to keep growing.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import time
from typing import Callable, Optional

LOGGER = logging.getLogger(__name__)

XPRINTIDLE = "xprintidle"
DEFAULT_CACHE_SECONDS = 1.0


class IdleMonitor:
    """Reports the user idle once input has been absent for the threshold.

    A threshold of 0 disables idle detection entirely.
    """

    def __init__(
        self,
        threshold_seconds: float = 0,
        idle_seconds_provider: Optional[Callable[[], float]] = None,
        cache_seconds: float = DEFAULT_CACHE_SECONDS,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.threshold_seconds = threshold_seconds
        self._idle_seconds_provider = idle_seconds_provider
        self._cache_seconds = cache_seconds
        self._monotonic = monotonic
        self._reading: Optional[tuple[float, float]] = None
        self._unavailable = False

    def set_idle_seconds_provider(self, provider: Callable[[], float]) -> None:
        """Override idle seconds acquisition. Primarily used for testing."""

        self._idle_seconds_provider = provider
        self._reading = None
        self._unavailable = False

    def is_user_idle(self) -> bool:
        if self.threshold_seconds <= 0 or self._unavailable:
            return False

        try:
            idle_seconds = self._cached_idle_seconds()
        except (OSError, ValueError, subprocess.SubprocessError):
            # Stop querying rather than failing every tick.
            LOGGER.warning("Idle detection unavailable; treating the user as active", exc_info=True)
            self._unavailable = True
            return False

        return idle_seconds >= self.threshold_seconds

    def _cached_idle_seconds(self) -> float:
        now = self._monotonic()
        if self._reading is not None:
            idle_seconds, taken_at = self._reading
            if now - taken_at < self._cache_seconds:
                return idle_seconds + (now - taken_at)

        idle_seconds = self._get_idle_seconds()
        self._reading = (idle_seconds, now)
        return idle_seconds

    def _get_idle_seconds(self) -> float:
        if self._idle_seconds_provider is not None:
            return self._idle_seconds_provider()

        if shutil.which(XPRINTIDLE) is None:
            raise FileNotFoundError(f"{XPRINTIDLE} not found on PATH")

        result = subprocess.run(
            [XPRINTIDLE],
            capture_output=True,
            text=True,
            timeout=1,
            check=True,
        )
        return int(result.stdout.strip()) / 1000.0

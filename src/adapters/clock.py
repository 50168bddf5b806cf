"""Monotonic clock adapter."""

from __future__ import annotations

import time


class MonotonicClock:
    """Satisfies the core Clock port with microsecond resolution."""

    def now(self) -> int:
        return time.monotonic_ns() // 1000

"""Event loop timer adapter.

Timers are one-shot and are never cancelled; the scheduler deduplicates
them instead.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

from core.models import USEC_PER_SEC


class AsyncioTimer:
    """Satisfies the core TimerPort using ``loop.call_later``."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def arm(self, delay_us: int, callback: Callable[[], None]) -> None:
        loop = self._loop or asyncio.get_running_loop()
        loop.call_later(max(delay_us, 0) / USEC_PER_SEC, callback)

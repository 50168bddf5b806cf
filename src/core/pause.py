"""Pause control consulted by every scheduler tick."""

from __future__ import annotations

import logging
from typing import Callable

from core.queues import QueueSet

LOGGER = logging.getLogger(__name__)


class PauseController:
    """Two states, active and paused; every change requests a tick."""

    def __init__(self, queues: QueueSet, wake: Callable[[], None]) -> None:
        self._queues = queues
        self._wake = wake
        self._paused = False

    @property
    def paused(self) -> bool:
        return self._paused

    def pause(self) -> None:
        self._set(True)

    def resume(self) -> None:
        self._set(False)

    def toggle(self) -> bool:
        self._set(not self._paused)
        return self._paused

    def apply(self) -> bool:
        """Demote everything on screen while paused; return the paused flag."""

        if self._paused:
            moved = self._queues.demote_all_displayed_to_pending()
            if moved:
                LOGGER.debug("Paused: moved %s notification(s) back to pending", moved)
        return self._paused

    def _set(self, paused: bool) -> None:
        if paused != self._paused:
            LOGGER.info("Display %s", "paused" if paused else "resumed")
        self._paused = paused
        self._wake()

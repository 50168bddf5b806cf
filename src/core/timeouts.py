"""Expiry and wake-interval computation for displayed notifications."""

from __future__ import annotations

import logging
from typing import Optional

from core.models import USEC_PER_SEC, CloseReason, Notification
from core.ports import IdleDetector
from core.queues import QueueSet

LOGGER = logging.getLogger(__name__)


class TimeoutEngine:
    """Expires overdue notifications and decides when the loop must wake.

    ``age_threshold`` (microseconds, None disables it) is the age after
    which a displayed notification shows how long ago it arrived; from then
    on the display is refreshed on every whole second of its age.
    """

    def __init__(
        self,
        queues: QueueSet,
        idle: IdleDetector,
        age_threshold: Optional[int] = None,
    ) -> None:
        self._queues = queues
        self._idle = idle
        self._age_threshold = age_threshold

    def expire(self, now: int) -> list[Notification]:
        """Close every displayed notification whose timeout has elapsed.

        While the user is idle the countdown of non-transient notifications
        is frozen by moving their start time forward.
        """

        if len(self._queues.displayed) == 0:
            return []

        user_idle = self._idle.is_user_idle()
        expired: list[Notification] = []
        for notification in self._queues.displayed:
            if user_idle and not notification.transient:
                notification.start = now
                continue

            if notification.start == 0 or notification.timeout == 0:
                continue

            if now - notification.start > notification.timeout:
                self._queues.close(notification, CloseReason.EXPIRED)
                expired.append(notification)

        if expired:
            LOGGER.info("Expired %s notification(s)", len(expired))
        return expired

    def sleep_interval(self, now: int) -> Optional[int]:
        """Return microseconds until the next tick is due, or None."""

        sleep: Optional[int] = None
        for notification in self._queues.displayed:
            ttl = notification.timeout - (now - notification.start)

            if notification.timeout > 0:
                if ttl <= 0:
                    # Already overdue while this tick was running.
                    return 0
                sleep = _earliest(sleep, ttl)

            if self._age_threshold is not None:
                age = now - notification.timestamp
                if age > self._age_threshold:
                    sleep = _earliest(sleep, USEC_PER_SEC - age % USEC_PER_SEC)
                elif ttl > self._age_threshold:
                    sleep = _earliest(sleep, self._age_threshold)

        return sleep


def _earliest(current: Optional[int], candidate: int) -> int:
    return candidate if current is None else min(current, candidate)

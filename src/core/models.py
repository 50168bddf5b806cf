"""Core domain models.

Notifications are mutable: the scheduler moves the same object between
the pending, displayed and history queues and updates its timing fields.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

USEC_PER_SEC = 1_000_000


class Urgency(IntEnum):
    LOW = 0
    NORMAL = 1
    CRITICAL = 2


class CloseReason(IntEnum):
    """Reason codes reported to the IPC side when a notification closes."""

    EXPIRED = 1
    DISMISSED = 2
    CLOSED_BY_REQUEST = 3


@dataclass(eq=False)
class Notification:
    """One inbound request and its runtime state.

    Times are monotonic microseconds. ``start`` is 0 until the notification
    is promoted to the displayed queue; ``timeout`` of 0 means sticky.
    """

    summary: str
    body: str = ""
    appname: str = ""
    icon: str = ""
    category: str = ""
    urgency: Urgency = Urgency.NORMAL
    timeout: int = 0
    timestamp: int = 0
    start: int = 0
    id: int = 0
    transient: bool = False
    redisplayed: bool = False
    history_ignore: bool = False
    script: Optional[str] = None
    script_fired: bool = False

    @property
    def sticky(self) -> bool:
        return self.timeout == 0

    def claim_first_display(self) -> bool:
        """Return True exactly once, on first display, if a script is set."""

        if self.script is None or self.redisplayed or self.script_fired:
            return False
        self.script_fired = True
        return True

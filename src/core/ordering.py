"""Priority ordering shared by every sorted queue insertion."""

from __future__ import annotations

from core.models import Notification


class PriorityOrdering:
    """Total order over notifications.

    Higher urgency sorts first; ties fall back to arrival order (lower id
    first). With ``by_urgency`` disabled only arrival order is used.
    """

    def __init__(self, by_urgency: bool = True) -> None:
        self._by_urgency = by_urgency

    def key(self, notification: Notification) -> tuple[int, int]:
        if self._by_urgency:
            return (-int(notification.urgency), notification.id)
        return (0, notification.id)

    def compare(self, a: Notification, b: Notification) -> int:
        ka, kb = self.key(a), self.key(b)
        return (ka > kb) - (ka < kb)

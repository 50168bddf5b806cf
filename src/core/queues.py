"""Pending, displayed and history queues.

A live notification sits in exactly one of the three queues. It leaves
the system only through ``close`` (when it is history-ignored) or through
eviction from a full history.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, Iterator, Optional

from core.models import CloseReason, Notification
from core.ordering import PriorityOrdering
from core.ports import ActionRunner, CloseListener

LOGGER = logging.getLogger(__name__)


class SortedQueue:
    """Insertion-sorted sequence; expected sizes are small."""

    def __init__(self, ordering: PriorityOrdering) -> None:
        self._ordering = ordering
        self._items: list[Notification] = []

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Notification]:
        return iter(list(self._items))

    def __contains__(self, notification: object) -> bool:
        return any(item is notification for item in self._items)

    def peek_head(self) -> Optional[Notification]:
        return self._items[0] if self._items else None

    def pop_head(self) -> Notification:
        return self._items.pop(0)

    def push_front(self, notification: Notification) -> None:
        self._items.insert(0, notification)

    def insert_sorted(self, notification: Notification) -> None:
        # Walk past everything that sorts strictly before the new entry, so
        # entries pushed to the front stay ahead of equal-or-lower keys.
        index = 0
        for item in self._items:
            if self._ordering.compare(item, notification) >= 0:
                break
            index += 1
        self._items.insert(index, notification)

    def remove(self, notification: Notification) -> bool:
        for index, item in enumerate(self._items):
            if item is notification:
                del self._items[index]
                return True
        return False

    def clear(self) -> None:
        self._items.clear()


class QueueSet:
    """Owns the three queues and every transition between them."""

    def __init__(
        self,
        ordering: PriorityOrdering,
        action_runner: ActionRunner,
        close_listener: CloseListener,
        history_length: int = 0,
        sticky_history: bool = False,
    ) -> None:
        self.pending = SortedQueue(ordering)
        self.displayed = SortedQueue(ordering)
        self.history: Deque[Notification] = deque()
        self._action_runner = action_runner
        self._close_listener = close_listener
        self._history_length = history_length
        self._sticky_history = sticky_history

    def enqueue_pending(self, notification: Notification) -> None:
        self.pending.insert_sorted(notification)

    def promote(self, capacity: Optional[int], now: int) -> int:
        """Move pending entries to displayed until ``capacity`` is reached.

        ``capacity`` of None means unbounded. Returns the number promoted.
        """

        promoted = 0
        while len(self.pending) > 0:
            if capacity is not None and len(self.displayed) >= capacity:
                break
            notification = self.pending.pop_head()
            notification.start = now
            if notification.claim_first_display():
                self._action_runner.run_first_display_action(notification)
            self.displayed.insert_sorted(notification)
            promoted += 1
        if promoted:
            LOGGER.debug("Promoted %s notification(s) to display", promoted)
        return promoted

    def demote_all_displayed_to_pending(self) -> int:
        moved = 0
        while len(self.displayed) > 0:
            self.pending.insert_sorted(self.displayed.pop_head())
            moved += 1
        return moved

    def find(self, notification_id: int) -> Optional[Notification]:
        """Return the live displayed or pending notification with this id."""

        for queue in (self.displayed, self.pending):
            for notification in queue:
                if notification.id == notification_id:
                    return notification
        return None

    def close(self, notification: Notification, reason: CloseReason) -> bool:
        """Close a displayed or pending notification.

        Closing something that is no longer live is a no-op and returns False.
        """

        if not (self.displayed.remove(notification) or self.pending.remove(notification)):
            LOGGER.debug("Ignoring close of notification %s: not live", notification.id)
            return False

        LOGGER.debug("Closing notification %s (%s)", notification.id, reason.name)
        self._close_listener.notification_closed(notification.id, reason)
        self._retire(notification)
        return True

    def close_by_id(self, notification_id: int, reason: CloseReason) -> bool:
        notification = self.find(notification_id)
        if notification is None:
            return False
        return self.close(notification, reason)

    def close_all(self, reason: CloseReason) -> int:
        closed = 0
        for queue in (self.displayed, self.pending):
            while len(queue) > 0:
                self.close(queue.peek_head(), reason)
                closed += 1
        return closed

    def recall_last(self) -> Optional[Notification]:
        """Pop the most recent history entry to the very front of pending."""

        if not self.history:
            return None

        notification = self.history.pop()
        notification.redisplayed = True
        notification.start = 0
        if self._sticky_history:
            notification.timeout = 0
        self.pending.push_front(notification)
        LOGGER.debug("Recalled notification %s from history", notification.id)
        return notification

    def teardown(self) -> int:
        """Drop every stored notification and return how many were dropped."""

        dropped = len(self.pending) + len(self.displayed) + len(self.history)
        self.pending.clear()
        self.displayed.clear()
        self.history.clear()
        return dropped

    def _retire(self, notification: Notification) -> None:
        if notification.history_ignore:
            LOGGER.debug("Dropping notification %s: history ignored", notification.id)
            return

        if self._history_length > 0 and len(self.history) >= self._history_length:
            evicted = self.history.popleft()
            LOGGER.debug("History full, evicted notification %s", evicted.id)
        self.history.append(notification)

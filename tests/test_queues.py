from __future__ import annotations

from core.models import CloseReason, Notification, Urgency
from core.ordering import PriorityOrdering
from core.queues import QueueSet, SortedQueue


class FakeRunner:
    def __init__(self) -> None:
        self.ran: list[int] = []

    def run_first_display_action(self, notification: Notification) -> None:
        self.ran.append(notification.id)


class FakeListener:
    def __init__(self) -> None:
        self.closed: list[tuple[int, CloseReason]] = []

    def notification_closed(self, notification_id: int, reason: CloseReason) -> None:
        self.closed.append((notification_id, reason))


def _make(notification_id: int, urgency: Urgency = Urgency.NORMAL, **kwargs) -> Notification:
    return Notification(summary=f"n{notification_id}", id=notification_id, urgency=urgency, **kwargs)


def _queues(**kwargs) -> tuple[QueueSet, FakeRunner, FakeListener]:
    runner = FakeRunner()
    listener = FakeListener()
    queues = QueueSet(PriorityOrdering(), runner, listener, **kwargs)
    return queues, runner, listener


def _ids(queue) -> list[int]:
    return [notification.id for notification in queue]


def test_pending_is_sorted_by_urgency_then_arrival() -> None:
    queues, _, _ = _queues()
    queues.enqueue_pending(_make(1, Urgency.LOW))
    queues.enqueue_pending(_make(2, Urgency.NORMAL))
    queues.enqueue_pending(_make(3, Urgency.CRITICAL))
    queues.enqueue_pending(_make(4, Urgency.NORMAL))

    assert _ids(queues.pending) == [3, 2, 4, 1]


def test_push_front_stays_ahead_of_sorted_inserts() -> None:
    queue = SortedQueue(PriorityOrdering())
    queue.insert_sorted(_make(5, Urgency.NORMAL))
    queue.push_front(_make(1, Urgency.LOW))
    queue.insert_sorted(_make(6, Urgency.LOW))

    assert [n.id for n in queue] == [1, 5, 6]
    assert queue.peek_head().id == 1


def test_promote_respects_capacity_and_sets_start() -> None:
    queues, _, _ = _queues()
    for notification_id in range(1, 5):
        queues.enqueue_pending(_make(notification_id))

    promoted = queues.promote(capacity=3, now=500)

    assert promoted == 3
    assert _ids(queues.displayed) == [1, 2, 3]
    assert _ids(queues.pending) == [4]
    assert all(n.start == 500 for n in queues.displayed)


def test_promote_unbounded_capacity_moves_everything() -> None:
    queues, _, _ = _queues()
    for notification_id in range(1, 8):
        queues.enqueue_pending(_make(notification_id))

    assert queues.promote(capacity=None, now=1) == 7
    assert len(queues.pending) == 0


def test_first_display_action_runs_once_and_not_on_redisplay() -> None:
    queues, runner, _ = _queues(history_length=5)
    notification = _make(1, script="/bin/true", timeout=1000)
    queues.enqueue_pending(notification)
    queues.promote(capacity=None, now=10)
    queues.close(notification, CloseReason.DISMISSED)

    queues.recall_last()
    queues.promote(capacity=None, now=20)

    assert runner.ran == [1]


def test_demote_all_preserves_relative_order() -> None:
    queues, _, _ = _queues()
    for notification_id in range(1, 4):
        queues.enqueue_pending(_make(notification_id))
    queues.promote(capacity=None, now=1)
    queues.enqueue_pending(_make(4))
    queues.enqueue_pending(_make(5))

    moved = queues.demote_all_displayed_to_pending()

    assert moved == 3
    assert len(queues.displayed) == 0
    assert _ids(queues.pending) == [1, 2, 3, 4, 5]


def test_history_evicts_oldest() -> None:
    queues, _, _ = _queues(history_length=2)
    a, b, c = _make(1), _make(2), _make(3)
    for notification in (a, b, c):
        queues.enqueue_pending(notification)

    for notification in (a, b, c):
        queues.close(notification, CloseReason.DISMISSED)

    assert list(queues.history) == [b, c]


def test_history_ignore_is_dropped_and_does_not_evict() -> None:
    queues, _, listener = _queues(history_length=1)
    kept = _make(1)
    ignored = _make(2, history_ignore=True)
    queues.enqueue_pending(kept)
    queues.enqueue_pending(ignored)

    queues.close(kept, CloseReason.EXPIRED)
    queues.close(ignored, CloseReason.EXPIRED)

    assert list(queues.history) == [kept]
    assert listener.closed == [(1, CloseReason.EXPIRED), (2, CloseReason.EXPIRED)]


def test_double_close_is_a_noop() -> None:
    queues, _, listener = _queues(history_length=5)
    notification = _make(1)
    queues.enqueue_pending(notification)

    assert queues.close(notification, CloseReason.DISMISSED) is True
    assert queues.close(notification, CloseReason.DISMISSED) is False
    assert queues.close_by_id(99, CloseReason.DISMISSED) is False
    assert len(listener.closed) == 1
    assert list(queues.history) == [notification]


def test_recall_last_goes_to_front_of_pending() -> None:
    queues, _, _ = _queues(history_length=5, sticky_history=True)
    recalled = _make(1, Urgency.LOW, timeout=5_000_000, start=42)
    queues.enqueue_pending(recalled)
    queues.close(recalled, CloseReason.EXPIRED)
    queues.enqueue_pending(_make(2, Urgency.CRITICAL))

    result = queues.recall_last()

    assert result is recalled
    assert _ids(queues.pending) == [1, 2]
    assert recalled.redisplayed is True
    assert recalled.start == 0
    assert recalled.timeout == 0
    assert len(queues.history) == 0


def test_recall_last_keeps_timeout_without_sticky_history() -> None:
    queues, _, _ = _queues(history_length=5, sticky_history=False)
    notification = _make(1, timeout=5_000_000)
    queues.enqueue_pending(notification)
    queues.close(notification, CloseReason.EXPIRED)

    queues.recall_last()

    assert notification.timeout == 5_000_000


def test_recall_last_on_empty_history() -> None:
    queues, _, _ = _queues()
    assert queues.recall_last() is None
    assert len(queues.pending) == 0


def test_close_all_closes_displayed_then_pending() -> None:
    queues, _, listener = _queues()
    for notification_id in range(1, 5):
        queues.enqueue_pending(_make(notification_id))
    queues.promote(capacity=2, now=1)

    closed = queues.close_all(CloseReason.DISMISSED)

    assert closed == 4
    assert [entry[0] for entry in listener.closed] == [1, 2, 3, 4]
    assert len(queues.displayed) == 0
    assert len(queues.pending) == 0
    assert _ids(queues.history) == [1, 2, 3, 4]


def test_partition_holds_across_transitions() -> None:
    queues, _, _ = _queues(history_length=10)
    notifications = [_make(i) for i in range(1, 7)]
    for notification in notifications:
        queues.enqueue_pending(notification)
    queues.promote(capacity=3, now=1)
    queues.close(notifications[0], CloseReason.DISMISSED)
    queues.recall_last()
    queues.demote_all_displayed_to_pending()
    queues.promote(capacity=2, now=2)

    for notification in notifications:
        holders = [
            notification in queues.pending,
            notification in queues.displayed,
            any(item is notification for item in queues.history),
        ]
        assert holders.count(True) == 1

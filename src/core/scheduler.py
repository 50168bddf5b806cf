"""Scheduler context object driving the notification lifecycle.

One tick runs in a strict order:
1) Expire overdue displayed notifications
2) Account for the timer that triggered this tick, if any
3) Demote everything while paused, otherwise promote up to capacity
4) Request show/hide/redraw from the display
5) Arm at most one new wake-up timer, deduplicated against outstanding ones

Ticks never call themselves. A wake request made while a tick is running
is recorded and served right after the current tick returns.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Optional

from core.config import SchedulerConfig
from core.models import CloseReason, Notification
from core.ordering import PriorityOrdering
from core.pause import PauseController
from core.ports import ActionRunner, Clock, CloseListener, Display, IdleDetector, TimerPort
from core.queues import QueueSet
from core.timeouts import TimeoutEngine

LOGGER = logging.getLogger(__name__)


@dataclass
class TimerState:
    """Bookkeeping that keeps overlapping ticks from stacking timers."""

    outstanding: int = 0
    next_deadline: Optional[int] = None

    def should_arm(self, deadline: int) -> bool:
        if self.outstanding == 0 or self.next_deadline is None:
            return True
        return deadline < self.next_deadline

    def record_armed(self, deadline: int) -> None:
        self.next_deadline = deadline
        self.outstanding += 1

    def record_fired(self) -> None:
        if self.outstanding > 0:
            self.outstanding -= 1


class Scheduler:
    """Owns the queues, pause flag and timer state for one daemon."""

    def __init__(
        self,
        config: SchedulerConfig,
        clock: Clock,
        idle: IdleDetector,
        display: Display,
        timer: TimerPort,
        action_runner: ActionRunner,
        close_listener: CloseListener,
    ) -> None:
        self._config = config
        self._clock = clock
        self._display = display
        self._timer = timer
        self.queues = QueueSet(
            ordering=PriorityOrdering(by_urgency=config.sort),
            action_runner=action_runner,
            close_listener=close_listener,
            history_length=config.history_length,
            sticky_history=config.sticky_history,
        )
        self.timeouts = TimeoutEngine(self.queues, idle, config.show_age_threshold)
        self.pause_control = PauseController(self.queues, self.wake)
        self.timer_state = TimerState()
        self._ids = itertools.count(1)
        self._running = False
        self._rerun = False
        self._shut_down = False

    @property
    def paused(self) -> bool:
        return self.pause_control.paused

    def capacity(self) -> Optional[int]:
        """Displayed slots for the current layout; None means unbounded."""

        height = self._config.geometry_height
        if height == 0:
            return None
        if height == 1:
            return 1
        if self._config.indicate_hidden:
            return height - 1
        return height

    def counts(self) -> dict[str, int]:
        return {
            "displayed": len(self.queues.displayed),
            "pending": len(self.queues.pending),
            "history": len(self.queues.history),
        }

    # Entry points for collaborators

    def submit(self, notification: Notification) -> int:
        """Accept a new notification and request an immediate tick."""

        notification.id = next(self._ids)
        if notification.timestamp == 0:
            notification.timestamp = self._clock.now()
        self.queues.enqueue_pending(notification)
        LOGGER.info(
            "Accepted notification %s from %s (%s)",
            notification.id,
            notification.appname or "unknown",
            notification.urgency.name,
        )
        self.wake()
        return notification.id

    def close_by_id(self, notification_id: int, reason: CloseReason) -> bool:
        closed = self.queues.close_by_id(notification_id, reason)
        if closed:
            self.wake()
        return closed

    def close_all(self, reason: CloseReason = CloseReason.DISMISSED) -> int:
        closed = self.queues.close_all(reason)
        if closed:
            self.wake()
        return closed

    def recall_last(self) -> Optional[Notification]:
        notification = self.queues.recall_last()
        if notification is not None:
            self.wake()
        return notification

    def pause(self) -> None:
        self.pause_control.pause()

    def resume(self) -> None:
        self.pause_control.resume()

    def toggle_pause(self) -> bool:
        return self.pause_control.toggle()

    def shutdown(self) -> None:
        """Close everything with reason dismissed and drop all storage."""

        if self._shut_down:
            return
        self._shut_down = True
        closed = self.queues.close_all(CloseReason.DISMISSED)
        if self._display.visible:
            self._display.hide()
        dropped = self.queues.teardown()
        LOGGER.info("Scheduler shut down: closed=%s, released=%s", closed, dropped)

    # Tick

    def wake(self) -> None:
        self.run()

    def run(self, from_timer: bool = False) -> None:
        """Run one tick, plus any tick requested while it was running."""

        if self._shut_down:
            return

        if self._running:
            if from_timer:
                self.timer_state.record_fired()
            self._rerun = True
            return

        self._running = True
        try:
            self._tick(from_timer)
            while self._rerun and not self._shut_down:
                self._rerun = False
                self._tick(False)
        finally:
            self._running = False
            self._rerun = False

    def _on_timer(self) -> None:
        self.run(from_timer=True)

    def _tick(self, from_timer: bool) -> None:
        now = self._clock.now()
        self.timeouts.expire(now)

        if from_timer:
            self.timer_state.record_fired()

        paused = self.pause_control.apply()
        if not paused:
            self.queues.promote(self.capacity(), now)

        self._render(paused)

        if self._display.visible:
            self._rearm()

    def _render(self, paused: bool) -> None:
        has_displayed = len(self.queues.displayed) > 0

        if has_displayed and not paused and not self._display.visible:
            self._display.show()

        if self._display.visible and (paused or not has_displayed):
            self._display.hide()

        if self._display.visible:
            self._display.redraw(list(self.queues.displayed), len(self.queues.pending))

    def _rearm(self) -> None:
        now = self._clock.now()
        sleep = self.timeouts.sleep_interval(now)
        if sleep is None:
            return

        deadline = now + sleep
        if not self.timer_state.should_arm(deadline):
            return

        self._timer.arm(sleep, self._on_timer)
        self.timer_state.record_armed(deadline)
        LOGGER.debug(
            "Armed wake-up in %sus (outstanding=%s)", sleep, self.timer_state.outstanding
        )

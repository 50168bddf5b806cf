"""Ports (interfaces) used by the core scheduler.

Ports define the minimal contracts for the clock, idle detection, the
renderer, the event loop timer and the IPC side so the core can run on
any backend.
"""

from __future__ import annotations

from typing import Callable, Protocol, Sequence

from core.models import CloseReason, Notification


class Clock(Protocol):
    """Monotonic clock with microsecond granularity."""

    def now(self) -> int:
        ...


class IdleDetector(Protocol):
    def is_user_idle(self) -> bool:
        ...


class Display(Protocol):
    """Rendering operations requested by the scheduler tick."""

    @property
    def visible(self) -> bool:
        ...

    def show(self) -> None:
        ...

    def hide(self) -> None:
        ...

    def redraw(self, notifications: Sequence[Notification], hidden_count: int) -> None:
        ...


class TimerPort(Protocol):
    """One-shot timers on the event loop."""

    def arm(self, delay_us: int, callback: Callable[[], None]) -> None:
        ...


class ActionRunner(Protocol):
    """Fire-and-forget side effect run on a notification's first display."""

    def run_first_display_action(self, notification: Notification) -> None:
        ...


class CloseListener(Protocol):
    """Receives closures so the IPC side can publish them."""

    def notification_closed(self, notification_id: int, reason: CloseReason) -> None:
        ...

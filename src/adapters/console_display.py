"""Terminal renderer built on rich's Live display.

Satisfies the core Display port: ``show`` starts the live region,
``hide`` clears it and ``redraw`` paints the current stack.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

from adapters.notification_formatting import format_hidden_indicator, format_notification
from core.models import Notification, Urgency
from core.ports import Clock

LOGGER = logging.getLogger(__name__)


class RichConsoleDisplay:
    """Renders displayed notifications as stacked panels."""

    def __init__(
        self,
        clock: Clock,
        age_threshold: Optional[int] = None,
        indicate_hidden: bool = True,
        console: Optional[Console] = None,
    ) -> None:
        self._clock = clock
        self._age_threshold = age_threshold
        self._indicate_hidden = indicate_hidden
        self._console = console or Console()
        self._live: Optional[Live] = None

    @property
    def visible(self) -> bool:
        return self._live is not None

    def show(self) -> None:
        if self._live is not None:
            return
        # Refreshes are driven by the scheduler; no background refresh thread.
        self._live = Live(
            Text(""),
            console=self._console,
            auto_refresh=False,
            transient=True,
        )
        self._live.start()
        LOGGER.debug("Display shown")

    def hide(self) -> None:
        if self._live is None:
            return
        self._live.stop()
        self._live = None
        LOGGER.debug("Display hidden")

    def redraw(self, notifications: Sequence[Notification], hidden_count: int) -> None:
        if self._live is None:
            return
        self._live.update(self.render(notifications, hidden_count), refresh=True)

    def render(self, notifications: Sequence[Notification], hidden_count: int) -> Group:
        now = self._clock.now()
        panels = []
        for notification in notifications:
            markup = format_notification(notification, now, self._age_threshold, mode="markup")
            border = "red" if notification.urgency == Urgency.CRITICAL else "blue"
            panels.append(Panel(Text.from_markup(markup), border_style=border, expand=False))
        if self._indicate_hidden and hidden_count > 0:
            panels.append(Text(format_hidden_indicator(hidden_count), style="dim"))
        return Group(*panels)

"""Runs the script attached to a notification on its first display."""

from __future__ import annotations

import asyncio
import logging

from core.models import Notification

LOGGER = logging.getLogger(__name__)


class ScriptRunner:
    """Satisfies the core ActionRunner port with detached subprocesses.

    The script receives appname, summary, body, icon and urgency name as
    positional arguments. The scheduler never waits for it.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    def run_first_display_action(self, notification: Notification) -> None:
        if not notification.script:
            return
        task = asyncio.get_running_loop().create_task(self._run(notification))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, notification: Notification) -> None:
        args = [
            notification.appname,
            notification.summary,
            notification.body,
            notification.icon,
            notification.urgency.name,
        ]
        try:
            process = await asyncio.create_subprocess_exec(
                notification.script,
                *args,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
            _, stderr = await process.communicate()
        except OSError:
            LOGGER.exception("Failed to run script %s for notification %s", notification.script, notification.id)
            return

        if process.returncode != 0:
            LOGGER.warning(
                "Script %s exited with %s: %s",
                notification.script,
                process.returncode,
                stderr.decode("utf-8", errors="replace").strip(),
            )

    async def drain(self) -> None:
        """Wait for scripts still running, used on shutdown."""

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

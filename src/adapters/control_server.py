"""Control endpoint for the daemon.

Clients speak newline-delimited JSON over a Unix domain socket: each
request line is an object with a ``command`` key and gets exactly one
response line. A ``subscribe`` request turns the connection into a feed
of closure events instead.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import Any, Callable, Mapping, Optional

from adapters.notification_formatting import format_notification
from core.models import CloseReason, Notification
from core.scheduler import Scheduler

LOGGER = logging.getLogger(__name__)

NotificationFactory = Callable[[Mapping[str, Any]], Notification]


SUBSCRIBER_QUEUE_SIZE = 256

# Marks the end of a subscriber stream.
_END_OF_STREAM = None


class ClosureFeed:
    """Satisfies the core CloseListener port and fans events out to subscribers.

    Each subscriber gets a bounded queue. A subscriber that falls
    ``SUBSCRIBER_QUEUE_SIZE`` events behind is cut off rather than
    buffered without limit.
    """

    def __init__(self, queue_size: int = SUBSCRIBER_QUEUE_SIZE) -> None:
        self._queue_size = queue_size
        self._subscribers: set[asyncio.Queue] = set()

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)

    def notification_closed(self, notification_id: int, reason: CloseReason) -> None:
        LOGGER.info("Notification %s closed (%s)", notification_id, reason.name.lower())
        event = {"event": "closed", "id": notification_id, "reason": int(reason)}
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                LOGGER.warning("Dropping closure subscriber that stopped reading")
                self._end(queue, discard_pending=True)

    def close(self) -> None:
        """End every subscriber stream once its queued events are sent."""

        for queue in list(self._subscribers):
            self._end(queue, discard_pending=False)

    def _end(self, queue: asyncio.Queue, discard_pending: bool) -> None:
        self._subscribers.discard(queue)
        if discard_pending or queue.full():
            while not queue.empty():
                queue.get_nowait()
        queue.put_nowait(_END_OF_STREAM)



def _require_id(payload: Mapping[str, Any]) -> int:
    value = payload.get("id")
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError("Field 'id' must be an integer")
    return value


def _close_reason(payload: Mapping[str, Any]) -> CloseReason:
    raw = payload.get("reason", int(CloseReason.CLOSED_BY_REQUEST))
    try:
        return CloseReason(raw)
    except ValueError:
        raise ValueError(f"Invalid close reason: {raw!r}") from None


class ControlServer:
    """Maps control requests onto scheduler operations."""

    def __init__(
        self,
        scheduler: Scheduler,
        factory: NotificationFactory,
        feed: ClosureFeed,
        socket_path: str,
    ) -> None:
        self._scheduler = scheduler
        self._factory = factory
        self._feed = feed
        self._socket_path = socket_path
        self._server: Optional[asyncio.AbstractServer] = None
        self._writers: set[asyncio.StreamWriter] = set()
        self._streams: set[asyncio.Task] = set()

    @property
    def socket_path(self) -> str:
        return self._socket_path

    async def start(self) -> None:
        if os.path.exists(self._socket_path):
            # A previous instance did not clean up after itself.
            os.unlink(self._socket_path)
        directory = os.path.dirname(self._socket_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self._server = await asyncio.start_unix_server(self._handle_client, path=self._socket_path)
        os.chmod(self._socket_path, 0o600)
        LOGGER.info("Control socket listening on %s", self._socket_path)

    async def close(self, drain_timeout: float = 2.0) -> None:
        """Stop serving after subscribers have received every queued event."""

        if self._server is None:
            return
        self._feed.close()
        if self._streams:
            await asyncio.wait(set(self._streams), timeout=drain_timeout)
        self._server.close()
        for writer in list(self._writers):
            writer.close()
        await self._server.wait_closed()
        self._server = None
        if os.path.exists(self._socket_path):
            os.unlink(self._socket_path)

    def handle_request(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        """Execute one non-streaming request and return the response object."""

        command = payload.get("command")
        scheduler = self._scheduler

        if command == "notify":
            notification = self._factory(payload)
            return {"ok": True, "id": scheduler.submit(notification)}
        if command == "close":
            closed = scheduler.close_by_id(_require_id(payload), _close_reason(payload))
            return {"ok": True, "closed": closed}
        if command == "close-all":
            return {"ok": True, "closed": scheduler.close_all(CloseReason.DISMISSED)}
        if command == "history-pop":
            recalled = scheduler.recall_last()
            if recalled is None:
                return {"ok": True, "id": None}
            text = format_notification(recalled, recalled.timestamp, None, mode="plain")
            return {"ok": True, "id": recalled.id, "text": text}
        if command == "pause":
            scheduler.pause()
            return {"ok": True, "paused": True}
        if command == "resume":
            scheduler.resume()
            return {"ok": True, "paused": False}
        if command == "toggle":
            return {"ok": True, "paused": scheduler.toggle_pause()}
        if command == "is-paused":
            return {"ok": True, "paused": scheduler.paused}
        if command == "count":
            return {"ok": True, **scheduler.counts()}
        raise ValueError(f"Unknown command: {command!r}")

    def _dispatch_line(self, line: bytes) -> Optional[dict[str, Any]]:
        """Return the response for one request line, or None for subscribe."""

        try:
            payload = json.loads(line)
        except json.JSONDecodeError as exc:
            return {"ok": False, "error": f"Malformed JSON: {exc.msg}"}
        if not isinstance(payload, dict):
            return {"ok": False, "error": "Request must be a JSON object"}
        if payload.get("command") == "subscribe":
            return None

        try:
            return self.handle_request(payload)
        except ValueError as exc:
            return {"ok": False, "error": str(exc)}
        except Exception:
            LOGGER.exception("Error while handling control request")
            return {"ok": False, "error": "Internal error"}

    async def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._writers.add(writer)
        try:
            while True:
                line = await reader.readline()
                if not line:
                    break
                if not line.strip():
                    continue
                response = self._dispatch_line(line)
                if response is None:
                    await self._stream_closures(writer)
                    break
                await _write_line(writer, response)
        except (ConnectionError, asyncio.IncompleteReadError):
            LOGGER.debug("Control client disconnected")
        finally:
            self._writers.discard(writer)
            writer.close()

    async def _stream_closures(self, writer: asyncio.StreamWriter) -> None:
        queue = self._feed.subscribe()
        task = asyncio.current_task()
        if task is not None:
            self._streams.add(task)
        try:
            await _write_line(writer, {"ok": True, "subscribed": True})
            while True:
                event = await queue.get()
                if event is _END_OF_STREAM:
                    break
                await _write_line(writer, event)
        finally:
            self._feed.unsubscribe(queue)
            self._streams.discard(task)


async def _write_line(writer: asyncio.StreamWriter, message: Mapping[str, Any]) -> None:
    writer.write(json.dumps(message).encode("utf-8") + b"\n")
    await writer.drain()


async def send_command(socket_path: str, payload: Mapping[str, Any]) -> dict[str, Any]:
    """Send one request to a running daemon and return its response."""

    try:
        reader, writer = await asyncio.open_unix_connection(socket_path)
    except (FileNotFoundError, ConnectionRefusedError) as exc:
        raise RuntimeError(f"tidings daemon is not running (no socket at {socket_path})") from exc

    try:
        await _write_line(writer, payload)
        line = await reader.readline()
    finally:
        writer.close()
        await writer.wait_closed()

    if not line:
        raise RuntimeError("tidings daemon closed the connection without a response")
    return json.loads(line)

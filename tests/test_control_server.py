from __future__ import annotations

import asyncio
import json
import os
from typing import Any, Mapping, Sequence

from adapters.control_server import ClosureFeed, ControlServer, send_command
from adapters.request_mapper import build_notification
from adapters.script_runner import ScriptRunner
from app import _stop_daemon
from core.config import SchedulerConfig
from core.models import CloseReason, Notification, Urgency
from core.scheduler import Scheduler

TIMEOUTS = {Urgency.LOW: 0, Urgency.NORMAL: 0, Urgency.CRITICAL: 0}


class FakeClock:
    def now(self) -> int:
        return 1_000


class FakeIdle:
    def is_user_idle(self) -> bool:
        return False


class FakeDisplay:
    def __init__(self) -> None:
        self.visible = False

    def show(self) -> None:
        self.visible = True

    def hide(self) -> None:
        self.visible = False

    def redraw(self, notifications: Sequence[Notification], hidden_count: int) -> None:
        pass


class FakeTimer:
    def arm(self, delay_us: int, callback) -> None:
        pass


class NoopRunner:
    def run_first_display_action(self, notification: Notification) -> None:
        pass


def _server() -> tuple[ControlServer, Scheduler, ClosureFeed]:
    feed = ClosureFeed()
    scheduler = Scheduler(
        config=SchedulerConfig(geometry_height=2, indicate_hidden=False, show_age_threshold=None),
        clock=FakeClock(),
        idle=FakeIdle(),
        display=FakeDisplay(),
        timer=FakeTimer(),
        action_runner=NoopRunner(),
        close_listener=feed,
    )

    def factory(payload: Mapping[str, Any]) -> Notification:
        return build_notification(payload, TIMEOUTS, now=1_000)

    return ControlServer(scheduler, factory, feed, "/unused.sock"), scheduler, feed


def test_notify_and_count() -> None:
    server, _, _ = _server()

    for summary in ("a", "b", "c"):
        response = server.handle_request({"command": "notify", "summary": summary})
        assert response["ok"]

    assert server.handle_request({"command": "count"}) == {
        "ok": True,
        "displayed": 2,
        "pending": 1,
        "history": 0,
    }


def test_close_defaults_to_closed_by_request() -> None:
    server, scheduler, _ = _server()
    notification_id = server.handle_request({"command": "notify", "summary": "a"})["id"]

    assert server.handle_request({"command": "close", "id": notification_id}) == {"ok": True, "closed": True}
    assert server.handle_request({"command": "close", "id": notification_id}) == {"ok": True, "closed": False}
    assert scheduler.counts()["history"] == 1


def test_pause_toggle_and_history_pop() -> None:
    server, scheduler, _ = _server()
    server.handle_request({"command": "notify", "summary": "a"})
    server.handle_request({"command": "close-all"})

    assert server.handle_request({"command": "history-pop"}) == {"ok": True, "id": 1, "text": "a"}
    assert server.handle_request({"command": "history-pop"}) == {"ok": True, "id": None}
    assert server.handle_request({"command": "pause"}) == {"ok": True, "paused": True}
    assert scheduler.counts()["displayed"] == 0
    assert server.handle_request({"command": "toggle"}) == {"ok": True, "paused": False}
    assert server.handle_request({"command": "is-paused"}) == {"ok": True, "paused": False}


def test_bad_requests_get_error_responses() -> None:
    server, _, _ = _server()

    assert server._dispatch_line(b"not json")["ok"] is False
    assert server._dispatch_line(b"[1, 2]")["ok"] is False
    assert "Unknown command" in server._dispatch_line(b'{"command": "explode"}')["error"]
    assert server._dispatch_line(b'{"command": "notify"}')["ok"] is False
    assert server._dispatch_line(b'{"command": "close", "id": "x"}')["ok"] is False
    assert server._dispatch_line(b'{"command": "close", "id": 1, "reason": 9}')["ok"] is False
    assert server._dispatch_line(b'{"command": "subscribe"}') is None


def test_closure_feed_fans_out_events() -> None:
    async def scenario() -> list[dict]:
        feed = ClosureFeed()
        first = feed.subscribe()
        second = feed.subscribe()
        feed.unsubscribe(second)
        feed.notification_closed(4, CloseReason.EXPIRED)
        return [first.get_nowait(), second.qsize()]

    event, leftover = asyncio.run(scenario())
    assert event == {"event": "closed", "id": 4, "reason": 1}
    assert leftover == 0


def test_slow_subscriber_is_cut_off() -> None:
    async def scenario() -> tuple[list, int]:
        feed = ClosureFeed(queue_size=2)
        slow = feed.subscribe()
        for notification_id in range(1, 4):
            feed.notification_closed(notification_id, CloseReason.EXPIRED)
        feed.notification_closed(9, CloseReason.EXPIRED)
        drained = []
        while not slow.empty():
            drained.append(slow.get_nowait())
        return drained, len(feed._subscribers)

    drained, remaining = asyncio.run(scenario())
    assert drained == [None]
    assert remaining == 0


def test_feed_close_keeps_queued_events_before_end() -> None:
    async def scenario() -> list:
        feed = ClosureFeed()
        queue = feed.subscribe()
        feed.notification_closed(1, CloseReason.DISMISSED)
        feed.close()
        return [queue.get_nowait(), queue.get_nowait()]

    assert asyncio.run(scenario()) == [{"event": "closed", "id": 1, "reason": 2}, None]


async def _read_events(reader: asyncio.StreamReader) -> list[dict]:
    events = []
    while True:
        line = await asyncio.wait_for(reader.readline(), timeout=5)
        if not line:
            return events
        events.append(json.loads(line))


def _socket_server(tmp_path) -> tuple[ControlServer, Scheduler]:
    _, scheduler, feed = _server()

    def factory(payload: Mapping[str, Any]) -> Notification:
        return build_notification(payload, TIMEOUTS, now=1_000)

    return ControlServer(scheduler, factory, feed, str(tmp_path / "ctl.sock")), scheduler


def test_socket_round_trip_and_closure_stream(tmp_path) -> None:
    server, _ = _socket_server(tmp_path)

    async def scenario() -> tuple[dict, dict, list[dict]]:
        await server.start()
        reader, writer = await asyncio.open_unix_connection(server.socket_path)
        writer.write(b'{"command": "subscribe"}\n')
        await writer.drain()
        subscribed = json.loads(await reader.readline())

        created = await send_command(server.socket_path, {"command": "notify", "summary": "hi"})
        await send_command(server.socket_path, {"command": "close", "id": created["id"]})
        await server.close()

        events = await _read_events(reader)
        writer.close()
        return subscribed, created, events

    subscribed, created, events = asyncio.run(scenario())

    assert subscribed == {"ok": True, "subscribed": True}
    assert created == {"ok": True, "id": 1}
    assert events == [{"event": "closed", "id": 1, "reason": 3}]
    assert not os.path.exists(tmp_path / "ctl.sock")


def test_daemon_stop_publishes_dismissed_closures(tmp_path) -> None:
    server, scheduler = _socket_server(tmp_path)

    async def scenario() -> list[dict]:
        await server.start()
        reader, writer = await asyncio.open_unix_connection(server.socket_path)
        writer.write(b'{"command": "subscribe"}\n')
        await writer.drain()
        await reader.readline()

        await send_command(server.socket_path, {"command": "notify", "summary": "a", "expire_timeout": 0})
        await send_command(server.socket_path, {"command": "notify", "summary": "b", "expire_timeout": 0})
        await _stop_daemon(scheduler, server, ScriptRunner())

        events = await _read_events(reader)
        writer.close()
        return events

    events = asyncio.run(scenario())

    assert events == [
        {"event": "closed", "id": 1, "reason": 2},
        {"event": "closed", "id": 2, "reason": 2},
    ]
    assert scheduler.counts() == {"displayed": 0, "pending": 0, "history": 0}

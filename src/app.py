"""Application entry point for the tidings notification daemon."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
from logging.handlers import RotatingFileHandler
from typing import Any, Mapping, Optional

from art import tprint

import settings as settings_module
from adapters.asyncio_timer import AsyncioTimer
from adapters.clock import MonotonicClock
from adapters.console_display import RichConsoleDisplay
from adapters.control_server import ClosureFeed, ControlServer, send_command
from adapters.idle_monitor import IdleMonitor
from adapters.request_mapper import build_notification
from adapters.script_runner import ScriptRunner
from core.models import USEC_PER_SEC, Notification, Urgency
from core.scheduler import Scheduler
from settings import Settings, load_settings

NAME = "TIDINGS"
FONT = "tarty-1"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


def _configure_logging(config: Mapping[str, Any]) -> None:
    if not config.get("enabled", False):
        return

    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    formatter = logging.Formatter(fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/tidings.log")
        if not os.path.isabs(path):
            path = os.path.join(settings_module.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)


def _startup_notification() -> Notification:
    return Notification(
        appname="tidings",
        summary="startup",
        body="tidings is up and running",
        urgency=Urgency.LOW,
        timeout=10 * USEC_PER_SEC,
    )


async def _stop_daemon(scheduler: Scheduler, server: ControlServer, runner: ScriptRunner) -> None:
    # Shutdown publishes a dismissed closure per live notification; the
    # server must stay up until subscribers have received them.
    scheduler.shutdown()
    await server.close()
    await runner.drain()


async def _serve(settings: Settings) -> None:
    logger = logging.getLogger(__name__)
    loop = asyncio.get_running_loop()

    clock = MonotonicClock()
    feed = ClosureFeed()
    runner = ScriptRunner()
    display = RichConsoleDisplay(
        clock,
        age_threshold=settings.scheduler.show_age_threshold,
        indicate_hidden=settings.scheduler.indicate_hidden,
    )
    scheduler = Scheduler(
        config=settings.scheduler,
        clock=clock,
        idle=IdleMonitor(settings.idle_threshold),
        display=display,
        timer=AsyncioTimer(loop),
        action_runner=runner,
        close_listener=feed,
    )

    def factory(payload: Mapping[str, Any]) -> Notification:
        return build_notification(payload, settings.timeouts, clock.now(), script_for=settings.script_for)

    server = ControlServer(scheduler, factory, feed, settings.socket_path)
    await server.start()

    stop = asyncio.Event()
    # SIGUSR1/SIGUSR2 pause and resume the display; TERM/INT quit cleanly.
    handlers = {
        signal.SIGUSR1: scheduler.pause,
        signal.SIGUSR2: scheduler.resume,
        signal.SIGTERM: stop.set,
        signal.SIGINT: stop.set,
    }
    for signum, callback in handlers.items():
        loop.add_signal_handler(signum, callback)

    if settings.startup_notification:
        scheduler.submit(_startup_notification())

    logger.info("Daemon ready. Listening for notifications...")
    scheduler.run()
    try:
        await stop.wait()
    finally:
        logger.info("Shutting down")
        for signum in handlers:
            loop.remove_signal_handler(signum)
        await _stop_daemon(scheduler, server, runner)


def _run(config_path: Optional[str]) -> None:
    _print_banner()
    settings = load_settings(config_path)
    _configure_logging(settings.logging)
    logging.getLogger(__name__).info("Starting tidings")
    asyncio.run(_serve(settings))


def _build_request(args: argparse.Namespace) -> dict[str, Any]:
    if args.command == "notify":
        request: dict[str, Any] = {
            "command": "notify",
            "summary": args.summary,
            "body": args.body,
            "appname": args.app,
            "urgency": args.urgency,
            "expire_timeout": args.timeout,
            "transient": args.transient,
            "history_ignore": args.history_ignore,
        }
        if args.icon:
            request["icon"] = args.icon
        return request
    if args.command == "close":
        return {"command": "close", "id": args.id}
    return {"command": args.command}


def _print_response(command: str, response: Mapping[str, Any]) -> None:
    if command == "notify":
        print(response["id"])
    elif command in {"close", "close-all"}:
        print(f"closed: {response['closed']}")
    elif command == "history-pop":
        if response.get("id") is None:
            print("history is empty")
        else:
            print(f"{response['id']}: {response['text']}")
    elif command == "count":
        print(
            f"displayed: {response['displayed']}  "
            f"pending: {response['pending']}  "
            f"history: {response['history']}"
        )
    else:
        print("paused" if response.get("paused") else "running")


def _control(args: argparse.Namespace) -> None:
    settings = load_settings(args.config)
    response = asyncio.run(send_command(settings.socket_path, _build_request(args)))
    if not response.get("ok"):
        raise RuntimeError(response.get("error", "request failed"))
    _print_response(args.command, response)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tidings")
    parser.add_argument("--config", help="Path to config.json (defaults to $TIDINGS_CONFIG)")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the notification daemon")

    notify = subparsers.add_parser("notify", help="Send a notification to the daemon")
    notify.add_argument("summary")
    notify.add_argument("body", nargs="?", default="")
    notify.add_argument("--app", default="tidings")
    notify.add_argument("--icon")
    notify.add_argument("--urgency", choices=["low", "normal", "critical"], default="normal")
    notify.add_argument(
        "--timeout",
        type=int,
        default=-1,
        help="Milliseconds until expiry; 0 is sticky, -1 uses the configured default",
    )
    notify.add_argument("--transient", action="store_true", help="Expire even while the user is idle")
    notify.add_argument("--history-ignore", action="store_true", help="Do not keep in history")

    close = subparsers.add_parser("close", help="Close a notification by id")
    close.add_argument("id", type=int)

    subparsers.add_parser("close-all", help="Close every displayed and pending notification")
    subparsers.add_parser("history-pop", help="Redisplay the most recently closed notification")
    subparsers.add_parser("pause", help="Stop displaying notifications")
    subparsers.add_parser("resume", help="Resume displaying notifications")
    subparsers.add_parser("toggle", help="Toggle the paused state")
    subparsers.add_parser("is-paused", help="Print whether the display is paused")
    subparsers.add_parser("count", help="Print queue sizes")
    return parser


def main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command in (None, "run"):
        _run(args.config)
        return
    try:
        _control(args)
    except RuntimeError as exc:
        parser.exit(1, f"tidings: {exc}\n")


if __name__ == "__main__":
    main()

"""Shared notification formatting helpers.

The console renderer uses the markup form; control responses (and so the
CLI) use the plain one-line form.
"""

from __future__ import annotations

from typing import Optional

from rich.markup import escape

from core.models import USEC_PER_SEC, Notification, Urgency

URGENCY_STYLES = {
    Urgency.LOW: "dim",
    Urgency.NORMAL: "bold",
    Urgency.CRITICAL: "bold white on red",
}


def format_age(age_us: int) -> str:
    """Return a compact "how long ago" label, e.g. ``1h 4m old``."""

    seconds = max(age_us, 0) // USEC_PER_SEC
    hours, remainder = divmod(seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    if hours:
        return f"{hours}h {minutes}m old"
    if minutes:
        return f"{minutes}m {seconds}s old"
    return f"{seconds}s old"


def age_label(notification: Notification, now: int, age_threshold: Optional[int]) -> str:
    """Return the age label once the notification is older than the threshold."""

    if age_threshold is None:
        return ""
    age = now - notification.timestamp
    if age <= age_threshold:
        return ""
    return format_age(age)


def _format_plain(notification: Notification, age: str) -> str:
    head = notification.summary
    if notification.appname:
        head = f"{notification.appname}: {head}"
    parts = [head]
    if notification.body:
        parts.append(notification.body)
    if age:
        parts.append(f"({age})")
    return " ".join(parts)


def _format_markup(notification: Notification, age: str) -> str:
    style = URGENCY_STYLES.get(notification.urgency, "bold")
    head = f"[{style}]{escape(notification.summary)}[/]"
    if notification.appname:
        head = f"[cyan]{escape(notification.appname)}[/] {head}"
    lines = [head]
    if notification.body:
        lines.append(escape(notification.body))
    if age:
        lines.append(f"[italic]({escape(age)})[/]")
    return "\n".join(lines)


def format_notification(
    notification: Notification,
    now: int,
    age_threshold: Optional[int],
    mode: str,
) -> str:
    """Return the notification formatted for the requested mode."""

    age = age_label(notification, now, age_threshold)
    if mode == "plain":
        return _format_plain(notification, age)
    if mode == "markup":
        return _format_markup(notification, age)
    raise ValueError(f"Unsupported notification format: {mode}")


def format_hidden_indicator(hidden_count: int) -> str:
    return f"({hidden_count} more)" if hidden_count > 0 else ""

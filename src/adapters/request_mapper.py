"""Request-to-core notification mapping adapter.

This keeps wire payload details out of the core scheduler. Payloads use
freedesktop-style conventions: ``expire_timeout`` is in milliseconds,
-1 picks the configured default for the urgency and 0 means sticky.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping, Optional

from core.models import Notification, Urgency

_URGENCY_NAMES = {urgency.name.lower(): urgency for urgency in Urgency}


def parse_urgency(raw: Any) -> Urgency:
    """Accept an urgency name (``low``) or level (``0``)."""

    if raw is None:
        return Urgency.NORMAL
    if isinstance(raw, bool):
        raise ValueError(f"Invalid urgency: {raw!r}")
    if isinstance(raw, int):
        try:
            return Urgency(raw)
        except ValueError:
            raise ValueError(f"Invalid urgency: {raw!r}") from None
    if isinstance(raw, str) and raw.lower() in _URGENCY_NAMES:
        return _URGENCY_NAMES[raw.lower()]
    raise ValueError(f"Invalid urgency: {raw!r}")


def _optional_str(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"Field '{key}' must be a string")
    return value


def _flag(payload: Mapping[str, Any], key: str) -> bool:
    value = payload.get(key, False)
    if not isinstance(value, bool):
        raise ValueError(f"Field '{key}' must be a boolean")
    return value


def _timeout_us(raw: Any, urgency: Urgency, default_timeouts: Mapping[Urgency, int]) -> int:
    if raw is None:
        raw = -1
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ValueError("Field 'expire_timeout' must be an integer (milliseconds)")
    if raw < 0:
        return default_timeouts.get(urgency, 0)
    return raw * 1000


def build_notification(
    payload: Mapping[str, Any],
    default_timeouts: Mapping[Urgency, int],
    now: int,
    script_for: Optional[Callable[[str], Optional[str]]] = None,
) -> Notification:
    """Build a Notification from a request payload.

    ``default_timeouts`` maps urgency to microseconds. ``script_for``
    resolves the configured first-display script from the appname.
    """

    summary = payload.get("summary")
    if not isinstance(summary, str) or not summary:
        raise ValueError("Field 'summary' is required")

    urgency = parse_urgency(payload.get("urgency"))
    appname = _optional_str(payload, "appname") or _optional_str(payload, "app")

    return Notification(
        summary=summary,
        body=_optional_str(payload, "body"),
        appname=appname,
        icon=_optional_str(payload, "icon"),
        category=_optional_str(payload, "category"),
        urgency=urgency,
        timeout=_timeout_us(payload.get("expire_timeout"), urgency, default_timeouts),
        timestamp=now,
        transient=_flag(payload, "transient"),
        history_ignore=_flag(payload, "history_ignore"),
        script=script_for(appname) if script_for else None,
    )

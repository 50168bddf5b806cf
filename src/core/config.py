"""Core configuration dataclasses.

Config parsing lives in ``settings``; these dataclasses define the shape
the core expects so the app layer can build it safely.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class SchedulerConfig:
    """Layout and retention settings consulted on every tick.

    ``show_age_threshold`` is in microseconds; None disables the age rule.
    ``history_length`` of 0 keeps history unbounded.
    """

    geometry_height: int = 0
    indicate_hidden: bool = True
    sticky_history: bool = True
    history_length: int = 20
    show_age_threshold: Optional[int] = 60_000_000
    sort: bool = True

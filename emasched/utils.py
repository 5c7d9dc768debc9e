"""Utility helpers for schedule building."""

from __future__ import annotations

import json
import re
from typing import Any, Union

MINUTES_PER_DAY = 1440

_HHMM_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")


def parse_time_of_day(value: Union[int, str]) -> int:
    """Return minutes after midnight for ``555`` or ``"09:15"``."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid time of day: {value!r}")
    if isinstance(value, int):
        minutes = value
    else:
        text = str(value)
        if match := _HHMM_RE.match(text):
            hour, minute = int(match.group(1)), int(match.group(2))
            if minute >= 60:
                raise ValueError(f"Invalid time of day: {text!r}")
            minutes = hour * 60 + minute
        elif text.strip().isdigit():
            minutes = int(text.strip())
        else:
            raise ValueError(f"Invalid time of day: {text!r}")
    if not 0 <= minutes <= MINUTES_PER_DAY:
        raise ValueError(f"Time of day out of range: {value!r}")
    return minutes


def format_clock(minutes: int) -> str:
    """Format minutes after midnight as ``HH:MM`` (24 hour)."""
    hour, minute = divmod(int(minutes), 60)
    return f"{hour:02d}:{minute:02d}"


def format_time(minutes: int) -> str:
    """Format minutes after midnight as ``9:15 AM``."""
    hour, minute = divmod(int(minutes), 60)
    hour %= 24
    h = hour % 12 or 12
    ampm = "AM" if hour < 12 else "PM"
    return f"{h}:{minute:02d} {ampm}"


def pad2(n: int) -> str:
    return f"{n:02d}"


def to_json(payload: Any) -> str:
    return json.dumps(payload, indent=2, sort_keys=True)

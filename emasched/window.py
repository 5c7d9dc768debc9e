"""Sampling window layout."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Tuple

from .utils import MINUTES_PER_DAY, format_clock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Window:
    id: int
    start: int
    duration: int

    @property
    def end(self) -> int:
        return self.start + self.duration

    def jittered(self, jitter: int) -> Tuple[int, int]:
        return self.start - jitter, self.end + jitter

    def describe(self) -> str:
        return f"{format_clock(self.start)}-{format_clock(self.end)} ({self.duration} min)"


@dataclass(frozen=True)
class WindowLayout:
    """Ordered windows plus the jitter radius applied to all of them.

    An empty ``windows`` tuple means "not configured"; ``warnings`` says why.
    """

    windows: Tuple[Window, ...] = ()
    jitter: int = 0
    warnings: Tuple[str, ...] = field(default=())

    @property
    def is_configured(self) -> bool:
        return bool(self.windows)

    def __len__(self) -> int:
        return len(self.windows)

    def to_dict(self) -> dict:
        return {
            "jitter": self.jitter,
            "windows": [
                {"id": w.id, "start": w.start, "duration": w.duration, "end": w.end}
                for w in self.windows
            ],
            "warnings": list(self.warnings),
        }


def _empty(jitter: int, *warnings: str) -> WindowLayout:
    for message in warnings:
        logger.warning("Window layout not configured: %s", message)
    return WindowLayout(windows=(), jitter=jitter, warnings=tuple(warnings))


def explicit_layout(windows: Iterable[Window], jitter: int = 0) -> WindowLayout:
    """Validate user-entered windows.

    Overlaps are left for the coverage diagnostics to flag.
    """
    items = list(windows)
    problems: List[str] = []
    if jitter < 0:
        problems.append(f"jitter must be >= 0, got {jitter}")
    for idx, window in enumerate(items, start=1):
        if window.duration <= 0:
            problems.append(f"window {idx} has non-positive duration {window.duration}")
        if not 0 <= window.start < MINUTES_PER_DAY:
            problems.append(f"window {idx} starts outside the day at minute {window.start}")
    if not items:
        problems.append("no windows defined")
    if problems:
        return _empty(max(jitter, 0), *problems)
    return WindowLayout(windows=tuple(items), jitter=jitter)


def derived_layout(start_bound: int, end_bound: int, sample_count: int, min_gap: int) -> WindowLayout:
    """Lay out ``sample_count`` equal windows between two outer bounds.

    The jitter radius is half the minimum gap, and the usable span is inset by
    it on both ends so jittered draws stay inside the bounds. Adjacent windows
    are separated by exactly ``min_gap``.
    """
    jitter = max(min_gap, 0) // 2
    inner_start = start_bound + jitter
    inner_end = end_bound - jitter
    total_span = inner_end - inner_start

    if sample_count < 1:
        return _empty(jitter, f"sample count must be at least 1, got {sample_count}")
    if min_gap < 0:
        return _empty(jitter, f"minimum gap must be >= 0, got {min_gap}")
    if total_span <= 0:
        return _empty(jitter, f"no usable time between {format_clock(start_bound)} and {format_clock(end_bound)}")

    duration = (total_span - (sample_count - 1) * min_gap) // sample_count
    if duration <= 0:
        return _empty(jitter, f"{sample_count} windows with a {min_gap} minute gap do not fit in {total_span} minutes")

    windows = tuple(
        Window(id=i + 1, start=inner_start + i * (duration + min_gap), duration=duration)
        for i in range(sample_count)
    )
    logger.debug("Derived %d windows of %d min, jitter %d", sample_count, duration, jitter)
    return WindowLayout(windows=windows, jitter=jitter)

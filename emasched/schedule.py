"""Expansion of windows into per-day sample instances."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple

from .window import Window


@dataclass(frozen=True)
class SampleInstance:
    day: int
    window_index: int
    start: int
    duration: int

    @property
    def end(self) -> int:
        return self.start + self.duration

    @property
    def day_offset(self) -> int:
        return self.day - 1

    def key(self) -> Tuple[int, int, int, int]:
        return self.day, self.window_index, self.start, self.duration


def expand_schedule(windows: Sequence[Window], num_days: int) -> Tuple[SampleInstance, ...]:
    """Day-major, then window order. PRNG draws are indexed by this order."""
    samples: List[SampleInstance] = []
    for day in range(1, num_days + 1):
        for idx, window in enumerate(windows, start=1):
            samples.append(SampleInstance(day=day, window_index=idx, start=window.start, duration=window.duration))
    return tuple(samples)


def schedule_days(samples: Iterable[SampleInstance]) -> int:
    return max((s.day for s in samples), default=0)


class DrawKind(Enum):
    JITTER = "jitter"
    SAMPLE = "sample"


@dataclass(frozen=True)
class DrawSlot:
    """One PRNG step after the seed transform.

    ``ordinal`` is 1-based within its kind: the day for jitter draws, the
    position in the expanded schedule for sample draws.
    """

    kind: DrawKind
    ordinal: int
    day: int
    sample: Optional[SampleInstance] = None


def draw_plan(samples: Sequence[SampleInstance], jitter: int) -> Tuple[DrawSlot, ...]:
    """Order in which the generator is advanced for one record.

    All day jitter draws come first (days 1..N), then one draw per sample in
    schedule order. The emitted field chain and the simulator both walk this.
    """
    if not samples:
        return ()
    slots: List[DrawSlot] = []
    if jitter > 0:
        for day in range(1, schedule_days(samples) + 1):
            slots.append(DrawSlot(kind=DrawKind.JITTER, ordinal=day, day=day))
    for idx, sample in enumerate(samples, start=1):
        slots.append(DrawSlot(kind=DrawKind.SAMPLE, ordinal=idx, day=sample.day, sample=sample))
    return tuple(slots)

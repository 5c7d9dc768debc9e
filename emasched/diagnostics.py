"""Coverage diagnostics: static conflict checks and Monte-Carlo sampling."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from . import lcg
from .schedule import DrawKind, SampleInstance, draw_plan, expand_schedule
from .utils import MINUTES_PER_DAY
from .window import Window, WindowLayout

logger = logging.getLogger(__name__)

DEFAULT_TRIALS = 10000
BIN_WIDTH = 5
DISPLAY_MARGIN = 60


class ConflictKind(Enum):
    OVERLAP = "overlap"
    DEAD_ZONE = "dead_zone"


@dataclass(frozen=True)
class Conflict:
    kind: ConflictKind
    start: int
    end: int
    first_window: int
    second_window: int

    @property
    def length(self) -> int:
        return self.end - self.start

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "start": self.start,
            "end": self.end,
            "windows": [self.first_window, self.second_window],
        }


def find_conflicts(windows: Sequence[Window], jitter: int) -> Tuple[Conflict, ...]:
    """Compare jittered extents of adjacent windows, sorted by start.

    Window numbers in the result are 1-based positions in the input order.
    Extents that exactly touch produce nothing.
    """
    ordered = sorted(enumerate(windows, start=1), key=lambda item: item[1].start)
    conflicts: List[Conflict] = []
    for (prev_idx, prev), (next_idx, nxt) in zip(ordered, ordered[1:]):
        prev_end = prev.end + jitter
        next_start = nxt.start - jitter
        if prev_end > next_start:
            conflicts.append(Conflict(ConflictKind.OVERLAP, next_start, prev_end, prev_idx, next_idx))
        elif prev_end < next_start:
            conflicts.append(Conflict(ConflictKind.DEAD_ZONE, prev_end, next_start, prev_idx, next_idx))
    return tuple(conflicts)


def _walk(raw_seed: Any, samples: Sequence[SampleInstance], jitter: int) -> List[Any]:
    """Time of day drawn for every sample, in schedule order.

    ``raw_seed`` may be an int (one record) or an int64 array (many trials).
    """
    state = lcg.seed_transform(raw_seed)
    day_offsets: Dict[int, Any] = {}
    times: List[Any] = []
    for slot in draw_plan(samples, jitter):
        state = lcg.step(state)
        if slot.kind is DrawKind.JITTER:
            day_offsets[slot.day] = lcg.jitter_offset(state, jitter)
            continue
        sample = slot.sample
        offset = day_offsets.get(sample.day, 0)
        times.append(sample.start + offset + lcg.bounded(state, sample.duration))
    return times


def simulate_record(raw_seed: int, samples: Sequence[SampleInstance], jitter: int) -> List[int]:
    """Minutes after the start timestamp at which each sample is delivered."""
    times = _walk(int(raw_seed), samples, jitter)
    return [sample.day_offset * MINUTES_PER_DAY + int(t) for sample, t in zip(samples, times)]


@dataclass
class MonteCarloResult:
    """Sampled times of day, one row per trial and one column per sample."""

    times: np.ndarray
    window_index: np.ndarray
    trials: int

    @property
    def is_empty(self) -> bool:
        return self.times.size == 0

    def times_for_window(self, window: int) -> np.ndarray:
        return self.times[:, self.window_index == window].ravel()

    def window_stats(self) -> List[Dict[str, float]]:
        stats = []
        for window in sorted(set(int(w) for w in self.window_index)):
            values = self.times_for_window(window)
            stats.append(
                {
                    "window": window,
                    "count": int(values.size),
                    "min": int(values.min()),
                    "max": int(values.max()),
                    "mean": float(values.mean()),
                }
            )
        return stats


def run_monte_carlo(
    windows: Sequence[Window],
    jitter: int,
    num_days: int,
    trials: int = DEFAULT_TRIALS,
    rng_seed: Optional[int] = None,
    seeds: Optional[np.ndarray] = None,
) -> MonteCarloResult:
    """Simulate many independent records, each from a random 32-bit seed."""
    samples = expand_schedule(windows, num_days)
    if seeds is None:
        rng = np.random.default_rng(rng_seed)
        seeds = rng.integers(0, lcg.LCG_M, size=trials, dtype=np.int64)
    else:
        seeds = np.asarray(seeds, dtype=np.int64)
        trials = int(seeds.size)

    if not samples or trials == 0:
        return MonteCarloResult(
            times=np.empty((trials, 0), dtype=np.int64),
            window_index=np.empty(0, dtype=np.int64),
            trials=trials,
        )

    columns = _walk(seeds, samples, jitter)
    times = np.stack([np.asarray(col, dtype=np.int64) for col in columns], axis=1)
    window_index = np.array([s.window_index for s in samples], dtype=np.int64)
    logger.debug("Monte-Carlo: %d trials x %d samples", trials, len(samples))
    return MonteCarloResult(times=times, window_index=window_index, trials=trials)


def display_range(windows: Sequence[Window], jitter: int) -> Tuple[int, int]:
    """Hour-aligned range covering every jittered window plus an hour margin."""
    lo = min(w.start for w in windows) - jitter - DISPLAY_MARGIN
    hi = max(w.end for w in windows) + jitter + DISPLAY_MARGIN
    return (lo // 60) * 60, -(-hi // 60) * 60


@dataclass
class Histogram:
    start: int
    end: int
    edges: np.ndarray
    counts: np.ndarray  # shape (windows, bins)
    bin_width: int = BIN_WIDTH

    @property
    def totals(self) -> np.ndarray:
        return self.counts.sum(axis=0)

    def empty_bins(self) -> List[Tuple[int, int]]:
        """Bins between the first and last non-empty bin that were never hit."""
        totals = self.totals
        hit = np.nonzero(totals)[0]
        if hit.size == 0:
            return []
        return [
            (int(self.edges[i]), int(self.edges[i + 1]))
            for i in range(hit[0], hit[-1] + 1)
            if totals[i] == 0
        ]


def histogram(result: MonteCarloResult, windows: Sequence[Window], jitter: int, bin_width: int = BIN_WIDTH) -> Histogram:
    start, end = display_range(windows, jitter)
    edges = np.arange(start, end + bin_width, bin_width)
    counts = np.zeros((len(windows), len(edges) - 1), dtype=np.int64)
    for row in range(len(windows)):
        values = result.times_for_window(row + 1)
        if values.size:
            counts[row], _ = np.histogram(values, bins=edges)
    return Histogram(start=start, end=end, edges=edges, counts=counts, bin_width=bin_width)


@dataclass
class CoverageReport:
    layout: WindowLayout
    num_days: int
    conflicts: Tuple[Conflict, ...] = ()
    monte_carlo: Optional[MonteCarloResult] = None
    histogram: Optional[Histogram] = None
    warnings: Tuple[str, ...] = field(default=())

    @property
    def is_clean(self) -> bool:
        return not self.conflicts

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "layout": self.layout.to_dict(),
            "num_days": self.num_days,
            "conflicts": [c.to_dict() for c in self.conflicts],
            "warnings": list(self.warnings),
        }
        if self.monte_carlo is not None and not self.monte_carlo.is_empty:
            payload["trials"] = self.monte_carlo.trials
            payload["window_stats"] = self.monte_carlo.window_stats()
        if self.histogram is not None:
            payload["histogram"] = {
                "start": self.histogram.start,
                "end": self.histogram.end,
                "bin_width": self.histogram.bin_width,
                "counts": self.histogram.counts.tolist(),
            }
        return payload


def coverage_report(
    layout: WindowLayout,
    num_days: int,
    trials: int = DEFAULT_TRIALS,
    rng_seed: Optional[int] = None,
) -> CoverageReport:
    if not layout.is_configured or num_days < 1:
        warnings = layout.warnings
        if num_days < 1 and layout.is_configured:
            warnings = warnings + (f"num_days must be at least 1, got {num_days}",)
        warnings = warnings or ("no schedule configured",)
        return CoverageReport(layout=layout, num_days=num_days, warnings=tuple(warnings))

    conflicts = find_conflicts(layout.windows, layout.jitter)
    for conflict in conflicts:
        logger.info(
            "%s between windows %d and %d: %d-%d",
            conflict.kind.value,
            conflict.first_window,
            conflict.second_window,
            conflict.start,
            conflict.end,
        )
    result = run_monte_carlo(layout.windows, layout.jitter, num_days, trials=trials, rng_seed=rng_seed)
    hist = histogram(result, layout.windows, layout.jitter)
    return CoverageReport(
        layout=layout,
        num_days=num_days,
        conflicts=conflicts,
        monte_carlo=result,
        histogram=hist,
        warnings=layout.warnings,
    )

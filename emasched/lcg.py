"""Linear congruential generator shared by the simulator and the emitted fields."""

from __future__ import annotations

from typing import Any

# Numerical Recipes constants.
LCG_A = 1664525
LCG_C = 1013904223
LCG_M = 2**32

# Number of steps applied to a raw seed before the first draw.
WARMUP_STEPS = 3


def step(current: Any) -> Any:
    """Advance the generator by one step.

    Accepts a Python int or a numpy ``int64`` array; the arithmetic is the same
    for both, so vectorised simulation and scalar evaluation agree bit for bit.
    """
    return (LCG_A * current + LCG_C) % LCG_M


def advance(current: Any, count: int) -> Any:
    for _ in range(count):
        current = step(current)
    return current


def seed_transform(raw_seed: Any) -> Any:
    """Decorrelate a raw user seed with the fixed warm-up."""
    return advance(raw_seed, WARMUP_STEPS)


def bounded(draw: Any, span: int) -> Any:
    """Reduce a draw into ``[0, span)`` using the low-order modulo."""
    if span <= 0:
        raise ValueError(f"span must be positive, got {span}")
    return draw % span


def jitter_offset(draw: Any, jitter: int) -> Any:
    """Map a draw onto ``[-jitter, jitter)``; zero when jitter is disabled."""
    if jitter <= 0:
        return 0 * draw
    return bounded(draw, 2 * jitter) - jitter

"""Calculation-field chain that reproduces the generator inside REDCap.

The host engine has no loops, so every generator step is its own field that
names the previous one. Fields are emitted in the order of
:func:`emasched.schedule.draw_plan`, which the simulator walks too.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from . import lcg
from .config import NamingConfig
from .schedule import DrawKind, SampleInstance, draw_plan
from .utils import MINUTES_PER_DAY

logger = logging.getLogger(__name__)

_REF_RE = re.compile(r"\[([A-Za-z0-9_]+)\]")


class StepKind(Enum):
    SEED = "seed"
    JITTER_DRAW = "jitter_draw"
    JITTER_OFFSET = "jitter_offset"
    SAMPLE_DRAW = "sample_draw"
    DELIVERY = "delivery"


@dataclass(frozen=True)
class CalcStep:
    """One calculation field.

    ``depends_on`` is the previous link of the generator chain: the prior draw
    for draws and offsets, the seed input for the seed, and the sample draw
    for a delivery field. :meth:`reads` lists every field the step reads.
    """

    name: str
    expression: str
    depends_on: Optional[str]
    kind: StepKind
    label: str
    day: Optional[int] = None
    sample: Optional[SampleInstance] = None

    @property
    def is_calc(self) -> bool:
        return self.kind is not StepKind.DELIVERY

    def reads(self, naming: NamingConfig) -> Tuple[str, ...]:
        names = list(dict.fromkeys(_REF_RE.findall(self.expression)))
        if self.kind is StepKind.DELIVERY:
            names.insert(0, naming.start_field)
        return tuple(names)

    def annotation(self, naming: NamingConfig) -> str:
        if self.kind is StepKind.DELIVERY:
            return f"@CALCDATE([{naming.start_field}], {self.expression}, 'm')"
        return "@HIDDEN"


@dataclass(frozen=True)
class ScheduleArtifact:
    steps: Tuple[CalcStep, ...] = ()
    samples: Tuple[SampleInstance, ...] = ()
    jitter: int = 0
    naming: NamingConfig = field(default_factory=NamingConfig)

    @property
    def is_empty(self) -> bool:
        return not self.steps

    def __iter__(self) -> Iterator[CalcStep]:
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)

    def step(self, name: str) -> CalcStep:
        for item in self.steps:
            if item.name == name:
                return item
        raise KeyError(name)

    def of_kind(self, kind: StepKind) -> List[CalcStep]:
        return [item for item in self.steps if item.kind is kind]

    def events(self) -> List[Tuple[int, int, str]]:
        """Distinct (day, window, event name) in schedule order."""
        seen: Dict[str, Tuple[int, int, str]] = {}
        for sample in self.samples:
            name = self.naming.event_name(sample.day, sample.window_index)
            seen.setdefault(name, (sample.day, sample.window_index, name))
        return list(seen.values())

    def to_dict(self) -> Dict[str, object]:
        return {
            "jitter": self.jitter,
            "steps": [
                {
                    "name": item.name,
                    "kind": item.kind.value,
                    "expression": item.expression,
                    "depends_on": item.depends_on,
                    "reads": list(item.reads(self.naming)),
                    "label": item.label,
                }
                for item in self.steps
            ],
            "samples": [
                {"day": s.day, "window": s.window_index, "start": s.start, "duration": s.duration}
                for s in self.samples
            ],
        }


def ref(name: str) -> str:
    return f"[{name}]"


def step_expression(previous: str, naming: NamingConfig) -> str:
    """Textual form of :func:`emasched.lcg.step` applied to ``previous``."""
    a, c, m = ref(naming.field_a), ref(naming.field_c), ref(naming.field_m)
    return f"mod((({a} * {previous}) + {c}), {m})"


def seed_expression(naming: NamingConfig) -> str:
    expression = ref(naming.seed_input_field)
    for _ in range(lcg.WARMUP_STEPS):
        expression = step_expression(expression, naming)
    return expression


def jitter_offset_expression(draw_field: str, jitter: int) -> str:
    return f"mod({ref(draw_field)}, {2 * jitter}) - {jitter}"


def delivery_expression(sample: SampleInstance, rand_field: str, offset_field: Optional[str]) -> str:
    """Minutes after the start timestamp for one sample.

    The jitter term goes last so the ``(d * 1440) + start + mod(...)`` prefix
    stays parseable on import.
    """
    expression = (
        f"({sample.day_offset} * {MINUTES_PER_DAY}) + {sample.start} + mod({ref(rand_field)}, {sample.duration})"
    )
    if offset_field is not None:
        expression += f" + {ref(offset_field)}"
    return expression


def emit_artifact(samples: Sequence[SampleInstance], jitter: int, naming: Optional[NamingConfig] = None) -> ScheduleArtifact:
    naming = naming or NamingConfig()
    if not samples:
        logger.warning("No samples scheduled; emitting an empty artifact")
        return ScheduleArtifact(steps=(), samples=(), jitter=jitter, naming=naming)

    steps: List[CalcStep] = [
        CalcStep(
            name=naming.seed_field,
            expression=seed_expression(naming),
            depends_on=naming.seed_input_field,
            kind=StepKind.SEED,
            label="Seed (processed)",
        )
    ]
    previous = naming.seed_field
    offsets: Dict[int, str] = {}
    draws: Dict[int, str] = {}

    for slot in draw_plan(samples, jitter):
        if slot.kind is DrawKind.JITTER:
            name = naming.jitter_name(slot.day)
            label = f"Jitter draw day {slot.day}"
            steps.append(CalcStep(name, step_expression(ref(previous), naming), previous, StepKind.JITTER_DRAW, label, day=slot.day))
            offset_name = naming.jitter_offset_name(slot.day)
            steps.append(
                CalcStep(
                    offset_name,
                    jitter_offset_expression(name, jitter),
                    name,
                    StepKind.JITTER_OFFSET,
                    f"Jitter offset day {slot.day}",
                    day=slot.day,
                )
            )
            offsets[slot.day] = offset_name
        else:
            name = naming.rand_name(slot.ordinal)
            label = f"Random {slot.ordinal:02d}"
            steps.append(
                CalcStep(name, step_expression(ref(previous), naming), previous, StepKind.SAMPLE_DRAW, label, day=slot.day, sample=slot.sample)
            )
            draws[slot.ordinal] = name
        previous = name

    for ordinal, sample in enumerate(samples, start=1):
        rand_field = draws[ordinal]
        steps.append(
            CalcStep(
                name=naming.deliver_name(sample.day, sample.window_index),
                expression=delivery_expression(sample, rand_field, offsets.get(sample.day)),
                depends_on=rand_field,
                kind=StepKind.DELIVERY,
                label=f"Day {sample.day} Sample {sample.window_index}",
                day=sample.day,
                sample=sample,
            )
        )

    logger.info("Emitted %d calculation steps for %d samples", len(steps), len(samples))
    return ScheduleArtifact(steps=tuple(steps), samples=tuple(samples), jitter=jitter, naming=naming)

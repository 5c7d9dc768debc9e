"""Controller that owns the configuration and re-derives the schedule."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from .config import ScheduleConfig
from .diagnostics import DEFAULT_TRIALS, CoverageReport, coverage_report
from .emitter import ScheduleArtifact, emit_artifact
from .schedule import SampleInstance, expand_schedule
from .window import WindowLayout, derived_layout, explicit_layout

logger = logging.getLogger(__name__)


def resolve_layout(config: ScheduleConfig) -> WindowLayout:
    """Window layout for ``config``; a degenerate configuration yields an empty, warned layout."""
    if config.mode == "simple":
        simple = config.simple
        layout = derived_layout(simple.start_bound, simple.end_bound, simple.sample_count, simple.min_gap)
        if config.jitter:
            message = f"jitter {config.jitter} ignored in simple mode; it is derived from min_gap"
            logger.warning(message)
            layout = dataclasses.replace(layout, warnings=layout.warnings + (message,))
    else:
        layout = explicit_layout(config.windows, config.jitter)
    if config.num_days < 1:
        message = f"num_days must be at least 1, got {config.num_days}"
        logger.warning("Window layout not configured: %s", message)
        layout = WindowLayout(windows=(), jitter=layout.jitter, warnings=layout.warnings + (message,))
    return layout


@dataclass(frozen=True)
class ScheduleResult:
    config: ScheduleConfig
    layout: WindowLayout
    samples: Tuple[SampleInstance, ...]
    artifact: ScheduleArtifact

    @property
    def is_configured(self) -> bool:
        return not self.artifact.is_empty

    @property
    def warnings(self) -> Tuple[str, ...]:
        return self.layout.warnings

    def coverage(self, trials: int = DEFAULT_TRIALS, rng_seed: Optional[int] = None) -> CoverageReport:
        return coverage_report(self.layout, self.config.num_days, trials=trials, rng_seed=rng_seed)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "config": self.config.to_dict(),
            "layout": self.layout.to_dict(),
            "artifact": self.artifact.to_dict(),
        }


def build_schedule(config: ScheduleConfig) -> ScheduleResult:
    """Derive layout, samples and artifact from one configuration value."""
    layout = resolve_layout(config)
    samples = expand_schedule(layout.windows, config.num_days)
    artifact = emit_artifact(samples, layout.jitter, config.naming)
    return ScheduleResult(config=config, layout=layout, samples=samples, artifact=artifact)


class ScheduleBuilder:
    """Single owner of the current configuration.

    Every update produces a new configuration value and a full rebuild.
    """

    def __init__(self, config: Optional[ScheduleConfig] = None):
        self._config = (config or ScheduleConfig()).validate()
        self._result = build_schedule(self._config)

    @property
    def config(self) -> ScheduleConfig:
        return self._config

    @property
    def result(self) -> ScheduleResult:
        return self._result

    def update(self, **changes: Any) -> ScheduleResult:
        config = dataclasses.replace(self._config, **changes).validate()
        return self.replace(config)

    def update_simple(self, **changes: Any) -> ScheduleResult:
        return self.update(simple=dataclasses.replace(self._config.simple, **changes))

    def update_naming(self, **changes: Any) -> ScheduleResult:
        return self.update(naming=dataclasses.replace(self._config.naming, **changes))

    def replace(self, config: ScheduleConfig) -> ScheduleResult:
        self._config = config.validate()
        self._result = build_schedule(self._config)
        logger.debug("Rebuilt schedule: %d samples", len(self._result.samples))
        return self._result


"""Immutable schedule configuration and its JSON loader."""

from __future__ import annotations

import dataclasses
import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from .utils import pad2, parse_time_of_day
from .window import Window

MODES = ("simple", "advanced")

_IDENT_RE = re.compile(r"^[a-z][a-z0-9_]*$")
_WINDOW_RE = re.compile(r"^\s*([0-9:]+)\s*\+\s*(-?\d+)\s*$")


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class SimpleLayout:
    start_bound: int = 540
    end_bound: int = 1260
    sample_count: int = 4
    min_gap: int = 30


@dataclass(frozen=True)
class NamingConfig:
    """Identifiers used in the emitted fields, events and forms."""

    start_field: str = "ema_start_at"
    config_form: str = "ema_setup"
    survey_form: str = "ema"
    event_prefix: str = "ema"
    deliver_at_prefix: str = "ema_deliver_at"
    rand_prefix: str = "rand"
    seed_input_field: str = "seed_input"
    seed_field: str = "seed"
    jitter_prefix: str = "jitter"
    jitter_offset_prefix: str = "jitter_offset"
    enrollment_event: str = "enrollment"
    field_a: str = "a"
    field_c: str = "c"
    field_m: str = "m"
    arm_num: int = 1

    def rand_name(self, ordinal: int) -> str:
        return f"{self.rand_prefix}_{pad2(ordinal)}"

    def jitter_name(self, day: int) -> str:
        return f"{self.jitter_prefix}_{pad2(day)}"

    def jitter_offset_name(self, day: int) -> str:
        return f"{self.jitter_offset_prefix}_d{pad2(day)}"

    def deliver_name(self, day: int, window: int) -> str:
        return f"{self.deliver_at_prefix}_d{pad2(day)}_s{pad2(window)}"

    def event_name(self, day: int, window: int) -> str:
        return f"{self.event_prefix}_d{pad2(day)}_s{pad2(window)}"

    def unique_event_name(self, event_name: str) -> str:
        return f"{event_name}_arm_{self.arm_num}"

    def identifiers(self) -> Dict[str, str]:
        return {f.name: getattr(self, f.name) for f in dataclasses.fields(self) if f.name != "arm_num"}

    def validate(self) -> None:
        for key, value in self.identifiers().items():
            if not isinstance(value, str) or not _IDENT_RE.match(value):
                raise ConfigError(f"naming.{key} must be a lowercase identifier, got {value!r}")
        if not isinstance(self.arm_num, int) or self.arm_num < 1:
            raise ConfigError(f"naming.arm_num must be a positive integer, got {self.arm_num!r}")
        fixed = [self.seed_input_field, self.seed_field, self.start_field, self.field_a, self.field_c, self.field_m]
        if len(set(fixed)) != len(fixed):
            raise ConfigError("seed, start and constant field names must be distinct")
        prefixes = [self.rand_prefix, self.jitter_prefix, self.jitter_offset_prefix, self.deliver_at_prefix]
        if len(set(prefixes)) != len(prefixes):
            raise ConfigError("field prefixes must be distinct")


@dataclass(frozen=True)
class AsiConfig:
    """Automated survey invitation settings."""

    sender: str = "noreply@example.edu"
    logic: str = '[email] <> ""'
    subject: str = "EMA Survey: [event-name]"
    body: str = "<p>Please complete your EMA survey:</p>\n<p>[survey-link]</p>"


@dataclass(frozen=True)
class ScheduleConfig:
    mode: str = "simple"
    num_days: int = 7
    simple: SimpleLayout = field(default_factory=SimpleLayout)
    windows: Tuple[Window, ...] = (
        Window(id=1, start=555, duration=90),
        Window(id=2, start=795, duration=90),
    )
    jitter: int = 0
    naming: NamingConfig = field(default_factory=NamingConfig)
    asi: AsiConfig = field(default_factory=AsiConfig)

    def validate(self) -> "ScheduleConfig":
        if self.mode not in MODES:
            raise ConfigError(f"mode must be one of {', '.join(MODES)}, got {self.mode!r}")
        self.naming.validate()
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "num_days": self.num_days,
            "simple": dataclasses.asdict(self.simple),
            "windows": [{"start": w.start, "duration": w.duration} for w in self.windows],
            "jitter": self.jitter,
            "naming": dataclasses.asdict(self.naming),
            "asi": dataclasses.asdict(self.asi),
        }


def _as_int(value: Any, key: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{key} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key} must be an integer, got {value!r}") from exc


def _as_time(value: Any, key: str) -> int:
    try:
        return parse_time_of_day(value)
    except ValueError as exc:
        raise ConfigError(f"{key}: {exc}") from exc


def _check_keys(data: Mapping[str, Any], allowed: Iterable[str], section: str) -> None:
    unknown = sorted(set(data) - set(allowed))
    if unknown:
        raise ConfigError(f"Unknown {section} key(s): {', '.join(unknown)}")


def parse_window_text(text: str, window_id: int = 1) -> Window:
    """Parse ``HH:MM+DURATION`` (or ``MINUTES+DURATION``)."""
    match = _WINDOW_RE.match(text)
    if not match:
        raise ConfigError(f"Window format must be HH:MM+MINUTES, got {text!r}")
    start = _as_time(match.group(1), "window start")
    return Window(id=window_id, start=start, duration=int(match.group(2)))


def _window_from(item: Any, window_id: int) -> Window:
    if isinstance(item, str):
        return parse_window_text(item, window_id)
    if isinstance(item, Mapping):
        _check_keys(item, ("start", "duration"), "window")
        if "start" not in item or "duration" not in item:
            raise ConfigError("window entries need both start and duration")
        return Window(
            id=window_id,
            start=_as_time(item["start"], "window start"),
            duration=_as_int(item["duration"], "window duration"),
        )
    raise ConfigError(f"Unsupported window entry: {item!r}")


def _replace_section(current: Any, data: Any, section: str, times: Tuple[str, ...] = ()) -> Any:
    if not isinstance(data, Mapping):
        raise ConfigError(f"{section} must be an object")
    allowed = [f.name for f in dataclasses.fields(current)]
    _check_keys(data, allowed, section)
    changes: Dict[str, Any] = {}
    for key, value in data.items():
        default = getattr(current, key)
        if key in times:
            changes[key] = _as_time(value, f"{section}.{key}")
        elif isinstance(default, int):
            changes[key] = _as_int(value, f"{section}.{key}")
        else:
            changes[key] = str(value)
    return dataclasses.replace(current, **changes)


def config_from_dict(data: Mapping[str, Any], base: Optional[ScheduleConfig] = None) -> ScheduleConfig:
    """Overlay a JSON-style mapping onto ``base`` (defaults if omitted)."""
    config = base or ScheduleConfig()
    _check_keys(data, [f.name for f in dataclasses.fields(ScheduleConfig)], "config")
    changes: Dict[str, Any] = {}
    if "mode" in data:
        changes["mode"] = str(data["mode"])
    if "num_days" in data:
        changes["num_days"] = _as_int(data["num_days"], "num_days")
    if "jitter" in data:
        changes["jitter"] = _as_int(data["jitter"], "jitter")
    if "simple" in data:
        changes["simple"] = _replace_section(config.simple, data["simple"], "simple", ("start_bound", "end_bound"))
    if "windows" in data:
        if not isinstance(data["windows"], list):
            raise ConfigError("windows must be a list")
        changes["windows"] = tuple(_window_from(item, idx) for idx, item in enumerate(data["windows"], start=1))
    if "naming" in data:
        changes["naming"] = _replace_section(config.naming, data["naming"], "naming")
    if "asi" in data:
        changes["asi"] = _replace_section(config.asi, data["asi"], "asi")
    return dataclasses.replace(config, **changes).validate()


def load_config(path: str, base: Optional[ScheduleConfig] = None) -> ScheduleConfig:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except OSError as exc:
        raise ConfigError(f"Failed to read config: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError("Config file must contain a JSON object")
    return config_from_dict(data, base)

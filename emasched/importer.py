"""Reconstruct a schedule from a previously exported REDCap project."""

from __future__ import annotations

import csv
import io
import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .schedule import SampleInstance

logger = logging.getLogger(__name__)

DEFAULT_START = 540
DEFAULT_DURATION = 90

_EMA_NAME_RE = re.compile(r"_d(\d+)_s(\d+)$")
_CALCDATE_RE = re.compile(
    r"@CALCDATE\([^,]+,\s*\((\d+)\s*\*\s*1440\)\s*\+\s*(\d+)\s*\+\s*mod\([^,]+,\s*(\d+)\)"
)
_JITTER_OFFSET_RE = re.compile(r"^\s*mod\(\[[^\]]+\],\s*(\d+)\)\s*-\s*(\d+)\s*$")


class ImportParseError(Exception):
    pass


@dataclass(frozen=True)
class ProjectField:
    name: str
    field_type: str = ""
    annotation: str = ""
    calculation: str = ""
    form: str = ""

    @property
    def is_ema(self) -> bool:
        return _EMA_NAME_RE.search(self.name) is not None


@dataclass
class ProjectInfo:
    project_name: str
    forms: List[Dict[str, str]] = field(default_factory=list)
    events: List[Dict[str, str]] = field(default_factory=list)
    fields: List[ProjectField] = field(default_factory=list)

    @property
    def ema_fields(self) -> List[ProjectField]:
        return [f for f in self.fields if f.is_ema]

    def samples(self) -> Tuple[SampleInstance, ...]:
        return samples_from_fields(self.fields)

    def jitter(self) -> int:
        return jitter_from_fields(self.fields)

    def summary(self) -> str:
        return (
            f"{self.project_name}: {len(self.forms)} forms, {len(self.events)} events, "
            f"{len(self.ema_fields)} existing EMA fields detected"
        )


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _attr(elem: ET.Element, name: str) -> Optional[str]:
    """Look an attribute up by local name, ignoring its namespace."""
    if name in elem.attrib:
        return elem.attrib[name]
    for key, value in elem.attrib.items():
        if _local(key) == name:
            return value
    return None


def parse_project_xml(text: str) -> ProjectInfo:
    """Parse a REDCap project XML (CDISC ODM) export."""
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise ImportParseError(f"Invalid project XML: {exc}") from exc

    project_name = "Unknown Project"
    forms: List[Dict[str, str]] = []
    events: List[Dict[str, str]] = []
    fields: List[ProjectField] = []

    for elem in root.iter():
        tag = _local(elem.tag)
        if tag == "StudyName" and elem.text:
            project_name = elem.text.strip() or project_name
        elif tag == "FormDef":
            forms.append(
                {
                    "oid": _attr(elem, "OID") or "",
                    "name": _attr(elem, "FormName") or _attr(elem, "Name") or "",
                    "label": _attr(elem, "Name") or "",
                }
            )
        elif tag == "StudyEventDef":
            events.append(
                {
                    "oid": _attr(elem, "OID") or "",
                    "name": _attr(elem, "EventName") or "",
                    "unique_name": _attr(elem, "UniqueEventName") or "",
                    "arm_num": _attr(elem, "ArmNum") or "",
                }
            )
        elif tag == "ItemDef":
            fields.append(
                ProjectField(
                    name=_attr(elem, "Variable") or _attr(elem, "Name") or "",
                    field_type=_attr(elem, "FieldType") or "",
                    annotation=_attr(elem, "FieldAnnotation") or "",
                    calculation=_attr(elem, "Calculation") or "",
                )
            )

    info = ProjectInfo(project_name=project_name, forms=forms, events=events, fields=fields)
    logger.info("Loaded %s", info.summary())
    return info


def parse_data_dictionary(text: str, project_name: str = "Data dictionary") -> ProjectInfo:
    """Parse a REDCap data dictionary CSV."""
    reader = csv.DictReader(io.StringIO(text))
    if not reader.fieldnames or "Variable / Field Name" not in reader.fieldnames:
        raise ImportParseError("Data dictionary must have a 'Variable / Field Name' column")
    fields: List[ProjectField] = []
    forms: List[Dict[str, str]] = []
    seen_forms = set()
    for row in reader:
        form = (row.get("Form Name") or "").strip()
        if form and form not in seen_forms:
            seen_forms.add(form)
            forms.append({"oid": "", "name": form, "label": form})
        fields.append(
            ProjectField(
                name=(row.get("Variable / Field Name") or "").strip(),
                field_type=(row.get("Field Type") or "").strip(),
                annotation=row.get("Field Annotation") or "",
                calculation=row.get("Choices, Calculations, OR Slider Labels") or "",
                form=form,
            )
        )
    return ProjectInfo(project_name=project_name, forms=forms, fields=fields)


def parse_project_file(path: str) -> ProjectInfo:
    try:
        with open(path, "r", encoding="utf-8-sig") as handle:
            text = handle.read()
    except OSError as exc:
        raise ImportParseError(f"Failed to read project file: {exc}") from exc
    if text.lstrip().startswith("<"):
        return parse_project_xml(text)
    return parse_data_dictionary(text, project_name=path)


def sample_from_field(project_field: ProjectField) -> Optional[SampleInstance]:
    """Day and window come from the name, timing from the annotation.

    Unparseable timing falls back to 9:00 for 90 minutes.
    """
    name_match = _EMA_NAME_RE.search(project_field.name)
    if not name_match:
        return None
    day = int(name_match.group(1))
    window = int(name_match.group(2))
    start, duration = DEFAULT_START, DEFAULT_DURATION
    calc_match = _CALCDATE_RE.search(project_field.annotation)
    if calc_match:
        start = int(calc_match.group(2))
        duration = int(calc_match.group(3))
    else:
        logger.warning("Could not parse timing of %s; using defaults", project_field.name)
    return SampleInstance(day=day, window_index=window, start=start, duration=duration)


def samples_from_fields(fields: List[ProjectField]) -> Tuple[SampleInstance, ...]:
    samples = []
    for project_field in fields:
        if not project_field.is_ema:
            continue
        sample = sample_from_field(project_field)
        if sample is not None:
            samples.append(sample)
    samples.sort(key=lambda s: (s.day, s.window_index))
    return tuple(samples)


def jitter_from_fields(fields: List[ProjectField]) -> int:
    """Jitter radius of the first ``mod([draw], 2J) - J`` calc field, else 0."""
    for project_field in fields:
        match = _JITTER_OFFSET_RE.match(project_field.calculation)
        if match and int(match.group(1)) == 2 * int(match.group(2)):
            return int(match.group(2))
    return 0

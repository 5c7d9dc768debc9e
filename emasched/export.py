"""REDCap import tables built from a schedule artifact."""

from __future__ import annotations

import csv
import io
import logging
import re
from pathlib import Path
from typing import Dict, List, Sequence

from . import lcg
from .config import AsiConfig
from .emitter import ScheduleArtifact, StepKind

logger = logging.getLogger(__name__)

DICTIONARY_HEADERS = [
    "Variable / Field Name",
    "Form Name",
    "Section Header",
    "Field Type",
    "Field Label",
    "Choices, Calculations, OR Slider Labels",
    "Field Note",
    "Text Validation Type OR Show Slider Number",
    "Text Validation Min",
    "Text Validation Max",
    "Identifier?",
    "Branching Logic (Show field only if...)",
    "Required Field?",
    "Custom Alignment",
    "Question Number (surveys only)",
    "Matrix Group Name",
    "Matrix Ranking?",
    "Field Annotation",
]

EVENT_HEADERS = ["event_name", "arm_num", "unique_event_name", "custom_event_label"]
MAPPING_HEADERS = ["arm_num", "unique_event_name", "form"]
ASI_HEADERS = [
    "form_name", "event_name", "condition_surveycomplete_form_name", "condition_surveycomplete_event_name",
    "num_recurrence", "units_recurrence", "max_recurrence", "active", "email_subject", "email_content",
    "email_sender", "email_sender_display", "condition_andor", "condition_logic", "condition_send_time_option",
    "condition_send_time_lag_days", "condition_send_time_lag_hours", "condition_send_time_lag_minutes",
    "condition_send_time_lag_field", "condition_send_time_lag_field_after", "condition_send_next_day_type",
    "condition_send_next_time", "condition_send_time_exact", "delivery_type", "reminder_type",
    "reminder_timelag_days", "reminder_timelag_hours", "reminder_timelag_minutes", "reminder_nextday_type",
    "reminder_nexttime", "reminder_exact_time", "reminder_num", "reeval_before_send",
]

BUNDLE_FILES = ("data_dictionary.csv", "events.csv", "event_mappings.csv", "asi_list.csv")

_SECTION_HEADERS = {
    StepKind.JITTER_DRAW: "Daily Jitter",
    StepKind.SAMPLE_DRAW: "Random Numbers",
    StepKind.DELIVERY: "EMA Schedule",
}

_FIELD_REF_RE = re.compile(r"\[([^\]]+)\]")


def _dictionary_row(name: str, form: str, **cells: str) -> List[str]:
    keys = {
        "section": 2,
        "field_type": 3,
        "label": 4,
        "calculation": 5,
        "note": 6,
        "validation": 7,
        "required": 12,
        "annotation": 17,
    }
    row = [""] * len(DICTIONARY_HEADERS)
    row[0] = name
    row[1] = form
    for key, value in cells.items():
        row[keys[key]] = value
    return row


def data_dictionary_rows(artifact: ScheduleArtifact) -> List[List[str]]:
    naming = artifact.naming
    form = naming.config_form
    rows = [
        list(DICTIONARY_HEADERS),
        _dictionary_row("record_id", form, field_type="text", label="Record ID"),
        _dictionary_row(
            naming.seed_input_field,
            form,
            section="EMA Configuration",
            field_type="text",
            label="Seed input",
            note="Initial seed for random number generator",
            validation="integer",
            annotation="@DEFAULT='[record-name]' @HIDDEN",
        ),
        _dictionary_row(
            naming.start_field,
            form,
            field_type="text",
            label="EMA start date/time",
            note="When EMA sampling begins",
            validation="datetime_seconds_ymd",
            required="y",
        ),
    ]
    constants = [
        (naming.field_a, "LCG multiplier (a)", lcg.LCG_A, "PRNG Constants"),
        (naming.field_c, "LCG increment (c)", lcg.LCG_C, ""),
        (naming.field_m, "LCG modulus (m)", lcg.LCG_M, ""),
    ]
    for name, label, value, section in constants:
        rows.append(
            _dictionary_row(
                name,
                form,
                section=section,
                field_type="text",
                label=label,
                validation="integer",
                annotation=f"@DEFAULT='{value}' @HIDDEN",
            )
        )

    seen_sections = set()
    for item in artifact.steps:
        section = ""
        header = _SECTION_HEADERS.get(item.kind)
        if header and header not in seen_sections:
            seen_sections.add(header)
            section = header
        if item.is_calc:
            rows.append(
                _dictionary_row(
                    item.name,
                    form,
                    section=section,
                    field_type="calc",
                    label=item.label,
                    calculation=item.expression,
                    annotation=item.annotation(naming),
                )
            )
        else:
            rows.append(
                _dictionary_row(
                    item.name,
                    form,
                    section=section,
                    field_type="text",
                    label=item.label,
                    validation="datetime_seconds_ymd",
                    annotation=item.annotation(naming),
                )
            )

    rows.append(
        _dictionary_row(
            f"{naming.survey_form}_placeholder",
            naming.survey_form,
            field_type="descriptive",
            label='<div class="rich-text-field-label"><p>Add your EMA survey questions here.</p></div>',
        )
    )
    return rows


def event_rows(artifact: ScheduleArtifact) -> List[List[str]]:
    naming = artifact.naming
    arm = str(naming.arm_num)
    rows = [list(EVENT_HEADERS), [naming.enrollment_event, arm, naming.unique_event_name(naming.enrollment_event), ""]]
    for _, _, name in artifact.events():
        rows.append([name, arm, naming.unique_event_name(name), ""])
    return rows


def event_mapping_rows(artifact: ScheduleArtifact) -> List[List[str]]:
    naming = artifact.naming
    arm = str(naming.arm_num)
    rows = [list(MAPPING_HEADERS), [arm, naming.unique_event_name(naming.enrollment_event), naming.config_form]]
    for _, _, name in artifact.events():
        rows.append([arm, naming.unique_event_name(name), naming.survey_form])
    return rows


def qualify_logic(logic: str, event: str) -> str:
    """Prefix bare ``[field]`` references with the enrollment event."""
    if "[" not in logic or f"[{event}]" in logic:
        return logic
    return _FIELD_REF_RE.sub(lambda m: f"[{event}][{m.group(1)}]", logic)


def asi_rows(artifact: ScheduleArtifact, asi: AsiConfig) -> List[List[str]]:
    naming = artifact.naming
    enrollment = naming.unique_event_name(naming.enrollment_event)
    logic = qualify_logic(asi.logic, enrollment)
    rows = [list(ASI_HEADERS)]
    for sample in artifact.samples:
        event = naming.unique_event_name(naming.event_name(sample.day, sample.window_index))
        deliver_field = f"[{enrollment}][{naming.deliver_name(sample.day, sample.window_index)}]"
        rows.append(
            [
                naming.survey_form, event, "", "", "0", "DAYS", "", "1",
                asi.subject, asi.body, asi.sender, "", "AND", logic,
                "TIME_LAG", "0", "0", "0", deliver_field, "after", "", "", "",
                "EMAIL", "", "", "", "", "", "", "", "0", "1",
            ]
        )
    return rows


def to_csv(rows: Sequence[Sequence[object]], quote_all: bool = False) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL if quote_all else csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerows(rows)
    return buffer.getvalue()


def render_bundle(artifact: ScheduleArtifact, asi: AsiConfig) -> Dict[str, str]:
    return {
        "data_dictionary.csv": to_csv(data_dictionary_rows(artifact), quote_all=True),
        "events.csv": to_csv(event_rows(artifact)),
        "event_mappings.csv": to_csv(event_mapping_rows(artifact)),
        "asi_list.csv": to_csv(asi_rows(artifact, asi), quote_all=True),
    }


def write_bundle(outdir: str, artifact: ScheduleArtifact, asi: AsiConfig) -> List[Path]:
    if artifact.is_empty:
        logger.warning("Writing import tables for an empty schedule")
    out = Path(outdir)
    out.mkdir(parents=True, exist_ok=True)
    written = []
    for name, body in render_bundle(artifact, asi).items():
        path = out / name
        path.write_text(body, encoding="utf-8")
        written.append(path)
    return written


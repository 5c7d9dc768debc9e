import pytest

from emasched.emitter import emit_artifact
from emasched.export import data_dictionary_rows, to_csv
from emasched.importer import (
    ImportParseError,
    ProjectField,
    parse_data_dictionary,
    parse_project_file,
    parse_project_xml,
    sample_from_field,
)
from emasched.schedule import expand_schedule
from emasched.window import Window, derived_layout

PROJECT_XML = """<?xml version="1.0" encoding="UTF-8"?>
<ODM xmlns="http://www.cdisc.org/ns/odm/v1.3" xmlns:redcap="https://projectredcap.org">
  <Study OID="Project.EMA">
    <GlobalVariables>
      <StudyName>EMA pilot</StudyName>
    </GlobalVariables>
    <MetaDataVersion OID="Metadata.EMA" Name="EMA pilot">
      <Protocol/>
      <StudyEventDef OID="Event.enrollment_arm_1" Name="enrollment" redcap:EventName="enrollment"
        redcap:UniqueEventName="enrollment_arm_1" redcap:ArmNum="1"/>
      <FormDef OID="Form.ema_setup" Name="EMA Setup" redcap:FormName="ema_setup"/>
      <ItemDef OID="seed" Name="seed" redcap:Variable="seed" redcap:FieldType="calc"
        redcap:Calculation="mod([x], 4)"/>
      <ItemDef OID="ema_deliver_at_d01_s02" Name="ema_deliver_at_d01_s02" redcap:Variable="ema_deliver_at_d01_s02"
        redcap:FieldType="text"
        redcap:FieldAnnotation="@CALCDATE([ema_start_at], (0 * 1440) + 795 + mod([rand_02], 60), 'm')"/>
      <ItemDef OID="ema_deliver_at_d01_s01" Name="ema_deliver_at_d01_s01" redcap:Variable="ema_deliver_at_d01_s01"
        redcap:FieldType="text"
        redcap:FieldAnnotation="@CALCDATE([ema_start_at], (0 * 1440) + 555 + mod([rand_01], 120), 'm')"/>
    </MetaDataVersion>
  </Study>
</ODM>
"""


def _round_trip(samples, jitter):
    artifact = emit_artifact(samples, jitter=jitter)
    text = to_csv(data_dictionary_rows(artifact), quote_all=True)
    return parse_data_dictionary(text)


def test_round_trip_without_jitter():
    samples = expand_schedule([Window(1, 555, 90), Window(2, 795, 45), Window(3, 1000, 120)], 7)
    project = _round_trip(samples, jitter=0)
    assert [s.key() for s in project.samples()] == [s.key() for s in samples]
    assert project.jitter() == 0


def test_round_trip_with_jitter_keeps_timing():
    layout = derived_layout(540, 1260, 4, 30)
    samples = expand_schedule(layout.windows, 3)
    project = _round_trip(samples, jitter=layout.jitter)
    assert project.samples() == samples
    assert project.jitter() == 15


def test_parse_project_xml():
    project = parse_project_xml(PROJECT_XML)
    assert project.project_name == "EMA pilot"
    assert project.forms[0]["name"] == "ema_setup"
    assert project.events[0]["unique_name"] == "enrollment_arm_1"
    assert [f.name for f in project.ema_fields] == ["ema_deliver_at_d01_s02", "ema_deliver_at_d01_s01"]
    assert [s.key() for s in project.samples()] == [(1, 1, 555, 120), (1, 2, 795, 60)]
    assert "2 existing EMA fields" in project.summary()


def test_malformed_annotation_uses_defaults():
    sample = sample_from_field(ProjectField(name="x_d03_s02", annotation="@CALCDATE([start], garbage, 'm')"))
    assert sample.key() == (3, 2, 540, 90)
    sample = sample_from_field(ProjectField(name="x_d01_s01", annotation=""))
    assert sample.key() == (1, 1, 540, 90)


def test_non_ema_field_is_skipped():
    assert sample_from_field(ProjectField(name="rand_01")) is None


def test_invalid_inputs():
    with pytest.raises(ImportParseError):
        parse_project_xml("<ODM><unclosed>")
    with pytest.raises(ImportParseError):
        parse_data_dictionary("a,b\n1,2\n")
    with pytest.raises(ImportParseError):
        parse_project_file("/nonexistent/project.xml")


def test_parse_project_file_detects_format(tmp_path):
    xml_path = tmp_path / "project.xml"
    xml_path.write_text(PROJECT_XML, encoding="utf-8")
    assert parse_project_file(str(xml_path)).project_name == "EMA pilot"

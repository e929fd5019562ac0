from __future__ import annotations

import io
import json
from typing import Any

import pytest

from smartctl2prom.core.errors import MalformedFieldError, MalformedSectionError, PrematureEndOfInputError
from smartctl2prom.core.model import Record
from smartctl2prom.core.reader import LineReader
from smartctl2prom.core.structured import JSONDecoder, record_from_document
from smartctl2prom.core.stream import decode_json


def _document(serial: str = "S1", **extra: Any) -> dict[str, Any]:
    doc: dict[str, Any] = {
        "json_format_version": [1, 0],
        "smartctl": {"version": [7, 0], "argv": ["smartctl", "--json", "-a", "/dev/sda"], "exit_status": 0},
        "device": {"name": "/dev/sda", "info_name": "/dev/sda [SAT]", "type": "sat", "protocol": "ATA"},
        "model_name": "WDC WD20EFRX-68EUZN0",
        "serial_number": serial,
        "wwn": {"naa": 5, "oui": 0x0014EE, "id": 0x2B5C0E6F1},
        "user_capacity": {"blocks": 3907029168, "bytes": 2000398934016},
        "logical_block_size": 512,
        "physical_block_size": 4096,
        "interface_speed": {
            "max": {"sata_value": 14, "string": "6.0 Gb/s", "units_per_second": 60, "bits_per_unit": 100000000}
        },
        "smart_status": {"passed": True},
        "ata_smart_attributes": {
            "revision": 16,
            "table": [
                {
                    "id": 194,
                    "name": "Temperature_Celsius",
                    "value": 115,
                    "worst": 103,
                    "thresh": 0,
                    "when_failed": "",
                    "flags": {"value": 34, "string": "-O---K ", "prefailure": False, "updated_online": True},
                    "raw": {"value": 0x002D0014002D, "string": "45 (Min/Max 20/45)"},
                }
            ],
        },
        "power_on_time": {"hours": 22896},
        "power_cycle_count": 52,
        "temperature": {"current": 45},
    }
    doc.update(extra)
    return doc


def _decode_all(text: str) -> list[Record | None]:
    decoder = JSONDecoder(LineReader(io.StringIO(text)))
    records = []
    while (record := decoder.decode()) is not None:
        records.append(record)
    return records


def test_compact_documents_one_per_line() -> None:
    text = json.dumps(_document("A")) + "\n" + json.dumps(_document("B")) + "\n"
    records = _decode_all(text)
    assert [r.serial_number for r in records] == ["A", "B"]


def test_pretty_printed_documents() -> None:
    text = json.dumps(_document("A"), indent=2) + "\n" + json.dumps(_document("B"), indent=2) + "\n"
    records = _decode_all(text)
    assert [r.serial_number for r in records] == ["A", "B"]


def test_documents_back_to_back_on_one_line() -> None:
    text = json.dumps(_document("A")) + json.dumps(_document("B")) + "\n"
    records = _decode_all(text)
    assert [r.serial_number for r in records] == ["A", "B"]


def test_document_fields_are_mapped() -> None:
    (record,) = _decode_all(json.dumps(_document()) + "\n")
    assert record.json_format_version == (1, 0)
    assert record.smartctl.argv == ("smartctl", "--json", "-a", "/dev/sda")
    assert record.device.type == "sat"
    assert record.wwn.text == "5 0014ee 2b5c0e6f1"
    assert record.user_capacity.blocks == 3907029168
    assert record.interface_speed.max.bits_per_second == 6_000_000_000
    assert record.smart_status.passed

    attribute = record.ata_smart_attributes.table[0]
    assert attribute.threshold == 0
    assert attribute.worst == 103
    assert attribute.flags.text == "-O---K "
    assert attribute.flags.updated_online
    assert attribute.raw.value == 0x002D0014002D
    assert attribute.raw.text == "45 (Min/Max 20/45)"
    assert record.temperature.current == 45


def test_missing_fields_keep_defaults() -> None:
    (record,) = _decode_all('{"serial_number": "X"}\n')
    assert record.serial_number == "X"
    assert record.model_name == ""
    assert record.temperature.current == 0
    assert record.ata_smart_attributes.table == ()


def test_wrong_type_is_malformed_field() -> None:
    with pytest.raises(MalformedFieldError, match="power_cycle_count"):
        record_from_document(_document(power_cycle_count="many"))


def test_non_object_document() -> None:
    with pytest.raises(MalformedSectionError):
        _decode_all("[1, 2]\n")


def test_truncated_document_at_end_of_input() -> None:
    lines = json.dumps(_document(), indent=2).splitlines()
    text = "\n".join(lines[:6]) + "\n"
    with pytest.raises(PrematureEndOfInputError):
        _decode_all(text)


def test_empty_input() -> None:
    assert _decode_all("") == []
    assert _decode_all("\n\n") == []


def test_malformed_document_then_good_one() -> None:
    text = "{not json}\n" + json.dumps(_document("B")) + "\n"
    results = list(decode_json(io.StringIO(text)))

    assert len(results) == 2
    assert isinstance(results[0].error, MalformedSectionError)
    assert results[0].error.line == 1
    assert results[1].record is not None
    assert results[1].record.serial_number == "B"


def test_schema_error_does_not_stop_the_stream() -> None:
    bad = json.dumps(_document("A", temperature={"current": "hot"}))
    good = json.dumps(_document("B"))
    results = list(decode_json(io.StringIO(bad + "\n" + good + "\n")))

    assert isinstance(results[0].error, MalformedFieldError)
    assert results[0].record is None
    assert results[1].record is not None
    assert results[1].record.serial_number == "B"


def test_indented_documents() -> None:
    text = '  {"serial_number": "A"}\n  {"serial_number": "B"}\n'
    records = _decode_all(text)
    assert [r.serial_number for r in records] == ["A", "B"]


def test_indented_pretty_document() -> None:
    pretty = json.dumps(_document("A"), indent=2)
    text = "".join("    " + line + "\n" for line in pretty.splitlines())
    (record,) = _decode_all(text)
    assert record.serial_number == "A"
    assert record.ata_smart_attributes.table[0].id == 194


def test_top_level_array_is_one_error() -> None:
    results = list(decode_json(io.StringIO('[\n{"a": 1},\n{"b": 2}\n]\n')))
    assert len(results) == 1
    assert isinstance(results[0].error, MalformedSectionError)
    assert results[0].record is None


def test_broken_document_does_not_leak_nested_objects() -> None:
    text = (
        "{\n"
        '  "device": {\n'
        '    "name": "/dev/sda"\n'
        "  },\n"
        "  oops\n"
        '  "table": [\n'
        '    {"id": 1}\n'
        "  ]\n"
        "}\n"
        '{"serial_number": "B"}\n'
    )
    results = list(decode_json(io.StringIO(text)))

    assert len(results) == 2
    assert isinstance(results[0].error, MalformedSectionError)
    assert results[0].error.line == 5
    assert results[1].record is not None
    assert results[1].record.serial_number == "B"


def test_truncated_document_followed_by_next_one() -> None:
    text = '{\n  "serial_number": "A",\n{"serial_number": "B"}\n'
    results = list(decode_json(io.StringIO(text)))

    assert isinstance(results[0].error, MalformedSectionError)
    assert results[0].error.line == 3
    assert results[1].record is not None
    assert results[1].record.serial_number == "B"


def test_line_numbers_after_documents_on_one_line() -> None:
    text = json.dumps(_document("A")) + json.dumps(_document("B", power_cycle_count="x")) + "\n"
    results = list(decode_json(io.StringIO(text)))
    assert results[0].record is not None
    assert isinstance(results[1].error, MalformedFieldError)
    assert results[1].error.line == 1


def test_undefined_flag_bits_from_json() -> None:
    doc = _document()
    doc["ata_smart_attributes"]["table"][0]["flags"] = {"value": 0x0041, "string": "P-----+", "prefailure": True}
    (record,) = _decode_all(json.dumps(doc) + "\n")
    assert record.ata_smart_attributes.table[0].flags.extra_bits

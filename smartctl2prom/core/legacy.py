"""Parser for the legacy human-readable ``smartctl -a`` report.

The report is read line by line. Exact section header lines select a section
handler; each handler consumes the lines of its section and returns the next
handler, or None to go back to looking for a header. Handlers are immutable
values, so any state they need (the attribute table's column layout) travels
inside the handler returned for the next line.

Only ``=== END ===`` finishes a report. A wrapper script is expected to append
it, optionally after prepending a ``=== SMARTCTL2PROM ===`` section carrying
the device name, smartctl's exit code and a timestamp.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Union

from smartctl2prom.core.errors import (
    DecodeError,
    DuplicateHeaderError,
    IncompleteHeaderError,
    MalformedFieldError,
    MalformedSectionError,
    PrematureEndOfInputError,
)
from smartctl2prom.core.model import (
    WWN,
    AttributeFlags,
    InterfaceSpeed,
    LocalTime,
    RawValue,
    Record,
    SMARTAttribute,
    SMARTStatus,
    SpeedSpec,
)
from smartctl2prom.core.raw_value import TEMPERATURE_CELSIUS, interpret_raw_value
from smartctl2prom.core.reader import LineReader

LOGGER = logging.getLogger(__name__)

INFO_HEADER = "=== START OF INFORMATION SECTION ==="
SMART_DATA_HEADER = "=== START OF READ SMART DATA SECTION ==="
INJECTED_HEADER = "=== SMARTCTL2PROM ==="
END_MARKER = "=== END ==="

ATTRIBUTES_TRIGGER = "Vendor Specific SMART Attributes with Thresholds:"
HEALTH_KEY = "SMART overall-health self-assessment test result"
REVISION_KEY = "SMART Attributes Data Structure revision number"

POWER_ON_HOURS = 9
POWER_CYCLE_COUNT = 12

# smartctl prints "Mon Jul  1 16:57:20 2019 UTC"; the zone is handled separately.
TIMESTAMP_FORMAT = "%a %b %d %H:%M:%S %Y"

_HEX_RE = re.compile(r"^[0-9a-fA-F]+$")
_PREFIXED_HEX_RE = re.compile(r"^[+-]?0[xX][0-9a-fA-F]+$")
_DECIMAL_RE = re.compile(r"^[+-]?[0-9]+$")
_DIGITS_RE = re.compile(r"^[0-9]+$")
_SECTOR_CLAUSE_RE = re.compile(r"^([0-9]+) bytes (logical|physical|logical/physical)$")
_SPEED_RE = re.compile(r"^([0-9]+(?:\.[0-9]+)?) Gb/s$")
_CURRENT_SPEED_RE = re.compile(r"\(current: ([^)]*)\)")

_GBPS_BITS_PER_UNIT = 100_000_000


def _check_bits(number: int, text: str, what: str, bits: int) -> int:
    limit = 1 << (bits - 1)
    if not -limit <= number < limit:
        raise MalformedFieldError(f"{what} {text!r} does not fit in {bits} bits")
    return number


def parse_integer(text: str, *, what: str, bits: int = 64) -> int:
    """Parse a ``0x``-prefixed hexadecimal or a decimal integer.

    Leading zeros are decimal: smartctl pads VALUE/WORST/THRESH to three digits.
    """
    if _PREFIXED_HEX_RE.match(text):
        return _check_bits(int(text, 16), text, what, bits)
    if _DECIMAL_RE.match(text):
        return _check_bits(int(text, 10), text, what, bits)
    raise MalformedFieldError(f"cannot parse {what} {text!r} as an integer")


def parse_decimal(text: str, *, what: str, bits: int = 64) -> int:
    if not _DECIMAL_RE.match(text):
        raise MalformedFieldError(f"cannot parse {what} {text!r} as a decimal integer")
    return _check_bits(int(text, 10), text, what, bits)


def parse_timestamp(text: str) -> int:
    """Return epoch seconds for smartctl's ``Local Time is`` value.

    Zone abbreviations carry no offset information, so the wall clock time is
    taken as UTC.
    """
    tokens = text.split()
    if len(tokens) != 6:
        raise MalformedFieldError(f"cannot parse {text!r} as a timestamp")
    try:
        parsed = datetime.strptime(" ".join(tokens[:5]), TIMESTAMP_FORMAT)
    except ValueError as exc:
        raise MalformedFieldError(f"cannot parse {text!r} as a timestamp: {exc}") from exc
    return int(parsed.replace(tzinfo=timezone.utc).timestamp())


def format_timestamp(epoch: int) -> str:
    try:
        moment = datetime.fromtimestamp(epoch, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise MalformedFieldError(f"timestamp {epoch} is out of range") from exc
    return f"{moment:%a %b} {moment.day:2d} {moment:%H:%M:%S %Y} UTC"


def _with_blocks(record: Record) -> Record:
    if not record.logical_block_size:
        return record
    blocks = record.user_capacity.bytes // record.logical_block_size
    return replace(record, user_capacity=replace(record.user_capacity, blocks=blocks))


def _set_wwn(record: Record, value: str) -> Record:
    tokens = value.split()
    if len(tokens) != 3:
        raise MalformedFieldError(f"cannot split {value!r} into NAA, OUI and ID")
    for token in tokens:
        if not _HEX_RE.match(token):
            raise MalformedFieldError(f"cannot parse {token!r} as a hexadecimal number")
    naa, oui, ident = (int(token, 16) for token in tokens)
    return replace(record, wwn=WWN(naa=naa, oui=oui, id=ident))


def _set_user_capacity(record: Record, value: str) -> Record:
    # User Capacity:    2,000,398,934,016 bytes [2.00 TB]
    digits, marker, _ = value.partition(" bytes [")
    if not marker:
        raise MalformedFieldError(f"cannot parse {value!r} as a capacity")
    digits = digits.replace(",", "").strip()
    if not _DIGITS_RE.match(digits):
        raise MalformedFieldError(f"cannot parse {digits!r} as a decimal number")
    capacity = replace(record.user_capacity, bytes=int(digits))
    return _with_blocks(replace(record, user_capacity=capacity))


def _set_sector_sizes(record: Record, value: str) -> Record:
    # Sector Sizes:     512 bytes logical, 4096 bytes physical
    # Sector Size:      512 bytes logical/physical
    logical = record.logical_block_size
    physical = record.physical_block_size
    for clause in value.split(","):
        match = _SECTOR_CLAUSE_RE.match(clause.strip())
        if match is None:
            raise MalformedFieldError(f"cannot parse {clause.strip()!r} as a block size")
        size, kind = int(match.group(1)), match.group(2)
        if kind != "physical":
            logical = size
        if kind != "logical":
            physical = size
    return _with_blocks(
        replace(record, logical_block_size=logical, physical_block_size=physical)
    )


def _speed(text: str) -> SpeedSpec:
    match = _SPEED_RE.match(text)
    if match is None:
        return SpeedSpec(string=text)
    return SpeedSpec(
        string=text,
        units_per_second=round(float(match.group(1)) * 10),
        bits_per_unit=_GBPS_BITS_PER_UNIT,
    )


def _set_sata_version(record: Record, value: str) -> Record:
    # SATA Version is:  SATA 3.1, 6.0 Gb/s (current: 3.0 Gb/s)
    version, _, speeds = value.partition(",")
    current = _CURRENT_SPEED_RE.search(speeds)
    maximum = _CURRENT_SPEED_RE.sub("", speeds).strip()
    return replace(
        record,
        sata_version=replace(record.sata_version, string=version.strip()),
        interface_speed=InterfaceSpeed(
            max=_speed(maximum),
            current=_speed(current.group(1).strip()) if current else SpeedSpec(),
        ),
    )


def _set_local_time(record: Record, value: str) -> Record:
    epoch = parse_timestamp(value)
    if record.local_time.is_set:
        return record
    return replace(record, local_time=LocalTime(time_t=epoch, asctime=value))


_INFO_FIELDS: Mapping[str, Callable[[Record, str], Record]] = MappingProxyType(
    {
        "model family": lambda record, value: replace(record, model_family=value),
        "device model": lambda record, value: replace(record, model_name=value),
        "serial number": lambda record, value: replace(record, serial_number=value),
        "firmware version": lambda record, value: replace(record, firmware_version=value),
        "lu wwn device id": _set_wwn,
        "user capacity": _set_user_capacity,
        "sector sizes": _set_sector_sizes,
        "sector size": _set_sector_sizes,
        "device is": lambda record, value: replace(
            record, in_smartctl_database=value.startswith("In smartctl database")
        ),
        "ata version is": lambda record, value: replace(
            record, ata_version=replace(record.ata_version, string=value)
        ),
        "sata version is": _set_sata_version,
        "local time is": _set_local_time,
    }
)


@dataclass(frozen=True)
class InfoHandler:
    """Handles ``Key: value`` lines of the information section."""

    def feed(self, record: Record, line: str) -> tuple[Record, Handler | None]:
        if not line:
            return record, None
        key, sep, value = line.partition(":")
        if not sep:
            raise MalformedFieldError(f"cannot split {line!r} into a key: value pair")
        key = key.strip().lower()
        setter = _INFO_FIELDS.get(key)
        if setter is None:
            LOGGER.debug("Ignoring information key %r", key)
            return record, self
        return setter(record, value.strip()), self


@dataclass(frozen=True)
class SmartDataHandler:
    def feed(self, record: Record, line: str) -> tuple[Record, Handler | None]:
        if line == ATTRIBUTES_TRIGGER:
            return record, AttributeTableHandler()
        key, sep, value = line.partition(":")
        if not sep:
            return record, self
        if key == HEALTH_KEY:
            passed = value.strip().casefold() == "passed"
            return replace(record, smart_status=SMARTStatus(passed=passed)), self
        if key == REVISION_KEY:
            revision = parse_decimal(value.strip(), what="attribute revision", bits=32)
            table = replace(record.ata_smart_attributes, revision=revision)
            return replace(record, ata_smart_attributes=table), self
        return record, self


REQUIRED_COLUMNS = ("ID#", "ATTRIBUTE_NAME", "FLAG", "VALUE", "WORST", "THRESH", "RAW_VALUE")

_COLUMN_FIELDS: Mapping[str, str] = MappingProxyType(
    {
        "ID#": "id",
        "ATTRIBUTE_NAME": "name",
        "FLAG": "flag",
        "VALUE": "value",
        "WORST": "worst",
        "THRESH": "threshold",
        "RAW_VALUE": "raw_value",
        "WHEN_FAILED": "when_failed",
    }
)


@dataclass(frozen=True)
class ColumnLayout:
    """Positions of the attribute table columns, discovered from its header."""

    id: int
    name: int
    flag: int
    value: int
    worst: int
    threshold: int
    raw_value: int
    width: int
    when_failed: int | None = None

    @classmethod
    def from_header(cls, line: str) -> ColumnLayout:
        tokens = line.split()
        positions: dict[str, int] = {}
        for index, token in enumerate(tokens):
            field_name = _COLUMN_FIELDS.get(token)
            if field_name is None:
                continue
            if field_name in positions:
                raise DuplicateHeaderError(f"duplicate header field {token!r} in {line!r}")
            positions[field_name] = index
        missing = [column for column in REQUIRED_COLUMNS if _COLUMN_FIELDS[column] not in positions]
        if missing:
            raise IncompleteHeaderError(
                f"attribute table header {line!r} lacks {', '.join(missing)}"
            )
        return cls(width=len(tokens), **positions)

    def split(self, line: str) -> list[str]:
        # RAW_VALUE is normally last and may hold free text: "34 (Min/Max 20/45)".
        if self.raw_value == self.width - 1:
            fields = line.split(None, self.raw_value)
            needed = self.raw_value + 1
        else:
            fields = line.split()
            needed = self.width
        if len(fields) < needed:
            raise MalformedFieldError(
                f"attribute row {line!r} has {len(fields)} fields, expected {needed}"
            )
        return fields

    def parse_row(self, line: str) -> SMARTAttribute:
        fields = self.split(line)
        raw_text = fields[self.raw_value]
        raw = parse_decimal(raw_text.split()[0], what="attribute raw value")
        return SMARTAttribute(
            id=parse_integer(fields[self.id], what="attribute ID", bits=32),
            name=fields[self.name].lower(),
            value=parse_integer(fields[self.value], what="attribute current value", bits=32),
            worst=parse_integer(fields[self.worst], what="attribute worst value", bits=32),
            threshold=parse_integer(fields[self.threshold], what="attribute threshold", bits=32),
            when_failed=fields[self.when_failed] if self.when_failed is not None else "",
            flags=AttributeFlags.from_value(
                parse_integer(fields[self.flag], what="attribute flags", bits=32)
            ),
            raw=RawValue(value=raw, text=raw_text),
        )


@dataclass(frozen=True)
class AttributeTableHandler:
    """Handles the vendor specific attribute table; ``columns`` is set by the header."""

    columns: ColumnLayout | None = None

    def feed(self, record: Record, line: str) -> tuple[Record, Handler | None]:
        if not line:
            return record, SmartDataHandler()
        if "ID#" in line.split():
            if self.columns is not None:
                raise DuplicateHeaderError("repeated header line in SMART attributes section")
            return record, AttributeTableHandler(columns=ColumnLayout.from_header(line))
        if self.columns is None:
            raise MalformedSectionError(
                f"attribute row before header in SMART attributes section: {line!r}"
            )
        attributes = record.ata_smart_attributes
        table = replace(attributes, table=attributes.table + (self.columns.parse_row(line),))
        return replace(record, ata_smart_attributes=table), self


@dataclass(frozen=True)
class InjectedContextHandler:
    """Handles the ``key value`` lines a wrapper script may prepend to a report."""

    def feed(self, record: Record, line: str) -> tuple[Record, Handler | None]:
        if not line:
            return record, None
        key, sep, value = line.partition(" ")
        if not sep:
            raise MalformedFieldError(f"cannot split {line!r} into a key value pair")
        key, value = key.lower(), value.strip()
        if key == "device":
            return replace(record, device=replace(record.device, name=value)), self
        if key == "exit_code":
            exit_status = parse_decimal(value, what="exit code", bits=8)
            return replace(record, smartctl=replace(record.smartctl, exit_status=exit_status)), self
        if key == "timestamp":
            epoch = parse_decimal(value, what="timestamp")
            if record.local_time.is_set:
                return record, self
            local_time = LocalTime(time_t=epoch, asctime=format_timestamp(epoch))
            return replace(record, local_time=local_time), self
        LOGGER.debug("Ignoring injected context key %r", key)
        return record, self


@dataclass(frozen=True)
class Done:
    """Marks the end of a report."""


Handler = Union[InfoHandler, SmartDataHandler, AttributeTableHandler, InjectedContextHandler, Done]

SECTION_HANDLERS: Mapping[str, Handler] = MappingProxyType(
    {
        INFO_HEADER: InfoHandler(),
        SMART_DATA_HEADER: SmartDataHandler(),
        INJECTED_HEADER: InjectedContextHandler(),
        END_MARKER: Done(),
    }
)


def apply_derived_fields(record: Record) -> Record:
    """Copy power-on hours, power cycles and temperature out of the attribute table."""
    hours = record.power_on_time.hours
    cycles = record.power_cycle_count
    temperature = record.temperature.current
    for attribute in record.ata_smart_attributes.table:
        if attribute.id == POWER_ON_HOURS:
            hours = attribute.raw.value
        elif attribute.id == POWER_CYCLE_COUNT:
            cycles = attribute.raw.value
        elif attribute.id == TEMPERATURE_CELSIUS:
            temperature = interpret_raw_value(attribute.id, attribute.raw.value)
    return replace(
        record,
        power_on_time=replace(record.power_on_time, hours=hours),
        power_cycle_count=cycles,
        temperature=replace(record.temperature, current=temperature),
    )


def _skip_report(reader: LineReader) -> None:
    skipped = 0
    while (raw := reader.readline()) is not None:
        if raw.strip() == END_MARKER:
            break
        skipped += 1
    LOGGER.debug("Skipped %d line(s) after a decode error", skipped)


def parse_report(reader: LineReader) -> Record | None:
    """Parse one report, up to and including its ``=== END ===`` line.

    Returns None when the stream holds nothing but blank lines. On a decode
    error the rest of the report is discarded so the next call starts at the
    following report.
    """
    record = Record()
    handler: Handler | None = None
    seen_input = False
    seen_section = False
    while True:
        raw = reader.readline()
        if raw is None:
            if not seen_input:
                return None
            raise PrematureEndOfInputError(
                f"input ended before {END_MARKER!r}", line=reader.line_number
            )
        line = raw.strip()
        seen_input = seen_input or bool(line)

        section = SECTION_HANDLERS.get(line)
        if isinstance(section, Done):
            if not seen_section:
                raise MalformedSectionError(
                    f"{END_MARKER!r} before any known section", line=reader.line_number
                )
            return apply_derived_fields(record)
        if section is not None:
            handler = section
            seen_section = True
            continue
        if handler is None:
            continue

        try:
            record, handler = handler.feed(record, line)
        except DecodeError as exc:
            if exc.line is None:
                exc.line = reader.line_number
            _skip_report(reader)
            raise


class TextDecoder:
    """Decodes one legacy text report per call."""

    def __init__(self, reader: LineReader) -> None:
        self._reader = reader

    def decode(self) -> Record | None:
        return parse_report(self._reader)

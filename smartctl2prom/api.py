"""Public entry points for decoding smartctl output and exporting metrics.

Scripts that feed smartctl captures into Prometheus should import from here;
the modules under ``smartctl2prom.core`` may change between releases.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from smartctl2prom.core.errors import (
    ConfigError,
    DecodeError,
    DuplicateHeaderError,
    ExportError,
    IncompleteHeaderError,
    InputReadError,
    MalformedFieldError,
    MalformedSectionError,
    PrematureEndOfInputError,
    Smartctl2PromError,
)
from smartctl2prom.core.exporter import SmartMetrics, write_textfile
from smartctl2prom.core.model import (
    WWN,
    AttributeFlags,
    AttributeTable,
    Capacity,
    DecodeResult,
    Device,
    Invocation,
    LocalTime,
    RawValue,
    Record,
    SMARTAttribute,
    SpeedSpec,
)
from smartctl2prom.core.raw_value import TemperatureRange, interpret_raw_value, temperature_range
from smartctl2prom.core.stream import DecodeStream, decode, decode_json, decode_text

__all__ = [
    "Smartctl2PromError",
    "DecodeError",
    "MalformedSectionError",
    "MalformedFieldError",
    "DuplicateHeaderError",
    "IncompleteHeaderError",
    "PrematureEndOfInputError",
    "InputReadError",
    "ConfigError",
    "ExportError",
    "AttributeFlags",
    "AttributeTable",
    "Capacity",
    "DecodeResult",
    "Device",
    "Invocation",
    "LocalTime",
    "RawValue",
    "Record",
    "SMARTAttribute",
    "SpeedSpec",
    "WWN",
    "TemperatureRange",
    "interpret_raw_value",
    "temperature_range",
    "DecodeStream",
    "decode",
    "decode_json",
    "decode_text",
    "SmartMetrics",
    "write_textfile",
    "export_textfile",
]


def export_textfile(results: Iterable[DecodeResult], path: str | Path) -> tuple[int, int]:
    """Write metrics for every decoded record in ``results`` to ``path``.

    Returns the number of exported records and of skipped failed items.
    """
    metrics = SmartMetrics()
    counts = metrics.observe_all(results)
    write_textfile(path, metrics.registry)
    return counts

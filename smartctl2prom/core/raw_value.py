"""Interpretation of packed SMART attribute raw values."""

from __future__ import annotations

from typing import NamedTuple

TEMPERATURE_CELSIUS = 194

_PLAIN_TEMPERATURE_MAX = 0x00FFFF
_PACKED_FLOOR = 0x0000FFFFFFFF
_PACKED_MAX = 0xFFFFFFFFFFFF


class TemperatureRange(NamedTuple):
    current: int
    lowest: int
    highest: int


def temperature_range(attribute_id: int, raw: int) -> TemperatureRange | None:
    """Split a packed current/min/max temperature raw value.

    Returns None unless the attribute is 194 and the value has bits set above
    bit 32 while still fitting in 48 bits.
    """
    if attribute_id != TEMPERATURE_CELSIUS:
        return None
    if not _PACKED_FLOOR < raw <= _PACKED_MAX:
        return None
    return TemperatureRange(
        current=raw & 0xFFFF,
        lowest=(raw >> 16) & 0xFFFF,
        highest=(raw >> 32) & 0xFFFF,
    )


def interpret_raw_value(attribute_id: int, raw: int) -> int:
    """Return the value to expose for an attribute's raw metric."""
    if attribute_id != TEMPERATURE_CELSIUS or raw <= _PLAIN_TEMPERATURE_MAX:
        return raw
    packed = temperature_range(attribute_id, raw)
    if packed is not None:
        return packed.current
    return raw

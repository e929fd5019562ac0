"""Prometheus gauges filled from decoded Records, written as a textfile."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from prometheus_client import CollectorRegistry, Gauge, write_to_textfile

from smartctl2prom.core.errors import ExportError
from smartctl2prom.core.model import DecodeResult, Record, SMARTAttribute
from smartctl2prom.core.raw_value import interpret_raw_value, temperature_range

LOGGER = logging.getLogger(__name__)

DEVICE_LABELS = ("device_name", "device_serial_number")
READ_TIME_LABELS = (
    "device_name",
    "device_type",
    "device_model_family",
    "device_model_name",
    "device_serial_number",
    "smartctl_exit_status",
)
ATTRIBUTE_LABELS = ("id", "name", "prefailure", "device_name", "device_serial_number")


class SmartMetrics:
    """Gauges for one textfile.

    The registry is private, so the default process and platform collectors
    never end up in the textfile.
    """

    def __init__(self) -> None:
        self.registry = CollectorRegistry(auto_describe=True)

        def device_gauge(name: str, documentation: str) -> Gauge:
            return Gauge(name, documentation, DEVICE_LABELS, registry=self.registry)

        def attribute_gauge(name: str, documentation: str) -> Gauge:
            return Gauge(name, documentation, ATTRIBUTE_LABELS, registry=self.registry)

        self.read_time = Gauge(
            "smart_device_read_time",
            "Time when SMART data were read from device.",
            READ_TIME_LABELS,
            registry=self.registry,
        )
        self.capacity_blocks = device_gauge("smart_device_user_capacity_blocks", "User capacity in blocks.")
        self.capacity_bytes = device_gauge("smart_device_user_capacity_bytes", "User capacity in bytes.")
        self.logical_block_size = device_gauge(
            "smart_device_logical_block_size_bytes", "Logical block size in bytes."
        )
        self.physical_block_size = device_gauge(
            "smart_device_physical_block_size_bytes", "Physical block size in bytes."
        )
        self.interface_speed = device_gauge(
            "smart_device_interface_speed_bps", "Current interface speed in bits per second."
        )
        self.self_assessment_passed = device_gauge(
            "smart_device_overall_health_self_assessment_passed",
            "1 if the overall health self-assessment passed.",
        )
        self.power_on_hours = device_gauge("smart_device_power_on_hours", "Power-on time in hours.")
        self.power_cycles = device_gauge("smart_device_power_cycles_total", "Number of power cycles.")
        self.temperature = device_gauge("smart_device_temperature_celsius", "Current temperature.")

        self.attribute_value = attribute_gauge("smart_device_ata_attribute_value", "Normalized value.")
        self.attribute_worst = attribute_gauge("smart_device_ata_attribute_worst", "Worst normalized value.")
        self.attribute_thresh = attribute_gauge("smart_device_ata_attribute_thresh", "Failure threshold.")
        self.attribute_raw = attribute_gauge("smart_device_ata_attribute_raw_value", "Interpreted raw value.")
        self.attribute_raw_min = attribute_gauge(
            "smart_device_ata_attribute_raw_value_min", "Lowest value packed into the raw value."
        )
        self.attribute_raw_max = attribute_gauge(
            "smart_device_ata_attribute_raw_value_max", "Highest value packed into the raw value."
        )

    def observe(self, record: Record) -> None:
        device = (record.device.name, record.serial_number)
        self.read_time.labels(
            record.device.name,
            record.device.type,
            record.model_family,
            record.model_name,
            record.serial_number,
            str(record.smartctl.exit_status),
        ).set(record.local_time.time_t)
        self.capacity_blocks.labels(*device).set(record.user_capacity.blocks)
        self.capacity_bytes.labels(*device).set(record.user_capacity.bytes)
        self.logical_block_size.labels(*device).set(record.logical_block_size)
        self.physical_block_size.labels(*device).set(record.physical_block_size)
        self.interface_speed.labels(*device).set(record.interface_speed.current.bits_per_second)
        self.self_assessment_passed.labels(*device).set(1 if record.smart_status.passed else 0)
        self.power_on_hours.labels(*device).set(record.power_on_time.hours)
        self.power_cycles.labels(*device).set(record.power_cycle_count)
        self.temperature.labels(*device).set(record.temperature.current)

        for attribute in record.ata_smart_attributes.table:
            self._observe_attribute(record, attribute)

    def _observe_attribute(self, record: Record, attribute: SMARTAttribute) -> None:
        labels = (
            str(attribute.id),
            attribute.name.lower(),
            "yes" if attribute.flags.prefailure else "no",
            record.device.name,
            record.serial_number,
        )
        self.attribute_value.labels(*labels).set(attribute.value)
        self.attribute_worst.labels(*labels).set(attribute.worst)
        self.attribute_thresh.labels(*labels).set(attribute.threshold)
        self.attribute_raw.labels(*labels).set(interpret_raw_value(attribute.id, attribute.raw.value))
        packed = temperature_range(attribute.id, attribute.raw.value)
        if packed is not None:
            self.attribute_raw_min.labels(*labels).set(packed.lowest)
            self.attribute_raw_max.labels(*labels).set(packed.highest)

    def observe_all(self, results: Iterable[DecodeResult]) -> tuple[int, int]:
        """Observe every successful item; log and skip failed ones.

        Returns the number of observed records and of skipped items.
        """
        observed = skipped = 0
        for result in results:
            if result.record is None:
                LOGGER.warning("Skipping report: %s", result.error)
                skipped += 1
                continue
            self.observe(result.record)
            observed += 1
        return observed, skipped


def write_textfile(path: str | Path, registry: CollectorRegistry) -> None:
    try:
        write_to_textfile(str(path), registry)
    except OSError as exc:
        raise ExportError(f"Could not write metrics to {path}: {exc}") from exc

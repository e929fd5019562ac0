"""Normalized smartctl report records shared by both decoders and the exporter.

Field names follow smartctl's JSON keys. Where the Python name differs from
the key, the key is stored in the field metadata under ``"json"``.
"""

from __future__ import annotations

from dataclasses import dataclass, field


def _key(name: str) -> dict[str, str]:
    return {"json": name}


@dataclass(frozen=True)
class Invocation:
    version: tuple[int, ...] = ()
    svn_revision: str = ""
    platform_info: str = ""
    build_info: str = ""
    argv: tuple[str, ...] = ()
    exit_status: int = 0


@dataclass(frozen=True)
class Device:
    name: str = ""
    info_name: str = ""
    type: str = ""
    protocol: str = ""


@dataclass(frozen=True)
class WWN:
    naa: int = 0
    oui: int = 0
    id: int = 0

    @property
    def text(self) -> str:
        """Render the identifier the way smartctl prints ``LU WWN Device Id``."""
        return f"{self.naa:x} {self.oui:06x} {self.id:09x}"


@dataclass(frozen=True)
class Capacity:
    blocks: int = 0
    bytes: int = 0


@dataclass(frozen=True)
class ATAVersion:
    string: str = ""
    major_value: int = 0
    minor_value: int = 0


@dataclass(frozen=True)
class SATAVersion:
    string: str = ""
    value: int = 0


@dataclass(frozen=True)
class SpeedSpec:
    sata_value: int = 0
    string: str = ""
    units_per_second: int = 0
    bits_per_unit: int = 0

    @property
    def bits_per_second(self) -> int:
        return self.units_per_second * self.bits_per_unit


@dataclass(frozen=True)
class InterfaceSpeed:
    max: SpeedSpec = field(default_factory=SpeedSpec)
    current: SpeedSpec = field(default_factory=SpeedSpec)


@dataclass(frozen=True)
class LocalTime:
    time_t: int = 0
    asctime: str = ""

    @property
    def is_set(self) -> bool:
        return self.time_t != 0


@dataclass(frozen=True)
class SMARTStatus:
    passed: bool = False


@dataclass(frozen=True)
class DataCollectionStatus:
    value: int = 0
    text: str = field(default="", metadata=_key("string"))


@dataclass(frozen=True)
class OfflineDataCollection:
    status: DataCollectionStatus = field(default_factory=DataCollectionStatus)
    completion_seconds: int = 0


@dataclass(frozen=True)
class SelfTestStatus:
    value: int = 0
    text: str = field(default="", metadata=_key("string"))
    passed: bool = False


@dataclass(frozen=True)
class SelfTestTime:
    short: int = 0
    extended: int = 0
    conveyance: int = 0


@dataclass(frozen=True)
class SelfTestData:
    status: SelfTestStatus = field(default_factory=SelfTestStatus)
    polling_minutes: SelfTestTime = field(default_factory=SelfTestTime)


@dataclass(frozen=True)
class SMARTCapabilities:
    values: tuple[int, ...] = ()
    exec_offline_immediate_supported: bool = False
    offline_is_aborted_upon_new_cmd: bool = False
    offline_surface_scan_supported: bool = False
    self_tests_supported: bool = False
    conveyance_self_test_supported: bool = False
    selective_self_test_supported: bool = False
    attribute_autosave_enabled: bool = False
    error_logging_supported: bool = False
    gp_logging_supported: bool = False


@dataclass(frozen=True)
class ATASMARTData:
    offline_data_collection: OfflineDataCollection = field(default_factory=OfflineDataCollection)
    self_test: SelfTestData = field(default_factory=SelfTestData)
    capabilities: SMARTCapabilities = field(default_factory=SMARTCapabilities)


@dataclass(frozen=True)
class ATASctCapabilities:
    value: int = 0
    error_recovery_control_supported: bool = False
    feature_control_supported: bool = False
    data_table_supported: bool = False


FLAG_PREFAILURE = 0x0001
FLAG_UPDATED_ONLINE = 0x0002
FLAG_PERFORMANCE = 0x0004
FLAG_ERROR_RATE = 0x0008
FLAG_EVENT_COUNT = 0x0010
FLAG_AUTO_KEEP = 0x0020
FLAG_UNDEFINED_MASK = 0xFFC0

_FLAG_LETTERS = (
    (FLAG_PREFAILURE, "P"),
    (FLAG_UPDATED_ONLINE, "O"),
    (FLAG_PERFORMANCE, "S"),
    (FLAG_ERROR_RATE, "R"),
    (FLAG_EVENT_COUNT, "C"),
    (FLAG_AUTO_KEEP, "K"),
)


@dataclass(frozen=True)
class AttributeFlags:
    value: int = 0
    text: str = field(default="", metadata=_key("string"))
    prefailure: bool = False
    updated_online: bool = False
    performance: bool = False
    error_rate: bool = False
    event_count: bool = False
    auto_keep: bool = False

    @property
    def extra_bits(self) -> bool:
        return bool(self.value & FLAG_UNDEFINED_MASK)

    @classmethod
    def from_value(cls, value: int) -> AttributeFlags:
        """Decode the flag word into booleans and smartctl's ``PO-R-- `` text."""
        letters = "".join(letter if value & bit else "-" for bit, letter in _FLAG_LETTERS)
        return cls(
            value=value,
            text=letters + ("+" if value & FLAG_UNDEFINED_MASK else " "),
            prefailure=bool(value & FLAG_PREFAILURE),
            updated_online=bool(value & FLAG_UPDATED_ONLINE),
            performance=bool(value & FLAG_PERFORMANCE),
            error_rate=bool(value & FLAG_ERROR_RATE),
            event_count=bool(value & FLAG_EVENT_COUNT),
            auto_keep=bool(value & FLAG_AUTO_KEEP),
        )


@dataclass(frozen=True)
class RawValue:
    value: int = 0
    text: str = field(default="", metadata=_key("string"))


@dataclass(frozen=True)
class SMARTAttribute:
    id: int = 0
    name: str = ""
    value: int = 0
    worst: int = 0
    threshold: int = field(default=0, metadata=_key("thresh"))
    when_failed: str = ""
    flags: AttributeFlags = field(default_factory=AttributeFlags)
    raw: RawValue = field(default_factory=RawValue)


@dataclass(frozen=True)
class AttributeTable:
    revision: int = 0
    table: tuple[SMARTAttribute, ...] = ()

    def by_id(self, attribute_id: int) -> tuple[SMARTAttribute, ...]:
        return tuple(a for a in self.table if a.id == attribute_id)


@dataclass(frozen=True)
class PowerOnTime:
    hours: int = 0


@dataclass(frozen=True)
class Temperature:
    current: int = 0


@dataclass(frozen=True)
class Record:
    """One device's health snapshot as reported by a single smartctl run."""

    json_format_version: tuple[int, ...] = ()
    smartctl: Invocation = field(default_factory=Invocation)
    device: Device = field(default_factory=Device)
    model_family: str = ""
    model_name: str = ""
    serial_number: str = ""
    wwn: WWN = field(default_factory=WWN)
    firmware_version: str = ""
    user_capacity: Capacity = field(default_factory=Capacity)
    logical_block_size: int = 0
    physical_block_size: int = 0
    in_smartctl_database: bool = False
    ata_version: ATAVersion = field(default_factory=ATAVersion)
    sata_version: SATAVersion = field(default_factory=SATAVersion)
    interface_speed: InterfaceSpeed = field(default_factory=InterfaceSpeed)
    local_time: LocalTime = field(default_factory=LocalTime)
    smart_status: SMARTStatus = field(default_factory=SMARTStatus)
    ata_smart_data: ATASMARTData = field(default_factory=ATASMARTData)
    ata_sct_capabilities: ATASctCapabilities = field(default_factory=ATASctCapabilities)
    ata_smart_attributes: AttributeTable = field(default_factory=AttributeTable)
    power_on_time: PowerOnTime = field(default_factory=PowerOnTime)
    power_cycle_count: int = 0
    temperature: Temperature = field(default_factory=Temperature)


@dataclass(frozen=True)
class DecodeResult:
    """One item handed to the consumer: a Record or the error that replaced it."""

    record: Record | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

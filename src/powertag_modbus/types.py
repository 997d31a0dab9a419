"""Core data model: gateway endpoint, model descriptors, block specs, discovered devices and poll results."""

from dataclasses import asdict, dataclass
from enum import Enum, IntEnum
from typing import Any, Callable

# Modbus ceiling for one read-holding-registers transaction
MAX_REGISTERS_PER_READ = 125


class VoltageMode(str, Enum):
    """Which voltage block an energy sensor is polled with."""

    LINE_NEUTRAL = "L-N"
    LINE_LINE = "L-L"


class ModelFamily(str, Enum):
    """Device families; each has its own register block table and poll result type."""

    ENERGY = "energy"
    HEATTAG = "heattag"
    CONTROL_2DI = "control_2di"
    CONTROL_IO = "control_io"


class AlarmLevel(IntEnum):
    """HeatTag alarm level register values."""

    NONE = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3


class OutputCommand(IntEnum):
    """Control IO output command register values."""

    NONE = 0
    OFF = 1
    ON = 2


@dataclass(frozen=True)
class GatewayEndpoint:
    """TCP target of a gateway session."""

    address: str
    port: int = 502

    def __post_init__(self) -> None:
        if not self.address or not self.address.strip():
            raise ValueError("address must not be empty")
        if not (1 <= self.port <= 65535):
            raise ValueError(f"port must be 1-65535, got {self.port}")

    def __str__(self) -> str:
        return f"{self.address}:{self.port}"


@dataclass(frozen=True)
class BlockSpec:
    """One contiguous holding-register read and the decoder turning its bytes into named fields."""

    name: str
    start_register: int
    register_count: int
    decode: Callable[[bytes], dict[str, Any]]
    voltage_mode: VoltageMode | None = None

    def __post_init__(self) -> None:
        if self.start_register < 0 or self.start_register > 0xFFFF:
            raise ValueError(f"start_register out of range: {self.start_register}")
        if not (1 <= self.register_count <= MAX_REGISTERS_PER_READ):
            raise ValueError(f"register_count must be 1-{MAX_REGISTERS_PER_READ}, got {self.register_count}")


@dataclass(frozen=True)
class ModelDescriptor:
    """Static description of one PowerTag model: identity, family, phases and register blocks."""

    type_id: int
    commercial_reference: str
    model: str
    name: str
    family: ModelFamily
    phase_count: int
    voltage_modes: frozenset[VoltageMode]
    register_blocks: tuple[BlockSpec, ...]

    def __post_init__(self) -> None:
        if self.phase_count not in (1, 3):
            raise ValueError(f"phase_count must be 1 or 3, got {self.phase_count}")

    @property
    def default_voltage_mode(self) -> VoltageMode | None:
        if VoltageMode.LINE_NEUTRAL in self.voltage_modes:
            return VoltageMode.LINE_NEUTRAL
        if VoltageMode.LINE_LINE in self.voltage_modes:
            return VoltageMode.LINE_LINE
        return None

    def blocks_for(self, voltage_mode: VoltageMode | None = None) -> tuple[BlockSpec, ...]:
        """Blocks read in one poll; voltage blocks are filtered by the selected mode."""
        mode = voltage_mode or self.default_voltage_mode
        return tuple(b for b in self.register_blocks if b.voltage_mode is None or b.voltage_mode == mode)


@dataclass(frozen=True)
class DiscoveredDevice:
    """A device found on a gateway during one discovery run."""

    unit_id: int
    type_id: int
    model: ModelDescriptor
    name: str = ""
    slot: int | None = None

    @property
    def display_name(self) -> str:
        return self.name or f"{self.model.name} ({self.unit_id})"

    def device_key(self, endpoint: GatewayEndpoint) -> str:
        """Stable pairing identifier: gateway address, port and unit id."""
        return f"{endpoint.address}:{endpoint.port}:{self.unit_id}"

    def as_dict(self) -> dict[str, Any]:
        return {
            "unit_id": self.unit_id,
            "type_id": self.type_id,
            "model": self.model.model,
            "reference": self.model.commercial_reference,
            "family": self.model.family.value,
            "name": self.name,
            "display_name": self.display_name,
            "slot": self.slot,
        }


class _PollResult:
    def as_dict(self) -> dict[str, Any]:
        return asdict(self)  # type: ignore[call-overload]


@dataclass(frozen=True)
class EnergyPollResult(_PollResult):
    current_l1: float
    current_l2: float
    current_l3: float
    voltage_ph1: float
    voltage_ph2: float
    voltage_ph3: float
    power_l1: float
    power_l2: float
    power_l3: float
    total_power: float
    power_factor: float
    frequency: float
    temperature: float
    total_energy: float  # kWh


@dataclass(frozen=True)
class HeatTagPollResult(_PollResult):
    temperature: float
    humidity: float  # percent
    alarm_level: int


@dataclass(frozen=True)
class Control2DIPollResult(_PollResult):
    di1_status: bool
    di2_status: bool


@dataclass(frozen=True)
class ControlIOPollResult(_PollResult):
    di1_status: bool
    output_status: bool


PollResult = EnergyPollResult | HeatTagPollResult | Control2DIPollResult | ControlIOPollResult

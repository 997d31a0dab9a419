"""powertag-modbus: discover and poll Schneider PowerTag devices behind a Modbus TCP gateway via pymodbus."""

__version__ = "0.1.0"

from .discovery import DeviceDiscovery, DiscoveryConfig, ScanRange, check_gateway
from .errors import (
    DecodeError,
    GatewayConnectionError,
    GatewayRefusedError,
    GatewayTimeoutError,
    ModbusExceptionError,
    ModbusIOError,
    PowerTagModbusError,
    RequestTimeoutError,
    UnknownModelError,
)
from .poller import DevicePoller
from .reader import read_snapshot, write_output
from .registry import ModelRegistry, get_default_registry
from .session import TransportSession
from .types import (
    Control2DIPollResult,
    ControlIOPollResult,
    DiscoveredDevice,
    EnergyPollResult,
    GatewayEndpoint,
    HeatTagPollResult,
    ModelDescriptor,
    ModelFamily,
    VoltageMode,
)

__all__ = [
    "__version__",
    "DeviceDiscovery",
    "DiscoveryConfig",
    "ScanRange",
    "check_gateway",
    "DecodeError",
    "GatewayConnectionError",
    "GatewayRefusedError",
    "GatewayTimeoutError",
    "ModbusExceptionError",
    "ModbusIOError",
    "PowerTagModbusError",
    "RequestTimeoutError",
    "UnknownModelError",
    "DevicePoller",
    "read_snapshot",
    "write_output",
    "ModelRegistry",
    "get_default_registry",
    "TransportSession",
    "Control2DIPollResult",
    "ControlIOPollResult",
    "DiscoveredDevice",
    "EnergyPollResult",
    "GatewayEndpoint",
    "HeatTagPollResult",
    "ModelDescriptor",
    "ModelFamily",
    "VoltageMode",
]

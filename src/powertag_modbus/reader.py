"""RegisterReader: read and decode one device's register blocks into a poll result; identification reads."""

import logging
from typing import Any, Protocol

from .codec import decode_fixed_ascii, decode_uint16_be
from .registers import (
    COMMERCIAL_REF_REGISTERS,
    DEVICE_NAME_REGISTERS,
    EMPTY_MARKERS,
    PAS_REGISTERS_PER_SLOT,
    PAS_SLOT_COUNT,
    REG_COMMERCIAL_REF,
    REG_DEVICE_NAME,
    REG_DEVICE_TYPE,
    REG_DO1_CMD,
    REG_PAS_DEVICE_ADDRESS,
)
from .types import (
    MAX_REGISTERS_PER_READ,
    Control2DIPollResult,
    ControlIOPollResult,
    EnergyPollResult,
    HeatTagPollResult,
    ModelDescriptor,
    ModelFamily,
    OutputCommand,
    PollResult,
    VoltageMode,
)

logger = logging.getLogger(__name__)

_RESULT_TYPES: dict[ModelFamily, type] = {
    ModelFamily.ENERGY: EnergyPollResult,
    ModelFamily.HEATTAG: HeatTagPollResult,
    ModelFamily.CONTROL_2DI: Control2DIPollResult,
    ModelFamily.CONTROL_IO: ControlIOPollResult,
}


class RegisterSession(Protocol):
    """The part of TransportSession the readers need."""

    @property
    def unit_id(self) -> int: ...

    def read_holding_registers(self, start_register: int, count: int, timeout: float | None = None) -> bytes: ...

    def write_single_register(self, register: int, value: int, timeout: float | None = None) -> None: ...


def read_snapshot(
    session: RegisterSession,
    model: ModelDescriptor,
    voltage_mode: VoltageMode | None = None,
    timeout: float | None = None,
) -> PollResult:
    """
    Read every register block of the model from the currently addressed unit
    and assemble the family's poll result.

    All block reads are issued before any of them is decoded; a failure in any
    read or decode propagates, so a partial result is never returned.
    """
    blocks = model.blocks_for(voltage_mode)
    buffers = [
        (block, session.read_holding_registers(block.start_register, block.register_count, timeout))
        for block in blocks
    ]

    fields: dict[str, Any] = {}
    for block, buf in buffers:
        fields.update(block.decode(buf))
    logger.debug("unit %d: %s poll decoded from %d blocks", session.unit_id, model.model, len(buffers))
    return _RESULT_TYPES[model.family](**fields)


def write_output(
    session: RegisterSession,
    on: bool,
    model: ModelDescriptor | None = None,
    timeout: float | None = None,
) -> None:
    """Command the Control IO digital output: 2 = On, 1 = Off."""
    if model is not None and model.family != ModelFamily.CONTROL_IO:
        raise ValueError(f"{model.name} has no controllable output")
    command = OutputCommand.ON if on else OutputCommand.OFF
    session.write_single_register(REG_DO1_CMD, int(command), timeout)
    logger.info("unit %d: output set %s", session.unit_id, "on" if on else "off")


def read_device_type(session: RegisterSession, timeout: float | None = None) -> int:
    """Device type code; 0 or 65535 when nothing occupies the unit id."""
    return decode_uint16_be(session.read_holding_registers(REG_DEVICE_TYPE, 1, timeout))


def read_device_name(session: RegisterSession, timeout: float | None = None) -> str:
    """User-configured name (20 ASCII chars); empty if none is set."""
    return decode_fixed_ascii(session.read_holding_registers(REG_DEVICE_NAME, DEVICE_NAME_REGISTERS, timeout))


def read_commercial_reference(session: RegisterSession, timeout: float | None = None) -> str:
    """Commercial reference (32 ASCII chars), e.g. "A9MEM1560"."""
    return decode_fixed_ascii(
        session.read_holding_registers(REG_COMMERCIAL_REF, COMMERCIAL_REF_REGISTERS, timeout)
    )


def read_panel_server_addresses(session: RegisterSession, timeout: float | None = None) -> dict[int, int]:
    """
    Read the PAS600 device address table from the currently addressed unit
    (the gateway itself, unit 255).

    99 slots x 5 registers starting at 504, read in chunks of at most 125
    registers (125, 125, 125, 120). The first register of each slot holds the
    Modbus unit id of the device in that slot. Returns slot (1-99) -> unit id
    for occupied slots.
    """
    total = PAS_SLOT_COUNT * PAS_REGISTERS_PER_SLOT
    table = b""
    for offset in range(0, total, MAX_REGISTERS_PER_READ):
        count = min(MAX_REGISTERS_PER_READ, total - offset)
        table += session.read_holding_registers(REG_PAS_DEVICE_ADDRESS + offset, count, timeout)

    addresses: dict[int, int] = {}
    for slot in range(1, PAS_SLOT_COUNT + 1):
        unit_id = decode_uint16_be(table, (slot - 1) * PAS_REGISTERS_PER_SLOT * 2)
        if unit_id not in EMPTY_MARKERS:
            addresses[slot] = unit_id
    return addresses

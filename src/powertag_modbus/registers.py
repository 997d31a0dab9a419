"""PowerTag register addresses (0-based, FC3/FC6) and the block tables read for each model family."""

from typing import Any, Callable

from .codec import decode_float32_be, decode_scaled_int64_be, decode_uint16_be
from .types import BlockSpec, ModelFamily, VoltageMode

# Measurements (energy sensors)
REG_CURRENT_L1 = 2999
REG_VOLTAGE_LL_1 = 3019
REG_VOLTAGE_LN_1 = 3027
REG_POWER_L1 = 3053
REG_POWER_FACTOR = 3083
REG_FREQUENCY = 3109
REG_TEMPERATURE = 3131
REG_ENERGY_TOTAL = 3203

# HeatTag
REG_HEATTAG_ALARM = 3323
REG_HEATTAG_TEMP = 4001
REG_HEATTAG_HUMIDITY = 4007

# Control modules
REG_DI1_STATUS = 34065
REG_DI2_STATUS = 34165
REG_DO1_CMD = 37051
REG_DO1_STATUS = 37052

# Identification
REG_DEVICE_NAME = 31000  # 0x7918
DEVICE_NAME_REGISTERS = 10
REG_DEVICE_TYPE = 31024  # 0x7930
REG_COMMERCIAL_REF = 31060  # 0x7954
COMMERCIAL_REF_REGISTERS = 16

# PAS600 Panel Server address table, read at the gateway's own unit id
PANEL_SERVER_UNIT_ID = 255
REG_PAS_DEVICE_ADDRESS = 504  # 0x01F8
PAS_SLOT_COUNT = 99
PAS_REGISTERS_PER_SLOT = 5

# Device type / unit id values meaning "nothing here"
EMPTY_MARKERS = frozenset({0, 65535})


def _floats(*names: str) -> Callable[[bytes], dict[str, Any]]:
    def decode(buf: bytes) -> dict[str, Any]:
        return {name: decode_float32_be(buf, i * 4) for i, name in enumerate(names)}

    return decode


def _decode_energy(buf: bytes) -> dict[str, Any]:
    return {"total_energy": decode_scaled_int64_be(buf, 0, 1000)}


def _decode_humidity(buf: bytes) -> dict[str, Any]:
    # Stored as a fraction (0.50 = 50 %)
    return {"humidity": decode_float32_be(buf, 0) * 100}


def _decode_alarm(buf: bytes) -> dict[str, Any]:
    return {"alarm_level": decode_uint16_be(buf, 0)}


def _input_status(name: str) -> Callable[[bytes], dict[str, Any]]:
    # 0 = On, 1 = Off
    def decode(buf: bytes) -> dict[str, Any]:
        return {name: decode_uint16_be(buf, 0) == 0}

    return decode


def _decode_output_status(buf: bytes) -> dict[str, Any]:
    # 0 = Off, 1 = On
    return {"output_status": decode_uint16_be(buf, 0) == 1}


ENERGY_BLOCKS: tuple[BlockSpec, ...] = (
    BlockSpec("current", REG_CURRENT_L1, 6, _floats("current_l1", "current_l2", "current_l3")),
    BlockSpec(
        "voltage_ln",
        REG_VOLTAGE_LN_1,
        6,
        _floats("voltage_ph1", "voltage_ph2", "voltage_ph3"),
        voltage_mode=VoltageMode.LINE_NEUTRAL,
    ),
    BlockSpec(
        "voltage_ll",
        REG_VOLTAGE_LL_1,
        6,
        _floats("voltage_ph1", "voltage_ph2", "voltage_ph3"),
        voltage_mode=VoltageMode.LINE_LINE,
    ),
    BlockSpec("power", REG_POWER_L1, 8, _floats("power_l1", "power_l2", "power_l3", "total_power")),
    BlockSpec("power_factor", REG_POWER_FACTOR, 2, _floats("power_factor")),
    BlockSpec("frequency", REG_FREQUENCY, 2, _floats("frequency")),
    BlockSpec("temperature", REG_TEMPERATURE, 2, _floats("temperature")),
    BlockSpec("energy", REG_ENERGY_TOTAL, 4, _decode_energy),
)

HEATTAG_BLOCKS: tuple[BlockSpec, ...] = (
    BlockSpec("temperature", REG_HEATTAG_TEMP, 2, _floats("temperature")),
    BlockSpec("humidity", REG_HEATTAG_HUMIDITY, 2, _decode_humidity),
    BlockSpec("alarm", REG_HEATTAG_ALARM, 1, _decode_alarm),
)

CONTROL_2DI_BLOCKS: tuple[BlockSpec, ...] = (
    BlockSpec("di1", REG_DI1_STATUS, 1, _input_status("di1_status")),
    BlockSpec("di2", REG_DI2_STATUS, 1, _input_status("di2_status")),
)

CONTROL_IO_BLOCKS: tuple[BlockSpec, ...] = (
    BlockSpec("di1", REG_DI1_STATUS, 1, _input_status("di1_status")),
    BlockSpec("output", REG_DO1_STATUS, 1, _decode_output_status),
)

FAMILY_BLOCKS: dict[ModelFamily, tuple[BlockSpec, ...]] = {
    ModelFamily.ENERGY: ENERGY_BLOCKS,
    ModelFamily.HEATTAG: HEATTAG_BLOCKS,
    ModelFamily.CONTROL_2DI: CONTROL_2DI_BLOCKS,
    ModelFamily.CONTROL_IO: CONTROL_IO_BLOCKS,
}

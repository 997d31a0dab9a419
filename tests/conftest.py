"""Shared fixtures: default model registry and register layouts for each device family."""

import pytest

from fakes import block, float_words, int64_words
from powertag_modbus.registers import (
    REG_CURRENT_L1,
    REG_DI1_STATUS,
    REG_DI2_STATUS,
    REG_DO1_STATUS,
    REG_ENERGY_TOTAL,
    REG_FREQUENCY,
    REG_HEATTAG_ALARM,
    REG_HEATTAG_HUMIDITY,
    REG_HEATTAG_TEMP,
    REG_POWER_FACTOR,
    REG_POWER_L1,
    REG_TEMPERATURE,
    REG_VOLTAGE_LL_1,
    REG_VOLTAGE_LN_1,
)
from powertag_modbus.registry import ModelRegistry, get_default_registry


@pytest.fixture
def registry() -> ModelRegistry:
    return get_default_registry()


@pytest.fixture
def energy_registers() -> dict[int, int]:
    regs: dict[int, int] = {}
    regs.update(block(REG_CURRENT_L1, float_words(1.5) + float_words(2.5) + float_words(3.5)))
    regs.update(block(REG_VOLTAGE_LL_1, float_words(400.0) + float_words(401.0) + float_words(402.0)))
    regs.update(block(REG_VOLTAGE_LN_1, float_words(230.0) + float_words(231.0) + float_words(232.0)))
    regs.update(
        block(REG_POWER_L1, float_words(100.0) + float_words(200.0) + float_words(300.0) + float_words(600.0))
    )
    regs.update(block(REG_POWER_FACTOR, float_words(0.5)))
    regs.update(block(REG_FREQUENCY, float_words(50.0)))
    regs.update(block(REG_TEMPERATURE, float_words(24.5)))
    regs.update(block(REG_ENERGY_TOTAL, int64_words(5000)))
    return regs


@pytest.fixture
def heattag_registers() -> dict[int, int]:
    regs: dict[int, int] = {}
    regs.update(block(REG_HEATTAG_TEMP, float_words(21.5)))
    regs.update(block(REG_HEATTAG_HUMIDITY, float_words(0.5)))
    regs[REG_HEATTAG_ALARM] = 2
    return regs


@pytest.fixture
def control_registers() -> dict[int, int]:
    return {REG_DI1_STATUS: 0, REG_DI2_STATUS: 1, REG_DO1_STATUS: 1}

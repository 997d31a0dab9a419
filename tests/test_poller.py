"""Tests for DevicePoller: per-poll sessions, poll_iter lifecycle and output control."""

import pytest

from fakes import FakeGateway
from powertag_modbus import DevicePoller, GatewayEndpoint
from powertag_modbus.errors import RequestTimeoutError
from powertag_modbus.registers import REG_DI1_STATUS, REG_DO1_CMD, REG_DO1_STATUS
from powertag_modbus.registry import ModelRegistry
from powertag_modbus.types import ControlIOPollResult, EnergyPollResult, VoltageMode

ENDPOINT = GatewayEndpoint("10.0.0.2", 502)


def test_poll_opens_and_closes_session(registry: ModelRegistry, energy_registers: dict[int, int]) -> None:
    gw = FakeGateway({21: energy_registers})
    poller = DevicePoller(ENDPOINT, 21, registry.get("A9MEM1541"), session_factory=gw)
    result = poller.poll()
    assert isinstance(result, EnergyPollResult)
    assert result.total_energy == 5.0
    assert gw.connected and gw.closed
    assert all(unit == 21 for unit, _start, _count in gw.requests)


def test_poll_failure_propagates_and_closes(registry: ModelRegistry) -> None:
    gw = FakeGateway({})
    poller = DevicePoller(ENDPOINT, 21, registry.get("A9MEM1541"), session_factory=gw)
    with pytest.raises(RequestTimeoutError):
        poller.poll()
    assert gw.closed
    # No retry: the first failing block ends the poll
    assert len(gw.requests) == 1


def test_voltage_mode_defaults_to_model(registry: ModelRegistry) -> None:
    poller = DevicePoller(ENDPOINT, 20, registry.get("A9MEM1540"), session_factory=FakeGateway())
    assert poller.voltage_mode == VoltageMode.LINE_LINE


def test_unsupported_voltage_mode_rejected(registry: ModelRegistry) -> None:
    with pytest.raises(ValueError):
        DevicePoller(ENDPOINT, 20, registry.get("A9MEM1540"), voltage_mode=VoltageMode.LINE_NEUTRAL)


def test_poll_iter_reuses_one_session(registry: ModelRegistry) -> None:
    gw = FakeGateway({5: {REG_DI1_STATUS: 0, REG_DO1_STATUS: 1}})
    poller = DevicePoller(ENDPOINT, 5, registry.get("A9XMC1D3"), session_factory=gw)
    it = poller.poll_iter(0)
    first = next(it)
    second = next(it)
    assert isinstance(first, ControlIOPollResult)
    assert first == second
    assert not gw.closed
    it.close()
    assert gw.closed


def test_set_output(registry: ModelRegistry) -> None:
    gw = FakeGateway()
    poller = DevicePoller(ENDPOINT, 5, registry.get("A9XMC1D3"), session_factory=gw)
    poller.set_output(True)
    poller.set_output(False)
    assert gw.writes == [(5, REG_DO1_CMD, 2), (5, REG_DO1_CMD, 1)]


def test_set_output_rejects_other_families(registry: ModelRegistry) -> None:
    gw = FakeGateway()
    poller = DevicePoller(ENDPOINT, 21, registry.get("A9MEM1541"), session_factory=gw)
    with pytest.raises(ValueError):
        poller.set_output(True)
    assert gw.writes == []
    assert not gw.connected

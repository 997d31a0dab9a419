"""Tests for device discovery: Panel Server table, unit id range scan and fallback ordering."""

import socket
from unittest.mock import MagicMock, patch

import pytest

from fakes import FakeGateway, identity, panel_server_table
from powertag_modbus import DeviceDiscovery, DiscoveryConfig, GatewayEndpoint, ScanRange, check_gateway
from powertag_modbus.errors import GatewayConnectionError, GatewayRefusedError, GatewayTimeoutError
from powertag_modbus.registers import REG_COMMERCIAL_REF, REG_DEVICE_TYPE
from powertag_modbus.registry import ModelRegistry

ENDPOINT = GatewayEndpoint("192.168.1.50", 502)


def _discover(registry: ModelRegistry, gateway: FakeGateway, config: DiscoveryConfig | None = None):
    return DeviceDiscovery(registry, config, session_factory=gateway).discover(ENDPOINT)


# ============================================================================
# Panel Server strategy
# ============================================================================


def test_panel_server_single_slot(registry: ModelRegistry) -> None:
    gw = FakeGateway(
        {
            255: panel_server_table({5: 42}),
            42: identity(reference="A9MEM1541", name="Kitchen"),
        }
    )
    devices = _discover(registry, gw)
    assert len(devices) == 1
    d = devices[0]
    assert d.unit_id == 42
    assert d.slot == 5
    assert d.type_id == 21
    assert d.model.commercial_reference == "A9MEM1541"
    assert d.name == "Kitchen"
    assert d.device_key(ENDPOINT) == "192.168.1.50:502:42"
    # Scan never ran
    assert all(unit in (255, 42) for unit, _start, _count in gw.requests)


def test_panel_server_missing_name_is_not_fatal(registry: ModelRegistry) -> None:
    gw = FakeGateway({255: panel_server_table({5: 42}), 42: identity(reference="A9MEM1541")})
    devices = _discover(registry, gw)
    assert [d.unit_id for d in devices] == [42]
    assert devices[0].name == ""
    assert devices[0].display_name == "PowerTag M63 3P+N Top (42)"


def test_panel_server_skips_bad_slots(registry: ModelRegistry) -> None:
    gw = FakeGateway(
        {
            255: panel_server_table({1: 10, 2: 11, 3: 12, 4: 13, 5: 14}),
            10: identity(reference=""),  # empty reference
            11: identity(reference="ZZ999"),  # unknown model
            # 12 does not answer
            13: identity(type_id=21),  # reference register missing -> exception
            14: identity(reference="A9MEM1560", name="Heater"),
        }
    )
    devices = _discover(registry, gw)
    assert [(d.unit_id, d.slot, d.name) for d in devices] == [(14, 5, "Heater")]


def test_panel_server_skips_out_of_range_unit_id(registry: ModelRegistry) -> None:
    gw = FakeGateway({255: panel_server_table({1: 300, 2: 20}), 20: identity(reference="A9MEM1520")})
    devices = _discover(registry, gw)
    assert [d.unit_id for d in devices] == [20]


# ============================================================================
# Fallback ordering
# ============================================================================


def test_fallback_when_table_read_times_out(registry: ModelRegistry) -> None:
    gw = FakeGateway({150: identity(type_id=21, name="Main")})
    devices = _discover(registry, gw)
    assert [(d.unit_id, d.type_id, d.name, d.slot) for d in devices] == [(150, 21, "Main", None)]


def test_fallback_when_table_read_raises_exception(registry: ModelRegistry) -> None:
    # Gateway answers at 255 but lacks the address table registers
    gw = FakeGateway({255: {}, 151: identity(type_id=81)})
    devices = _discover(registry, gw)
    assert [d.unit_id for d in devices] == [151]


def test_fallback_when_table_is_empty(registry: ModelRegistry) -> None:
    gw = FakeGateway({255: panel_server_table({}), 150: identity(type_id=20)})
    devices = _discover(registry, gw)
    assert [d.unit_id for d in devices] == [150]


def test_fallback_result_matches_direct_scan(registry: ModelRegistry) -> None:
    units = {150: identity(type_id=21), 151: identity(type_id=170), 101: identity(type_id=22)}
    with_failure = _discover(registry, FakeGateway(dict(units)))
    direct = DeviceDiscovery(registry)
    gw = FakeGateway(dict(units))
    scanned = []
    for r in direct.config.scan_ranges:
        scanned.extend(direct.scan_unit_range(gw, r))
    assert [(d.unit_id, d.type_id) for d in with_failure] == [(d.unit_id, d.type_id) for d in scanned]
    assert [d.unit_id for d in with_failure] == [150, 151, 101]


def test_scan_not_run_when_panel_server_found_devices(registry: ModelRegistry) -> None:
    gw = FakeGateway(
        {
            255: panel_server_table({1: 20}),
            20: identity(reference="A9MEM1520"),
            150: identity(type_id=21),
        }
    )
    devices = _discover(registry, gw)
    assert [d.unit_id for d in devices] == [20]


# ============================================================================
# Range scan
# ============================================================================


def test_scan_stops_after_threshold(registry: ModelRegistry) -> None:
    gw = FakeGateway({})
    discovery = DeviceDiscovery(registry)
    devices = discovery.scan_unit_range(gw, ScanRange(1, 248, 3))
    assert devices == []
    assert len(gw.requests) == 3
    assert [unit for unit, _start, _count in gw.requests] == [1, 2, 3]


def test_silent_gateway_request_count(registry: ModelRegistry) -> None:
    gw = FakeGateway({})
    assert _discover(registry, gw) == []
    # one table chunk, then 10 + 3 + 3 scan probes
    assert len(gw.requests) == 17
    assert gw.closed


def test_empty_markers_reset_counter_and_are_skipped(registry: ModelRegistry) -> None:
    gw = FakeGateway(
        {
            152: identity(type_id=0),
            155: identity(type_id=65535),
            156: identity(type_id=21),
        }
    )
    devices = DeviceDiscovery(registry).scan_unit_range(gw, ScanRange(150, 160, 3))
    assert [d.unit_id for d in devices] == [156]


def test_unknown_type_id_is_skipped_but_resets_counter(registry: ModelRegistry) -> None:
    gw = FakeGateway({102: identity(type_id=9999), 105: identity(type_id=21)})
    devices = DeviceDiscovery(registry).scan_unit_range(gw, ScanRange(100, 110, 3))
    assert [d.unit_id for d in devices] == [105]


def test_scan_reads_only_type_register_for_empty_units(registry: ModelRegistry) -> None:
    gw = FakeGateway({150: identity(type_id=0)})
    DeviceDiscovery(registry).scan_unit_range(gw, ScanRange(150, 151, 3))
    assert gw.requests == [(150, REG_DEVICE_TYPE, 1)]


def test_panel_server_reads_reference_not_type(registry: ModelRegistry) -> None:
    gw = FakeGateway({255: panel_server_table({5: 42}), 42: identity(reference="A9MEM1541")})
    _discover(registry, gw)
    assert (42, REG_COMMERCIAL_REF, 16) in gw.requests
    assert (42, REG_DEVICE_TYPE, 1) not in gw.requests


# ============================================================================
# Session lifecycle and configuration
# ============================================================================


def test_session_factory_receives_config(registry: ModelRegistry) -> None:
    gw = FakeGateway({})
    config = DiscoveryConfig(connect_timeout=3.0, request_timeout=0.2, scan_ranges=(ScanRange(150, 152, 1),))
    _discover(registry, gw, config)
    assert gw.endpoint == ENDPOINT
    assert gw.factory_kwargs == {"connect_timeout": 3.0, "timeout": 0.2}


def test_connection_failure_propagates(registry: ModelRegistry) -> None:
    session = MagicMock()
    session.__enter__.side_effect = GatewayRefusedError("192.168.1.50", 502)
    discovery = DeviceDiscovery(registry, session_factory=lambda *a, **kw: session)
    with pytest.raises(GatewayConnectionError):
        discovery.discover(ENDPOINT)


def test_session_closed_when_discovery_fails_midway() -> None:
    registry = MagicMock()
    registry.lookup_by_type_id.side_effect = RuntimeError("boom")
    gw = FakeGateway({150: identity(type_id=21)})
    with pytest.raises(RuntimeError):
        _discover(registry, gw)
    assert gw.closed


def test_default_config_bounds() -> None:
    config = DiscoveryConfig()
    assert [(r.start, r.stop, r.max_consecutive_failures) for r in config.scan_ranges] == [
        (150, 170, 10),
        (100, 150, 3),
        (170, 200, 3),
    ]
    assert config.max_requests() == 4 + 3 * 99 + 2 * (20 + 50 + 30)
    assert config.max_duration() == pytest.approx(10.0 + config.max_requests() * 0.5)


@pytest.mark.parametrize(("start", "stop", "threshold"), [(0, 10, 3), (10, 10, 3), (10, 249, 3), (1, 10, 0)])
def test_scan_range_validation(start: int, stop: int, threshold: int) -> None:
    with pytest.raises(ValueError):
        ScanRange(start, stop, threshold)


# ============================================================================
# Gateway connectivity check
# ============================================================================


def test_check_gateway_ok() -> None:
    with patch("powertag_modbus.discovery.socket.create_connection") as create:
        check_gateway(ENDPOINT, timeout=1.0)
    create.assert_called_once_with(("192.168.1.50", 502), timeout=1.0)


def test_check_gateway_refused() -> None:
    with patch(
        "powertag_modbus.discovery.socket.create_connection", side_effect=ConnectionRefusedError("refused")
    ):
        with pytest.raises(GatewayRefusedError) as exc_info:
            check_gateway(ENDPOINT)
    assert "192.168.1.50:502" in str(exc_info.value)


def test_check_gateway_timeout() -> None:
    with patch("powertag_modbus.discovery.socket.create_connection", side_effect=socket.timeout("timed out")):
        with pytest.raises(GatewayTimeoutError) as exc_info:
            check_gateway(ENDPOINT)
    assert str(exc_info.value) == "Connection timeout to 192.168.1.50:502"

"""
DeviceDiscovery: enumerate PowerTag devices behind a gateway.

Two strategies over one TransportSession:

1. Panel Server (PAS600): read the device address table from the gateway's
   own unit id (255), then identify each slot's device by its commercial
   reference.
2. Unit id range scan (Smartlink / PowerTag Link): read the device type
   register of every unit id in a few ranges, stopping a range early after a
   run of consecutive timeouts.

The scan only runs when the Panel Server strategy found nothing.
"""

import logging
import socket
from dataclasses import dataclass, field
from typing import Callable

from .errors import DecodeError, GatewayRefusedError, GatewayTimeoutError, ModbusIOError
from .reader import (
    read_commercial_reference,
    read_device_name,
    read_device_type,
    read_panel_server_addresses,
)
from .registers import EMPTY_MARKERS, PANEL_SERVER_UNIT_ID, PAS_SLOT_COUNT
from .registry import ModelRegistry
from .session import TransportSession
from .types import DiscoveredDevice, GatewayEndpoint

logger = logging.getLogger(__name__)

# Four chunked table reads, then reference + name + one spare per slot
_PANEL_SERVER_MAX_REQUESTS = 4 + 3 * PAS_SLOT_COUNT


@dataclass(frozen=True)
class ScanRange:
    """Unit ids start..stop-1, scanned in ascending order."""

    start: int
    stop: int
    max_consecutive_failures: int = 10

    def __post_init__(self) -> None:
        if not (1 <= self.start < self.stop <= 248):
            raise ValueError(f"scan range must satisfy 1 <= start < stop <= 248, got {self.start}-{self.stop}")
        if self.max_consecutive_failures < 1:
            raise ValueError(f"max_consecutive_failures must be >= 1, got {self.max_consecutive_failures}")

    def __len__(self) -> int:
        return self.stop - self.start


def _default_scan_ranges() -> tuple[ScanRange, ...]:
    # Smartlink addresses its devices from 150 upward; the extended ranges
    # rarely hold anything, so they give up sooner.
    return (
        ScanRange(150, 170, 10),
        ScanRange(100, 150, 3),
        ScanRange(170, 200, 3),
    )


@dataclass(frozen=True)
class DiscoveryConfig:
    """Timeouts (seconds) and scan ranges for one discovery run."""

    connect_timeout: float = 10.0
    # Real devices answer in 5-50 ms and gateways return exceptions in <10 ms
    request_timeout: float = 0.5
    scan_ranges: tuple[ScanRange, ...] = field(default_factory=_default_scan_ranges)
    panel_server_unit_id: int = PANEL_SERVER_UNIT_ID

    def max_requests(self) -> int:
        """Upper bound on requests issued by a run that falls all the way through to the scan."""
        return _PANEL_SERVER_MAX_REQUESTS + sum(2 * len(r) for r in self.scan_ranges)

    def max_duration(self) -> float:
        """Worst-case wall time of one discovery run, in seconds."""
        return self.connect_timeout + self.max_requests() * self.request_timeout


SessionFactory = Callable[..., TransportSession]


def check_gateway(endpoint: GatewayEndpoint, timeout: float = 5.0) -> None:
    """Plain TCP connectivity check for the pairing flow; raises a host/port-qualified error."""
    try:
        with socket.create_connection((endpoint.address, endpoint.port), timeout=timeout):
            pass
    except socket.timeout as e:
        raise GatewayTimeoutError(endpoint.address, endpoint.port) from e
    except OSError as e:
        raise GatewayRefusedError(
            endpoint.address,
            endpoint.port,
            f"Cannot connect to {endpoint.address}:{endpoint.port}: {e}",
        ) from e
    logger.info("Gateway %s reachable", endpoint)


class DeviceDiscovery:
    """Runs both discovery strategies against one gateway."""

    def __init__(
        self,
        registry: ModelRegistry,
        config: DiscoveryConfig | None = None,
        session_factory: SessionFactory = TransportSession,
    ) -> None:
        self._registry = registry
        self._config = config or DiscoveryConfig()
        self._session_factory = session_factory

    @property
    def config(self) -> DiscoveryConfig:
        return self._config

    def discover(self, endpoint: GatewayEndpoint) -> list[DiscoveredDevice]:
        """
        Discover devices on the gateway. Only a failed connection raises
        (GatewayConnectionError); finding nothing is a valid, empty result.
        """
        session = self._session_factory(
            endpoint,
            connect_timeout=self._config.connect_timeout,
            timeout=self._config.request_timeout,
        )
        with session:
            devices: list[DiscoveredDevice] = []
            try:
                devices = self.discover_panel_server(session)
                logger.info("Panel Server discovery found %d devices", len(devices))
            except (ModbusIOError, DecodeError) as e:
                logger.info("Panel Server discovery not available (%s), falling back to unit id scan", e)

            if not devices:
                for scan_range in self._config.scan_ranges:
                    devices.extend(self.scan_unit_range(session, scan_range))
                logger.info("Unit id scan found %d devices", len(devices))

        logger.info("Discovery on %s complete: found %d devices", endpoint, len(devices))
        return devices

    def discover_panel_server(self, session: TransportSession) -> list[DiscoveredDevice]:
        """
        Read the PAS600 address table and identify each occupied slot.
        A failing table read raises; a failing slot is skipped.
        """
        timeout = self._config.request_timeout
        session.set_unit_id(self._config.panel_server_unit_id)
        addresses = read_panel_server_addresses(session, timeout)
        logger.info("Panel Server address table: %d occupied slots", len(addresses))

        devices: list[DiscoveredDevice] = []
        for slot, unit_id in addresses.items():
            try:
                session.set_unit_id(unit_id)
                reference = read_commercial_reference(session, timeout)
                if not reference:
                    logger.debug("Slot %d (unit %d): empty reference, skipping", slot, unit_id)
                    continue
                model = self._registry.lookup_by_commercial_reference(reference)
                if model is None:
                    logger.info("Slot %d (unit %d): unknown model %r, skipping", slot, unit_id, reference)
                    continue
                name = self._read_name(session)
            except ValueError as e:
                logger.warning("Slot %d: invalid unit id %d, skipping (%s)", slot, unit_id, e)
                continue
            except (ModbusIOError, DecodeError) as e:
                logger.debug("Slot %d (unit %d): read failed, skipping (%s)", slot, unit_id, e)
                continue
            devices.append(DiscoveredDevice(unit_id=unit_id, type_id=model.type_id, model=model, name=name, slot=slot))
            logger.info("Found %s %r at unit %d (slot %d)", model.model, reference, unit_id, slot)
        return devices

    def scan_unit_range(self, session: TransportSession, scan_range: ScanRange) -> list[DiscoveredDevice]:
        """
        Probe the device type register of each unit id in the range. Any
        response resets the consecutive failure counter; the range is
        abandoned once the counter reaches its threshold.
        """
        timeout = self._config.request_timeout
        devices: list[DiscoveredDevice] = []
        failures = 0
        logger.info("Scanning unit ids %d-%d...", scan_range.start, scan_range.stop - 1)
        for unit_id in range(scan_range.start, scan_range.stop):
            session.set_unit_id(unit_id)
            try:
                type_id = read_device_type(session, timeout)
            except (ModbusIOError, DecodeError) as e:
                failures += 1
                logger.debug("Unit %d: no response (%s)", unit_id, e)
                if failures >= scan_range.max_consecutive_failures:
                    logger.info("Stopping scan after %d consecutive failures at unit %d", failures, unit_id)
                    break
                continue
            failures = 0

            if type_id in EMPTY_MARKERS:
                continue
            model = self._registry.lookup_by_type_id(type_id)
            if model is None:
                logger.info("Unit %d: unknown model (type id %d), skipping", unit_id, type_id)
                continue
            name = self._read_name(session)
            devices.append(DiscoveredDevice(unit_id=unit_id, type_id=type_id, model=model, name=name))
            logger.info("Found %s at unit %d", model.model, unit_id)
        return devices

    def _read_name(self, session: TransportSession) -> str:
        # Not every gateway exposes the name register
        try:
            return read_device_name(session, self._config.request_timeout)
        except (ModbusIOError, DecodeError) as e:
            logger.debug("Unit %d: device name not available (%s)", session.unit_id, e)
            return ""

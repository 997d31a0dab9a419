#!/usr/bin/env python3
"""Example: check a gateway, discover the PowerTag devices behind it and read each one once."""

import sys

from powertag_modbus import (
    DeviceDiscovery,
    DevicePoller,
    GatewayEndpoint,
    check_gateway,
    get_default_registry,
)
from powertag_modbus.errors import GatewayConnectionError, ModbusIOError


def main() -> None:
    endpoint = GatewayEndpoint("192.168.1.20", 502)  # change to your gateway IP
    registry = get_default_registry()

    try:
        check_gateway(endpoint)
        devices = DeviceDiscovery(registry).discover(endpoint)
    except GatewayConnectionError as e:
        print(f"Gateway error: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Found {len(devices)} devices on {endpoint}")
    for device in devices:
        print(f"  unit {device.unit_id}: {device.display_name} [{device.model.commercial_reference}]")
        try:
            snapshot = DevicePoller(endpoint, device.unit_id, device.model).poll()
            print(f"    {snapshot.as_dict()}")
        except ModbusIOError as e:
            print(f"    read failed: {e}", file=sys.stderr)


if __name__ == "__main__":
    main()

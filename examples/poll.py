#!/usr/bin/env python3
"""Example: poll one PowerTag on an interval using poll_iter; graceful shutdown on Ctrl+C."""

import sys

from powertag_modbus import DevicePoller, GatewayEndpoint, VoltageMode, get_default_registry
from powertag_modbus.errors import GatewayConnectionError, ModbusIOError, UnknownModelError


def main() -> None:
    endpoint = GatewayEndpoint("192.168.1.20", 502)  # change to your gateway IP
    unit_id = 150
    interval_s = 10.0

    try:
        model = get_default_registry().get("A9MEM1541")
        poller = DevicePoller(endpoint, unit_id, model, voltage_mode=VoltageMode.LINE_LINE)
        print(f"Polling {model.name} at unit {unit_id} every {interval_s}s (Ctrl+C to stop)...")
        for snapshot in poller.poll_iter(interval_s):
            print(snapshot)
    except KeyboardInterrupt:
        print("\nStopped.")
    except UnknownModelError as e:
        print(f"Unknown model: {e}", file=sys.stderr)
        sys.exit(1)
    except (GatewayConnectionError, ModbusIOError) as e:
        print(f"Modbus/connection error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()

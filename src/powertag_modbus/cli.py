#!/usr/bin/env python3
"""CLI for powertag-modbus using Typer: gateway check, discovery, polling and output control."""

import json
import logging
from contextlib import closing
from datetime import datetime, timezone
from typing import Any, NoReturn, Optional

import typer
from typing_extensions import Annotated

from . import __version__  # type: ignore
from .discovery import DeviceDiscovery, DiscoveryConfig, check_gateway
from .errors import GatewayConnectionError, ModbusIOError, UnknownModelError
from .poller import DevicePoller
from .registry import get_default_registry
from .types import GatewayEndpoint, ModelDescriptor, ModelFamily, VoltageMode

app = typer.Typer(
    name="powertag",
    help="Discover and poll Schneider PowerTag devices behind a Modbus TCP gateway.",
    no_args_is_help=True,
)

logger = logging.getLogger(__name__)

# ============================================================================
# Shared options and helpers
# ============================================================================

HostOption = Annotated[
    Optional[str],
    typer.Option("--host", "-h", help="Gateway hostname or IP address", envvar="POWERTAG_HOST"),
]
PortOption = Annotated[
    int,
    typer.Option("--port", "-p", help="Modbus TCP port", envvar="POWERTAG_PORT"),
]
UnitIdOption = Annotated[
    int,
    typer.Option("--unit-id", "-u", help="Modbus unit ID of the device", envvar="POWERTAG_UNIT_ID"),
]
TimeoutOption = Annotated[
    float,
    typer.Option("--timeout", "-t", help="Per-request timeout in seconds", envvar="POWERTAG_TIMEOUT"),
]
ConnectTimeoutOption = Annotated[
    float,
    typer.Option("--connect-timeout", help="Connection timeout in seconds", envvar="POWERTAG_CONNECT_TIMEOUT"),
]
ModelOption = Annotated[
    str,
    typer.Option("--model", "-m", help="Device type id or commercial reference (e.g. 21, A9MEM1541)"),
]
VoltageModeOption = Annotated[
    Optional[str],
    typer.Option("--voltage-mode", help="Voltage block: L-N or L-L (default: model's)", envvar="POWERTAG_VOLTAGE_MODE"),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Enable debug logging"),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Output as JSON"),
]


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbose flag."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s" if not verbose else "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def require_endpoint(host: Optional[str], port: int) -> GatewayEndpoint:
    """Build the gateway endpoint or exit with a usage error."""
    if not host:
        typer.echo("Error: --host is required for this command", err=True)
        raise typer.Exit(2)
    try:
        return GatewayEndpoint(host, port)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(2)


def parse_bool(value: str) -> bool:
    """Parse boolean value from string."""
    v = value.lower().strip()
    if v in ("true", "1", "on", "yes"):
        return True
    if v in ("false", "0", "off", "no"):
        return False
    raise ValueError(f"Invalid boolean value: {value!r}")


def parse_voltage_mode(value: Optional[str]) -> Optional[VoltageMode]:
    """Parse L-N / L-L (case-insensitive, LN / LL accepted)."""
    if value is None:
        return None
    v = value.strip().upper().replace("_", "-")
    if v in ("LN", "L-N"):
        return VoltageMode.LINE_NEUTRAL
    if v in ("LL", "L-L"):
        return VoltageMode.LINE_LINE
    raise ValueError(f"Invalid voltage mode: {value!r}")


def format_value(value: Any) -> str:
    """Format a measurement for display: floats with 2 decimals, bools lowercase."""
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float):
        return f"{value:.2f}"
    return str(value)


def describe_model(model: ModelDescriptor) -> dict[str, Any]:
    return {
        "type_id": model.type_id,
        "reference": model.commercial_reference,
        "model": model.model,
        "name": model.name,
        "family": model.family.value,
        "phases": model.phase_count,
        "voltage_modes": sorted(m.value for m in model.voltage_modes),
    }


def handle_error(e: Exception, verbose: bool) -> NoReturn:
    """Map an exception to the CLI's exit codes."""
    if isinstance(e, typer.Exit):
        raise e
    if isinstance(e, UnknownModelError):
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(2)
    if isinstance(e, ValueError):
        typer.echo(f"Error: Invalid value: {e}", err=True)
        raise typer.Exit(2)
    if isinstance(e, GatewayConnectionError):
        typer.echo(f"Error: Connection error: {e}", err=True)
        raise typer.Exit(3)
    if isinstance(e, ModbusIOError):
        typer.echo(f"Error: Modbus error: {e}", err=True)
        raise typer.Exit(3)
    typer.echo(f"Error: Unexpected error: {e}", err=True)
    if verbose:
        import traceback
        traceback.print_exc()
    raise typer.Exit(4)


# ============================================================================
# Commands
# ============================================================================

@app.command()
def ping(
    host: HostOption = None,
    port: PortOption = 502,
    connect_timeout: ConnectTimeoutOption = 5.0,
    verbose: VerboseOption = False,
) -> None:
    """
    Test TCP connectivity to the gateway.
    """
    setup_logging(verbose)
    endpoint = require_endpoint(host, port)
    try:
        check_gateway(endpoint, connect_timeout)
        typer.echo(f"OK: Connected to {endpoint}")
    except Exception as e:
        handle_error(e, verbose)


@app.command()
def discover(
    host: HostOption = None,
    port: PortOption = 502,
    timeout: TimeoutOption = 0.5,
    connect_timeout: ConnectTimeoutOption = 10.0,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """
    Discover devices behind the gateway.

    Tries the Panel Server address table first, then falls back to scanning
    unit ID ranges (Smartlink / PowerTag Link).
    """
    setup_logging(verbose)
    endpoint = require_endpoint(host, port)
    try:
        config = DiscoveryConfig(connect_timeout=connect_timeout, request_timeout=timeout)
        devices = DeviceDiscovery(get_default_registry(), config).discover(endpoint)
        if json_output:
            rows = [dict(d.as_dict(), id=d.device_key(endpoint)) for d in devices]
            typer.echo(json.dumps(rows, indent=2))
        elif not devices:
            typer.echo(f"No devices found on {endpoint}")
        else:
            for d in devices:
                typer.echo(f"unit {d.unit_id:>3}  {d.model.commercial_reference:<10} {d.model.model:<12} {d.display_name}")
    except Exception as e:
        handle_error(e, verbose)


@app.command()
def poll(
    model: ModelOption,
    host: HostOption = None,
    port: PortOption = 502,
    unit_id: UnitIdOption = 1,
    timeout: TimeoutOption = 0.5,
    connect_timeout: ConnectTimeoutOption = 10.0,
    voltage_mode: VoltageModeOption = None,
    verbose: VerboseOption = False,
    interval: Annotated[float, typer.Option("--interval", "-i", help="Polling interval in seconds")] = 10.0,
    once: Annotated[bool, typer.Option("--once", help="Poll once and exit")] = False,
    format: Annotated[str, typer.Option("--format", "-f", help="Output format: text, json")] = "text",
) -> None:
    """
    Continuously poll one device at the specified interval.

    Outputs format:
    - text: timestamp + name=value pairs (default)
    - json: NDJSON with {"timestamp": "...", "values": {...}} per line

    Press Ctrl+C to stop gracefully.
    """
    setup_logging(verbose)

    if format not in ("text", "json"):
        typer.echo(f"Error: Invalid format '{format}'. Must be text or json.", err=True)
        raise typer.Exit(2)

    if interval <= 0:
        typer.echo(f"Error: Interval must be positive, got {interval}", err=True)
        raise typer.Exit(2)

    endpoint = require_endpoint(host, port)
    try:
        descriptor = get_default_registry().get(model)
        poller = DevicePoller(
            endpoint,
            unit_id,
            descriptor,
            voltage_mode=parse_voltage_mode(voltage_mode),
            connect_timeout=connect_timeout,
            timeout=timeout,
        )
        with closing(poller.poll_iter(interval)) as snapshots:
            for snapshot in snapshots:
                timestamp = datetime.now(timezone.utc).isoformat()
                values = snapshot.as_dict()
                if format == "json":
                    typer.echo(json.dumps({"timestamp": timestamp, "values": values}))
                else:
                    pairs = " ".join(f"{k}={format_value(v)}" for k, v in values.items())
                    typer.echo(f"{timestamp} {pairs}")
                if once:
                    break
    except KeyboardInterrupt:
        typer.echo("\nStopped by user", err=True)
        raise typer.Exit(0)
    except Exception as e:
        handle_error(e, verbose)


@app.command()
def output(
    state: Annotated[str, typer.Argument(help="on/off (also true/false, 1/0)")],
    host: HostOption = None,
    port: PortOption = 502,
    unit_id: UnitIdOption = 1,
    timeout: TimeoutOption = 0.5,
    connect_timeout: ConnectTimeoutOption = 10.0,
    verbose: VerboseOption = False,
) -> None:
    """
    Switch the digital output of a PowerTag Control IO module.
    """
    setup_logging(verbose)
    endpoint = require_endpoint(host, port)
    try:
        on = parse_bool(state)
        control_io = next(m for m in get_default_registry() if m.family == ModelFamily.CONTROL_IO)
        poller = DevicePoller(endpoint, unit_id, control_io, connect_timeout=connect_timeout, timeout=timeout)
        poller.set_output(on)
        typer.echo(f"OK: Output of unit {unit_id} set {'on' if on else 'off'}")
    except Exception as e:
        handle_error(e, verbose)


@app.command()
def models(
    json_output: JsonOption = False,
) -> None:
    """
    List known models. Does not require a connection.
    """
    rows = [describe_model(m) for m in get_default_registry()]
    if json_output:
        typer.echo(json.dumps(rows, indent=2))
        return
    for r in rows:
        modes = ",".join(r["voltage_modes"]) or "-"
        typer.echo(f"{r['type_id']:>4}  {r['reference']:<10} {r['family']:<12} {modes:<8} {r['name']}")


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"powertag-modbus {__version__}")
        raise typer.Exit(0)


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option("--version", callback=version_callback, is_eager=True, help="Show version and exit"),
    ] = None,
) -> None:
    """powertag - discover and poll PowerTag devices via Modbus TCP."""
    pass


if __name__ == "__main__":
    app()

"""Clear exceptions for powertag-modbus: gateway connection, Modbus I/O, decoding and model lookup."""

from typing import Any


class PowerTagModbusError(Exception):
    """Base exception for powertag-modbus."""

    pass


class GatewayConnectionError(PowerTagModbusError):
    """Raised when the TCP connection to the gateway cannot be established."""

    def __init__(self, host: str, port: int, message: str | None = None) -> None:
        self.host = host
        self.port = port
        super().__init__(message or f"Cannot connect to {host}:{port}")


class GatewayTimeoutError(GatewayConnectionError):
    """Raised when the gateway did not accept the connection within the connect timeout."""

    def __init__(self, host: str, port: int, message: str | None = None) -> None:
        super().__init__(host, port, message or f"Connection timeout to {host}:{port}")


class GatewayRefusedError(GatewayConnectionError):
    """Raised when the connection attempt failed at the transport level (refused, unreachable)."""


class ModbusIOError(PowerTagModbusError):
    """Raised when a Modbus read/write fails (wraps pymodbus errors and short responses)."""

    def __init__(
        self,
        message: str,
        *,
        unit_id: int | None = None,
        register: int | None = None,
        function: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.unit_id = unit_id
        self.register = register
        self.function = function
        self.cause = cause
        super().__init__(message)


class RequestTimeoutError(ModbusIOError):
    """Raised when no response arrived within the request timeout (usually: no device at this unit id)."""


class ModbusExceptionError(ModbusIOError):
    """Raised when the remote answered with a Modbus exception response."""

    def __init__(self, message: str, *, exception_code: int, **kwargs: Any) -> None:
        self.exception_code = exception_code
        super().__init__(message, **kwargs)


class DecodeError(PowerTagModbusError):
    """Raised when a register buffer is too short for the requested value."""

    pass


class UnknownModelError(PowerTagModbusError):
    """Raised when a type id or commercial reference is not in the model registry."""

    def __init__(self, key: object, message: str | None = None) -> None:
        self.key = key
        super().__init__(message or f"Unknown model: {key!r}")

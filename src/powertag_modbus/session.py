"""TransportSession: one pymodbus TCP connection with an explicit, session-owned unit id selector."""

import logging
import threading
import time
from typing import Any, Callable

from pymodbus.client import ModbusTcpClient
from pymodbus.exceptions import ModbusException as PymodbusException
from pymodbus.exceptions import ModbusIOException

from .codec import registers_to_bytes
from .errors import (
    GatewayRefusedError,
    GatewayTimeoutError,
    ModbusExceptionError,
    ModbusIOError,
    RequestTimeoutError,
)
from .types import MAX_REGISTERS_PER_READ, GatewayEndpoint

logger = logging.getLogger(__name__)

FC_READ_HOLDING_REGISTERS = 3
FC_WRITE_SINGLE_REGISTER = 6


class TransportSession:
    """
    One Modbus TCP connection to a gateway.

    Every request targets the unit id last passed to set_unit_id(). Requests
    are serialized on the session: the unit id cannot change while a request
    is in flight. Independent runs (discovery, per-device polls) each open
    their own session.
    """

    def __init__(
        self,
        endpoint: GatewayEndpoint,
        connect_timeout: float = 10.0,
        timeout: float = 0.5,
        unit_id: int = 1,
    ) -> None:
        self._endpoint = endpoint
        self._connect_timeout = connect_timeout
        self._timeout = timeout
        self._unit_id = unit_id
        self._client: ModbusTcpClient | None = None
        self._lock = threading.Lock()

    @property
    def endpoint(self) -> GatewayEndpoint:
        return self._endpoint

    @property
    def unit_id(self) -> int:
        return self._unit_id

    @property
    def connected(self) -> bool:
        return self._client is not None

    def set_unit_id(self, unit_id: int) -> None:
        """Select the device addressed by subsequent requests. No I/O."""
        if not (0 <= unit_id <= 255):
            raise ValueError(f"unit_id must be 0-255, got {unit_id}")
        with self._lock:
            self._unit_id = unit_id

    def connect(self, connect_timeout: float | None = None) -> None:
        """Establish the TCP connection to the gateway."""
        if self._client is not None:
            return
        host, port = self._endpoint.address, self._endpoint.port
        limit = self._connect_timeout if connect_timeout is None else connect_timeout
        client = ModbusTcpClient(host=host, port=port, timeout=limit, retries=0)
        started = time.monotonic()
        if not client.connect():
            elapsed = time.monotonic() - started
            client.close()
            if elapsed >= limit:
                raise GatewayTimeoutError(host, port)
            raise GatewayRefusedError(host, port)
        logger.debug("Connected to gateway %s (%.0f ms)", self._endpoint, (time.monotonic() - started) * 1000)
        self._client = client

    def close(self) -> None:
        """Close the TCP connection. Safe to call repeatedly."""
        if self._client is not None:
            try:
                self._client.close()
            except Exception as e:
                logger.warning("Error closing Modbus client: %s", e)
            self._client = None

    def __enter__(self) -> "TransportSession":
        self.connect()
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _execute(self, function: int, register: int, timeout: float | None, call: Callable[..., Any]) -> Any:
        with self._lock:
            client = self._client
            unit_id = self._unit_id
            if client is None:
                raise ModbusIOError(
                    f"Session to {self._endpoint} is not connected",
                    unit_id=unit_id,
                    register=register,
                    function=function,
                )
            # pymodbus uses the connect timeout for each response wait as well
            client.comm_params.timeout_connect = self._timeout if timeout is None else timeout
            try:
                rr = call(client, unit_id)
            except ModbusIOException as e:
                raise RequestTimeoutError(
                    f"No response from unit {unit_id} (register {register})",
                    unit_id=unit_id,
                    register=register,
                    function=function,
                    cause=e,
                ) from e
            except PymodbusException as e:
                raise ModbusIOError(str(e), unit_id=unit_id, register=register, function=function, cause=e) from e
        if rr.isError():
            code = getattr(rr, "exception_code", None)
            if code is not None:
                raise ModbusExceptionError(
                    f"Modbus exception {code} from unit {unit_id} (register {register})",
                    exception_code=int(code),
                    unit_id=unit_id,
                    register=register,
                    function=function,
                )
            raise ModbusIOError(str(rr), unit_id=unit_id, register=register, function=function)
        return rr

    def read_holding_registers(self, start_register: int, count: int, timeout: float | None = None) -> bytes:
        """Function 3 at the current unit id; returns the raw big-endian register bytes."""
        if not (1 <= count <= MAX_REGISTERS_PER_READ):
            raise ValueError(f"count must be 1-{MAX_REGISTERS_PER_READ}, got {count}")
        rr = self._execute(
            FC_READ_HOLDING_REGISTERS,
            start_register,
            timeout,
            lambda client, unit_id: client.read_holding_registers(start_register, count=count, device_id=unit_id),
        )
        registers = getattr(rr, "registers", None)
        if not registers or len(registers) < count:
            raise ModbusIOError(
                "Short register response",
                unit_id=self._unit_id,
                register=start_register,
                function=FC_READ_HOLDING_REGISTERS,
            )
        logger.debug("unit %d: read %d registers at %d", self._unit_id, count, start_register)
        return registers_to_bytes(registers[:count])

    def write_single_register(self, register: int, value: int, timeout: float | None = None) -> None:
        """Function 6 at the current unit id."""
        if not (0 <= value <= 0xFFFF):
            raise ValueError(f"Unsigned 16-bit value out of range: {value}")
        self._execute(
            FC_WRITE_SINGLE_REGISTER,
            register,
            timeout,
            lambda client, unit_id: client.write_register(register, value, device_id=unit_id),
        )
        logger.debug("unit %d: wrote %d to register %d", self._unit_id, value, register)

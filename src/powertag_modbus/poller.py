"""DevicePoller: periodic polling of one paired device over its own TransportSession."""

import logging
import time
from typing import Callable, Iterator

from .reader import read_snapshot, write_output
from .session import TransportSession
from .types import GatewayEndpoint, ModelDescriptor, ModelFamily, PollResult, VoltageMode

logger = logging.getLogger(__name__)


class DevicePoller:
    """
    Polls one device behind a gateway. Each poll() opens and closes a
    dedicated session; poll_iter() keeps one session open for its lifetime.
    Errors propagate unchanged: the caller owns the retry schedule.
    """

    def __init__(
        self,
        endpoint: GatewayEndpoint,
        unit_id: int,
        model: ModelDescriptor,
        voltage_mode: VoltageMode | None = None,
        connect_timeout: float = 10.0,
        timeout: float = 0.5,
        session_factory: Callable[..., TransportSession] = TransportSession,
    ) -> None:
        if voltage_mode is not None and voltage_mode not in model.voltage_modes:
            raise ValueError(f"{model.name} does not support voltage mode {voltage_mode.value}")
        self._endpoint = endpoint
        self._unit_id = unit_id
        self._model = model
        self._voltage_mode = voltage_mode or model.default_voltage_mode
        self._connect_timeout = connect_timeout
        self._timeout = timeout
        self._session_factory = session_factory

    @property
    def model(self) -> ModelDescriptor:
        return self._model

    @property
    def voltage_mode(self) -> VoltageMode | None:
        return self._voltage_mode

    def _open(self) -> TransportSession:
        session = self._session_factory(
            self._endpoint,
            connect_timeout=self._connect_timeout,
            timeout=self._timeout,
        )
        session.set_unit_id(self._unit_id)
        return session

    def _read(self, session: TransportSession) -> PollResult:
        return read_snapshot(session, self._model, self._voltage_mode, self._timeout)

    def poll(self) -> PollResult:
        """Read one snapshot."""
        with self._open() as session:
            return self._read(session)

    def poll_iter(self, interval_s: float) -> Iterator[PollResult]:
        """
        Yield a snapshot every interval_s seconds indefinitely.
        The session is closed when the generator is closed or a poll fails.
        """
        with self._open() as session:
            while True:
                yield self._read(session)
                time.sleep(interval_s)

    def set_output(self, on: bool) -> None:
        """Switch the Control IO output on or off."""
        if self._model.family != ModelFamily.CONTROL_IO:
            raise ValueError(f"{self._model.name} has no controllable output")
        with self._open() as session:
            write_output(session, on, self._model, self._timeout)

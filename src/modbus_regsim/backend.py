"""Backend collaborator: the RPC surface the sync engine talks to, and an in-process implementation."""

import base64
import binascii
import logging
from typing import Iterable, Protocol

from .bank import RegisterBank
from .errors import BackendError
from .server import SimulatorServer
from .types import RegisterConfig

logger = logging.getLogger(__name__)


class Backend(Protocol):
    """
    Serving backend. Raw values cross this boundary as base64 text because the
    channel is text-oriented. Any method may raise on transport failure.
    """

    def start_server(self, port: int) -> None: ...

    def stop_server(self) -> None: ...

    def list_configs(self) -> list[RegisterConfig]: ...

    def upsert_config(self, config: RegisterConfig) -> None: ...

    def remove_config(self, config_id: str) -> None: ...

    def get_values(self) -> dict[str, str]: ...

    def set_value(self, config_id: str, value: str) -> None: ...


def encode_raw(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def decode_raw(text: str) -> bytes:
    """Decode base64 raw text; raises ValueError when it is not valid base64."""
    try:
        return base64.b64decode(text, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 raw value: {text!r}") from e


class LocalBackend:
    """In-process backend: a RegisterBank served over Modbus TCP by pymodbus."""

    def __init__(self, bank: RegisterBank | None = None, server: SimulatorServer | None = None) -> None:
        self._bank = bank if bank is not None else RegisterBank()
        self._server = server if server is not None else SimulatorServer(self._bank)

    @property
    def bank(self) -> RegisterBank:
        return self._bank

    @property
    def server_running(self) -> bool:
        return self._server.running

    def start_server(self, port: int) -> None:
        self._server.start(port)

    def stop_server(self) -> None:
        self._server.stop()

    def load_configs(self, configs: Iterable[RegisterConfig]) -> None:
        """Replace every config and reset register memory."""
        self._bank.load(configs)

    def list_configs(self) -> list[RegisterConfig]:
        return self._bank.configs()

    def upsert_config(self, config: RegisterConfig) -> None:
        logger.debug("Backend upsert %s: %s", config.id, config)
        self._bank.set_config(config)

    def remove_config(self, config_id: str) -> None:
        self._bank.remove_config(config_id)

    def get_values(self) -> dict[str, str]:
        return {k: encode_raw(v) for k, v in self._bank.values().items()}

    def set_value(self, config_id: str, value: str) -> None:
        try:
            data = decode_raw(value)
        except ValueError as e:
            raise BackendError(str(e), cause=e) from e
        self._bank.set_value(config_id, data)

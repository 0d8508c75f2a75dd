"""SimulatorSession: owns one ConfigStore, its backend and the sync engine for a running simulator."""

import logging
from typing import Any, Iterable

from .backend import Backend, LocalBackend
from .codec import display_value
from .errors import RegSimError, SyncError
from .normalize import format_address, format_hex_bytes
from .store import ConfigStore
from .sync import DEFAULT_INTERVAL, ValueSyncEngine
from .types import OverlapPolicy, RegisterConfig, RegisterRow

logger = logging.getLogger(__name__)


def render_row(config: RegisterConfig, raw: bytes) -> RegisterRow:
    """Derive the display row of a point from its raw bytes."""
    try:
        value = display_value(config, raw)
    except RegSimError as e:
        logger.debug("Cannot render %s: %s", config.id, e)
        value = f"<{e}>"
    return RegisterRow(
        id=config.id,
        enabled=config.enabled,
        description=config.description,
        address=format_address(config.start_addr),
        raw_hex=format_hex_bytes(raw),
        value=value,
    )


class SimulatorSession:
    """
    One simulator session: store + backend + sync engine. Use as a context
    manager; leaving it cancels the poll timer and stops the server.
    """

    def __init__(
        self,
        configs: Iterable[RegisterConfig] | None = None,
        backend: Backend | None = None,
        interval: float = DEFAULT_INTERVAL,
        overlap_policy: OverlapPolicy | str = OverlapPolicy.ENABLED,
    ) -> None:
        self._store = ConfigStore(overlap_policy=overlap_policy)
        self._backend: Backend = backend if backend is not None else LocalBackend()
        self._engine = ValueSyncEngine(self._store, self._backend, interval=interval)
        self._server_running = False
        if configs is not None:
            self._engine.import_configs(configs)

    @property
    def store(self) -> ConfigStore:
        return self._store

    @property
    def engine(self) -> ValueSyncEngine:
        return self._engine

    @property
    def backend(self) -> Backend:
        return self._backend

    @property
    def server_running(self) -> bool:
        return self._server_running

    def start_server(self, port: int) -> None:
        try:
            self._backend.start_server(port)
        except Exception as e:
            raise SyncError(f"Failed to start server on port {port}: {e}", cause=e) from e
        self._server_running = True

    def stop_server(self) -> None:
        try:
            self._backend.stop_server()
        except Exception as e:
            raise SyncError(f"Failed to stop server: {e}", cause=e) from e
        self._server_running = False

    def open(self) -> None:
        """Push configs, take a first snapshot and start the poll timer."""
        self._engine.push_configs()
        self._engine.poll()
        self._engine.start()

    def close(self) -> None:
        """Cancel the poll timer and stop the server if it is running."""
        self._engine.stop()
        if self._server_running:
            try:
                self.stop_server()
            except SyncError as e:
                logger.warning("Error stopping Modbus server: %s", e)

    def __enter__(self) -> "SimulatorSession":
        self.open()
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def rows(self) -> list[RegisterRow]:
        """Table rows in store order, from the latest raw values (init values before the first poll)."""
        return [render_row(c, self._store.raw_value(c.id)) for c in self._store.list()]

"""ValueSyncEngine: periodic polling of backend values, write-then-resync, and delta stepping."""

import logging
import math
import threading
from typing import Iterable

from .backend import Backend, decode_raw, encode_raw
from .codec import encode, encode_engineering, engineering_value, from_engineering, round_half_away
from .errors import BufferSizeMismatchError, SyncError, UnsupportedTypeError
from .normalize import parse_binary, parse_hex_bytes
from .store import ConfigStore
from .types import NUMBER_TYPES, RegisterConfig, StepDirection, ValueType

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 1.0


def stepped_raw(config: RegisterConfig, raw: bytes, direction: StepDirection | str) -> bytes:
    """
    Raw buffer after moving the engineering value of raw by one delta.

    Every numeric type lands on round_half_away((engineering +/- delta - offset) / scale),
    so float points step in whole raw units too. A non-finite target (a NaN or
    infinite float raw) is encoded as is. Bool and Binary points cannot be stepped.
    """
    if config.value_type not in NUMBER_TYPES:
        raise UnsupportedTypeError(config.value_type, f"Cannot step a {config.value_type.value} point")
    step = config.delta if StepDirection(direction) == StepDirection.INCREASE else -config.delta
    current = engineering_value(config, raw)
    target = from_engineering(current + step, config.scale, config.offset)
    if math.isfinite(target):
        target = round_half_away(target)
    return encode(target, config.byte_order, config.value_type)


class ValueSyncEngine:
    """
    Keeps a ConfigStore's raw values in step with a Backend.

    A repeating daemon timer polls every `interval` seconds between start() and
    stop(). Every write is followed by an extra poll once the backend has
    acknowledged it; that poll does not reset the timer. Failures raise SyncError
    and are never retried here. Two writes racing on one id are last-write-wins
    at the backend.
    """

    def __init__(self, store: ConfigStore, backend: Backend, interval: float = DEFAULT_INTERVAL) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")
        self._store = store
        self._backend = backend
        self._interval = interval
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()

    @property
    def store(self) -> ConfigStore:
        return self._store

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # Polling

    def poll(self) -> dict[str, bytes]:
        """Fetch all values from the backend and swap them into the store."""
        try:
            encoded = self._backend.get_values()
        except Exception as e:
            raise SyncError(f"Failed to poll values: {e}", cause=e) from e
        values: dict[str, bytes] = {}
        for config_id, text in encoded.items():
            try:
                values[config_id] = decode_raw(text)
            except ValueError as e:
                raise SyncError(str(e), register_id=config_id, cause=e) from e
        fresh = self._store.replace_raw_values(values)
        logger.debug("Polled %d values", len(fresh))
        return fresh

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self._interval):
            try:
                self.poll()
            except SyncError as e:
                logger.warning("Periodic poll failed: %s", e)

    def start(self) -> None:
        """Start the repeating poll timer (no-op if already running)."""
        if self.running:
            return
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run, args=(self._stop_event,), name="regsim-poll", daemon=True
        )
        self._thread.start()
        logger.debug("Poll timer started (%.3fs)", self._interval)

    def stop(self, timeout: float | None = None) -> None:
        """Cancel the poll timer and wait for an in-flight poll to finish."""
        thread = self._thread
        self._stop_event.set()
        self._thread = None
        if thread is not None:
            thread.join(timeout)
            logger.debug("Poll timer stopped")

    # Writes

    def write(self, config_id: str, raw: bytes) -> dict[str, bytes]:
        """
        Send raw bytes for config_id to the backend, then resync. The resync runs
        even when the write fails; the write's SyncError is raised afterwards.
        """
        config = self._store.get(config_id)
        if len(raw) != config.raw_size:
            raise BufferSizeMismatchError(config.raw_size, len(raw))
        try:
            self._backend.set_value(config_id, encode_raw(bytes(raw)))
        except Exception as e:
            error = SyncError(f"Failed to write {config_id!r}: {e}", register_id=config_id, cause=e)
            try:
                self.poll()
            except SyncError as poll_error:
                logger.warning("Resync after failed write to %s also failed: %s", config_id, poll_error)
            raise error from e
        logger.debug("Wrote %s = %s", config_id, raw.hex())
        return self.poll()

    def step_value(self, config_id: str, direction: StepDirection | str) -> dict[str, bytes]:
        """Increase or decrease a numeric point by its delta."""
        config = self._store.get(config_id)
        raw = stepped_raw(config, self._store.raw_value(config_id), direction)
        return self.write(config_id, raw)

    def set_engineering(self, config_id: str, value: float | bool) -> dict[str, bytes]:
        """Write an engineering value; integer types truncate the raw quotient."""
        config = self._store.get(config_id)
        if config.value_type == ValueType.BINARY:
            raise UnsupportedTypeError(config.value_type, "Binary points take bit strings, not numbers")
        return self.write(config_id, encode_engineering(config, value))

    def set_bool(self, config_id: str, flag: bool) -> dict[str, bytes]:
        """Write 0xFF00 / 0x0000 big-endian regardless of the point's byte order."""
        raw = (0xFF00 if flag else 0x0000).to_bytes(2, "big")
        config = self._store.get(config_id)
        return self.write(config_id, raw.ljust(config.raw_size, b"\x00"))

    def set_hex(self, config_id: str, text: str) -> dict[str, bytes]:
        """Write raw hex text (e.g. "01 F4"); it must cover the point exactly."""
        return self.write(config_id, parse_hex_bytes(text))

    def set_binary(self, config_id: str, text: str) -> dict[str, bytes]:
        """Write a bit string, left-padded to the point's size."""
        config = self._store.get(config_id)
        return self.write(config_id, parse_binary(text, config.raw_size))

    # Config mirroring

    def _mirror(self, config: RegisterConfig) -> None:
        try:
            if config.enabled:
                self._backend.upsert_config(config)
            else:
                self._backend.remove_config(config.id)
        except Exception as e:
            raise SyncError(f"Failed to push config {config.id!r}: {e}", register_id=config.id, cause=e) from e

    def push_configs(self, reset: bool = False) -> None:
        """
        Make the backend's configs match the store (enabled ones only). With
        reset, every backend config is dropped first so registers are reseeded
        from init values.
        """
        wanted = set() if reset else {c.id for c in self._store.list() if c.enabled}
        try:
            stale = [c.id for c in self._backend.list_configs() if c.id not in wanted]
        except Exception as e:
            raise SyncError(f"Failed to list backend configs: {e}", cause=e) from e
        for config_id in stale:
            try:
                self._backend.remove_config(config_id)
            except Exception as e:
                raise SyncError(f"Failed to remove config {config_id!r}: {e}", register_id=config_id, cause=e) from e
        for config in self._store.list():
            self._mirror(config)

    def apply_config(self, config: RegisterConfig) -> dict[str, bytes]:
        """Upsert into the store (validated), mirror to the backend and resync."""
        self._store.upsert(config)
        self._mirror(config)
        return self.poll()

    def delete_config(self, config_id: str) -> dict[str, bytes]:
        """Remove from the store and the backend, then resync."""
        self._store.remove(config_id)
        try:
            self._backend.remove_config(config_id)
        except Exception as e:
            raise SyncError(f"Failed to remove config {config_id!r}: {e}", register_id=config_id, cause=e) from e
        return self.poll()

    def import_configs(self, configs: Iterable[RegisterConfig]) -> dict[str, bytes]:
        """Replace the store's collection (all-or-nothing), rebuild the backend and resync."""
        self._store.import_all(configs)
        self.push_configs(reset=True)
        return self.poll()

"""ConfigStore: in-memory register configs in insertion order plus the latest polled raw values."""

import logging
import threading
from typing import Iterable, Mapping

from .errors import (
    AddressRangeOverlapError,
    DuplicateRegisterError,
    ImportValidationError,
    RegSimError,
    UnknownRegisterError,
)
from .types import OverlapPolicy, RegisterConfig
from .validation import validate

logger = logging.getLogger(__name__)


def _checked(config: RegisterConfig, policy: OverlapPolicy) -> bool:
    if policy == OverlapPolicy.OFF:
        return False
    return policy == OverlapPolicy.ALL or config.enabled


def find_overlap(
    config: RegisterConfig,
    others: Iterable[RegisterConfig],
    policy: OverlapPolicy = OverlapPolicy.ENABLED,
) -> RegisterConfig | None:
    """Return the first config in others (other than config itself) whose span overlaps config under policy."""
    if not _checked(config, policy):
        return None
    for other in others:
        if other.id != config.id and _checked(other, policy) and config.overlaps(other):
            return other
    return None


class ConfigStore:
    """
    Authoritative collection of RegisterConfigs keyed by id. Entries are frozen
    and only ever replaced whole; the raw value map is swapped out wholesale, so
    readers never see a partially updated entry.
    """

    def __init__(
        self,
        configs: Iterable[RegisterConfig] | None = None,
        overlap_policy: OverlapPolicy | str = OverlapPolicy.ENABLED,
    ) -> None:
        self._overlap_policy = OverlapPolicy(overlap_policy)
        self._configs: dict[str, RegisterConfig] = {}
        self._raw: dict[str, bytes] = {}
        self._lock = threading.Lock()
        if configs is not None:
            self.import_all(configs)

    @property
    def overlap_policy(self) -> OverlapPolicy:
        return self._overlap_policy

    def list(self) -> list[RegisterConfig]:
        """Configs in insertion order."""
        return list(self._configs.values())

    def get(self, config_id: str) -> RegisterConfig:
        try:
            return self._configs[config_id]
        except KeyError:
            raise UnknownRegisterError(config_id) from None

    def __len__(self) -> int:
        return len(self._configs)

    def __contains__(self, config_id: object) -> bool:
        return config_id in self._configs

    def upsert(self, config: RegisterConfig) -> None:
        """
        Insert config, or replace the entry with the same id whole.

        Raises ValidationError for an invalid config and AddressRangeOverlapError
        when its span collides with another config under the overlap policy.
        """
        validate(config).raise_for_error()
        with self._lock:
            other = find_overlap(config, self._configs.values(), self._overlap_policy)
            if other is not None:
                raise AddressRangeOverlapError(config.id, other.id)
            previous = self._configs.get(config.id)
            self._configs[config.id] = config
            if previous is not None and previous.raw_size != config.raw_size:
                self._raw = {k: v for k, v in self._raw.items() if k != config.id}
        logger.debug("Config %s %s at %04X", config.id, "replaced" if previous else "added", config.start_addr)

    def remove(self, config_id: str) -> RegisterConfig:
        """Delete a config and its raw value; raises UnknownRegisterError if absent."""
        with self._lock:
            try:
                removed = self._configs.pop(config_id)
            except KeyError:
                raise UnknownRegisterError(config_id) from None
            self._raw = {k: v for k, v in self._raw.items() if k != config_id}
        logger.debug("Config %s removed", config_id)
        return removed

    def import_all(self, configs: Iterable[RegisterConfig]) -> None:
        """
        Replace the whole collection. Every entry is validated (fields, duplicate
        ids, overlaps within the new set) before anything changes; the first
        offender raises ImportValidationError and the store is left untouched.
        """
        incoming = list(configs)
        accepted: dict[str, RegisterConfig] = {}
        for index, config in enumerate(incoming):
            cause: RegSimError | None = validate(config).error
            if cause is None and config.id in accepted:
                cause = DuplicateRegisterError(config.id)
            if cause is None:
                other = find_overlap(config, accepted.values(), self._overlap_policy)
                if other is not None:
                    cause = AddressRangeOverlapError(config.id, other.id)
            if cause is not None:
                raise ImportValidationError(index, config.id, cause)
            accepted[config.id] = config

        with self._lock:
            self._configs = accepted
            self._raw = {k: v for k, v in self._raw.items() if k in accepted and len(v) == accepted[k].raw_size}
        logger.debug("Imported %d configs", len(accepted))

    def export_all(self) -> tuple[RegisterConfig, ...]:
        """Immutable snapshot of the collection in insertion order."""
        return tuple(self._configs.values())

    def raw_values(self) -> dict[str, bytes]:
        """Copy of the latest polled raw values keyed by id."""
        return dict(self._raw)

    def raw_value(self, config_id: str) -> bytes:
        """
        Current raw bytes for a config: the last polled value, else its init
        value, else zeros.
        """
        config = self.get(config_id)
        raw = self._raw.get(config_id)
        if raw is not None:
            return raw
        if config.init_value:
            return config.init_value
        return bytes(config.raw_size)

    def replace_raw_values(self, values: Mapping[str, bytes]) -> dict[str, bytes]:
        """
        Swap in a freshly polled raw map. Ids not in the store and buffers whose
        length no longer matches their config are dropped.
        """
        with self._lock:
            fresh = {
                k: bytes(v)
                for k, v in values.items()
                if k in self._configs and len(v) == self._configs[k].raw_size
            }
            self._raw = fresh
        return dict(fresh)

"""RegisterBank: the simulated slave's register memory, addressed by register and by config id."""

import logging
import threading
from typing import Iterable

from .errors import UnknownRegisterError
from .types import RegisterConfig

logger = logging.getLogger(__name__)

COIL_ON = 0xFF00
COIL_OFF = 0x0000


class RegisterBank:
    """
    One 16-bit register map shared by all four Modbus tables. Only addresses
    covered by a config exist; coils and discrete inputs read "register != 0".
    Raw values are exchanged as big-endian register bytes.
    """

    def __init__(self) -> None:
        self._registers: dict[int, int] = {}
        self._configs: dict[str, RegisterConfig] = {}
        self._lock = threading.RLock()

    def _covered_elsewhere(self, addr: int, config_id: str) -> bool:
        return any(
            c.id != config_id and c.start_addr <= addr < c.end_addr for c in self._configs.values()
        )

    def _release(self, config: RegisterConfig, keep: range = range(0)) -> None:
        for addr in range(config.start_addr, config.end_addr):
            if addr not in keep and not self._covered_elsewhere(addr, config.id):
                self._registers.pop(addr, None)

    def _seed(self, config: RegisterConfig) -> None:
        init = config.init_value
        for i, addr in enumerate(range(config.start_addr, config.end_addr)):
            if addr in self._registers:
                continue
            chunk = init[i * 2 : i * 2 + 2]
            self._registers[addr] = int.from_bytes(chunk, "big") if len(chunk) == 2 else 0

    def load(self, configs: Iterable[RegisterConfig]) -> None:
        """Reset memory and configs, then seed every config's registers."""
        with self._lock:
            self._registers = {}
            self._configs = {}
            for config in configs:
                self._configs[config.id] = config
                self._seed(config)
        logger.debug("Register bank loaded: %d configs, %d registers", len(self._configs), len(self._registers))

    def set_config(self, config: RegisterConfig) -> None:
        """Add or replace a config; registers that already hold a value keep it."""
        with self._lock:
            previous = self._configs.get(config.id)
            if previous is not None:
                self._release(previous, keep=range(config.start_addr, config.end_addr))
            self._configs[config.id] = config
            self._seed(config)

    def remove_config(self, config_id: str) -> None:
        """Drop a config and free its registers; unknown ids are ignored."""
        with self._lock:
            config = self._configs.get(config_id)
            if config is None:
                return
            self._release(config)
            del self._configs[config_id]

    def configs(self) -> list[RegisterConfig]:
        """Configs sorted by start address."""
        with self._lock:
            return sorted(self._configs.values(), key=lambda c: c.start_addr)

    def values(self) -> dict[str, bytes]:
        """Raw bytes of every config, keyed by id."""
        with self._lock:
            return {
                config_id: b"".join(
                    self._registers.get(addr, 0).to_bytes(2, "big")
                    for addr in range(config.start_addr, config.end_addr)
                )
                for config_id, config in self._configs.items()
            }

    def set_value(self, config_id: str, data: bytes) -> None:
        """Write raw bytes across a config's registers; missing trailing bytes read as zero."""
        with self._lock:
            config = self._configs.get(config_id)
            if config is None:
                raise UnknownRegisterError(config_id)
            for i, addr in enumerate(range(config.start_addr, config.end_addr)):
                chunk = data[i * 2 : i * 2 + 2].ljust(2, b"\x00")
                self._registers[addr] = int.from_bytes(chunk, "big")

    # Register-level access used by the Modbus data blocks.

    def has_range(self, address: int, count: int) -> bool:
        with self._lock:
            return count > 0 and all(a in self._registers for a in range(address, address + count))

    def read_registers(self, address: int, count: int) -> list[int]:
        with self._lock:
            return [self._registers[a] for a in range(address, address + count)]

    def write_registers(self, address: int, values: Iterable[int]) -> None:
        with self._lock:
            for i, value in enumerate(values):
                self._registers[address + i] = int(value) & 0xFFFF

    def read_bits(self, address: int, count: int) -> list[bool]:
        return [r != 0 for r in self.read_registers(address, count)]

    def write_bits(self, address: int, values: Iterable[bool]) -> None:
        self.write_registers(address, [COIL_ON if v else COIL_OFF for v in values])

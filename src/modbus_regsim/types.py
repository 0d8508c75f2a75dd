"""Core data model: value type / byte order enums, overlap policy and RegisterConfig."""

import dataclasses
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any


class ValueType(str, Enum):
    """How a register point's raw bytes are interpreted (values are the portable-file names)."""

    BOOL = "bool"
    UINT16 = "uint16"
    INT16 = "int16"
    UINT32 = "uint32"
    INT32 = "int32"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    BINARY = "binary"


INTEGER_TYPES = frozenset({ValueType.UINT16, ValueType.INT16, ValueType.UINT32, ValueType.INT32})
FLOAT_TYPES = frozenset({ValueType.FLOAT32, ValueType.FLOAT64})
NUMBER_TYPES = INTEGER_TYPES | FLOAT_TYPES


class ByteOrder(str, Enum):
    """Byte order used to assemble multi-byte fields."""

    BIG_ENDIAN = "bigEndian"
    LITTLE_ENDIAN = "littleEndian"


class OverlapPolicy(str, Enum):
    """Which configs take part in the address-overlap check on upsert."""

    ENABLED = "enabled"  # enabled configs only
    ALL = "all"
    OFF = "off"


class StepDirection(str, Enum):
    """Direction of a delta step on a numeric point."""

    INCREASE = "increase"
    DECREASE = "decrease"


def new_config_id() -> str:
    """Return a fresh opaque register id."""
    return uuid.uuid4().hex


@dataclass(frozen=True)
class RegisterConfig:
    """
    One simulated register point. Immutable: edits produce a new instance via replace().
    Enum fields accept their string values and are coerced on construction.
    """

    id: str
    description: str
    start_addr: int
    addr_size: int = 1
    value_type: ValueType = ValueType.UINT16
    byte_order: ByteOrder = ByteOrder.BIG_ENDIAN
    scale: float = 1.0
    offset: float = 0.0
    delta: float = 1.0
    enabled: bool = True
    init_value: bytes = b""

    def __post_init__(self) -> None:
        object.__setattr__(self, "value_type", ValueType(self.value_type))
        object.__setattr__(self, "byte_order", ByteOrder(self.byte_order))
        object.__setattr__(self, "init_value", bytes(self.init_value))

    @property
    def raw_size(self) -> int:
        """Length in bytes of this point's raw value."""
        return self.addr_size * 2

    @property
    def end_addr(self) -> int:
        """First register address after this point (exclusive)."""
        return self.start_addr + self.addr_size

    def overlaps(self, other: "RegisterConfig") -> bool:
        return self.start_addr < other.end_addr and other.start_addr < self.end_addr

    def replace(self, **changes: Any) -> "RegisterConfig":
        return dataclasses.replace(self, **changes)


@dataclass(frozen=True)
class RegisterRow:
    """Rendered table row for one point: address, raw hex and display value."""

    id: str
    enabled: bool
    description: str
    address: str
    raw_hex: str
    value: str

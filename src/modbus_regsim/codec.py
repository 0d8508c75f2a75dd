"""Pure register value codec: raw bytes <-> typed values, plus the scale/offset transform.

Conventions:
- Bool occupies one register. Decode is "any bit set"; encode writes 0xFF00
  (coil-style true) or 0x0000 in the requested byte order.
- Integer encode truncates toward zero, then wraps to the type width.
- Float32/Float64 follow IEEE 754 exactly (struct).
- Binary has no numeric form; see normalize.format_binary / parse_binary.
"""

import math
import struct
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from .errors import BufferSizeMismatchError, UnsupportedTypeError
from .normalize import format_binary
from .types import INTEGER_TYPES, ByteOrder, RegisterConfig, ValueType

# struct format letter and width in bytes
_FORMATS: dict[ValueType, tuple[str, int]] = {
    ValueType.UINT16: ("H", 2),
    ValueType.INT16: ("h", 2),
    ValueType.UINT32: ("I", 4),
    ValueType.INT32: ("i", 4),
    ValueType.FLOAT32: ("f", 4),
    ValueType.FLOAT64: ("d", 8),
}

_BOOL_TRUE = 0xFF00
_BOOL_FALSE = 0x0000


def _value_type(value_type: Any) -> ValueType:
    try:
        return ValueType(value_type)
    except ValueError:
        raise UnsupportedTypeError(value_type) from None


def _prefix(byte_order: Any) -> str:
    return "<" if ByteOrder(byte_order) == ByteOrder.LITTLE_ENDIAN else ">"


def type_width(value_type: ValueType | str) -> int | None:
    """Byte width of a value type; None for Binary, which takes any register count."""
    vt = _value_type(value_type)
    if vt == ValueType.BOOL:
        return 2
    if vt == ValueType.BINARY:
        return None
    return _FORMATS[vt][1]


def _check_size(buffer: bytes, expected: int) -> None:
    if len(buffer) != expected:
        raise BufferSizeMismatchError(expected, len(buffer))


def _wrap_int(value: int, width: int, signed: bool) -> int:
    bits = width * 8
    n = value & ((1 << bits) - 1)
    if signed and n >= 1 << (bits - 1):
        n -= 1 << bits
    return n


def decode(buffer: bytes, byte_order: ByteOrder | str, value_type: ValueType | str) -> int | float | bool:
    """Decode a raw buffer into a bool, int or float according to value_type."""
    vt = _value_type(value_type)
    if vt == ValueType.BINARY:
        raise UnsupportedTypeError(vt, "Binary values have no numeric decoding")
    if vt == ValueType.BOOL:
        _check_size(buffer, 2)
        return any(buffer)
    fmt, width = _FORMATS[vt]
    _check_size(buffer, width)
    return struct.unpack(_prefix(byte_order) + fmt, bytes(buffer))[0]


def encode(value: int | float | bool, byte_order: ByteOrder | str, value_type: ValueType | str) -> bytes:
    """
    Encode a value into raw bytes according to value_type.

    Integer types truncate toward zero and wrap instead of raising on out-of-range
    input; non-finite input to an integer type raises ValueError.
    """
    vt = _value_type(value_type)
    prefix = _prefix(byte_order)
    if vt == ValueType.BINARY:
        raise UnsupportedTypeError(vt, "Binary values have no numeric encoding")
    if vt == ValueType.BOOL:
        return struct.pack(prefix + "H", _BOOL_TRUE if value else _BOOL_FALSE)
    fmt, width = _FORMATS[vt]
    if vt in INTEGER_TYPES:
        if isinstance(value, float) and not math.isfinite(value):
            raise ValueError(f"Cannot encode non-finite value {value!r} as {vt.value}")
        n = _wrap_int(math.trunc(value), width, signed=fmt.islower())
        return struct.pack(prefix + fmt, n)
    try:
        return struct.pack(prefix + fmt, float(value))
    except OverflowError:
        # Float32 saturates to infinity like an IEEE narrowing conversion.
        return struct.pack(prefix + fmt, math.copysign(math.inf, value))


def round_half_away(x: float) -> int:
    """Round to the nearest integer, halves away from zero (2.5 -> 3, -2.5 -> -3)."""
    return int(Decimal(x).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def to_engineering(raw: int | float, scale: float, offset: float) -> float:
    return raw * scale + offset


def from_engineering(value: float, scale: float, offset: float) -> float:
    return (value - offset) / scale


def engineering_value(config: RegisterConfig, raw: bytes) -> int | float | bool:
    """
    Derive the engineering value of a raw buffer for config. Bool points yield
    True/False without the linear transform.
    """
    _check_size(raw, config.raw_size)
    value = decode(raw, config.byte_order, config.value_type)
    if config.value_type == ValueType.BOOL:
        return value
    return to_engineering(value, config.scale, config.offset)


def encode_engineering(config: RegisterConfig, value: int | float | bool) -> bytes:
    """Inverse of engineering_value: engineering value -> raw buffer of config.raw_size bytes."""
    if config.value_type == ValueType.BOOL:
        data = encode(bool(value), config.byte_order, config.value_type)
    else:
        raw = from_engineering(value, config.scale, config.offset)
        data = encode(raw, config.byte_order, config.value_type)
    _check_size(data, config.raw_size)
    return data


def format_number(value: int | float | bool) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def display_value(config: RegisterConfig, raw: bytes) -> str:
    """Text shown for a point: true/false, a number, or grouped bits for Binary."""
    if config.value_type == ValueType.BINARY:
        _check_size(raw, config.raw_size)
        return format_binary(raw)
    return format_number(engineering_value(config, raw))

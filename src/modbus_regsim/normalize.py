"""Normalize display text: hex addresses, hex byte strings and grouped binary strings."""

import re

from .errors import BufferSizeMismatchError, InvalidAddressError

MAX_ADDRESS = 0xFFFF

_HEX_PATTERN = re.compile(r"^[0-9A-F]+$", re.IGNORECASE)
_BINARY_PATTERN = re.compile(r"^[01]+$")
_WHITESPACE = re.compile(r"\s+")


def format_address(addr: int) -> str:
    """Canonical address form: 4-digit uppercase hex (0x1F36 -> "1F36")."""
    return f"{addr:04X}"


def parse_address(raw: str) -> int:
    """
    Parse hex address text (case-insensitive, optional 0x prefix) into 0..65535.

    Raises InvalidAddressError for empty, non-hex or out-of-range text.
    """
    s = raw.strip()
    if s.lower().startswith("0x"):
        s = s[2:]
    if not s:
        raise InvalidAddressError(raw, "Address cannot be empty")
    if not _HEX_PATTERN.match(s):
        raise InvalidAddressError(raw, f"Address is not hexadecimal: {raw!r}")
    addr = int(s, 16)
    if addr > MAX_ADDRESS:
        raise InvalidAddressError(raw, f"Address out of range 0000-FFFF: {raw!r}")
    return addr


def format_hex_bytes(data: bytes) -> str:
    """Render bytes as space-separated uppercase pairs (b"\\x01\\xf4" -> "01 F4")."""
    return " ".join(f"{b:02X}" for b in data)


def parse_hex_bytes(raw: str) -> bytes:
    """
    Parse hex text into bytes. Whitespace is ignored; an odd digit count is
    left-padded with a single zero.
    """
    s = _WHITESPACE.sub("", raw)
    if not s:
        return b""
    if not _HEX_PATTERN.match(s):
        raise ValueError(f"Invalid hex string: {raw!r}")
    if len(s) % 2:
        s = "0" + s
    return bytes.fromhex(s)


def format_binary(data: bytes) -> str:
    """Render bytes as bits in groups of four (b"\\x01\\xf4" -> "0000 0001 1111 0100")."""
    bits = "".join(f"{b:08b}" for b in data)
    return " ".join(bits[i : i + 4] for i in range(0, len(bits), 4))


def parse_binary(raw: str, size: int | None = None) -> bytes:
    """
    Parse a 0/1 string into bytes. Whitespace is ignored and the bits are
    left-padded to whole bytes, then to size bytes when given.

    Raises BufferSizeMismatchError when the bits do not fit in size bytes.
    """
    s = _WHITESPACE.sub("", raw)
    if s and not _BINARY_PATTERN.match(s):
        raise ValueError(f"Invalid binary string: {raw!r}")
    nbytes = (len(s) + 7) // 8
    if size is not None:
        if nbytes > size:
            raise BufferSizeMismatchError(size, nbytes)
        nbytes = size
    return int(s or "0", 2).to_bytes(nbytes, "big")

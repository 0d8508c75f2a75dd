"""Portable JSON document for register configs (import/export), independent of the live backend."""

import base64
import binascii
import json
import logging
import math
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable

from .errors import ParseError
from .types import ByteOrder, RegisterConfig, ValueType

logger = logging.getLogger(__name__)

# Document field name -> RegisterConfig attribute, in document order.
_FIELDS: dict[str, str] = {
    "id": "id",
    "enabled": "enabled",
    "description": "description",
    "startAddr": "start_addr",
    "addrSize": "addr_size",
    "initValue": "init_value",
    "valueType": "value_type",
    "byteOrder": "byte_order",
    "scale": "scale",
    "offset": "offset",
    "delta": "delta",
}


def config_to_dict(config: RegisterConfig) -> dict[str, Any]:
    """Portable form of one config (camelCase keys, init value as base64 text)."""
    return {
        "id": config.id,
        "enabled": config.enabled,
        "description": config.description,
        "startAddr": config.start_addr,
        "addrSize": config.addr_size,
        "initValue": base64.b64encode(config.init_value).decode("ascii"),
        "valueType": config.value_type.value,
        "byteOrder": config.byte_order.value,
        "scale": config.scale,
        "offset": config.offset,
        "delta": config.delta,
    }


def _require(entry: dict[str, Any], key: str, index: int, kinds: tuple[type, ...], label: str) -> Any:
    if key not in entry:
        raise ParseError(f"Entry {index}: missing field {key!r}", index=index, field=key)
    value = entry[key]
    # bool is an int subclass; only accept it where a bool is wanted
    if not isinstance(value, kinds) or (isinstance(value, bool) and bool not in kinds):
        raise ParseError(f"Entry {index}: field {key!r} must be {label}, got {value!r}", index=index, field=key)
    return value


def _number(entry: dict[str, Any], name: str, index: int) -> float:
    value = _require(entry, name, index, (int, float), "a number")
    try:
        return float(value)
    except OverflowError:
        raise ParseError(f"Entry {index}: field {name!r} is out of range", index=index, field=name) from None


def _parse_entry(entry: Any, index: int) -> RegisterConfig:
    """Build a RegisterConfig from one document entry, checking every field's shape."""
    if not isinstance(entry, dict):
        raise ParseError(f"Entry {index}: expected an object, got {type(entry).__name__}", index=index)

    config_id = _require(entry, "id", index, (str,), "a string")
    enabled = _require(entry, "enabled", index, (bool,), "a boolean")
    description = _require(entry, "description", index, (str,), "a string")
    start_addr = _require(entry, "startAddr", index, (int,), "an integer")
    addr_size = _require(entry, "addrSize", index, (int,), "an integer")
    scale = _number(entry, "scale", index)
    offset = _number(entry, "offset", index)
    delta = _number(entry, "delta", index)

    value_type_raw = _require(entry, "valueType", index, (str,), "a string")
    try:
        value_type = ValueType(value_type_raw)
    except ValueError:
        raise ParseError(f"Entry {index}: unknown valueType {value_type_raw!r}", index=index, field="valueType") from None

    byte_order_raw = _require(entry, "byteOrder", index, (str,), "a string")
    try:
        byte_order = ByteOrder(byte_order_raw)
    except ValueError:
        raise ParseError(f"Entry {index}: unknown byteOrder {byte_order_raw!r}", index=index, field="byteOrder") from None

    # Missing/null initValue means "no default"
    init_raw = entry.get("initValue")
    if init_raw is None:
        init_value = b""
    elif isinstance(init_raw, str):
        try:
            init_value = base64.b64decode(init_raw, validate=True)
        except binascii.Error:
            raise ParseError(f"Entry {index}: initValue is not base64", index=index, field="initValue") from None
    else:
        raise ParseError(f"Entry {index}: field 'initValue' must be base64 text", index=index, field="initValue")

    unknown = set(entry) - set(_FIELDS)
    if unknown:
        logger.debug("Entry %d: ignoring unknown fields %s", index, sorted(unknown))

    return RegisterConfig(
        id=config_id,
        enabled=enabled,
        description=description,
        start_addr=start_addr,
        addr_size=addr_size,
        value_type=value_type,
        byte_order=byte_order,
        scale=scale,
        offset=offset,
        delta=delta,
        init_value=init_value,
    )


def _reject_constant(name: str) -> float:
    raise ParseError(f"Non-finite number {name} is not allowed")


def _finite_float(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise ParseError(f"Number out of range: {text}")
    return value


def to_portable(configs: Iterable[RegisterConfig]) -> str:
    """Serialize configs to a JSON array document; non-finite numbers raise ValueError."""
    return json.dumps([config_to_dict(c) for c in configs], indent=2, allow_nan=False)


def from_portable(text: str) -> list[RegisterConfig]:
    """
    Parse a JSON array document into configs. The whole document is rejected
    with ParseError on malformed JSON or the first structurally invalid entry.
    """
    try:
        data = json.loads(text, parse_float=_finite_float, parse_constant=_reject_constant)
    except json.JSONDecodeError as e:
        raise ParseError(f"Malformed JSON: {e}") from e
    if not isinstance(data, list):
        raise ParseError(f"Expected a JSON array of configs, got {type(data).__name__}")
    return [_parse_entry(entry, i) for i, entry in enumerate(data)]


def load_file(path: Path | str) -> list[RegisterConfig]:
    with open(path, "r", encoding="utf-8") as f:
        configs = from_portable(f.read())
    logger.debug("Loaded %d configs from %s", len(configs), path)
    return configs


def save_file(path: Path | str, configs: Iterable[RegisterConfig]) -> None:
    with open(path, "w", encoding="utf-8") as f:
        f.write(to_portable(configs))
        f.write("\n")


def export_file_name(now: datetime | None = None) -> str:
    """Timestamped export file name, e.g. modbus_configs_2024-05-01T12-30-00.json."""
    stamp = (now or datetime.now()).strftime("%Y-%m-%dT%H-%M-%S")
    return f"modbus_configs_{stamp}.json"

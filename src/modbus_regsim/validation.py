"""Register config validation returning explicit results instead of booleans."""

import math
from dataclasses import dataclass

from .codec import type_width
from .errors import InvalidAddressError, ValidationError, ValidationErrorKind
from .normalize import MAX_ADDRESS, parse_address
from .types import NUMBER_TYPES, RegisterConfig


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a validation: ok, or the first ValidationError found."""

    error: ValidationError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> ValidationErrorKind | None:
        return self.error.kind if self.error is not None else None

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error

    def __bool__(self) -> bool:
        return self.ok

    def __str__(self) -> str:
        return "Valid" if self.error is None else str(self.error)


_OK = ValidationResult()


def _fail(kind: ValidationErrorKind, field: str, message: str, config: RegisterConfig | None = None) -> ValidationResult:
    config_id = config.id if config is not None else None
    return ValidationResult(ValidationError(kind, field, message, config_id=config_id))


def validate(config: RegisterConfig) -> ValidationResult:
    """
    Check a config; the first failing rule wins. No side effects.

    Rules: description non-empty, scale and delta finite and > 0, offset
    finite, start address in range, address span fits, register count matches
    the value type width, numeric types step by at least one raw unit, init
    value empty or full length.
    """
    if not config.description.strip():
        return _fail(ValidationErrorKind.EMPTY_DESCRIPTION, "description", "Description cannot be empty", config)
    if not (math.isfinite(config.scale) and config.scale > 0):
        return _fail(
            ValidationErrorKind.INVALID_SCALE, "scale", f"Scale must be a finite number > 0, got {config.scale}", config
        )
    if not (math.isfinite(config.delta) and config.delta > 0):
        return _fail(
            ValidationErrorKind.INVALID_DELTA, "delta", f"Delta must be a finite number > 0, got {config.delta}", config
        )
    if not math.isfinite(config.offset):
        return _fail(ValidationErrorKind.INVALID_OFFSET, "offset", f"Offset must be finite, got {config.offset}", config)
    if not 0 <= config.start_addr <= MAX_ADDRESS:
        return _fail(
            ValidationErrorKind.ADDRESS_OUT_OF_RANGE,
            "start_addr",
            f"Start address out of range 0-65535: {config.start_addr}",
            config,
        )
    if config.addr_size < 1 or config.end_addr > MAX_ADDRESS + 1:
        return _fail(
            ValidationErrorKind.INVALID_ADDRESS_SIZE,
            "addr_size",
            f"Address size {config.addr_size} does not fit from {config.start_addr:04X}",
            config,
        )

    width = type_width(config.value_type)
    if width is not None and width != config.raw_size:
        return _fail(
            ValidationErrorKind.TYPE_SIZE_MISMATCH,
            "addr_size",
            f"{config.value_type.value} needs {width // 2} register(s), got {config.addr_size}",
            config,
        )
    # rounds to zero raw units below one half
    if config.value_type in NUMBER_TYPES and config.delta / config.scale < 0.5:
        return _fail(
            ValidationErrorKind.INVALID_DELTA,
            "delta",
            f"Delta {config.delta} is less than one raw step at scale {config.scale}",
            config,
        )
    if config.init_value and len(config.init_value) != config.raw_size:
        return _fail(
            ValidationErrorKind.INVALID_INIT_VALUE,
            "init_value",
            f"Init value must be {config.raw_size} bytes, got {len(config.init_value)}",
            config,
        )
    return _OK


def validate_address_text(text: str) -> ValidationResult:
    """Check hex address entry text (e.g. from an edit form)."""
    try:
        parse_address(text)
    except InvalidAddressError as e:
        return _fail(ValidationErrorKind.INVALID_HEX_ADDRESS, "start_addr", str(e))
    return _OK

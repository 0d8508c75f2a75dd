"""Exceptions for modbus-regsim: config validation, codec contract, backend sync and import errors."""

from enum import Enum
from typing import Any


class RegSimError(Exception):
    """Base exception for modbus-regsim."""

    pass


class ValidationErrorKind(str, Enum):
    """Specific reason a register config was rejected."""

    EMPTY_DESCRIPTION = "empty_description"
    INVALID_SCALE = "invalid_scale"
    INVALID_DELTA = "invalid_delta"
    INVALID_OFFSET = "invalid_offset"
    ADDRESS_OUT_OF_RANGE = "address_out_of_range"
    INVALID_HEX_ADDRESS = "invalid_hex_address"
    INVALID_ADDRESS_SIZE = "invalid_address_size"
    TYPE_SIZE_MISMATCH = "type_size_mismatch"
    INVALID_INIT_VALUE = "invalid_init_value"


class ValidationError(RegSimError):
    """Raised (or carried by a ValidationResult) when a user-entered config is invalid."""

    def __init__(
        self,
        kind: ValidationErrorKind,
        field: str,
        message: str | None = None,
        *,
        config_id: str | None = None,
    ) -> None:
        self.kind = kind
        self.field = field
        self.config_id = config_id
        self._msg = message or f"Invalid {field}"
        super().__init__(self._msg)


class AddressRangeOverlapError(RegSimError):
    """Raised when a config's address span overlaps another config in the store."""

    def __init__(self, config_id: str, other_id: str, message: str | None = None) -> None:
        self.config_id = config_id
        self.other_id = other_id
        self._msg = message or f"Address range of {config_id!r} overlaps {other_id!r}"
        super().__init__(self._msg)


class InvalidAddressError(RegSimError):
    """Raised when hex address text is malformed or out of range."""

    def __init__(self, text: str, message: str | None = None) -> None:
        self.text = text
        self._msg = message or f"Invalid hex address: {text!r}"
        super().__init__(self._msg)


class BufferSizeMismatchError(RegSimError):
    """Raised when a raw buffer does not have the length its type or config requires."""

    def __init__(self, expected: int, actual: int, message: str | None = None) -> None:
        self.expected = expected
        self.actual = actual
        self._msg = message or f"Expected {expected} bytes, got {actual}"
        super().__init__(self._msg)


class UnsupportedTypeError(RegSimError):
    """Raised when the codec is asked to handle a value type it has no numeric encoding for."""

    def __init__(self, value_type: Any, message: str | None = None) -> None:
        self.value_type = value_type
        self._msg = message or f"Unsupported value type: {value_type!r}"
        super().__init__(self._msg)


class UnknownRegisterError(RegSimError):
    """Raised when a register id is not present in the store or bank."""

    def __init__(self, register_id: str, message: str | None = None) -> None:
        self.register_id = register_id
        self._msg = message or f"Unknown register: {register_id!r}"
        super().__init__(self._msg)


class BackendError(RegSimError):
    """Raised by the local backend when the simulator server cannot be started or stopped."""

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        self.cause = cause
        super().__init__(message)


class SyncError(RegSimError):
    """Raised when a backend call made by the sync engine fails (wraps the transport failure)."""

    def __init__(
        self,
        message: str,
        *,
        register_id: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.register_id = register_id
        self.cause = cause
        super().__init__(message)


class ParseError(RegSimError):
    """Raised when a portable config document is malformed."""

    def __init__(
        self,
        message: str,
        *,
        index: int | None = None,
        field: str | None = None,
    ) -> None:
        self.index = index
        self.field = field
        super().__init__(message)


class ImportValidationError(RegSimError):
    """Raised by ConfigStore.import_all when an entry fails validation; the store is left untouched."""

    def __init__(
        self,
        index: int,
        register_id: str,
        cause: RegSimError,
    ) -> None:
        self.index = index
        self.register_id = register_id
        self.cause = cause
        super().__init__(f"Entry {index} ({register_id!r}) rejected: {cause}")


class DuplicateRegisterError(RegSimError):
    """Raised when configs to import reuse an id."""

    def __init__(self, register_id: str, message: str | None = None) -> None:
        self.register_id = register_id
        self._msg = message or f"Duplicate register id: {register_id!r}"
        super().__init__(self._msg)

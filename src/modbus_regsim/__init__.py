"""modbus-regsim: simulated Modbus register points with typed values, scaling and live sync."""

__version__ = "0.1.0"

from .codec import decode, encode, engineering_value, encode_engineering
from .errors import (
    AddressRangeOverlapError,
    BackendError,
    BufferSizeMismatchError,
    DuplicateRegisterError,
    ImportValidationError,
    InvalidAddressError,
    ParseError,
    RegSimError,
    SyncError,
    UnknownRegisterError,
    UnsupportedTypeError,
    ValidationError,
    ValidationErrorKind,
)
from .normalize import format_address, parse_address
from .portable import from_portable, to_portable
from .session import SimulatorSession
from .store import ConfigStore
from .sync import ValueSyncEngine
from .types import ByteOrder, OverlapPolicy, RegisterConfig, StepDirection, ValueType
from .validation import ValidationResult, validate

__all__ = [
    "__version__",
    "decode",
    "encode",
    "engineering_value",
    "encode_engineering",
    "AddressRangeOverlapError",
    "BackendError",
    "BufferSizeMismatchError",
    "DuplicateRegisterError",
    "ImportValidationError",
    "InvalidAddressError",
    "ParseError",
    "RegSimError",
    "SyncError",
    "UnknownRegisterError",
    "UnsupportedTypeError",
    "ValidationError",
    "ValidationErrorKind",
    "format_address",
    "parse_address",
    "from_portable",
    "to_portable",
    "SimulatorSession",
    "ConfigStore",
    "ValueSyncEngine",
    "ByteOrder",
    "OverlapPolicy",
    "RegisterConfig",
    "StepDirection",
    "ValueType",
    "ValidationResult",
    "validate",
]

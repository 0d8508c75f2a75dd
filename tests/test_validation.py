"""Tests for register config validation results."""

import pytest

from modbus_regsim import ValidationErrorKind, validate
from modbus_regsim.errors import ValidationError
from modbus_regsim.types import RegisterConfig, ValueType
from modbus_regsim.validation import validate_address_text


def _config(**overrides: object) -> RegisterConfig:
    fields = {"id": "t1", "description": "tank level", "start_addr": 0x1F36, "scale": 0.1, "delta": 1.0}
    fields.update(overrides)
    return RegisterConfig(**fields)  # type: ignore[arg-type]


def test_valid_config_is_ok() -> None:
    result = validate(_config())
    assert result.ok
    assert bool(result) is True
    assert result.kind is None
    result.raise_for_error()


@pytest.mark.parametrize(
    ("overrides", "kind", "field"),
    [
        ({"scale": 0}, ValidationErrorKind.INVALID_SCALE, "scale"),
        ({"scale": -0.5}, ValidationErrorKind.INVALID_SCALE, "scale"),
        ({"delta": -1}, ValidationErrorKind.INVALID_DELTA, "delta"),
        ({"delta": 0}, ValidationErrorKind.INVALID_DELTA, "delta"),
        ({"description": ""}, ValidationErrorKind.EMPTY_DESCRIPTION, "description"),
        ({"description": "   "}, ValidationErrorKind.EMPTY_DESCRIPTION, "description"),
        ({"start_addr": 70000}, ValidationErrorKind.ADDRESS_OUT_OF_RANGE, "start_addr"),
        ({"start_addr": -1}, ValidationErrorKind.ADDRESS_OUT_OF_RANGE, "start_addr"),
    ],
)
def test_each_rule_has_its_own_kind(overrides: dict, kind: ValidationErrorKind, field: str) -> None:
    result = validate(_config(**overrides))
    assert not result.ok
    assert result.kind == kind
    assert result.error is not None
    assert result.error.field == field
    assert result.error.config_id == "t1"


def test_first_failure_wins() -> None:
    result = validate(_config(description="", scale=0, delta=-1, start_addr=70000))
    assert result.kind == ValidationErrorKind.EMPTY_DESCRIPTION
    result = validate(_config(scale=0, delta=-1))
    assert result.kind == ValidationErrorKind.INVALID_SCALE


def test_raise_for_error() -> None:
    with pytest.raises(ValidationError) as exc_info:
        validate(_config(scale=0)).raise_for_error()
    assert exc_info.value.kind == ValidationErrorKind.INVALID_SCALE
    assert "Scale" in str(exc_info.value)


@pytest.mark.parametrize(
    ("overrides", "kind", "field"),
    [
        ({"scale": float("inf")}, ValidationErrorKind.INVALID_SCALE, "scale"),
        ({"scale": float("nan")}, ValidationErrorKind.INVALID_SCALE, "scale"),
        ({"delta": float("inf")}, ValidationErrorKind.INVALID_DELTA, "delta"),
        ({"delta": float("nan")}, ValidationErrorKind.INVALID_DELTA, "delta"),
        ({"offset": float("nan")}, ValidationErrorKind.INVALID_OFFSET, "offset"),
        ({"offset": float("-inf")}, ValidationErrorKind.INVALID_OFFSET, "offset"),
    ],
)
def test_non_finite_numbers_rejected(overrides: dict, kind: ValidationErrorKind, field: str) -> None:
    result = validate(_config(**overrides))
    assert result.kind == kind
    assert result.error is not None
    assert result.error.field == field


def test_infinite_delta_on_integer_point_does_not_raise() -> None:
    # would otherwise reach the raw step check with an infinite quotient
    assert validate(_config(value_type=ValueType.INT16, delta=float("inf"))).kind == ValidationErrorKind.INVALID_DELTA
    assert validate(_config(value_type=ValueType.INT16, delta=1e308, scale=1e-10)).kind is None


class TestAddressSpan:
    def test_zero_registers(self) -> None:
        assert validate(_config(addr_size=0, value_type=ValueType.BINARY)).kind == ValidationErrorKind.INVALID_ADDRESS_SIZE

    def test_span_past_last_register(self) -> None:
        config = _config(start_addr=0xFFFF, addr_size=2, value_type=ValueType.UINT32)
        assert validate(config).kind == ValidationErrorKind.INVALID_ADDRESS_SIZE

    def test_span_ending_on_last_register(self) -> None:
        assert validate(_config(start_addr=0xFFFE, addr_size=2, value_type=ValueType.UINT32)).ok


class TestTypeSize:
    @pytest.mark.parametrize(
        ("value_type", "addr_size"),
        [
            (ValueType.BOOL, 1),
            (ValueType.INT16, 1),
            (ValueType.INT32, 2),
            (ValueType.FLOAT32, 2),
            (ValueType.FLOAT64, 4),
            (ValueType.BINARY, 1),
            (ValueType.BINARY, 3),
        ],
    )
    def test_matching_sizes(self, value_type: ValueType, addr_size: int) -> None:
        assert validate(_config(value_type=value_type, addr_size=addr_size)).ok

    def test_float64_in_two_registers(self) -> None:
        result = validate(_config(value_type=ValueType.FLOAT64, addr_size=2))
        assert result.kind == ValidationErrorKind.TYPE_SIZE_MISMATCH
        assert result.error is not None and result.error.field == "addr_size"


def test_delta_below_one_raw_step() -> None:
    assert validate(_config(scale=1.0, delta=0.4)).kind == ValidationErrorKind.INVALID_DELTA
    assert validate(_config(scale=1.0, delta=0.5)).ok
    assert validate(_config(value_type=ValueType.FLOAT32, addr_size=2, scale=1.0, delta=0.4)).kind == (
        ValidationErrorKind.INVALID_DELTA
    )
    assert validate(_config(value_type=ValueType.FLOAT32, addr_size=2, scale=0.1, delta=0.05)).ok
    assert validate(_config(value_type=ValueType.BOOL, scale=1.0, delta=0.1)).ok


def test_init_value_length() -> None:
    assert validate(_config(init_value=b"")).ok
    assert validate(_config(init_value=b"\x01\xf4")).ok
    assert validate(_config(init_value=b"\x01")).kind == ValidationErrorKind.INVALID_INIT_VALUE


class TestAddressText:
    def test_valid(self) -> None:
        assert validate_address_text("1f36").ok

    @pytest.mark.parametrize("text", ["GGGG", "", "12345"])
    def test_invalid(self, text: str) -> None:
        result = validate_address_text(text)
        assert result.kind == ValidationErrorKind.INVALID_HEX_ADDRESS
        assert result.error is not None and result.error.field == "start_addr"

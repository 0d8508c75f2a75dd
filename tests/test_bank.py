"""Tests for the register bank and the pymodbus data blocks that expose it."""

import asyncio

import pytest
from pymodbus.pdu import ExceptionResponse, ModbusPDU

from modbus_regsim.bank import COIL_ON, RegisterBank
from modbus_regsim.errors import UnknownRegisterError
from modbus_regsim.server import (
    CHECKED_REQUESTS,
    BankDeviceContext,
    CheckedReadCoils,
    CheckedReadHoldingRegisters,
    CheckedReadWriteMultipleRegisters,
    CheckedWriteMultipleRegisters,
    CheckedWriteSingleCoil,
    CheckedWriteSingleRegister,
    CoilBlock,
    RegisterBlock,
    build_context,
)
from modbus_regsim.types import RegisterConfig, ValueType


def _config(config_id: str, start_addr: int, **overrides: object) -> RegisterConfig:
    fields = {"id": config_id, "description": config_id, "start_addr": start_addr}
    fields.update(overrides)
    return RegisterConfig(**fields)  # type: ignore[arg-type]


@pytest.fixture
def bank() -> RegisterBank:
    b = RegisterBank()
    b.load(
        [
            _config("level", 0x10, init_value=b"\x01\xf4"),
            _config("flow", 0x20, value_type=ValueType.FLOAT32, addr_size=2, init_value=b"\x3f\x80\x00\x00"),
            _config("pump", 0x30, value_type=ValueType.BOOL),
        ]
    )
    return b


def test_load_seeds_from_init_value(bank: RegisterBank) -> None:
    assert bank.read_registers(0x10, 1) == [0x01F4]
    assert bank.read_registers(0x20, 2) == [0x3F80, 0x0000]
    assert bank.read_registers(0x30, 1) == [0]


def test_values_keyed_by_id(bank: RegisterBank) -> None:
    assert bank.values() == {
        "level": b"\x01\xf4",
        "flow": b"\x3f\x80\x00\x00",
        "pump": b"\x00\x00",
    }


def test_configs_sorted_by_address() -> None:
    b = RegisterBank()
    b.load([_config("b", 0x20), _config("a", 0x05), _config("c", 0x10)])
    assert [c.id for c in b.configs()] == ["a", "c", "b"]


def test_load_resets_memory(bank: RegisterBank) -> None:
    bank.load([_config("other", 0x40)])
    assert bank.values() == {"other": b"\x00\x00"}
    assert not bank.has_range(0x10, 1)


class TestSetValue:
    def test_writes_across_registers(self, bank: RegisterBank) -> None:
        bank.set_value("flow", b"\x12\x34\x56\x78")
        assert bank.read_registers(0x20, 2) == [0x1234, 0x5678]

    def test_short_data_zero_fills(self, bank: RegisterBank) -> None:
        bank.set_value("flow", b"\x12\x34\x56")
        assert bank.values()["flow"] == b"\x12\x34\x56\x00"

    def test_unknown_id(self, bank: RegisterBank) -> None:
        with pytest.raises(UnknownRegisterError):
            bank.set_value("nope", b"\x00\x00")


class TestConfigChanges:
    def test_replacing_keeps_current_value(self, bank: RegisterBank) -> None:
        bank.set_value("level", b"\x00\x07")
        bank.set_config(_config("level", 0x10, description="renamed", init_value=b"\x01\xf4"))
        assert bank.values()["level"] == b"\x00\x07"

    def test_moving_span_frees_old_registers(self, bank: RegisterBank) -> None:
        bank.set_value("flow", b"\x00\x01\x00\x02")
        bank.set_config(_config("flow", 0x21, value_type=ValueType.FLOAT32, addr_size=2))
        assert not bank.has_range(0x20, 1)
        assert bank.read_registers(0x21, 2) == [0x0002, 0x0000]

    def test_remove_frees_registers(self, bank: RegisterBank) -> None:
        bank.remove_config("level")
        assert "level" not in bank.values()
        assert not bank.has_range(0x10, 1)

    def test_remove_keeps_registers_shared_with_other_config(self, bank: RegisterBank) -> None:
        bank.set_config(_config("alias", 0x10))
        bank.remove_config("alias")
        assert bank.read_registers(0x10, 1) == [0x01F4]

    def test_remove_unknown_is_ignored(self, bank: RegisterBank) -> None:
        bank.remove_config("nope")
        assert len(bank.configs()) == 3


class TestRegisterAccess:
    def test_has_range(self, bank: RegisterBank) -> None:
        assert bank.has_range(0x20, 2)
        assert not bank.has_range(0x20, 3)
        assert not bank.has_range(0x20, 0)

    def test_write_registers_masks_to_16_bits(self, bank: RegisterBank) -> None:
        bank.write_registers(0x20, [0x1FFFF, 2])
        assert bank.values()["flow"] == b"\xff\xff\x00\x02"

    def test_bits(self, bank: RegisterBank) -> None:
        bank.write_bits(0x30, [True])
        assert bank.read_registers(0x30, 1) == [COIL_ON]
        assert bank.read_bits(0x10, 1) == [True]
        bank.write_bits(0x30, [False])
        assert bank.read_bits(0x30, 1) == [False]


class TestDataBlocks:
    def test_register_block_shifts_address(self, bank: RegisterBank) -> None:
        block = RegisterBlock(bank)
        assert block.validate(0x11, 1)
        assert not block.validate(0x10, 1)
        assert block.getValues(0x11, 1) == [0x01F4]
        block.setValues(0x21, [1, 2])
        assert bank.values()["flow"] == b"\x00\x01\x00\x02"

    def test_register_block_accepts_single_value(self, bank: RegisterBank) -> None:
        RegisterBlock(bank).setValues(0x11, 9)
        assert bank.values()["level"] == b"\x00\x09"

    def test_coil_block(self, bank: RegisterBank) -> None:
        block = CoilBlock(bank)
        assert block.getValues(0x31, 1) == [False]
        block.setValues(0x31, [True])
        assert bank.values()["pump"] == b"\xff\x00"
        assert block.getValues(0x11, 1) == [True]

    def test_build_context(self, bank: RegisterBank) -> None:
        device = build_context(bank)[0]
        assert isinstance(device, BankDeviceContext)
        assert device.validate(3, 0x10, 1)
        assert device.validate(1, 0x30, 1)
        assert not device.validate(3, 0x11, 1)
        assert device.getValues(3, 0x10, 1) == [0x01F4]

    def test_unconfigured_write_is_refused(self, bank: RegisterBank) -> None:
        assert RegisterBlock(bank).setValues(0x12, [7]) == ExceptionResponse.ILLEGAL_ADDRESS
        assert CoilBlock(bank).setValues(0x40, [True]) == ExceptionResponse.ILLEGAL_ADDRESS
        assert RegisterBlock(bank).setValues(0x21, [1, 2, 3]) == ExceptionResponse.ILLEGAL_ADDRESS
        assert not bank.has_range(0x11, 1)
        assert bank.values()["flow"] == b"\x3f\x80\x00\x00"


class TestCheckedRequests:
    def test_configured_read(self, bank: RegisterBank) -> None:
        device = build_context(bank)[0]
        response = asyncio.run(CheckedReadHoldingRegisters(address=0x10, count=1).update_datastore(device))
        assert not response.isError()
        assert response.registers == [0x01F4]

    @pytest.mark.parametrize(
        "request_pdu",
        [
            CheckedReadHoldingRegisters(address=0x11, count=1),
            CheckedReadHoldingRegisters(address=0x20, count=3),
            CheckedReadCoils(address=0x31, count=1),
            CheckedWriteSingleRegister(address=0x12, registers=[1]),
            CheckedWriteMultipleRegisters(address=0x1F, registers=[1, 2]),
            CheckedWriteSingleCoil(address=0x31, bits=[True]),
            CheckedReadWriteMultipleRegisters(read_address=0x10, read_count=1, write_address=0x50, write_registers=[1]),
        ],
    )
    def test_unconfigured_span_is_illegal_address(self, bank: RegisterBank, request_pdu: ModbusPDU) -> None:
        before = bank.values()
        response = asyncio.run(request_pdu.update_datastore(build_context(bank)[0]))
        assert response.isError()
        assert response.exception_code == ExceptionResponse.ILLEGAL_ADDRESS
        assert bank.values() == before

    def test_every_data_function_is_checked(self) -> None:
        codes = {cls.function_code for cls in CHECKED_REQUESTS}
        assert codes == {1, 2, 3, 4, 5, 6, 15, 16, 22, 23}

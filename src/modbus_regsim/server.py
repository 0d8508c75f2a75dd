"""SimulatorServer: pymodbus TCP slave serving a RegisterBank from a background thread."""

import asyncio
import logging
import threading
from typing import Any, cast

from pymodbus.datastore import ModbusDeviceContext, ModbusServerContext, ModbusSparseDataBlock
from pymodbus.pdu import ExceptionResponse, ModbusPDU
from pymodbus.pdu.bit_message import (
    ReadCoilsRequest,
    ReadDiscreteInputsRequest,
    WriteMultipleCoilsRequest,
    WriteSingleCoilRequest,
)
from pymodbus.pdu.register_message import (
    MaskWriteRegisterRequest,
    ReadHoldingRegistersRequest,
    ReadInputRegistersRequest,
    ReadWriteMultipleRegistersRequest,
    WriteMultipleRegistersRequest,
    WriteSingleRegisterRequest,
)
from pymodbus.server import ModbusTcpServer

from .bank import RegisterBank
from .errors import BackendError

logger = logging.getLogger(__name__)

# Device contexts hand data blocks one-based addresses.
_CONTEXT_ADDRESS_SHIFT = 1


class RegisterBlock(ModbusSparseDataBlock):
    """Holding/input register view of a RegisterBank. Unconfigured addresses fail validation."""

    def __init__(self, bank: RegisterBank) -> None:
        super().__init__({0: 0})
        self._bank = bank

    def validate(self, address: int, count: int = 1) -> bool:
        return self._bank.has_range(address - _CONTEXT_ADDRESS_SHIFT, count)

    def getValues(self, address: int, count: int = 1) -> list[Any]:
        return self._bank.read_registers(address - _CONTEXT_ADDRESS_SHIFT, count)

    def setValues(self, address: int, values: Any) -> int | None:
        """Write registers; returns the illegal data address code instead of creating unconfigured ones."""
        if not isinstance(values, list):
            values = [values]
        if not self.validate(address, len(values)):
            return ExceptionResponse.ILLEGAL_ADDRESS
        self._bank.write_registers(address - _CONTEXT_ADDRESS_SHIFT, values)
        return None


class CoilBlock(RegisterBlock):
    """Coil/discrete input view: reads "register != 0", writes 0xFF00 / 0x0000."""

    def getValues(self, address: int, count: int = 1) -> list[Any]:
        return self._bank.read_bits(address - _CONTEXT_ADDRESS_SHIFT, count)

    def setValues(self, address: int, values: Any) -> int | None:
        if not isinstance(values, list):
            values = [values]
        if not self.validate(address, len(values)):
            return ExceptionResponse.ILLEGAL_ADDRESS
        self._bank.write_bits(address - _CONTEXT_ADDRESS_SHIFT, [bool(v) for v in values])
        return None


class BankDeviceContext(ModbusDeviceContext):
    """Device context that can tell whether a request span is configured."""

    def validate(self, func_code: int, address: int, count: int = 1) -> bool:
        return self.store[self.decode(func_code)].validate(address + _CONTEXT_ADDRESS_SHIFT, count)


def _request_spans(request: ModbusPDU) -> list[tuple[int, int]]:
    if isinstance(request, ReadWriteMultipleRegistersRequest):
        return [(request.write_address, request.write_count or 1), (request.read_address, request.read_count or 1)]
    count = request.count or len(request.bits) or len(request.registers) or 1
    return [(request.address, count)]


class _AddressCheckedRequest:
    """Answers "illegal data address" before touching the datastore when a span is unconfigured."""

    function_code: int

    async def update_datastore(self, context: BankDeviceContext) -> ModbusPDU:
        for address, count in _request_spans(cast(ModbusPDU, self)):
            if not context.validate(self.function_code, address, count):
                logger.debug("Refusing fc %d at %04X (%d): unconfigured", self.function_code, address, count)
                return ExceptionResponse(self.function_code, ExceptionResponse.ILLEGAL_ADDRESS)
        return await super().update_datastore(context)  # type: ignore[misc]


class CheckedReadCoils(_AddressCheckedRequest, ReadCoilsRequest):
    pass


class CheckedReadDiscreteInputs(_AddressCheckedRequest, ReadDiscreteInputsRequest):
    pass


class CheckedWriteSingleCoil(_AddressCheckedRequest, WriteSingleCoilRequest):
    pass


class CheckedWriteMultipleCoils(_AddressCheckedRequest, WriteMultipleCoilsRequest):
    pass


class CheckedReadHoldingRegisters(_AddressCheckedRequest, ReadHoldingRegistersRequest):
    pass


class CheckedReadInputRegisters(_AddressCheckedRequest, ReadInputRegistersRequest):
    pass


class CheckedWriteSingleRegister(_AddressCheckedRequest, WriteSingleRegisterRequest):
    pass


class CheckedWriteMultipleRegisters(_AddressCheckedRequest, WriteMultipleRegistersRequest):
    pass


class CheckedMaskWriteRegister(_AddressCheckedRequest, MaskWriteRegisterRequest):
    pass


class CheckedReadWriteMultipleRegisters(_AddressCheckedRequest, ReadWriteMultipleRegistersRequest):
    pass


# Replace the stock decoders for every data access function the simulator serves.
CHECKED_REQUESTS: list[type[ModbusPDU]] = [
    CheckedReadCoils,
    CheckedReadDiscreteInputs,
    CheckedWriteSingleCoil,
    CheckedWriteMultipleCoils,
    CheckedReadHoldingRegisters,
    CheckedReadInputRegisters,
    CheckedWriteSingleRegister,
    CheckedWriteMultipleRegisters,
    CheckedMaskWriteRegister,
    CheckedReadWriteMultipleRegisters,
]


def build_context(bank: RegisterBank) -> ModbusServerContext:
    """Single-device server context with all four tables backed by bank."""
    bits = CoilBlock(bank)
    registers = RegisterBlock(bank)
    device = BankDeviceContext(di=bits, co=bits, hr=registers, ir=registers)
    return ModbusServerContext(devices=device, single=True)


class SimulatorServer:
    """
    Runs pymodbus ModbusTcpServer on 0.0.0.0:<port> in a daemon thread with its
    own event loop. start() and stop() are called from the owning thread.
    """

    def __init__(
        self,
        bank: RegisterBank,
        host: str = "0.0.0.0",
        startup_timeout: float = 1.0,
        stop_timeout: float = 3.0,
    ) -> None:
        self._bank = bank
        self._host = host
        self._startup_timeout = startup_timeout
        self._stop_timeout = stop_timeout
        self._thread: threading.Thread | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._server: ModbusTcpServer | None = None
        self._error: BaseException | None = None
        self._port: int | None = None
        self._stopping: asyncio.Event | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def port(self) -> int | None:
        return self._port

    def _run(self, port: int, created: threading.Event) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop

        async def serve() -> None:
            self._stopping = asyncio.Event()
            self._server = ModbusTcpServer(
                build_context(self._bank), address=(self._host, port), custom_pdu=CHECKED_REQUESTS
            )
            created.set()
            serving = asyncio.ensure_future(self._server.serve_forever())
            stopping = asyncio.ensure_future(self._stopping.wait())
            done, _ = await asyncio.wait({serving, stopping}, return_when=asyncio.FIRST_COMPLETED)
            stopping.cancel()
            if serving in done:
                serving.result()
            await self._server.shutdown()
            await serving

        try:
            loop.run_until_complete(serve())
        except Exception as e:
            self._error = e
            logger.error("Modbus server on port %d failed: %s", port, e)
        finally:
            created.set()
            loop.close()
            self._loop = None

    def start(self, port: int) -> None:
        """Start serving; raises BackendError if already running or the listener fails."""
        if self.running:
            raise BackendError("Modbus server already started")
        if not 0 <= port <= 0xFFFF:
            raise BackendError(f"Invalid port: {port}")
        self._error = None
        created = threading.Event()
        self._thread = threading.Thread(target=self._run, args=(port, created), name="regsim-server", daemon=True)
        self._thread.start()
        created.wait(self._startup_timeout)
        # A bind failure ends the thread almost immediately.
        self._thread.join(self._startup_timeout / 4)
        if self._error is not None or not self._thread.is_alive():
            error = self._error
            self._thread = None
            raise BackendError(f"Failed to start Modbus server on port {port}: {error}", cause=error)
        self._port = port
        logger.info("Modbus server listening on %s:%d", self._host, port)

    def stop(self) -> None:
        """Stop serving and wait for the server thread; a no-op when not running."""
        thread = self._thread
        self._thread = None
        self._port = None
        if thread is None or not thread.is_alive():
            return
        loop, stopping = self._loop, self._stopping
        if loop is not None and stopping is not None:
            loop.call_soon_threadsafe(stopping.set)
        thread.join(self._stop_timeout)
        if thread.is_alive():
            raise BackendError(f"Modbus server did not stop within {self._stop_timeout}s")
        logger.info("Modbus server stopped")

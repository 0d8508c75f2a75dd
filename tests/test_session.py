"""End-to-end tests of SimulatorSession over the in-process backend (no TCP listener)."""

import base64
from unittest.mock import MagicMock

import pytest

from modbus_regsim.backend import LocalBackend, decode_raw, encode_raw
from modbus_regsim.errors import BackendError, SyncError, UnknownRegisterError
from modbus_regsim.session import SimulatorSession, render_row
from modbus_regsim.types import RegisterConfig, StepDirection, ValueType


def _configs() -> list[RegisterConfig]:
    return [
        RegisterConfig(id="level", description="Tank level", start_addr=0x1F36, scale=0.1, init_value=b"\x01\xf4"),
        RegisterConfig(id="flow", description="Flow", start_addr=0x1F38, value_type=ValueType.FLOAT32, addr_size=2),
        RegisterConfig(id="spare", description="Spare", start_addr=0x1F37, enabled=False),
    ]


@pytest.fixture
def session() -> SimulatorSession:
    return SimulatorSession(_configs(), backend=LocalBackend(), interval=60)


def test_construction_seeds_backend(session: SimulatorSession) -> None:
    backend = session.backend
    assert isinstance(backend, LocalBackend)
    assert [c.id for c in backend.list_configs()] == ["level", "flow"]
    assert session.store.raw_values()["level"] == b"\x01\xf4"


def test_rows_render_current_values(session: SimulatorSession) -> None:
    rows = {r.id: r for r in session.rows()}
    assert rows["level"].address == "1F36"
    assert rows["level"].raw_hex == "01 F4"
    assert rows["level"].value == "50"
    assert rows["flow"].value == "0"
    assert rows["spare"].enabled is False


def test_step_and_write_round_trip(session: SimulatorSession) -> None:
    session.engine.step_value("level", StepDirection.INCREASE)
    assert session.store.raw_value("level") == b"\x01\xfe"
    session.engine.set_engineering("flow", 2.5)
    assert session.store.raw_value("flow") == b"\x40\x20\x00\x00"


def test_modbus_side_write_is_polled(session: SimulatorSession) -> None:
    bank = session.backend.bank  # type: ignore[attr-defined]
    bank.write_registers(0x1F36, [0x0064])
    session.engine.poll()
    assert {r.id: r.value for r in session.rows()}["level"] == "10"


def test_enabling_point_pushes_it(session: SimulatorSession) -> None:
    spare = session.store.get("spare")
    session.engine.apply_config(spare.replace(enabled=True))
    assert "spare" in session.backend.bank.values()  # type: ignore[attr-defined]


def test_delete_drops_value(session: SimulatorSession) -> None:
    session.engine.delete_config("flow")
    assert "flow" not in session.store.raw_values()
    assert "flow" not in session.backend.bank.values()  # type: ignore[attr-defined]
    with pytest.raises(UnknownRegisterError):
        session.engine.set_hex("flow", "00000000")


def test_context_manager_starts_and_stops_timer() -> None:
    with SimulatorSession(_configs(), backend=LocalBackend(), interval=60) as session:
        assert session.engine.running
    assert not session.engine.running


def test_start_server_failure_wrapped() -> None:
    backend = MagicMock()
    backend.get_values.return_value = {}
    backend.list_configs.return_value = []
    backend.start_server.side_effect = BackendError("port in use")
    session = SimulatorSession(backend=backend)
    with pytest.raises(SyncError):
        session.start_server(502)
    assert not session.server_running


def test_close_stops_running_server() -> None:
    backend = MagicMock()
    backend.get_values.return_value = {}
    backend.list_configs.return_value = []
    with SimulatorSession(backend=backend) as session:
        session.start_server(5020)
        assert session.server_running
    backend.stop_server.assert_called_once_with()
    assert not session.server_running


def test_render_row_reports_bad_raw() -> None:
    config = RegisterConfig(id="x", description="x", start_addr=0, value_type=ValueType.UINT32, addr_size=2)
    row = render_row(config, b"\x00\x01")
    assert row.value.startswith("<")
    assert row.raw_hex == "00 01"


class TestLocalBackend:
    def test_values_are_base64(self) -> None:
        backend = LocalBackend()
        backend.load_configs(_configs()[:1])
        assert backend.get_values() == {"level": base64.b64encode(b"\x01\xf4").decode("ascii")}

    def test_set_value_rejects_bad_base64(self) -> None:
        backend = LocalBackend()
        backend.load_configs(_configs()[:1])
        with pytest.raises(BackendError):
            backend.set_value("level", "%%%")

    def test_stop_when_not_running(self) -> None:
        backend = LocalBackend()
        backend.stop_server()
        assert not backend.server_running

    def test_invalid_port(self) -> None:
        with pytest.raises(BackendError):
            LocalBackend().start_server(70000)


def test_raw_text_helpers() -> None:
    assert encode_raw(b"\x01\xf4") == "AfQ="
    assert decode_raw("AfQ=") == b"\x01\xf4"
    with pytest.raises(ValueError):
        decode_raw("AfQ")

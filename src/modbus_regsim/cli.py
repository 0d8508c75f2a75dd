#!/usr/bin/env python3
"""CLI for modbus-regsim using Typer: edit config files, inspect values and run the simulator."""

import dataclasses
import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import NoReturn, Optional

import typer
from typing_extensions import Annotated

from . import __version__  # type: ignore
from .codec import decode as decode_value
from .codec import encode as encode_value
from .codec import format_number, type_width
from .errors import (
    BufferSizeMismatchError,
    ImportValidationError,
    InvalidAddressError,
    ParseError,
    RegSimError,
    SyncError,
    UnknownRegisterError,
    UnsupportedTypeError,
    ValidationError,
)
from .normalize import format_address, format_binary, format_hex_bytes, parse_address, parse_hex_bytes
from .portable import export_file_name, load_file, save_file
from .session import SimulatorSession, render_row
from .store import ConfigStore
from .types import ByteOrder, OverlapPolicy, RegisterConfig, RegisterRow, ValueType, new_config_id

app = typer.Typer(
    name="regsim",
    help="Simulated Modbus register points: config files, value codec and a Modbus TCP simulator.",
    no_args_is_help=True,
)

logger = logging.getLogger(__name__)

# ============================================================================
# Shared options and helpers
# ============================================================================

FileArgument = Annotated[Path, typer.Argument(help="Portable JSON config file")]
PortOption = Annotated[
    int,
    typer.Option("--port", "-p", help="Modbus TCP port to listen on", envvar="REGSIM_PORT"),
]
IntervalOption = Annotated[
    float,
    typer.Option("--interval", "-i", help="Polling interval in seconds", envvar="REGSIM_INTERVAL"),
]
OverlapOption = Annotated[
    OverlapPolicy,
    typer.Option("--overlap-policy", help="Which configs take part in the address overlap check", envvar="REGSIM_OVERLAP_POLICY"),
]
TypeOption = Annotated[
    ValueType,
    typer.Option("--type", "-t", help="Value type"),
]
ByteOrderOption = Annotated[
    ByteOrder,
    typer.Option("--byte-order", "-b", help="Byte order"),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Enable debug logging"),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Output as JSON"),
]


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbose flag."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s" if not verbose else "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def parse_bool(value: str) -> bool:
    """Parse boolean value from string."""
    v = value.lower().strip()
    if v in ("true", "1", "on", "yes"):
        return True
    if v in ("false", "0", "off", "no"):
        return False
    raise ValueError(f"Invalid boolean value: {value!r}")


def parse_number(value: str) -> int | float:
    """Parse a decimal, 0x-hex or float literal."""
    v = value.strip()
    if v.lower().startswith(("0x", "-0x")):
        return int(v, 16)
    try:
        return int(v)
    except ValueError:
        return float(v)


def format_row(row: RegisterRow) -> str:
    """One table line: enabled flag, address, raw hex, value, description."""
    flag = "on " if row.enabled else "off"
    return f"{flag} {row.address}  {row.raw_hex:<24} {row.value:<22} {row.description}"


def fail(message: str, code: int) -> NoReturn:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(code)


def load_store(file: Path, overlap_policy: OverlapPolicy, must_exist: bool = True) -> ConfigStore:
    """Load FILE into a validated ConfigStore (empty store if FILE is missing and must_exist is False)."""
    if not file.is_file():
        if must_exist:
            fail(f"Config file not found: {file}", 2)
        return ConfigStore(overlap_policy=overlap_policy)
    return ConfigStore(load_file(file), overlap_policy=overlap_policy)


def report_unexpected(e: Exception, verbose: bool) -> NoReturn:
    typer.echo(f"Error: Unexpected error: {e}", err=True)
    if verbose:
        import traceback
        traceback.print_exc()
    raise typer.Exit(4)


# ============================================================================
# Commands
# ============================================================================

@app.command()
def show(
    file: FileArgument,
    overlap_policy: OverlapOption = OverlapPolicy.ENABLED,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """
    Show the register table of a config file using each point's init value.

    Does not start a server.
    """
    setup_logging(verbose)

    try:
        store = load_store(file, overlap_policy)
        rows = [render_row(c, store.raw_value(c.id)) for c in store.list()]
        if json_output:
            typer.echo(json.dumps([dataclasses.asdict(r) for r in rows], indent=2))
        else:
            for row in rows:
                typer.echo(format_row(row))
    except (ParseError, ImportValidationError) as e:
        fail(f"Invalid config file: {e}", 2)
    except OSError as e:
        fail(f"Cannot read {file}: {e}", 2)
    except typer.Exit:
        raise
    except Exception as e:
        report_unexpected(e, verbose)


@app.command()
def check(
    file: FileArgument,
    overlap_policy: OverlapOption = OverlapPolicy.ENABLED,
    verbose: VerboseOption = False,
) -> None:
    """
    Validate a config file: document shape, every config's fields, duplicate
    ids and address overlaps.
    """
    setup_logging(verbose)

    try:
        store = load_store(file, overlap_policy)
        typer.echo(f"OK: {len(store)} configs")
    except (ParseError, ImportValidationError) as e:
        fail(f"Invalid config file: {e}", 2)
    except OSError as e:
        fail(f"Cannot read {file}: {e}", 2)
    except typer.Exit:
        raise
    except Exception as e:
        report_unexpected(e, verbose)


@app.command()
def add(
    file: FileArgument,
    description: Annotated[str, typer.Option("--description", "-d", help="Point description")],
    addr: Annotated[str, typer.Option("--addr", "-a", help="Start address in hex (e.g. 1F36)")],
    value_type: TypeOption = ValueType.UINT16,
    byte_order: ByteOrderOption = ByteOrder.BIG_ENDIAN,
    size: Annotated[Optional[int], typer.Option("--size", "-n", help="Register count (default: from the value type)")] = None,
    scale: Annotated[float, typer.Option("--scale", help="raw * scale + offset")] = 1.0,
    offset: Annotated[float, typer.Option("--offset", help="raw * scale + offset")] = 0.0,
    delta: Annotated[float, typer.Option("--delta", help="Increase/decrease step in engineering units")] = 1.0,
    init: Annotated[Optional[str], typer.Option("--init", help="Initial raw value in hex (e.g. 01F4)")] = None,
    disabled: Annotated[bool, typer.Option("--disabled", help="Add the point disabled")] = False,
    config_id: Annotated[Optional[str], typer.Option("--id", help="Id to add or replace (default: new id)")] = None,
    overlap_policy: OverlapOption = OverlapPolicy.ENABLED,
    verbose: VerboseOption = False,
) -> None:
    """
    Add a point to FILE, or replace the point with the same --id.

    FILE is created when missing.
    """
    setup_logging(verbose)

    try:
        start_addr = parse_address(addr)
        init_value = parse_hex_bytes(init) if init else b""
        if size is None:
            size = (type_width(value_type) or 2) // 2

        store = load_store(file, overlap_policy, must_exist=False)
        config = RegisterConfig(
            id=config_id or new_config_id(),
            description=description,
            start_addr=start_addr,
            addr_size=size,
            value_type=value_type,
            byte_order=byte_order,
            scale=scale,
            offset=offset,
            delta=delta,
            enabled=not disabled,
            init_value=init_value,
        )
        store.upsert(config)
        save_file(file, store.export_all())
        typer.echo(f"OK: Saved {config.id} at {format_address(config.start_addr)}")
    except InvalidAddressError as e:
        fail(f"Invalid address: {e}", 2)
    except ValidationError as e:
        fail(f"Invalid {e.field}: {e}", 2)
    except (ParseError, ImportValidationError) as e:
        fail(f"Invalid config file: {e}", 2)
    except RegSimError as e:
        fail(str(e), 2)
    except ValueError as e:
        fail(f"Invalid value: {e}", 2)
    except OSError as e:
        fail(f"Cannot write {file}: {e}", 2)
    except typer.Exit:
        raise
    except Exception as e:
        report_unexpected(e, verbose)


@app.command()
def remove(
    file: FileArgument,
    config_id: Annotated[str, typer.Argument(help="Id of the point to remove")],
    verbose: VerboseOption = False,
) -> None:
    """Remove a point from FILE."""
    setup_logging(verbose)

    try:
        store = load_store(file, OverlapPolicy.OFF)
        store.remove(config_id)
        save_file(file, store.export_all())
        typer.echo(f"OK: Removed {config_id}")
    except UnknownRegisterError as e:
        fail(str(e), 2)
    except (ParseError, ImportValidationError) as e:
        fail(f"Invalid config file: {e}", 2)
    except OSError as e:
        fail(f"Cannot write {file}: {e}", 2)
    except typer.Exit:
        raise
    except Exception as e:
        report_unexpected(e, verbose)


@app.command()
def export(
    file: FileArgument,
    directory: Annotated[Path, typer.Option("--dir", help="Directory for the timestamped copy")] = Path("."),
    verbose: VerboseOption = False,
) -> None:
    """Write a validated snapshot of FILE to a timestamped file name."""
    setup_logging(verbose)

    try:
        store = load_store(file, OverlapPolicy.OFF)
        target = directory / export_file_name()
        save_file(target, store.export_all())
        typer.echo(str(target))
    except (ParseError, ImportValidationError) as e:
        fail(f"Invalid config file: {e}", 2)
    except OSError as e:
        fail(f"Cannot write export: {e}", 2)
    except typer.Exit:
        raise
    except Exception as e:
        report_unexpected(e, verbose)


@app.command()
def encode(
    value: Annotated[str, typer.Argument(help="Value (bool: true/false/1/0/on/off; numbers: decimal, float or 0x hex)")],
    value_type: TypeOption = ValueType.UINT16,
    byte_order: ByteOrderOption = ByteOrder.BIG_ENDIAN,
) -> None:
    """Encode a value to raw hex bytes."""
    try:
        parsed = parse_bool(value) if value_type == ValueType.BOOL else parse_number(value)
        typer.echo(format_hex_bytes(encode_value(parsed, byte_order, value_type)))
    except UnsupportedTypeError as e:
        fail(str(e), 2)
    except ValueError as e:
        fail(f"Invalid value: {e}", 2)


@app.command()
def decode(
    raw: Annotated[str, typer.Argument(help="Raw bytes in hex (e.g. \"01 F4\")")],
    value_type: TypeOption = ValueType.UINT16,
    byte_order: ByteOrderOption = ByteOrder.BIG_ENDIAN,
) -> None:
    """Decode raw hex bytes to a value (grouped bits for binary)."""
    try:
        data = parse_hex_bytes(raw)
        if value_type == ValueType.BINARY:
            typer.echo(format_binary(data))
        else:
            typer.echo(format_number(decode_value(data, byte_order, value_type)))
    except (BufferSizeMismatchError, UnsupportedTypeError) as e:
        fail(str(e), 2)
    except ValueError as e:
        fail(f"Invalid value: {e}", 2)


@app.command()
def serve(
    file: FileArgument,
    port: PortOption = 502,
    interval: IntervalOption = 1.0,
    overlap_policy: OverlapOption = OverlapPolicy.ENABLED,
    verbose: VerboseOption = False,
    once: Annotated[bool, typer.Option("--once", help="Print one snapshot and exit")] = False,
    format: Annotated[str, typer.Option("--format", "-f", help="Output format: text, json, csv")] = "text",
) -> None:
    """
    Run the Modbus TCP simulator for the points in FILE and print their values.

    Outputs format:
    - text: timestamp line followed by one table line per point (default)
    - json: NDJSON with {"timestamp": "...", "values": {id: value}} per line
    - csv: point ids as columns, one row per poll cycle

    Press Ctrl+C to stop gracefully.
    """
    setup_logging(verbose)

    if format not in ("text", "json", "csv"):
        fail(f"Invalid format '{format}'. Must be text, json, or csv.", 2)

    if interval <= 0:
        fail(f"Interval must be positive, got {interval}", 2)

    try:
        configs = load_file(file)
        session = SimulatorSession(configs, interval=interval, overlap_policy=overlap_policy)

        if format == "csv":
            typer.echo("timestamp," + ",".join(c.id for c in session.store.list()))

        with session:
            session.start_server(port)
            while True:
                timestamp = datetime.now(timezone.utc).isoformat()
                rows = session.rows()

                if format == "text":
                    typer.echo(timestamp)
                    for row in rows:
                        typer.echo(format_row(row))
                elif format == "json":
                    typer.echo(json.dumps({"timestamp": timestamp, "values": {r.id: r.value for r in rows}}))
                elif format == "csv":
                    typer.echo(timestamp + "," + ",".join(r.value for r in rows))

                if once:
                    break

                time.sleep(interval)

    except (ParseError, ImportValidationError) as e:
        fail(f"Invalid config file: {e}", 2)
    except OSError as e:
        fail(f"Cannot read {file}: {e}", 2)
    except SyncError as e:
        fail(f"Server/sync error: {e}", 3)
    except KeyboardInterrupt:
        typer.echo("\nStopped by user", err=True)
        raise typer.Exit(0)
    except typer.Exit:
        raise
    except Exception as e:
        report_unexpected(e, verbose)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"modbus-regsim {__version__}")
        raise typer.Exit(0)


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option("--version", callback=version_callback, is_eager=True, help="Show version and exit"),
    ] = None,
) -> None:
    """regsim - simulated Modbus register points."""
    pass


if __name__ == "__main__":
    app()

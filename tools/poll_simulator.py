#!/usr/bin/env python3
"""
Read every enabled point of a config file from a running simulator over Modbus
TCP (holding registers) and write a CSV of the values it serves.

Usage (from repo root, after pip install -e .):
  python tools/poll_simulator.py CONFIG [--host HOST] [--port PORT] [--output PATH]

Environment: REGSIM_HOST, REGSIM_PORT (defaults: localhost, 502).
"""

import argparse
import csv
import os
import sys
from datetime import datetime, timezone
from pathlib import Path

from pymodbus.client import ModbusTcpClient

from modbus_regsim.codec import display_value
from modbus_regsim.errors import ParseError, RegSimError
from modbus_regsim.normalize import format_address, format_hex_bytes
from modbus_regsim.portable import load_file
from modbus_regsim.types import RegisterConfig


def read_raw(client: ModbusTcpClient, config: RegisterConfig) -> bytes | None:
    """Read a point's registers as big-endian bytes; None when the server answers with an error."""
    rr = client.read_holding_registers(config.start_addr, count=config.addr_size, device_id=1)
    if rr.isError():
        return None
    registers = getattr(rr, "registers", None) or []
    if len(registers) != config.addr_size:
        return None
    return b"".join(int(r).to_bytes(2, "big") for r in registers)


def main() -> int:
    parser = argparse.ArgumentParser(description="Poll a running simulator and write a CSV of served values.")
    parser.add_argument("config", type=Path, help="Portable JSON config file")
    parser.add_argument(
        "--host",
        default=os.environ.get("REGSIM_HOST", "localhost"),
        help="Simulator host (default: REGSIM_HOST or localhost)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.environ.get("REGSIM_PORT", "502")),
        help="Modbus TCP port (default: REGSIM_PORT or 502)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("poll_results.csv"),
        help="Output CSV path (default: poll_results.csv)",
    )
    args = parser.parse_args()

    try:
        configs = [c for c in load_file(args.config) if c.enabled]
    except (OSError, ParseError) as e:
        print(f"Error: cannot load {args.config}: {e}", file=sys.stderr)
        return 1

    timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    results: list[tuple[str, str, str, str, str]] = []

    client = ModbusTcpClient(host=args.host, port=args.port, timeout=3.0)
    if not client.connect():
        print(f"Connection error: failed to connect to {args.host}:{args.port}", file=sys.stderr)
        return 3
    try:
        for config in configs:
            raw = read_raw(client, config)
            if raw is None:
                print(f"  {config.id}: no answer at {format_address(config.start_addr)}", file=sys.stderr)
                continue
            try:
                value = display_value(config, raw)
            except RegSimError as e:
                value = f"<{e}>"
            results.append((config.id, format_address(config.start_addr), format_hex_bytes(raw), value, timestamp))
    finally:
        client.close()

    with open(args.output, "w", newline="", encoding="utf-8") as f:
        w = csv.writer(f)
        w.writerow(["id", "address", "raw", "value", "timestamp"])
        w.writerows(results)

    print(f"Wrote {len(results)} points to {args.output}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())

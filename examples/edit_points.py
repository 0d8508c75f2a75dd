#!/usr/bin/env python3
"""Example: build a config file in code, validate edits and export a timestamped copy."""

import sys
from pathlib import Path

from modbus_regsim import ConfigStore, RegisterConfig, ValueType, parse_address, validate
from modbus_regsim.errors import AddressRangeOverlapError, InvalidAddressError, ValidationError
from modbus_regsim.portable import export_file_name, save_file


def main() -> None:
    store = ConfigStore()

    try:
        store.upsert(RegisterConfig(id="level", description="Tank level", start_addr=parse_address("1F36"), scale=0.1))
        store.upsert(
            RegisterConfig(
                id="energy",
                description="Energy counter",
                start_addr=parse_address("0x2000"),
                addr_size=2,
                value_type=ValueType.UINT32,
                byte_order="littleEndian",
            )
        )
    except (InvalidAddressError, ValidationError, AddressRangeOverlapError) as e:
        print(f"Rejected: {e}", file=sys.stderr)
        sys.exit(1)

    # Check an edit before applying it
    edited = store.get("level").replace(scale=0.0)
    result = validate(edited)
    print(f"scale=0 -> {result.kind}: {result}")

    # Overlapping spans are rejected
    try:
        store.upsert(RegisterConfig(id="clash", description="Clash", start_addr=0x2001))
    except AddressRangeOverlapError as e:
        print(f"Rejected: {e}")

    target = Path(export_file_name())
    save_file(target, store.export_all())
    print(f"Exported {len(store)} configs to {target}")


if __name__ == "__main__":
    main()

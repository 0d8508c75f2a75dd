#!/usr/bin/env python3
"""Example: serve a few points over Modbus TCP and step one of them every second; Ctrl+C to stop."""

import sys
import time

from modbus_regsim import RegisterConfig, SimulatorSession, StepDirection, ValueType
from modbus_regsim.errors import ImportValidationError, SyncError


def main() -> None:
    port = 5020  # 502 usually needs root
    configs = [
        RegisterConfig(id="level", description="Tank level", start_addr=0x1F36, scale=0.1, delta=0.5, init_value=b"\x01\xf4"),
        RegisterConfig(id="flow", description="Flow rate", start_addr=0x1F38, value_type=ValueType.FLOAT32, addr_size=2),
        RegisterConfig(id="pump", description="Pump run", start_addr=0x1F3A, value_type=ValueType.BOOL),
    ]

    try:
        with SimulatorSession(configs, interval=1.0) as session:
            session.start_server(port)
            session.engine.set_engineering("flow", 12.5)
            session.engine.set_bool("pump", True)
            print(f"Serving on port {port} (Ctrl+C to stop)...")
            while True:
                session.engine.step_value("level", StepDirection.INCREASE)
                for row in session.rows():
                    print(f"{row.address} {row.raw_hex:<12} {row.value:<8} {row.description}")
                time.sleep(1.0)
    except KeyboardInterrupt:
        print("\nStopped.")
    except ImportValidationError as e:
        print(f"Invalid config: {e}", file=sys.stderr)
        sys.exit(1)
    except SyncError as e:
        print(f"Server/sync error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()

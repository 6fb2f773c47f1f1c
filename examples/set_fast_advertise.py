#!/usr/bin/env python3
"""
Set the advertising interval of an adapter

Writes the kernel's adv_min_interval/adv_max_interval entries. A shorter
interval makes the peripheral easier to discover at the cost of power.
Needs root and debugfs mounted.

Usage:
    sudo python set_fast_advertise.py [adapter] [min_ms] [max_ms]

Defaults to hci0, 160 ms, 260 ms.
"""

import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

from ble_peripheral import AdvertisingIntervalController, BLEPeripheralError, configure_logging


def main():
    """Main entry point"""
    configure_logging("INFO")

    adapter = sys.argv[1] if len(sys.argv) > 1 else "hci0"
    try:
        min_ms = int(sys.argv[2]) if len(sys.argv) > 2 else 160
        max_ms = int(sys.argv[3]) if len(sys.argv) > 3 else 260
    except ValueError:
        print(__doc__)
        sys.exit(1)

    controller = AdvertisingIntervalController()
    try:
        controller.set_interval(adapter, min_ms, max_ms)
    except BLEPeripheralError as e:
        print(f"Failed to set interval on {adapter}: {e}")
        sys.exit(1)

    print(f"{adapter}: min {controller.get_min(adapter)} ms, max {controller.get_max(adapter)} ms")


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
Example GATT peripheral

Publishes one primary service with a read/write/notify characteristic
holding a UTF-8 string, and a descriptor on it. The value is notified to
subscribed centrals every few seconds.

Usage:
    sudo python example_peripheral.py [config_file]

Requires BlueZ with the experimental LE advertising API available on the
system bus, dbus-python and PyGObject.
"""

import sys
import os
import time

# Add parent directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

from gi.repository import GLib

from ble_peripheral import (
    BLEApplication,
    BLEApplicationListener,
    BLECharacteristic,
    BLEDescriptor,
    BLEService,
    CallbackValueProvider,
    PeripheralConfig,
    configure_logging,
)
from ble_peripheral.BlueZDBus import DBusBlueZHost

SERVICE_UUID = "13333333-3333-3333-3333-333333333001"
CHARACTERISTIC_UUID = "13333333-3333-3333-3333-333333333002"
DESCRIPTOR_UUID = "b4a20bb9-d3c6-4086-94ed-7759ec9d64ba"

NOTIFY_PERIOD_S = 5


class PrintingListener(BLEApplicationListener):

    def device_connected(self, path, address):
        print(f"Device connected: {path} ADDR: {address}")

    def device_disconnected(self, path):
        print(f"Device disconnected: {path}")


class ExamplePeripheral:
    """Holds the characteristic value and wires it into an application."""

    def __init__(self, config: PeripheralConfig):
        self.value = "Ciao ciao"
        self.host = DBusBlueZHost()

        if config.app_path == PeripheralConfig.app_path:
            config.app_path = "/tango"
        self.app = BLEApplication.from_config(config, host=self.host, listener=PrintingListener())

        service = self.app.add_service(BLEService(f"{config.app_path}/s", SERVICE_UUID, primary=True))
        self.characteristic = self.app.add_characteristic(service, BLECharacteristic(
            f"{config.app_path}/s/c", CHARACTERISTIC_UUID, ["read", "write", "notify"],
            CallbackValueProvider(self.get_value, self.set_value)))

        descriptor = BLEDescriptor(f"{config.app_path}/s/c/d", DESCRIPTOR_UUID, ["read", "write"])
        descriptor.set_value(b"fluffy")
        self.app.add_descriptor(self.characteristic, descriptor)

    def get_value(self, device):
        return self.value.encode("utf-8")

    def set_value(self, device, offset, value):
        self.value = value.decode("utf-8", errors="replace")
        print(f"Value written by {device}: {self.value}")

    def notify(self, value: str):
        self.value = value
        self.characteristic.send_notification()

    def _tick(self):
        if self.characteristic.is_notifying:
            self.notify(time.strftime("%H:%M:%S"))
        return True

    def run(self):
        self.app.start()
        adapter = self.app.adapter
        print(f"Listening on adapter {adapter.address} path: {adapter.path}")

        GLib.timeout_add_seconds(NOTIFY_PERIOD_S, self._tick)
        try:
            self.host.run()
        except KeyboardInterrupt:
            print("\nStopping...")
        finally:
            errors = self.app.stop()
            if errors:
                print(f"{len(errors)} error(s) during teardown, see log")


def main():
    """Main entry point"""
    config = PeripheralConfig.from_config(sys.argv[1] if len(sys.argv) > 1 else None)
    configure_logging(config.log_level)
    ExamplePeripheral(config).run()


if __name__ == "__main__":
    main()

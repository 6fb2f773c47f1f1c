"""
pytest configuration for BLE peripheral tests.

This file is automatically loaded by pytest before test collection begins.
It sets up the Python path to allow imports from src/.
"""

import sys
import os

# Calculate paths relative to this file's location
tests_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(tests_dir)
src_dir = os.path.join(project_root, 'src')

if src_dir not in sys.path:
    sys.path.insert(0, src_dir)
if tests_dir not in sys.path:
    sys.path.insert(0, tests_dir)

import pytest

from ble_peripheral.BLEAccess import BufferValueProvider
from ble_peripheral.BLEAttributes import AttributeTree, BLECharacteristic, BLEDescriptor, BLEService

from mock_bluez_host import MockBlueZHost


# ============================================================================
# Common Test Data
# ============================================================================

SERVICE_UUID = "00000001-0000-1000-8000-00805f9b34fb"
CHARACTERISTIC_UUID = "00000002-0000-1000-8000-00805f9b34fb"
SECOND_CHARACTERISTIC_UUID = "00000003-0000-1000-8000-00805f9b34fb"
DESCRIPTOR_UUID = "00002901-0000-1000-8000-00805f9b34fb"

DEVICE_PATH = "/org/bluez/hci0/dev_AA_BB_CC_DD_EE_FF"
DEVICE_ADDRESS = "AA:BB:CC:DD:EE:FF"


@pytest.fixture
def sample_tree():
    """
    One primary service with two characteristics, the first of which has
    one descriptor:

        /app/s0
            /app/s0/c0   [write, read, notify]
                /app/s0/c0/d0
            /app/s0/c1   [read]
    """
    tree = AttributeTree(reserved_paths=("/app",))
    service = tree.add_service(BLEService("/app/s0", SERVICE_UUID, primary=True))
    c0 = tree.add_characteristic(service, BLECharacteristic(
        "/app/s0/c0", CHARACTERISTIC_UUID, ["write", "read", "notify"],
        BufferValueProvider(b"hello")))
    tree.add_descriptor(c0, BLEDescriptor("/app/s0/c0/d0", DESCRIPTOR_UUID, ["read"], b"fluffy"))
    tree.add_characteristic(service, BLECharacteristic(
        "/app/s0/c1", SECOND_CHARACTERISTIC_UUID, ["read"]))
    return tree


@pytest.fixture
def mock_host():
    """In-memory BlueZ host with a single capable adapter at /org/bluez/hci0."""
    return MockBlueZHost()

# MIT License
#
# Copyright (c) 2025 BLE Peripheral Contributors
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in
# all copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

"""
BlueZ D-Bus names, GATT property keys and attribute flags.

See https://git.kernel.org/pub/scm/bluetooth/bluez.git/tree/doc/gatt-api.txt
"""

import re
from enum import Enum

# ========== Bus names and interfaces ==========

DBUS_BUS_NAME = "org.freedesktop.DBus"
BLUEZ_SERVICE_NAME = "org.bluez"

DBUS_OM_IFACE = "org.freedesktop.DBus.ObjectManager"
DBUS_PROP_IFACE = "org.freedesktop.DBus.Properties"

BLUEZ_ADAPTER_INTERFACE = "org.bluez.Adapter1"
BLUEZ_DEVICE_INTERFACE = "org.bluez.Device1"
GATT_MANAGER_INTERFACE = "org.bluez.GattManager1"
LE_ADVERTISING_MANAGER_INTERFACE = "org.bluez.LEAdvertisingManager1"

GATT_SERVICE_INTERFACE = "org.bluez.GattService1"
GATT_CHARACTERISTIC_INTERFACE = "org.bluez.GattCharacteristic1"
GATT_DESCRIPTOR_INTERFACE = "org.bluez.GattDescriptor1"
LE_ADVERTISEMENT_INTERFACE = "org.bluez.LEAdvertisement1"

# ========== Property keys ==========

SERVICE_PROPERTY_KEY = "Service"
CHARACTERISTIC_PROPERTY_KEY = "Characteristic"
UUID_PROPERTY_KEY = "UUID"
PRIMARY_PROPERTY_KEY = "Primary"
FLAGS_PROPERTY_KEY = "Flags"
DESCRIPTORS_PROPERTY_KEY = "Descriptors"
VALUE_PROPERTY_KEY = "Value"
ADDRESS_PROPERTY_KEY = "Address"
ALIAS_PROPERTY_KEY = "Alias"
NAME_PROPERTY_KEY = "Name"
POWERED_PROPERTY_KEY = "Powered"

# Keys of the options dictionary passed to ReadValue/WriteValue
OFFSET_OPTION = "offset"
DEVICE_OPTION = "device"

# ========== Advertising ==========

ADVERTISEMENT_TYPE_PERIPHERAL = "peripheral"
ADVERTISEMENT_TYPE_BROADCAST = "broadcast"
ADVERTISEMENT_TYPES = (ADVERTISEMENT_TYPE_PERIPHERAL, ADVERTISEMENT_TYPE_BROADCAST)
ADVERTISEMENT_PATH_SUFFIX = "/advertisement"

# Kernel debugfs entries holding the advertising interval of each adapter
KERNEL_DEBUG_PATH = "/sys/kernel/debug/bluetooth/"
ADV_MIN_INTERVAL_FILENAME = "adv_min_interval"
ADV_MAX_INTERVAL_FILENAME = "adv_max_interval"

MIN_ADVERTISE_INTERVAL = 20  # ms
MAX_ADVERTISE_INTERVAL = 20240  # ms, 20.24 s

# ========== Object paths ==========

_OBJECT_PATH_RE = re.compile(r"^/([A-Za-z0-9_]+(/[A-Za-z0-9_]+)*)?$")


def is_valid_object_path(path) -> bool:
    """Return True if ``path`` is a syntactically valid D-Bus object path."""
    return isinstance(path, str) and _OBJECT_PATH_RE.match(path) is not None


# ========== Flags ==========

class _FlagEnum(Enum):
    """Flag enumeration whose value is the wire string."""

    @classmethod
    def from_string(cls, flag: str):
        for member in cls:
            if flag.lower() == member.value:
                return member
        raise ValueError(f"Specified {cls.__name__} not valid [{flag}]")

    @classmethod
    def coerce(cls, flag):
        if isinstance(flag, cls):
            return flag
        if isinstance(flag, str):
            return cls.from_string(flag)
        raise ValueError(f"Specified {cls.__name__} not valid [{flag!r}]")

    def __str__(self):
        return self.value


class CharacteristicFlag(_FlagEnum):
    """Operations allowed on a characteristic."""

    BROADCAST = "broadcast"
    READ = "read"
    WRITE_WITHOUT_RESPONSE = "write-without-response"
    WRITE = "write"
    NOTIFY = "notify"
    INDICATE = "indicate"
    AUTHENTICATED_SIGNED_WRITES = "authenticated-signed-writes"
    EXTENDED_PROPERTIES = "extended-properties"
    RELIABLE_WRITE = "reliable-write"
    WRITABLE_AUXILIARIES = "writable-auxiliaries"
    ENCRYPT_READ = "encrypt-read"
    ENCRYPT_WRITE = "encrypt-write"
    ENCRYPT_NOTIFY = "encrypt-notify"
    ENCRYPT_INDICATE = "encrypt-indicate"
    ENCRYPT_AUTHENTICATED_READ = "encrypt-authenticated-read"
    ENCRYPT_AUTHENTICATED_WRITE = "encrypt-authenticated-write"
    ENCRYPT_AUTHENTICATED_NOTIFY = "encrypt-authenticated-notify"
    ENCRYPT_AUTHENTICATED_INDICATE = "encrypt-authenticated-indicate"
    SECURE_READ = "secure-read"  # Server only
    SECURE_WRITE = "secure-write"  # Server only
    SECURE_NOTIFY = "secure-notify"  # Server only
    SECURE_INDICATE = "secure-indicate"  # Server only
    AUTHORIZE = "authorize"


class DescriptorFlag(_FlagEnum):
    """Operations allowed on a descriptor."""

    READ = "read"
    WRITE = "write"
    ENCRYPT_READ = "encrypt-read"
    ENCRYPT_WRITE = "encrypt-write"
    ENCRYPT_AUTHENTICATED_READ = "encrypt-authenticated-read"
    ENCRYPT_AUTHENTICATED_WRITE = "encrypt-authenticated-write"
    SECURE_READ = "secure-read"  # Server only
    SECURE_WRITE = "secure-write"  # Server only
    AUTHORIZE = "authorize"

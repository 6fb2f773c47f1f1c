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
BLE GATT peripheral for BlueZ.

Build an attribute tree under a BLEApplication, then start() it to power
the adapter, publish the tree and advertise its first primary service.
The D-Bus transport (BlueZDBus) is only imported when start() needs it.
"""

from .BLEAccess import AccessOptions, BufferValueProvider, CallbackValueProvider, ValueProvider
from .BLEAdvertisement import BLEAdvertisement
from .BLEAdvertisingInterval import AdvertisingIntervalController, KernelSettingsStore
from .BLEApplication import BLEApplication, RegistrationState
from .BLEAttributes import AttributeTree, BLECharacteristic, BLEDescriptor, BLEService
from .BLEConfig import PeripheralConfig, configure_logging
from .BLEConnectionTracker import BLEApplicationListener, ConnectionState, ConnectionTracker
from .BLEConstants import CharacteristicFlag, DescriptorFlag
from .BLEErrors import (
    BLEPeripheralError,
    DuplicatePathError,
    IOFailureError,
    InvalidOffsetError,
    InvalidSettingError,
    NoAdapterFoundError,
    NotSupportedError,
    RegistrationError,
    UnknownInterfaceError,
)
from .BLEHost import AdapterInfo, BlueZHostInterface, find_adapter
from .BLENotification import NotificationChannel, NotifyState
from .BLEProperties import PropertyKind, PropertyValue

__version__ = "0.1.0"

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
Exceptions raised by the BLE peripheral.

Errors that reach a peer through the bus carry a ``_dbus_error_name``
attribute, the error name BlueZ expects in the reply. The bus layer
re-raises them as DBusException with that name.
"""


class BLEPeripheralError(Exception):
    """Base class of every error raised by this package."""


class InvalidSettingError(BLEPeripheralError, ValueError):
    """Advertising interval bounds or ordering violated."""


class NoAdapterFoundError(BLEPeripheralError):
    """No adapter exposes both GattManager1 and LEAdvertisingManager1."""


class IOFailureError(BLEPeripheralError, IOError):
    """A kernel setting could not be read or written."""


class DuplicatePathError(BLEPeripheralError):
    """An attribute with the same object path is already in the tree."""

    def __init__(self, path):
        super().__init__(f"Object path already in use: {path}")
        self.path = path


class InvalidOffsetError(BLEPeripheralError):
    """A peer supplied an offset beyond the end of the value."""

    _dbus_error_name = "org.bluez.Error.InvalidOffset"

    def __init__(self, offset, length=None):
        if length is None:
            message = f"Invalid offset {offset}"
        else:
            message = f"Offset {offset} exceeds value length {length}"
        super().__init__(message)
        self.offset = offset
        self.length = length


class UnknownInterfaceError(BLEPeripheralError):
    """A property query named an interface (or property) the object lacks."""

    _dbus_error_name = "org.freedesktop.DBus.Error.InvalidArgs"


class NotSupportedError(BLEPeripheralError):
    """The requested operation is not supported by this object."""

    _dbus_error_name = "org.bluez.Error.NotSupported"


class RegistrationError(BLEPeripheralError):
    """start()/stop() called in a state that does not allow it."""

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
GATT attribute tree: services, characteristics and descriptors.

The structure published to BlueZ is:

    APPLICATION
        SERVICE
            CHARACTERISTIC-1
                DESCRIPTOR
            CHARACTERISTIC-2

Parents own their children in insertion order; children keep a weak
reference back to their parent. All structural changes go through
AttributeTree so object paths stay unique across the whole tree.
"""

import logging
import threading
import weakref
from typing import Iterator, List, Optional, Sequence

from . import BLEAccess
from .BLEAccess import BufferValueProvider, ValueProvider
from .BLEConstants import (
    GATT_CHARACTERISTIC_INTERFACE,
    CharacteristicFlag,
    DescriptorFlag,
    is_valid_object_path,
)
from .BLEErrors import BLEPeripheralError, DuplicatePathError
from .BLENotification import NotificationChannel, NotifyState
from .BLEProperties import NodeKind

logger = logging.getLogger(__name__)


def _normalize_flags(flag_enum, flags) -> tuple:
    """Coerce flags to ``flag_enum`` members, dropping repeats but keeping order."""
    result = []
    for flag in flags or ():
        member = flag_enum.coerce(flag)
        if member not in result:
            result.append(member)
    return tuple(result)


class _Attribute:
    """Common part of every node: immutable path, UUID and parent link."""

    KIND: NodeKind = None

    def __init__(self, path: str, uuid: str):
        if not is_valid_object_path(path) or path == "/":
            raise ValueError(f"Invalid object path: {path!r}")
        self._path = path
        self.uuid = str(uuid)
        self._parent_ref = None
        self._tree_ref = None

    @property
    def path(self) -> str:
        return self._path

    @property
    def parent(self):
        return self._parent_ref() if self._parent_ref is not None else None

    @property
    def attached(self) -> bool:
        return self._tree_ref is not None and self._tree_ref() is not None

    def _attach(self, tree, parent=None):
        self._tree_ref = weakref.ref(tree)
        self._parent_ref = weakref.ref(parent) if parent is not None else None

    def _detach(self):
        self._tree_ref = None
        self._parent_ref = None

    def __repr__(self):
        return f"{type(self).__name__}(path={self._path!r}, uuid={self.uuid!r})"


class BLEService(_Attribute):
    """
    A GATT service. Only a primary service can be advertised, and only the
    first one found is.
    """

    KIND = NodeKind.SERVICE

    def __init__(self, path: str, uuid: str, primary: bool = False):
        super().__init__(path, uuid)
        self.primary = bool(primary)
        self._characteristics: List["BLECharacteristic"] = []

    @property
    def characteristics(self) -> Sequence["BLECharacteristic"]:
        return tuple(self._characteristics)

    @property
    def characteristic_paths(self) -> List[str]:
        return [c.path for c in self._characteristics]

    def is_primary(self) -> bool:
        return self.primary


class BLECharacteristic(_Attribute):
    """
    A single peripheral value that can be read, written or notified.

    The value lives in a ValueProvider (the "listener" of the attribute):
    reads ask it for the full value of the requesting peer, writes pass it
    the raw bytes and the offset.
    """

    KIND = NodeKind.CHARACTERISTIC

    def __init__(self, path: str, uuid: str, flags=None,
                 provider: Optional[ValueProvider] = None):
        super().__init__(path, uuid)
        self.flags = _normalize_flags(CharacteristicFlag, flags)
        self.provider = provider if provider is not None else BufferValueProvider()
        self._descriptors: List["BLEDescriptor"] = []
        self.notifications = NotificationChannel(
            path, GATT_CHARACTERISTIC_INTERFACE, self.get_raw_value
        )

    @property
    def service(self) -> Optional[BLEService]:
        return self.parent

    @property
    def flag_strings(self) -> List[str]:
        return [str(flag) for flag in self.flags]

    @property
    def descriptors(self) -> Sequence["BLEDescriptor"]:
        return tuple(self._descriptors)

    @property
    def descriptor_paths(self) -> List[str]:
        return [d.path for d in self._descriptors]

    # ========== Value access ==========

    def get_raw_value(self, device: Optional[str] = None) -> bytes:
        return self.provider.get_value(device)

    def set_raw_value(self, device: Optional[str], offset: int, value: bytes):
        self.provider.set_value(device, offset, value)

    def read_value(self, options=None) -> bytes:
        """Called when a central requests the characteristic's value."""
        logger.debug(f"ReadValue {self.path} option[{options}]")
        return BLEAccess.read(self, options)

    def write_value(self, value, options=None):
        """Called when a central writes the characteristic's value."""
        logger.debug(f"WriteValue {self.path} {len(value)} bytes option[{options}]")
        BLEAccess.write(self, value, options)

    # ========== Notifications ==========

    @property
    def notify_state(self) -> NotifyState:
        return self.notifications.state

    @property
    def is_notifying(self) -> bool:
        return self.notifications.is_notifying

    def start_notify(self) -> bool:
        return self.notifications.start()

    def stop_notify(self) -> bool:
        return self.notifications.stop()

    def send_notification(self, device: Optional[str] = None) -> bool:
        """Push the current value to subscribed centrals (best effort)."""
        return self.notifications.send(device)


class BLEDescriptor(_Attribute):
    """
    A GATT descriptor describing a characteristic.

    Without a custom provider the value is a local buffer; a write replaces
    the whole buffer and ignores the offset.
    """

    KIND = NodeKind.DESCRIPTOR

    def __init__(self, path: str, uuid: str, flags=None, value: bytes = b"",
                 provider: Optional[ValueProvider] = None):
        super().__init__(path, uuid)
        self.flags = _normalize_flags(DescriptorFlag, flags)
        self.provider = provider
        self._value = bytearray(value)
        self._lock = threading.Lock()

    @property
    def characteristic(self) -> Optional[BLECharacteristic]:
        return self.parent

    @property
    def flag_strings(self) -> List[str]:
        return [str(flag) for flag in self.flags]

    @property
    def value(self) -> bytes:
        with self._lock:
            return bytes(self._value)

    def set_value(self, value: bytes):
        with self._lock:
            self._value[:] = value

    def get_raw_value(self, device: Optional[str] = None) -> bytes:
        if self.provider is not None:
            return self.provider.get_value(device)
        return self.value

    def set_raw_value(self, device: Optional[str], offset: int, value: bytes):
        if self.provider is not None:
            self.provider.set_value(device, offset, value)
        else:
            self.set_value(value)

    def read_value(self, options=None) -> bytes:
        logger.debug(f"ReadValue {self.path} option[{options}]")
        return BLEAccess.read(self, options)

    def write_value(self, value, options=None):
        logger.debug(f"WriteValue {self.path} {len(value)} bytes option[{options}]")
        BLEAccess.write(self, value, options)


class AttributeTree:
    """
    Owner of the Service -> Characteristic -> Descriptor hierarchy.

    Object paths are unique across the tree (and against ``reserved_paths``,
    e.g. the application root). Traversal follows insertion order at every
    level and is stable between calls.
    """

    def __init__(self, reserved_paths: Sequence[str] = ()):
        self._services: List[BLEService] = []
        self._index = {}
        self._reserved = set(reserved_paths)
        self._lock = threading.RLock()

    def _claim(self, node):
        if node.attached:
            raise BLEPeripheralError(f"{node.path} is already attached to a tree")
        if node.path in self._index or node.path in self._reserved:
            raise DuplicatePathError(node.path)

    def _require(self, node):
        if self._index.get(node.path) is not node:
            raise BLEPeripheralError(f"{node.path} is not part of this tree")

    # ========== Mutation ==========

    def add_service(self, service: BLEService) -> BLEService:
        with self._lock:
            self._claim(service)
            service._attach(self)
            self._services.append(service)
            self._index[service.path] = service
        logger.debug(f"Added service {service.path} {service.uuid}")
        return service

    def add_characteristic(self, service: BLEService,
                           characteristic: BLECharacteristic) -> BLECharacteristic:
        with self._lock:
            self._require(service)
            self._claim(characteristic)
            characteristic._attach(self, service)
            service._characteristics.append(characteristic)
            self._index[characteristic.path] = characteristic
        logger.debug(f"Added characteristic {characteristic.path} to {service.path}")
        return characteristic

    def add_descriptor(self, characteristic: BLECharacteristic,
                       descriptor: BLEDescriptor) -> BLEDescriptor:
        with self._lock:
            self._require(characteristic)
            self._claim(descriptor)
            descriptor._attach(self, characteristic)
            characteristic._descriptors.append(descriptor)
            self._index[descriptor.path] = descriptor
        logger.debug(f"Added descriptor {descriptor.path} to {characteristic.path}")
        return descriptor

    def remove_descriptor(self, descriptor: BLEDescriptor):
        with self._lock:
            self._require(descriptor)
            descriptor.characteristic._descriptors.remove(descriptor)
            del self._index[descriptor.path]
            descriptor._detach()

    def remove_characteristic(self, characteristic: BLECharacteristic):
        with self._lock:
            self._require(characteristic)
            for descriptor in list(characteristic._descriptors):
                self.remove_descriptor(descriptor)
            characteristic.service._characteristics.remove(characteristic)
            del self._index[characteristic.path]
            characteristic._detach()

    def remove_service(self, service: BLEService):
        with self._lock:
            self._require(service)
            for characteristic in list(service._characteristics):
                self.remove_characteristic(characteristic)
            self._services.remove(service)
            del self._index[service.path]
            service._detach()

    # ========== Queries ==========

    @property
    def services(self) -> Sequence[BLEService]:
        return tuple(self._services)

    def find(self, path: str):
        return self._index.get(path)

    def __contains__(self, path) -> bool:
        return path in self._index

    def __len__(self) -> int:
        return len(self._index)

    def iter_nodes(self) -> Iterator[_Attribute]:
        """Every node, service first, then its characteristics and their descriptors."""
        with self._lock:
            services = list(self._services)
        for service in services:
            yield service
            for characteristic in service.characteristics:
                yield characteristic
                for descriptor in characteristic.descriptors:
                    yield descriptor

    def all_paths(self) -> Iterator[str]:
        for node in self.iter_nodes():
            yield node.path

    def primary_services(self) -> List[BLEService]:
        return [s for s in self._services if s.primary]

    def first_primary_service(self) -> Optional[BLEService]:
        for service in self._services:
            if service.primary:
                return service
        return None

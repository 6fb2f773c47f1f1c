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
Boundary between the peripheral and the host Bluetooth stack.

BLEApplication drives registration through this contract only, so the
sequencing logic runs against BlueZ over D-Bus (BlueZDBus.DBusBlueZHost)
or against an in-memory double in tests.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

from .BLEConstants import (
    ADDRESS_PROPERTY_KEY,
    ALIAS_PROPERTY_KEY,
    BLUEZ_ADAPTER_INTERFACE,
    GATT_MANAGER_INTERFACE,
    LE_ADVERTISING_MANAGER_INTERFACE,
)

# path -> interface -> property -> value
ManagedObjects = Mapping[str, Mapping[str, Mapping[str, Any]]]

InterfacesAddedHandler = Callable[[str, Mapping[str, Mapping[str, Any]]], None]
InterfacesRemovedHandler = Callable[[str, Sequence[str]], None]


@dataclass
class AdapterInfo:
    """A local adapter as reported by BlueZ's ObjectManager."""

    path: str
    address: Optional[str] = None
    alias: Optional[str] = None
    properties: Dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        """Adapter name as used by the kernel, e.g. hci0."""
        return self.path.rstrip("/").split("/")[-1]

    @classmethod
    def from_properties(cls, path, properties: Optional[Mapping[str, Any]]) -> "AdapterInfo":
        properties = dict(properties or {})
        address = properties.get(ADDRESS_PROPERTY_KEY)
        alias = properties.get(ALIAS_PROPERTY_KEY)
        return cls(
            path=str(path),
            address=str(address) if address is not None else None,
            alias=str(alias) if alias is not None else None,
            properties=properties,
        )


def find_adapter(managed_objects: Optional[ManagedObjects]) -> Optional[AdapterInfo]:
    """
    Return the first adapter exposing both GattManager1 and
    LEAdvertisingManager1, or None.
    """
    if not managed_objects:
        return None

    for path, interfaces in managed_objects.items():
        if GATT_MANAGER_INTERFACE in interfaces and LE_ADVERTISING_MANAGER_INTERFACE in interfaces:
            return AdapterInfo.from_properties(path, interfaces.get(BLUEZ_ADAPTER_INTERFACE))
    return None


class BlueZHostInterface(ABC):
    """
    Operations the peripheral needs from the host stack.

    Every call may raise the transport's own exception type; callers do not
    translate them.
    """

    @abstractmethod
    def get_managed_objects(self) -> ManagedObjects:
        """Return BlueZ's object tree (ObjectManager.GetManagedObjects on '/')."""
        pass

    @abstractmethod
    def set_adapter_property(self, adapter_path: str, name: str, value: Any):
        """Set an org.bluez.Adapter1 property, e.g. Powered or Alias."""
        pass

    @abstractmethod
    def export_application(self, application):
        """
        Export the application root and every node of its attribute tree at
        their object paths.
        """
        pass

    @abstractmethod
    def unexport_application(self, application):
        pass

    @abstractmethod
    def export_advertisement(self, advertisement):
        pass

    @abstractmethod
    def unexport_advertisement(self, advertisement):
        pass

    @abstractmethod
    def register_advertisement(self, adapter_path: str, advertisement, options: Mapping):
        """LEAdvertisingManager1.RegisterAdvertisement"""
        pass

    @abstractmethod
    def unregister_advertisement(self, adapter_path: str, advertisement):
        """LEAdvertisingManager1.UnregisterAdvertisement"""
        pass

    @abstractmethod
    def register_application(self, adapter_path: str, application, options: Mapping):
        """GattManager1.RegisterApplication"""
        pass

    @abstractmethod
    def unregister_application(self, adapter_path: str, application):
        """GattManager1.UnregisterApplication"""
        pass

    @abstractmethod
    def subscribe_interfaces(self, on_added: InterfacesAddedHandler,
                             on_removed: InterfacesRemovedHandler) -> Any:
        """
        Subscribe to BlueZ's InterfacesAdded/InterfacesRemoved signals.

        Returns:
            A handle to pass to unsubscribe()
        """
        pass

    @abstractmethod
    def unsubscribe(self, subscription: Any):
        pass

    @abstractmethod
    def close(self):
        """Release the bus connection."""
        pass

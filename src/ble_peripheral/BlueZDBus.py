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
BlueZ host over the D-Bus system bus (dbus-python + GLib main loop).

Each attribute of the tree is exported as a dbus.service.Object at its
path; the application root implements ObjectManager so BlueZ can fetch
the whole tree with one GetManagedObjects call.

RegisterApplication makes BlueZ call GetManagedObjects back on us before
it replies, so registration calls are sent asynchronously and the GLib
context is iterated until the reply arrives.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

import dbus
import dbus.exceptions
import dbus.mainloop.glib
import dbus.service
from gi.repository import GLib

from . import BLEProperties
from .BLEAttributes import BLECharacteristic, BLEDescriptor, BLEService
from .BLEConstants import (
    BLUEZ_ADAPTER_INTERFACE,
    BLUEZ_SERVICE_NAME,
    DBUS_OM_IFACE,
    DBUS_PROP_IFACE,
    GATT_CHARACTERISTIC_INTERFACE,
    GATT_DESCRIPTOR_INTERFACE,
    GATT_MANAGER_INTERFACE,
    LE_ADVERTISEMENT_INTERFACE,
    LE_ADVERTISING_MANAGER_INTERFACE,
)
from .BLEErrors import BLEPeripheralError, NotSupportedError
from .BLEHost import BlueZHostInterface
from .BLEProperties import PropertyKind, PropertyValue

logger = logging.getLogger(__name__)

FAILED_ERROR_NAME = "org.bluez.Error.Failed"


# ========== Type conversion ==========

def to_dbus(value: PropertyValue):
    """Convert a tagged property value to the matching dbus-python type."""
    kind = value.kind
    if kind is PropertyKind.STRING:
        return dbus.String(value.value)
    if kind is PropertyKind.BOOL:
        return dbus.Boolean(value.value)
    if kind is PropertyKind.PATH:
        return dbus.ObjectPath(value.value)
    if kind is PropertyKind.BYTES:
        return dbus.Array([dbus.Byte(b) for b in value.value], signature="y")
    if kind is PropertyKind.STRING_LIST:
        return dbus.Array([dbus.String(s) for s in value.value], signature="s")
    if kind is PropertyKind.PATH_LIST:
        return dbus.Array([dbus.ObjectPath(p) for p in value.value], signature="o")
    raise ValueError(f"Unsupported property kind {kind}")


def to_dbus_properties(properties: Mapping[str, PropertyValue]) -> dbus.Dictionary:
    return dbus.Dictionary(
        {name: to_dbus(value) for name, value in properties.items()}, signature="sv"
    )


def to_dbus_managed_objects(objects) -> dbus.Dictionary:
    response = dbus.Dictionary({}, signature="oa{sa{sv}}")
    for path, interfaces in objects.items():
        response[dbus.ObjectPath(path)] = dbus.Dictionary(
            {iface: to_dbus_properties(props) for iface, props in interfaces.items()},
            signature="sa{sv}",
        )
    return response


def _to_variant(value: Any):
    if isinstance(value, bool):
        return dbus.Boolean(value)
    if isinstance(value, int):
        return dbus.UInt32(value)
    return dbus.String(value)


def _peer_call(description: str, func, *args):
    """
    Run a handler for a peer request, turning our errors into D-Bus error
    replies so a faulty request never reaches the dispatcher as a crash.
    """
    try:
        return func(*args)
    except dbus.exceptions.DBusException:
        raise
    except BLEPeripheralError as e:
        name = getattr(e, "_dbus_error_name", None) or FAILED_ERROR_NAME
        logger.debug(f"{description} rejected: {name}: {e}")
        raise dbus.exceptions.DBusException(str(e), name=name) from e
    except Exception as e:
        logger.error(f"{description} failed: {type(e).__name__}: {e}")
        raise dbus.exceptions.DBusException(str(e), name=FAILED_ERROR_NAME) from e


# ========== Exported objects ==========

class GattObject(dbus.service.Object):
    """org.freedesktop.DBus.Properties for one attribute."""

    def __init__(self, bus, node):
        self.node = node
        super().__init__(bus, node.path)

    @dbus.service.method(DBUS_PROP_IFACE, in_signature="s", out_signature="a{sv}")
    def GetAll(self, interface):
        logger.debug(f"GetAll {self.node.path} {interface}")
        return _peer_call("GetAll", lambda: to_dbus_properties(
            BLEProperties.get_all(self.node, str(interface))))

    @dbus.service.method(DBUS_PROP_IFACE, in_signature="ss", out_signature="v")
    def Get(self, interface, name):
        return _peer_call("Get", lambda: to_dbus(
            BLEProperties.get_property(self.node, str(interface), str(name))))

    @dbus.service.method(DBUS_PROP_IFACE, in_signature="ssv", out_signature="")
    def Set(self, interface, name, value):
        def reject():
            raise NotSupportedError(f"{interface}.{name} is read-only")
        _peer_call("Set", reject)


class GattServiceObject(GattObject):
    pass


class GattCharacteristicObject(GattObject):

    @dbus.service.method(GATT_CHARACTERISTIC_INTERFACE, in_signature="a{sv}", out_signature="ay")
    def ReadValue(self, options):
        value = _peer_call("ReadValue", self.node.read_value, options)
        return dbus.Array(value, signature="y")

    @dbus.service.method(GATT_CHARACTERISTIC_INTERFACE, in_signature="aya{sv}", out_signature="")
    def WriteValue(self, value, options):
        _peer_call("WriteValue", self.node.write_value, bytes(value), options)

    @dbus.service.method(GATT_CHARACTERISTIC_INTERFACE, in_signature="", out_signature="")
    def StartNotify(self):
        self.node.start_notify()

    @dbus.service.method(GATT_CHARACTERISTIC_INTERFACE, in_signature="", out_signature="")
    def StopNotify(self):
        self.node.stop_notify()

    @dbus.service.signal(DBUS_PROP_IFACE, signature="sa{sv}as")
    def PropertiesChanged(self, interface, changed_properties, invalidated_properties):
        pass

    def emit_properties_changed(self, path: str, interface: str,
                                changed: Mapping[str, PropertyValue]):
        self.PropertiesChanged(interface, to_dbus_properties(changed),
                               dbus.Array([], signature="s"))


class GattDescriptorObject(GattObject):

    @dbus.service.method(GATT_DESCRIPTOR_INTERFACE, in_signature="a{sv}", out_signature="ay")
    def ReadValue(self, options):
        value = _peer_call("ReadValue", self.node.read_value, options)
        return dbus.Array(value, signature="y")

    @dbus.service.method(GATT_DESCRIPTOR_INTERFACE, in_signature="aya{sv}", out_signature="")
    def WriteValue(self, value, options):
        _peer_call("WriteValue", self.node.write_value, bytes(value), options)


class ApplicationObject(dbus.service.Object):
    """Root of the GATT application: org.freedesktop.DBus.ObjectManager."""

    def __init__(self, bus, application):
        self.application = application
        super().__init__(bus, application.path)

    @dbus.service.method(DBUS_OM_IFACE, in_signature="", out_signature="a{oa{sa{sv}}}")
    def GetManagedObjects(self):
        return to_dbus_managed_objects(self.application.get_managed_objects())


class AdvertisementObject(dbus.service.Object):

    def __init__(self, bus, advertisement):
        self.advertisement = advertisement
        super().__init__(bus, advertisement.path)

    @dbus.service.method(DBUS_PROP_IFACE, in_signature="s", out_signature="a{sv}")
    def GetAll(self, interface):
        return _peer_call("GetAll", lambda: to_dbus_properties(
            self.advertisement.get_all(str(interface))))

    @dbus.service.method(LE_ADVERTISEMENT_INTERFACE, in_signature="", out_signature="")
    def Release(self):
        self.advertisement.release()


_OBJECT_TYPES = {
    BLEService: GattServiceObject,
    BLECharacteristic: GattCharacteristicObject,
    BLEDescriptor: GattDescriptorObject,
}


def export_node(bus, node) -> GattObject:
    """Export one attribute and hook its notifications to the bus."""
    for node_type, object_type in _OBJECT_TYPES.items():
        if isinstance(node, node_type):
            obj = object_type(bus, node)
            break
    else:
        raise TypeError(f"Cannot export {node!r}")

    if isinstance(obj, GattCharacteristicObject):
        node.notifications.emitter = obj.emit_properties_changed
    return obj


def _unexport(obj):
    node = getattr(obj, "node", None)
    if isinstance(node, BLECharacteristic):
        node.notifications.emitter = None
    obj.remove_from_connection()


# ========== Host ==========

class DBusBlueZHost(BlueZHostInterface):
    """
    BlueZHostInterface on the system bus.

    The connection is private to this host, opened on first use and closed
    by close(). The GLib main loop must run (run()) for peer requests and
    signals to be dispatched.
    """

    def __init__(self, bus: Optional[dbus.Bus] = None):
        self._bus = bus
        self._exported: Dict[str, List[dbus.service.Object]] = {}
        self._mainloop: Optional[GLib.MainLoop] = None

    @property
    def bus(self):
        if self._bus is None:
            dbus.mainloop.glib.DBusGMainLoop(set_as_default=True)
            self._bus = dbus.SystemBus(private=True)
            logger.debug(f"Connected to system bus as {self._bus.get_unique_name()}")
        return self._bus

    def _interface(self, path: str, interface: str) -> dbus.Interface:
        return dbus.Interface(self.bus.get_object(BLUEZ_SERVICE_NAME, path), interface)

    def _call_async(self, method, *args):
        """Send ``method`` without blocking dispatch and wait for its reply."""
        context = GLib.MainContext.default()
        result = {}

        def reply_handler(*values):
            result["reply"] = values

        def error_handler(error):
            result["error"] = error

        method(*args, reply_handler=reply_handler, error_handler=error_handler)
        while not result:
            context.iteration(True)

        if "error" in result:
            raise result["error"]
        return result["reply"]

    # ========== BlueZHostInterface ==========

    def get_managed_objects(self):
        return self._interface("/", DBUS_OM_IFACE).GetManagedObjects()

    def set_adapter_property(self, adapter_path, name, value):
        logger.debug(f"Set {adapter_path} {name}={value!r}")
        self._interface(adapter_path, DBUS_PROP_IFACE).Set(
            BLUEZ_ADAPTER_INTERFACE, name, _to_variant(value))

    def export_application(self, application):
        logger.debug(f"export application {application.path} on {self.bus.get_unique_name()}")
        objects = []
        try:
            for node in application.tree.iter_nodes():
                logger.debug(f" export {node.path}")
                objects.append(export_node(self.bus, node))
            objects.append(ApplicationObject(self.bus, application))
        except Exception:
            for obj in reversed(objects):
                _unexport(obj)
            raise
        self._exported[application.path] = objects

    def unexport_application(self, application):
        for obj in reversed(self._exported.pop(application.path, [])):
            _unexport(obj)

    def export_advertisement(self, advertisement):
        self._exported[advertisement.path] = [AdvertisementObject(self.bus, advertisement)]

    def unexport_advertisement(self, advertisement):
        for obj in self._exported.pop(advertisement.path, []):
            _unexport(obj)

    def register_advertisement(self, adapter_path, advertisement, options):
        manager = self._interface(adapter_path, LE_ADVERTISING_MANAGER_INTERFACE)
        self._call_async(manager.RegisterAdvertisement,
                         dbus.ObjectPath(advertisement.path),
                         dbus.Dictionary(options, signature="sv"))
        logger.info(f"Advertisement {advertisement.path} registered on {adapter_path}")

    def unregister_advertisement(self, adapter_path, advertisement):
        manager = self._interface(adapter_path, LE_ADVERTISING_MANAGER_INTERFACE)
        self._call_async(manager.UnregisterAdvertisement, dbus.ObjectPath(advertisement.path))

    def register_application(self, adapter_path, application, options):
        manager = self._interface(adapter_path, GATT_MANAGER_INTERFACE)
        self._call_async(manager.RegisterApplication,
                         dbus.ObjectPath(application.path),
                         dbus.Dictionary(options, signature="sv"))
        logger.info(f"GATT application {application.path} registered on {adapter_path}")

    def unregister_application(self, adapter_path, application):
        manager = self._interface(adapter_path, GATT_MANAGER_INTERFACE)
        self._call_async(manager.UnregisterApplication, dbus.ObjectPath(application.path))

    def subscribe_interfaces(self, on_added, on_removed):
        def interfaces_added(path, interfaces):
            on_added(str(path), interfaces)

        def interfaces_removed(path, interfaces):
            on_removed(str(path), [str(i) for i in interfaces])

        added = self.bus.add_signal_receiver(
            interfaces_added, signal_name="InterfacesAdded",
            dbus_interface=DBUS_OM_IFACE, bus_name=BLUEZ_SERVICE_NAME, path="/")
        removed = self.bus.add_signal_receiver(
            interfaces_removed, signal_name="InterfacesRemoved",
            dbus_interface=DBUS_OM_IFACE, bus_name=BLUEZ_SERVICE_NAME, path="/")
        return (added, removed)

    def unsubscribe(self, subscription):
        for match in subscription:
            match.remove()

    def close(self):
        for path in list(self._exported):
            for obj in reversed(self._exported.pop(path)):
                _unexport(obj)
        if self._bus is not None:
            self._bus.close()
            self._bus = None

    # ========== Main loop ==========

    def run(self):
        """Run the GLib main loop until quit() is called."""
        self.bus  # connect before entering the loop
        self._mainloop = GLib.MainLoop()
        try:
            self._mainloop.run()
        finally:
            self._mainloop = None

    def quit(self):
        if self._mainloop is not None:
            self._mainloop.quit()

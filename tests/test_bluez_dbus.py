"""
Tests for the dbus-python transport.

Exported objects are registered on a mock connection and their handlers are
called directly, so no system bus or adapter is needed. Requires
dbus-python and PyGObject.
"""

import pytest
from unittest.mock import Mock

dbus = pytest.importorskip("dbus")
pytest.importorskip("gi")

from ble_peripheral import BlueZDBus
from ble_peripheral.BLEAccess import BufferValueProvider
from ble_peripheral.BLEApplication import BLEApplication
from ble_peripheral.BLEAttributes import BLECharacteristic, BLEDescriptor, BLEService
from ble_peripheral.BLEConstants import (
    BLUEZ_ADAPTER_INTERFACE,
    DBUS_OM_IFACE,
    DBUS_PROP_IFACE,
    GATT_CHARACTERISTIC_INTERFACE,
    GATT_SERVICE_INTERFACE,
    LE_ADVERTISEMENT_INTERFACE,
)
from ble_peripheral.BLEProperties import PropertyValue

from conftest import CHARACTERISTIC_UUID, DESCRIPTOR_UUID, SERVICE_UUID
from mock_bluez_host import MockBlueZHost


@pytest.fixture
def application():
    app = BLEApplication("/app", host=MockBlueZHost())
    service = app.add_service(BLEService("/app/s0", SERVICE_UUID, primary=True))
    characteristic = app.add_characteristic(service, BLECharacteristic(
        "/app/s0/c0", CHARACTERISTIC_UUID, ["read", "write", "notify"], BufferValueProvider(b"hello")))
    app.add_descriptor(characteristic, BLEDescriptor("/app/s0/c0/d0", DESCRIPTOR_UUID, ["read"], b"fluffy"))
    return app


@pytest.fixture
def connection():
    """Stands in for a bus connection; exported objects only register on it."""
    return Mock()


class TestConversion:

    def test_scalars(self):
        assert isinstance(BlueZDBus.to_dbus(PropertyValue.of_string("x")), dbus.String)
        assert isinstance(BlueZDBus.to_dbus(PropertyValue.of_bool(True)), dbus.Boolean)
        assert isinstance(BlueZDBus.to_dbus(PropertyValue.of_path("/a")), dbus.ObjectPath)

    def test_arrays_carry_signature(self):
        assert BlueZDBus.to_dbus(PropertyValue.of_bytes(b"\x01\x02")).signature == "y"
        assert BlueZDBus.to_dbus(PropertyValue.of_string_list(["read"])).signature == "s"
        assert BlueZDBus.to_dbus(PropertyValue.of_path_list([])).signature == "o"

    def test_bytes_values(self):
        assert list(BlueZDBus.to_dbus(PropertyValue.of_bytes(b"\x01\xff"))) == [1, 255]

    def test_managed_objects(self, application):
        objects = BlueZDBus.to_dbus_managed_objects(application.get_managed_objects())

        assert objects.signature == "oa{sa{sv}}"
        assert list(objects.keys()) == ["/app/s0", "/app/s0/c0", "/app/s0/c0/d0"]
        characteristic = objects["/app/s0/c0"][GATT_CHARACTERISTIC_INTERFACE]
        assert list(characteristic["Flags"]) == ["read", "write", "notify"]
        assert characteristic["Service"] == dbus.ObjectPath("/app/s0")


class TestExportedObjects:

    def test_get_all(self, connection, application):
        obj = BlueZDBus.export_node(connection, application.tree.find("/app/s0"))

        properties = obj.GetAll(GATT_SERVICE_INTERFACE)

        assert properties["UUID"] == SERVICE_UUID
        assert properties["Primary"] == True  # noqa: E712

    def test_get_all_wrong_interface(self, connection, application):
        obj = BlueZDBus.export_node(connection, application.tree.find("/app/s0"))

        with pytest.raises(dbus.exceptions.DBusException) as excinfo:
            obj.GetAll(GATT_CHARACTERISTIC_INTERFACE)

        assert excinfo.value.get_dbus_name() == "org.freedesktop.DBus.Error.InvalidArgs"

    def test_set_not_supported(self, connection, application):
        obj = BlueZDBus.export_node(connection, application.tree.find("/app/s0"))

        with pytest.raises(dbus.exceptions.DBusException) as excinfo:
            obj.Set(GATT_SERVICE_INTERFACE, "UUID", dbus.String("x"))

        assert excinfo.value.get_dbus_name() == "org.bluez.Error.NotSupported"

    def test_read_value_with_offset(self, connection, application):
        obj = BlueZDBus.export_node(connection, application.tree.find("/app/s0/c0"))

        value = obj.ReadValue(dbus.Dictionary({"offset": dbus.UInt16(1)}, signature="sv"))

        assert bytes(value) == b"ello"

    def test_read_invalid_offset(self, connection, application):
        obj = BlueZDBus.export_node(connection, application.tree.find("/app/s0/c0"))

        with pytest.raises(dbus.exceptions.DBusException) as excinfo:
            obj.ReadValue({"offset": dbus.UInt16(42)})

        assert excinfo.value.get_dbus_name() == "org.bluez.Error.InvalidOffset"

    def test_write_value(self, connection, application):
        characteristic = application.tree.find("/app/s0/c0")
        obj = BlueZDBus.export_node(connection, characteristic)

        obj.WriteValue(dbus.Array([dbus.Byte(74)], signature="y"), {})

        assert characteristic.get_raw_value() == b"Jello"

    def test_descriptor_read(self, connection, application):
        obj = BlueZDBus.export_node(connection, application.tree.find("/app/s0/c0/d0"))

        assert bytes(obj.ReadValue({})) == b"fluffy"

    def test_notify_wires_emitter(self, connection, application):
        characteristic = application.tree.find("/app/s0/c0")
        obj = BlueZDBus.export_node(connection, characteristic)
        obj.PropertiesChanged = Mock()

        obj.StartNotify()
        assert characteristic.send_notification() is True

        interface, changed, invalidated = obj.PropertiesChanged.call_args[0]
        assert interface == GATT_CHARACTERISTIC_INTERFACE
        assert bytes(changed["Value"]) == b"hello"
        assert list(invalidated) == []

        obj.StopNotify()
        assert not characteristic.is_notifying

    def test_application_object(self, connection, application):
        obj = BlueZDBus.ApplicationObject(connection, application)

        assert len(obj.GetManagedObjects()) == 3

    def test_advertisement_object(self, connection, application):
        application.start()
        obj = BlueZDBus.AdvertisementObject(connection, application.advertisement)

        properties = obj.GetAll(LE_ADVERTISEMENT_INTERFACE)
        assert properties["Type"] == "peripheral"
        assert list(properties["ServiceUUIDs"]) == [SERVICE_UUID]

        obj.Release()
        assert application.advertisement.released


class TestDBusBlueZHost:

    @pytest.fixture
    def bus(self):
        return Mock()

    def test_set_adapter_property(self, bus):
        host = BlueZDBus.DBusBlueZHost(bus)

        host.set_adapter_property("/org/bluez/hci0", "Powered", True)

        bus.get_object.assert_called_once_with("org.bluez", "/org/bluez/hci0")
        proxy = bus.get_object.return_value
        proxy.get_dbus_method.assert_called_once_with("Set", DBUS_PROP_IFACE)
        args = proxy.get_dbus_method.return_value.call_args[0]
        assert args[0] == BLUEZ_ADAPTER_INTERFACE
        assert args[1] == "Powered"
        assert isinstance(args[2], dbus.Boolean)

    def test_get_managed_objects(self, bus):
        host = BlueZDBus.DBusBlueZHost(bus)
        proxy = bus.get_object.return_value
        proxy.get_dbus_method.return_value.return_value = {"/org/bluez/hci0": {}}

        assert host.get_managed_objects() == {"/org/bluez/hci0": {}}
        proxy.get_dbus_method.assert_called_once_with("GetManagedObjects", DBUS_OM_IFACE)

    def test_subscribe_and_unsubscribe(self, bus):
        host = BlueZDBus.DBusBlueZHost(bus)
        on_added = Mock()
        on_removed = Mock()

        subscription = host.subscribe_interfaces(on_added, on_removed)

        assert bus.add_signal_receiver.call_count == 2
        added_handler = bus.add_signal_receiver.call_args_list[0][0][0]
        added_handler(dbus.ObjectPath("/org/bluez/hci0/dev_AA"), {})
        on_added.assert_called_once_with("/org/bluez/hci0/dev_AA", {})

        host.unsubscribe(subscription)
        assert bus.add_signal_receiver.return_value.remove.call_count == 2

    def test_close_releases_bus(self, bus):
        host = BlueZDBus.DBusBlueZHost(bus)

        host.close()

        bus.close.assert_called_once()
        assert host._bus is None

"""
Tests for BLEApplication start/stop sequencing against MockBlueZHost.

Covers:
- Adapter selection (first adapter with GATT and LE advertising managers)
- Step order of start() and reverse order of stop()
- Rollback when a step fails
- Advertisement contents and connection tracking while running
"""

import pytest
from unittest.mock import Mock

from ble_peripheral.BLEAdvertisingInterval import AdvertisingIntervalController
from ble_peripheral.BLEApplication import BLEApplication, RegistrationState
from ble_peripheral.BLEAttributes import BLECharacteristic, BLEDescriptor, BLEService
from ble_peripheral.BLEConnectionTracker import BLEApplicationListener
from ble_peripheral.BLEConstants import LE_ADVERTISEMENT_INTERFACE
from ble_peripheral.BLEErrors import DuplicatePathError, NoAdapterFoundError, RegistrationError
from ble_peripheral import BLEProperties

from conftest import CHARACTERISTIC_UUID, DESCRIPTOR_UUID, DEVICE_ADDRESS, DEVICE_PATH, SERVICE_UUID
from mock_bluez_host import MockBlueZHost, adapter_objects

START_SEQUENCE = [
    "get_managed_objects",
    "set_adapter_property",
    "export_application",
    "export_advertisement",
    "register_advertisement",
    "register_application",
    "subscribe_interfaces",
]


def build_application(host, **kwargs):
    app = BLEApplication("/app", host=host, **kwargs)
    service = app.add_service(BLEService("/app/s0", SERVICE_UUID, primary=True))
    characteristic = app.add_characteristic(
        service, BLECharacteristic("/app/s0/c0", CHARACTERISTIC_UUID, ["read", "write", "notify"]))
    app.add_descriptor(characteristic, BLEDescriptor("/app/s0/c0/d0", DESCRIPTOR_UUID, ["read"], b"fluffy"))
    return app


class TestAdapterSelection:

    def test_first_capable_adapter_chosen(self):
        objects = {}
        objects.update(adapter_objects("/org/bluez/hci0", "00:00:00:00:00:01", advertising=False))
        objects.update(adapter_objects("/org/bluez/hci1", "00:00:00:00:00:02"))
        host = MockBlueZHost(objects)
        app = build_application(host)

        app.start()

        assert app.adapter.path == "/org/bluez/hci1"
        assert app.adapter.address == "00:00:00:00:00:02"
        assert app.adapter.name == "hci1"
        assert ("register_application", ("/org/bluez/hci1", "/app")) in host.calls

    def test_no_adapter(self):
        host = MockBlueZHost(adapter_objects(gatt=False))
        app = build_application(host)

        with pytest.raises(NoAdapterFoundError):
            app.start()

        assert host.call_names() == ["get_managed_objects", "close"]
        assert host.closed
        assert app.state is RegistrationState.STOPPED

    def test_empty_object_tree(self):
        app = build_application(MockBlueZHost({}))

        with pytest.raises(NoAdapterFoundError):
            app.start()


class TestStart:

    def test_start_sequence(self, mock_host):
        app = build_application(mock_host)

        app.start()

        assert mock_host.call_names() == START_SEQUENCE
        assert app.state is RegistrationState.RUNNING
        assert mock_host.adapter_properties == {"Powered": True}

    def test_alias_set_after_power_on(self, mock_host):
        app = build_application(mock_host, adapter_alias="Tango")

        app.start()

        property_calls = [args for name, args in mock_host.calls if name == "set_adapter_property"]
        assert property_calls == [
            ("/org/bluez/hci0", "Powered", True),
            ("/org/bluez/hci0", "Alias", "Tango"),
        ]

    def test_set_adapter_alias_applies_on_start(self, mock_host):
        app = build_application(mock_host)
        app.set_adapter_alias("Renamed")

        app.start()

        assert mock_host.adapter_properties["Alias"] == "Renamed"

    def test_whole_tree_exported(self, mock_host):
        app = build_application(mock_host)

        app.start()

        assert set(mock_host.exported) == {
            "/app", "/app/s0", "/app/s0/c0", "/app/s0/c0/d0", "/app/advertisement"}

    def test_advertises_first_primary_service(self, mock_host):
        app = build_application(mock_host, local_name="Tango")
        app.add_service(BLEService("/app/s1", "0000180f-0000-1000-8000-00805f9b34fb", primary=True))

        app.start()

        properties = BLEProperties.unwrap(app.advertisement.get_properties())
        assert properties[LE_ADVERTISEMENT_INTERFACE] == {
            "Type": "peripheral",
            "ServiceUUIDs": [SERVICE_UUID],
            "LocalName": "Tango",
        }
        assert app.advertised_service.path == "/app/s0"

    def test_no_primary_service_advertises_without_uuid(self, mock_host):
        app = BLEApplication("/app", host=mock_host)
        app.add_service(BLEService("/app/s0", SERVICE_UUID, primary=False))

        app.start()

        properties = app.advertisement.get_properties()[LE_ADVERTISEMENT_INTERFACE]
        assert "ServiceUUIDs" not in properties
        assert app.advertised_service is None

    def test_start_twice_rejected(self, mock_host):
        app = build_application(mock_host)
        app.start()

        with pytest.raises(RegistrationError):
            app.start()

    def test_interval_applied_to_adapter(self, mock_host):
        controller = Mock(spec=AdvertisingIntervalController)
        app = build_application(mock_host, adv_interval=(160, 260), interval_controller=controller)

        app.start()

        controller.set_interval.assert_called_once_with("hci0", 160, 260)

    def test_get_managed_objects_matches_tree(self, mock_host):
        app = build_application(mock_host)

        assert list(app.get_managed_objects()) == ["/app/s0", "/app/s0/c0", "/app/s0/c0/d0"]


class TestRollback:

    @pytest.mark.parametrize("failing_step,expected_undo", [
        ("export_application", []),
        ("export_advertisement", ["unexport_application"]),
        ("register_advertisement", ["unexport_advertisement", "unexport_application"]),
        ("register_application", ["unregister_advertisement", "unexport_advertisement",
                                  "unexport_application"]),
        ("subscribe_interfaces", ["unregister_application", "unregister_advertisement",
                                  "unexport_advertisement", "unexport_application"]),
    ])
    def test_failed_step_undoes_completed_steps(self, mock_host, failing_step, expected_undo):
        app = build_application(mock_host)
        mock_host.fail_on = failing_step

        with pytest.raises(RuntimeError):
            app.start()

        names = mock_host.call_names()
        assert names[names.index(failing_step) + 1:] == expected_undo + ["close"]
        assert mock_host.closed
        assert app.state is RegistrationState.STOPPED
        assert app.adapter is None

    def test_power_failure_leaves_nothing_exported(self, mock_host):
        app = build_application(mock_host)
        mock_host.fail_on = "set_adapter_property"

        with pytest.raises(RuntimeError):
            app.start()

        assert mock_host.exported == {}

    def test_failed_start_releases_host(self, mock_host):
        app = build_application(mock_host)
        mock_host.fail_on = "register_application"

        with pytest.raises(RuntimeError):
            app.start()

        assert mock_host.closed
        mock_host.calls.clear()
        assert app.stop() == []
        assert mock_host.calls == []

    def test_close_failure_keeps_original_error(self):
        app = build_application(MockBlueZHost(adapter_objects(advertising=False)))
        app.host.fail_on = "close"

        with pytest.raises(NoAdapterFoundError):
            app.start()

        assert app.state is RegistrationState.STOPPED

    def test_restart_after_failure(self, mock_host):
        app = build_application(mock_host)
        mock_host.fail_on = "register_application"
        with pytest.raises(RuntimeError):
            app.start()

        mock_host.fail_on = None
        app.start()

        assert app.state is RegistrationState.RUNNING


class TestStop:

    def test_stop_reverses_start(self, mock_host):
        app = build_application(mock_host)
        app.start()
        mock_host.calls.clear()

        errors = app.stop()

        assert errors == []
        assert mock_host.call_names() == [
            "unsubscribe",
            "unregister_application",
            "unregister_advertisement",
            "unexport_advertisement",
            "unexport_application",
            "close",
        ]
        assert app.state is RegistrationState.STOPPED
        assert mock_host.exported == {}

    def test_stop_is_idempotent(self, mock_host):
        app = build_application(mock_host)
        app.start()
        app.stop()
        mock_host.calls.clear()

        assert app.stop() == []
        assert mock_host.calls == []

    def test_stop_before_start(self, mock_host):
        app = build_application(mock_host)

        assert app.stop() == []
        assert mock_host.calls == []

    def test_stop_continues_past_failures(self, mock_host):
        app = build_application(mock_host)
        app.start()
        mock_host.fail_on = "unregister_application"

        errors = app.stop()

        assert len(errors) == 1
        assert "unexport_application" in mock_host.call_names()
        assert mock_host.closed

    def test_start_stop_start(self, mock_host):
        app = build_application(mock_host)
        app.start()
        app.stop()
        mock_host.calls.clear()

        app.start()

        assert mock_host.call_names() == START_SEQUENCE


class TestConnections:

    def test_listener_notified_while_running(self, mock_host):
        listener = Mock(spec=BLEApplicationListener)
        app = build_application(mock_host, listener=listener)
        app.start()

        mock_host.simulate_device_connected(DEVICE_PATH, DEVICE_ADDRESS)
        assert app.has_device_connected
        listener.device_connected.assert_called_once_with(DEVICE_PATH, DEVICE_ADDRESS)

        mock_host.simulate_device_disconnected(DEVICE_PATH)
        assert not app.has_device_connected
        listener.device_disconnected.assert_called_once_with(DEVICE_PATH)

    def test_no_events_after_stop(self, mock_host):
        listener = Mock(spec=BLEApplicationListener)
        app = build_application(mock_host, listener=listener)
        app.start()
        app.stop()

        mock_host.simulate_device_connected(DEVICE_PATH, DEVICE_ADDRESS)

        listener.device_connected.assert_not_called()

    def test_stop_clears_connection_state(self, mock_host):
        app = build_application(mock_host)
        app.start()
        mock_host.simulate_device_connected(DEVICE_PATH, DEVICE_ADDRESS)

        app.stop()

        assert not app.has_device_connected


class TestTree:

    def test_application_path_reserved(self, mock_host):
        app = BLEApplication("/app", host=mock_host)

        with pytest.raises(DuplicatePathError):
            app.add_service(BLEService("/app/advertisement", SERVICE_UUID))

    def test_invalid_application_path(self):
        with pytest.raises(ValueError):
            BLEApplication("app")

    def test_remove_service(self, mock_host):
        app = build_application(mock_host)
        app.remove_service(app.services[0])

        assert app.services == ()

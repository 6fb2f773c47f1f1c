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
BLEApplication - root of a GATT peripheral.

The application owns the attribute tree, publishes it to BlueZ and
advertises its first primary service. Registration runs as a fixed
sequence:

    STOPPED -> ADAPTER_RESOLVED -> EXPORTED -> ADVERTISEMENT_REGISTERED
            -> APPLICATION_REGISTERED -> RUNNING

stop() undoes the completed steps in reverse order. When a step of
start() fails, the steps already done are undone the same way, the host
connection is closed and the original error is re-raised.

start() and stop() must not run concurrently.
"""

import logging
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from . import BLEProperties
from .BLEAdvertisement import BLEAdvertisement
from .BLEAdvertisingInterval import AdvertisingIntervalController, KernelSettingsStore
from .BLEAttributes import AttributeTree, BLECharacteristic, BLEDescriptor, BLEService
from .BLEConfig import PeripheralConfig
from .BLEConnectionTracker import BLEApplicationListener, ConnectionTracker
from .BLEConstants import (
    ADVERTISEMENT_PATH_SUFFIX,
    ADVERTISEMENT_TYPE_PERIPHERAL,
    ALIAS_PROPERTY_KEY,
    POWERED_PROPERTY_KEY,
    is_valid_object_path,
)
from .BLEErrors import NoAdapterFoundError, RegistrationError
from .BLEHost import AdapterInfo, BlueZHostInterface, find_adapter

logger = logging.getLogger(__name__)


class RegistrationState(Enum):
    STOPPED = "stopped"
    ADAPTER_RESOLVED = "adapter_resolved"
    EXPORTED = "exported"
    ADVERTISEMENT_REGISTERED = "advertisement_registered"
    APPLICATION_REGISTERED = "application_registered"
    RUNNING = "running"


class BLEApplication:
    """
    Entry point of the peripheral: tree ownership, registration and
    connection state.

    Example::

        app = BLEApplication("/tango", listener)
        service = app.add_service(BLEService("/tango/s", SERVICE_UUID, primary=True))
        app.add_characteristic(service, BLECharacteristic("/tango/s/c", CHAR_UUID,
                                                          ["read", "notify"], provider))
        app.start()
    """

    def __init__(self, path: str, listener: Optional[BLEApplicationListener] = None,
                 host: Optional[BlueZHostInterface] = None,
                 adapter_alias: Optional[str] = None,
                 local_name: Optional[str] = None,
                 advertisement_type: str = ADVERTISEMENT_TYPE_PERIPHERAL,
                 include_tx_power: bool = False,
                 adv_interval: Optional[Tuple[int, int]] = None,
                 interval_controller: Optional[AdvertisingIntervalController] = None):
        if not is_valid_object_path(path):
            raise ValueError(f"Invalid object path: {path!r}")
        logger.debug(f"BLEApplication {path}")

        self.path = path
        self.advertisement_path = path.rstrip("/") + ADVERTISEMENT_PATH_SUFFIX
        self.tree = AttributeTree(reserved_paths=(path, self.advertisement_path))
        self.connections = ConnectionTracker()
        if listener is not None:
            self.connections.add_listener(listener)

        self.host = host
        self.adapter_alias = adapter_alias
        self.local_name = local_name
        self.advertisement_type = advertisement_type
        self.include_tx_power = include_tx_power
        self.adv_interval = adv_interval
        self.interval_controller = interval_controller or AdvertisingIntervalController()

        self._state = RegistrationState.STOPPED
        self._adapter: Optional[AdapterInfo] = None
        self._advertisement: Optional[BLEAdvertisement] = None
        self._advertised_service: Optional[BLEService] = None
        self._undo: List[Tuple[str, Callable[[], None]]] = []

    @classmethod
    def from_config(cls, configuration, host: Optional[BlueZHostInterface] = None,
                    listener: Optional[BLEApplicationListener] = None) -> "BLEApplication":
        """Build an application from a dict, a ConfigObj or a config file path."""
        config = configuration
        if not isinstance(config, PeripheralConfig):
            config = PeripheralConfig.from_config(configuration)

        return cls(
            config.app_path,
            listener=listener,
            host=host,
            adapter_alias=config.adapter_alias,
            local_name=config.local_name,
            advertisement_type=config.advertisement_type,
            include_tx_power=config.include_tx_power,
            adv_interval=config.adv_interval,
            interval_controller=AdvertisingIntervalController(
                KernelSettingsStore(config.kernel_debug_path)),
        )

    def _log(self, message: str, level: str = "INFO"):
        log_func = getattr(logger, level.lower(), logger.info)
        log_func(f"BLEApplication[{self.path}] {message}")

    def __str__(self):
        return f"BLEApplication[{self.path}]"

    # ========== Tree ==========

    def _warn_if_running(self):
        if self._state is not RegistrationState.STOPPED:
            self._log("Tree changed while registered; restart to publish it", "WARNING")

    def add_service(self, service: BLEService) -> BLEService:
        self._warn_if_running()
        return self.tree.add_service(service)

    def remove_service(self, service: BLEService):
        self._warn_if_running()
        self.tree.remove_service(service)

    def add_characteristic(self, service: BLEService,
                           characteristic: BLECharacteristic) -> BLECharacteristic:
        self._warn_if_running()
        return self.tree.add_characteristic(service, characteristic)

    def add_descriptor(self, characteristic: BLECharacteristic,
                       descriptor: BLEDescriptor) -> BLEDescriptor:
        self._warn_if_running()
        return self.tree.add_descriptor(characteristic, descriptor)

    @property
    def services(self) -> Sequence[BLEService]:
        return self.tree.services

    def get_managed_objects(self):
        """ObjectManager.GetManagedObjects answer for BlueZ."""
        self._log("GetManagedObjects", "DEBUG")
        response = BLEProperties.full_introspection(self.tree)
        for path in response:
            self._log(f"  \\ {path}", "DEBUG")
        return response

    # ========== Settings ==========

    def set_adapter_alias(self, alias: Optional[str]):
        """
        Set the name centrals see while discovering the peripheral. Takes
        effect on the next start().
        """
        self.adapter_alias = alias

    # ========== State ==========

    @property
    def state(self) -> RegistrationState:
        return self._state

    @property
    def adapter(self) -> Optional[AdapterInfo]:
        return self._adapter

    @property
    def advertisement(self) -> Optional[BLEAdvertisement]:
        return self._advertisement

    @property
    def advertised_service(self) -> Optional[BLEService]:
        return self._advertised_service

    @property
    def has_device_connected(self) -> bool:
        return self.connections.has_device_connected

    def add_listener(self, listener: BLEApplicationListener):
        self.connections.add_listener(listener)

    def remove_listener(self, listener: BLEApplicationListener):
        self.connections.remove_listener(listener)

    # ========== Registration ==========

    def _get_host(self) -> BlueZHostInterface:
        if self.host is None:
            from .BlueZDBus import DBusBlueZHost
            self.host = DBusBlueZHost()
        return self.host

    def _build_advertisement(self) -> BLEAdvertisement:
        advertisement = BLEAdvertisement(
            self.advertisement_path,
            ad_type=self.advertisement_type,
            local_name=self.local_name,
            include_tx_power=self.include_tx_power,
        )

        primaries = self.tree.primary_services()
        if not primaries:
            self._log("No primary service, advertising without service UUID", "WARNING")
            self._advertised_service = None
        else:
            if len(primaries) > 1:
                self._log(f"{len(primaries)} primary services, advertising only "
                          f"{primaries[0].path}", "WARNING")
            self._advertised_service = primaries[0]
            advertisement.add_service(primaries[0])
        return advertisement

    def _push_undo(self, description: str, action: Callable[[], None]):
        self._undo.append((description, action))

    def _unwind(self) -> List[Exception]:
        errors = []
        while self._undo:
            description, action = self._undo.pop()
            try:
                action()
                self._log(f"{description} done", "DEBUG")
            except Exception as e:
                self._log(f"{description} failed: {type(e).__name__}: {e}", "ERROR")
                errors.append(e)
        return errors

    def start(self):
        """
        Resolve the adapter, power it on, publish the tree, advertise the
        first primary service and start tracking centrals.

        Raises:
            NoAdapterFoundError: no adapter supports GATT and LE advertising
            RegistrationError: the application is already started
        """
        if self._state is not RegistrationState.STOPPED:
            raise RegistrationError(f"{self} already started (state {self._state.value})")

        self._log("start")
        host = self._get_host()

        try:
            adapter = find_adapter(host.get_managed_objects())
            if adapter is None:
                raise NoAdapterFoundError("No BLE adapter found")
            self._adapter = adapter
            self._state = RegistrationState.ADAPTER_RESOLVED
            self._log(f"Using adapter {adapter.path} ({adapter.address})", "DEBUG")

            host.set_adapter_property(adapter.path, POWERED_PROPERTY_KEY, True)
            if self.adapter_alias is not None:
                host.set_adapter_property(adapter.path, ALIAS_PROPERTY_KEY, self.adapter_alias)
            if self.adv_interval is not None:
                self.interval_controller.set_interval(adapter.name, *self.adv_interval)

            host.export_application(self)
            self._push_undo("unexport application", lambda: host.unexport_application(self))
            self._state = RegistrationState.EXPORTED

            advertisement = self._build_advertisement()
            host.export_advertisement(advertisement)
            self._push_undo("unexport advertisement",
                            lambda: host.unexport_advertisement(advertisement))
            host.register_advertisement(adapter.path, advertisement, {})
            self._push_undo("unregister advertisement",
                            lambda: host.unregister_advertisement(adapter.path, advertisement))
            self._advertisement = advertisement
            self._state = RegistrationState.ADVERTISEMENT_REGISTERED

            host.register_application(adapter.path, self, {})
            self._push_undo("unregister application",
                            lambda: host.unregister_application(adapter.path, self))
            self._state = RegistrationState.APPLICATION_REGISTERED

            subscription = host.subscribe_interfaces(
                self.connections.handle_interfaces_added,
                self.connections.handle_interfaces_removed,
            )
            self._push_undo("unsubscribe interface signals", lambda: host.unsubscribe(subscription))
            self._state = RegistrationState.RUNNING

        except Exception as e:
            self._log(f"start failed at {self._state.value}: {type(e).__name__}: {e}", "ERROR")
            self._unwind()
            self._close_host()
            self._reset()
            raise

        self._log(f"running on {adapter.path}")

    def stop(self) -> List[Exception]:
        """
        Unsubscribe signals, unregister the application and advertisement,
        unexport everything and release the bus. A no-op when not started.

        Returns:
            Errors raised by teardown steps (already logged)
        """
        if self._adapter is None:
            return []

        self._log("stop")
        errors = self._unwind()
        errors.extend(self._close_host())
        self._reset()
        return errors

    def _close_host(self) -> List[Exception]:
        try:
            self.host.close()
        except Exception as e:
            self._log(f"closing bus failed: {type(e).__name__}: {e}", "ERROR")
            return [e]
        return []

    def _reset(self):
        self._undo = []
        self._adapter = None
        self._advertisement = None
        self._advertised_service = None
        self.connections.reset()
        self._state = RegistrationState.STOPPED

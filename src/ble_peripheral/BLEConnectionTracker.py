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
Central connection tracking from BlueZ ObjectManager signals.

BlueZ announces a remote device by adding an object carrying
org.bluez.Device1 (InterfacesAdded) and drops it with InterfacesRemoved.
These two signals are the only source of connection state; nothing is
polled.

The tracker keeps a per-path map but also exposes the coarse "a device is
connected" flag, which reflects only the most recent transition. With
several centrals connected, one disconnect clears the flag even though
the others are still connected.

A device leaving drops its address; only the most recent disconnected
paths are remembered.
"""

import logging
import threading
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence

from .BLEConstants import ADDRESS_PROPERTY_KEY, BLUEZ_DEVICE_INTERFACE

logger = logging.getLogger(__name__)

# Number of disconnected paths remembered for state_of()
DISCONNECTED_HISTORY = 16


class ConnectionState(Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class BLEApplicationListener:
    """
    Receives device connection events. Subclass and override what you need.
    """

    def device_connected(self, path: str, address: str):
        pass

    def device_disconnected(self, path: str):
        pass


class ConnectionTracker:
    """
    Derives connect/disconnect events from InterfacesAdded/InterfacesRemoved.

    Signal handlers are the single writer; any thread may read the state.
    Listeners are called outside the lock, in registration order.
    """

    def __init__(self, device_interface: str = BLUEZ_DEVICE_INTERFACE):
        self.device_interface = device_interface
        self._lock = threading.RLock()
        self._states: Dict[str, ConnectionState] = {}
        self._addresses: Dict[str, str] = {}
        self._any_connected = False
        self._listeners: List[BLEApplicationListener] = []

    def _log(self, message: str, level: str = "INFO"):
        log_func = getattr(logger, level.lower(), logger.info)
        log_func(f"ConnectionTracker {message}")

    # ========== Listener registry ==========

    def add_listener(self, listener: BLEApplicationListener):
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def remove_listener(self, listener: BLEApplicationListener):
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    # ========== Signal handlers ==========

    def handle_interfaces_added(self, object_path, interfaces: Mapping):
        """
        InterfacesAdded(o object_path, a{sa{sv}} interfaces_and_properties)
        """
        device_properties = interfaces.get(self.device_interface)
        if device_properties is None:
            return

        address = device_properties.get(ADDRESS_PROPERTY_KEY)
        if address is None:
            self._log(f"{self.device_interface} added at {object_path} without address, ignoring", "DEBUG")
            return

        path = str(object_path)
        address = str(address)
        with self._lock:
            self._states[path] = ConnectionState.CONNECTED
            self._addresses[path] = address
            self._any_connected = True
            listeners = list(self._listeners)

        self._log(f"Device connected: {path} ADDR: {address}")
        for listener in listeners:
            self._dispatch(listener.device_connected, path, address)

    def handle_interfaces_removed(self, object_path, interfaces: Sequence[str]):
        """
        InterfacesRemoved(o object_path, as interfaces)
        """
        if self.device_interface not in [str(i) for i in interfaces]:
            return

        path = str(object_path)
        with self._lock:
            self._addresses.pop(path, None)
            self._states.pop(path, None)
            self._states[path] = ConnectionState.DISCONNECTED
            self._forget_old_disconnections()
            self._any_connected = False
            listeners = list(self._listeners)

        self._log(f"Device disconnected: {path}")
        for listener in listeners:
            self._dispatch(listener.device_disconnected, path)

    def _forget_old_disconnections(self):
        """Keep only the DISCONNECTED_HISTORY most recent disconnected paths."""
        disconnected = [p for p, s in self._states.items() if s is ConnectionState.DISCONNECTED]
        for path in disconnected[:-DISCONNECTED_HISTORY]:
            del self._states[path]

    def _dispatch(self, callback, *args):
        try:
            callback(*args)
        except Exception as e:
            name = getattr(callback, "__qualname__", repr(callback))
            self._log(f"Listener {name} failed: {type(e).__name__}: {e}", "ERROR")

    # ========== Queries ==========

    @property
    def has_device_connected(self) -> bool:
        with self._lock:
            return self._any_connected

    def is_connected(self, path: Optional[str] = None) -> bool:
        """Connection state of ``path``, or the global flag when no path is given."""
        with self._lock:
            if path is None:
                return self._any_connected
            return self._states.get(path) is ConnectionState.CONNECTED

    def state_of(self, path: str) -> Optional[ConnectionState]:
        with self._lock:
            return self._states.get(path)

    def address_of(self, path: str) -> Optional[str]:
        with self._lock:
            return self._addresses.get(path)

    def connected_devices(self) -> List[str]:
        with self._lock:
            return [p for p, s in self._states.items() if s is ConnectionState.CONNECTED]

    def reset(self):
        with self._lock:
            self._states.clear()
            self._addresses.clear()
            self._any_connected = False

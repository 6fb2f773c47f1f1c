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
Per-characteristic notify state and the value-changed signal.

Notifications are best effort: ``send()`` emits the current value whatever
the recorded state is, because a StopNotify from the peer may race with an
outgoing notification and the bus gives no delivery guarantee anyway.
"""

import logging
import threading
from enum import Enum
from typing import Callable, Dict, Optional

from .BLEConstants import VALUE_PROPERTY_KEY
from .BLEProperties import PropertyValue

logger = logging.getLogger(__name__)

# emitter(object_path, interface_name, changed_properties)
Emitter = Callable[[str, str, Dict[str, PropertyValue]], None]


class NotifyState(Enum):
    IDLE = "idle"
    NOTIFYING = "notifying"


class NotificationChannel:
    """
    Notify state machine of one characteristic.

    Transitions are atomic; a repeated StartNotify or StopNotify is a no-op
    that only logs a warning.
    """

    def __init__(self, path: str, interface: str,
                 value_source: Callable[[Optional[str]], bytes]):
        self.path = path
        self.interface = interface
        self._value_source = value_source
        self._state = NotifyState.IDLE
        self._lock = threading.Lock()
        self.emitter: Optional[Emitter] = None

    def _log(self, message: str, level: str = "INFO"):
        log_func = getattr(logger, level.lower(), logger.info)
        log_func(f"NotificationChannel[{self.path}] {message}")

    @property
    def state(self) -> NotifyState:
        return self._state

    @property
    def is_notifying(self) -> bool:
        return self._state is NotifyState.NOTIFYING

    def start(self) -> bool:
        """Idle -> Notifying. Returns False if already notifying."""
        with self._lock:
            if self._state is NotifyState.NOTIFYING:
                changed = False
            else:
                self._state = NotifyState.NOTIFYING
                changed = True
        if changed:
            self._log("StartNotify", "DEBUG")
        else:
            self._log("Characteristic already notifying", "WARNING")
        return changed

    def stop(self) -> bool:
        """Notifying -> Idle. Returns False if already idle."""
        with self._lock:
            if self._state is NotifyState.IDLE:
                changed = False
            else:
                self._state = NotifyState.IDLE
                changed = True
        if changed:
            self._log("StopNotify", "DEBUG")
        else:
            self._log("Characteristic already not notifying", "WARNING")
        return changed

    def send(self, device: Optional[str] = None) -> bool:
        """
        Emit PropertiesChanged with the characteristic's current value.

        Args:
            device: Peer object path handed to the value provider, or None

        Returns:
            True if the signal was handed to the bus
        """
        if self.emitter is None:
            self._log("Notification dropped, characteristic not exported", "DEBUG")
            return False

        if not self.is_notifying:
            self._log("Sending notification while not notifying", "DEBUG")

        try:
            value = bytes(self._value_source(device))
            self.emitter(self.path, self.interface,
                         {VALUE_PROPERTY_KEY: PropertyValue.of_bytes(value)})
        except Exception as e:
            self._log(f"Failed to send notification: {type(e).__name__}: {e}", "ERROR")
            return False

        self._log(f"Notified {len(value)} bytes", "DEBUG")
        return True

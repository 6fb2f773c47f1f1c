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
Advertising interval of an adapter.

The kernel exposes the interval through two debugfs entries per adapter
(``/sys/kernel/debug/bluetooth/hci0/adv_min_interval`` and
``adv_max_interval``). The same values apply to every advertisement of
the adapter. Writing them requires root.

A lower max interval means more frequent advertisements, easier discovery
by centrals and more power consumption.
"""

import logging
import os

from .BLEConstants import (
    ADV_MAX_INTERVAL_FILENAME,
    ADV_MIN_INTERVAL_FILENAME,
    KERNEL_DEBUG_PATH,
    MAX_ADVERTISE_INTERVAL,
    MIN_ADVERTISE_INTERVAL,
)
from .BLEErrors import IOFailureError, InvalidSettingError

logger = logging.getLogger(__name__)


class KernelSettingsStore:
    """Integer settings stored as text files under ``<root>/<adapter>/``."""

    def __init__(self, root: str = KERNEL_DEBUG_PATH):
        self.root = root

    def path_for(self, adapter: str, name: str) -> str:
        return os.path.join(self.root, adapter, name)

    def read_int(self, adapter: str, name: str) -> int:
        path = self.path_for(adapter, name)
        if not os.path.exists(path):
            raise IOFailureError(f"No file {path}")
        try:
            with open(path, "r") as f:
                line = f.readline()
            return int(line.strip())
        except (OSError, ValueError) as e:
            raise IOFailureError(f"Unable to read {path}: {e}") from e

    def write_int(self, adapter: str, name: str, value: int):
        path = self.path_for(adapter, name)
        if not os.path.exists(path):
            raise IOFailureError(f"No file {path}")
        try:
            with open(path, "w") as f:
                f.write(str(int(value)))
        except OSError as e:
            raise IOFailureError(f"Unable to write {path}: {e}") from e


def _as_interval(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidSettingError(f"Interval must be an integer number of ms, got {value!r}")
    return value


class AdvertisingIntervalController:
    """
    Validated access to the advertising interval (milliseconds).

    Invariant: MIN_ADVERTISE_INTERVAL <= min < max <= MAX_ADVERTISE_INTERVAL.
    Validation always happens before anything is written.
    """

    def __init__(self, store: KernelSettingsStore = None):
        self.store = store if store is not None else KernelSettingsStore()

    def get_min(self, adapter: str) -> int:
        return self.store.read_int(adapter, ADV_MIN_INTERVAL_FILENAME)

    def get_max(self, adapter: str) -> int:
        return self.store.read_int(adapter, ADV_MAX_INTERVAL_FILENAME)

    def set_min(self, adapter: str, min_ms: int):
        """
        Set the minimum advertising interval.

        Args:
            adapter: Adapter name, usually hci0
            min_ms: Value from 20 ms to (max - 1) ms

        Raises:
            InvalidSettingError: if min_ms is out of range
            IOFailureError: if the kernel entry cannot be accessed
        """
        min_ms = _as_interval(min_ms)
        if min_ms < MIN_ADVERTISE_INTERVAL:
            raise InvalidSettingError(
                f"IntervalMin must be between {MIN_ADVERTISE_INTERVAL} and (max - 1)")
        max_ms = self.get_max(adapter)
        if min_ms >= max_ms:
            raise InvalidSettingError(f"Min Interval must be less than max ({max_ms})")
        self.store.write_int(adapter, ADV_MIN_INTERVAL_FILENAME, min_ms)
        logger.info(f"{adapter} advertising interval min set to {min_ms} ms")

    def set_max(self, adapter: str, max_ms: int):
        """
        Set the maximum advertising interval, the longest delay between two
        advertisements (plus 0-10 ms of random delay).

        Args:
            adapter: Adapter name, usually hci0
            max_ms: Value from (min + 1) ms to 20240 ms

        Raises:
            InvalidSettingError: if max_ms is out of range
            IOFailureError: if the kernel entry cannot be accessed
        """
        max_ms = _as_interval(max_ms)
        if max_ms > MAX_ADVERTISE_INTERVAL:
            raise InvalidSettingError(
                f"IntervalMax must be between min and {MAX_ADVERTISE_INTERVAL} ms")
        min_ms = self.get_min(adapter)
        if max_ms <= min_ms:
            raise InvalidSettingError(f"Max Interval must be larger than min ({min_ms})")
        self.store.write_int(adapter, ADV_MAX_INTERVAL_FILENAME, max_ms)
        logger.info(f"{adapter} advertising interval max set to {max_ms} ms")

    def set_interval(self, adapter: str, min_ms: int, max_ms: int):
        """
        Set both bounds, writing them in an order that keeps min < max at
        every step.
        """
        min_ms = _as_interval(min_ms)
        max_ms = _as_interval(max_ms)
        if min_ms < MIN_ADVERTISE_INTERVAL or max_ms > MAX_ADVERTISE_INTERVAL:
            raise InvalidSettingError(
                f"Interval must lie within [{MIN_ADVERTISE_INTERVAL}, {MAX_ADVERTISE_INTERVAL}] ms")
        if min_ms >= max_ms:
            raise InvalidSettingError("Min Interval must be less than max")

        if min_ms >= self.get_max(adapter):
            self.set_max(adapter, max_ms)
            self.set_min(adapter, min_ms)
        else:
            self.set_min(adapter, min_ms)
            self.set_max(adapter, max_ms)

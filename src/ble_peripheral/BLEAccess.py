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
Offset-aware read/write of characteristic and descriptor values.

A peer request arrives as an options dictionary (``offset``, ``device``).
Reads fetch the whole value from the attribute's value provider and return
the tail starting at ``offset``; writes hand the raw bytes and the offset to
the provider, which owns the merge policy.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

from .BLEConstants import DEVICE_OPTION, OFFSET_OPTION
from .BLEErrors import InvalidOffsetError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessOptions:
    """Parsed ReadValue/WriteValue options."""

    offset: int = 0
    device: Optional[str] = None

    @classmethod
    def from_dict(cls, options: Optional[Mapping] = None) -> "AccessOptions":
        if options is None:
            return cls()
        if isinstance(options, AccessOptions):
            return options

        offset = 0
        raw_offset = options.get(OFFSET_OPTION)
        if raw_offset is not None:
            try:
                offset = int(raw_offset)
            except (TypeError, ValueError):
                raise InvalidOffsetError(raw_offset)
            if offset < 0:
                raise InvalidOffsetError(offset)

        device = options.get(DEVICE_OPTION)
        if device is not None:
            device = str(device)

        return cls(offset=offset, device=device)


class ValueProvider(ABC):
    """
    Supplies the value of an attribute to peers.

    Implementations are called from the bus dispatcher and must return
    quickly. ``device`` is the object path of the requesting peer, or None
    when unknown (e.g. when building a notification).
    """

    @abstractmethod
    def get_value(self, device: Optional[str]) -> bytes:
        pass

    @abstractmethod
    def set_value(self, device: Optional[str], offset: int, value: bytes):
        pass


class CallbackValueProvider(ValueProvider):
    """Adapts a getter and an optional setter to the provider interface."""

    def __init__(self, getter: Callable[[Optional[str]], bytes],
                 setter: Optional[Callable[[Optional[str], int, bytes], None]] = None):
        self.getter = getter
        self.setter = setter

    def get_value(self, device):
        return self.getter(device)

    def set_value(self, device, offset, value):
        if self.setter is None:
            logger.debug(f"Write of {len(value)} bytes ignored, no setter configured")
            return
        self.setter(device, offset, value)


class BufferValueProvider(ValueProvider):
    """
    Keeps the value in a local buffer shared by all peers.

    Writes are spliced into the buffer at the requested offset, growing it
    when the write runs past the current end.
    """

    def __init__(self, initial: bytes = b""):
        self._buffer = bytearray(initial)
        self._lock = threading.Lock()

    def get_value(self, device=None):
        with self._lock:
            return bytes(self._buffer)

    def set_value(self, device, offset, value):
        with self._lock:
            if offset > len(self._buffer):
                raise InvalidOffsetError(offset, len(self._buffer))
            self._buffer[offset:offset + len(value)] = value


def slice_value(value: bytes, offset: int) -> bytes:
    """Return ``value[offset:]``, rejecting offsets past the end."""
    if offset < 0 or offset > len(value):
        raise InvalidOffsetError(offset, len(value))
    return value[offset:]


def read(node, options=None) -> bytes:
    """Serve a ReadValue request for ``node``."""
    opts = AccessOptions.from_dict(options)
    value = bytes(node.get_raw_value(opts.device))
    return slice_value(value, opts.offset)


def write(node, value, options=None):
    """Serve a WriteValue request for ``node``."""
    opts = AccessOptions.from_dict(options)
    node.set_raw_value(opts.device, opts.offset, bytes(value))

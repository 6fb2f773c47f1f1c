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
LE advertisement registered with org.bluez.LEAdvertisingManager1.

Since BlueZ 5.43 an advertisement can carry only one service, so the
application advertises its first primary service.
"""

import logging
from collections import OrderedDict
from typing import Dict, List, Optional

from .BLEConstants import (
    ADVERTISEMENT_TYPE_PERIPHERAL,
    ADVERTISEMENT_TYPES,
    LE_ADVERTISEMENT_INTERFACE,
    is_valid_object_path,
)
from .BLEErrors import UnknownInterfaceError
from .BLEProperties import PropertyValue

logger = logging.getLogger(__name__)


class BLEAdvertisement:

    def __init__(self, path: str, ad_type: str = ADVERTISEMENT_TYPE_PERIPHERAL,
                 local_name: Optional[str] = None, include_tx_power: bool = False):
        if not is_valid_object_path(path):
            raise ValueError(f"Invalid object path: {path!r}")
        if ad_type not in ADVERTISEMENT_TYPES:
            raise ValueError(f"Invalid advertisement type: {ad_type!r}")
        self.path = path
        self.ad_type = ad_type
        self.local_name = local_name
        self.include_tx_power = bool(include_tx_power)
        self.service_uuids: List[str] = []
        self.released = False

    def add_service(self, service):
        if self.service_uuids:
            logger.warning(f"Advertisement already carries {self.service_uuids[0]}, "
                           f"not adding {service.uuid}")
            return
        self.service_uuids.append(service.uuid)

    def get_properties(self) -> Dict[str, Dict[str, PropertyValue]]:
        properties = OrderedDict()
        properties["Type"] = PropertyValue.of_string(self.ad_type)
        if self.service_uuids:
            properties["ServiceUUIDs"] = PropertyValue.of_string_list(self.service_uuids)
        if self.local_name is not None:
            properties["LocalName"] = PropertyValue.of_string(self.local_name)
        if self.include_tx_power:
            properties["IncludeTxPower"] = PropertyValue.of_bool(True)
        return {LE_ADVERTISEMENT_INTERFACE: properties}

    def get_all(self, interface: str) -> Dict[str, PropertyValue]:
        if interface != LE_ADVERTISEMENT_INTERFACE:
            raise UnknownInterfaceError(f"Unknown interface [interface_name={interface}]")
        return self.get_properties()[LE_ADVERTISEMENT_INTERFACE]

    def release(self):
        """Called by BlueZ when it drops the advertisement."""
        logger.debug(f"Advertisement {self.path} released")
        self.released = True

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
Peripheral configuration.

Settings come from a plain dict, a ConfigObj, or an INI-style file read
with ConfigObj. A ``[peripheral]`` section is used when present:

    [peripheral]
    app_path = /tango
    adapter_alias = Tango
    local_name = Tango
    include_tx_power = yes
    adv_min_interval = 160
    adv_max_interval = 260
    log_level = DEBUG
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from configobj import ConfigObj

from .BLEConstants import ADVERTISEMENT_TYPE_PERIPHERAL, ADVERTISEMENT_TYPES, KERNEL_DEBUG_PATH
from .BLEErrors import InvalidSettingError

logger = logging.getLogger(__name__)

SECTION_NAME = "peripheral"
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def as_bool(value, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ["yes", "true", "1", "on"]
    return bool(value)


def _as_optional_int(c, key) -> Optional[int]:
    value = c.get(key, None)
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidSettingError(f"{key} must be an integer, got {value!r}")


def _as_optional_str(c, key) -> Optional[str]:
    value = c.get(key, None)
    if value is None:
        return None
    value = str(value)
    return value if value else None


@dataclass
class PeripheralConfig:
    app_path: str = "/ble_peripheral"
    adapter_alias: Optional[str] = None
    local_name: Optional[str] = None
    advertisement_type: str = ADVERTISEMENT_TYPE_PERIPHERAL
    include_tx_power: bool = False
    adv_min_interval: Optional[int] = None
    adv_max_interval: Optional[int] = None
    kernel_debug_path: str = KERNEL_DEBUG_PATH
    log_level: str = "INFO"

    @property
    def adv_interval(self) -> Optional[Tuple[int, int]]:
        if self.adv_min_interval is None or self.adv_max_interval is None:
            return None
        return (self.adv_min_interval, self.adv_max_interval)

    @classmethod
    def from_config(cls, configuration=None) -> "PeripheralConfig":
        """
        Args:
            configuration: dict, ConfigObj, path to a config file, or None for defaults
        """
        if configuration is None:
            return cls()
        if isinstance(configuration, str):
            configuration = ConfigObj(configuration, file_error=True)

        c = configuration
        if SECTION_NAME in c and hasattr(c[SECTION_NAME], "get"):
            c = c[SECTION_NAME]

        config = cls(
            app_path=str(c.get("app_path", cls.app_path)),
            adapter_alias=_as_optional_str(c, "adapter_alias"),
            local_name=_as_optional_str(c, "local_name"),
            include_tx_power=as_bool(c.get("include_tx_power", False)),
            adv_min_interval=_as_optional_int(c, "adv_min_interval"),
            adv_max_interval=_as_optional_int(c, "adv_max_interval"),
            kernel_debug_path=str(c.get("kernel_debug_path", KERNEL_DEBUG_PATH)),
        )

        advertisement_type = str(c.get("advertisement_type", ADVERTISEMENT_TYPE_PERIPHERAL)).lower()
        if advertisement_type not in ADVERTISEMENT_TYPES:
            logger.warning(f"Invalid advertisement type '{advertisement_type}', "
                           f"using {ADVERTISEMENT_TYPE_PERIPHERAL}")
            advertisement_type = ADVERTISEMENT_TYPE_PERIPHERAL
        config.advertisement_type = advertisement_type

        log_level = str(c.get("log_level", "INFO")).upper()
        if log_level not in LOG_LEVELS:
            logger.warning(f"Invalid log level '{log_level}', using INFO")
            log_level = "INFO"
        config.log_level = log_level

        if (config.adv_min_interval is None) != (config.adv_max_interval is None):
            logger.warning("Only one of adv_min_interval/adv_max_interval set, "
                           "advertising interval left unchanged")
        return config


def configure_logging(level: str = "INFO"):
    """Install a root handler for scripts. Library modules never call this."""
    logging.basicConfig(level=getattr(logging, str(level).upper(), logging.INFO),
                        format=LOG_FORMAT)

"""
Tests for peripheral configuration parsing (dict, ConfigObj and file).
"""

import logging

import pytest
from configobj import ConfigObj

from ble_peripheral.BLEApplication import BLEApplication
from ble_peripheral.BLEConfig import PeripheralConfig, as_bool
from ble_peripheral.BLEConstants import KERNEL_DEBUG_PATH
from ble_peripheral.BLEErrors import InvalidSettingError

from mock_bluez_host import MockBlueZHost


CONFIG_TEXT = """
[peripheral]
app_path = /tango
adapter_alias = Tango
local_name = Tango
include_tx_power = yes
adv_min_interval = 160
adv_max_interval = 260
log_level = debug
"""


class TestPeripheralConfig:

    def test_defaults(self):
        config = PeripheralConfig.from_config(None)

        assert config.app_path == "/ble_peripheral"
        assert config.adapter_alias is None
        assert config.advertisement_type == "peripheral"
        assert config.include_tx_power is False
        assert config.adv_interval is None
        assert config.kernel_debug_path == KERNEL_DEBUG_PATH
        assert config.log_level == "INFO"

    def test_from_file(self, tmp_path):
        path = tmp_path / "peripheral.conf"
        path.write_text(CONFIG_TEXT)

        config = PeripheralConfig.from_config(str(path))

        assert config.app_path == "/tango"
        assert config.adapter_alias == "Tango"
        assert config.local_name == "Tango"
        assert config.include_tx_power is True
        assert config.adv_interval == (160, 260)
        assert config.log_level == "DEBUG"

    def test_missing_file(self, tmp_path):
        with pytest.raises(IOError):
            PeripheralConfig.from_config(str(tmp_path / "missing.conf"))

    def test_from_configobj_section(self):
        c = ConfigObj(CONFIG_TEXT.splitlines())

        assert PeripheralConfig.from_config(c).app_path == "/tango"

    def test_from_flat_dict(self):
        config = PeripheralConfig.from_config({"app_path": "/flat", "include_tx_power": "no"})

        assert config.app_path == "/flat"
        assert config.include_tx_power is False

    def test_invalid_interval(self):
        with pytest.raises(InvalidSettingError):
            PeripheralConfig.from_config({"adv_min_interval": "fast", "adv_max_interval": "260"})

    def test_half_interval_ignored(self, caplog):
        with caplog.at_level(logging.WARNING):
            config = PeripheralConfig.from_config({"adv_min_interval": "160"})

        assert config.adv_interval is None
        assert "adv_min_interval" in caplog.text

    def test_invalid_advertisement_type_falls_back(self, caplog):
        with caplog.at_level(logging.WARNING):
            config = PeripheralConfig.from_config({"advertisement_type": "beacon"})

        assert config.advertisement_type == "peripheral"

    def test_invalid_log_level_falls_back(self):
        assert PeripheralConfig.from_config({"log_level": "chatty"}).log_level == "INFO"

    @pytest.mark.parametrize("value,expected", [
        ("yes", True), ("True", True), ("1", True), ("on", True),
        ("no", False), ("false", False), ("", False), (None, False), (True, True),
    ])
    def test_as_bool(self, value, expected):
        assert as_bool(value) is expected


class TestApplicationFromConfig:

    def test_application_built_from_config(self):
        host = MockBlueZHost()
        app = BLEApplication.from_config(
            {"app_path": "/tango", "adapter_alias": "Tango",
             "adv_min_interval": "160", "adv_max_interval": "260",
             "kernel_debug_path": "/tmp/bt"},
            host=host)

        assert app.path == "/tango"
        assert app.advertisement_path == "/tango/advertisement"
        assert app.adapter_alias == "Tango"
        assert app.adv_interval == (160, 260)
        assert app.interval_controller.store.root == "/tmp/bt"
        assert app.host is host

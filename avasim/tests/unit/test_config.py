"""
Unit tests for run configuration loading and validation.
"""

import pytest
import yaml

from avasim.commands.config import (
    RunSettings,
    create_sample_run_config,
    load_run_config,
    settings_from_dict,
    validate_settings,
)
from avasim.commands.errors import ConfigurationError


def _write(tmp_path, content):
    path = tmp_path / "avasim.yml"
    path.write_text(content)
    return str(path)


class TestLoadRunConfig:
    def test_loads_values(self, tmp_path):
        path = _write(
            tmp_path,
            "base_http_port: 19650\n"
            "log_level: debug\n"
            "network_id: 12345\n"
            "tx_poll_interval: 0.5\n"
            "node_flags:\n"
            "  snow_sample_size: 3\n",
        )

        settings = load_run_config(path)

        assert settings.base_http_port == 19650
        assert settings.log_level == "debug"
        assert settings.network_id == "12345"
        assert settings.tx_poll_interval == 0.5
        assert settings.node_flags == {"snow_sample_size": 3}
        assert settings.node_count == 5

    def test_empty_file_gives_defaults(self, tmp_path):
        assert load_run_config(_write(tmp_path, "")) == RunSettings()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError) as exc_info:
            load_run_config(str(tmp_path / "missing.yml"))
        assert "not found" in exc_info.value.message

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ConfigurationError) as exc_info:
            load_run_config(_write(tmp_path, "base_http_port: [9650\n"))
        assert "Invalid YAML" in exc_info.value.message

    def test_not_a_mapping(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_run_config(_write(tmp_path, "- 1\n- 2\n"))

    def test_unknown_key(self, tmp_path):
        with pytest.raises(ConfigurationError) as exc_info:
            load_run_config(_write(tmp_path, "base_port: 9650\n"))
        assert exc_info.value.field == "base_port"

    def test_wrong_type(self, tmp_path):
        with pytest.raises(ConfigurationError) as exc_info:
            load_run_config(_write(tmp_path, "base_http_port: '9650'\n"))
        assert exc_info.value.field == "base_http_port"

    def test_bool_is_not_an_int(self):
        with pytest.raises(ConfigurationError) as exc_info:
            settings_from_dict({"node_count": True})
        assert exc_info.value.field == "node_count"

    def test_unknown_node_flag(self):
        with pytest.raises(ConfigurationError) as exc_info:
            settings_from_dict({"node_flags": {"snow_sampel_size": 2}})
        assert exc_info.value.field == "node_flags.snow_sampel_size"

    def test_node_flag_type(self):
        with pytest.raises(ConfigurationError):
            settings_from_dict({"node_flags": {"staking_enabled": "yes"}})

        settings = settings_from_dict({"node_flags": {"uptime_requirement": 1}})
        assert settings.node_flags == {"uptime_requirement": 1}


class TestValidateSettings:
    @pytest.mark.parametrize(
        "overrides,field",
        [
            ({"node_count": 0}, "node_count"),
            ({"base_http_port": 65534}, "base_http_port"),
            ({"tx_poll_interval": 0}, "tx_poll_interval"),
            ({"validator_weight": 0}, "validator_weight"),
            ({"log_level": "loud"}, "log_level"),
            ({"vm_path": "vm"}, "vm_genesis"),
            ({"vm_genesis": "genesis.json"}, "vm_path"),
        ],
    )
    def test_rejects(self, overrides, field):
        settings = RunSettings(**overrides)
        with pytest.raises(ConfigurationError) as exc_info:
            validate_settings(settings)
        assert exc_info.value.field == field

    def test_defaults_are_valid(self):
        validate_settings(RunSettings())

    def test_with_overrides_skips_none(self):
        settings = RunSettings(log_level="debug").with_overrides(
            log_level=None, work_dir="/tmp/run"
        )
        assert settings.log_level == "debug"
        assert settings.work_dir == "/tmp/run"


class TestSampleConfig:
    def test_sample_loads_back(self, tmp_path):
        output = create_sample_run_config(str(tmp_path / "sample.yml"))

        with open(output) as f:
            data = yaml.safe_load(f)
        assert data["base_http_port"] == 9650

        settings = load_run_config(str(output))
        assert settings.node_flags["snow_sample_size"] == 2
        assert settings.vm_id == RunSettings().vm_id

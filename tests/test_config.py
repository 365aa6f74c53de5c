"""Tests for configuration management."""

import pytest
import yaml

from temporal_htn.temporal import LODLevel, TimeUnit
from temporal_htn.utils.config import DEFAULT_CONFIG, ConfigError, ConfigManager


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.dump(
            {
                "planner": {"max_steps": 50, "verify_goals": False},
                "stn": {"lod_level": "low", "parallel": True},
            }
        )
    )
    return path


class TestConfigManager:
    def test_defaults(self):
        config = ConfigManager()

        assert config.get("planner.max_steps") == 10000
        assert config.get("stn.time_unit") == "second"
        assert config.get("missing.key", "fallback") == "fallback"

    def test_missing_file_uses_defaults(self, tmp_path):
        config = ConfigManager(tmp_path / "nope.yaml")
        assert config.to_dict() == DEFAULT_CONFIG

    def test_file_merged_over_defaults(self, config_file):
        config = ConfigManager(config_file)

        assert config.get("planner.max_steps") == 50
        assert config.get("planner.max_depth") == 64
        assert config.get("stn.lod_level") == "low"
        assert config.get("stn.time_unit") == "second"

    def test_set_does_not_touch_defaults(self):
        config = ConfigManager()
        config.set("planner.max_steps", 7)
        config.set("extra.nested.flag", True)

        assert config.get("planner.max_steps") == 7
        assert config.get("extra.nested.flag") is True
        assert DEFAULT_CONFIG["planner"]["max_steps"] == 10000

    def test_save_and_reload(self, tmp_path):
        config = ConfigManager()
        config.set("stn.workers", 8)
        path = tmp_path / "saved.yaml"

        config.save_config(path)

        assert ConfigManager(path).get("stn.workers") == 8

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("planner: [unclosed")

        with pytest.raises(ConfigError):
            ConfigManager(path)

    def test_non_mapping_yaml(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")

        with pytest.raises(ConfigError):
            ConfigManager(path)


class TestTypedSettings:
    def test_planner_config(self, config_file):
        planner_config = ConfigManager(config_file).planner_config()

        assert planner_config.budgets.max_steps == 50
        assert planner_config.verify_goals is False
        assert planner_config.network.lod_level == LODLevel.LOW
        assert planner_config.network.parallel is True

    def test_network_settings(self):
        settings = ConfigManager().network_settings()
        assert settings.time_unit == TimeUnit.SECOND
        assert settings.workers == 4

    @pytest.mark.parametrize(
        "key, value",
        [("planner.max_steps", 0), ("stn.lod_level", "galactic"), ("stn.workers", -1), ("planner.max_depth", "deep")],
    )
    def test_invalid_values_raise(self, key, value):
        config = ConfigManager()
        config.set(key, value)

        with pytest.raises(ConfigError):
            config.planner_config()

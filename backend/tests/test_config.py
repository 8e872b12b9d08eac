"""
Tests for the configuration manager
"""

import json

import pytest

from roadwatch.config import ConfigManager, get_config, set_config


@pytest.fixture
def config_dir(tmp_path):
    (tmp_path / "incidents.yaml").write_text(
        "ttlSeconds: 900\n"
        "reputation:\n"
        "  submit: 3\n"
        "  deny: -1\n"
    )
    (tmp_path / "routing.json").write_text(json.dumps({"proximityMeters": 40}))
    return tmp_path


class TestConfigManager:
    """Tests for ConfigManager"""

    def test_loads_yaml_and_json(self, config_dir):
        cfg = ConfigManager(str(config_dir))

        assert cfg.get("incidents.ttlSeconds") == 900
        assert cfg.get("routing.proximityMeters") == 40
        assert cfg.get_incident_config()["reputation"]["deny"] == -1
        assert cfg.get_routing_config() == {"proximityMeters": 40}

    def test_missing_key_default(self, config_dir):
        cfg = ConfigManager(str(config_dir))
        assert cfg.get("incidents.nope", 5) == 5
        assert cfg.get("incidents.ttlSeconds.deeper", "x") == "x"

    def test_set_runtime_override(self, config_dir):
        cfg = ConfigManager(str(config_dir))
        cfg.set("routing.provider.baseUrl", "http://localhost:5000")
        assert cfg.get("routing.provider.baseUrl") == "http://localhost:5000"
        assert cfg.get("routing.proximityMeters") == 40

    def test_reload_discards_overrides(self, config_dir):
        cfg = ConfigManager(str(config_dir))
        cfg.set("incidents.ttlSeconds", 1)
        cfg.reload()
        assert cfg.get("incidents.ttlSeconds") == 900

    def test_missing_directory(self, tmp_path):
        cfg = ConfigManager(str(tmp_path / "absent"))
        assert cfg.get_incident_config() == {}

    def test_env_directory(self, config_dir, monkeypatch):
        monkeypatch.setenv("ROADWATCH_CONFIG_DIR", str(config_dir))
        assert ConfigManager().get("incidents.ttlSeconds") == 900

    def test_shipped_defaults(self, monkeypatch):
        monkeypatch.delenv("ROADWATCH_CONFIG_DIR", raising=False)
        cfg = ConfigManager()

        assert cfg.get("incidents.ttlSeconds") == 1800
        assert cfg.get("incidents.denialThreshold") == 2
        assert cfg.get("incidents.nearbyRadiusMeters") == 804.67
        assert cfg.get("routing.proximityMeters") == 50
        assert cfg.get("routing.detourOffsetMeters") == 300
        assert cfg.get("routing.refreshIntervalSeconds") == 20

    def test_global_instance(self, config_dir):
        previous = get_config()
        try:
            cfg = ConfigManager(str(config_dir))
            set_config(cfg)
            assert get_config() is cfg
        finally:
            set_config(previous)

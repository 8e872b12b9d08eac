"""
Configuration Management System

Centralized configuration loaded from the YAML and JSON files in
``backend/config``. Each file becomes a section keyed by its stem
(``incidents.yaml`` -> ``incidents``). Supports dot-notation access,
runtime overrides and hot reloading.
"""

import os
import yaml
import json
from pathlib import Path
from typing import Dict, Any, Optional


class ConfigManager:
    """
    Manage application configuration from YAML and JSON files

    Provides:
    - Load all config files on startup
    - Dot notation access: config.get('incidents.ttlSeconds')
    - Hot reload capability
    - Default values for missing keys
    """

    def __init__(self, config_dir: Optional[str] = None):
        """
        Initialize configuration manager

        Args:
            config_dir: Path to config directory (default: ROADWATCH_CONFIG_DIR
                        or backend/config)
        """
        config_dir = config_dir or os.getenv("ROADWATCH_CONFIG_DIR")
        if config_dir:
            self.config_dir = Path(config_dir)
        else:
            # Find config dir relative to this file
            self.config_dir = Path(__file__).parent.parent / "config"

        self.configs: Dict[str, Any] = {}
        self._load_all_configs()

    def _load_all_configs(self):
        """Load all configuration files from config directory"""
        if not self.config_dir.exists():
            print(f"   [WARN] Config directory not found: {self.config_dir} (using defaults)")
            return

        # Load YAML configs
        for yaml_file in sorted(self.config_dir.glob("*.yaml")):
            try:
                with open(yaml_file, 'r') as f:
                    self.configs[yaml_file.stem] = yaml.safe_load(f) or {}
                    print(f"   [CONFIG] Loaded: {yaml_file.name}")
            except (OSError, yaml.YAMLError) as e:
                print(f"   [WARN] Failed to load {yaml_file.name}: {e}")

        # Load JSON configs
        for json_file in sorted(self.config_dir.glob("*.json")):
            try:
                with open(json_file, 'r') as f:
                    self.configs[json_file.stem] = json.load(f)
                    print(f"   [CONFIG] Loaded: {json_file.name}")
            except (OSError, json.JSONDecodeError) as e:
                print(f"   [WARN] Failed to load {json_file.name}: {e}")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value by dot notation key

        Examples:
            config.get('incidents.ttlSeconds')
            config.get('routing.provider.baseUrl')

        Args:
            key: Dot-separated key path
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        value = self.configs
        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def get_incident_config(self) -> Dict[str, Any]:
        """Get incident store configuration section"""
        return self.configs.get('incidents', {})

    def get_routing_config(self) -> Dict[str, Any]:
        """Get routing configuration section"""
        return self.configs.get('routing', {})

    def reload(self):
        """Reload all configuration files"""
        print("[CONFIG] Reloading configuration...")
        self.configs.clear()
        self._load_all_configs()
        print("[OK] Configuration reloaded")

    def set(self, key: str, value: Any):
        """
        Set a configuration value (runtime only, not persisted)

        Args:
            key: Dot-separated key path
            value: Value to set
        """
        keys = key.split('.')
        config = self.configs

        for k in keys[:-1]:
            if not isinstance(config.get(k), dict):
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value


# Global configuration instance (created lazily)
config: Optional[ConfigManager] = None


def get_config() -> ConfigManager:
    """Get the global configuration instance"""
    global config
    if config is None:
        config = ConfigManager()
    return config


def set_config(manager: ConfigManager):
    """Replace the global configuration instance"""
    global config
    config = manager

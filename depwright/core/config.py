"""Configuration management for depwright."""

import json
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from loguru import logger

from depwright.core.constants import CONFIG_PATH, DATA_DIR, PACKAGE_SOURCE


class Config:
    """Manages depwright configuration."""

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_path: Path to configuration file. If None, uses default path.
        """
        self.config_path = Path(config_path) if config_path else Path(CONFIG_PATH)
        self.config_data: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from file."""
        if self.config_path.exists() and self.config_path.stat().st_size > 0:
            try:
                with open(self.config_path, "r", encoding="utf-8") as f:
                    loaded = json.load(f)
                self.config_data = self._get_default_config()
                if isinstance(loaded, dict):
                    self.config_data.update(loaded)
            except (json.JSONDecodeError, IOError) as e:
                logger.error(f"Error loading config: {e}. Using default configuration.")
                self.config_data = self._get_default_config()
        else:
            self.config_data = self._get_default_config()
            self.save()

    @staticmethod
    def _get_default_config() -> Dict[str, Any]:
        """Get default configuration."""
        return {
            "package_source": PACKAGE_SOURCE,
            "data_dir": DATA_DIR,
            "manifest": None,
            "log_level": "info",
        }

    def save(self) -> None:
        """Save configuration to file."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, "w", encoding="utf-8") as f:
            json.dump(self.config_data, f, indent=2)

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value.

        Args:
            key: Configuration key (supports dot notation, e.g., 'mirrors.npm')
            default: Default value if key doesn't exist

        Returns:
            Configuration value or default
        """
        keys = key.split(".")
        value = self.config_data
        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
                if value is None:
                    return default
            else:
                return default
        return value

    def set(self, key: str, value: Any) -> None:
        """Set configuration value.

        Args:
            key: Configuration key (supports dot notation)
            value: Value to set
        """
        keys = key.split(".")
        data = self.config_data
        for k in keys[:-1]:
            if not isinstance(data.get(k), dict):
                data[k] = {}
            data = data[k]
        data[keys[-1]] = value

    def import_config(self, config_file: Path, file_format: str = "json") -> bool:
        """Import configuration from file.

        Args:
            config_file: Path to configuration file
            file_format: File format ('json' or 'yaml')

        Returns:
            True if successful, False otherwise
        """
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                if file_format.lower() == "yaml":
                    data = yaml.safe_load(f)
                else:
                    data = json.load(f)

            # Merge with existing config
            if isinstance(data, dict):
                self.config_data.update(data)
                self.save()
                return True
        except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
            logger.error(f"Error importing config: {e}")
        return False

    def export_config(self, output_file: Path, file_format: str = "json") -> bool:
        """Export configuration to file.

        Args:
            output_file: Path to output file
            file_format: File format ('json' or 'yaml')

        Returns:
            True if successful, False otherwise
        """
        try:
            with open(output_file, "w", encoding="utf-8") as f:
                if file_format.lower() == "yaml":
                    yaml.safe_dump(self.config_data, f, default_flow_style=False)
                else:
                    json.dump(self.config_data, f, indent=2)
            return True
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Error exporting config: {e}")
        return False

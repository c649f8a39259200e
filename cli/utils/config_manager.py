"""Configuration Management for CLI Settings"""

import copy
import os
from pathlib import Path
from typing import Any

import yaml
from rich.console import Console

console = Console()


class ConfigManager:
    """Manage CLI configuration settings"""

    def __init__(self, config_dir: Path | None = None):
        self.config_dir = config_dir or Path(
            os.getenv("BACKOFFICE_QUEUE_CONFIG_DIR", Path.home() / ".backoffice-queue")
        )
        self.config_file = self.config_dir / "config.yaml"

    def ensure_config_dir(self):
        """Ensure config directory exists"""
        self.config_dir.mkdir(parents=True, exist_ok=True)

    def load_config(self) -> dict[str, Any]:
        """Load configuration from file"""
        if not self.config_file.exists():
            return self.get_default_config()

        try:
            with open(self.config_file) as f:
                config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            console.print(f"[red]Error loading config: {e}[/red]")
            return self.get_default_config()

        # Merge section by section so new defaults reach old config files
        merged = self.get_default_config()
        for section, values in config.items():
            if isinstance(values, dict) and isinstance(merged.get(section), dict):
                merged[section].update(values)
            else:
                merged[section] = values
        return merged

    def save_config(self, config: dict[str, Any]):
        """Save configuration to file"""
        self.ensure_config_dir()
        try:
            with open(self.config_file, "w") as f:
                yaml.dump(config, f, default_flow_style=False)
        except OSError as e:
            console.print(f"[red]Error saving config: {e}[/red]")
            raise

    def get_default_config(self) -> dict[str, Any]:
        """Get default configuration"""
        return copy.deepcopy(
            {
                "api": {
                    "base_url": os.getenv(
                        "BACKOFFICE_QUEUE_API_URL", "http://localhost:8000"
                    ),
                    "timeout": 30,
                },
                # Generation jobs poll every 2s; connection status jobs use 12s
                "poller": {
                    "interval_s": 2.0,
                    "window_s": 120.0,
                    "refresh_window_s": 60.0,
                },
                "dispatch": {"default_limit": 10},
            }
        )

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'api.base_url')"""
        config = self.load_config()
        keys = key.split(".")

        for k in keys:
            if isinstance(config, dict) and k in config:
                config = config[k]
            else:
                return default

        return config

    def set(self, key: str, value: Any):
        """Set configuration value using dot notation"""
        config = self.load_config()
        keys = key.split(".")

        # Navigate to the parent dict
        current = config
        for k in keys[:-1]:
            if k not in current:
                current[k] = {}
            current = current[k]

        current[keys[-1]] = value

        self.save_config(config)

    def reset(self):
        """Reset configuration to defaults"""
        self.save_config(self.get_default_config())

    def show_all(self):
        """Display all configuration settings"""
        console.print(yaml.dump(self.load_config(), default_flow_style=False))


# Global config manager instance
config = ConfigManager()

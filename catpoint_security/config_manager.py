"""Configuration management with JSON persistence and change callbacks."""

import json
import os
from dataclasses import asdict, fields
from typing import Optional, Dict, Any, Callable, List

from .models.config import SystemConfig
from .config.defaults import DEFAULT_PATHS, MODEL_SETTINGS
from .logging_config import get_logger

logger = get_logger("config_manager")

_TUPLE_FIELDS = ("min_detection_size", "max_detection_size")


class ConfigManager:
    """Manages system configuration with file persistence."""

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or DEFAULT_PATHS["config_file"]
        self._config: Optional[SystemConfig] = None
        self._config_change_callbacks: List[Callable[[SystemConfig], None]] = []

        # Load initial configuration
        self.load_config()

    def load_config(self) -> SystemConfig:
        """Load configuration from file or create default."""
        if os.path.exists(self.config_path):
            try:
                with open(self.config_path, 'r') as f:
                    config_dict = json.load(f)
                self._config = self._from_dict(config_dict)
            except (json.JSONDecodeError, TypeError, ValueError) as e:
                logger.warning(f"Error loading config: {e}. Using defaults.")
                self._config = SystemConfig()
        else:
            self._config = SystemConfig()
            self.save_config()

        return self._config

    def save_config(self) -> None:
        """Save current configuration to file."""
        if self._config is None:
            return

        directory = os.path.dirname(self.config_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        config_dict = asdict(self._config)
        for key in _TUPLE_FIELDS:
            config_dict[key] = list(config_dict[key])

        with open(self.config_path, 'w') as f:
            json.dump(config_dict, f, indent=2)

    def get_config(self) -> SystemConfig:
        """Get current configuration."""
        if self._config is None:
            return self.load_config()
        return self._config

    def update_config(self, **kwargs) -> None:
        """Update configuration with new values."""
        if self._config is None:
            self.load_config()

        for key, value in kwargs.items():
            if hasattr(self._config, key):
                if key in _TUPLE_FIELDS:
                    value = tuple(value)
                setattr(self._config, key, value)
            else:
                logger.debug(f"Ignoring unknown config key: {key}")

        self.save_config()

        # Notify callbacks of config change
        for callback in list(self._config_change_callbacks):
            try:
                callback(self._config)
            except Exception as e:
                logger.error(f"Error in config change callback: {e}")

    def validate_config(self) -> bool:
        """Validate current configuration."""
        if self._config is None:
            return False

        if not 0.0 <= self._config.confidence_threshold <= 1.0:
            return False

        # Haar cascade parameters
        if self._config.scale_factor <= 1.0 or self._config.min_neighbors < 0:
            return False

        min_w, min_h = self._config.min_detection_size
        max_w, max_h = self._config.max_detection_size
        if min_w <= 0 or min_h <= 0 or max_w < min_w or max_h < min_h:
            return False

        if not self._config.database_path:
            return False

        if self._config.log_level.upper() not in MODEL_SETTINGS["valid_log_levels"]:
            return False

        return True

    def register_change_callback(self, callback: Callable[[SystemConfig], None]) -> None:
        """Register a callback to be called when config changes."""
        if callback not in self._config_change_callbacks:
            self._config_change_callbacks.append(callback)

    def unregister_change_callback(self, callback: Callable[[SystemConfig], None]) -> None:
        """Unregister a config change callback."""
        if callback in self._config_change_callbacks:
            self._config_change_callbacks.remove(callback)

    @staticmethod
    def _from_dict(config_dict: Dict[str, Any]) -> SystemConfig:
        known = {f.name for f in fields(SystemConfig)}
        values = {k: v for k, v in config_dict.items() if k in known}
        for key in _TUPLE_FIELDS:
            if key in values:
                values[key] = tuple(values[key])
        return SystemConfig(**values)

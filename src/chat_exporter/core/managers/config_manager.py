import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from chatdom.model import ExportSettings
from chat_exporter.core.utils.path_utils import PathUtils

logger = logging.getLogger(__name__)

# Prior-schema keys and the key that replaced them
LEGACY_EXPORT_KEYS = {
    "gemini_attachment_fallback_scan": "attachment_fallback_scan",
}


def deep_merge(target: Dict[str, Any], source: Dict[str, Any]) -> Dict[str, Any]:
    for k, v in source.items():
        if k in target and isinstance(target[k], dict) and isinstance(v, dict):
            deep_merge(target[k], v)
        else:
            target[k] = v
    return target


def migrate_export_section(export: Dict[str, Any]) -> Dict[str, Any]:
    """Copies legacy keys onto their successors when the successor is absent."""
    for old, new in LEGACY_EXPORT_KEYS.items():
        if old in export and new not in export:
            export[new] = export[old]
            logger.info("Migrated legacy setting '%s' to '%s'.", old, new)
    return export


class ConfigManager:
    """
    A singleton class to manage the application's configuration.
    It loads the packaged defaults, merges user overrides on top and allows
    for in-memory modifications.
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(ConfigManager, cls).__new__(cls)
            cls._instance._initialize()
        return cls._instance

    def _initialize(self):
        """Loads the configuration from the file."""
        self._config: Dict[str, Any] = {}
        self.reset()
        logger.debug("ConfigManager initialized.")

    def get_all(self) -> Dict[str, Any]:
        """Returns the entire current configuration dictionary."""
        return self._config

    def get_nested(self, key_path: str, default: Optional[Any] = None) -> Any:
        """
        Safely retrieves a nested value from the configuration.
        e.g., 'export.embed_images_in_markdown'.
        """
        keys = key_path.split('.')
        value = self._config
        for key in keys:
            if isinstance(value, dict):
                value = value.get(key)
            else:
                return default
        return value if value is not None else default

    def set_nested(self, key_path: str, value: Any) -> bool:
        """
        Sets a nested value in the in-memory configuration.
        e.g., 'export.heading_style', 'qa'
        """
        keys = key_path.split('.')
        d = self._config
        # Navigate to the second-to-last dictionary
        for key in keys[:-1]:
            d = d.setdefault(key, {})
            if not isinstance(d, dict):
                logger.error("Cannot set value: '%s' is not a dictionary.", key)
                return False

        # Get the original value to determine the type
        original_value = d.get(keys[-1])
        if original_value is not None:
            value = self._coerce(key_path, value, original_value)

        d[keys[-1]] = value
        logger.info("Configuration updated: %s = %s", key_path, value)
        return True

    @staticmethod
    def _coerce(key_path: str, value: Any, original_value: Any) -> Any:
        """Casts the new value to the type of the old one; 'false'/'0'/'no' are False for booleans."""
        if isinstance(original_value, bool) and isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        try:
            return type(original_value)(value)
        except (ValueError, TypeError):
            logger.warning(
                "Could not cast new value for '%s' to type %s. Storing as string.",
                key_path, type(original_value).__name__
            )
            return value

    def _read_json(self, path: Path) -> Dict[str, Any]:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return data if isinstance(data, dict) else {}

    def load_file(self, path: Path) -> None:
        """
        Deep-merges a user settings file over the current configuration.

        Raises:
            FileNotFoundError: When the file does not exist.
            json.JSONDecodeError: When the file is not valid JSON.
        """
        data = self._read_json(Path(path))
        migrate_export_section(data.get("export", {}) if isinstance(data.get("export"), dict) else {})
        deep_merge(self._config, data)
        logger.info("Configuration merged from %s.", path)

    def reset(self):
        """Resets the in-memory configuration from the packaged settings.json (plus user overrides)."""
        try:
            config_path = PathUtils.get_default_settings_file()
            if not config_path.exists():
                logger.warning("settings.json not found at %s. Using empty config.", config_path)
                self._config = {}
            else:
                self._config = self._read_json(config_path)
                logger.info("Configuration has been (re)loaded from settings.json.")
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to load settings.json: %s", e, exc_info=True)
            self._config = {}

        user_path = PathUtils.get_user_settings_file()
        if user_path.exists():
            try:
                self.load_file(user_path)
            except (OSError, json.JSONDecodeError) as e:
                logger.error("Ignoring unreadable user settings %s: %s", user_path, e)

    def export_settings(self) -> ExportSettings:
        """Snapshot of the 'export' section (plus the debug flag) as a read-only settings object."""
        export = dict(self.get_nested("export", {}) or {})
        migrate_export_section(export)
        level = str(self.get_nested("debug.level", "WARNING")).upper()
        export.setdefault("debug", level == "DEBUG")
        return ExportSettings(**export)


# The global singleton instance that the entire application will use.
config_manager = ConfigManager()

"""
Hierarchical configuration system for hm.

This module loads settings from an ordered list of sources and merges them
into one ``HmSettings``. Each layer overrides only the keys it sets.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import commentjson
from pydantic import ValidationError

from hm.config.settings import (
    DEFAULT_API_VERSION,
    SETTING_KEYS,
    EnvironmentOverrides,
    HmSettings,
    SettingsLayer,
)
from hm.core.errors import ConfigFileParseError, ConfigFileReadError, MissingConfiguration

logger = logging.getLogger(__name__)

_FILE_KEYS = set(SETTING_KEYS.values()) | set(SETTING_KEYS) | {"deployment-id", "deployment_id"}


class ConfigSource(Enum):
    """Configuration sources, listed from lowest to highest precedence."""
    DEFAULT = "default"
    FILE = "file"
    ENVIRONMENT = "environment"
    COMMAND_LINE = "command_line"


PRECEDENCE_ORDER = [
    ConfigSource.DEFAULT,
    ConfigSource.FILE,
    ConfigSource.ENVIRONMENT,
    ConfigSource.COMMAND_LINE,
]


@dataclass(frozen=True)
class ConfigLayer:
    """One configuration source and the settings it sets."""
    source: ConfigSource
    values: Dict[str, str] = field(default_factory=dict)
    path: Optional[Path] = None


class HierarchicalConfigLoader:
    """
    Loader that merges settings from multiple sources.

    Configuration precedence (later overrides earlier):
    1. Default values (hardcoded)
    2. Config file (``--config`` or ~/.hm.json)
    3. Environment variables (HM_*, optionally seeded from a .env file)
    4. Command-line flags
    """

    DEFAULT_CONFIG_FILE_NAME = ".hm.json"

    def __init__(
        self,
        config_path: Optional[Path] = None,
        flag_overrides: Optional[Mapping[str, Optional[str]]] = None,
        env_file: Optional[Path] = None,
    ):
        """Initialize the loader.

        Args:
            config_path: Explicit config file; it must exist when given
            flag_overrides: Values from command-line flags, keyed by field name
            env_file: Optional .env file read as part of the environment layer
        """
        self.config_path = config_path
        self.flag_overrides = dict(flag_overrides or {})
        self.env_file = env_file
        self._layers: List[ConfigLayer] = []

    @property
    def layers(self) -> List[ConfigLayer]:
        """Loaded layers in precedence order."""
        return list(self._layers)

    @property
    def loaded_config_file(self) -> Optional[Path]:
        """Path of the config file that was read, if any."""
        for layer in self._layers:
            if layer.source is ConfigSource.FILE:
                return layer.path
        return None

    def load(self, validate: bool = True) -> HmSettings:
        """Load every source and return the merged settings.

        Args:
            validate: Raise ``MissingConfiguration`` when required keys are empty

        Returns:
            Effective settings
        """
        self._layers = [self._load_defaults()]

        file_layer = self._load_config_file()
        if file_layer is not None:
            self._layers.append(file_layer)

        self._layers.append(self._load_environment())
        self._layers.append(self._load_flags())

        settings = HmSettings(**self._merge_settings())

        if validate:
            missing = settings.missing_required()
            if missing:
                raise MissingConfiguration(missing)

        return settings

    def source_of(self, name: str) -> Optional[ConfigSource]:
        """Return the highest precedence source that set a setting."""
        for layer in reversed(self._layers):
            if name in layer.values:
                return layer.source
        return None

    def get_config_summary(self) -> Dict[str, Any]:
        """Get a summary of the loaded sources."""
        return {
            "sources": {
                layer.source.value: {
                    "path": str(layer.path) if layer.path else None,
                    "settings_count": len(layer.values),
                }
                for layer in self._layers
            }
        }

    def default_config_path(self) -> Optional[Path]:
        """Path of the config file in the user's home directory."""
        try:
            return Path.home() / self.DEFAULT_CONFIG_FILE_NAME
        except RuntimeError:
            logger.debug("Home directory could not be determined")
            return None

    def _load_defaults(self) -> ConfigLayer:
        return ConfigLayer(
            source=ConfigSource.DEFAULT,
            values={
                "api_key": "",
                "api_endpoint": "",
                "api_version": DEFAULT_API_VERSION,
                "deployment": "",
            },
        )

    def _load_config_file(self) -> Optional[ConfigLayer]:
        if self.config_path is not None:
            path = Path(self.config_path).expanduser()
        else:
            path = self.default_config_path()
            if path is None or not path.exists():
                logger.debug(f"No config file at default location: {path}")
                return None

        try:
            content = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise ConfigFileParseError(path, "file is not valid UTF-8", original_error=e) from e
        except OSError as e:
            raise ConfigFileReadError(path, original_error=e) from e

        try:
            # JSON with comments
            data = commentjson.loads(content)
        except Exception as e:
            raise ConfigFileParseError(path, f"invalid JSON ({e})", original_error=e) from e

        if not isinstance(data, dict):
            raise ConfigFileParseError(path, "top level must be a JSON object")

        unknown = sorted(key for key in data if key not in _FILE_KEYS)
        if unknown:
            logger.debug(f"Ignoring unknown keys in {path}: {', '.join(unknown)}")

        try:
            layer = SettingsLayer.model_validate(data)
        except ValidationError as e:
            reason = "; ".join(
                f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
                for error in e.errors()
            )
            raise ConfigFileParseError(path, reason, original_error=e) from e

        logger.debug(f"Loaded settings from file: {path}")
        return ConfigLayer(source=ConfigSource.FILE, values=layer.overrides(), path=path)

    def _load_environment(self) -> ConfigLayer:
        try:
            env = EnvironmentOverrides(_env_file=self.env_file)
        except UnicodeDecodeError as e:
            raise ConfigFileParseError(self.env_file, "file is not valid UTF-8", original_error=e) from e
        except OSError as e:
            raise ConfigFileReadError(self.env_file, original_error=e) from e
        values = env.overrides()
        if values:
            logger.debug(f"Loaded settings from environment: {', '.join(sorted(values))}")
        env_path = self.env_file if self.env_file is not None and self.env_file.is_file() else None
        return ConfigLayer(source=ConfigSource.ENVIRONMENT, values=values, path=env_path)

    def _load_flags(self) -> ConfigLayer:
        flags = {key: value for key, value in self.flag_overrides.items() if value is not None}
        layer = SettingsLayer.model_validate(flags)
        return ConfigLayer(source=ConfigSource.COMMAND_LINE, values=layer.overrides())

    def _merge_settings(self) -> Dict[str, str]:
        merged: Dict[str, str] = {}
        for layer in sorted(self._layers, key=lambda item: PRECEDENCE_ORDER.index(item.source)):
            merged.update(layer.values)
        return merged


def load_settings(
    config_path: Optional[Path] = None,
    flag_overrides: Optional[Mapping[str, Optional[str]]] = None,
    env_file: Optional[Path] = None,
    validate: bool = True,
) -> HmSettings:
    """Convenience function to load validated settings from all sources.

    Args:
        config_path: Explicit config file path
        flag_overrides: Values from command-line flags
        env_file: Optional .env file for the environment layer
        validate: Require api-key, api-endpoint and deployment

    Returns:
        Effective settings
    """
    loader = HierarchicalConfigLoader(config_path, flag_overrides, env_file)
    return loader.load(validate=validate)

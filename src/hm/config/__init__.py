"""
Configuration package for hm.

This package contains the settings schema and the layered loader that merges
defaults, the JSON config file, environment variables and command-line flags.
"""

from hm.config.hierarchical import ConfigLayer, ConfigSource, HierarchicalConfigLoader, load_settings
from hm.config.settings import EnvironmentOverrides, HmSettings, SettingsLayer

__all__ = [
    "ConfigLayer",
    "ConfigSource",
    "EnvironmentOverrides",
    "HierarchicalConfigLoader",
    "HmSettings",
    "SettingsLayer",
    "load_settings",
]

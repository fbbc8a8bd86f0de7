"""Configuration loading (YAML + JSON schema) and the packaged region table."""

from .loader import ConfigError, load_config, load_region_table, resolve_region_key

__all__ = ["ConfigError", "load_config", "load_region_table", "resolve_region_key"]

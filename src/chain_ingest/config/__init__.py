"""
Configuration management for chain-ingest.

Configuration hierarchy:
1. Default values (built-in)
2. config/default.toml (project defaults)
3. config/local.toml (user overrides, gitignored)
4. Environment variables (CHAIN_INGEST_* prefix)
5. Command-line arguments

Example:
    >>> from chain_ingest.config import get_settings
    >>>
    >>> settings = get_settings()
    >>> print(f"Table store: {settings.table.path}")
"""

from chain_ingest.config.settings import (
    IngestionSettings,
    Settings,
    TransportSettings,
    get_settings,
    load_settings,
    reload_settings,
)

__all__ = [
    "IngestionSettings",
    "Settings",
    "TransportSettings",
    "get_settings",
    "load_settings",
    "reload_settings",
]

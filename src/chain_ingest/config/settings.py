"""
Configuration settings for chain-ingest.

This module handles loading and validating configuration from TOML files
and environment variables.

Configuration hierarchy (later overrides earlier):
1. Default values (built-in)
2. config/default.toml
3. config/local.toml (gitignored)
4. File named by CHAIN_INGEST_CONFIG_PATH
5. Environment variables (CHAIN_INGEST_* prefix)
6. Command-line arguments

Example:
    >>> from chain_ingest.config import get_settings
    >>>
    >>> settings = get_settings()
    >>> print(f"Blocks: {settings.source.blocks_dir}")
    >>> print(f"Workers: {settings.ingestion.workers}")
"""

from __future__ import annotations

import os
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

ENV_PREFIX = "CHAIN_INGEST_"

NETWORKS = ("main", "test", "regtest", "signet")


class SourceSettings(BaseModel):
    """Local block file settings."""

    model_config = ConfigDict(extra="ignore")

    blocks_dir: Path = Field(
        default=Path("blocks"),
        description="Directory holding blkNNNNN.dat files",
    )
    network: str = Field(
        default="main",
        description="Network whose magic bytes frame the block records",
    )

    @field_validator("network")
    @classmethod
    def validate_network(cls, v: str) -> str:
        """Accept main/test/regtest/signet, case-insensitively."""
        v = v.lower()
        if v not in NETWORKS:
            raise ValueError(f"Invalid network {v!r} (expecting one of {', '.join(NETWORKS)})")
        return v


class CheckpointSettings(BaseModel):
    """Cursor persistence settings."""

    model_config = ConfigDict(extra="ignore")

    directory: Path = Field(default=Path("."), description="Directory for progress files")
    progress_file: str = Field(default="progress.dat", description="Default stream file name")


class TableSettings(BaseModel):
    """Partitioned table store settings."""

    model_config = ConfigDict(extra="ignore")

    path: Path = Field(default=Path("data/transactions.db"), description="SQLite table store")
    name: str = Field(default="transactions", description="Transaction table name")


class BlobSettings(BaseModel):
    """Blob store settings."""

    model_config = ConfigDict(extra="ignore")

    directory: Path = Field(default=Path("data/blobs"), description="Blob store root")
    container: str = Field(default="nbitcoinindexer", description="Block container name")


class IngestionSettings(BaseModel):
    """Pipeline tuning."""

    model_config = ConfigDict(extra="ignore")

    workers: int = Field(default=4, ge=1, description="Concurrent remote writers")
    queue_capacity: int = Field(default=20, ge=1, description="Work units in flight")
    max_batch_size: int = Field(default=100, ge=1, le=100, description="Records per batch")
    checkpoint_interval_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Time between periodic checkpoints",
    )
    progress_every_blocks: int = Field(default=1000, ge=1, description="Blocks between progress log events")
    retry_delay_seconds: float = Field(default=5.0, ge=0, description="Fixed retry backoff")
    max_attempts: int | None = Field(
        default=None,
        ge=1,
        description="Give up after this many attempts (None = retry forever)",
    )


class TransportSettings(BaseModel):
    """Store client transport configuration."""

    model_config = ConfigDict(extra="ignore")

    timeout_seconds: float = Field(default=60.0, gt=0, description="Per-request timeout")


class LoggingSettings(BaseModel):
    """Logging settings."""

    model_config = ConfigDict(extra="ignore")

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="console", description="Output format")
    include_timestamp: bool = Field(default=True)
    include_location: bool = Field(default=False)


class Settings(BaseModel):
    """Main settings container."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(default="chain-ingest")

    source: SourceSettings = Field(default_factory=SourceSettings)
    checkpoint: CheckpointSettings = Field(default_factory=CheckpointSettings)
    table: TableSettings = Field(default_factory=TableSettings)
    blobs: BlobSettings = Field(default_factory=BlobSettings)
    ingestion: IngestionSettings = Field(default_factory=IngestionSettings)
    transport: TransportSettings = Field(default_factory=TransportSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def _find_config_files() -> list[Path]:
    """Find configuration files in standard locations.

    Returns:
        List of config file paths (in order of priority)
    """
    files = []

    cwd = Path.cwd()
    for name in ["config/default.toml", "config/local.toml"]:
        path = cwd / name
        if path.exists():
            files.append(path)

    env_config = os.environ.get(f"{ENV_PREFIX}CONFIG_PATH")
    if env_config:
        path = Path(env_config)
        if path.exists():
            files.append(path)

    return files


def _load_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        return tomllib.load(f)


def _merge_dicts(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge dictionaries.

    Args:
        base: Base dictionary
        override: Override dictionary

    Returns:
        Merged dictionary
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _merge_dicts(result[key], value)
        else:
            result[key] = value

    return result


def _apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """Apply environment variable overrides.

    Variables are mapped section-first: CHAIN_INGEST_INGESTION_WORKERS
    -> ingestion.workers, CHAIN_INGEST_SOURCE_BLOCKS_DIR ->
    source.blocks_dir. Values are passed as strings; pydantic coerces
    them when Settings is built.

    Args:
        config: Configuration dictionary

    Returns:
        Modified configuration
    """
    sections = set(Settings.model_fields) - {"name"}

    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX) or key == f"{ENV_PREFIX}CONFIG_PATH":
            continue

        config_key = key[len(ENV_PREFIX) :].lower()
        section, _, field_name = config_key.partition("_")

        if section in sections and field_name:
            config.setdefault(section, {})
            if isinstance(config[section], dict):
                config[section][field_name] = value
        elif config_key == "name":
            config["name"] = value

    return config


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings from configuration files.

    Args:
        config_path: Optional explicit config file path

    Returns:
        Settings instance
    """
    config: dict[str, Any] = {}

    if config_path:
        files = [Path(config_path)]
    else:
        files = _find_config_files()

    for path in files:
        config = _merge_dicts(config, _load_toml(path))

    config = _apply_env_overrides(config)

    return Settings(**config)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance.

    Example:
        >>> settings = get_settings()
        >>> print(settings.ingestion.workers)
    """
    return load_settings()


def reload_settings() -> Settings:
    """Reload settings (clears cache)."""
    get_settings.cache_clear()
    return get_settings()

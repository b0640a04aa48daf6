# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/nextup/config/manager.py

from __future__ import annotations

import os
from pathlib import Path
from typing import Final, Optional

import yaml
from loguru import logger
from pydantic import BaseModel, Field, ValidationError, field_validator

from nextup.system.exceptions import ConfigError


# ---- Constants ----

USER_CFG: Final = "nextup.yml"

BUILTIN_CHANNELS: Final[frozenset[str]] = frozenset({"stable", "dev"})


def _get_config_search_paths() -> tuple[Path, ...]:
    """Get config file search paths (ordered by priority: lowest to highest).

    Evaluated at call time so environment overrides set by tests are honored.
    """
    return (
        Path("/etc/nextup") / USER_CFG,  # System defaults
        Path.home() / ".config" / "nextup" / USER_CFG,  # User config
        Path(os.getenv("XDG_CONFIG_HOME", "")) / "nextup" / USER_CFG,  # XDG override
        Path(os.getenv("NEXTUP_CONFIG_HOME", "")) / USER_CFG,  # Explicit override (highest priority)
    )


def _load_merged_config_data(candidates: tuple[Path, ...]) -> dict:
    """Load and merge config data from candidate paths.

    Unlike a project config, every file here is optional: no file at all
    simply means built-in defaults.

    Raises:
        ConfigError: If a config file exists but is not a YAML mapping
    """
    merged_data = {}
    found_configs = []

    for candidate in candidates:
        # Skip unset env vars, which collapse to a relative path
        if not candidate.is_absolute() or not candidate.exists():
            continue
        try:
            with candidate.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to load config from {candidate}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {candidate} must contain a mapping")

        merged_data.update(data)  # Later configs override earlier ones
        found_configs.append(str(candidate))
        logger.debug(f"Loaded config from {candidate}")

    if found_configs:
        logger.debug(f"Merged config from: {', '.join(found_configs)}")
    return merged_data


# ---- Updater Settings ----

class UpdaterConfig(BaseModel):
    """Settings for the update engine. Every field has a working default."""

    # Remote source of truth
    owner: str = "distantorigin"
    repo: str = "miriani-next"
    channel: str = "stable"
    api_url: str = "https://api.github.com"
    raw_url: str = "https://raw.githubusercontent.com"
    web_url: str = "https://github.com"

    # Apply tuning
    zip_threshold: int = Field(default=30, ge=0, description="Use bulk mode above this many files")
    file_workers: int = Field(default=6, ge=1, description="Concurrent per-file transfers")
    request_timeout: float = Field(default=120.0, gt=0)
    self_update_timeout: float = Field(default=2.0, gt=0)

    # Files in the installation root
    manifest_file: str = ".manifest"
    excludes_file: str = ".updater-excludes"
    quarantine_dir: str = ".old"
    channel_file: str = ".update-channel"
    version_file: str = "version.json"
    result_file: str = ".update-result"
    lock_file: str = ".updater.lock"
    updater_names: set[str] = Field(default_factory=lambda: {
        "update.exe", "updater.exe", "launcher.exe"
    })

    # Self-update endpoints
    updater_version_url: str = "https://anomalousabode.com/next/updater-version"
    updater_binary_url: str = "https://anomalousabode.com/next/updater"
    updater_hash_url: str = "https://anomalousabode.com/next/updater.sha256"

    # Optional logging directory
    local_log: Optional[Path] = None

    @field_validator("channel")
    @classmethod
    def channel_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("channel must not be empty")
        return v


def load_merged_updater_config() -> UpdaterConfig:
    """Load and merge settings from all locations (system defaults + user overrides)."""
    merged_data = _load_merged_config_data(_get_config_search_paths())
    try:
        return UpdaterConfig.model_validate(merged_data)
    except ValidationError as e:
        raise ConfigError(str(e)) from e


# ---- Per-run Options ----

class RunOptions(BaseModel):
    """Command-line flags for one run, passed explicitly rather than held globally."""
    quiet: bool = False
    verbose: bool = False
    non_interactive: bool = False
    channel: Optional[str] = None  # Explicit --channel; None means saved or default
    allow_downgrade: bool = False  # Accept downgrade prompts without asking


# ---- Main Config Class ----

class Config(BaseModel):
    """Combined updater settings, run options and installation root."""
    updater: UpdaterConfig = Field(default_factory=UpdaterConfig)
    options: RunOptions = Field(default_factory=RunOptions)
    install_root: Path

    @classmethod
    def load(cls, install_root: Path | None = None, options: RunOptions | None = None) -> Config:
        root = (install_root or Path.cwd()).resolve()
        return cls(
            updater=load_merged_updater_config(),
            options=options or RunOptions(),
            install_root=root,
        )


# ---- Validation Function ----

def validate_config() -> list[str]:
    """Return a list of validation errors. Empty list means config is valid."""
    errors = []

    try:
        cfg = load_merged_updater_config()
    except ConfigError as e:
        errors.append(f"Error in updater config: {e}")
        return errors

    if cfg.local_log is not None and not cfg.local_log.is_absolute():
        errors.append(f"local_log path must be absolute: {cfg.local_log}")

    return errors


# done.

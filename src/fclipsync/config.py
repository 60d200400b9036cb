#!/usr/bin/env python3
"""
Persistent user configuration.

Settings are stored as JSON in the per-user application directory reported
by click. Missing keys take their defaults; unknown keys are ignored so
config files survive upgrades and downgrades.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

import click

from fclipsync.artifact_names import ArtifactKind

logger = logging.getLogger(__name__)

APP_NAME = "fclipsync"
CONFIG_FILE_NAME = "config.json"

WATCH_MODES = ("native", "polling")


class ConfigError(Exception):
    """Raised for unknown keys or values of the wrong type."""

    pass


@dataclass
class SyncConfig:
    """User configuration for folder clipboard sync."""

    folder: str | None = None

    send_texts: bool = True
    send_images: bool = True
    send_files: bool = True
    receive_texts: bool = True
    receive_images: bool = True
    receive_files: bool = True

    auto_cleanup: bool = True
    watch_mode: str = "native"
    sync_command: str = ""

    def is_sending_anything(self) -> bool:
        return self.send_texts or self.send_images or self.send_files

    def is_receiving_anything(self) -> bool:
        return self.receive_texts or self.receive_images or self.receive_files

    def sends(self, kind: ArtifactKind) -> bool:
        """Check whether content of this kind is sent."""
        return {
            ArtifactKind.TEXT: self.send_texts,
            ArtifactKind.IMAGE: self.send_images,
            ArtifactKind.FILES: self.send_files,
        }[kind]

    def receives(self, kind: ArtifactKind) -> bool:
        """Check whether content of this kind is received."""
        return {
            ArtifactKind.TEXT: self.receive_texts,
            ArtifactKind.IMAGE: self.receive_images,
            ArtifactKind.FILES: self.receive_files,
        }[kind]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncConfig:
        """Create config from dict, using defaults for missing or invalid keys"""
        config = cls()
        for key, value in data.items():
            try:
                setattr(config, key, _coerce(config, key, value))
            except ConfigError as e:
                logger.warning("Ignoring config entry %s: %s", key, e)
        return config


def _coerce(config: SyncConfig, key: str, value: Any) -> Any:
    """Validate value against the type of key's default."""
    names = {f.name for f in fields(config)}
    if key not in names:
        raise ConfigError(f"Unknown setting {key!r}")
    if key == "folder":
        if value is not None and not isinstance(value, str):
            raise ConfigError("folder must be a path string")
        return value
    default = getattr(SyncConfig(), key)
    if not isinstance(value, type(default)):
        raise ConfigError(f"{key} must be of type {type(default).__name__}")
    if key == "watch_mode" and value not in WATCH_MODES:
        raise ConfigError(f"watch_mode must be one of {', '.join(WATCH_MODES)}")
    return value


def parse_setting(key: str, raw: str) -> Any:
    """
    Convert a command-line string to the type of a setting.

    Args:
        key: Setting name.
        raw: Value as typed by the user.

    Returns:
        The typed value.

    Raises:
        ConfigError: If key is unknown or raw cannot be converted.
    """
    if key not in {f.name for f in fields(SyncConfig)}:
        raise ConfigError(f"Unknown setting {key!r}")
    default = getattr(SyncConfig(), key)
    if isinstance(default, bool):
        lowered = raw.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        raise ConfigError(f"{key} expects a boolean, got {raw!r}")
    if key == "folder":
        return raw or None
    return raw


def default_config_path() -> Path:
    """Return the per-user config file location."""
    return Path(click.get_app_dir(APP_NAME)) / CONFIG_FILE_NAME


class ConfigStore:
    """Loads, saves and updates the configuration file."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or default_config_path()
        self.config = self.load()

    def load(self) -> SyncConfig:
        """Load configuration from file, falling back to defaults."""
        if not self.path.exists():
            logger.info("No config file found at %s, using defaults", self.path)
            return SyncConfig()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Failed to load config: %s, using defaults", e)
            return SyncConfig()
        if not isinstance(data, dict):
            logger.warning("Config file %s is not a JSON object, using defaults", self.path)
            return SyncConfig()
        config = SyncConfig.from_dict(data)
        logger.info("Loaded config from %s", self.path)
        return config

    def save(self) -> bool:
        """Save configuration to file."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(
                json.dumps(self.config.to_dict(), indent=2), encoding="utf-8"
            )
        except OSError as e:
            logger.error("Failed to save config to %s: %s", self.path, e)
            return False
        logger.info("Saved config to %s", self.path)
        return True

    def get(self, key: str) -> Any:
        if key not in {f.name for f in fields(SyncConfig)}:
            raise ConfigError(f"Unknown setting {key!r}")
        return getattr(self.config, key)

    def set(self, key: str, value: Any) -> None:
        """
        Update one setting and persist the file.

        Raises:
            ConfigError: If key is unknown or value has the wrong type.
        """
        setattr(self.config, key, _coerce(self.config, key, value))
        self.save()

#!/usr/bin/env python3
"""Tests for configuration loading, saving and validation."""
import json
from pathlib import Path

import pytest

from fclipsync.artifact_names import ArtifactKind
from fclipsync.config import ConfigError, ConfigStore, SyncConfig, parse_setting


def test_defaults_send_and_receive_everything() -> None:
    config = SyncConfig()
    assert all(config.sends(kind) for kind in ArtifactKind)
    assert all(config.receives(kind) for kind in ArtifactKind)
    assert config.auto_cleanup
    assert config.watch_mode == "native"


def test_toggles_are_per_kind() -> None:
    config = SyncConfig(send_files=False, receive_images=False)
    assert not config.sends(ArtifactKind.FILES)
    assert config.sends(ArtifactKind.IMAGE)
    assert not config.receives(ArtifactKind.IMAGE)


def test_is_sending_anything() -> None:
    config = SyncConfig(send_texts=False, send_images=False, send_files=False)
    assert not config.is_sending_anything()
    assert config.is_receiving_anything()


def test_missing_file_gives_defaults(tmp_path: Path) -> None:
    store = ConfigStore(tmp_path / "config.json")
    assert store.config == SyncConfig()


def test_set_persists(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "config.json"
    store = ConfigStore(path)
    store.set("send_files", False)
    store.set("folder", "/mnt/share")

    reloaded = ConfigStore(path)
    assert reloaded.get("send_files") is False
    assert reloaded.get("folder") == "/mnt/share"


def test_set_rejects_unknown_key(tmp_path: Path) -> None:
    store = ConfigStore(tmp_path / "config.json")
    with pytest.raises(ConfigError):
        store.set("colour", "blue")


def test_set_rejects_wrong_type(tmp_path: Path) -> None:
    store = ConfigStore(tmp_path / "config.json")
    with pytest.raises(ConfigError):
        store.set("auto_cleanup", "yes")
    with pytest.raises(ConfigError):
        store.set("watch_mode", "inotify")


def test_corrupt_file_falls_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{not json")
    assert ConfigStore(path).config == SyncConfig()


def test_bad_entries_are_ignored_on_load(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"send_texts": False, "unknown": 1, "receive_files": "no"}))
    config = ConfigStore(path).config
    assert config.send_texts is False
    assert config.receive_files is True


@pytest.mark.parametrize("raw,expected", [("true", True), ("OFF", False), ("1", True)])
def test_parse_boolean_setting(raw: str, expected: bool) -> None:
    assert parse_setting("send_images", raw) is expected


def test_parse_setting_rejects_bad_boolean() -> None:
    with pytest.raises(ConfigError):
        parse_setting("send_images", "maybe")


def test_parse_empty_folder_clears_it() -> None:
    assert parse_setting("folder", "") is None

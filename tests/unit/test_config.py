"""Tests for application settings."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from longbox.core.config import Settings, load_settings_file
from longbox.core.processing import NamingSettings


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Point the settings.json lookup at the test directory and drop LONGBOX_ variables."""
    for key in list(os.environ):
        if key.startswith("LONGBOX_"):
            monkeypatch.delenv(key)
    monkeypatch.setenv("LONGBOX_DATA_DIR", str(tmp_path))
    monkeypatch.chdir(tmp_path)


def test_defaults(tmp_path: Path) -> None:
    settings = Settings(data_dir=tmp_path)

    assert settings.env == "development"
    assert settings.is_debug is True
    assert settings.concurrency_limit == 3
    assert settings.keep_original_files is True
    assert settings.folder_name_format == "{publisher}/{series} ({volume})"
    assert settings.file_name_format == "{series} #{issue} ({year})"
    assert settings.comicvine_api_key == ""
    assert settings.gcd_database_path is None


def test_directories_are_created(tmp_path: Path) -> None:
    settings = Settings(data_dir=tmp_path / "data")

    assert settings.config_dir.is_dir()
    assert settings.cache_dir.is_dir()
    assert settings.logs_dir.is_dir()
    assert settings.knowledge_base_file == settings.config_dir / "knowledge_base.json"
    assert settings.resolved_library_root == settings.data_dir / "library"


def test_explicit_library_root(tmp_path: Path) -> None:
    settings = Settings(data_dir=tmp_path, library_root=tmp_path / "comics")

    assert settings.resolved_library_root == tmp_path / "comics"


def test_environment_variables(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("LONGBOX_ENV", "testing")
    monkeypatch.setenv("LONGBOX_CONCURRENCY_LIMIT", "5")
    monkeypatch.setenv("LONGBOX_KEEP_ORIGINAL_FILES", "false")

    settings = Settings(data_dir=tmp_path)

    assert settings.is_testing is True
    assert settings.concurrency_limit == 5
    assert settings.keep_original_files is False


def test_settings_json_is_lowest_priority(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "settings.json").write_text(
        json.dumps(
            {
                "file_name_format": "{series} {issue:000}",
                "concurrency_limit": 4,
                "host": {"bind_address": "0.0.0.0", "port": 9000},
                "matching": {"minimum_similarity": 0.7},
            }
        ),
        encoding="utf-8",
    )
    monkeypatch.setenv("LONGBOX_CONCURRENCY_LIMIT", "6")

    settings = Settings(data_dir=tmp_path)

    assert settings.file_name_format == "{series} {issue:000}"
    assert settings.concurrency_limit == 6
    assert settings.host_bind_address == "0.0.0.0"
    assert settings.host_port == 9000


def test_invalid_values_are_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValidationError):
        Settings(data_dir=tmp_path, concurrency_limit=0)
    with pytest.raises(ValidationError):
        Settings(data_dir=tmp_path, env="staging")


def test_load_settings_file_tolerates_bad_content(tmp_path: Path) -> None:
    missing = tmp_path / "missing.json"
    broken = tmp_path / "broken.json"
    broken.write_text("{", encoding="utf-8")
    listing = tmp_path / "list.json"
    listing.write_text("[1, 2]", encoding="utf-8")

    assert load_settings_file(missing) == {}
    assert load_settings_file(broken) == {}
    assert load_settings_file(listing) == {}


def test_naming_settings_from_settings(tmp_path: Path) -> None:
    settings = Settings(
        data_dir=tmp_path, folder_name_format="{series}", keep_original_files=False
    )

    naming = NamingSettings.from_settings(settings)

    assert naming.folder_name_format == "{series}"
    assert naming.file_name_format == settings.file_name_format
    assert naming.keep_original_files is False

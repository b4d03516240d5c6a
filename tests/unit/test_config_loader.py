from __future__ import annotations

from pathlib import Path

import pytest

from glitter_import.config.loader import ConfigError, ImportConfig, load_config


def test_load_config_success(write_config: Path):
    cfg = load_config(write_config)
    assert cfg.max_file_size_mb == 5
    assert cfg.max_file_size_bytes == 5 * 1024 * 1024
    assert cfg.row_delay_seconds == 0
    assert cfg.default_tag_color == "#FF00AA"
    assert cfg.user_id == "user_1"
    assert cfg.database.host == "localhost"
    assert cfg.database.port == 5432
    assert cfg.database.dsn is None


def test_defaults_apply_for_empty_file(temp_workdir: Path):
    p = temp_workdir / "config" / "import.yml"
    p.write_text("", encoding="utf-8")
    cfg = load_config(p)
    assert cfg == ImportConfig()
    assert cfg.max_file_size_bytes == 50 * 1024 * 1024
    assert cfg.row_delay_seconds == 0.2
    assert cfg.max_workers == 1
    assert cfg.default_tag_color == "#3B82F6"
    assert cfg.timezone == "UTC"


def test_missing_file(temp_workdir: Path):
    with pytest.raises(ConfigError, match="config file not found"):
        load_config(temp_workdir / "config" / "nope.yml")


def test_invalid_yaml(temp_workdir: Path):
    p = temp_workdir / "config" / "import.yml"
    p.write_text("max_workers: [1,\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="invalid yaml"):
        load_config(p)


def test_top_level_must_be_mapping(temp_workdir: Path):
    p = temp_workdir / "config" / "import.yml"
    p.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="top level must be a mapping"):
        load_config(p)


def test_unknown_timezone(temp_workdir: Path):
    p = temp_workdir / "config" / "import.yml"
    p.write_text("timezone: Mars/Olympus\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="unknown timezone"):
        load_config(p)

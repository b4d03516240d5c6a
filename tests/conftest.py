# Shared pytest fixtures
from __future__ import annotations

import logging
import tempfile
from collections.abc import Callable
from pathlib import Path

import pytest

from glitter_import.config.loader import ImportConfig
from glitter_import.logging.init import LOGGER_NAME, reset_logging
from glitter_import.models.session import Session
from glitter_import.storage.memory import InMemoryRecordStore

USER_ID = "user_1"


@pytest.fixture(autouse=True)
def _clean_logging():
    # CLI テストが stdout ハンドラを差し替えるため毎回リセット
    reset_logging()
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """max_file_size_mb: 5
row_delay_seconds: 0
max_workers: 1
default_tag_color: "#FF00AA"
timezone: UTC
logs_dir: ./logs
user_id: user_1
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def write_csv(temp_workdir: Path) -> Callable[..., Path]:
    def _write(text: str, name: str = "projects.csv") -> Path:
        path = temp_workdir / "data" / name
        path.write_text(text, encoding="utf-8")
        return path
    return _write


@pytest.fixture()
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture()
def session() -> Session:
    return Session(user_id=USER_ID)


@pytest.fixture()
def fast_config(temp_workdir: Path) -> ImportConfig:
    """Config without the inter-row delay (keeps tests fast)."""
    return ImportConfig(row_delay_seconds=0, logs_dir=str(temp_workdir / "logs"))


@pytest.fixture()
def ten_row_csv() -> str:
    lines = ["Title,Status,Tags"]
    lines += [f"Project {i},stash,Cute" for i in range(1, 11)]
    return "\n".join(lines) + "\n"

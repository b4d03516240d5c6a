from __future__ import annotations

from pathlib import Path
from typing import Any

from glitter_import.cli import __main__ as cli
from glitter_import.cli.__main__ import main
from glitter_import.models.import_stats import ImportOutcome, ImportStats
from glitter_import.storage.base import StorageError
from glitter_import.storage.memory import InMemoryRecordStore

"""Exit code contract: 0 = every row imported, 2 = anything less, 1 = fatal."""


def test_exit_code_per_outcome():
    cases = {
        ImportOutcome.ALL_SUCCEEDED: ImportStats(successful=1, total=1),
        ImportOutcome.SUCCEEDED_WITH_WARNINGS: ImportStats(successful=1, total=1, tag_warnings=["w"]),
        ImportOutcome.PARTIAL_FAILURE: ImportStats(successful=1, failed=1, total=2),
        ImportOutcome.ALL_FAILED: ImportStats(failed=1, total=1),
        ImportOutcome.NOTHING_TO_IMPORT: ImportStats(),
        ImportOutcome.CANCELLED: ImportStats(successful=1, total=2, cancelled=True),
    }
    assert set(cases) == set(ImportOutcome)
    for outcome, stats in cases.items():
        assert stats.outcome is outcome
        expected = 0 if outcome is ImportOutcome.ALL_SUCCEEDED else 2
        assert cli._exit_code(stats) == expected


def test_exit_code_fatal_config(temp_workdir: Path, write_csv, capsys):
    (temp_workdir / "config" / "import.yml").write_text("bogus: 1\n", encoding="utf-8")
    code = main([str(write_csv("Title\nA\n")), "--mock"])
    assert code == 1
    assert "ERROR config:" in capsys.readouterr().out


def test_exit_code_all_success(write_config, write_csv, capsys):
    code = main([str(write_csv("Title\nA\nB\n")), "--mock"])
    assert code == 0
    assert "outcome=all_succeeded" in capsys.readouterr().out


def test_exit_code_partial(write_config, write_csv, monkeypatch, capsys):
    class RejectB(InMemoryRecordStore):
        def create_project(self, record: dict[str, Any]) -> str:
            if record["title"] == "B":
                raise StorageError("rejected")
            return super().create_project(record)

    monkeypatch.setattr(cli, "InMemoryRecordStore", RejectB)
    code = main([str(write_csv("Title\nA\nB\n")), "--mock"])
    assert code == 2
    assert "outcome=partial_failure" in capsys.readouterr().out


def test_exit_code_missing_file(write_config, temp_workdir: Path, capsys):
    code = main([str(temp_workdir / "data" / "nope.csv"), "--mock"])
    assert code == 1
    assert "ERROR import: cannot open" in capsys.readouterr().out

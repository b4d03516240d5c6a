from __future__ import annotations

import threading
import time
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from glitter_import.config.loader import ImportConfig
from glitter_import.csvfile.reader import EmptyInputError, UnreadableInputError
from glitter_import.models.import_stats import ImportOutcome
from glitter_import.models.partial_project import PartialProject
from glitter_import.models.session import Session
from glitter_import.services.orchestrator import (
    CsvUpload,
    FileTooLargeError,
    InvalidFileTypeError,
    NotAuthenticatedError,
    RateLimiter,
    build_create_dto,
    import_from_csv,
)
from glitter_import.storage.base import StorageError
from glitter_import.storage.memory import InMemoryRecordStore


class FailOnTitles(InMemoryRecordStore):
    def __init__(self, titles: set[str], message: str = "validation failed") -> None:
        super().__init__()
        self.titles = titles
        self.message = message
        self.attempted: list[str] = []

    def create_project(self, record):
        self.attempted.append(record["title"])
        if record["title"] in self.titles:
            raise StorageError(self.message)
        return super().create_project(record)


# --- pre-flight -----------------------------------------------------------

def test_rejects_non_csv_extension(store, session, fast_config):
    with pytest.raises(InvalidFileTypeError):
        import_from_csv(CsvUpload("projects.xlsx", b"title\nA\n"), store=store, session=session, config=fast_config)
    assert store.projects == {}


def test_extension_check_is_case_insensitive(store, session, fast_config):
    stats = import_from_csv(CsvUpload("PROJECTS.CSV", b"title\nA\n"), store=store, session=session, config=fast_config)
    assert stats.successful == 1


def test_rejects_oversized_file(store, session, temp_workdir):
    cfg = ImportConfig(max_file_size_mb=0.001, row_delay_seconds=0, logs_dir=str(temp_workdir / "logs"))
    data = b"title\n" + b"A\n" * 1000
    with pytest.raises(FileTooLargeError):
        import_from_csv(CsvUpload("big.csv", data), store=store, session=session, config=cfg)
    assert store.projects == {}


def test_rejects_unauthenticated(store, fast_config):
    with pytest.raises(NotAuthenticatedError):
        import_from_csv(CsvUpload("a.csv", b"title\nA\n"), store=store, session=Session(user_id=None), config=fast_config)
    with pytest.raises(NotAuthenticatedError):
        import_from_csv(CsvUpload("a.csv", b"title\nA\n"), store=store, session=Session(user_id="  "), config=fast_config)
    assert store.projects == {}


def test_fatal_error_notifies_and_raises(store, fast_config):
    notifier = MagicMock()
    with pytest.raises(NotAuthenticatedError):
        import_from_csv(
            CsvUpload("a.csv", b"title\nA\n"), store=store, session=Session(user_id=None),
            config=fast_config, notifier=notifier,
        )
    notifier.error.assert_called_once()
    assert notifier.error.call_args.args[0] == "Import failed"


def test_empty_file_rejected_without_mutation(store, session, fast_config):
    with pytest.raises(EmptyInputError):
        import_from_csv(CsvUpload("a.csv", b"  \n"), store=store, session=session, config=fast_config)
    assert store.projects == {} and store.tags == {}


def test_missing_path_is_unreadable(store, session, fast_config, temp_workdir):
    with pytest.raises(UnreadableInputError):
        import_from_csv(temp_workdir / "missing.csv", store=store, session=session, config=fast_config)


# --- rows -----------------------------------------------------------------

def test_titleless_rows_excluded_from_total(store, session, fast_config):
    data = b"title,status\nA,stash\n,stash\n   ,done\nB,\n"
    stats = import_from_csv(CsvUpload("a.csv", data), store=store, session=session, config=fast_config)
    assert stats.total == 2
    assert stats.successful == 2
    assert stats.skipped_rows == 2
    assert stats.outcome is ImportOutcome.ALL_SUCCEEDED


def test_failure_on_row_three_does_not_stop_the_run(session, fast_config, ten_row_csv):
    store = FailOnTitles({"Project 3"})
    stats = import_from_csv(CsvUpload("a.csv", ten_row_csv.encode()), store=store, session=session, config=fast_config)

    assert stats.failed == 1
    assert stats.successful == 9
    assert stats.total == 10
    assert store.attempted == [f"Project {i}" for i in range(1, 11)]
    assert stats.errors == ["validation failed"]
    assert stats.outcome is ImportOutcome.PARTIAL_FAILURE


def test_blank_error_message_gets_default(session, fast_config):
    store = FailOnTitles({"A"}, message="")
    stats = import_from_csv(CsvUpload("a.csv", b"title\nA\n"), store=store, session=session, config=fast_config)
    assert stats.errors == ['Failed to import project "A"']
    assert stats.outcome is ImportOutcome.ALL_FAILED


def test_unexpected_exception_is_a_row_failure(session, fast_config):
    class Boom(InMemoryRecordStore):
        def create_project(self, record):
            raise RuntimeError("unexpected")

    stats = import_from_csv(CsvUpload("a.csv", b"title\nA\nB\n"), store=Boom(), session=session, config=fast_config)
    assert stats.failed == 2
    assert stats.errors == ["unexpected", "unexpected"]


def test_failed_tag_is_omitted_from_projects(session, fast_config):
    class NewTagFails(InMemoryRecordStore):
        def create_tag(self, user_id, *, name, slug, color):
            if name == "NewTag":
                raise StorageError("quota exceeded")
            return super().create_tag(user_id, name=name, slug=slug, color=color)

    store = NewTagFails()
    store.add_tag("user_1", "Cute")
    data = b"title,tags\nA,Cute;NewTag\nB,NewTag\n"
    stats = import_from_csv(CsvUpload("a.csv", data), store=store, session=session, config=fast_config)

    assert stats.successful == 2
    assert stats.failed == 0
    assert len(stats.tag_warnings) == 1
    assert "NewTag" in stats.tag_warnings[0]
    assert stats.outcome is ImportOutcome.SUCCEEDED_WITH_WARNINGS
    by_title = {rec["title"]: pid for pid, rec in store.projects.items()}
    assert store.tags_of(by_title["A"]) == ["Cute"]
    assert store.tags_of(by_title["B"]) == []


def test_tags_created_once_and_linked(store, session, fast_config):
    data = b"title,tags\nA,Cute;Floral\nB,Floral\n"
    stats = import_from_csv(CsvUpload("a.csv", data), store=store, session=session, config=fast_config)
    assert stats.created_tags == 2
    assert len(store.list_tags("user_1")) == 2
    by_title = {rec["title"]: pid for pid, rec in store.projects.items()}
    assert store.tags_of(by_title["A"]) == ["Cute", "Floral"]
    assert store.tags_of(by_title["B"]) == ["Floral"]


def test_rerun_reuses_tags_but_duplicates_projects(store, session, fast_config):
    data = b"title,tags\nA,Cute\n"
    import_from_csv(CsvUpload("a.csv", data), store=store, session=session, config=fast_config)
    second = import_from_csv(CsvUpload("a.csv", data), store=store, session=session, config=fast_config)
    assert second.created_tags == 0
    assert len(store.list_tags("user_1")) == 1
    assert len(store.projects) == 2


def test_link_failure_is_tag_warning(session, fast_config):
    class LinkFails(InMemoryRecordStore):
        def link_tag(self, project_id, tag_id):
            raise StorageError("link refused")

    stats = import_from_csv(CsvUpload("a.csv", b"title,tags\nA,Cute;Floral\n"), store=LinkFails(), session=session, config=fast_config)
    assert stats.successful == 1
    assert len(stats.tag_warnings) == 1
    assert stats.tag_warnings[0].startswith('Project "A": 2 out of 2 tags failed to link\n  - Tag ')


def test_nothing_to_import(store, session, fast_config):
    notifier = MagicMock()
    stats = import_from_csv(CsvUpload("a.csv", b"title,status\n,stash\n"), store=store, session=session, config=fast_config, notifier=notifier)
    assert stats.total == 0
    assert stats.outcome is ImportOutcome.NOTHING_TO_IMPORT
    notifier.warning.assert_called_once()
    assert notifier.warning.call_args.args[0] == "No valid projects found"


def test_projects_are_scoped_to_session_user(store, fast_config):
    import_from_csv(CsvUpload("a.csv", b"title\nA\n"), store=store, session=Session(user_id="alice"), config=fast_config)
    (record,) = store.projects.values()
    assert record["user_id"] == "alice"


def test_reads_from_path(store, session, fast_config, write_csv):
    path = write_csv("Name,Manufacturer,Dimensions\nSunset,DAC,30x40\n")
    stats = import_from_csv(path, store=store, session=session, config=fast_config)
    assert stats.successful == 1
    (record,) = store.projects.values()
    assert (record["width"], record["height"]) == (30, 40)
    assert record["company_id"] is not None


# --- progress -------------------------------------------------------------

def test_progress_monotonic_and_100_only_at_end(session, fast_config, ten_row_csv):
    store = FailOnTitles({"Project 3"})
    seen: list[int] = []
    import_from_csv(CsvUpload("a.csv", ten_row_csv.encode()), store=store, session=session, config=fast_config, on_progress=seen.append)
    assert seen == sorted(seen)
    assert seen[-1] == 100
    assert seen.count(100) == 1
    assert all(0 <= p <= 100 for p in seen)
    assert 25 in seen  # tag phase complete before rows


def test_worker_pool_creates_shared_company_once(session, temp_workdir):
    class SlowLookup(InMemoryRecordStore):
        def find_named(self, collection, user_id, name):
            found = super().find_named(collection, user_id, name)
            time.sleep(0.05)
            return found

    store = SlowLookup()
    cfg = ImportConfig(row_delay_seconds=0, max_workers=4, logs_dir=str(temp_workdir / "logs"))
    data = b"title,company,artist\nA,Acme,Amy\nB,Acme,Amy\nC,Acme,other\nD,Acme,Amy\n"
    stats = import_from_csv(CsvUpload("a.csv", data), store=store, session=session, config=cfg)
    assert stats.successful == 4
    assert [r["name"] for r in store.named["companies"].values()] == ["Acme"]
    assert [r["name"] for r in store.named["artists"].values()] == ["Amy"]
    assert len({p["company_id"] for p in store.projects.values()}) == 1


def test_progress_reaches_100_when_nothing_to_import(store, session, fast_config):
    seen: list[int] = []
    import_from_csv(CsvUpload("a.csv", b"title,status\n,stash\n"), store=store, session=session, config=fast_config, on_progress=seen.append)
    assert seen[-1] == 100
    assert seen == sorted(seen)


# --- concurrency / backpressure --------------------------------------------

def test_worker_pool_keeps_row_order_accounting(session, temp_workdir, ten_row_csv):
    store = FailOnTitles({"Project 3", "Project 7"})
    cfg = ImportConfig(row_delay_seconds=0, max_workers=4, logs_dir=str(temp_workdir / "logs"))
    seen: list[int] = []
    stats = import_from_csv(CsvUpload("a.csv", ten_row_csv.encode()), store=store, session=session, config=cfg, on_progress=seen.append)
    assert stats.successful == 8
    assert stats.failed == 2
    assert sorted(store.attempted) == sorted(f"Project {i}" for i in range(1, 11))
    assert seen == sorted(seen)


def test_rate_limiter_spaces_calls(monkeypatch):
    now = [0.0]
    sleeps: list[float] = []

    def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)
        now[0] += seconds

    monkeypatch.setattr("glitter_import.services.orchestrator.time.sleep", fake_sleep)
    limiter = RateLimiter(0.2, clock=lambda: now[0])
    limiter.wait()
    limiter.wait()
    now[0] += 0.5
    limiter.wait()
    assert sleeps == [pytest.approx(0.2)]


def test_rate_limiter_wait_interrupted_by_cancel():
    cancel = threading.Event()
    cancel.set()
    limiter = RateLimiter(30, cancel_event=cancel)
    limiter.wait()
    limiter.wait()  # returns immediately instead of sleeping 30s


def test_cancel_before_start_attempts_nothing(session, fast_config, ten_row_csv):
    store = FailOnTitles(set())
    cancel = threading.Event()
    cancel.set()
    stats = import_from_csv(CsvUpload("a.csv", ten_row_csv.encode()), store=store, session=session, config=fast_config, cancel_event=cancel)
    assert store.attempted == []
    assert stats.cancelled
    assert stats.outcome is ImportOutcome.CANCELLED
    assert stats.total == 10


def test_cancel_mid_run_stops_before_next_row(session, fast_config, ten_row_csv):
    cancel = threading.Event()

    class CancelAfterFour(FailOnTitles):
        def create_project(self, record):
            pid = super().create_project(record)
            if len(self.attempted) == 4:
                cancel.set()
            return pid

    store = CancelAfterFour(set())
    stats = import_from_csv(CsvUpload("a.csv", ten_row_csv.encode()), store=store, session=session, config=fast_config, cancel_event=cancel)
    assert stats.successful == 4
    assert stats.attempted == 4
    assert stats.outcome is ImportOutcome.CANCELLED


# --- error log -------------------------------------------------------------

def test_error_log_written_for_row_failures(session, fast_config, temp_workdir: Path):
    store = FailOnTitles({"B"})
    import_from_csv(CsvUpload("a.csv", b"title\nA\nB\n"), store=store, session=session, config=fast_config)
    logs = list((temp_workdir / "logs").glob("errors-*.log"))
    assert len(logs) == 1
    content = logs[0].read_text(encoding="utf-8")
    assert '"error_type": "PROJECT_CREATE_ERROR"' in content
    assert '"row": 2' in content
    assert '"file": "a.csv"' in content


def test_no_error_log_when_clean(store, session, fast_config, temp_workdir: Path):
    import_from_csv(CsvUpload("a.csv", b"title\nA\n"), store=store, session=session, config=fast_config)
    assert list((temp_workdir / "logs").glob("errors-*.log")) == []


# --- DTO ------------------------------------------------------------------

def test_build_create_dto_maps_tags_and_reports_omitted():
    partial = PartialProject(title="A", tag_names=("Cute", "Missing", "Cute"), width=20)
    dto, omitted = build_create_dto(partial, "user_1", {"Cute": "t1"})
    assert dto.tag_ids == ("t1",)
    assert omitted == ["Missing"]
    assert dto.user_id == "user_1"
    assert dto.width == 20

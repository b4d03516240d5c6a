from __future__ import annotations

import logging
import os
import threading
import time
from collections import deque
from collections.abc import Callable, Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Union

from ..config.loader import ImportConfig
from ..csvfile.reader import CsvReadError, UnreadableInputError, iter_csv_rows
from ..logging.error_log import (
    ERROR_PROJECT_CREATE,
    ERROR_TAG_CREATE,
    ERROR_TAG_LINK,
    ERROR_TAG_RESOLUTION,
    PARSER_WARNING,
    ErrorLogBuffer,
    ErrorRecord,
)
from ..models.error_record import ROW_UNKNOWN
from ..models.import_stats import ImportStats, RowFailure, RowResult, RowSuccess
from ..models.partial_project import PartialProject
from ..models.project_dto import ProjectCreateDTO
from ..models.session import Session
from ..storage.base import RecordStore
from .normalizer import normalize_row
from .notifications import Notifier, notify_completion
from .progress import ImportProgress
from .project_creator import ProjectCreator, format_link_warning
from .tag_resolver import TagResolver, unique_tag_names

"""Import orchestration: CSV file -> projects.

Flow (one run):
1. Validating: extension, size, authenticated session (fatal, nothing written)
2. Parsing: stream rows, normalize, drop titleless rows
3. ResolvingTags: one TagResolver pass over every tag name in the batch
4. CreatingProjects: every valid row attempted exactly once; each row yields a
   RowResult folded into ImportStats in row order
5. Completed: progress 100, single notification, error log flush

Rows are fed to a bounded worker pool (``max_workers``, default 1 = strictly
sequential) through a rate limiter spacing row starts by
``row_delay_seconds``. Results are folded in submission order so counters and
progress are deterministic regardless of pool size.
"""

__all__ = [
    "ProcessingError",
    "ImportRejectedError",
    "InvalidFileTypeError",
    "FileTooLargeError",
    "NotAuthenticatedError",
    "ImportPhase",
    "CsvUpload",
    "RateLimiter",
    "build_create_dto",
    "validate_upload",
    "import_from_csv",
]

logger = logging.getLogger(__name__)

CSV_EXTENSION = ".csv"


class ProcessingError(Exception):
    """Base exception for processing errors."""
    pass


class ImportRejectedError(ProcessingError):
    """Pre-flight rejection. Raised before anything is read or written."""


class InvalidFileTypeError(ImportRejectedError):
    pass


class FileTooLargeError(ImportRejectedError):
    pass


class NotAuthenticatedError(ImportRejectedError):
    pass


class ImportPhase(Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    PARSING = "parsing"
    RESOLVING_TAGS = "resolving_tags"
    CREATING_PROJECTS = "creating_projects"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class CsvUpload:
    """An uploaded file held in memory (name + raw bytes)."""
    name: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


ImportFile = Union[CsvUpload, str, os.PathLike]


class RateLimiter:
    """Enforce a minimum interval between successive ``wait()`` returns.

    Waiting is interrupted early when ``cancel_event`` is set.
    """

    def __init__(
        self,
        min_interval: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.min_interval = max(0.0, min_interval)
        self._clock = clock
        self._cancel_event = cancel_event
        self._last: float | None = None

    def wait(self) -> None:
        if self._last is not None and self.min_interval > 0:
            remaining = self._last + self.min_interval - self._clock()
            if remaining > 0:
                if self._cancel_event is not None:
                    self._cancel_event.wait(remaining)
                else:
                    time.sleep(remaining)
        self._last = self._clock()


def _file_name(file: ImportFile) -> str:
    if isinstance(file, CsvUpload):
        return file.name
    return Path(file).name


def validate_upload(file: ImportFile, session: Session, config: ImportConfig) -> None:
    """Pre-flight checks (extension, size, authentication).

    Raises:
        InvalidFileTypeError: name does not end with .csv
        FileTooLargeError: size exceeds ``config.max_file_size_bytes``
        NotAuthenticatedError: session has no user
        UnreadableInputError: the file cannot be stat'ed
    """
    name = _file_name(file)
    if not name.lower().endswith(CSV_EXTENSION):
        raise InvalidFileTypeError(f"Invalid file type: {name} (please select a CSV file)")

    if isinstance(file, CsvUpload):
        size = file.size
    else:
        try:
            size = Path(file).stat().st_size
        except OSError as e:
            raise UnreadableInputError(f"cannot open {file}: {e}") from e
    if size > config.max_file_size_bytes:
        raise FileTooLargeError(
            f"File too large: {size} bytes (maximum {config.max_file_size_mb:g}MB)"
        )

    if not session.is_authenticated:
        raise NotAuthenticatedError("User not authenticated")


def build_create_dto(
    partial: PartialProject,
    user_id: str,
    tag_map: Mapping[str, str],
) -> tuple[ProjectCreateDTO, list[str]]:
    """Build the creation request for one row.

    Returns:
        (dto, omitted) where ``omitted`` lists tag names absent from ``tag_map``
    """
    tag_ids: list[str] = []
    omitted: list[str] = []
    for name in partial.tag_names:
        tag_id = tag_map.get(name)
        if tag_id is None:
            omitted.append(name)
        elif tag_id not in tag_ids:
            tag_ids.append(tag_id)

    dto = ProjectCreateDTO(
        user_id=user_id,
        title=partial.title,
        status=partial.status,
        company=partial.company,
        artist=partial.artist,
        drill_shape=partial.drill_shape,
        canvas_type=partial.canvas_type,
        drill_type=partial.drill_type,
        kit_category=partial.kit_category,
        width=partial.width,
        height=partial.height,
        total_diamonds=partial.total_diamonds,
        notes=partial.notes,
        source_url=partial.source_url,
        date_purchased=partial.date_purchased,
        date_started=partial.date_started,
        date_completed=partial.date_completed,
        date_received=partial.date_received,
        tag_ids=tuple(tag_ids),
    )
    return dto, omitted


def _failure_message(error: Exception, title: str) -> str:
    return str(error).strip() or f'Failed to import project "{title}"'


def _process_row(
    index: int,
    partial: PartialProject,
    user_id: str,
    tag_map: Mapping[str, str],
    creator: ProjectCreator,
) -> RowResult:
    """Attempt one row. Never raises: every outcome is a RowResult."""
    try:
        dto, omitted = build_create_dto(partial, user_id, tag_map)
        if omitted:
            logger.debug("Project %r: unresolved tags omitted: %s", partial.title, omitted)
        project_id, links = creator.create(dto)
    except Exception as e:  # 行境界: 1 行の失敗でバッチ全体を止めない
        logger.debug("Row %d failed", index, exc_info=True)
        return RowFailure(index=index, title=partial.title, message=_failure_message(e, partial.title))

    warning = format_link_warning(partial.title, links)
    return RowSuccess(
        index=index,
        title=partial.title,
        project_id=project_id,
        tag_warnings=(warning,) if warning else (),
    )


def _enter(phase: ImportPhase) -> ImportPhase:
    logger.debug("phase=%s", phase.value)
    return phase


def import_from_csv(
    file: ImportFile,
    *,
    store: RecordStore,
    session: Session,
    config: ImportConfig | None = None,
    on_progress: Callable[[int], None] | None = None,
    notifier: Notifier | None = None,
    cancel_event: threading.Event | None = None,
    error_log: ErrorLogBuffer | None = None,
    show_progress: bool | None = None,
) -> ImportStats:
    """Import projects from a CSV file.

    Args:
        file: Path to a .csv file, or a CsvUpload
        store: Record store scoped by user id
        session: Caller; must be authenticated
        config: Import settings (defaults apply when None)
        on_progress: ``on_progress(percent)``; non-decreasing, 100 only at completion
        notifier: Receives one terminal notification (and fatal errors)
        cancel_event: When set, rows not yet started are not attempted
        error_log: Error log buffer (default: one under ``config.logs_dir``)
        show_progress: Force the tqdm bar on/off (default: TTY only)

    Returns:
        ImportStats for the run

    Raises:
        ImportRejectedError: pre-flight rejection
        CsvReadError: empty or unreadable CSV (EmptyInputError / UnreadableInputError)
    """
    cfg = config or ImportConfig()
    stats = ImportStats(started_at=datetime.now(UTC))
    phase = _enter(ImportPhase.VALIDATING)

    try:
        validate_upload(file, session, cfg)
    except (ImportRejectedError, CsvReadError) as e:
        _enter(ImportPhase.FAILED)
        logger.error("Import rejected: %s", e)
        if notifier is not None:
            notifier.error("Import failed", str(e))
        raise

    progress = ImportProgress(on_progress, show_bar=show_progress)
    user_id = str(session.user_id)
    file_name = _file_name(file)
    log = error_log if error_log is not None else ErrorLogBuffer(cfg.logs_dir)

    with progress:
        # --- parsing -------------------------------------------------------
        phase = _enter(ImportPhase.PARSING)
        source = file.data if isinstance(file, CsvUpload) else Path(file)
        stream = iter_csv_rows(source, on_progress=progress.parsing)
        rows: list[tuple[int, PartialProject]] = []
        try:
            for row_number, raw in enumerate(stream, start=1):
                partial = normalize_row(raw, timezone=cfg.timezone)
                if not partial:
                    stats.skipped_rows += 1
                    continue
                rows.append((row_number, partial))
        except CsvReadError as e:
            _enter(ImportPhase.FAILED)
            logger.error("CSV parsing failed: %s", e)
            if notifier is not None:
                notifier.error("Import failed", str(e))
            raise

        stats.total = len(rows)
        stats.parser_warnings.extend(stream.warnings)
        for w in stream.warnings:
            logger.warning("CSV: %s", w)
            log.append(ErrorRecord.create(file_name, ROW_UNKNOWN, PARSER_WARNING, w))
        progress.parsing(100)
        logger.info(
            "Parsed %s: %d projects, %d rows skipped (no title)",
            file_name, stats.total, stats.skipped_rows,
        )

        if rows:
            # --- tags ------------------------------------------------------
            phase = _enter(ImportPhase.RESOLVING_TAGS)
            resolver = TagResolver(
                store,
                user_id,
                default_color=cfg.default_tag_color,
                on_tags_listed=progress.tags_listed,
                on_tag_processed=progress.tag_processed,
            )
            resolution = resolver.resolve(unique_tag_names(p.tag_names for _, p in rows))
            stats.created_tags = len(resolution.created)
            stats.add_tag_warnings(resolution.warnings)
            for w in resolution.warnings:
                error_type = ERROR_TAG_RESOLUTION if w == resolution.listing_error else ERROR_TAG_CREATE
                log.append(ErrorRecord.create(file_name, ROW_UNKNOWN, error_type, w))
            progress.tag_processed(1, 1)

            # --- projects --------------------------------------------------
            phase = _enter(ImportPhase.CREATING_PROJECTS)
            _create_projects(
                rows,
                user_id=user_id,
                tag_map=resolution.tag_map,
                store=store,
                cfg=cfg,
                stats=stats,
                progress=progress,
                log=log,
                file_name=file_name,
                cancel_event=cancel_event,
            )

        stats.finished_at = datetime.now(UTC)
        phase = _enter(ImportPhase.COMPLETED)
        progress.finish()

    try:
        path = log.flush()
        if path is not None:
            logger.info("Error log written: %s", path)
    except OSError as e:
        logger.warning("Could not write error log: %s", e)

    logger.info(
        "Import finished: %d succeeded, %d failed, %d tag warnings (phase=%s)",
        stats.successful, stats.failed, len(stats.tag_warnings), phase.value,
    )
    if notifier is not None:
        notify_completion(notifier, stats)
    return stats


def _create_projects(
    rows: list[tuple[int, PartialProject]],
    *,
    user_id: str,
    tag_map: Mapping[str, str],
    store: RecordStore,
    cfg: ImportConfig,
    stats: ImportStats,
    progress: ImportProgress,
    log: ErrorLogBuffer,
    file_name: str,
    cancel_event: threading.Event | None,
) -> None:
    creator = ProjectCreator(store)
    limiter = RateLimiter(cfg.row_delay_seconds, cancel_event=cancel_event)
    total = len(rows)
    workers = max(1, cfg.max_workers)
    in_flight: deque[tuple[int, Future[RowResult]]] = deque()

    def fold(row_number: int, future: Future[RowResult]) -> None:
        result = future.result()
        stats.record(result)
        if isinstance(result, RowFailure):
            logger.warning("Row %d (%s): %s", row_number, result.title, result.message)
            log.append(ErrorRecord.create(file_name, row_number, ERROR_PROJECT_CREATE, result.message))
        else:
            for w in result.tag_warnings:
                log.append(ErrorRecord.create(file_name, row_number, ERROR_TAG_LINK, w))
        progress.row_done(result.index, total)
        progress.set_postfix(ok=stats.successful, failed=stats.failed)

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="import-row") as pool:
        for index, (row_number, partial) in enumerate(rows):
            if cancel_event is not None and cancel_event.is_set():
                break
            limiter.wait()
            if cancel_event is not None and cancel_event.is_set():
                break
            future = pool.submit(_process_row, index, partial, user_id, tag_map, creator)
            in_flight.append((row_number, future))
            if len(in_flight) >= workers:
                fold(*in_flight.popleft())
        while in_flight:
            fold(*in_flight.popleft())

    if stats.attempted < total:
        stats.cancelled = True
        logger.warning("Import cancelled: %d of %d rows not attempted", total - stats.attempted, total)

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from glitter_import.models.error_record import ErrorRecord

"""Error log buffering for import runs.

- JSON Lines, fixed schema (see ErrorRecord)
- one file per run: ``<logs_dir>/errors-YYYYMMDD-HHMMSS.log`` (UTC)
- records are buffered in memory and written on flush()
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
    "ERROR_PROJECT_CREATE",
    "ERROR_TAG_CREATE",
    "ERROR_TAG_RESOLUTION",
    "ERROR_TAG_LINK",
    "PARSER_WARNING",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"

ERROR_PROJECT_CREATE = "PROJECT_CREATE_ERROR"
ERROR_TAG_CREATE = "TAG_CREATE_ERROR"
ERROR_TAG_RESOLUTION = "TAG_RESOLUTION_ERROR"
ERROR_TAG_LINK = "TAG_LINK_ERROR"
PARSER_WARNING = "PARSER_WARNING"


class ErrorLogBuffer:
    """In-memory buffer for error records. flush() appends JSON Lines.

    The file path is fixed on first access so repeated flushes in one run go
    to the same file. Appends come from the orchestrator thread only.
    """
    def __init__(self, logs_dir: Path | str | None = None) -> None:
        self._logs_dir = Path(logs_dir) if logs_dir is not None else LOGS_DIR
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"errors-{stamp}.log"
        return self._file_path

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def __len__(self) -> int:
        return len(self._records)

    def flush(self) -> Path | None:
        """Write buffered records. Returns the log path, or None if nothing was buffered."""
        if not self._records:
            return None  # 空の場合はファイルを作らない
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp

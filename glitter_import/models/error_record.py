from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the JSON Lines error log.

One record is written per non-fatal problem of an import run (failed project
row, failed tag creation, failed tag link, parser warning). ``row`` is the
1-based data row index within the CSV; -1 marks problems that are not tied to
a single row (tag creation, parser warnings).
"""

__all__ = [
    "ErrorRecord",
    "ROW_UNKNOWN",
]

ROW_UNKNOWN = -1


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: CSV filename being imported
        row: Data row number (1-based), or -1 when not row-specific
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Human readable description (usually the storage error text)
    """
    timestamp: str
    file: str
    row: int
    error_type: str
    message: str

    @staticmethod
    def create(file: str, row: int, error_type: str, message: str) -> ErrorRecord:
        """Create a new ErrorRecord stamped with the current UTC time."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            row=row,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        """Serialize to a single JSON line (fixed key set)."""
        return json.dumps(asdict(self), ensure_ascii=False)

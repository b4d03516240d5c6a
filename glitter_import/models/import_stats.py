from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Union

"""Import statistics and per-row result models.

Each attempted row produces exactly one RowResult (RowSuccess or RowFailure).
Results are folded into ImportStats in row order by ``ImportStats.record``;
the row worker never lets a storage exception escape past the row boundary.
"""

__all__ = [
    "ImportOutcome",
    "RowSuccess",
    "RowFailure",
    "RowResult",
    "ImportStats",
]


class ImportOutcome(Enum):
    """Terminal classification of an import run.

    - ALL_SUCCEEDED: every row created, no tag warnings
    - SUCCEEDED_WITH_WARNINGS: every row created, at least one tag warning
    - PARTIAL_FAILURE: some rows failed, some succeeded
    - ALL_FAILED: every attempted row failed
    - NOTHING_TO_IMPORT: no row had a usable title
    - CANCELLED: the run was stopped before all rows were attempted
    """
    ALL_SUCCEEDED = "all_succeeded"
    SUCCEEDED_WITH_WARNINGS = "succeeded_with_warnings"
    PARTIAL_FAILURE = "partial_failure"
    ALL_FAILED = "all_failed"
    NOTHING_TO_IMPORT = "nothing_to_import"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class RowSuccess:
    index: int  # 0-based position among valid rows
    title: str
    project_id: str
    tag_warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class RowFailure:
    index: int
    title: str
    message: str


RowResult = Union[RowSuccess, RowFailure]


@dataclass
class ImportStats:
    """Counters and messages accumulated over one import run."""
    successful: int = 0
    failed: int = 0
    total: int = 0
    errors: list[str] = field(default_factory=list)
    tag_warnings: list[str] = field(default_factory=list)
    skipped_rows: int = 0  # 件名なしで除外された行 (total には含めない)
    created_tags: int = 0
    parser_warnings: list[str] = field(default_factory=list)
    cancelled: bool = False
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def attempted(self) -> int:
        return self.successful + self.failed

    @property
    def elapsed_seconds(self) -> float:
        if self.started_at is None or self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    @property
    def outcome(self) -> ImportOutcome:
        if self.cancelled:
            return ImportOutcome.CANCELLED
        if self.total == 0:
            return ImportOutcome.NOTHING_TO_IMPORT
        if self.failed > 0:
            if self.successful == 0:
                return ImportOutcome.ALL_FAILED
            return ImportOutcome.PARTIAL_FAILURE
        if self.tag_warnings:
            return ImportOutcome.SUCCEEDED_WITH_WARNINGS
        return ImportOutcome.ALL_SUCCEEDED

    def record(self, result: RowResult) -> None:
        """Fold one row result into the counters."""
        if isinstance(result, RowSuccess):
            self.successful += 1
            self.tag_warnings.extend(result.tag_warnings)
        else:
            self.failed += 1
            self.errors.append(result.message)

    def add_tag_warnings(self, warnings: list[str] | tuple[str, ...]) -> None:
        self.tag_warnings.extend(warnings)

"""Domain models for the CSV project importer.

Rows are normalized into PartialProject, turned into ProjectCreateDTO once tag
names are resolved, and every attempted row is reported as a RowResult folded
into ImportStats.
"""

from .error_record import ErrorRecord
from .import_stats import ImportOutcome, ImportStats, RowFailure, RowResult, RowSuccess
from .partial_project import (
    DEFAULT_STATUS,
    PROJECT_STATUSES,
    SKIP,
    PartialProject,
    Skip,
)
from .project_dto import ProjectCreateDTO
from .session import Session

__all__ = [
    # Row models
    "PartialProject",
    "Skip",
    "SKIP",
    "PROJECT_STATUSES",
    "DEFAULT_STATUS",
    "ProjectCreateDTO",
    # Run models
    "ImportOutcome",
    "ImportStats",
    "RowFailure",
    "RowResult",
    "RowSuccess",
    "ErrorRecord",
    "Session",
]

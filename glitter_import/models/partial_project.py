from __future__ import annotations

from dataclasses import dataclass
from typing import Final, Literal, get_args

"""PartialProject model: one normalized CSV row.

A PartialProject is produced once per valid row by the row normalizer and is
consumed when the creation request (ProjectCreateDTO) is built. Rows without a
resolvable title never become a PartialProject; the normalizer returns SKIP.
"""

__all__ = [
    "PROJECT_STATUSES",
    "DEFAULT_STATUS",
    "ProjectStatus",
    "KitCategory",
    "DrillShape",
    "PartialProject",
    "SKIP",
    "Skip",
]

ProjectStatus = Literal[
    "wishlist", "purchased", "stash", "progress", "completed", "archived", "destashed"
]
KitCategory = Literal["full", "mini"]
DrillShape = Literal["round", "square"]

PROJECT_STATUSES: Final[tuple[str, ...]] = get_args(ProjectStatus)
DEFAULT_STATUS: Final[ProjectStatus] = "wishlist"


class Skip:
    """Marker returned by the normalizer for rows that must be dropped."""

    _instance: Skip | None = None

    def __new__(cls) -> Skip:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SKIP"

    def __bool__(self) -> bool:
        return False


SKIP: Final = Skip()


@dataclass(frozen=True)
class PartialProject:
    """Normalized project fields extracted from one CSV row.

    Dates are ISO ``YYYY-MM-DD`` strings. ``tag_names`` keeps the raw tag
    names in row order and is an empty tuple when the row has no tags.
    """
    title: str
    status: ProjectStatus = DEFAULT_STATUS
    company: str | None = None
    artist: str | None = None
    drill_shape: DrillShape | None = None
    canvas_type: str | None = None
    drill_type: str | None = None
    kit_category: KitCategory | None = None
    width: int | float | None = None
    height: int | float | None = None
    total_diamonds: int | None = None
    notes: str | None = None
    source_url: str | None = None
    date_purchased: str | None = None
    date_started: str | None = None
    date_completed: str | None = None
    date_received: str | None = None
    tag_names: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.title or not self.title.strip():
            raise ValueError("PartialProject requires a non-empty title")

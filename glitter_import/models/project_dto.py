from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .partial_project import DEFAULT_STATUS, DrillShape, KitCategory, ProjectStatus

"""Creation request for one project.

The DTO carries resolved tag ids (never tag names) and the company/artist
*names*; the project creator turns those names into per-user references.
"""

__all__ = [
    "ProjectCreateDTO",
]


@dataclass(frozen=True)
class ProjectCreateDTO:
    user_id: str
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
    tag_ids: tuple[str, ...] = ()

    def to_record(self, *, company_id: str | None = None, artist_id: str | None = None) -> dict[str, Any]:
        """Build the ``projects`` record payload.

        Unset optional fields are omitted so the storage layer applies its own
        column defaults (kit_category in particular).
        """
        record: dict[str, Any] = {
            "user_id": self.user_id,
            "title": self.title,
            "status": self.status or DEFAULT_STATUS,
            "company_id": company_id,
            "artist_id": artist_id,
        }
        optional = {
            "drill_shape": self.drill_shape,
            "canvas_type": self.canvas_type,
            "drill_type": self.drill_type,
            "kit_category": self.kit_category,
            "width": self.width,
            "height": self.height,
            "total_diamonds": self.total_diamonds,
            "general_notes": self.notes,
            "source_url": self.source_url,
            "date_purchased": self.date_purchased,
            "date_started": self.date_started,
            "date_completed": self.date_completed,
            "date_received": self.date_received,
        }
        record.update({k: v for k, v in optional.items() if v is not None})
        return record

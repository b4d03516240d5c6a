from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

"""Record store interface consumed by the importer.

Every call is scoped to one user. Implementations raise StorageError for any
failure and UniqueViolationError when a per-user uniqueness constraint (tag
slug) rejects a write, so callers can retry with another slug.
"""

__all__ = [
    "StorageError",
    "UniqueViolationError",
    "TagRecord",
    "NAMED_COLLECTIONS",
    "RecordStore",
]

# Per-user lookup tables referenced by projects by name
NAMED_COLLECTIONS = ("companies", "artists")


class StorageError(Exception):
    pass


class UniqueViolationError(StorageError):
    pass


@dataclass(frozen=True)
class TagRecord:
    id: str
    name: str
    slug: str
    color: str | None = None


@runtime_checkable
class RecordStore(Protocol):
    def list_tags(self, user_id: str) -> list[TagRecord]:
        """All tags owned by ``user_id``."""
        ...

    def slug_exists(self, user_id: str, slug: str) -> bool:
        ...

    def create_tag(self, user_id: str, *, name: str, slug: str, color: str) -> TagRecord:
        ...

    def find_named(self, collection: str, user_id: str, name: str) -> str | None:
        """Id of the company/artist called ``name`` for ``user_id``, if any."""
        ...

    def create_named(self, collection: str, user_id: str, name: str) -> str:
        ...

    def create_project(self, record: dict[str, Any]) -> str:
        """Insert a project and return its id."""
        ...

    def link_tag(self, project_id: str, tag_id: str) -> None:
        ...

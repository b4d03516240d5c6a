from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field

from ..models.project_dto import ProjectCreateDTO
from ..storage.base import RecordStore, StorageError

"""Project creation: one DTO -> one persisted project plus its tag links.

Company and artist are per-user records referenced by id; they are looked up
by exact name and created when missing. A failure there is logged and the
reference is left empty, it does not fail the project. Placeholder names
("other", and "unknown" for artists) are not turned into records. Lookups are
serialized and cached per creator, so rows sharing a new company under a
worker pool create it once.

A failure creating the project itself propagates to the caller (the row
worker). Tag link failures are collected in TagLinkResult and never propagate.
"""

__all__ = [
    "TagLinkResult",
    "ProjectCreator",
    "format_link_warning",
    "PLACEHOLDER_NAMES",
]

logger = logging.getLogger(__name__)

# collection -> lower-cased names that never become records
PLACEHOLDER_NAMES: dict[str, frozenset[str]] = {
    "companies": frozenset({"other"}),
    "artists": frozenset({"other", "unknown"}),
}


@dataclass
class TagLinkResult:
    total: int = 0
    successful: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)


def format_link_warning(title: str, links: TagLinkResult) -> str | None:
    """Tag warning for a project whose tags did not all link (None when all did)."""
    if links.failed == 0:
        return None
    lines = [f'Project "{title}": {links.failed} out of {links.total} tags failed to link']
    lines.extend(f"  - {e}" for e in links.errors)
    return "\n".join(lines)


class ProjectCreator:
    def __init__(self, store: RecordStore) -> None:
        self._store = store
        self._lock = threading.Lock()
        self._references: dict[tuple[str, str, str], str] = {}

    def _reference(self, collection: str, user_id: str, name: str | None) -> str | None:
        if not name or name.strip().lower() in PLACEHOLDER_NAMES.get(collection, ()):
            return None
        key = (collection, user_id, name)
        # find -> create を 1 つのロック内で行い、同名レコードの二重作成を防ぐ
        with self._lock:
            if key in self._references:
                return self._references[key]
            try:
                found = self._store.find_named(collection, user_id, name)
                ref_id = found or self._store.create_named(collection, user_id, name)
            except StorageError as e:
                logger.warning("Could not resolve %s %r: %s", collection, name, e)
                return None
            self._references[key] = ref_id
            return ref_id

    def create(self, dto: ProjectCreateDTO) -> tuple[str, TagLinkResult]:
        """Create the project and link its tags.

        Returns:
            (project_id, TagLinkResult)

        Raises:
            StorageError: the project record could not be created
        """
        company_id = self._reference("companies", dto.user_id, dto.company)
        artist_id = self._reference("artists", dto.user_id, dto.artist)

        project_id = self._store.create_project(
            dto.to_record(company_id=company_id, artist_id=artist_id)
        )
        if not project_id:
            raise StorageError("Project creation failed: no valid project ID returned")

        links = TagLinkResult(total=len(dto.tag_ids))
        for tag_id in dto.tag_ids:
            try:
                self._store.link_tag(project_id, tag_id)
                links.successful += 1
            except StorageError as e:
                links.failed += 1
                links.errors.append(f"Tag {tag_id}: {e}")
        if links.failed:
            logger.warning(
                "Project %r: %d/%d tag links failed", dto.title, links.failed, links.total
            )
        return project_id, links

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from ..storage.base import RecordStore, StorageError, UniqueViolationError
from .slug import MAX_SLUG_ATTEMPTS, slug_candidates

"""Tag name resolution for one import run.

Builds the TagNameMap (exact tag name -> tag id) from the user's existing tags
and creates the missing ones one at a time. Creation is sequential so two new
names that slugify identically ("Cute!" / "cute") never both pass the
existence check; the storage unique constraint still has the last word and a
violation moves on to the next slug candidate.
"""

__all__ = [
    "TagNameMap",
    "TagResolution",
    "TagResolver",
    "unique_tag_names",
]

logger = logging.getLogger(__name__)

TagNameMap = dict[str, str]


@dataclass
class TagResolution:
    """Result of resolving the batch's tag names.

    Attributes:
        tag_map: exact name -> tag id (existing and newly created tags)
        warnings: one message per tag that could not be created
        created: names created during this run, in creation order
        listing_error: warning recorded when the existing tags could not be listed
    """
    tag_map: TagNameMap = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    created: list[str] = field(default_factory=list)
    listing_error: str | None = None


def unique_tag_names(tag_lists: Iterable[Iterable[str]]) -> list[str]:
    """Flatten per-row tag names into a de-duplicated list (first-seen order)."""
    seen: dict[str, None] = {}
    for names in tag_lists:
        for name in names:
            if name and name not in seen:
                seen[name] = None
    return list(seen)


class TagResolver:
    def __init__(
        self,
        store: RecordStore,
        user_id: str,
        *,
        default_color: str = "#3B82F6",
        max_slug_attempts: int = MAX_SLUG_ATTEMPTS,
        on_tags_listed: Callable[[], None] | None = None,
        on_tag_processed: Callable[[int, int], None] | None = None,
    ) -> None:
        self._store = store
        self._user_id = user_id
        self._default_color = default_color
        self._max_slug_attempts = max_slug_attempts
        self._on_tags_listed = on_tags_listed
        self._on_tag_processed = on_tag_processed

    def resolve(self, names: Iterable[str]) -> TagResolution:
        """Resolve ``names`` to tag ids, creating the ones the user does not have.

        Never raises for a storage problem. When the existing tags cannot be
        listed, nothing is created and the map stays empty. A failed creation
        becomes a warning and the remaining names are still processed.
        """
        result = TagResolution()
        wanted = unique_tag_names([names])
        if not wanted:
            return result

        try:
            existing = self._store.list_tags(self._user_id)
        except StorageError as e:
            logger.warning("Listing existing tags failed: %s", e)
            result.listing_error = f"Critical error during batch tag processing: {e}"
            result.warnings.append(result.listing_error)
            return result
        if self._on_tags_listed is not None:
            self._on_tags_listed()

        # 既存タグは名前の完全一致で引く (大文字小文字は区別)
        for tag in existing:
            result.tag_map.setdefault(tag.name, tag.id)

        new_names = [n for n in wanted if n not in result.tag_map]
        logger.debug(
            "Tags: %d referenced, %d existing, %d to create",
            len(wanted), len(wanted) - len(new_names), len(new_names),
        )

        for done, name in enumerate(new_names, start=1):
            try:
                result.tag_map[name] = self._create(name)
                result.created.append(name)
            except StorageError as e:
                logger.warning("Failed to pre-create tag %r: %s", name, e)
                result.warnings.append(f"Failed to pre-create tag: {name} ({e})")
            if self._on_tag_processed is not None:
                self._on_tag_processed(done, len(new_names))

        return result

    def _slug_taken(self, slug: str) -> bool:
        try:
            return self._store.slug_exists(self._user_id, slug)
        except StorageError as e:
            # 判定不能なら未使用とみなし、一意制約違反で次候補へ進む
            logger.warning("Slug lookup failed for %r: %s", slug, e)
            return False

    def _create(self, name: str) -> str:
        last_error: UniqueViolationError | None = None
        for slug in slug_candidates(name, self._max_slug_attempts):
            if self._slug_taken(slug):
                continue
            try:
                tag = self._store.create_tag(
                    self._user_id, name=name, slug=slug, color=self._default_color
                )
            except UniqueViolationError as e:
                logger.debug("Slug %r rejected by storage, trying next candidate", slug)
                last_error = e
                continue
            logger.debug("Created tag %r (slug=%s)", name, slug)
            return tag.id
        raise last_error or StorageError(f"no free slug for tag {name!r}")

from __future__ import annotations

import threading
import uuid
from typing import Any

from .base import NAMED_COLLECTIONS, StorageError, TagRecord, UniqueViolationError

"""In-memory record store.

Used for mock mode (no database reachable) and tests. Enforces the same
per-user tag slug uniqueness the PostgreSQL schema does.
"""

__all__ = [
    "InMemoryRecordStore",
]


def _new_id() -> str:
    return uuid.uuid4().hex[:15]


class InMemoryRecordStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.tags: dict[str, dict[str, Any]] = {}
        self.projects: dict[str, dict[str, Any]] = {}
        self.project_tags: list[tuple[str, str]] = []
        self.named: dict[str, dict[str, dict[str, Any]]] = {c: {} for c in NAMED_COLLECTIONS}

    def add_tag(self, user_id: str, name: str, slug: str | None = None, color: str | None = None) -> TagRecord:
        """Seed helper: insert a tag directly (slug defaults to the lower-cased name)."""
        return self.create_tag(user_id, name=name, slug=slug or name.lower(), color=color or "")

    def list_tags(self, user_id: str) -> list[TagRecord]:
        with self._lock:
            return [
                TagRecord(id=tid, name=t["name"], slug=t["slug"], color=t["color"])
                for tid, t in self.tags.items()
                if t["user_id"] == user_id
            ]

    def slug_exists(self, user_id: str, slug: str) -> bool:
        with self._lock:
            return any(t["user_id"] == user_id and t["slug"] == slug for t in self.tags.values())

    def create_tag(self, user_id: str, *, name: str, slug: str, color: str) -> TagRecord:
        with self._lock:
            if any(t["user_id"] == user_id and t["slug"] == slug for t in self.tags.values()):
                raise UniqueViolationError(f"tag slug already exists: {slug}")
            tid = _new_id()
            self.tags[tid] = {"user_id": user_id, "name": name, "slug": slug, "color": color}
            return TagRecord(id=tid, name=name, slug=slug, color=color)

    def _collection(self, collection: str) -> dict[str, dict[str, Any]]:
        if collection not in self.named:
            raise StorageError(f"unknown collection: {collection}")
        return self.named[collection]

    def find_named(self, collection: str, user_id: str, name: str) -> str | None:
        with self._lock:
            for rid, rec in self._collection(collection).items():
                if rec["user_id"] == user_id and rec["name"] == name:
                    return rid
            return None

    def create_named(self, collection: str, user_id: str, name: str) -> str:
        with self._lock:
            rid = _new_id()
            self._collection(collection)[rid] = {"user_id": user_id, "name": name}
            return rid

    def create_project(self, record: dict[str, Any]) -> str:
        if not record.get("title"):
            raise StorageError("title is required")
        if not record.get("user_id"):
            raise StorageError("user_id is required")
        with self._lock:
            pid = _new_id()
            stored = {"kit_category": "full", **record}
            self.projects[pid] = stored
            return pid

    def link_tag(self, project_id: str, tag_id: str) -> None:
        with self._lock:
            if project_id not in self.projects:
                raise StorageError(f"project not found: {project_id}")
            if tag_id not in self.tags:
                raise StorageError(f"tag not found: {tag_id}")
            self.project_tags.append((project_id, tag_id))

    def tags_of(self, project_id: str) -> list[str]:
        """Names of the tags linked to ``project_id`` (test/inspection helper)."""
        with self._lock:
            return [self.tags[t]["name"] for p, t in self.project_tags if p == project_id]

from __future__ import annotations

import os
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import psycopg2
from psycopg2 import errors as pg_errors

from ..config.loader import DatabaseConfig
from .base import NAMED_COLLECTIONS, StorageError, TagRecord, UniqueViolationError

"""PostgreSQL record store (psycopg2).

Each store call runs in its own transaction: the connection context manager
commits on success and rolls back on error, so one failed row never leaves a
half-written project behind and never poisons the next call.

Per-user slug uniqueness is enforced by ``UNIQUE (user_id, slug)`` on
``tags``; a violation surfaces as UniqueViolationError.
"""

__all__ = [
    "SCHEMA_SQL",
    "PROJECT_COLUMNS",
    "PostgresRecordStore",
    "ensure_schema",
    "resolve_dsn",
    "connect",
]

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS tags (
    id text PRIMARY KEY DEFAULT replace(gen_random_uuid()::text, '-', ''),
    user_id text NOT NULL,
    name text NOT NULL,
    slug text NOT NULL,
    color text,
    created timestamptz NOT NULL DEFAULT now(),
    CONSTRAINT tags_user_slug_key UNIQUE (user_id, slug)
);
CREATE TABLE IF NOT EXISTS companies (
    id text PRIMARY KEY DEFAULT replace(gen_random_uuid()::text, '-', ''),
    user_id text NOT NULL,
    name text NOT NULL
);
CREATE TABLE IF NOT EXISTS artists (
    id text PRIMARY KEY DEFAULT replace(gen_random_uuid()::text, '-', ''),
    user_id text NOT NULL,
    name text NOT NULL
);
CREATE TABLE IF NOT EXISTS projects (
    id text PRIMARY KEY DEFAULT replace(gen_random_uuid()::text, '-', ''),
    user_id text NOT NULL,
    title text NOT NULL CHECK (length(title) > 0),
    status text NOT NULL DEFAULT 'wishlist' CHECK (status IN (
        'wishlist', 'purchased', 'stash', 'progress', 'completed', 'archived', 'destashed'
    )),
    company_id text REFERENCES companies (id),
    artist_id text REFERENCES artists (id),
    drill_shape text,
    canvas_type text,
    drill_type text,
    kit_category text NOT NULL DEFAULT 'full',
    width numeric,
    height numeric,
    total_diamonds integer CHECK (total_diamonds >= 0),
    general_notes text,
    source_url text,
    date_purchased date,
    date_started date,
    date_completed date,
    date_received date,
    created timestamptz NOT NULL DEFAULT now()
);
CREATE TABLE IF NOT EXISTS project_tags (
    project_id text NOT NULL REFERENCES projects (id) ON DELETE CASCADE,
    tag_id text NOT NULL REFERENCES tags (id) ON DELETE CASCADE,
    PRIMARY KEY (project_id, tag_id)
);
"""

PROJECT_COLUMNS = frozenset({
    "user_id",
    "title",
    "status",
    "company_id",
    "artist_id",
    "drill_shape",
    "canvas_type",
    "drill_type",
    "kit_category",
    "width",
    "height",
    "total_diamonds",
    "general_notes",
    "source_url",
    "date_purchased",
    "date_started",
    "date_completed",
    "date_received",
})


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    """Resolve the connection string.

    優先順位:
        1. DATABASE_URL / PGDSN 環境変数 (DSN 全体)
        2. 個別 PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
        3. config の database セクション (不足分のフォールバック)
    """
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def connect(db_cfg: DatabaseConfig) -> Iterator[Any]:  # pragma: no cover (thin wrapper)
    """Open a psycopg2 connection and close it on exit."""
    conn = psycopg2.connect(resolve_dsn(db_cfg))
    try:
        yield conn
    finally:
        conn.close()


def ensure_schema(conn: Any) -> None:
    with conn:
        with conn.cursor() as cur:
            cur.execute(SCHEMA_SQL)


class PostgresRecordStore:
    """RecordStore backed by one psycopg2 connection.

    Calls are serialized with a lock; psycopg2 connections must not run two
    transactions at once.
    """

    def __init__(self, conn: Any) -> None:
        self._conn = conn
        self._lock = threading.Lock()

    @contextmanager
    def _cursor(self) -> Iterator[Any]:
        with self._lock:
            try:
                with self._conn:
                    with self._conn.cursor() as cur:
                        yield cur
            except pg_errors.UniqueViolation as e:
                raise UniqueViolationError(str(e).strip()) from e
            except psycopg2.Error as e:
                raise StorageError(str(e).strip() or type(e).__name__) from e

    def list_tags(self, user_id: str) -> list[TagRecord]:
        with self._cursor() as cur:
            cur.execute(
                "SELECT id, name, slug, color FROM tags WHERE user_id = %s ORDER BY created",
                (user_id,),
            )
            rows = cur.fetchall()
        return [TagRecord(id=r[0], name=r[1], slug=r[2], color=r[3]) for r in rows]

    def slug_exists(self, user_id: str, slug: str) -> bool:
        with self._cursor() as cur:
            cur.execute(
                "SELECT 1 FROM tags WHERE user_id = %s AND slug = %s LIMIT 1",
                (user_id, slug),
            )
            return cur.fetchone() is not None

    def create_tag(self, user_id: str, *, name: str, slug: str, color: str) -> TagRecord:
        with self._cursor() as cur:
            cur.execute(
                "INSERT INTO tags (user_id, name, slug, color) VALUES (%s, %s, %s, %s) RETURNING id",
                (user_id, name, slug, color),
            )
            row = cur.fetchone()
        if not row:
            raise StorageError(f"tag insert returned no id: {name}")
        return TagRecord(id=row[0], name=name, slug=slug, color=color)

    @staticmethod
    def _table(collection: str) -> str:
        if collection not in NAMED_COLLECTIONS:
            raise StorageError(f"unknown collection: {collection}")
        return collection

    def find_named(self, collection: str, user_id: str, name: str) -> str | None:
        table = self._table(collection)
        with self._cursor() as cur:
            cur.execute(
                f"SELECT id FROM {table} WHERE user_id = %s AND name = %s LIMIT 1",
                (user_id, name),
            )
            row = cur.fetchone()
        return row[0] if row else None

    def create_named(self, collection: str, user_id: str, name: str) -> str:
        table = self._table(collection)
        with self._cursor() as cur:
            cur.execute(
                f"INSERT INTO {table} (user_id, name) VALUES (%s, %s) RETURNING id",
                (user_id, name),
            )
            row = cur.fetchone()
        if not row:
            raise StorageError(f"{table} insert returned no id: {name}")
        return row[0]

    def create_project(self, record: dict[str, Any]) -> str:
        unknown = set(record) - PROJECT_COLUMNS
        if unknown:
            raise StorageError(f"unknown project columns: {sorted(unknown)}")
        columns = list(record)
        cols_sql = ",".join(f'"{c}"' for c in columns)
        placeholders = ",".join(["%s"] * len(columns))
        with self._cursor() as cur:
            cur.execute(
                f"INSERT INTO projects ({cols_sql}) VALUES ({placeholders}) RETURNING id",
                [record[c] for c in columns],
            )
            row = cur.fetchone()
        if not row or not row[0]:
            raise StorageError("Project creation failed: no valid project ID returned")
        return row[0]

    def link_tag(self, project_id: str, tag_id: str) -> None:
        with self._cursor() as cur:
            cur.execute(
                "INSERT INTO project_tags (project_id, tag_id) VALUES (%s, %s)",
                (project_id, tag_id),
            )

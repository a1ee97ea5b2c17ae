# =============================================================================
# bhakti_core/offline/migrations.py
# Additive Schema Migrations for the Local Database
# =============================================================================
"""
Schema history of the local content database.

Every step is additive: a migration may add columns to an existing table or
create a new table, never rename or drop. Steps are idempotent, so replaying
a migration that was already applied leaves the schema unchanged. The
applied version lives in ``PRAGMA user_version``.

Version 1 is the first single-table shape; version 5 adds the
language-partitioned ``deities_<lang>`` / ``stotras_<lang>`` tables that the
app reads from today.
"""

from __future__ import annotations
import sqlite3
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Union
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Column:
    name: str
    type: str = "TEXT"
    indexed: bool = False

    def ddl(self) -> str:
        return f"{self.name} {self.type}"


@dataclass(frozen=True)
class CreateTable:
    name: str
    columns: Sequence[Column]

    def apply(self, conn: sqlite3.Connection) -> None:
        cols = ", ".join(["id INTEGER PRIMARY KEY AUTOINCREMENT"] + [c.ddl() for c in self.columns])
        conn.execute(f"CREATE TABLE IF NOT EXISTS {self.name} ({cols})")
        _create_indexes(conn, self.name, self.columns)


@dataclass(frozen=True)
class AddColumns:
    table: str
    columns: Sequence[Column]

    def apply(self, conn: sqlite3.Connection) -> None:
        existing = table_columns(conn, self.table)
        for column in self.columns:
            if column.name in existing:
                continue
            conn.execute(f"ALTER TABLE {self.table} ADD COLUMN {column.ddl()}")
            logger.debug(f"Added column {self.table}.{column.name}")
        _create_indexes(conn, self.table, self.columns)


Step = Union[CreateTable, AddColumns]


@dataclass(frozen=True)
class Migration:
    to_version: int
    steps: Sequence[Step] = field(default_factory=tuple)


def _create_indexes(conn: sqlite3.Connection, table: str, columns: Sequence[Column]) -> None:
    for column in columns:
        if column.indexed:
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{table}_{column.name} ON {table} ({column.name})"
            )


def _deity_columns() -> List[Column]:
    return [
        Column("deity_id", indexed=True),
        Column("name"),
        Column("name_english"),
        Column("image"),
    ]


def _stotra_columns() -> List[Column]:
    return [
        Column("stotra_id", indexed=True),
        Column("title"),
        Column("title_english"),
        Column("content"),
        Column("deity_id", indexed=True),
        Column("is_favorite", "INTEGER DEFAULT 0"),
        Column("version_timestamp", "INTEGER DEFAULT 0"),
    ]


MIGRATIONS: List[Migration] = [
    Migration(1, (
        CreateTable("deities", (Column("name"), Column("image"))),
        CreateTable("stotras", (
            Column("title"),
            Column("content"),
            Column("deity_id", indexed=True),
            Column("is_favorite", "INTEGER DEFAULT 0"),
        )),
    )),
    Migration(2, (
        AddColumns("deities", (Column("name_telugu"), Column("name_kannada"))),
        AddColumns("stotras", (
            Column("stotra_id", indexed=True),
            Column("title_telugu"),
            Column("text_telugu"),
            Column("title_kannada"),
            Column("text_kannada"),
            Column("version_timestamp", "INTEGER DEFAULT 0"),
        )),
    )),
    Migration(3, (
        AddColumns("deities", (Column("name_english"),)),
    )),
    Migration(4, (
        AddColumns("stotras", (Column("title_english"),)),
    )),
    Migration(5, (
        CreateTable("deities_telugu", _deity_columns()),
        CreateTable("stotras_telugu", _stotra_columns()),
        CreateTable("deities_kannada", _deity_columns()),
        CreateTable("stotras_kannada", _stotra_columns()),
    )),
]

SCHEMA_VERSION = MIGRATIONS[-1].to_version


def table_columns(conn: sqlite3.Connection, table: str) -> List[str]:
    return [row[1] for row in conn.execute(f"PRAGMA table_info({table})").fetchall()]


def describe_schema(conn: sqlite3.Connection) -> Dict[str, List[str]]:
    """Map every user table to its column names."""
    tables = conn.execute(
        "SELECT name FROM sqlite_master WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
    ).fetchall()
    return {row[0]: table_columns(conn, row[0]) for row in tables}


def get_schema_version(conn: sqlite3.Connection) -> int:
    return conn.execute("PRAGMA user_version").fetchone()[0]


def apply_migration(conn: sqlite3.Connection, migration: Migration) -> None:
    """Apply every step of one migration. Safe to call more than once."""
    for step in migration.steps:
        step.apply(conn)


def migrate(conn: sqlite3.Connection, target: int = SCHEMA_VERSION) -> int:
    """
    Bring the schema up to ``target`` and return the resulting version.

    The caller owns the transaction.
    """
    current = get_schema_version(conn)
    for migration in MIGRATIONS:
        if current < migration.to_version <= target:
            apply_migration(conn, migration)
            conn.execute(f"PRAGMA user_version = {int(migration.to_version)}")
            logger.info(f"Local schema migrated to version {migration.to_version}")
            current = migration.to_version
    return current

# =============================================================================
# bhakti_core/offline/local_database.py
# Local SQLite Database for Offline Reading
# =============================================================================
"""
LocalDatabase - SQLite storage that mirrors the remote content collections.

Features:
- Versioned, additive schema migrations
- Language-partitioned tables (deities_<lang>, stotras_<lang>)
- Write transactions (all-or-nothing)
- DataFrame integration (pandas)
- Key-value app settings table
"""

from __future__ import annotations
import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union
import logging

import pandas as pd

from bhakti_core.errors import LocalStorageError
from bhakti_core.offline.entities import Deity, Language, Stotra, now_ms
from bhakti_core.offline.migrations import SCHEMA_VERSION, get_schema_version, migrate

logger = logging.getLogger(__name__)

CONTENT_KINDS = ("deities", "stotras")


class UpsertOutcome(Enum):
    """What an upsert did to the local row."""
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"  # parent deity not present locally


def table_for(kind: str, language: Union[Language, str]) -> str:
    """Name of the language-partitioned table for a content kind."""
    if kind not in CONTENT_KINDS:
        raise ValueError(f"Unknown content kind: {kind}")
    return f"{kind}_{Language.parse(language).value}"


class LocalDatabase:
    """
    Local SQLite database for offline content.

    Pass an instance explicitly to the services that need it; tests create
    a fresh database per test case.
    """

    DEFAULT_DB_PATH = Path(__file__).parent.parent.parent / "local_data" / "bhaktivani.db"

    SETTINGS_SCHEMA = """
        CREATE TABLE IF NOT EXISTS app_settings (
            key TEXT PRIMARY KEY,
            value TEXT,
            updated_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
    """

    def __init__(self, db_path: Optional[Union[str, Path]] = None):
        """
        Initialize local database.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path) if db_path else self.DEFAULT_DB_PATH
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._local = threading.local()
        self._initialized = False

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if getattr(self._local, "connection", None) is None:
            conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            conn.row_factory = sqlite3.Row
            self._local.connection = conn
            self._local.depth = 0
        return self._local.connection

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Context manager for a write transaction.

        Nested use joins the outer transaction; only the outermost block
        commits or rolls back. SQLite errors are raised as LocalStorageError.
        """
        conn = self._get_connection()
        outermost = self._local.depth == 0
        self._local.depth += 1
        try:
            yield conn
            if outermost:
                conn.commit()
        except sqlite3.Error as e:
            if outermost:
                conn.rollback()
            raise LocalStorageError(f"Local database write failed: {e}", operation="transaction") from e
        except Exception:
            if outermost:
                conn.rollback()
            raise
        finally:
            self._local.depth -= 1

    def initialize(self) -> int:
        """Create the settings table and apply pending schema migrations."""
        if self._initialized:
            return SCHEMA_VERSION

        with self.transaction() as conn:
            conn.execute(self.SETTINGS_SCHEMA)
            version = migrate(conn)

        self._initialized = True
        logger.info(f"Local database initialized at: {self.db_path} (schema v{version})")
        return version

    @property
    def schema_version(self) -> int:
        return get_schema_version(self._get_connection())

    # =========================================================================
    # CONTENT WRITES
    # =========================================================================

    def _insert_deity(self, conn: sqlite3.Connection, deity: Deity, preserve_id: bool) -> None:
        columns = ["deity_id", "name", "name_english", "image"]
        values = [deity.deity_id, deity.name, deity.name_english, deity.image]
        if preserve_id and deity.id is not None:
            columns.insert(0, "id")
            values.insert(0, deity.id)
        placeholders = ", ".join(["?" for _ in columns])
        cursor = conn.execute(
            f"INSERT INTO {table_for('deities', deity.language)} ({', '.join(columns)}) VALUES ({placeholders})",
            values
        )
        if not (preserve_id and deity.id is not None):
            deity.id = cursor.lastrowid

    def _insert_stotra(self, conn: sqlite3.Connection, stotra: Stotra, preserve_id: bool) -> None:
        columns = [
            "stotra_id", "deity_id", "title", "title_english",
            "content", "is_favorite", "version_timestamp",
        ]
        values = [
            stotra.stotra_id, stotra.deity_id, stotra.title, stotra.title_english,
            stotra.content, int(stotra.is_favorite), stotra.version_timestamp,
        ]
        if preserve_id and stotra.id is not None:
            columns.insert(0, "id")
            values.insert(0, stotra.id)
        placeholders = ", ".join(["?" for _ in columns])
        cursor = conn.execute(
            f"INSERT INTO {table_for('stotras', stotra.language)} ({', '.join(columns)}) VALUES ({placeholders})",
            values
        )
        if not (preserve_id and stotra.id is not None):
            stotra.id = cursor.lastrowid

    def replace_language_content(
        self,
        language: Language,
        deities: Iterable[Deity],
        stotras: Iterable[Stotra],
        preserve_ids: bool = False,
    ) -> Tuple[int, int, int]:
        """
        Delete every row of a language and insert the given records.

        Runs in one transaction. Stotras whose deity is not among ``deities``
        are skipped.

        Returns:
            (deities inserted, stotras inserted, stotras skipped)
        """
        language = Language.parse(language)
        deity_table = table_for("deities", language)
        stotra_table = table_for("stotras", language)
        deity_count = stotra_count = skipped = 0

        with self.transaction() as conn:
            conn.execute(f"DELETE FROM {stotra_table}")
            conn.execute(f"DELETE FROM {deity_table}")

            known = set()
            for deity in deities:
                deity.language = language
                self._insert_deity(conn, deity, preserve_ids)
                known.add(deity.deity_id)
                deity_count += 1

            for stotra in stotras:
                if stotra.deity_id not in known:
                    logger.warning(f"Skipping stotra {stotra.stotra_id}: deity {stotra.deity_id} not found")
                    skipped += 1
                    continue
                stotra.language = language
                self._insert_stotra(conn, stotra, preserve_ids)
                stotra_count += 1

        logger.info(
            f"Replaced {language.value} content: {deity_count} deities, "
            f"{stotra_count} stotras ({skipped} skipped)"
        )
        return deity_count, stotra_count, skipped

    def upsert_stotra(self, stotra: Stotra) -> UpsertOutcome:
        """
        Create or update a stotra keyed by its external identifier.

        Updates never touch ``is_favorite``. A new stotra whose deity is not
        present locally is skipped.
        """
        stotra_table = table_for("stotras", stotra.language)
        deity_table = table_for("deities", stotra.language)

        with self.transaction() as conn:
            existing = conn.execute(
                f"SELECT id FROM {stotra_table} WHERE stotra_id = ?",
                [stotra.stotra_id]
            ).fetchone()

            if existing is not None:
                conn.execute(
                    f"""
                    UPDATE {stotra_table}
                    SET title = ?, title_english = ?, content = ?, version_timestamp = ?
                    WHERE id = ?
                    """,
                    [stotra.title, stotra.title_english, stotra.content,
                     stotra.version_timestamp, existing["id"]]
                )
                stotra.id = existing["id"]
                return UpsertOutcome.UPDATED

            deity = conn.execute(
                f"SELECT id FROM {deity_table} WHERE deity_id = ?",
                [stotra.deity_id]
            ).fetchone()
            if deity is None:
                return UpsertOutcome.SKIPPED

            stotra.is_favorite = False
            self._insert_stotra(conn, stotra, preserve_id=False)
            return UpsertOutcome.CREATED

    def set_favorite(self, stotra_id: str, language: Language, is_favorite: bool) -> bool:
        """Set the favorite flag of one stotra. Returns False if not found."""
        with self.transaction() as conn:
            cursor = conn.execute(
                f"UPDATE {table_for('stotras', language)} SET is_favorite = ? WHERE stotra_id = ?",
                [int(bool(is_favorite)), stotra_id]
            )
            return cursor.rowcount > 0

    def clear_language(self, language: Language) -> None:
        """Delete every row of one language."""
        with self.transaction() as conn:
            conn.execute(f"DELETE FROM {table_for('stotras', language)}")
            conn.execute(f"DELETE FROM {table_for('deities', language)}")

    # =========================================================================
    # CONTENT READS
    # =========================================================================

    def find_deity(self, deity_id: str, language: Language) -> Optional[Deity]:
        language = Language.parse(language)
        row = self._get_connection().execute(
            f"SELECT * FROM {table_for('deities', language)} WHERE deity_id = ?",
            [deity_id]
        ).fetchone()
        return Deity.from_row(row, language) if row else None

    def find_stotra(self, stotra_id: str, language: Language) -> Optional[Stotra]:
        language = Language.parse(language)
        row = self._get_connection().execute(
            f"SELECT * FROM {table_for('stotras', language)} WHERE stotra_id = ?",
            [stotra_id]
        ).fetchone()
        return Stotra.from_row(row, language) if row else None

    def list_deities(self, language: Language) -> List[Deity]:
        language = Language.parse(language)
        rows = self._get_connection().execute(
            f"SELECT * FROM {table_for('deities', language)} ORDER BY id"
        ).fetchall()
        return [Deity.from_row(row, language) for row in rows]

    def list_stotras(
        self,
        language: Language,
        deity_id: Optional[str] = None,
        favorites_only: bool = False,
    ) -> List[Stotra]:
        """Stotras of a language, optionally filtered by deity and favorite flag."""
        language = Language.parse(language)
        query = f"SELECT * FROM {table_for('stotras', language)}"
        clauses, params = [], []
        if deity_id is not None:
            clauses.append("deity_id = ?")
            params.append(deity_id)
        if favorites_only:
            clauses.append("is_favorite = 1")
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY id"

        rows = self._get_connection().execute(query, params).fetchall()
        return [Stotra.from_row(row, language) for row in rows]

    def count(self, kind: str, language: Language) -> int:
        row = self._get_connection().execute(
            f"SELECT COUNT(*) AS count FROM {table_for(kind, language)}"
        ).fetchone()
        return row["count"]

    def to_dataframe(self, kind: str, language: Language) -> pd.DataFrame:
        """Load one content table into a pandas DataFrame."""
        return pd.read_sql_query(
            f"SELECT * FROM {table_for(kind, language)}",
            self._get_connection()
        )

    # =========================================================================
    # LEGACY DATA MIGRATION
    # =========================================================================

    def migrate_legacy_content(self, language: Language) -> int:
        """
        Copy rows of the pre-v5 ``deities``/``stotras`` tables into the
        language tables.

        Only runs when the language tables are empty, so it is safe to call
        on every start. Legacy deities had no external identifier; the image
        name served as one. Stotras without an identifier get
        ``stotra_<row id>_<millis>``.

        Returns:
            Number of stotras copied
        """
        language = Language.parse(language)
        lang = language.value
        deity_table = table_for("deities", language)
        migrated = 0

        with self.transaction() as conn:
            if conn.execute(f"SELECT COUNT(*) FROM {deity_table}").fetchone()[0] > 0:
                return 0

            legacy_deities = conn.execute("SELECT * FROM deities ORDER BY id").fetchall()
            if not legacy_deities:
                return 0

            timestamp = now_ms()
            deity_ids: Dict[str, str] = {}
            for row in legacy_deities:
                deity = Deity(
                    deity_id=row["image"] or f"deity_{row['id']}",
                    name=row[f"name_{lang}"] or row["name"] or "",
                    name_english=row["name_english"] or "",
                    image=row["image"] or "",
                    language=language,
                )
                self._insert_deity(conn, deity, preserve_id=False)
                deity_ids[str(row["id"])] = deity.deity_id

            for row in conn.execute("SELECT * FROM stotras ORDER BY id").fetchall():
                deity_id = deity_ids.get(str(row["deity_id"]))
                if deity_id is None:
                    logger.warning(f"Legacy stotra {row['id']} has no deity; not migrated")
                    continue
                stotra = Stotra(
                    stotra_id=row["stotra_id"] or f"stotra_{row['id']}_{timestamp}",
                    deity_id=deity_id,
                    title=row[f"title_{lang}"] or row["title"] or "",
                    title_english=row["title_english"] or "",
                    content=row[f"text_{lang}"] or row["content"] or "",
                    is_favorite=bool(row["is_favorite"]),
                    version_timestamp=row["version_timestamp"] or timestamp,
                    language=language,
                )
                self._insert_stotra(conn, stotra, preserve_id=False)
                migrated += 1

        logger.info(f"Migrated {len(deity_ids)} legacy deities and {migrated} stotras into {lang} tables")
        return migrated

    # =========================================================================
    # SETTINGS
    # =========================================================================

    def get_setting(self, key: str, default: Any = None) -> Any:
        """Get an app setting."""
        row = self._get_connection().execute(
            "SELECT value FROM app_settings WHERE key = ?",
            [key]
        ).fetchone()
        if row is None:
            return default
        try:
            return json.loads(row["value"])
        except (json.JSONDecodeError, TypeError):
            return row["value"]

    def set_setting(self, key: str, value: Any) -> None:
        """Set an app setting."""
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO app_settings (key, value, updated_at)
                VALUES (?, ?, ?)
                """,
                [key, json.dumps(value), datetime.now().isoformat()]
            )

    def delete_settings(self, keys: Iterable[str]) -> None:
        keys = list(keys)
        if not keys:
            return
        with self.transaction() as conn:
            conn.executemany("DELETE FROM app_settings WHERE key = ?", [[k] for k in keys])

    def close(self) -> None:
        """Close the calling thread's database connection."""
        if getattr(self._local, "connection", None) is not None:
            self._local.connection.close()
            self._local.connection = None

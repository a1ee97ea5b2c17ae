# =============================================================================
# bhakti_core/offline/cache_manager.py
# Cache Snapshots of Downloaded Content
# =============================================================================
"""
CacheManager - per-language JSON snapshots of the local content tables.

A snapshot lets the app rebuild its tables without downloading the corpus
again. It never expires on its own; it is replaced by a newer download or
removed explicitly.

Directory Structure:
-------------------
local_data/cache/
├── snapshot_telugu.json
├── snapshot_kannada.json
└── cache_index.json       # Metadata about each snapshot
"""

from __future__ import annotations
import os
import json
import hashlib
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union
import logging

from bhakti_core.errors import SnapshotError
from bhakti_core.offline.entities import Deity, Language, Stotra, now_ms

logger = logging.getLogger(__name__)

CURRENT_CACHE_VERSION = "1.0"


@dataclass
class CacheSnapshot:
    """Point-in-time copy of one language's content."""
    language: Language
    deities: List[Deity] = field(default_factory=list)
    stotras: List[Stotra] = field(default_factory=list)
    timestamp: int = field(default_factory=now_ms)
    version: str = CURRENT_CACHE_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "language": self.language.value,
            "timestamp": self.timestamp,
            "deities": [d.to_snapshot() for d in self.deities],
            "stotras": [s.to_snapshot() for s in self.stotras],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CacheSnapshot:
        language = Language.parse(data["language"])
        return cls(
            language=language,
            deities=[Deity.from_snapshot(d, language) for d in data.get("deities", [])],
            stotras=[Stotra.from_snapshot(s, language) for s in data.get("stotras", [])],
            timestamp=int(data.get("timestamp") or 0),
            version=data.get("version", ""),
        )


class CacheManager:
    """
    Manages the per-language content snapshots.

    Args:
        db: LocalDatabase that snapshots are restored into
        cache_dir: Directory holding the snapshot files
    """

    DEFAULT_CACHE_DIR = Path(__file__).parent.parent.parent / "local_data" / "cache"
    CACHE_INDEX_FILE = "cache_index.json"

    def __init__(self, db, cache_dir: Optional[Union[str, Path]] = None):
        self._db = db
        self.cache_dir = Path(cache_dir) if cache_dir else self.DEFAULT_CACHE_DIR
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self._index: Dict[str, Dict] = {}
        self._load_index()

    def _load_index(self) -> None:
        """Load cache index from file."""
        index_path = self.cache_dir / self.CACHE_INDEX_FILE
        if index_path.exists():
            try:
                with open(index_path, "r", encoding="utf-8") as f:
                    self._index = json.load(f)
            except (json.JSONDecodeError, IOError) as e:
                logger.warning(f"Error loading cache index: {e}")
                self._index = {}
        else:
            self._index = {}

    def _save_index(self) -> None:
        """Save cache index to file."""
        index_path = self.cache_dir / self.CACHE_INDEX_FILE
        try:
            with open(index_path, "w", encoding="utf-8") as f:
                json.dump(self._index, f, indent=2, default=str)
        except IOError as e:
            logger.error(f"Error saving cache index: {e}")

    def _snapshot_path(self, language: Language) -> Path:
        return self.cache_dir / f"snapshot_{language.value}.json"

    def _get_file_hash(self, file_path: Path) -> str:
        """Calculate file hash for integrity checking."""
        if not file_path.exists():
            return ""

        hasher = hashlib.md5()
        with open(file_path, "rb") as f:
            for chunk in iter(lambda: f.read(8192), b""):
                hasher.update(chunk)
        return hasher.hexdigest()

    def _write_payload(self, language: Language, payload: Dict[str, Any]) -> Path:
        """Write a snapshot file atomically and record it in the index."""
        file_path = self._snapshot_path(language)
        tmp_path = file_path.with_suffix(".json.tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False)
            os.replace(tmp_path, file_path)
        except (IOError, OSError, TypeError, ValueError) as e:
            raise SnapshotError(
                f"Could not write cache snapshot: {e}",
                language=language.value,
                path=str(file_path),
            ) from e

        self._index[language.value] = {
            "file_path": str(file_path),
            "version": payload["version"],
            "timestamp": payload["timestamp"],
            "deity_count": len(payload["deities"]),
            "stotra_count": len(payload["stotras"]),
            "file_hash": self._get_file_hash(file_path),
            "updated_at": datetime.now().isoformat(),
        }
        self._save_index()
        return file_path

    def _read_payload(self, language: Language) -> Optional[Dict[str, Any]]:
        """Raw snapshot payload if present, intact, current and for ``language``."""
        file_path = self._snapshot_path(language)
        if not file_path.exists():
            return None

        info = self._index.get(language.value)
        if info and info.get("file_hash") and info["file_hash"] != self._get_file_hash(file_path):
            logger.warning(f"Cache snapshot for {language.value} failed integrity check")
            return None

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                payload = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Error reading cache snapshot for {language.value}: {e}")
            return None

        if payload.get("version") != CURRENT_CACHE_VERSION:
            logger.info(f"Cache snapshot for {language.value} has format {payload.get('version')!r}; ignoring")
            return None
        if payload.get("language") != language.value:
            logger.info(f"Cache snapshot file for {language.value} holds {payload.get('language')!r}; ignoring")
            return None
        return payload

    # =========================================================================
    # SNAPSHOT API
    # =========================================================================

    def is_valid(self, language: Union[Language, str]) -> bool:
        """True iff a current-format snapshot exists for ``language``."""
        language = Language.parse(language)
        valid = self._read_payload(language) is not None
        logger.debug(f"Cache valid for {language.value}? {valid}")
        return valid

    def load(self, language: Union[Language, str]) -> Optional[CacheSnapshot]:
        language = Language.parse(language)
        payload = self._read_payload(language)
        if payload is None:
            return None
        try:
            snapshot = CacheSnapshot.from_dict(payload)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Malformed cache snapshot for {language.value}: {e}")
            return None
        logger.info(
            f"Cache: loaded {len(snapshot.deities)} deities and "
            f"{len(snapshot.stotras)} stotras for {language.value}"
        )
        return snapshot

    def save(
        self,
        deities: Sequence[Deity],
        stotras: Sequence[Stotra],
        language: Union[Language, str],
    ) -> CacheSnapshot:
        """
        Capture the given rows as the snapshot for ``language``.

        Raises:
            SnapshotError: if the file cannot be written
        """
        language = Language.parse(language)
        snapshot = CacheSnapshot(language=language, deities=list(deities), stotras=list(stotras))
        self._write_payload(language, snapshot.to_dict())
        logger.info(f"Cache: saved {len(snapshot.deities)} deities and {len(snapshot.stotras)} stotras for {language.value}")
        return snapshot

    def restore(self, snapshot: CacheSnapshot, language: Union[Language, str]) -> Tuple[int, int]:
        """
        Recreate the language's rows from ``snapshot`` in one transaction.

        Internal ids, external ids and favorite flags are kept.

        Returns:
            (deities restored, stotras restored)
        """
        language = Language.parse(language)
        if snapshot.language != language:
            raise SnapshotError(
                f"Snapshot holds {snapshot.language.value} content, not {language.value}",
                language=language.value,
            )
        deities, stotras, _ = self._db.replace_language_content(
            language, snapshot.deities, snapshot.stotras, preserve_ids=True
        )
        logger.info(f"Cache: restored {language.value} content to database")
        return deities, stotras

    def clear_language(self, language: Union[Language, str]) -> None:
        language = Language.parse(language)
        file_path = self._snapshot_path(language)
        if file_path.exists():
            try:
                file_path.unlink()
            except IOError as e:
                logger.error(f"Error deleting cache snapshot: {e}")
                return
        if self._index.pop(language.value, None) is not None:
            self._save_index()
        logger.info(f"Cache: cleared {language.value}")

    def clear(self) -> None:
        """Delete every snapshot."""
        for language in Language:
            self.clear_language(language)
        self._index = {}
        self._save_index()

    def update_favorite(self, stotra_id: str, is_favorite: bool, language: Union[Language, str]) -> bool:
        """
        Patch one stotra's favorite flag inside the snapshot.

        The rest of the snapshot stays valid. Returns False when there is no
        snapshot or the stotra is not in it.
        """
        language = Language.parse(language)
        payload = self._read_payload(language)
        if payload is None:
            return False

        for record in payload.get("stotras", []):
            if record.get("stotra_id") == stotra_id:
                record["is_favorite"] = bool(is_favorite)
                break
        else:
            return False

        try:
            self._write_payload(language, payload)
        except SnapshotError as e:
            logger.error(f"Cache: error updating favorite status: {e}")
            return False
        logger.debug(f"Cache: favorite for {stotra_id} set to {is_favorite}")
        return True

    def get_cache_stats(self) -> Dict[str, Any]:
        """Size, item count and last update of every snapshot."""
        stats = {
            "total_items": 0,
            "total_size_bytes": 0,
            "by_language": {},
        }

        for language in Language:
            file_path = self._snapshot_path(language)
            info = self._index.get(language.value)
            if not info or not file_path.exists():
                continue
            size = file_path.stat().st_size
            items = info.get("deity_count", 0) + info.get("stotra_count", 0)
            stats["by_language"][language.value] = {
                "size_bytes": size,
                "item_count": items,
                "last_updated": info.get("timestamp", 0),
            }
            stats["total_items"] += items
            stats["total_size_bytes"] += size

        return stats

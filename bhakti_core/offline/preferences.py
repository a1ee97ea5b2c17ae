# =============================================================================
# bhakti_core/offline/preferences.py
# Persistent User Preferences and Sync Markers
# =============================================================================
"""
PreferenceStore - key-value preferences kept in the local database.

Writes never raise: a failed write is logged and the value is kept in memory
so reads in this process still see it. Reads fall back to the in-memory value
and then to the caller's default.
"""

from __future__ import annotations
from typing import Any, Dict, Optional
import logging

from bhakti_core.errors import error_boundary
from bhakti_core.offline.entities import FontSize, Language, Theme, now_ms

logger = logging.getLogger(__name__)

PREFIX = "@bhaktivani:"

KEYS = {
    "current_language": f"{PREFIX}currentLanguage",
    "last_sync_timestamp": f"{PREFIX}lastSyncTimestamp",
    "initial_setup_complete": f"{PREFIX}initialSetupComplete",
    "content_version_prefix": f"{PREFIX}contentVersion:",
    "sync_stats": f"{PREFIX}syncStats",
    "font_size": f"{PREFIX}fontSize",
    "theme": f"{PREFIX}theme",
    "auto_sync_enabled": f"{PREFIX}autoSyncEnabled",
    "last_auto_sync": f"{PREFIX}lastAutoSync",
    "migration_version": f"{PREFIX}migrationVersion",
}

DEFAULT_FONT_SIZE = FontSize.MEDIUM
DEFAULT_THEME = Theme.LIGHT


class PreferenceStore:
    """Typed preferences over the local database's app_settings table."""

    def __init__(self, db):
        self._db = db
        self._memory: Dict[str, Any] = {}

    # =========================================================================
    # GENERIC ACCESS
    # =========================================================================

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._memory:
            value = self._memory[key]
        else:
            try:
                value = self._db.get_setting(key)
            except Exception as e:
                logger.error(f"Error reading preference {key}: {e}")
                value = None
        return default if value is None else value

    def set(self, key: str, value: Any) -> None:
        self._memory[key] = value
        self._persist(key, value)

    @error_boundary(default_return=False)
    def _persist(self, key: str, value: Any) -> bool:
        self._db.set_setting(key, value)
        return True

    @error_boundary(default_return=None)
    def remove(self, *keys: str) -> None:
        for key in keys:
            self._memory.pop(key, None)
        self._db.delete_settings(keys)

    # =========================================================================
    # LANGUAGE AND SETUP
    # =========================================================================

    def get_current_language(self) -> Optional[Language]:
        value = self.get(KEYS["current_language"])
        if value is None:
            return None
        try:
            return Language.parse(value)
        except Exception:
            logger.warning(f"Ignoring unknown stored language: {value!r}")
            return None

    def set_current_language(self, language: Language) -> None:
        self.set(KEYS["current_language"], Language.parse(language).value)

    def is_initial_setup_complete(self) -> bool:
        return self.get(KEYS["initial_setup_complete"]) is True

    def mark_initial_setup_complete(self) -> None:
        self.set(KEYS["initial_setup_complete"], True)

    def reset_all(self) -> None:
        """Forget language choice, sync watermark and setup state."""
        self.remove(
            KEYS["current_language"],
            KEYS["last_sync_timestamp"],
            KEYS["initial_setup_complete"],
        )

    # =========================================================================
    # SYNC MARKERS
    # =========================================================================

    def get_last_sync_timestamp(self) -> int:
        return int(self.get(KEYS["last_sync_timestamp"], 0))

    def set_last_sync_timestamp(self, timestamp: int) -> None:
        self.set(KEYS["last_sync_timestamp"], int(timestamp))

    def get_content_version(self, language: Language) -> int:
        key = f"{KEYS['content_version_prefix']}{Language.parse(language).value}"
        return int(self.get(key, 0))

    def set_content_version(self, language: Language, version: int) -> None:
        key = f"{KEYS['content_version_prefix']}{Language.parse(language).value}"
        self.set(key, int(version))

    def get_sync_stats(self) -> Dict[str, int]:
        stats = self.get(KEYS["sync_stats"])
        if not isinstance(stats, dict):
            return {"deity_count": 0, "stotra_count": 0, "last_sync": 0}
        return stats

    def set_sync_stats(self, deity_count: int, stotra_count: int, timestamp: Optional[int] = None) -> None:
        self.set(KEYS["sync_stats"], {
            "deity_count": deity_count,
            "stotra_count": stotra_count,
            "last_sync": timestamp if timestamp is not None else now_ms(),
        })

    def is_auto_sync_enabled(self) -> bool:
        return bool(self.get(KEYS["auto_sync_enabled"], True))

    def set_auto_sync_enabled(self, enabled: bool) -> None:
        self.set(KEYS["auto_sync_enabled"], bool(enabled))

    def get_last_auto_sync(self) -> Optional[int]:
        value = self.get(KEYS["last_auto_sync"])
        return int(value) if value is not None else None

    def set_last_auto_sync(self, timestamp: int) -> None:
        self.set(KEYS["last_auto_sync"], int(timestamp))

    def get_migration_version(self) -> int:
        return int(self.get(KEYS["migration_version"], 0))

    def set_migration_version(self, version: int) -> None:
        self.set(KEYS["migration_version"], int(version))

    # =========================================================================
    # DISPLAY
    # =========================================================================

    def get_font_size(self) -> FontSize:
        try:
            return FontSize(self.get(KEYS["font_size"], DEFAULT_FONT_SIZE.value))
        except ValueError:
            return DEFAULT_FONT_SIZE

    def set_font_size(self, size: FontSize) -> None:
        self.set(KEYS["font_size"], FontSize(size).value)

    def get_theme(self) -> Theme:
        try:
            return Theme(self.get(KEYS["theme"], DEFAULT_THEME.value))
        except ValueError:
            return DEFAULT_THEME

    def set_theme(self, theme: Theme) -> None:
        self.set(KEYS["theme"], Theme(theme).value)

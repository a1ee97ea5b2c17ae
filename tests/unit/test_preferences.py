# =============================================================================
# tests/unit/test_preferences.py
# Unit Tests for PreferenceStore
# =============================================================================

import pytest
from unittest.mock import MagicMock


class TestPreferenceDefaults:
    """Test values before anything was written"""

    def test_defaults(self, preferences):
        from bhakti_core.offline.entities import FontSize, Theme

        assert preferences.get_current_language() is None
        assert preferences.get_last_sync_timestamp() == 0
        assert preferences.is_initial_setup_complete() is False
        assert preferences.is_auto_sync_enabled() is True
        assert preferences.get_last_auto_sync() is None
        assert preferences.get_font_size() is FontSize.MEDIUM
        assert preferences.get_theme() is Theme.LIGHT
        assert preferences.get_sync_stats() == {"deity_count": 0, "stotra_count": 0, "last_sync": 0}

    def test_get_with_default(self, preferences):
        assert preferences.get("@bhaktivani:unknown", "fallback") == "fallback"


class TestPreferencePersistence:
    """Test values survive a new store on the same database"""

    def test_values_persist(self, db, preferences):
        from bhakti_core.offline.entities import FontSize, Language, Theme
        from bhakti_core.offline.preferences import PreferenceStore

        preferences.set_current_language(Language.KANNADA)
        preferences.set_last_sync_timestamp(1234)
        preferences.set_content_version(Language.KANNADA, 99)
        preferences.set_font_size(FontSize.LARGE)
        preferences.set_theme(Theme.SEPIA)
        preferences.mark_initial_setup_complete()

        reopened = PreferenceStore(db)

        assert reopened.get_current_language() is Language.KANNADA
        assert reopened.get_last_sync_timestamp() == 1234
        assert reopened.get_content_version(Language.KANNADA) == 99
        assert reopened.get_content_version(Language.TELUGU) == 0
        assert reopened.get_font_size() is FontSize.LARGE
        assert reopened.get_theme() is Theme.SEPIA
        assert reopened.is_initial_setup_complete() is True

    def test_keys_are_namespaced(self, db, preferences):
        preferences.set_last_sync_timestamp(5)

        assert db.get_setting("@bhaktivani:lastSyncTimestamp") == 5

    def test_sync_stats(self, preferences):
        preferences.set_sync_stats(3, 10, timestamp=777)

        assert preferences.get_sync_stats() == {"deity_count": 3, "stotra_count": 10, "last_sync": 777}

    def test_reset_all(self, db, preferences):
        from bhakti_core.offline.entities import Language, Theme
        from bhakti_core.offline.preferences import PreferenceStore

        preferences.set_current_language(Language.TELUGU)
        preferences.set_last_sync_timestamp(10)
        preferences.mark_initial_setup_complete()
        preferences.set_theme(Theme.DARK)

        preferences.reset_all()
        reopened = PreferenceStore(db)

        assert reopened.get_current_language() is None
        assert reopened.get_last_sync_timestamp() == 0
        assert reopened.is_initial_setup_complete() is False
        assert reopened.get_theme() is Theme.DARK

    def test_unknown_stored_language_ignored(self, db, preferences):
        db.set_setting("@bhaktivani:currentLanguage", "hindi")

        assert preferences.get_current_language() is None


class TestPreferenceFailures:
    """Storage failures are logged, never raised"""

    @pytest.fixture
    def broken_db(self):
        from bhakti_core.errors import LocalStorageError

        db = MagicMock()
        db.get_setting.side_effect = LocalStorageError("disk I/O error")
        db.set_setting.side_effect = LocalStorageError("disk I/O error")
        db.delete_settings.side_effect = LocalStorageError("disk I/O error")
        return db

    def test_failed_write_kept_in_memory(self, broken_db):
        from bhakti_core.offline.entities import Theme
        from bhakti_core.offline.preferences import PreferenceStore

        store = PreferenceStore(broken_db)
        store.set_theme(Theme.DARK)

        assert store.get_theme() is Theme.DARK

    def test_failed_read_returns_default(self, broken_db):
        from bhakti_core.offline.preferences import PreferenceStore

        store = PreferenceStore(broken_db)

        assert store.get_last_sync_timestamp() == 0
        assert store.is_auto_sync_enabled() is True

    def test_failed_remove_does_not_raise(self, broken_db):
        from bhakti_core.offline.preferences import PreferenceStore

        PreferenceStore(broken_db).reset_all()

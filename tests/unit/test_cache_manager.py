# =============================================================================
# tests/unit/test_cache_manager.py
# Unit Tests for CacheManager Snapshots
# =============================================================================

import json
import pytest


@pytest.fixture
def telugu_rows(db):
    """Telugu content written to the database, one stotra marked favorite"""
    from bhakti_core.offline.entities import Deity, Language, Stotra

    deities = [
        Deity(deity_id="rama", name="రాముడు", name_english="Rama", image="rama.png", language=Language.TELUGU),
        Deity(deity_id="shiva", name="శివుడు", name_english="Shiva", image="shiva.png", language=Language.TELUGU),
    ]
    stotras = [
        Stotra(stotra_id="s1", deity_id="rama", title="రామ రక్షా", content="...", language=Language.TELUGU,
               is_favorite=True, version_timestamp=10),
        Stotra(stotra_id="s2", deity_id="shiva", title="శివ తాండవం", content="...", language=Language.TELUGU,
               version_timestamp=11),
    ]
    db.replace_language_content(Language.TELUGU, deities, stotras)
    return db.list_deities(Language.TELUGU), db.list_stotras(Language.TELUGU)


class TestCacheValidity:
    """Test the validity gate"""

    def test_invalid_when_nothing_saved(self, cache):
        assert cache.is_valid("telugu") is False
        assert cache.load("telugu") is None

    def test_valid_after_save(self, cache, telugu_rows):
        deities, stotras = telugu_rows
        cache.save(deities, stotras, "telugu")

        assert cache.is_valid("telugu") is True
        assert cache.is_valid("kannada") is False

    def test_invalid_when_version_differs(self, cache, telugu_rows, monkeypatch):
        from bhakti_core.offline import cache_manager

        deities, stotras = telugu_rows
        cache.save(deities, stotras, "telugu")
        monkeypatch.setattr(cache_manager, "CURRENT_CACHE_VERSION", "2.0")

        assert cache.is_valid("telugu") is False

    def test_invalid_when_file_tampered(self, cache, telugu_rows):
        deities, stotras = telugu_rows
        cache.save(deities, stotras, "telugu")

        path = cache.cache_dir / "snapshot_telugu.json"
        payload = json.loads(path.read_text(encoding="utf-8"))
        payload["stotras"] = []
        path.write_text(json.dumps(payload), encoding="utf-8")

        assert cache.is_valid("telugu") is False

    def test_survives_new_manager(self, db, cache, telugu_rows):
        from bhakti_core.offline.cache_manager import CacheManager

        deities, stotras = telugu_rows
        cache.save(deities, stotras, "telugu")

        assert CacheManager(db, cache.cache_dir).is_valid("telugu") is True


class TestSnapshotRoundTrip:
    """save -> load -> restore reproduces the rows"""

    def test_round_trip(self, db, cache, telugu_rows):
        deities, stotras = telugu_rows
        cache.save(deities, stotras, "telugu")
        db.clear_language("telugu")

        snapshot = cache.load("telugu")
        assert cache.restore(snapshot, "telugu") == (2, 2)

        restored_deities = db.list_deities("telugu")
        restored_stotras = db.list_stotras("telugu")
        assert [(d.id, d.deity_id, d.name, d.name_english, d.image) for d in restored_deities] == \
            [(d.id, d.deity_id, d.name, d.name_english, d.image) for d in deities]
        assert [(s.id, s.stotra_id, s.title, s.deity_id, s.is_favorite) for s in restored_stotras] == \
            [(s.id, s.stotra_id, s.title, s.deity_id, s.is_favorite) for s in stotras]

    def test_restore_rejects_other_language(self, cache, telugu_rows):
        from bhakti_core.errors import SnapshotError

        deities, stotras = telugu_rows
        snapshot = cache.save(deities, stotras, "telugu")

        with pytest.raises(SnapshotError):
            cache.restore(snapshot, "kannada")


class TestCacheMaintenance:
    """Test favorites patching, clearing and stats"""

    def test_update_favorite_keeps_snapshot_valid(self, cache, telugu_rows):
        deities, stotras = telugu_rows
        cache.save(deities, stotras, "telugu")

        assert cache.update_favorite("s2", True, "telugu") is True
        assert cache.is_valid("telugu") is True
        flags = {s.stotra_id: s.is_favorite for s in cache.load("telugu").stotras}
        assert flags == {"s1": True, "s2": True}

    def test_update_favorite_unknown(self, cache, telugu_rows):
        deities, stotras = telugu_rows
        cache.save(deities, stotras, "telugu")

        assert cache.update_favorite("missing", True, "telugu") is False
        assert cache.update_favorite("s1", False, "kannada") is False

    def test_clear_language_is_targeted(self, cache, telugu_rows):
        deities, stotras = telugu_rows
        cache.save(deities, stotras, "telugu")
        cache.save([], [], "kannada")

        cache.clear_language("kannada")

        assert cache.is_valid("telugu") is True
        assert cache.is_valid("kannada") is False

    def test_clear_all(self, cache, telugu_rows):
        deities, stotras = telugu_rows
        cache.save(deities, stotras, "telugu")

        cache.clear()

        assert cache.is_valid("telugu") is False
        assert cache.get_cache_stats()["total_items"] == 0

    def test_cache_stats(self, cache, telugu_rows):
        deities, stotras = telugu_rows
        cache.save(deities, stotras, "telugu")

        stats = cache.get_cache_stats()

        assert stats["by_language"]["telugu"]["item_count"] == 4
        assert stats["total_size_bytes"] > 0
        assert "kannada" not in stats["by_language"]

    def test_index_records_save_metadata(self, cache, telugu_rows):
        deities, stotras = telugu_rows
        cache.save(deities, stotras, "telugu")

        index = json.loads((cache.cache_dir / cache.CACHE_INDEX_FILE).read_text(encoding="utf-8"))
        entry = index["telugu"]

        assert entry["deity_count"] + entry["stotra_count"] == 4
        assert entry["file_hash"]
        assert "updated_at" in entry

    def test_save_failure_raises_snapshot_error(self, cache, telugu_rows, monkeypatch):
        from bhakti_core.errors import SnapshotError
        from bhakti_core.offline import cache_manager

        def fail(*args, **kwargs):
            raise OSError("read-only file system")

        monkeypatch.setattr(cache_manager.os, "replace", fail)
        deities, stotras = telugu_rows

        with pytest.raises(SnapshotError):
            cache.save(deities, stotras, "telugu")

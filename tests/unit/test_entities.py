# =============================================================================
# tests/unit/test_entities.py
# Unit Tests for Content Entities
# =============================================================================

import pytest


class TestLanguage:
    """Test language parsing and metadata"""

    def test_parse_accepts_strings_and_enums(self):
        from bhakti_core.offline.entities import Language

        assert Language.parse("telugu") is Language.TELUGU
        assert Language.parse(" Kannada ") is Language.KANNADA
        assert Language.parse(Language.TELUGU) is Language.TELUGU

    def test_parse_unknown_language_raises(self):
        from bhakti_core.errors import ContentValidationError
        from bhakti_core.offline.entities import Language

        with pytest.raises(ContentValidationError):
            Language.parse("hindi")

    def test_voice_locales(self):
        from bhakti_core.offline.entities import Language

        assert Language.TELUGU.voice_locale == "te-IN"
        assert Language.KANNADA.voice_locale == "kn-IN"


class TestDisplayEnums:
    """Test font size and theme preferences"""

    def test_font_points(self):
        from bhakti_core.offline.entities import FontSize

        assert [size.points for size in FontSize] == [14, 18, 22]

    def test_theme_colors_are_copies(self):
        from bhakti_core.offline.entities import Theme

        colors = Theme.DARK.colors
        colors["background"] = "#000000"

        assert Theme.DARK.colors["background"] == "#111827"


class TestFromRemote:
    """Test building entities from remote records"""

    def test_split_layout_stotra(self):
        from bhakti_core.offline.entities import Language, Stotra

        stotra = Stotra.from_remote({
            "stotra_id": "s1",
            "deity_id": "rama",
            "title": "రామ రక్షా",
            "content": "చరితం రఘునాథస్య",
            "title_english": "Rama Raksha",
            "version_timestamp": 42,
        }, Language.TELUGU)

        assert stotra.title == "రామ రక్షా"
        assert stotra.content == "చరితం రఘునాథస్య"
        assert stotra.version_timestamp == 42
        assert stotra.is_favorite is False
        assert stotra.language is Language.TELUGU

    def test_combined_layout_uses_language_fields(self):
        from bhakti_core.offline.entities import Deity, Language, Stotra

        doc = {
            "stotra_id": "s1",
            "deity_id": "rama",
            "title_telugu": "రామ",
            "title_kannada": "ರಾಮ",
            "text_telugu": "తెలుగు",
            "text_kannada": "ಕನ್ನಡ",
        }
        stotra = Stotra.from_remote(doc, Language.KANNADA)
        deity = Deity.from_remote({"deity_id": "rama", "name_kannada": "ಶ್ರೀ ರಾಮ"}, Language.KANNADA)

        assert stotra.title == "ರಾಮ"
        assert stotra.content == "ಕನ್ನಡ"
        assert deity.name == "ಶ್ರೀ ರಾಮ"

    def test_missing_identifier_raises(self):
        from bhakti_core.errors import ContentValidationError
        from bhakti_core.offline.entities import Language, Stotra

        with pytest.raises(ContentValidationError) as exc_info:
            Stotra.from_remote({"deity_id": "rama", "title": "x"}, Language.TELUGU)

        assert exc_info.value.details["field"] == "stotra_id"

    def test_missing_version_defaults_to_now(self, monkeypatch):
        from bhakti_core.offline import entities

        monkeypatch.setattr(entities, "now_ms", lambda: 123456)
        stotra = entities.Stotra.from_remote(
            {"stotra_id": "s1", "deity_id": "rama"}, entities.Language.TELUGU
        )

        assert stotra.version_timestamp == 123456

    def test_display_fallbacks(self):
        from bhakti_core.offline.entities import Deity, Language

        deity = Deity(deity_id="shiva", name="", name_english="Shiva", language=Language.TELUGU)

        assert deity.display_name == "Shiva"


class TestSnapshotForm:
    """Test the snapshot dict form"""

    def test_snapshot_excludes_computed_properties(self):
        from bhakti_core.offline.entities import Language, Stotra

        stotra = Stotra(stotra_id="s1", deity_id="d1", title="t", content="c",
                        language=Language.TELUGU, version_timestamp=5, id=3)
        data = stotra.to_snapshot()

        assert "display_title" not in data
        assert Stotra.from_snapshot(data, Language.TELUGU) == stotra

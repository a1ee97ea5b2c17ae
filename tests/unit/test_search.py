# =============================================================================
# tests/unit/test_search.py
# Unit Tests for Deity Search
# =============================================================================

import pytest


@pytest.fixture
def deities():
    from bhakti_core.offline.entities import Deity, Language

    return [
        Deity(deity_id="ganesha", name="గణేశుడు", name_english="Ganesha", language=Language.TELUGU),
        Deity(deity_id="hanuman", name="హనుమంతుడు", name_english="Hanuman", language=Language.TELUGU),
        Deity(deity_id="venkateswara", name="వేంకటేశ్వరుడు", name_english="Sri Venkateswara Swamy",
              language=Language.TELUGU),
    ]


class TestNormalizeText:
    """Test query normalization"""

    @pytest.mark.parametrize("text,expected", [
        ("Sri Rama", "rama"),
        ("shri Hanuman", "hanuman"),
        ("Lord Shiva!", "shiva"),
        ("Devi Durga", "durga"),
        ("  Ganesha  ", "ganesha"),
        ("", ""),
        (None, ""),
    ])
    def test_normalize(self, text, expected):
        from bhakti_core.search import normalize_text

        assert normalize_text(text) == expected


class TestTokenizeQuery:
    """Test splitting queries into known names"""

    def test_combined_names(self):
        from bhakti_core.search import tokenize_query

        assert tokenize_query("ramakrishna") == ["rama", "krishna"]

    def test_unknown_query_kept_whole(self):
        from bhakti_core.search import tokenize_query

        assert tokenize_query("Sri Ayyappa") == ["ayyappa"]

    def test_empty_query(self):
        from bhakti_core.search import tokenize_query

        assert tokenize_query("   ") == []


class TestSearchDeities:
    """Test substring-first, fuzzy-second search"""

    def test_empty_query_returns_all(self, deities):
        from bhakti_core.search import search_deities

        assert search_deities(deities, "") == deities

    def test_substring_on_english_name(self, deities):
        from bhakti_core.search import search_deities

        assert [d.deity_id for d in search_deities(deities, "hanu")] == ["hanuman"]

    def test_substring_on_native_name(self, deities):
        from bhakti_core.search import search_deities

        assert [d.deity_id for d in search_deities(deities, "గణేశ")] == ["ganesha"]

    def test_typo_ranked_first(self, deities):
        from bhakti_core.search import search_deities

        results = search_deities(deities, "hanumn")

        assert results[0].deity_id == "hanuman"

    def test_prefix_variant(self, deities):
        from bhakti_core.search import search_deities

        results = search_deities(deities, "shri venkatesh")

        assert results[0].deity_id == "venkateswara"

    def test_no_match(self, deities):
        from bhakti_core.search import search_deities

        assert search_deities(deities, "zzzzzzzzzz") == []


class TestDisplayName:
    """Test deity display names"""

    def test_same_language_uses_native_name(self, deities):
        from bhakti_core.offline.entities import Language
        from bhakti_core.search import deity_display_name

        assert deity_display_name(deities[0], Language.TELUGU) == "గణేశుడు"

    def test_other_language_uses_english(self, deities):
        from bhakti_core.offline.entities import Language
        from bhakti_core.search import deity_display_name

        assert deity_display_name(deities[0], Language.KANNADA) == "Ganesha"

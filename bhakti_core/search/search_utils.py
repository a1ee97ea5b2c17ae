# =============================================================================
# bhakti_core/search/search_utils.py
# Deity Search with Normalization and Fuzzy Matching
# =============================================================================
"""
Search helpers for the deity list.

A plain substring match is tried first. Only when it finds nothing are the
names ranked by similarity, which tolerates typos and spelling variants
("hanumn", "sri venkatesa").
"""

from __future__ import annotations
import re
from difflib import SequenceMatcher
from typing import Dict, List, Optional, Sequence, Tuple

from bhakti_core.offline.entities import Deity, Language

# Honorifics dropped before comparing names
PREFIXES = ("sri", "shri", "lord", "goddess", "devi", "swami")

COMMON_NAMES = (
    "rama", "krishna", "shiva", "vishnu", "ganesha", "ganesh",
    "hanuman", "lakshmi", "saraswati", "durga", "kali",
    "venkateswara", "venkatesh", "balaji",
)

# Scores run from 0 (identical) to 1 (unrelated); worse matches are dropped
FUZZY_THRESHOLD = 0.6
EXACT_MATCH_BOOST = 0.5

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize_text(text: Optional[str]) -> str:
    """Lowercase, strip honorific prefixes and keep only [a-z0-9]."""
    if not text:
        return ""

    normalized = text.lower().strip()
    for prefix in PREFIXES:
        normalized = re.sub(rf"^{prefix}\s*", "", normalized)

    return _NON_ALNUM.sub("", normalized)


def tokenize_query(query: str) -> List[str]:
    """
    Split a query into known deity names.

    "ramakrishna" gives ["rama", "krishna"]. A query containing no known
    name is returned whole.
    """
    normalized = normalize_text(query)
    if not normalized:
        return []

    tokens = [name for name in COMMON_NAMES if name in normalized]
    return tokens or [normalized]


def _similarity(token: str, text: str) -> float:
    """Best ratio between ``token`` and the whole text or any of its words."""
    candidates = [normalize_text(text)] + [normalize_text(word) for word in text.split()]
    return max(
        (SequenceMatcher(None, token, candidate).ratio() for candidate in candidates if candidate),
        default=0.0,
    )


def _fuzzy_score(deity: Deity, token: str) -> float:
    best = max(_similarity(token, deity.name), _similarity(token, deity.name_english))
    score = 1.0 - best
    if token in normalize_text(deity.name) or token in normalize_text(deity.name_english):
        score *= EXACT_MATCH_BOOST
    return score


def search_deities(deities: Sequence[Deity], query: Optional[str]) -> List[Deity]:
    """
    Deities matching ``query``, best match first.

    An empty query returns every deity unchanged.
    """
    if not query or not query.strip():
        return list(deities)

    needle = query.lower().strip()
    substring_matches = [
        deity for deity in deities
        if needle in deity.name.lower() or needle in deity.name_english.lower()
    ]
    if substring_matches:
        return substring_matches

    best: Dict[str, Tuple[float, int, Deity]] = {}
    for token in tokenize_query(query):
        for position, deity in enumerate(deities):
            score = _fuzzy_score(deity, token)
            if score > FUZZY_THRESHOLD:
                continue
            current = best.get(deity.deity_id)
            if current is None or score < current[0]:
                best[deity.deity_id] = (score, position, deity)

    return [deity for _, _, deity in sorted(best.values(), key=lambda item: (item[0], item[1]))]


def deity_display_name(deity: Deity, language: Optional[Language] = None) -> str:
    """Name to show for ``deity``; falls back to the English name."""
    if language is not None and deity.language != Language.parse(language):
        return deity.name_english or deity.name
    return deity.display_name

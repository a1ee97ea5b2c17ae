# =============================================================================
# bhakti_core/search/__init__.py
# =============================================================================

from .search_utils import (
    normalize_text,
    tokenize_query,
    search_deities,
    deity_display_name,
)

__all__ = [
    "normalize_text",
    "tokenize_query",
    "search_deities",
    "deity_display_name",
]

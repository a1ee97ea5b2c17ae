# =============================================================================
# bhakti_core/data/__init__.py
# =============================================================================

from .supabase_client import RemoteContentSource, get_supabase_client

__all__ = ["RemoteContentSource", "get_supabase_client"]

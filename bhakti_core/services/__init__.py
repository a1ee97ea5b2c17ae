# =============================================================================
# bhakti_core/services/__init__.py
# =============================================================================

from .base_service import BaseService, ServiceResult, ProgressCallback

__all__ = ["BaseService", "ServiceResult", "ProgressCallback"]

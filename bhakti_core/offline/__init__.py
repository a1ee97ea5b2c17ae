# =============================================================================
# bhakti_core/offline/__init__.py
# Local-First Content Storage and Sync for Bhakti Vani
# =============================================================================
"""
Local-First Content Module

Stotras are read from a local SQLite mirror of the hosted collections. The
mirror is filled by a full download per language, kept fresh by
incremental syncs and backed by a JSON snapshot per language so a language
switch does not need the network.

Architecture:
------------
┌─────────────────────────────────────────────────────────────────┐
│                    LOCAL-FIRST CONTENT CORE                      │
├─────────────────────────────────────────────────────────────────┤
│                                                                  │
│   ┌──────────────────────────────────────────────────────────┐  │
│   │                   ContentService                          │  │
│   │          (Single API - the UI uses this only)             │  │
│   └──────────────────────────────────────────────────────────┘  │
│                            │                                     │
│              ┌─────────────┴─────────────┐                      │
│              ▼                           ▼                      │
│   ┌──────────────────┐        ┌──────────────────┐             │
│   │   SyncEngine     │───────►│   CacheManager   │             │
│   │ (download/sync)  │        │ (JSON snapshots) │             │
│   └──────────────────┘        └──────────────────┘             │
│       │          │                       │                      │
│       ▼          ▼                       ▼                      │
│ ┌────────┐  ┌────────────────────────────────────┐             │
│ │Supabase│  │ LocalDatabase (SQLite)              │             │
│ │ (read) │  │ deities_<lang>, stotras_<lang>,     │             │
│ └────────┘  │ app_settings (PreferenceStore)      │             │
│             └────────────────────────────────────┘             │
└─────────────────────────────────────────────────────────────────┘

Usage:
------
from bhakti_core.offline import create_content_service

service = create_content_service()
service.first_launch("telugu")
print(service.list_deities())
"""

from bhakti_core.offline.entities import (
    Deity,
    Stotra,
    Language,
    FontSize,
    Theme,
    now_ms,
)

from bhakti_core.offline.local_database import (
    LocalDatabase,
    UpsertOutcome,
    table_for,
)

from bhakti_core.offline.preferences import (
    PreferenceStore,
    KEYS as PREFERENCE_KEYS,
)

from bhakti_core.offline.cache_manager import (
    CacheManager,
    CacheSnapshot,
    CURRENT_CACHE_VERSION,
)

from bhakti_core.offline.connection_manager import (
    ConnectionManager,
    ConnectionStatus,
)

from bhakti_core.offline.sync_engine import (
    SyncEngine,
    SyncResult,
    UpdateCheck,
)

from bhakti_core.offline.content_service import (
    ContentService,
    create_content_service,
)

__all__ = [
    # Entities
    "Deity",
    "Stotra",
    "Language",
    "FontSize",
    "Theme",
    "now_ms",
    # Storage
    "LocalDatabase",
    "UpsertOutcome",
    "table_for",
    "PreferenceStore",
    "PREFERENCE_KEYS",
    "CacheManager",
    "CacheSnapshot",
    "CURRENT_CACHE_VERSION",
    # Connection
    "ConnectionManager",
    "ConnectionStatus",
    # Sync
    "SyncEngine",
    "SyncResult",
    "UpdateCheck",
    # Service
    "ContentService",
    "create_content_service",
]

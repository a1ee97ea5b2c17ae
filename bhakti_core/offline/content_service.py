# =============================================================================
# bhakti_core/offline/content_service.py
# Content Service - Single API for the Presentation Layer
# =============================================================================
"""
ContentService - the one object a UI talks to.

It holds the local database, preference store, cache and sync engine that
were built for it, instead of reaching for module-level instances, so tests
can build a fresh service per case.

Usage:
------
from bhakti_core.offline import create_content_service

service = create_content_service()

if service.needs_language_selection:
    service.first_launch("telugu")

for deity in service.list_deities():
    print(deity.display_name)

result = service.sync_now()
if result:
    print(result.data)  # {"updated": 3, "errors": 0, "skipped": 0}
"""

from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Any, Callable, Dict, List, Optional
import logging

import pandas as pd

from bhakti_core.config import AppConfig, load_config
from bhakti_core.errors import ContentValidationError, ErrorContext, SyncTimeoutError
from bhakti_core.logging import setup_logging
from bhakti_core.offline.cache_manager import CacheManager
from bhakti_core.offline.connection_manager import ConnectionManager
from bhakti_core.offline.entities import Deity, FontSize, Language, Stotra, Theme, now_ms
from bhakti_core.offline.local_database import LocalDatabase
from bhakti_core.offline.preferences import PreferenceStore
from bhakti_core.offline.sync_engine import SyncEngine
from bhakti_core.services import BaseService, ProgressCallback, ServiceResult

logger = logging.getLogger(__name__)


class ContentService(BaseService):
    """
    Reading, favorites, settings and sync flows for one device.

    Flows that can fail (download, sync, language change) return a
    ServiceResult; failures are also shown as a non-blocking notice.
    """

    def __init__(
        self,
        db: LocalDatabase,
        preferences: PreferenceStore,
        cache: CacheManager,
        engine: SyncEngine,
        first_download_timeout: float = 60.0,
    ):
        super().__init__()
        self.db = db
        self.preferences = preferences
        self.cache = cache
        self.engine = engine
        self.first_download_timeout = first_download_timeout
        self._executor: Optional[ThreadPoolExecutor] = None

    def startup(self) -> None:
        """Prepare storage and run the one-time legacy data migration."""
        self.db.initialize()
        # A failed migration is retried on the next start
        with ErrorContext("Legacy data migration", show_user_message=False):
            migrated = self.engine.migrate_legacy_data()
            if migrated:
                logger.info(f"Migrated {migrated} legacy stotras")

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def current_language(self) -> Language:
        return self.preferences.get_current_language() or Language.TELUGU

    @property
    def needs_language_selection(self) -> bool:
        return not self.preferences.is_initial_setup_complete()

    # =========================================================================
    # SYNC FLOWS
    # =========================================================================

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="BhaktiDownload")
        return self._executor

    def _download_with_timeout(
        self,
        language: Language,
        timeout: float,
        on_progress: Optional[ProgressCallback],
    ) -> Dict[str, int]:
        future = self._get_executor().submit(self.engine.initial_download, language, on_progress)
        try:
            future.result(timeout=timeout)
        except FutureTimeoutError:
            # The download is not cancelled; it finishes in the background
            raise SyncTimeoutError(f"Content download did not finish within {timeout:g}s", timeout=timeout)
        return self.content_counts(language)

    def first_launch(
        self,
        language: Language,
        timeout: Optional[float] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ServiceResult:
        """
        Choose the first language and download its content.

        The language and setup flag are saved before downloading so the app
        can proceed without content. If the download does not finish within
        ``timeout`` seconds the result fails with SYNC_TIMEOUT.
        """
        try:
            language = Language.parse(language)
        except ContentValidationError as e:
            return ServiceResult.from_exception(e)

        self.preferences.set_current_language(language)
        self.preferences.mark_initial_setup_complete()

        return self.safe_execute(
            f"First launch download ({language.value})",
            self._download_with_timeout,
            language,
            self.first_download_timeout if timeout is None else timeout,
            on_progress,
        )

    def change_language(
        self,
        language: Language,
        force_refresh: bool = False,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ServiceResult:
        """Switch the display language, restoring from cache when possible."""
        def switch() -> Dict[str, int]:
            target = Language.parse(language)
            self.engine.switch_language(target, on_progress=on_progress, force_refresh=force_refresh)
            return self.content_counts(target)

        return self.safe_execute("Language change", switch)

    def sync_now(self, on_progress: Optional[ProgressCallback] = None) -> ServiceResult:
        """Run an incremental sync; data is the sync counts."""
        return self.safe_execute(
            "Content sync",
            lambda: self.engine.sync_new_content(on_progress).as_dict(),
        )

    def check_for_updates(self) -> ServiceResult:
        """Data is ``{"has_updates": bool, "update_count": int}``."""
        def check() -> Dict[str, Any]:
            update = self.engine.check_for_updates()
            return {"has_updates": update.has_updates, "update_count": update.update_count}

        return self.safe_execute("Update check", check)

    def set_auto_sync(self, enabled: bool) -> None:
        """Enable or disable weekly background sync."""
        self.preferences.set_auto_sync_enabled(enabled)
        if enabled:
            self.engine.start_auto_sync()
        else:
            self.engine.stop_auto_sync()

    # =========================================================================
    # READING
    # =========================================================================

    def list_deities(self) -> List[Deity]:
        return self.db.list_deities(self.current_language)

    def list_stotras(self, deity_id: Optional[str] = None) -> List[Stotra]:
        return self.db.list_stotras(self.current_language, deity_id=deity_id)

    def get_stotra(self, stotra_id: str) -> Optional[Stotra]:
        return self.db.find_stotra(stotra_id, self.current_language)

    def list_favorites(self) -> List[Stotra]:
        return self.db.list_stotras(self.current_language, favorites_only=True)

    def search_deities(self, query: str) -> List[Deity]:
        from bhakti_core.search import search_deities
        return search_deities(self.list_deities(), query)

    def content_counts(self, language: Optional[Language] = None) -> Dict[str, int]:
        language = language or self.current_language
        return {
            "deities": self.db.count("deities", language),
            "stotras": self.db.count("stotras", language),
        }

    def content_summary(self) -> pd.DataFrame:
        """
        One row per deity of the current language with its stotra and
        favorite counts.
        """
        language = self.current_language
        deities = self.db.to_dataframe("deities", language)
        columns = ["deity_id", "name", "name_english", "stotra_count", "favorite_count"]
        if deities.empty:
            return pd.DataFrame(columns=columns)

        stotras = self.db.to_dataframe("stotras", language)
        if stotras.empty:
            counts = pd.DataFrame(columns=["deity_id", "stotra_count", "favorite_count"])
        else:
            counts = (
                stotras.groupby("deity_id")
                .agg(stotra_count=("stotra_id", "count"), favorite_count=("is_favorite", "sum"))
                .reset_index()
            )

        summary = deities.merge(counts, on="deity_id", how="left")
        summary[["stotra_count", "favorite_count"]] = (
            summary[["stotra_count", "favorite_count"]].fillna(0).astype(int)
        )
        return summary[columns]

    # =========================================================================
    # FAVORITES AND DISPLAY SETTINGS
    # =========================================================================

    def toggle_favorite(self, stotra_id: str) -> bool:
        """
        Flip a stotra's favorite flag in the database and the cache snapshot.

        Returns:
            The new flag

        Raises:
            ContentValidationError: if the stotra does not exist locally
        """
        language = self.current_language
        stotra = self.db.find_stotra(stotra_id, language)
        if stotra is None:
            raise ContentValidationError(f"Stotra not found: {stotra_id}", field="stotra_id", value=stotra_id)

        flag = not stotra.is_favorite
        self.db.set_favorite(stotra_id, language, flag)
        if not self.cache.update_favorite(stotra_id, flag, language):
            logger.debug(f"No cache snapshot entry for {stotra_id}; database updated only")
        return flag

    def get_font_size(self) -> FontSize:
        return self.preferences.get_font_size()

    def set_font_size(self, size: FontSize) -> None:
        self.preferences.set_font_size(size)

    def get_theme(self) -> Theme:
        return self.preferences.get_theme()

    def set_theme(self, theme: Theme) -> None:
        self.preferences.set_theme(theme)

    def reset(self) -> None:
        """Forget the language choice and sync state; content stays cached."""
        self.preferences.reset_all()

    # =========================================================================
    # STATUS AND CLEANUP
    # =========================================================================

    def get_status(self) -> Dict[str, Any]:
        """Get comprehensive status information for UI display."""
        return {
            "language": self.current_language.value,
            "content": self.content_counts(),
            "sync": self.engine.sync_status(),
            "cache": self.cache.get_cache_stats(),
            "schema_version": self.db.schema_version,
        }

    def close(self) -> None:
        """Stop background work and close the database connections."""
        self.engine.stop_auto_sync()
        if self._executor is not None:
            # Runs after any download still in flight
            self._executor.submit(self.db.close)
            self._executor.shutdown(wait=False)
            self._executor = None
        self.db.close()


def create_content_service(
    config: Optional[AppConfig] = None,
    remote=None,
    connection_manager: Optional[ConnectionManager] = None,
    clock: Callable[[], int] = now_ms,
) -> ContentService:
    """
    Build a ContentService and everything it depends on.

    Args:
        config: Settings (default: load_config())
        remote: Content source (default: Supabase per config)
        connection_manager: Reachability check (default: per config URL)
        clock: Epoch-millis time source
    """
    # Lazy import to avoid circular dependencies
    from bhakti_core.data import RemoteContentSource, get_supabase_client

    config = config or load_config()
    setup_logging(config.log_level)

    db = LocalDatabase(config.db_path)
    db.initialize()
    preferences = PreferenceStore(db)
    cache = CacheManager(db, config.cache_dir)

    if remote is None:
        remote = RemoteContentSource(get_supabase_client(config), layout=config.collection_layout)
    if connection_manager is None:
        connection_manager = ConnectionManager(config.supabase_url)

    engine = SyncEngine(
        db,
        preferences,
        cache,
        remote,
        connection_manager=connection_manager,
        clock=clock,
        auto_sync_interval_days=config.auto_sync_interval_days,
    )
    service = ContentService(
        db,
        preferences,
        cache,
        engine,
        first_download_timeout=config.first_download_timeout,
    )
    service.startup()
    return service

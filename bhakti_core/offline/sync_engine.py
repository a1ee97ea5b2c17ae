# =============================================================================
# bhakti_core/offline/sync_engine.py
# Content Synchronization Engine
# =============================================================================
"""
SyncEngine - refills the local content tables from the remote source.

Features:
- Initial download (full corpus for one language, snapshot-first)
- Incremental sync by version_timestamp watermark
- Update check without writes
- Language switch with targeted snapshot invalidation
- Single-flight guard around every entry point
- Weekly background auto sync thread
"""

from __future__ import annotations
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional
import logging

from bhakti_core.errors import SnapshotError, SyncInProgressError
from bhakti_core.offline.entities import Deity, Language, Stotra, now_ms
from bhakti_core.offline.local_database import UpsertOutcome
from bhakti_core.services import BaseService, ProgressCallback

logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000

# Bumped when migrate_legacy_data gains a new step
DATA_MIGRATION_VERSION = 1


@dataclass
class SyncResult:
    """Outcome of an incremental sync."""
    updated: int = 0
    errors: int = 0
    skipped: int = 0  # new stotras whose deity is not present locally

    def as_dict(self) -> Dict[str, int]:
        return {"updated": self.updated, "errors": self.errors, "skipped": self.skipped}


@dataclass
class UpdateCheck:
    """Result of checking the remote source for newer content."""
    has_updates: bool
    update_count: int


@dataclass
class SyncState:
    """Current sync state."""
    is_syncing: bool = False
    operation: Optional[str] = None
    last_run: Optional[datetime] = None
    last_success: Optional[datetime] = None
    last_result: Optional[SyncResult] = None
    last_error: Optional[str] = None
    history: List[Dict[str, Any]] = field(default_factory=list)


class SyncEngine(BaseService):
    """
    Synchronization between the remote content source and local storage.

    Only one operation runs at a time; a second caller gets
    SyncInProgressError instead of waiting.

    Usage:
        engine = SyncEngine(db, preferences, cache, remote)
        engine.initial_download(Language.TELUGU)
        result = engine.sync_new_content()
    """

    HISTORY_LIMIT = 20

    def __init__(
        self,
        db,
        preferences,
        cache,
        remote,
        connection_manager=None,
        clock: Callable[[], int] = now_ms,
        auto_sync_interval_days: float = 7.0,
    ):
        super().__init__()
        self._db = db
        self._prefs = preferences
        self._cache = cache
        self._remote = remote
        self._connection_manager = connection_manager
        self._clock = clock
        self.auto_sync_interval_ms = int(auto_sync_interval_days * DAY_MS)

        self._state = SyncState()
        self._sync_lock = threading.Lock()
        self._auto_thread: Optional[threading.Thread] = None
        self._stop_auto = threading.Event()
        self._callbacks: List[Callable[[SyncState], None]] = []

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def is_syncing(self) -> bool:
        return self._state.is_syncing

    # =========================================================================
    # CALLBACKS AND PROGRESS
    # =========================================================================

    def register_callback(self, callback: Callable[[SyncState], None]) -> None:
        """Register callback for sync state changes."""
        self._callbacks.append(callback)

    def unregister_callback(self, callback: Callable[[SyncState], None]) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _notify_callbacks(self) -> None:
        for callback in self._callbacks:
            try:
                callback(self._state)
            except Exception as e:
                logger.error(f"Sync callback error: {e}")

    def _report(self, percentage: int, message: str, on_progress: Optional[ProgressCallback]) -> None:
        self._update_progress(percentage, message)
        if on_progress:
            on_progress(percentage, message)

    # =========================================================================
    # SINGLE-FLIGHT GUARD
    # =========================================================================

    def _run_exclusive(self, operation: str, func: Callable[..., Any], *args, **kwargs) -> Any:
        if not self._sync_lock.acquire(blocking=False):
            raise SyncInProgressError(operation=operation)

        self._state.is_syncing = True
        self._state.operation = operation
        self._state.last_run = datetime.now()
        self._notify_callbacks()
        try:
            with self.log_operation(operation):
                result = func(*args, **kwargs)
            self._state.last_success = datetime.now()
            self._state.last_error = None
            self._record(operation, "completed")
            return result
        except Exception as e:
            self._state.last_error = str(e)
            self._record(operation, "failed", error=str(e))
            raise
        finally:
            self._state.is_syncing = False
            self._state.operation = None
            self._sync_lock.release()
            self._notify_callbacks()

    def _record(self, operation: str, status: str, **extra) -> None:
        self._state.history.append({
            "operation": operation,
            "status": status,
            "at": datetime.now().isoformat(),
            **extra,
        })
        del self._state.history[:-self.HISTORY_LIMIT]

    def _current_language(self) -> Language:
        return self._prefs.get_current_language() or Language.TELUGU

    # =========================================================================
    # INITIAL DOWNLOAD
    # =========================================================================

    def initial_download(self, language: Language, on_progress: Optional[ProgressCallback] = None) -> None:
        """
        Populate the tables of ``language``.

        A valid cache snapshot is restored without touching the network.
        Otherwise both collections are downloaded and written in a single
        transaction; a remote or storage failure leaves the previous rows
        in place and propagates.
        """
        language = Language.parse(language)
        self._run_exclusive(
            f"Initial download ({language.value})",
            self._initial_download, language, on_progress,
        )

    def _initial_download(self, language: Language, on_progress: Optional[ProgressCallback]) -> None:
        if self._cache.is_valid(language):
            snapshot = self._cache.load(language)
            if snapshot is not None:
                self._cache.restore(snapshot, language)
                self._report(100, "Loaded content from cache", on_progress)
                return

        self._report(10, "Downloading deities", on_progress)
        deities = [Deity.from_remote(doc, language) for doc in self._remote.fetch_deities(language)]
        self._report(30, "Downloading stotras", on_progress)
        stotras = [Stotra.from_remote(doc, language) for doc in self._remote.fetch_stotras(language)]
        self._report(50, "Saving content", on_progress)

        deity_count, stotra_count, skipped = self._db.replace_language_content(language, deities, stotras)
        self._report(60, "Deities saved", on_progress)
        self._report(80, "Stotras saved", on_progress)

        self._save_snapshot(language)

        timestamp = self._clock()
        self._prefs.set_last_sync_timestamp(max(timestamp, self._prefs.get_last_sync_timestamp()))
        self._prefs.set_sync_stats(deity_count, stotra_count, timestamp)
        self._prefs.set_content_version(language, timestamp)
        self._report(100, "Download complete", on_progress)

        logger.info(
            f"Initial download complete for {language.value}: "
            f"{deity_count} deities, {stotra_count} stotras, {skipped} skipped"
        )

    def _save_snapshot(self, language: Language) -> None:
        """Snapshot the rows just written; a failed save is not fatal."""
        try:
            self._cache.save(
                self._db.list_deities(language),
                self._db.list_stotras(language),
                language,
            )
        except SnapshotError as e:
            logger.warning(f"Content saved but cache snapshot failed: {e}")

    # =========================================================================
    # INCREMENTAL SYNC
    # =========================================================================

    def sync_new_content(self, on_progress: Optional[ProgressCallback] = None) -> SyncResult:
        """
        Apply stotras changed since the last sync to the current language.

        Each record is written in its own transaction; a failing record is
        counted in ``errors`` and does not stop the rest. The watermark
        advances even when some records failed.
        """
        return self._run_exclusive("Incremental sync", self._sync_new_content, on_progress)

    def _sync_new_content(self, on_progress: Optional[ProgressCallback]) -> SyncResult:
        language = self._current_language()
        last_sync = self._prefs.get_last_sync_timestamp()
        self._report(20, "Checking for new content", on_progress)

        records = self._remote.fetch_stotras_since(language, last_sync)
        self._report(50, f"Applying {len(records)} updates", on_progress)

        result = SyncResult()
        for record in records:
            try:
                stotra = Stotra.from_remote(record, language)
                outcome = self._db.upsert_stotra(stotra)
            except Exception as e:
                record_id = record.get("stotra_id") if isinstance(record, Mapping) else record
                logger.error(f"Error syncing stotra {record_id!r}: {e}")
                result.errors += 1
                continue

            if outcome is UpsertOutcome.SKIPPED:
                logger.warning(
                    f"Stotra {stotra.stotra_id} skipped: deity {stotra.deity_id} "
                    f"is not present in {language.value}"
                )
                result.skipped += 1
            else:
                result.updated += 1

        self._report(90, "Updating sync markers", on_progress)
        self._prefs.set_last_sync_timestamp(max(self._clock(), last_sync))
        if result.updated:
            self._save_snapshot(language)
        self._state.last_result = result
        self._report(100, "Sync complete", on_progress)

        logger.info(
            f"Incremental sync complete: {result.updated} updated, "
            f"{result.errors} errors, {result.skipped} skipped"
        )
        return result

    def check_for_updates(self) -> UpdateCheck:
        """Count remote stotras newer than the watermark without writing."""
        return self._run_exclusive("Update check", self._check_for_updates)

    def _check_for_updates(self) -> UpdateCheck:
        records = self._remote.fetch_stotras_since(
            self._current_language(),
            self._prefs.get_last_sync_timestamp(),
        )
        return UpdateCheck(has_updates=len(records) > 0, update_count=len(records))

    # =========================================================================
    # LANGUAGE SWITCH
    # =========================================================================

    def switch_language(
        self,
        language: Language,
        on_progress: Optional[ProgressCallback] = None,
        force_refresh: bool = False,
    ) -> None:
        """
        Make ``language`` current and populate its tables.

        The other language's snapshot is left alone so switching back can be
        served from cache. ``force_refresh`` drops the target language's
        snapshot first, forcing a download.
        """
        language = Language.parse(language)
        self._run_exclusive(
            f"Language switch ({language.value})",
            self._switch_language, language, on_progress, force_refresh,
        )

    def _switch_language(self, language: Language, on_progress: Optional[ProgressCallback], force_refresh: bool) -> None:
        self._prefs.set_current_language(language)
        if force_refresh:
            self._cache.clear_language(language)
        self._initial_download(language, on_progress)

    # =========================================================================
    # LEGACY DATA MIGRATION
    # =========================================================================

    def migrate_legacy_data(self) -> int:
        """
        Move pre-v5 single-table content into the language tables once.

        Returns:
            Number of stotras migrated (0 when already done)
        """
        if self._prefs.get_migration_version() >= DATA_MIGRATION_VERSION:
            return 0

        def run() -> int:
            return sum(self._db.migrate_legacy_content(language) for language in Language)

        migrated = self._run_exclusive("Legacy data migration", run)
        self._prefs.set_migration_version(DATA_MIGRATION_VERSION)
        return migrated

    # =========================================================================
    # AUTO SYNC
    # =========================================================================

    def next_auto_sync_time(self) -> Optional[int]:
        """Epoch millis of the next scheduled auto sync, None if never synced."""
        last = self._prefs.get_last_auto_sync()
        if last is None:
            return None
        return last + self.auto_sync_interval_ms

    def is_auto_sync_due(self) -> bool:
        next_time = self.next_auto_sync_time()
        return next_time is None or self._clock() >= next_time

    def run_auto_sync_once(self) -> Optional[SyncResult]:
        """
        One background sync attempt.

        Returns:
            The sync result, or None when auto sync is disabled, the device
            is offline or another sync is running
        """
        if not self._prefs.is_auto_sync_enabled():
            logger.debug("Auto sync disabled")
            return None

        if self._connection_manager is not None:
            self._connection_manager.check_connection()
            if not self._connection_manager.is_online:
                logger.info("Auto sync skipped: offline")
                return None

        try:
            result = self.sync_new_content()
        except SyncInProgressError:
            logger.info("Auto sync skipped: another sync is running")
            return None

        self._prefs.set_last_auto_sync(self._clock())
        return result

    def start_auto_sync(self, poll_interval: float = 3600.0) -> None:
        """
        Start the background auto sync thread.

        The thread wakes every ``poll_interval`` seconds and syncs when the
        auto sync interval has elapsed since the last run.
        """
        if self._auto_thread is not None and self._auto_thread.is_alive():
            return

        self._stop_auto.clear()
        self._auto_thread = threading.Thread(
            target=self._auto_sync_loop,
            args=(poll_interval,),
            daemon=True,
            name="BhaktiAutoSync",
        )
        self._auto_thread.start()
        logger.info("Auto sync started")

    def stop_auto_sync(self) -> None:
        """Stop the background auto sync thread."""
        self._stop_auto.set()
        if self._auto_thread:
            self._auto_thread.join(timeout=10)
            self._auto_thread = None
        logger.info("Auto sync stopped")

    def _auto_sync_loop(self, poll_interval: float) -> None:
        while not self._stop_auto.is_set():
            if self.is_auto_sync_due():
                try:
                    self.run_auto_sync_once()
                except Exception as e:
                    logger.error(f"Auto sync error: {e}")

            if self._stop_auto.wait(timeout=poll_interval):
                break

    # =========================================================================
    # STATUS
    # =========================================================================

    def sync_status(self) -> Dict[str, Any]:
        """Get sync status for UI display."""
        last_result = self._state.last_result
        return {
            "is_syncing": self._state.is_syncing,
            "operation": self._state.operation,
            "language": self._current_language().value,
            "last_sync_timestamp": self._prefs.get_last_sync_timestamp(),
            "last_success": self._state.last_success.isoformat() if self._state.last_success else None,
            "last_error": self._state.last_error,
            "last_result": last_result.as_dict() if last_result else None,
            "stats": self._prefs.get_sync_stats(),
            "auto_sync_enabled": self._prefs.is_auto_sync_enabled(),
            "next_auto_sync": self.next_auto_sync_time(),
        }

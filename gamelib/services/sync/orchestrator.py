"""Sync orchestrator wiring adapters, matcher and store per platform.

This orchestrator coordinates:
- Building one LibrarySynchronizer per platform over a shared HTTP client
- Running library, wishlist, playtime and Riot ranked syncs
- Sync metadata tracking per (user, platform, mode)
- Health reporting for the status endpoint
"""
import time
from datetime import datetime
from typing import Any, Dict, Optional

import httpx
from sqlalchemy.orm import Session

from gamelib.core.logging import get_logger, sync_context
from gamelib.core.metrics import library_sync_duration_seconds, library_sync_runs_total
from gamelib.models import LibraryEntry, Platform, SyncMetadata, SyncMode, platform_key_column
from gamelib.repositories.library_repository import SqlLibraryStore
from gamelib.services.catalog.igdb_client import IgdbCatalogClient
from gamelib.services.sync.adapters import (
    BaseSourceAdapter,
    PlayStationAdapter,
    RiotAdapter,
    SteamAdapter,
)
from gamelib.services.sync.matchers.identity_matcher import IdentityMatcher
from gamelib.services.sync.synchronizer import LibrarySynchronizer
from gamelib.services.sync.types import SyncResult

logger = get_logger(__name__)

ADAPTER_TYPES = {
    Platform.STEAM: SteamAdapter,
    Platform.PLAYSTATION: PlayStationAdapter,
    Platform.RIOT: RiotAdapter,
}


class LibrarySyncOrchestrator:
    """
    Entry point for all library syncs.

    All sync operations should go through this orchestrator so that every
    run is recorded in sync_metadata.
    """

    def __init__(
        self,
        db: Session,
        http_client: Optional[httpx.AsyncClient] = None,
        catalog: Optional[IgdbCatalogClient] = None,
        adapters: Optional[Dict[Platform, BaseSourceAdapter]] = None,
        matcher: Optional[IdentityMatcher] = None,
    ):
        """
        Args:
            db: SQLAlchemy database session
            http_client: Client shared by the catalog and the adapters
            catalog: Catalog client override (tests)
            adapters: Per-platform adapter overrides (tests)
            matcher: Identity matcher override (tests)
        """
        self.db = db
        self._http_client = http_client
        self._owns_client = http_client is None
        self.store = SqlLibraryStore(db)
        self.catalog = catalog or IgdbCatalogClient(http_client=self._get_http_client())
        self.matcher = matcher or IdentityMatcher(self.catalog)
        self._adapters: Dict[Platform, BaseSourceAdapter] = dict(adapters or {})

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                limits=httpx.Limits(max_keepalive_connections=5, max_connections=10)
            )
        return self._http_client

    async def close(self):
        """Close the shared HTTP client if this orchestrator created it."""
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    def adapter_for(self, platform: Platform) -> BaseSourceAdapter:
        platform = Platform(platform)
        if platform not in self._adapters:
            try:
                adapter_type = ADAPTER_TYPES[platform]
            except KeyError:
                raise ValueError(f"No adapter for platform {platform!r}") from None
            self._adapters[platform] = adapter_type(http_client=self._get_http_client())
        return self._adapters[platform]

    def synchronizer_for(self, platform: Platform) -> LibrarySynchronizer:
        return LibrarySynchronizer(self.adapter_for(platform), self.matcher, self.store)

    # ========================================================================
    # Sync operations
    # ========================================================================

    async def sync_library(self, user_id: str, platform: Platform, credential: Any) -> SyncResult:
        """Full library sync for one platform."""
        synchronizer = self.synchronizer_for(platform)
        return await self._run(user_id, Platform(platform), SyncMode.LIBRARY,
                               lambda: synchronizer.sync_library(user_id, credential))

    async def sync_wishlist(self, user_id: str, steam_id: str) -> SyncResult:
        """Steam wishlist sync."""
        synchronizer = self.synchronizer_for(Platform.STEAM)
        return await self._run(user_id, Platform.STEAM, SyncMode.WISHLIST,
                               lambda: synchronizer.sync_wishlist(user_id, steam_id))

    async def sync_playtimes(self, user_id: str, platform: Platform, credential: Any) -> SyncResult:
        """Playtime-only refresh for one platform."""
        synchronizer = self.synchronizer_for(platform)
        return await self._run(user_id, Platform(platform), SyncMode.PLAYTIMES,
                               lambda: synchronizer.sync_playtimes(user_id, credential))

    async def sync_ranked(self, user_id: str, credential: Any) -> SyncResult:
        """Riot ranked-data refresh."""
        synchronizer = self.synchronizer_for(Platform.RIOT)
        return await self._run(user_id, Platform.RIOT, SyncMode.RANKED,
                               lambda: synchronizer.sync_ranked(user_id, credential))

    async def _run(self, user_id: str, platform: Platform, mode: SyncMode, operation) -> SyncResult:
        start_time = datetime.utcnow()
        started = time.perf_counter()
        logger.info(f"Starting {platform.value} {mode.value} sync for {user_id}")

        metadata = self._get_or_create_metadata(user_id, platform, mode)
        metadata.last_sync_started_at = start_time
        self.db.commit()

        with sync_context(user_id, platform.value, mode.value):
            try:
                result = await operation()
            except Exception as e:
                duration_ms = int((time.perf_counter() - started) * 1000)
                logger.error(f"{platform.value} {mode.value} sync failed for {user_id}: {e}")

                self.db.rollback()
                metadata = self._get_or_create_metadata(user_id, platform, mode)
                metadata.last_sync_status = 'failed'
                metadata.error_message = str(e)
                metadata.sync_duration_ms = duration_ms
                self.db.commit()

                library_sync_runs_total.labels(platform=platform.value, mode=mode.value, status="failed").inc()
                raise

        duration_ms = int((time.perf_counter() - started) * 1000)
        metadata = self._get_or_create_metadata(user_id, platform, mode)
        metadata.last_sync_completed_at = datetime.utcnow()
        metadata.last_sync_status = 'success'
        metadata.error_message = None
        metadata.total_games = result.total_games
        metadata.records_matched = result.matched
        metadata.records_imported = result.imported
        metadata.records_updated = result.updated
        metadata.records_failed = result.failed
        metadata.sync_duration_ms = duration_ms
        self.db.commit()

        library_sync_runs_total.labels(platform=platform.value, mode=mode.value, status="success").inc()
        library_sync_duration_seconds.labels(platform=platform.value, mode=mode.value).observe(duration_ms / 1000)

        logger.info(
            f"{platform.value} {mode.value} sync complete for {user_id}: "
            f"{result.summary} ({duration_ms}ms)"
        )
        return result

    # ========================================================================
    # Status
    # ========================================================================

    def get_sync_status(self, user_id: str) -> Dict[str, Any]:
        """
        Sync health for one user.

        Returns:
            Dict with overall status (healthy, degraded, never_synced), one
            record per (platform, mode) run and entry counts per platform
        """
        rows = self.db.query(SyncMetadata).filter(SyncMetadata.user_id == user_id).all()

        syncs = [
            {
                'platform': row.platform,
                'mode': row.mode,
                'status': row.last_sync_status,
                'last_started': row.last_sync_started_at.isoformat() if row.last_sync_started_at else None,
                'last_completed': row.last_sync_completed_at.isoformat() if row.last_sync_completed_at else None,
                'total_games': row.total_games,
                'matched': row.records_matched,
                'imported': row.records_imported,
                'updated': row.records_updated,
                'failed': row.records_failed,
                'duration_ms': row.sync_duration_ms,
                'error': row.error_message,
            }
            for row in rows
        ]

        if not syncs:
            status = 'never_synced'
        elif any(s['status'] == 'failed' for s in syncs):
            status = 'degraded'
        else:
            status = 'healthy'

        owned = LibraryEntry.user_id == user_id
        entries = {
            platform.value: self.store.count(owned, getattr(LibraryEntry, platform_key_column(platform)).isnot(None))
            for platform in Platform
        }
        entries['total'] = self.store.count(owned)

        return {
            'user_id': user_id,
            'status': status,
            'syncs': syncs,
            'entries': entries,
        }

    def _get_or_create_metadata(self, user_id: str, platform: Platform, mode: SyncMode) -> SyncMetadata:
        metadata = self.db.query(SyncMetadata).filter(
            SyncMetadata.user_id == user_id,
            SyncMetadata.platform == platform.value,
            SyncMetadata.mode == mode.value,
        ).first()

        if metadata is None:
            metadata = SyncMetadata(user_id=user_id, platform=platform.value, mode=mode.value)
            self.db.add(metadata)
            self.db.flush()

        return metadata

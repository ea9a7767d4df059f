"""Reconciler merging one raw platform game into a user's library.

Ownership of columns on an existing entry:
- platform-authored (playtime_minutes, platform key, last_synced_at, and the
  Riot ranked blob when the run brought one): overwritten on every sync
- catalog-authored (catalog_id, display name, cover, metadata):
  overwritten only when this run resolved a catalog match
- user-authored (status, rating, notes) and source: never touched

A new entry is built from the catalog match when there is one, otherwise
synthesized from the raw record, with the platform's default status.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from gamelib.core.exceptions import StoreError
from gamelib.core.logging import get_logger
from gamelib.core.metrics import reconciled_items_total
from gamelib.models import (
    LibraryEntry,
    Platform,
    PlayStatus,
    SyncMode,
    platform_key_column,
    source_for,
)
from gamelib.repositories.library_repository import LibraryStore
from gamelib.services.sync.adapters.steam_adapter import header_url, screenshot_urls
from gamelib.services.sync.types import (
    CanonicalGameEntry,
    ExistingKeyMaps,
    RawPlatformGame,
    ReconcileOutcome,
    UpdateFieldSet,
)

logger = get_logger(__name__)

# PSN trophy progress at which a new entry starts as completed
PSN_COMPLETED_PROGRESS = 100


def default_status(raw: RawPlatformGame, mode: SyncMode) -> PlayStatus:
    """Initial status for an entry created by a sync."""
    if mode == SyncMode.WISHLIST:
        return PlayStatus.WISHLIST
    platform = Platform(raw.platform)
    if platform == Platform.PLAYSTATION:
        if (raw.completion_percent or 0) >= PSN_COMPLETED_PROGRESS:
            return PlayStatus.COMPLETED
        return PlayStatus.PLAYING
    if platform in (Platform.STEAM, Platform.RIOT):
        return PlayStatus.PLAYING
    raise ValueError(f"No default status for platform {platform!r}")


def placeholder_columns(raw: RawPlatformGame) -> Dict[str, Any]:
    """Display columns for an entry with no catalog match."""
    platform = Platform(raw.platform)
    if platform == Platform.STEAM:
        return {
            "display_name": raw.display_name,
            "cover_url": header_url(raw.external_id),
            "screenshot_urls": screenshot_urls(raw.external_id),
            "platforms": ["PC (Microsoft Windows)"],
        }
    if platform == Platform.PLAYSTATION:
        return {
            "display_name": raw.display_name,
            "cover_url": raw.icon_url,
            "screenshot_urls": [],
            "platforms": [raw.platform_label] if raw.platform_label else [],
        }
    if platform == Platform.RIOT:
        return {
            "display_name": raw.display_name,
            "cover_url": None,
            "screenshot_urls": [],
            "platforms": [],
        }
    raise ValueError(f"No placeholder mapping for platform {platform!r}")


def build_update_fields(
    raw: RawPlatformGame,
    canonical: Optional[CanonicalGameEntry],
    synced_at: datetime,
) -> UpdateFieldSet:
    """Columns a sync may write on an entry that already exists."""
    always: Dict[str, Any] = {
        platform_key_column(raw.platform): raw.external_id,
        "playtime_minutes": raw.playtime_minutes,
        "last_synced_at": synced_at,
    }
    if raw.ranked_data is not None:
        always["riot_ranked_data"] = raw.ranked_data
    if_present = canonical.metadata_columns() if canonical is not None else {}
    return UpdateFieldSet(always=always, if_present=if_present)


def build_new_entry(
    user_id: str,
    raw: RawPlatformGame,
    canonical: Optional[CanonicalGameEntry],
    mode: SyncMode,
    synced_at: datetime,
) -> LibraryEntry:
    """Full LibraryEntry for a game the user does not have yet."""
    columns: Dict[str, Any] = (
        canonical.metadata_columns() if canonical is not None else placeholder_columns(raw)
    )
    columns[platform_key_column(raw.platform)] = raw.external_id
    return LibraryEntry(
        user_id=user_id,
        status=default_status(raw, mode).value,
        source=source_for(raw.platform, mode).value,
        playtime_minutes=raw.playtime_minutes,
        last_synced_at=synced_at,
        riot_ranked_data=raw.ranked_data,
        **columns,
    )


class Reconciler:
    """Apply one (raw, canonical) pair to the library store."""

    def __init__(self, store: LibraryStore):
        self.store = store

    async def reconcile(
        self,
        user_id: str,
        raw: RawPlatformGame,
        canonical: Optional[CanonicalGameEntry],
        existing_keys: ExistingKeyMaps,
        mode: SyncMode = SyncMode.LIBRARY,
    ) -> ReconcileOutcome:
        """
        Insert or partially update the entry for raw.

        Lookup order: this platform's key, then the catalog id (which links
        a game already added from another platform or by hand).

        Returns:
            IMPORTED for a new row, UPDATED for an existing one, FAILED when
            the store raised (logged, not re-raised)
        """
        synced_at = datetime.utcnow()
        catalog_id = canonical.catalog_id if canonical is not None else None
        existing_id = existing_keys.lookup(raw.external_id, catalog_id)

        candidate = build_new_entry(user_id, raw, canonical, mode, synced_at)
        if existing_id is not None:
            candidate.id = existing_id

        try:
            inserted = await self.store.upsert(candidate, build_update_fields(raw, canonical, synced_at))
        except StoreError:
            logger.exception(f"Failed to reconcile {raw.platform.value}:{raw.external_id} ({raw.display_name!r})")
            reconciled_items_total.labels(platform=raw.platform.value, outcome="failed").inc()
            return ReconcileOutcome.FAILED

        outcome = ReconcileOutcome.IMPORTED if inserted else ReconcileOutcome.UPDATED
        reconciled_items_total.labels(platform=raw.platform.value, outcome=outcome.value).inc()
        return outcome

    async def add_if_missing(
        self,
        user_id: str,
        raw: RawPlatformGame,
        canonical: Optional[CanonicalGameEntry],
        mode: SyncMode = SyncMode.WISHLIST,
    ) -> ReconcileOutcome:
        """
        Insert raw only if the user has no entry for it yet (first write wins).

        An existing entry, found by platform key or catalog id, is left
        untouched and reported as UPDATED.
        """
        try:
            existing = await self.store.find_by_platform_key(user_id, raw.platform, raw.external_id)
            if existing is None and canonical is not None:
                existing = await self.store.find_by_catalog_id(user_id, canonical.catalog_id)
            if existing is not None:
                outcome = ReconcileOutcome.UPDATED
            else:
                await self.store.insert(build_new_entry(user_id, raw, canonical, mode, datetime.utcnow()))
                outcome = ReconcileOutcome.IMPORTED
        except StoreError:
            logger.exception(f"Failed to add {raw.platform.value}:{raw.external_id} ({raw.display_name!r})")
            outcome = ReconcileOutcome.FAILED

        reconciled_items_total.labels(platform=raw.platform.value, outcome=outcome.value).inc()
        return outcome

    async def refresh_playtime(
        self, user_id: str, raw: RawPlatformGame, existing_keys: ExistingKeyMaps
    ) -> ReconcileOutcome:
        """
        Overwrite playtime and sync time of the entry linked to raw's platform key.

        Returns:
            UPDATED, SKIPPED when no entry is linked, FAILED on a store error
        """
        return await self._refresh(user_id, raw, existing_keys, {"playtime_minutes": raw.playtime_minutes})

    async def refresh_ranked(
        self, user_id: str, raw: RawPlatformGame, existing_keys: ExistingKeyMaps
    ) -> ReconcileOutcome:
        """
        Overwrite the Riot ranked blob of the entry linked to raw's platform key.

        Titles without ranked data this run are skipped, not cleared.

        Returns:
            UPDATED, SKIPPED when no entry is linked or there is nothing to
            write, FAILED on a store error
        """
        if raw.ranked_data is None:
            return ReconcileOutcome.SKIPPED
        return await self._refresh(user_id, raw, existing_keys, {"riot_ranked_data": raw.ranked_data})

    async def _refresh(
        self,
        user_id: str,
        raw: RawPlatformGame,
        existing_keys: ExistingKeyMaps,
        columns: Dict[str, Any],
    ) -> ReconcileOutcome:
        entry_id = existing_keys.by_platform_key.get(raw.external_id)
        if entry_id is None:
            return ReconcileOutcome.SKIPPED

        fields = UpdateFieldSet(always=dict(columns, last_synced_at=datetime.utcnow()))
        try:
            updated = await self.store.update(entry_id, fields)
        except StoreError:
            logger.exception(f"Failed to refresh {raw.platform.value}:{raw.external_id} for {user_id}")
            reconciled_items_total.labels(platform=raw.platform.value, outcome="failed").inc()
            return ReconcileOutcome.FAILED

        if not updated:
            return ReconcileOutcome.SKIPPED
        reconciled_items_total.labels(platform=raw.platform.value, outcome="updated").inc()
        return ReconcileOutcome.UPDATED

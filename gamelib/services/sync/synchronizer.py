"""Library synchronizer driving one platform's fetch → match → reconcile pipeline.

Operations:
- sync_library: full library import; matches, links and updates entries
- sync_wishlist: Steam wishlist; exact matching only, adds missing entries
- sync_playtimes: playtime refresh for entries already linked to the platform
- sync_ranked: Riot ranked-data refresh for entries already linked to Riot

Failure policy:
- fetch failures (UpstreamError from the adapter) propagate to the caller
- catalog failures degrade games to unmatched (handled by IdentityMatcher)
- store failures are per item and counted as failed
"""
from typing import Any, List, Optional

from gamelib.core.config import settings
from gamelib.core.exceptions import StoreError
from gamelib.core.logging import get_logger
from gamelib.models import Platform, SyncMode
from gamelib.repositories.library_repository import LibraryStore
from gamelib.services.sync.adapters.base import BaseSourceAdapter
from gamelib.services.sync.matchers.identity_matcher import IdentityMatcher
from gamelib.services.sync.reconciler import Reconciler
from gamelib.services.sync.types import (
    ExistingKeyMaps,
    RawPlatformGame,
    ReconcileOutcome,
    SyncResult,
)
from gamelib.services.sync.utils.batching import run_in_batches

logger = get_logger(__name__)


def dedupe(raw_games: List[RawPlatformGame]) -> List[RawPlatformGame]:
    """Drop repeated external ids, keeping the first occurrence."""
    seen = set()
    unique = []
    for game in raw_games:
        if game.external_id not in seen:
            seen.add(game.external_id)
            unique.append(game)
    return unique


class LibrarySynchronizer:
    """
    Sync one platform's games into a user's library.

    One instance serves one platform (the adapter's). Instances hold no
    per-sync state, so concurrent syncs for different users are safe as long
    as each has its own store session.
    """

    def __init__(
        self,
        adapter: BaseSourceAdapter,
        matcher: IdentityMatcher,
        store: LibraryStore,
        reconciler: Optional[Reconciler] = None,
        batch_size: Optional[int] = None,
    ):
        self.adapter = adapter
        self.matcher = matcher
        self.store = store
        self.reconciler = reconciler or Reconciler(store)
        self.batch_size = batch_size or settings.RECONCILE_BATCH_SIZE

    @property
    def platform(self):
        return self.adapter.platform

    async def sync_library(self, user_id: str, credential: Any) -> SyncResult:
        """
        Import the user's full platform library.

        Args:
            user_id: Owner of the library entries
            credential: Adapter-specific credential (SteamID64, PSN token, RiotCredential)

        Returns:
            SyncResult with matched + unmatched == total_games

        Raises:
            UpstreamError: if the platform library cannot be fetched
        """
        raw_games = dedupe(await self.adapter.fetch_library(credential))
        result = SyncResult(total_games=len(raw_games))
        if not raw_games:
            logger.info(f"{self.platform.value}: library is empty, nothing to sync")
            return result

        matches = await self.matcher.match(raw_games)
        result.matched = sum(1 for game in raw_games if matches.get(game.external_id) is not None)
        result.unmatched = result.total_games - result.matched

        existing_keys = await self._snapshot_keys(user_id)

        async def reconcile(raw: RawPlatformGame) -> ReconcileOutcome:
            return await self.reconciler.reconcile(
                user_id, raw, matches.get(raw.external_id), existing_keys, SyncMode.LIBRARY
            )

        await self._run(raw_games, reconcile, result)
        logger.info(f"{self.platform.value} library sync for {user_id}: {result.summary}")
        return result

    async def sync_wishlist(self, user_id: str, credential: Any) -> SyncResult:
        """
        Add wishlist games the user does not have yet.

        Only the exact catalog lookup runs; entries that already exist are
        left as they are and counted as updated.

        Raises:
            ValueError: if the adapter has no wishlist support
            UpstreamError: if the first wishlist page cannot be fetched
        """
        fetch_wishlist = getattr(self.adapter, "fetch_wishlist", None)
        if fetch_wishlist is None:
            raise ValueError(f"Wishlist sync is not supported for {self.platform.value}")

        raw_games = dedupe(await fetch_wishlist(credential))
        result = SyncResult(total_games=len(raw_games))
        if not raw_games:
            logger.info(f"{self.platform.value}: wishlist is empty, nothing to sync")
            return result

        matches = await self.matcher.match(raw_games, use_fuzzy_fallback=False)
        result.matched = sum(1 for game in raw_games if matches.get(game.external_id) is not None)
        result.unmatched = result.total_games - result.matched

        async def add(raw: RawPlatformGame) -> ReconcileOutcome:
            return await self.reconciler.add_if_missing(
                user_id, raw, matches.get(raw.external_id), SyncMode.WISHLIST
            )

        await self._run(raw_games, add, result)
        logger.info(f"{self.platform.value} wishlist sync for {user_id}: {result.summary}")
        return result

    async def sync_playtimes(self, user_id: str, credential: Any) -> SyncResult:
        """
        Refresh playtime of entries already linked to this platform.

        No matching and no inserts; games with no linked entry are skipped.
        Linked entries are read once up front.

        Raises:
            UpstreamError: if the platform library cannot be fetched
        """
        raw_games = dedupe(await self.adapter.fetch_library(credential))
        result = SyncResult(total_games=len(raw_games))
        if not raw_games:
            return result

        existing_keys = await self.store.existing_keys(user_id, self.platform)

        async def refresh(raw: RawPlatformGame) -> ReconcileOutcome:
            return await self.reconciler.refresh_playtime(user_id, raw, existing_keys)

        await self._run(raw_games, refresh, result)
        logger.info(f"{self.platform.value} playtime refresh for {user_id}: {result.summary}")
        return result

    async def sync_ranked(self, user_id: str, credential: Any) -> SyncResult:
        """
        Refresh Riot ranked data of entries already linked to this platform.

        Like sync_playtimes, but writes only the ranked blob; titles with no
        ranked data this run are skipped.

        Raises:
            ValueError: if the platform has no ranked data (anything but Riot)
            UpstreamError: if the account cannot be probed
        """
        if self.platform != Platform.RIOT:
            raise ValueError(f"Ranked sync is not supported for {self.platform.value}")

        raw_games = dedupe(await self.adapter.fetch_library(credential))
        result = SyncResult(total_games=len(raw_games))
        if not raw_games:
            return result

        existing_keys = await self.store.existing_keys(user_id, self.platform)

        async def refresh(raw: RawPlatformGame) -> ReconcileOutcome:
            return await self.reconciler.refresh_ranked(user_id, raw, existing_keys)

        await self._run(raw_games, refresh, result)
        logger.info(f"{self.platform.value} ranked refresh for {user_id}: {result.summary}")
        return result

    async def _snapshot_keys(self, user_id: str) -> ExistingKeyMaps:
        try:
            return await self.store.existing_keys(user_id, self.platform)
        except StoreError:
            # Inserts still resolve to the right row through the store's
            # conflict handling, just less cheaply.
            logger.exception(f"Existing key snapshot failed for {user_id}, reconciling without it")
            return ExistingKeyMaps()

    async def _run(self, raw_games: List[RawPlatformGame], worker, result: SyncResult) -> None:
        outcomes = await run_in_batches(raw_games, worker, batch_size=self.batch_size)
        for raw, outcome in zip(raw_games, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(
                    f"Unexpected error reconciling {raw.platform.value}:{raw.external_id}",
                    exc_info=outcome,
                )
                result.failed += 1
            else:
                result.record(outcome)


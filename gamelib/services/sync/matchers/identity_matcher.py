"""Identity matcher resolving raw platform games to catalog entries.

Matching phases:
1. Exact lookup - one batch call keyed by platform external ids
2. Fuzzy fallback - per-game catalog search scored by title similarity

Phase 2 runs only for games phase 1 left unmatched, in small concurrent
batches with a pause between them to stay under the catalog's rate limit.
A failure in either phase degrades the affected games to unmatched; it never
fails the sync.
"""
import asyncio
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

from gamelib.core.config import settings
from gamelib.core.logging import get_logger
from gamelib.core.metrics import catalog_matches_total
from gamelib.models.enums import Platform
from gamelib.services.sync.types import CanonicalGameEntry, RawPlatformGame
from gamelib.services.sync.utils.batching import Sleep, run_in_batches
from gamelib.services.sync.utils.name_normalizer import normalize
from gamelib.services.sync.utils.similarity import similarity

logger = get_logger(__name__)

MatchMap = Dict[str, Optional[CanonicalGameEntry]]


class CatalogClient(Protocol):
    async def lookup_by_external_ids(
        self, platform: Platform, external_ids: Iterable[str]
    ) -> Dict[str, CanonicalGameEntry]: ...

    async def search_by_name(self, query: str) -> List[CanonicalGameEntry]: ...


def best_candidate(
    name: str,
    candidates: List[CanonicalGameEntry],
    threshold: float,
) -> Tuple[Optional[CanonicalGameEntry], float]:
    """
    Pick the candidate whose normalized name is most similar to name.

    Returns:
        (candidate, score) when score is strictly above threshold,
        otherwise (None, best score seen). Ties keep catalog order.
    """
    target = normalize(name)
    best: Optional[CanonicalGameEntry] = None
    best_score = 0.0

    for candidate in candidates:
        score = similarity(target, normalize(candidate.name))
        if score > best_score:
            best, best_score = candidate, score

    if best is not None and best_score > threshold:
        return best, best_score
    return None, best_score


class IdentityMatcher:
    """
    Resolve RawPlatformGame records against the catalog.

    Every input external id appears in the result; the value is None when
    neither phase produced a match.
    """

    def __init__(
        self,
        catalog: CatalogClient,
        use_fuzzy_fallback: Optional[bool] = None,
        batch_size: Optional[int] = None,
        batch_delay: Optional[float] = None,
        threshold: Optional[float] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Args:
            catalog: Catalog client (IgdbCatalogClient in production)
            use_fuzzy_fallback: Enable phase 2 (defaults to FUZZY_MATCH_ENABLED)
            batch_size: Concurrent searches per batch
            batch_delay: Seconds between search batches
            threshold: Minimum similarity, exclusive
            sleep: Awaitable sleep, injectable for tests
        """
        self.catalog = catalog
        self.use_fuzzy_fallback = (
            settings.FUZZY_MATCH_ENABLED if use_fuzzy_fallback is None else use_fuzzy_fallback
        )
        self.batch_size = batch_size or settings.FUZZY_MATCH_BATCH_SIZE
        self.batch_delay = settings.FUZZY_MATCH_BATCH_DELAY if batch_delay is None else batch_delay
        self.threshold = settings.FUZZY_MATCH_THRESHOLD if threshold is None else threshold
        self.sleep = sleep

    async def match(
        self,
        raw_games: List[RawPlatformGame],
        use_fuzzy_fallback: Optional[bool] = None,
    ) -> MatchMap:
        """
        Resolve a batch of raw games from a single platform.

        Args:
            raw_games: Games from one adapter call
            use_fuzzy_fallback: Per-call override of the phase 2 switch

        Returns:
            external_id -> CanonicalGameEntry or None
        """
        results: MatchMap = {game.external_id: None for game in raw_games}
        if not raw_games:
            return results

        platform = raw_games[0].platform
        fuzzy = self.use_fuzzy_fallback if use_fuzzy_fallback is None else use_fuzzy_fallback

        # Phase 1: batch exact lookup
        try:
            exact = await self.catalog.lookup_by_external_ids(platform, list(results))
        except Exception as e:
            logger.warning(f"Catalog lookup failed for {len(results)} {platform.value} games, treating as unmatched: {e}")
            exact = {}

        for external_id, entry in exact.items():
            if external_id in results:
                results[external_id] = entry

        exact_count = sum(1 for entry in results.values() if entry is not None)
        catalog_matches_total.labels(platform=platform.value, phase="exact").inc(exact_count)

        # Phase 2: fuzzy fallback for whatever is left
        unmatched = [game for game in raw_games if results[game.external_id] is None]
        fuzzy_count = 0
        if fuzzy and unmatched:
            outcomes = await run_in_batches(
                unmatched,
                self._search_one,
                batch_size=self.batch_size,
                delay=self.batch_delay,
                sleep=self.sleep,
            )
            for game, outcome in zip(unmatched, outcomes):
                if isinstance(outcome, CanonicalGameEntry):
                    results[game.external_id] = outcome
                    fuzzy_count += 1
                elif isinstance(outcome, BaseException):
                    logger.warning(f"Fuzzy match failed for {game.display_name!r}: {outcome}")

            catalog_matches_total.labels(platform=platform.value, phase="fuzzy").inc(fuzzy_count)

        unmatched_count = len(results) - exact_count - fuzzy_count
        catalog_matches_total.labels(platform=platform.value, phase="unmatched").inc(unmatched_count)

        logger.info(
            f"Identity match ({platform.value}): {exact_count} exact, "
            f"{fuzzy_count} fuzzy, {unmatched_count} unmatched of {len(results)}"
        )
        return results

    async def _search_one(self, game: RawPlatformGame) -> Optional[CanonicalGameEntry]:
        candidates = await self.catalog.search_by_name(game.display_name)
        match, score = best_candidate(game.display_name, candidates, self.threshold)
        if match is not None:
            logger.debug(f"Fuzzy matched {game.display_name!r} -> {match.name!r} ({score:.2f})")
        return match

"""Riot Games adapter.

A Riot account is one credential spanning several titles. The adapter probes
each title's API and emits one raw record per title the account has played:
- League of Legends summoner (required; the "first page" of this library)
- Teamfight Tactics summoner (best-effort)
- Valorant matchlist (best-effort; needs a production key)

Riot reports no playtime, so playtime_minutes is always 0. Ranked standings
(LoL/TFT league entries, Valorant match count) ride along as ranked_data.
"""
import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from gamelib.core.config import settings
from gamelib.core.exceptions import UpstreamError
from gamelib.core.logging import get_logger
from gamelib.models.enums import Platform
from gamelib.services.sync.adapters.base import BaseSourceAdapter
from gamelib.services.sync.types import RawPlatformGame

logger = get_logger(__name__)

LEAGUE_OF_LEGENDS = "league_of_legends"
TEAMFIGHT_TACTICS = "teamfight_tactics"
VALORANT = "valorant"

TITLE_NAMES = {
    LEAGUE_OF_LEGENDS: "League of Legends",
    TEAMFIGHT_TACTICS: "Teamfight Tactics",
    VALORANT: "Valorant",
}

# Platform routing value -> regional cluster
PLATFORM_CLUSTERS = {
    'tr1': 'europe', 'euw1': 'europe', 'eun1': 'europe', 'ru': 'europe',
    'na1': 'americas', 'br1': 'americas', 'la1': 'americas', 'la2': 'americas',
    'kr': 'asia', 'jp1': 'asia',
    'oc1': 'sea', 'ph2': 'sea', 'sg2': 'sea', 'th2': 'sea', 'tw2': 'sea', 'vn2': 'sea',
}
DEFAULT_CLUSTER = "europe"


def cluster_for(platform_region: str) -> str:
    return PLATFORM_CLUSTERS.get(platform_region.lower(), DEFAULT_CLUSTER)


# Fields kept from a league-v4 / tft-league-v1 entry
LEAGUE_ENTRY_FIELDS = ("queueType", "tier", "rank", "leaguePoints", "wins", "losses")


def league_entry(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {key: payload.get(key) for key in LEAGUE_ENTRY_FIELDS}


@dataclass(frozen=True)
class RiotCredential:
    """PUUID plus platform routing value (e.g. "euw1"); api_key falls back to settings."""
    puuid: str
    platform_region: str
    api_key: Optional[str] = None


class RiotAdapter(BaseSourceAdapter):
    """Adapter producing one record per Riot title the account has played."""

    platform = Platform.RIOT
    source = "riot"

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None, **kwargs):
        kwargs.setdefault("timeout", settings.PROBE_TIMEOUT)
        super().__init__(http_client=http_client, **kwargs)

    @staticmethod
    def _record(external_id: str, ranked_data: Optional[Dict[str, Any]] = None) -> RawPlatformGame:
        return RawPlatformGame(
            platform=Platform.RIOT,
            external_id=external_id,
            display_name=TITLE_NAMES[external_id],
            ranked_data=ranked_data,
        )

    async def fetch_library(self, credential: RiotCredential) -> List[RawPlatformGame]:
        """
        Probe LoL, TFT and Valorant for the account.

        Each record carries the title's ranked blob when Riot has one:
        league entries plus summoner level for LoL/TFT, match count for
        Valorant.

        Raises:
            UpstreamError: if the League of Legends probe fails with anything
                other than 404 (404 only means "never played")
        """
        api_key = credential.api_key or settings.RIOT_API_KEY
        if not api_key:
            raise UpstreamError("RIOT_API_KEY is not configured", retryable=False, source=self.source)

        headers = {"X-Riot-Token": api_key}
        region_base = f"https://{credential.platform_region}.api.riotgames.com"
        cluster_base = f"https://{cluster_for(credential.platform_region)}.api.riotgames.com"

        lol, tft, valorant = await asyncio.gather(
            self._probe(f"{region_base}/lol/summoner/v4/summoners/by-puuid/{credential.puuid}", headers),
            self._optional_probe(
                TEAMFIGHT_TACTICS,
                f"{region_base}/tft/summoner/v1/summoners/by-puuid/{credential.puuid}",
                headers,
            ),
            self._optional_probe(
                VALORANT,
                f"{cluster_base}/val/match/v1/matchlists/by-puuid/{credential.puuid}",
                headers,
            ),
        )

        lol_ranked, tft_ranked = await asyncio.gather(
            self._summoner_ranked(LEAGUE_OF_LEGENDS, lol, f"{region_base}/lol/league/v4/entries/by-summoner", headers),
            self._summoner_ranked(TEAMFIGHT_TACTICS, tft, f"{region_base}/tft/league/v1/entries/by-summoner", headers),
        )

        games = []
        if lol is not None:
            games.append(self._record(LEAGUE_OF_LEGENDS, lol_ranked))
        if tft is not None:
            games.append(self._record(TEAMFIGHT_TACTICS, tft_ranked))
        history = valorant.get("history") if isinstance(valorant, dict) else None
        if history:
            games.append(self._record(VALORANT, {"match_count": len(history)}))

        logger.info(f"Riot: account has played {[g.external_id for g in games]}")
        return games

    async def _probe(self, url: str, headers: dict) -> Optional[Dict[str, Any]]:
        """The title's account payload, or None when the account never played it (404)."""
        try:
            data = await self._get_json(url, headers=headers)
        except UpstreamError as e:
            if e.status == 404:
                return None
            raise
        return data if isinstance(data, dict) else {}

    async def _optional_probe(self, title: str, url: str, headers: dict) -> Optional[Dict[str, Any]]:
        try:
            return await self._probe(url, headers)
        except UpstreamError as e:
            logger.warning(f"Riot: {title} probe failed, skipping title: {e}")
            return None

    async def _summoner_ranked(
        self,
        title: str,
        summoner: Optional[Dict[str, Any]],
        entries_url: str,
        headers: dict,
    ) -> Optional[Dict[str, Any]]:
        """
        Ranked blob for a LoL/TFT summoner.

        Returns:
            {"entries": [...], "summoner_level": n}, or None when the
            summoner is unranked or the league lookup failed
        """
        summoner_id = summoner.get("id") if summoner else None
        if not summoner_id:
            return None
        try:
            data = await self._get_json(f"{entries_url}/{summoner_id}", headers=headers)
        except UpstreamError as e:
            logger.warning(f"Riot: {title} ranked entries unavailable: {e}")
            return None

        entries = [league_entry(item) for item in data if isinstance(item, dict)] if isinstance(data, list) else []
        if not entries:
            return None
        return {"entries": entries, "summoner_level": summoner.get("summonerLevel")}

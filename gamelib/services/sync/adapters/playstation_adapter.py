"""PlayStation Network adapter.

The library is the user's trophy title list; each trophy title is one game.
Playtime lives in a separate game-list feed that uses different title ids,
so the two are joined on a normalized title (see playstation_join_key).

Credential: a PSN access token (obtaining it is out of scope here).
"""
import re
from typing import Any, Dict, List, Optional

import httpx

from gamelib.core.config import settings
from gamelib.core.exceptions import UpstreamError
from gamelib.core.logging import get_logger
from gamelib.models.enums import Platform
from gamelib.services.sync.adapters.base import BaseSourceAdapter
from gamelib.services.sync.types import RawPlatformGame
from gamelib.services.sync.utils.name_normalizer import (
    clean_playstation_title,
    playstation_join_key,
)

logger = get_logger(__name__)

PSN_API_BASE = "https://m.np.playstation.com/api"
PAGE_SIZE = 100
PAGE_DELAY = 0.3  # seconds between pages
GAMELIST_CATEGORIES = "ps4_game,ps5_native_game"

_DURATION_RE = re.compile(r'^PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+(?:\.\d+)?)S)?$')


def parse_play_duration(value: Any) -> int:
    """
    Convert a game-list playDuration to minutes.

    Examples:
        >>> parse_play_duration("PT45H30M")
        2730
        >>> parse_play_duration(90)
        90
    """
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(value, 0)
    if not isinstance(value, str):
        return 0
    match = _DURATION_RE.match(value)
    if not match:
        return 0
    hours, minutes, seconds = match.groups()
    return int(hours or 0) * 60 + int(minutes or 0) + int(float(seconds or 0)) // 60


class PlayStationAdapter(BaseSourceAdapter):
    """Adapter for PSN trophy titles with playtime merged in."""

    platform = Platform.PLAYSTATION
    source = "psn"

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None, **kwargs):
        kwargs.setdefault("timeout", settings.LIBRARY_FETCH_TIMEOUT)
        super().__init__(http_client=http_client, **kwargs)

    @staticmethod
    def _auth(access_token: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {access_token}"}

    async def fetch_library(self, access_token: str) -> List[RawPlatformGame]:
        """
        Fetch all trophy titles and attach playtime.

        Raises:
            UpstreamError: if the first trophy page cannot be read
        """
        titles = await self._fetch_trophy_titles(access_token)
        if not titles:
            return []

        playtimes = await self.fetch_playtimes(access_token)

        games = []
        for title in titles:
            game = self._parse_title(title, playtimes)
            if game is not None:
                games.append(game)

        with_playtime = sum(1 for g in games if g.playtime_minutes > 0)
        logger.info(f"PSN: fetched {len(games)} trophy titles ({with_playtime} with playtime)")
        return games

    async def _fetch_trophy_titles(self, access_token: str) -> List[Dict[str, Any]]:
        titles: List[Dict[str, Any]] = []
        offset = 0

        while True:
            try:
                data = await self._get_json(
                    f"{PSN_API_BASE}/trophy/v1/users/me/trophyTitles",
                    params={"limit": PAGE_SIZE, "offset": offset},
                    headers=self._auth(access_token),
                )
            except UpstreamError:
                if offset == 0:
                    raise
                logger.warning(f"PSN: trophy page at offset {offset} failed, keeping {len(titles)} titles")
                break

            page = data.get("trophyTitles", []) if isinstance(data, dict) else []
            titles.extend(page)

            if len(page) < PAGE_SIZE:
                break
            offset += PAGE_SIZE
            await self.sleep(PAGE_DELAY)

        return titles

    async def fetch_playtimes(self, access_token: str) -> Dict[str, int]:
        """
        Playtime in minutes keyed by playstation_join_key(title).

        Best-effort: any failure ends paging and returns what was read.
        """
        playtimes: Dict[str, int] = {}
        offset = 0

        while True:
            try:
                data = await self._get_json(
                    f"{PSN_API_BASE}/gamelist/v2/users/me/titles",
                    params={"limit": PAGE_SIZE, "offset": offset, "categories": GAMELIST_CATEGORIES},
                    headers=self._auth(access_token),
                )
            except UpstreamError as e:
                logger.warning(f"PSN: playtime feed unavailable at offset {offset}: {e}")
                break

            page = data.get("titles", []) if isinstance(data, dict) else []
            for item in page:
                name = item.get("name")
                minutes = parse_play_duration(item.get("playDuration"))
                if name and minutes > 0:
                    playtimes[playstation_join_key(name)] = minutes

            if len(page) < PAGE_SIZE:
                break
            offset += PAGE_SIZE
            await self.sleep(PAGE_DELAY)

        return playtimes

    def _parse_title(self, title: Dict[str, Any], playtimes: Dict[str, int]) -> Optional[RawPlatformGame]:
        title_id = title.get("npCommunicationId") or title.get("trophyTitleId")
        if not title_id:
            return None

        raw_name = title.get("trophyTitleName") or "Unknown Game"
        progress = title.get("progress")

        return RawPlatformGame(
            platform=Platform.PLAYSTATION,
            external_id=str(title_id),
            display_name=clean_playstation_title(raw_name) or raw_name,
            playtime_minutes=playtimes.get(playstation_join_key(raw_name), 0),
            icon_url=title.get("trophyTitleIconUrl"),
            completion_percent=int(progress) if isinstance(progress, (int, float)) else None,
            platform_label=title.get("trophyTitlePlatform"),
        )

"""Steam adapter for owned games and the public wishlist.

Data sources:
- IPlayerService/GetOwnedGames (Steam Web API key + SteamID64)
- store.steampowered.com wishlistdata (public wishlists only, paged by ?p=N)

External ids are Steam app ids rendered as strings.
"""
from typing import Any, Dict, List, Optional

import httpx

from gamelib.core.config import settings
from gamelib.core.exceptions import UpstreamError
from gamelib.core.logging import get_logger
from gamelib.models.enums import Platform
from gamelib.services.sync.adapters.base import BaseSourceAdapter
from gamelib.services.sync.types import RawPlatformGame

logger = get_logger(__name__)

STEAM_API_BASE = "https://api.steampowered.com"
STEAM_STORE_BASE = "https://store.steampowered.com"
STEAM_CDN_BASE = "https://steamcdn-a.akamaihd.net/steam/apps"
STEAM_ICON_BASE = "https://media.steampowered.com/steamcommunity/public/images/apps"

WISHLIST_MAX_PAGES = 50
WISHLIST_PAGE_DELAY = 0.2  # seconds between wishlist pages
# Wishlist payload value meaning "private or unavailable"
WISHLIST_UNAVAILABLE = 2


def header_url(app_id: str) -> str:
    return f"{STEAM_CDN_BASE}/{app_id}/header.jpg"


def screenshot_urls(app_id: str, count: int = 4) -> List[str]:
    """Steam serves the first screenshots of every app at predictable URLs."""
    return [f"{STEAM_CDN_BASE}/{app_id}/ss_{i}.1920x1080.jpg" for i in range(1, count + 1)]


def _image_hints(app_id: str) -> Dict[str, str]:
    return {
        "header_url": header_url(app_id),
        "capsule_url": f"{STEAM_CDN_BASE}/{app_id}/library_600x900.jpg",
        "hero_url": f"{STEAM_CDN_BASE}/{app_id}/library_hero.jpg",
    }


class SteamAdapter(BaseSourceAdapter):
    """
    Adapter for the Steam Web API and store wishlist.

    The credential for both library and wishlist is the user's SteamID64.
    """

    platform = Platform.STEAM
    source = "steam"

    def __init__(
        self,
        api_key: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        **kwargs,
    ):
        kwargs.setdefault("timeout", settings.LIBRARY_FETCH_TIMEOUT)
        super().__init__(http_client=http_client, **kwargs)
        self.api_key = api_key if api_key is not None else settings.STEAM_API_KEY

    async def fetch_library(self, steam_id: str) -> List[RawPlatformGame]:
        """
        Fetch owned games, including free games and app info.

        Raises:
            UpstreamError: HTTP failure, or status 403 when the profile's
                game details are private
        """
        if not self.api_key:
            raise UpstreamError("STEAM_API_KEY is not configured", retryable=False, source=self.source)

        data = await self._get_json(
            f"{STEAM_API_BASE}/IPlayerService/GetOwnedGames/v1/",
            params={
                "key": self.api_key,
                "steamid": steam_id,
                "include_appinfo": "true",
                "include_played_free_games": "true",
                "format": "json",
            },
        )

        response = data.get("response") if isinstance(data, dict) else None
        if response is None:
            # Steam answers 200 with an empty object for private profiles
            raise UpstreamError(
                "Steam profile game details are private",
                status=403,
                retryable=False,
                source=self.source,
            )

        games = [self._parse_owned_game(game) for game in response.get("games", [])]
        logger.info(f"Steam: fetched {len(games)} owned games for {steam_id}")
        return games

    def _parse_owned_game(self, game: Dict[str, Any]) -> RawPlatformGame:
        app_id = str(game["appid"])
        icon_hash = game.get("img_icon_url")
        return RawPlatformGame(
            platform=Platform.STEAM,
            external_id=app_id,
            display_name=game.get("name") or "Unknown Game",
            playtime_minutes=int(game.get("playtime_forever") or 0),
            icon_url=f"{STEAM_ICON_BASE}/{app_id}/{icon_hash}.jpg" if icon_hash else None,
            **_image_hints(app_id),
        )

    async def fetch_wishlist(self, steam_id: str) -> List[RawPlatformGame]:
        """
        Fetch the public wishlist, page by page.

        Page 0 failing (HTTP error or the "unavailable" marker) raises; a later
        page failing ends paging and the items read so far are returned.
        """
        items: List[RawPlatformGame] = []

        for page in range(WISHLIST_MAX_PAGES + 1):
            try:
                data = await self._get_json(
                    f"{STEAM_STORE_BASE}/wishlist/profiles/{steam_id}/wishlistdata/",
                    params={"p": page},
                    timeout=settings.WISHLIST_PAGE_TIMEOUT,
                )
            except UpstreamError:
                if page == 0:
                    raise
                logger.warning(f"Steam: wishlist page {page} failed, keeping {len(items)} items")
                break

            if isinstance(data, dict) and data.get("success") == WISHLIST_UNAVAILABLE:
                if page == 0:
                    raise UpstreamError(
                        "Steam wishlist is private or unavailable",
                        status=403,
                        retryable=False,
                        source=self.source,
                    )
                break

            if not isinstance(data, dict) or not data:
                break

            page_items = [
                self._parse_wishlist_item(key, value)
                for key, value in data.items()
                if key.isdigit() and isinstance(value, dict)
            ]
            if not page_items:
                break
            items.extend(page_items)

            if page < WISHLIST_MAX_PAGES:
                await self.sleep(WISHLIST_PAGE_DELAY)

        logger.info(f"Steam: fetched {len(items)} wishlist items for {steam_id}")
        return items

    def _parse_wishlist_item(self, app_id: str, data: Dict[str, Any]) -> RawPlatformGame:
        hints = _image_hints(app_id)
        if data.get("capsule"):
            hints["capsule_url"] = data["capsule"]
        return RawPlatformGame(
            platform=Platform.STEAM,
            external_id=app_id,
            display_name=data.get("name") or "Unknown Game",
            playtime_minutes=0,
            **hints,
        )

"""Tests for PlayStationAdapter against httpx.MockTransport.

Test Strategy:
1. Trophy titles become raw games with cleaned names and progress
2. Game-list playtime is joined on the normalized title
3. Trophy paging (100 per page, paced) and first-page failure
4. Playtime feed failure is best-effort
"""
from unittest.mock import AsyncMock

import httpx
import pytest
from tenacity import wait_none

from gamelib.core.exceptions import UpstreamError
from gamelib.models import Platform
from gamelib.services.sync.adapters.playstation_adapter import PlayStationAdapter, parse_play_duration

TROPHY_TITLES = [
    {
        "npCommunicationId": "NPWR20188_00",
        "trophyTitleName": "ASTRO BOT Trophies",
        "trophyTitleIconUrl": "https://image.api.playstation.com/trophy/np/NPWR20188_00.png",
        "trophyTitlePlatform": "PS5",
        "progress": 100,
    },
    {
        "npCommunicationId": "NPWR31777_00",
        "trophyTitleName": "EA SPORTS FC™ 24",
        "trophyTitlePlatform": "PS4,PS5",
        "progress": 12,
    },
]

GAME_LIST = [
    {"name": "ASTRO BOT", "playDuration": "PT21H15M"},
    {"name": "FIFA 24", "playDuration": "PT3H"},
    {"name": "Not In Trophies", "playDuration": "PT1H"},
]


def make_adapter(trophy_pages, gamelist=GAME_LIST, gamelist_status=200):
    """trophy_pages: list of title lists (or an int status) served by offset / 100."""
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        assert request.headers["Authorization"] == "Bearer psn-token"
        if request.url.path.endswith("/trophyTitles"):
            page = trophy_pages[int(request.url.params["offset"]) // 100]
            if isinstance(page, int):
                return httpx.Response(page)
            return httpx.Response(200, json={"trophyTitles": page, "totalItemCount": 0})
        if request.url.path.endswith("/titles"):
            if gamelist_status != 200:
                return httpx.Response(gamelist_status)
            return httpx.Response(200, json={"titles": gamelist})
        return httpx.Response(404)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    adapter = PlayStationAdapter(http_client=client, sleep=AsyncMock(), retry_wait=wait_none())
    return adapter, requests


class TestFetchLibrary:

    @pytest.mark.asyncio
    async def test_parses_trophy_titles_with_playtime(self):
        adapter, _ = make_adapter([TROPHY_TITLES])

        games = await adapter.fetch_library("psn-token")

        astro, fc = games
        assert astro.platform == Platform.PLAYSTATION
        assert astro.external_id == "NPWR20188_00"
        assert astro.display_name == "ASTRO BOT"
        assert astro.playtime_minutes == 21 * 60 + 15
        assert astro.completion_percent == 100
        assert astro.platform_label == "PS5"
        assert astro.icon_url.endswith("NPWR20188_00.png")

        # FIFA 24 in the game list joins EA SPORTS FC 24 in the trophy list
        assert fc.display_name == "EA SPORTS FC 24"
        assert fc.playtime_minutes == 180

    @pytest.mark.asyncio
    async def test_empty_trophy_list_skips_playtime_feed(self):
        adapter, requests = make_adapter([[]])

        assert await adapter.fetch_library("psn-token") == []
        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_pages_trophy_titles(self):
        full_page = [
            {"npCommunicationId": f"NPWR{i:05d}_00", "trophyTitleName": f"Game {i}"} for i in range(100)
        ]
        adapter, _ = make_adapter([full_page, TROPHY_TITLES[:1]], gamelist=[])

        games = await adapter.fetch_library("psn-token")

        assert len(games) == 101
        adapter.sleep.assert_awaited_once_with(0.3)

    @pytest.mark.asyncio
    async def test_first_page_failure_raises(self):
        adapter, _ = make_adapter([401])

        with pytest.raises(UpstreamError) as exc_info:
            await adapter.fetch_library("psn-token")

        assert exc_info.value.status == 401

    @pytest.mark.asyncio
    async def test_playtime_feed_failure_is_not_fatal(self):
        adapter, _ = make_adapter([TROPHY_TITLES], gamelist_status=403)

        games = await adapter.fetch_library("psn-token")

        assert len(games) == 2
        assert all(g.playtime_minutes == 0 for g in games)

    @pytest.mark.asyncio
    async def test_titles_without_id_are_dropped(self):
        adapter, _ = make_adapter([[{"trophyTitleName": "Ghost"}] + TROPHY_TITLES[:1]], gamelist=[])

        games = await adapter.fetch_library("psn-token")

        assert [g.external_id for g in games] == ["NPWR20188_00"]


class TestParsePlayDuration:

    @pytest.mark.parametrize("value,minutes", [
        ("PT45H30M", 2730),
        ("PT2H", 120),
        ("PT59M59S", 59),
        ("PT90S", 1),
        (90, 90),
        ("garbage", 0),
        (None, 0),
        (True, 0),
    ])
    def test_durations(self, value, minutes):
        assert parse_play_duration(value) == minutes

"""Unit tests for sync value types.

Test Strategy:
1. CanonicalGameEntry.from_igdb: image URL upgrades, metacritic rule, dates
2. ExistingKeyMaps lookup order (platform key before catalog id)
3. SyncResult counters, summary and dict form
4. Enum mappings raise for unsupported combinations
"""
from datetime import date

import pytest

from gamelib.models import Platform, EntrySource, SyncMode, platform_key_column, source_for
from gamelib.services.sync.types import (
    CanonicalGameEntry,
    ExistingKeyMaps,
    ReconcileOutcome,
    SyncResult,
    UpdateFieldSet,
)

WITCHER_PAYLOAD = {
    "id": 1942,
    "name": "The Witcher 3: Wild Hunt",
    "summary": "Geralt hunts monsters.",
    "cover": {"url": "//images.igdb.com/igdb/image/upload/t_thumb/co1wyy.jpg"},
    "screenshots": [
        {"url": "//images.igdb.com/igdb/image/upload/t_thumb/sc8kbq.jpg"},
        {"url": "//images.igdb.com/igdb/image/upload/t_screenshot_med/sc8kbr.jpg"},
    ],
    "platforms": [{"name": "PC (Microsoft Windows)"}, {"name": "PlayStation 4"}],
    "genres": [{"name": "Role-playing (RPG)"}, {"name": "Adventure"}],
    "aggregated_rating": 92.6,
    "aggregated_rating_count": 30,
    "rating": 94.1,
    "rating_count": 3100,
    "first_release_date": 1431993600,  # 2015-05-19 UTC
}


class TestCanonicalGameEntry:

    def test_from_igdb_full_payload(self):
        entry = CanonicalGameEntry.from_igdb(WITCHER_PAYLOAD)

        assert entry.catalog_id == 1942
        assert entry.name == "The Witcher 3: Wild Hunt"
        assert entry.cover_url == "https://images.igdb.com/igdb/image/upload/t_1080p/co1wyy.jpg"
        assert entry.screenshot_urls == (
            "https://images.igdb.com/igdb/image/upload/t_screenshot_huge/sc8kbq.jpg",
            "https://images.igdb.com/igdb/image/upload/t_screenshot_huge/sc8kbr.jpg",
        )
        assert entry.platforms == ("PC (Microsoft Windows)", "PlayStation 4")
        assert entry.genres == ("Role-playing (RPG)", "Adventure")
        assert entry.metacritic_score == 93
        assert entry.release_date == date(2015, 5, 19)

    def test_metacritic_needs_seven_reviews(self):
        payload = dict(WITCHER_PAYLOAD, aggregated_rating_count=6)

        entry = CanonicalGameEntry.from_igdb(payload)

        assert entry.metacritic_score is None
        assert entry.aggregated_rating == 92.6

    def test_sparse_payload(self):
        """Only an id: everything optional is empty."""
        entry = CanonicalGameEntry.from_igdb({"id": 7})

        assert entry.name == "Unknown Game"
        assert entry.cover_url is None
        assert entry.screenshot_urls == ()
        assert entry.release_date is None

    def test_metadata_columns_use_library_column_names(self):
        columns = CanonicalGameEntry.from_igdb(WITCHER_PAYLOAD).metadata_columns()

        assert columns["catalog_id"] == 1942
        assert columns["display_name"] == "The Witcher 3: Wild Hunt"
        assert columns["catalog_rating"] == 94.1
        assert columns["catalog_rating_count"] == 3100
        assert columns["genres"] == ["Role-playing (RPG)", "Adventure"]


class TestExistingKeyMaps:

    def test_platform_key_wins_over_catalog_id(self):
        keys = ExistingKeyMaps(by_platform_key={"292030": "entry-a"}, by_catalog_id={1942: "entry-b"})

        assert keys.lookup("292030", 1942) == "entry-a"

    def test_falls_back_to_catalog_id(self):
        keys = ExistingKeyMaps(by_catalog_id={1942: "entry-b"})

        assert keys.lookup("292030", 1942) == "entry-b"
        assert keys.lookup("292030", None) is None


class TestSyncResult:

    def test_record_and_summary(self):
        result = SyncResult(total_games=4, matched=3, unmatched=1)
        for outcome in (ReconcileOutcome.IMPORTED, ReconcileOutcome.IMPORTED,
                        ReconcileOutcome.UPDATED, ReconcileOutcome.SKIPPED):
            result.record(outcome)

        assert (result.imported, result.updated, result.failed) == (2, 1, 0)
        assert result.summary == "2 added, 1 updated, 0 failed"
        assert result.to_dict() == {
            "total_games": 4,
            "matched": 3,
            "unmatched": 1,
            "imported": 2,
            "updated": 1,
            "failed": 0,
            "summary": "2 added, 1 updated, 0 failed",
        }

    def test_update_field_set_always_overrides_if_present(self):
        fields = UpdateFieldSet(always={"playtime_minutes": 10}, if_present={"playtime_minutes": 0, "catalog_id": 5})

        assert fields.columns() == {"playtime_minutes": 10, "catalog_id": 5}

    def test_update_field_set_drops_empty_catalog_values(self):
        fields = UpdateFieldSet(
            always={"riot_ranked_data": None},
            if_present={"summary": None, "screenshot_urls": [], "genres": ["RPG"], "metacritic_score": 0},
        )

        assert fields.columns() == {"riot_ranked_data": None, "genres": ["RPG"], "metacritic_score": 0}


class TestPlatformMappings:

    def test_key_columns(self):
        assert platform_key_column(Platform.STEAM) == "steam_app_id"
        assert platform_key_column("playstation") == "psn_title_id"
        assert platform_key_column(Platform.RIOT) == "riot_title_id"

    def test_unknown_platform_raises(self):
        with pytest.raises(ValueError):
            platform_key_column("xbox")

    def test_sources(self):
        assert source_for(Platform.STEAM) == EntrySource.STEAM
        assert source_for(Platform.STEAM, SyncMode.WISHLIST) == EntrySource.STEAM_WISHLIST
        assert source_for(Platform.RIOT, SyncMode.PLAYTIMES) == EntrySource.RIOT

    def test_wishlist_only_for_steam(self):
        with pytest.raises(ValueError):
            source_for(Platform.PLAYSTATION, SyncMode.WISHLIST)

"""
Closed enumerations shared by the sync pipeline and the persisted models.

Every per-platform lookup below is an exhaustive table; asking for a platform
that has no row raises instead of falling through to a default.
"""
from enum import Enum


class Platform(str, Enum):
    """External platforms a library can be synced from."""
    STEAM = "steam"
    PLAYSTATION = "playstation"
    RIOT = "riot"


class EntrySource(str, Enum):
    """Provenance of a library entry."""
    MANUAL = "manual"
    STEAM = "steam"
    STEAM_WISHLIST = "steam_wishlist"
    PLAYSTATION = "playstation"
    RIOT = "riot"


class PlayStatus(str, Enum):
    """User-facing play status of a library entry."""
    WISHLIST = "wishlist"
    PLAYING = "playing"
    COMPLETED = "completed"
    DROPPED = "dropped"


class SyncMode(str, Enum):
    """Which synchronizer operation produced a run."""
    LIBRARY = "library"
    WISHLIST = "wishlist"
    PLAYTIMES = "playtimes"
    RANKED = "ranked"


# Column on library_entries holding the platform-scoped external id
PLATFORM_KEY_COLUMNS: dict[Platform, str] = {
    Platform.STEAM: "steam_app_id",
    Platform.PLAYSTATION: "psn_title_id",
    Platform.RIOT: "riot_title_id",
}

LIBRARY_SOURCES: dict[Platform, EntrySource] = {
    Platform.STEAM: EntrySource.STEAM,
    Platform.PLAYSTATION: EntrySource.PLAYSTATION,
    Platform.RIOT: EntrySource.RIOT,
}


def _lookup(table: dict, platform: Platform, what: str):
    try:
        return table[Platform(platform)]
    except (KeyError, ValueError):
        raise ValueError(f"No {what} defined for platform {platform!r}") from None


def platform_key_column(platform: Platform) -> str:
    """Name of the LibraryEntry column keyed by this platform's external id."""
    return _lookup(PLATFORM_KEY_COLUMNS, platform, "key column")


def source_for(platform: Platform, mode: SyncMode = SyncMode.LIBRARY) -> EntrySource:
    """Provenance tag for entries inserted by a sync of the given platform and mode."""
    if mode == SyncMode.WISHLIST:
        if Platform(platform) != Platform.STEAM:
            raise ValueError(f"Wishlist sync is not supported for platform {platform!r}")
        return EntrySource.STEAM_WISHLIST
    return _lookup(LIBRARY_SOURCES, platform, "entry source")

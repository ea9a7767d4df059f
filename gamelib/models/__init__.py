"""
Library models.

Usage:
    from gamelib.models import LibraryEntry, Platform

    steam_rows = db.query(LibraryEntry).filter(LibraryEntry.steam_app_id.isnot(None)).all()
"""
from gamelib.models.enums import (
    Platform,
    EntrySource,
    PlayStatus,
    SyncMode,
    platform_key_column,
    source_for,
)
from gamelib.models.library import Base, LibraryEntry, SyncMetadata

__all__ = [
    "Base",
    "LibraryEntry",
    "SyncMetadata",
    "Platform",
    "EntrySource",
    "PlayStatus",
    "SyncMode",
    "platform_key_column",
    "source_for",
]

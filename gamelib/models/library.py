"""
Persisted library models.

A LibraryEntry is one game in one user's library. It is keyed two ways:
by catalog id once the game has been resolved against IGDB, and by one
platform key column per platform (steam_app_id, psn_title_id, riot_title_id)
so a re-sync can find its own rows even when catalog resolution failed.
"""
import uuid
from datetime import datetime

from sqlalchemy import (
    Column, String, Float, Integer, DateTime, Date, Text, JSON, Index, UniqueConstraint
)
from sqlalchemy.orm import declarative_base

from gamelib.models.enums import EntrySource, PlayStatus

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


class LibraryEntry(Base):
    """
    One game in a user's library.

    User-authored columns (status, rating, notes) are only ever written by a
    sync when it creates the row. Platform-authored columns (playtime_minutes,
    last_synced_at, and riot_ranked_data when the sync brought any) are
    rewritten by every sync that touches the row.
    """
    __tablename__ = "library_entries"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(64), nullable=False, index=True)
    catalog_id = Column(Integer, nullable=True)  # IGDB game id; NULL when unresolved

    # Display / catalog metadata
    display_name = Column(String(255), nullable=False)
    cover_url = Column(String(512), nullable=True)
    summary = Column(Text, nullable=True)
    genres = Column(JSON, nullable=False, default=list)
    platforms = Column(JSON, nullable=False, default=list)
    screenshot_urls = Column(JSON, nullable=False, default=list)
    aggregated_rating = Column(Float, nullable=True)
    catalog_rating = Column(Float, nullable=True)
    catalog_rating_count = Column(Integer, nullable=True)
    metacritic_score = Column(Integer, nullable=True)
    release_date = Column(Date, nullable=True)

    # User-authored
    status = Column(String(16), nullable=False, default=PlayStatus.PLAYING.value)
    rating = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)

    source = Column(String(32), nullable=False, default=EntrySource.MANUAL.value)

    # Platform keys
    steam_app_id = Column(String(32), nullable=True)
    psn_title_id = Column(String(64), nullable=True)
    riot_title_id = Column(String(64), nullable=True)

    # Platform-authored
    playtime_minutes = Column(Integer, nullable=False, default=0)
    last_synced_at = Column(DateTime, nullable=True)
    riot_ranked_data = Column(JSON, nullable=True)  # league entries, summoner level, match count

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('user_id', 'catalog_id', name='uq_library_user_catalog'),
        UniqueConstraint('user_id', 'steam_app_id', name='uq_library_user_steam'),
        UniqueConstraint('user_id', 'psn_title_id', name='uq_library_user_psn'),
        UniqueConstraint('user_id', 'riot_title_id', name='uq_library_user_riot'),
        Index('ix_library_user_status', 'user_id', 'status'),
    )

    def __repr__(self) -> str:
        return f"<LibraryEntry {self.display_name!r} user={self.user_id} catalog={self.catalog_id}>"


class SyncMetadata(Base):
    """Last run of each (user, platform, mode) sync."""
    __tablename__ = "sync_metadata"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(64), nullable=False)
    platform = Column(String(16), nullable=False)
    mode = Column(String(16), nullable=False)
    last_sync_started_at = Column(DateTime, nullable=True)
    last_sync_completed_at = Column(DateTime, nullable=True)
    last_sync_status = Column(String(16), nullable=True)
    total_games = Column(Integer, nullable=False, default=0)
    records_matched = Column(Integer, nullable=False, default=0)
    records_imported = Column(Integer, nullable=False, default=0)
    records_updated = Column(Integer, nullable=False, default=0)
    records_failed = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
    sync_duration_ms = Column(Integer, nullable=True)

    __table_args__ = (
        UniqueConstraint('user_id', 'platform', 'mode', name='uq_sync_metadata_user_platform_mode'),
        Index('ix_sync_metadata_status', 'last_sync_status'),
    )

"""
Library store: persistence of LibraryEntry rows for the sync pipeline.

The reconciler talks to the LibraryStore protocol; SqlLibraryStore is the
SQLAlchemy implementation. Its methods are coroutines so an async-driver
store can be dropped in, but this implementation runs the blocking session
calls inline (no await between them), so concurrent reconcile tasks never
interleave inside one store call.

Conflict handling:
The unique constraints on (user_id, catalog_id) and (user_id, <platform key>)
are the source of truth. When an insert loses a race against another writer,
the update field set is applied to the row that won instead.
"""
from datetime import datetime
from typing import Dict, Optional, Protocol

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from gamelib.core.exceptions import StoreError
from gamelib.core.logging import get_logger
from gamelib.models import LibraryEntry, Platform, platform_key_column
from gamelib.repositories.base import BaseRepository
from gamelib.services.sync.types import ExistingKeyMaps, UpdateFieldSet

logger = get_logger(__name__)


class LibraryStore(Protocol):
    async def find_by_platform_key(
        self, user_id: str, platform: Platform, external_id: str
    ) -> Optional[LibraryEntry]: ...

    async def find_by_catalog_id(self, user_id: str, catalog_id: int) -> Optional[LibraryEntry]: ...

    async def existing_keys(self, user_id: str, platform: Platform) -> ExistingKeyMaps: ...

    async def insert(self, entry: LibraryEntry) -> LibraryEntry: ...

    async def upsert(self, entry: LibraryEntry, update_fields: UpdateFieldSet) -> bool: ...

    async def update(self, entry_id: str, update_fields: UpdateFieldSet) -> bool: ...



class SqlLibraryStore(BaseRepository[LibraryEntry]):
    """SQLAlchemy-backed LibraryStore over the library_entries table."""

    def __init__(self, db: Session):
        super().__init__(LibraryEntry, db)

    # ========================================================================
    # Reads
    # ========================================================================

    async def find_by_platform_key(
        self, user_id: str, platform: Platform, external_id: str
    ) -> Optional[LibraryEntry]:
        column = getattr(LibraryEntry, platform_key_column(platform))
        try:
            return self.query().filter(
                LibraryEntry.user_id == user_id,
                column == str(external_id),
            ).first()
        except SQLAlchemyError as e:
            raise StoreError(f"Lookup by {platform.value} key failed: {e}") from e

    async def find_by_catalog_id(self, user_id: str, catalog_id: int) -> Optional[LibraryEntry]:
        try:
            return self.filter_by_first(user_id=user_id, catalog_id=catalog_id)
        except SQLAlchemyError as e:
            raise StoreError(f"Lookup by catalog id failed: {e}") from e

    async def existing_keys(self, user_id: str, platform: Platform) -> ExistingKeyMaps:
        """
        Snapshot the user's platform keys and catalog ids in one query.

        Returns:
            ExistingKeyMaps with by_platform_key for this platform and
            by_catalog_id across every entry of the user
        """
        key_column = getattr(LibraryEntry, platform_key_column(platform))
        try:
            rows = self.db.query(LibraryEntry.id, LibraryEntry.catalog_id, key_column).filter(
                LibraryEntry.user_id == user_id
            ).all()
        except SQLAlchemyError as e:
            raise StoreError(f"Existing key snapshot failed: {e}") from e

        by_platform_key: Dict[str, str] = {}
        by_catalog_id: Dict[int, str] = {}
        for entry_id, catalog_id, platform_key in rows:
            if platform_key is not None:
                by_platform_key[str(platform_key)] = entry_id
            if catalog_id is not None:
                by_catalog_id[catalog_id] = entry_id

        return ExistingKeyMaps(by_platform_key=by_platform_key, by_catalog_id=by_catalog_id)

    # ========================================================================
    # Writes
    # ========================================================================

    async def insert(self, entry: LibraryEntry) -> LibraryEntry:
        """
        Insert a new entry and commit.

        Raises:
            StoreError: on any database error, including a unique conflict
        """
        try:
            self.add(entry)
            self.save()
            return entry
        except SQLAlchemyError as e:
            self.rollback()
            raise StoreError(f"Insert of {entry.display_name!r} failed: {e}") from e

    async def upsert(self, entry: LibraryEntry, update_fields: UpdateFieldSet) -> bool:
        """
        Update the row with entry.id, or insert entry when there is none.

        When the insert collides with another row on (user, catalog id) or
        (user, platform key), update_fields is applied to that row.

        Args:
            entry: Full candidate row; entry.id names the existing row, if any
            update_fields: Columns to write on an existing row

        Returns:
            True when a new row was inserted, False when an existing row was updated

        Raises:
            StoreError: on database errors other than a resolvable conflict
        """
        try:
            existing = self.find_by_id(entry.id) if entry.id else None
            if existing is not None:
                self._update_existing(existing, update_fields)
                return False

            try:
                self.add(entry)
                self.save()
                return True
            except IntegrityError:
                self.rollback()
                winner = self._find_conflicting(entry)
                if winner is None:
                    raise
                logger.info(f"Insert conflict for {entry.display_name!r}, updating existing entry {winner.id}")
                self._update_existing(winner, update_fields)
                return False
        except SQLAlchemyError as e:
            self.rollback()
            raise StoreError(f"Upsert of {entry.display_name!r} failed: {e}") from e

    async def update(self, entry_id: str, update_fields: UpdateFieldSet) -> bool:
        """
        Apply update_fields to the row with entry_id.

        Returns:
            True when the row was updated, False when it no longer exists

        Raises:
            StoreError: on database errors
        """
        try:
            row = self.find_by_id(entry_id)
            if row is None:
                return False
            self._update_existing(row, update_fields)
            return True
        except SQLAlchemyError as e:
            self.rollback()
            raise StoreError(f"Update of entry {entry_id} failed: {e}") from e

    def _update_existing(self, row: LibraryEntry, update_fields: UpdateFieldSet) -> None:
        """
        Apply update_fields to row and commit.

        If the catalog columns would collide with another of the user's
        entries (the same game added separately before it was linked), only
        the always columns are written.
        """
        row_id = row.id
        self._apply(row, update_fields)
        try:
            self.save()
        except IntegrityError:
            self.rollback()
            if not update_fields.if_present:
                raise
            logger.warning(f"Catalog columns for entry {row_id} collide with another entry, writing platform columns only")
            row = self.find_by_id(row_id)
            if row is None:
                raise StoreError(f"Entry {row_id} disappeared during update")
            self._apply(row, UpdateFieldSet(always=update_fields.always))
            self.save()

    def _apply(self, row: LibraryEntry, update_fields: UpdateFieldSet) -> None:
        for column, value in update_fields.columns().items():
            setattr(row, column, value)
        row.updated_at = datetime.utcnow()

    def _find_conflicting(self, entry: LibraryEntry) -> Optional[LibraryEntry]:
        clauses = []
        if entry.catalog_id is not None:
            clauses.append(LibraryEntry.catalog_id == entry.catalog_id)
        for platform in Platform:
            column_name = platform_key_column(platform)
            value = getattr(entry, column_name)
            if value is not None:
                clauses.append(getattr(LibraryEntry, column_name) == value)
        if not clauses:
            return None
        return self.query().filter(LibraryEntry.user_id == entry.user_id, or_(*clauses)).first()

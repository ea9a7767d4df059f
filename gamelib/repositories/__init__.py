from gamelib.repositories.base import BaseRepository
from gamelib.repositories.library_repository import LibraryStore, SqlLibraryStore

__all__ = ["BaseRepository", "LibraryStore", "SqlLibraryStore"]

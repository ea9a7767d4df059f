"""Shared pytest fixtures for gamelib-sync tests."""
import sys
from pathlib import Path
from typing import Dict, Generator, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

# Add project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from gamelib.core.exceptions import UpstreamError  # noqa: E402
from gamelib.models import Platform  # noqa: E402
from gamelib.services.sync.types import CanonicalGameEntry, RawPlatformGame  # noqa: E402


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create fresh test database session with isolated in-memory database."""
    from gamelib.models import Base

    # StaticPool keeps one connection so the TestClient threadpool sees
    # the same in-memory database as the test body.
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    TestSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestSessionLocal()

    yield session

    session.close()
    engine.dispose()


@pytest.fixture
def store(db_session: Session):
    from gamelib.repositories.library_repository import SqlLibraryStore
    return SqlLibraryStore(db_session)


# =============================================================================
# SAMPLE DATA HELPERS
# =============================================================================

def steam_game(app_id, name: str, playtime: int = 0) -> RawPlatformGame:
    """RawPlatformGame as the Steam adapter would emit it."""
    return RawPlatformGame(
        platform=Platform.STEAM,
        external_id=str(app_id),
        display_name=name,
        playtime_minutes=playtime,
    )


def psn_game(title_id: str, name: str, playtime: int = 0, progress: Optional[int] = None) -> RawPlatformGame:
    return RawPlatformGame(
        platform=Platform.PLAYSTATION,
        external_id=title_id,
        display_name=name,
        playtime_minutes=playtime,
        icon_url=f"https://image.api.playstation.com/trophy/{title_id}.png",
        completion_percent=progress,
        platform_label="PS5",
    )


def riot_game(title: str, ranked_data: Optional[dict] = None) -> RawPlatformGame:
    names = {"league_of_legends": "League of Legends", "teamfight_tactics": "Teamfight Tactics", "valorant": "Valorant"}
    return RawPlatformGame(
        platform=Platform.RIOT,
        external_id=title,
        display_name=names[title],
        ranked_data=ranked_data,
    )


def canonical(catalog_id: int, name: str, **kwargs) -> CanonicalGameEntry:
    """CanonicalGameEntry with a predictable cover URL."""
    kwargs.setdefault("cover_url", f"https://images.igdb.com/igdb/image/upload/t_1080p/co{catalog_id}.jpg")
    kwargs.setdefault("genres", ("Role-playing (RPG)",))
    return CanonicalGameEntry(catalog_id=catalog_id, name=name, **kwargs)


# =============================================================================
# FAKE COLLABORATORS
# =============================================================================

class FakeCatalog:
    """
    In-memory catalog client.

    exact maps external id -> entry for lookup_by_external_ids; search maps
    query -> candidate list for search_by_name. Set lookup_error or
    search_errors to make calls raise.
    """

    def __init__(
        self,
        exact: Optional[Dict[str, CanonicalGameEntry]] = None,
        search: Optional[Dict[str, List[CanonicalGameEntry]]] = None,
    ):
        self.exact = exact or {}
        self.search = search or {}
        self.lookup_error: Optional[Exception] = None
        self.search_errors: Dict[str, Exception] = {}
        self.lookup_calls: List[tuple] = []
        self.search_calls: List[str] = []

    async def lookup_by_external_ids(self, platform, external_ids):
        ids = list(external_ids)
        self.lookup_calls.append((platform, ids))
        if self.lookup_error is not None:
            raise self.lookup_error
        return {ext: self.exact[ext] for ext in ids if ext in self.exact}

    async def search_by_name(self, query: str):
        self.search_calls.append(query)
        if query in self.search_errors:
            raise self.search_errors[query]
        return list(self.search.get(query, []))


class FakeAdapter:
    """Source adapter returning canned games (or raising) for one platform."""

    def __init__(
        self,
        platform: Platform,
        games: Optional[List[RawPlatformGame]] = None,
        error: Optional[Exception] = None,
    ):
        self.platform = platform
        self.games = games or []
        self.error = error
        self.calls: List = []

    async def fetch_library(self, credential):
        self.calls.append(credential)
        if self.error is not None:
            raise self.error
        return list(self.games)

    async def close(self):
        pass


class FakeWishlistAdapter(FakeAdapter):
    """Steam-like fake that also serves a wishlist."""

    def __init__(self, wishlist: List[RawPlatformGame], **kwargs):
        super().__init__(Platform.STEAM, **kwargs)
        self.wishlist = wishlist

    async def fetch_wishlist(self, credential):
        self.calls.append(credential)
        if self.error is not None:
            raise self.error
        return list(self.wishlist)


def private_profile_error() -> UpstreamError:
    return UpstreamError("Steam profile game details are private", status=403, retryable=False, source="steam")


async def no_sleep(seconds: float) -> None:
    """Drop-in for asyncio.sleep that returns immediately."""


@pytest.fixture
def fake_catalog() -> FakeCatalog:
    return FakeCatalog()


# =============================================================================
# FASTAPI TEST CLIENT FIXTURE
# =============================================================================

@pytest.fixture(scope="function")
def test_client(db_session):
    """
    Create FastAPI TestClient bound to the in-memory database.

    Usage:
        def test_endpoint(test_client):
            response = test_client.get("/api/sync/status/user-1")
            assert response.status_code == 200
    """
    from fastapi.testclient import TestClient
    from gamelib.main import app
    from gamelib.core.database import get_db

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    # No context manager: startup would run init_db against the real engine
    client = TestClient(app)
    yield client

    app.dependency_overrides.clear()

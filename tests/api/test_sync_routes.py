"""
HTTP endpoint tests for the sync API.

These tests verify that the FastAPI endpoints:
- Return sync counters on success
- Reject requests missing the platform's credential
- Map upstream failures to 502/503
- Report per-user sync health

The orchestrator dependency is overridden with one wired to fake adapters
and a fake catalog on the in-memory test database.
"""
import pytest
from fastapi.testclient import TestClient

from gamelib.api.routes.sync import get_orchestrator
from gamelib.core.exceptions import UpstreamError
from gamelib.main import app
from gamelib.models import Platform
from gamelib.services.sync.matchers.identity_matcher import IdentityMatcher
from gamelib.services.sync.orchestrator import LibrarySyncOrchestrator

from conftest import (
    FakeAdapter,
    FakeCatalog,
    FakeWishlistAdapter,
    canonical,
    no_sleep,
    private_profile_error,
    riot_game,
    steam_game,
)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def adapters():
    """Platform adapters served to the orchestrator; tests mutate them."""
    return {
        Platform.STEAM: FakeWishlistAdapter(
            [steam_game(1145360, "Hades")],
            games=[steam_game(620, "Portal 2", 700), steam_game(1, "Mystery", 3)],
        ),
        Platform.RIOT: FakeAdapter(Platform.RIOT, []),
    }


@pytest.fixture
def api(test_client: TestClient, db_session, adapters):
    catalog = FakeCatalog(exact={"620": canonical(72, "Portal 2")})
    matcher = IdentityMatcher(catalog, use_fuzzy_fallback=True, sleep=no_sleep, batch_delay=0)

    def override_get_orchestrator():
        return LibrarySyncOrchestrator(db_session, catalog=catalog, adapters=adapters, matcher=matcher)

    app.dependency_overrides[get_orchestrator] = override_get_orchestrator
    return test_client


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

class TestRootAndHealthEndpoints:

    def test_root_endpoint(self, test_client: TestClient):
        response = test_client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "running"
        assert data["platforms"] == ["steam", "playstation", "riot"]

    def test_health_endpoint(self, test_client: TestClient):
        response = test_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_correlation_id_echoed(self, test_client: TestClient):
        response = test_client.get("/health", headers={"X-Correlation-ID": "req-42"})

        assert response.headers["X-Correlation-ID"] == "req-42"

    def test_correlation_id_generated(self, test_client: TestClient):
        response = test_client.get("/health")

        assert response.headers["X-Correlation-ID"]


# =============================================================================
# LIBRARY SYNC
# =============================================================================

class TestLibrarySyncEndpoint:

    def test_steam_library_sync(self, api: TestClient, adapters):
        response = api.post("/api/sync/steam/library", json={"user_id": "user-1", "steam_id": "7656119"})

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "steam library sync completed"
        results = data["results"]
        assert results["total_games"] == 2
        assert results["matched"] == 1
        assert results["imported"] == 2
        assert results["summary"] == "2 added, 0 updated, 0 failed"
        assert adapters[Platform.STEAM].calls == ["7656119"]

    def test_missing_credential(self, api: TestClient, adapters):
        response = api.post("/api/sync/steam/library", json={"user_id": "user-1"})

        assert response.status_code == 400
        assert "steam_id" in response.json()["detail"]
        assert adapters[Platform.STEAM].calls == []

    def test_riot_credential_assembled(self, api: TestClient, adapters):
        response = api.post(
            "/api/sync/riot/library",
            json={"user_id": "user-1", "puuid": "puuid-123", "platform_region": "euw1"},
        )

        assert response.status_code == 200
        credential = adapters[Platform.RIOT].calls[0]
        assert credential.puuid == "puuid-123"
        assert credential.platform_region == "euw1"

    def test_unknown_platform(self, api: TestClient):
        response = api.post("/api/sync/xbox/library", json={"user_id": "user-1"})

        assert response.status_code == 422

    def test_blank_user_id(self, api: TestClient):
        response = api.post("/api/sync/steam/library", json={"user_id": "", "steam_id": "1"})

        assert response.status_code == 422

    def test_permanent_upstream_failure(self, api: TestClient, adapters):
        adapters[Platform.STEAM].error = private_profile_error()

        response = api.post("/api/sync/steam/library", json={"user_id": "user-1", "steam_id": "1"})

        assert response.status_code == 502
        assert "private" in response.json()["detail"]

    def test_retryable_upstream_failure(self, api: TestClient, adapters):
        adapters[Platform.STEAM].error = UpstreamError("Steam unavailable", status=503, source="steam")

        response = api.post("/api/sync/steam/library", json={"user_id": "user-1", "steam_id": "1"})

        assert response.status_code == 503


# =============================================================================
# WISHLIST, PLAYTIMES, RANKED AND STATUS
# =============================================================================

class TestOtherSyncEndpoints:

    def test_wishlist_sync(self, api: TestClient):
        response = api.post("/api/sync/steam/wishlist", json={"user_id": "user-1", "steam_id": "1"})

        assert response.status_code == 200
        assert response.json()["results"]["imported"] == 1

    def test_playtime_sync_after_library(self, api: TestClient, adapters):
        body = {"user_id": "user-1", "steam_id": "1"}
        api.post("/api/sync/steam/library", json=body)
        adapters[Platform.STEAM].games = [steam_game(620, "Portal 2", 900)]

        response = api.post("/api/sync/steam/playtimes", json=body)

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "steam playtime sync completed"
        assert data["results"]["updated"] == 1

    def test_riot_ranked_sync(self, api: TestClient, adapters):
        body = {"user_id": "user-1", "puuid": "puuid-123", "platform_region": "euw1"}
        adapters[Platform.RIOT].games = [riot_game("valorant", {"match_count": 4})]
        api.post("/api/sync/riot/library", json=body)
        adapters[Platform.RIOT].games = [riot_game("valorant", {"match_count": 9})]

        response = api.post("/api/sync/riot/ranked", json=body)

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "riot ranked sync completed"
        assert data["results"]["updated"] == 1

    def test_riot_ranked_sync_needs_riot_credential(self, api: TestClient):
        response = api.post("/api/sync/riot/ranked", json={"user_id": "user-1", "steam_id": "1"})

        assert response.status_code == 400

    def test_status_never_synced(self, api: TestClient):
        response = api.get("/api/sync/status/user-1")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "never_synced"
        assert data["entries"]["total"] == 0

    def test_status_after_failed_sync(self, api: TestClient, adapters):
        api.post("/api/sync/steam/library", json={"user_id": "user-1", "steam_id": "1"})
        adapters[Platform.STEAM].error = private_profile_error()
        api.post("/api/sync/steam/wishlist", json={"user_id": "user-1", "steam_id": "1"})

        data = api.get("/api/sync/status/user-1").json()

        assert data["status"] == "degraded"
        assert data["entries"]["steam"] == 2

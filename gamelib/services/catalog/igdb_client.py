"""
IGDB catalog client.

Resolves platform games to canonical IGDB records, two ways:
- lookup_by_external_ids: exact identity lookup, one request per batch
  (Steam through IGDB's external_games index, Riot through a pinned table)
- search_by_name: free-text search, top 20 by IGDB relevance

Every request is an Apicalypse query POSTed with Client-ID and bearer token
headers. Non-200 responses and transport failures raise CatalogError.
"""
from typing import Dict, Iterable, List, Optional

import httpx

from gamelib.core.config import settings
from gamelib.core.exceptions import CatalogError
from gamelib.core.logging import get_logger
from gamelib.core.metrics import upstream_requests_failure_total
from gamelib.models.enums import Platform
from gamelib.services.sync.types import CanonicalGameEntry
from gamelib.services.sync.utils.batching import chunked

logger = get_logger(__name__)

GAME_FIELDS = (
    "id,name,summary,cover.url,screenshots.url,platforms.name,genres.name,"
    "aggregated_rating,aggregated_rating_count,rating,rating_count,first_release_date"
)
SEARCH_LIMIT = 20
# IGDB caps a single query at 500 rows
MAX_QUERY_ROWS = 500

# external_games.category value for Steam
STEAM_EXTERNAL_CATEGORY = 1

# Riot titles are not in external_games; their IGDB ids are stable.
RIOT_TITLE_CATALOG_IDS: Dict[str, int] = {
    "league_of_legends": 115,
    "valorant": 126459,
    "teamfight_tactics": 119255,
}


def _quote(value: str) -> str:
    return '"' + value.replace("\\", "").replace('"', "") + '"'


class IgdbCatalogClient:
    """
    Async client for the IGDB v4 API.

    The HTTP client is injected so tests can use httpx.MockTransport and so
    one connection pool can be shared by a whole sync. When none is given
    the client creates (and owns) its own.
    """

    def __init__(
        self,
        client_id: Optional[str] = None,
        access_token: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.client_id = client_id if client_id is not None else settings.IGDB_CLIENT_ID
        self.access_token = access_token if access_token is not None else settings.IGDB_ACCESS_TOKEN
        self.base_url = (base_url or settings.IGDB_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.CATALOG_TIMEOUT
        self._client = http_client
        self._owns_client = http_client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self):
        """Close the HTTP client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Client-ID": self.client_id,
            "Authorization": f"Bearer {self.access_token}",
            "Accept": "application/json",
        }

    async def _query(self, endpoint: str, body: str) -> List[dict]:
        """POST an Apicalypse query and return the decoded JSON array."""
        if not self.client_id or not self.access_token:
            raise CatalogError("Missing IGDB credentials (IGDB_CLIENT_ID / IGDB_ACCESS_TOKEN)", retryable=False)

        try:
            response = await self._get_client().post(
                f"{self.base_url}/{endpoint}",
                content=body,
                headers=self._get_headers(),
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            upstream_requests_failure_total.labels(source="igdb", error_type="timeout").inc()
            raise CatalogError(f"IGDB {endpoint} timed out") from e
        except httpx.RequestError as e:
            upstream_requests_failure_total.labels(source="igdb", error_type="transport").inc()
            raise CatalogError(f"IGDB {endpoint} request failed: {e}") from e

        if response.status_code != 200:
            upstream_requests_failure_total.labels(source="igdb", error_type=str(response.status_code)).inc()
            if response.status_code in (401, 403):
                raise CatalogError(
                    "IGDB rejected the credentials; check IGDB_CLIENT_ID and refresh IGDB_ACCESS_TOKEN",
                    status=response.status_code,
                )
            logger.error(f"IGDB {endpoint} failed ({response.status_code}): {response.text[:200]}")
            raise CatalogError(f"IGDB {endpoint} failed", status=response.status_code)

        data = response.json()
        if not isinstance(data, list):
            raise CatalogError(f"IGDB {endpoint} returned unexpected payload", status=response.status_code)
        return data

    # Search

    async def search_by_name(self, query: str) -> List[CanonicalGameEntry]:
        """
        Free-text search.

        Args:
            query: Game title as reported by a platform

        Returns:
            Up to 20 entries, in IGDB relevance order
        """
        query = query.strip()
        if not query:
            return []

        body = f"search {_quote(query)};\nfields {GAME_FIELDS};\nlimit {SEARCH_LIMIT};\n"
        results = [CanonicalGameEntry.from_igdb(row) for row in await self._query("games", body)]
        logger.debug(f"IGDB: {len(results)} result(s) for {query!r}")
        return results

    # Identity lookup

    async def fetch_by_ids(self, catalog_ids: Iterable[int]) -> Dict[int, CanonicalGameEntry]:
        """Fetch full records for known IGDB game ids."""
        ids = sorted(set(catalog_ids))
        found: Dict[int, CanonicalGameEntry] = {}
        for batch in chunked(ids, MAX_QUERY_ROWS):
            id_list = ",".join(str(i) for i in batch)
            body = f"where id = ({id_list});\nfields {GAME_FIELDS};\nlimit {len(batch)};\n"
            for row in await self._query("games", body):
                entry = CanonicalGameEntry.from_igdb(row)
                found[entry.catalog_id] = entry
        return found

    async def lookup_by_external_ids(
        self,
        platform: Platform,
        external_ids: Iterable[str],
    ) -> Dict[str, CanonicalGameEntry]:
        """
        Resolve platform-scoped ids to catalog entries.

        Ids without a catalog counterpart are absent from the result.

        Raises:
            CatalogError: if any underlying request fails
            ValueError: for a platform with no lookup strategy
        """
        ids = [str(i) for i in external_ids]
        if not ids:
            return {}

        platform = Platform(platform)
        if platform == Platform.STEAM:
            return await self._lookup_steam(ids)
        if platform == Platform.RIOT:
            return await self._lookup_pinned(ids, RIOT_TITLE_CATALOG_IDS)
        if platform == Platform.PLAYSTATION:
            # Trophy communication ids are not indexed by IGDB
            return {}
        raise ValueError(f"No catalog lookup for platform {platform!r}")

    async def _lookup_steam(self, app_ids: List[str]) -> Dict[str, CanonicalGameEntry]:
        uid_to_catalog: Dict[str, int] = {}
        for batch in chunked(sorted(set(app_ids)), MAX_QUERY_ROWS):
            uids = ",".join(_quote(uid) for uid in batch)
            body = (
                f"fields uid,game;\n"
                f"where category = {STEAM_EXTERNAL_CATEGORY} & uid = ({uids});\n"
                f"limit {MAX_QUERY_ROWS};\n"
            )
            for row in await self._query("external_games", body):
                uid, game = row.get("uid"), row.get("game")
                if uid is not None and isinstance(game, int):
                    uid_to_catalog.setdefault(str(uid), game)

        if not uid_to_catalog:
            return {}

        entries = await self.fetch_by_ids(uid_to_catalog.values())
        resolved = {
            uid: entries[catalog_id]
            for uid, catalog_id in uid_to_catalog.items()
            if catalog_id in entries
        }
        logger.info(f"IGDB: resolved {len(resolved)}/{len(set(app_ids))} Steam app ids")
        return resolved

    async def _lookup_pinned(
        self,
        external_ids: List[str],
        table: Dict[str, int],
    ) -> Dict[str, CanonicalGameEntry]:
        wanted = {ext: table[ext] for ext in external_ids if ext in table}
        if not wanted:
            return {}
        entries = await self.fetch_by_ids(wanted.values())
        return {ext: entries[cid] for ext, cid in wanted.items() if cid in entries}

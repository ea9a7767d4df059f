"""Sync API routes for library synchronization.

Provides endpoints for:
- Full library sync per platform
- Steam wishlist sync
- Playtime-only refresh per platform
- Riot ranked-data refresh
- Sync health per user
"""
from typing import AsyncGenerator, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from gamelib.core.database import get_db
from gamelib.core.exceptions import UpstreamError
from gamelib.core.logging import get_logger
from gamelib.models import Platform
from gamelib.services.sync.adapters import RiotCredential
from gamelib.services.sync.orchestrator import LibrarySyncOrchestrator

logger = get_logger(__name__)

router = APIRouter(prefix="/sync", tags=["sync"])


class SyncRequest(BaseModel):
    """
    Credential for one platform sync.

    Which fields are needed depends on the platform:
    - steam: steam_id
    - playstation: access_token
    - riot: puuid and platform_region (api_key optional)
    """
    user_id: str = Field(..., min_length=1)
    steam_id: Optional[str] = None
    access_token: Optional[str] = None
    puuid: Optional[str] = None
    platform_region: Optional[str] = None
    api_key: Optional[str] = None


class WishlistRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    steam_id: str = Field(..., min_length=1)


async def get_orchestrator(
    db: Session = Depends(get_db),
) -> AsyncGenerator[LibrarySyncOrchestrator, None]:
    """Dependency to get a sync orchestrator bound to the request's session."""
    orchestrator = LibrarySyncOrchestrator(db)
    try:
        yield orchestrator
    finally:
        await orchestrator.close()


def credential_for(platform: Platform, request: SyncRequest):
    """Pick the platform's credential out of the request body."""
    if platform == Platform.STEAM:
        if not request.steam_id:
            raise HTTPException(status_code=400, detail="steam_id is required for Steam syncs")
        return request.steam_id
    if platform == Platform.PLAYSTATION:
        if not request.access_token:
            raise HTTPException(status_code=400, detail="access_token is required for PlayStation syncs")
        return request.access_token
    if platform == Platform.RIOT:
        if not request.puuid or not request.platform_region:
            raise HTTPException(status_code=400, detail="puuid and platform_region are required for Riot syncs")
        return RiotCredential(
            puuid=request.puuid,
            platform_region=request.platform_region,
            api_key=request.api_key,
        )
    raise HTTPException(status_code=400, detail=f"Unsupported platform {platform!r}")


def upstream_http_error(error: UpstreamError) -> HTTPException:
    """502 for upstream failures, 503 when retrying later may succeed."""
    status_code = 503 if error.retryable else 502
    return HTTPException(status_code=status_code, detail=str(error))


@router.post("/{platform}/library")
async def trigger_library_sync(
    platform: Platform,
    request: SyncRequest,
    orchestrator: LibrarySyncOrchestrator = Depends(get_orchestrator),
) -> Dict:
    """
    Sync the user's full library from one platform.

    This will:
    1. Fetch the library from the platform API
    2. Resolve games against the catalog (exact ids, then fuzzy names)
    3. Insert new entries and refresh existing ones

    Returns:
        Sync result counters and summary
    """
    credential = credential_for(platform, request)
    try:
        result = await orchestrator.sync_library(request.user_id, platform, credential)
    except UpstreamError as e:
        logger.error(f"{platform.value} library sync failed for {request.user_id}: {e}")
        raise upstream_http_error(e)

    return {
        'message': f'{platform.value} library sync completed',
        'results': result.to_dict(),
    }


@router.post("/steam/wishlist")
async def trigger_wishlist_sync(
    request: WishlistRequest,
    orchestrator: LibrarySyncOrchestrator = Depends(get_orchestrator),
) -> Dict:
    """
    Add the user's public Steam wishlist to their library.

    Games the user already has are left untouched.
    """
    try:
        result = await orchestrator.sync_wishlist(request.user_id, request.steam_id)
    except UpstreamError as e:
        logger.error(f"Steam wishlist sync failed for {request.user_id}: {e}")
        raise upstream_http_error(e)

    return {
        'message': 'steam wishlist sync completed',
        'results': result.to_dict(),
    }


@router.post("/{platform}/playtimes")
async def trigger_playtime_sync(
    platform: Platform,
    request: SyncRequest,
    orchestrator: LibrarySyncOrchestrator = Depends(get_orchestrator),
) -> Dict:
    """Refresh playtime of the user's entries already linked to the platform."""
    credential = credential_for(platform, request)
    try:
        result = await orchestrator.sync_playtimes(request.user_id, platform, credential)
    except UpstreamError as e:
        logger.error(f"{platform.value} playtime sync failed for {request.user_id}: {e}")
        raise upstream_http_error(e)

    return {
        'message': f'{platform.value} playtime sync completed',
        'results': result.to_dict(),
    }


@router.post("/riot/ranked")
async def trigger_ranked_sync(
    request: SyncRequest,
    orchestrator: LibrarySyncOrchestrator = Depends(get_orchestrator),
) -> Dict:
    """Refresh ranked standings on the user's Riot entries."""
    credential = credential_for(Platform.RIOT, request)
    try:
        result = await orchestrator.sync_ranked(request.user_id, credential)
    except UpstreamError as e:
        logger.error(f"riot ranked sync failed for {request.user_id}: {e}")
        raise upstream_http_error(e)

    return {
        'message': 'riot ranked sync completed',
        'results': result.to_dict(),
    }


@router.get("/status/{user_id}")
async def get_sync_status(
    user_id: str,
    orchestrator: LibrarySyncOrchestrator = Depends(get_orchestrator),
) -> Dict:
    """
    Get sync health for one user.

    Returns:
    - Health status (healthy, degraded, never_synced)
    - Last run of each (platform, mode) with its counters
    - Library entry counts per platform
    """
    return orchestrator.get_sync_status(user_id)

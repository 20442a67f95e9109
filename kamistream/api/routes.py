import time
from typing import Optional

from fastapi import APIRouter, Query, Path
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from kamistream.config.settings import settings
from kamistream.core.models import AudioType, DisplayPreference, ProviderPreference, SortOrder
from kamistream.providers.registry import provider_registry
from kamistream.services.orchestrator import SessionRequest, episode_orchestrator
from kamistream.services.preferences import preference_store
from kamistream.utils.cache import episode_cache
from kamistream.utils.database import database
from kamistream.utils.logger import api_logger


# ===========================
# Router Instance
# ===========================
router = APIRouter()


# ===========================
# Request Bodies
# ===========================
class ProviderSwitch(BaseModel):
    provider: Optional[str] = None
    audio: Optional[AudioType] = None


class ProgressUpdate(BaseModel):
    episode: int


def snapshot_response(snapshot) -> JSONResponse:
    return JSONResponse(content=snapshot.model_dump(mode="json"))


def session_missing(media_id: int) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": f"No session open for {media_id}"})


# ===========================
# Episode Endpoints
# ===========================
@router.get("/media/{media_id}/episodes",
            summary="Get episodes",
            description="Returns the reconciled episode list, ranges and progress for a title")
async def get_episodes(
    media_id: int = Path(..., description="AniList media id"),
    title: str = Query(..., description="Title used to search providers"),
    provider: Optional[str] = Query(None, description="Provider to use"),
    audio: Optional[AudioType] = Query(None, description="Audio track"),
    sort: Optional[SortOrder] = Query(None, description="Sort order"),
    page_size: Optional[int] = Query(None, ge=1, description="Episodes per range"),
    max_known_episode: Optional[int] = Query(None, ge=1, description="Canonical episode count"),
    refresh: bool = Query(False, description="Force a new resolution pass")
):
    api_logger.debug(f"Episodes: {media_id} ({title})")

    provider_pref = await preference_store.load_provider()
    display_pref = await preference_store.load_display()

    updates = {}
    if sort is not None:
        updates["sort_order"] = sort
    if page_size is not None:
        updates["page_size"] = page_size
    if updates:
        display_pref = display_pref.model_copy(update=updates)

    snapshot = await episode_orchestrator.open(
        SessionRequest(
            media_id=media_id,
            title=title,
            provider=provider,
            audio=audio,
            max_known_episode=max_known_episode
        ),
        provider_pref,
        display_pref,
        wait=True if refresh else None,
        refresh=refresh
    )
    return snapshot_response(snapshot)


@router.post("/media/{media_id}/provider",
             summary="Switch provider",
             description="Re-resolves the episode list with another provider or audio track")
async def switch_provider(
    body: ProviderSwitch,
    media_id: int = Path(..., description="AniList media id")
):
    try:
        snapshot = await episode_orchestrator.switch(media_id, provider=body.provider, audio=body.audio)
    except KeyError:
        return session_missing(media_id)
    return snapshot_response(snapshot)


@router.delete("/media/{media_id}/session",
               summary="Close session",
               description="Drops the in-memory session and cancels pending work")
async def close_session(media_id: int = Path(..., description="AniList media id")):
    await episode_orchestrator.close(media_id)
    return JSONResponse(content={"closed": media_id})


# ===========================
# Progress Endpoints
# ===========================
@router.get("/media/{media_id}/progress",
            summary="Get progress",
            description="Returns the highest watched episode")
async def get_progress(media_id: int = Path(..., description="AniList media id")):
    progress = await episode_orchestrator.progress.fetch_progress(media_id)
    return JSONResponse(content={"media_id": media_id, "progress": progress})


@router.post("/media/{media_id}/progress",
             summary="Record progress",
             description="Marks an episode as watched; lower or equal values are ignored")
async def record_progress(
    body: ProgressUpdate,
    media_id: int = Path(..., description="AniList media id")
):
    accepted = await episode_orchestrator.record_progress(media_id, body.episode)
    progress = await episode_orchestrator.progress.local_progress(media_id)
    return JSONResponse(content={"media_id": media_id, "accepted": accepted, "progress": progress})


# ===========================
# Cache Endpoints
# ===========================
@router.delete("/media/{media_id}/cache",
               summary="Invalidate cache",
               description="Removes the cached episode list of a title")
async def invalidate_cache(media_id: int = Path(..., description="AniList media id")):
    await episode_cache.invalidate(media_id)
    return JSONResponse(content={"invalidated": media_id})


@router.delete("/cache",
               summary="Clear cache",
               description="Removes every cached episode list")
async def clear_cache():
    removed = await episode_cache.clear()
    return JSONResponse(content={"removed": removed})


# ===========================
# Preference Endpoints
# ===========================
@router.get("/preferences/provider", summary="Provider preference")
async def get_provider_preference():
    preference = await preference_store.load_provider()
    return JSONResponse(content=preference.model_dump(mode="json"))


@router.put("/preferences/provider", summary="Update provider preference")
async def put_provider_preference(preference: ProviderPreference):
    await preference_store.save_provider(preference)
    api_logger.info(f"Provider preference: {preference.default_provider} ({preference.preferred_audio.value})")
    return JSONResponse(content=preference.model_dump(mode="json"))


@router.get("/preferences/display", summary="Display preference")
async def get_display_preference():
    preference = await preference_store.load_display()
    return JSONResponse(content=preference.model_dump(mode="json"))


@router.put("/preferences/display", summary="Update display preference")
async def put_display_preference(preference: DisplayPreference):
    await preference_store.save_display(preference)
    for media_id in list(episode_orchestrator.sessions):
        episode_orchestrator.update_display(media_id, preference)
    return JSONResponse(content=preference.model_dump(mode="json"))


# ===========================
# Provider Listing Endpoint
# ===========================
@router.get("/providers",
            summary="Available providers",
            description="Returns registered providers and whether they are configured")
async def get_providers():
    return JSONResponse(content={
        "providers": [
            {
                "name": name,
                "label": provider_registry.get(name).label,
                "supports_dub": provider_registry.get(name).supports_dub,
                "configured": provider_registry.get(name).is_configured()
            }
            for name in provider_registry.names()
        ]
    })


# ===========================
# Health Check Endpoint
# ===========================
@router.get("/health",
            summary="Health check",
            description="Returns the current health status of the service")
async def health_check():
    health_status = {
        "status": "healthy",
        "version": settings.VERSION,
        "timestamp": int(time.time()),
        "checks": {}
    }

    try:
        await database.fetch_val("SELECT 1")
        health_status["checks"]["database"] = {"status": "ok", "message": "Database connection active"}
    except Exception as e:
        health_status["checks"]["database"] = {"status": "error", "message": f"Database error: {type(e).__name__}"}
        health_status["status"] = "degraded"

    if settings.CONSUMET_API_URL:
        health_status["checks"]["providers"] = {"status": "ok", "message": "Provider API configured"}
    else:
        health_status["checks"]["providers"] = {"status": "disabled", "message": "CONSUMET_API_URL not configured"}
        health_status["status"] = "degraded"

    return JSONResponse(content=health_status)

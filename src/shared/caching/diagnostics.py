"""
Cache Diagnostics API Endpoints

Read-only views over the session cache for dev tooling:
- GET /cache/status - What each domain cache holds and how many queries exist
- GET /cache/stats - Windowed hit/miss statistics from the monitor
- GET /cache/logs - Recent monitor events, oldest first

The application must set ``app.state.cache_context`` to a ``CacheContext``.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from .context import CacheContext


router = APIRouter(prefix="/cache", tags=["cache"])


def get_cache_context(request: Request) -> CacheContext:
    """Get the session cache context for dependency injection."""
    context: Optional[CacheContext] = getattr(request.app.state, 'cache_context', None)
    if context is None:
        raise HTTPException(status_code=503, detail="Cache context is not initialized")
    return context


@router.get("/status", summary="Domain cache and query status")
async def cache_status(context: CacheContext = Depends(get_cache_context)) -> Dict[str, Any]:
    return context.coordinator.get_cache_status()


@router.get("/stats", summary="Cache hit/miss statistics")
async def cache_stats(
    window_seconds: Optional[float] = Query(None, gt=0, description="Stats window; defaults to the configured window"),
    context: CacheContext = Depends(get_cache_context)
) -> Dict[str, Any]:
    window = window_seconds if window_seconds is not None else context.settings.monitor_window
    return {
        'monitor': context.monitor.get_stats(window),
        'store': context.store.get_stats(),
    }


@router.get("/logs", summary="Recent cache events")
async def cache_logs(
    limit: int = Query(100, ge=1, le=1000),
    context: CacheContext = Depends(get_cache_context)
) -> List[Dict[str, Any]]:
    events = context.monitor.get_logs()[-limit:]
    return [event.to_dict() for event in events]

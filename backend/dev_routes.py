"""
Dev-only FastAPI router, only mounted when TEST_MODE=1.

Endpoints:
  GET  /dev/cache/status   Entry count and size of the shared cache
  POST /dev/cache/sweep    Run the expired-entry sweep right now
  POST /dev/cache/clear    Drop every cached entry (forces live fetches)
  GET  /dev/fresh-log      Background refreshes that delivered changed data
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.concurrency import run_in_threadpool

from cache import HR_CACHE

router = APIRouter(prefix="/dev", tags=["dev (TEST_MODE only)"])


@router.get("/cache/status", summary="Show what's in the shared cache")
async def cache_status():
    return await run_in_threadpool(HR_CACHE.status)


@router.post("/cache/sweep", summary="Run the scheduled cache sweep right now")
async def cache_sweep():
    """Same job the scheduler fires every HR_HUB_SWEEP_MINUTES."""
    from scheduler import sweep_cache
    removed = await run_in_threadpool(sweep_cache)
    return {"removed": removed}


@router.post("/cache/clear", summary="Clear every cached entry")
async def cache_clear():
    removed = await run_in_threadpool(HR_CACHE.clear_all)
    return {"removed": removed}


@router.get("/fresh-log", summary="Recent background refreshes that changed data")
async def fresh_log():
    from main import FRESH_LOG
    return list(FRESH_LOG)

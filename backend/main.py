"""FastAPI backend for the MLB Home Run Hub dashboard."""

from __future__ import annotations

import os
import logging
from collections import deque
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

import data as d
from cache import drain_revalidations
from fallback import CACHE, Sourced
from scheduler import SWEEP_MINUTES, create_scheduler
from stats import DEFAULT_STAT, STATS

logger = logging.getLogger(__name__)

TEST_MODE = os.getenv("TEST_MODE", "") == "1"
ALLOWED_ORIGINS = [
    o.strip()
    for o in os.getenv(
        "ALLOWED_ORIGINS",
        "http://localhost:5173,http://localhost:3000,http://127.0.0.1:5173",
    ).split(",")
    if o.strip()
]

# Background refreshes that delivered changed data, newest last
FRESH_LOG: deque[dict] = deque(maxlen=50)

# ── Lifespan: start/stop scheduler ───────────────────────────────────────────

_scheduler = create_scheduler()


@asynccontextmanager
async def lifespan(app: FastAPI):
    _scheduler.start()
    logger.info("APScheduler started: cache sweep every %d min", SWEEP_MINUTES)
    yield
    _scheduler.shutdown(wait=False)
    await drain_revalidations()
    await d.close_client()
    logger.info("APScheduler stopped")


app = FastAPI(title="MLB Home Run Hub API", version="1.0", lifespan=lifespan)

# ── Dev routes (only in TEST_MODE) ────────────────────────────────────────────
if TEST_MODE:
    from dev_routes import router as dev_router
    app.include_router(dev_router)
    logger.info("TEST_MODE: dev routes mounted at /dev/*")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", include_in_schema=False)
async def health():
    return {"status": "ok", "test_mode": TEST_MODE}


# ── Pydantic request models ───────────────────────────────────────────────────


class PlayerRef(BaseModel):
    name: str
    id:   int


class TrajectoriesRequest(BaseModel):
    players: list[PlayerRef] = Field(min_length=1, max_length=100)
    stat:    str = DEFAULT_STAT
    seasons: int = Field(default=10, ge=1, le=30)


# ── Helpers ───────────────────────────────────────────────────────────────────


def _require_stat(stat: str) -> str:
    if stat not in STATS:
        raise HTTPException(status_code=404, detail=f"Unknown stat '{stat}'")
    return stat


def _respond(result: Sourced, data) -> dict:
    out = {"source": result.source, "data": data}
    if result.reason:
        out["reason"] = result.reason
    return out


def _record_fresh(stat: str, season: int):
    def _on_fresh(records) -> None:
        FRESH_LOG.append({
            "stat":    stat,
            "season":  season,
            "count":   len(records),
            "at":      datetime.now(timezone.utc).isoformat(),
        })
    return _on_fresh


# ── Meta ──────────────────────────────────────────────────────────────────────


@app.get("/api/meta/stats")
async def get_stats():
    return [
        {**s.to_dict(), "example": s.format(s.season_ceiling)}
        for s in STATS.values()
    ]


@app.get("/api/meta/seasons")
async def get_seasons(n: int = Query(default=10, ge=1, le=50)):
    return {"current": d.current_season(), "seasons": d.last_n_seasons(n)}


# ── Leaders ───────────────────────────────────────────────────────────────────


@app.get("/api/leaders/history")
async def get_history(stat: str = DEFAULT_STAT):
    result = await d.get_historical_records(_require_stat(stat))
    return _respond(result, [r.to_dict() for r in result.value])


@app.get("/api/leaders/seasons")
async def get_recent_season_leaders(
    stat: str = DEFAULT_STAT,
    n: int = Query(default=4, ge=1, le=30),
    per_season: int = Query(default=4, ge=1, le=10),
):
    result = await d.get_multiple_season_leaders(
        _require_stat(stat), d.last_n_seasons(n), per_season,
    )
    return _respond(result, {
        str(season): [r.to_dict() for r in records]
        for season, records in result.value.items()
    })


@app.get("/api/leaders/season/{season}")
async def get_season_leaders(
    season: int,
    stat: str = DEFAULT_STAT,
    limit: int = Query(default=10, ge=1, le=50),
    prefer_cache: bool = False,
):
    _require_stat(stat)
    if prefer_cache:
        cached = d.peek_season_leaders(
            season, stat, limit, on_fresh=_record_fresh(stat, season), refresh_on_miss=False,
        )
        if cached is not None:
            return {"source": CACHE, "data": [r.to_dict() for r in cached]}

    # Cold key: a single read-through fills the cache
    result = await d.get_season_leaders(season, stat, limit)
    return _respond(result, [r.to_dict() for r in result.value])


# ── Players ───────────────────────────────────────────────────────────────────


@app.get("/api/players/top")
async def get_top_players(
    stat: str = DEFAULT_STAT,
    seasons: int = Query(default=10, ge=1, le=30),
    limit: int = Query(default=100, ge=1, le=500),
):
    result = await d.get_top_players_from_seasons(seasons, limit, _require_stat(stat))
    return _respond(result, [a.to_dict() for a in result.value])


@app.get("/api/players/search")
async def search_players(q: str = Query(min_length=2), season: int | None = None):
    result = await d.search_players(q, season)
    return _respond(result, result.value)


@app.get("/api/players/active-leader")
async def get_active_leader(stat: str = DEFAULT_STAT):
    result = await d.get_active_career_leader(_require_stat(stat))
    return _respond(result, result.value)


@app.get("/api/players/{player_id}/trajectory")
async def get_player_trajectory(
    player_id: int,
    stat: str = DEFAULT_STAT,
    seasons: int = Query(default=10, ge=1, le=30),
):
    result = await d.get_player_trajectory(
        player_id, d.last_n_seasons(seasons), _require_stat(stat),
    )
    return _respond(result, result.value)


@app.post("/api/players/trajectories")
async def get_player_trajectories(req: TrajectoriesRequest):
    result = await d.get_trajectories(
        [(p.name, p.id) for p in req.players],
        d.last_n_seasons(req.seasons),
        _require_stat(req.stat),
    )
    return _respond(result, result.value)


@app.get("/api/trends")
async def get_trends(
    stat: str = DEFAULT_STAT,
    seasons: int = Query(default=10, ge=1, le=30),
    limit: int = Query(default=10, ge=1, le=50),
):
    result = await d.get_trend_summaries(_require_stat(stat), seasons, limit)
    return _respond(result, result.value)


# ── Dev entry point ───────────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)

"""Data fetching layer. Wraps MLB Stats API calls with the expiring cache and fallbacks.

Every public coroutine returns a ``Sourced`` value and never raises for remote
trouble: failures, timeouts, missing containers and implausible payloads all
degrade to fallback data, tagged with the reason.
"""

from __future__ import annotations

import asyncio
import logging
import os
from datetime import date
from typing import Any, Awaitable, Callable

from cache import DEFAULT_TTL, HISTORICAL_TTL, cached_fetch, stale_while_revalidate
from compute import (
    EntityAggregate,
    LeaderRecord,
    extract_leaders,
    extract_season_value,
    is_plausible,
    merge_period_leaders,
    normalize_leaders,
    rank_aggregates,
    top_per_season,
    trajectory_chart,
    trend_summaries,
)
import fallback as fb
from fallback import ImplausibleDataError, MissingDataError, Sourced
from mlb_api import MLB_API_TIMEOUT, ExternalAPIError, ExternalTimeoutError, MLBStatsClient, season_hydrate
from stats import DEFAULT_STAT, StatDescriptor, get_stat

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT       = MLB_API_TIMEOUT
TRAJECTORY_BATCH_SIZE = int(os.getenv("TRAJECTORY_BATCH_SIZE", "5"))
OFFSEASON_LAST_MONTH  = 4    # Jan-Apr still belong to the previous season
LEADERS_PER_SEASON    = 10

_client = MLBStatsClient()


async def close_client() -> None:
    await _client.close()


# ── Seasons ───────────────────────────────────────────────────────────────────

def current_season(today: date | None = None) -> int:
    today = today or date.today()
    return today.year - 1 if today.month <= OFFSEASON_LAST_MONTH else today.year


def last_n_seasons(n: int = 10, today: date | None = None) -> list[int]:
    cur = current_season(today)
    return [cur - i for i in range(n)]


def _season_ttl(season: int, today: date | None = None) -> int:
    # Finished seasons don't change
    return HISTORICAL_TTL if season < current_season(today) else DEFAULT_TTL


# ── Settling ──────────────────────────────────────────────────────────────────

async def _settle(
    label: str,
    load: Callable[[], Awaitable[Any]],
    fallback_value: Callable[[], Any],
) -> Sourced:
    """Await ``load`` under the request timeout and classify any failure."""
    try:
        value = await asyncio.wait_for(load(), timeout=REQUEST_TIMEOUT)
    except (asyncio.TimeoutError, ExternalTimeoutError):
        reason = fb.TIMEOUT
    except MissingDataError:
        reason = fb.MISSING
    except ImplausibleDataError:
        reason = fb.IMPLAUSIBLE
    except ExternalAPIError:
        reason = fb.ERROR
    except Exception:
        logger.exception("Unexpected failure loading %s", label)
        reason = fb.ERROR
    else:
        return Sourced(value)

    logger.warning("Falling back for %s (%s)", label, reason)
    return Sourced(fallback_value(), source=fb.FALLBACK, reason=reason)


# ── Season leaders ────────────────────────────────────────────────────────────

def _leaders_key(stat: StatDescriptor, season: int, limit: int) -> str:
    return f"leaders::{stat.key}::{season}::{limit}"


async def _load_season_leaders(stat: StatDescriptor, season: int, limit: int) -> list[dict]:
    payload = await _client.fetch_leaders(
        stat.remote_param, group=stat.category, limit=limit, season=season,
    )
    records = normalize_leaders(extract_leaders(payload), stat, season=season)
    if not is_plausible(records, stat):
        raise ImplausibleDataError(f"{stat.key} {season} leaders exceed {stat.season_ceiling}")
    return [r.to_dict() for r in records]


def _to_records(rows: list[dict] | None) -> list[LeaderRecord]:
    return [LeaderRecord.from_dict(r) for r in rows or []]


async def get_season_leaders(
    season: int,
    stat_key: str = DEFAULT_STAT,
    limit: int = LEADERS_PER_SEASON,
    today: date | None = None,
) -> Sourced[list[LeaderRecord]]:
    stat = get_stat(stat_key)
    result = await _settle(
        f"{season} {stat.key} leaders",
        lambda: cached_fetch(
            _leaders_key(stat, season, limit),
            lambda: _load_season_leaders(stat, season, limit),
            _season_ttl(season, today),
        ),
        list,
    )
    return Sourced(_to_records(result.value), result.source, result.reason)


def peek_season_leaders(
    season: int,
    stat_key: str = DEFAULT_STAT,
    limit: int = LEADERS_PER_SEASON,
    on_fresh: Callable[[list[LeaderRecord]], None] | None = None,
    refresh_on_miss: bool = True,
    today: date | None = None,
) -> list[LeaderRecord] | None:
    """Cached leaders (or None) right away; refreshes in the background.

    Call from inside the event loop. With ``refresh_on_miss=False`` a cold key
    returns None without scheduling a refresh.
    """
    stat = get_stat(stat_key)

    async def _produce() -> list[dict]:
        return await asyncio.wait_for(_load_season_leaders(stat, season, limit), REQUEST_TIMEOUT)

    def _deliver(fresh: list[dict]) -> None:
        if on_fresh is not None:
            on_fresh(_to_records(fresh))

    cached = stale_while_revalidate(
        _leaders_key(stat, season, limit), _produce, _deliver, _season_ttl(season, today),
        refresh_on_miss=refresh_on_miss,
    )
    return None if cached is None else _to_records(cached)


async def _gather_seasons(
    seasons: list[int], stat_key: str, limit: int, today: date | None = None,
) -> dict[int, Sourced[list[LeaderRecord]]]:
    results = await asyncio.gather(
        *(get_season_leaders(s, stat_key, limit, today) for s in seasons)
    )
    return dict(zip(seasons, results))


async def get_multiple_season_leaders(
    stat_key: str = DEFAULT_STAT,
    seasons: list[int] | None = None,
    per_season: int = 4,
    today: date | None = None,
) -> Sourced[dict[int, list[LeaderRecord]]]:
    """Top ``per_season`` leaders for each season (last 4 by default)."""
    seasons = seasons or last_n_seasons(4, today)
    by_season = await _gather_seasons(seasons, stat_key, LEADERS_PER_SEASON, today)
    top = top_per_season({s: r.value for s, r in by_season.items()}, per_season)
    return Sourced(top, fb.combine_sources(by_season.values()))


async def get_top_players_from_seasons(
    num_seasons: int = 10,
    limit: int = 100,
    stat_key: str = DEFAULT_STAT,
    today: date | None = None,
) -> Sourced[list[EntityAggregate]]:
    """Players ranked by their summed leaderboard value over the last N seasons."""
    seasons = last_n_seasons(num_seasons, today)
    by_season = await _gather_seasons(seasons, stat_key, LEADERS_PER_SEASON, today)
    merged = merge_period_leaders({s: r.value for s, r in by_season.items()})
    return Sourced(
        rank_aggregates(merged.values(), limit),
        fb.combine_sources(by_season.values()),
    )


# ── Trajectories ──────────────────────────────────────────────────────────────

async def _load_season_point(player_id: int, season: int, stat: StatDescriptor) -> dict:
    payload = await _client.fetch_player_detail(player_id, season_hydrate(stat.category, season))
    # No split means the player didn't appear that season
    return extract_season_value(payload, stat) or {"season": season, "value": None}


async def _season_point(
    player_id: int, season: int, stat: StatDescriptor, today: date | None = None,
) -> Sourced:
    return await _settle(
        f"player {player_id} {season} {stat.key}",
        lambda: cached_fetch(
            f"trajectory::{stat.key}::{player_id}::{season}",
            lambda: _load_season_point(player_id, season, stat),
            _season_ttl(season, today),
        ),
        lambda: {"season": season, "value": None},
    )


async def get_player_trajectory(
    player_id: int,
    seasons: list[int],
    stat_key: str = DEFAULT_STAT,
    today: date | None = None,
) -> Sourced[list[dict]]:
    """``[{season, value}]`` ascending by season; seasons without data are skipped."""
    stat = get_stat(stat_key)
    results = await asyncio.gather(*(_season_point(player_id, s, stat, today) for s in seasons))
    points = sorted(
        (r.value for r in results if r.value.get("value") is not None),
        key=lambda p: p["season"],
    )
    return Sourced(points, fb.combine_sources(results))


async def get_trajectories(
    players: list[tuple[str, int]],
    seasons: list[int],
    stat_key: str = DEFAULT_STAT,
    batch_size: int | None = None,
    today: date | None = None,
) -> Sourced[dict[str, list[dict]]]:
    """Trajectories for many players, ``batch_size`` players in flight at a time."""
    batch_size = batch_size or TRAJECTORY_BATCH_SIZE
    collected: dict[str, list[dict]] = {}
    outcomes: list[Sourced] = []
    for start in range(0, len(players), batch_size):
        batch = players[start:start + batch_size]
        results = await asyncio.gather(
            *(get_player_trajectory(pid, seasons, stat_key, today) for _, pid in batch)
        )
        for (name, _), result in zip(batch, results):
            outcomes.append(result)
            if result.value:
                collected[name] = result.value
    return Sourced(collected, fb.combine_sources(outcomes))


async def get_trend_summaries(
    stat_key: str = DEFAULT_STAT,
    num_seasons: int = 10,
    limit: int = 10,
    today: date | None = None,
) -> Sourced[dict]:
    seasons = last_n_seasons(num_seasons, today)
    top = await get_top_players_from_seasons(num_seasons, limit, stat_key, today)
    players = [(a.player, a.player_id) for a in top.value]
    trajectories = await get_trajectories(players, seasons, stat_key, today=today)
    return Sourced(
        {
            "seasons": sorted(seasons),
            "players": trend_summaries(trajectories.value),
            "chart":   trajectory_chart(trajectories.value),
        },
        fb.combine_sources([top, trajectories]),
    )


# ── Records & summaries ───────────────────────────────────────────────────────

async def _load_historical(stat: StatDescriptor) -> list[dict]:
    payload = await _client.fetch_leaders(
        stat.remote_param, group=stat.category, limit=10,
        stat_type="statsSingleSeason", game_types=None,
    )
    records = normalize_leaders(extract_leaders(payload), stat, classify=True)
    if not is_plausible(records, stat):
        raise ImplausibleDataError(f"{stat.key} single-season records exceed {stat.season_ceiling}")
    return [r.to_dict() for r in records]


async def get_historical_records(stat_key: str = DEFAULT_STAT) -> Sourced[list[LeaderRecord]]:
    """All-time single-season top 10 with status labels."""
    stat = get_stat(stat_key)
    result = await _settle(
        f"{stat.key} historical records",
        lambda: cached_fetch(
            f"history::{stat.key}", lambda: _load_historical(stat), HISTORICAL_TTL,
        ),
        lambda: [{**r, "stat": stat.key} for r in fb.historical_records(stat.key)],
    )
    return Sourced(_to_records(result.value), result.source, result.reason)


async def _load_career_leader(stat: StatDescriptor, season: int) -> dict:
    payload = await _client.fetch_leaders(
        stat.remote_param, group=stat.category, limit=1, season=season,
        stat_type="career", player_pool="ACTIVE",
    )
    records = normalize_leaders(extract_leaders(payload), stat, season=season)
    if not records:
        raise MissingDataError(f"No active career {stat.key} leader")
    top = records[0]
    return {
        "player":    top.player.split(" ")[-1],
        "full_name": top.player,
        "player_id": top.player_id,
        "value":     top.value,
    }


async def get_active_career_leader(
    stat_key: str = DEFAULT_STAT,
    today: date | None = None,
) -> Sourced[dict | None]:
    """Career leader among players active in the current season (last name only)."""
    stat = get_stat(stat_key)
    season = current_season(today)
    return await _settle(
        f"active career {stat.key} leader",
        lambda: cached_fetch(
            f"career_leader::{stat.key}::{season}",
            lambda: _load_career_leader(stat, season),
        ),
        lambda: fb.active_career_leader(stat.key),
    )


async def _load_players(season: int) -> list[dict]:
    payload = await _client.fetch_players(season)
    people = payload.get("people")
    if not isinstance(people, list):
        raise MissingDataError("Response has no people list")
    return [
        {
            "id":        p.get("id"),
            "full_name": p["fullName"],
            "team_id":   (p.get("currentTeam") or {}).get("id"),
            "position":  (p.get("primaryPosition") or {}).get("abbreviation"),
        }
        for p in people
        if isinstance(p, dict) and p.get("fullName")
    ]


async def search_players(
    name: str,
    season: int | None = None,
    limit: int = 5,
    today: date | None = None,
) -> Sourced[list[dict]]:
    season = season or current_season(today)
    result = await _settle(
        f"{season} player list",
        lambda: cached_fetch(f"players::{season}", lambda: _load_players(season), HISTORICAL_TTL),
        list,
    )
    needle = name.lower()
    matches = [p for p in result.value if needle in p["full_name"].lower()][:limit]
    return Sourced(matches, result.source, result.reason)

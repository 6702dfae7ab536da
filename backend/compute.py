"""Pure computation functions: no I/O, no cache, fully serialisable outputs."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Iterable, Mapping

import numpy as np
import pandas as pd

from fallback import MissingDataError
from stats import DEFAULT_STAT, StatDescriptor

# ── Records ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class LeaderRecord:
    """One player's value for one stat in one season."""

    player:    str
    player_id: int | None
    team:      str | None
    team_id:   int | None
    value:     float | int
    stat:      str
    season:    int | None
    league:    str = "MLB"
    rank:      int | None = None
    status:    str | None = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LeaderRecord":
        return cls(
            player=data["player"],
            player_id=data.get("player_id"),
            team=data.get("team"),
            team_id=data.get("team_id"),
            value=data["value"],
            stat=data["stat"],
            season=data.get("season"),
            league=data.get("league") or "MLB",
            rank=data.get("rank"),
            status=data.get("status"),
        )


@dataclass(frozen=True)
class EntityAggregate:
    """One player's accumulated value across several seasons."""

    player:       str
    player_id:    int | None
    total:        float | int
    appearances:  int
    seasons:      tuple[int, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "name":        self.player,
            "id":          self.player_id,
            "total":       self.total,
            "appearances": self.appearances,
            "seasons":     list(self.seasons),
        }


# ── Helpers ───────────────────────────────────────────────────────────────────


def _safe(v: Any) -> Any:
    """Convert NaN / numpy scalar to JSON-safe Python type."""
    if v is None:
        return None
    try:
        if np.isnan(v):
            return None
    except (TypeError, ValueError):
        pass
    if isinstance(v, (np.integer,)):
        return int(v)
    if isinstance(v, (np.floating,)):
        return float(v)
    return v


def _dig(obj: Any, *path: Any) -> Any:
    """Null-safe nested lookup over dicts and lists."""
    for step in path:
        if isinstance(step, int):
            if not isinstance(obj, list) or len(obj) <= step:
                return None
        elif not isinstance(obj, dict):
            return None
        obj = obj[step] if isinstance(step, int) else obj.get(step)
        if obj is None:
            return None
    return obj


def _as_int(raw: Any) -> int | None:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def _team_abbrev(team: Any) -> str | None:
    if not isinstance(team, dict):
        return None
    if team.get("abbreviation"):
        return team["abbreviation"]
    name = team.get("name")
    return name[:3].upper() if isinstance(name, str) and name else None


# ── Status classifier ─────────────────────────────────────────────────────────
# Evaluated top to bottom; the first matching rule wins. A rule with a stat key
# only applies to that stat's list; None applies to every stat.

StatusRule = tuple[
    str, "str | None", Callable[[int, str, Any, "int | None"], bool], Callable[[int], str],
]

STATUS_RULES: tuple[StatusRule, ...] = (
    ("record holder", None,       lambda i, p, v, y: i == 0,                         lambda i: "All-Time Record"),
    ("judge 62",      "homeRuns", lambda i, p, v, y: p == "Aaron Judge" and v == 62, lambda i: "AL Record"),
    ("maris",         "homeRuns", lambda i, p, v, y: p == "Roger Maris",             lambda i: "AL Record (Former)"),
    ("ruth",          "homeRuns", lambda i, p, v, y: p == "Babe Ruth",               lambda i: "Historical Legend"),
    ("1998-2001",     "homeRuns", lambda i, p, v, y: y is not None and 1998 <= y <= 2001,
                                  lambda i: "NL Record (Former)" if i == 1 else "Active Era"),
    ("2020+",         None,       lambda i, p, v, y: y is not None and y >= 2020,    lambda i: "Modern Era"),
)
DEFAULT_STATUS = "Historic Record"


def classify_status(
    index: int,
    player: str,
    value: Any,
    season: int | None,
    stat_key: str = DEFAULT_STAT,
) -> str:
    """Label a single-season record by its zero-based position in the all-time list."""
    for _name, scope, matches, label in STATUS_RULES:
        if scope not in (None, stat_key):
            continue
        if matches(index, player, value, season):
            return label(index)
    return DEFAULT_STATUS


# ── Normalisation ─────────────────────────────────────────────────────────────


def extract_leaders(payload: Any) -> list[dict]:
    """Return ``leagueLeaders[0].leaders``; raise MissingDataError when absent."""
    leaders = _dig(payload, "leagueLeaders", 0, "leaders")
    if not isinstance(leaders, list):
        raise MissingDataError("Response has no leagueLeaders[0].leaders")
    return leaders


def normalize_leaders(
    leaders: Iterable[Any],
    stat: StatDescriptor,
    season: int | None = None,
    classify: bool = False,
) -> list[LeaderRecord]:
    """Map raw leader rows to LeaderRecords.

    Rows without a player name or with an unparseable value are dropped. Ranks
    follow list position after dropping. ``classify`` attaches the all-time
    status label (only meaningful for single-season record lists).
    """
    records: list[LeaderRecord] = []
    for raw in leaders:
        name = _dig(raw, "person", "fullName")
        if not name:
            continue
        value = stat.parse(_dig(raw, "value"))
        if value is None:
            continue
        year = _as_int(_dig(raw, "season")) or season
        index = len(records)
        records.append(LeaderRecord(
            player=name,
            player_id=_as_int(_dig(raw, "person", "id")),
            team=_team_abbrev(_dig(raw, "team")),
            team_id=_as_int(_dig(raw, "team", "id")),
            value=value,
            stat=stat.key,
            season=year,
            league=_dig(raw, "league", "abbreviation") or "MLB",
            rank=index + 1,
            status=classify_status(index, name, value, year, stat.key) if classify else None,
        ))
    return records


def is_plausible(records: Iterable[LeaderRecord], stat: StatDescriptor) -> bool:
    """False when any single-season value exceeds the stat's realistic ceiling.

    A value past the ceiling means the API handed back career totals instead of
    single-season ones.
    """
    if stat.season_ceiling is None:
        return True
    return all(r.value <= stat.season_ceiling for r in records)


def extract_season_value(payload: Any, stat: StatDescriptor) -> dict | None:
    """Pull ``{season, value}`` from a people/{id} season-hydrated response."""
    split = _dig(payload, "people", 0, "stats", 0, "splits", 0)
    if not isinstance(split, dict):
        return None
    season = _as_int(split.get("season"))
    if season is None:
        return None
    value = stat.parse(_dig(split, "stat", stat.stat_field))
    return {"season": season, "value": value if value is not None else 0}


# ── Merge & rank ──────────────────────────────────────────────────────────────


def top_per_season(
    period_records: Mapping[int, list[LeaderRecord]],
    per_season: int,
) -> dict[int, list[LeaderRecord]]:
    """Season → first ``per_season`` records; seasons with no records are omitted."""
    return {
        season: records[:per_season]
        for season, records in period_records.items()
        if records
    }


def merge_period_leaders(
    period_records: Mapping[int, Iterable[LeaderRecord]],
) -> dict[str, EntityAggregate]:
    """Fold every season's leaders into one aggregate per player name.

    Totals and appearance counts are order-independent. The first non-null
    player id seen is kept; later seasons never overwrite it. Seasons are
    returned in ascending order.
    """
    acc: dict[str, dict] = {}
    for season, records in period_records.items():
        for rec in records:
            entry = acc.get(rec.player)
            if entry is None:
                entry = acc[rec.player] = {"id": None, "total": 0, "count": 0, "seasons": []}
            if entry["id"] is None and rec.player_id is not None:
                entry["id"] = rec.player_id
            entry["total"] += rec.value
            entry["count"] += 1
            entry["seasons"].append(rec.season if rec.season is not None else season)

    return {
        name: EntityAggregate(
            player=name,
            player_id=e["id"],
            total=e["total"],
            appearances=e["count"],
            seasons=tuple(sorted(e["seasons"])),
        )
        for name, e in acc.items()
    }


def rank_aggregates(
    aggregates: Iterable[EntityAggregate],
    limit: int,
) -> list[EntityAggregate]:
    """Highest total first, ties broken by name; players never seen with an id are dropped."""
    ranked = sorted(
        (a for a in aggregates if a.player_id is not None),
        key=lambda a: (-a.total, a.player),
    )
    return ranked[:limit]


# ── Trends ────────────────────────────────────────────────────────────────────


def trend_summaries(trajectories: Mapping[str, list[dict]]) -> list[dict]:
    """Per-player total, per-season average and peak, sorted by total descending."""
    rows = [
        {"player": name, "season": p["season"], "value": p["value"]}
        for name, points in trajectories.items()
        for p in points
    ]
    if not rows:
        return []

    df = pd.DataFrame(rows)
    df["value"] = pd.to_numeric(df["value"], errors="coerce").fillna(0)
    agg = (
        df.groupby("player")["value"]
        .agg(total="sum", per_season="mean", peak="max", seasons="count")
        .reset_index()
        .sort_values(["total", "player"], ascending=[False, True])
    )
    return [
        {
            "player":     row["player"],
            "total":      _safe(row["total"]),
            "per_season": round(float(row["per_season"]), 1),
            "peak":       _safe(row["peak"]),
            "seasons":    int(row["seasons"]),
            "points":     sorted(trajectories[row["player"]], key=lambda p: p["season"]),
        }
        for _, row in agg.iterrows()
    ]


def trajectory_chart(trajectories: Mapping[str, list[dict]]) -> list[dict]:
    """Season-indexed rows with one column per player, for multi-line charts."""
    rows = [
        {"player": name, "season": p["season"], "value": p["value"]}
        for name, points in trajectories.items()
        for p in points
    ]
    if not rows:
        return []

    wide = (
        pd.DataFrame(rows)
        .pivot_table(index="season", columns="player", values="value", aggfunc="sum")
        .sort_index()
    )
    return [
        {"season": int(season), **{player: _safe(v) for player, v in row.items()}}
        for season, row in wide.iterrows()
    ]

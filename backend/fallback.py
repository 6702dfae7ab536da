"""Provenance-tagged results and the static datasets served when the API fails.

The literal lists are hand-curated single-season records; every row carries the
same fields a live leader row does so callers never need to special-case them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Iterable, TypeVar

T = TypeVar("T")

LIVE     = "live"
FALLBACK = "fallback"
PARTIAL  = "partial"
CACHE    = "cache"

# Fallback reasons
ERROR       = "error"
TIMEOUT     = "timeout"
MISSING     = "missing"
IMPLAUSIBLE = "implausible"


class MissingDataError(Exception):
    """Valid JSON that lacks the container we asked for."""


class ImplausibleDataError(Exception):
    """Parsed values fall outside what the stat can realistically produce."""


@dataclass(frozen=True)
class Sourced(Generic[T]):
    value:  T
    source: str = LIVE
    reason: str | None = None

    @property
    def is_live(self) -> bool:
        return self.source == LIVE


def combine_sources(results: Iterable[Sourced]) -> str:
    sources = {r.source for r in results}
    if not sources or sources == {LIVE}:
        return LIVE
    if LIVE not in sources:
        return FALLBACK
    return PARTIAL


def _rec(rank, player, team, value, year, status, player_id=None, team_id=None) -> dict:
    return {
        "rank":      rank,
        "player":    player,
        "player_id": player_id,
        "team":      team,
        "team_id":   team_id,
        "value":     value,
        "season":    year,
        "league":    "MLB",
        "status":    status,
    }


HISTORICAL_RECORDS: dict[str, list[dict]] = {
    "homeRuns": [
        _rec(1, "Barry Bonds",  "SFG", 73, 2001, "All-Time Record",    111188),
        _rec(2, "Mark McGwire", "STL", 70, 1998, "NL Record (Former)", 118743),
        _rec(3, "Sammy Sosa",   "CHC", 66, 1998, "Active Era",         122544),
        _rec(4, "Mark McGwire", "STL", 65, 1999, "Active Era",         118743),
        _rec(5, "Sammy Sosa",   "CHC", 64, 2001, "Active Era",         122544),
        _rec(6, "Sammy Sosa",   "CHC", 63, 1999, "Active Era",         122544),
        _rec(7, "Aaron Judge",  "NYY", 62, 2022, "AL Record",          592450),
        _rec(8, "Roger Maris",  "NYY", 61, 1961, "AL Record (Former)", 118495),
        _rec(9, "Babe Ruth",    "NYY", 60, 1927, "Historical Legend",  121578),
    ],
    "rbi": [
        _rec(1, "Hack Wilson",     "CHC", 191, 1930, "All-Time Record"),
        _rec(2, "Lou Gehrig",      "NYY", 185, 1931, "Historic Record"),
        _rec(3, "Hank Greenberg",  "DET", 184, 1937, "Historic Record"),
        _rec(4, "Jimmie Foxx",     "BOS", 175, 1938, "Historic Record"),
        _rec(5, "Lou Gehrig",      "NYY", 175, 1927, "Historic Record"),
    ],
    "hits": [
        _rec(1, "Ichiro Suzuki",   "SEA", 262, 2004, "All-Time Record", 400085),
        _rec(2, "George Sisler",   "SLB", 257, 1920, "Historic Record"),
        _rec(3, "Lefty O'Doul",    "PHI", 254, 1929, "Historic Record"),
        _rec(4, "Bill Terry",      "NYG", 254, 1930, "Historic Record"),
        _rec(5, "Al Simmons",      "PHA", 253, 1925, "Historic Record"),
    ],
    "stolenBases": [
        _rec(1, "Rickey Henderson", "OAK", 130, 1982, "All-Time Record"),
        _rec(2, "Lou Brock",        "STL", 118, 1974, "Historic Record"),
        _rec(3, "Vince Coleman",    "STL", 110, 1985, "Historic Record"),
        _rec(4, "Vince Coleman",    "STL", 109, 1987, "Historic Record"),
        _rec(5, "Rickey Henderson", "OAK", 108, 1983, "Historic Record"),
    ],
    "saves": [
        _rec(1, "Francisco Rodriguez", "LAA", 62, 2008, "All-Time Record"),
        _rec(2, "Bobby Thigpen",       "CWS", 57, 1990, "Historic Record"),
        _rec(3, "Edwin Diaz",          "SEA", 57, 2018, "Historic Record"),
        _rec(4, "Eric Gagne",          "LAD", 55, 2003, "Historic Record"),
        _rec(5, "John Smoltz",         "ATL", 55, 2002, "Historic Record"),
    ],
}


ACTIVE_CAREER_LEADERS: dict[str, dict] = {
    "homeRuns": {"player": "Stanton", "full_name": "Giancarlo Stanton", "player_id": 519317, "value": 453},
}


def historical_records(stat_key: str) -> list[dict]:
    """Copies of the literal record list for ``stat_key`` (empty when none is curated)."""
    return [dict(r) for r in HISTORICAL_RECORDS.get(stat_key, [])]


def active_career_leader(stat_key: str) -> dict | None:
    leader = ACTIVE_CAREER_LEADERS.get(stat_key)
    return dict(leader) if leader else None

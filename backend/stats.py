"""Registry of trackable statistics.

Each descriptor carries how the MLB Stats API names the stat, how its raw
string values are parsed, how it is displayed, and (for counting stats) the
highest single-season value that can plausibly be real.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Mapping

HITTING  = "hitting"
PITCHING = "pitching"
CATEGORIES = (HITTING, PITCHING)


def _fmt_int(v: float | int | None) -> str:
    return "-" if v is None else f"{int(v):d}"


def _fmt_avg(v: float | None) -> str:
    # .300 style, no leading zero
    return "-" if v is None else f"{v:.3f}".lstrip("0")


def _fmt_era(v: float | None) -> str:
    return "-" if v is None else f"{v:.2f}"


def _parse_int(raw) -> int | None:
    try:
        return int(float(raw))
    except (TypeError, ValueError):
        return None


def _parse_float(raw) -> float | None:
    try:
        return float(raw)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class StatDescriptor:
    key:               str
    label:             str
    abbreviation:      str
    remote_param:      str               # leaderCategories value
    category:          str               # HITTING | PITCHING
    color:             str
    format:            Callable[[float | int | None], str]
    parse:             Callable[[object], float | int | None]
    lower_is_better:   bool = False
    season_ceiling:    float | None = None   # plausibility bound for one season

    @property
    def stat_field(self) -> str:
        """Field name inside a people/{id} stat split."""
        return self.key

    def to_dict(self) -> dict:
        return {
            "key":             self.key,
            "label":           self.label,
            "abbreviation":    self.abbreviation,
            "category":        self.category,
            "color":           self.color,
            "lower_is_better": self.lower_is_better,
            "season_ceiling":  self.season_ceiling,
        }


_DESCRIPTORS = (
    StatDescriptor("homeRuns",      "Home Runs",      "HR",  "homeRuns",        HITTING,  "#f59e0b", _fmt_int, _parse_int,   season_ceiling=80),
    StatDescriptor("rbi",           "Runs Batted In", "RBI", "runsBattedIn",    HITTING,  "#3b82f6", _fmt_int, _parse_int,   season_ceiling=200),
    StatDescriptor("hits",          "Hits",           "H",   "hits",            HITTING,  "#10b981", _fmt_int, _parse_int,   season_ceiling=275),
    StatDescriptor("stolenBases",   "Stolen Bases",   "SB",  "stolenBases",     HITTING,  "#8b5cf6", _fmt_int, _parse_int,   season_ceiling=140),
    StatDescriptor("avg",           "Batting Average","AVG", "battingAverage",  HITTING,  "#ef4444", _fmt_avg, _parse_float, season_ceiling=0.450),
    StatDescriptor("strikeOuts",    "Strikeouts",     "SO",  "strikeouts",      PITCHING, "#06b6d4", _fmt_int, _parse_int,   season_ceiling=520),
    StatDescriptor("wins",          "Wins",           "W",   "wins",            PITCHING, "#84cc16", _fmt_int, _parse_int,   season_ceiling=60),
    StatDescriptor("saves",         "Saves",          "SV",  "saves",           PITCHING, "#ec4899", _fmt_int, _parse_int,   season_ceiling=70),
    StatDescriptor("era",           "Earned Run Avg", "ERA", "earnedRunAverage",PITCHING, "#64748b", _fmt_era, _parse_float, lower_is_better=True),
)

STATS: Mapping[str, StatDescriptor] = MappingProxyType({d.key: d for d in _DESCRIPTORS})

DEFAULT_STAT = "homeRuns"


def get_stat(key: str) -> StatDescriptor:
    """Look up a descriptor; raises KeyError for unknown stats."""
    return STATS[key]

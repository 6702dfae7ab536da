"""
Pytest configuration and shared fixtures.

Run from the repo root:
  pytest

TEST_MODE=1 is set here so the /dev/* routes are mounted. The cache runs on an
in-memory store and every MLB Stats API call goes to FakeMLB through
httpx.MockTransport, so no test touches the network.
"""

import os
import re

# ── Must be set BEFORE any app imports ────────────────────────────────────────
os.environ.setdefault("TEST_MODE", "1")
os.environ["HR_HUB_CACHE_PATH"] = ""
os.environ.setdefault("MLB_API_TIMEOUT", "2.0")

import httpx
import pytest
from fastapi.testclient import TestClient

import data as d
from cache import HR_CACHE
from mlb_api import MLBStatsClient

# Import app after env vars are set
from main import app

FAKE_BASE_URL = "https://statsapi.test/api/v1"


# ── Payload builders ──────────────────────────────────────────────────────────

def leader(name, value, pid=None, team="NYY", season=None, league="AL"):
    """One row of a /stats/leaders response."""
    person = {"fullName": name}
    if pid is not None:
        person["id"] = pid
    row = {
        "person": person,
        "team":   {"id": 147, "name": "New York Yankees", "abbreviation": team},
        "value":  str(value),
        "league": {"abbreviation": league},
    }
    if season is not None:
        row["season"] = str(season)
    return row


def leaders_payload(*rows, category="homeRuns"):
    return {"leagueLeaders": [{"leaderCategory": category, "leaders": list(rows)}]}


def season_stat_payload(season, **stat):
    return {"people": [{"stats": [{"splits": [{"season": str(season), "stat": stat}]}]}]}


# ── Fakes ─────────────────────────────────────────────────────────────────────

class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, now: int = 1_700_000_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeMLB:
    """Canned MLB Stats API.

    Values may be a JSON dict, an int (bare HTTP status), or None (404).
    """

    def __init__(self):
        self.season_leaders: dict[int, object] = {}
        self.single_season: object = None
        self.career: object = None
        self.people: dict[tuple[int, int], object] = {}
        self.players: object = None
        self.requests: list[httpx.Request] = []

    def _lookup(self, request: httpx.Request):
        path = request.url.path
        params = request.url.params
        if path.endswith("/stats/leaders"):
            stat_type = params.get("statType")
            if stat_type == "statsSingleSeason":
                return self.single_season
            if stat_type == "career":
                return self.career
            return self.season_leaders.get(int(params["season"]))
        if "/people/" in path:
            pid = int(path.rsplit("/", 1)[1])
            season = int(re.search(r"season=(\d+)", params["hydrate"]).group(1))
            return self.people.get((pid, season), {"people": [{"stats": []}]})
        if path.endswith("/players"):
            return self.players
        return None

    def respond(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        body = self._lookup(request)
        if body is None:
            return httpx.Response(404, json={"message": "Object not found"})
        if isinstance(body, int):
            return httpx.Response(body)
        return httpx.Response(200, json=body)

    def count(self, fragment: str) -> int:
        return sum(1 for r in self.requests if fragment in str(r.url))


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
def clean_cache():
    """Every test starts with an empty shared cache."""
    HR_CACHE.clear_all()
    yield
    HR_CACHE.clear_all()


@pytest.fixture
def fake_mlb(monkeypatch):
    """Route the data layer's client to a FakeMLB instance."""
    fake = FakeMLB()
    client = MLBStatsClient(base_url=FAKE_BASE_URL, transport=httpx.MockTransport(fake.respond))
    monkeypatch.setattr(d, "_client", client)
    return fake


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(scope="session")
def client():
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c

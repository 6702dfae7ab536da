"""MLB Stats API HTTP client.

Handles raw HTTP requests to statsapi.mlb.com.
No data transformation - just fetch and return JSON.

Configuration via environment variables:
    MLB_API_BASE_URL: API root (default: https://statsapi.mlb.com/api/v1)
    MLB_API_TIMEOUT: Per-request timeout in seconds (default: 5)
"""

from __future__ import annotations

import logging
import os
from typing import Any

import httpx

logger = logging.getLogger(__name__)

MLB_API_BASE_URL = os.getenv("MLB_API_BASE_URL", "https://statsapi.mlb.com/api/v1")
MLB_API_TIMEOUT  = float(os.getenv("MLB_API_TIMEOUT", "5.0"))

SPORT_ID = 1  # MLB


class ExternalAPIError(Exception):
    """Transport failure, non-2xx status, timeout or an unparseable body."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ExternalTimeoutError(ExternalAPIError):
    """The HTTP client gave up waiting on the MLB Stats API."""


class MLBStatsClient:
    """Async client for the leaders, people and players endpoints.

    The underlying ``httpx.AsyncClient`` is created lazily on first use so a
    module-level instance can be shared by every request handler. Pass
    ``transport`` to substitute an ``httpx.MockTransport`` in tests.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = (base_url or MLB_API_BASE_URL).rstrip("/")
        self._timeout = timeout if timeout is not None else MLB_API_TIMEOUT
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> dict:
        try:
            response = await self.client.get(path, params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning("[MLB] HTTP %d for %s", e.response.status_code, path)
            raise ExternalAPIError(
                f"HTTP {e.response.status_code}: {e.response.text[:200]}",
                status_code=e.response.status_code,
            ) from e
        except httpx.TimeoutException as e:
            logger.warning("[MLB] Timed out after %.1fs for %s", self._timeout, path)
            raise ExternalTimeoutError(f"Timed out: {path}") from e
        except httpx.RequestError as e:
            logger.warning("[MLB] Request failed for %s: %s", path, e)
            raise ExternalAPIError(f"Request failed: {e}") from e
        except ValueError as e:
            raise ExternalAPIError(f"Malformed JSON from {path}") from e

        if not isinstance(data, dict):
            raise ExternalAPIError(f"Unexpected payload type from {path}: {type(data).__name__}")
        logger.debug("[FETCH] %s %s", path, params or "")
        return data

    async def fetch_leaders(
        self,
        stat_param: str,
        group: str | None = None,
        limit: int = 10,
        season: int | None = None,
        stat_type: str | None = None,
        player_pool: str | None = None,
        game_types: str | None = "R",
    ) -> dict:
        """GET /stats/leaders.

        Returns the raw ``{"leagueLeaders": [{"leaders": [...]}]}`` payload.
        ``stat_type`` is ``statsSingleSeason`` for all-time single-season lists
        and ``career`` for career totals.
        """
        params: dict[str, Any] = {
            "leaderCategories": stat_param,
            "limit":            limit,
            "sportId":          SPORT_ID,
        }
        optional = {
            "statGroup":       group,
            "season":          season,
            "statType":        stat_type,
            "playerPool":      player_pool,
            "leaderGameTypes": game_types,
        }
        params.update({k: v for k, v in optional.items() if v is not None})
        return await self._get("/stats/leaders", params)

    async def fetch_player_detail(self, player_id: int, hydrate: str) -> dict:
        """GET /people/{id}?hydrate=..., returns ``{"people": [{"stats": [...]}]}``."""
        return await self._get(f"/people/{player_id}", {"hydrate": hydrate})

    async def fetch_players(self, season: int) -> dict:
        """GET /sports/1/players for one season."""
        return await self._get(f"/sports/{SPORT_ID}/players", {"season": season, "gameType": "R"})


def season_hydrate(group: str, season: int) -> str:
    return f"stats(group={group},type=season,season={season},sportId={SPORT_ID})"

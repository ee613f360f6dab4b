"""Catalog service client with rate limiting and retry logic.

The reconciler only needs the capabilities in :class:`CatalogService`;
:class:`CatalogClient` provides them over HTTP.
"""

import asyncio
import json
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

import httpx

from .errors import CatalogError, ErrorKind
from .models import CatalogId, Player, PlayerTeamLink, Team

logger = logging.getLogger(__name__)


class CatalogService(Protocol):
    """Catalog capabilities consumed by the reconciliation engine."""

    async def search_players(self, organization_id: Optional[CatalogId] = None) -> List[Player]: ...

    async def search_teams(self, organization_id: Optional[CatalogId] = None) -> List[Team]: ...

    async def create_player(self, first_name: str, last_name: str) -> Player: ...

    async def create_team(self, team_name: str, organization_id: CatalogId) -> Team: ...

    async def create_or_fetch_player_team(self, player_id: CatalogId, team_id: CatalogId) -> PlayerTeamLink: ...


def _load_dotenv(path: str) -> None:
    """Load KEY=VALUE (or KEY: VALUE) lines without overriding the environment."""
    if not os.path.exists(path):
        return
    with open(path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" in line:
                key, _, value = line.partition("=")
            elif ": " in line:
                key, _, value = line.partition(": ")
            else:
                continue
            os.environ.setdefault(key.strip(), value.strip())


@dataclass
class CatalogConfig:
    """Configuration for the catalog API client."""
    base_url: str = "http://localhost:3001/api"
    api_token: str = ""
    rate_limit_per_second: float = 10.0
    max_retries: int = 3
    timeout_seconds: float = 30.0

    @classmethod
    def from_env(cls, env_path: Optional[str] = None) -> "CatalogConfig":
        """Build a config from CATALOG_* environment variables.

        A .env file in the project root is loaded first if present; values
        already in the environment win.
        """
        if env_path is None:
            env_path = os.path.join(
                os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))),
                ".env",
            )
        _load_dotenv(env_path)

        defaults = cls()
        return cls(
            base_url=os.environ.get("CATALOG_BASE_URL", defaults.base_url).rstrip("/"),
            api_token=os.environ.get("CATALOG_API_TOKEN", ""),
            rate_limit_per_second=float(os.environ.get("CATALOG_RATE_LIMIT", defaults.rate_limit_per_second)),
            max_retries=int(os.environ.get("CATALOG_MAX_RETRIES", defaults.max_retries)),
            timeout_seconds=float(os.environ.get("CATALOG_TIMEOUT", defaults.timeout_seconds)),
        )


def _error_message(response: Optional[httpx.Response]) -> str:
    if response is None:
        return "No response"
    try:
        body = response.json()
    except (ValueError, TypeError):
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)


def classify_http_error(status_code: int, message: str) -> ErrorKind:
    if "already exists" in message.lower():
        return ErrorKind.ALREADY_EXISTS
    if status_code == 404:
        return ErrorKind.NOT_FOUND
    if status_code == 409:
        return ErrorKind.DUPLICATE
    return ErrorKind.VALIDATION


@dataclass
class CatalogClient:
    """Async client for the catalog API with rate limiting and retry logic."""
    config: CatalogConfig
    _last_request_time: float = field(default=0.0, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    @classmethod
    def from_env(cls) -> "CatalogClient":
        return cls(config=CatalogConfig.from_env())

    async def _rate_limit(self) -> None:
        """Enforce rate limiting between requests."""
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self._last_request_time
            min_interval = 1.0 / self.config.rate_limit_per_second
            if elapsed < min_interval:
                await asyncio.sleep(min_interval - elapsed)
            self._last_request_time = time.monotonic()

    async def _request(
        self,
        method: str,
        endpoint: str,
        **kwargs: Any,
    ) -> Dict[str, Any]:
        """Make API request with retry logic.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint (e.g., /admin/import/create-player)
            **kwargs: ``data`` is sent as a JSON body, ``params`` as query params

        Returns:
            JSON response as dictionary

        Raises:
            CatalogError: on a client error, or with kind NETWORK once all
                retries fail
        """
        await self._rate_limit()

        url = f"{self.config.base_url}{endpoint}"
        headers = {"Content-Type": "application/json"}
        if self.config.api_token:
            headers["Authorization"] = f"Bearer {self.config.api_token}"

        for attempt in range(self.config.max_retries):
            try:
                async with httpx.AsyncClient(timeout=self.config.timeout_seconds) as client:
                    req_kwargs = {}
                    if "data" in kwargs:
                        req_kwargs["content"] = json.dumps(kwargs["data"])
                    if "params" in kwargs:
                        req_kwargs["params"] = kwargs["params"]
                    logger.debug(f">> {method} {url} {req_kwargs}")
                    response = await client.request(
                        method, url, headers=headers, **req_kwargs
                    )
                    response.raise_for_status()
                    return response.json()
            except httpx.HTTPStatusError as e:
                status_code = e.response.status_code if e.response is not None else 0
                if status_code == 429:  # Rate limited
                    wait_time = 2 ** attempt
                    logger.warning(f"Rate limited, waiting {wait_time}s...")
                    await asyncio.sleep(wait_time)
                elif status_code >= 500:
                    logger.warning(
                        f"Server error {status_code}, retry {attempt + 1}/{self.config.max_retries}"
                    )
                    await asyncio.sleep(1)
                else:
                    message = _error_message(e.response)
                    raise CatalogError(classify_http_error(status_code, message), message, status_code) from e
            except httpx.TimeoutException:
                logger.warning(f"Timeout, retry {attempt + 1}/{self.config.max_retries}")
                await asyncio.sleep(1)
            except httpx.TransportError as e:
                raise CatalogError(ErrorKind.NETWORK, f"{method} {endpoint} failed: {e}") from e

        raise CatalogError(
            ErrorKind.NETWORK, f"Failed after {self.config.max_retries} retries: {endpoint}"
        )

    @staticmethod
    def _payload(data: Dict[str, Any], key: str, endpoint: str) -> Dict[str, Any]:
        if not data.get("success", True) or key not in data:
            raise CatalogError(ErrorKind.VALIDATION, data.get("message") or f"Unexpected response from {endpoint}")
        return data[key]

    async def search_players(self, organization_id: Optional[CatalogId] = None) -> List[Player]:
        """Fetch catalog players, with their existing team associations.

        GET /v1/players
        """
        params: Dict[str, Any] = {"include": "teams"}
        if organization_id is not None:
            params["organizationId"] = organization_id
        data = await self._request("GET", "/v1/players", params=params)
        return [Player.from_api(p) for p in data.get("players", [])]

    async def search_teams(self, organization_id: Optional[CatalogId] = None) -> List[Team]:
        """Fetch catalog teams, scoped to an organization when given.

        GET /v1/teams
        """
        params: Dict[str, Any] = {}
        if organization_id is not None:
            params["organizationId"] = organization_id
        data = await self._request("GET", "/v1/teams", params=params)
        return [Team.from_api(t) for t in data.get("teams", [])]

    async def create_player(self, first_name: str, last_name: str) -> Player:
        """Create a player. ``last_name`` may be empty for single-name players.

        POST /admin/import/create-player
        """
        endpoint = "/admin/import/create-player"
        data = await self._request(
            "POST", endpoint, data={"firstName": first_name, "lastName": last_name}
        )
        player = Player.from_api(self._payload(data, "player", endpoint))
        player.teams = []
        return player

    async def create_team(self, team_name: str, organization_id: CatalogId) -> Team:
        """Create a team within an organization.

        POST /admin/import/create-team
        """
        if organization_id is None:
            raise CatalogError(ErrorKind.VALIDATION, "Organization ID is required")
        endpoint = "/admin/import/create-team"
        data = await self._request(
            "POST",
            endpoint,
            data={
                "teamName": team_name.strip(),
                "city": None,
                "abbreviation": None,
                "organizationId": organization_id,
            },
        )
        return Team.from_api(self._payload(data, "team", endpoint))

    async def create_or_fetch_player_team(self, player_id: CatalogId, team_id: CatalogId) -> PlayerTeamLink:
        """Create a player-team link.

        POST /admin/import/create-player-team

        Raises:
            CatalogError: kind ALREADY_EXISTS when the link is already in
                the catalog
        """
        endpoint = "/admin/import/create-player-team"
        data = await self._request(
            "POST", endpoint, data={"playerId": player_id, "teamId": team_id}
        )
        return PlayerTeamLink.from_api(self._payload(data, "playerTeam", endpoint))

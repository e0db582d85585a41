"""HTTP client for the Tacticus public API.

Every call takes the caller's API key: the key identifies both the player and
the guild, so one client instance serves all registered users.
"""

import logging
from typing import Optional

import httpx

from raid_analytics.config import settings
from raid_analytics.errors import UpstreamError
from raid_analytics.models.guild import Guild, GuildMember
from raid_analytics.models.raid import SeasonEncounters

logger = logging.getLogger(__name__)


class TacticusClient:
    """Async client for the guild and guild raid endpoints."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            base_url: API root, defaults to ``settings.tacticus_api_url``
            timeout: Request timeout in seconds
            transport: Optional transport override (used by tests)
        """
        self.base_url = (base_url or settings.tacticus_api_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def _get(self, path: str, api_key: str) -> dict:
        client = await self._get_client()
        try:
            response = await client.get(
                path,
                headers={"Accept": "application/json", "X-API-KEY": api_key},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning(f"GET {path} failed with {e.response.status_code}")
            raise UpstreamError(
                f"GET {path} failed: {e.response.reason_phrase}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"GET {path} failed: {e}")
            raise UpstreamError(f"GET {path} failed: {e}") from e
        return response.json()

    async def get_guild(self, api_key: str) -> Optional[Guild]:
        """Fetch the caller's guild: id, members and raid seasons.

        Returns:
            The guild, or None when the response carries none.
        """
        body = await self._get("/guild", api_key)
        guild = body.get("guild") if isinstance(body, dict) else None
        if not isinstance(guild, dict):
            logger.info("Guild response carried no guild object")
            return None
        return Guild.from_api(guild)

    async def get_roster(self, api_key: str) -> list[GuildMember]:
        """Current guild members."""
        guild = await self.get_guild(api_key)
        return guild.members if guild else []

    async def get_guild_raid_by_season(self, api_key: str, season: int) -> SeasonEncounters:
        """Raid log for one season."""
        body = await self._get(f"/guildRaid/{season}", api_key)
        encounters = SeasonEncounters.from_api(body)
        logger.debug(f"Fetched {len(encounters.entries)} raid entries for season {season}")
        return encounters

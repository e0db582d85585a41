"""Per-request orchestration of credential lookup, fetching and analytics.

Each call resolves the caller's API token, fetches what it needs from the
game API concurrently, and hands private copies of the data to the engine.
Nothing computed here outlives the call.
"""

import asyncio
import logging
from typing import Optional

from raid_analytics.clients.tacticus_client import TacticusClient
from raid_analytics.config import settings
from raid_analytics.errors import (
    InsufficientRosterError,
    NoCredentialError,
    NoDataError,
    UpstreamError,
)
from raid_analytics.models.guild import Guild, GuildMember
from raid_analytics.models.raid import RaidEvent, Rarity
from raid_analytics.models.results import (
    AggregatedResult,
    Highscore,
    ResourceStatus,
    TeamDistribution,
    TimeUsed,
    TokenOverview,
)
from raid_analytics.repositories.guild_repository import GuildRepository
from raid_analytics.services import csv_export
from raid_analytics.services.aggregation_engine import AggregationEngine, filter_events
from raid_analytics.services.derived_metrics import (
    time_used_per_boss,
    token_overview,
    weighted_relative_performance,
)
from raid_analytics.services.event_normalizer import normalize_encounters
from raid_analytics.services.resource_estimator import estimate_resources
from raid_analytics.services.team_classifier import TeamClassifier
from raid_analytics.utils.display_names import replace_user_id_keys
from raid_analytics.utils.rarity import parse_rarity_filter
from raid_analytics.utils.time_utils import calculate_current_season, is_invalid_season

logger = logging.getLogger(__name__)


class GuildService:
    """Guild raid analytics for registered users."""

    def __init__(
        self,
        repository: GuildRepository,
        client: TacticusClient,
        classifier: Optional[TeamClassifier] = None,
    ):
        self.repository = repository
        self.client = client
        self.classifier = classifier or TeamClassifier()
        self.engine = AggregationEngine(self.classifier)

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    async def _resolve_credential(self, discord_id: str) -> str:
        api_key = await asyncio.to_thread(self.repository.get_user_token, discord_id)
        if not api_key:
            raise NoCredentialError(discord_id)
        return api_key

    @staticmethod
    def _resolve_season(season: Optional[int]) -> int:
        if season is None:
            return calculate_current_season()
        if is_invalid_season(season):
            raise ValueError(
                f"Invalid season {season}. The current season is {calculate_current_season()}"
            )
        return int(season)

    async def _fetch_season(self, api_key: str, season: int) -> Optional[list[RaidEvent]]:
        """Normalized raid log, or None when the season cannot be fetched or is empty."""
        try:
            encounters = await self.client.get_guild_raid_by_season(api_key, season)
        except UpstreamError as e:
            logger.warning(f"Treating season {season} as no data: {e}")
            return None
        if not encounters.entries:
            return None
        return normalize_encounters(encounters.entries)

    async def _fetch_roster(self, api_key: str) -> list[GuildMember]:
        """Roster with stored display names applied."""
        try:
            members = await self.client.get_roster(api_key)
        except UpstreamError as e:
            raise InsufficientRosterError(f"Guild roster could not be fetched: {e}") from e

        if not members:
            raise InsufficientRosterError()
        if len(members) > settings.maximum_guild_members:
            logger.warning(
                f"Guild lists {len(members)} members, more than the "
                f"{settings.maximum_guild_members} a guild can hold"
            )

        names = await asyncio.to_thread(self.repository.get_member_names)
        return [
            GuildMember(member.user_id, names[member.user_id])
            if member.user_id in names
            else member
            for member in members
        ]

    async def _fetch_guild(self, discord_id: str, api_key: str) -> Guild:
        """The caller's guild, caching its id when it changed."""
        try:
            guild = await self.client.get_guild(api_key)
        except UpstreamError as e:
            raise InsufficientRosterError(f"Guild could not be fetched: {e}") from e
        if guild is None:
            raise InsufficientRosterError("API token is not linked to a guild")

        stored = await asyncio.to_thread(self.repository.get_guild_id, discord_id)
        if guild.guild_id and stored != guild.guild_id:
            await asyncio.to_thread(self.repository.set_guild_id, discord_id, guild.guild_id)
        return guild

    async def _fetch_config_id(self, api_key: str, season: int) -> Optional[str]:
        try:
            encounters = await self.client.get_guild_raid_by_season(api_key, season)
        except UpstreamError as e:
            logger.warning(f"Season {season} config unavailable: {e}")
            return None
        return encounters.season_config_id

    async def _load_season(
        self, discord_id: str, season: Optional[int]
    ) -> tuple[int, list[RaidEvent], list[GuildMember]]:
        """Fetch one season's log and the roster concurrently."""
        season = self._resolve_season(season)
        api_key = await self._resolve_credential(discord_id)
        events, roster = await asyncio.gather(
            self._fetch_season(api_key, season),
            self._fetch_roster(api_key),
        )
        if events is None:
            raise NoDataError(season)
        return season, events, roster

    # ------------------------------------------------------------------
    # Registration and members
    # ------------------------------------------------------------------

    async def register_user(self, discord_id: str, api_token: str) -> Optional[str]:
        """Store a token after checking it against the game API.

        Returns:
            The guild id the token belongs to.
        """
        guild = await self.client.get_guild(api_token)
        if guild is None:
            raise InsufficientRosterError("API token is not linked to a guild")
        await asyncio.to_thread(self.repository.register_user, discord_id, api_token)
        if guild.guild_id:
            await asyncio.to_thread(self.repository.set_guild_id, discord_id, guild.guild_id)
        return guild.guild_id or None

    async def unregister_user(self, discord_id: str) -> None:
        """Forget a caller's API token."""
        await self._resolve_credential(discord_id)
        await asyncio.to_thread(self.repository.delete_user, discord_id)

    async def get_members(self, discord_id: str) -> list[GuildMember]:
        """Current members with their stored names, unnamed members keep their id."""
        api_key = await self._resolve_credential(discord_id)
        return await self._fetch_roster(api_key)

    async def set_member_name(self, discord_id: str, user_id: str, username: str) -> GuildMember:
        """Attach a display name to one of the caller's guild members."""
        username = username.strip()
        if not username:
            raise ValueError("Username cannot be empty")
        api_key = await self._resolve_credential(discord_id)
        roster = await self._fetch_roster(api_key)
        if user_id not in {member.user_id for member in roster}:
            raise ValueError(f"{user_id} is not a member of your guild")
        await asyncio.to_thread(self.repository.set_member_name, user_id, username)
        logger.info(f"Named guild member {user_id} as {username}")
        return GuildMember(user_id, username)

    # ------------------------------------------------------------------
    # Seasons
    # ------------------------------------------------------------------

    async def get_guild_seasons(self, discord_id: str) -> list[int]:
        """Raid seasons the guild has data for, oldest first."""
        api_key = await self._resolve_credential(discord_id)
        guild = await self._fetch_guild(discord_id, api_key)
        return guild.raid_seasons

    async def get_seasons_with_same_config(
        self, discord_id: str, season: Optional[int] = None, limit: int = 5
    ) -> list[int]:
        """Earlier seasons that ran the same raid config, most recent first."""
        season = self._resolve_season(season)
        api_key = await self._resolve_credential(discord_id)
        config_id, guild = await asyncio.gather(
            self._fetch_config_id(api_key, season),
            self._fetch_guild(discord_id, api_key),
        )
        if config_id is None:
            raise NoDataError(season)

        candidates = sorted((s for s in guild.raid_seasons if s < season), reverse=True)
        config_ids = await asyncio.gather(
            *(self._fetch_config_id(api_key, candidate) for candidate in candidates)
        )
        matches = [
            candidate
            for candidate, candidate_config in zip(candidates, config_ids)
            if candidate_config == config_id
        ]
        return matches[:limit]

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    async def get_season_results(
        self,
        discord_id: str,
        season: Optional[int] = None,
        rarity: Optional[str | Rarity] = None,
        include_primes: bool = True,
    ) -> list[AggregatedResult]:
        rarity = parse_rarity_filter(rarity)
        season, events, roster = await self._load_season(discord_id, season)
        results = self.engine.aggregate_by_user(events, roster, rarity, include_primes)
        return sorted(results, key=lambda r: -r.total_damage)

    async def get_season_results_by_boss(
        self,
        discord_id: str,
        season: Optional[int] = None,
        rarity: Optional[str | Rarity] = None,
        include_primes: bool = True,
    ) -> dict[str, list[AggregatedResult]]:
        rarity = parse_rarity_filter(rarity)
        season, events, roster = await self._load_season(discord_id, season)
        return self.engine.aggregate_by_boss(
            events, roster, rarity, include_primes, close_over_roster=True
        )

    async def get_bombs(
        self,
        discord_id: str,
        season: Optional[int] = None,
        rarity: Optional[str | Rarity] = None,
    ) -> dict[str, int]:
        rarity = parse_rarity_filter(rarity)
        season, events, roster = await self._load_season(discord_id, season)
        bombs = self.engine.bombs_per_user(events, roster, rarity)
        for member in roster:
            bombs.setdefault(member.display_name, 0)
        return dict(sorted(bombs.items(), key=lambda item: -item[1]))

    async def get_inactive_members(
        self, discord_id: str, season: Optional[int] = None, threshold: int = 1
    ) -> list[tuple[str, int]]:
        season, events, roster = await self._load_season(discord_id, season)
        member_ids = {member.user_id for member in roster}
        results = [
            result
            for result in self.engine.aggregate_by_user(events, roster)
            if result.user_id in member_ids
        ]
        return self.engine.find_inactive_members(results, threshold)

    async def get_activity_per_hour(
        self, discord_id: str, season: Optional[int] = None
    ) -> dict[int, int]:
        season, events, roster = await self._load_season(discord_id, season)
        return self.engine.tokens_per_hour(events)

    async def get_highscores(
        self,
        discord_id: str,
        season: Optional[int] = None,
        rarity: Optional[str | Rarity] = None,
    ) -> dict[str, list[Highscore]]:
        rarity = parse_rarity_filter(rarity)
        season, events, roster = await self._load_season(discord_id, season)
        return self.engine.season_highscores(filter_events(events, rarity), roster)

    async def get_best_comps(
        self,
        discord_id: str,
        season: Optional[int] = None,
        rarity: Optional[str | Rarity] = None,
    ) -> dict[str, RaidEvent]:
        rarity = parse_rarity_filter(rarity)
        season, events, roster = await self._load_season(discord_id, season)
        return self.engine.highest_damage_comps(filter_events(events, rarity))

    async def get_team_distribution(
        self,
        discord_id: str,
        season: Optional[int] = None,
        rarity: Optional[str | Rarity] = None,
    ) -> TeamDistribution:
        rarity = parse_rarity_filter(rarity)
        season, events, roster = await self._load_season(discord_id, season)
        return self.classifier.team_distribution(filter_events(events, rarity))

    async def get_team_distribution_per_member(
        self,
        discord_id: str,
        season: Optional[int] = None,
        rarity: Optional[str | Rarity] = None,
    ) -> dict[str, TeamDistribution]:
        rarity = parse_rarity_filter(rarity)
        season, events, roster = await self._load_season(discord_id, season)
        per_user = self.classifier.team_distribution_per_user(filter_events(events, rarity))
        return replace_user_id_keys(per_user, roster)

    # ------------------------------------------------------------------
    # Resources and derived metrics
    # ------------------------------------------------------------------

    async def get_availability(
        self, discord_id: str
    ) -> list[tuple[GuildMember, ResourceStatus]]:
        """Estimated tokens and bomb for every member, right now, in roster order.

        The previous season extends the observation window, so balances
        carried over the season boundary are accounted for.
        """
        season = calculate_current_season()
        api_key = await self._resolve_credential(discord_id)
        current, previous, roster = await asyncio.gather(
            self._fetch_season(api_key, season),
            self._fetch_season(api_key, season - 1),
            self._fetch_roster(api_key),
        )
        if current is None and previous is None:
            raise NoDataError(season)
        statuses = estimate_resources(current or [], previous or [], roster)
        return [(member, statuses[member.user_id]) for member in roster]

    async def get_token_overview(self, discord_id: str) -> TokenOverview:
        season = calculate_current_season()
        api_key = await self._resolve_credential(discord_id)
        current, previous, roster = await asyncio.gather(
            self._fetch_season(api_key, season),
            self._fetch_season(api_key, season - 1),
            self._fetch_roster(api_key),
        )
        if current is None:
            raise NoDataError(season)

        availability = estimate_resources(current, previous or [], roster)
        tokens_used = {
            result.user_id: result.total_tokens
            for result in self.engine.aggregate_by_user(current, roster)
        }
        return token_overview(availability, tokens_used, roster)

    async def get_time_used(
        self,
        discord_id: str,
        season: Optional[int] = None,
        rarity: Optional[str | Rarity] = None,
        separate_primes: bool = False,
    ) -> tuple[dict[str, TimeUsed], int]:
        rarity = parse_rarity_filter(rarity)
        season, events, roster = await self._load_season(discord_id, season)
        filtered = events if rarity is None else filter_events(events, rarity)
        if not filtered:
            raise NoDataError(season)
        return time_used_per_boss(filtered, separate_primes)

    async def get_relative_performance(
        self,
        discord_id: str,
        season: Optional[int] = None,
        rarity: Optional[str | Rarity] = None,
    ) -> dict[str, float]:
        rarity = parse_rarity_filter(rarity)
        season, events, roster = await self._load_season(discord_id, season)
        performance = weighted_relative_performance(filter_events(events, rarity), roster)
        if not performance:
            raise NoDataError(season)
        return dict(sorted(performance.items(), key=lambda item: -item[1]))

    # ------------------------------------------------------------------
    # Exports
    # ------------------------------------------------------------------

    async def get_member_stats_csv(
        self,
        discord_id: str,
        season: Optional[int] = None,
        rarity: Optional[str | Rarity] = None,
    ) -> str:
        rarity = parse_rarity_filter(rarity)
        season, events, roster = await self._load_season(discord_id, season)
        results = self.engine.aggregate_by_user(events, roster, rarity)
        per_user = self.classifier.team_distribution_per_user(filter_events(events, rarity))
        return csv_export.member_stats_csv(
            sorted(results, key=lambda r: -r.total_damage),
            replace_user_id_keys(per_user, roster),
        )

    async def get_highscores_csv(
        self,
        discord_id: str,
        season: Optional[int] = None,
        rarity: Optional[str | Rarity] = None,
    ) -> str:
        return csv_export.highscores_csv(await self.get_highscores(discord_id, season, rarity))

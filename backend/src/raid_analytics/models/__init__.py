"""Data models for guild raid analytics."""

from raid_analytics.models.guild import Guild, GuildMember
from raid_analytics.models.raid import (
    DamageType,
    EncounterType,
    RaidEvent,
    Rarity,
    SeasonEncounters,
)
from raid_analytics.models.results import (
    AggregatedResult,
    Highscore,
    LoopDelta,
    MetaTeam,
    ResourceStatus,
    TeamDistribution,
    TimeUsed,
    TokenOverview,
    TokenOverviewRow,
    TokenState,
)

__all__ = [
    "Guild",
    "GuildMember",
    "DamageType",
    "EncounterType",
    "RaidEvent",
    "Rarity",
    "SeasonEncounters",
    "AggregatedResult",
    "Highscore",
    "LoopDelta",
    "MetaTeam",
    "ResourceStatus",
    "TeamDistribution",
    "TimeUsed",
    "TokenOverview",
    "TokenOverviewRow",
    "TokenState",
]

"""Derived value records produced by the analytics engine.

All records are plain dataclasses owned by the call that produced them.
Nothing here is cached or shared between requests.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum


class MetaTeam(str, Enum):
    """Named team archetypes, in classification priority order."""

    MULTIHIT = "Multihit"
    ADMECH = "Admech"
    NEURO = "Neuro"
    CUSTODES = "Custodes"
    BATTLESUIT = "Battlesuit"
    OTHER = "Other"


@dataclass
class AggregatedResult:
    """Damage, token and bomb totals for one user (optionally per boss)."""

    username: str
    total_damage: int = 0
    total_tokens: int = 0  # BATTLE events only
    bomb_count: int = 0
    prime_damage: int = 0  # Damage dealt to SIDE_BOSS encounters
    min_dmg: int = 0
    max_dmg: int = 0
    boss: str = ""
    set: int = 0
    tier: int = 0
    started_on: int = 0  # First event in the group
    user_id: str = ""

    @property
    def average_damage(self) -> float:
        if self.total_tokens == 0:
            return 0.0
        return self.total_damage / self.total_tokens

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class TokenState:
    """Token balance as of ``refresh_time``."""

    refresh_time: int
    count: int


@dataclass
class ResourceStatus:
    """Estimated raid tokens and bomb available to one player right now.

    A cooldown of ``None`` means the resource is fully available. Token
    balances are reconstructed from consumption timestamps only, so they carry
    an uncertainty of ``token_uncertainty`` in either direction.
    """

    tokens: int = 3
    bombs: int = 1
    token_cooldown: str | None = None
    bomb_cooldown: str | None = None
    bomb_ready_since: str | None = None
    token_uncertainty: int = 1

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class TeamDistribution:
    """Encounter counts and damage bucketed by team archetype."""

    counts: dict[MetaTeam, float] = field(
        default_factory=lambda: {team: 0 for team in MetaTeam}
    )
    damage: dict[MetaTeam, float] = field(
        default_factory=lambda: {team: 0 for team in MetaTeam}
    )

    def add(self, team: MetaTeam, damage: int) -> None:
        self.counts[team] += 1
        self.damage[team] += damage

    @property
    def total_count(self) -> float:
        return sum(self.counts.values())

    @property
    def total_damage(self) -> float:
        return sum(self.damage.values())

    def as_percentages(self) -> "TeamDistribution":
        """Return a copy with counts and damage expressed as shares of 100."""
        total_count = self.total_count
        total_damage = self.total_damage
        if total_count == 0 or total_damage == 0:
            return TeamDistribution()
        return TeamDistribution(
            counts={team: value / total_count * 100 for team, value in self.counts.items()},
            damage={team: value / total_damage * 100 for team, value in self.damage.items()},
        )

    def to_dict(self) -> dict:
        return {
            "counts": {team.value: value for team, value in self.counts.items()},
            "damage": {team.value: value for team, value in self.damage.items()},
        }


@dataclass
class TimeUsed:
    """Time, tokens and bombs spent on one boss."""

    time: int  # Seconds
    tokens: int
    bombs: int = 0
    sideboss: tuple[bool, str] = (False, "")


@dataclass
class LoopDelta:
    """Change in time, tokens and bombs of a looped boss against its first run."""

    baseline: str  # Label of the first run
    time: int  # Seconds
    tokens: int
    bombs: int


@dataclass
class Highscore:
    """A user's best single hit on a boss."""

    username: str
    value: int
    team: MetaTeam = MetaTeam.OTHER


@dataclass
class TokenOverviewRow:
    """Used, available and burned tokens for one member."""

    username: str
    available: int
    used: int
    burned: int
    user_id: str = ""


BURN_ASSUMPTION = (
    "Max possible tokens is the highest used + available across all members. "
    "This assumes at least one member never sat at 3/3 long enough to miss a "
    "regeneration; if every member has burned tokens, all burn counts are "
    "underreported. The +-1 uncertainty on available tokens carries over to "
    "burned counts."
)


@dataclass
class TokenOverview:
    """Token burn estimate for a whole guild."""

    max_possible: int
    rows: list[TokenOverviewRow] = field(default_factory=list)
    assumption: str = BURN_ASSUMPTION

    @property
    def total_available(self) -> int:
        return sum(row.available for row in self.rows)

    @property
    def total_used(self) -> int:
        return sum(row.used for row in self.rows)

    @property
    def total_burned(self) -> int:
        return sum(row.burned for row in self.rows)

    def to_dict(self) -> dict:
        return {
            "max_possible": self.max_possible,
            "rows": [asdict(row) for row in self.rows],
            "total_available": self.total_available,
            "total_used": self.total_used,
            "total_burned": self.total_burned,
            "assumption": self.assumption,
        }

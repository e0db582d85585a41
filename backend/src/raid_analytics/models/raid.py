"""Raw guild raid encounter models."""

from dataclasses import dataclass, field
from enum import Enum


class Rarity(str, Enum):
    """Boss rarity as reported by the game API."""

    COMMON = "Common"
    UNCOMMON = "Uncommon"
    RARE = "Rare"
    EPIC = "Epic"
    LEGENDARY = "Legendary"
    MYTHIC = "Mythic"
    # Filter-only value, never reported on an encounter
    LEGENDARY_PLUS = "Legendary+"


class EncounterType(str, Enum):
    """Main boss or one of its primes."""

    BOSS = "Boss"
    SIDE_BOSS = "SideBoss"


class DamageType(str, Enum):
    """A token-consuming battle or a bomb."""

    BATTLE = "Battle"
    BOMB = "Bomb"


@dataclass(frozen=True)
class RaidEvent:
    """A single encounter attempt in the guild raid log."""

    user_id: str
    tier: int
    set: int
    encounter_index: int
    remaining_hp: int
    max_hp: int
    encounter_type: EncounterType
    unit_id: str  # Boss identity key
    type: str  # Display boss name
    rarity: Rarity
    damage_dealt: int
    damage_type: DamageType
    started_on: int  # Unix seconds
    completed_on: int | None = None
    hero_details: tuple[str, ...] = field(default_factory=tuple)  # Unit ids, empty for bombs

    @property
    def is_bomb(self) -> bool:
        return self.damage_type == DamageType.BOMB

    @property
    def is_prime(self) -> bool:
        return self.encounter_type == EncounterType.SIDE_BOSS

    @classmethod
    def from_api(cls, entry: dict) -> "RaidEvent":
        """Build an event from one entry of the ``/guildRaid`` response."""
        damage_type = DamageType(entry.get("damageType", DamageType.BATTLE.value))
        heroes = entry.get("heroDetails") or []
        return cls(
            user_id=entry.get("userId") or "",
            tier=int(entry.get("tier", 0)),
            set=int(entry.get("set", 0)),
            encounter_index=int(entry.get("encounterIndex", 0)),
            remaining_hp=int(entry.get("remainingHp", 0)),
            max_hp=int(entry.get("maxHp", 0)),
            encounter_type=EncounterType(entry.get("encounterType", EncounterType.BOSS.value)),
            unit_id=entry.get("unitId", ""),
            type=entry.get("type", ""),
            rarity=Rarity(entry.get("rarity", Rarity.COMMON.value)),
            damage_dealt=int(entry.get("damageDealt", 0)),
            damage_type=damage_type,
            started_on=int(entry.get("startedOn") or 0),
            completed_on=entry.get("completedOn"),
            # Bombs never carry a meaningful team
            hero_details=()
            if damage_type == DamageType.BOMB
            else tuple(hero.get("unitId", "") for hero in heroes),
        )


@dataclass
class SeasonEncounters:
    """One fetch of a season's raid log."""

    season: int
    season_config_id: str | None
    entries: list[RaidEvent] = field(default_factory=list)

    @classmethod
    def from_api(cls, body: dict) -> "SeasonEncounters":
        return cls(
            season=int(body.get("season", 0)),
            season_config_id=body.get("seasonConfigId"),
            entries=[RaidEvent.from_api(e) for e in body.get("entries") or []],
        )

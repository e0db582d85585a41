"""Tests for parsing raid log entries from the game API."""

import dataclasses

import pytest

from raid_analytics.models.guild import Guild, GuildMember
from raid_analytics.models.raid import (
    DamageType,
    EncounterType,
    RaidEvent,
    Rarity,
    SeasonEncounters,
)
from raid_analytics.models.results import AggregatedResult, ResourceStatus

BATTLE_ENTRY = {
    "userId": "user-1",
    "tier": 4,
    "set": 1,
    "encounterIndex": 2,
    "remainingHp": 154613,
    "maxHp": 350000,
    "encounterType": "SideBoss",
    "unitId": "GuildBoss10MiniBoss2AdmecManipulus",
    "type": "Belisarius",
    "rarity": "Legendary",
    "damageDealt": 195387,
    "damageType": "Battle",
    "startedOn": 1750314154,
    "completedOn": 1750314243,
    "heroDetails": [
        {"unitId": "ultraInceptorSgt", "power": 131325},
        {"unitId": "eldarAutarch", "power": 326572},
        {"unitId": "spaceBlackmane", "power": 194393},
    ],
    "globalConfigHash": "abc123",
}


def test_battle_from_api():
    event = RaidEvent.from_api(BATTLE_ENTRY)
    assert event.user_id == "user-1"
    assert event.encounter_type == EncounterType.SIDE_BOSS
    assert event.rarity == Rarity.LEGENDARY
    assert event.damage_type == DamageType.BATTLE
    assert event.hero_details == ("ultraInceptorSgt", "eldarAutarch", "spaceBlackmane")
    assert event.is_prime
    assert not event.is_bomb


def test_bomb_drops_hero_details():
    entry = {**BATTLE_ENTRY, "damageType": "Bomb"}
    event = RaidEvent.from_api(entry)
    assert event.is_bomb
    assert event.hero_details == ()


def test_missing_optional_fields():
    event = RaidEvent.from_api({"userId": "u", "type": "Tervigon", "heroDetails": None})
    assert event.hero_details == ()
    assert event.completed_on is None
    assert event.encounter_type == EncounterType.BOSS


def test_unknown_rarity_rejected():
    with pytest.raises(ValueError):
        RaidEvent.from_api({**BATTLE_ENTRY, "rarity": "Shiny"})


def test_events_are_immutable():
    event = RaidEvent.from_api(BATTLE_ENTRY)
    with pytest.raises(dataclasses.FrozenInstanceError):
        event.tier = 9


def test_season_from_api():
    encounters = SeasonEncounters.from_api(
        {"season": 85, "seasonConfigId": "cfg", "entries": [BATTLE_ENTRY, BATTLE_ENTRY]}
    )
    assert encounters.season == 85
    assert encounters.season_config_id == "cfg"
    assert len(encounters.entries) == 2


def test_season_without_entries():
    assert SeasonEncounters.from_api({"season": 80, "entries": None}).entries == []


def test_result_records_serialize():
    assert AggregatedResult(username="Alice").to_dict()["total_damage"] == 0
    status = ResourceStatus().to_dict()
    assert status["tokens"] == 3
    assert status["bombs"] == 1
    assert status["token_uncertainty"] == 1


def test_guild_from_api():
    guild = Guild.from_api(
        {
            "guildId": "g-1",
            "name": "Homina",
            "members": [{"userId": "8f1c", "role": "MEMBER", "level": 50}],
            "guildRaidSeasons": [85, 83, 84],
        }
    )
    assert guild.guild_id == "g-1"
    assert guild.members == [GuildMember("8f1c", "8f1c")]
    assert guild.raid_seasons == [83, 84, 85]


def test_guild_without_optional_lists():
    guild = Guild.from_api({"guildId": "g-1"})
    assert guild.members == []
    assert guild.raid_seasons == []

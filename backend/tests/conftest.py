"""Shared fixtures for raid analytics tests."""

import pytest

from raid_analytics.models.guild import GuildMember
from raid_analytics.models.raid import DamageType, EncounterType, RaidEvent, Rarity

BASE_TIME = 1_760_000_000


@pytest.fixture
def make_event():
    """Factory for raid events with sensible legendary-boss defaults."""

    def _make(**overrides) -> RaidEvent:
        fields = dict(
            user_id="userA",
            tier=4,
            set=1,
            encounter_index=0,
            remaining_hp=100_000,
            max_hp=5_000_000,
            encounter_type=EncounterType.BOSS,
            unit_id="GuildBoss10Belisarius",
            type="Belisarius",
            rarity=Rarity.LEGENDARY,
            damage_dealt=1000,
            damage_type=DamageType.BATTLE,
            started_on=BASE_TIME,
            completed_on=None,
            hero_details=(),
        )
        fields.update(overrides)
        if fields["damage_type"] == DamageType.BOMB:
            fields["hero_details"] = ()
        return RaidEvent(**fields)

    return _make


@pytest.fixture
def roster():
    return [
        GuildMember("userA", "Alice"),
        GuildMember("userB", "Bob"),
        GuildMember("userC", "Cara"),
    ]


@pytest.fixture
def anyio_backend():
    return "asyncio"

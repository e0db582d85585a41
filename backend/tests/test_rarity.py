"""Tests for rarity filters and tier labels."""

import pytest

from raid_analytics.models.raid import Rarity
from raid_analytics.utils.rarity import (
    expand_rarity_filter,
    map_tier_to_rarity,
    parse_rarity_filter,
)


class TestParseRarityFilter:
    """Tests for parsing free-text rarity filters."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            (None, None),
            ("", None),
            ("Legendary", Rarity.LEGENDARY),
            ("mythic", Rarity.MYTHIC),
            ("Legendary+", Rarity.LEGENDARY_PLUS),
            (" l+ ", Rarity.LEGENDARY_PLUS),
            ("e", Rarity.EPIC),
            (Rarity.RARE, Rarity.RARE),
        ],
    )
    def test_known_values(self, value, expected):
        assert parse_rarity_filter(value) == expected

    def test_unknown_value_raises(self):
        with pytest.raises(ValueError):
            parse_rarity_filter("Legendary++")


def test_expand_legendary_plus():
    assert expand_rarity_filter(Rarity.LEGENDARY_PLUS) == {Rarity.LEGENDARY, Rarity.MYTHIC}
    assert expand_rarity_filter(Rarity.EPIC) == {Rarity.EPIC}
    assert expand_rarity_filter(None) is None


@pytest.mark.parametrize(
    "tier, set_, expected",
    [
        (0, 0, "C0"),
        (1, 1, "U1"),
        (3, 2, "E2"),
        (4, 2, "L2"),
        (5, 1, "M1"),
        (6, 0, "L0 :recycle:1"),
        (7, 3, "M3 :recycle:1"),
        (8, 1, "L1 :recycle:2"),
        (9, 0, "M0 :recycle:2"),
    ],
)
def test_map_tier_to_rarity(tier, set_, expected):
    assert map_tier_to_rarity(tier, set_) == expected


def test_map_tier_without_loops():
    assert map_tier_to_rarity(7, 3, loops=False) == "M3"


def test_negative_tier_raises():
    with pytest.raises(ValueError):
        map_tier_to_rarity(-1, 0)

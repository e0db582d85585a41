"""Rarity filter parsing and tier labelling.

Filters arrive as free text from the presentation layer. The canonical form
is the ``Rarity`` enum; ``Rarity.LEGENDARY_PLUS`` is a filter-only value that
expands to legendary and mythic encounters.
"""

from typing import Optional

from raid_analytics.models.raid import Rarity

RARITY_ALIASES: dict[str, Rarity] = {
    "common": Rarity.COMMON,
    "c": Rarity.COMMON,
    "uncommon": Rarity.UNCOMMON,
    "u": Rarity.UNCOMMON,
    "rare": Rarity.RARE,
    "r": Rarity.RARE,
    "epic": Rarity.EPIC,
    "e": Rarity.EPIC,
    "legendary": Rarity.LEGENDARY,
    "l": Rarity.LEGENDARY,
    "mythic": Rarity.MYTHIC,
    "m": Rarity.MYTHIC,
    "legendary+": Rarity.LEGENDARY_PLUS,
    "legendary_plus": Rarity.LEGENDARY_PLUS,
    "l+": Rarity.LEGENDARY_PLUS,
}

TIER_LETTERS = ("C", "U", "R", "E", "L", "M")


def parse_rarity_filter(value: Optional[str | Rarity]) -> Optional[Rarity]:
    """Parse a rarity filter value.

    Args:
        value: A ``Rarity``, its value ("Legendary+"), or a known alias ("l+").
            ``None`` or an empty string means no filter.

    Returns:
        The matching ``Rarity`` or None when no filter was given.

    Raises:
        ValueError: If the value is not a known rarity.
    """
    if value is None or value == "":
        return None
    if isinstance(value, Rarity):
        return value
    rarity = RARITY_ALIASES.get(value.strip().lower())
    if rarity is None:
        raise ValueError(f"Unknown rarity filter: {value!r}")
    return rarity


def expand_rarity_filter(rarity: Optional[Rarity]) -> Optional[frozenset[Rarity]]:
    """Expand a filter into the set of encounter rarities it matches."""
    if rarity is None:
        return None
    if rarity == Rarity.LEGENDARY_PLUS:
        return frozenset({Rarity.LEGENDARY, Rarity.MYTHIC})
    return frozenset({rarity})


def map_tier_to_rarity(tier: int, set: int, loops: bool = True) -> str:
    """Map a tier and set to a short label such as ``L1`` or ``M2 :recycle:1``.

    Tiers 0-5 map to C, U, R, E, L, M. From tier 6 the boss loop starts over
    and the label alternates between L (even recycle) and M (odd recycle).

    Raises:
        ValueError: If ``tier`` is negative.
    """
    if tier < 0:
        raise ValueError("Tier cannot be negative")

    if tier < len(TIER_LETTERS):
        return f"{TIER_LETTERS[tier]}{set}"

    recycle_count = (tier - 4) // 2
    letter = "L" if (tier - 6) % 2 == 0 else "M"
    if loops:
        return f"{letter}{set} :recycle:{recycle_count}"
    return f"{letter}{set}"

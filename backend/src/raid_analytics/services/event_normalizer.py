"""Repair tier and set labels in a season's raid log.

Past tier 5 the upstream feed mislabels bosses: looped legendary and mythic
bosses share tier numbers and the set index is unreliable. The true tier is
recovered from boss health, walking the log in encounter order and carrying a
small running state.
"""

import dataclasses
import logging
from dataclasses import dataclass

from raid_analytics.models.raid import RaidEvent

logger = logging.getLogger(__name__)

# Tiers below this are labelled correctly by the upstream feed
FIRST_UNRELIABLE_TIER = 5
# Any encounter above this max HP is a mythic main boss
MYTHIC_BOSS_HP = 20_000_000
# Primes (encounter_index > 0) above this max HP belong to a mythic boss
MYTHIC_PRIME_HP = 1_900_000


@dataclass
class NormalizerState:
    """Running labels carried from one encounter to the next."""

    current_tier: int = FIRST_UNRELIABLE_TIER
    current_set: int = 0
    current_type: str = ""
    previous_mythic: bool = False


def is_mythic_encounter(event: RaidEvent) -> bool:
    """Whether an encounter's health puts it in a mythic boss fight."""
    return event.max_hp > MYTHIC_BOSS_HP or (
        event.encounter_index > 0 and event.max_hp > MYTHIC_PRIME_HP
    )


def advance(state: NormalizerState, event: RaidEvent) -> NormalizerState:
    """Fold one unreliable-tier encounter into the running state."""
    state = dataclasses.replace(state)

    if is_mythic_encounter(event):
        state.current_set = 0
        if event.tier >= FIRST_UNRELIABLE_TIER + 1:
            state.current_tier = event.tier + 1
        state.previous_mythic = True
    elif state.previous_mythic:
        # First legendary boss after a mythic cycle
        state.previous_mythic = False
        state.current_tier += 1
        state.current_set = 0
    elif event.type != state.current_type:
        # New legendary boss within the same tier; the feed's set is right here
        state.current_set = event.set

    state.current_type = event.type
    return state


def normalize_encounters(events: list[RaidEvent]) -> list[RaidEvent]:
    """Return the season log with tier and set corrected.

    Args:
        events: Encounters for one season in chronological order.

    Returns:
        A new list of the same length and order. Encounters below tier 5 are
        returned unchanged; the rest carry the re-derived tier and set.

    Raises:
        ValueError: If any encounter has a negative tier.
    """
    state = NormalizerState()
    normalized: list[RaidEvent] = []

    for event in events:
        if event.tier < 0:
            raise ValueError(f"Encounter has negative tier {event.tier}")

        if event.tier < FIRST_UNRELIABLE_TIER:
            normalized.append(event)
            continue

        state = advance(state, event)
        if (event.tier, event.set) != (state.current_tier, state.current_set):
            logger.debug(
                f"Relabelled {event.type} from T{event.tier}/S{event.set} "
                f"to T{state.current_tier}/S{state.current_set}"
            )
        normalized.append(
            dataclasses.replace(event, tier=state.current_tier, set=state.current_set)
        )

    return normalized

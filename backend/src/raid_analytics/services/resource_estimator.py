"""Reconstruct each player's live raid tokens and bomb from consumption history.

The game API never reports a current balance. Tokens regenerate one every 12
hours up to a cap of 3, and regeneration pauses while capped. Bombs recharge
once, 18 hours after use. Both balances are rebuilt from the timestamps of
past battles and bombs in the current and previous season.

Two assumptions cannot be verified from the log and are kept as named
constants: every player holds ``assumed_initial_tokens`` at their first
observed spend, and the resulting token balance is only accurate to
``TOKEN_UNCERTAINTY``.
"""

import dataclasses
import logging
from typing import Iterable, Optional

from raid_analytics.config import settings
from raid_analytics.models.guild import GuildMember
from raid_analytics.models.raid import RaidEvent
from raid_analytics.models.results import ResourceStatus, TokenState
from raid_analytics.utils.time_utils import seconds_to_string, unix_timestamp

logger = logging.getLogger(__name__)

TOKEN_CAP = 3
TOKEN_REGEN_SECONDS = 12 * 3600
BOMB_CAP = 1
BOMB_REGEN_SECONDS = 18 * 3600
TOKEN_UNCERTAINTY = 1


def evaluate_token(state: TokenState, at_time: int) -> TokenState:
    """Advance a token balance to ``at_time``.

    Whole 12h units elapsed since ``refresh_time`` are credited. If that
    reaches the cap the clock restarts at ``at_time``; otherwise it moves
    forward by the credited units only and the partial unit is kept.
    """
    elapsed_units = (at_time - state.refresh_time) // TOKEN_REGEN_SECONDS
    if elapsed_units + state.count >= TOKEN_CAP:
        return TokenState(refresh_time=at_time, count=TOKEN_CAP)
    return TokenState(
        refresh_time=state.refresh_time + elapsed_units * TOKEN_REGEN_SECONDS,
        count=state.count + elapsed_units,
    )


def spend_token(state: TokenState, at_time: int) -> TokenState:
    """Spend one token at ``at_time``.

    Spending from an empty balance means a token was granted out of band, so
    the balance stays at 0 and regeneration restarts from the spend.
    """
    if state.count - 1 < 0:
        return TokenState(refresh_time=at_time, count=0)
    return dataclasses.replace(state, count=state.count - 1)


def estimate_tokens(
    spend_times: list[int], now: int, initial_tokens: Optional[int] = None
) -> Optional[TokenState]:
    """Replay token spends and return the balance as of ``now``.

    Args:
        spend_times: Battle start times for one player, in ascending order.
        now: Unix seconds to evaluate the final balance at.
        initial_tokens: Balance assumed at the first spend. Defaults to
            ``settings.assumed_initial_tokens``.

    Returns:
        The final state, or None if the player never spent a token.
    """
    if not spend_times:
        return None
    if initial_tokens is None:
        initial_tokens = settings.assumed_initial_tokens

    state = TokenState(refresh_time=spend_times[0], count=initial_tokens)
    for spent_at in spend_times:
        state = evaluate_token(state, spent_at)
        state = spend_token(state, spent_at)
    return evaluate_token(state, now)


def token_cooldown(state: TokenState, now: int) -> Optional[str]:
    """Time until the next token, or None while capped."""
    if state.count >= TOKEN_CAP:
        return None
    return seconds_to_string(TOKEN_REGEN_SECONDS - (now - state.refresh_time))


def estimate_bomb(last_bomb: Optional[int], now: int) -> tuple[int, Optional[str], Optional[str]]:
    """Bomb balance from the most recent bomb.

    Returns:
        ``(bombs, cooldown, ready_since)``. ``cooldown`` is set while
        recharging, ``ready_since`` once the bomb is back.
    """
    if last_bomb is None:
        return BOMB_CAP, None, None
    elapsed = now - last_bomb
    if elapsed < BOMB_REGEN_SECONDS:
        return 0, seconds_to_string(BOMB_REGEN_SECONDS - elapsed), None
    return BOMB_CAP, None, seconds_to_string(elapsed - BOMB_REGEN_SECONDS, hide_days=True)


def collect_spends(events: Iterable[RaidEvent]) -> tuple[dict[str, list[int]], dict[str, int]]:
    """Split a log into ascending token spend times and the latest bomb per user."""
    token_spends: dict[str, list[int]] = {}
    last_bombs: dict[str, int] = {}
    for event in sorted(events, key=lambda e: e.started_on):
        if not event.user_id:
            continue
        if event.is_bomb:
            last_bombs[event.user_id] = max(last_bombs.get(event.user_id, 0), event.started_on)
        else:
            token_spends.setdefault(event.user_id, []).append(event.started_on)
    return token_spends, last_bombs


def estimate_resources(
    current_events: Iterable[RaidEvent],
    previous_events: Iterable[RaidEvent],
    roster: list[GuildMember],
    now: Optional[int] = None,
) -> dict[str, ResourceStatus]:
    """Estimate tokens and bomb for every roster member.

    Args:
        current_events: The current season's raid log.
        previous_events: The previous season's raid log. Players carry their
            balance across the season boundary, so it extends the window.
        roster: Guild members. Only their events count, and every member is
            reported.
        now: Unix seconds to estimate at; defaults to the current time.

    Returns:
        ``ResourceStatus`` per member user id, in roster order. Members
        without any spend in the window report a full balance.
    """
    now = unix_timestamp() if now is None else now
    member_ids = {member.user_id for member in roster}
    window = [
        event
        for event in [*previous_events, *current_events]
        if event.user_id in member_ids
    ]
    token_spends, last_bombs = collect_spends(window)

    statuses: dict[str, ResourceStatus] = {}
    for member in roster:
        status = ResourceStatus(token_uncertainty=TOKEN_UNCERTAINTY)

        state = estimate_tokens(token_spends.get(member.user_id, []), now)
        if state is not None:
            status.tokens = state.count
            status.token_cooldown = token_cooldown(state, now)

        bombs, cooldown, ready_since = estimate_bomb(last_bombs.get(member.user_id), now)
        status.bombs = bombs
        status.bomb_cooldown = cooldown
        status.bomb_ready_since = ready_since

        statuses[member.user_id] = status

    logger.debug(f"Estimated resources for {len(statuses)} members from {len(window)} events")
    return statuses

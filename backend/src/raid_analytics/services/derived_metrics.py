"""Metrics built on top of aggregation and resource estimates."""

import logging
import re
from collections import defaultdict
from typing import Iterable, Optional

from raid_analytics.config import settings
from raid_analytics.models.guild import GuildMember
from raid_analytics.models.raid import RaidEvent
from raid_analytics.models.results import (
    LoopDelta,
    ResourceStatus,
    TimeUsed,
    TokenOverview,
    TokenOverviewRow,
)
from raid_analytics.services.aggregation_engine import boss_label
from raid_analytics.utils.display_names import DisplayNameResolver
from raid_analytics.utils.math_utils import safe_ratio

logger = logging.getLogger(__name__)

RECYCLE_MARKER = re.compile(r"\s*:recycle:\d+\s*")


def time_used_per_boss(
    events: Iterable[RaidEvent], separate_primes: bool = False
) -> tuple[dict[str, TimeUsed], int]:
    """Time and tokens spent on each boss, in the order bosses were fought.

    Groups battles by boss label. The first boss takes the span between its
    first and last battle. Every later boss takes the gap between the previous
    boss's last battle and its own last battle, since the moment a boss fight
    starts is not observable. This is an approximation.

    Bombs add to the ``bombs`` count of their boss but never to time or tokens.

    Args:
        events: One season's normalized raid log, in encounter order.
        separate_primes: Report primes under their own label rather than
            folding them into their main boss.

    Returns:
        ``(per_boss, total_seconds)`` where the total is the sum of all boss
        times.
    """
    battles: dict[str, list[RaidEvent]] = {}
    bombs: dict[str, int] = defaultdict(int)
    parents: dict[str, tuple[bool, str]] = {}

    for event in events:
        label = boss_label(event, separate_primes)
        if label not in parents:
            parents[label] = (separate_primes and event.is_prime, boss_label(event))
        if event.is_bomb:
            bombs[label] += 1
        else:
            battles.setdefault(label, []).append(event)

    per_boss: dict[str, TimeUsed] = {}
    previous_last: Optional[RaidEvent] = None
    for label, group in battles.items():
        last = group[-1]
        start = group[0] if previous_last is None else previous_last
        per_boss[label] = TimeUsed(
            time=abs(last.started_on - start.started_on),
            tokens=len(group),
            bombs=bombs.get(label, 0),
            sideboss=parents[label],
        )
        previous_last = last

    # Bosses that only ever took bomb damage
    for label, count in bombs.items():
        if label not in per_boss:
            per_boss[label] = TimeUsed(time=0, tokens=0, bombs=count, sideboss=parents[label])

    total = sum(used.time for used in per_boss.values())
    return per_boss, total


def loop_deltas(per_boss: dict[str, TimeUsed]) -> dict[str, LoopDelta]:
    """Compare every looped boss against the first run of the same boss.

    A label such as ``L1 :recycle:2 Belisarius`` has ``L1 Belisarius`` as its
    baseline. Labels without a recorded baseline are left out.
    """
    deltas: dict[str, LoopDelta] = {}
    for label, used in per_boss.items():
        if not RECYCLE_MARKER.search(label):
            continue
        baseline = RECYCLE_MARKER.sub(" ", label)
        base = per_boss.get(baseline)
        if base is None:
            continue
        deltas[label] = LoopDelta(
            baseline=baseline,
            time=used.time - base.time,
            tokens=used.tokens - base.tokens,
            bombs=used.bombs - base.bombs,
        )
    return deltas


def token_overview(
    availability: dict[str, ResourceStatus],
    tokens_used: dict[str, int],
    roster: list[GuildMember],
    max_tokens: Optional[int] = None,
) -> TokenOverview:
    """Estimate how many tokens each member lost to sitting at the cap.

    The best member's ``used + available`` (capped at ``max_tokens``) is
    taken as the number of tokens anyone could have had this season. Every
    other member's shortfall from it counts as burned. The returned overview
    carries the assumption text, which callers must show.

    Args:
        availability: Current resource estimate per member user id.
        tokens_used: Battle tokens used this season per user id.
        roster: Guild members, for display names on the rows.
        max_tokens: Season-wide cap; defaults to
            ``settings.maximum_tokens_per_season``.
    """
    if max_tokens is None:
        max_tokens = settings.maximum_tokens_per_season

    totals = {
        user_id: tokens_used.get(user_id, 0) + status.tokens
        for user_id, status in availability.items()
    }
    max_possible = min(max_tokens, max(totals.values(), default=0))

    resolver = DisplayNameResolver(roster)
    rows = [
        TokenOverviewRow(
            username=resolver.resolve(user_id),
            available=status.tokens,
            used=tokens_used.get(user_id, 0),
            burned=max(0, max_possible - totals[user_id]),
            user_id=user_id,
        )
        for user_id, status in availability.items()
    ]
    rows.sort(key=lambda row: (-row.burned, -row.available, row.used))
    return TokenOverview(max_possible=max_possible, rows=rows)


def weighted_relative_performance(
    events: Iterable[RaidEvent], roster: list[GuildMember]
) -> dict[str, float]:
    """Each member's damage per token relative to the guild, 100 being average.

    For every boss (primes separately) a player's damage per token is divided
    by the guild's damage per token on that boss. The per-boss ratios are
    combined with a token-weighted average. Sweeps, the final hit that takes
    a boss to 0 HP, are excluded first. A zero guild average yields a ratio
    of 0 rather than failing.
    """
    damage: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
    tokens: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))

    for event in events:
        if event.is_bomb or event.remaining_hp == 0 or not event.user_id:
            continue
        label = boss_label(event, separate_primes=True)
        damage[label][event.user_id] += event.damage_dealt
        tokens[label][event.user_id] += 1

    weighted_sum: dict[str, float] = defaultdict(float)
    weight: dict[str, int] = defaultdict(int)
    for label, per_user_damage in damage.items():
        guild_average = safe_ratio(
            sum(per_user_damage.values()), sum(tokens[label].values())
        )
        for user_id, user_damage in per_user_damage.items():
            user_tokens = tokens[label][user_id]
            ratio = safe_ratio(safe_ratio(user_damage, user_tokens), guild_average)
            weighted_sum[user_id] += ratio * user_tokens
            weight[user_id] += user_tokens

    resolver = DisplayNameResolver(roster)
    return {
        resolver.resolve(user_id): safe_ratio(weighted_sum[user_id], weight[user_id]) * 100
        for user_id in weight
    }

"""Fold raid events into per-player statistics.

Every method takes the guild roster as an argument so that guild-wide views
are closed over the roster: members who never attacked in the requested scope
still appear, as zero-valued records.
"""

import logging
import re
from collections import defaultdict
from datetime import datetime, timezone
from typing import Iterable, Optional

from raid_analytics.models.guild import GuildMember
from raid_analytics.models.raid import RaidEvent, Rarity
from raid_analytics.models.results import AggregatedResult, Highscore, MetaTeam
from raid_analytics.services.team_classifier import TeamClassifier
from raid_analytics.utils.display_names import DisplayNameResolver
from raid_analytics.utils.rarity import expand_rarity_filter, map_tier_to_rarity

logger = logging.getLogger(__name__)

PRIME_PREFIX = re.compile(r"^GuildBoss\d+MiniBoss\d+")


def filter_events(
    events: Iterable[RaidEvent],
    rarity: Optional[Rarity] = None,
    include_primes: bool = True,
) -> list[RaidEvent]:
    """Apply the rarity filter and optionally drop prime encounters.

    Events without a user id are dropped. Excluded primes are removed
    entirely, not just from ``prime_damage``.
    """
    rarities = expand_rarity_filter(rarity)
    return [
        event
        for event in events
        if event.user_id
        and (rarities is None or event.rarity in rarities)
        and (include_primes or not event.is_prime)
    ]


def prime_name(unit_id: str) -> str:
    """Strip the ``GuildBoss10MiniBoss2`` style prefix from a prime's unit id."""
    return PRIME_PREFIX.sub("", unit_id) or unit_id


def boss_label(event: RaidEvent, separate_primes: bool = False) -> str:
    """Label such as ``L1 Belisarius``; primes get their own name when separated."""
    name = prime_name(event.unit_id) if separate_primes and event.is_prime else event.type
    return f"{map_tier_to_rarity(event.tier, event.set)} {name}"


def accumulate(result: AggregatedResult, event: RaidEvent) -> None:
    """Add one event to a running result."""
    if event.is_bomb:
        # Bombs are counted but never contribute to damage or token totals
        result.bomb_count += 1
        return

    damage = event.damage_dealt
    if result.total_tokens == 0:
        result.min_dmg = damage
        result.max_dmg = damage
    else:
        result.min_dmg = min(result.min_dmg, damage)
        result.max_dmg = max(result.max_dmg, damage)

    result.total_damage += damage
    result.total_tokens += 1
    if event.is_prime:
        result.prime_damage += damage


class AggregationEngine:
    """Groups raid events into ``AggregatedResult`` records."""

    def __init__(self, classifier: Optional[TeamClassifier] = None):
        self.classifier = classifier

    def _fold(
        self,
        events: list[RaidEvent],
        resolver: DisplayNameResolver,
    ) -> dict[str, AggregatedResult]:
        """Fold events into one result per user id, in first-seen order."""
        results: dict[str, AggregatedResult] = {}
        for event in events:
            result = results.get(event.user_id)
            if result is None:
                result = AggregatedResult(
                    username=resolver.resolve(event.user_id),
                    boss=event.type,
                    set=event.set,
                    tier=event.tier,
                    started_on=event.started_on,
                    user_id=event.user_id,
                )
                results[event.user_id] = result
            accumulate(result, event)
        return results

    @staticmethod
    def _close_over_roster(
        results: dict[str, AggregatedResult],
        roster: list[GuildMember],
        boss: str = "",
    ) -> list[AggregatedResult]:
        closed = list(results.values())
        for member in roster:
            if member.user_id not in results:
                closed.append(
                    AggregatedResult(
                        username=member.display_name, boss=boss, user_id=member.user_id
                    )
                )
        return closed

    def aggregate_by_user(
        self,
        events: Optional[list[RaidEvent]],
        roster: list[GuildMember],
        rarity: Optional[Rarity] = None,
        include_primes: bool = True,
    ) -> Optional[list[AggregatedResult]]:
        """Totals per user for a season.

        Args:
            events: The season's raid log. ``None`` or empty means the season
                was never fetched successfully.
            roster: Current guild members, used for display names and to
                synthesize zero records for non-participants.
            rarity: Optional rarity filter (``LEGENDARY_PLUS`` expands).
            include_primes: Whether prime encounters are counted at all.

        Returns:
            One result per participating user followed by zero records for
            roster members without events, or None if there is no data.
        """
        if not events:
            return None

        resolver = DisplayNameResolver(roster)
        filtered = filter_events(events, rarity, include_primes)
        results = self._fold(filtered, resolver)
        return self._close_over_roster(results, roster)

    def aggregate_by_boss(
        self,
        events: Optional[list[RaidEvent]],
        roster: list[GuildMember],
        rarity: Optional[Rarity] = None,
        include_primes: bool = True,
        close_over_roster: bool = False,
    ) -> Optional[dict[str, list[AggregatedResult]]]:
        """Totals per user for each boss, keyed by boss display name."""
        if not events:
            return None

        resolver = DisplayNameResolver(roster)
        per_boss: dict[str, list[RaidEvent]] = defaultdict(list)
        for event in filter_events(events, rarity, include_primes):
            per_boss[event.type].append(event)

        grouped: dict[str, list[AggregatedResult]] = {}
        for boss, boss_events in per_boss.items():
            results = self._fold(boss_events, resolver)
            if close_over_roster:
                grouped[boss] = self._close_over_roster(results, roster, boss=boss)
            else:
                grouped[boss] = list(results.values())
        return grouped

    def bombs_per_user(
        self,
        events: Optional[list[RaidEvent]],
        roster: list[GuildMember],
        rarity: Optional[Rarity] = None,
    ) -> Optional[dict[str, int]]:
        """Bombs used per display name."""
        if not events:
            return None

        resolver = DisplayNameResolver(roster)
        bombs: dict[str, int] = {}
        for event in filter_events(events, rarity):
            if event.is_bomb:
                name = resolver.resolve(event.user_id)
                bombs[name] = bombs.get(name, 0) + 1
        return bombs

    @staticmethod
    def find_inactive_members(
        results: list[AggregatedResult], threshold: int = 1
    ) -> list[tuple[str, int]]:
        """Members who used fewer than ``threshold`` tokens, most tokens first.

        ``results`` should already be closed over the roster so that members
        who never attacked are reported with 0 tokens.
        """
        inactive = [
            (result.username, result.total_tokens)
            for result in results
            if result.total_tokens < threshold
        ]
        return sorted(inactive, key=lambda item: -item[1])

    @staticmethod
    def tokens_per_hour(events: Iterable[RaidEvent]) -> dict[int, int]:
        """Battle tokens used per UTC hour of the day."""
        hours = {hour: 0 for hour in range(24)}
        for event in events:
            if event.is_bomb or not event.started_on:
                continue
            hour = datetime.fromtimestamp(event.started_on, tz=timezone.utc).hour
            hours[hour] += 1
        return hours

    def season_highscores(
        self,
        events: Iterable[RaidEvent],
        roster: list[GuildMember],
    ) -> dict[str, list[Highscore]]:
        """Each user's best single hit per boss, highest first."""
        resolver = DisplayNameResolver(roster)
        best: dict[str, dict[str, RaidEvent]] = defaultdict(dict)
        for event in events:
            if event.is_bomb or not event.user_id:
                continue
            label = boss_label(event, separate_primes=True)
            current = best[label].get(event.user_id)
            if current is None or event.damage_dealt > current.damage_dealt:
                best[label][event.user_id] = event

        highscores: dict[str, list[Highscore]] = {}
        for label, per_user in best.items():
            scores = [
                Highscore(
                    username=resolver.resolve(user_id),
                    value=event.damage_dealt,
                    team=self._classify(event),
                )
                for user_id, event in per_user.items()
            ]
            highscores[label] = sorted(scores, key=lambda s: -s.value)
        return highscores

    @staticmethod
    def highest_damage_comps(events: Iterable[RaidEvent]) -> dict[str, RaidEvent]:
        """The single highest-damage battle per boss and prime."""
        comps: dict[str, RaidEvent] = {}
        for event in events:
            if event.is_bomb:
                continue
            label = boss_label(event, separate_primes=True)
            current = comps.get(label)
            if current is None or event.damage_dealt > current.damage_dealt:
                comps[label] = event
        return comps

    def _classify(self, event: RaidEvent) -> MetaTeam:
        if self.classifier is None:
            return MetaTeam.OTHER
        return self.classifier.classify(event.hero_details)

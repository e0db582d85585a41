"""Meta team classification for raid encounters."""
import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Optional

from raid_analytics.models.raid import RaidEvent
from raid_analytics.models.results import MetaTeam, TeamDistribution

logger = logging.getLogger(__name__)

DEFAULT_KNOWLEDGE_DIR = Path(__file__).parents[1] / "knowledge"


class TeamClassifier:
    """Maps the heroes used in one encounter to a named meta team.

    A team matches when at least ``threshold`` of its roster heroes are present
    and every one of its lynchpin heroes is present. When several teams match,
    the first in ``priority`` wins. Roster tables are loaded once and never
    mutated.
    """

    def __init__(self, knowledge_dir: Optional[Path] = None):
        if knowledge_dir is None:
            knowledge_dir = DEFAULT_KNOWLEDGE_DIR
        self.knowledge_dir = knowledge_dir
        self.threshold: int = 3
        self.priority: tuple[MetaTeam, ...] = ()
        self._rosters: MappingProxyType = MappingProxyType({})
        self._lynchpins: MappingProxyType = MappingProxyType({})
        self._character_names: MappingProxyType = MappingProxyType({})
        self._load_data()

    def _load_data(self):
        """Load roster tables and character names."""
        path = self.knowledge_dir / "meta_teams.json"
        with open(path) as f:
            data = json.load(f)

        metadata = data.get("metadata", {})
        self.threshold = int(metadata.get("threshold", 3))
        self.priority = tuple(MetaTeam(name) for name in metadata.get("priority", []))

        rosters = {}
        lynchpins = {}
        for name, team in data.get("teams", {}).items():
            meta_team = MetaTeam(name)
            if not team.get("lynchpins"):
                raise ValueError(f"Meta team {name} has no lynchpin heroes")
            rosters[meta_team] = frozenset(team.get("roster", []))
            lynchpins[meta_team] = frozenset(team["lynchpins"])

        missing = [team for team in self.priority if team not in rosters]
        if missing:
            raise ValueError(f"Priority lists teams without a roster: {missing}")

        self._rosters = MappingProxyType(rosters)
        self._lynchpins = MappingProxyType(lynchpins)

        names_path = self.knowledge_dir / "characters.json"
        if names_path.exists():
            with open(names_path) as f:
                self._character_names = MappingProxyType(json.load(f).get("characters", {}))
        else:
            logger.warning(f"characters.json not found at {names_path}")

    def get_roster(self, team: MetaTeam) -> frozenset[str]:
        return self._rosters.get(team, frozenset())

    def get_lynchpins(self, team: MetaTeam) -> frozenset[str]:
        return self._lynchpins.get(team, frozenset())

    def get_character_name(self, unit_id: str) -> str:
        """Display name for a unit id, or the id itself if unknown."""
        return self._character_names.get(unit_id, unit_id)

    def _qualifies(self, team: MetaTeam, heroes: frozenset[str]) -> bool:
        in_roster = len(heroes & self._rosters[team])
        return in_roster >= self.threshold and self._lynchpins[team] <= heroes

    def classify(self, unit_ids: Iterable[str]) -> MetaTeam:
        """Classify the heroes of one encounter.

        Only the set of unit ids matters; their order is irrelevant.
        """
        heroes = frozenset(unit_ids)
        for team in self.priority:
            if self._qualifies(team, heroes):
                return team
        return MetaTeam.OTHER

    def matching_teams(self, unit_ids: Iterable[str]) -> dict[MetaTeam, bool]:
        """Every meta team the heroes qualify for, ignoring priority."""
        heroes = frozenset(unit_ids)
        return {team: self._qualifies(team, heroes) for team in self.priority}

    def team_distribution(self, events: Iterable[RaidEvent]) -> TeamDistribution:
        """Bucket encounters and their damage by meta team.

        Bombs and primes are not team fights against the main boss and are
        skipped.
        """
        distribution = TeamDistribution()
        for event in events:
            if not event.user_id or event.is_bomb or event.is_prime:
                continue
            distribution.add(self.classify(event.hero_details), event.damage_dealt)
        return distribution

    def team_distribution_per_user(
        self, events: Iterable[RaidEvent]
    ) -> dict[str, TeamDistribution]:
        """Per-user team distribution as percentages of encounters and damage."""
        per_user: dict[str, list[RaidEvent]] = {}
        for event in events:
            if not event.user_id or event.is_bomb or event.is_prime:
                continue
            per_user.setdefault(event.user_id, []).append(event)

        return {
            user_id: self.team_distribution(user_events).as_percentages()
            for user_id, user_events in per_user.items()
        }

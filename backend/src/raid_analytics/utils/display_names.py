"""Resolve user ids to roster display names."""

from typing import TypeVar

from raid_analytics.models.guild import GuildMember

T = TypeVar("T")


class UnknownUserTracker:
    """Hands out a stable ``Unknown #N`` label per unseen user id."""

    def __init__(self):
        self._labels: dict[str, str] = {}

    def get_label(self, user_id: str) -> str:
        if user_id not in self._labels:
            self._labels[user_id] = f"Unknown #{len(self._labels) + 1}"
        return self._labels[user_id]

    @property
    def count(self) -> int:
        return len(self._labels)


class DisplayNameResolver:
    """Maps user ids to display names for one request.

    Users who left the guild (or never were in the roster) get a consistent
    ``Unknown #N`` label within the lifetime of the resolver.
    """

    def __init__(self, roster: list[GuildMember]):
        self._names = {member.user_id: member.display_name for member in roster}
        self._unknown = UnknownUserTracker()

    def resolve(self, user_id: str) -> str:
        name = self._names.get(user_id)
        if name is not None:
            return name
        return self._unknown.get_label(user_id)


def replace_user_id_keys(record: dict[str, T], roster: list[GuildMember]) -> dict[str, T]:
    """Re-key a ``user_id -> value`` mapping by display name."""
    resolver = DisplayNameResolver(roster)
    return {resolver.resolve(user_id): value for user_id, value in record.items()}

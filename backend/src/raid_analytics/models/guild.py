"""Guild roster models."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class GuildMember:
    """A guild member as listed by the game API."""

    user_id: str
    display_name: str

    @classmethod
    def from_api(cls, member: dict) -> "GuildMember":
        user_id = member.get("userId", "")
        # The API lists members by id only; names come from the member_names table
        display_name = member.get("displayName") or member.get("username") or user_id
        return cls(user_id=user_id, display_name=display_name)


@dataclass
class Guild:
    """The caller's guild: identity, current members and raid seasons on record."""

    guild_id: str
    name: str = ""
    members: list[GuildMember] = field(default_factory=list)
    raid_seasons: list[int] = field(default_factory=list)

    @classmethod
    def from_api(cls, guild: dict) -> "Guild":
        return cls(
            guild_id=guild.get("guildId", ""),
            name=guild.get("name", ""),
            members=[GuildMember.from_api(m) for m in guild.get("members") or []],
            raid_seasons=sorted(int(s) for s in guild.get("guildRaidSeasons") or []),
        )

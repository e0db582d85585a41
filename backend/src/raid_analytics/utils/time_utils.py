"""Time helpers: unix timestamps, duration strings and the season calendar."""

from datetime import datetime, timezone
from typing import Optional

from raid_analytics.config import settings

SECONDS_PER_DAY = 24 * 3600


def unix_timestamp(moment: Optional[datetime] = None) -> int:
    """Whole unix seconds for ``moment`` (now when omitted)."""
    moment = moment or datetime.now(timezone.utc)
    return int(moment.timestamp())


def seconds_to_string(seconds: int, hide_days: bool = False) -> str:
    """Render a duration as ``1d 01h 01m 01s``.

    With ``hide_days`` the days are folded into the hours (``25h 01m 01s``).
    """
    seconds = int(seconds)
    if hide_days:
        hours, remainder = divmod(seconds, 3600)
        days_part = ""
    else:
        days, remainder = divmod(seconds, SECONDS_PER_DAY)
        hours, remainder = divmod(remainder, 3600)
        days_part = f"{days}d " if days > 0 else ""
    minutes, secs = divmod(remainder, 60)
    return f"{days_part}{hours:02d}h {minutes:02d}m {secs:02d}s"


def within_next_hour(cooldown: str) -> bool:
    """Whether a ``HHh MMm ...`` cooldown string ends within the hour."""
    return int(cooldown[:2]) < 1


def calculate_current_season(now: Optional[datetime] = None) -> int:
    """Season number running at ``now``, counted in fixed-length seasons from the anchor."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    elapsed_days = (now - settings.season_anchor_start).total_seconds() // SECONDS_PER_DAY
    return settings.season_anchor + int(elapsed_days // settings.season_length_days)


def is_invalid_season(season: Optional[float], now: Optional[datetime] = None) -> bool:
    """A season is invalid if missing, fractional, too old, or in the future."""
    if season is None:
        return True
    if isinstance(season, float) and not season.is_integer():
        return True
    if season < settings.minimum_season:
        return True
    return season > calculate_current_season(now)

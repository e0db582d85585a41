"""Utility modules for raid_analytics."""

from raid_analytics.utils.display_names import (
    DisplayNameResolver,
    UnknownUserTracker,
    replace_user_id_keys,
)
from raid_analytics.utils.math_utils import format_delta, safe_ratio
from raid_analytics.utils.rarity import (
    RARITY_ALIASES,
    expand_rarity_filter,
    map_tier_to_rarity,
    parse_rarity_filter,
)
from raid_analytics.utils.time_utils import (
    calculate_current_season,
    is_invalid_season,
    seconds_to_string,
    unix_timestamp,
    within_next_hour,
)

__all__ = [
    "DisplayNameResolver",
    "UnknownUserTracker",
    "replace_user_id_keys",
    "format_delta",
    "safe_ratio",
    "RARITY_ALIASES",
    "expand_rarity_filter",
    "map_tier_to_rarity",
    "parse_rarity_filter",
    "calculate_current_season",
    "is_invalid_season",
    "seconds_to_string",
    "unix_timestamp",
    "within_next_hour",
]

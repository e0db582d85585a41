"""Error taxonomy for guild raid analytics.

Only the service shell raises these. The engine itself signals expected
absence (no data for a season, no cooldown running) with ``None`` or empty
records, and raises ``ValueError`` for caller contract violations.
"""


class RaidAnalyticsError(Exception):
    """Base class for expected, user-facing failures."""


class NoCredentialError(RaidAnalyticsError):
    """The caller has not registered an API token."""

    def __init__(self, discord_id: str):
        self.discord_id = discord_id
        super().__init__(f"No API token registered for user {discord_id}")


class NoDataError(RaidAnalyticsError):
    """The upstream source returned nothing usable for a season."""

    def __init__(self, season: int | None = None):
        self.season = season
        if season is None:
            super().__init__("No guild raid data found for the current season")
        else:
            super().__init__(f"No guild raid data found for season {season}")


class InsufficientRosterError(RaidAnalyticsError):
    """The guild roster could not be fetched, or it has no members."""

    def __init__(self, message: str = "Guild roster unavailable or empty"):
        super().__init__(message)


class UpstreamError(RaidAnalyticsError):
    """Non-2xx response or transport failure talking to the game API."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)

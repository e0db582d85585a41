"""Guild raid analytics for Tacticus guilds."""

__version__ = "0.1.0"

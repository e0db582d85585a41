"""DuckDB-based storage for registered API tokens and member names."""

import logging
from pathlib import Path
from typing import Optional

import duckdb
import pandas as pd

logger = logging.getLogger(__name__)

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS registered_users (
        discord_id VARCHAR PRIMARY KEY,
        api_token VARCHAR NOT NULL,
        guild_id VARCHAR
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS member_names (
        user_id VARCHAR PRIMARY KEY,
        username VARCHAR NOT NULL
    )
    """,
]


class GuildRepository:
    """Data access layer for credentials and the cached guild id.

    Values are stored as opaque strings. A short-lived connection is opened
    per call; read paths use read-only connections.
    """

    def __init__(self, database_path: str | Path):
        """Initialize with path to DuckDB database, creating it if missing.

        Args:
            database_path: Path to the ``.duckdb`` file
        """
        self._db_path = Path(database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        with duckdb.connect(str(self._db_path)) as conn:
            for statement in SCHEMA:
                conn.execute(statement)
        logger.info(f"GuildRepository: Using {self._db_path}")

    def _execute(self, sql: str, params: list) -> None:
        with duckdb.connect(str(self._db_path)) as conn:
            conn.execute(sql, params)

    def _query(self, sql: str, params: Optional[list] = None) -> list[dict]:
        """Execute query and return list of dicts."""
        with duckdb.connect(str(self._db_path), read_only=True) as conn:
            df = conn.execute(sql, params or []).df()
        # DuckDB NULLs come back as NaN/None depending on dtype
        df = df.astype(object).where(pd.notna(df), None)
        return df.to_dict(orient="records")

    def register_user(self, discord_id: str, api_token: str) -> None:
        """Store (or replace) a user's API token. Clears their cached guild id."""
        self._execute(
            """
            INSERT OR REPLACE INTO registered_users (discord_id, api_token, guild_id)
            VALUES (?, ?, NULL)
            """,
            [discord_id, api_token],
        )
        logger.info(f"Registered API token for user {discord_id}")

    def get_user_token(self, discord_id: str) -> Optional[str]:
        """The user's API token, or None if they never registered."""
        rows = self._query(
            "SELECT api_token FROM registered_users WHERE discord_id = ?", [discord_id]
        )
        return rows[0]["api_token"] if rows else None

    def get_guild_id(self, discord_id: str) -> Optional[str]:
        rows = self._query(
            "SELECT guild_id FROM registered_users WHERE discord_id = ?", [discord_id]
        )
        return rows[0]["guild_id"] if rows else None

    def set_guild_id(self, discord_id: str, guild_id: str) -> None:
        self._execute(
            "UPDATE registered_users SET guild_id = ? WHERE discord_id = ?",
            [guild_id, discord_id],
        )

    def delete_user(self, discord_id: str) -> None:
        self._execute("DELETE FROM registered_users WHERE discord_id = ?", [discord_id])
        logger.info(f"Deleted registration for user {discord_id}")

    def set_member_name(self, user_id: str, username: str) -> None:
        """Attach a display name to a game user id."""
        self._execute(
            "INSERT OR REPLACE INTO member_names (user_id, username) VALUES (?, ?)",
            [user_id, username],
        )

    def get_member_names(self) -> dict[str, str]:
        """All known ``user_id -> username`` mappings."""
        rows = self._query("SELECT user_id, username FROM member_names")
        return {row["user_id"]: row["username"] for row in rows}

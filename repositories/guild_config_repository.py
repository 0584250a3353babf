"""
Repository for managing per-guild configuration.
"""

from repositories.base_repository import BaseRepository
from repositories.interfaces import IGuildConfigRepository

BETTING_COLUMNS = (
    "min_bet",
    "max_bet",
    "limit_per_user",
    "fee_percent",
    "suspicious_bet_threshold",
)


class GuildConfigRepository(BaseRepository, IGuildConfigRepository):
    """
    Handles CRUD operations for guild-specific configuration.
    """

    def get_config(self, guild_id: int) -> dict | None:
        """Get configuration for a guild."""
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT guild_id, min_bet, max_bet, limit_per_user, fee_percent,
                       suspicious_bet_threshold, announcement_channel_id,
                       created_at, updated_at
                FROM guild_config
                WHERE guild_id = ?
                """,
                (self.normalize_guild_id(guild_id),),
            )
            row = cursor.fetchone()
            return dict(row) if row else None

    def upsert_betting_defaults(self, guild_id: int, **values: int | None) -> None:
        """
        Store betting defaults for a guild.

        Only keyword arguments whose value is not None are written; other
        columns keep their stored value (NULL means "use the global default").
        """
        updates = {key: value for key, value in values.items() if value is not None}
        unknown = set(updates) - set(BETTING_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown betting setting: {', '.join(sorted(unknown))}")
        if not updates:
            return

        columns = ", ".join(updates)
        placeholders = ", ".join("?" * len(updates))
        assignments = ", ".join(f"{column} = excluded.{column}" for column in updates)
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                INSERT INTO guild_config (guild_id, {columns})
                VALUES (?, {placeholders})
                ON CONFLICT(guild_id) DO UPDATE SET
                    {assignments},
                    updated_at = CURRENT_TIMESTAMP
                """,
                (self.normalize_guild_id(guild_id), *updates.values()),
            )

    def set_announcement_channel(self, guild_id: int, channel_id: int | None) -> None:
        """Set the channel event announcements go to for a guild."""
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO guild_config (guild_id, announcement_channel_id)
                VALUES (?, ?)
                ON CONFLICT(guild_id) DO UPDATE SET
                    announcement_channel_id = ?,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (self.normalize_guild_id(guild_id), channel_id, channel_id),
            )

    def get_announcement_channel(self, guild_id: int) -> int | None:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT announcement_channel_id FROM guild_config WHERE guild_id = ?",
                (self.normalize_guild_id(guild_id),),
            )
            row = cursor.fetchone()
            return row["announcement_channel_id"] if row else None

"""
Service for managing per-guild configuration.

This service wraps GuildConfigRepository to provide a clean interface
for commands, keeping repository access out of the command layer.
"""

import logging

from domain.models.event import BettingLimits
from repositories.interfaces import IGuildConfigRepository
from services.errors import ValidationError

logger = logging.getLogger("stakes_bot.services.guild_config")


class GuildConfigService:
    """
    Manages guild-specific configuration settings.

    Provides methods for:
    - Betting defaults copied onto new events
    - Suspicious bet threshold
    - Announcement channel
    """

    def __init__(
        self,
        guild_config_repo: IGuildConfigRepository,
        default_limits: BettingLimits,
        default_suspicious_threshold: int,
        default_announcement_channel_id: int | None = None,
    ):
        self.guild_config_repo = guild_config_repo
        self.default_limits = default_limits
        self.default_suspicious_threshold = default_suspicious_threshold
        self.default_announcement_channel_id = default_announcement_channel_id

    def get_config(self, guild_id: int | None) -> dict | None:
        """Get full configuration for a guild."""
        normalized = guild_id if guild_id is not None else 0
        return self.guild_config_repo.get_config(normalized)

    def get_betting_limits(self, guild_id: int | None) -> BettingLimits:
        """Effective betting defaults for new events in a guild."""
        config = self.get_config(guild_id) or {}
        defaults = self.default_limits

        def pick(key: str) -> int:
            value = config.get(key)
            return value if value is not None else getattr(defaults, key)

        return BettingLimits(
            min_bet=pick("min_bet"),
            max_bet=pick("max_bet"),
            limit_per_user=pick("limit_per_user"),
            fee_percent=pick("fee_percent"),
        )

    def get_suspicious_threshold(self, guild_id: int | None) -> int:
        config = self.get_config(guild_id) or {}
        value = config.get("suspicious_bet_threshold")
        return value if value is not None else self.default_suspicious_threshold

    def update_betting_defaults(
        self,
        guild_id: int | None,
        actor_id: int,
        min_bet: int | None = None,
        max_bet: int | None = None,
        limit_per_user: int | None = None,
        fee_percent: int | None = None,
        suspicious_bet_threshold: int | None = None,
    ) -> BettingLimits:
        """
        Change the betting defaults for future events.

        Events that already exist keep the limits they were created with.

        Raises:
            ValidationError: if the merged limits are inconsistent.
        """
        current = self.get_betting_limits(guild_id)
        merged = BettingLimits(
            min_bet=min_bet if min_bet is not None else current.min_bet,
            max_bet=max_bet if max_bet is not None else current.max_bet,
            limit_per_user=limit_per_user if limit_per_user is not None else current.limit_per_user,
            fee_percent=fee_percent if fee_percent is not None else current.fee_percent,
        )
        errors = merged.validate()
        if suspicious_bet_threshold is not None and suspicious_bet_threshold < 1:
            errors.append("Suspicious bet threshold must be at least 1")
        if errors:
            raise ValidationError("; ".join(errors))

        normalized = guild_id if guild_id is not None else 0
        self.guild_config_repo.upsert_betting_defaults(
            normalized,
            min_bet=min_bet,
            max_bet=max_bet,
            limit_per_user=limit_per_user,
            fee_percent=fee_percent,
            suspicious_bet_threshold=suspicious_bet_threshold,
        )
        logger.info(f"Betting defaults for guild {normalized} updated by {actor_id}: {merged.to_dict()}")
        return merged

    def get_announcement_channel(self, guild_id: int | None) -> int | None:
        normalized = guild_id if guild_id is not None else 0
        channel_id = self.guild_config_repo.get_announcement_channel(normalized)
        return channel_id if channel_id is not None else self.default_announcement_channel_id

    def set_announcement_channel(self, guild_id: int | None, channel_id: int | None) -> None:
        normalized = guild_id if guild_id is not None else 0
        self.guild_config_repo.set_announcement_channel(normalized, channel_id)

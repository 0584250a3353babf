"""
Tests for GuildConfigService.

This service manages per-guild configuration settings including:
- Betting defaults copied onto new events
- Suspicious bet threshold
- Announcement channel
"""

import pytest

from domain.models.event import BettingLimits
from services.errors import ValidationError
from services.guild_config_service import GuildConfigService
from tests.conftest import DEFAULT_LIMITS, OPERATOR_ID, TEST_GUILD_ID, TEST_GUILD_ID_SECONDARY

# Uses guild_config_service fixture from conftest.py


class TestGuildConfigService:
    """Test GuildConfigService functionality."""

    def test_get_config_returns_none_for_new_guild(self, guild_config_service):
        assert guild_config_service.get_config(TEST_GUILD_ID) is None

    def test_defaults_apply_without_config(self, guild_config_service):
        assert guild_config_service.get_betting_limits(TEST_GUILD_ID) == DEFAULT_LIMITS
        assert guild_config_service.get_suspicious_threshold(TEST_GUILD_ID) == 500

    def test_partial_update_keeps_other_defaults(self, guild_config_service):
        limits = guild_config_service.update_betting_defaults(TEST_GUILD_ID, OPERATOR_ID, max_bet=250)

        assert limits == BettingLimits(min_bet=10, max_bet=250, limit_per_user=2, fee_percent=5)
        assert guild_config_service.get_betting_limits(TEST_GUILD_ID) == limits

    def test_updates_accumulate(self, guild_config_service):
        guild_config_service.update_betting_defaults(TEST_GUILD_ID, OPERATOR_ID, min_bet=20)
        guild_config_service.update_betting_defaults(TEST_GUILD_ID, OPERATOR_ID, fee_percent=0)

        limits = guild_config_service.get_betting_limits(TEST_GUILD_ID)
        assert (limits.min_bet, limits.fee_percent) == (20, 0)

    def test_limits_per_guild_isolation(self, guild_config_service):
        guild_config_service.update_betting_defaults(TEST_GUILD_ID, OPERATOR_ID, limit_per_user=5)

        assert guild_config_service.get_betting_limits(TEST_GUILD_ID).limit_per_user == 5
        assert guild_config_service.get_betting_limits(TEST_GUILD_ID_SECONDARY).limit_per_user == 2

    @pytest.mark.parametrize(
        "changes,message",
        [
            ({"min_bet": 0}, "Minimum bet"),
            ({"max_bet": 5}, "Maximum bet"),
            ({"limit_per_user": 0}, "limit per user"),
            ({"fee_percent": 101}, "Fee percent"),
            ({"suspicious_bet_threshold": 0}, "Suspicious"),
        ],
    )
    def test_invalid_updates_rejected(self, guild_config_service, changes, message):
        with pytest.raises(ValidationError, match=message):
            guild_config_service.update_betting_defaults(TEST_GUILD_ID, OPERATOR_ID, **changes)
        assert guild_config_service.get_config(TEST_GUILD_ID) is None

    def test_suspicious_threshold_override(self, guild_config_service):
        guild_config_service.update_betting_defaults(TEST_GUILD_ID, OPERATOR_ID, suspicious_bet_threshold=2000)

        assert guild_config_service.get_suspicious_threshold(TEST_GUILD_ID) == 2000
        assert guild_config_service.get_suspicious_threshold(TEST_GUILD_ID_SECONDARY) == 500

    def test_announcement_channel(self, guild_config_service):
        assert guild_config_service.get_announcement_channel(TEST_GUILD_ID) is None

        guild_config_service.set_announcement_channel(TEST_GUILD_ID, 777)

        assert guild_config_service.get_announcement_channel(TEST_GUILD_ID) == 777
        assert guild_config_service.get_config(TEST_GUILD_ID)["announcement_channel_id"] == 777

    def test_announcement_channel_falls_back_to_default(self, guild_config_repository):
        service = GuildConfigService(
            guild_config_repository, DEFAULT_LIMITS, default_suspicious_threshold=500, default_announcement_channel_id=9
        )

        assert service.get_announcement_channel(TEST_GUILD_ID) == 9
        service.set_announcement_channel(TEST_GUILD_ID, 10)
        assert service.get_announcement_channel(TEST_GUILD_ID) == 10

    def test_none_guild_normalized(self, guild_config_service):
        guild_config_service.update_betting_defaults(None, OPERATOR_ID, min_bet=15)

        assert guild_config_service.get_betting_limits(0).min_bet == 15

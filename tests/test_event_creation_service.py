"""
Tests for the event creation wizard.
"""

from datetime import datetime, timezone

import pytest

from domain.models.event import BettingLimits, EventStatus, EventType
from domain.models.event_draft import DraftStep
from services.draft_session_store import DraftSessionStore
from services.errors import InvalidTimeError, NotFoundError, StateConflictError, ValidationError
from services.event_creation_service import EventCreationService
from tests.conftest import DEFAULT_LIMITS, OPERATOR_ID, TEST_GUILD_ID

FIXED_NOW = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def wizard(event_service, guild_config_service):
    return EventCreationService(
        event_service,
        guild_config_service,
        store=DraftSessionStore(),
        timezone_name="UTC",
        now=lambda: FIXED_NOW,
    )


def _with_basic_info(wizard, actor_id=OPERATOR_ID):
    wizard.start(actor_id, TEST_GUILD_ID, "paintball")
    return wizard.set_basic_info(actor_id, "Capture the Flag", "Red Team, Blue Team", description="Finals")


class TestStart:
    def test_start_uses_guild_defaults(self, wizard):
        draft = wizard.start(OPERATOR_ID, TEST_GUILD_ID, "boxing")

        assert draft.event_type == EventType.BOXING
        assert draft.limits == DEFAULT_LIMITS
        assert draft.step == DraftStep.BASIC_INFO

    def test_start_picks_up_updated_defaults(self, wizard, guild_config_service):
        guild_config_service.update_betting_defaults(TEST_GUILD_ID, OPERATOR_ID, min_bet=25, fee_percent=10)

        draft = wizard.start(OPERATOR_ID, TEST_GUILD_ID, "custom")

        assert draft.limits == BettingLimits(min_bet=25, max_bet=1000, limit_per_user=2, fee_percent=10)

    def test_start_uses_configured_channel(self, wizard, guild_config_service):
        guild_config_service.set_announcement_channel(TEST_GUILD_ID, 5555)

        assert wizard.start(OPERATOR_ID, TEST_GUILD_ID, "racing").channel_id == 5555
        assert wizard.start(OPERATOR_ID, TEST_GUILD_ID, "racing", channel_id=42).channel_id == 42

    def test_start_rejects_unknown_type(self, wizard):
        with pytest.raises(ValidationError, match="Event type"):
            wizard.start(OPERATOR_ID, TEST_GUILD_ID, "chess")

    def test_restart_replaces_draft(self, wizard):
        _with_basic_info(wizard)

        draft = wizard.start(OPERATOR_ID, TEST_GUILD_ID, "racing")

        assert draft.name is None
        assert wizard.get_draft(OPERATOR_ID) is draft

    def test_missing_draft(self, wizard):
        with pytest.raises(NotFoundError, match="expired"):
            wizard.get_draft(OPERATOR_ID)


class TestSteps:
    def test_basic_info_parses_choices(self, wizard):
        draft = _with_basic_info(wizard)

        assert draft.name == "Capture the Flag"
        assert draft.choices == ["Red Team", "Blue Team"]
        assert draft.description == "Finals"
        assert draft.step == DraftStep.SCHEDULE

    def test_basic_info_accepts_line_separated_choices(self, wizard):
        wizard.start(OPERATOR_ID, TEST_GUILD_ID, "racing")

        draft = wizard.set_basic_info(OPERATOR_ID, "Derby", "Comet\nBlitz, Jr.\nDasher")

        assert draft.choices == ["Comet", "Blitz, Jr.", "Dasher"]

    def test_basic_info_rejects_duplicates(self, wizard):
        wizard.start(OPERATOR_ID, TEST_GUILD_ID, "racing")

        with pytest.raises(ValidationError, match="unique"):
            wizard.set_basic_info(OPERATOR_ID, "Derby", ["Comet", "comet "])

    def test_later_steps_need_basic_info(self, wizard):
        wizard.start(OPERATOR_ID, TEST_GUILD_ID, "racing")

        with pytest.raises(StateConflictError):
            wizard.set_schedule(OPERATOR_ID, "2030-06-01", "19:00")
        with pytest.raises(StateConflictError):
            wizard.set_betting_config(OPERATOR_ID, min_bet=5)

    def test_schedule(self, wizard):
        _with_basic_info(wizard)

        draft = wizard.set_schedule(OPERATOR_ID, "2030-06-01", "19:00")

        assert draft.scheduled_time == datetime(2030, 6, 1, 19, 0, tzinfo=timezone.utc)
        assert draft.step == DraftStep.BETTING_CONFIG

    def test_schedule_in_past_rejected(self, wizard):
        _with_basic_info(wizard)

        with pytest.raises(ValidationError, match="past"):
            wizard.set_schedule(OPERATOR_ID, "2029-12-31", "23:59")

    @pytest.mark.parametrize("date_str,time_str", [("2030-13-01", "19:00"), ("2030-06-01", "7pm"), ("", "")])
    def test_schedule_malformed(self, wizard, date_str, time_str):
        _with_basic_info(wizard)

        with pytest.raises(InvalidTimeError):
            wizard.set_schedule(OPERATOR_ID, date_str, time_str)

    def test_skip_schedule(self, wizard):
        _with_basic_info(wizard)

        draft = wizard.skip_schedule(OPERATOR_ID)

        assert draft.scheduled_time is None
        assert draft.step == DraftStep.BETTING_CONFIG

    def test_betting_config_overrides_defaults(self, wizard):
        _with_basic_info(wizard)

        draft = wizard.set_betting_config(OPERATOR_ID, min_bet=5, max_bet=50)

        assert draft.limits == BettingLimits(min_bet=5, max_bet=50, limit_per_user=2, fee_percent=5)
        assert draft.step == DraftStep.CONFIRM

    def test_betting_config_rejects_inconsistent_limits(self, wizard):
        _with_basic_info(wizard)

        with pytest.raises(ValidationError, match="Maximum bet"):
            wizard.set_betting_config(OPERATOR_ID, min_bet=100, max_bet=50)
        assert wizard.get_draft(OPERATOR_ID).limits == DEFAULT_LIMITS


class TestConfirm:
    @pytest.mark.asyncio
    async def test_confirm_creates_open_event(self, wizard):
        _with_basic_info(wizard)
        wizard.set_schedule(OPERATOR_ID, "2030-06-01", "19:00")
        wizard.set_betting_config(OPERATOR_ID, fee_percent=0)

        event = await wizard.confirm(OPERATOR_ID)

        assert event.status == EventStatus.OPEN
        assert event.event_type == EventType.PAINTBALL
        assert event.choices == ["Red Team", "Blue Team"]
        assert event.limits.fee_percent == 0
        assert event.scheduled_time == datetime(2030, 6, 1, 19, 0, tzinfo=timezone.utc)
        assert OPERATOR_ID not in wizard.store

    @pytest.mark.asyncio
    async def test_event_limits_frozen_at_creation(self, wizard, guild_config_service, event_service):
        _with_basic_info(wizard)
        event = await wizard.confirm(OPERATOR_ID)

        guild_config_service.update_betting_defaults(TEST_GUILD_ID, OPERATOR_ID, max_bet=5000)

        assert event_service.get_event(event.event_id).limits == DEFAULT_LIMITS

    @pytest.mark.asyncio
    async def test_confirm_without_draft(self, wizard):
        with pytest.raises(NotFoundError):
            await wizard.confirm(OPERATOR_ID)

    @pytest.mark.asyncio
    async def test_drafts_are_per_operator(self, wizard):
        _with_basic_info(wizard, actor_id=1)
        wizard.start(2, TEST_GUILD_ID, "boxing")

        await wizard.confirm(1)

        assert wizard.get_draft(2).event_type == EventType.BOXING

    def test_cancel(self, wizard):
        _with_basic_info(wizard)

        assert wizard.cancel(OPERATOR_ID) is True
        assert wizard.cancel(OPERATOR_ID) is False

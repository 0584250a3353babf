"""
Tests for the event status machine and its side effects.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from domain.models.event import EventStatus, EventType
from domain.models.event_draft import EventDraft
from services.announcement_service import AnnouncementKind, AnnouncementService
from services.errors import (
    AlreadyFinalizedError,
    InvalidTimeError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from services.event_service import EventService
from tests.conftest import DEFAULT_LIMITS, OPERATOR_ID, TEST_GUILD_ID, TEST_GUILD_ID_SECONDARY, create_open_event


@pytest.fixture
def announcements():
    return MagicMock(spec=AnnouncementService)


@pytest.fixture
def announced_event_service(event_repository, bet_repository, announcements):
    return EventService(event_repository, bet_repository, announcements=announcements, timezone_name="UTC")


def _draft(**overrides):
    values = dict(
        actor_id=OPERATOR_ID,
        guild_id=TEST_GUILD_ID,
        event_type=EventType.RACING,
        limits=DEFAULT_LIMITS,
        name="Derby",
        choices=["Comet", "Blitz", "Dasher"],
    )
    values.update(overrides)
    return EventDraft(**values)


def _audit_actions(audit_log_repository, event_id):
    return [entry["action"] for entry in audit_log_repository.get_event_log(event_id)]


class TestCreateEvent:
    @pytest.mark.asyncio
    async def test_create_opens_event(self, event_service):
        event = await event_service.create_event(_draft(), OPERATOR_ID)

        assert event.status == EventStatus.OPEN
        assert event.choices == ["Comet", "Blitz", "Dasher"]
        assert event.limits == DEFAULT_LIMITS
        assert event.created_by == OPERATOR_ID

    @pytest.mark.asyncio
    async def test_create_is_audited(self, event_service, audit_log_repository):
        event = await event_service.create_event(_draft(), OPERATOR_ID)

        assert _audit_actions(audit_log_repository, event.event_id) == ["create", "open"]

    @pytest.mark.asyncio
    async def test_create_announces_opened(self, announced_event_service, announcements):
        event = await announced_event_service.create_event(_draft(), OPERATOR_ID)

        args, kwargs = announcements.publish.call_args
        assert args[0].event_id == event.event_id
        assert args[1] == AnnouncementKind.OPENED
        assert kwargs["on_sent"] is not None

    @pytest.mark.asyncio
    async def test_create_rejects_invalid_draft(self, event_service):
        with pytest.raises(ValidationError) as exc_info:
            await event_service.create_event(_draft(name=" ", choices=["Solo"]), OPERATOR_ID)

        message = str(exc_info.value)
        assert "Event name is required" in message
        assert "at least 2 choices" in message

    @pytest.mark.asyncio
    async def test_create_rejects_past_schedule(self, event_service):
        past = datetime.now(timezone.utc) - timedelta(days=1)

        with pytest.raises(ValidationError, match="past"):
            await event_service.create_event(_draft(scheduled_time=past), OPERATOR_ID)


class TestTransitions:
    @pytest.mark.asyncio
    async def test_lock_and_unlock(self, event_service, open_event):
        assert (await event_service.lock(open_event, OPERATOR_ID)).status == EventStatus.LOCKED
        assert (await event_service.unlock(open_event, OPERATOR_ID)).status == EventStatus.OPEN

    @pytest.mark.asyncio
    async def test_lock_twice_is_noop(self, event_service, audit_log_repository, open_event):
        await event_service.lock(open_event, OPERATOR_ID)
        before = _audit_actions(audit_log_repository, open_event)

        event = await event_service.lock(open_event, OPERATOR_ID)

        assert event.status == EventStatus.LOCKED
        assert _audit_actions(audit_log_repository, open_event) == before

    @pytest.mark.asyncio
    async def test_noop_does_not_announce(self, announced_event_service, announcements, open_event):
        await announced_event_service.lock(open_event, OPERATOR_ID)
        announcements.publish.reset_mock()

        await announced_event_service.lock(open_event, OPERATOR_ID)

        announcements.publish.assert_not_called()

    @pytest.mark.asyncio
    async def test_lock_announces(self, announced_event_service, announcements, open_event):
        await announced_event_service.lock(open_event, OPERATOR_ID)

        event, kind, _detail = announcements.publish.call_args.args
        assert kind == AnnouncementKind.LOCKED
        assert event.status == EventStatus.LOCKED
        announcements.refresh_event_message.assert_called_once()

    @pytest.mark.asyncio
    async def test_unlock_requires_locked(self, event_service, open_event):
        await event_service.pause(open_event, OPERATOR_ID)

        with pytest.raises(StateConflictError):
            await event_service.unlock(open_event, OPERATOR_ID)

    @pytest.mark.asyncio
    async def test_resume_restores_locked(self, event_service, open_event):
        await event_service.lock(open_event, OPERATOR_ID)
        paused = await event_service.pause(open_event, OPERATOR_ID)
        assert paused.status == EventStatus.PAUSED
        assert paused.paused_from == EventStatus.LOCKED

        resumed = await event_service.resume(open_event, OPERATOR_ID)

        assert resumed.status == EventStatus.LOCKED
        assert resumed.paused_from is None

    @pytest.mark.asyncio
    async def test_resume_restores_open(self, event_service, open_event):
        await event_service.pause(open_event, OPERATOR_ID)

        assert (await event_service.resume(open_event, OPERATOR_ID)).status == EventStatus.OPEN

    @pytest.mark.asyncio
    async def test_resume_open_event_is_noop(self, event_service, open_event):
        assert (await event_service.resume(open_event, OPERATOR_ID)).status == EventStatus.OPEN

    @pytest.mark.asyncio
    async def test_resume_locked_event_conflicts(self, event_service, open_event):
        await event_service.lock(open_event, OPERATOR_ID)

        with pytest.raises(StateConflictError):
            await event_service.resume(open_event, OPERATOR_ID)

    @pytest.mark.asyncio
    async def test_reopen_from_locked_records_reason(self, event_service, audit_log_repository, open_event):
        await event_service.lock(open_event, OPERATOR_ID)

        event = await event_service.reopen(open_event, "late entries", OPERATOR_ID)

        assert event.status == EventStatus.OPEN
        entry = audit_log_repository.get_event_log(open_event)[-1]
        assert entry["action"] == "reopen"
        assert entry["details"] == {"reason": "late entries"}
        assert (entry["status_before"], entry["status_after"]) == ("locked", "open")

    @pytest.mark.asyncio
    async def test_reopen_from_paused(self, event_service, open_event):
        await event_service.lock(open_event, OPERATOR_ID)
        await event_service.pause(open_event, OPERATOR_ID)

        assert (await event_service.reopen(open_event, None, OPERATOR_ID)).status == EventStatus.OPEN

    @pytest.mark.asyncio
    async def test_finalized_event_cannot_change(self, event_service, settlement_repository, open_event):
        await event_service.lock(open_event, OPERATOR_ID)
        settlement_repository.finalize(open_event, OPERATOR_ID, winning_choice=0)

        with pytest.raises(AlreadyFinalizedError):
            await event_service.reopen(open_event, "oops", OPERATOR_ID)
        with pytest.raises(AlreadyFinalizedError):
            await event_service.pause(open_event, OPERATOR_ID)
        with pytest.raises(AlreadyFinalizedError):
            await event_service.cancel(open_event, OPERATOR_ID)

    @pytest.mark.asyncio
    async def test_unknown_event(self, event_service):
        with pytest.raises(NotFoundError):
            await event_service.lock(4040, OPERATOR_ID)


class TestCancel:
    @pytest.mark.asyncio
    async def test_cancel_refunds_active_bets(self, event_service, bet_repository, open_event):
        bet_repository.place_bet_atomic(open_event, user_id=1, choice_index=0, amount=100)
        bet_repository.place_bet_atomic(open_event, user_id=2, choice_index=1, amount=250)
        cancelled_bet = bet_repository.place_bet_atomic(open_event, user_id=3, choice_index=1, amount=40)
        bet_repository.cancel_bet(cancelled_bet["bet_id"], actor_id=3)

        outcome = await event_service.cancel(open_event, OPERATOR_ID, reason="venue closed")

        assert outcome["event"].status == EventStatus.CANCELLED
        assert outcome["refunded_count"] == 2
        assert outcome["refunded_amount"] == 350
        assert outcome["event"].total_bets_amount == 0
        statuses = [bet["status"] for bet in bet_repository.list_by_event(open_event)]
        assert statuses == ["refunded", "refunded", "cancelled"]

    @pytest.mark.asyncio
    async def test_cancel_twice_conflicts(self, event_service, open_event):
        await event_service.cancel(open_event, OPERATOR_ID)

        with pytest.raises(StateConflictError):
            await event_service.cancel(open_event, OPERATOR_ID)

    @pytest.mark.asyncio
    async def test_cancelled_event_cannot_reopen(self, event_service, open_event):
        await event_service.cancel(open_event, OPERATOR_ID)

        with pytest.raises(StateConflictError):
            await event_service.reopen(open_event, None, OPERATOR_ID)

    @pytest.mark.asyncio
    async def test_cancel_announces_reason(self, announced_event_service, announcements, open_event):
        await announced_event_service.cancel(open_event, OPERATOR_ID, reason="storm")

        _event, kind, detail = announcements.publish.call_args.args
        assert kind == AnnouncementKind.CANCELLED
        assert detail == "Reason: storm"


class TestReschedule:
    @pytest.mark.asyncio
    async def test_reschedule_sets_time(self, announced_event_service, open_event):
        event = await announced_event_service.reschedule(open_event, "2030-05-01 18:30", OPERATOR_ID)

        assert event.scheduled_time == datetime(2030, 5, 1, 18, 30, tzinfo=timezone.utc)
        assert event.status == EventStatus.OPEN

    @pytest.mark.asyncio
    async def test_reschedule_keeps_bets(self, announced_event_service, bet_repository, open_event):
        bet_repository.place_bet_atomic(open_event, user_id=1, choice_index=0, amount=100)

        event = await announced_event_service.reschedule(open_event, "2030-05-01 18:30", OPERATOR_ID)

        assert event.total_bets_amount == 100
        assert len(bet_repository.list_by_event(open_event, ["active"])) == 1

    @pytest.mark.asyncio
    async def test_reschedule_rejects_bad_time(self, announced_event_service, open_event):
        with pytest.raises(InvalidTimeError):
            await announced_event_service.reschedule(open_event, "next tuesday", OPERATOR_ID)

    @pytest.mark.asyncio
    async def test_reschedule_refused_when_terminal(self, announced_event_service, open_event):
        await announced_event_service.cancel(open_event, OPERATOR_ID)

        with pytest.raises(StateConflictError):
            await announced_event_service.reschedule(open_event, "2030-05-01 18:30", OPERATOR_ID)


class TestReads:
    def test_list_events_by_guild_and_status(self, event_service, event_repository):
        first = create_open_event(event_repository, name="First")
        create_open_event(event_repository, name="Second")
        create_open_event(event_repository, guild_id=TEST_GUILD_ID_SECONDARY, name="Elsewhere")
        event_repository.transition_status(first, {"open"}, "locked", OPERATOR_ID, "lock")

        names = [event.name for event in event_service.list_events(TEST_GUILD_ID)]
        locked = event_service.list_events(TEST_GUILD_ID, [EventStatus.LOCKED])

        assert names == ["Second", "First"]
        assert [event.event_id for event in locked] == [first]

    def test_compute_current_odds(self, event_service, bet_repository, open_event):
        bet_repository.place_bet_atomic(open_event, user_id=1, choice_index=0, amount=300)
        bet_repository.place_bet_atomic(open_event, user_id=2, choice_index=1, amount=100)

        rows = event_service.compute_current_odds(open_event)

        assert [(row["choice"], row["odds"]) for row in rows] == [("Red", 1.33), ("Blue", 4.0)]

    def test_get_missing_event(self, event_service):
        with pytest.raises(NotFoundError):
            event_service.get_event(777)

    @pytest.mark.asyncio
    async def test_update_details(self, event_service, open_event):
        event = await event_service.update_details(open_event, OPERATOR_ID, name="  Rematch  ", location="Arena")

        assert event.name == "Rematch"
        assert event.location == "Arena"

    def test_delete_event_removes_bets(self, event_service, bet_repository, open_event):
        bet_repository.place_bet_atomic(open_event, user_id=1, choice_index=0, amount=100)

        assert event_service.delete_event(open_event, OPERATOR_ID) is True
        assert bet_repository.list_by_event(open_event) == []
        assert event_service.delete_event(open_event, OPERATOR_ID) is False

"""
Event lifecycle: creation, status transitions and read models.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from domain.models.event import Event, EventStatus
from domain.models.event_draft import EventDraft
from domain.services.payout_calculator import calculate_choice_odds
from repositories.interfaces import IBetRepository, IEventRepository
from services.announcement_service import AnnouncementKind, AnnouncementService
from services.errors import NotFoundError, ValidationError
from utils.time_utils import parse_datetime, to_timestamp
from utils.validators import validate_event, validate_event_name

logger = logging.getLogger("stakes_bot.services.event")


class EventService:
    """
    Owns the event status machine.

    Mutations run their database work in a worker thread and only announce
    after the change is committed. Allowed transitions:

        pending -> open
        open <-> locked
        open | locked -> paused -> (status before pausing)
        locked | paused -> open        (reopen)
        any non-terminal -> cancelled  (refunds active bets)

    ``completed`` is reached only through SettlementService.finalize.
    """

    def __init__(
        self,
        event_repo: IEventRepository,
        bet_repo: IBetRepository,
        announcements: AnnouncementService | None = None,
        timezone_name: str | None = None,
    ):
        self.event_repo = event_repo
        self.bet_repo = bet_repo
        self.announcements = announcements
        self.timezone_name = timezone_name

    # --- Reads ---

    def get_event(self, event_id: int) -> Event:
        row = self.event_repo.get_event(event_id)
        if not row:
            raise NotFoundError(f"Event {event_id} not found.")
        return Event.from_row(row)

    def list_events(self, guild_id: int | None, statuses: list[EventStatus] | None = None) -> list[Event]:
        status_values = [status.value for status in statuses] if statuses else None
        return [Event.from_row(row) for row in self.event_repo.list_events(guild_id, status_values)]

    def compute_current_odds(self, event_id: int) -> list[dict]:
        """Per-choice stake, bet count, share of pot and decimal odds from active bets."""
        event = self.get_event(event_id)
        totals = self.bet_repo.get_choice_totals(event_id)
        return calculate_choice_odds(event.choices, totals)

    # --- Creation ---

    async def create_event(self, draft: EventDraft, actor_id: int) -> Event:
        """Persist a completed draft, open it for betting and announce it."""
        choices = [choice.strip() for choice in draft.choices]
        errors = validate_event(
            draft.name,
            draft.event_type.value,
            choices,
            draft.limits,
            draft.scheduled_time,
        )
        if errors:
            raise ValidationError("; ".join(errors))

        limits = draft.limits
        event_id = await asyncio.to_thread(
            self.event_repo.create_event,
            draft.guild_id,
            draft.name.strip(),
            draft.event_type.value,
            choices,
            limits.min_bet,
            limits.max_bet,
            limits.limit_per_user,
            limits.fee_percent,
            actor_id,
            draft.description,
            draft.location,
            to_timestamp(draft.scheduled_time) if draft.scheduled_time else None,
            draft.channel_id,
        )
        logger.info(f"Event {event_id} '{draft.name}' created by {actor_id} in guild {draft.guild_id}")

        event = await self._transition(event_id, {"pending"}, "open", actor_id, "open", announce=False)
        self._announce_opened(event)
        return event

    def _announce_opened(self, event: Event) -> None:
        if self.announcements is None:
            return

        async def remember_message(channel_id: int, message_id: int) -> None:
            await asyncio.to_thread(self.event_repo.set_announcement_message, event.event_id, channel_id, message_id)

        self.announcements.publish(event, AnnouncementKind.OPENED, on_sent=remember_message)

    # --- Transitions ---

    async def lock(self, event_id: int, actor_id: int) -> Event:
        """Stop accepting bets. Locking a locked event does nothing."""
        return await self._transition(event_id, {"open"}, "locked", actor_id, "lock", AnnouncementKind.LOCKED)

    async def unlock(self, event_id: int, actor_id: int) -> Event:
        return await self._transition(event_id, {"locked"}, "open", actor_id, "unlock", AnnouncementKind.UNLOCKED)

    async def pause(self, event_id: int, actor_id: int) -> Event:
        return await self._transition(
            event_id, {"open", "locked"}, "paused", actor_id, "pause", AnnouncementKind.PAUSED
        )

    async def resume(self, event_id: int, actor_id: int) -> Event:
        """Return a paused event to the status it had before pausing."""
        return await self._transition(event_id, {"paused"}, None, actor_id, "resume", AnnouncementKind.RESUMED)

    async def reopen(self, event_id: int, reason: str | None, actor_id: int) -> Event:
        """Reopen betting on a locked or paused event. Finalized events stay closed."""
        return await self._transition(
            event_id,
            {"locked", "paused"},
            "open",
            actor_id,
            "reopen",
            AnnouncementKind.REOPENED,
            details={"reason": reason} if reason else None,
            detail_text=f"Reason: {reason}" if reason else None,
        )

    async def reschedule(self, event_id: int, new_time: datetime | str, actor_id: int) -> Event:
        """
        Move the event's scheduled time. Bets are unaffected.

        Raises:
            InvalidTimeError: if new_time is not a well-formed date/time.
        """
        when = parse_datetime(new_time, self.timezone_name)
        row = await asyncio.to_thread(self.event_repo.reschedule, event_id, to_timestamp(when), actor_id)
        event = Event.from_row(row)
        logger.info(f"Event {event_id} rescheduled to {when.isoformat()} by {actor_id}")
        self._announce(event, AnnouncementKind.RESCHEDULED)
        return event

    async def cancel(self, event_id: int, actor_id: int, reason: str | None = None) -> dict:
        """
        Cancel the event and refund every active bet.

        Returns:
            Dict with event (Event), refunded_count and refunded_amount.
        """
        outcome = await asyncio.to_thread(self.event_repo.cancel_event, event_id, actor_id, reason)
        event = Event.from_row(outcome["event"])
        logger.info(
            f"Event {event_id} cancelled by {actor_id} (was {outcome['status_before']}); "
            f"refunded {outcome['refunded_count']} bets totalling {outcome['refunded_amount']}"
        )
        self._announce(event, AnnouncementKind.CANCELLED, f"Reason: {reason}" if reason else None)
        return {
            "event": event,
            "refunded_count": outcome["refunded_count"],
            "refunded_amount": outcome["refunded_amount"],
        }

    async def update_details(
        self,
        event_id: int,
        actor_id: int,
        name: str | None = None,
        description: str | None = None,
        location: str | None = None,
    ) -> Event:
        if name is not None:
            errors = validate_event_name(name)
            if errors:
                raise ValidationError("; ".join(errors))
            name = name.strip()
        row = await asyncio.to_thread(
            self.event_repo.update_details, event_id, actor_id, name, description, location
        )
        event = Event.from_row(row)
        if self.announcements is not None:
            self.announcements.refresh_event_message(event)
        return event

    def set_announcement_message(self, event_id: int, channel_id: int | None, message_id: int | None) -> None:
        self.event_repo.set_announcement_message(event_id, channel_id, message_id)

    def delete_event(self, event_id: int, actor_id: int | None = None) -> bool:
        """Remove an event with its bets and payouts."""
        deleted = self.event_repo.delete_event(event_id, actor_id)
        if deleted:
            logger.info(f"Event {event_id} deleted by {actor_id}")
        return deleted

    # --- Internals ---

    async def _transition(
        self,
        event_id: int,
        allowed_from: set[str],
        to_status: str | None,
        actor_id: int,
        action: str,
        kind: AnnouncementKind | None = None,
        details: dict | None = None,
        detail_text: str | None = None,
        announce: bool = True,
    ) -> Event:
        outcome = await asyncio.to_thread(
            self.event_repo.transition_status, event_id, allowed_from, to_status, actor_id, action, details
        )
        event = Event.from_row(outcome["event"])
        if not outcome["changed"]:
            logger.debug(f"Event {event_id} already {event.status.value}; {action} ignored")
            return event

        logger.info(
            f"Event {event_id}: {outcome['status_before']} -> {outcome['status_after']} ({action} by {actor_id})"
        )
        if announce and kind is not None:
            self._announce(event, kind, detail_text)
        return event

    def _announce(self, event: Event, kind: AnnouncementKind, detail: str | None = None) -> None:
        if self.announcements is None:
            return
        self.announcements.publish(event, kind, detail)
        self.announcements.refresh_event_message(event)

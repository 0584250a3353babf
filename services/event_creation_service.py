"""
Multi-step event creation wizard.

Each operator gets an EventDraft in a DraftSessionStore; every wizard step
takes the actor id, loads that draft, validates the step's input and stores
the result. Nothing is written to the database until confirm().
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone

from domain.models.event import BettingLimits, Event, EventType
from domain.models.event_draft import DraftStep, EventDraft
from services.draft_session_store import DraftSessionStore
from services.errors import NotFoundError, StateConflictError, ValidationError
from services.event_service import EventService
from services.guild_config_service import GuildConfigService
from utils.time_utils import parse_schedule
from utils.validators import (
    VALID_EVENT_TYPES,
    parse_choices,
    validate_choices,
    validate_event_name,
    validate_schedule,
)

logger = logging.getLogger("stakes_bot.services.event_creation")

MAX_DESCRIPTION_LENGTH = 1000
MAX_LOCATION_LENGTH = 100


def _raise_if(errors: list[str]) -> None:
    if errors:
        raise ValidationError("; ".join(errors))


class EventCreationService:
    """
    Walks an operator through: basic info -> schedule -> betting config -> confirm.

    The draft's betting limits start from the guild defaults at start() and
    are frozen onto the event when it is created.
    """

    def __init__(
        self,
        event_service: EventService,
        guild_config_service: GuildConfigService,
        store: DraftSessionStore | None = None,
        timezone_name: str | None = None,
        now: Callable[[], datetime] | None = None,
    ):
        self.event_service = event_service
        self.guild_config_service = guild_config_service
        self.store = store if store is not None else DraftSessionStore()
        self.timezone_name = timezone_name
        self._now = now or (lambda: datetime.now(timezone.utc))

    def start(self, actor_id: int, guild_id: int | None, event_type: str, channel_id: int | None = None) -> EventDraft:
        """Begin a new draft, replacing any draft the operator already had."""
        if event_type not in VALID_EVENT_TYPES:
            raise ValidationError(f"Event type must be one of: {', '.join(VALID_EVENT_TYPES)}")
        normalized_guild = guild_id if guild_id is not None else 0
        draft = EventDraft(
            actor_id=actor_id,
            guild_id=normalized_guild,
            event_type=EventType(event_type),
            limits=self.guild_config_service.get_betting_limits(normalized_guild),
            channel_id=channel_id or self.guild_config_service.get_announcement_channel(normalized_guild),
        )
        if self.store.discard(actor_id) is not None:
            logger.info(f"Replaced existing event draft for {actor_id}")
        self.store.put(draft)
        logger.info(f"Event draft started by {actor_id} in guild {normalized_guild} ({event_type})")
        return draft

    def get_draft(self, actor_id: int) -> EventDraft:
        draft = self.store.get(actor_id)
        if draft is None:
            raise NotFoundError("Your event draft has expired or was never started. Please start again.")
        return draft

    def set_basic_info(
        self,
        actor_id: int,
        name: str,
        choices: list[str] | str,
        description: str | None = None,
        location: str | None = None,
    ) -> EventDraft:
        draft = self.get_draft(actor_id)
        choice_list = parse_choices(choices) if isinstance(choices, str) else [c.strip() for c in choices]

        errors = validate_event_name(name) + validate_choices(choice_list)
        if description and len(description) > MAX_DESCRIPTION_LENGTH:
            errors.append(f"Description must be {MAX_DESCRIPTION_LENGTH} characters or less")
        if location and len(location) > MAX_LOCATION_LENGTH:
            errors.append(f"Location must be {MAX_LOCATION_LENGTH} characters or less")
        _raise_if(errors)

        draft.name = name.strip()
        draft.choices = choice_list
        draft.description = description.strip() if description else None
        draft.location = location.strip() if location else None
        draft.step = DraftStep.SCHEDULE
        self.store.put(draft)
        return draft

    def set_schedule(self, actor_id: int, date_str: str, time_str: str) -> EventDraft:
        """
        Set the start time from a local date (YYYY-MM-DD) and time (HH:MM).

        Raises:
            InvalidTimeError: malformed date or time.
            ValidationError: the time is in the past.
        """
        draft = self._require_basic_info(actor_id)
        scheduled = parse_schedule(date_str, time_str, self.timezone_name)
        _raise_if(validate_schedule(scheduled, self._now()))
        draft.scheduled_time = scheduled
        draft.step = DraftStep.BETTING_CONFIG
        self.store.put(draft)
        return draft

    def skip_schedule(self, actor_id: int) -> EventDraft:
        draft = self._require_basic_info(actor_id)
        draft.scheduled_time = None
        draft.step = DraftStep.BETTING_CONFIG
        self.store.put(draft)
        return draft

    def set_betting_config(
        self,
        actor_id: int,
        min_bet: int | None = None,
        max_bet: int | None = None,
        limit_per_user: int | None = None,
        fee_percent: int | None = None,
    ) -> EventDraft:
        """Override the guild defaults for this event; omitted values keep the default."""
        draft = self._require_basic_info(actor_id)
        overrides = {
            key: value
            for key, value in (
                ("min_bet", min_bet),
                ("max_bet", max_bet),
                ("limit_per_user", limit_per_user),
                ("fee_percent", fee_percent),
            )
            if value is not None
        }
        limits: BettingLimits = replace(draft.limits, **overrides)
        _raise_if(limits.validate())
        draft.limits = limits
        draft.step = DraftStep.CONFIRM
        self.store.put(draft)
        return draft

    async def confirm(self, actor_id: int) -> Event:
        """Create and open the event, then discard the draft."""
        draft = self._require_basic_info(actor_id)
        _raise_if(validate_schedule(draft.scheduled_time, self._now()))
        event = await self.event_service.create_event(draft, actor_id)
        self.store.discard(actor_id)
        return event

    def cancel(self, actor_id: int) -> bool:
        """Drop the operator's draft. Returns False if there was none."""
        cancelled = self.store.discard(actor_id) is not None
        if cancelled:
            logger.info(f"Event draft cancelled by {actor_id}")
        return cancelled

    def _require_basic_info(self, actor_id: int) -> EventDraft:
        draft = self.get_draft(actor_id)
        if draft.step == DraftStep.BASIC_INFO or not draft.name:
            raise StateConflictError("Enter the event name and choices first.")
        return draft

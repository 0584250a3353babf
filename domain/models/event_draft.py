"""
Event draft: the partially built event owned by one operator's creation session.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from domain.models.event import BettingLimits, EventType


class DraftStep(Enum):
    """Steps of the event creation wizard."""

    BASIC_INFO = "basic_info"
    SCHEDULE = "schedule"
    BETTING_CONFIG = "betting_config"
    CONFIRM = "confirm"


@dataclass
class EventDraft:
    """
    In-progress event data for one operator.

    Never a source of truth for a persisted event: it is discarded once the
    event is created, the wizard is cancelled, or the session expires.
    """

    actor_id: int
    guild_id: int
    event_type: EventType
    limits: BettingLimits
    step: DraftStep = DraftStep.BASIC_INFO
    name: str | None = None
    description: str | None = None
    location: str | None = None
    choices: list[str] = field(default_factory=list)
    scheduled_time: datetime | None = None
    channel_id: int | None = None

"""
Event domain model: a single wagering occasion with discrete outcome choices.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class EventStatus(Enum):
    """Lifecycle states of an event."""

    PENDING = "pending"
    OPEN = "open"
    LOCKED = "locked"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({EventStatus.COMPLETED, EventStatus.CANCELLED})

# Statuses from which finalize may run
SETTLEABLE_STATUSES = frozenset({EventStatus.LOCKED, EventStatus.PAUSED})

MAX_OUTCOME_LENGTH = 100


class EventType(Enum):
    BOXING = "boxing"
    RACING = "racing"
    PAINTBALL = "paintball"
    CUSTOM = "custom"


@dataclass(frozen=True)
class BettingLimits:
    """
    Betting configuration copied onto an event at creation time.

    Frozen: once attached to an event the limits never change, even if the
    guild defaults are edited later.
    """

    min_bet: int
    max_bet: int
    limit_per_user: int
    fee_percent: int

    def validate(self) -> list[str]:
        """Return a list of human-readable problems (empty if valid)."""
        errors = []
        if self.min_bet < 1:
            errors.append("Minimum bet must be at least 1")
        if self.max_bet < self.min_bet:
            errors.append("Maximum bet cannot be less than minimum bet")
        if self.limit_per_user < 1:
            errors.append("Bet limit per user must be at least 1")
        if self.fee_percent < 0 or self.fee_percent > 100:
            errors.append("Fee percent must be between 0 and 100")
        return errors

    def to_dict(self) -> dict[str, int]:
        return {
            "min_bet": self.min_bet,
            "max_bet": self.max_bet,
            "limit_per_user": self.limit_per_user,
            "fee_percent": self.fee_percent,
        }


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


@dataclass
class Event:
    """A persisted event row, with choices decoded and limits grouped."""

    event_id: int
    guild_id: int
    name: str
    event_type: EventType
    status: EventStatus
    choices: list[str]
    limits: BettingLimits
    created_by: int
    description: str | None = None
    location: str | None = None
    scheduled_time: datetime | None = None
    paused_from: EventStatus | None = None
    total_bets_amount: int = 0
    total_bets_count: int = 0
    winner_approved: bool = False
    winning_choice: str | None = None
    result_summary: dict[str, Any] = field(default_factory=dict)
    total_payout: int = 0
    channel_id: int | None = None
    announcement_message_id: int | None = None
    created_at: int | None = None
    finalized_at: int | None = None
    finalized_by: int | None = None

    @property
    def is_open(self) -> bool:
        return self.status == EventStatus.OPEN

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def choice_name(self, choice_index: int) -> str:
        return self.choices[choice_index]

    def has_choice(self, choice_index: int) -> bool:
        return 0 <= choice_index < len(self.choices)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Event":
        """Build an Event from a sqlite row dict."""
        paused_from = row.get("paused_from")
        return cls(
            event_id=row["event_id"],
            guild_id=row["guild_id"],
            name=row["name"],
            event_type=EventType(row["event_type"]),
            status=EventStatus(row["status"]),
            choices=json.loads(row["choices"]) if row["choices"] else [],
            limits=BettingLimits(
                min_bet=row["min_bet"],
                max_bet=row["max_bet"],
                limit_per_user=row["limit_per_user"],
                fee_percent=row["fee_percent"],
            ),
            created_by=row["created_by"],
            description=row.get("description"),
            location=row.get("location"),
            scheduled_time=_parse_timestamp(row.get("scheduled_time")),
            paused_from=EventStatus(paused_from) if paused_from else None,
            total_bets_amount=row.get("total_bets_amount") or 0,
            total_bets_count=row.get("total_bets_count") or 0,
            winner_approved=bool(row.get("winner_approved")),
            winning_choice=row.get("winning_choice"),
            result_summary=json.loads(row["result_summary"]) if row.get("result_summary") else {},
            total_payout=row.get("total_payout") or 0,
            channel_id=row.get("channel_id"),
            announcement_message_id=row.get("announcement_message_id"),
            created_at=row.get("created_at"),
            finalized_at=row.get("finalized_at"),
            finalized_by=row.get("finalized_by"),
        )

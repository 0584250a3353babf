"""
Bet domain model.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class BetStatus(Enum):
    ACTIVE = "active"
    WON = "won"
    LOST = "lost"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


@dataclass
class Bet:
    """A user's stake on one choice of one event."""

    bet_id: int
    event_id: int
    user_id: int
    amount: int
    choice_index: int
    choice_name: str
    status: BetStatus = BetStatus.ACTIVE
    user_tag: str | None = None
    is_winner: bool = False
    winning_amount: int | None = None
    odds: float | None = None
    bet_time: int | None = None
    cancelled_at: int | None = None
    cancelled_by: int | None = None
    meta: dict[str, Any] = field(default_factory=dict)

    @property
    def is_active(self) -> bool:
        return self.status == BetStatus.ACTIVE

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Bet":
        return cls(
            bet_id=row["bet_id"],
            event_id=row["event_id"],
            user_id=row["user_id"],
            amount=row["amount"],
            choice_index=row["choice_index"],
            choice_name=row["choice_name"],
            status=BetStatus(row["status"]),
            user_tag=row.get("user_tag"),
            is_winner=bool(row.get("is_winner")),
            winning_amount=row.get("winning_amount"),
            odds=row.get("odds"),
            bet_time=row.get("bet_time"),
            cancelled_at=row.get("cancelled_at"),
            cancelled_by=row.get("cancelled_by"),
            meta=json.loads(row["meta"]) if row.get("meta") else {},
        )

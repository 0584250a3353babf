"""
Domain models - pure data structures representing business entities.
"""

from domain.models.bet import Bet, BetStatus
from domain.models.event import BettingLimits, Event, EventStatus, EventType
from domain.models.event_draft import DraftStep, EventDraft
from domain.models.payout import Payout, PayoutMethod, PayoutStatus

__all__ = [
    "Bet",
    "BetStatus",
    "BettingLimits",
    "DraftStep",
    "Event",
    "EventDraft",
    "EventStatus",
    "EventType",
    "Payout",
    "PayoutMethod",
    "PayoutStatus",
]

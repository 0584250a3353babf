"""
Repository layer for data access abstraction.
"""

from repositories.audit_log_repository import AuditLogRepository
from repositories.base_repository import BaseRepository
from repositories.bet_repository import BetRepository
from repositories.event_repository import EventRepository
from repositories.guild_config_repository import GuildConfigRepository
from repositories.interfaces import (
    IAuditLogRepository,
    IBetRepository,
    IEventRepository,
    IGuildConfigRepository,
    IPayoutRepository,
    ISettlementRepository,
)
from repositories.payout_repository import PayoutRepository
from repositories.settlement_repository import SettlementRepository

__all__ = [
    "BaseRepository",
    "AuditLogRepository",
    "BetRepository",
    "EventRepository",
    "GuildConfigRepository",
    "PayoutRepository",
    "SettlementRepository",
    "IAuditLogRepository",
    "IBetRepository",
    "IEventRepository",
    "IGuildConfigRepository",
    "IPayoutRepository",
    "ISettlementRepository",
]

"""
Payout domain model: the net amount owed to one winning bet.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class PayoutStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class PayoutMethod(Enum):
    BANK = "bank"
    PAYPAL = "paypal"
    CASHAPP = "cashapp"
    VENMO = "venmo"
    OTHER = "other"


@dataclass
class Payout:
    payout_id: int
    event_id: int
    bet_id: int
    user_id: int
    amount: int
    fee_amount: int
    status: PayoutStatus = PayoutStatus.PENDING
    user_tag: str | None = None
    method: PayoutMethod | None = None
    account_id: str | None = None
    transaction_id: str | None = None
    processed_at: int | None = None
    processed_by: int | None = None
    expires_at: int | None = None
    notes: str | None = None
    created_at: int | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Payout":
        method = row.get("method")
        return cls(
            payout_id=row["payout_id"],
            event_id=row["event_id"],
            bet_id=row["bet_id"],
            user_id=row["user_id"],
            amount=row["amount"],
            fee_amount=row["fee_amount"],
            status=PayoutStatus(row["status"]),
            user_tag=row.get("user_tag"),
            method=PayoutMethod(method) if method else None,
            account_id=row.get("account_id"),
            transaction_id=row.get("transaction_id"),
            processed_at=row.get("processed_at"),
            processed_by=row.get("processed_by"),
            expires_at=row.get("expires_at"),
            notes=row.get("notes"),
            created_at=row.get("created_at"),
        )

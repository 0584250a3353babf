"""
Payout processing after finalize.
"""

import logging
import time
from datetime import datetime

from domain.models.payout import Payout, PayoutStatus
from repositories.interfaces import IPayoutRepository
from services.errors import NotFoundError, ValidationError
from utils.time_utils import to_timestamp
from utils.validators import validate_payout_method

logger = logging.getLogger("stakes_bot.services.payout")


class PayoutService:
    """
    Tracks payouts from pending to a final status.

    Money moves outside the bot; marking a payout processed only records how
    and by whom it was paid.
    """

    def __init__(self, payout_repo: IPayoutRepository):
        self.payout_repo = payout_repo

    def get_payout(self, payout_id: int) -> Payout:
        row = self.payout_repo.get_payout(payout_id)
        if not row:
            raise NotFoundError(f"Payout {payout_id} not found.")
        return Payout.from_row(row)

    def list_payouts(self, event_id: int, status: PayoutStatus | None = None) -> list[Payout]:
        rows = self.payout_repo.list_payouts(event_id, status.value if status else None)
        return [Payout.from_row(row) for row in rows]

    def get_user_payouts(self, user_id: int, status: PayoutStatus | None = None) -> list[Payout]:
        rows = self.payout_repo.get_user_payouts(user_id, status.value if status else None)
        return [Payout.from_row(row) for row in rows]

    def search_by_date(self, start: datetime, end: datetime, guild_id: int | None = None) -> list[Payout]:
        if end < start:
            raise ValidationError("End date must be after start date.")
        rows = self.payout_repo.search_by_date(to_timestamp(start), to_timestamp(end), guild_id)
        return [Payout.from_row(row) for row in rows]

    def mark_processed(
        self,
        payout_id: int,
        actor_id: int,
        method: str,
        account_id: str | None = None,
        transaction_id: str | None = None,
        notes: str | None = None,
    ) -> Payout:
        errors = validate_payout_method(method)
        if errors:
            raise ValidationError("; ".join(errors))
        row = self.payout_repo.update_status(
            payout_id,
            PayoutStatus.COMPLETED.value,
            actor_id,
            method=method,
            account_id=account_id,
            transaction_id=transaction_id,
            notes=notes,
        )
        logger.info(f"Payout {payout_id} processed by {actor_id} via {method}")
        return Payout.from_row(row)

    def cancel_payout(self, payout_id: int, actor_id: int, notes: str | None = None) -> Payout:
        row = self.payout_repo.update_status(payout_id, PayoutStatus.CANCELLED.value, actor_id, notes=notes)
        logger.info(f"Payout {payout_id} cancelled by {actor_id}")
        return Payout.from_row(row)

    def expire_overdue(self, now: int | None = None) -> list[int]:
        """Expire pending payouts whose payout window has passed."""
        expired = self.payout_repo.expire_overdue(int(time.time()) if now is None else now)
        if expired:
            logger.info(f"Expired {len(expired)} overdue payouts: {expired}")
        return expired

"""
Handles bet placement and cancellation.
"""

import logging

from domain.models.bet import Bet
from repositories.interfaces import IBetRepository
from services.errors import NotFoundError

logger = logging.getLogger("stakes_bot.services.bet")


class BetService:
    """
    Encapsulates the bet ledger:
    - Placing bets against an open event
    - Cancelling bets (operator or bettor)
    - Snapshots of an event's bets for settlement and display
    """

    def __init__(self, bet_repo: IBetRepository, suspicious_threshold: int | None = None):
        self.bet_repo = bet_repo
        self.suspicious_threshold = suspicious_threshold

    def place_bet(
        self,
        event_id: int,
        user_id: int,
        choice_index: int,
        amount: int,
        user_tag: str | None = None,
        suspicious_threshold: int | None = None,
    ) -> dict:
        """
        Place a bet.

        Args:
            event_id: Event to bet on
            user_id: Discord ID of the bettor
            choice_index: Zero-based index into the event's choices
            amount: Stake (positive whole number within the event's limits)
            user_tag: Display name stored with the bet for payout lists
            suspicious_threshold: Overrides the service-wide threshold (per guild)

        Returns:
            Dict with bet_id, choice_name, odds, pot and a suspicious flag.

        Raises:
            NotFoundError, EventLockedError, EventNotOpenError, ValidationError,
            LimitExceededError
        """
        threshold = suspicious_threshold if suspicious_threshold is not None else self.suspicious_threshold
        result = self.bet_repo.place_bet_atomic(
            event_id=event_id,
            user_id=user_id,
            choice_index=choice_index,
            amount=amount,
            user_tag=user_tag,
            suspicious_threshold=threshold,
        )
        if result["suspicious"]:
            logger.warning(
                f"Suspicious bet {result['bet_id']}: user {user_id} staked {amount} on event {event_id}"
            )
        else:
            logger.info(f"Bet {result['bet_id']}: user {user_id} staked {amount} on event {event_id}")
        return result

    def cancel_bet(self, bet_id: int, actor_id: int, reason: str | None = None) -> Bet:
        """Cancel an active bet; its stake leaves the pot and no payout is created."""
        row = self.bet_repo.cancel_bet(bet_id, actor_id, reason)
        logger.info(f"Bet {bet_id} cancelled by {actor_id}" + (f": {reason}" if reason else ""))
        return Bet.from_row(row)

    def get_bet(self, bet_id: int) -> Bet:
        row = self.bet_repo.get_bet(bet_id)
        if not row:
            raise NotFoundError(f"Bet {bet_id} not found.")
        return Bet.from_row(row)

    def list_by_event(self, event_id: int, active_only: bool = False) -> list[Bet]:
        statuses = ["active"] if active_only else None
        return [Bet.from_row(row) for row in self.bet_repo.list_by_event(event_id, statuses)]

    def list_by_choice(self, event_id: int, choice_index: int, active_only: bool = False) -> list[Bet]:
        statuses = ["active"] if active_only else None
        return [Bet.from_row(row) for row in self.bet_repo.list_by_choice(event_id, choice_index, statuses)]

    def get_user_bets(self, event_id: int, user_id: int) -> list[Bet]:
        return [Bet.from_row(row) for row in self.bet_repo.get_user_bets(event_id, user_id)]

    def get_choice_totals(self, event_id: int) -> dict[int, dict[str, int]]:
        return self.bet_repo.get_choice_totals(event_id)

    def verify_totals(self, event_id: int) -> dict:
        """Check the stored pot against the bets; logs an error on mismatch."""
        report = self.bet_repo.recompute_totals(event_id)
        if not report["consistent"]:
            logger.error(
                f"Pot mismatch on event {event_id}: stored {report['stored_amount']}/{report['stored_count']}, "
                f"actual {report['actual_amount']}/{report['actual_count']}"
            )
        return report

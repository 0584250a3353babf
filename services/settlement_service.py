"""
Winner determination and pari-mutuel settlement.
"""

from __future__ import annotations

import asyncio
import json
import logging

from domain.models.event import MAX_OUTCOME_LENGTH, Event
from domain.services.payout_calculator import calculate_payouts
from repositories.interfaces import IEventRepository, ISettlementRepository
from services.announcement_service import AnnouncementService
from services.errors import ValidationError

logger = logging.getLogger("stakes_bot.services.settlement")

SECONDS_PER_DAY = 86400


class SettlementService:
    """
    Declares winners and finalizes events.

    Winners are either every active bet on one choice, or bets picked by hand
    after a free-text outcome. Edits are refused once the event is finalized.

    finalize() is idempotent: a second call (double-clicked confirm, retry after
    a timeout) returns the stored result and writes nothing.
    """

    def __init__(
        self,
        settlement_repo: ISettlementRepository,
        event_repo: IEventRepository,
        announcements: AnnouncementService | None = None,
        payout_window_days: int | None = 7,
    ):
        self.settlement_repo = settlement_repo
        self.event_repo = event_repo
        self.announcements = announcements
        self.payout_window_days = payout_window_days

    def select_winning_choice(self, event_id: int, choice_index: int, actor_id: int) -> dict:
        """Mark all active bets on ``choice_index`` as winners, all others as losers."""
        result = self.settlement_repo.set_winning_choice(event_id, choice_index, actor_id)
        logger.info(
            f"Event {event_id}: '{result['winning_choice']}' selected by {actor_id} "
            f"({result['winner_count']} winning bets)"
        )
        return result

    def select_custom_outcome(self, event_id: int, outcome: str, actor_id: int) -> dict:
        """Record a free-text outcome; winners must then be toggled by hand."""
        outcome = (outcome or "").strip()
        if not outcome:
            raise ValidationError("Outcome text is required.")
        if len(outcome) > MAX_OUTCOME_LENGTH:
            raise ValidationError(f"Outcome must be {MAX_OUTCOME_LENGTH} characters or less.")
        result = self.settlement_repo.set_custom_outcome(event_id, outcome, actor_id)
        logger.info(f"Event {event_id}: custom outcome '{outcome}' recorded by {actor_id}")
        return result

    def toggle_winner(self, event_id: int, bet_ids: list[int], actor_id: int) -> list[dict]:
        """
        Flip the winner flag on the given bets.

        Raises:
            AlreadyFinalizedError: once the event has been finalized.
        """
        if not bet_ids:
            raise ValidationError("Select at least one bet.")
        toggled = self.settlement_repo.toggle_winners(event_id, bet_ids, actor_id)
        logger.info(f"Event {event_id}: winner flags toggled by {actor_id} on bets {[b['bet_id'] for b in toggled]}")
        return toggled

    def preview(self, event_id: int) -> dict:
        """Compute payouts for the current winner flags without saving anything."""
        event_row, bets = self.settlement_repo.get_settlement_snapshot(event_id)
        if event_row["winner_approved"]:
            return json.loads(event_row["result_summary"]) if event_row["result_summary"] else {}

        winners = [bet for bet in bets if bet["is_winner"]]
        result = calculate_payouts(event_row["total_bets_amount"], winners, event_row["fee_percent"])
        return {
            "event_id": event_id,
            "winning_choice": event_row["winning_choice"],
            "no_winners": result.no_winners,
            "pot": result.pot,
            "fee_percent": result.fee_percent,
            "total_winning_amount": result.total_winning_amount,
            "winner_count": len(result.lines),
            "loser_count": len(bets) - len(result.lines),
            "total_payout": result.total_payout,
            "total_fee": result.total_fee,
            "residual": result.residual,
            "payouts": [line.to_dict() for line in result.lines],
        }

    async def finalize(self, event_id: int, actor_id: int, winning_choice: int | str | None = None) -> dict:
        """
        Settle the event, create payouts and close it.

        Args:
            event_id: Event to finalize (must be locked or paused)
            actor_id: Operator confirming the result
            winning_choice: Choice index, a choice label, free-text outcome, or None
                to use the winners already selected

        Returns:
            Result summary dict; already_finalized is True on a repeat call.
        """
        window = self.payout_window_days * SECONDS_PER_DAY if self.payout_window_days else None

        summary = await asyncio.to_thread(
            self.settlement_repo.finalize,
            event_id,
            actor_id,
            winning_choice,
            window,
        )
        if summary["already_finalized"]:
            logger.info(f"Event {event_id} already finalized; finalize by {actor_id} returned stored result")
            return summary

        logger.info(
            f"Event {event_id} finalized by {actor_id}: winner '{summary['winning_choice']}', "
            f"{summary['winner_count']} winning bets, paid {summary['total_payout']}, "
            f"fees {summary['total_fee']}, residual {summary['residual']}"
        )
        if self.announcements is not None:
            row = await asyncio.to_thread(self.event_repo.get_event, event_id)
            self.announcements.publish_results(Event.from_row(row), summary)
        return summary


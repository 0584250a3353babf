"""
Repository for winner selection and the finalize transaction.
"""

from __future__ import annotations

import json
import time

from domain.models.event import MAX_OUTCOME_LENGTH
from domain.services.payout_calculator import calculate_payouts
from repositories.audit_log_repository import write_audit_entry
from repositories.base_repository import BaseRepository
from repositories.event_repository import ensure_not_finalized, fetch_event_row
from repositories.interfaces import ISettlementRepository
from services.errors import NotFoundError, StateConflictError, ValidationError

SETTLEABLE_STATUSES = {"locked", "paused"}


def _require_settleable(event: dict, action: str) -> None:
    ensure_not_finalized(event, action)
    if event["status"] not in SETTLEABLE_STATUSES:
        raise StateConflictError(f"Lock the event before you {action} (status: {event['status']}).")


def _resolve_outcome(choices: list[str], winning_choice: int | str | None) -> tuple[int | None, str | None]:
    """Map an index, a choice label or free text to (choice_index, custom_outcome)."""
    if winning_choice is None:
        return None, None
    if isinstance(winning_choice, int) and not isinstance(winning_choice, bool):
        return winning_choice, None

    text = str(winning_choice).strip()
    if not text:
        raise ValidationError("Outcome text is required.")
    lowered = [choice.lower() for choice in choices]
    if text.lower() in lowered:
        return lowered.index(text.lower()), None
    if len(text) > MAX_OUTCOME_LENGTH:
        raise ValidationError(f"Outcome must be {MAX_OUTCOME_LENGTH} characters or less.")
    return None, text


def _mark_choice_winners(cursor, event_id: int, choice_index: int) -> int:
    cursor.execute(
        """
        UPDATE bets
        SET is_winner = CASE WHEN choice_index = ? THEN 1 ELSE 0 END,
            winning_amount = NULL
        WHERE event_id = ? AND status = 'active'
        """,
        (choice_index, event_id),
    )
    cursor.execute(
        "SELECT COUNT(*) AS count FROM bets WHERE event_id = ? AND status = 'active' AND is_winner = 1",
        (event_id,),
    )
    return cursor.fetchone()["count"]


class SettlementRepository(BaseRepository, ISettlementRepository):
    """
    Persists winner flags and performs finalize.

    Finalize reads the event and its bets, computes payouts and writes bets,
    payouts and the event summary inside one BEGIN IMMEDIATE transaction.
    A failure anywhere leaves the event exactly as it was.
    """

    def set_winning_choice(self, event_id: int, choice_index: int, actor_id: int | None) -> dict:
        """Flag every active bet on ``choice_index`` as a winner and all others as losers."""
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            event = fetch_event_row(cursor, event_id)
            _require_settleable(event, "select a winner")
            choices = json.loads(event["choices"])
            if choice_index < 0 or choice_index >= len(choices):
                raise ValidationError(f"Invalid choice: pick 1-{len(choices)}.")

            winner_count = _mark_choice_winners(cursor, event_id, choice_index)
            cursor.execute(
                "UPDATE events SET winning_choice = ?, updated_at = ? WHERE event_id = ?",
                (choices[choice_index], int(time.time()), event_id),
            )
            write_audit_entry(
                cursor,
                action="select_winner",
                guild_id=event["guild_id"],
                event_id=event_id,
                actor_id=actor_id,
                status_before=event["status"],
                status_after=event["status"],
                details={"choice_index": choice_index, "choice": choices[choice_index], "winners": winner_count},
            )
            return {"winning_choice": choices[choice_index], "choice_index": choice_index, "winner_count": winner_count}

    def set_custom_outcome(self, event_id: int, outcome: str, actor_id: int | None) -> dict:
        """Record a free-text result and clear all winner flags for manual selection."""
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            event = fetch_event_row(cursor, event_id)
            _require_settleable(event, "record a result")

            cursor.execute(
                """
                UPDATE bets SET is_winner = 0, winning_amount = NULL
                WHERE event_id = ? AND status = 'active'
                """,
                (event_id,),
            )
            cursor.execute(
                "UPDATE events SET winning_choice = ?, updated_at = ? WHERE event_id = ?",
                (outcome, int(time.time()), event_id),
            )
            write_audit_entry(
                cursor,
                action="custom_outcome",
                guild_id=event["guild_id"],
                event_id=event_id,
                actor_id=actor_id,
                status_before=event["status"],
                status_after=event["status"],
                details={"outcome": outcome},
            )
            return {"winning_choice": outcome, "choice_index": None, "winner_count": 0}

    def toggle_winners(self, event_id: int, bet_ids: list[int], actor_id: int | None) -> list[dict]:
        """Flip is_winner on each listed active bet; returns the toggled bets."""
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            event = fetch_event_row(cursor, event_id)
            _require_settleable(event, "change winners")

            toggled = []
            for bet_id in dict.fromkeys(bet_ids):
                cursor.execute(
                    "SELECT bet_id, user_id, amount, status, is_winner FROM bets WHERE bet_id = ? AND event_id = ?",
                    (bet_id, event_id),
                )
                row = cursor.fetchone()
                if not row:
                    raise NotFoundError(f"Bet {bet_id} not found on event {event_id}.")
                if row["status"] != "active":
                    raise StateConflictError(f"Bet {bet_id} is {row['status']} and cannot win.")

                new_flag = 0 if row["is_winner"] else 1
                cursor.execute(
                    "UPDATE bets SET is_winner = ?, winning_amount = NULL WHERE bet_id = ?",
                    (new_flag, bet_id),
                )
                toggled.append({**dict(row), "is_winner": new_flag})

            write_audit_entry(
                cursor,
                action="toggle_winner",
                guild_id=event["guild_id"],
                event_id=event_id,
                actor_id=actor_id,
                status_before=event["status"],
                status_after=event["status"],
                details={"bets": {str(bet["bet_id"]): bet["is_winner"] for bet in toggled}},
            )
            return toggled

    def get_settlement_snapshot(self, event_id: int) -> tuple[dict, list[dict]]:
        """Event row plus its active bets, read in one transaction."""
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            event = fetch_event_row(cursor, event_id)
            cursor.execute(
                "SELECT * FROM bets WHERE event_id = ? AND status = 'active' ORDER BY bet_id",
                (event_id,),
            )
            return event, [dict(row) for row in cursor.fetchall()]

    def finalize(
        self,
        event_id: int,
        actor_id: int | None,
        winning_choice: int | str | None = None,
        payout_window_seconds: int | None = None,
    ) -> dict:
        """
        Settle an event and close it.

        ``winning_choice`` may be a choice index or label, which re-applies
        choice-based winner flags inside this transaction, or free text, which
        is recorded as the result and keeps the manually toggled flags. With
        None, the current flags and recorded winning choice are used.

        On an already finalized event nothing is written or validated and the
        stored summary is returned with already_finalized=True.
        """
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            event = fetch_event_row(cursor, event_id)

            if event["winner_approved"]:
                summary = json.loads(event["result_summary"]) if event["result_summary"] else {}
                summary["already_finalized"] = True
                return summary

            if event["status"] not in SETTLEABLE_STATUSES:
                raise StateConflictError(f"Lock the event before finalizing (status: {event['status']}).")

            choices = json.loads(event["choices"])
            choice_index, custom_outcome = _resolve_outcome(choices, winning_choice)
            winning_choice = event["winning_choice"]
            if choice_index is not None:
                if choice_index < 0 or choice_index >= len(choices):
                    raise ValidationError(f"Invalid choice: pick 1-{len(choices)}.")
                _mark_choice_winners(cursor, event_id, choice_index)
                winning_choice = choices[choice_index]
            elif custom_outcome is not None:
                winning_choice = custom_outcome
            if not winning_choice:
                raise ValidationError("Select a winning choice or record a result before finalizing.")

            cursor.execute(
                "SELECT * FROM bets WHERE event_id = ? AND status = 'active' ORDER BY bet_id",
                (event_id,),
            )
            bets = [dict(row) for row in cursor.fetchall()]
            winners = [bet for bet in bets if bet["is_winner"]]

            pot = event["total_bets_amount"]
            result = calculate_payouts(pot, winners, event["fee_percent"])
            now = int(time.time())
            expires_at = now + payout_window_seconds if payout_window_seconds else None
            tags = {bet["bet_id"]: bet["user_tag"] for bet in bets}

            for line in result.lines:
                cursor.execute(
                    "UPDATE bets SET status = 'won', winning_amount = ? WHERE bet_id = ? AND status = 'active'",
                    (line.net, line.bet_id),
                )
                cursor.execute(
                    """
                    INSERT INTO payouts (
                        event_id, bet_id, user_id, user_tag, amount, fee_amount,
                        status, expires_at, created_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, 'pending', ?, ?)
                    """,
                    (event_id, line.bet_id, line.user_id, tags.get(line.bet_id), line.net, line.fee, expires_at, now),
                )
            cursor.execute(
                """
                UPDATE bets SET status = 'lost', is_winner = 0, winning_amount = 0
                WHERE event_id = ? AND status = 'active'
                """,
                (event_id,),
            )

            summary = {
                "event_id": event_id,
                "winning_choice": winning_choice,
                "no_winners": result.no_winners,
                "pot": pot,
                "fee_percent": event["fee_percent"],
                "total_winning_amount": result.total_winning_amount,
                "winner_count": len(result.lines),
                "loser_count": len(bets) - len(result.lines),
                "total_payout": result.total_payout,
                "total_fee": result.total_fee,
                "residual": result.residual,
                "payouts": [line.to_dict() for line in result.lines],
                "finalized_at": now,
                "finalized_by": actor_id,
            }
            cursor.execute(
                """
                UPDATE events
                SET status = 'completed', paused_from = NULL, winner_approved = 1,
                    winning_choice = ?, result_summary = ?, total_payout = ?,
                    finalized_at = ?, finalized_by = ?, updated_at = ?
                WHERE event_id = ? AND status = ? AND winner_approved = 0
                """,
                (
                    winning_choice,
                    json.dumps(summary),
                    result.total_payout,
                    now,
                    actor_id,
                    now,
                    event_id,
                    event["status"],
                ),
            )
            if cursor.rowcount != 1:
                raise StateConflictError(f"Event {event_id} changed while finalizing; try again.")

            write_audit_entry(
                cursor,
                action="finalize",
                guild_id=event["guild_id"],
                event_id=event_id,
                actor_id=actor_id,
                status_before=event["status"],
                status_after="completed",
                details={
                    "winning_choice": winning_choice,
                    "winner_count": summary["winner_count"],
                    "total_payout": result.total_payout,
                    "total_fee": result.total_fee,
                    "residual": result.residual,
                },
            )

            summary["already_finalized"] = False
            return summary

"""
Repository for the bet ledger.
"""

from __future__ import annotations

import json
import time

from domain.services.payout_calculator import calculate_odds
from repositories.audit_log_repository import write_audit_entry
from repositories.base_repository import BaseRepository
from repositories.event_repository import TERMINAL_STATUSES, ensure_not_finalized, fetch_event_row
from repositories.interfaces import IBetRepository
from services.errors import (
    EventLockedError,
    EventNotOpenError,
    LimitExceededError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)


class BetRepository(BaseRepository, IBetRepository):
    """
    Owns bet rows and the running pot aggregates on their event.

    Any change to a bet's active status updates events.total_bets_amount and
    events.total_bets_count in the same transaction.
    """

    VALID_STATUSES = {"active", "won", "lost", "refunded", "cancelled"}

    def place_bet_atomic(
        self,
        event_id: int,
        user_id: int,
        choice_index: int,
        amount: int,
        user_tag: str | None = None,
        suspicious_threshold: int | None = None,
    ) -> dict:
        """
        Validate and insert a bet, updating the event pot in one transaction.

        Checks run in order: event exists, event open, amount within bounds,
        choice in range, per-user active bet limit.

        Returns:
            Dict describing the new bet, including odds and a suspicious flag.
        """
        bet_time = int(time.time())

        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            event = fetch_event_row(cursor, event_id)

            if event["status"] == "locked":
                raise EventLockedError("Betting is locked for this event.")
            if event["status"] != "open":
                raise EventNotOpenError(f"Betting is not open for this event (status: {event['status']}).")

            if isinstance(amount, bool) or not isinstance(amount, int):
                raise ValidationError("Bet amount must be a whole number.")
            if amount <= 0:
                raise ValidationError("Bet amount must be positive.")
            if amount < event["min_bet"]:
                raise LimitExceededError(f"Minimum bet is {event['min_bet']}.")
            if amount > event["max_bet"]:
                raise LimitExceededError(f"Maximum bet is {event['max_bet']}.")

            choices = json.loads(event["choices"])
            if isinstance(choice_index, bool) or not isinstance(choice_index, int):
                raise ValidationError("Invalid choice.")
            if choice_index < 0 or choice_index >= len(choices):
                raise ValidationError(f"Invalid choice: pick 1-{len(choices)}.")

            cursor.execute(
                """
                SELECT COUNT(*) AS active_count FROM bets
                WHERE event_id = ? AND user_id = ? AND status = 'active'
                """,
                (event_id, user_id),
            )
            active_count = cursor.fetchone()["active_count"]
            if active_count >= event["limit_per_user"]:
                raise LimitExceededError(
                    f"You already have {active_count} active bet(s) on this event "
                    f"(limit {event['limit_per_user']})."
                )

            cursor.execute(
                """
                SELECT COALESCE(SUM(amount), 0) AS choice_total FROM bets
                WHERE event_id = ? AND choice_index = ? AND status = 'active'
                """,
                (event_id, choice_index),
            )
            choice_total = cursor.fetchone()["choice_total"] + amount
            new_pot = event["total_bets_amount"] + amount
            odds = calculate_odds(new_pot, choice_total)

            suspicious = suspicious_threshold is not None and amount >= suspicious_threshold
            meta = {"suspicious": True} if suspicious else None

            cursor.execute(
                """
                INSERT INTO bets (
                    event_id, user_id, user_tag, amount, choice_index, choice_name,
                    status, bet_time, odds, meta
                )
                VALUES (?, ?, ?, ?, ?, ?, 'active', ?, ?, ?)
                """,
                (
                    event_id,
                    user_id,
                    user_tag,
                    amount,
                    choice_index,
                    choices[choice_index],
                    bet_time,
                    odds,
                    json.dumps(meta) if meta else None,
                ),
            )
            bet_id = cursor.lastrowid

            cursor.execute(
                """
                UPDATE events
                SET total_bets_amount = total_bets_amount + ?,
                    total_bets_count = total_bets_count + 1
                WHERE event_id = ?
                """,
                (amount, event_id),
            )

            return {
                "bet_id": bet_id,
                "event_id": event_id,
                "user_id": user_id,
                "amount": amount,
                "choice_index": choice_index,
                "choice_name": choices[choice_index],
                "odds": odds,
                "suspicious": suspicious,
                "pot": new_pot,
                "active_bets": active_count + 1,
                "bet_time": bet_time,
            }

    def cancel_bet(self, bet_id: int, actor_id: int | None, reason: str | None = None) -> dict:
        """Cancel an active bet and take its stake back out of the pot."""
        now = int(time.time())

        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM bets WHERE bet_id = ?", (bet_id,))
            row = cursor.fetchone()
            if not row:
                raise NotFoundError(f"Bet {bet_id} not found.")
            bet = dict(row)

            event = fetch_event_row(cursor, bet["event_id"])
            ensure_not_finalized(event, "cancel a bet")
            if event["status"] in TERMINAL_STATUSES:
                raise StateConflictError(f"Cannot cancel a bet on an event that is {event['status']}.")
            if bet["status"] != "active":
                raise StateConflictError(f"Bet {bet_id} is already {bet['status']}.")

            cursor.execute(
                """
                UPDATE bets
                SET status = 'cancelled', is_winner = 0, winning_amount = NULL,
                    cancelled_at = ?, cancelled_by = ?
                WHERE bet_id = ? AND status = 'active'
                """,
                (now, actor_id, bet_id),
            )
            cursor.execute(
                """
                UPDATE events
                SET total_bets_amount = total_bets_amount - ?,
                    total_bets_count = total_bets_count - 1
                WHERE event_id = ?
                """,
                (bet["amount"], bet["event_id"]),
            )
            write_audit_entry(
                cursor,
                action="cancel_bet",
                guild_id=event["guild_id"],
                event_id=bet["event_id"],
                actor_id=actor_id,
                status_before=event["status"],
                status_after=event["status"],
                details={"bet_id": bet_id, "user_id": bet["user_id"], "amount": bet["amount"], "reason": reason},
            )

            bet.update(status="cancelled", is_winner=0, winning_amount=None, cancelled_at=now, cancelled_by=actor_id)
            return bet

    def get_bet(self, bet_id: int) -> dict | None:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM bets WHERE bet_id = ?", (bet_id,))
            row = cursor.fetchone()
            return dict(row) if row else None

    def list_by_event(self, event_id: int, statuses: list[str] | None = None) -> list[dict]:
        """Bets for an event in placement order, as one consistent read."""
        query = "SELECT * FROM bets WHERE event_id = ?"
        params: list = [event_id]
        if statuses:
            self._check_statuses(statuses)
            query += f" AND status IN ({','.join('?' * len(statuses))})"
            params.extend(statuses)
        query += " ORDER BY bet_id"

        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [dict(row) for row in cursor.fetchall()]

    def list_by_choice(self, event_id: int, choice_index: int, statuses: list[str] | None = None) -> list[dict]:
        query = "SELECT * FROM bets WHERE event_id = ? AND choice_index = ?"
        params: list = [event_id, choice_index]
        if statuses:
            self._check_statuses(statuses)
            query += f" AND status IN ({','.join('?' * len(statuses))})"
            params.extend(statuses)
        query += " ORDER BY bet_id"

        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [dict(row) for row in cursor.fetchall()]

    def get_user_bets(self, event_id: int, user_id: int) -> list[dict]:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM bets WHERE event_id = ? AND user_id = ? ORDER BY bet_id",
                (event_id, user_id),
            )
            return [dict(row) for row in cursor.fetchall()]

    def get_choice_totals(self, event_id: int) -> dict[int, dict[str, int]]:
        """Active stake and bet count per choice index."""
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT choice_index, COALESCE(SUM(amount), 0) AS amount, COUNT(*) AS count
                FROM bets
                WHERE event_id = ? AND status = 'active'
                GROUP BY choice_index
                """,
                (event_id,),
            )
            return {
                row["choice_index"]: {"amount": row["amount"], "count": row["count"]}
                for row in cursor.fetchall()
            }

    def recompute_totals(self, event_id: int) -> dict:
        """
        Compare the stored pot aggregates with the bets that still count toward it.

        Active, won and lost bets are in the pot; cancelled and refunded are not.

        Read in one transaction so both sides describe the same moment.
        """
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            event = fetch_event_row(cursor, event_id)
            cursor.execute(
                """
                SELECT COALESCE(SUM(amount), 0) AS amount, COUNT(*) AS count
                FROM bets WHERE event_id = ? AND status IN ('active', 'won', 'lost')
                """,
                (event_id,),
            )
            actual = cursor.fetchone()
            return {
                "event_id": event_id,
                "stored_amount": event["total_bets_amount"],
                "stored_count": event["total_bets_count"],
                "actual_amount": actual["amount"],
                "actual_count": actual["count"],
                "consistent": (
                    event["total_bets_amount"] == actual["amount"]
                    and event["total_bets_count"] == actual["count"]
                ),
            }

    def get_top_bettors(self, guild_id: int | None, limit: int = 5) -> list[dict]:
        """
        Users with the most bets in the guild.

        Only bets that count toward a pot (active, won, lost) are included.
        Ties on bet count are broken by total staked.
        """
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT b.user_id, MAX(b.user_tag) AS user_tag,
                       COUNT(*) AS bet_count, SUM(b.amount) AS total_amount
                FROM bets b
                JOIN events e ON e.event_id = b.event_id
                WHERE e.guild_id = ? AND b.status IN ('active', 'won', 'lost')
                GROUP BY b.user_id
                ORDER BY bet_count DESC, total_amount DESC, b.user_id
                LIMIT ?
                """,
                (self.normalize_guild_id(guild_id), limit),
            )
            return [dict(row) for row in cursor.fetchall()]

    def _check_statuses(self, statuses: list[str]) -> None:
        invalid = set(statuses) - self.VALID_STATUSES
        if invalid:
            raise ValueError(f"Invalid bet status: {', '.join(sorted(invalid))}")

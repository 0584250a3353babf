"""
Repository for payout records created at finalize.
"""

from __future__ import annotations

import time

from repositories.audit_log_repository import write_audit_entry
from repositories.base_repository import BaseRepository
from repositories.interfaces import IPayoutRepository
from services.errors import NotFoundError, StateConflictError


class PayoutRepository(BaseRepository, IPayoutRepository):
    """
    Reads payouts and applies operator status changes.

    Payout rows are only ever inserted by SettlementRepository.finalize; this
    repository moves them out of 'pending' and never back.
    """

    VALID_STATUSES = {"pending", "completed", "cancelled", "expired"}

    def get_payout(self, payout_id: int) -> dict | None:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM payouts WHERE payout_id = ?", (payout_id,))
            row = cursor.fetchone()
            return dict(row) if row else None

    def list_payouts(self, event_id: int, status: str | None = None) -> list[dict]:
        query = "SELECT * FROM payouts WHERE event_id = ?"
        params: list = [event_id]
        if status is not None:
            if status not in self.VALID_STATUSES:
                raise ValueError(f"Invalid payout status: {status}")
            query += " AND status = ?"
            params.append(status)
        query += " ORDER BY payout_id"

        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [dict(row) for row in cursor.fetchall()]

    def get_user_payouts(self, user_id: int, status: str | None = None) -> list[dict]:
        query = """
            SELECT p.*, e.name AS event_name
            FROM payouts p
            JOIN events e ON e.event_id = p.event_id
            WHERE p.user_id = ?
        """
        params: list = [user_id]
        if status is not None:
            query += " AND p.status = ?"
            params.append(status)
        query += " ORDER BY p.created_at DESC, p.payout_id DESC"

        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [dict(row) for row in cursor.fetchall()]

    def search_by_date(self, start: int, end: int, guild_id: int | None = None) -> list[dict]:
        """Payouts created in [start, end] (unix seconds), optionally for one guild."""
        query = """
            SELECT p.*, e.name AS event_name, e.guild_id
            FROM payouts p
            JOIN events e ON e.event_id = p.event_id
            WHERE p.created_at BETWEEN ? AND ?
        """
        params: list = [start, end]
        if guild_id is not None:
            query += " AND e.guild_id = ?"
            params.append(self.normalize_guild_id(guild_id))
        query += " ORDER BY p.created_at, p.payout_id"

        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [dict(row) for row in cursor.fetchall()]

    def update_status(
        self,
        payout_id: int,
        new_status: str,
        actor_id: int | None,
        method: str | None = None,
        account_id: str | None = None,
        transaction_id: str | None = None,
        notes: str | None = None,
    ) -> dict:
        """Move a pending payout to completed, cancelled or expired."""
        if new_status not in self.VALID_STATUSES - {"pending"}:
            raise ValueError(f"Invalid payout status: {new_status}")

        now = int(time.time())
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT p.*, e.guild_id FROM payouts p
                JOIN events e ON e.event_id = p.event_id
                WHERE p.payout_id = ?
                """,
                (payout_id,),
            )
            row = cursor.fetchone()
            if not row:
                raise NotFoundError(f"Payout {payout_id} not found.")
            payout = dict(row)
            if payout["status"] != "pending":
                raise StateConflictError(f"Payout {payout_id} is already {payout['status']}.")

            cursor.execute(
                """
                UPDATE payouts
                SET status = ?, method = COALESCE(?, method), account_id = COALESCE(?, account_id),
                    transaction_id = COALESCE(?, transaction_id), notes = COALESCE(?, notes),
                    processed_at = ?, processed_by = ?
                WHERE payout_id = ? AND status = 'pending'
                """,
                (new_status, method, account_id, transaction_id, notes, now, actor_id, payout_id),
            )
            write_audit_entry(
                cursor,
                action=f"payout_{new_status}",
                guild_id=payout["guild_id"],
                event_id=payout["event_id"],
                actor_id=actor_id,
                status_before="pending",
                status_after=new_status,
                details={"payout_id": payout_id, "amount": payout["amount"], "method": method},
            )

            cursor.execute("SELECT * FROM payouts WHERE payout_id = ?", (payout_id,))
            return dict(cursor.fetchone())

    def expire_overdue(self, now: int | None = None) -> list[int]:
        """Mark pending payouts past their expiry as expired; returns their IDs."""
        now = int(time.time()) if now is None else now
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT p.payout_id, p.event_id, e.guild_id FROM payouts p
                JOIN events e ON e.event_id = p.event_id
                WHERE p.status = 'pending' AND p.expires_at IS NOT NULL AND p.expires_at < ?
                ORDER BY p.payout_id
                """,
                (now,),
            )
            overdue = [dict(row) for row in cursor.fetchall()]
            for payout in overdue:
                cursor.execute(
                    "UPDATE payouts SET status = 'expired', processed_at = ? WHERE payout_id = ?",
                    (now, payout["payout_id"]),
                )
                write_audit_entry(
                    cursor,
                    action="payout_expired",
                    guild_id=payout["guild_id"],
                    event_id=payout["event_id"],
                    status_before="pending",
                    status_after="expired",
                    details={"payout_id": payout["payout_id"]},
                )
            return [payout["payout_id"] for payout in overdue]

    def get_top_winners(self, guild_id: int | None, limit: int = 5) -> list[dict]:
        """Users with the largest total payouts in the guild; cancelled payouts are excluded."""
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT p.user_id, MAX(p.user_tag) AS user_tag,
                       COUNT(*) AS win_count, SUM(p.amount) AS total_winnings
                FROM payouts p
                JOIN events e ON e.event_id = p.event_id
                WHERE e.guild_id = ? AND p.status != 'cancelled'
                GROUP BY p.user_id
                ORDER BY total_winnings DESC, win_count DESC, p.user_id
                LIMIT ?
                """,
                (self.normalize_guild_id(guild_id), limit),
            )
            return [dict(row) for row in cursor.fetchall()]

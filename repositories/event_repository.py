"""
Repository for events and their lifecycle status.
"""

from __future__ import annotations

import json
import logging
import time

from repositories.audit_log_repository import write_audit_entry
from repositories.base_repository import BaseRepository
from repositories.interfaces import IEventRepository
from services.errors import AlreadyFinalizedError, NotFoundError, StateConflictError

logger = logging.getLogger("stakes_bot.repositories.event")

TERMINAL_STATUSES = {"completed", "cancelled"}


def fetch_event_row(cursor, event_id: int) -> dict:
    """Read an event inside the caller's transaction or raise NotFoundError."""
    cursor.execute("SELECT * FROM events WHERE event_id = ?", (event_id,))
    row = cursor.fetchone()
    if not row:
        raise NotFoundError(f"Event {event_id} not found.")
    return dict(row)


def ensure_not_finalized(event: dict, action: str) -> None:
    if event["winner_approved"]:
        raise AlreadyFinalizedError(f"Cannot {action}: event {event['event_id']} is already finalized.")


class EventRepository(BaseRepository, IEventRepository):
    """
    Handles CRUD and status transitions for the events table.

    Every status change is a compare-and-set on the status read in the same
    transaction, and writes an audit_log row before committing.
    """

    VALID_STATUSES = {"pending", "open", "locked", "paused", "completed", "cancelled"}

    def create_event(
        self,
        guild_id: int | None,
        name: str,
        event_type: str,
        choices: list[str],
        min_bet: int,
        max_bet: int,
        limit_per_user: int,
        fee_percent: int,
        created_by: int,
        description: str | None = None,
        location: str | None = None,
        scheduled_time: int | None = None,
        channel_id: int | None = None,
    ) -> int:
        """Insert a new event in 'pending' status and return its ID."""
        normalized_guild = self.normalize_guild_id(guild_id)
        created_at = int(time.time())

        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO events (
                    guild_id, name, description, event_type, location, choices,
                    status, scheduled_time, min_bet, max_bet, limit_per_user,
                    fee_percent, created_by, created_at, updated_at, channel_id
                )
                VALUES (?, ?, ?, ?, ?, ?, 'pending', ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    normalized_guild,
                    name,
                    description,
                    event_type,
                    location,
                    json.dumps(choices),
                    scheduled_time,
                    min_bet,
                    max_bet,
                    limit_per_user,
                    fee_percent,
                    created_by,
                    created_at,
                    created_at,
                    channel_id,
                ),
            )
            event_id = cursor.lastrowid
            write_audit_entry(
                cursor,
                action="create",
                guild_id=normalized_guild,
                event_id=event_id,
                actor_id=created_by,
                status_after="pending",
                details={"name": name, "choices": choices},
            )
            return event_id

    def get_event(self, event_id: int) -> dict | None:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM events WHERE event_id = ?", (event_id,))
            row = cursor.fetchone()
            return dict(row) if row else None

    def list_events(self, guild_id: int | None, statuses: list[str] | None = None) -> list[dict]:
        """Events for a guild, newest first, optionally filtered by status."""
        normalized_guild = self.normalize_guild_id(guild_id)
        query = "SELECT * FROM events WHERE guild_id = ?"
        params: list = [normalized_guild]
        if statuses:
            invalid = set(statuses) - self.VALID_STATUSES
            if invalid:
                raise ValueError(f"Invalid status: {', '.join(sorted(invalid))}")
            query += f" AND status IN ({','.join('?' * len(statuses))})"
            params.extend(statuses)
        query += " ORDER BY event_id DESC"

        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [dict(row) for row in cursor.fetchall()]

    def transition_status(
        self,
        event_id: int,
        allowed_from: set[str],
        to_status: str | None,
        actor_id: int | None,
        action: str,
        details: dict | None = None,
    ) -> dict:
        """
        Move an event to ``to_status`` if its current status is in ``allowed_from``.

        ``to_status=None`` restores the status recorded when the event was paused.
        Already being in the target status is a no-op reported as changed=False.

        Returns:
            Dict with changed, status_before, status_after and the updated event row.
        """
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            event = fetch_event_row(cursor, event_id)
            before = event["status"]

            if to_status is None:
                target = event["paused_from"] or "open"
            else:
                target = to_status

            if before == target:
                return {"changed": False, "status_before": before, "status_after": before, "event": event}

            ensure_not_finalized(event, action)
            if before not in allowed_from:
                raise StateConflictError(f"Cannot {action} an event that is {before}.")

            paused_from = before if target == "paused" else None
            now = int(time.time())
            cursor.execute(
                """
                UPDATE events
                SET status = ?, paused_from = ?, updated_at = ?
                WHERE event_id = ? AND status = ?
                """,
                (target, paused_from, now, event_id, before),
            )
            if cursor.rowcount != 1:
                raise StateConflictError(f"Event {event_id} changed while trying to {action}; try again.")

            write_audit_entry(
                cursor,
                action=action,
                guild_id=event["guild_id"],
                event_id=event_id,
                actor_id=actor_id,
                status_before=before,
                status_after=target,
                details=details,
            )
            event.update(status=target, paused_from=paused_from, updated_at=now)
            return {"changed": True, "status_before": before, "status_after": target, "event": event}

    def reschedule(self, event_id: int, scheduled_time: int, actor_id: int | None) -> dict:
        """Change the scheduled time of a non-terminal event."""
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            event = fetch_event_row(cursor, event_id)
            if event["status"] in TERMINAL_STATUSES:
                raise StateConflictError(f"Cannot reschedule an event that is {event['status']}.")

            now = int(time.time())
            cursor.execute(
                "UPDATE events SET scheduled_time = ?, updated_at = ? WHERE event_id = ?",
                (scheduled_time, now, event_id),
            )
            write_audit_entry(
                cursor,
                action="reschedule",
                guild_id=event["guild_id"],
                event_id=event_id,
                actor_id=actor_id,
                status_before=event["status"],
                status_after=event["status"],
                details={"from": event["scheduled_time"], "to": scheduled_time},
            )
            event.update(scheduled_time=scheduled_time, updated_at=now)
            return event

    def cancel_event(self, event_id: int, actor_id: int | None, reason: str | None = None) -> dict:
        """
        Cancel a non-terminal event and refund every active bet.

        Returns:
            Dict with refunded_count, refunded_amount, status_before and the event row.
        """
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            event = fetch_event_row(cursor, event_id)
            ensure_not_finalized(event, "cancel")
            if event["status"] in TERMINAL_STATUSES:
                raise StateConflictError(f"Cannot cancel an event that is {event['status']}.")

            cursor.execute(
                """
                SELECT COUNT(*) AS count, COALESCE(SUM(amount), 0) AS amount
                FROM bets WHERE event_id = ? AND status = 'active'
                """,
                (event_id,),
            )
            refunded = dict(cursor.fetchone())

            cursor.execute(
                """
                UPDATE bets
                SET status = 'refunded', is_winner = 0, winning_amount = NULL
                WHERE event_id = ? AND status = 'active'
                """,
                (event_id,),
            )
            now = int(time.time())
            cursor.execute(
                """
                UPDATE events
                SET status = 'cancelled', paused_from = NULL,
                    total_bets_amount = 0, total_bets_count = 0, updated_at = ?
                WHERE event_id = ? AND status = ?
                """,
                (now, event_id, event["status"]),
            )
            if cursor.rowcount != 1:
                raise StateConflictError(f"Event {event_id} changed while cancelling; try again.")

            write_audit_entry(
                cursor,
                action="cancel",
                guild_id=event["guild_id"],
                event_id=event_id,
                actor_id=actor_id,
                status_before=event["status"],
                status_after="cancelled",
                details={
                    "reason": reason,
                    "refunded_count": refunded["count"],
                    "refunded_amount": refunded["amount"],
                },
            )
            status_before = event["status"]
            event.update(status="cancelled", paused_from=None, total_bets_amount=0, total_bets_count=0, updated_at=now)
            return {
                "refunded_count": refunded["count"],
                "refunded_amount": refunded["amount"],
                "status_before": status_before,
                "event": event,
            }

    def update_details(
        self,
        event_id: int,
        actor_id: int | None,
        name: str | None = None,
        description: str | None = None,
        location: str | None = None,
    ) -> dict:
        """Edit descriptive fields; refused once the event is terminal."""
        changes = {
            key: value
            for key, value in (("name", name), ("description", description), ("location", location))
            if value is not None
        }
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            event = fetch_event_row(cursor, event_id)
            ensure_not_finalized(event, "edit the event")
            if event["status"] in TERMINAL_STATUSES:
                raise StateConflictError(f"Cannot edit an event that is {event['status']}.")
            if not changes:
                return event

            now = int(time.time())
            assignments = ", ".join(f"{column} = ?" for column in changes)
            cursor.execute(
                f"UPDATE events SET {assignments}, updated_at = ? WHERE event_id = ?",
                (*changes.values(), now, event_id),
            )
            write_audit_entry(
                cursor,
                action="update_details",
                guild_id=event["guild_id"],
                event_id=event_id,
                actor_id=actor_id,
                status_before=event["status"],
                status_after=event["status"],
                details={key: {"from": event[key], "to": value} for key, value in changes.items()},
            )
            event.update(changes, updated_at=now)
            return event

    def set_announcement_message(self, event_id: int, channel_id: int | None, message_id: int | None) -> None:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                UPDATE events
                SET channel_id = COALESCE(?, channel_id), announcement_message_id = ?
                WHERE event_id = ?
                """,
                (channel_id, message_id, event_id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError(f"Event {event_id} not found.")

    def delete_event(self, event_id: int, actor_id: int | None = None) -> bool:
        """Delete an event; bets and payouts go with it via ON DELETE CASCADE."""
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT guild_id, status FROM events WHERE event_id = ?", (event_id,))
            row = cursor.fetchone()
            if not row:
                return False
            cursor.execute("DELETE FROM events WHERE event_id = ?", (event_id,))
            write_audit_entry(
                cursor,
                action="delete",
                guild_id=row["guild_id"],
                event_id=event_id,
                actor_id=actor_id,
                status_before=row["status"],
            )
            logger.info(f"Deleted event {event_id} (was {row['status']})")
            return True

    def get_recent_events(self, guild_id: int | None, limit: int = 5) -> list[dict]:
        """Most recently finalized events with their pot aggregates."""
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT event_id, name, event_type, winning_choice,
                       total_bets_amount, total_bets_count, finalized_at
                FROM events
                WHERE guild_id = ? AND status = 'completed'
                ORDER BY finalized_at DESC, event_id DESC
                LIMIT ?
                """,
                (self.normalize_guild_id(guild_id), limit),
            )
            return [dict(row) for row in cursor.fetchall()]

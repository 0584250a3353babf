"""
Repository for the durable audit trail of operator actions.
"""

import json
import time

from repositories.base_repository import BaseRepository
from repositories.interfaces import IAuditLogRepository


def write_audit_entry(
    cursor,
    *,
    action: str,
    guild_id: int | None = None,
    event_id: int | None = None,
    actor_id: int | None = None,
    status_before: str | None = None,
    status_after: str | None = None,
    details: dict | None = None,
) -> None:
    """
    Insert an audit row using an existing cursor.

    Repositories call this inside their own transaction so the audit row commits
    (or rolls back) together with the change it describes.
    """
    cursor.execute(
        """
        INSERT INTO audit_log (
            guild_id, event_id, actor_id, action, status_before,
            status_after, details, created_at
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            guild_id if guild_id is not None else 0,
            event_id,
            actor_id,
            action,
            status_before,
            status_after,
            json.dumps(details) if details else None,
            int(time.time()),
        ),
    )


class AuditLogRepository(BaseRepository, IAuditLogRepository):
    """Reads (and occasionally writes standalone) audit_log rows."""

    def record(
        self,
        action: str,
        guild_id: int | None = None,
        event_id: int | None = None,
        actor_id: int | None = None,
        details: dict | None = None,
    ) -> None:
        with self.connection() as conn:
            write_audit_entry(
                conn.cursor(),
                action=action,
                guild_id=self.normalize_guild_id(guild_id),
                event_id=event_id,
                actor_id=actor_id,
                details=details,
            )

    def get_event_log(self, event_id: int) -> list[dict]:
        """All audit rows for an event, oldest first."""
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM audit_log WHERE event_id = ? ORDER BY log_id",
                (event_id,),
            )
            return [self._row_to_dict(row) for row in cursor.fetchall()]

    def get_recent(self, guild_id: int | None, limit: int = 50) -> list[dict]:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT * FROM audit_log
                WHERE guild_id = ?
                ORDER BY log_id DESC
                LIMIT ?
                """,
                (self.normalize_guild_id(guild_id), limit),
            )
            return [self._row_to_dict(row) for row in cursor.fetchall()]

    @staticmethod
    def _row_to_dict(row) -> dict:
        entry = dict(row)
        entry["details"] = json.loads(entry["details"]) if entry.get("details") else {}
        return entry

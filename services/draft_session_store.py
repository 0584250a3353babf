"""
In-memory store for event creation drafts.

Handles per-operator wizard state, separated from the wizard's business logic.
"""

import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable

from domain.models.event_draft import EventDraft

logger = logging.getLogger("stakes_bot.services.draft_session_store")


class DraftSessionStore:
    """
    Holds one EventDraft per operator, bounded in age and count.

    Responsibilities:
    - Store a draft keyed by actor id
    - Expire drafts untouched for longer than ``ttl_seconds``
    - Evict the least recently used draft when ``max_sessions`` is reached

    Each EventCreationService owns its own store; there is no module-level map.
    Access is serialized by an RLock, so callers may run in worker threads.
    """

    def __init__(
        self,
        ttl_seconds: float = 900,
        max_sessions: int = 500,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_sessions = max_sessions
        self._clock = clock
        self._sessions: "OrderedDict[int, tuple[float, EventDraft]]" = OrderedDict()
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            self.purge_expired()
            return len(self._sessions)

    def __contains__(self, actor_id: int) -> bool:
        return self.get(actor_id) is not None

    def get(self, actor_id: int) -> EventDraft | None:
        """
        Get the operator's draft and refresh its expiry.

        Returns:
            EventDraft or None if missing or expired
        """
        with self._lock:
            entry = self._sessions.get(actor_id)
            if entry is None:
                return None
            touched_at, draft = entry
            now = self._clock()
            if now - touched_at > self.ttl_seconds:
                del self._sessions[actor_id]
                logger.info(f"Event draft for {actor_id} expired")
                return None
            self._sessions[actor_id] = (now, draft)
            self._sessions.move_to_end(actor_id)
            return draft

    def put(self, draft: EventDraft) -> None:
        """Store (or replace) the draft for ``draft.actor_id``."""
        with self._lock:
            self.purge_expired()
            if draft.actor_id not in self._sessions:
                while len(self._sessions) >= self.max_sessions:
                    evicted_id, _ = self._sessions.popitem(last=False)
                    logger.warning(f"Event draft store full; evicted draft for {evicted_id}")
            self._sessions[draft.actor_id] = (self._clock(), draft)
            self._sessions.move_to_end(draft.actor_id)

    def discard(self, actor_id: int) -> EventDraft | None:
        """Remove and return the operator's draft, if any."""
        with self._lock:
            entry = self._sessions.pop(actor_id, None)
        return entry[1] if entry else None

    def purge_expired(self) -> int:
        with self._lock:
            now = self._clock()
            expired = [
                actor_id for actor_id, (touched_at, _) in self._sessions.items() if now - touched_at > self.ttl_seconds
            ]
            for actor_id in expired:
                del self._sessions[actor_id]
        if expired:
            logger.info(f"Purged {len(expired)} expired event drafts")
        return len(expired)

"""
Abstract repository interfaces for data access.

These interfaces define the contracts implemented by concrete repositories.
"""

from abc import ABC, abstractmethod


class IEventRepository(ABC):
    @abstractmethod
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
    ) -> int: ...

    @abstractmethod
    def get_event(self, event_id: int) -> dict | None: ...

    @abstractmethod
    def list_events(self, guild_id: int | None, statuses: list[str] | None = None) -> list[dict]: ...

    @abstractmethod
    def transition_status(
        self,
        event_id: int,
        allowed_from: set[str],
        to_status: str | None,
        actor_id: int | None,
        action: str,
        details: dict | None = None,
    ) -> dict: ...

    @abstractmethod
    def reschedule(self, event_id: int, scheduled_time: int, actor_id: int | None) -> dict: ...

    @abstractmethod
    def cancel_event(self, event_id: int, actor_id: int | None, reason: str | None = None) -> dict: ...

    @abstractmethod
    def update_details(
        self,
        event_id: int,
        actor_id: int | None,
        name: str | None = None,
        description: str | None = None,
        location: str | None = None,
    ) -> dict: ...

    @abstractmethod
    def set_announcement_message(self, event_id: int, channel_id: int | None, message_id: int | None) -> None: ...

    @abstractmethod
    def delete_event(self, event_id: int, actor_id: int | None = None) -> bool: ...

    @abstractmethod
    def get_recent_events(self, guild_id: int | None, limit: int = 5) -> list[dict]: ...


class IBetRepository(ABC):
    @abstractmethod
    def place_bet_atomic(
        self,
        event_id: int,
        user_id: int,
        choice_index: int,
        amount: int,
        user_tag: str | None = None,
        suspicious_threshold: int | None = None,
    ) -> dict:
        """Validate and insert a bet, updating the event aggregates atomically."""
        ...

    @abstractmethod
    def cancel_bet(self, bet_id: int, actor_id: int | None, reason: str | None = None) -> dict: ...

    @abstractmethod
    def get_bet(self, bet_id: int) -> dict | None: ...

    @abstractmethod
    def list_by_event(self, event_id: int, statuses: list[str] | None = None) -> list[dict]: ...

    @abstractmethod
    def list_by_choice(self, event_id: int, choice_index: int, statuses: list[str] | None = None) -> list[dict]: ...

    @abstractmethod
    def get_user_bets(self, event_id: int, user_id: int) -> list[dict]: ...

    @abstractmethod
    def get_choice_totals(self, event_id: int) -> dict[int, dict[str, int]]: ...

    @abstractmethod
    def recompute_totals(self, event_id: int) -> dict: ...

    @abstractmethod
    def get_top_bettors(self, guild_id: int | None, limit: int = 5) -> list[dict]: ...


class ISettlementRepository(ABC):
    """Winner selection and the finalize transaction."""

    @abstractmethod
    def set_winning_choice(self, event_id: int, choice_index: int, actor_id: int | None) -> dict: ...

    @abstractmethod
    def set_custom_outcome(self, event_id: int, outcome: str, actor_id: int | None) -> dict: ...

    @abstractmethod
    def toggle_winners(self, event_id: int, bet_ids: list[int], actor_id: int | None) -> list[dict]: ...

    @abstractmethod
    def get_settlement_snapshot(self, event_id: int) -> tuple[dict, list[dict]]: ...

    @abstractmethod
    def finalize(
        self,
        event_id: int,
        actor_id: int | None,
        winning_choice: int | str | None = None,
        payout_window_seconds: int | None = None,
    ) -> dict:
        """Settle and close an event; a repeat call returns the stored summary."""
        ...


class IPayoutRepository(ABC):
    @abstractmethod
    def get_payout(self, payout_id: int) -> dict | None: ...

    @abstractmethod
    def list_payouts(self, event_id: int, status: str | None = None) -> list[dict]: ...

    @abstractmethod
    def get_user_payouts(self, user_id: int, status: str | None = None) -> list[dict]: ...

    @abstractmethod
    def search_by_date(self, start: int, end: int, guild_id: int | None = None) -> list[dict]: ...

    @abstractmethod
    def update_status(
        self,
        payout_id: int,
        new_status: str,
        actor_id: int | None,
        method: str | None = None,
        account_id: str | None = None,
        transaction_id: str | None = None,
        notes: str | None = None,
    ) -> dict: ...

    @abstractmethod
    def expire_overdue(self, now: int | None = None) -> list[int]: ...

    @abstractmethod
    def get_top_winners(self, guild_id: int | None, limit: int = 5) -> list[dict]: ...


class IAuditLogRepository(ABC):
    @abstractmethod
    def record(
        self,
        action: str,
        guild_id: int | None = None,
        event_id: int | None = None,
        actor_id: int | None = None,
        details: dict | None = None,
    ) -> None: ...

    @abstractmethod
    def get_event_log(self, event_id: int) -> list[dict]: ...

    @abstractmethod
    def get_recent(self, guild_id: int | None, limit: int = 50) -> list[dict]: ...


class IGuildConfigRepository(ABC):
    @abstractmethod
    def get_config(self, guild_id: int) -> dict | None:
        """Get configuration for a guild."""
        ...

    @abstractmethod
    def upsert_betting_defaults(self, guild_id: int, **values: int | None) -> None:
        """Store betting defaults for a guild, leaving unspecified ones untouched."""
        ...

    @abstractmethod
    def set_announcement_channel(self, guild_id: int, channel_id: int | None) -> None: ...

    @abstractmethod
    def get_announcement_channel(self, guild_id: int) -> int | None: ...

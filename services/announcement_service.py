"""
Event announcements posted to Discord through the operation queue.

Financial state is always committed before anything is announced, so an
announcement failure is logged and dropped; it never reaches the caller that
changed the event.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from enum import Enum

import discord

from domain.models.event import Event
from services.errors import ExternalChannelError, QueueClearedError, RateLimitedError
from utils.operation_queue import OperationQueue
from utils.time_utils import format_schedule

logger = logging.getLogger("stakes_bot.services.announcement")

# Discord error codes the platform returns while throttling interaction traffic
RATE_LIMIT_ERROR_CODES = {10008, 10062}


class IAnnouncementChannel(ABC):
    """Where announcements go: send returns the new message id."""

    @abstractmethod
    async def send(self, target: int, content: str) -> int: ...

    @abstractmethod
    async def edit(self, target: int, message_id: int, content: str) -> None: ...


def translate_discord_error(exc: discord.DiscordException, action: str) -> ExternalChannelError:
    """Map a discord.py failure onto the announcement error types."""
    if isinstance(exc, discord.RateLimited):
        return RateLimitedError(f"Rate limited during {action}: {exc}", status=429, retry_after=exc.retry_after)
    status = getattr(exc, "status", None)
    code = getattr(exc, "code", None)
    text = str(exc)
    retry_after = getattr(exc, "retry_after", None)
    if status == 429 or code in RATE_LIMIT_ERROR_CODES or "rate limit" in text.lower():
        return RateLimitedError(f"Rate limited during {action}: {text}", status=status, retry_after=retry_after)
    return ExternalChannelError(f"Discord {action} failed: {text}", status=status)


class DiscordAnnouncementChannel(IAnnouncementChannel):
    """IAnnouncementChannel backed by a discord.py client; target is a channel id."""

    def __init__(self, client: discord.Client):
        self.client = client

    async def _resolve(self, target: int):
        channel = self.client.get_channel(target)
        if channel is None:
            try:
                channel = await self.client.fetch_channel(target)
            except (discord.HTTPException, discord.RateLimited) as exc:
                raise translate_discord_error(exc, "channel lookup") from exc
        return channel

    async def send(self, target: int, content: str) -> int:
        channel = await self._resolve(target)
        try:
            message = await channel.send(content)
        except (discord.HTTPException, discord.RateLimited) as exc:
            raise translate_discord_error(exc, "send") from exc
        return message.id

    async def edit(self, target: int, message_id: int, content: str) -> None:
        channel = await self._resolve(target)
        try:
            await channel.get_partial_message(message_id).edit(content=content)
        except (discord.HTTPException, discord.RateLimited) as exc:
            raise translate_discord_error(exc, "edit") from exc


class AnnouncementKind(Enum):
    OPENED = "opened"
    LOCKED = "locked"
    UNLOCKED = "unlocked"
    PAUSED = "paused"
    RESUMED = "resumed"
    RESCHEDULED = "rescheduled"
    REOPENED = "reopened"
    CANCELLED = "cancelled"
    UPDATED = "updated"
    RESULTS = "results"


def render_event_card(event: Event) -> str:
    """Body of the event's main announcement message."""
    lines = [f"**{event.name}** ({event.event_type.value})"]
    if event.description:
        lines.append(event.description)
    if event.location:
        lines.append(f"Location: {event.location}")
    lines.append(f"When: {format_schedule(_timestamp(event))}")
    lines.append("Choices: " + " | ".join(f"{i + 1}. {name}" for i, name in enumerate(event.choices)))
    limits = event.limits
    lines.append(
        f"Bets {limits.min_bet}-{limits.max_bet}, up to {limits.limit_per_user} per person, "
        f"{limits.fee_percent}% fee on winnings"
    )
    lines.append(f"Status: {event.status.value}")
    return "\n".join(lines)


def render_announcement(event: Event, kind: AnnouncementKind, detail: str | None = None) -> str:
    headline = {
        AnnouncementKind.OPENED: f"Betting is open for **{event.name}**!",
        AnnouncementKind.LOCKED: f"Betting is locked for **{event.name}**.",
        AnnouncementKind.UNLOCKED: f"Betting has reopened for **{event.name}**.",
        AnnouncementKind.PAUSED: f"**{event.name}** is paused.",
        AnnouncementKind.RESUMED: f"**{event.name}** has resumed ({event.status.value}).",
        AnnouncementKind.RESCHEDULED: f"**{event.name}** was rescheduled to {format_schedule(_timestamp(event))}.",
        AnnouncementKind.REOPENED: f"Betting has been reopened for **{event.name}**.",
        AnnouncementKind.CANCELLED: f"**{event.name}** was cancelled. All active bets have been refunded.",
        AnnouncementKind.UPDATED: f"**{event.name}** was updated.",
        AnnouncementKind.RESULTS: f"Results for **{event.name}**",
    }[kind]
    if kind == AnnouncementKind.OPENED:
        headline = f"{headline}\n{render_event_card(event)}"
    if detail:
        headline = f"{headline}\n{detail}"
    return headline


def render_results(event: Event, summary: dict) -> str:
    lines = [f"Winning outcome: **{summary.get('winning_choice')}**"]
    if summary.get("no_winners"):
        lines.append("No winning bets. No payouts will be made.")
    else:
        lines.append(
            f"Pot {summary['pot']} | {summary['winner_count']} winning bet(s) | "
            f"paid out {summary['total_payout']} after {summary['total_fee']} in fees"
        )
        for line in summary.get("payouts", [])[:20]:
            lines.append(f"<@{line['user_id']}> staked {line['stake']} and wins {line['net']}")
    return render_announcement(event, AnnouncementKind.RESULTS, "\n".join(lines))


def _timestamp(event: Event) -> int | None:
    return int(event.scheduled_time.timestamp()) if event.scheduled_time else None


class AnnouncementService:
    """
    Turns event changes into queued Discord sends/edits.

    ``resolve_channel`` maps a guild id to its announcement channel when the
    event itself does not carry one.
    """

    def __init__(
        self,
        queue: OperationQueue,
        channel: IAnnouncementChannel | None,
        resolve_channel: Callable[[int], int | None] | None = None,
    ):
        self.queue = queue
        self.channel = channel
        self.resolve_channel = resolve_channel

    def target_for(self, event: Event) -> int | None:
        if event.channel_id:
            return event.channel_id
        if self.resolve_channel is not None:
            return self.resolve_channel(event.guild_id)
        return None

    def publish(
        self,
        event: Event,
        kind: AnnouncementKind,
        detail: str | None = None,
        on_sent: Callable[[int, int], Awaitable[None]] | None = None,
    ) -> asyncio.Future | None:
        """Queue a new message about ``event``; returns the queue future, or None if nowhere to post."""
        content = render_announcement(event, kind, detail)
        return self._queue_send(event, f"{kind.value} announcement for event {event.event_id}", content, on_sent)

    def publish_results(self, event: Event, summary: dict) -> list[asyncio.Future]:
        """Queue the results message and an edit of the original event message."""
        futures = []
        sent = self._queue_send(event, f"results for event {event.event_id}", render_results(event, summary))
        if sent is not None:
            futures.append(sent)
        edited = self.refresh_event_message(event, footer="Betting closed. Results have been posted.")
        if edited is not None:
            futures.append(edited)
        return futures

    def refresh_event_message(self, event: Event, footer: str | None = None) -> asyncio.Future | None:
        """Queue an edit of the event's main message to reflect its current state."""
        if self.channel is None or not event.announcement_message_id:
            return None
        target = self.target_for(event)
        if target is None:
            return None
        content = render_event_card(event)
        if footer:
            content = f"{content}\n{footer}"
        channel = self.channel
        message_id = event.announcement_message_id
        label = f"edit message for event {event.event_id}"
        future = self.queue.enqueue(lambda: channel.edit(target, message_id, content), label)
        future.add_done_callback(lambda fut: self._log_outcome(fut, label))
        return future

    def _queue_send(
        self,
        event: Event,
        label: str,
        content: str,
        on_sent: Callable[[int, int], Awaitable[None]] | None = None,
    ) -> asyncio.Future | None:
        if self.channel is None:
            return None
        target = self.target_for(event)
        if target is None:
            logger.debug(f"No announcement channel for event {event.event_id}; skipping {label}")
            return None
        channel = self.channel

        async def operation() -> int:
            message_id = await channel.send(target, content)
            if on_sent is not None:
                await on_sent(target, message_id)
            return message_id

        future = self.queue.enqueue(operation, label)
        future.add_done_callback(lambda fut: self._log_outcome(fut, label))
        return future

    @staticmethod
    def _log_outcome(future: asyncio.Future, label: str) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is None:
            return
        if isinstance(exc, QueueClearedError):
            logger.debug(f"Dropped {label}: queue cleared")
        elif isinstance(exc, ExternalChannelError):
            logger.warning(f"Announcement failed ({label}): {exc}")
        else:
            logger.error(f"Unexpected announcement failure ({label})", exc_info=exc)

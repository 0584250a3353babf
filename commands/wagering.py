"""
Wagering commands: events, bets, settlement and payouts.
"""

from __future__ import annotations

import asyncio
import logging

import discord
from discord import app_commands
from discord.ext import commands, tasks

from config import PAYOUT_EXPIRY_CHECK_MINUTES
from domain.models.event import Event, EventStatus
from domain.models.payout import PayoutStatus
from services.announcement_service import render_event_card
from services.bet_service import BetService
from services.errors import PermissionDeniedError, ValidationError
from services.event_creation_service import EventCreationService
from services.event_service import EventService
from services.guild_config_service import GuildConfigService
from services.leaderboard_service import Leaderboard, LeaderboardService
from services.payout_service import PayoutService
from services.permissions import Capability, has_capability
from services.result import Result
from services.settlement_service import SettlementService
from utils.action_router import ActionRouter, build_custom_id, parse_custom_id
from utils.command_helpers import format_result_error, handle_result, run_operation
from utils.embed_safety import add_lines_field, truncate_field
from utils.interaction_safety import safe_defer, safe_followup
from utils.rate_limiter import GLOBAL_RATE_LIMITER, RateLimiter
from utils.validators import VALID_EVENT_TYPES, VALID_PAYOUT_METHODS

logger = logging.getLogger("stakes_bot.commands.wagering")

BET_RATE_LIMIT = 5
BET_RATE_WINDOW_SECONDS = 20
MAX_CANCEL_BUTTONS = 5

ACTIVE_STATUSES = [EventStatus.PENDING, EventStatus.OPEN, EventStatus.LOCKED, EventStatus.PAUSED]

# Components this cog emits; every one must have a handler
EVENT_CONTROL_BUTTONS = [
    ("Lock", "lock", discord.ButtonStyle.secondary),
    ("Unlock", "unlock", discord.ButtonStyle.secondary),
    ("Pause", "pause", discord.ButtonStyle.secondary),
    ("Resume", "resume", discord.ButtonStyle.secondary),
    ("Cancel event", "cancel", discord.ButtonStyle.danger),
]
REQUIRED_ACTIONS = {f"event:{action}" for _, action, _ in EVENT_CONTROL_BUTTONS} | {"event:finalize", "bet:cancel"}
ROUTED_NAMESPACES = {"event", "bet"}


def _parse_id(raw: str, what: str) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid {what} id: {raw!r}") from exc


def _guild_id(interaction: discord.Interaction) -> int | None:
    return interaction.guild.id if interaction.guild else None


def build_event_controls(event_id: int) -> discord.ui.View:
    """Lock/unlock/pause/resume/cancel buttons for an event, handled by the action router."""
    view = discord.ui.View(timeout=None)
    for label, action, style in EVENT_CONTROL_BUTTONS:
        view.add_item(
            discord.ui.Button(label=label, style=style, custom_id=build_custom_id("event", action, event_id))
        )
    return view


def build_finalize_confirm(event_id: int) -> discord.ui.View:
    view = discord.ui.View(timeout=None)
    view.add_item(
        discord.ui.Button(
            label="Confirm & finalize",
            style=discord.ButtonStyle.success,
            custom_id=build_custom_id("event", "finalize", event_id),
        )
    )
    return view


def build_bet_cancel_buttons(bet_ids: list[int]) -> discord.ui.View | None:
    if not bet_ids:
        return None
    view = discord.ui.View(timeout=None)
    for bet_id in bet_ids[:MAX_CANCEL_BUTTONS]:
        view.add_item(
            discord.ui.Button(
                label=f"Cancel bet #{bet_id}",
                style=discord.ButtonStyle.danger,
                custom_id=build_custom_id("bet", "cancel", bet_id),
            )
        )
    return view


def format_odds_embed(event: Event, odds: list[dict]) -> discord.Embed:
    embed = discord.Embed(
        title=truncate_field(f"Odds: {event.name}", 256),
        description=f"Status: {event.status.value} | Pot: {event.total_bets_amount} ({event.total_bets_count} bets)",
        color=discord.Color.blue(),
    )
    lines = []
    for row in odds:
        odds_text = f"{row['odds']:.2f}x" if row["odds"] else "no bets"
        lines.append(
            f"{row['choice_index'] + 1}. **{row['choice']}**: {row['amount']} staked "
            f"({row['count']} bets, {row['percentage']:.1f}%) | {odds_text}"
        )
    add_lines_field(embed, "Choices", lines)
    return embed


def format_settlement_embed(event: Event, summary: dict, title: str) -> discord.Embed:
    embed = discord.Embed(
        title=truncate_field(f"{title}: {event.name}", 256),
        description=(
            f"Winner: **{summary.get('winning_choice') or 'not selected'}**\n"
            f"Pot {summary.get('pot', 0)} | fee {summary.get('fee_percent', 0)}% | "
            f"payouts {summary.get('total_payout', 0)} | fees {summary.get('total_fee', 0)} | "
            f"residual {summary.get('residual', 0)}"
        ),
        color=discord.Color.green() if not summary.get("no_winners") else discord.Color.orange(),
    )
    lines = [
        f"Bet #{line['bet_id']} <@{line['user_id']}>: stake {line['stake']} -> {line['net']} "
        f"(gross {line['gross']}, fee {line['fee']})"
        for line in summary.get("payouts", [])
    ]
    add_lines_field(embed, "Payouts", lines, empty_text="No winning bets")
    return embed


def _rank(i: int) -> str:
    return "🥇" if i == 1 else "🥈" if i == 2 else "🥉" if i == 3 else f"{i}."


def _display_name(row: dict) -> str:
    return row.get("user_tag") or f"<@{row['user_id']}>"


def format_leaderboard_embed(leaderboard: Leaderboard) -> discord.Embed:
    embed = discord.Embed(
        title="Betting Leaderboard",
        description="Most active bettors, biggest winners and recent results",
        color=discord.Color.gold(),
    )
    add_lines_field(
        embed,
        "Top Bettors",
        [
            f"{_rank(i)} **{_display_name(row)}** - {row['bet_count']} bets ({row['total_amount']} staked)"
            for i, row in enumerate(leaderboard.top_bettors, start=1)
        ],
        empty_text="No bets placed yet",
    )
    add_lines_field(
        embed,
        "Top Winners",
        [
            f"{_rank(i)} **{_display_name(row)}** - {row['total_winnings']} won ({row['win_count']} wins)"
            for i, row in enumerate(leaderboard.top_winners, start=1)
        ],
        empty_text="No winners yet",
    )
    add_lines_field(
        embed,
        "Recent Events",
        [
            f"**{event['name']}** ({event['event_type']}) - winner {event['winning_choice']}, "
            f"{event['total_bets_count']} bets totalling {event['total_bets_amount']}"
            + (f" (<t:{event['finalized_at']}:d>)" if event["finalized_at"] else "")
            for event in leaderboard.recent_events
        ],
        empty_text="No completed events",
    )
    return embed


class WageringCommands(commands.Cog):
    """Slash commands and component handlers for wagering events."""

    event_group = app_commands.Group(name="event", description="Create and run wagering events")
    payout_group = app_commands.Group(name="payout", description="Track payouts to winners")

    def __init__(
        self,
        bot: commands.Bot,
        event_service: EventService,
        bet_service: BetService,
        settlement_service: SettlementService,
        payout_service: PayoutService,
        guild_config_service: GuildConfigService,
        event_creation_service: EventCreationService,
        leaderboard_service: LeaderboardService,
        rate_limiter: RateLimiter = GLOBAL_RATE_LIMITER,
    ):
        self.bot = bot
        self.event_service = event_service
        self.bet_service = bet_service
        self.settlement_service = settlement_service
        self.payout_service = payout_service
        self.guild_config_service = guild_config_service
        self.event_creation_service = event_creation_service
        self.leaderboard_service = leaderboard_service
        self.rate_limiter = rate_limiter
        self.router = self._build_router()

    async def cog_load(self):
        self.expire_payouts.start()

    async def cog_unload(self):
        self.expire_payouts.cancel()

    @tasks.loop(minutes=PAYOUT_EXPIRY_CHECK_MINUTES)
    async def expire_payouts(self):
        """Mark pending payouts whose claim window has passed as expired."""
        try:
            await asyncio.to_thread(self.payout_service.expire_overdue)
        except Exception as exc:
            logger.error(f"Payout expiry sweep failed: {exc}", exc_info=True)

    # --- Component routing ---

    def _build_router(self) -> ActionRouter:
        router = ActionRouter(permission_check=lambda interaction, capability: has_capability(interaction, capability))
        router.register("event", "lock", self._action_lock, Capability.MANAGE_EVENTS)
        router.register("event", "unlock", self._action_unlock, Capability.MANAGE_EVENTS)
        router.register("event", "pause", self._action_pause, Capability.MANAGE_EVENTS)
        router.register("event", "resume", self._action_resume, Capability.MANAGE_EVENTS)
        router.register("event", "cancel", self._action_cancel_event, Capability.MANAGE_EVENTS)
        router.register("event", "finalize", self._action_finalize, Capability.SELECT_WINNERS)
        router.register("bet", "cancel", self._action_cancel_bet, Capability.PLACE_BET)
        router.validate(REQUIRED_ACTIONS)
        return router

    @commands.Cog.listener()
    async def on_interaction(self, interaction: discord.Interaction):
        if interaction.type != discord.InteractionType.component:
            return
        custom_id = (interaction.data or {}).get("custom_id")
        parsed = parse_custom_id(custom_id)
        if parsed is None or parsed.namespace not in ROUTED_NAMESPACES:
            return

        if not await safe_defer(interaction, ephemeral=True):
            return
        result = await self.router.dispatch(interaction, custom_id)
        if result.success:
            await safe_followup(interaction, content=result.value or "Done.", ephemeral=True)
        else:
            await safe_followup(interaction, content=format_result_error(result), ephemeral=True)

    async def _action_lock(self, interaction: discord.Interaction, raw_event_id: str) -> str:
        event = await self.event_service.lock(_parse_id(raw_event_id, "event"), interaction.user.id)
        return f"**{event.name}** is {event.status.value}."

    async def _action_unlock(self, interaction: discord.Interaction, raw_event_id: str) -> str:
        event = await self.event_service.unlock(_parse_id(raw_event_id, "event"), interaction.user.id)
        return f"**{event.name}** is {event.status.value}."

    async def _action_pause(self, interaction: discord.Interaction, raw_event_id: str) -> str:
        event = await self.event_service.pause(_parse_id(raw_event_id, "event"), interaction.user.id)
        return f"**{event.name}** is {event.status.value}."

    async def _action_resume(self, interaction: discord.Interaction, raw_event_id: str) -> str:
        event = await self.event_service.resume(_parse_id(raw_event_id, "event"), interaction.user.id)
        return f"**{event.name}** is {event.status.value}."

    async def _action_cancel_event(self, interaction: discord.Interaction, raw_event_id: str) -> str:
        outcome = await self.event_service.cancel(_parse_id(raw_event_id, "event"), interaction.user.id)
        return (
            f"**{outcome['event'].name}** cancelled. Refunded {outcome['refunded_count']} bets "
            f"totalling {outcome['refunded_amount']}."
        )

    async def _action_finalize(self, interaction: discord.Interaction, raw_event_id: str) -> str:
        summary = await self.settlement_service.finalize(_parse_id(raw_event_id, "event"), interaction.user.id)
        return self._finalize_message(summary)

    async def _action_cancel_bet(self, interaction: discord.Interaction, raw_bet_id: str) -> str:
        bet_id = _parse_id(raw_bet_id, "bet")
        bet = await asyncio.to_thread(self.bet_service.get_bet, bet_id)
        if bet.user_id != interaction.user.id and not has_capability(interaction, Capability.MANAGE_EVENTS):
            raise PermissionDeniedError("You can only cancel your own bets.")
        cancelled = await asyncio.to_thread(self.bet_service.cancel_bet, bet_id, interaction.user.id)
        return f"Bet #{cancelled.bet_id} on **{cancelled.choice_name}** cancelled; {cancelled.amount} returned."

    @staticmethod
    def _finalize_message(summary: dict) -> str:
        prefix = "Already finalized. " if summary.get("already_finalized") else "Finalized. "
        if summary.get("no_winners"):
            return f"{prefix}Winner: **{summary['winning_choice']}**. No winning bets, no payouts created."
        return (
            f"{prefix}Winner: **{summary['winning_choice']}**. {summary['winner_count']} payouts "
            f"totalling {summary['total_payout']} (fees {summary['total_fee']}, residual {summary['residual']})."
        )

    async def _require(self, interaction: discord.Interaction, capability: Capability) -> bool:
        if has_capability(interaction, capability):
            return True
        await interaction.response.send_message("You don't have permission to do that.", ephemeral=True)
        return False

    # --- Betting ---

    @app_commands.command(name="bet", description="Place a bet on an open event")
    @app_commands.describe(
        event_id="Event number (see /event list)",
        choice="Choice number as listed on the event",
        amount="Amount to stake",
    )
    async def bet(self, interaction: discord.Interaction, event_id: int, choice: int, amount: int):
        guild_id = _guild_id(interaction)
        rl = self.rate_limiter.check(
            scope="bet",
            guild_id=guild_id or 0,
            user_id=interaction.user.id,
            limit=BET_RATE_LIMIT,
            per_seconds=BET_RATE_WINDOW_SECONDS,
        )
        if not rl.allowed:
            await interaction.response.send_message(
                f"Please wait {rl.retry_after_seconds}s before using `/bet` again.", ephemeral=True
            )
            return
        if not await self._require(interaction, Capability.PLACE_BET):
            return
        if not await safe_defer(interaction, ephemeral=True):
            return

        user = interaction.user

        def place() -> dict:
            threshold = self.guild_config_service.get_suspicious_threshold(guild_id)
            return self.bet_service.place_bet(
                event_id,
                user.id,
                choice - 1,
                amount,
                user_tag=str(user),
                suspicious_threshold=threshold,
            )

        result = await run_operation(lambda: asyncio.to_thread(place), "place bet")
        if not await handle_result(interaction, result):
            return
        placed = result.value
        odds_text = f"{placed['odds']:.2f}x" if placed["odds"] else "n/a"
        await safe_followup(
            interaction,
            content=(
                f"Bet #{placed['bet_id']} placed: {placed['amount']} on **{placed['choice_name']}**. "
                f"Pot is now {placed['pot']}; current odds {odds_text}."
            ),
            ephemeral=True,
        )

    @app_commands.command(name="mybets", description="Show your bets on an event")
    @app_commands.describe(event_id="Event number")
    async def mybets(self, interaction: discord.Interaction, event_id: int):
        if not await safe_defer(interaction, ephemeral=True):
            return
        result = await run_operation(
            lambda: asyncio.to_thread(self.bet_service.get_user_bets, event_id, interaction.user.id), "list bets"
        )
        if not await handle_result(interaction, result):
            return
        bets = result.value
        if not bets:
            await safe_followup(interaction, content=f"You have no bets on event {event_id}.", ephemeral=True)
            return

        lines = []
        for bet in bets:
            line = f"#{bet.bet_id}: {bet.amount} on **{bet.choice_name}** ({bet.status.value})"
            if bet.winning_amount:
                line += f", won {bet.winning_amount}"
            lines.append(line)
        active = [bet.bet_id for bet in bets if bet.is_active]
        await safe_followup(
            interaction,
            content="\n".join(lines),
            view=build_bet_cancel_buttons(active),
            ephemeral=True,
        )

    @app_commands.command(name="leaderboard", description="Show top bettors, top winners and recent results")
    @app_commands.describe(size="Entries per section (1-10, default 5)")
    async def leaderboard(self, interaction: discord.Interaction, size: int = 5):
        if not await safe_defer(interaction, ephemeral=False):
            return
        result = await run_operation(
            lambda: asyncio.to_thread(self.leaderboard_service.get_leaderboard, _guild_id(interaction), size),
            "load leaderboard",
        )
        if not await handle_result(interaction, result):
            return
        await safe_followup(interaction, embed=format_leaderboard_embed(result.value), ephemeral=False)

    @app_commands.command(name="odds", description="Show the current pot and odds for an event")
    @app_commands.describe(event_id="Event number")
    async def odds(self, interaction: discord.Interaction, event_id: int):
        if not await safe_defer(interaction, ephemeral=False):
            return

        def load() -> tuple[Event, list[dict]]:
            return self.event_service.get_event(event_id), self.event_service.compute_current_odds(event_id)

        result = await run_operation(lambda: asyncio.to_thread(load), "compute odds")
        if not await handle_result(interaction, result):
            return
        event, odds = result.value
        await safe_followup(interaction, embed=format_odds_embed(event, odds), ephemeral=False)

    # --- Event lifecycle ---

    @event_group.command(name="create", description="Create an event and open it for betting")
    @app_commands.describe(
        name="Event name",
        event_type="Kind of event",
        choices="Outcomes, separated by commas (e.g. Red, Blue)",
        date="Start date YYYY-MM-DD (optional)",
        time="Start time HH:MM (optional, server timezone)",
        description="Optional description",
        location="Optional location",
        min_bet="Minimum stake (default from /bettingconfig)",
        max_bet="Maximum stake (default from /bettingconfig)",
        limit_per_user="Bets per person (default from /bettingconfig)",
        fee_percent="Fee on winnings in percent (default from /bettingconfig)",
    )
    @app_commands.choices(
        event_type=[app_commands.Choice(name=t.capitalize(), value=t) for t in VALID_EVENT_TYPES],
    )
    async def event_create(
        self,
        interaction: discord.Interaction,
        name: str,
        event_type: app_commands.Choice[str],
        choices: str,
        date: str | None = None,
        time: str | None = None,
        description: str | None = None,
        location: str | None = None,
        min_bet: int | None = None,
        max_bet: int | None = None,
        limit_per_user: int | None = None,
        fee_percent: int | None = None,
    ):
        if not await self._require(interaction, Capability.MANAGE_EVENTS):
            return
        if not await safe_defer(interaction, ephemeral=True):
            return

        actor_id = interaction.user.id
        guild_id = _guild_id(interaction)
        wizard = self.event_creation_service

        def build_draft() -> None:
            channel_id = self.guild_config_service.get_announcement_channel(guild_id) or interaction.channel_id
            wizard.start(actor_id, guild_id, event_type.value, channel_id=channel_id)
            wizard.set_basic_info(actor_id, name, choices, description, location)
            if date or time:
                if not (date and time):
                    raise ValidationError("Give both date and time, or neither.")
                wizard.set_schedule(actor_id, date, time)
            else:
                wizard.skip_schedule(actor_id)
            wizard.set_betting_config(actor_id, min_bet, max_bet, limit_per_user, fee_percent)

        async def create() -> Event:
            try:
                await asyncio.to_thread(build_draft)
                return await wizard.confirm(actor_id)
            finally:
                wizard.cancel(actor_id)

        result = await run_operation(create, "create event")
        if not await handle_result(interaction, result):
            return
        event = result.value
        await safe_followup(
            interaction,
            content=f"Event #{event.event_id} created and open for betting.\n{render_event_card(event)}",
            view=build_event_controls(event.event_id),
            ephemeral=True,
        )

    @event_group.command(name="list", description="List events that are not finished")
    async def event_list(self, interaction: discord.Interaction):
        if not await safe_defer(interaction, ephemeral=True):
            return
        result = await run_operation(
            lambda: asyncio.to_thread(self.event_service.list_events, _guild_id(interaction), ACTIVE_STATUSES),
            "list events",
        )
        if not await handle_result(interaction, result):
            return
        events = result.value
        if not events:
            await safe_followup(interaction, content="No active events.", ephemeral=True)
            return
        embed = discord.Embed(title="Active events", color=discord.Color.blue())
        add_lines_field(
            embed,
            "Events",
            [f"#{e.event_id} **{e.name}** ({e.status.value}) pot {e.total_bets_amount}" for e in events],
        )
        await safe_followup(interaction, embed=embed, ephemeral=True)

    async def _run_transition(self, interaction: discord.Interaction, operation, label: str) -> None:
        if not await self._require(interaction, Capability.MANAGE_EVENTS):
            return
        if not await safe_defer(interaction, ephemeral=True):
            return
        result = await run_operation(operation, label)
        if await handle_result(interaction, result):
            event = result.value
            await safe_followup(interaction, content=f"**{event.name}** is now {event.status.value}.", ephemeral=True)

    @event_group.command(name="lock", description="Stop accepting bets on an event")
    async def event_lock(self, interaction: discord.Interaction, event_id: int):
        await self._run_transition(
            interaction, lambda: self.event_service.lock(event_id, interaction.user.id), "lock event"
        )

    @event_group.command(name="unlock", description="Accept bets again on a locked event")
    async def event_unlock(self, interaction: discord.Interaction, event_id: int):
        await self._run_transition(
            interaction, lambda: self.event_service.unlock(event_id, interaction.user.id), "unlock event"
        )

    @event_group.command(name="pause", description="Pause an event")
    async def event_pause(self, interaction: discord.Interaction, event_id: int):
        await self._run_transition(
            interaction, lambda: self.event_service.pause(event_id, interaction.user.id), "pause event"
        )

    @event_group.command(name="resume", description="Resume a paused event")
    async def event_resume(self, interaction: discord.Interaction, event_id: int):
        await self._run_transition(
            interaction, lambda: self.event_service.resume(event_id, interaction.user.id), "resume event"
        )

    @event_group.command(name="reopen", description="Reopen betting on a locked or paused event")
    @app_commands.describe(reason="Shown in the announcement")
    async def event_reopen(self, interaction: discord.Interaction, event_id: int, reason: str | None = None):
        await self._run_transition(
            interaction,
            lambda: self.event_service.reopen(event_id, reason, interaction.user.id),
            "reopen event",
        )

    @event_group.command(name="reschedule", description="Move an event to a new start time")
    @app_commands.describe(date="New date YYYY-MM-DD", time="New time HH:MM (server timezone)")
    async def event_reschedule(self, interaction: discord.Interaction, event_id: int, date: str, time: str):
        await self._run_transition(
            interaction,
            lambda: self.event_service.reschedule(event_id, f"{date} {time}", interaction.user.id),
            "reschedule event",
        )

    @event_group.command(name="cancel", description="Cancel an event and refund every active bet")
    @app_commands.describe(reason="Shown in the announcement")
    async def event_cancel(self, interaction: discord.Interaction, event_id: int, reason: str | None = None):
        if not await self._require(interaction, Capability.MANAGE_EVENTS):
            return
        if not await safe_defer(interaction, ephemeral=True):
            return
        result = await run_operation(
            lambda: self.event_service.cancel(event_id, interaction.user.id, reason), "cancel event"
        )
        if not await handle_result(interaction, result):
            return
        outcome = result.value
        await safe_followup(
            interaction,
            content=(
                f"**{outcome['event'].name}** cancelled. Refunded {outcome['refunded_count']} bets "
                f"totalling {outcome['refunded_amount']}."
            ),
            ephemeral=True,
        )

    # --- Settlement ---

    @event_group.command(name="winner", description="Select the winning choice (all bets on it win)")
    @app_commands.describe(choice="Choice number as listed on the event")
    async def event_winner(self, interaction: discord.Interaction, event_id: int, choice: int):
        if not await self._require(interaction, Capability.SELECT_WINNERS):
            return
        if not await safe_defer(interaction, ephemeral=True):
            return
        result = await run_operation(
            lambda: asyncio.to_thread(
                self.settlement_service.select_winning_choice, event_id, choice - 1, interaction.user.id
            ),
            "select winner",
        )
        if await handle_result(interaction, result):
            await self._send_preview(interaction, event_id)

    @event_group.command(name="outcome", description="Record a custom outcome; then pick winning bets")
    @app_commands.describe(outcome="What happened", winning_bets="Winning bet numbers, comma separated")
    async def event_outcome(
        self, interaction: discord.Interaction, event_id: int, outcome: str, winning_bets: str | None = None
    ):
        if not await self._require(interaction, Capability.SELECT_WINNERS):
            return
        if not await safe_defer(interaction, ephemeral=True):
            return

        def record() -> None:
            self.settlement_service.select_custom_outcome(event_id, outcome, interaction.user.id)
            if winning_bets:
                bet_ids = [_parse_id(part.strip(), "bet") for part in winning_bets.split(",") if part.strip()]
                self.settlement_service.toggle_winner(event_id, bet_ids, interaction.user.id)

        result = await run_operation(lambda: asyncio.to_thread(record), "record outcome")
        if await handle_result(interaction, result):
            await self._send_preview(interaction, event_id)

    @event_group.command(name="togglewinner", description="Flip the winner flag on specific bets")
    @app_commands.describe(bet_ids="Bet numbers, comma separated")
    async def event_toggle_winner(self, interaction: discord.Interaction, event_id: int, bet_ids: str):
        if not await self._require(interaction, Capability.SELECT_WINNERS):
            return
        if not await safe_defer(interaction, ephemeral=True):
            return

        def toggle() -> list[dict]:
            ids = [_parse_id(part.strip(), "bet") for part in bet_ids.split(",") if part.strip()]
            return self.settlement_service.toggle_winner(event_id, ids, interaction.user.id)

        result = await run_operation(lambda: asyncio.to_thread(toggle), "toggle winners")
        if await handle_result(interaction, result):
            await self._send_preview(interaction, event_id)

    async def _send_preview(self, interaction: discord.Interaction, event_id: int) -> None:
        def load() -> tuple[Event, dict]:
            return self.event_service.get_event(event_id), self.settlement_service.preview(event_id)

        result = await run_operation(lambda: asyncio.to_thread(load), "settlement preview")
        if not await handle_result(interaction, result):
            return
        event, summary = result.value
        await safe_followup(
            interaction,
            embed=format_settlement_embed(event, summary, "Settlement preview"),
            view=None if event.winner_approved else build_finalize_confirm(event_id),
            ephemeral=True,
        )

    @event_group.command(name="preview", description="Show what finalizing would pay out")
    async def event_preview(self, interaction: discord.Interaction, event_id: int):
        if not await self._require(interaction, Capability.SELECT_WINNERS):
            return
        if not await safe_defer(interaction, ephemeral=True):
            return
        await self._send_preview(interaction, event_id)

    @event_group.command(name="finalize", description="Settle the event and create payouts")
    @app_commands.describe(winner="Choice number, choice name or custom outcome (optional if already selected)")
    async def event_finalize(self, interaction: discord.Interaction, event_id: int, winner: str | None = None):
        if not await self._require(interaction, Capability.SELECT_WINNERS):
            return
        if not await safe_defer(interaction, ephemeral=True):
            return
        winning_choice: int | str | None = winner
        if winner and winner.strip().isdigit():
            winning_choice = int(winner.strip()) - 1
        result = await run_operation(
            lambda: self.settlement_service.finalize(event_id, interaction.user.id, winning_choice),
            "finalize event",
        )
        if await handle_result(interaction, result):
            await safe_followup(interaction, content=self._finalize_message(result.value), ephemeral=True)

    # --- Payouts ---

    @payout_group.command(name="list", description="List payouts for an event")
    @app_commands.choices(status=[app_commands.Choice(name=s.value, value=s.value) for s in PayoutStatus])
    async def payout_list(
        self, interaction: discord.Interaction, event_id: int, status: app_commands.Choice[str] | None = None
    ):
        if not await self._require(interaction, Capability.MANAGE_PAYOUTS):
            return
        if not await safe_defer(interaction, ephemeral=True):
            return
        status_filter = PayoutStatus(status.value) if status else None
        result = await run_operation(
            lambda: asyncio.to_thread(self.payout_service.list_payouts, event_id, status_filter), "list payouts"
        )
        if not await handle_result(interaction, result):
            return
        embed = discord.Embed(title=f"Payouts for event {event_id}", color=discord.Color.gold())
        add_lines_field(
            embed,
            "Payouts",
            [
                f"#{p.payout_id} <@{p.user_id}> {p.amount} (fee {p.fee_amount}) {p.status.value}"
                for p in result.value
            ],
        )
        await safe_followup(interaction, embed=embed, ephemeral=True)

    @payout_group.command(name="process", description="Record that a payout was paid")
    @app_commands.choices(method=[app_commands.Choice(name=m, value=m) for m in VALID_PAYOUT_METHODS])
    async def payout_process(
        self,
        interaction: discord.Interaction,
        payout_id: int,
        method: app_commands.Choice[str],
        account_id: str | None = None,
        transaction_id: str | None = None,
        notes: str | None = None,
    ):
        if not await self._require(interaction, Capability.MANAGE_PAYOUTS):
            return
        if not await safe_defer(interaction, ephemeral=True):
            return
        result = await run_operation(
            lambda: asyncio.to_thread(
                self.payout_service.mark_processed,
                payout_id,
                interaction.user.id,
                method.value,
                account_id,
                transaction_id,
                notes,
            ),
            "process payout",
        )
        if await handle_result(interaction, result):
            payout = result.value
            await safe_followup(
                interaction,
                content=f"Payout #{payout.payout_id} ({payout.amount}) marked {payout.status.value} via {method.value}.",
                ephemeral=True,
            )

    @payout_group.command(name="cancel", description="Cancel a pending payout")
    async def payout_cancel(self, interaction: discord.Interaction, payout_id: int, notes: str | None = None):
        if not await self._require(interaction, Capability.MANAGE_PAYOUTS):
            return
        if not await safe_defer(interaction, ephemeral=True):
            return
        result = await run_operation(
            lambda: asyncio.to_thread(self.payout_service.cancel_payout, payout_id, interaction.user.id, notes),
            "cancel payout",
        )
        await handle_result(interaction, result, success_msg=f"Payout #{payout_id} cancelled.")

    # --- Configuration ---

    @app_commands.command(name="bettingconfig", description="Show or change this server's betting defaults")
    @app_commands.describe(
        min_bet="Minimum stake for new events",
        max_bet="Maximum stake for new events",
        limit_per_user="Bets per person for new events",
        fee_percent="Fee on winnings (0-100) for new events",
        suspicious_threshold="Flag bets at or above this amount",
        channel="Channel for event announcements",
    )
    async def bettingconfig(
        self,
        interaction: discord.Interaction,
        min_bet: int | None = None,
        max_bet: int | None = None,
        limit_per_user: int | None = None,
        fee_percent: int | None = None,
        suspicious_threshold: int | None = None,
        channel: discord.TextChannel | None = None,
    ):
        if not await self._require(interaction, Capability.MANAGE_CONFIG):
            return
        if not await safe_defer(interaction, ephemeral=True):
            return
        guild_id = _guild_id(interaction)
        config = self.guild_config_service

        def apply() -> tuple:
            changes = (min_bet, max_bet, limit_per_user, fee_percent, suspicious_threshold)
            if any(value is not None for value in changes):
                limits = config.update_betting_defaults(
                    guild_id,
                    interaction.user.id,
                    min_bet=min_bet,
                    max_bet=max_bet,
                    limit_per_user=limit_per_user,
                    fee_percent=fee_percent,
                    suspicious_bet_threshold=suspicious_threshold,
                )
            else:
                limits = config.get_betting_limits(guild_id)
            if channel is not None:
                config.set_announcement_channel(guild_id, channel.id)
            return limits, config.get_suspicious_threshold(guild_id), config.get_announcement_channel(guild_id)

        result: Result = await run_operation(lambda: asyncio.to_thread(apply), "update betting config")
        if not await handle_result(interaction, result):
            return
        limits, threshold, channel_id = result.value
        await safe_followup(
            interaction,
            content=(
                f"Bets {limits.min_bet}-{limits.max_bet}, {limits.limit_per_user} per person, "
                f"{limits.fee_percent}% fee. Suspicious at {threshold}+. "
                f"Announcements: {f'<#{channel_id}>' if channel_id else 'not set'}."
            ),
            ephemeral=True,
        )


async def setup(bot: commands.Bot):
    event_service = getattr(bot, "event_service", None)
    if event_service is None:
        raise RuntimeError("Event service not registered on bot.")
    bet_service = getattr(bot, "bet_service", None)
    if bet_service is None:
        raise RuntimeError("Bet service not registered on bot.")
    settlement_service = getattr(bot, "settlement_service", None)
    if settlement_service is None:
        raise RuntimeError("Settlement service not registered on bot.")
    payout_service = getattr(bot, "payout_service", None)
    if payout_service is None:
        raise RuntimeError("Payout service not registered on bot.")
    guild_config_service = getattr(bot, "guild_config_service", None)
    if guild_config_service is None:
        raise RuntimeError("Guild config service not registered on bot.")
    event_creation_service = getattr(bot, "event_creation_service", None)
    if event_creation_service is None:
        raise RuntimeError("Event creation service not registered on bot.")
    leaderboard_service = getattr(bot, "leaderboard_service", None)
    if leaderboard_service is None:
        raise RuntimeError("Leaderboard service not registered on bot.")

    await bot.add_cog(
        WageringCommands(
            bot,
            event_service,
            bet_service,
            settlement_service,
            payout_service,
            guild_config_service,
            event_creation_service,
            leaderboard_service,
        )
    )

"""
Guild leaderboard: most active bettors, biggest winners and recent results.
"""

import logging
from dataclasses import dataclass, field

from repositories.interfaces import IBetRepository, IEventRepository, IPayoutRepository
from services.errors import ValidationError

logger = logging.getLogger("stakes_bot.services.leaderboard")

MAX_LEADERBOARD_SIZE = 10


@dataclass
class Leaderboard:
    top_bettors: list[dict] = field(default_factory=list)
    top_winners: list[dict] = field(default_factory=list)
    recent_events: list[dict] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.top_bettors or self.top_winners or self.recent_events)


class LeaderboardService:
    """Read-only aggregates over bets, payouts and completed events."""

    def __init__(self, bet_repo: IBetRepository, payout_repo: IPayoutRepository, event_repo: IEventRepository):
        self.bet_repo = bet_repo
        self.payout_repo = payout_repo
        self.event_repo = event_repo

    def get_leaderboard(self, guild_id: int | None, limit: int = 5) -> Leaderboard:
        if limit < 1 or limit > MAX_LEADERBOARD_SIZE:
            raise ValidationError(f"Leaderboard size must be between 1 and {MAX_LEADERBOARD_SIZE}.")
        leaderboard = Leaderboard(
            top_bettors=self.bet_repo.get_top_bettors(guild_id, limit),
            top_winners=self.payout_repo.get_top_winners(guild_id, limit),
            recent_events=self.event_repo.get_recent_events(guild_id, limit),
        )
        logger.debug(
            f"Leaderboard for guild {guild_id}: {len(leaderboard.top_bettors)} bettors, "
            f"{len(leaderboard.top_winners)} winners, {len(leaderboard.recent_events)} events"
        )
        return leaderboard

"""
Service container for dependency injection and initialization.

This module centralizes service creation and wiring so bot.py and the tests
build the wagering stack the same way.

Usage:
    container = ServiceContainer(config)
    await container.initialize(announcement_channel)

    # Access services
    event_service = container.event_service
    settlement_service = container.settlement_service
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from services.announcement_service import AnnouncementService, IAnnouncementChannel
    from services.bet_service import BetService
    from services.event_creation_service import EventCreationService
    from services.event_service import EventService
    from services.guild_config_service import GuildConfigService
    from services.leaderboard_service import LeaderboardService
    from services.payout_service import PayoutService
    from services.settlement_service import SettlementService

from database import Database
from utils.operation_queue import OperationQueue

# Repositories
from repositories.audit_log_repository import AuditLogRepository
from repositories.bet_repository import BetRepository
from repositories.event_repository import EventRepository
from repositories.guild_config_repository import GuildConfigRepository
from repositories.payout_repository import PayoutRepository
from repositories.settlement_repository import SettlementRepository

logger = logging.getLogger("stakes_bot.infrastructure.container")


@dataclass
class RepositoryContainer:
    """Container for all repositories."""

    event: EventRepository | None = None
    bet: BetRepository | None = None
    settlement: SettlementRepository | None = None
    payout: PayoutRepository | None = None
    audit_log: AuditLogRepository | None = None
    guild_config: GuildConfigRepository | None = None


@dataclass
class ServiceConfig:
    """Configuration for service initialization."""

    # Database
    db_path: str = "stakes_bot.db"

    # Betting defaults (per-guild overrides live in guild_config)
    min_bet: int = 10
    max_bet: int = 1000
    limit_per_user: int = 2
    fee_percent: int = 5
    suspicious_bet_threshold: int = 5000

    # Settlement
    payout_window_days: int = 7

    # Outbound queue pacing
    queue_base_spacing_ms: int = 500
    queue_max_spacing_ms: int = 10000
    queue_stall_seconds: float = 30.0
    queue_max_consecutive_errors: int = 5
    queue_backlog_threshold: int = 10

    # Event creation wizard
    draft_ttl_seconds: int = 900
    draft_max_sessions: int = 500

    timezone: str = "UTC"
    announcement_channel_id: int | None = None

    @classmethod
    def from_config(cls) -> "ServiceConfig":
        """Build from the environment-driven values in config.py."""
        import config

        return cls(
            db_path=config.DB_PATH,
            min_bet=config.DEFAULT_MIN_BET,
            max_bet=config.DEFAULT_MAX_BET,
            limit_per_user=config.DEFAULT_LIMIT_PER_USER,
            fee_percent=config.DEFAULT_FEE_PERCENT,
            suspicious_bet_threshold=config.SUSPICIOUS_BET_THRESHOLD,
            payout_window_days=config.PAYOUT_WINDOW_DAYS,
            queue_base_spacing_ms=config.QUEUE_BASE_SPACING_MS,
            queue_max_spacing_ms=config.QUEUE_MAX_SPACING_MS,
            queue_stall_seconds=config.QUEUE_STALL_SECONDS,
            queue_max_consecutive_errors=config.QUEUE_MAX_CONSECUTIVE_ERRORS,
            queue_backlog_threshold=config.QUEUE_BACKLOG_THRESHOLD,
            draft_ttl_seconds=config.EVENT_DRAFT_TTL_SECONDS,
            draft_max_sessions=config.EVENT_DRAFT_MAX_SESSIONS,
            timezone=config.TIMEZONE,
            announcement_channel_id=config.ANNOUNCEMENT_CHANNEL_ID,
        )


class ServiceContainer:
    """
    Central container for all application services.

    Handles proper initialization order and dependency injection.

    Example:
        container = ServiceContainer(config)
        await container.initialize(DiscordAnnouncementChannel(bot))

        # Services are now available
        bet_service = container.bet_service
    """

    def __init__(self, config: ServiceConfig | None = None):
        """
        Initialize the container with configuration.

        Args:
            config: Service configuration (uses defaults if None)
        """
        self.config = config or ServiceConfig()
        self._initialized = False
        self._repos = RepositoryContainer()

        self._database: Database | None = None
        self._queue: OperationQueue | None = None
        self._services: dict[str, Any] = {}

    @property
    def is_initialized(self) -> bool:
        """Check if container has been initialized."""
        return self._initialized

    async def initialize(self, announcement_channel: "IAnnouncementChannel | None" = None) -> None:
        """
        Initialize all services in correct order.

        This method is idempotent - calling it multiple times has no effect.

        Args:
            announcement_channel: Where announcements are posted. None disables
                announcements (state changes still happen).
        """
        if self._initialized:
            logger.debug("ServiceContainer already initialized, skipping")
            return

        logger.info("Initializing ServiceContainer...")

        self._init_database()
        self._init_repositories()

        self._init_core_services()
        self._init_announcement_services(announcement_channel)
        self._init_wagering_services()

        self._initialized = True
        logger.info("ServiceContainer initialization complete")

    async def shutdown(self) -> None:
        """Drop queued announcements and wait for the in-flight one."""
        if self._queue is not None:
            dropped = await self._queue.shutdown()
            logger.info(f"Operation queue shut down ({dropped} pending announcements dropped)")

    def _init_database(self) -> None:
        """Initialize database and run migrations."""
        logger.debug(f"Initializing database at {self.config.db_path}")
        self._database = Database(self.config.db_path)

    def _init_repositories(self) -> None:
        """Initialize all repositories."""
        logger.debug("Initializing repositories")

        db_path = self.config.db_path
        self._repos.event = EventRepository(db_path)
        self._repos.bet = BetRepository(db_path)
        self._repos.settlement = SettlementRepository(db_path)
        self._repos.payout = PayoutRepository(db_path)
        self._repos.audit_log = AuditLogRepository(db_path)
        self._repos.guild_config = GuildConfigRepository(db_path)

    def _init_core_services(self) -> None:
        """Initialize services with no dependencies on other services."""
        logger.debug("Initializing core services")

        from domain.models.event import BettingLimits
        from services.bet_service import BetService
        from services.guild_config_service import GuildConfigService
        from services.leaderboard_service import LeaderboardService
        from services.payout_service import PayoutService

        cfg = self.config
        self._services["guild_config"] = GuildConfigService(
            self._repos.guild_config,
            default_limits=BettingLimits(
                min_bet=cfg.min_bet,
                max_bet=cfg.max_bet,
                limit_per_user=cfg.limit_per_user,
                fee_percent=cfg.fee_percent,
            ),
            default_suspicious_threshold=cfg.suspicious_bet_threshold,
            default_announcement_channel_id=cfg.announcement_channel_id,
        )
        self._services["bet"] = BetService(self._repos.bet, suspicious_threshold=cfg.suspicious_bet_threshold)
        self._services["payout"] = PayoutService(self._repos.payout)
        self._services["leaderboard"] = LeaderboardService(self._repos.bet, self._repos.payout, self._repos.event)

    def _init_announcement_services(self, channel: "IAnnouncementChannel | None") -> None:
        """Initialize the outbound operation queue and announcement service."""
        logger.debug("Initializing announcement services")

        from services.announcement_service import AnnouncementService

        cfg = self.config
        self._queue = OperationQueue(
            base_spacing_ms=cfg.queue_base_spacing_ms,
            max_spacing_ms=cfg.queue_max_spacing_ms,
            stall_seconds=cfg.queue_stall_seconds,
            max_consecutive_errors=cfg.queue_max_consecutive_errors,
            backlog_threshold=cfg.queue_backlog_threshold,
        )
        guild_config_service = self._services["guild_config"]
        self._services["announcement"] = AnnouncementService(
            self._queue,
            channel,
            resolve_channel=guild_config_service.get_announcement_channel,
        )

    def _init_wagering_services(self) -> None:
        """Initialize event, settlement and creation wizard services."""
        logger.debug("Initializing wagering services")

        from services.draft_session_store import DraftSessionStore
        from services.event_creation_service import EventCreationService
        from services.event_service import EventService
        from services.settlement_service import SettlementService

        cfg = self.config
        announcements = self._services["announcement"]
        event_service = EventService(
            self._repos.event,
            self._repos.bet,
            announcements=announcements,
            timezone_name=cfg.timezone,
        )
        self._services["event"] = event_service
        self._services["settlement"] = SettlementService(
            self._repos.settlement,
            self._repos.event,
            announcements=announcements,
            payout_window_days=cfg.payout_window_days,
        )
        self._services["event_creation"] = EventCreationService(
            event_service,
            self._services["guild_config"],
            store=DraftSessionStore(ttl_seconds=cfg.draft_ttl_seconds, max_sessions=cfg.draft_max_sessions),
            timezone_name=cfg.timezone,
        )

    # Repository accessors
    @property
    def event_repo(self) -> EventRepository | None:
        return self._repos.event

    @property
    def bet_repo(self) -> BetRepository | None:
        return self._repos.bet

    @property
    def settlement_repo(self) -> SettlementRepository | None:
        return self._repos.settlement

    @property
    def payout_repo(self) -> PayoutRepository | None:
        return self._repos.payout

    @property
    def audit_log_repo(self) -> AuditLogRepository | None:
        return self._repos.audit_log

    @property
    def guild_config_repo(self) -> GuildConfigRepository | None:
        return self._repos.guild_config

    # Service accessors
    @property
    def operation_queue(self) -> OperationQueue | None:
        """Get the outbound operation queue."""
        return self._queue

    @property
    def announcement_service(self) -> "AnnouncementService | None":
        """Get announcement service."""
        return self._services.get("announcement")

    @property
    def event_service(self) -> "EventService | None":
        """Get event service."""
        return self._services.get("event")

    @property
    def bet_service(self) -> "BetService | None":
        """Get bet service."""
        return self._services.get("bet")

    @property
    def settlement_service(self) -> "SettlementService | None":
        """Get settlement service."""
        return self._services.get("settlement")

    @property
    def payout_service(self) -> "PayoutService | None":
        """Get payout service."""
        return self._services.get("payout")

    @property
    def leaderboard_service(self) -> "LeaderboardService | None":
        """Get leaderboard service."""
        return self._services.get("leaderboard")

    @property
    def guild_config_service(self) -> "GuildConfigService | None":
        """Get guild config service."""
        return self._services.get("guild_config")

    @property
    def event_creation_service(self) -> "EventCreationService | None":
        """Get event creation wizard service."""
        return self._services.get("event_creation")

    def expose_to_bot(self, bot) -> None:
        """
        Expose repositories and services on the Discord bot object.

        Cogs look services up as bot.<service_name>.

        Args:
            bot: The Discord bot instance
        """
        bot.event_repo = self.event_repo
        bot.bet_repo = self.bet_repo
        bot.payout_repo = self.payout_repo
        bot.audit_log_repo = self.audit_log_repo
        bot.guild_config_repo = self.guild_config_repo

        bot.operation_queue = self.operation_queue
        bot.announcement_service = self.announcement_service
        bot.event_service = self.event_service
        bot.bet_service = self.bet_service
        bot.settlement_service = self.settlement_service
        bot.payout_service = self.payout_service
        bot.leaderboard_service = self.leaderboard_service
        bot.guild_config_service = self.guild_config_service
        bot.event_creation_service = self.event_creation_service

        logger.info("Services exposed to bot object")

"""
Pytest fixtures for tests.

Performance optimization: Uses session-scoped schema template to avoid running
the migrations for every test. Instead, we run migrations once and copy the
resulting database file instead of re-initializing.

This module provides centralized constants and fixtures to reduce duplication
across the test suite. Import TEST_GUILD_ID from here instead of defining it locally.
"""

import shutil

import pytest

from database import Database
from domain.models.event import BettingLimits
from repositories.audit_log_repository import AuditLogRepository
from repositories.bet_repository import BetRepository
from repositories.event_repository import EventRepository
from repositories.guild_config_repository import GuildConfigRepository
from repositories.payout_repository import PayoutRepository
from repositories.settlement_repository import SettlementRepository
from services.bet_service import BetService
from services.event_service import EventService
from services.guild_config_service import GuildConfigService
from services.leaderboard_service import LeaderboardService
from services.payout_service import PayoutService
from services.settlement_service import SettlementService

# =============================================================================
# CENTRALIZED CONSTANTS
# =============================================================================

TEST_GUILD_ID = 12345
"""Standard guild ID for single-guild tests. Import and use this constant."""

TEST_GUILD_ID_SECONDARY = 67890
"""Secondary guild ID for multi-guild isolation tests."""

OPERATOR_ID = 900

DEFAULT_LIMITS = BettingLimits(min_bet=10, max_bet=1000, limit_per_user=2, fee_percent=5)


@pytest.fixture(scope="session")
def _schema_template_path(tmp_path_factory):
    """
    Create a schema template database once per test session.

    All migrations run ONCE here. Tests copy from this template
    instead of running schema initialization each time.
    """
    template_dir = tmp_path_factory.mktemp("schema_template")
    template_path = str(template_dir / "template.db")
    Database(template_path)
    yield template_path


@pytest.fixture
def temp_db_path(tmp_path):
    """Create a temporary database path (no schema)."""
    path = str(tmp_path / "temp.db")
    yield path


@pytest.fixture
def repo_db_path(_schema_template_path, tmp_path):
    """
    Create a temporary database with initialized schema for repository tests.

    The schema template is created once per session and reused.
    """
    test_db_path = str(tmp_path / "test.db")
    shutil.copy2(_schema_template_path, test_db_path)
    yield test_db_path


# =============================================================================
# GUILD ID FIXTURES
# =============================================================================


@pytest.fixture
def guild_id():
    """Standard guild ID for single-guild tests."""
    return TEST_GUILD_ID


@pytest.fixture
def secondary_guild_id():
    """Secondary guild ID for multi-guild isolation tests."""
    return TEST_GUILD_ID_SECONDARY


# =============================================================================
# REPOSITORY FIXTURES
# =============================================================================


@pytest.fixture
def event_repository(repo_db_path):
    return EventRepository(repo_db_path)


@pytest.fixture
def bet_repository(repo_db_path):
    """Create a bet repository with temp database."""
    return BetRepository(repo_db_path)


@pytest.fixture
def settlement_repository(repo_db_path):
    return SettlementRepository(repo_db_path)


@pytest.fixture
def payout_repository(repo_db_path):
    return PayoutRepository(repo_db_path)


@pytest.fixture
def audit_log_repository(repo_db_path):
    return AuditLogRepository(repo_db_path)


@pytest.fixture
def guild_config_repository(repo_db_path):
    """Create a guild config repository with temp database."""
    return GuildConfigRepository(repo_db_path)


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def guild_config_service(guild_config_repository):
    """Create a guild config service with the standard test defaults."""
    return GuildConfigService(guild_config_repository, DEFAULT_LIMITS, default_suspicious_threshold=500)


@pytest.fixture
def bet_service(bet_repository):
    return BetService(bet_repository, suspicious_threshold=500)


@pytest.fixture
def event_service(event_repository, bet_repository):
    """Event service without announcements."""
    return EventService(event_repository, bet_repository)


@pytest.fixture
def settlement_service(settlement_repository, event_repository):
    """Settlement service without announcements."""
    return SettlementService(settlement_repository, event_repository)


@pytest.fixture
def payout_service(payout_repository):
    return PayoutService(payout_repository)


@pytest.fixture
def leaderboard_service(bet_repository, payout_repository, event_repository):
    return LeaderboardService(bet_repository, payout_repository, event_repository)


# =============================================================================
# EVENT FIXTURES
# =============================================================================


def create_open_event(
    event_repository,
    guild_id=TEST_GUILD_ID,
    choices=("Red", "Blue"),
    min_bet=10,
    max_bet=1000,
    limit_per_user=2,
    fee_percent=5,
    name="Title Fight",
):
    """Insert an event and move it straight to open; returns the event id."""
    event_id = event_repository.create_event(
        guild_id=guild_id,
        name=name,
        event_type="boxing",
        choices=list(choices),
        min_bet=min_bet,
        max_bet=max_bet,
        limit_per_user=limit_per_user,
        fee_percent=fee_percent,
        created_by=OPERATOR_ID,
    )
    event_repository.transition_status(event_id, {"pending"}, "open", OPERATOR_ID, "open")
    return event_id


@pytest.fixture
def open_event(event_repository):
    """An open two-choice event (Red/Blue) with the standard test limits."""
    return create_open_event(event_repository)

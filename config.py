"""
Centralized configuration for the stakes bot.
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()


def _parse_int(env_var: str, default: int) -> int:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _parse_float(env_var: str, default: float) -> float:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _parse_bool(env_var: str, default: bool) -> bool:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "yes", "on"}


def _parse_int_list(env_var: str, default: list[int]) -> list[int]:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    try:
        return [int(x.strip()) for x in raw.split(",") if x.strip()]
    except ValueError:
        return default


def _parse_optional_id(env_var: str) -> int | None:
    raw = os.getenv(env_var)
    if not raw:
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return None


DB_PATH = os.getenv("DB_PATH", "stakes_bot.db")
DISCORD_BOT_TOKEN = os.getenv("DISCORD_BOT_TOKEN")
ADMIN_USER_IDS: list[int] = _parse_int_list("ADMIN_USER_IDS", [])

# Role ids granting capabilities (admins always have every capability)
EVENT_MANAGER_ROLE_ID: int | None = _parse_optional_id("EVENT_MANAGER_ROLE_ID")
PAYOUT_MANAGER_ROLE_ID: int | None = _parse_optional_id("PAYOUT_MANAGER_ROLE_ID")
# If unset, every member may place bets
BETTOR_ROLE_ID: int | None = _parse_optional_id("BETTOR_ROLE_ID")

# Where lifecycle and results announcements go when a guild has no override
ANNOUNCEMENT_CHANNEL_ID: int | None = _parse_optional_id("ANNOUNCEMENT_CHANNEL_ID")

TIMEZONE = os.getenv("TIMEZONE", "UTC")

# Default betting limits, copied onto each event when it is created
DEFAULT_MIN_BET = _parse_int("DEFAULT_MIN_BET", 10)
DEFAULT_MAX_BET = _parse_int("DEFAULT_MAX_BET", 1000)
DEFAULT_LIMIT_PER_USER = _parse_int("DEFAULT_LIMIT_PER_USER", 2)
_raw_fee_percent = _parse_int("DEFAULT_FEE_PERCENT", 5)
DEFAULT_FEE_PERCENT = max(0, min(100, _raw_fee_percent))

# Bets at or above this amount are flagged for operator review (not blocked)
SUSPICIOUS_BET_THRESHOLD = _parse_int("SUSPICIOUS_BET_THRESHOLD", 5000)

# Days a winner has to claim a pending payout before it expires
PAYOUT_WINDOW_DAYS = _parse_int("PAYOUT_WINDOW_DAYS", 7)

# Outbound message queue pacing
QUEUE_BASE_SPACING_MS = _parse_int("QUEUE_BASE_SPACING_MS", 500)
QUEUE_MAX_SPACING_MS = _parse_int("QUEUE_MAX_SPACING_MS", 10000)
QUEUE_STALL_SECONDS = _parse_float("QUEUE_STALL_SECONDS", 30.0)
QUEUE_MAX_CONSECUTIVE_ERRORS = _parse_int("QUEUE_MAX_CONSECUTIVE_ERRORS", 5)
QUEUE_BACKLOG_THRESHOLD = _parse_int("QUEUE_BACKLOG_THRESHOLD", 10)

# Event creation wizard sessions
EVENT_DRAFT_TTL_SECONDS = _parse_int("EVENT_DRAFT_TTL_SECONDS", 900)  # 15 minutes
EVENT_DRAFT_MAX_SESSIONS = _parse_int("EVENT_DRAFT_MAX_SESSIONS", 500)

SYNC_COMMANDS_ON_READY = _parse_bool("SYNC_COMMANDS_ON_READY", True)

# How often pending payouts past their window are marked expired
PAYOUT_EXPIRY_CHECK_MINUTES = _parse_int("PAYOUT_EXPIRY_CHECK_MINUTES", 60)

"""
Command helper utilities for Discord slash commands.

Provides utilities for handling service Results in command handlers,
reducing boilerplate and ensuring consistent error reporting.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

import discord

from services import error_codes
from services.errors import WageringError
from services.result import Result
from utils.interaction_safety import safe_followup

logger = logging.getLogger("stakes_bot.utils.command_helpers")


async def run_operation(operation: Callable[[], Awaitable[Any]], label: str) -> Result:
    """
    Await ``operation()`` and wrap the outcome in a Result.

    Named wagering errors become failed results carrying their code; anything
    else is logged with its traceback and reported as an internal error.
    """
    try:
        value = await operation()
    except WageringError as exc:
        return Result.from_error(exc)
    except Exception:
        logger.error(f"Unexpected error during {label}", exc_info=True)
        return Result.fail("An unexpected error occurred.", code=error_codes.INTERNAL_ERROR)
    return value if isinstance(value, Result) else Result.ok(value)


async def handle_result(
    interaction: discord.Interaction,
    result: Result,
    success_msg: str | None = None,
    ephemeral: bool = True,
) -> bool:
    """
    Handle a service Result, sending appropriate Discord response.

    Args:
        interaction: The Discord interaction to respond to
        result: The Result from a service call
        success_msg: Optional message to send on success (None = no message)
        ephemeral: Whether the message should be ephemeral

    Returns:
        True if the result was successful, False otherwise

    Usage:
        result = await run_operation(lambda: event_service.lock(event_id, actor_id), "lock")
        if not await handle_result(interaction, result):
            return  # Error was already reported to user
    """
    if not result.success:
        await safe_followup(interaction, content=format_result_error(result), ephemeral=True)
        return False

    if success_msg:
        await safe_followup(interaction, content=success_msg, ephemeral=ephemeral)
    return True


def format_result_error(result: Result) -> str:
    """
    Format a Result error for display.

    Args:
        result: A failed Result

    Returns:
        Formatted error string
    """
    if result.success:
        return ""
    if result.error_code:
        return f"[{result.error_code}] {result.error}"
    return result.error or "Unknown error"

"""
Helpers that respond to Discord interactions without raising when the
interaction has expired or was already acknowledged.
"""

from __future__ import annotations

import logging

import discord

logger = logging.getLogger("stakes_bot.utils.interaction_safety")


async def safe_defer(interaction: discord.Interaction, ephemeral: bool = True) -> bool:
    """
    Defer the interaction response.

    Returns:
        False if the interaction can no longer be answered (expired token),
        True otherwise (including when it was already deferred).
    """
    try:
        if not interaction.response.is_done():
            await interaction.response.defer(ephemeral=ephemeral)
        return True
    except discord.NotFound:
        logger.warning(f"Interaction {getattr(interaction, 'id', '?')} expired before it could be deferred")
        return False
    except discord.HTTPException as exc:
        logger.warning(f"Failed to defer interaction {getattr(interaction, 'id', '?')}: {exc}")
        return False


async def safe_followup(
    interaction: discord.Interaction,
    content: str | None = None,
    embed: discord.Embed | None = None,
    view: discord.ui.View | None = None,
    ephemeral: bool = True,
):
    """
    Send a followup message; returns the message, or None if sending failed.

    Mentions are suppressed so bet listings never ping anyone.
    """
    kwargs = {
        "content": content,
        "ephemeral": ephemeral,
        "allowed_mentions": discord.AllowedMentions.none(),
    }
    if embed is not None:
        kwargs["embed"] = embed
    if view is not None:
        kwargs["view"] = view
    try:
        return await interaction.followup.send(**kwargs)
    except discord.HTTPException as exc:
        logger.warning(f"Failed to send followup for interaction {getattr(interaction, 'id', '?')}: {exc}")
        return None

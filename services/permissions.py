"""
Permission checking utilities for the bot.
"""

from enum import Enum

import discord

from config import (
    ADMIN_USER_IDS,
    BETTOR_ROLE_ID,
    EVENT_MANAGER_ROLE_ID,
    PAYOUT_MANAGER_ROLE_ID,
)


class Capability(Enum):
    PLACE_BET = "place_bet"
    MANAGE_EVENTS = "manage_events"
    SELECT_WINNERS = "select_winners"
    MANAGE_PAYOUTS = "manage_payouts"
    MANAGE_CONFIG = "manage_config"


def has_allowlisted_admin(interaction: discord.Interaction) -> bool:
    """
    Check if the user is explicitly allowlisted via ADMIN_USER_IDS.
    If ADMIN_USER_IDS is empty/unset, nobody is considered admin by this check.
    """
    return interaction.user.id in ADMIN_USER_IDS


def has_admin_permission(interaction: discord.Interaction) -> bool:
    """
    Check if user has admin permissions.

    First checks ADMIN_USER_IDS list, then falls back to Discord permissions.

    Args:
        interaction: Discord interaction object

    Returns:
        True if user has admin permissions, False otherwise
    """
    if ADMIN_USER_IDS and interaction.user.id in ADMIN_USER_IDS:
        return True

    # Prefer guild member lookup, but fall back gracefully for mocks / partial objects.
    member = _get_member(interaction)
    perms = getattr(member, "guild_permissions", None)
    if perms:
        return bool(getattr(perms, "administrator", False) or getattr(perms, "manage_guild", False))
    return False


def _get_member(interaction: discord.Interaction):
    if interaction.guild:
        get_member = getattr(interaction.guild, "get_member", None)
        if callable(get_member):
            member = get_member(interaction.user.id)
            if member is not None:
                return member
    # interaction.user may already be a Member-like object
    return interaction.user


def _has_role(interaction: discord.Interaction, role_id: int | None) -> bool:
    if role_id is None:
        return False
    roles = getattr(_get_member(interaction), "roles", None) or []
    return any(getattr(role, "id", None) == role_id for role in roles)


def has_capability(interaction: discord.Interaction, capability: Capability) -> bool:
    """
    Decide whether the interaction's user may perform ``capability``.

    Admins (allowlist or Administrator/Manage Server) can do everything.
    Event managers run events and pick winners; payout managers process payouts.
    Anyone may bet unless BETTOR_ROLE_ID is configured, in which case that role
    is required.
    """
    if has_admin_permission(interaction):
        return True

    if capability == Capability.PLACE_BET:
        return BETTOR_ROLE_ID is None or _has_role(interaction, BETTOR_ROLE_ID)
    if capability in (Capability.MANAGE_EVENTS, Capability.SELECT_WINNERS):
        return _has_role(interaction, EVENT_MANAGER_ROLE_ID)
    if capability == Capability.MANAGE_PAYOUTS:
        return _has_role(interaction, PAYOUT_MANAGER_ROLE_ID)
    return False

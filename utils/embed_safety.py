"""Discord embed safety utilities.

Keeps bet lists, odds tables and settlement breakdowns within Discord's
embed limits.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import discord

EMBED_LIMITS = {
    "title": 256,
    "field_value": 1024,
    "field_name": 256,
    "description": 4096,
    "max_fields": 25,
}


def truncate_field(text: str, max_len: int = 1024) -> str:
    """Truncate text to fit Discord field limit.

    Args:
        text: The text to truncate
        max_len: Maximum length (default 1024 for field values)

    Returns:
        Original text if within limit, truncated with "..." if over
    """
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def add_lines_field(embed: discord.Embed, name: str, lines: list[str], empty_text: str = "None") -> None:
    """
    Add ``lines`` to ``embed`` as one or more fields.

    Lines are packed whole into fields of at most 1024 characters; continuation
    fields are named "<name> (cont.)". Stops adding once the embed has the
    maximum number of fields, noting how many lines were left out.
    """
    limit = EMBED_LIMITS["field_value"]
    if not lines:
        embed.add_field(name=truncate_field(name, EMBED_LIMITS["field_name"]), value=empty_text, inline=False)
        return

    chunks: list[str] = []
    current = ""
    for line in lines:
        line = truncate_field(line, limit)
        candidate = f"{current}\n{line}" if current else line
        if len(candidate) > limit:
            chunks.append(current)
            current = line
        else:
            current = candidate
    chunks.append(current)

    written = 0
    for index, chunk in enumerate(chunks):
        if len(embed.fields) >= EMBED_LIMITS["max_fields"]:
            remaining = len(lines) - written
            embed.set_footer(text=f"{remaining} more not shown")
            return
        field_name = name if index == 0 else f"{name} (cont.)"
        embed.add_field(name=truncate_field(field_name, EMBED_LIMITS["field_name"]), value=chunk, inline=False)
        written += chunk.count("\n") + 1

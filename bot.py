"""
Main Discord bot entry for the stakes bot.
"""

import logging
import os

# Configure logging BEFORE importing discord to prevent duplicate handlers
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    force=True,  # Override any existing handlers (e.g., from discord.py)
)
logger = logging.getLogger("stakes_bot")


# Suppress PyNaCl warning since voice support isn't needed
class _PyNaClFilter(logging.Filter):
    """Filter out the PyNaCl warning from discord.py."""

    def filter(self, record):
        return "PyNaCl is not installed" not in record.getMessage()


logging.getLogger("discord.client").addFilter(_PyNaClFilter())

# Now import discord after logging is configured
import discord
from discord.ext import commands

# Remove any handlers discord.py added to prevent duplicate output
_discord_logger = logging.getLogger("discord")
_discord_logger.handlers.clear()
_discord_logger.setLevel(logging.INFO)

from config import SYNC_COMMANDS_ON_READY
from infrastructure.service_container import ServiceConfig, ServiceContainer
from services.announcement_service import DiscordAnnouncementChannel

EXTENSIONS = [
    "commands.wagering",
]


class StakesBot(commands.Bot):
    """commands.Bot that owns the service container and drains the queue on close."""

    def __init__(self, service_config: ServiceConfig | None = None, **kwargs):
        super().__init__(**kwargs)
        self.container = ServiceContainer(service_config or ServiceConfig.from_config())

    async def setup_hook(self):
        """Initialize database and services, then load command cogs."""
        await self.container.initialize(DiscordAnnouncementChannel(self))
        self.container.expose_to_bot(self)
        await _load_extensions(self)

    async def close(self):
        await self.container.shutdown()
        await super().close()


intents = discord.Intents.default()
intents.members = True

bot = StakesBot(command_prefix="!", intents=intents)


async def _load_extensions(target: commands.Bot):
    """Load command extensions if not already loaded."""
    loaded_extensions = []
    failed_extensions = []

    for ext in EXTENSIONS:
        if ext in target.extensions:
            logger.debug(f"Extension {ext} already loaded, skipping")
            continue
        try:
            await target.load_extension(ext)
            loaded_extensions.append(ext)
            logger.info(f"Loaded extension: {ext}")
        except Exception as exc:
            failed_extensions.append(ext)
            logger.error(f"Failed to load extension {ext}: {exc}", exc_info=True)

    logger.info(
        f"Extension loading complete: {len(loaded_extensions)} loaded, {len(failed_extensions)} failed"
    )


@bot.event
async def on_ready():
    """Called when bot is ready."""
    logger.info(f"{bot.user} connected. Guilds: {len(bot.guilds)}")

    if not SYNC_COMMANDS_ON_READY:
        return
    try:
        synced = await bot.tree.sync()
        logger.info(f"Slash commands synced globally ({len(synced)} top-level commands).")
    except Exception as exc:
        logger.error(f"Failed to sync commands: {exc}", exc_info=True)


@bot.tree.error
async def on_app_command_error(interaction: discord.Interaction, error: discord.app_commands.AppCommandError):
    """Global error handler for app commands - prevents infinite 'thinking...' state."""
    logger.error(
        f"App command error in '{interaction.command.name if interaction.command else 'unknown'}': {error}",
        exc_info=error,
    )
    error_msg = "An error occurred while processing your command. Please try again."

    try:
        if interaction.response.is_done():
            await interaction.followup.send(content=error_msg, ephemeral=True)
        else:
            await interaction.response.send_message(content=error_msg, ephemeral=True)
    except discord.HTTPException as followup_error:
        logger.error(f"Failed to send error message to user: {followup_error}")


def main():
    """Run the bot."""
    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        print("ERROR: DISCORD_BOT_TOKEN not found!")
        return

    try:
        # Pass log_handler=None to prevent discord.py from adding its own handler
        bot.run(token, log_handler=None)
    except KeyboardInterrupt:
        logger.info("Bot stopped by user (Ctrl+C)")
    except Exception as exc:
        logger.error(f"Bot crashed: {exc}", exc_info=True)


if __name__ == "__main__":
    main()

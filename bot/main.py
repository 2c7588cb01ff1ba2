"""Main entry point for the Quizbattle bot."""

import asyncio
import logging
import sys
from pathlib import Path

import discord
from discord.ext import commands

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from bot.services.battle_service import BattleService
from bot.services.question_generator import QuestionGenerator
from config import Config
from db.database import Database

# Configure logging
logging.basicConfig(
    level=getattr(logging, Config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


class QuizbattleBot(commands.Bot):
    """Custom bot class with database and battle service."""

    def __init__(self):
        intents = discord.Intents.default()
        intents.guilds = True

        super().__init__(
            command_prefix="!",  # Fallback prefix, using slash commands primarily
            intents=intents,
            help_command=None,
        )

        self.db: Database = None
        self.battle_service: BattleService = None

    async def setup_hook(self):
        """Called when the bot is starting up."""
        # Initialize database
        self.db = Database(Config.DATABASE_PATH)
        await self.db.connect()
        logger.info(f"Connected to database: {Config.DATABASE_PATH}")

        # Initialize battle service
        self.battle_service = BattleService(self.db, QuestionGenerator())

        # Load cogs
        cogs = [
            "bot.commands.battle",
            "bot.commands.notes",
        ]

        for cog in cogs:
            try:
                await self.load_extension(cog)
                logger.info(f"Loaded cog: {cog}")
            except Exception as e:
                logger.error(f"Failed to load cog {cog}: {e}")

        # Sync slash commands
        logger.info("Syncing slash commands...")
        await self.tree.sync()
        logger.info("Slash commands synced!")

    async def on_ready(self):
        """Called when the bot is fully ready."""
        logger.info(f"Logged in as {self.user} (ID: {self.user.id})")
        logger.info(f"Connected to {len(self.guilds)} guild(s)")

        # Set activity
        activity = discord.Activity(
            type=discord.ActivityType.playing,
            name="/quizbattle",
        )
        await self.change_presence(activity=activity)

    async def close(self):
        """Clean up resources."""
        if self.db:
            await self.db.close()
        await super().close()


async def main():
    """Main entry point."""
    if not Config.DISCORD_TOKEN:
        logger.error("DISCORD_TOKEN not set! Please set it in your .env file.")
        sys.exit(1)

    if not Config.GROQ_API_KEY:
        logger.warning("GROQ_API_KEY not set; battle creation will fail until it is configured.")

    bot = QuizbattleBot()

    try:
        await bot.start(Config.DISCORD_TOKEN)
    except discord.LoginFailure:
        logger.error("Invalid Discord token! Please check your .env file.")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    finally:
        await bot.close()


def run():
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()

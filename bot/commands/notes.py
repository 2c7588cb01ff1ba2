"""Note commands for saving study material."""

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from errors import BattleError
from utils.formatting import format_note_list

if TYPE_CHECKING:
    from bot.main import QuizbattleBot

logger = logging.getLogger(__name__)


class NoteCommands(commands.Cog):
    """Cog for saving and listing study notes."""

    bot: "QuizbattleBot"

    note = app_commands.Group(name="note", description="Saved study notes")

    def __init__(self, bot: "QuizbattleBot"):
        self.bot = bot

    @note.command(name="save", description="Save study material to build battles from")
    @app_commands.describe(title="A short title", content="The study material")
    async def save(self, interaction: discord.Interaction, title: str, content: str):
        await interaction.response.defer(ephemeral=True)

        try:
            note = await self.bot.battle_service.save_note(str(interaction.user.id), title, content)
        except BattleError as e:
            await interaction.followup.send(e.message, ephemeral=True)
            return

        logger.info(f"Saved note {note.id} for {interaction.user}")
        await interaction.followup.send(
            f"Saved note **{note.id}**. Use `/battle create note_id:{note.id}` to battle on it.",
            ephemeral=True,
        )

    @note.command(name="list", description="List your saved notes")
    async def list_notes(self, interaction: discord.Interaction):
        await interaction.response.defer(ephemeral=True)

        try:
            notes = await self.bot.battle_service.list_notes(str(interaction.user.id))
        except BattleError as e:
            await interaction.followup.send(e.message, ephemeral=True)
            return

        await interaction.followup.send(format_note_list(notes), ephemeral=True)


async def setup(bot: "QuizbattleBot"):
    """Load the cog."""
    await bot.add_cog(NoteCommands(bot))

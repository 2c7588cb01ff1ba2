"""Battle commands for Quizbattle."""

import contextlib
import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands, ui
from discord.ext import commands

from config import Config
from errors import BattleError
from utils.formatting import (
    format_answer_outcome,
    format_battle_created,
    format_battle_history,
    format_battle_joined,
    format_battle_status,
    format_data_deletion,
    format_question,
)

if TYPE_CHECKING:
    from bot.main import QuizbattleBot

logger = logging.getLogger(__name__)


class ClearDataConfirmView(ui.View):
    """Confirmation view for clearing user data."""

    def __init__(self, user_id: int, db):
        super().__init__(timeout=60)
        self.user_id = user_id
        self.db = db
        self.confirmed = False

    @ui.button(label="Yes, delete my data", style=discord.ButtonStyle.danger)
    async def confirm(self, interaction: discord.Interaction, button: ui.Button):
        if interaction.user.id != self.user_id:
            await interaction.response.send_message("This confirmation is not for you.", ephemeral=True)
            return

        self.confirmed = True
        self.stop()

        try:
            result = await self.db.delete_user_data(str(self.user_id))
        except BattleError as e:
            await interaction.response.edit_message(content=e.message, view=None)
            return

        await interaction.response.edit_message(content=format_data_deletion(result), view=None)

    @ui.button(label="Cancel", style=discord.ButtonStyle.secondary)
    async def cancel(self, interaction: discord.Interaction, button: ui.Button):
        if interaction.user.id != self.user_id:
            await interaction.response.send_message("This confirmation is not for you.", ephemeral=True)
            return

        self.stop()
        await interaction.response.edit_message(content="Data deletion cancelled.", view=None)


class BattleCommands(commands.Cog):
    """Cog containing all battle commands."""

    bot: "QuizbattleBot"

    battle = app_commands.Group(name="battle", description="Two-player quiz battles")

    def __init__(self, bot: "QuizbattleBot"):
        self.bot = bot

    @battle.command(name="create", description="Create a quiz battle from study material")
    @app_commands.describe(
        source_text="The study material to quiz on",
        note_id="A saved note to quiz on (see /note list)",
        title="A title for the battle",
        questions=f"Number of questions (default: {Config.DEFAULT_QUESTION_COUNT})",
    )
    async def create(
        self,
        interaction: discord.Interaction,
        source_text: str | None = None,
        note_id: int | None = None,
        title: str | None = None,
        questions: app_commands.Range[int, 5, 20] | None = None,
    ):
        """Create a new battle."""
        logger.info(f"Battle create invoked by {interaction.user} (note={note_id}, questions={questions})")
        await interaction.response.defer()

        try:
            summary = await self.bot.battle_service.create_battle(
                str(interaction.user.id),
                source_text=source_text,
                note_id=note_id,
                title=title,
                question_count=questions,
            )
            battle = await self.bot.battle_service.get_battle(summary.id)
        except BattleError as e:
            await interaction.followup.send(e.message, ephemeral=True)
            return

        await interaction.followup.send(
            format_battle_created(summary, battle.title, interaction.guild),
            allowed_mentions=discord.AllowedMentions.none(),
        )

    @battle.command(name="join", description="Join a battle with its code")
    @app_commands.describe(code="The 6-character battle code")
    async def join(self, interaction: discord.Interaction, code: str):
        """Join a battle as the opponent."""
        logger.info(f"Battle join invoked by {interaction.user} with code '{code}'")
        await interaction.response.defer(ephemeral=True)

        try:
            summary = await self.bot.battle_service.join_battle(code, str(interaction.user.id))
        except BattleError as e:
            await interaction.followup.send(e.message, ephemeral=True)
            return

        await interaction.followup.send(format_battle_joined(summary), ephemeral=True)

    @battle.command(name="question", description="Show a question from your battle")
    @app_commands.describe(battle_id="The battle ID", number="Question number, starting at 1")
    async def question(
        self,
        interaction: discord.Interaction,
        battle_id: int,
        number: app_commands.Range[int, 1, 20],
    ):
        """Show one question and its options."""
        await interaction.response.defer(ephemeral=True)

        try:
            view = await self.bot.battle_service.get_question(battle_id, str(interaction.user.id), number - 1)
        except BattleError as e:
            await interaction.followup.send(e.message, ephemeral=True)
            return

        await interaction.followup.send(format_question(view, interaction.guild), ephemeral=True)

    @battle.command(name="answer", description="Answer a question in your battle")
    @app_commands.describe(
        battle_id="The battle ID",
        number="Question number, starting at 1",
        answer="Your answer: the option letter (A-D) or its text",
    )
    async def answer(
        self,
        interaction: discord.Interaction,
        battle_id: int,
        number: app_commands.Range[int, 1, 20],
        answer: str,
    ):
        """Submit an answer."""
        logger.info(f"Battle answer invoked by {interaction.user}: battle={battle_id}, question={number}")
        await interaction.response.defer(ephemeral=True)

        try:
            outcome = await self.bot.battle_service.submit_answer(
                battle_id, str(interaction.user.id), number - 1, answer, letter_choices=True
            )
        except BattleError as e:
            await interaction.followup.send(e.message, ephemeral=True)
            return

        await interaction.followup.send(format_answer_outcome(outcome), ephemeral=True)

    @battle.command(name="status", description="Show scores and progress for a battle")
    @app_commands.describe(battle_id="The battle ID")
    async def status(self, interaction: discord.Interaction, battle_id: int):
        """Show battle status."""
        await interaction.response.defer(ephemeral=True)

        try:
            view = await self.bot.battle_service.get_battle_status(battle_id, str(interaction.user.id))
        except BattleError as e:
            await interaction.followup.send(e.message, ephemeral=True)
            return

        await interaction.followup.send(format_battle_status(view), ephemeral=True)

    @battle.command(name="history", description="Show your recent battles and record")
    async def history(self, interaction: discord.Interaction):
        """Show the caller's battle history."""
        await interaction.response.defer(ephemeral=True)

        user_id = str(interaction.user.id)
        try:
            records, stats = await self.bot.battle_service.list_battles(user_id)
        except BattleError as e:
            await interaction.followup.send(e.message, ephemeral=True)
            return

        await interaction.followup.send(format_battle_history(records, stats, user_id), ephemeral=True)

    @app_commands.command(name="quizbattle", description="Show help for Quizbattle")
    async def help(self, interaction: discord.Interaction):
        """Show help information."""
        help_text = f"""
**Quizbattle**

Turn your study material into a head-to-head quiz!

**How to Play:**
1. Use `/battle create` with some text or a saved note
2. Share the join code; your opponent uses `/battle join`
3. Both of you answer every question with `/battle answer`
4. When everyone has finished, the higher score wins

**Scoring:**
- **{Config.POINTS_PER_CORRECT} points** per correct answer
- Each question can only be answered once

**Commands:**
- `/battle create` - Create a battle
- `/battle join <code>` - Join a battle
- `/battle question <id> <number>` - Show a question
- `/battle answer <id> <number> <answer>` - Answer a question
- `/battle status <id>` - Scores and progress
- `/battle history` - Your recent battles
- `/note save` / `/note list` - Manage study notes
- `/cleardata` - Delete your data
"""
        await interaction.response.send_message(help_text, ephemeral=True)

    @app_commands.command(
        name="cleardata",
        description="Delete all your Quizbattle data",
    )
    async def cleardata(self, interaction: discord.Interaction):
        """Delete all user data with confirmation."""
        logger.info(f"Cleardata command invoked by {interaction.user}")

        view = ClearDataConfirmView(interaction.user.id, self.bot.db)

        await interaction.response.send_message(
            "**Are you sure you want to delete all your Quizbattle data?**\n\n"
            "This will permanently delete:\n"
            "- Your saved notes\n"
            "- Battles you hosted, with their results\n"
            "- Your answers in battles you joined\n\n"
            "This action cannot be undone.",
            view=view,
            ephemeral=True,
        )

        # Handle timeout
        await view.wait()
        if not view.confirmed and not interaction.is_expired():
            with contextlib.suppress(discord.NotFound):
                await interaction.edit_original_response(content="Data deletion timed out.", view=None)


async def setup(bot: "QuizbattleBot"):
    """Load the cog."""
    await bot.add_cog(BattleCommands(bot))

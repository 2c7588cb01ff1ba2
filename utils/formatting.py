"""Message formatting utilities for the battle display."""

import re
from datetime import datetime, timezone
from typing import Optional

import discord

from bot.services.scoring_service import OPTION_LETTERS
from models import (
    AnswerOutcome,
    BattleRecord,
    BattleStats,
    BattleStatus,
    BattleStatusView,
    BattleSummary,
    Note,
    QuestionView,
    UserDataDeletion,
)

# URL pattern for detecting links
URL_PATTERN = re.compile(r"https?://\S+")

# Discord mention patterns (user, role and mass mentions)
USER_MENTION_PATTERN = re.compile(r"<@!?(\d+)>")
ROLE_MENTION_PATTERN = re.compile(r"<@&(\d+)>")
EVERYONE_MENTION_PATTERN = re.compile(r"@(everyone|here)")

# Discord message limit
DISCORD_MAX_LENGTH = 2000

STATUS_LABELS = {
    BattleStatus.WAITING: "⏳ Waiting for an opponent",
    BattleStatus.ACTIVE: "⚔️ In progress",
    BattleStatus.COMPLETED: "🏁 Completed",
}


def suppress_url_embeds(text: str) -> str:
    """Wrap URLs in angle brackets to suppress Discord embeds."""
    return URL_PATTERN.sub(r"<\g<0>>", text)


def escape_mentions(text: str, guild: discord.Guild | None) -> str:
    """Escape Discord mentions to prevent notifications.

    Generated question text and user-supplied titles can contain anything,
    including mention syntax.
    """

    def replace_user_mention(match: re.Match[str]) -> str:
        user_id = int(match.group(1))
        if guild:
            member = guild.get_member(user_id)
            if member:
                return f"`@{member.display_name}`"
        return "`@user`"

    def replace_role_mention(match: re.Match[str]) -> str:
        role_id = int(match.group(1))
        if guild:
            role = guild.get_role(role_id)
            if role:
                return f"`@{role.name}`"
        return "`@role`"

    text = EVERYONE_MENTION_PATTERN.sub(r"`@\g<1>`", text)
    text = USER_MENTION_PATTERN.sub(replace_user_mention, text)
    text = ROLE_MENTION_PATTERN.sub(replace_role_mention, text)
    return text


def format_timestamp(value: datetime, style: str = "f") -> str:
    """Format a datetime for Discord display.

    Styles:
        t - Short time (16:20)
        f - Short date/time (20 April 2021 16:20) [default]
        R - Relative (2 months ago)
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return f"<t:{int(value.timestamp())}:{style}>"


def format_duration(seconds: int) -> str:
    """Format a duration as '1m 05s' or '42s'."""
    minutes, secs = divmod(max(0, seconds), 60)
    if minutes:
        return f"{minutes}m {secs:02d}s"
    return f"{secs}s"


def format_battle_created(summary: BattleSummary, title: str, guild: discord.Guild | None = None) -> str:
    """Format the announcement for a newly created battle."""
    title = escape_mentions(title, guild)
    return "\n".join(
        [
            f"# ⚔️ {title}",
            "",
            f"**Join code:** `{summary.code}`",
            f"**Questions:** {summary.question_count}",
            f"**Battle ID:** {summary.id}",
            "",
            "Share the code and have your opponent use `/battle join`.",
            "Use `/battle question` to see a question and `/battle answer` to answer it.",
        ]
    )


def format_battle_joined(summary: BattleSummary) -> str:
    """Format the confirmation shown after joining."""
    return (
        f"You're in battle **{summary.id}** (`{summary.code}`) - {STATUS_LABELS[summary.status]}.\n"
        f"Answer all {summary.question_count} questions with `/battle answer`."
    )


def format_question(view: QuestionView, guild: discord.Guild | None = None) -> str:
    """Format a question and its options. Never includes the correct answer."""
    text = suppress_url_embeds(escape_mentions(view.question, guild))
    lines = [
        f"**Question {view.index + 1} of {view.question_count}**",
        f"> {text}",
        "",
    ]
    for letter, option in zip(OPTION_LETTERS, view.options):
        option_text = suppress_url_embeds(escape_mentions(option, guild))
        lines.append(f"**{letter}.** {option_text}")
    return "\n".join(lines)


def format_answer_outcome(outcome: AnswerOutcome, question_count: Optional[int] = None) -> str:
    """Format the reply to an answer submission."""
    verdict = "✅ Correct!" if outcome.correct else "❌ Not quite."
    progress = (
        f"{outcome.total_answered}/{question_count}" if question_count else f"{outcome.total_answered}"
    )
    lines = [f"{verdict} Score: **{outcome.score}** pts ({progress} answered)"]
    if outcome.completed:
        lines.append("🏁 The battle is over! Use `/battle status` to see the result.")
    return "\n".join(lines)


def format_battle_status(view: BattleStatusView) -> str:
    """Format a battle's scores and progress for one of its participants."""
    summary = view.summary
    lines = [
        f"# {view.title}",
        "",
        f"**Status:** {STATUS_LABELS[summary.status]}",
        f"**Code:** `{summary.code}`",
        "",
    ]

    progress = {participant.user_id: participant for participant in view.participants}

    def side_line(label: str, user_id: str, score: int) -> str:
        participant = progress.get(user_id)
        answered = participant.total_answered if participant else 0
        return f"{label}: <@{user_id}> - **{score}** pts ({answered}/{summary.question_count} answered)"

    lines.append(side_line("🏠 Host", view.host_id, view.host_score))
    if view.opponent_id:
        lines.append(side_line("🎯 Opponent", view.opponent_id, view.opponent_score))
    else:
        lines.append("🎯 Opponent: *nobody yet*")

    if view.started_at:
        lines.append(f"**Started:** {format_timestamp(view.started_at, 'R')}")

    if view.result:
        lines.append("")
        if view.result.winner_id:
            lines.append(f"🏆 **Winner:** <@{view.result.winner_id}>")
        else:
            lines.append("🤝 **It's a tie!**")
        lines.append(f"**Duration:** {format_duration(view.result.duration_seconds)}")

    return "\n".join(lines)


def format_battle_history(records: list[BattleRecord], stats: BattleStats, user_id: str, limit: int = 10) -> str:
    """Format a user's battle history and record."""
    lines = [
        "## 📜 Battle History",
        "",
        f"**Completed:** {stats.total} | **Wins:** {stats.wins} | **Losses:** {stats.losses} | **Ties:** {stats.ties}",
        "",
    ]

    if not records:
        lines.append("*No battles yet! Start one with `/battle create`*")
        return "\n".join(lines)

    for record in records[:limit]:
        battle = record.battle
        if record.result is None:
            outcome = STATUS_LABELS[battle.status]
        elif record.result.winner_id is None:
            outcome = "🤝 Tie"
        elif record.result.winner_id == user_id:
            outcome = "🏆 Won"
        else:
            outcome = "💀 Lost"
        lines.append(
            f"**{battle.id}.** {battle.title} (`{battle.code}`) - "
            f"{battle.host_score}-{battle.opponent_score} - {outcome}"
        )

    return "\n".join(lines)


def format_note_list(notes: list[Note]) -> str:
    """Format a user's saved notes, truncated to fit one message."""
    if not notes:
        return "*You haven't saved any notes yet. Use `/note save`.*"

    lines = ["## 🗒️ Your Notes", ""]
    for note in notes:
        preview = note.content.replace("\n", " ")
        if len(preview) > 80:
            preview = preview[:77] + "..."
        line = f"**{note.id}.** {note.title} - {preview}"
        if len("\n".join(lines + [line])) > DISCORD_MAX_LENGTH:
            break
        lines.append(line)
    return "\n".join(lines)


def format_data_deletion(result: UserDataDeletion) -> str:
    """Format the confirmation after deleting a user's data."""
    return (
        f"Your data has been deleted:\n"
        f"- {result.notes} note(s) removed\n"
        f"- {result.battles} battle(s) removed\n"
        f"- {result.answers} answer(s) removed"
    )

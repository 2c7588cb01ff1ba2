"""Scoring service for calculating battle scores."""

import math
from datetime import datetime, timezone
from typing import Optional

from config import Config

OPTION_LETTERS = "ABCD"


def resolve_option_letter(options: list[str], answer: str) -> str:
    """Map a bare option letter (A-D) to that option's text.

    An answer that already matches an option's text is kept as is, so a
    one-character option is never remapped. Anything else is returned
    unchanged.
    """
    if any(is_correct_answer(answer, option) for option in options):
        return answer
    letter = answer.strip().upper()
    if len(letter) == 1 and letter in OPTION_LETTERS:
        index = OPTION_LETTERS.index(letter)
        if index < len(options):
            return options[index]
    return answer


def is_correct_answer(submitted: str, correct_answer: str) -> bool:
    """Check an answer against the stored correct answer.

    Exact match after trimming and case-folding; no fuzzy matching.
    """
    return submitted.strip().casefold() == correct_answer.strip().casefold()


def calculate_answer_points(correct: bool, points_per_correct: Optional[int] = None) -> int:
    """Points awarded for a single answer."""
    points = Config.POINTS_PER_CORRECT if points_per_correct is None else points_per_correct
    return points if correct else 0


def is_battle_complete(
    question_count: int,
    host_answered: int,
    opponent_id: Optional[str],
    opponent_answered: int,
) -> bool:
    """Check if every participant has answered every question.

    A battle nobody joined completes as soon as the host finishes.
    """
    if host_answered != question_count:
        return False
    return opponent_id is None or opponent_answered == question_count


def determine_winner(
    host_id: str,
    opponent_id: Optional[str],
    host_score: int,
    opponent_score: int,
) -> Optional[str]:
    """Return the ID of the side with the strictly higher score, or None on a tie."""
    if host_score == opponent_score:
        return None
    return host_id if host_score > opponent_score else opponent_id


def calculate_duration_seconds(started_at: Optional[datetime], ended_at: datetime) -> int:
    """Whole seconds between start and end, never less than 1."""
    if started_at is None:
        return 1
    if started_at.tzinfo is None:
        started_at = started_at.replace(tzinfo=timezone.utc)
    if ended_at.tzinfo is None:
        ended_at = ended_at.replace(tzinfo=timezone.utc)
    elapsed = (ended_at - started_at).total_seconds()
    return max(1, math.floor(elapsed))

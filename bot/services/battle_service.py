"""Battle service for managing quiz battles.

A battle moves waiting -> active -> completed. The host creates it (waiting),
a second user joins with the code (active), and every accepted answer
re-evaluates whether both sides have finished (completed). All state lives in
the database; races are settled there by conditional updates and uniqueness
constraints.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

import aiosqlite

from bot.services.question_generator import QuestionGenerator
from bot.services.scoring_service import (
    calculate_answer_points,
    calculate_duration_seconds,
    determine_winner,
    is_battle_complete,
    is_correct_answer,
    resolve_option_letter,
)
from config import Config
from db.database import Database
from errors import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
    UnauthorizedError,
)
from models import (
    AnswerOutcome,
    Battle,
    BattleRecord,
    BattleStats,
    BattleStatus,
    BattleStatusView,
    BattleSummary,
    Note,
    ParticipantProgress,
    QuestionView,
)
from utils.codes import CODE_ALPHABET, generate_code, normalize_code

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Study Battle"


def clamp_question_count(question_count: Optional[int]) -> int:
    """Clamp a requested question count into the allowed range."""
    if question_count is None:
        question_count = Config.DEFAULT_QUESTION_COUNT
    return max(Config.MIN_QUESTION_COUNT, min(Config.MAX_QUESTION_COUNT, int(question_count)))


def _require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise UnauthorizedError()
    return str(user_id)


class BattleService:
    """Service for creating, joining and playing battles."""

    def __init__(
        self,
        db: Database,
        generator: QuestionGenerator,
        points_per_correct: Optional[int] = None,
        code_max_retries: Optional[int] = None,
        code_length: Optional[int] = None,
    ):
        self.db = db
        self.generator = generator
        self.points_per_correct = (
            Config.POINTS_PER_CORRECT if points_per_correct is None else points_per_correct
        )
        self.code_max_retries = Config.CODE_MAX_RETRIES if code_max_retries is None else code_max_retries
        self.code_length = code_length or Config.CODE_LENGTH

    # Registry

    async def create_battle(
        self,
        host_id: Optional[str],
        *,
        source_text: Optional[str] = None,
        note_id: Optional[int] = None,
        title: Optional[str] = None,
        question_count: Optional[int] = None,
    ) -> BattleSummary:
        """Generate questions from study material and open a new battle.

        Source text wins over the note when both are given.
        """
        host_id = _require_user(host_id)
        count = clamp_question_count(question_count)

        text = (source_text or "").strip()
        if not text and note_id is not None:
            note = await self.db.get_note(note_id)
            if not note or note.user_id != host_id:
                raise NotFoundError("Note not found.")
            text = note.content.strip()

        if not text:
            raise InvalidInputError("Source text or a note is required.")

        logger.info(f"Generating {count} questions for a battle by {host_id}")
        questions = await self.generator.generate_questions(text, count)

        code = await self._allocate_code()
        battle_title = (title or "").strip() or DEFAULT_TITLE

        try:
            battle_id = await self.db.create_battle(
                code=code,
                title=battle_title,
                host_id=host_id,
                questions=questions,
                note_id=note_id,
            )
        except aiosqlite.IntegrityError as e:
            logger.warning(f"Join code {code} collided on insert: {e}")
            raise ConflictError("Couldn't allocate a battle code. Please try again.") from e

        battle = await self.db.get_battle(battle_id)
        logger.info(f"Created battle {battle_id} ({code}) with {battle.question_count} questions")
        return BattleSummary.from_battle(battle)

    async def _allocate_code(self) -> str:
        """Pick a join code, retrying a bounded number of times on collision.

        If every attempt collides the last candidate is used anyway and the
        insert's uniqueness constraint decides.
        """
        code = generate_code(CODE_ALPHABET, self.code_length)
        for _ in range(self.code_max_retries):
            if not await self.db.code_exists(code):
                return code
            logger.debug(f"Join code {code} already taken, retrying")
            code = generate_code(CODE_ALPHABET, self.code_length)
        return code

    async def get_battle(self, battle_id: int) -> Battle:
        battle = await self.db.get_battle(battle_id)
        if not battle:
            raise NotFoundError("Battle not found.")
        return battle

    async def get_battle_by_code(self, code: str) -> Battle:
        battle = await self.db.get_battle_by_code(normalize_code(code))
        if not battle:
            raise NotFoundError("Battle not found.")
        return battle

    # Membership

    async def join_battle(self, code: str, user_id: Optional[str]) -> BattleSummary:
        """Admit user_id as the opponent of the battle with this code.

        The host joining their own battle, and the opponent joining again, are
        no-ops that return the current state.
        """
        user_id = _require_user(user_id)
        normalized = normalize_code(code)
        if not normalized:
            raise InvalidInputError("Battle code is required.")

        battle = await self.get_battle_by_code(normalized)

        if battle.host_id == user_id or battle.opponent_id == user_id:
            return BattleSummary.from_battle(battle)

        if battle.opponent_id:
            raise ConflictError("Battle already has an opponent.")

        if battle.status == BattleStatus.COMPLETED:
            raise ConflictError("Battle has already finished.")

        claimed = await self.db.assign_opponent(battle.id, user_id, datetime.now(timezone.utc))
        if not claimed:
            # Someone else took the slot between our read and the update
            raise ConflictError("Battle already has an opponent.")

        battle = await self.get_battle(battle.id)
        logger.info(f"User {user_id} joined battle {battle.id} ({battle.code})")
        return BattleSummary.from_battle(battle)

    # Answers

    async def submit_answer(
        self,
        battle_id: int,
        user_id: Optional[str],
        question_index: int,
        answer: str,
        *,
        letter_choices: bool = False,
    ) -> AnswerOutcome:
        """Record a participant's answer and check whether the battle is over.

        With letter_choices, a bare option letter (A-D) is read as that
        option of the question.
        """
        user_id = _require_user(user_id)
        answer = (answer or "").strip()
        if question_index is None or question_index < 0 or not answer:
            raise InvalidInputError("A question number and an answer are required.")

        battle = await self.get_battle(battle_id)

        if not battle.status.accepts_answers:
            raise ConflictError("Battle is not active.")

        if not battle.is_party(user_id):
            raise ForbiddenError()

        if question_index >= len(battle.questions):
            raise NotFoundError("Question not found.")
        question = battle.questions[question_index]
        if letter_choices:
            answer = resolve_option_letter(question.options, answer)

        participant = await self.db.get_participant(battle.id, user_id)
        if not participant:
            raise NotFoundError("Participant record missing.")

        if participant.has_answered(question_index):
            raise ConflictError("Question already answered.")

        correct = is_correct_answer(answer, question.correct_answer)
        points = calculate_answer_points(correct, self.points_per_correct)
        now = datetime.now(timezone.utc)

        recorded = await self.db.add_answer(
            battle_id=battle.id,
            user_id=user_id,
            question_index=question_index,
            answer=answer,
            correct=correct,
            points=points,
            submitted_at=now,
        )
        if not recorded:
            # A concurrent submission for the same question got there first
            raise ConflictError("Question already answered.")

        completed = await self._evaluate_completion(battle.id, user_id, now)

        updated = await self.db.get_participant(battle.id, user_id)
        return AnswerOutcome(
            correct=correct,
            score=updated.score,
            total_answered=updated.total_answered,
            completed=completed,
        )

    # Completion

    async def _evaluate_completion(self, battle_id: int, answered_by: str, now: datetime) -> bool:
        """Finalize the battle if everyone is done, else store a progress snapshot.

        Returns True if the battle is completed.
        """
        battle = await self.get_battle(battle_id)
        host = await self.db.get_participant(battle.id, battle.host_id)
        opponent = (
            await self.db.get_participant(battle.id, battle.opponent_id) if battle.opponent_id else None
        )

        host_score = host.score if host else 0
        opponent_score = opponent.score if opponent else 0
        host_answered = host.total_answered if host else 0
        opponent_answered = opponent.total_answered if opponent else 0

        if not is_battle_complete(battle.question_count, host_answered, battle.opponent_id, opponent_answered):
            # Status follows opponent presence: a host playing alone stays waiting
            status = BattleStatus.ACTIVE if battle.opponent_id else BattleStatus.WAITING
            await self.db.record_progress(
                battle.id,
                host_score=host_score,
                opponent_score=opponent_score,
                answered_by_host=answered_by == battle.host_id,
                answered_at=now,
                status=status,
            )
            return False

        if not await self.db.complete_battle(battle.id, host_score, opponent_score, now):
            logger.debug(f"Battle {battle.id} was already completed by another submission")
            return True

        winner_id = determine_winner(battle.host_id, battle.opponent_id, host_score, opponent_score)
        duration = calculate_duration_seconds(battle.started_at, now)
        await self.db.upsert_battle_result(
            battle.id,
            winner_id=winner_id,
            host_score=host_score,
            opponent_score=opponent_score,
            duration_seconds=duration,
        )
        logger.info(
            f"Battle {battle.id} completed: {host_score}-{opponent_score}, "
            f"winner={winner_id or 'tie'}, duration={duration}s"
        )
        return True

    # Views

    async def _get_battle_for_party(self, battle_id: int, user_id: Optional[str]) -> Battle:
        user_id = _require_user(user_id)
        battle = await self.get_battle(battle_id)
        if not battle.is_party(user_id):
            raise ForbiddenError()
        return battle

    async def get_question(self, battle_id: int, user_id: Optional[str], question_index: int) -> QuestionView:
        """Show a question to a participant without its correct answer."""
        battle = await self._get_battle_for_party(battle_id, user_id)
        if question_index < 0 or question_index >= len(battle.questions):
            raise NotFoundError("Question not found.")
        question = battle.questions[question_index]
        return QuestionView(
            index=question_index,
            question_count=battle.question_count,
            question=question.question,
            options=list(question.options),
        )

    async def get_battle_status(self, battle_id: int, user_id: Optional[str]) -> BattleStatusView:
        """Current scores and progress of a battle, for its participants."""
        battle = await self._get_battle_for_party(battle_id, user_id)
        participants = await self.db.get_participants(battle.id)
        result = await self.db.get_battle_result(battle.id)
        return BattleStatusView(
            summary=BattleSummary.from_battle(battle),
            title=battle.title,
            host_id=battle.host_id,
            opponent_id=battle.opponent_id,
            host_score=battle.host_score,
            opponent_score=battle.opponent_score,
            started_at=battle.started_at,
            completed_at=battle.completed_at,
            participants=[
                ParticipantProgress(
                    user_id=participant.user_id,
                    score=participant.score,
                    correct_count=participant.correct_count,
                    total_answered=participant.total_answered,
                )
                for participant in participants
            ],
            result=result,
        )

    async def list_battles(
        self, user_id: Optional[str], limit: Optional[int] = None
    ) -> tuple[list[BattleRecord], BattleStats]:
        """A user's recent battles and their win/loss record over them."""
        user_id = _require_user(user_id)
        records = await self.db.get_battles_for_user(user_id, limit or Config.BATTLE_HISTORY_LIMIT)
        return records, calculate_battle_stats(records, user_id)

    # Notes

    async def save_note(self, user_id: Optional[str], title: str, content: str) -> Note:
        user_id = _require_user(user_id)
        content = (content or "").strip()
        if not content:
            raise InvalidInputError("Note content is required.")
        note_title = (title or "").strip() or "Untitled note"
        note_id = await self.db.create_note(user_id, note_title, content)
        return await self.db.get_note(note_id)

    async def list_notes(self, user_id: Optional[str]) -> list[Note]:
        user_id = _require_user(user_id)
        return await self.db.get_notes_for_user(user_id)


def calculate_battle_stats(records: list[BattleRecord], user_id: str) -> BattleStats:
    """Count completed battles, wins, losses and ties for user_id."""
    stats = BattleStats()
    for record in records:
        if record.battle.status == BattleStatus.COMPLETED:
            stats.total += 1
        if record.result is None:
            continue
        if record.result.winner_id is None:
            stats.ties += 1
        elif record.result.winner_id == user_id:
            stats.wins += 1
        else:
            stats.losses += 1
    return stats

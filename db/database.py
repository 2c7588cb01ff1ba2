import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import aiosqlite

from errors import DependencyUnavailableError
from models import (
    AnswerRecord,
    Battle,
    BattleParticipant,
    BattleQuestion,
    BattleRecord,
    BattleResult,
    BattleStatus,
    Note,
    UserDataDeletion,
)

logger = logging.getLogger(__name__)


class Database:
    """Async SQLite database wrapper."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._connection: Optional[aiosqlite.Connection] = None

    async def connect(self) -> None:
        """Connect to the database and run migrations."""
        try:
            self._connection = await aiosqlite.connect(self.db_path)
        except aiosqlite.OperationalError as e:
            raise DependencyUnavailableError("database", str(e)) from e
        self._connection.row_factory = aiosqlite.Row
        await self._connection.execute("PRAGMA foreign_keys = ON")
        await self._run_migrations()

    async def close(self) -> None:
        """Close the database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    async def _run_migrations(self) -> None:
        """Run all SQL migration files."""
        # Create migrations tracking table
        await self._connection.execute("""
            CREATE TABLE IF NOT EXISTS _migrations (
                name TEXT PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        await self._connection.commit()

        migrations_dir = Path(__file__).parent / "migrations"

        for migration_file in sorted(migrations_dir.glob("*.sql")):
            # Check if migration already applied
            cursor = await self._connection.execute(
                "SELECT 1 FROM _migrations WHERE name = ?",
                (migration_file.name,)
            )
            if await cursor.fetchone():
                logger.debug(f"Skipping already applied migration: {migration_file.name}")
                continue

            logger.info(f"Running migration: {migration_file.name}")
            sql = migration_file.read_text()
            await self._connection.executescript(sql)
            await self._connection.execute(
                "INSERT INTO _migrations (name) VALUES (?)",
                (migration_file.name,)
            )
            await self._connection.commit()

    async def execute(
        self, query: str, params: tuple = ()
    ) -> aiosqlite.Cursor:
        """Execute a query and return the cursor."""
        try:
            cursor = await self._connection.execute(query, params)
            await self._connection.commit()
        except aiosqlite.OperationalError as e:
            raise DependencyUnavailableError("database", str(e)) from e
        return cursor

    async def fetch_one(
        self, query: str, params: tuple = ()
    ) -> Optional[aiosqlite.Row]:
        """Fetch a single row."""
        try:
            cursor = await self._connection.execute(query, params)
            return await cursor.fetchone()
        except aiosqlite.OperationalError as e:
            raise DependencyUnavailableError("database", str(e)) from e

    async def fetch_all(
        self, query: str, params: tuple = ()
    ) -> list[aiosqlite.Row]:
        """Fetch all rows."""
        try:
            cursor = await self._connection.execute(query, params)
            return await cursor.fetchall()
        except aiosqlite.OperationalError as e:
            raise DependencyUnavailableError("database", str(e)) from e

    async def fetch_value(
        self, query: str, params: tuple = ()
    ) -> Optional[Any]:
        """Fetch a single value from the first column of the first row."""
        row = await self.fetch_one(query, params)
        return row[0] if row else None

    # Notes methods

    async def create_note(self, user_id: str, title: str, content: str) -> int:
        """Save a note. Returns the note ID."""
        cursor = await self.execute(
            "INSERT INTO notes (user_id, title, content) VALUES (?, ?, ?)",
            (user_id, title, content),
        )
        return cursor.lastrowid

    async def get_note(self, note_id: int) -> Optional[Note]:
        """Get a note by ID, regardless of owner."""
        row = await self.fetch_one("SELECT * FROM notes WHERE id = ?", (note_id,))
        return Note(**dict(row)) if row else None

    async def get_notes_for_user(self, user_id: str, limit: int = 25) -> list[Note]:
        """Get a user's notes, newest first."""
        rows = await self.fetch_all(
            """
            SELECT * FROM notes
            WHERE user_id = ?
            ORDER BY created_at DESC, id DESC
            LIMIT ?
            """,
            (user_id, limit),
        )
        return [Note(**dict(row)) for row in rows]

    # Battle methods

    async def code_exists(self, code: str) -> bool:
        """Check if a join code is already taken."""
        result = await self.fetch_value("SELECT 1 FROM battles WHERE code = ?", (code,))
        return result is not None

    async def create_battle(
        self,
        code: str,
        title: str,
        host_id: str,
        questions: list[BattleQuestion],
        note_id: Optional[int] = None,
    ) -> int:
        """Create a waiting battle. Returns the battle ID.

        The host's participant row is inserted by a trigger in the same statement.
        Raises aiosqlite.IntegrityError if the code is already taken.
        """
        payload = json.dumps([question.model_dump() for question in questions])
        cursor = await self.execute(
            """
            INSERT INTO battles (code, title, note_id, status, question_count, questions, host_id)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                code,
                title,
                note_id,
                BattleStatus.WAITING.value,
                len(questions),
                payload,
                host_id,
            ),
        )
        return cursor.lastrowid

    async def get_battle(self, battle_id: int) -> Optional[Battle]:
        """Get a battle by ID."""
        row = await self.fetch_one("SELECT * FROM battles WHERE id = ?", (battle_id,))
        return Battle(**dict(row)) if row else None

    async def get_battle_by_code(self, code: str) -> Optional[Battle]:
        """Get a battle by its (uppercase) join code."""
        row = await self.fetch_one("SELECT * FROM battles WHERE code = ?", (code,))
        return Battle(**dict(row)) if row else None

    async def assign_opponent(self, battle_id: int, user_id: str, started_at: datetime) -> bool:
        """Claim the opponent slot and activate the battle.

        Succeeds only if the slot is empty or already held by this user and the
        battle hasn't completed. An existing started_at is kept. Returns True if
        the slot is now held by user_id.
        """
        cursor = await self.execute(
            """
            UPDATE battles
            SET opponent_id = ?,
                status = ?,
                started_at = COALESCE(started_at, ?)
            WHERE id = ?
              AND (opponent_id IS NULL OR opponent_id = ?)
              AND status != ?
            """,
            (
                user_id,
                BattleStatus.ACTIVE.value,
                started_at.isoformat(),
                battle_id,
                user_id,
                BattleStatus.COMPLETED.value,
            ),
        )
        return cursor.rowcount == 1

    async def get_participant(self, battle_id: int, user_id: str) -> Optional[BattleParticipant]:
        """Get a participant with their answers in submission order."""
        row = await self.fetch_one(
            "SELECT * FROM battle_participants WHERE battle_id = ? AND user_id = ?",
            (battle_id, user_id),
        )
        if not row:
            return None

        answer_rows = await self.fetch_all(
            """
            SELECT question_index, answer, correct, points, submitted_at
            FROM battle_answers
            WHERE battle_id = ? AND user_id = ?
            ORDER BY id
            """,
            (battle_id, user_id),
        )
        return BattleParticipant(
            **dict(row),
            answers=[AnswerRecord(**dict(answer)) for answer in answer_rows],
        )

    async def get_participants(self, battle_id: int) -> list[BattleParticipant]:
        """Get all participants of a battle (without answers), in join order."""
        rows = await self.fetch_all(
            """
            SELECT * FROM battle_participants
            WHERE battle_id = ?
            ORDER BY joined_at, rowid
            """,
            (battle_id,),
        )
        return [BattleParticipant(**dict(row)) for row in rows]

    async def add_answer(
        self,
        battle_id: int,
        user_id: str,
        question_index: int,
        answer: str,
        correct: bool,
        points: int,
        submitted_at: datetime,
    ) -> bool:
        """Record an answer. Returns False if this question was already answered.

        The participant's score and counters are updated by a trigger in the
        same statement.
        """
        cursor = await self.execute(
            """
            INSERT INTO battle_answers
            (battle_id, user_id, question_index, answer, correct, points, submitted_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(battle_id, user_id, question_index) DO NOTHING
            """,
            (
                battle_id,
                user_id,
                question_index,
                answer,
                correct,
                points,
                submitted_at.isoformat(),
            ),
        )
        return cursor.rowcount == 1

    async def record_progress(
        self,
        battle_id: int,
        host_score: int,
        opponent_score: int,
        answered_by_host: bool,
        answered_at: datetime,
        status: BattleStatus,
    ) -> None:
        """Store a score snapshot for a battle that is still running."""
        answered_column = "host_answered_at" if answered_by_host else "opponent_answered_at"
        await self.execute(
            f"""
            UPDATE battles
            SET host_score = ?,
                opponent_score = ?,
                {answered_column} = ?,
                status = ?
            WHERE id = ? AND status != ?
            """,
            (
                host_score,
                opponent_score,
                answered_at.isoformat(),
                status.value,
                battle_id,
                BattleStatus.COMPLETED.value,
            ),
        )

    async def complete_battle(
        self,
        battle_id: int,
        host_score: int,
        opponent_score: int,
        completed_at: datetime,
    ) -> bool:
        """Move a battle to completed. Returns True only for the caller that made the change."""
        cursor = await self.execute(
            """
            UPDATE battles
            SET status = ?,
                host_score = ?,
                opponent_score = ?,
                completed_at = ?
            WHERE id = ? AND status != ?
            """,
            (
                BattleStatus.COMPLETED.value,
                host_score,
                opponent_score,
                completed_at.isoformat(),
                battle_id,
                BattleStatus.COMPLETED.value,
            ),
        )
        return cursor.rowcount == 1

    async def upsert_battle_result(
        self,
        battle_id: int,
        winner_id: Optional[str],
        host_score: int,
        opponent_score: int,
        duration_seconds: int,
    ) -> None:
        """Insert or update the result row for a battle."""
        await self.execute(
            """
            INSERT INTO battle_results (battle_id, winner_id, host_score, opponent_score, duration_seconds)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(battle_id) DO UPDATE SET
                winner_id = excluded.winner_id,
                host_score = excluded.host_score,
                opponent_score = excluded.opponent_score,
                duration_seconds = excluded.duration_seconds
            """,
            (battle_id, winner_id, host_score, opponent_score, duration_seconds),
        )

    async def get_battle_result(self, battle_id: int) -> Optional[BattleResult]:
        """Get the result for a battle, if it has completed."""
        row = await self.fetch_one(
            """
            SELECT battle_id, winner_id, host_score, opponent_score, duration_seconds, created_at
            FROM battle_results
            WHERE battle_id = ?
            """,
            (battle_id,),
        )
        return BattleResult(**dict(row)) if row else None

    async def get_battles_for_user(self, user_id: str, limit: int = 100) -> list[BattleRecord]:
        """Get battles a user hosted or joined, newest first, with their results."""
        rows = await self.fetch_all(
            """
            SELECT * FROM battles
            WHERE host_id = ? OR opponent_id = ?
            ORDER BY created_at DESC, id DESC
            LIMIT ?
            """,
            (user_id, user_id, limit),
        )
        records = []
        for row in rows:
            battle = Battle(**dict(row))
            result = await self.get_battle_result(battle.id)
            records.append(BattleRecord(battle=battle, result=result))
        return records

    # Data deletion methods

    async def delete_user_data(self, user_id: str) -> UserDataDeletion:
        """Delete a user's notes and every battle they host or joined.

        Battles go as a whole, so none is left with a missing participant.
        """
        answers = await self.fetch_value(
            "SELECT COUNT(*) FROM battle_answers WHERE user_id = ?",
            (user_id,),
        )

        # Participants, answers and results cascade from the battle
        battles_cursor = await self.execute(
            "DELETE FROM battles WHERE host_id = ? OR opponent_id = ?",
            (user_id, user_id),
        )
        notes_cursor = await self.execute(
            "DELETE FROM notes WHERE user_id = ?",
            (user_id,),
        )

        result = UserDataDeletion(
            notes=notes_cursor.rowcount,
            battles=battles_cursor.rowcount,
            answers=answers or 0,
        )
        logger.info(f"Deleted data for user {user_id}: {result}")
        return result

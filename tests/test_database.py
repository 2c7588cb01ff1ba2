"""Tests for database operations."""

from datetime import datetime, timezone

import aiosqlite
import pytest
import pytest_asyncio

from db.database import Database
from models import BattleQuestion, BattleStatus

QUESTIONS = [
    BattleQuestion(question="Capital of France?", options=["Paris", "London"], correct_answer="Paris"),
    BattleQuestion(question="2 + 2?", options=["3", "4", "5"], correct_answer="4"),
]


@pytest_asyncio.fixture
async def db():
    """Create an in-memory database for testing."""
    database = Database(":memory:")
    await database.connect()
    yield database
    await database.close()


async def make_battle(db, code="ABCDEF", host_id="host1") -> int:
    return await db.create_battle(code=code, title="Test", host_id=host_id, questions=QUESTIONS)


def now():
    return datetime.now(timezone.utc)


class TestDatabaseConnection:
    @pytest.mark.asyncio
    async def test_connect_and_close(self):
        db = Database(":memory:")
        await db.connect()
        assert db._connection is not None
        await db.close()
        assert db._connection is None

    @pytest.mark.asyncio
    async def test_migrations_recorded(self, db):
        names = await db.fetch_all("SELECT name FROM _migrations")
        assert [row["name"] for row in names] == ["001_initial.sql"]

    @pytest.mark.asyncio
    async def test_migrations_not_reapplied(self, tmp_path):
        path = str(tmp_path / "battles.db")
        first = Database(path)
        await first.connect()
        await make_battle(first)
        await first.close()

        second = Database(path)
        await second.connect()
        assert await second.fetch_value("SELECT COUNT(*) FROM battles") == 1
        await second.close()


class TestBattles:
    @pytest.mark.asyncio
    async def test_create_battle(self, db):
        battle_id = await make_battle(db)

        battle = await db.get_battle(battle_id)
        assert battle.code == "ABCDEF"
        assert battle.status == BattleStatus.WAITING
        assert battle.question_count == 2
        assert battle.questions == QUESTIONS
        assert battle.opponent_id is None

    @pytest.mark.asyncio
    async def test_host_participant_created_with_battle(self, db):
        battle_id = await make_battle(db)

        participants = await db.get_participants(battle_id)
        assert len(participants) == 1
        assert participants[0].user_id == "host1"
        assert participants[0].total_answered == 0

    @pytest.mark.asyncio
    async def test_duplicate_code_rejected(self, db):
        await make_battle(db)

        with pytest.raises(aiosqlite.IntegrityError):
            await make_battle(db, host_id="host2")

    @pytest.mark.asyncio
    async def test_code_exists(self, db):
        assert await db.code_exists("ABCDEF") is False
        await make_battle(db)
        assert await db.code_exists("ABCDEF") is True

    @pytest.mark.asyncio
    async def test_get_battle_by_code(self, db):
        battle_id = await make_battle(db)

        battle = await db.get_battle_by_code("ABCDEF")
        assert battle.id == battle_id
        assert await db.get_battle_by_code("ZZZZZZ") is None

    @pytest.mark.asyncio
    async def test_missing_battle(self, db):
        assert await db.get_battle(123) is None


class TestAssignOpponent:
    @pytest.mark.asyncio
    async def test_assign_opponent(self, db):
        battle_id = await make_battle(db)

        assert await db.assign_opponent(battle_id, "opp1", now()) is True

        battle = await db.get_battle(battle_id)
        assert battle.opponent_id == "opp1"
        assert battle.status == BattleStatus.ACTIVE
        assert battle.started_at is not None
        assert await db.get_participant(battle_id, "opp1") is not None

    @pytest.mark.asyncio
    async def test_slot_taken(self, db):
        battle_id = await make_battle(db)
        await db.assign_opponent(battle_id, "opp1", now())

        assert await db.assign_opponent(battle_id, "opp2", now()) is False

        battle = await db.get_battle(battle_id)
        assert battle.opponent_id == "opp1"
        assert await db.get_participant(battle_id, "opp2") is None

    @pytest.mark.asyncio
    async def test_reassign_same_user_keeps_progress(self, db):
        battle_id = await make_battle(db)
        await db.assign_opponent(battle_id, "opp1", datetime(2024, 1, 1, tzinfo=timezone.utc))
        await db.add_answer(battle_id, "opp1", 0, "Paris", True, 10, now())

        assert await db.assign_opponent(battle_id, "opp1", now()) is True

        participant = await db.get_participant(battle_id, "opp1")
        assert participant.score == 10
        battle = await db.get_battle(battle_id)
        assert battle.started_at.year == 2024

    @pytest.mark.asyncio
    async def test_completed_battle_not_reopened(self, db):
        battle_id = await make_battle(db)
        await db.complete_battle(battle_id, 0, 0, now())

        assert await db.assign_opponent(battle_id, "opp1", now()) is False
        battle = await db.get_battle(battle_id)
        assert battle.status == BattleStatus.COMPLETED


class TestAnswers:
    @pytest.mark.asyncio
    async def test_add_answer_updates_counters(self, db):
        battle_id = await make_battle(db)

        assert await db.add_answer(battle_id, "host1", 0, "Paris", True, 10, now()) is True
        assert await db.add_answer(battle_id, "host1", 1, "3", False, 0, now()) is True

        participant = await db.get_participant(battle_id, "host1")
        assert participant.score == 10
        assert participant.correct_count == 1
        assert participant.total_answered == 2
        assert [a.question_index for a in participant.answers] == [0, 1]
        assert participant.answers[0].correct is True
        assert participant.has_answered(1)
        assert not participant.has_answered(2)

    @pytest.mark.asyncio
    async def test_duplicate_answer_ignored(self, db):
        battle_id = await make_battle(db)
        await db.add_answer(battle_id, "host1", 0, "Paris", True, 10, now())

        assert await db.add_answer(battle_id, "host1", 0, "London", False, 0, now()) is False

        participant = await db.get_participant(battle_id, "host1")
        assert participant.total_answered == 1
        assert participant.score == 10
        assert participant.answers[0].answer == "Paris"

    @pytest.mark.asyncio
    async def test_answer_requires_participant(self, db):
        battle_id = await make_battle(db)

        with pytest.raises(aiosqlite.IntegrityError):
            await db.add_answer(battle_id, "stranger", 0, "Paris", True, 10, now())


class TestProgressAndCompletion:
    @pytest.mark.asyncio
    async def test_record_progress(self, db):
        battle_id = await make_battle(db)

        await db.record_progress(battle_id, 10, 0, True, now(), BattleStatus.WAITING)

        battle = await db.get_battle(battle_id)
        assert battle.host_score == 10
        assert battle.host_answered_at is not None
        assert battle.opponent_answered_at is None

    @pytest.mark.asyncio
    async def test_complete_battle_only_once(self, db):
        battle_id = await make_battle(db)

        assert await db.complete_battle(battle_id, 20, 10, now()) is True
        assert await db.complete_battle(battle_id, 0, 0, now()) is False

        battle = await db.get_battle(battle_id)
        assert battle.status == BattleStatus.COMPLETED
        assert (battle.host_score, battle.opponent_score) == (20, 10)

    @pytest.mark.asyncio
    async def test_progress_never_reopens_completed_battle(self, db):
        battle_id = await make_battle(db)
        await db.complete_battle(battle_id, 20, 10, now())

        await db.record_progress(battle_id, 0, 0, True, now(), BattleStatus.ACTIVE)

        battle = await db.get_battle(battle_id)
        assert battle.status == BattleStatus.COMPLETED
        assert battle.host_score == 20

    @pytest.mark.asyncio
    async def test_upsert_battle_result(self, db):
        battle_id = await make_battle(db)

        await db.upsert_battle_result(battle_id, "host1", 20, 10, 42)
        await db.upsert_battle_result(battle_id, "host1", 20, 10, 42)

        assert await db.fetch_value("SELECT COUNT(*) FROM battle_results") == 1
        result = await db.get_battle_result(battle_id)
        assert result.winner_id == "host1"
        assert result.duration_seconds == 42

    @pytest.mark.asyncio
    async def test_no_result_before_completion(self, db):
        battle_id = await make_battle(db)
        assert await db.get_battle_result(battle_id) is None


class TestBattleHistory:
    @pytest.mark.asyncio
    async def test_battles_for_user(self, db):
        hosted = await make_battle(db, code="AAAAAA", host_id="user1")
        joined = await make_battle(db, code="BBBBBB", host_id="user2")
        await db.assign_opponent(joined, "user1", now())
        await make_battle(db, code="CCCCCC", host_id="user3")
        await db.upsert_battle_result(hosted, "user1", 10, 0, 5)

        records = await db.get_battles_for_user("user1")

        assert [record.battle.id for record in records] == [joined, hosted]
        assert records[0].result is None
        assert records[1].result.winner_id == "user1"

    @pytest.mark.asyncio
    async def test_limit(self, db):
        for code in ["AAAAAA", "BBBBBB", "CCCCCC"]:
            await make_battle(db, code=code)

        records = await db.get_battles_for_user("host1", limit=2)
        assert len(records) == 2


class TestNotes:
    @pytest.mark.asyncio
    async def test_create_and_get_note(self, db):
        note_id = await db.create_note("user1", "Bio", "Cells")

        note = await db.get_note(note_id)
        assert note.user_id == "user1"
        assert note.content == "Cells"
        assert await db.get_note(note_id + 1) is None

    @pytest.mark.asyncio
    async def test_notes_for_user(self, db):
        await db.create_note("user1", "First", "a")
        await db.create_note("user1", "Second", "b")
        await db.create_note("user2", "Other", "c")

        notes = await db.get_notes_for_user("user1")
        assert [note.title for note in notes] == ["Second", "First"]


class TestDeleteUserData:
    @pytest.mark.asyncio
    async def test_delete_user_data(self, db):
        hosted = await make_battle(db, code="AAAAAA", host_id="user1")
        await db.add_answer(hosted, "user1", 0, "Paris", True, 10, now())
        await db.upsert_battle_result(hosted, "user1", 10, 0, 5)
        joined = await make_battle(db, code="BBBBBB", host_id="user2")
        await db.assign_opponent(joined, "user1", now())
        await db.add_answer(joined, "user1", 0, "Paris", True, 10, now())
        await db.add_answer(joined, "user2", 0, "London", False, 0, now())
        await db.create_note("user1", "Bio", "Cells")

        result = await db.delete_user_data("user1")

        assert result.notes == 1
        assert result.battles == 2
        assert result.answers == 2
        assert await db.get_battle(hosted) is None
        assert await db.get_battle_result(hosted) is None
        assert await db.get_battle(joined) is None
        assert await db.get_participant(joined, "user2") is None
        assert await db.fetch_value("SELECT COUNT(*) FROM battle_answers") == 0

    @pytest.mark.asyncio
    async def test_other_users_battles_untouched(self, db):
        other = await make_battle(db, code="CCCCCC", host_id="user2")
        await db.add_answer(other, "user2", 0, "Paris", True, 10, now())

        result = await db.delete_user_data("user1")

        assert result.battles == 0
        participant = await db.get_participant(other, "user2")
        assert participant.total_answered == 1

    @pytest.mark.asyncio
    async def test_delete_nothing(self, db):
        result = await db.delete_user_data("nobody")
        assert (result.notes, result.battles, result.answers) == (0, 0, 0)

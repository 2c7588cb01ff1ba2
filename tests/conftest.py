"""Pytest configuration and shared fixtures."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from bot.services.battle_service import BattleService
from bot.services.question_generator import QuestionGenerator
from db.database import Database


def make_questions_payload(count: int = 5) -> dict:
    """Build a generator reply payload with count well-formed questions.

    Question i has options Opt0..Opt3 and the correct answer is "Opt{i % 4}".
    Question 0's correct answer is "Paris".
    """
    questions = []
    for i in range(count):
        options = ["Paris", "London", "Rome", "Berlin"] if i == 0 else [f"Opt{j}" for j in range(4)]
        correct = "Paris" if i == 0 else f"Opt{i % 4}"
        questions.append({"question": f"Question {i}?", "options": options, "correctAnswer": correct})
    return {"questions": questions}


def correct_answer_for(index: int) -> str:
    return "Paris" if index == 0 else f"Opt{index % 4}"


def wrong_answer_for(index: int) -> str:
    return "London" if index == 0 else f"Opt{(index + 1) % 4}"


def make_groq_client(reply: str):
    """Create a mock AsyncGroq client whose completions return reply."""
    completion = MagicMock()
    completion.choices = [MagicMock()]
    completion.choices[0].message.content = reply

    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=completion)
    return client


@pytest_asyncio.fixture
async def db():
    """Create an in-memory database for testing."""
    database = Database(":memory:")
    await database.connect()
    yield database
    await database.close()


@pytest.fixture
def generator():
    """A question generator that replies with five valid questions."""
    return QuestionGenerator(client=make_groq_client(json.dumps(make_questions_payload(5))))


@pytest.fixture
def service(db, generator):
    """A battle service backed by the in-memory database."""
    return BattleService(db, generator, points_per_correct=10)


@pytest.fixture
def mock_guild():
    """Create a mock Discord guild for testing."""

    class MockMember:
        def __init__(self, display_name: str):
            self.display_name = display_name

    class MockRole:
        def __init__(self, name: str):
            self.name = name

    class MockGuild:
        def __init__(
            self,
            members: dict[int, str] | None = None,
            roles: dict[int, str] | None = None,
        ):
            self._members = {user_id: MockMember(name) for user_id, name in (members or {}).items()}
            self._roles = {role_id: MockRole(name) for role_id, name in (roles or {}).items()}

        def get_member(self, user_id: int) -> MockMember | None:
            return self._members.get(user_id)

        def get_role(self, role_id: int) -> MockRole | None:
            return self._roles.get(role_id)

    return MockGuild

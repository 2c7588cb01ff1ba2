"""Pydantic models for battle data structures."""

import json
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BattleStatus(str, Enum):
    """Lifecycle of a battle. Only ever moves forward."""

    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"

    @property
    def accepts_answers(self) -> bool:
        return self in (BattleStatus.WAITING, BattleStatus.ACTIVE)


class BattleQuestion(BaseModel):
    """A generated multiple-choice question. Immutable once the battle exists."""

    model_config = ConfigDict(frozen=True)

    question: str = Field(min_length=1)
    options: list[str] = Field(min_length=2, max_length=4)
    correct_answer: str = ""


class Battle(BaseModel):
    """A battle record from the database."""

    id: int
    code: str
    title: str
    note_id: Optional[int] = None
    status: BattleStatus = BattleStatus.WAITING
    question_count: int
    questions: list[BattleQuestion] = Field(default_factory=list)
    host_id: str
    opponent_id: Optional[str] = None
    host_score: int = 0
    opponent_score: int = 0
    host_answered_at: Optional[datetime] = None
    opponent_answered_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @field_validator("questions", mode="before")
    @classmethod
    def _decode_questions(cls, value):
        if isinstance(value, (str, bytes)):
            return json.loads(value)
        return value

    def is_party(self, user_id: str) -> bool:
        """Check if a user is the host or the opponent."""
        return user_id in (self.host_id, self.opponent_id)


class AnswerRecord(BaseModel):
    """A single answer submitted by a participant."""

    question_index: int
    answer: str
    correct: bool
    points: int = 0
    submitted_at: Optional[datetime] = None


class BattleParticipant(BaseModel):
    """A user's progress within one battle."""

    battle_id: int
    user_id: str
    score: int = 0
    correct_count: int = 0
    total_answered: int = 0
    answers: list[AnswerRecord] = Field(default_factory=list)
    joined_at: Optional[datetime] = None

    def has_answered(self, question_index: int) -> bool:
        return any(entry.question_index == question_index for entry in self.answers)


class BattleResult(BaseModel):
    """Terminal summary of a completed battle. None winner means a tie."""

    battle_id: int
    winner_id: Optional[str] = None
    host_score: int = 0
    opponent_score: int = 0
    duration_seconds: int = 1
    created_at: Optional[datetime] = None


class BattleSummary(BaseModel):
    """What create/join report back. Never carries questions or answers."""

    id: int
    code: str
    status: BattleStatus
    question_count: int

    @classmethod
    def from_battle(cls, battle: Battle) -> "BattleSummary":
        return cls(
            id=battle.id,
            code=battle.code,
            status=battle.status,
            question_count=battle.question_count,
        )


class AnswerOutcome(BaseModel):
    """Result of an answer submission. Never carries the correct answer."""

    correct: bool
    score: int
    total_answered: int
    completed: bool


class QuestionView(BaseModel):
    """A question as shown to a participant."""

    index: int
    question_count: int
    question: str
    options: list[str]


class ParticipantProgress(BaseModel):
    user_id: str
    score: int = 0
    correct_count: int = 0
    total_answered: int = 0


class BattleStatusView(BaseModel):
    """Battle state as visible to one of its participants."""

    summary: BattleSummary
    title: str
    host_id: str
    opponent_id: Optional[str] = None
    host_score: int = 0
    opponent_score: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    participants: list[ParticipantProgress] = Field(default_factory=list)
    result: Optional[BattleResult] = None


class BattleRecord(BaseModel):
    """A battle in a user's history, with its result when completed."""

    battle: Battle
    result: Optional[BattleResult] = None


class BattleStats(BaseModel):
    """A user's win/loss record over their battle history."""

    total: int = 0
    wins: int = 0
    losses: int = 0
    ties: int = 0


class Note(BaseModel):
    """A saved piece of study material."""

    id: int
    user_id: str
    title: str
    content: str
    created_at: Optional[datetime] = None


class UserDataDeletion(BaseModel):
    """Result of deleting a user's data."""

    notes: int = 0
    battles: int = 0
    answers: int = 0

"""
Core data models for the math quiz game.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional, Tuple

ANSWER_SLOTS = 4


@dataclass(frozen=True)
class Question:
    """A multiplication problem built from two factors."""
    factor_a: int
    factor_b: int

    @property
    def correct_answer(self) -> int:
        return self.factor_a * self.factor_b

    @property
    def text(self) -> str:
        return f"{self.factor_a} × {self.factor_b}"


@dataclass(frozen=True)
class AnswerSet:
    """The shuffled candidate answers shown for a question."""
    answers: Tuple[int, ...]
    correct_index: int

    def __len__(self) -> int:
        return len(self.answers)

    def __getitem__(self, index: int) -> int:
        return self.answers[index]

    def __iter__(self) -> Iterator[int]:
        return iter(self.answers)

    @property
    def correct_answer(self) -> int:
        return self.answers[self.correct_index]


@dataclass(frozen=True)
class SessionConfig:
    """Configuration for one quiz session."""
    difficulty: int = 12
    total_rounds: int = 10


class SessionPhase(Enum):
    """Enumeration of quiz session phases."""
    AWAITING_QUESTION = "awaiting_question"
    ROUND_IN_PROGRESS = "round_in_progress"
    ROUND_RESOLVED = "round_resolved"
    SESSION_COMPLETE = "session_complete"


@dataclass(frozen=True)
class RoundResult:
    """Outcome of a single submitted answer."""
    selected_index: int
    selected_answer: int
    correct_index: int
    correct_answer: int
    is_correct: bool
    score: int
    rounds_played: int
    total_rounds: int

    @property
    def is_final_round(self) -> bool:
        return self.rounds_played >= self.total_rounds


@dataclass(frozen=True)
class SessionState:
    """Snapshot of a quiz session exposed to the host for rendering."""
    phase: SessionPhase
    difficulty: Optional[int]
    total_rounds: Optional[int]
    rounds_played: int = 0
    score: int = 0
    question: Optional[Question] = None
    answer_set: Optional[AnswerSet] = None
    last_result: Optional[RoundResult] = None

    @property
    def is_round_resolved(self) -> bool:
        return self.phase == SessionPhase.ROUND_RESOLVED

    @property
    def is_session_complete(self) -> bool:
        return self.phase == SessionPhase.SESSION_COMPLETE

    @property
    def current_round(self) -> int:
        """1-based number of the round on screen."""
        if self.phase == SessionPhase.ROUND_IN_PROGRESS:
            return self.rounds_played + 1
        return self.rounds_played


@dataclass(frozen=True)
class SessionSummary:
    """Final result of a completed session."""
    score: int
    total_rounds: int
    difficulty: int

    @property
    def percentage(self) -> float:
        if self.total_rounds == 0:
            return 0.0
        return (self.score / self.total_rounds) * 100

    @property
    def text(self) -> str:
        return f"{self.score} out of {self.total_rounds}"

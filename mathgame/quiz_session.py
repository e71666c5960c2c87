"""
Quiz session state machine for the math quiz game.
Owns the current question, the running score and the round counter.
"""
import logging
import time
from typing import Optional

from mathgame.errors import IndexOutOfRangeError, InvalidConfigError, InvalidStateError
from mathgame.models import (
    ANSWER_SLOTS,
    AnswerSet,
    Question,
    RoundResult,
    SessionConfig,
    SessionPhase,
    SessionState,
    SessionSummary,
)
from mathgame.quiz_engine import QuestionGenerator

logger = logging.getLogger(__name__)


def validate_config(config: SessionConfig) -> None:
    """
    Validate a session configuration.

    Raises:
        InvalidConfigError: If difficulty is below 2 or total_rounds below 1
    """
    QuestionGenerator.validate_difficulty(config.difficulty)

    total_rounds = config.total_rounds
    if isinstance(total_rounds, bool) or not isinstance(total_rounds, int):
        raise InvalidConfigError(
            f"Total rounds must be an integer, got {type(total_rounds).__name__}"
        )
    if total_rounds < 1:
        raise InvalidConfigError(f"Total rounds must be at least 1, got {total_rounds}")


class QuizSession:
    """
    Single play-through of a configured number of rounds.

    Phases move AWAITING_QUESTION -> ROUND_IN_PROGRESS -> ROUND_RESOLVED and
    then back to ROUND_IN_PROGRESS or on to SESSION_COMPLETE. The session
    never schedules anything itself: the host decides when to call
    ``advance()`` after a round is resolved.
    """

    def __init__(self, generator: Optional[QuestionGenerator] = None, session_id: str = None):
        self._generator = generator or QuestionGenerator()
        self._session_id = session_id
        self._config: Optional[SessionConfig] = None
        self._phase = SessionPhase.AWAITING_QUESTION
        self._rounds_played = 0
        self._score = 0
        self._question: Optional[Question] = None
        self._answer_set: Optional[AnswerSet] = None
        self._last_result: Optional[RoundResult] = None

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def config(self) -> Optional[SessionConfig]:
        return self._config

    @property
    def state(self) -> SessionState:
        """
        Current snapshot for rendering.

        ``difficulty`` and ``total_rounds`` are None until the session is started.
        """
        config = self._config
        return SessionState(
            phase=self._phase,
            difficulty=config.difficulty if config else None,
            total_rounds=config.total_rounds if config else None,
            rounds_played=self._rounds_played,
            score=self._score,
            question=self._question,
            answer_set=self._answer_set,
            last_result=self._last_result
        )

    def _require_phase(self, operation: str, *allowed: SessionPhase) -> None:
        if self._phase not in allowed:
            raise InvalidStateError(
                f"Cannot {operation} while session is {self._phase.value}"
            )

    def _transition(self, to_phase: SessionPhase, reason: str) -> None:
        logger.debug(
            f"Session {self._session_id}: {self._phase.value} -> {to_phase.value} ({reason})",
            extra={
                'event_type': 'session_transition',
                'session_id': self._session_id,
                'from_phase': self._phase.value,
                'to_phase': to_phase.value,
                'rounds_played': self._rounds_played,
                'score': self._score,
                'timestamp': time.time()
            }
        )
        self._phase = to_phase

    def start(self, config: SessionConfig) -> SessionState:
        """
        Start a new session and present the first question.

        Allowed before the first game and after a completed one.

        Raises:
            InvalidStateError: If a game is still in progress
            InvalidConfigError: If the configuration is invalid
        """
        self._require_phase("start", SessionPhase.AWAITING_QUESTION, SessionPhase.SESSION_COMPLETE)
        validate_config(config)

        question, answer_set = self._generator.generate(config.difficulty)

        self._config = config
        self._rounds_played = 0
        self._score = 0
        self._question = question
        self._answer_set = answer_set
        self._last_result = None
        self._transition(SessionPhase.ROUND_IN_PROGRESS, "session started")

        logger.info(
            f"Session {self._session_id} started: difficulty={config.difficulty}, rounds={config.total_rounds}"
        )
        return self.state

    def submit_answer(self, selected_index: int) -> RoundResult:
        """
        Score the answer at ``selected_index`` and resolve the round.

        Raises:
            InvalidStateError: If no round is in progress
            IndexOutOfRangeError: If the index is outside the answer slots
        """
        self._require_phase("submit an answer", SessionPhase.ROUND_IN_PROGRESS)

        if isinstance(selected_index, bool) or not isinstance(selected_index, int):
            raise IndexOutOfRangeError(
                f"Answer index must be an integer, got {type(selected_index).__name__}"
            )
        if not 0 <= selected_index < ANSWER_SLOTS:
            raise IndexOutOfRangeError(
                f"Answer index must be between 0 and {ANSWER_SLOTS - 1}, got {selected_index}"
            )

        selected_answer = self._answer_set[selected_index]
        correct_answer = self._question.correct_answer
        is_correct = selected_answer == correct_answer

        if is_correct:
            self._score += 1
        self._rounds_played += 1

        self._last_result = RoundResult(
            selected_index=selected_index,
            selected_answer=selected_answer,
            correct_index=self._answer_set.correct_index,
            correct_answer=correct_answer,
            is_correct=is_correct,
            score=self._score,
            rounds_played=self._rounds_played,
            total_rounds=self._config.total_rounds
        )
        self._transition(
            SessionPhase.ROUND_RESOLVED,
            "correct answer" if is_correct else "incorrect answer"
        )
        return self._last_result

    def advance(self) -> SessionState:
        """
        Move past a resolved round.

        Presents a new question while rounds remain, otherwise completes
        the session.

        Raises:
            InvalidStateError: If the current round is not resolved
        """
        self._require_phase("advance", SessionPhase.ROUND_RESOLVED)

        if self._rounds_played < self._config.total_rounds:
            self._question, self._answer_set = self._generator.generate(self._config.difficulty)
            self._transition(SessionPhase.ROUND_IN_PROGRESS, "next question")
        else:
            self._transition(SessionPhase.SESSION_COMPLETE, "all rounds played")
            logger.info(
                f"Session {self._session_id} complete: {self._score}/{self._config.total_rounds}"
            )

        return self.state

    def reset(self) -> SessionState:
        """
        Replay a completed session with the same configuration.

        Raises:
            InvalidStateError: If the session is not complete
        """
        self._require_phase("reset", SessionPhase.SESSION_COMPLETE)
        return self.start(self._config)

    def summary(self) -> SessionSummary:
        """
        Final score of a completed session.

        Raises:
            InvalidStateError: If the session is not complete
        """
        self._require_phase("summarize", SessionPhase.SESSION_COMPLETE)
        return SessionSummary(
            score=self._score,
            total_rounds=self._config.total_rounds,
            difficulty=self._config.difficulty
        )

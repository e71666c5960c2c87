"""
Quiz session controller for the math quiz game.
Manages active sessions and their advance timers per Discord channel.
"""
import logging
import time
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional

from .config_manager import ConfigManager
from .errors import (
    IndexOutOfRangeError,
    InvalidConfigError,
    InvalidStateError,
    QuizError,
    SessionConflictError,
    SessionNotFoundError,
)
from .models import RoundResult, SessionPhase, SessionState, SessionSummary
from .quiz_engine import QuestionGenerator, QuizEngine
from .quiz_session import QuizSession

ResolvedCallback = Callable[[RoundResult, SessionState], Awaitable[Any]]
AdvanceCallback = Callable[[SessionState], Awaitable[Any]]


class QuizController:
    """
    Orchestrates quiz sessions across Discord channels.

    Each channel holds at most one session. The controller decides when a
    resolved round moves on: immediately when the advance delay is zero,
    otherwise through a cancellable timer owned by the quiz engine.
    """

    def __init__(self, config_manager: ConfigManager, question_generator: Optional[QuestionGenerator] = None):
        """
        Initialize the quiz controller.

        Args:
            config_manager: Instance for managing configuration
            question_generator: Optional generator, e.g. seeded for tests
        """
        self.logger = logging.getLogger(__name__)
        self.config_manager = config_manager
        self.quiz_engine = QuizEngine(question_generator)

        # Active sessions mapped by channel ID
        self._active_sessions: Dict[int, QuizSession] = {}
        self._start_times: Dict[int, datetime] = {}

        self.logger.info("QuizController initialized")

    def get_session(self, channel_id: int) -> Optional[QuizSession]:
        """Get the session for a channel, finished or not."""
        return self._active_sessions.get(channel_id)

    def get_session_state(self, channel_id: int) -> Optional[SessionState]:
        """Get the current state snapshot of a channel's session."""
        session = self._active_sessions.get(channel_id)
        return session.state if session is not None else None

    def get_session_summary(self, channel_id: int) -> Optional[SessionSummary]:
        """Get the final result of a channel's completed session."""
        session = self._active_sessions.get(channel_id)
        if session is None or not session.state.is_session_complete:
            return None
        return session.summary()

    def has_active_session(self, channel_id: int) -> bool:
        """
        Check if a channel has an unfinished session.

        Args:
            channel_id: Discord channel identifier

        Returns:
            True if a game is being played in the channel
        """
        session = self._active_sessions.get(channel_id)
        return session is not None and not session.state.is_session_complete

    def _require_session(self, channel_id: int) -> QuizSession:
        session = self._active_sessions.get(channel_id)
        if session is None:
            raise SessionNotFoundError(f"No quiz session for channel {channel_id}")
        return session

    def start_quiz(
        self,
        channel_id: int,
        difficulty: Optional[int] = None,
        total_rounds: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Start a new game in a channel.

        Args:
            channel_id: Discord channel identifier
            difficulty: Optional difficulty, defaults to configured value
            total_rounds: Optional round count, defaults to configured value

        Returns:
            Dictionary with success status, state, and user-friendly message
        """
        try:
            if self.has_active_session(channel_id):
                raise SessionConflictError(
                    f"Channel {channel_id} already has a game in progress"
                )

            # A finished session may still hold an advance that never fired
            self.quiz_engine.cancel_timer(str(channel_id))

            config = self.config_manager.get_session_config(difficulty, total_rounds)
            session = QuizSession(self.quiz_engine.question_generator, session_id=str(channel_id))
            state = session.start(config)

            self._active_sessions[channel_id] = session
            self._start_times[channel_id] = datetime.now()

            self.logger.info(
                f"Started quiz for channel {channel_id}: "
                f"difficulty={config.difficulty}, rounds={config.total_rounds}",
                extra={
                    'event_type': 'session_started',
                    'channel_id': channel_id,
                    'difficulty': config.difficulty,
                    'total_rounds': config.total_rounds,
                    'timestamp': time.time()
                }
            )
            return {
                'success': True,
                'message': f"Quiz started with {config.total_rounds} rounds at difficulty {config.difficulty}",
                'user_message': f"🎯 {config.total_rounds} questions, factors up to {config.difficulty}",
                'state': state
            }

        except QuizError as e:
            return self._handle_session_error(channel_id, e, "start_quiz")

    async def answer_question(
        self,
        channel_id: int,
        index: int,
        on_resolved: Optional[ResolvedCallback] = None,
        on_advance: Optional[AdvanceCallback] = None,
        expected_round: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Submit an answer and arrange the move to the next round.

        ``on_resolved`` always runs before the session advances, so the host
        can show round feedback even when the advance delay is zero.

        Args:
            channel_id: Discord channel identifier
            index: Position of the chosen answer
            on_resolved: Awaited with the round result and resolved state
            on_advance: Awaited with the new state once the session advances
            expected_round: Round the answer was given for; answers for any
                other round are rejected

        Returns:
            Dictionary with success status, round result, and resolved state
        """
        try:
            session = self._require_session(channel_id)
            state = session.state
            if expected_round is not None and (
                    state.phase != SessionPhase.ROUND_IN_PROGRESS or
                    state.current_round != expected_round):
                raise InvalidStateError(
                    f"Answer for round {expected_round} arrived during round {state.current_round}"
                )
            result = session.submit_answer(index)
        except QuizError as e:
            return self._handle_session_error(channel_id, e, "answer_question")

        self.logger.info(
            f"Channel {channel_id} answered round {result.rounds_played}/{result.total_rounds}: "
            f"{'correct' if result.is_correct else 'incorrect'}",
            extra={
                'event_type': 'answer_submitted',
                'channel_id': channel_id,
                'is_correct': result.is_correct,
                'score': result.score,
                'timestamp': time.time()
            }
        )

        resolved_state = session.state
        delay = self.config_manager.get_advance_delay()

        if on_resolved is not None:
            try:
                await on_resolved(result, resolved_state)
            except Exception as e:
                # The round still has to move on or the channel stays stuck
                self.logger.error(f"Error rendering resolved round for channel {channel_id}: {e}", exc_info=True)

        if self._active_sessions.get(channel_id) is not session:
            self.logger.info(f"Session for channel {channel_id} was stopped before advancing")
            return {
                'success': True,
                'result': result,
                'state': resolved_state
            }

        async def advance() -> None:
            next_state = self.advance_session(channel_id)
            if next_state is None or on_advance is None:
                return
            try:
                await on_advance(next_state)
            except Exception as e:
                self.logger.error(f"Error presenting next state for channel {channel_id}: {e}", exc_info=True)

        if delay <= 0:
            await advance()
        else:
            self.quiz_engine.schedule_advance(str(channel_id), delay, advance)

        return {
            'success': True,
            'result': result,
            'state': resolved_state
        }

    def advance_session(self, channel_id: int) -> Optional[SessionState]:
        """
        Move a channel's resolved round on to the next question or the summary.

        Args:
            channel_id: Discord channel identifier

        Returns:
            The new state, or None if the channel has no resolved round
        """
        session = self._active_sessions.get(channel_id)
        if session is None:
            self.logger.warning(f"Cannot advance channel {channel_id}: session was discarded")
            return None

        try:
            state = session.advance()
        except InvalidStateError as e:
            self.logger.warning(f"Cannot advance channel {channel_id}: {e}")
            return None

        if state.is_session_complete:
            self.logger.info(
                f"Quiz completed for channel {channel_id}: {state.score}/{state.total_rounds}",
                extra={
                    'event_type': 'session_completed',
                    'channel_id': channel_id,
                    'score': state.score,
                    'total_rounds': state.total_rounds,
                    'timestamp': time.time()
                }
            )
        return state

    def discard_completed_session(self, channel_id: int) -> bool:
        """
        Forget a finished game once it can no longer be replayed.

        Returns:
            True if a completed session was discarded
        """
        session = self._active_sessions.get(channel_id)
        if session is None or not session.state.is_session_complete:
            return False

        del self._active_sessions[channel_id]
        self._start_times.pop(channel_id, None)
        self.logger.info(
            f"Discarded completed session for channel {channel_id}",
            extra={
                'event_type': 'session_discarded',
                'channel_id': channel_id,
                'timestamp': time.time()
            }
        )
        return True

    def restart_quiz(self, channel_id: int) -> Dict[str, Any]:
        """
        Replay a finished game with the same settings.

        Returns:
            Dictionary with success status, state, and user-friendly message
        """
        try:
            session = self._require_session(channel_id)
            state = session.reset()
        except QuizError as e:
            return self._handle_session_error(channel_id, e, "restart_quiz")

        self._start_times[channel_id] = datetime.now()
        self.logger.info(f"Restarted quiz for channel {channel_id}")
        return {
            'success': True,
            'message': "Quiz restarted",
            'user_message': "🔄 New game, same settings!",
            'state': state
        }

    async def stop_quiz(self, channel_id: int) -> Dict[str, Any]:
        """
        Stop a channel's game and cancel any pending advance.

        Returns:
            Dictionary with success status and the final state
        """
        session = self._active_sessions.pop(channel_id, None)
        self._start_times.pop(channel_id, None)
        timer_cancelled = self.quiz_engine.cancel_timer(str(channel_id))

        if session is None:
            self.logger.warning(
                f"Cannot stop session for channel {channel_id}: no session exists",
                extra={
                    'event_type': 'session_stop_no_session',
                    'channel_id': channel_id,
                    'timestamp': time.time()
                }
            )
            return {
                'success': False,
                'error': 'no_session',
                'user_message': "❌ No quiz is running in this channel. Use `/start` to begin one."
            }

        state = session.state
        self.logger.info(
            f"Stopped session for channel {channel_id}, timer cancelled: {timer_cancelled}",
            extra={
                'event_type': 'session_stopped',
                'channel_id': channel_id,
                'timer_cancelled': timer_cancelled,
                'timestamp': time.time()
            }
        )
        return {
            'success': True,
            'message': f"Quiz stopped after {state.rounds_played} rounds",
            'user_message': f"🛑 Quiz stopped. Score: {state.score}/{state.rounds_played}",
            'state': state
        }

    def shutdown(self) -> int:
        """
        Cancel every pending advance and discard all sessions.

        Returns:
            Number of timers cancelled
        """
        cancelled = self.quiz_engine.cancel_all_timers()
        discarded = len(self._active_sessions)
        self._active_sessions.clear()
        self._start_times.clear()
        self.logger.info(f"Controller shut down: {discarded} sessions discarded, {cancelled} timers cancelled")
        return cancelled

    def get_session_progress(self, channel_id: int) -> Optional[Dict[str, Any]]:
        """
        Get progress information for a channel.

        Returns:
            Dictionary with progress info, None if no session
        """
        session = self._active_sessions.get(channel_id)
        if session is None:
            return None

        state = session.state
        return {
            'phase': state.phase.value,
            'current_round': state.current_round,
            'rounds_played': state.rounds_played,
            'total_rounds': state.total_rounds,
            'score': state.score,
            'difficulty': state.difficulty,
            'start_time': self._start_times.get(channel_id),
            'advance_pending': self.quiz_engine.has_pending_timer(str(channel_id))
        }

    def get_session_status_summary(self, channel_id: int) -> str:
        """
        Get a one-line status summary for a channel.

        Returns:
            Human-readable status string
        """
        progress = self.get_session_progress(channel_id)
        if progress is None:
            return "No quiz in this channel"

        if progress['phase'] == 'session_complete':
            status = "Complete"
        elif progress['phase'] == 'round_resolved':
            status = "Showing answer"
        else:
            status = "Active"

        return (
            f"Status: {status} | Round: {progress['current_round']}/{progress['total_rounds']} | "
            f"Score: {progress['score']} | Difficulty: {progress['difficulty']}"
        )

    def get_all_active_sessions(self) -> Dict[int, Dict[str, Any]]:
        """Get progress for every channel with a session."""
        return {
            channel_id: self.get_session_progress(channel_id)
            for channel_id in self._active_sessions
        }

    def _handle_session_error(self, channel_id: int, error: Exception, operation: str) -> Dict[str, Any]:
        """
        Log a contract violation and turn it into a result dictionary.

        Args:
            channel_id: Discord channel identifier
            error: The exception that occurred
            operation: Description of the operation that failed

        Returns:
            Dictionary with error details and a user-friendly message
        """
        self.logger.warning(
            f"Error in {operation} for channel {channel_id}: {error}",
            extra={
                'event_type': 'session_error',
                'channel_id': channel_id,
                'operation': operation,
                'error_type': type(error).__name__,
                'timestamp': time.time()
            }
        )
        return {
            'success': False,
            'error': str(error),
            'error_type': type(error).__name__,
            'operation': operation,
            'user_message': self._get_user_friendly_error_message(error)
        }

    def _get_user_friendly_error_message(self, error: Exception) -> str:
        """Map a quiz error to a message players can act on."""
        if isinstance(error, SessionConflictError):
            return "❌ A quiz is already running in this channel. Use `/stop` to end it first."
        if isinstance(error, SessionNotFoundError):
            return "❌ No quiz is running in this channel. Use `/start` to begin one."
        if isinstance(error, InvalidConfigError):
            return f"❌ Invalid game settings: {error}"
        if isinstance(error, IndexOutOfRangeError):
            return "❌ That answer is not one of the choices."
        if isinstance(error, InvalidStateError):
            return "⏳ This question has already been answered."
        return "❌ Something went wrong with the quiz."

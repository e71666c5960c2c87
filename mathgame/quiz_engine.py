"""
Quiz engine core logic for the math quiz game.
Handles question generation and the delayed advance between rounds.
"""
import random
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from mathgame.models import ANSWER_SLOTS, AnswerSet, Question
from mathgame.errors import InvalidConfigError

# Set up logger for question and timer operations
logger = logging.getLogger(__name__)

MIN_DIFFICULTY = 2


class TimerLifecycleLogger:
    """Structured logging for advance timer lifecycle events."""

    @staticmethod
    def log_timer_scheduled(channel_id: str, delay: float) -> None:
        """Log a newly scheduled advance."""
        logger.info(
            f"Timer lifecycle: SCHEDULED - Channel {channel_id}, Delay {delay:.2f}s",
            extra={
                'event_type': 'timer_scheduled',
                'channel_id': channel_id,
                'delay': delay,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_completion(channel_id: str, completion_type: str, delay: float) -> None:
        """Log timer completion (natural expiry or cancellation)."""
        logger.info(
            f"Timer lifecycle: COMPLETED - Channel {channel_id}, Type {completion_type}, Delay {delay:.2f}s",
            extra={
                'event_type': 'timer_completed',
                'channel_id': channel_id,
                'completion_type': completion_type,
                'delay': delay,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_state_transition(channel_id: str, from_state: str, to_state: str, reason: str = None) -> None:
        """Log timer state transitions."""
        logger.debug(
            f"Timer lifecycle: STATE_TRANSITION - Channel {channel_id}, {from_state} -> {to_state}" +
            (f" ({reason})" if reason else ""),
            extra={
                'event_type': 'timer_state_transition',
                'channel_id': channel_id,
                'from_state': from_state,
                'to_state': to_state,
                'reason': reason,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_error(channel_id: str, error_type: str, error_message: str, operation: str) -> None:
        """Log timer-related errors with context."""
        logger.error(
            f"Timer lifecycle: ERROR - Channel {channel_id}, Operation {operation}, Type {error_type}: {error_message}",
            extra={
                'event_type': 'timer_error',
                'channel_id': channel_id,
                'error_type': error_type,
                'error_message': error_message,
                'operation': operation,
                'timestamp': time.time()
            }
        )


class QuestionGenerator:
    """
    Builds multiplication questions with four multiple-choice answers.

    The random source is injectable so tests can pass a seeded
    ``random.Random`` or a scripted fake with ``randint`` and ``shuffle``.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng if rng is not None else random.Random()

    @staticmethod
    def validate_difficulty(difficulty: int) -> None:
        """
        Check that a difficulty yields a usable factor range.

        Raises:
            InvalidConfigError: If difficulty is not an integer of at least 2
        """
        if isinstance(difficulty, bool) or not isinstance(difficulty, int):
            raise InvalidConfigError(
                f"Difficulty must be an integer, got {type(difficulty).__name__}"
            )
        if difficulty < MIN_DIFFICULTY:
            raise InvalidConfigError(
                f"Difficulty must be at least {MIN_DIFFICULTY}, got {difficulty}"
            )

    def _draw_factor(self, difficulty: int) -> int:
        return self._rng.randint(1, difficulty)

    def _draw_product(self, difficulty: int) -> int:
        return self._draw_factor(difficulty) * self._draw_factor(difficulty)

    def _build_distractors(self, difficulty: int, correct_answer: int) -> List[int]:
        """
        Draw the three wrong answers.

        Each distractor is itself a product of two values in [1, difficulty].
        Difficulty 2 only reaches the products 1, 2 and 4, so there the
        distractors are only kept apart from the correct answer.
        """
        distinct = difficulty > MIN_DIFFICULTY
        distractors: List[int] = []

        while len(distractors) < ANSWER_SLOTS - 1:
            candidate = self._draw_product(difficulty)
            if candidate == correct_answer:
                continue
            if distinct and candidate in distractors:
                continue
            distractors.append(candidate)

        return distractors

    def generate(self, difficulty: int) -> Tuple[Question, AnswerSet]:
        """
        Generate a question and its shuffled answer set.

        Args:
            difficulty: Inclusive upper bound for both factors

        Returns:
            Tuple of the question and its answer set

        Raises:
            InvalidConfigError: If difficulty is below 2
        """
        self.validate_difficulty(difficulty)

        question = Question(
            factor_a=self._draw_factor(difficulty),
            factor_b=self._draw_factor(difficulty)
        )
        correct_answer = question.correct_answer

        pool = [correct_answer] + self._build_distractors(difficulty, correct_answer)
        self._rng.shuffle(pool)

        answer_set = AnswerSet(
            answers=tuple(pool),
            correct_index=pool.index(correct_answer)
        )

        logger.debug(
            f"Generated question {question.text} with answers {list(answer_set.answers)}",
            extra={
                'event_type': 'question_generated',
                'difficulty': difficulty,
                'correct_index': answer_set.correct_index,
                'timestamp': time.time()
            }
        )
        return question, answer_set


class AdvanceTimer:
    """One-shot delayed callback that moves a session past a resolved round."""

    def __init__(self, channel_id: str = None):
        """Initialize the timer."""
        self._task: Optional[asyncio.Task] = None
        self._is_cancelled = False
        self._has_fired = False
        self._channel_id = channel_id
        self._delay = 0.0

    async def run(self, delay: float, callback: Callable[[], Awaitable[Any]]) -> None:
        """
        Wait for the delay, then await the callback unless cancelled.

        Args:
            delay: Seconds to wait before firing
            callback: Coroutine function called once the delay elapses
        """
        self._delay = delay

        try:
            await asyncio.sleep(delay)

            if self._is_cancelled:
                TimerLifecycleLogger.log_timer_completion(self._channel_id, "cancelled", self._delay)
                return

            self._has_fired = True
            TimerLifecycleLogger.log_timer_completion(self._channel_id, "natural_expiry", self._delay)
            await callback()

        except asyncio.CancelledError:
            self._is_cancelled = True
            TimerLifecycleLogger.log_timer_completion(self._channel_id, "asyncio_cancelled", self._delay)
            raise
        except Exception as e:
            TimerLifecycleLogger.log_timer_error(
                self._channel_id,
                "callback_error",
                str(e),
                "run"
            )
            raise

    def cancel(self) -> None:
        """Cancel the timer so its callback never runs."""
        self._is_cancelled = True
        if self._task and not self._task.done():
            self._task.cancel()
            TimerLifecycleLogger.log_timer_state_transition(
                self._channel_id,
                "pending",
                "cancelled",
                "task cancelled"
            )
        else:
            TimerLifecycleLogger.log_timer_state_transition(
                self._channel_id,
                "done",
                "cancelled",
                "no active task"
            )

    @property
    def is_cancelled(self) -> bool:
        """Check if timer is cancelled."""
        return self._is_cancelled

    @property
    def has_fired(self) -> bool:
        """Check if the delay elapsed and the callback was invoked."""
        return self._has_fired

    @property
    def is_pending(self) -> bool:
        """Check if the timer is still waiting to fire."""
        return self._task is not None and not self._task.done() and not self._is_cancelled


class QuizEngine:
    """Core quiz engine that handles question generation and advance timing."""

    def __init__(self, question_generator: Optional[QuestionGenerator] = None):
        """Initialize the quiz engine."""
        self.question_generator = question_generator or QuestionGenerator()
        self._timers: Dict[str, AdvanceTimer] = {}  # Channel ID -> Timer mapping

    def generate_question(self, difficulty: int) -> Tuple[Question, AnswerSet]:
        """Generate a question through the configured generator."""
        return self.question_generator.generate(difficulty)

    def schedule_advance(
        self,
        channel_id: str,
        delay: float,
        callback: Callable[[], Awaitable[Any]]
    ) -> asyncio.Task:
        """
        Schedule a one-shot advance for a channel.

        Any advance still pending for the channel is cancelled first.

        Args:
            channel_id: Channel identifier
            delay: Seconds to wait before calling back
            callback: Coroutine function run when the delay elapses

        Returns:
            The asyncio task running the timer
        """
        if self.has_pending_timer(channel_id):
            logger.warning(
                f"Replacing pending advance timer for channel {channel_id}",
                extra={
                    'event_type': 'timer_replaced',
                    'channel_id': channel_id,
                    'timestamp': time.time()
                }
            )
        self.cancel_timer(channel_id)

        timer = AdvanceTimer(channel_id)
        self._timers[channel_id] = timer
        timer._task = asyncio.create_task(timer.run(delay, callback))
        timer._task.add_done_callback(lambda task: self._release_timer(channel_id, timer))

        TimerLifecycleLogger.log_timer_scheduled(channel_id, delay)
        return timer._task

    def _release_timer(self, channel_id: str, timer: AdvanceTimer) -> None:
        """Forget a finished timer unless it has already been replaced."""
        if self._timers.get(channel_id) is timer:
            del self._timers[channel_id]
            TimerLifecycleLogger.log_timer_state_transition(
                channel_id,
                "done",
                "released",
                "timer removed from tracking"
            )

    def has_pending_timer(self, channel_id: str) -> bool:
        """Check whether a channel has an advance waiting to fire."""
        timer = self._timers.get(channel_id)
        return timer is not None and timer.is_pending

    def cancel_timer(self, channel_id: str) -> bool:
        """
        Cancel the pending advance for a channel.

        Args:
            channel_id: Channel identifier

        Returns:
            True if a pending timer was cancelled, False otherwise
        """
        timer = self._timers.pop(channel_id, None)

        if timer is None:
            logger.debug(
                f"No advance timer found for channel {channel_id}",
                extra={
                    'event_type': 'timer_cancel_no_timer',
                    'channel_id': channel_id,
                    'timestamp': time.time()
                }
            )
            return False

        was_pending = timer.is_pending
        timer.cancel()
        return was_pending

    def cancel_all_timers(self) -> int:
        """
        Cancel every pending advance.

        Returns:
            Number of timers that were still pending
        """
        cancelled = 0
        for channel_id in list(self._timers):
            if self.cancel_timer(channel_id):
                cancelled += 1

        if cancelled:
            logger.info(f"Cancelled {cancelled} pending advance timers")
        return cancelled

    def get_active_timer_count(self) -> int:
        """Get the number of channels with a pending advance."""
        return sum(1 for timer in self._timers.values() if timer.is_pending)

"""
Unit tests for the QuestionGenerator and the QuizEngine advance timers.
"""
import unittest
import asyncio
import random
from unittest.mock import AsyncMock

from mathgame.errors import InvalidConfigError
from mathgame.models import ANSWER_SLOTS
from mathgame.quiz_engine import AdvanceTimer, QuestionGenerator, QuizEngine
from tests.test_fixtures import TestFixtures, TestDataValidation, async_test


class TestQuestionGenerator(unittest.TestCase):
    """Test cases for question and answer set generation."""

    def test_generated_answer_sets_hold_invariants(self):
        """Test factors, correct answer and distractors across difficulties."""
        generator = QuestionGenerator(random.Random(1234))

        for difficulty in range(2, 13):
            for _ in range(200):
                question, answer_set = generator.generate(difficulty)
                self.assertTrue(TestDataValidation.validate_question(question, difficulty))
                self.assertTrue(
                    TestDataValidation.validate_answer_set(question, answer_set, difficulty),
                    f"Invalid answers {answer_set.answers} for {question.text}"
                )

    def test_all_answers_distinct_above_difficulty_two(self):
        """Test that distractors never repeat once four products are reachable."""
        generator = QuestionGenerator(random.Random(99))

        for difficulty in (3, 5, 12, 50):
            for _ in range(200):
                _, answer_set = generator.generate(difficulty)
                self.assertEqual(len(set(answer_set.answers)), ANSWER_SLOTS)

    def test_difficulty_two_terminates(self):
        """Test generation at difficulty 2 where only products 1, 2 and 4 exist."""
        generator = QuestionGenerator(random.Random(7))

        for _ in range(200):
            question, answer_set = generator.generate(2)
            self.assertEqual(answer_set.answers.count(question.correct_answer), 1)
            self.assertTrue(set(answer_set.answers) <= {1, 2, 4})

    def test_scripted_draws_reject_correct_and_duplicates(self):
        """Test rejection of draws equal to the answer or to a placed distractor."""
        generator = TestFixtures.create_scripted_generator([
            2, 3,   # question 2 x 3
            2, 3,   # 6 rejected, equals the answer
            1, 4,   # 4 accepted
            2, 2,   # 4 rejected, already placed
            5, 1,   # 5 accepted
            3, 3,   # 9 accepted
        ])

        question, answer_set = generator.generate(5)

        self.assertEqual((question.factor_a, question.factor_b), (2, 3))
        self.assertEqual(question.correct_answer, 6)
        self.assertEqual(answer_set.answers, (6, 4, 5, 9))
        self.assertEqual(answer_set.correct_index, 0)

    def test_correct_index_tracks_shuffle(self):
        """Test that correct_index is recorded after shuffling."""
        generator = TestFixtures.create_scripted_generator(
            [2, 3, 1, 4, 5, 1, 3, 3],
            shuffle_order=[3, 2, 1, 0]
        )

        _, answer_set = generator.generate(5)

        self.assertEqual(answer_set.answers, (9, 5, 4, 6))
        self.assertEqual(answer_set.correct_index, 3)
        self.assertEqual(answer_set.correct_answer, 6)

    def test_difficulty_two_allows_repeated_distractor(self):
        """Test the difficulty 2 fallback keeps only the correct answer unique."""
        generator = TestFixtures.create_scripted_generator([
            1, 2,   # question 1 x 2
            2, 1,   # 2 rejected, equals the answer
            1, 1,   # 1 accepted
            2, 2,   # 4 accepted
            1, 1,   # 1 accepted again
        ])

        _, answer_set = generator.generate(2)

        self.assertEqual(answer_set.answers, (2, 1, 4, 1))
        self.assertEqual(answer_set.correct_index, 0)

    def test_invalid_difficulty(self):
        """Test that degenerate difficulties are rejected upfront."""
        generator = QuestionGenerator(random.Random(0))

        for difficulty in (1, 0, -3):
            with self.assertRaises(InvalidConfigError):
                generator.generate(difficulty)

        for difficulty in ("5", 5.0, None, True):
            with self.assertRaises(InvalidConfigError):
                generator.generate(difficulty)

    def test_seeded_generators_are_reproducible(self):
        """Test that equal seeds give equal questions."""
        first = TestFixtures.create_seeded_generator(5)
        second = TestFixtures.create_seeded_generator(5)

        for _ in range(20):
            self.assertEqual(first.generate(12), second.generate(12))


class TestQuizEngineTimers(unittest.TestCase):
    """Test cases for the one-shot advance timers."""

    def setUp(self):
        """Set up test fixtures."""
        self.engine = QuizEngine(TestFixtures.create_seeded_generator())
        self.channel_id = "test_channel_123"

    def test_generate_question_uses_generator(self):
        """Test that the engine delegates to its generator."""
        question, answer_set = self.engine.generate_question(4)
        self.assertTrue(TestDataValidation.validate_answer_set(question, answer_set, 4))

    def test_cancel_timer_no_active_timer(self):
        """Test cancel_timer when no timer exists."""
        self.assertFalse(self.engine.cancel_timer(self.channel_id))

    @async_test
    async def test_timer_fires_after_delay(self):
        """Test that the callback runs once the delay elapses."""
        callback = AsyncMock()

        self.engine.schedule_advance(self.channel_id, 0.01, callback)
        self.assertTrue(self.engine.has_pending_timer(self.channel_id))

        await asyncio.sleep(0.1)

        callback.assert_awaited_once()
        self.assertFalse(self.engine.has_pending_timer(self.channel_id))
        self.assertEqual(self.engine.get_active_timer_count(), 0)

    @async_test
    async def test_cancelled_timer_never_fires(self):
        """Test that cancelling before the delay suppresses the callback."""
        callback = AsyncMock()

        self.engine.schedule_advance(self.channel_id, 0.05, callback)
        self.assertTrue(self.engine.cancel_timer(self.channel_id))

        await asyncio.sleep(0.1)

        callback.assert_not_awaited()
        self.assertFalse(self.engine.has_pending_timer(self.channel_id))

    @async_test
    async def test_rescheduling_replaces_pending_timer(self):
        """Test that a channel keeps at most one pending advance."""
        first = AsyncMock()
        second = AsyncMock()

        self.engine.schedule_advance(self.channel_id, 0.05, first)
        self.engine.schedule_advance(self.channel_id, 0.01, second)

        await asyncio.sleep(0.1)

        first.assert_not_awaited()
        second.assert_awaited_once()

    @async_test
    async def test_cancel_all_timers(self):
        """Test cancelling every pending advance."""
        callbacks = [AsyncMock() for _ in range(3)]
        for number, callback in enumerate(callbacks):
            self.engine.schedule_advance(f"channel_{number}", 0.05, callback)

        self.assertEqual(self.engine.get_active_timer_count(), 3)
        self.assertEqual(self.engine.cancel_all_timers(), 3)

        await asyncio.sleep(0.1)

        for callback in callbacks:
            callback.assert_not_awaited()
        self.assertEqual(self.engine.get_active_timer_count(), 0)

    @async_test
    async def test_timer_state_flags(self):
        """Test AdvanceTimer flags through its lifecycle."""
        timer = AdvanceTimer(self.channel_id)
        callback = AsyncMock()

        timer._task = asyncio.create_task(timer.run(0.01, callback))
        self.assertTrue(timer.is_pending)

        await timer._task

        self.assertTrue(timer.has_fired)
        self.assertFalse(timer.is_cancelled)
        self.assertFalse(timer.is_pending)

    @async_test
    async def test_timer_cancel_marks_cancelled(self):
        """Test that cancel stops the underlying task."""
        timer = AdvanceTimer(self.channel_id)
        callback = AsyncMock()

        timer._task = asyncio.create_task(timer.run(1.0, callback))
        await asyncio.sleep(0)
        timer.cancel()

        with self.assertRaises(asyncio.CancelledError):
            await timer._task

        self.assertTrue(timer.is_cancelled)
        self.assertFalse(timer.has_fired)
        callback.assert_not_awaited()


if __name__ == '__main__':
    unittest.main()

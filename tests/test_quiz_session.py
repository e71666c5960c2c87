"""
Unit tests for the QuizSession state machine.
"""
import unittest

from mathgame.errors import IndexOutOfRangeError, InvalidConfigError, InvalidStateError
from mathgame.models import SessionConfig, SessionPhase
from mathgame.quiz_session import QuizSession, validate_config
from tests.test_fixtures import TestFixtures, TestDataValidation


class TestQuizSessionLifecycle(unittest.TestCase):
    """Test cases for phase transitions and scoring."""

    def setUp(self):
        """Set up test fixtures."""
        self.session = QuizSession(TestFixtures.create_seeded_generator(), session_id="test")

    def play_round(self, correct: bool):
        state = self.session.state
        index = state.answer_set.correct_index if correct else TestFixtures.wrong_index(state)
        return self.session.submit_answer(index)

    def test_initial_phase(self):
        """Test a fresh session awaits its first question."""
        state = self.session.state
        self.assertEqual(state.phase, SessionPhase.AWAITING_QUESTION)
        self.assertIsNone(state.question)
        self.assertIsNone(state.difficulty)
        self.assertIsNone(state.total_rounds)
        self.assertIsNone(self.session.config)
        self.assertEqual(state.score, 0)
        self.assertEqual(state.rounds_played, 0)

    def test_start_presents_first_question(self):
        """Test start initializes counters and enters ROUND_IN_PROGRESS."""
        state = self.session.start(SessionConfig(difficulty=4, total_rounds=5))

        self.assertEqual(state.phase, SessionPhase.ROUND_IN_PROGRESS)
        self.assertEqual(state.score, 0)
        self.assertEqual(state.rounds_played, 0)
        self.assertEqual(state.current_round, 1)
        self.assertEqual(state.total_rounds, 5)
        self.assertEqual(state.difficulty, 4)
        self.assertTrue(TestDataValidation.validate_question(state.question, 4))
        self.assertTrue(TestDataValidation.validate_answer_set(state.question, state.answer_set, 4))
        self.assertIsNone(state.last_result)

    def test_single_round_correct_answer_completes(self):
        """Test difficulty 3, one round, correct answer."""
        self.session.start(SessionConfig(difficulty=3, total_rounds=1))

        result = self.play_round(correct=True)

        self.assertTrue(result.is_correct)
        self.assertEqual(result.score, 1)
        self.assertEqual(result.rounds_played, 1)
        self.assertTrue(result.is_final_round)
        self.assertEqual(self.session.phase, SessionPhase.ROUND_RESOLVED)

        state = self.session.advance()

        self.assertEqual(state.phase, SessionPhase.SESSION_COMPLETE)
        self.assertTrue(state.is_session_complete)
        self.assertEqual(state.score, 1)
        self.assertEqual(state.rounds_played, 1)

    def test_wrong_then_correct_reports_one_of_two(self):
        """Test difficulty 5, two rounds, one wrong then one correct answer."""
        self.session.start(SessionConfig(difficulty=5, total_rounds=2))

        first = self.play_round(correct=False)
        self.assertFalse(first.is_correct)
        self.assertEqual(first.score, 0)

        state = self.session.advance()
        self.assertEqual(state.phase, SessionPhase.ROUND_IN_PROGRESS)
        self.assertEqual(state.current_round, 2)

        second = self.play_round(correct=True)
        self.assertTrue(second.is_correct)
        self.assertEqual(second.score, 1)

        self.session.advance()
        summary = self.session.summary()

        self.assertEqual(summary.score, 1)
        self.assertEqual(summary.total_rounds, 2)
        self.assertEqual(summary.text, "1 out of 2")
        self.assertEqual(summary.percentage, 50.0)

    def test_round_result_details(self):
        """Test the round result reports chosen and correct answers."""
        state = self.session.start(SessionConfig(difficulty=6, total_rounds=3))
        wrong = TestFixtures.wrong_index(state)

        result = self.session.submit_answer(wrong)

        self.assertEqual(result.selected_index, wrong)
        self.assertEqual(result.selected_answer, state.answer_set[wrong])
        self.assertEqual(result.correct_index, state.answer_set.correct_index)
        self.assertEqual(result.correct_answer, state.question.correct_answer)
        self.assertFalse(result.is_final_round)
        self.assertEqual(self.session.state.last_result, result)
        self.assertTrue(self.session.state.is_round_resolved)

    def test_invariant_holds_through_full_game(self):
        """Test 0 <= score <= rounds_played <= total_rounds at every step."""
        self.session.start(SessionConfig(difficulty=12, total_rounds=10))

        for round_number in range(10):
            self.assertTrue(TestDataValidation.validate_state_invariant(self.session.state))
            self.play_round(correct=round_number % 3 == 0)
            self.assertTrue(TestDataValidation.validate_state_invariant(self.session.state))
            self.session.advance()

        state = self.session.state
        self.assertTrue(state.is_session_complete)
        self.assertEqual(state.rounds_played, 10)
        self.assertEqual(state.score, 4)

    def test_new_question_each_round(self):
        """Test advance replaces the question while rounds remain."""
        self.session.start(SessionConfig(difficulty=12, total_rounds=3))
        self.play_round(correct=True)
        resolved = self.session.state

        state = self.session.advance()

        self.assertEqual(state.phase, SessionPhase.ROUND_IN_PROGRESS)
        self.assertTrue(TestDataValidation.validate_answer_set(state.question, state.answer_set, 12))
        self.assertEqual(state.last_result, resolved.last_result)

    def test_reset_replays_with_same_config(self):
        """Test reset after completion starts over with the stored config."""
        self.session.start(SessionConfig(difficulty=3, total_rounds=1))
        self.play_round(correct=True)
        self.session.advance()

        state = self.session.reset()

        self.assertEqual(state.phase, SessionPhase.ROUND_IN_PROGRESS)
        self.assertEqual(state.score, 0)
        self.assertEqual(state.rounds_played, 0)
        self.assertEqual(state.difficulty, 3)
        self.assertEqual(state.total_rounds, 1)
        self.assertIsNone(state.last_result)

    def test_start_allowed_after_completion(self):
        """Test a completed session can start with a new config."""
        self.session.start(SessionConfig(difficulty=3, total_rounds=1))
        self.play_round(correct=False)
        self.session.advance()

        state = self.session.start(SessionConfig(difficulty=8, total_rounds=2))

        self.assertEqual(state.difficulty, 8)
        self.assertEqual(state.total_rounds, 2)


class TestQuizSessionErrors(unittest.TestCase):
    """Test cases for contract violations."""

    def setUp(self):
        """Set up test fixtures."""
        self.session = QuizSession(TestFixtures.create_seeded_generator(), session_id="test")

    def test_out_of_range_index_leaves_state_unchanged(self):
        """Test submitAnswer(5) on a fresh round."""
        self.session.start(SessionConfig(difficulty=5, total_rounds=2))
        before = self.session.state

        with self.assertRaises(IndexOutOfRangeError):
            self.session.submit_answer(5)

        self.assertEqual(self.session.state, before)
        self.assertEqual(self.session.phase, SessionPhase.ROUND_IN_PROGRESS)

    def test_negative_and_non_integer_indexes(self):
        """Test other invalid answer indexes."""
        self.session.start(SessionConfig(difficulty=5, total_rounds=2))
        before = self.session.state

        for index in (-1, 4, 1.0, "0", None, True):
            with self.assertRaises(IndexOutOfRangeError):
                self.session.submit_answer(index)

        self.assertEqual(self.session.state, before)

    def test_submit_before_start(self):
        """Test submitting with no question on screen."""
        with self.assertRaises(InvalidStateError):
            self.session.submit_answer(0)

    def test_double_submit_rejected(self):
        """Test a resolved round cannot be answered again."""
        self.session.start(SessionConfig(difficulty=5, total_rounds=2))
        self.session.submit_answer(0)
        before = self.session.state

        with self.assertRaises(InvalidStateError):
            self.session.submit_answer(1)

        self.assertEqual(self.session.state, before)

    def test_submit_after_completion_until_reset(self):
        """Test completed sessions reject answers until reset."""
        state = self.session.start(SessionConfig(difficulty=3, total_rounds=1))
        self.session.submit_answer(state.answer_set.correct_index)
        self.session.advance()

        for _ in range(3):
            with self.assertRaises(InvalidStateError):
                self.session.submit_answer(0)
            self.assertTrue(self.session.state.is_session_complete)

        self.session.reset()
        self.session.submit_answer(0)
        self.assertEqual(self.session.state.rounds_played, 1)

    def test_advance_requires_resolved_round(self):
        """Test advance outside ROUND_RESOLVED."""
        with self.assertRaises(InvalidStateError):
            self.session.advance()

        self.session.start(SessionConfig(difficulty=5, total_rounds=2))
        with self.assertRaises(InvalidStateError):
            self.session.advance()

    def test_reset_requires_completion(self):
        """Test reset outside SESSION_COMPLETE."""
        with self.assertRaises(InvalidStateError):
            self.session.reset()

        self.session.start(SessionConfig(difficulty=5, total_rounds=2))
        with self.assertRaises(InvalidStateError):
            self.session.reset()

    def test_summary_requires_completion(self):
        """Test summary before the last round is advanced."""
        self.session.start(SessionConfig(difficulty=5, total_rounds=1))
        self.session.submit_answer(0)

        with self.assertRaises(InvalidStateError):
            self.session.summary()

    def test_start_rejected_mid_game(self):
        """Test start while a round is in progress or resolved."""
        self.session.start(SessionConfig(difficulty=5, total_rounds=2))
        with self.assertRaises(InvalidStateError):
            self.session.start(SessionConfig(difficulty=5, total_rounds=2))

        self.session.submit_answer(0)
        with self.assertRaises(InvalidStateError):
            self.session.start(SessionConfig(difficulty=5, total_rounds=2))

    def test_invalid_config_leaves_state_unchanged(self):
        """Test invalid configurations are rejected before any mutation."""
        before = self.session.state

        for config in (
            SessionConfig(difficulty=1, total_rounds=5),
            SessionConfig(difficulty=0, total_rounds=5),
            SessionConfig(difficulty=5, total_rounds=0),
            SessionConfig(difficulty=5, total_rounds=-2),
            SessionConfig(difficulty="5", total_rounds=5),
            SessionConfig(difficulty=5, total_rounds=2.5),
        ):
            with self.assertRaises(InvalidConfigError):
                self.session.start(config)

        self.assertEqual(self.session.state, before)

    def test_validate_config_accepts_large_values(self):
        """Test the core accepts any difficulty >= 2 and rounds >= 1."""
        validate_config(SessionConfig(difficulty=2, total_rounds=1))
        validate_config(SessionConfig(difficulty=100, total_rounds=500))


if __name__ == '__main__':
    unittest.main()

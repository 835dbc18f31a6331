"""
Tests for streak-driven level adjustment.
"""
import random

import pytest

from entrance.core.adaptive.levels import MAX_STATE, MIN_STATE, LevelState
from entrance.core.adaptive.streaks import StreakState, apply_answer, settle_pending


def feed(state, answers):
    """Feed a sequence of booleans and return the final state."""
    for correct in answers:
        state = apply_answer(state, correct).state
    return state


class TestApplyAnswer:
    """Tests for apply_answer."""

    def test_two_correct_do_not_move(self):
        state = feed(StreakState(LevelState(2, 1)), [True, True])
        assert state.level == LevelState(2, 1)
        assert state.correct_streak == 2

    def test_three_correct_are_pending_not_moved(self):
        """Test that a run of three holds a pending step without moving yet."""
        state = feed(StreakState(LevelState(2, 1)), [True] * 3)
        assert state.level == LevelState(2, 1)
        assert state.pending_steps == 1

    def test_three_correct_then_miss_moves_one_step_up(self):
        """Test that breaking a run of three commits exactly one step."""
        start = feed(StreakState(LevelState(2, 1)), [True] * 3)
        outcome = apply_answer(start, False)

        assert outcome.state.level == LevelState(2, 2)
        assert outcome.steps == 1
        assert outcome.level_changed
        assert outcome.state.correct_streak == 0
        assert outcome.state.incorrect_streak == 1

    def test_four_correct_then_miss_moves_one_step_up(self):
        state = feed(StreakState(LevelState(2, 1)), [True] * 4 + [False])
        assert state.level == LevelState(2, 2)

    def test_five_correct_skip_two_steps(self):
        """Test that five consecutive correct answers move 2.1 to 2.3 once."""
        levels = []
        state = StreakState(LevelState(2, 1))
        for _ in range(5):
            outcome = apply_answer(state, True)
            levels.append(outcome.state.level)
            state = outcome.state

        assert levels[:4] == [LevelState(2, 1)] * 4
        assert levels[4] == LevelState(2, 3)
        assert state.correct_streak == 0
        assert state.incorrect_streak == 0

    def test_sixth_correct_starts_new_run(self):
        state = feed(StreakState(LevelState(2, 1)), [True] * 6)
        assert state.level == LevelState(2, 3)
        assert state.correct_streak == 1

    def test_five_incorrect_skip_two_steps_down(self):
        state = feed(StreakState(LevelState(4, 2)), [False] * 5)
        assert state.level == LevelState(3, 3)

    def test_three_incorrect_then_correct_moves_one_step_down(self):
        state = feed(StreakState(LevelState(3, 1)), [False] * 3 + [True])
        assert state.level == LevelState(2, 3)
        assert state.correct_streak == 1
        assert state.incorrect_streak == 0

    def test_alternating_answers_never_move(self):
        state = feed(StreakState(LevelState(3, 2)), [True, False] * 10)
        assert state.level == LevelState(3, 2)

    def test_skip_saturates_at_top(self):
        """Test that a skip from 7.2 stops at 7.3 and reports the change."""
        outcome = None
        state = StreakState(LevelState(7, 2))
        for _ in range(5):
            outcome = apply_answer(state, True)
            state = outcome.state
        assert state.level == MAX_STATE
        assert outcome.steps == 2
        assert outcome.level_changed

    def test_saturated_move_reports_no_change(self):
        """Test that a move requested at the edge is not a level change."""
        state = feed(StreakState(MIN_STATE), [False] * 4)
        outcome = apply_answer(state, False)
        assert outcome.steps == -2
        assert outcome.state.level == MIN_STATE
        assert not outcome.level_changed

    def test_random_sequences_stay_in_bounds(self):
        """Test that arbitrary answer sequences never leave the lattice."""
        rng = random.Random(1234)
        for _ in range(50):
            state = StreakState(LevelState(rng.randint(1, 7), rng.randint(1, 3)))
            for _ in range(60):
                state = apply_answer(state, rng.random() < 0.6).state
                assert MIN_STATE <= state.level <= MAX_STATE
                assert state.correct_streak == 0 or state.incorrect_streak == 0

    def test_negative_streak_rejected(self):
        with pytest.raises(ValueError):
            StreakState(LevelState(2, 1), correct_streak=-1)


class TestSettlePending:
    """Tests for settle_pending."""

    def test_settles_pending_step_up(self):
        """Test that an unbroken run of three commits its step at exhaustion."""
        state = feed(StreakState(LevelState(2, 1)), [True] * 3)
        outcome = settle_pending(state)
        assert outcome.state.level == LevelState(2, 2)
        assert outcome.level_changed
        assert outcome.state.correct_streak == 0

    def test_settles_pending_step_down(self):
        state = feed(StreakState(LevelState(2, 1)), [False] * 4)
        assert settle_pending(state).state.level == LevelState(1, 3)

    def test_short_run_is_not_settled(self):
        state = feed(StreakState(LevelState(2, 1)), [True, True])
        outcome = settle_pending(state)
        assert outcome.state.level == LevelState(2, 1)
        assert not outcome.level_changed
        assert outcome.steps == 0

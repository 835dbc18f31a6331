"""
Streak-driven level adjustment for one section.

Each answer extends the streak matching its outcome and breaks the opposite
one. Level moves follow the length of a completed run:

    - A run reaching STREAK_SKIP_THRESHOLD (5) moves STREAK_SKIP_STEPS (2)
      sublevels at once, on the answer that reaches it, and both streaks
      reset.
    - A run that reached STREAK_STEP_THRESHOLD (3) but stopped short of the
      skip threshold moves one sublevel. The move is held as *pending* while
      the run might still grow into a skip, and is committed when the run is
      broken by the opposite outcome or when the section is exhausted
      (see settle_pending).

This makes the skip dominate the plain step: five consecutive correct
answers produce a single 2-step move, never a 1-step move at the third
answer followed by more moves later. A run of exactly three or four produces
exactly one step.

When a pending move is committed by a breaking answer, the broken streak
resets to 0 and the breaking answer starts the new run at 1.
"""
from dataclasses import dataclass, replace
from typing import Tuple

from entrance.core.adaptive.levels import LevelState, shift_by
from entrance.core.adaptive.sections import (
    STREAK_SKIP_STEPS,
    STREAK_SKIP_THRESHOLD,
    STREAK_STEP_THRESHOLD,
)


@dataclass(frozen=True)
class StreakState:
    """Adjuster state for one section."""

    level: LevelState
    correct_streak: int = 0
    incorrect_streak: int = 0

    def __post_init__(self) -> None:
        if self.correct_streak < 0 or self.incorrect_streak < 0:
            raise ValueError("Streak counters must be non-negative")

    @property
    def pending_steps(self) -> int:
        """Signed move that would be committed if the current run ended now."""
        if self.correct_streak >= STREAK_STEP_THRESHOLD:
            return 1
        if self.incorrect_streak >= STREAK_STEP_THRESHOLD:
            return -1
        return 0


@dataclass(frozen=True)
class StreakOutcome:
    """Result of feeding one event into the adjuster."""

    state: StreakState
    previous_level: LevelState
    steps: int  # signed number of sublevel steps requested this event

    @property
    def level_changed(self) -> bool:
        # A requested move can saturate at a lattice edge
        return self.state.level != self.previous_level


def _split(state: StreakState, correct: bool) -> Tuple[int, int, int]:
    """Return (run_streak, opposite_streak, direction) for an answer outcome."""
    if correct:
        return state.correct_streak, state.incorrect_streak, 1
    return state.incorrect_streak, state.correct_streak, -1


def _join(run: int, opposite: int, correct: bool) -> Tuple[int, int]:
    """Inverse of _split: back to (correct_streak, incorrect_streak)."""
    return (run, opposite) if correct else (opposite, run)


def apply_answer(state: StreakState, correct: bool) -> StreakOutcome:
    """
    Feed one answer into the adjuster.

    Args:
        state: Current adjuster state
        correct: Whether the answer was correct

    Returns:
        StreakOutcome with the new state and the signed step count applied
    """
    run, opposite, direction = _split(state, correct)
    level = state.level
    steps = 0

    # This answer breaks the opposite run: commit its pending single step
    if opposite >= STREAK_STEP_THRESHOLD:
        steps -= direction
        level = shift_by(level, -direction)
    opposite = 0

    run += 1
    if run >= STREAK_SKIP_THRESHOLD:
        steps += direction * STREAK_SKIP_STEPS
        level = shift_by(level, direction * STREAK_SKIP_STEPS)
        run = 0

    correct_streak, incorrect_streak = _join(run, opposite, correct)
    new_state = StreakState(
        level=level,
        correct_streak=correct_streak,
        incorrect_streak=incorrect_streak,
    )
    return StreakOutcome(state=new_state, previous_level=state.level, steps=steps)


def settle_pending(state: StreakState) -> StreakOutcome:
    """
    Commit any pending single step and clear both streaks.

    Called when a section stops serving questions, so its final level
    reflects a run of three or four that never got broken.
    """
    steps = state.pending_steps
    settled = replace(
        state,
        level=shift_by(state.level, steps),
        correct_streak=0,
        incorrect_streak=0,
    )
    return StreakOutcome(state=settled, previous_level=state.level, steps=steps)

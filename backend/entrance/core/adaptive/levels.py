"""
Level lattice arithmetic.

A section's difficulty is a two-axis coordinate: an integer level 1..7 and a
sublevel 1..3 within it. States are totally ordered level-major,
sublevel-minor (2.1 < 2.2 < 2.3 < 3.1) and live in the closed range
[1.1, 7.3]. Every move saturates at the edges instead of failing.

The ordinal encoding (level * 3 + sublevel - 1) maps the lattice onto
consecutive integers, which makes stepping and clamping plain integer math.
"""
import logging
import math
import re
from dataclasses import dataclass
from typing import Any, List, Literal

from entrance.core.adaptive.sections import DEFAULT_SEED
from entrance.core.exceptions import InvalidLevelState

logger = logging.getLogger(__name__)

MIN_LEVEL = 1
MAX_LEVEL = 7
MIN_SUBLEVEL = 1
MAX_SUBLEVEL = 3

Direction = Literal["up", "down"]

_SEED_PATTERN = re.compile(r"^\s*(\d+)\.(\d)\s*$")


@dataclass(frozen=True, order=True)
class LevelState:
    """One section's current difficulty (level x sublevel)."""

    level: int
    sublevel: int

    def __post_init__(self) -> None:
        for name, value, low, high in (
            ("level", self.level, MIN_LEVEL, MAX_LEVEL),
            ("sublevel", self.sublevel, MIN_SUBLEVEL, MAX_SUBLEVEL),
        ):
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidLevelState(f"{name} must be an integer, got {value!r}")
            if not low <= value <= high:
                raise InvalidLevelState(
                    f"{name} must be between {low} and {high}, got {value}"
                )

    def __str__(self) -> str:
        return level_to_seed(self)


MIN_STATE = LevelState(MIN_LEVEL, MIN_SUBLEVEL)
MAX_STATE = LevelState(MAX_LEVEL, MAX_SUBLEVEL)


def to_ordinal(state: LevelState) -> int:
    """Map a state onto consecutive integers (1.1 -> 3, 7.3 -> 23)."""
    return state.level * 3 + (state.sublevel - 1)


MIN_ORDINAL = to_ordinal(MIN_STATE)
MAX_ORDINAL = to_ordinal(MAX_STATE)


def from_ordinal(ordinal: Any) -> LevelState:
    """
    Inverse of to_ordinal, clamped to [1.1, 7.3].

    Args:
        ordinal: Integer ordinal. Values outside the lattice saturate.

    Raises:
        InvalidLevelState: If ordinal is not an integer (including NaN/inf)
    """
    if isinstance(ordinal, bool) or not isinstance(ordinal, int):
        if isinstance(ordinal, float) and not math.isfinite(ordinal):
            raise InvalidLevelState(f"Ordinal must be finite, got {ordinal}")
        raise InvalidLevelState(f"Ordinal must be an integer, got {ordinal!r}")

    clamped = max(MIN_ORDINAL, min(MAX_ORDINAL, ordinal))
    level, remainder = divmod(clamped, 3)
    return LevelState(level=level, sublevel=remainder + 1)


def step(state: LevelState, direction: Direction) -> LevelState:
    """Move one sublevel up or down, rolling across levels and saturating at the edges."""
    if direction == "up":
        delta = 1
    elif direction == "down":
        delta = -1
    else:
        raise InvalidLevelState(f"Direction must be 'up' or 'down', got {direction!r}")
    return from_ordinal(to_ordinal(state) + delta)


def shift_by(state: LevelState, delta_steps: int) -> LevelState:
    """
    Apply ``delta_steps`` single-step moves (positive = up).

    Equivalent to repeated step() calls; saturation means a shift past an edge
    stops at the edge.
    """
    if isinstance(delta_steps, bool) or not isinstance(delta_steps, int):
        raise InvalidLevelState(f"Shift must be an integer, got {delta_steps!r}")
    return from_ordinal(to_ordinal(state) + delta_steps)


def level_to_seed(state: LevelState) -> str:
    """Serialize a state as its dotted string form ("2.1")."""
    return f"{state.level}.{state.sublevel}"


def level_value(state: LevelState) -> float:
    """Numeric level used for averaging (2.1 -> 2.1)."""
    return round(state.level + state.sublevel / 10, 1)


def parse_level(text: Any) -> LevelState:
    """
    Strictly parse a dotted level string.

    Raises:
        InvalidLevelState: If text is not "L.S" with L in 1..7 and S in 1..3
    """
    if not isinstance(text, str):
        raise InvalidLevelState(f"Level must be a string like '2.1', got {text!r}")
    match = _SEED_PATTERN.match(text)
    if not match:
        raise InvalidLevelState(f"Malformed level '{text}', expected 'L.S'")
    return LevelState(level=int(match.group(1)), sublevel=int(match.group(2)))


def parse_seed(value: Any) -> LevelState:
    """
    Leniently parse a seed value, falling back to the default 2.1.

    Used where a malformed or missing seed must not block a test from
    starting (seed_start entries written by older placement runs, manual
    edits, etc.).
    """
    if value is None:
        return parse_level(DEFAULT_SEED)
    try:
        return parse_level(value)
    except InvalidLevelState:
        logger.warning(f"Malformed seed {value!r}; using default {DEFAULT_SEED}")
        return parse_level(DEFAULT_SEED)


def level_from_value(value: float) -> LevelState:
    """
    Snap a numeric level (e.g. 3.17) onto the lattice.

    The fractional part rounds to the nearest sublevel tenth (<.17 -> .1,
    <.25 -> .2, otherwise .3); results are clamped to [1.1, 7.3].
    """
    if not math.isfinite(value):
        raise InvalidLevelState(f"Level value must be finite, got {value}")

    level = math.floor(value)
    fractional = value - level
    if fractional >= 0.25:
        sublevel = 3
    elif fractional >= 0.17:
        sublevel = 2
    else:
        sublevel = 1

    if level < MIN_LEVEL:
        return MIN_STATE
    if level > MAX_LEVEL:
        return MAX_STATE
    return LevelState(level=level, sublevel=sublevel)


def level_candidates(state: LevelState, max_steps: int = 3) -> List[LevelState]:
    """
    Return ``state`` followed by its neighbours, nearest first.

    For each distance d in 1..max_steps the state d steps down precedes the
    state d steps up. Duplicates produced by saturation are dropped.
    """
    seen = set()
    candidates: List[LevelState] = []
    for candidate in [state] + [
        shift_by(state, sign * distance)
        for distance in range(1, max_steps + 1)
        for sign in (-1, 1)
    ]:
        if candidate not in seen:
            seen.add(candidate)
            candidates.append(candidate)
    return candidates

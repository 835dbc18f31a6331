"""
Tests for level lattice arithmetic.
"""
import math

import pytest

from entrance.core.adaptive.levels import (
    MAX_ORDINAL,
    MAX_STATE,
    MIN_ORDINAL,
    MIN_STATE,
    LevelState,
    from_ordinal,
    level_candidates,
    level_from_value,
    level_to_seed,
    level_value,
    parse_level,
    parse_seed,
    shift_by,
    step,
    to_ordinal,
)
from entrance.core.exceptions import InvalidLevelState


ALL_STATES = [from_ordinal(o) for o in range(MIN_ORDINAL, MAX_ORDINAL + 1)]


class TestLevelState:
    """Tests for LevelState construction and ordering."""

    def test_rejects_out_of_range_level(self):
        """Test that levels outside 1..7 are rejected."""
        with pytest.raises(InvalidLevelState):
            LevelState(level=8, sublevel=1)
        with pytest.raises(InvalidLevelState):
            LevelState(level=0, sublevel=1)

    def test_rejects_out_of_range_sublevel(self):
        """Test that sublevels outside 1..3 are rejected."""
        with pytest.raises(InvalidLevelState):
            LevelState(level=2, sublevel=4)

    def test_rejects_non_integer(self):
        """Test that floats and bools are not accepted as coordinates."""
        with pytest.raises(InvalidLevelState):
            LevelState(level=2.0, sublevel=1)
        with pytest.raises(InvalidLevelState):
            LevelState(level=True, sublevel=1)

    def test_ordering_is_level_major(self):
        """Test that 2.3 < 3.1 and 2.1 < 2.2."""
        assert LevelState(2, 1) < LevelState(2, 2) < LevelState(2, 3) < LevelState(3, 1)

    def test_str_is_seed_form(self):
        assert str(LevelState(4, 2)) == "4.2"


class TestOrdinal:
    """Tests for to_ordinal / from_ordinal."""

    def test_edges(self):
        """Test the ordinal of the lattice edges."""
        assert to_ordinal(MIN_STATE) == 3
        assert to_ordinal(MAX_STATE) == 23

    def test_roundtrip_every_state(self):
        """Test that from_ordinal inverts to_ordinal on the whole lattice."""
        for state in ALL_STATES:
            assert from_ordinal(to_ordinal(state)) == state

    def test_consecutive(self):
        """Test that the lattice maps onto consecutive integers."""
        ordinals = [to_ordinal(s) for s in ALL_STATES]
        assert ordinals == list(range(3, 24))
        assert len(ALL_STATES) == 21

    def test_clamps_out_of_range(self):
        """Test that ordinals past either edge saturate."""
        assert from_ordinal(-50) == MIN_STATE
        assert from_ordinal(1000) == MAX_STATE

    @pytest.mark.parametrize("value", [2.5, math.nan, math.inf, "7", None])
    def test_rejects_non_integer(self, value):
        """Test that non-integer ordinals raise InvalidLevelState."""
        with pytest.raises(InvalidLevelState):
            from_ordinal(value)


class TestStep:
    """Tests for step and shift_by."""

    def test_step_rolls_across_levels(self):
        """Test that 2.3 up is 3.1 and 3.1 down is 2.3."""
        assert step(LevelState(2, 3), "up") == LevelState(3, 1)
        assert step(LevelState(3, 1), "down") == LevelState(2, 3)

    def test_step_saturates(self):
        """Test that stepping past an edge stays on the edge."""
        assert step(MAX_STATE, "up") == MAX_STATE
        assert step(MIN_STATE, "down") == MIN_STATE

    def test_step_up_then_down_restores_interior_states(self):
        """Test that up-then-down is the identity except at the top edge."""
        for state in ALL_STATES:
            if state == MAX_STATE:
                continue
            assert step(step(state, "up"), "down") == state

    def test_invalid_direction(self):
        with pytest.raises(InvalidLevelState):
            step(LevelState(2, 1), "sideways")

    def test_shift_by_matches_repeated_steps(self):
        """Test that shift_by(n) equals n single steps for every state."""
        for state in ALL_STATES:
            for delta in (-4, -2, -1, 0, 1, 2, 4):
                expected = state
                direction = "up" if delta > 0 else "down"
                for _ in range(abs(delta)):
                    expected = step(expected, direction)
                assert shift_by(state, delta) == expected

    def test_shift_by_rejects_float(self):
        with pytest.raises(InvalidLevelState):
            shift_by(LevelState(2, 1), 1.5)


class TestSeedStrings:
    """Tests for parse_level, parse_seed and level_to_seed."""

    def test_roundtrip_every_state(self):
        """Test that parse_level inverts level_to_seed on the whole lattice."""
        for state in ALL_STATES:
            assert parse_level(level_to_seed(state)) == state

    def test_parse_level_allows_surrounding_whitespace(self):
        assert parse_level(" 3.2 ") == LevelState(3, 2)

    @pytest.mark.parametrize("text", ["", "2", "2.", "2.1.1", "x.1", "8.1", "2.4", "0.3", "2.10"])
    def test_parse_level_rejects_malformed(self, text):
        """Test that malformed or out-of-range seeds raise InvalidLevelState."""
        with pytest.raises(InvalidLevelState):
            parse_level(text)

    def test_parse_level_rejects_non_string(self):
        with pytest.raises(InvalidLevelState):
            parse_level(2.1)

    def test_parse_seed_falls_back_to_default(self):
        """Test that missing or malformed seeds start at 2.1."""
        assert parse_seed(None) == LevelState(2, 1)
        assert parse_seed("garbage") == LevelState(2, 1)
        assert parse_seed("9.9") == LevelState(2, 1)

    def test_parse_seed_keeps_valid_seed(self):
        assert parse_seed("5.3") == LevelState(5, 3)


class TestLevelValue:
    """Tests for numeric level conversion."""

    def test_level_value(self):
        assert level_value(LevelState(2, 1)) == 2.1
        assert level_value(LevelState(7, 3)) == 7.3

    def test_level_from_value_roundtrip(self):
        """Test that level_from_value inverts level_value on the whole lattice."""
        for state in ALL_STATES:
            assert level_from_value(level_value(state)) == state

    @pytest.mark.parametrize(
        "value,expected",
        [
            (3.0, LevelState(3, 1)),
            (3.16, LevelState(3, 1)),
            (3.18, LevelState(3, 2)),
            (3.24, LevelState(3, 2)),
            (3.25, LevelState(3, 3)),
            (3.9, LevelState(3, 3)),
            (0.4, MIN_STATE),
            (9.2, MAX_STATE),
        ],
    )
    def test_level_from_value_snaps(self, value, expected):
        """Test snapping of fractional parts onto sublevels."""
        assert level_from_value(value) == expected

    def test_level_from_value_rejects_nan(self):
        with pytest.raises(InvalidLevelState):
            level_from_value(math.nan)


class TestLevelCandidates:
    """Tests for level_candidates."""

    def test_nearest_first_down_before_up(self):
        """Test that neighbours alternate below/above by distance."""
        candidates = level_candidates(LevelState(3, 2), max_steps=2)
        assert [str(c) for c in candidates] == ["3.2", "3.1", "3.3", "2.3", "4.1"]

    def test_saturation_duplicates_dropped(self):
        """Test that clamped neighbours at the edge appear only once."""
        candidates = level_candidates(MIN_STATE, max_steps=2)
        assert [str(c) for c in candidates] == ["1.1", "1.2", "1.3"]

"""
Tests for score aggregation.
"""
from decimal import Decimal

import pytest

from entrance.core.adaptive.levels import LevelState
from entrance.core.adaptive.scoring import (
    SectionResult,
    compute_section_result,
    compute_test_summary,
    percentage,
    round_half_up,
)
from entrance.core.adaptive.sections import DEFAULT_SECTION_WEIGHTS


def result(section, served, correct, level=(2, 1), final_level=None):
    return compute_section_result(
        section=section,
        served=served,
        correct=correct,
        current=LevelState(*level),
        final_level=final_level,
    )


class TestRounding:
    """Tests for round_half_up and percentage."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (2.25, 2.3),
            (2.35, 2.4),
            (59.175, 59.2),
            (Decimal("0.05"), 0.1),
            (66.66666, 66.7),
            (3, 3.0),
        ],
    )
    def test_round_half_up(self, value, expected):
        """Test that halves round up to one decimal."""
        assert round_half_up(value) == expected

    def test_percentage(self):
        assert percentage(10, 15) == 66.7
        assert percentage(18, 20) == 90.0
        assert percentage(36, 55) == 65.5

    def test_percentage_of_nothing_is_zero(self):
        """Test that a section with no served questions scores 0."""
        assert percentage(0, 0) == 0.0


class TestComputeSectionResult:
    """Tests for compute_section_result."""

    def test_uses_current_level_without_final(self):
        section = result("grammar", 15, 10, level=(3, 2))
        assert section.score == 66.7
        assert section.level_value == 3.2

    def test_final_level_takes_precedence(self):
        section = result("grammar", 15, 10, level=(3, 2), final_level=3.3)
        assert section.level_value == 3.3


class TestComputeTestSummary:
    """Tests for compute_test_summary."""

    def test_total_score_is_unweighted_mean(self):
        """Test the mean of 90, 66.7, 50 and 30 rounds to 59.2."""
        summary = compute_test_summary(
            [
                result("reading", 20, 18),
                result("grammar", 15, 10),
                result("listening", 10, 5),
                result("dialog", 10, 3),
            ],
            DEFAULT_SECTION_WEIGHTS,
        )

        assert [s.score for s in summary.sections] == [90.0, 66.7, 50.0, 30.0]
        assert summary.total_score == 59.2
        assert summary.accuracy == 65.5

    def test_weighted_level_uses_weights(self):
        """Test the weight-averaged level with the default weights."""
        summary = compute_test_summary(
            [
                result("reading", 1, 1, level=(3, 2)),
                result("grammar", 1, 1, level=(3, 1)),
                result("listening", 1, 1, level=(2, 3)),
                result("dialog", 1, 1, level=(2, 2)),
            ],
            DEFAULT_SECTION_WEIGHTS,
        )
        # 0.4*3.2 + 0.3*3.1 + 0.2*2.3 + 0.1*2.2 = 2.89
        assert summary.weighted_level == 2.9

    def test_weights_are_normalized_over_present_sections(self):
        """Test that only the weights of stored sections count."""
        summary = compute_test_summary(
            [result("reading", 1, 1, level=(4, 1)), result("dialog", 1, 0, level=(2, 1))],
            {"reading": 0.4, "dialog": 0.1, "grammar": 0.5},
        )
        # (0.4*4.1 + 0.1*2.1) / 0.5 = 3.7
        assert summary.weighted_level == 3.7

    def test_weighted_level_within_section_range(self):
        """Test that the weighted level never leaves [min, max] of the sections."""
        sections = [
            result("reading", 5, 5, level=(6, 3)),
            result("grammar", 5, 1, level=(1, 1)),
            result("listening", 5, 3, level=(4, 2)),
            result("dialog", 5, 2, level=(3, 3)),
        ]
        for weights in (
            DEFAULT_SECTION_WEIGHTS,
            {"reading": 1, "grammar": 1, "listening": 1, "dialog": 1},
            {"reading": 0, "grammar": 0.9, "listening": 0, "dialog": 0.1},
        ):
            summary = compute_test_summary(sections, weights)
            assert 1.1 <= summary.weighted_level <= 6.3

    def test_zero_weights_give_no_weighted_level(self):
        summary = compute_test_summary(
            [result("reading", 4, 2)], {"reading": 0, "grammar": 0.3}
        )
        assert summary.weighted_level is None
        assert summary.total_score == 50.0

    def test_no_sections(self):
        """Test that an empty summary has no total score and zero accuracy."""
        summary = compute_test_summary([], DEFAULT_SECTION_WEIGHTS)
        assert summary.total_score is None
        assert summary.weighted_level is None
        assert summary.accuracy == 0.0

    def test_section_map(self):
        summary = compute_test_summary(
            [SectionResult("grammar", 2, 1, 50.0, 2.1)], DEFAULT_SECTION_WEIGHTS
        )
        assert summary.section_map()["grammar"].score == 50.0

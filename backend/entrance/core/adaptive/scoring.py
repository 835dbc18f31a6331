"""
Score aggregation for finalized tests.

Per-section score is the percentage of served questions answered correctly.
The test summary combines sections two ways:

    - weighted_level: weight-averaged section level (None when the weights
      of the present sections sum to zero)
    - total_score: unweighted mean of the section scores

All values are rounded half-up to one decimal. Arithmetic runs on Decimal
so that e.g. mean(90, 66.7, 50, 30) = 59.175 rounds to 59.2 rather than
falling victim to binary representation.
"""
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Mapping, Optional, Sequence, Union

from entrance.core.adaptive.levels import LevelState, level_value

Number = Union[int, float, Decimal]

_ONE_DECIMAL = Decimal("0.1")


def _to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps the shortest decimal repr of a float (0.1 -> "0.1")
    return Decimal(str(value))


def round_half_up(value: Number) -> float:
    """Round to one decimal, halves away from zero (2.25 -> 2.3)."""
    return float(_to_decimal(value).quantize(_ONE_DECIMAL, rounding=ROUND_HALF_UP))


def percentage(part: int, whole: int) -> float:
    """``part / whole * 100`` rounded to one decimal; 0.0 when whole is 0."""
    if whole <= 0:
        return 0.0
    return round_half_up(Decimal(part) * 100 / Decimal(whole))


@dataclass(frozen=True)
class SectionResult:
    """Finalized figures for one section."""

    section: str
    served: int
    correct: int
    score: float
    level_value: float


@dataclass(frozen=True)
class TestSummary:
    """Aggregated result of a test."""

    __test__ = False  # not a pytest test class

    weighted_level: Optional[float]
    total_score: Optional[float]
    accuracy: float
    sections: List[SectionResult]

    def section_map(self) -> Dict[str, SectionResult]:
        return {result.section: result for result in self.sections}


def compute_section_result(
    section: str,
    served: int,
    correct: int,
    current: LevelState,
    final_level: Optional[float] = None,
) -> SectionResult:
    """
    Score one section.

    Args:
        section: Section key
        served: Questions served (answered) in the section
        correct: Questions answered correctly
        current: Section's current level
        final_level: Recorded final level; falls back to ``current`` when None

    Returns:
        SectionResult with score and level value
    """
    level = final_level if final_level is not None else level_value(current)
    return SectionResult(
        section=section,
        served=served,
        correct=correct,
        score=percentage(correct, served),
        level_value=float(level),
    )


def compute_test_summary(
    results: Sequence[SectionResult],
    weights: Mapping[str, float],
) -> TestSummary:
    """
    Aggregate section results into a test summary.

    Args:
        results: One result per stored section
        weights: Section -> weight; missing sections weigh 0

    Returns:
        TestSummary. total_score is None only when there are no sections.
    """
    weighted_sum = Decimal(0)
    weight_total = Decimal(0)
    score_sum = Decimal(0)
    served_total = 0
    correct_total = 0

    for result in results:
        weight = _to_decimal(weights.get(result.section, 0))
        weighted_sum += weight * _to_decimal(result.level_value)
        weight_total += weight
        score_sum += _to_decimal(result.score)
        served_total += result.served
        correct_total += result.correct

    weighted_level = (
        round_half_up(weighted_sum / weight_total) if weight_total > 0 else None
    )
    total_score = round_half_up(score_sum / len(results)) if results else None

    return TestSummary(
        weighted_level=weighted_level,
        total_score=total_score,
        accuracy=percentage(correct_total, served_total),
        sections=list(results),
    )

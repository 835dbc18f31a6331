"""
Adaptive difficulty engine for entrance tests.

This package holds the pure logic: level lattice arithmetic, section
configuration, streak-driven adjustment, score aggregation, narrative
feedback and placement seeding. Modules that touch the database
(propagation, question_bank) are imported directly, not re-exported here,
so that entrance.core.config can import section constants without pulling
in the models.
"""

from .levels import (
    LevelState,
    MAX_STATE,
    MIN_STATE,
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
from .sections import (
    DEFAULT_SECTION_WEIGHTS,
    SECTION_MAX_QUESTIONS,
    SECTION_ORDER,
    SECTION_PARALLEL_DEPENDENTS,
    SECTION_PARALLEL_RULES,
    Section,
)
from .streaks import StreakOutcome, StreakState, apply_answer, settle_pending

__all__ = [
    "LevelState",
    "MAX_STATE",
    "MIN_STATE",
    "from_ordinal",
    "level_candidates",
    "level_from_value",
    "level_to_seed",
    "level_value",
    "parse_level",
    "parse_seed",
    "shift_by",
    "step",
    "to_ordinal",
    "DEFAULT_SECTION_WEIGHTS",
    "SECTION_MAX_QUESTIONS",
    "SECTION_ORDER",
    "SECTION_PARALLEL_DEPENDENTS",
    "SECTION_PARALLEL_RULES",
    "Section",
    "StreakOutcome",
    "StreakState",
    "apply_answer",
    "settle_pending",
]

"""
Section configuration for the adaptive entrance test.

Defines the four tested sections, the order in which they are served, the
per-section question caps, streak thresholds, and the parallel-dependency
rules used to propagate level shifts between sections.
"""
import enum
from typing import Dict, List, NamedTuple, Tuple


class Section(str, enum.Enum):
    """Skill area tested by one section of an entrance test."""

    GRAMMAR = "grammar"
    READING = "reading"
    LISTENING = "listening"
    DIALOG = "dialog"


# Serving order: sections are completed one after another in this order
SECTION_ORDER: Tuple[str, ...] = (
    Section.GRAMMAR.value,
    Section.READING.value,
    Section.LISTENING.value,
    Section.DIALOG.value,
)

# Once questions_served reaches the cap the section is exhausted
SECTION_MAX_QUESTIONS: Dict[str, int] = {
    Section.READING.value: 20,
    Section.GRAMMAR.value: 15,
    Section.LISTENING.value: 10,
    Section.DIALOG.value: 10,
}

# Finalizer weights (overridable via settings and system_config)
DEFAULT_SECTION_WEIGHTS: Dict[str, float] = {
    Section.READING.value: 0.4,
    Section.GRAMMAR.value: 0.3,
    Section.LISTENING.value: 0.2,
    Section.DIALOG.value: 0.1,
}

# Streak thresholds (consecutive same-outcome answers)
STREAK_STEP_THRESHOLD = 3
STREAK_SKIP_THRESHOLD = 5
STREAK_SKIP_STEPS = 2

DEFAULT_SEED = "2.1"

# Reading serves questions one passage at a time
READING_PASSAGE_MAX_QUESTIONS = 5


class ParallelRule(NamedTuple):
    """A dependent section follows ``base`` shifted by ``offset`` sublevel steps."""

    base: str
    offset: int


# dependent -> rule
SECTION_PARALLEL_RULES: Dict[str, ParallelRule] = {
    Section.READING.value: ParallelRule(base=Section.GRAMMAR.value, offset=0),
    Section.LISTENING.value: ParallelRule(base=Section.GRAMMAR.value, offset=-1),
    Section.DIALOG.value: ParallelRule(base=Section.LISTENING.value, offset=-1),
}


class ParallelDependent(NamedTuple):
    section: str
    offset: int


def build_parallel_dependents(
    rules: Dict[str, ParallelRule],
) -> Dict[str, List[ParallelDependent]]:
    """
    Invert dependent->base rules into a base->dependents adjacency map.

    Every section in SECTION_ORDER gets an entry (possibly empty). Dependents
    keep SECTION_ORDER ordering so traversal is deterministic.
    """
    dependents: Dict[str, List[ParallelDependent]] = {s: [] for s in SECTION_ORDER}
    for section in SECTION_ORDER:
        rule = rules.get(section)
        if rule is None:
            continue
        dependents.setdefault(rule.base, []).append(
            ParallelDependent(section=section, offset=rule.offset)
        )
    return dependents


SECTION_PARALLEL_DEPENDENTS = build_parallel_dependents(SECTION_PARALLEL_RULES)


def validate_section(section: str) -> str:
    """
    Return ``section`` if it is a known section key.

    Raises:
        ValueError: If the key is not one of SECTION_ORDER
    """
    if section not in SECTION_ORDER:
        raise ValueError(
            f"Unknown section '{section}'. Expected one of: {', '.join(SECTION_ORDER)}"
        )
    return section

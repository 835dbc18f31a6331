"""
Placement seeding from an intake profile.

Computes per-section start levels (``seed_start``) for a new test from what
is known about the student before testing: school grade, learning
background, recent scores, reading habits and self-reported strongest and
weakest skills.

Numeric levels use the dotted convention of the lattice (2.1 = level 2,
sublevel 1) and are snapped onto it with level_from_value.
"""
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from entrance.core.adaptive.levels import level_from_value, level_to_seed, level_value
from entrance.core.adaptive.sections import DEFAULT_SEED, SECTION_ORDER
from entrance.core.datetime_utils import utc_now

BACKGROUND_CATEGORIES = (
    "worksheet_only",
    "mixed",
    "academy_plus",
    "multi_academy",
    "overseas",
)

UNKNOWN_GRADE_LEVEL = float(DEFAULT_SEED)
OVERSEAS_LEVEL = 6.9

BACKGROUND_ADJUSTMENTS: Dict[str, float] = {
    "multi_academy": 0.2,
    "academy_plus": 0.1,
    "worksheet_only": -0.1,
}

WEAKEST_SECTION_MODIFIER = -0.3
STRONGEST_SECTION_MODIFIER = 0.1
MODIFIER_MIN = -0.6
MODIFIER_MAX = 0.3

META_KEY = "__meta"
PLACEMENT_SOURCE = "placement_profile"


@dataclass(frozen=True)
class PlacementProfile:
    """Intake answers used for placement. Every field is optional."""

    grade: Optional[int] = None
    background: str = "mixed"
    highest_score: Optional[int] = None
    weekly_reading_count: Optional[int] = None
    strongest_section: Optional[str] = None
    weakest_section: Optional[str] = None
    motivation: Optional[str] = None


@dataclass(frozen=True)
class PlacementResult:
    seed_start: Dict[str, Any]
    base_level: float
    start_levels: Dict[str, float]
    skill_modifiers: Dict[str, float]
    profile_tags: List[str]


def classify_background(
    past_learning: List[str],
    academy_count: int = 0,
    studied_abroad: bool = False,
) -> str:
    """
    Derive a background category from learning history.

    Args:
        past_learning: Methods such as "worksheet_program", "subject_academy",
            "multi_subject_academy", "private_tutoring"
        academy_count: Number of academies currently attended
        studied_abroad: Whether the student studied in an English-speaking
            country

    Returns:
        One of BACKGROUND_CATEGORIES
    """
    if studied_abroad:
        return "overseas"

    has_worksheet = "worksheet_program" in past_learning
    has_academy = (
        "subject_academy" in past_learning
        or "multi_subject_academy" in past_learning
    )
    has_private = "private_tutoring" in past_learning

    if has_worksheet and not has_academy and not has_private and academy_count == 0:
        return "worksheet_only"
    if academy_count >= 2 or "multi_subject_academy" in past_learning:
        return "multi_academy"
    if academy_count >= 1 or has_private:
        return "academy_plus"
    return "mixed" if has_worksheet else "worksheet_only"


def snap_level_value(value: float) -> float:
    """Snap a numeric level onto the lattice and return it as a number."""
    # 4.3 - 0.3 must snap as 4.0, not 3.9999999999999996
    return level_value(level_from_value(round(value, 2)))


def _grade_base(grade: int) -> float:
    if grade <= 4:
        return 1.0
    if grade <= 6:
        return 2.0
    if grade <= 8:
        return 4.0
    if grade <= 10:
        return 5.0
    return 6.0


def determine_base_level(profile: PlacementProfile) -> float:
    """Base numeric level for every section before skill modifiers."""
    if not profile.grade:
        return UNKNOWN_GRADE_LEVEL
    if profile.background == "overseas":
        return OVERSEAS_LEVEL

    adjustment = BACKGROUND_ADJUSTMENTS.get(profile.background, 0.0)

    if profile.highest_score is not None:
        if profile.highest_score >= 95:
            adjustment += 0.2
        elif profile.highest_score >= 90:
            adjustment += 0.1
        elif profile.highest_score < 70:
            adjustment -= 0.1

    if profile.weekly_reading_count is not None:
        if profile.weekly_reading_count >= 5:
            adjustment += 0.2
        elif profile.weekly_reading_count >= 3:
            adjustment += 0.1
        elif profile.weekly_reading_count <= 1:
            adjustment -= 0.1

    raw_level = snap_level_value(_grade_base(profile.grade) + adjustment)

    # Lower grades start no lower than 1.1
    if profile.grade <= 4:
        return snap_level_value(max(raw_level, 1.1))
    return raw_level


def clamp_modifier(value: float) -> float:
    return round(min(MODIFIER_MAX, max(MODIFIER_MIN, value)), 2)


def determine_skill_modifiers(profile: PlacementProfile) -> Dict[str, float]:
    """Per-section offsets from the self-reported weakest and strongest skills."""
    modifiers = {section: 0.0 for section in SECTION_ORDER}
    if profile.weakest_section in modifiers:
        modifiers[profile.weakest_section] += WEAKEST_SECTION_MODIFIER
    if profile.strongest_section in modifiers:
        modifiers[profile.strongest_section] += STRONGEST_SECTION_MODIFIER
    return {section: clamp_modifier(value) for section, value in modifiers.items()}


def _sanitize_tag(value: str) -> str:
    return re.sub(r"[^\w-]", "", re.sub(r"\s+", "_", value)).lower()


def build_profile_tags(
    profile: PlacementProfile,
    modifiers: Dict[str, float],
    start_levels: Dict[str, float],
) -> List[str]:
    """Descriptive tags stored alongside the seeds for staff review."""
    tags: List[str] = []
    if profile.grade:
        tags.append(f"grade_{profile.grade}")
    tags.append(f"background_{profile.background}")
    if profile.weekly_reading_count is not None:
        tags.append(f"reads_{profile.weekly_reading_count}pw")
    if profile.highest_score is not None:
        tags.append(f"score_{(profile.highest_score // 10) * 10}")

    for section in SECTION_ORDER:
        if modifiers[section] < 0:
            tags.append(f"weak_{section}")
        elif modifiers[section] > 0:
            tags.append(f"strong_{section}")
        tags.append(f"{section}_{start_levels[section]:.1f}")

    if profile.motivation:
        tags.append(f"motivation_{_sanitize_tag(profile.motivation)}")

    # Keep first occurrence order
    return list(dict.fromkeys(tags))


def compute_placement_seed(
    profile: PlacementProfile, now: Optional[datetime] = None
) -> PlacementResult:
    """
    Compute seed_start for a new test from a placement profile.

    Args:
        profile: Intake answers
        now: Timestamp recorded in the metadata (defaults to utc_now())

    Returns:
        PlacementResult whose ``seed_start`` maps each section to its seed
        string plus a ``__meta`` entry describing how it was computed
    """
    if profile.background not in BACKGROUND_CATEGORIES:
        raise ValueError(
            f"Unknown background '{profile.background}'. "
            f"Expected one of: {', '.join(BACKGROUND_CATEGORIES)}"
        )

    base_level = determine_base_level(profile)
    modifiers = determine_skill_modifiers(profile)
    start_levels = {
        section: snap_level_value(base_level + modifiers[section])
        for section in SECTION_ORDER
    }
    profile_tags = build_profile_tags(profile, modifiers, start_levels)

    seed_start: Dict[str, Any] = {
        section: level_to_seed(level_from_value(start_levels[section]))
        for section in SECTION_ORDER
    }
    seed_start[META_KEY] = {
        "source": PLACEMENT_SOURCE,
        "computed_at": (now or utc_now()).isoformat(),
        "base_level": base_level,
        "skill_modifiers": modifiers,
        "start_levels": start_levels,
        "profile_tags": profile_tags,
    }

    return PlacementResult(
        seed_start=seed_start,
        base_level=base_level,
        start_levels=start_levels,
        skill_modifiers=modifiers,
        profile_tags=profile_tags,
    )

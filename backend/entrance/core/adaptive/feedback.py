"""
Narrative feedback for finalized entrance tests.

The weighted level is mapped onto a named band from LEVEL_BANDS (ordered,
half-open ranges). Levels below the first range get the lowest band and
levels past the last range get the highest, so every finalized test has a
band. Section strengths and focus areas are computed independently: a
section can be in either list or in neither.
"""
import math
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Mapping, Optional, Sequence

from entrance.core.adaptive.scoring import SectionResult
from entrance.core.adaptive.sections import SECTION_ORDER

STRENGTH_THRESHOLD = 80.0
FOCUS_THRESHOLD = 70.0

SECTION_LABELS: Dict[str, str] = {
    "grammar": "Grammar",
    "reading": "Reading",
    "listening": "Listening",
    "dialog": "Dialog",
}

MISSING = "n/a"


@dataclass(frozen=True)
class LevelBand:
    """Named band covering weighted levels in [lower, upper)."""

    name: str
    lower: float
    upper: float
    lexile: str
    cefr: str
    us_equivalent: str
    narrative: str


LEVEL_BANDS: List[LevelBand] = [
    LevelBand(
        name="Emerging Intermediate",
        lower=0.0,
        upper=3.4,
        lexile="200-500L",
        cefr="A1-A2",
        us_equivalent="Grade 2-5",
        narrative=(
            "Learners read short paragraphs and early chapter books, use simple "
            "grammar forms with growing accuracy, and take part in guided "
            "dialogues with support."
        ),
    ),
    LevelBand(
        name="Developing Intermediate",
        lower=3.4,
        upper=4.5,
        lexile="500-700L",
        cefr="A2+ - B1",
        us_equivalent="Grade 5-7",
        narrative=(
            "Learners manage multi-paragraph readings, build vocabulary in "
            "context, and begin to use complex sentences in speech and writing."
        ),
    ),
    LevelBand(
        name="Intermediate",
        lower=4.5,
        upper=5.6,
        lexile="660-850L",
        cefr="B1",
        us_equivalent="Grade 7-8",
        narrative=(
            "Learners follow longer texts independently, connect ideas with "
            "conjunctions and descriptive vocabulary, and discuss familiar "
            "topics with confidence."
        ),
    ),
    LevelBand(
        name="Upper Intermediate",
        lower=5.6,
        upper=6.3,
        lexile="850-950L",
        cefr="B1+ - B2",
        us_equivalent="Grade 8-9",
        narrative=(
            "Learners analyze thematic texts, apply academic vocabulary, and "
            "compose structured essays with increasing independence and control."
        ),
    ),
    LevelBand(
        name="Pre-Advanced",
        lower=6.3,
        upper=7.1,
        lexile="900-1100L",
        cefr="B2+",
        us_equivalent="Grade 10-11",
        narrative=(
            "Learners demonstrate advanced syntax, evidence-based argumentation, "
            "and abstract reasoning in academic discussions and writing."
        ),
    ),
    LevelBand(
        name="Advanced",
        lower=7.1,
        upper=10.0,
        lexile="1100L+",
        cefr="C1-C2",
        us_equivalent="Grade 12 - University",
        narrative=(
            "Learners exhibit full academic fluency, rhetorical control, and the "
            "ability to synthesize complex ideas across disciplines."
        ),
    ),
]


def band_for_level(level: Optional[float]) -> LevelBand:
    """
    Map a weighted level onto its band.

    None and values below the first range map to the lowest band; values at
    or past the last upper bound map to the highest.
    """
    if level is None or not math.isfinite(level) or level < LEVEL_BANDS[0].lower:
        return LEVEL_BANDS[0]
    for band in LEVEL_BANDS:
        if band.lower <= level < band.upper:
            return band
    return LEVEL_BANDS[-1]


@dataclass(frozen=True)
class SectionSummary:
    section: str
    label: str
    score: str
    level: str


@dataclass(frozen=True)
class EntranceFeedback:
    """Generated feedback, persisted to test_feedback."""

    band: LevelBand
    summary: str
    feedback_text: str
    advice: List[str] = field(default_factory=list)
    strengths: List[str] = field(default_factory=list)
    focus_areas: List[str] = field(default_factory=list)
    section_summaries: List[SectionSummary] = field(default_factory=list)

    def details(self) -> Dict[str, object]:
        """JSON-serializable details for the feedback row."""
        return {
            "lexile": self.band.lexile,
            "cefr": self.band.cefr,
            "us_equivalent": self.band.us_equivalent,
            "narrative": self.band.narrative,
            "advice": list(self.advice),
            "strengths": list(self.strengths),
            "focus_areas": list(self.focus_areas),
            "sections": [
                {
                    "section": row.section,
                    "label": row.label,
                    "score": row.score,
                    "level": row.level,
                }
                for row in self.section_summaries
            ],
        }


def join_with_and(values: Sequence[str]) -> str:
    """Join labels as "A", "A and B", or "A, B, and C"."""
    if not values:
        return ""
    if len(values) == 1:
        return values[0]
    if len(values) == 2:
        return f"{values[0]} and {values[1]}"
    return f"{', '.join(values[:-1])}, and {values[-1]}"


def format_percent(value: Optional[float]) -> str:
    if value is None or not math.isfinite(value):
        return MISSING
    rounded = Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return f"{rounded}%"


def format_level(value: Optional[float]) -> str:
    if value is None or not math.isfinite(value):
        return MISSING
    return f"{value:.1f}"


def format_duration(ms: Optional[int]) -> str:
    """
    Human duration rounded up to the largest sensible unit.

    45000 -> "45 seconds", 754000 -> "13 minutes", 4000000 -> "2 hours".
    Returns "" for missing or non-positive durations.
    """
    if ms is None or ms <= 0:
        return ""
    seconds = math.ceil(ms / 1000)
    if seconds < 60:
        amount, unit = seconds, "second"
    elif seconds < 3600:
        amount, unit = math.ceil(seconds / 60), "minute"
    else:
        amount, unit = math.ceil(seconds / 3600), "hour"
    return f"{amount} {unit}{'' if amount == 1 else 's'}"


def generate_entrance_feedback(
    *,
    student_name: Optional[str],
    weighted_level: Optional[float],
    total_score: Optional[float],
    accuracy: Optional[float],
    elapsed_ms: Optional[int],
    sections: Mapping[str, SectionResult],
) -> EntranceFeedback:
    """
    Build the narrative feedback for a finalized entrance test.

    Args:
        student_name: Display name; "This student" when blank
        weighted_level: Finalized weighted level (may be None)
        total_score: Finalized total score
        accuracy: Overall accuracy percentage
        elapsed_ms: Time on task
        sections: Section key -> finalized result

    Returns:
        EntranceFeedback with band, summary, advice and full text
    """
    band = band_for_level(weighted_level)
    name = (student_name or "").strip() or "This student"
    level_label = format_level(weighted_level) if weighted_level else MISSING

    section_summaries: List[SectionSummary] = []
    strengths: List[str] = []
    focus_areas: List[str] = []
    for key in SECTION_ORDER:
        result = sections.get(key)
        label = SECTION_LABELS[key]
        section_summaries.append(
            SectionSummary(
                section=key,
                label=label,
                score=format_percent(result.score if result else None),
                level=format_level(result.level_value if result else None),
            )
        )
        if result is None:
            continue
        if result.score >= STRENGTH_THRESHOLD:
            strengths.append(label)
        if result.score < FOCUS_THRESHOLD:
            focus_areas.append(label)

    time_label = format_duration(elapsed_ms)
    segments = [
        f"{name} achieved Level {level_label}, placing them in our {band.name} "
        f"band ({band.us_equivalent}).",
        f"Lexile range: {band.lexile} | CEFR: {band.cefr}.",
        f"Accuracy: {format_percent(accuracy)} | "
        f"Total score: {format_percent(total_score)}.",
    ]
    if time_label:
        segments.append(f"Time on task: {time_label}.")
    summary = " ".join(segments)

    advice: List[str] = []
    if strengths:
        advice.append(f"Strengths observed in {join_with_and(strengths)}.")
    if focus_areas:
        advice.append(
            f"Focus on {join_with_and(focus_areas)} to solidify comprehension "
            "at this level."
        )
    else:
        advice.append(
            "Balanced performance across sections. Maintain current study habits."
        )
    next_level = max(1, math.floor(weighted_level or 0) + 1)
    advice.append(
        f"Prepare for Level {next_level} with continued practice and extended reading."
    )

    lines = [summary, band.narrative]
    if strengths:
        lines.append(f"Strengths: {join_with_and(strengths)}.")
    if focus_areas:
        lines.append(f"Focus areas: {join_with_and(focus_areas)}.")

    return EntranceFeedback(
        band=band,
        summary=summary,
        feedback_text="\n\n".join(lines),
        advice=advice,
        strengths=strengths,
        focus_areas=focus_areas,
        section_summaries=section_summaries,
    )

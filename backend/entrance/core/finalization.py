"""
Test finalization: scoring, persistence and narrative feedback.

finalize_test is safe to call more than once. Each call recomputes the
summary from the current section rows and rewrites the same fields. A
reviewed test is never mutated; its stored summary is returned instead.

Sections still open when the test ends are closed the same way as a section
that reaches its question cap: a pending streak move is applied first.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from entrance.core.adaptive.feedback import EntranceFeedback, generate_entrance_feedback
from entrance.core.adaptive.levels import LevelState, level_value
from entrance.core.adaptive.propagation import section_row_state, sync_dependent_sections
from entrance.core.adaptive.scoring import (
    TestSummary,
    compute_section_result,
    compute_test_summary,
)
from entrance.core.adaptive.sections import SECTION_ORDER
from entrance.core.adaptive.streaks import StreakState, settle_pending
from entrance.core.datetime_utils import milliseconds_between, utc_now
from entrance.core.exceptions import InvalidTestStateError
from entrance.core.graceful_failure import graceful_failure
from entrance.core.system_config import get_effective_section_weights
from entrance.models.models import (
    EntranceTest,
    TestFeedback,
    TestSection,
    TestStatus,
    TestType,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FinalizeResult:
    test_id: int
    status: str
    weighted_level: Optional[float]
    total_score: Optional[float]
    accuracy: float
    elapsed_ms: int


def load_sections(db: Session, test_id: int) -> List[TestSection]:
    """Section rows of a test in serving order."""
    rows = db.query(TestSection).filter(TestSection.test_id == test_id).all()
    order = {section: index for index, section in enumerate(SECTION_ORDER)}
    return sorted(rows, key=lambda row: order.get(row.section, len(order)))


def row_streak_state(row: TestSection) -> StreakState:
    return StreakState(
        level=section_row_state(row),
        correct_streak=row.streak_up,
        incorrect_streak=row.streak_down,
    )


def write_streak_state(row: TestSection, state: StreakState) -> None:
    row.current_level = state.level.level
    row.current_sublevel = state.level.sublevel
    row.streak_up = state.correct_streak
    row.streak_down = state.incorrect_streak


def settle_section(row: TestSection) -> bool:
    """
    Commit the pending streak move of a section that stops serving questions.

    Returns whether the level changed. The caller commits.
    """
    outcome = settle_pending(row_streak_state(row))
    write_streak_state(row, outcome.state)
    return outcome.level_changed


def mark_section_completed(row: TestSection) -> bool:
    """
    Close a section: settle its pending move and record final_level.

    Returns whether the level changed. The caller commits.
    """
    changed = settle_section(row)
    row.completed = True
    row.final_level = level_value(section_row_state(row))
    return changed


def settle_open_sections(db: Session, test: EntranceTest) -> List[str]:
    """
    Settle every section still open when the test ends.

    Sections whose level moved are propagated to their unstarted dependents
    after the settled levels are committed.

    Returns:
        Sections whose level changed, in serving order
    """
    rows = [row for row in load_sections(db, test.id) if not row.completed]
    changed = [row for row in rows if settle_section(row)]
    if not changed:
        return []
    db.commit()

    for row in changed:
        logger.info(
            f"Settled pending move of {row.section} for test {test.id} at "
            f"{section_row_state(row)}"
        )
        sync_dependent_sections(db, test.id, row.section, section_row_state(row))
    return [row.section for row in changed]


def summarize_sections(
    rows: List[TestSection], weights: Mapping[str, float]
) -> TestSummary:
    """Score stored section rows without touching the database."""
    results = [
        compute_section_result(
            section=row.section,
            served=row.questions_served,
            correct=row.correct_count,
            current=LevelState(level=row.current_level, sublevel=row.current_sublevel),
            final_level=row.final_level,
        )
        for row in rows
    ]
    return compute_test_summary(results, weights)


def resolve_elapsed_ms(test: EntranceTest, now: datetime) -> int:
    """
    Time on task for the summary.

    Stored elapsed_ms when positive, otherwise wall-clock time since the test
    started (or was assigned), capped at the time limit.
    """
    if test.elapsed_ms and test.elapsed_ms > 0:
        return test.elapsed_ms
    elapsed = milliseconds_between(test.started_at or test.assigned_at, now)
    return min(elapsed, test.time_limit_seconds * 1000)


def store_feedback(
    db: Session, test: EntranceTest, feedback: EntranceFeedback
) -> TestFeedback:
    """
    Insert or replace the feedback row of a test.

    Raises:
        SQLAlchemyError: After rolling back, if the write fails
    """
    try:
        row = db.query(TestFeedback).filter(TestFeedback.test_id == test.id).first()
        if row is None:
            row = TestFeedback(test_id=test.id)
            db.add(row)
        row.band = feedback.band.name
        row.summary = feedback.summary
        row.feedback_text = feedback.feedback_text
        row.details = feedback.details()
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    return row


def _generate_and_store_feedback(
    db: Session, test: EntranceTest, summary: TestSummary, elapsed_ms: int
) -> None:
    student_name = test.student.display_name if test.student else None
    feedback = generate_entrance_feedback(
        student_name=student_name,
        weighted_level=summary.weighted_level,
        total_score=summary.total_score,
        accuracy=summary.accuracy,
        elapsed_ms=elapsed_ms,
        sections=summary.section_map(),
    )
    store_feedback(db, test, feedback)


def finalize_test(
    db: Session, test: EntranceTest, now: Optional[datetime] = None
) -> FinalizeResult:
    """
    Score a test and mark it completed.

    Args:
        db: Database session
        test: Test to finalize (ownership already checked)
        now: Completion timestamp (defaults to utc_now())

    Returns:
        FinalizeResult with the stored summary

    Raises:
        InvalidTestStateError: If the test is cancelled or was never started
    """
    if test.status == TestStatus.CANCELLED:
        raise InvalidTestStateError(
            "Cannot finalize a test that is cancelled.", status=test.status.value
        )
    if test.status == TestStatus.ASSIGNED:
        raise InvalidTestStateError(
            "Cannot finalize a test that has not been started.",
            status=test.status.value,
        )

    if test.status == TestStatus.REVIEWED:
        summary = summarize_sections(
            load_sections(db, test.id), get_effective_section_weights(db)
        )
        return FinalizeResult(
            test_id=test.id,
            status=test.status.value,
            weighted_level=test.weighted_level,
            total_score=test.total_score,
            accuracy=summary.accuracy,
            elapsed_ms=test.elapsed_ms,
        )

    settle_open_sections(db, test)
    rows = load_sections(db, test.id)
    summary = summarize_sections(rows, get_effective_section_weights(db))

    now = now or utc_now()
    elapsed_ms = resolve_elapsed_ms(test, now)

    results = summary.section_map()
    for row in rows:
        result = results[row.section]
        row.completed = True
        row.score = result.score
        row.final_level = result.level_value

    test.status = TestStatus.COMPLETED
    test.completed_at = now
    test.total_score = summary.total_score
    test.weighted_level = summary.weighted_level
    test.elapsed_ms = elapsed_ms
    db.commit()

    logger.info(
        f"Finalized test {test.id}: weighted_level={summary.weighted_level}, "
        f"total_score={summary.total_score}, accuracy={summary.accuracy}"
    )

    if test.test_type == TestType.ENTRANCE:
        with graceful_failure(
            "store entrance feedback",
            logger,
            log_level=logging.ERROR,
            exc_info=True,
            context={"test_id": test.id},
        ):
            _generate_and_store_feedback(db, test, summary, elapsed_ms)

    return FinalizeResult(
        test_id=test.id,
        status=test.status.value,
        weighted_level=summary.weighted_level,
        total_score=summary.total_score,
        accuracy=summary.accuracy,
        elapsed_ms=elapsed_ms,
    )

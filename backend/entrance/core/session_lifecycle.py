"""
Session lifecycle for adaptive entrance tests.

Status transitions:

    assigned --start--> in_progress --finalize--> completed --review--> reviewed
    assigned | in_progress --cancel--> cancelled

Student-facing operations look the test up with get_owned_test, which raises
the same TestNotFoundError for an unknown test and for a test owned by
someone else.

Time is tracked as elapsed_ms, reported by the client through heartbeats
and answer submissions, and never exceeds time_limit_seconds * 1000. When
it reaches the limit the test is finalized.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from entrance.core.adaptive.levels import (
    LevelState,
    level_to_seed,
    parse_level,
    parse_seed,
)
from entrance.core.adaptive.placement import (
    META_KEY,
    PlacementProfile,
    compute_placement_seed,
)
from entrance.core.adaptive.propagation import section_row_state, sync_dependent_sections
from entrance.core.adaptive.question_bank import (
    select_passage,
    select_passage_question,
    select_question,
)
from entrance.core.adaptive.sections import (
    SECTION_MAX_QUESTIONS,
    SECTION_ORDER,
    READING_PASSAGE_MAX_QUESTIONS,
    Section,
)
from entrance.core.adaptive.streaks import apply_answer
from entrance.core.config import settings
from entrance.core.datetime_utils import utc_now
from entrance.core.exceptions import (
    InvalidInputError,
    InvalidTestStateError,
    QuestionNotFoundError,
    TestNotFoundError,
)
from entrance.core.finalization import (
    FinalizeResult,
    finalize_test,
    load_sections,
    mark_section_completed,
    row_streak_state,
    write_streak_state,
)
from entrance.models.models import (
    EntranceTest,
    Question,
    Response,
    TestSection,
    TestStatus,
    TestType,
    User,
    UserRole,
)

logger = logging.getLogger(__name__)

FINISHED_STATUSES = (TestStatus.COMPLETED, TestStatus.REVIEWED)


# =============================================================================
# Result types
# =============================================================================


@dataclass(frozen=True)
class TimingSnapshot:
    status: str
    time_limit_seconds: int
    elapsed_ms: int
    time_remaining_seconds: int
    expired: bool


@dataclass(frozen=True)
class StartResult:
    test_id: int
    timing: TimingSnapshot
    seeds: Dict[str, str]


@dataclass(frozen=True)
class HeartbeatResult:
    test_id: int
    timing: TimingSnapshot
    finalized: bool = False


@dataclass(frozen=True)
class ServedQuestion:
    question: Question
    section: str
    level: str


@dataclass(frozen=True)
class NextQuestionResult:
    test_id: int
    done: bool
    time_remaining_seconds: int
    time_expired: bool = False
    served: Optional[ServedQuestion] = None


@dataclass(frozen=True)
class SubmitResult:
    test_id: int
    question_id: int
    section: str
    correct: bool
    duplicate: bool
    level: str
    level_changed: bool
    section_completed: bool
    done: bool
    time_remaining_seconds: int
    propagated_sections: List[str] = field(default_factory=list)


# =============================================================================
# Lookups and timing helpers
# =============================================================================


def get_test(db: Session, test_id: int) -> EntranceTest:
    """
    Fetch a test by ID.

    Raises:
        TestNotFoundError: If no such test exists
    """
    test = db.query(EntranceTest).filter(EntranceTest.id == test_id).first()
    if test is None:
        raise TestNotFoundError(test_id)
    return test


def get_owned_test(db: Session, test_id: int, student_id: int) -> EntranceTest:
    """
    Fetch a test the caller owns.

    Raises:
        TestNotFoundError: If the test does not exist or belongs to another
            student (callers cannot tell the two apart)
    """
    test = get_test(db, test_id)
    if test.student_id != student_id:
        logger.warning(
            f"Student {student_id} requested test {test_id} owned by another student"
        )
        raise TestNotFoundError(test_id)
    return test


def time_limit_ms(test: EntranceTest) -> int:
    return test.time_limit_seconds * 1000


def is_time_expired(test: EntranceTest) -> bool:
    return (test.elapsed_ms or 0) >= time_limit_ms(test)


def time_remaining_seconds(test: EntranceTest) -> int:
    return max(0, (time_limit_ms(test) - (test.elapsed_ms or 0)) // 1000)


def add_elapsed(test: EntranceTest, delta_ms: int) -> int:
    """Add to elapsed_ms, clamped to the time limit. Returns the new value."""
    test.elapsed_ms = min(time_limit_ms(test), (test.elapsed_ms or 0) + delta_ms)
    return test.elapsed_ms


def timing_snapshot(test: EntranceTest) -> TimingSnapshot:
    return TimingSnapshot(
        status=test.status.value,
        time_limit_seconds=test.time_limit_seconds,
        elapsed_ms=test.elapsed_ms or 0,
        time_remaining_seconds=time_remaining_seconds(test),
        expired=is_time_expired(test),
    )


def _reject_cancelled(test: EntranceTest, action: str) -> None:
    if test.status == TestStatus.CANCELLED:
        raise InvalidTestStateError(
            f"Cannot {action} a test that is cancelled.", status=test.status.value
        )


def _require_started(test: EntranceTest, action: str) -> None:
    if test.status == TestStatus.ASSIGNED:
        raise InvalidTestStateError(
            f"Cannot {action} a test that has not been started.",
            status=test.status.value,
        )


# =============================================================================
# Assign
# =============================================================================


def normalize_seed_start(seed_start: Dict[str, Any]) -> Dict[str, Any]:
    """
    Strictly validate explicit seeds.

    Raises:
        InvalidInputError: For unknown section keys
        InvalidLevelState: For malformed or out-of-range seeds
    """
    normalized: Dict[str, Any] = {}
    for key, value in seed_start.items():
        if key == META_KEY:
            normalized[key] = value
            continue
        if key not in SECTION_ORDER:
            raise InvalidInputError(
                f"Unknown section '{key}'. Expected one of: {', '.join(SECTION_ORDER)}"
            )
        normalized[key] = level_to_seed(parse_level(value))
    return normalized


def assign_test(
    db: Session,
    student_id: int,
    *,
    time_limit_seconds: Optional[int] = None,
    test_type: TestType = TestType.ENTRANCE,
    seed_start: Optional[Dict[str, Any]] = None,
    placement: Optional[PlacementProfile] = None,
    now: Optional[datetime] = None,
) -> EntranceTest:
    """
    Create a test for a student.

    Args:
        db: Database session
        student_id: Student taking the test
        time_limit_seconds: Time budget (defaults to settings)
        test_type: Entrance or progress test
        seed_start: Explicit per-section seeds ("L.S" strings)
        placement: Intake profile to compute seeds from
        now: Assignment timestamp

    Returns:
        The new test, status "assigned"

    Raises:
        InvalidInputError: Unknown student, a user who is not a student,
            non-positive time limit, unknown seed section, or both seeds and
            a placement profile given
        InvalidLevelState: Malformed explicit seed
    """
    user = db.query(User).filter(User.id == student_id).first()
    if user is None:
        raise InvalidInputError(f"Unknown student {student_id}")
    if user.role != UserRole.STUDENT:
        raise InvalidInputError(f"User {student_id} is not a student")
    if seed_start is not None and placement is not None:
        raise InvalidInputError("Provide either seed_start or placement, not both")

    limit = (
        settings.DEFAULT_TIME_LIMIT_SECONDS
        if time_limit_seconds is None
        else time_limit_seconds
    )
    if limit <= 0:
        raise InvalidInputError("time_limit_seconds must be positive")

    now = now or utc_now()
    if seed_start is not None:
        seeds: Optional[Dict[str, Any]] = normalize_seed_start(seed_start)
    elif placement is not None:
        try:
            seeds = compute_placement_seed(placement, now=now).seed_start
        except ValueError as e:
            raise InvalidInputError(str(e)) from e
    else:
        seeds = None

    test = EntranceTest(
        student_id=student_id,
        test_type=test_type,
        status=TestStatus.ASSIGNED,
        seed_start=seeds,
        time_limit_seconds=limit,
        elapsed_ms=0,
        assigned_at=now,
    )
    db.add(test)
    db.commit()
    db.refresh(test)

    logger.info(
        f"Assigned {test_type.value} test {test.id} to student {student_id} "
        f"(limit={limit}s)"
    )
    return test


# =============================================================================
# Start
# =============================================================================


def _seed_for(test: EntranceTest, section: str) -> LevelState:
    seeds = test.seed_start if isinstance(test.seed_start, dict) else {}
    return parse_seed(seeds.get(section))


def start_test(
    db: Session, test_id: int, student_id: int, now: Optional[datetime] = None
) -> StartResult:
    """
    Start (or resume) a test.

    Idempotent: missing section rows are created from seed_start, an
    assigned test moves to in_progress, and last_seen_at is always stamped.
    Completed and reviewed tests are returned unchanged.

    Raises:
        TestNotFoundError: Unknown or not-owned test
        InvalidTestStateError: Cancelled test
    """
    test = get_owned_test(db, test_id, student_id)
    _reject_cancelled(test, "start")

    if test.status not in FINISHED_STATUSES:
        now = now or utc_now()
        existing = {row.section for row in load_sections(db, test.id)}
        for section in SECTION_ORDER:
            if section in existing:
                continue
            seed = _seed_for(test, section)
            db.add(
                TestSection(
                    test_id=test.id,
                    section=section,
                    current_level=seed.level,
                    current_sublevel=seed.sublevel,
                )
            )

        if test.status == TestStatus.ASSIGNED:
            test.status = TestStatus.IN_PROGRESS
            test.started_at = now
            logger.info(f"Started test {test.id} for student {student_id}")
        test.last_seen_at = now
        try:
            db.commit()
        except IntegrityError:
            # A concurrent start created the section rows first
            db.rollback()
            logger.warning(
                f"Concurrent start of test {test.id}; using the existing sections"
            )
            test = get_owned_test(db, test_id, student_id)

    seeds = {
        row.section: level_to_seed(section_row_state(row))
        for row in load_sections(db, test.id)
    }
    return StartResult(test_id=test.id, timing=timing_snapshot(test), seeds=seeds)


# =============================================================================
# Heartbeat
# =============================================================================


def record_heartbeat(
    db: Session,
    test_id: int,
    student_id: int,
    elapsed_delta_ms: int,
    now: Optional[datetime] = None,
) -> HeartbeatResult:
    """
    Add client-reported time to a test.

    The delta is added to elapsed_ms, clamped to the limit. Reaching the
    limit finalizes the test. Completed and reviewed tests are not mutated
    and report their stored timing.

    Raises:
        TestNotFoundError: Unknown or not-owned test
        InvalidInputError: Negative delta
        InvalidTestStateError: Cancelled or not yet started test
    """
    test = get_owned_test(db, test_id, student_id)
    _reject_cancelled(test, "record time for")
    if elapsed_delta_ms < 0:
        raise InvalidInputError("Elapsed time delta must not be negative.")

    if test.status in FINISHED_STATUSES:
        return HeartbeatResult(test_id=test.id, timing=timing_snapshot(test))

    _require_started(test, "record time for")

    now = now or utc_now()
    add_elapsed(test, elapsed_delta_ms)
    test.last_seen_at = now
    db.commit()

    finalized = False
    if is_time_expired(test):
        logger.info(f"Time limit reached for test {test.id}; finalizing")
        finalize_test(db, test, now=now)
        finalized = True

    return HeartbeatResult(
        test_id=test.id, timing=timing_snapshot(test), finalized=finalized
    )


# =============================================================================
# Finalize / cancel / review
# =============================================================================


def finalize_owned_test(
    db: Session, test_id: int, student_id: int, now: Optional[datetime] = None
) -> FinalizeResult:
    """Explicit finalize requested by the student."""
    test = get_owned_test(db, test_id, student_id)
    return finalize_test(db, test, now=now)


def cancel_test(db: Session, test_id: int) -> EntranceTest:
    """
    Cancel an assigned or in-progress test.

    Raises:
        TestNotFoundError: Unknown test
        InvalidTestStateError: Test already finished or cancelled
    """
    test = get_test(db, test_id)
    if test.status not in (TestStatus.ASSIGNED, TestStatus.IN_PROGRESS):
        raise InvalidTestStateError(
            f"Cannot cancel a test that is {test.status.value}.",
            status=test.status.value,
        )
    test.status = TestStatus.CANCELLED
    db.commit()
    db.refresh(test)
    logger.info(f"Cancelled test {test.id}")
    return test


def review_test(db: Session, test_id: int) -> EntranceTest:
    """
    Mark a completed test as reviewed.

    Raises:
        TestNotFoundError: Unknown test
        InvalidTestStateError: Test is not completed
    """
    test = get_test(db, test_id)
    if test.status != TestStatus.COMPLETED:
        raise InvalidTestStateError(
            f"Cannot review a test that is {test.status.value}.",
            status=test.status.value,
        )
    test.status = TestStatus.REVIEWED
    db.commit()
    db.refresh(test)
    logger.info(f"Reviewed test {test.id}")
    return test


# =============================================================================
# Next question
# =============================================================================


def _complete_section(db: Session, test: EntranceTest, row: TestSection) -> None:
    changed = mark_section_completed(row)
    db.commit()
    logger.info(
        f"Section {row.section} of test {test.id} completed at "
        f"{level_to_seed(section_row_state(row))}"
    )
    if changed:
        sync_dependent_sections(db, test.id, row.section, section_row_state(row))


def _pick_reading_question(
    db: Session, test: EntranceTest, row: TestSection
) -> Optional[Question]:
    if (
        row.current_passage_id is not None
        and row.current_passage_question_count < READING_PASSAGE_MAX_QUESTIONS
    ):
        question = select_passage_question(db, test.id, row.current_passage_id)
        if question is not None:
            return question

    exclude = {row.current_passage_id} if row.current_passage_id is not None else None
    passage = select_passage(db, test.id, section_row_state(row), exclude=exclude)
    if passage is None:
        return None

    row.current_passage_id = passage.id
    row.current_passage_question_count = 0
    db.commit()
    return select_passage_question(db, test.id, passage.id)


def _pick_question(
    db: Session, test: EntranceTest, row: TestSection
) -> Optional[Question]:
    if row.section == Section.READING.value:
        return _pick_reading_question(db, test, row)
    return select_question(db, test.id, row.section, section_row_state(row))


def next_question(
    db: Session, test_id: int, student_id: int, now: Optional[datetime] = None
) -> NextQuestionResult:
    """
    Serve the next question of the first unfinished section.

    Sections at their question cap, or whose bank has nothing left near the
    current level, are completed and skipped. When no section remains the
    test is finalized.

    Raises:
        TestNotFoundError: Unknown or not-owned test
        InvalidTestStateError: Cancelled or not yet started test
    """
    test = get_owned_test(db, test_id, student_id)
    _reject_cancelled(test, "serve questions for")
    if test.status in FINISHED_STATUSES:
        return NextQuestionResult(
            test_id=test.id,
            done=True,
            time_remaining_seconds=time_remaining_seconds(test),
            time_expired=is_time_expired(test),
        )
    _require_started(test, "serve questions for")

    if is_time_expired(test):
        finalize_test(db, test, now=now)
        return NextQuestionResult(
            test_id=test.id, done=True, time_remaining_seconds=0, time_expired=True
        )

    for row in load_sections(db, test.id):
        if row.completed:
            continue
        if row.questions_served >= SECTION_MAX_QUESTIONS[row.section]:
            _complete_section(db, test, row)
            continue
        question = _pick_question(db, test, row)
        if question is None:
            logger.info(
                f"No {row.section} questions left near "
                f"{level_to_seed(section_row_state(row))} for test {test.id}"
            )
            _complete_section(db, test, row)
            continue
        return NextQuestionResult(
            test_id=test.id,
            done=False,
            time_remaining_seconds=time_remaining_seconds(test),
            served=ServedQuestion(
                question=question,
                section=row.section,
                level=level_to_seed(section_row_state(row)),
            ),
        )

    finalize_test(db, test, now=now)
    return NextQuestionResult(
        test_id=test.id,
        done=True,
        time_remaining_seconds=time_remaining_seconds(test),
    )


# =============================================================================
# Submit answer
# =============================================================================


def _section_row(db: Session, test_id: int, section: str) -> Optional[TestSection]:
    return (
        db.query(TestSection)
        .filter(TestSection.test_id == test_id, TestSection.section == section)
        .first()
    )


def _duplicate_result(
    test: EntranceTest, row: Optional[TestSection], response: Response
) -> SubmitResult:
    level = level_to_seed(section_row_state(row)) if row else ""
    return SubmitResult(
        test_id=test.id,
        question_id=response.question_id,
        section=response.section,
        correct=response.correct,
        duplicate=True,
        level=level,
        level_changed=False,
        section_completed=bool(row and row.completed),
        done=test.status in FINISHED_STATUSES,
        time_remaining_seconds=time_remaining_seconds(test),
    )


def submit_answer(
    db: Session,
    test_id: int,
    student_id: int,
    question_id: int,
    selected_index: int,
    time_spent_ms: int = 0,
    now: Optional[datetime] = None,
) -> SubmitResult:
    """
    Record an answer and adapt the section level.

    A second answer to the same question is ignored and reported as a
    duplicate. Otherwise counters and streaks are updated, the section is
    closed at its question cap, a level change is propagated to dependent
    sections, and the test is finalized when time runs out or every section
    is completed.

    Raises:
        TestNotFoundError: Unknown or not-owned test
        QuestionNotFoundError: Unknown question
        InvalidTestStateError: Test not in progress, or section already completed
        InvalidInputError: Negative time, option index out of range, or a
            question from a section the test does not have
    """
    test = get_owned_test(db, test_id, student_id)
    question = db.query(Question).filter(Question.id == question_id).first()
    if question is None:
        raise QuestionNotFoundError(question_id)

    existing = (
        db.query(Response)
        .filter(Response.test_id == test.id, Response.question_id == question_id)
        .first()
    )
    row = _section_row(db, test.id, question.section)
    if existing is not None:
        return _duplicate_result(test, row, existing)

    if test.status != TestStatus.IN_PROGRESS:
        raise InvalidTestStateError(
            f"Cannot submit answers to a test that is {test.status.value}.",
            status=test.status.value,
        )
    if time_spent_ms < 0:
        raise InvalidInputError("time_spent_ms must not be negative")
    if row is None:
        raise InvalidInputError(
            f"Question {question_id} belongs to section '{question.section}' "
            "which this test does not have"
        )
    if row.completed:
        raise InvalidTestStateError(f"Section {row.section} is already completed.")
    options = question.options or []
    if not 0 <= selected_index < len(options):
        raise InvalidInputError(
            f"selected_index must be between 0 and {len(options) - 1}"
        )

    now = now or utc_now()
    correct = selected_index == question.answer_index
    before = section_row_state(row)

    db.add(
        Response(
            test_id=test.id,
            question_id=question.id,
            section=row.section,
            selected_index=selected_index,
            correct=correct,
            time_spent_ms=time_spent_ms,
            level=row.current_level,
            sublevel=row.current_sublevel,
            answered_at=now,
        )
    )

    row.questions_served += 1
    if correct:
        row.correct_count += 1
    else:
        row.incorrect_count += 1
    if question.passage_id is not None and question.passage_id == row.current_passage_id:
        row.current_passage_question_count += 1

    outcome = apply_answer(row_streak_state(row), correct)
    write_streak_state(row, outcome.state)

    section_completed = False
    if row.questions_served >= SECTION_MAX_QUESTIONS[row.section]:
        mark_section_completed(row)
        section_completed = True

    add_elapsed(test, time_spent_ms)
    test.last_seen_at = now

    try:
        db.commit()
    except IntegrityError:
        # Concurrent submit of the same question won the unique constraint
        db.rollback()
        existing = (
            db.query(Response)
            .filter(Response.test_id == test.id, Response.question_id == question_id)
            .first()
        )
        if existing is None:
            raise
        return _duplicate_result(test, _section_row(db, test.id, question.section), existing)

    after = section_row_state(row)
    propagated: List[str] = []
    if after != before:
        propagated = sync_dependent_sections(db, test.id, row.section, after)

    remaining = [r for r in load_sections(db, test.id) if not r.completed]
    done = is_time_expired(test) or not remaining
    if done:
        finalize_test(db, test, now=now)

    return SubmitResult(
        test_id=test.id,
        question_id=question.id,
        section=row.section,
        correct=correct,
        duplicate=False,
        level=level_to_seed(after),
        level_changed=after != before,
        section_completed=section_completed,
        done=done,
        time_remaining_seconds=time_remaining_seconds(test),
        propagated_sections=propagated,
    )


# =============================================================================
# Status
# =============================================================================


@dataclass(frozen=True)
class SectionStatus:
    section: str
    level: str
    questions_served: int
    correct_count: int
    completed: bool
    score: Optional[float]
    final_level: Optional[float]


@dataclass(frozen=True)
class TestStatusResult:
    __test__ = False  # not a pytest test class

    test_id: int
    test_type: str
    timing: TimingSnapshot
    total_score: Optional[float]
    weighted_level: Optional[float]
    sections: List[SectionStatus]


def get_test_status(db: Session, test_id: int, student_id: int) -> TestStatusResult:
    """Read-only view of a test and its sections for its owner."""
    test = get_owned_test(db, test_id, student_id)
    sections = [
        SectionStatus(
            section=row.section,
            level=level_to_seed(section_row_state(row)),
            questions_served=row.questions_served,
            correct_count=row.correct_count,
            completed=row.completed,
            score=row.score,
            final_level=row.final_level,
        )
        for row in load_sections(db, test.id)
    ]
    return TestStatusResult(
        test_id=test.id,
        test_type=test.test_type.value,
        timing=timing_snapshot(test),
        total_score=test.total_score,
        weighted_level=test.weighted_level,
        sections=sections,
    )

"""
Student-facing entrance test endpoints.

Every endpoint requires a bearer token and only operates on tests owned by
the caller. A test owned by someone else is reported as not found.
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from entrance.core.auth.auth import get_current_user
from entrance.core.db_error_handling import handle_db_error
from entrance.core.error_responses import translate_domain_errors
from entrance.core.session_lifecycle import (
    finalize_owned_test,
    get_test_status,
    next_question,
    record_heartbeat,
    start_test,
    submit_answer,
)
from entrance.models import User, get_db
from entrance.schemas.tests import (
    FinalizeResponse,
    HeartbeatRequest,
    HeartbeatResponse,
    NextQuestionResponse,
    QuestionResponse,
    SectionStatusResponse,
    StartTestResponse,
    SubmitAnswerRequest,
    SubmitAnswerResponse,
    TestDetailResponse,
)

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/{test_id}/start", response_model=StartTestResponse)
def start(
    test_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Start or resume a test.

    Creates the section rows on first call and moves the test to
    in_progress. Safe to call again; completed tests are returned unchanged.

    Raises:
        HTTPException: 404 if the test is unknown or not yours, 400 if cancelled
    """
    with handle_db_error(db, "start test"), translate_domain_errors():
        result = start_test(db, test_id, current_user.id)
        return StartTestResponse(
            test_id=result.test_id,
            seeds=result.seeds,
            status=result.timing.status,
            time_limit_seconds=result.timing.time_limit_seconds,
            elapsed_ms=result.timing.elapsed_ms,
            time_remaining_seconds=result.timing.time_remaining_seconds,
        )


@router.post("/{test_id}/heartbeat", response_model=HeartbeatResponse)
def heartbeat(
    test_id: int,
    payload: HeartbeatRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Report elapsed time.

    Reaching the time limit finalizes the test and reports expired=true.

    Raises:
        HTTPException: 400 for a negative delta or a cancelled test
    """
    with handle_db_error(db, "record heartbeat"), translate_domain_errors():
        result = record_heartbeat(db, test_id, current_user.id, payload.elapsed_ms)
        return HeartbeatResponse(
            test_id=result.test_id,
            status=result.timing.status,
            time_limit_seconds=result.timing.time_limit_seconds,
            elapsed_ms=result.timing.elapsed_ms,
            time_remaining_seconds=result.timing.time_remaining_seconds,
            expired=result.timing.expired,
        )


@router.post("/{test_id}/finalize", response_model=FinalizeResponse)
def finalize(
    test_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Score the test and mark it completed. Safe to call more than once."""
    with handle_db_error(db, "finalize test"), translate_domain_errors():
        result = finalize_owned_test(db, test_id, current_user.id)
        return FinalizeResponse(
            test_id=result.test_id,
            status=result.status,
            weighted_level=result.weighted_level,
            total_score=result.total_score,
            accuracy=result.accuracy,
            elapsed_ms=result.elapsed_ms,
        )


@router.post("/{test_id}/next", response_model=NextQuestionResponse)
def next_(
    test_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Serve the next question, or done=true when nothing remains."""
    with handle_db_error(db, "serve next question"), translate_domain_errors():
        result = next_question(db, test_id, current_user.id)
        response = NextQuestionResponse(
            test_id=result.test_id,
            done=result.done,
            time_expired=result.time_expired,
            time_remaining_seconds=result.time_remaining_seconds,
        )
        if result.served is not None:
            response.section = result.served.section
            response.level = result.served.level
            response.question = QuestionResponse.model_validate(
                result.served.question
            )
        return response


@router.post("/{test_id}/submit", response_model=SubmitAnswerResponse)
def submit(
    test_id: int,
    payload: SubmitAnswerRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Submit one answer.

    Answering the same question twice is a no-op reported as duplicate=true.
    """
    with handle_db_error(db, "submit answer"), translate_domain_errors():
        result = submit_answer(
            db,
            test_id,
            current_user.id,
            question_id=payload.question_id,
            selected_index=payload.selected_index,
            time_spent_ms=payload.time_spent_ms,
        )
        return SubmitAnswerResponse(
            test_id=result.test_id,
            question_id=result.question_id,
            section=result.section,
            correct=result.correct,
            duplicate=result.duplicate,
            level=result.level,
            level_changed=result.level_changed,
            section_completed=result.section_completed,
            done=result.done,
            time_remaining_seconds=result.time_remaining_seconds,
        )


@router.get("/{test_id}", response_model=TestDetailResponse)
def get_test(
    test_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get a test's status, timing and per-section progress."""
    with handle_db_error(db, "retrieve test"), translate_domain_errors():
        result = get_test_status(db, test_id, current_user.id)
        return TestDetailResponse(
            test_id=result.test_id,
            test_type=result.test_type,
            status=result.timing.status,
            time_limit_seconds=result.timing.time_limit_seconds,
            elapsed_ms=result.timing.elapsed_ms,
            time_remaining_seconds=result.timing.time_remaining_seconds,
            total_score=result.total_score,
            weighted_level=result.weighted_level,
            sections=[
                SectionStatusResponse(
                    section=s.section,
                    level=s.level,
                    questions_served=s.questions_served,
                    correct_count=s.correct_count,
                    completed=s.completed,
                    score=s.score,
                    final_level=s.final_level,
                )
                for s in result.sections
            ],
        )

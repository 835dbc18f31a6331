"""
Admin endpoints for assigning and managing entrance tests.

All endpoints require the X-Admin-Token header.
"""
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from entrance.core.adaptive.placement import PlacementProfile
from entrance.core.auth.auth import verify_admin_token
from entrance.core.db_error_handling import handle_db_error
from entrance.core.error_responses import translate_domain_errors
from entrance.core.session_lifecycle import assign_test, cancel_test, review_test
from entrance.models import TestType, get_db
from entrance.schemas.tests import AdminTestResponse, AssignTestRequest

router = APIRouter(dependencies=[Depends(verify_admin_token)])
logger = logging.getLogger(__name__)


@router.post(
    "", response_model=AdminTestResponse, status_code=status.HTTP_201_CREATED
)
def assign(payload: AssignTestRequest, db: Session = Depends(get_db)):
    """
    Assign a test to a student.

    Start levels come from explicit seeds, from a placement profile, or
    default to 2.1 for every section.

    Raises:
        HTTPException: 400 for an unknown student or malformed seeds
    """
    placement = (
        PlacementProfile(**payload.placement.model_dump())
        if payload.placement is not None
        else None
    )
    with handle_db_error(db, "assign test"), translate_domain_errors():
        test = assign_test(
            db,
            payload.student_id,
            time_limit_seconds=payload.time_limit_seconds,
            test_type=TestType(payload.test_type),
            seed_start=payload.seed_start,
            placement=placement,
        )
        return AdminTestResponse.model_validate(test)


@router.post("/{test_id}/cancel", response_model=AdminTestResponse)
def cancel(test_id: int, db: Session = Depends(get_db)):
    """Cancel an assigned or in-progress test."""
    with handle_db_error(db, "cancel test"), translate_domain_errors():
        test = cancel_test(db, test_id)
        logger.info(f"Admin cancelled test {test_id}")
        return AdminTestResponse.model_validate(test)


@router.post("/{test_id}/review", response_model=AdminTestResponse)
def review(test_id: int, db: Session = Depends(get_db)):
    """Mark a completed test as reviewed."""
    with handle_db_error(db, "review test"), translate_domain_errors():
        test = review_test(db, test_id)
        return AdminTestResponse.model_validate(test)

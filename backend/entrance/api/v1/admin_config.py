"""
Admin endpoints for scoring configuration.

All endpoints require the X-Admin-Token header.
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from entrance.core.auth.auth import verify_admin_token
from entrance.core.db_error_handling import handle_db_error
from entrance.core.error_responses import translate_domain_errors
from entrance.core.system_config import (
    SECTION_WEIGHTS_KEY,
    get_config_entry,
    get_effective_section_weights,
    get_section_weight_overrides,
    set_section_weights,
)
from entrance.models import get_db
from entrance.schemas.section_weights import (
    SectionWeightsRequest,
    SectionWeightsResponse,
)

router = APIRouter(dependencies=[Depends(verify_admin_token)])
logger = logging.getLogger(__name__)


def _weights_response(db: Session) -> SectionWeightsResponse:
    entry = get_config_entry(db, SECTION_WEIGHTS_KEY)
    return SectionWeightsResponse(
        effective_weights=get_effective_section_weights(db),
        overrides=get_section_weight_overrides(db),
        updated_at=entry.updated_at if entry is not None else None,
    )


@router.get("/section-weights", response_model=SectionWeightsResponse)
def get_section_weights(db: Session = Depends(get_db)):
    """Get the section weights applied when a test is finalized."""
    with handle_db_error(db, "read section weights"):
        return _weights_response(db)


@router.put("/section-weights", response_model=SectionWeightsResponse)
def update_section_weights(
    payload: SectionWeightsRequest, db: Session = Depends(get_db)
):
    """
    Replace the stored section weight overrides.

    Sections left out of the request fall back to the server defaults.
    Tests finalized afterwards use the new weights; stored results are not
    recomputed.

    Raises:
        HTTPException: 400 for an unknown section or a negative weight
    """
    with handle_db_error(db, "update section weights"), translate_domain_errors():
        set_section_weights(db, payload.weights)
        logger.info(f"Admin updated section weights: {payload.weights}")
        return _weights_response(db)

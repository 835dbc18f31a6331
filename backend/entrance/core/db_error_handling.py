"""
Database error handling utilities.

Centralizes the pattern every endpoint follows around its database work:
1. Rolling back the database session on error
2. Logging the error with context
3. Raising an HTTPException (500 by default)

Usage:
    from entrance.core.db_error_handling import handle_db_error

    with handle_db_error(db, "start test"):
        result = start_test(db, test_id, student_id)
        return result
"""

import logging
from contextlib import contextmanager
from typing import Generator

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from entrance.core.error_responses import ErrorMessages


logger = logging.getLogger(__name__)


@contextmanager
def handle_db_error(
    db: Session,
    operation_name: str,
    *,
    reraise_http_exceptions: bool = True,
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
    log_level: int = logging.ERROR,
) -> Generator[None, None, None]:
    """Context manager for handling database errors consistently.

    Args:
        db: The SQLAlchemy database session to rollback on error.
        operation_name: Human-readable name of the operation for error messages
            and logging (e.g., "start test", "record heartbeat").
        reraise_http_exceptions: If True (default), HTTPExceptions raised within
            the context are re-raised without modification.
        status_code: HTTP status code to use in the raised HTTPException.
            Defaults to 500 Internal Server Error.
        log_level: Logging level for error messages. Defaults to logging.ERROR.

    Raises:
        HTTPException: On any other exception, with the session rolled back.

    Note:
        The endpoint's return statement belongs inside the block so response
        construction failures are logged with the same context.
    """
    try:
        yield
    except HTTPException:
        if reraise_http_exceptions:
            raise
        db.rollback()
        logger.log(log_level, f"Request error during {operation_name}", exc_info=True)
        raise HTTPException(
            status_code=status_code,
            detail=ErrorMessages.database_operation_failed(operation_name),
        )
    except (SQLAlchemyError, Exception) as e:
        db.rollback()

        logger.log(
            log_level,
            f"Database error during {operation_name}: {e}",
            exc_info=True,
        )

        # Technical details stay in the log
        raise HTTPException(
            status_code=status_code,
            detail=ErrorMessages.database_operation_failed(operation_name),
        )

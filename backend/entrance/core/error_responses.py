"""
Standardized error response messages and builders.

Routers raise HTTP errors only through the builders below, and translate the
domain exceptions of ``entrance.core.exceptions`` with
``translate_domain_errors``.

Error Message Format Guidelines:
- Use sentence case (capitalize first letter only)
- End with a period for complete sentences
- Include relevant IDs in parentheses when helpful for debugging: "(ID: 123)"
- Use "Please try again later." for transient server errors

Usage:
    from entrance.core.error_responses import ErrorMessages, raise_not_found

    if test is None:
        raise_not_found(ErrorMessages.TEST_NOT_FOUND)

    with translate_domain_errors():
        start_test(db, test_id, student_id)
"""

from contextlib import contextmanager
from typing import Generator, NoReturn

from fastapi import HTTPException, status

from entrance.core.exceptions import (
    InvalidInputError,
    InvalidLevelState,
    InvalidTestStateError,
    QuestionNotFoundError,
    TestNotFoundError,
)


class ErrorMessages:
    """Centralized error message constants and templates.

    Naming Convention:
    - Constants: SCREAMING_SNAKE_CASE for static messages
    - Methods: snake_case for templates that accept parameters
    """

    # ==========================================================================
    # Authentication Errors (401)
    # ==========================================================================
    INVALID_TOKEN = "Invalid authentication token."
    INVALID_TOKEN_PAYLOAD = "Invalid token payload."
    USER_NOT_FOUND_AUTH = "User not found."
    ADMIN_TOKEN_INVALID = "Invalid admin token."

    # ==========================================================================
    # Not Found Errors (404)
    # ==========================================================================
    # Also returned when the caller does not own the test
    TEST_NOT_FOUND = "Test not found."
    QUESTION_NOT_FOUND = "Question not found."

    # ==========================================================================
    # Configuration Errors (500)
    # ==========================================================================
    ADMIN_TOKEN_NOT_CONFIGURED = "Admin token not configured on server."

    # ==========================================================================
    # Template Methods for Dynamic Messages
    # ==========================================================================
    @staticmethod
    def database_operation_failed(operation: str) -> str:
        """Generic message for database operation failures."""
        return f"Failed to {operation}. Please try again later."


# ==============================================================================
# HTTPException Builder Functions
# ==============================================================================


def raise_bad_request(detail: str) -> NoReturn:
    """Raise a 400 Bad Request exception.

    Use for client errors where the request is malformed or invalid.

    Args:
        detail: User-facing error message

    Raises:
        HTTPException: 400 Bad Request
    """
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=detail,
    )


def raise_unauthorized(
    detail: str,
    include_www_authenticate: bool = True,
) -> NoReturn:
    """Raise a 401 Unauthorized exception.

    Args:
        detail: User-facing error message
        include_www_authenticate: Whether to include WWW-Authenticate header

    Raises:
        HTTPException: 401 Unauthorized
    """
    headers = {"WWW-Authenticate": "Bearer"} if include_www_authenticate else None
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers=headers,
    )


def raise_not_found(detail: str) -> NoReturn:
    """Raise a 404 Not Found exception.

    Raises:
        HTTPException: 404 Not Found
    """
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=detail,
    )


def raise_not_configured(detail: str) -> NoReturn:
    """Raise a 500 error for missing server configuration.

    Raises:
        HTTPException: 500 Internal Server Error
    """
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=detail,
    )


@contextmanager
def translate_domain_errors() -> Generator[None, None, None]:
    """Map domain exceptions raised in the wrapped block to HTTP errors.

    - TestNotFoundError -> 404 (uniform for unknown and not-owned tests)
    - QuestionNotFoundError -> 404
    - InvalidTestStateError, InvalidInputError, InvalidLevelState -> 400

    Anything else propagates unchanged.
    """
    try:
        yield
    except TestNotFoundError:
        raise_not_found(ErrorMessages.TEST_NOT_FOUND)
    except QuestionNotFoundError:
        raise_not_found(ErrorMessages.QUESTION_NOT_FOUND)
    except (InvalidTestStateError, InvalidInputError, InvalidLevelState) as e:
        raise_bad_request(str(e))

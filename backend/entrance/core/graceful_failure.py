"""
Graceful failure utilities.

Context manager for non-critical work that must not block the main flow:
1. Attempting an operation
2. Logging any exception with context
3. Continuing execution without raising

This is distinct from ``db_error_handling`` which handles critical errors
that require rollback and HTTP error responses.

Usage:
    from entrance.core.graceful_failure import graceful_failure

    with graceful_failure("generate feedback", logger, context={"test_id": 7}):
        store_feedback(db, test, summary)
"""

import logging
from contextlib import contextmanager
from typing import Any, Generator, Optional


@contextmanager
def graceful_failure(
    operation_name: str,
    logger: logging.Logger,
    *,
    log_level: int = logging.WARNING,
    exc_info: bool = False,
    context: Optional[dict[str, Any]] = None,
) -> Generator[None, None, None]:
    """Context manager for non-critical operations that should not block execution.

    Unlike ``handle_db_error``, this does NOT raise HTTPException, roll back
    the session or stop execution. Callers that touched the session inside
    the block must roll it back themselves if the failure left it dirty.

    Args:
        operation_name: Human-readable name of the operation for logging.
        logger: The logger instance to use for logging errors.
        log_level: Logging level for error messages. Defaults to WARNING.
        exc_info: Whether to include exception traceback in log.
        context: Optional dictionary of additional context to include in the
            log message (e.g., {"test_id": 123}).
    """
    try:
        yield
    except Exception as e:
        if context:
            context_str = ", ".join(f"{k}={v}" for k, v in context.items())
            message = f"Failed to {operation_name} ({context_str}): {e}"
        else:
            message = f"Failed to {operation_name}: {e}"

        logger.log(log_level, message, exc_info=exc_info)

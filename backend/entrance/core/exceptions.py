"""
Domain exceptions raised by the entrance-test engine.

These are raised from core modules, which know nothing about HTTP. The API
layer translates them into responses with the builders in
``entrance.core.error_responses``.
"""
from typing import Optional


class EntranceTestError(Exception):
    """Base class for entrance-test domain errors."""


class InvalidLevelState(EntranceTestError, ValueError):
    """Raised when a level/sublevel pair or level string is malformed or out of range."""


class InvalidInputError(EntranceTestError, ValueError):
    """Raised for malformed caller input (negative deltas, unknown sections, ...)."""


class TestNotFoundError(EntranceTestError):
    """Raised when a test does not exist or is not visible to the caller."""

    __test__ = False  # not a pytest test class

    def __init__(self, test_id: int):
        self.test_id = test_id
        super().__init__(f"Test {test_id} not found")


class QuestionNotFoundError(EntranceTestError):
    """Raised when a submitted question id is unknown."""

    def __init__(self, question_id: int):
        self.question_id = question_id
        super().__init__(f"Question {question_id} not found")


class InvalidTestStateError(EntranceTestError):
    """Raised when an operation is not allowed in the test's current status."""

    def __init__(self, message: str, status: Optional[str] = None):
        self.status = status
        super().__init__(message)

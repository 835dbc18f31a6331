"""
Models package for the entrance-test backend.
"""
from .base import Base, engine, SessionLocal, get_db
from .models import (
    User,
    UserRole,
    EntranceTest,
    TestSection,
    QuestionPassage,
    Question,
    Response,
    TestFeedback,
    SystemConfig,
    TestStatus,
    TestType,
)

__all__ = [
    "Base",
    "engine",
    "SessionLocal",
    "get_db",
    "User",
    "UserRole",
    "EntranceTest",
    "TestSection",
    "QuestionPassage",
    "Question",
    "Response",
    "TestFeedback",
    "SystemConfig",
    "TestStatus",
    "TestType",
]

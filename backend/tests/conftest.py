"""
Pytest configuration and shared fixtures for testing.
"""
import os
from pathlib import Path

# Settings are read at import time; configure them before importing entrance
_TEST_DB = Path(__file__).parent / "test.db"
SQLALCHEMY_DATABASE_URL = f"sqlite:///{_TEST_DB}"
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-entrance-tests")
os.environ.setdefault("ADMIN_TOKEN", "test-admin-token")
os.environ["DATABASE_URL"] = SQLALCHEMY_DATABASE_URL
os.environ.setdefault("ENV", "test")

from contextlib import asynccontextmanager  # noqa: E402
from typing import Dict, List  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from entrance.core.adaptive.levels import MAX_ORDINAL, MIN_ORDINAL, from_ordinal  # noqa: E402
from entrance.core.auth.security import create_access_token  # noqa: E402
from entrance.core.config import settings  # noqa: E402
from entrance.main import app  # noqa: E402
from entrance.models import (  # noqa: E402
    Base,
    Question,
    QuestionPassage,
    User,
    get_db,
)


@asynccontextmanager
async def _test_lifespan(app):
    """No-op lifespan for tests; tables are managed by the db_session fixture."""
    yield


# Neutralize the production lifespan on the singleton app
app.router.lifespan_context = _test_lifespan


engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

NON_READING_SECTIONS = ("grammar", "listening", "dialog")
QUESTIONS_PER_LEVEL = 5
CORRECT_INDEX = 0


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    """
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session):
    """
    Create a test client with database dependency override.
    """

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def make_user(db, email: str, display_name: str) -> User:
    user = User(email=email, display_name=display_name)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def student(db_session):
    """Student who owns the tests under test."""
    return make_user(db_session, "student@example.com", "Mina Park")


@pytest.fixture
def other_student(db_session):
    """A second student who must not see the first student's tests."""
    return make_user(db_session, "other@example.com", "Jun Lee")


def bearer_headers(user_id: int) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token({'user_id': user_id})}"}


@pytest.fixture
def auth_headers(student):
    """
    Create authentication headers for the student.
    """
    return bearer_headers(student.id)


@pytest.fixture
def other_auth_headers(other_student):
    return bearer_headers(other_student.id)


@pytest.fixture
def admin_headers():
    return {"X-Admin-Token": settings.ADMIN_TOKEN}


def seed_question_bank(
    db,
    sections=NON_READING_SECTIONS,
    include_reading: bool = True,
    per_level: int = QUESTIONS_PER_LEVEL,
) -> Dict[str, List[Question]]:
    """
    Fill the bank with ``per_level`` questions for every section and level.

    Reading gets one passage per level holding ``per_level`` questions. The
    correct option is always index 0.
    """
    bank: Dict[str, List[Question]] = {section: [] for section in sections}
    objects = []
    for ordinal in range(MIN_ORDINAL, MAX_ORDINAL + 1):
        state = from_ordinal(ordinal)
        for section in sections:
            for n in range(per_level):
                question = Question(
                    section=section,
                    level=state.level,
                    sublevel=state.sublevel,
                    stem=f"{section} {state} question {n + 1}",
                    options=["right", "wrong", "also wrong", "still wrong"],
                    answer_index=CORRECT_INDEX,
                    skill_tags=[section],
                    media_url=(
                        f"https://cdn.example.com/{state}/{n}.mp3"
                        if section == "listening"
                        else None
                    ),
                )
                bank[section].append(question)
                objects.append(question)
        if include_reading:
            passage = QuestionPassage(
                section="reading",
                level=state.level,
                sublevel=state.sublevel,
                title=f"Passage {state}",
                body=f"A reading passage written at level {state}.",
            )
            objects.append(passage)
            for n in range(per_level):
                question = Question(
                    section="reading",
                    level=state.level,
                    sublevel=state.sublevel,
                    stem=f"reading {state} question {n + 1}",
                    options=["right", "wrong", "also wrong", "still wrong"],
                    answer_index=CORRECT_INDEX,
                    passage=passage,
                )
                bank.setdefault("reading", []).append(question)
                objects.append(question)
    db.add_all(objects)
    db.commit()
    return bank


@pytest.fixture
def question_bank(db_session):
    """Questions for every section at every level."""
    return seed_question_bank(db_session)


@pytest.fixture
def assigned_test(db_session, student):
    """An assigned entrance test with the default seeds."""
    from entrance.core.session_lifecycle import assign_test

    return assign_test(db_session, student.id)


@pytest.fixture
def started_test(db_session, student, assigned_test):
    """The assigned test after start."""
    from entrance.core.session_lifecycle import start_test

    start_test(db_session, assigned_test.id, student.id)
    db_session.refresh(assigned_test)
    return assigned_test

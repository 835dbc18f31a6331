"""
Database models for the entrance-test engine.
"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    ForeignKey,
    Text,
    Enum,
    Float,
    JSON,
    UniqueConstraint,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import enum

from .base import Base


class TestStatus(str, enum.Enum):
    """Entrance test status enumeration."""

    __test__ = False  # not a pytest test class

    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    REVIEWED = "reviewed"
    CANCELLED = "cancelled"


class TestType(str, enum.Enum):
    """Kind of adaptive test. Only entrance tests receive narrative feedback."""

    __test__ = False  # not a pytest test class

    ENTRANCE = "entrance"
    PROGRESS = "progress"


class UserRole(str, enum.Enum):
    STUDENT = "student"
    STAFF = "staff"


class User(Base):
    """
    Minimal identity row. Accounts and credentials are owned by the external
    auth system; the engine only needs the id carried in the bearer token.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    display_name = Column(String(200))
    role = Column(Enum(UserRole), default=UserRole.STUDENT, nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # Relationships
    entrance_tests = relationship(
        "EntranceTest", back_populates="student", cascade="all, delete-orphan"
    )


class EntranceTest(Base):
    """One adaptive test assigned to a student."""

    __tablename__ = "entrance_tests"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    test_type = Column(Enum(TestType), default=TestType.ENTRANCE, nullable=False)
    status = Column(
        Enum(TestStatus), default=TestStatus.ASSIGNED, nullable=False, index=True
    )
    # section -> "L.S" seed string; may carry a "__meta" entry from placement
    seed_start = Column(JSON, nullable=True)

    time_limit_seconds = Column(Integer, nullable=False)
    elapsed_ms = Column(Integer, default=0, nullable=False)

    assigned_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    started_at = Column(DateTime(timezone=True))
    last_seen_at = Column(DateTime(timezone=True))
    completed_at = Column(DateTime(timezone=True), index=True)

    total_score = Column(Float, nullable=True)
    weighted_level = Column(Float, nullable=True)

    # Relationships
    student = relationship("User", back_populates="entrance_tests")
    sections = relationship(
        "TestSection", back_populates="test", cascade="all, delete-orphan"
    )
    responses = relationship(
        "Response", back_populates="test", cascade="all, delete-orphan"
    )
    feedback = relationship(
        "TestFeedback",
        back_populates="test",
        uselist=False,
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_entrance_tests_student_status", "student_id", "status"),
        CheckConstraint(
            "time_limit_seconds > 0", name="ck_entrance_tests_time_limit_positive"
        ),
        CheckConstraint("elapsed_ms >= 0", name="ck_entrance_tests_elapsed_nonneg"),
    )


class TestSection(Base):
    """Adaptive state of one section within a test."""

    __tablename__ = "test_sections"
    __test__ = False  # not a pytest test class

    id = Column(Integer, primary_key=True, index=True)
    test_id = Column(
        Integer,
        ForeignKey("entrance_tests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    section = Column(String(20), nullable=False)

    current_level = Column(Integer, nullable=False)
    current_sublevel = Column(Integer, nullable=False)

    questions_served = Column(Integer, default=0, nullable=False)
    correct_count = Column(Integer, default=0, nullable=False)
    incorrect_count = Column(Integer, default=0, nullable=False)
    streak_up = Column(Integer, default=0, nullable=False)
    streak_down = Column(Integer, default=0, nullable=False)

    # Reading only: passage currently being served and how many of its
    # questions this section has answered
    current_passage_id = Column(
        Integer, ForeignKey("question_passages.id", ondelete="SET NULL"), nullable=True
    )
    current_passage_question_count = Column(Integer, default=0, nullable=False)

    completed = Column(Boolean, default=False, nullable=False)
    final_level = Column(Float, nullable=True)
    score = Column(Float, nullable=True)

    # Relationships
    test = relationship("EntranceTest", back_populates="sections")

    __table_args__ = (
        UniqueConstraint("test_id", "section", name="uq_test_sections_test_section"),
        CheckConstraint(
            "current_level BETWEEN 1 AND 7", name="ck_test_sections_level_range"
        ),
        CheckConstraint(
            "current_sublevel BETWEEN 1 AND 3", name="ck_test_sections_sublevel_range"
        ),
    )


class QuestionPassage(Base):
    """Reading passage shared by a group of reading questions."""

    __tablename__ = "question_passages"

    id = Column(Integer, primary_key=True, index=True)
    section = Column(String(20), nullable=False, default="reading")
    level = Column(Integer, nullable=False)
    sublevel = Column(Integer, nullable=False)
    title = Column(String(255))
    body = Column(Text, nullable=False)

    questions = relationship("Question", back_populates="passage")

    __table_args__ = (
        Index("ix_question_passages_section_level", "section", "level", "sublevel"),
    )


class Question(Base):
    """Multiple-choice question in the bank."""

    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    section = Column(String(20), nullable=False)
    level = Column(Integer, nullable=False)
    sublevel = Column(Integer, nullable=False)
    stem = Column(Text, nullable=False)
    options = Column(JSON, nullable=False)  # list of option strings
    answer_index = Column(Integer, nullable=False)
    passage_id = Column(
        Integer,
        ForeignKey("question_passages.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    skill_tags = Column(JSON, nullable=True)
    media_url = Column(String(500), nullable=True)  # listening audio
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # Relationships
    passage = relationship("QuestionPassage", back_populates="questions")
    responses = relationship("Response", back_populates="question")

    __table_args__ = (
        Index(
            "ix_questions_section_level_active",
            "section",
            "level",
            "sublevel",
            "is_active",
        ),
    )


class Response(Base):
    """A student's answer to one question within a test."""

    __tablename__ = "responses"

    id = Column(Integer, primary_key=True, index=True)
    test_id = Column(
        Integer,
        ForeignKey("entrance_tests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    question_id = Column(
        Integer,
        ForeignKey("questions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    section = Column(String(20), nullable=False)
    selected_index = Column(Integer, nullable=False)
    correct = Column(Boolean, nullable=False)
    time_spent_ms = Column(Integer, default=0, nullable=False)
    # Level the question was served at, for review screens
    level = Column(Integer, nullable=False)
    sublevel = Column(Integer, nullable=False)
    answered_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # Relationships
    test = relationship("EntranceTest", back_populates="responses")
    question = relationship("Question", back_populates="responses")

    __table_args__ = (
        UniqueConstraint("test_id", "question_id", name="uq_responses_test_question"),
    )


class TestFeedback(Base):
    """Narrative feedback generated when an entrance test is finalized."""

    __tablename__ = "test_feedback"
    __test__ = False  # not a pytest test class

    id = Column(Integer, primary_key=True, index=True)
    test_id = Column(
        Integer,
        ForeignKey("entrance_tests.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    band = Column(String(100), nullable=False)
    summary = Column(Text, nullable=False)
    feedback_text = Column(Text, nullable=False)
    details = Column(JSON, nullable=True)  # strengths, focus areas, advice, sections
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    test = relationship("EntranceTest", back_populates="feedback")


class SystemConfig(Base):
    """
    System-level key/value configuration storage.

    Common keys:
    - section_weights: {"reading": 0.4, "grammar": 0.3, ...}
    """

    __tablename__ = "system_config"

    key = Column(String(100), primary_key=True)
    value = Column(JSON, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

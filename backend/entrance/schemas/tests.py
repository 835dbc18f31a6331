"""
Pydantic schemas for entrance test endpoints.
"""
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Any, Dict, List, Optional, Self
from datetime import datetime

from entrance.core.adaptive.placement import BACKGROUND_CATEGORIES
from entrance.core.adaptive.sections import SECTION_ORDER


class TimingResponse(BaseModel):
    """Timing fields shared by lifecycle responses."""

    status: str = Field(
        ...,
        description="Test status (assigned, in_progress, completed, reviewed, cancelled)",
    )
    time_limit_seconds: int = Field(..., description="Total time budget in seconds")
    elapsed_ms: int = Field(..., description="Time used so far in milliseconds")
    time_remaining_seconds: int = Field(
        ..., description="Whole seconds left before the time limit"
    )


class StartTestResponse(TimingResponse):
    """Schema for starting (or resuming) a test."""

    test_id: int = Field(..., description="Test ID")
    seeds: Dict[str, str] = Field(
        ..., description="Current level of each section as an 'L.S' string"
    )


class HeartbeatRequest(BaseModel):
    """Schema for a heartbeat. Negative deltas are rejected with 400."""

    elapsed_ms: int = Field(
        ..., description="Milliseconds elapsed since the previous heartbeat"
    )


class HeartbeatResponse(TimingResponse):
    """Schema for heartbeat results."""

    test_id: int = Field(..., description="Test ID")
    expired: bool = Field(..., description="Whether the time limit has been reached")


class FinalizeResponse(BaseModel):
    """Schema for a finalized test summary."""

    test_id: int = Field(..., description="Test ID")
    status: str = Field(..., description="Test status after finalization")
    weighted_level: Optional[float] = Field(
        None, description="Weighted average section level (None if weights sum to 0)"
    )
    total_score: Optional[float] = Field(
        None, description="Mean of section scores (0-100, one decimal)"
    )
    accuracy: float = Field(..., description="Overall percent correct")
    elapsed_ms: int = Field(..., description="Time on task in milliseconds")


class PassageResponse(BaseModel):
    """Reading passage served with a question."""

    id: int
    title: Optional[str] = None
    body: str

    class Config:
        """Pydantic configuration."""

        from_attributes = True


class QuestionResponse(BaseModel):
    """Question as served to the student (no answer key)."""

    id: int = Field(..., description="Question ID")
    stem: str = Field(..., description="Question text")
    options: List[str] = Field(..., description="Answer options in display order")
    skill_tags: List[str] = Field(default_factory=list, description="Skill tags")
    media_url: Optional[str] = Field(None, description="Audio/media URL (listening)")
    passage: Optional[PassageResponse] = Field(
        None, description="Passage shared by reading questions"
    )

    @field_validator("skill_tags", mode="before")
    @classmethod
    def default_skill_tags(cls, v: Any) -> Any:
        return v or []

    class Config:
        """Pydantic configuration."""

        from_attributes = True


class NextQuestionResponse(BaseModel):
    """Schema for the next question, or done when nothing remains."""

    test_id: int = Field(..., description="Test ID")
    done: bool = Field(..., description="Whether the test has no more questions")
    time_expired: bool = Field(False, description="Whether time ran out")
    time_remaining_seconds: int = Field(..., description="Seconds left")
    section: Optional[str] = Field(None, description="Section being served")
    level: Optional[str] = Field(None, description="Section level as 'L.S'")
    question: Optional[QuestionResponse] = Field(None, description="Question to show")


class SubmitAnswerRequest(BaseModel):
    """Schema for submitting one answer."""

    question_id: int = Field(..., description="Question being answered")
    selected_index: int = Field(..., description="Index of the chosen option")
    time_spent_ms: int = Field(
        0, description="Milliseconds spent on the question (added to elapsed time)"
    )


class SubmitAnswerResponse(BaseModel):
    """Schema for the result of an answer submission."""

    test_id: int
    question_id: int
    section: str
    correct: bool
    duplicate: bool = Field(
        ..., description="True if the question had already been answered"
    )
    level: str = Field(..., description="Section level after this answer")
    level_changed: bool
    section_completed: bool
    done: bool = Field(..., description="Whether the test was finalized")
    time_remaining_seconds: int


class SectionStatusResponse(BaseModel):
    section: str
    level: str
    questions_served: int
    correct_count: int
    completed: bool
    score: Optional[float] = None
    final_level: Optional[float] = None


class TestDetailResponse(TimingResponse):
    """Schema for a test and its sections."""

    test_id: int
    test_type: str
    total_score: Optional[float] = None
    weighted_level: Optional[float] = None
    sections: List[SectionStatusResponse]


# =============================================================================
# Admin
# =============================================================================


class PlacementProfileRequest(BaseModel):
    """Intake answers used to compute start levels."""

    grade: Optional[int] = Field(
        None, ge=1, le=12, description="School grade (1-12, counted from grade 1)"
    )
    background: str = Field(
        "mixed", description=f"One of: {', '.join(BACKGROUND_CATEGORIES)}"
    )
    highest_score: Optional[int] = Field(
        None, ge=0, le=100, description="Highest recent English score"
    )
    weekly_reading_count: Optional[int] = Field(
        None, ge=0, description="Books read per week"
    )
    strongest_section: Optional[str] = None
    weakest_section: Optional[str] = None
    motivation: Optional[str] = Field(None, max_length=200)

    @field_validator("background")
    @classmethod
    def validate_background(cls, v: str) -> str:
        if v not in BACKGROUND_CATEGORIES:
            raise ValueError(f"background must be one of: {', '.join(BACKGROUND_CATEGORIES)}")
        return v

    @field_validator("strongest_section", "weakest_section")
    @classmethod
    def validate_section(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in SECTION_ORDER:
            raise ValueError(f"section must be one of: {', '.join(SECTION_ORDER)}")
        return v


class AssignTestRequest(BaseModel):
    """Schema for assigning a test to a student."""

    student_id: int = Field(..., description="Student who will take the test")
    test_type: str = Field("entrance", description="entrance or progress")
    time_limit_seconds: Optional[int] = Field(
        None, description="Time budget; defaults to the server setting"
    )
    seed_start: Optional[Dict[str, str]] = Field(
        None, description="Explicit section -> 'L.S' start levels"
    )
    placement: Optional[PlacementProfileRequest] = Field(
        None, description="Intake profile to compute start levels from"
    )

    @field_validator("test_type")
    @classmethod
    def validate_test_type(cls, v: str) -> str:
        if v not in ("entrance", "progress"):
            raise ValueError("test_type must be 'entrance' or 'progress'")
        return v

    @model_validator(mode="after")
    def validate_seed_source(self) -> Self:
        if self.seed_start is not None and self.placement is not None:
            raise ValueError("Provide either seed_start or placement, not both")
        return self


class AdminTestResponse(BaseModel):
    """Schema for a test as seen by staff."""

    id: int
    student_id: int
    test_type: str
    status: str
    seed_start: Optional[Dict[str, Any]] = None
    time_limit_seconds: int
    elapsed_ms: int
    assigned_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    total_score: Optional[float] = None
    weighted_level: Optional[float] = None

    @field_validator("test_type", "status", mode="before")
    @classmethod
    def enum_value(cls, v: Any) -> Any:
        return getattr(v, "value", v)

    class Config:
        """Pydantic configuration."""

        from_attributes = True

"""
Pydantic schemas for request/response validation.
"""
from .section_weights import SectionWeightsRequest, SectionWeightsResponse
from .tests import (
    AdminTestResponse,
    AssignTestRequest,
    FinalizeResponse,
    HeartbeatRequest,
    HeartbeatResponse,
    NextQuestionResponse,
    PlacementProfileRequest,
    QuestionResponse,
    StartTestResponse,
    SubmitAnswerRequest,
    SubmitAnswerResponse,
    TestDetailResponse,
)

__all__ = [
    "AdminTestResponse",
    "AssignTestRequest",
    "FinalizeResponse",
    "HeartbeatRequest",
    "HeartbeatResponse",
    "NextQuestionResponse",
    "PlacementProfileRequest",
    "QuestionResponse",
    "SectionWeightsRequest",
    "SectionWeightsResponse",
    "StartTestResponse",
    "SubmitAnswerRequest",
    "SubmitAnswerResponse",
    "TestDetailResponse",
]

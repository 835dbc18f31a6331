"""
Pydantic schemas for the section weight configuration endpoints.
"""
from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, Field


class SectionWeightsRequest(BaseModel):
    """Schema for storing section weight overrides."""

    weights: Dict[str, float] = Field(
        ...,
        description="Section -> non-negative weight; omitted sections keep the server default",
    )


class SectionWeightsResponse(BaseModel):
    """Schema for the section weights used by the finalizer."""

    effective_weights: Dict[str, float] = Field(
        ..., description="Weights applied at finalize (defaults merged with overrides)"
    )
    overrides: Optional[Dict[str, float]] = Field(
        None, description="Stored overrides, if any"
    )
    updated_at: Optional[datetime] = Field(
        None, description="When the overrides were last changed"
    )

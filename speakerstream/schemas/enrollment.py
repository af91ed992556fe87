"""
Schemas for enrollment and embedding routes.

Enrollment uses the persistence field name colorIndex on the wire (alias) and
color_index in Python.
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Enrollment(BaseModel):
    """One stored enrolled speaker."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    centroid: list[float]
    color_index: int = Field(0, alias="colorIndex")


class EnrollmentCreateRequest(BaseModel):
    """Body for POST /api/enrollments: sample embeddings from /api/embedding, one per recording."""

    name: str = Field(..., min_length=1, description="Display name used as the speaker label")
    embeddings: list[list[float]] = Field(..., min_length=1, description="Sample embeddings of the same voice")


class EnrollmentCreateResponse(BaseModel):
    enrollment: Enrollment
    sample_count: int = Field(..., description="Samples used for the centroid")
    rejected_count: int = Field(0, description="Samples rejected as outliers")
    used_fallback: bool = Field(False, description="True when outlier rejection was abandoned or most samples were outliers")


class EmbeddingResponse(BaseModel):
    """Response for POST /api/embedding."""

    embedding: list[float]
    dimensions: int

"""Pydantic models for sign recognition responses and requests."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class SignResult(BaseModel):
    label: str = Field(..., min_length=1, description="Gesture or state label")
    confidence: float = Field(..., ge=0.0, le=1.0)
    timestamp: Optional[str] = Field(None, description="ISO 8601 timestamp")


class Explanation(BaseModel):
    meaning: str = Field(..., min_length=3)
    context: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)


class SignResponse(BaseModel):
    recognized: SignResult
    alternatives: list[SignResult] = Field(default_factory=list)
    explanation: Optional[Explanation] = None
    phase: str = Field("raw", description="raw, confirmed, settling, in_progress or waiting")


class FrameRequest(BaseModel):
    # Untyped: malformed frames are reported by the classifier, not by validation.
    landmarks: Optional[list[Any]] = None
    timestamp: Optional[float] = Field(None, allow_inf_nan=False)


class HandPayload(BaseModel):
    landmarks: list[Any]
    score: float = Field(1.0, ge=0.0, le=1.0)
    handedness: str = "Right"


class DetectionRequest(BaseModel):
    """Several detected hands; only the highest-score one is recognized."""
    hands: list[HandPayload] = Field(default_factory=list)
    timestamp: Optional[float] = Field(None, allow_inf_nan=False)

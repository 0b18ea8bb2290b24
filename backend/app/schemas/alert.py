"""Accuracy alert & preference schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class AlertRead(BaseModel):
    """Low‑accuracy alert returned to teachers."""

    id: uuid.UUID
    student_id: uuid.UUID
    topic_id: uuid.UUID | None = None
    lesson_id: uuid.UUID | None = None
    accuracy: float
    threshold: float
    resolved: bool
    resolved_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ThresholdRead(BaseModel):
    threshold: float


class ThresholdUpdate(BaseModel):
    """PUT /api/preferences/accuracy-threshold"""

    threshold: float = Field(ge=0, le=100)

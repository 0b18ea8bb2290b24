"""Progress / metrics schemas."""

import uuid
from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field


class TopicProgress(BaseModel):
    """Aggregated accuracy and answer counts for one student × topic."""

    topic_id: uuid.UUID
    topic_name: str
    accuracy: float  # 0 when nothing has been logged
    total_questions: int
    right_count: int
    wrong_count: int
    empty_count: int
    bonus_count: int
    last_updated: datetime


class LessonProgress(BaseModel):
    """Unweighted roll‑up of the topic progress inside a lesson."""

    lesson_id: uuid.UUID
    lesson_name: str
    accuracy: float
    total_questions: int
    topic_count: int
    topics: list[TopicProgress] = []
    last_updated: datetime


class DualMetrics(BaseModel):
    """Program progress (solved / assigned) and concept mastery (right / attempted)."""

    program_progress: float
    concept_mastery: float
    total_solved: int
    total_assigned: int
    total_right: int
    total_attempted: int
    last_updated: datetime


class ProgressColor(BaseModel):
    """Traffic‑light status for an accuracy value."""

    color: Literal["green", "yellow", "red"]
    status: str


class StudentProgressSummary(BaseModel):
    """One row of the teacher's colour‑coded student list."""

    student_id: uuid.UUID
    username: str
    full_name: str | None = None
    accuracy: float | None = None
    program_progress: float | None = None
    concept_mastery: float | None = None
    color: Literal["green", "yellow", "red"]
    status: str


class ProgressLogCreate(BaseModel):
    """POST /api/progress-logs — the student's counts for one day."""

    assignment_id: uuid.UUID
    right_count: int = Field(ge=0)
    wrong_count: int = Field(ge=0)
    empty_count: int = Field(ge=0)
    bonus_count: int = Field(default=0, ge=0)
    log_date: date | None = None  # defaults to today

    @property
    def total_questions(self) -> int:
        return self.right_count + self.wrong_count + self.empty_count + self.bonus_count


class ProgressLogRead(BaseModel):
    id: uuid.UUID
    assignment_id: uuid.UUID
    log_date: date
    right_count: int
    wrong_count: int
    empty_count: int
    bonus_count: int
    updated_at: datetime

    model_config = {"from_attributes": True}


class DailyProgressRead(BaseModel):
    """GET /api/progress-logs — the active assignment and its log for a date."""

    assignment_id: uuid.UUID
    log_date: date
    log: ProgressLogRead | None = None

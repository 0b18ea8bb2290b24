"""Pydantic schemas — re‑exported for convenience."""

from app.schemas.common import ErrorResponse  # noqa: F401
from app.schemas.progress import (  # noqa: F401
    TopicProgress,
    LessonProgress,
    DualMetrics,
    ProgressColor,
    StudentProgressSummary,
    ProgressLogCreate,
    ProgressLogRead,
    DailyProgressRead,
)
from app.schemas.alert import (  # noqa: F401
    AlertRead,
    ThresholdRead,
    ThresholdUpdate,
)

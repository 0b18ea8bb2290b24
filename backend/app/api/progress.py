"""Progress & analytics routes."""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, reader_scope, teacher_scope
from app.config import settings
from app.core.exceptions import ProgressError
from app.db.models import RoleEnum, User
from app.db.session import get_db
from app.schemas.progress import (
    DualMetrics,
    LessonProgress,
    StudentProgressSummary,
    TopicProgress,
)
from app.services.events import ProgressEventBus, get_event_bus
from app.services.preferences_service import get_accuracy_threshold
from app.services.progress_cache import ProgressCacheService, get_progress_cache
from app.services.progress_calculator import (
    get_dual_metrics,
    get_lesson_progress,
    get_topic_progress,
)
from app.services.progress_helpers import get_progress_color

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/students", response_model=list[StudentProgressSummary])
def list_student_progress(
    threshold: float | None = Query(None, ge=0, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: ProgressCacheService = Depends(get_progress_cache),
):
    """Colour‑coded overview of the caller's students.

    Concept mastery drives the colour. The threshold comes from the query
    string, else from the caller's preference, else the default.
    """
    scope = teacher_scope(current_user)
    if threshold is None:
        threshold = get_accuracy_threshold(
            db, current_user.id, settings.DEFAULT_ACCURACY_THRESHOLD
        )

    query = db.query(User).filter(User.role == RoleEnum.STUDENT)
    if scope is not None:
        query = query.filter(User.teacher_id == scope)
    students = query.order_by(User.username.asc()).all()

    rows: list[StudentProgressSummary] = []
    for student in students:
        try:
            metrics: DualMetrics | None = get_dual_metrics(db, cache, student.id, scope)
        except ProgressError as e:
            logger.warning("Dual metrics unavailable for student %s: %s", student.id, e)
            metrics = None

        accuracy = metrics.concept_mastery if metrics else None
        color = get_progress_color(accuracy, threshold)
        rows.append(
            StudentProgressSummary(
                student_id=student.id,
                username=student.username,
                full_name=student.full_name,
                accuracy=accuracy,
                program_progress=metrics.program_progress if metrics else None,
                concept_mastery=accuracy,
                color=color.color,
                status=color.status,
            )
        )
    return rows


@router.get("/students/{student_id}/topics/{topic_id}", response_model=TopicProgress)
def read_topic_progress(
    student_id: str,
    topic_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: ProgressCacheService = Depends(get_progress_cache),
    events: ProgressEventBus = Depends(get_event_bus),
):
    """Accuracy and answer counts for one student on one topic."""
    return get_topic_progress(
        db, cache, student_id, topic_id, reader_scope(current_user, student_id), events
    )


@router.get("/students/{student_id}/lessons/{lesson_id}", response_model=LessonProgress)
def read_lesson_progress(
    student_id: str,
    lesson_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: ProgressCacheService = Depends(get_progress_cache),
    events: ProgressEventBus = Depends(get_event_bus),
):
    """Lesson roll‑up with the per‑topic breakdown."""
    return get_lesson_progress(
        db, cache, student_id, lesson_id, reader_scope(current_user, student_id), events
    )


@router.get("/students/{student_id}/metrics", response_model=DualMetrics)
def read_dual_metrics(
    student_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: ProgressCacheService = Depends(get_progress_cache),
):
    """Program progress and concept mastery for a student."""
    return get_dual_metrics(db, cache, student_id, reader_scope(current_user, student_id))

"""Daily progress log submission for students."""

import logging
from datetime import date, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user
from app.config import settings
from app.db.models import Assignment, ProgressLog, User
from app.db.session import get_db
from app.schemas.progress import DailyProgressRead, ProgressLogCreate, ProgressLogRead
from app.services.progress_cache import ProgressCacheService, get_progress_cache

logger = logging.getLogger(__name__)
router = APIRouter()


# ── helpers ───────────────────────────────────────────────────────────────────


def _check_log_date(target: date, action: str) -> None:
    """Reject future dates and dates older than the retention window."""
    today = date.today()
    if target > today:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot {action} progress for future dates",
        )
    oldest = today - timedelta(days=settings.PROGRESS_LOG_MAX_AGE_DAYS)
    if target < oldest:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot {action} progress for dates more than "
            f"{settings.PROGRESS_LOG_MAX_AGE_DAYS} days ago",
        )


def _active_assignments(db: Session, student_id, target: date):
    return db.query(Assignment).filter(
        Assignment.student_id == student_id,
        Assignment.start_date <= target,
        Assignment.end_date >= target,
    )


# ── Routes ────────────────────────────────────────────────────────────────────


@router.get("/", response_model=DailyProgressRead)
def read_daily_progress(
    log_date: date | None = Query(None, description="Defaults to today"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Return the caller's active assignment on a date and its logged counts."""
    target = log_date or date.today()
    _check_log_date(target, "retrieve")

    assignment = _active_assignments(db, current_user.id, target).first()
    if assignment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No active assignment found for this date",
        )

    log = (
        db.query(ProgressLog)
        .filter(
            ProgressLog.student_id == current_user.id,
            ProgressLog.assignment_id == assignment.id,
            ProgressLog.log_date == target,
        )
        .first()
    )
    return DailyProgressRead(
        assignment_id=assignment.id,
        log_date=target,
        log=ProgressLogRead.model_validate(log) if log else None,
    )


@router.post("/", response_model=ProgressLogRead)
def submit_daily_progress(
    body: ProgressLogCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: ProgressCacheService = Depends(get_progress_cache),
):
    """Create or overwrite the caller's counts for one assignment and day.

    Any change to a student's logs can move every topic, lesson and dual
    figure, so all of the student's cached metrics are dropped.
    """
    if body.total_questions > settings.MAX_DAILY_QUESTIONS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Total questions cannot exceed {settings.MAX_DAILY_QUESTIONS} per day",
        )

    target = body.log_date or date.today()
    _check_log_date(target, "log")

    assignment = (
        _active_assignments(db, current_user.id, target)
        .filter(Assignment.id == body.assignment_id)
        .first()
    )
    if assignment is None:
        logger.info(
            "Progress log rejected: assignment %s not active for user %s on %s",
            body.assignment_id, current_user.id, target,
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Assignment not found or access denied",
        )

    log = (
        db.query(ProgressLog)
        .filter(
            ProgressLog.student_id == current_user.id,
            ProgressLog.assignment_id == assignment.id,
            ProgressLog.log_date == target,
        )
        .first()
    )
    if log is None:
        log = ProgressLog(
            student_id=current_user.id,
            assignment_id=assignment.id,
            log_date=target,
        )
        db.add(log)

    log.right_count = body.right_count
    log.wrong_count = body.wrong_count
    log.empty_count = body.empty_count
    log.bonus_count = body.bonus_count
    db.commit()
    db.refresh(log)

    cache.invalidate_student(current_user.id)
    return ProgressLogRead.model_validate(log)

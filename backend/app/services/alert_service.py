"""Low-accuracy alerts.

An alert is kept per (student, topic, lesson) while accuracy stays below the
teacher's threshold. Recovering above the threshold resolves it
automatically; teachers can also resolve alerts by hand.
"""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError
from app.db.models import AccuracyAlert, User

logger = logging.getLogger(__name__)


def check_and_generate_alert(
    db: Session,
    student_id: uuid.UUID,
    accuracy: float | None,
    threshold: float = 70.0,
    topic_id: uuid.UUID | None = None,
    lesson_id: uuid.UUID | None = None,
) -> AccuracyAlert | None:
    """Create, refresh or auto-resolve the alert for this accuracy reading.

    Returns the touched alert, or ``None`` when nothing changed. Database
    failures are logged and swallowed: alerting must never break the
    progress calculation that triggered it.
    """
    if accuracy is None:
        return None

    try:
        existing = (
            db.query(AccuracyAlert)
            .filter(
                AccuracyAlert.student_id == student_id,
                AccuracyAlert.topic_id == topic_id,
                AccuracyAlert.lesson_id == lesson_id,
                AccuracyAlert.resolved.is_(False),
            )
            .first()
        )

        if accuracy < threshold:
            if existing is not None:
                existing.accuracy = accuracy
                existing.threshold = threshold
                existing.created_at = datetime.now(timezone.utc)
                alert = existing
            else:
                alert = AccuracyAlert(
                    student_id=student_id,
                    topic_id=topic_id,
                    lesson_id=lesson_id,
                    accuracy=accuracy,
                    threshold=threshold,
                    resolved=False,
                )
                db.add(alert)
            logger.info(
                "Accuracy alert for student %s (topic=%s lesson=%s): %.2f < %.2f",
                student_id, topic_id, lesson_id, accuracy, threshold,
            )
        elif existing is not None:
            existing.resolved = True
            existing.resolved_at = datetime.now(timezone.utc)
            alert = existing
            logger.info("Accuracy alert %s auto-resolved (%.2f ≥ %.2f)", alert.id, accuracy, threshold)
        else:
            return None

        db.commit()
        db.refresh(alert)
        return alert
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("Failed to check/generate alert for student %s (non-fatal): %s", student_id, e)
        return None


def resolve_alert(db: Session, alert_id: uuid.UUID, teacher_id: uuid.UUID) -> AccuracyAlert:
    """Resolve an alert on one of *teacher_id*'s students."""
    alert = (
        db.query(AccuracyAlert)
        .join(User, AccuracyAlert.student_id == User.id)
        .filter(AccuracyAlert.id == alert_id, User.teacher_id == teacher_id)
        .first()
    )
    if alert is None:
        raise NotFoundError("Alert not found or access denied")

    alert.resolved = True
    alert.resolved_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(alert)
    return alert


def get_alerts(
    db: Session,
    teacher_id: uuid.UUID,
    student_id: uuid.UUID | None = None,
    resolved: bool = False,
) -> list[AccuracyAlert]:
    """Alerts on the teacher's students, newest first."""
    query = (
        db.query(AccuracyAlert)
        .join(User, AccuracyAlert.student_id == User.id)
        .filter(User.teacher_id == teacher_id, AccuracyAlert.resolved.is_(resolved))
    )
    if student_id is not None:
        query = query.filter(AccuracyAlert.student_id == student_id)
    return query.order_by(AccuracyAlert.created_at.desc()).all()

"""Background tasks executed by Celery workers."""

import logging
import uuid

from app.celery_app import celery_app
from app.config import settings
from app.db.session import get_session_factory
from app.services.alert_service import check_and_generate_alert
from app.services.events import ProgressEventBus, TopicProgressCalculated
from app.services.preferences_service import get_accuracy_threshold

logger = logging.getLogger(__name__)


@celery_app.task(name="evaluate_accuracy_alert")
def evaluate_accuracy_alert(
    student_id: str,
    topic_id: str,
    accuracy: float,
    teacher_id: str | None = None,
) -> dict:
    """Raise, refresh or resolve the topic alert for a fresh accuracy reading.

    The threshold comes from the student's teacher preferences, falling back
    to ``DEFAULT_ACCURACY_THRESHOLD``.
    """
    factory = get_session_factory()
    db = factory()
    try:
        default = settings.DEFAULT_ACCURACY_THRESHOLD
        threshold = (
            get_accuracy_threshold(db, uuid.UUID(teacher_id), default)
            if teacher_id
            else default
        )
        alert = check_and_generate_alert(
            db,
            uuid.UUID(student_id),
            accuracy,
            threshold,
            topic_id=uuid.UUID(topic_id),
        )
        if alert is None:
            return {"success": True, "alert_id": None, "resolved": None}
        return {"success": True, "alert_id": str(alert.id), "resolved": alert.resolved}
    finally:
        db.close()


def enqueue_accuracy_alert(event: TopicProgressCalculated) -> None:
    """Event subscriber that hands the alert check to a worker.

    Topics with nothing logged carry no accuracy signal and are skipped,
    so a student who has not started a topic is never flagged as if they
    scored 0%.
    """
    if event.total_questions == 0:
        return
    evaluate_accuracy_alert.delay(
        str(event.student_id),
        str(event.topic_id),
        event.accuracy,
        str(event.teacher_id) if event.teacher_id else None,
    )
    logger.debug("Queued alert check for student %s topic %s", event.student_id, event.topic_id)


def register_event_handlers(bus: ProgressEventBus) -> None:
    bus.subscribe(TopicProgressCalculated, enqueue_accuracy_alert)

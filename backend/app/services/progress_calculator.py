"""Progress metrics core.

Turns raw per-day answer counts (``ProgressLog``) into:

1. **Topic progress**: accuracy for one student × topic:
   ``right / (right + wrong + empty + bonus) × 100``.
2. **Lesson progress**: simple (unweighted) mean of the accuracies of the
   lesson's topics that have at least one logged question.
3. **Dual metrics**: program progress (``solved / assigned``) and concept
   mastery (``right / attempted``) across every assignment of a student.

Every percentage is rounded half-up to two decimals, and is ``0`` when its
denominator is ``0``.

Errors follow one order: ids are validated before any query, then the
student is looked up, then tenant ownership is checked, then the topic or
lesson is looked up. Nothing here retries.
"""

import logging
import math
import time
import uuid
from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.config import settings
from app.core.exceptions import InvalidIdentifierError, NotFoundError, TenantAccessError
from app.db.models import Assignment, Lesson, ProgressLog, RoleEnum, Topic, User
from app.schemas.progress import DualMetrics, LessonProgress, TopicProgress
from app.services.events import ProgressEventBus, TopicProgressCalculated
from app.services.progress_cache import ProgressCacheService

logger = logging.getLogger(__name__)

IdLike = uuid.UUID | str


# ── Arithmetic helpers ────────────────────────────────────────────────────────


def round2(value: float) -> float:
    """Round half-up to two decimals (``66.665`` → ``66.67``)."""
    return math.floor(value * 100 + 0.5) / 100


def percentage(part: int, whole: int) -> float:
    """``part / whole × 100`` rounded to two decimals, or ``0.0`` for an empty whole."""
    if whole <= 0:
        return 0.0
    return round2(part / whole * 100)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _latest(*values: datetime | None) -> datetime | None:
    present = [_as_utc(v) for v in values if v is not None]
    return max(present) if present else None


def _sum_counts(logs: Iterable[ProgressLog]) -> tuple[dict[str, int], datetime | None]:
    """Add up the four answer counters and find the newest ``updated_at``."""
    counts = {"right": 0, "wrong": 0, "empty": 0, "bonus": 0}
    last_updated: datetime | None = None
    for log in logs:
        counts["right"] += log.right_count
        counts["wrong"] += log.wrong_count
        counts["empty"] += log.empty_count
        counts["bonus"] += log.bonus_count
        last_updated = _latest(last_updated, log.updated_at)
    return counts, last_updated


def _warn_if_slow(name: str, started: float) -> None:
    elapsed_ms = (time.perf_counter() - started) * 1000
    if elapsed_ms > settings.SLOW_CALCULATION_MS:
        logger.warning(
            "%s took %.0fms (exceeds %dms threshold)",
            name, elapsed_ms, settings.SLOW_CALCULATION_MS,
        )


# ── Validation & lookups ──────────────────────────────────────────────────────


def parse_id(value: IdLike, name: str) -> uuid.UUID:
    """Coerce an id argument to a UUID or raise ``InvalidIdentifierError``."""
    if isinstance(value, uuid.UUID):
        return value
    if not isinstance(value, str) or not value.strip():
        raise InvalidIdentifierError(f"Invalid {name}: must be a non-empty string")
    try:
        return uuid.UUID(value.strip())
    except ValueError:
        raise InvalidIdentifierError(f"Invalid {name}: {value!r} is not a valid UUID") from None


def _parse_scope(teacher_id: IdLike | None) -> uuid.UUID | None:
    return parse_id(teacher_id, "teacher_id") if teacher_id else None


def _load_student(db: Session, student_id: uuid.UUID, teacher_id: uuid.UUID | None) -> User:
    student = (
        db.query(User)
        .filter(User.id == student_id, User.role == RoleEnum.STUDENT)
        .first()
    )
    if student is None:
        raise NotFoundError(f"Student not found: {student_id}")
    if teacher_id is not None and student.teacher_id != teacher_id:
        raise TenantAccessError(
            f"Access denied: student {student_id} does not belong to teacher {teacher_id}"
        )
    return student


def _load_topic(db: Session, topic_id: uuid.UUID) -> Topic:
    topic = db.query(Topic).filter(Topic.id == topic_id).first()
    if topic is None:
        raise NotFoundError(f"Topic not found: {topic_id}")
    return topic


def _load_lesson(db: Session, lesson_id: uuid.UUID, teacher_id: uuid.UUID | None) -> Lesson:
    """Fetch a lesson visible to *teacher_id*: global or owned by that teacher."""
    query = db.query(Lesson).filter(Lesson.id == lesson_id)
    if teacher_id is not None:
        query = query.filter(
            or_(Lesson.teacher_id == teacher_id, Lesson.teacher_id.is_(None))
        )
    lesson = query.first()
    if lesson is None:
        raise NotFoundError(f"Lesson not found: {lesson_id}")
    return lesson


# ── Topic progress ────────────────────────────────────────────────────────────


def _compute_topic_progress(
    db: Session,
    student: User,
    topic: Topic,
    events: ProgressEventBus | None = None,
) -> TopicProgress:
    started = time.perf_counter()
    logs = (
        db.query(ProgressLog)
        .join(Assignment, ProgressLog.assignment_id == Assignment.id)
        .filter(ProgressLog.student_id == student.id, Assignment.topic_id == topic.id)
        .all()
    )
    counts, last_updated = _sum_counts(logs)
    total_questions = sum(counts.values())

    result = TopicProgress(
        topic_id=topic.id,
        topic_name=topic.name,
        accuracy=percentage(counts["right"], total_questions),
        total_questions=total_questions,
        right_count=counts["right"],
        wrong_count=counts["wrong"],
        empty_count=counts["empty"],
        bonus_count=counts["bonus"],
        last_updated=last_updated or datetime.now(timezone.utc),
    )
    _warn_if_slow("calculate_topic_progress", started)

    if events is not None:
        events.publish(
            TopicProgressCalculated(
                student_id=student.id,
                teacher_id=student.teacher_id,
                topic_id=topic.id,
                accuracy=result.accuracy,
                total_questions=total_questions,
            )
        )
    return result


def calculate_topic_progress(
    db: Session,
    student_id: IdLike,
    topic_id: IdLike,
    teacher_id: IdLike | None = None,
    events: ProgressEventBus | None = None,
) -> TopicProgress:
    """Aggregate every ProgressLog of *student_id* on *topic_id*.

    Logs are matched through their assignment's topic. When *teacher_id* is
    given the student must belong to that teacher. After computing, a
    ``TopicProgressCalculated`` event is published on *events* so alerting
    can react; subscriber failures never surface here.

    Raises:
        InvalidIdentifierError: an id is empty or not a UUID.
        NotFoundError: the student or topic does not exist.
        TenantAccessError: the student belongs to another teacher.
    """
    sid = parse_id(student_id, "student_id")
    tid = parse_id(topic_id, "topic_id")
    scope = _parse_scope(teacher_id)

    student = _load_student(db, sid, scope)
    topic = _load_topic(db, tid)
    return _compute_topic_progress(db, student, topic, events)


def _empty_topic_progress(topic: Topic) -> TopicProgress:
    return TopicProgress(
        topic_id=topic.id,
        topic_name=topic.name,
        accuracy=0.0,
        total_questions=0,
        right_count=0,
        wrong_count=0,
        empty_count=0,
        bonus_count=0,
        last_updated=datetime.now(timezone.utc),
    )


# ── Lesson progress ───────────────────────────────────────────────────────────


def _compute_lesson_progress(
    db: Session,
    student: User,
    lesson: Lesson,
    events: ProgressEventBus | None = None,
) -> LessonProgress:
    started = time.perf_counter()
    topics = (
        db.query(Topic)
        .filter(Topic.lesson_id == lesson.id)
        .order_by(Topic.name.asc())
        .all()
    )

    topic_progresses: list[TopicProgress] = []
    accuracy_sum = 0.0
    topics_with_questions = 0
    total_questions = 0
    last_updated: datetime | None = None

    for topic in topics:
        try:
            progress = _compute_topic_progress(db, student, topic, events)
        except Exception as e:
            logger.warning(
                "Progress for topic %s failed inside lesson %s, using zero progress: %s",
                topic.id, lesson.id, e,
            )
            progress = _empty_topic_progress(topic)

        topic_progresses.append(progress)
        total_questions += progress.total_questions
        if progress.total_questions > 0:
            accuracy_sum += progress.accuracy
            topics_with_questions += 1
        last_updated = _latest(last_updated, progress.last_updated)

    accuracy = round2(accuracy_sum / topics_with_questions) if topics_with_questions else 0.0

    result = LessonProgress(
        lesson_id=lesson.id,
        lesson_name=lesson.name,
        accuracy=accuracy,
        total_questions=total_questions,
        topic_count=len(topics),
        topics=topic_progresses,
        last_updated=last_updated or datetime.now(timezone.utc),
    )
    _warn_if_slow("calculate_lesson_progress", started)
    return result


def calculate_lesson_progress(
    db: Session,
    student_id: IdLike,
    lesson_id: IdLike,
    teacher_id: IdLike | None = None,
    events: ProgressEventBus | None = None,
) -> LessonProgress:
    """Roll the lesson's topics up into one accuracy figure.

    The lesson accuracy is the plain mean of topic accuracies, counting only
    topics with logged questions; it is *not* weighted by question volume.
    A topic whose calculation fails is logged and reported as zero progress
    instead of failing the whole lesson.

    With *teacher_id* the lesson must be global or owned by that teacher.
    """
    sid = parse_id(student_id, "student_id")
    lid = parse_id(lesson_id, "lesson_id")
    scope = _parse_scope(teacher_id)

    student = _load_student(db, sid, scope)
    lesson = _load_lesson(db, lid, scope)
    return _compute_lesson_progress(db, student, lesson, events)


# ── Dual metrics ──────────────────────────────────────────────────────────────


def _compute_dual_metrics(db: Session, student: User) -> DualMetrics:
    started = time.perf_counter()
    logs = db.query(ProgressLog).filter(ProgressLog.student_id == student.id).all()
    assignments = db.query(Assignment).filter(Assignment.student_id == student.id).all()

    counts, last_log_update = _sum_counts(logs)
    total_solved = sum(counts.values())
    # every logged question counts as attempted
    total_attempted = total_solved

    total_assigned = 0
    last_assignment_update: datetime | None = None
    for assignment in assignments:
        total_assigned += assignment.question_count
        last_assignment_update = _latest(last_assignment_update, assignment.updated_at)

    result = DualMetrics(
        program_progress=percentage(total_solved, total_assigned),
        concept_mastery=percentage(counts["right"], total_attempted),
        total_solved=total_solved,
        total_assigned=total_assigned,
        total_right=counts["right"],
        total_attempted=total_attempted,
        last_updated=_latest(last_log_update, last_assignment_update)
        or datetime.now(timezone.utc),
    )
    _warn_if_slow("calculate_dual_metrics", started)
    return result


def calculate_dual_metrics(
    db: Session,
    student_id: IdLike,
    teacher_id: IdLike | None = None,
) -> DualMetrics:
    """Program progress and concept mastery across all of a student's work.

    - program progress = logged questions / assigned questions × 100
      (may exceed 100 when the student works ahead)
    - concept mastery = right answers / logged questions × 100
    """
    sid = parse_id(student_id, "student_id")
    student = _load_student(db, sid, _parse_scope(teacher_id))
    return _compute_dual_metrics(db, student)


# ── Cached entry points ───────────────────────────────────────────────────────
# Cache keys carry no caller scope: every check that can refuse the caller
# (student, tenant, lesson visibility) runs before the cache is read.


def get_topic_progress(
    db: Session,
    cache: ProgressCacheService,
    student_id: IdLike,
    topic_id: IdLike,
    teacher_id: IdLike | None = None,
    events: ProgressEventBus | None = None,
) -> TopicProgress:
    sid = parse_id(student_id, "student_id")
    tid = parse_id(topic_id, "topic_id")
    student = _load_student(db, sid, _parse_scope(teacher_id))

    cached = cache.get_topic_progress(sid, tid)
    if cached is not None:
        return cached
    result = _compute_topic_progress(db, student, _load_topic(db, tid), events)
    cache.set_topic_progress(sid, tid, result)
    return result


def get_lesson_progress(
    db: Session,
    cache: ProgressCacheService,
    student_id: IdLike,
    lesson_id: IdLike,
    teacher_id: IdLike | None = None,
    events: ProgressEventBus | None = None,
) -> LessonProgress:
    sid = parse_id(student_id, "student_id")
    lid = parse_id(lesson_id, "lesson_id")
    scope = _parse_scope(teacher_id)
    student = _load_student(db, sid, scope)
    lesson = _load_lesson(db, lid, scope)

    cached = cache.get_lesson_progress(sid, lid)
    if cached is not None:
        return cached
    result = _compute_lesson_progress(db, student, lesson, events)
    cache.set_lesson_progress(sid, lid, result)
    return result


def get_dual_metrics(
    db: Session,
    cache: ProgressCacheService,
    student_id: IdLike,
    teacher_id: IdLike | None = None,
) -> DualMetrics:
    sid = parse_id(student_id, "student_id")
    student = _load_student(db, sid, _parse_scope(teacher_id))

    cached = cache.get_dual_metrics(sid)
    if cached is not None:
        return cached
    result = _compute_dual_metrics(db, student)
    cache.set_dual_metrics(sid, result)
    return result

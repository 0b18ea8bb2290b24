"""Per-user key/value preferences (currently the accuracy alert threshold)."""

import logging
import uuid

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import InvalidInputError
from app.db.models import UserPreference

logger = logging.getLogger(__name__)

ACCURACY_THRESHOLD_KEY = "accuracy_threshold"


def get_preference(db: Session, user_id: uuid.UUID, key: str, default: str) -> str:
    """Return the stored value, or *default* when unset or unreadable."""
    try:
        pref = (
            db.query(UserPreference)
            .filter(UserPreference.user_id == user_id, UserPreference.key == key)
            .first()
        )
    except SQLAlchemyError as e:
        logger.warning("Preference lookup failed for %s/%s (using default): %s", user_id, key, e)
        return default
    return pref.value if pref is not None else default


def set_preference(db: Session, user_id: uuid.UUID, key: str, value: str) -> UserPreference:
    """Create or update a preference and commit."""
    pref = (
        db.query(UserPreference)
        .filter(UserPreference.user_id == user_id, UserPreference.key == key)
        .first()
    )
    if pref is None:
        pref = UserPreference(user_id=user_id, key=key, value=value)
        db.add(pref)
    else:
        pref.value = value
    db.commit()
    db.refresh(pref)
    return pref


def delete_preference(db: Session, user_id: uuid.UUID, key: str) -> None:
    """Remove a preference; missing preferences are ignored."""
    pref = (
        db.query(UserPreference)
        .filter(UserPreference.user_id == user_id, UserPreference.key == key)
        .first()
    )
    if pref is None:
        return
    db.delete(pref)
    db.commit()


def get_accuracy_threshold(db: Session, user_id: uuid.UUID, default: float = 70.0) -> float:
    """Teacher's alert threshold in percent; falls back to *default* if invalid."""
    raw = get_preference(db, user_id, ACCURACY_THRESHOLD_KEY, str(default))
    try:
        threshold = float(raw)
    except ValueError:
        return default
    if not 0 <= threshold <= 100:
        return default
    return threshold


def set_accuracy_threshold(db: Session, user_id: uuid.UUID, threshold: float) -> float:
    if not 0 <= threshold <= 100:
        raise InvalidInputError("Threshold must be between 0 and 100")
    set_preference(db, user_id, ACCURACY_THRESHOLD_KEY, str(threshold))
    return threshold

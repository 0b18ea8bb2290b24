"""Caller preference routes."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_current_user
from app.config import settings
from app.db.models import User
from app.db.session import get_db
from app.schemas.alert import ThresholdRead, ThresholdUpdate
from app.services.preferences_service import get_accuracy_threshold, set_accuracy_threshold

router = APIRouter()


@router.get("/accuracy-threshold", response_model=ThresholdRead)
def read_accuracy_threshold(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    threshold = get_accuracy_threshold(
        db, current_user.id, settings.DEFAULT_ACCURACY_THRESHOLD
    )
    return ThresholdRead(threshold=threshold)


@router.put("/accuracy-threshold", response_model=ThresholdRead)
def update_accuracy_threshold(
    body: ThresholdUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Set the accuracy below which the caller's students raise alerts."""
    return ThresholdRead(threshold=set_accuracy_threshold(db, current_user.id, body.threshold))

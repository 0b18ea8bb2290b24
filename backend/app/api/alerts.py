"""Low‑accuracy alert routes."""

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, teacher_scope
from app.db.models import User
from app.db.session import get_db
from app.schemas.alert import AlertRead
from app.services.alert_service import get_alerts, resolve_alert

router = APIRouter()


def _require_scope(user: User) -> uuid.UUID:
    scope = teacher_scope(user)
    if scope is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Alerts are listed per teacher",
        )
    return scope


@router.get("/", response_model=list[AlertRead])
def list_alerts(
    student_id: uuid.UUID | None = Query(None),
    resolved: bool = Query(False),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Alerts on the caller's students, newest first."""
    return get_alerts(db, _require_scope(current_user), student_id, resolved)


@router.post("/{alert_id}/resolve", response_model=AlertRead)
def resolve(
    alert_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Mark an alert as handled."""
    return resolve_alert(db, alert_id, _require_scope(current_user))

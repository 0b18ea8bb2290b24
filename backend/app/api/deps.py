"""FastAPI dependencies shared across routes."""

import uuid

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.core.security import decode_access_token
from app.db.models import RoleEnum, User
from app.db.session import get_db

# Tokens are issued by the auth service; this URL only documents where.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Decode JWT and return the authenticated user, or 401."""
    payload = decode_access_token(token)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user_id = payload.get("sub")
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload"
        )
    try:
        uid = uuid.UUID(user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload"
        ) from None
    user = db.query(User).filter(User.id == uid).first()
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )
    return user


def tenant_scope(user: User) -> uuid.UUID | None:
    """Teacher id whose students *user* may see; ``None`` for admins."""
    if user.role == RoleEnum.TEACHER:
        return user.id
    if user.role == RoleEnum.ADMIN:
        return None
    if user.teacher_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="No teacher assigned"
        )
    return user.teacher_id


def teacher_scope(user: User) -> uuid.UUID | None:
    """Like :func:`tenant_scope`, but only for teachers and admins."""
    if user.role not in (RoleEnum.TEACHER, RoleEnum.ADMIN):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Teacher access required"
        )
    return tenant_scope(user)


def reader_scope(user: User, student_id: str) -> uuid.UUID | None:
    """Scope for reading *student_id*'s progress.

    Students may only read their own figures. Parents have no link to a
    child yet, so they are refused outright. A malformed *student_id* is
    left for the calculator to reject as an invalid identifier.
    """
    if user.role == RoleEnum.PARENT:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to read student progress"
        )
    if user.role == RoleEnum.STUDENT:
        try:
            requested = uuid.UUID(student_id.strip())
        except ValueError:
            return tenant_scope(user)
        if requested != user.id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Students may only read their own progress",
            )
    return tenant_scope(user)

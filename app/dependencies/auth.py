"""
Session-backed user resolution and role gating for dashboard routes.
"""
from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User
from app.services.permissions import has_permission


def _session_user(request: Request, db: Session) -> User | None:
    session_user_id = request.session.get("user_id")
    if not session_user_id:
        return None
    return db.query(User).filter(User.id == session_user_id, User.is_active.is_(True)).first()


def current_user(request: Request, db: Session = Depends(get_db)) -> User:
    user = _session_user(request, db)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"status": "error", "message": "auth_required"},
        )
    return user


def require_role(*roles: str):
    allowed = {role.lower() for role in roles}

    def dependency(user: User = Depends(current_user)) -> User:
        if (user.role or "").lower() not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"status": "error", "message": "forbidden"},
            )
        return user

    return dependency


def require_permission(permission: str):
    def dependency(user: User = Depends(current_user)) -> User:
        if not has_permission(user.role, permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"status": "error", "message": "forbidden", "permission": permission},
            )
        return user

    return dependency

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies.auth import current_user, require_permission
from app.dependencies.clock import request_now
from app.dependencies.errors import http_error_from
from app.models.user import User
from app.services.edit_requests import (
    approve_edit_request,
    edit_request_row,
    list_edit_requests,
    reject_edit_request,
    submit_edit_request,
)

router = APIRouter(prefix="/api/edit-requests", tags=["edit-requests"])


class SubmitEditRequest(BaseModel):
    entity_type: str
    entity_id: int
    changes: dict[str, Any]
    reason: str = Field(min_length=1)


class ReviewEditRequest(BaseModel):
    review_notes: str | None = None


@router.get("")
def edit_requests_index(
    status: str | None = Query(default=None),
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    rows = [edit_request_row(item) for item in list_edit_requests(db, user=user, status=status)]
    return {"edit_requests": rows, "total": len(rows)}


@router.post("")
def submit(
    payload: SubmitEditRequest,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        edit_request = submit_edit_request(
            db,
            user=user,
            entity_type=payload.entity_type,
            entity_id=payload.entity_id,
            changes=payload.changes,
            reason=payload.reason,
        )
    except ValueError as exc:
        raise http_error_from(exc) from exc
    db.commit()
    return {"status": "ok", "edit_request": edit_request_row(edit_request)}


@router.post("/{edit_request_id}/approve")
def approve(
    edit_request_id: int,
    payload: ReviewEditRequest | None = None,
    user: User = Depends(require_permission("approve_edit_requests")),
    db: Session = Depends(get_db),
    now: datetime = Depends(request_now),
):
    try:
        edit_request = approve_edit_request(
            db,
            edit_request_id=edit_request_id,
            reviewer=user,
            now=now,
            review_notes=payload.review_notes if payload else None,
        )
    except ValueError as exc:
        db.rollback()
        raise http_error_from(exc) from exc
    db.commit()
    return {"status": "ok", "edit_request": edit_request_row(edit_request)}


@router.post("/{edit_request_id}/reject")
def reject(
    edit_request_id: int,
    payload: ReviewEditRequest | None = None,
    user: User = Depends(require_permission("approve_edit_requests")),
    db: Session = Depends(get_db),
    now: datetime = Depends(request_now),
):
    try:
        edit_request = reject_edit_request(
            db,
            edit_request_id=edit_request_id,
            reviewer=user,
            now=now,
            review_notes=payload.review_notes if payload else None,
        )
    except ValueError as exc:
        raise http_error_from(exc) from exc
    db.commit()
    return {"status": "ok", "edit_request": edit_request_row(edit_request)}

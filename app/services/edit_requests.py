"""
Edit requests: staff propose changes to a trip, invoice or expense; an
admin or supervisor approves (the changes are applied) or rejects them.
"""
import logging
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from app.models import EditRequest, User
from app.services.permissions import has_permission
from app.services.records import EDITABLE_FIELDS, apply_changes, clean_changes, get_entity, snapshot

logger = logging.getLogger(__name__)

ENTITY_TYPES = tuple(EDITABLE_FIELDS)


def _json_safe(changes: dict[str, Any]) -> dict[str, Any]:
    return {
        field: value.isoformat() if isinstance(value, datetime) else value
        for field, value in changes.items()
    }


def submit_edit_request(
    db: Session,
    *,
    user: User,
    entity_type: str,
    entity_id: int,
    changes: dict[str, Any],
    reason: str,
) -> EditRequest:
    if entity_type not in ENTITY_TYPES:
        raise ValueError("unknown_entity_type")
    reason = (reason or "").strip()
    if not reason:
        raise ValueError("reason_required")

    entity = get_entity(db, entity_type, user.organization_id, entity_id)
    cleaned = clean_changes(entity_type, changes)

    edit_request = EditRequest(
        organization_id=user.organization_id,
        entity_type=entity_type,
        entity_id=entity.id,
        original_data=snapshot(entity, cleaned),
        proposed_data=_json_safe(cleaned),
        reason=reason,
        status="pending",
        requested_by_id=user.id,
    )
    db.add(edit_request)
    db.flush()

    logger.info(
        "edit_request_submitted: id=%s type=%s entity=%s by=%s",
        edit_request.id, entity_type, entity.id, user.email,
    )
    return edit_request


def _pending_request(db: Session, edit_request_id: int, organization_id: str) -> EditRequest:
    edit_request = (
        db.query(EditRequest)
        .filter(EditRequest.id == edit_request_id, EditRequest.organization_id == organization_id)
        .first()
    )
    if not edit_request:
        raise ValueError("edit_request_not_found")
    if edit_request.status != "pending":
        raise ValueError("edit_request_already_reviewed")
    return edit_request


def approve_edit_request(
    db: Session,
    *,
    edit_request_id: int,
    reviewer: User,
    now: datetime,
    review_notes: str | None = None,
) -> EditRequest:
    edit_request = _pending_request(db, edit_request_id, reviewer.organization_id)

    entity = get_entity(db, edit_request.entity_type, reviewer.organization_id, edit_request.entity_id)
    changes = clean_changes(edit_request.entity_type, edit_request.proposed_data or {})
    apply_changes(db, edit_request.entity_type, entity, changes)

    edit_request.status = "approved"
    edit_request.reviewed_by_id = reviewer.id
    edit_request.reviewed_at = now
    edit_request.review_notes = (review_notes or "").strip() or None
    db.flush()

    logger.info("edit_request_approved: id=%s by=%s", edit_request.id, reviewer.email)
    return edit_request


def reject_edit_request(
    db: Session,
    *,
    edit_request_id: int,
    reviewer: User,
    now: datetime,
    review_notes: str | None = None,
) -> EditRequest:
    edit_request = _pending_request(db, edit_request_id, reviewer.organization_id)
    edit_request.status = "rejected"
    edit_request.reviewed_by_id = reviewer.id
    edit_request.reviewed_at = now
    edit_request.review_notes = (review_notes or "").strip() or None
    db.flush()

    logger.info("edit_request_rejected: id=%s by=%s", edit_request.id, reviewer.email)
    return edit_request


def list_edit_requests(db: Session, *, user: User, status: str | None = None) -> list[EditRequest]:
    """Reviewers see the whole organization; everyone else sees their own requests."""
    query = db.query(EditRequest).filter(EditRequest.organization_id == user.organization_id)
    if not has_permission(user.role, "view_all_edit_requests"):
        query = query.filter(EditRequest.requested_by_id == user.id)
    if status:
        query = query.filter(EditRequest.status == status)
    return query.order_by(EditRequest.created_at.desc(), EditRequest.id.desc()).all()


def edit_request_row(edit_request: EditRequest) -> dict[str, Any]:
    return {
        "id": edit_request.id,
        "entity_type": edit_request.entity_type,
        "entity_id": edit_request.entity_id,
        "original_data": edit_request.original_data,
        "proposed_data": edit_request.proposed_data,
        "reason": edit_request.reason,
        "status": edit_request.status,
        "requested_by": edit_request.requested_by.email if edit_request.requested_by else None,
        "reviewed_by": edit_request.reviewed_by.email if edit_request.reviewed_by else None,
        "reviewed_at": edit_request.reviewed_at.isoformat() if edit_request.reviewed_at else None,
        "review_notes": edit_request.review_notes,
    }

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies.auth import require_permission
from app.dependencies.clock import request_now
from app.dependencies.errors import http_error_from
from app.models.trip import Trip
from app.models.user import User
from app.services.notifications import notify_driver_of_trip
from app.services.records import create_trip, update_record

router = APIRouter(prefix="/api", tags=["operations"])


class CreateTripRequest(BaseModel):
    truck_id: int
    driver_id: int
    customer_id: int | None = None
    origin_city: str = Field(min_length=1)
    origin_address: str | None = None
    destination_city: str = Field(min_length=1)
    destination_address: str | None = None
    load_description: str | None = None
    load_weight: float | None = None
    load_units: int | None = None
    estimated_mileage: int = Field(default=0, ge=0)
    revenue: float = Field(default=0, ge=0)
    scheduled_date: datetime
    notes: str | None = None
    notify_driver: bool = True


def _trip_payload(trip: Trip) -> dict[str, Any]:
    return {
        "id": trip.id,
        "origin_city": trip.origin_city,
        "destination_city": trip.destination_city,
        "truck_id": trip.truck_id,
        "driver_id": trip.driver_id,
        "customer_id": trip.customer_id,
        "status": trip.status,
        "scheduled_date": trip.scheduled_date.isoformat(),
        "revenue": trip.revenue,
        "estimated_mileage": trip.estimated_mileage,
        "actual_mileage": trip.actual_mileage,
        "driver_notified": trip.driver_notified,
    }


@router.post("/trips")
def add_trip(
    payload: CreateTripRequest,
    user: User = Depends(require_permission("create")),
    db: Session = Depends(get_db),
    now: datetime = Depends(request_now),
):
    fields = payload.model_dump(exclude={"notify_driver"})
    try:
        trip = create_trip(db, organization_id=user.organization_id, now=now, **fields)
    except ValueError as exc:
        raise http_error_from(exc) from exc
    db.commit()

    if payload.notify_driver:
        # the trip stands even when the gateway is down
        if notify_driver_of_trip(db, trip).get("ok"):
            db.commit()

    return {"status": "ok", "trip": _trip_payload(trip)}


@router.patch("/trips/{trip_id}")
def edit_trip(
    trip_id: int,
    changes: dict[str, Any],
    user: User = Depends(require_permission("edit")),
    db: Session = Depends(get_db),
):
    try:
        trip = update_record(
            db, entity_type="trip", entity_id=trip_id, organization_id=user.organization_id, changes=changes
        )
    except ValueError as exc:
        raise http_error_from(exc) from exc
    db.commit()
    return {"status": "ok", "trip": _trip_payload(trip)}

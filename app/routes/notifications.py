import hmac
import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.core.config import settings
from app.database import get_db
from app.dependencies.auth import require_role
from app.dependencies.clock import request_now
from app.models.trip import Trip
from app.models.user import User
from app.services.notifications import notify_driver_of_trip, run_invoice_reminders

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["notifications"])


def _cron_authorized(authorization: str | None) -> bool:
    expected = (settings.CRON_SECRET or "").strip()
    provided = (authorization or "").strip()
    if provided.lower().startswith("bearer "):
        provided = provided[7:].strip()
    return bool(expected and provided and hmac.compare_digest(provided, expected))


@router.post("/trips/{trip_id}/notify-driver")
def notify_driver(
    trip_id: int,
    user: User = Depends(require_role("admin", "supervisor", "staff")),
    db: Session = Depends(get_db),
):
    trip = (
        db.query(Trip)
        .filter(Trip.id == trip_id, Trip.organization_id == user.organization_id)
        .first()
    )
    if not trip:
        return JSONResponse(status_code=404, content={"status": "error", "message": "trip_not_found"})

    if trip.driver is None:
        return JSONResponse(status_code=400, content={"status": "error", "message": "trip_has_no_driver"})

    result = notify_driver_of_trip(db, trip)
    if not result.get("ok"):
        return JSONResponse(status_code=502, content={"status": "error", **result})

    db.commit()
    return {"status": "ok", "trip_id": trip.id, "driver_notified": True}


@router.post("/cron/invoice-reminders")
def invoice_reminders(
    authorization: str | None = Header(default=None),
    db: Session = Depends(get_db),
    now: datetime = Depends(request_now),
):
    if not _cron_authorized(authorization):
        return JSONResponse(status_code=401, content={"status": "error", "message": "unauthorized"})

    counts = run_invoice_reminders(db, now=now)
    db.commit()
    return {"status": "ok", **counts}

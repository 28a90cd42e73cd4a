from datetime import datetime
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import Response
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from app.core.config import settings
from app.database import get_db
from app.dependencies.auth import require_permission
from app.dependencies.clock import request_now
from app.models.customer import Customer
from app.models.user import User
from app.services.periods import PERIOD_PRESETS, resolve_date_range
from app.services.permissions import get_permissions
from app.services.report_csv import render_customer_statement, render_report
from app.services.reports import REPORT_TYPES, fetch_report, serialize_rows


router = APIRouter(tags=["reports"])
templates = Jinja2Templates(directory=str(Path(__file__).resolve().parents[1] / "templates"))


def _check_report_type(report_type: str) -> None:
    if report_type not in REPORT_TYPES:
        raise HTTPException(status_code=404, detail="unknown_report_type")


def _load(db: Session, report_type: str, user: User, date_range, customer_id: int | None):
    try:
        return fetch_report(db, report_type, user.organization_id, date_range, customer_id=customer_id)
    except ValueError as exc:
        status_code = 404 if str(exc) == "customer_not_found" else 400
        raise HTTPException(status_code=status_code, detail=str(exc)) from exc


@router.get("/reports")
async def reports_page(
    request: Request,
    period: str | None = Query(default=None),
    date_from: str | None = Query(default=None, alias="from"),
    date_to: str | None = Query(default=None, alias="to"),
    user: User = Depends(require_permission("view_reports")),
    db: Session = Depends(get_db),
    now: datetime = Depends(request_now),
):
    date_range = resolve_date_range(period, date_from, date_to, settings.REPORTS_DEFAULT_PERIOD, now=now)
    customers = (
        db.query(Customer)
        .filter(Customer.organization_id == user.organization_id, Customer.status == "active")
        .order_by(Customer.name.asc())
        .all()
    )
    return templates.TemplateResponse(
        request,
        "reports.html",
        {
            "user": user,
            "permissions": get_permissions(user.role),
            "presets": PERIOD_PRESETS,
            "selected_period": period or settings.REPORTS_DEFAULT_PERIOD,
            "date_range": date_range,
            "report_types": REPORT_TYPES,
            "customers": customers,
        },
    )


@router.get("/api/reports/{report_type}")
async def report_data(
    report_type: str,
    period: str | None = Query(default=None),
    date_from: str | None = Query(default=None, alias="from"),
    date_to: str | None = Query(default=None, alias="to"),
    customer_id: int | None = Query(default=None),
    user: User = Depends(require_permission("view_reports")),
    db: Session = Depends(get_db),
    now: datetime = Depends(request_now),
):
    _check_report_type(report_type)
    date_range = resolve_date_range(period, date_from, date_to, settings.REPORTS_DEFAULT_PERIOD, now=now)
    report = _load(db, report_type, user, date_range, customer_id)

    if report_type == "customer_statement":
        report = {**report, "entries": serialize_rows(report["entries"])}
    else:
        report = {"rows": serialize_rows(report["rows"])}
    return {"report_type": report_type, "period": date_range.as_dict(), **report}


@router.get("/api/reports/{report_type}/csv")
async def report_csv(
    report_type: str,
    period: str | None = Query(default=None),
    date_from: str | None = Query(default=None, alias="from"),
    date_to: str | None = Query(default=None, alias="to"),
    customer_id: int | None = Query(default=None),
    user: User = Depends(require_permission("generate_reports")),
    db: Session = Depends(get_db),
    now: datetime = Depends(request_now),
):
    _check_report_type(report_type)
    date_range = resolve_date_range(period, date_from, date_to, settings.REPORTS_DEFAULT_PERIOD, now=now)
    report = _load(db, report_type, user, date_range, customer_id)

    if report_type == "customer_statement":
        content = render_customer_statement(report, date_range)
    else:
        content = render_report(report_type, report["rows"], date_range)

    filename = f"{report_type}_{date_range.start:%Y%m%d}_{date_range.end:%Y%m%d}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

from datetime import datetime
from pathlib import Path

from fastapi import APIRouter, Depends, Query, Request
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from app.core.config import settings
from app.database import get_db
from app.dependencies.auth import require_role
from app.dependencies.clock import request_now
from app.models.user import User
from app.services.dashboard import (
    load_dashboard,
    load_driver_performance,
    load_performance_trend,
    load_revenue_vs_expenses,
)
from app.services.periods import PERIOD_PRESETS, DateRange, add_months, end_of_day, resolve_date_range, start_of_day
from app.services.permissions import get_permissions


router = APIRouter(tags=["dashboard"])
templates = Jinja2Templates(directory=str(Path(__file__).resolve().parents[1] / "templates"))

ALL_ROLES = ("admin", "supervisor", "staff")
MANAGER_ROLES = ("admin", "supervisor")


def _period(period: str | None, date_from: str | None, date_to: str | None, now: datetime) -> DateRange:
    return resolve_date_range(period, date_from, date_to, settings.DASHBOARD_DEFAULT_PERIOD, now=now)


@router.get("/dashboard")
async def dashboard_page(
    request: Request,
    period: str | None = Query(default=None),
    date_from: str | None = Query(default=None, alias="from"),
    date_to: str | None = Query(default=None, alias="to"),
    user: User = Depends(require_role(*ALL_ROLES)),
    db: Session = Depends(get_db),
    now: datetime = Depends(request_now),
):
    date_range = _period(period, date_from, date_to, now)
    data = load_dashboard(db, user.organization_id, date_range, now=now)
    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "user": user,
            "permissions": get_permissions(user.role),
            "presets": PERIOD_PRESETS,
            "selected_period": period or settings.DASHBOARD_DEFAULT_PERIOD,
            "data": data,
        },
    )


@router.get("/api/dashboard")
async def dashboard_data(
    period: str | None = Query(default=None),
    date_from: str | None = Query(default=None, alias="from"),
    date_to: str | None = Query(default=None, alias="to"),
    user: User = Depends(require_role(*ALL_ROLES)),
    db: Session = Depends(get_db),
    now: datetime = Depends(request_now),
):
    date_range = _period(period, date_from, date_to, now)
    return load_dashboard(db, user.organization_id, date_range, now=now)


@router.get("/api/dashboard/charts/revenue-expenses")
async def revenue_expenses_chart(
    user: User = Depends(require_role(*MANAGER_ROLES)),
    db: Session = Depends(get_db),
    now: datetime = Depends(request_now),
):
    return {"months": load_revenue_vs_expenses(db, user.organization_id, now=now)}


@router.get("/api/dashboard/charts/performance-trend")
async def performance_trend_chart(
    period: str | None = Query(default=None),
    date_from: str | None = Query(default=None, alias="from"),
    date_to: str | None = Query(default=None, alias="to"),
    user: User = Depends(require_role(*MANAGER_ROLES)),
    db: Session = Depends(get_db),
    now: datetime = Depends(request_now),
):
    if period or (date_from and date_to):
        date_range = _period(period, date_from, date_to, now)
    else:
        # trailing twelve calendar months
        first = add_months(now.date().replace(day=1), -11)
        date_range = DateRange(start_of_day(first, now.tzinfo), end_of_day(now.date(), now.tzinfo), "Last 12 Months")
    return {
        "period": date_range.as_dict(),
        "months": load_performance_trend(db, user.organization_id, date_range),
    }


@router.get("/api/dashboard/charts/driver-performance")
async def driver_performance_chart(
    user: User = Depends(require_role(*MANAGER_ROLES)),
    db: Session = Depends(get_db),
    now: datetime = Depends(request_now),
):
    return {"drivers": load_driver_performance(db, user.organization_id, now=now)}

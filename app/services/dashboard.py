"""
Dashboard aggregations.

The aggregation helpers are pure functions over rows that were already
fetched (ORM objects or anything with the same attributes); the ``load_*``
functions fetch those rows for one organization and hand them over.
"""
import logging
from collections import Counter, defaultdict
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta
from typing import Any, Iterable

from sqlalchemy.orm import Session

from app.models import Driver, Expense, Invoice, Payment, Trip, Truck
from app.services.invoicing import overdue_invoices
from app.services.periods import DateRange, add_months, start_of_day

logger = logging.getLogger(__name__)

TRIP_STATUS_STYLES = {
    "scheduled": ("Scheduled", "#3b82f6"),
    "in_progress": ("In Progress", "#f59e0b"),
    "completed": ("Completed", "#10b981"),
    "cancelled": ("Cancelled", "#ef4444"),
}

TRUCK_STATUS_STYLES = {
    "active": ("Active", "#10b981"),
    "in_service": ("In Service", "#3b82f6"),
    "in_repair": ("In Repair", "#f59e0b"),
    "inactive": ("Inactive", "#6b7280"),
}

UNKNOWN_STATUS_COLOR = "#9ca3af"
ON_TIME_BUFFER = timedelta(hours=24)
DRIVER_PERFORMANCE_MONTHS = 3
TREND_MONTHS = 12


def _cents(value: float) -> float:
    return round(float(value or 0), 2)


def _month_key(value: date | datetime | None) -> tuple[int, int] | None:
    if value is None:
        return None
    return value.year, value.month


def _month_starts(first: date, last: date) -> list[date]:
    cursor = first.replace(day=1)
    stop = last.replace(day=1)
    months = []
    while cursor <= stop:
        months.append(cursor)
        cursor = add_months(cursor, 1)
    return months


# ---------------------------------------------------------------------------
# Status distributions
# ---------------------------------------------------------------------------

def _status_distribution(statuses: Iterable[str], styles: dict[str, tuple[str, str]]) -> list[dict[str, Any]]:
    counts = Counter(statuses)
    total = sum(counts.values())

    data = []
    for status, count in counts.items():
        label, color = styles.get(status, (status, UNKNOWN_STATUS_COLOR))
        data.append(
            {
                "status": label,
                "count": count,
                "percentage": (count / total) * 100 if total else 0,
                "color": color,
            }
        )
    return sorted(data, key=lambda item: item["count"], reverse=True)


def trip_status_distribution(trips: Iterable[Any]) -> list[dict[str, Any]]:
    return _status_distribution((trip.status for trip in trips), TRIP_STATUS_STYLES)


def fleet_utilization(trucks: Iterable[Any]) -> list[dict[str, Any]]:
    return _status_distribution((truck.status for truck in trucks), TRUCK_STATUS_STYLES)


# ---------------------------------------------------------------------------
# Monthly series
# ---------------------------------------------------------------------------

def revenue_vs_expenses(
    payments: Iterable[Any],
    expenses: Iterable[Any],
    *,
    today: date,
    months: int = TREND_MONTHS,
) -> list[dict[str, Any]]:
    """Collected payments against expenses for the last ``months`` calendar months."""
    revenue_by_month: dict[tuple[int, int], float] = defaultdict(float)
    for payment in payments:
        revenue_by_month[_month_key(payment.payment_date)] += float(payment.amount or 0)

    expenses_by_month: dict[tuple[int, int], float] = defaultdict(float)
    for expense in expenses:
        expenses_by_month[_month_key(expense.date)] += float(expense.amount or 0)

    first = add_months(today.replace(day=1), -(months - 1))
    series = []
    for month_start in _month_starts(first, today):
        key = _month_key(month_start)
        series.append(
            {
                "month": month_start.strftime("%b %Y"),
                "date": month_start.isoformat(),
                "revenue": _cents(revenue_by_month[key]),
                "expenses": _cents(expenses_by_month[key]),
            }
        )
    return series


def performance_trend(
    trips: Iterable[Any],
    expenses: Iterable[Any],
    *,
    start: date,
    end: date,
) -> list[dict[str, Any]]:
    """
    Monthly revenue, trip count and expenses between ``start`` and ``end``.

    Revenue counts completed trips by the month they ended; the trip count
    covers every status by the month the trip was scheduled.
    """
    revenue_by_month: dict[tuple[int, int], float] = defaultdict(float)
    trips_by_month: Counter = Counter()
    for trip in trips:
        trips_by_month[_month_key(trip.scheduled_date)] += 1
        if trip.status == "completed" and trip.end_date is not None:
            revenue_by_month[_month_key(trip.end_date)] += float(trip.revenue or 0)

    expenses_by_month: dict[tuple[int, int], float] = defaultdict(float)
    for expense in expenses:
        expenses_by_month[_month_key(expense.date)] += float(expense.amount or 0)

    series = []
    for month_start in _month_starts(start, end):
        key = _month_key(month_start)
        series.append(
            {
                "month": month_start.strftime("%b"),
                "date": month_start.isoformat(),
                "revenue": _cents(revenue_by_month[key]),
                "trip_count": trips_by_month[key],
                "expenses": _cents(expenses_by_month[key]),
            }
        )
    return series


# ---------------------------------------------------------------------------
# Drivers
# ---------------------------------------------------------------------------

@dataclass
class DriverPerformance:
    driver_id: int
    driver_name: str
    total_trips: int
    completed_trips: int
    revenue: float
    efficiency: int  # on-time percentage


def _is_on_time(trip: Any) -> bool:
    if trip.end_date is None or trip.scheduled_date is None:
        return False
    return trip.end_date <= trip.scheduled_date + ON_TIME_BUFFER


def driver_performance(drivers: Iterable[Any], trips: Iterable[Any]) -> list[dict[str, Any]]:
    trips_by_driver: dict[int, list[Any]] = defaultdict(list)
    for trip in trips:
        trips_by_driver[trip.driver_id].append(trip)

    metrics = []
    for driver in drivers:
        driver_trips = trips_by_driver.get(driver.id, [])
        total = len(driver_trips)
        on_time = sum(1 for trip in driver_trips if _is_on_time(trip))
        metrics.append(
            DriverPerformance(
                driver_id=driver.id,
                driver_name=f"{driver.first_name} {driver.last_name}".strip(),
                total_trips=total,
                completed_trips=sum(1 for trip in driver_trips if trip.status == "completed"),
                revenue=_cents(sum(float(trip.revenue or 0) for trip in driver_trips)),
                efficiency=round((on_time / total) * 100) if total else 0,
            )
        )

    metrics.sort(key=lambda metric: metric.revenue, reverse=True)
    return [asdict(metric) for metric in metrics]


# ---------------------------------------------------------------------------
# Period summary
# ---------------------------------------------------------------------------

def dashboard_summary(
    trips: Iterable[Any],
    expenses: Iterable[Any],
    invoices: Iterable[Any],
    overdue_count: int = 0,
) -> dict[str, Any]:
    trips = list(trips)
    status_counts = Counter(trip.status for trip in trips)
    revenue = sum(float(trip.revenue or 0) for trip in trips if trip.status == "completed")
    total_expenses = sum(float(expense.amount or 0) for expense in expenses)
    outstanding = sum(
        float(invoice.balance or 0)
        for invoice in invoices
        if invoice.status not in ("paid", "cancelled", "draft")
    )

    return {
        "trips": {
            "total": len(trips),
            "scheduled": status_counts.get("scheduled", 0),
            "in_progress": status_counts.get("in_progress", 0),
            "completed": status_counts.get("completed", 0),
            "cancelled": status_counts.get("cancelled", 0),
        },
        "revenue": _cents(revenue),
        "expenses": _cents(total_expenses),
        "profit": _cents(revenue - total_expenses),
        "outstanding_balance": _cents(outstanding),
        "overdue_invoices": overdue_count,
    }


# ---------------------------------------------------------------------------
# Loaders
# ---------------------------------------------------------------------------

def _trips_scheduled_in(db: Session, organization_id: str, date_range: DateRange) -> list[Trip]:
    return (
        db.query(Trip)
        .filter(
            Trip.organization_id == organization_id,
            Trip.scheduled_date >= date_range.start,
            Trip.scheduled_date <= date_range.end,
        )
        .all()
    )


def _expenses_in(db: Session, organization_id: str, start: datetime, end: datetime) -> list[Expense]:
    return (
        db.query(Expense)
        .filter(
            Expense.organization_id == organization_id,
            Expense.date >= start,
            Expense.date <= end,
        )
        .all()
    )


def load_dashboard(db: Session, organization_id: str, date_range: DateRange, *, now: datetime) -> dict[str, Any]:
    trips = _trips_scheduled_in(db, organization_id, date_range)
    expenses = _expenses_in(db, organization_id, date_range.start, date_range.end)
    invoices = db.query(Invoice).filter(Invoice.organization_id == organization_id).all()
    overdue = overdue_invoices(db, organization_id, now=now)
    trucks = db.query(Truck).filter(Truck.organization_id == organization_id).all()

    logger.info(
        "dashboard: org=%s period=%s trips=%d expenses=%d",
        organization_id, date_range.label, len(trips), len(expenses),
    )
    return {
        "period": date_range.as_dict(),
        "summary": dashboard_summary(trips, expenses, invoices, overdue_count=len(overdue)),
        "trip_status": trip_status_distribution(trips),
        "fleet_utilization": fleet_utilization(trucks),
    }


def load_revenue_vs_expenses(db: Session, organization_id: str, *, now: datetime) -> list[dict[str, Any]]:
    today = now.date()
    first = add_months(today.replace(day=1), -(TREND_MONTHS - 1))
    window_start = start_of_day(first, now.tzinfo)

    payments = (
        db.query(Payment)
        .filter(Payment.organization_id == organization_id, Payment.payment_date >= window_start)
        .all()
    )
    expenses = _expenses_in(db, organization_id, window_start, now)
    return revenue_vs_expenses(payments, expenses, today=today)


def load_performance_trend(db: Session, organization_id: str, date_range: DateRange) -> list[dict[str, Any]]:
    trips = (
        db.query(Trip)
        .filter(
            Trip.organization_id == organization_id,
            (
                (Trip.scheduled_date >= date_range.start) & (Trip.scheduled_date <= date_range.end)
            ) | (
                (Trip.end_date >= date_range.start) & (Trip.end_date <= date_range.end)
            ),
        )
        .all()
    )
    expenses = _expenses_in(db, organization_id, date_range.start, date_range.end)
    return performance_trend(trips, expenses, start=date_range.start.date(), end=date_range.end.date())


def load_driver_performance(db: Session, organization_id: str, *, now: datetime) -> list[dict[str, Any]]:
    window_start = start_of_day(add_months(now.date(), -DRIVER_PERFORMANCE_MONTHS), now.tzinfo)
    drivers = db.query(Driver).filter(Driver.organization_id == organization_id).all()
    trips = (
        db.query(Trip)
        .filter(Trip.organization_id == organization_id, Trip.scheduled_date >= window_start)
        .all()
    )
    return driver_performance(drivers, trips)

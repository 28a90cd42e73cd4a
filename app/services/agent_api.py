"""
Read-only JSON views served to the external operations agent.

Handlers are keyed by ``(resource, action)``; each receives the session, the
organization, the remaining request parameters and the current instant.
"""
import logging
import math
from datetime import datetime, timedelta
from typing import Any, Callable

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from app.models import Customer, Driver, Expense, Invoice, Payment, Trip, Truck
from app.services.invoicing import days_overdue, overdue_invoices
from app.services.periods import end_of_day, start_of_day

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


class AgentRequestError(ValueError):
    """Bad parameters from the agent; answered with HTTP 400."""

    status_code = 400


class AgentNotFoundError(AgentRequestError):
    status_code = 404


def _limit(params: dict[str, Any], default: int = DEFAULT_LIMIT) -> int:
    try:
        value = int(params.get("limit") or default)
    except (TypeError, ValueError):
        value = default
    return max(1, min(value, MAX_LIMIT))


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_datetime(raw: Any) -> datetime | None:
    if not raw:
        return None
    try:
        return datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    except ValueError as exc:
        raise AgentRequestError(f"Invalid date: {raw}") from exc


def _int_param(params: dict[str, Any], key: str) -> int:
    try:
        return int(params[key])
    except (KeyError, TypeError, ValueError) as exc:
        raise AgentRequestError(f"{key} required") from exc


def _day_window(now: datetime) -> tuple[datetime, datetime]:
    return start_of_day(now.date(), now.tzinfo), end_of_day(now.date(), now.tzinfo)


def _trip_row(trip: Trip) -> dict[str, Any]:
    return {
        "id": trip.id,
        "origin": trip.origin_city,
        "destination": trip.destination_city,
        "truck_registration": trip.truck.registration_no if trip.truck else None,
        "driver_name": trip.driver.full_name if trip.driver else None,
        "customer_name": trip.customer.name if trip.customer else None,
        "status": trip.status,
        "scheduled_date": _iso(trip.scheduled_date),
        "revenue": trip.revenue,
        "estimated_mileage": trip.estimated_mileage,
    }


def _trip_query(db: Session, organization_id: str):
    return (
        db.query(Trip)
        .options(joinedload(Trip.truck), joinedload(Trip.driver), joinedload(Trip.customer))
        .filter(Trip.organization_id == organization_id)
    )


# ---------------------------------------------------------------------------
# Trips
# ---------------------------------------------------------------------------

def list_trips(db: Session, organization_id: str, params: dict[str, Any], now: datetime) -> dict[str, Any]:
    query = _trip_query(db, organization_id)
    if params.get("status"):
        query = query.filter(Trip.status == params["status"])
    if params.get("truck_id"):
        query = query.filter(Trip.truck_id == _int_param(params, "truck_id"))
    if params.get("driver_id"):
        query = query.filter(Trip.driver_id == _int_param(params, "driver_id"))
    start = _parse_datetime(params.get("start_date"))
    end = _parse_datetime(params.get("end_date"))
    if start:
        query = query.filter(Trip.scheduled_date >= start)
    if end:
        query = query.filter(Trip.scheduled_date <= end)

    total = query.count()
    trips = query.order_by(Trip.scheduled_date.desc()).limit(_limit(params)).all()
    return {"trips": [_trip_row(trip) for trip in trips], "total": total}


def trip_details(db: Session, organization_id: str, params: dict[str, Any], now: datetime) -> dict[str, Any]:
    trip = _trip_query(db, organization_id).filter(Trip.id == _int_param(params, "trip_id")).first()
    if not trip:
        return {"trip": None}

    expenses = [
        {
            "id": expense.id,
            "category": expense.category.name if expense.category else "Unknown",
            "amount": expense.amount,
            "description": expense.description,
        }
        for expense in trip.expenses
    ]
    total_expenses = sum(float(expense["amount"] or 0) for expense in expenses)

    return {
        "trip": {
            **_trip_row(trip),
            "origin": {"city": trip.origin_city, "address": trip.origin_address},
            "destination": {"city": trip.destination_city, "address": trip.destination_address},
            "load_description": trip.load_description,
            "load_weight": trip.load_weight,
            "load_units": trip.load_units,
            "actual_mileage": trip.actual_mileage,
            "start_date": _iso(trip.start_date),
            "end_date": _iso(trip.end_date),
            "driver_notified": trip.driver_notified,
            "expenses": expenses,
            "total_expenses": total_expenses,
            "profit": float(trip.revenue or 0) - total_expenses,
            "notes": trip.notes,
        }
    }


def trip_stats(db: Session, organization_id: str, params: dict[str, Any], now: datetime) -> dict[str, Any]:
    query = db.query(Trip).filter(Trip.organization_id == organization_id)
    start = _parse_datetime(params.get("start_date"))
    end = _parse_datetime(params.get("end_date"))
    if start:
        query = query.filter(Trip.scheduled_date >= start)
    if end:
        query = query.filter(Trip.scheduled_date <= end)
    trips = query.all()

    total_revenue = sum(float(trip.revenue or 0) for trip in trips)
    return {
        "stats": {
            "total_trips": len(trips),
            "scheduled": sum(1 for trip in trips if trip.status == "scheduled"),
            "in_progress": sum(1 for trip in trips if trip.status == "in_progress"),
            "completed": sum(1 for trip in trips if trip.status == "completed"),
            "cancelled": sum(1 for trip in trips if trip.status == "cancelled"),
            "total_revenue": total_revenue,
            "total_mileage": sum((trip.actual_mileage or trip.estimated_mileage or 0) for trip in trips),
            "average_revenue_per_trip": round(total_revenue / len(trips)) if trips else 0,
        }
    }


def todays_trips(db: Session, organization_id: str, params: dict[str, Any], now: datetime) -> dict[str, Any]:
    day_start, day_end = _day_window(now)
    trips = (
        _trip_query(db, organization_id)
        .filter(Trip.scheduled_date >= day_start, Trip.scheduled_date <= day_end)
        .order_by(Trip.scheduled_date.asc())
        .all()
    )
    return {"date": now.date().isoformat(), "trips": [_trip_row(trip) for trip in trips], "total": len(trips)}


def upcoming_trips(db: Session, organization_id: str, params: dict[str, Any], now: datetime) -> dict[str, Any]:
    try:
        days = max(int(params.get("days") or 7), 1)
    except (TypeError, ValueError):
        days = 7
    trips = (
        _trip_query(db, organization_id)
        .filter(
            Trip.status == "scheduled",
            Trip.scheduled_date >= now,
            Trip.scheduled_date <= now + timedelta(days=days),
        )
        .order_by(Trip.scheduled_date.asc())
        .limit(_limit(params))
        .all()
    )
    return {"days": days, "trips": [_trip_row(trip) for trip in trips], "total": len(trips)}


# ---------------------------------------------------------------------------
# Trucks
# ---------------------------------------------------------------------------

def _truck_row(truck: Truck) -> dict[str, Any]:
    return {
        "id": truck.id,
        "registration_no": truck.registration_no,
        "make": truck.make,
        "model": truck.model,
        "year": truck.year,
        "status": truck.status,
        "current_mileage": truck.current_mileage,
        "driver_name": truck.assigned_driver.full_name if truck.assigned_driver else None,
    }


def list_trucks(db: Session, organization_id: str, params: dict[str, Any], now: datetime) -> dict[str, Any]:
    query = db.query(Truck).filter(Truck.organization_id == organization_id)
    if params.get("status"):
        query = query.filter(Truck.status == params["status"])
    total = query.count()
    trucks = query.order_by(Truck.registration_no.asc()).limit(_limit(params)).all()
    return {"trucks": [_truck_row(truck) for truck in trucks], "total": total}


def truck_details(db: Session, organization_id: str, params: dict[str, Any], now: datetime) -> dict[str, Any]:
    truck = (
        db.query(Truck)
        .filter(Truck.organization_id == organization_id, Truck.id == _int_param(params, "truck_id"))
        .first()
    )
    if not truck:
        return {"truck": None}

    recent = sorted(truck.trips, key=lambda trip: trip.scheduled_date, reverse=True)[:5]
    return {
        "truck": {
            **_truck_row(truck),
            "fuel_type": truck.fuel_type,
            "tank_capacity": truck.tank_capacity,
            "notes": truck.notes,
            "recent_trips": [
                {
                    "id": trip.id,
                    "origin": trip.origin_city,
                    "destination": trip.destination_city,
                    "status": trip.status,
                    "scheduled_date": _iso(trip.scheduled_date),
                    "revenue": trip.revenue,
                }
                for trip in recent
            ],
        }
    }


def _count_by_status(db: Session, model, organization_id: str) -> dict[str, int]:
    rows = (
        db.query(model.status, func.count(model.id))
        .filter(model.organization_id == organization_id)
        .group_by(model.status)
        .all()
    )
    return {status: int(count) for status, count in rows}


def truck_summary(db: Session, organization_id: str, params: dict[str, Any], now: datetime) -> dict[str, Any]:
    counts = _count_by_status(db, Truck, organization_id)
    return {
        "summary": {
            "total": sum(counts.values()),
            "active": counts.get("active", 0),
            "in_service": counts.get("in_service", 0),
            "in_repair": counts.get("in_repair", 0),
            "inactive": counts.get("inactive", 0),
        }
    }


# ---------------------------------------------------------------------------
# Drivers
# ---------------------------------------------------------------------------

def _driver_row(driver: Driver) -> dict[str, Any]:
    return {
        "id": driver.id,
        "name": driver.full_name,
        "phone": driver.phone,
        "email": driver.email,
        "status": driver.status,
        "license_number": driver.license_number,
        "assigned_truck": driver.assigned_truck.registration_no if driver.assigned_truck else None,
    }


def list_drivers(db: Session, organization_id: str, params: dict[str, Any], now: datetime) -> dict[str, Any]:
    query = db.query(Driver).filter(Driver.organization_id == organization_id)
    if params.get("status"):
        query = query.filter(Driver.status == params["status"])
    total = query.count()
    drivers = query.order_by(Driver.last_name.asc(), Driver.first_name.asc()).limit(_limit(params)).all()
    return {"drivers": [_driver_row(driver) for driver in drivers], "total": total}


def driver_details(db: Session, organization_id: str, params: dict[str, Any], now: datetime) -> dict[str, Any]:
    driver = (
        db.query(Driver)
        .filter(Driver.organization_id == organization_id, Driver.id == _int_param(params, "driver_id"))
        .first()
    )
    if not driver:
        return {"driver": None}

    recent = sorted(driver.trips, key=lambda trip: trip.scheduled_date, reverse=True)[:5]
    return {
        "driver": {
            **_driver_row(driver),
            "first_name": driver.first_name,
            "last_name": driver.last_name,
            "whatsapp_number": driver.whatsapp_number,
            "passport_number": driver.passport_number,
            "end_date": _iso(driver.end_date),
            "notes": driver.notes,
            "recent_trips": [
                {
                    "id": trip.id,
                    "origin": trip.origin_city,
                    "destination": trip.destination_city,
                    "status": trip.status,
                    "scheduled_date": _iso(trip.scheduled_date),
                }
                for trip in recent
            ],
        }
    }


def driver_availability(db: Session, organization_id: str, params: dict[str, Any], now: datetime) -> dict[str, Any]:
    """Active drivers split by whether they currently hold an in-progress or today's trip."""
    day_start, day_end = _day_window(now)
    drivers = (
        db.query(Driver)
        .filter(Driver.organization_id == organization_id, Driver.status == "active")
        .all()
    )
    busy_ids = {
        driver_id
        for (driver_id,) in db.query(Trip.driver_id).filter(
            Trip.organization_id == organization_id,
            (Trip.status == "in_progress")
            | ((Trip.status == "scheduled") & (Trip.scheduled_date >= day_start) & (Trip.scheduled_date <= day_end)),
        )
    }

    available = [_driver_row(driver) for driver in drivers if driver.id not in busy_ids]
    on_trip = [_driver_row(driver) for driver in drivers if driver.id in busy_ids]
    return {
        "available": available,
        "on_trip": on_trip,
        "summary": {"available": len(available), "on_trip": len(on_trip), "total_active": len(drivers)},
    }


def expiring_contracts(db: Session, organization_id: str, params: dict[str, Any], now: datetime) -> dict[str, Any]:
    try:
        days = max(int(params.get("days") or 30), 1)
    except (TypeError, ValueError):
        days = 30
    drivers = (
        db.query(Driver)
        .filter(
            Driver.organization_id == organization_id,
            Driver.status.in_(("active", "on_leave")),
            Driver.end_date.isnot(None),
            Driver.end_date <= now + timedelta(days=days),
        )
        .order_by(Driver.end_date.asc())
        .limit(_limit(params))
        .all()
    )
    return {
        "drivers": [
            {
                "id": driver.id,
                "name": driver.full_name,
                "phone": driver.phone,
                "end_date": _iso(driver.end_date),
                "days_until_expiry": math.ceil((driver.end_date - now).total_seconds() / 86400),
            }
            for driver in drivers
        ],
        "total": len(drivers),
    }


def driver_summary(db: Session, organization_id: str, params: dict[str, Any], now: datetime) -> dict[str, Any]:
    counts = _count_by_status(db, Driver, organization_id)
    return {
        "summary": {
            "total": sum(counts.values()),
            "active": counts.get("active", 0),
            "on_leave": counts.get("on_leave", 0),
            "suspended": counts.get("suspended", 0),
        }
    }


# ---------------------------------------------------------------------------
# Invoices
# ---------------------------------------------------------------------------

def _invoice_row(invoice: Invoice) -> dict[str, Any]:
    return {
        "id": invoice.id,
        "invoice_number": invoice.invoice_number,
        "customer_name": invoice.customer.name if invoice.customer else None,
        "total": invoice.total,
        "amount_paid": invoice.amount_paid,
        "balance": invoice.balance,
        "status": invoice.status,
        "issue_date": _iso(invoice.issue_date),
        "due_date": _iso(invoice.due_date),
    }


def list_invoices(db: Session, organization_id: str, params: dict[str, Any], now: datetime) -> dict[str, Any]:
    query = db.query(Invoice).filter(Invoice.organization_id == organization_id)
    if params.get("status"):
        query = query.filter(Invoice.status == params["status"])
    if params.get("customer_id"):
        query = query.filter(Invoice.customer_id == _int_param(params, "customer_id"))
    total = query.count()
    invoices = query.order_by(Invoice.issue_date.desc()).limit(_limit(params)).all()
    return {"invoices": [_invoice_row(invoice) for invoice in invoices], "total": total}


def invoice_details(db: Session, organization_id: str, params: dict[str, Any], now: datetime) -> dict[str, Any]:
    invoice = (
        db.query(Invoice)
        .filter(Invoice.organization_id == organization_id, Invoice.id == _int_param(params, "invoice_id"))
        .first()
    )
    if not invoice:
        return {"invoice": None}
    return {
        "invoice": {
            **_invoice_row(invoice),
            "subtotal": invoice.subtotal,
            "tax": invoice.tax,
            "notes": invoice.notes,
            "payments": [
                {
                    "id": payment.id,
                    "amount": payment.amount,
                    "method": payment.method,
                    "payment_date": _iso(payment.payment_date),
                    "reference": payment.reference,
                }
                for payment in invoice.payments
            ],
        }
    }


def list_overdue_invoices(db: Session, organization_id: str, params: dict[str, Any], now: datetime) -> dict[str, Any]:
    invoices = overdue_invoices(db, organization_id, now=now, limit=_limit(params))
    return {
        "invoices": [
            {
                **_invoice_row(invoice),
                "days_overdue": days_overdue(invoice.due_date, now),
                "reminder_sent": invoice.reminder_sent,
            }
            for invoice in invoices
        ],
        "count": len(invoices),
    }


def invoice_summary(db: Session, organization_id: str, params: dict[str, Any], now: datetime) -> dict[str, Any]:
    counts = _count_by_status(db, Invoice, organization_id)
    total, paid, balance = (
        db.query(
            func.coalesce(func.sum(Invoice.total), 0),
            func.coalesce(func.sum(Invoice.amount_paid), 0),
            func.coalesce(func.sum(Invoice.balance), 0),
        )
        .filter(Invoice.organization_id == organization_id)
        .one()
    )
    return {
        "summary": {
            "total": sum(counts.values()),
            "draft": counts.get("draft", 0),
            "sent": counts.get("sent", 0),
            "paid": counts.get("paid", 0),
            "partial": counts.get("partial", 0),
            "overdue": len(overdue_invoices(db, organization_id, now=now)),
            "total_amount": float(total),
            "total_paid": float(paid),
            "total_outstanding": float(balance),
        }
    }


# ---------------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------------

def _customer_or_404(db: Session, organization_id: str, params: dict[str, Any]) -> Customer:
    try:
        customer_id = int(params["customer_id"])
    except (KeyError, TypeError, ValueError) as exc:
        raise AgentRequestError("Customer ID required") from exc
    customer = (
        db.query(Customer)
        .filter(Customer.organization_id == organization_id, Customer.id == customer_id)
        .first()
    )
    if not customer:
        raise AgentNotFoundError("Customer not found")
    return customer


def _is_overdue(invoice: Invoice, now: datetime) -> bool:
    return (
        float(invoice.balance or 0) > 0
        and invoice.due_date is not None
        and invoice.due_date < now
        and invoice.status != "cancelled"
    )


def list_customers(db: Session, organization_id: str, params: dict[str, Any], now: datetime) -> dict[str, Any]:
    query = db.query(Customer).filter(Customer.organization_id == organization_id)
    if params.get("status"):
        query = query.filter(Customer.status == params["status"])
    search = (params.get("search") or "").strip()
    if search:
        pattern = f"%{search}%"
        query = query.filter(
            or_(Customer.name.ilike(pattern), Customer.email.ilike(pattern), Customer.phone.ilike(pattern))
        )
    customers = query.order_by(Customer.name.asc()).all()
    return {
        "customers": [
            {
                "id": customer.id,
                "name": customer.name,
                "email": customer.email,
                "phone": customer.phone,
                "status": customer.status,
                "trip_count": len(customer.trips),
                "invoice_count": len(customer.invoices),
                "created_at": _iso(customer.created_at),
            }
            for customer in customers
        ],
        "total": len(customers),
    }


def customer_details(db: Session, organization_id: str, params: dict[str, Any], now: datetime) -> dict[str, Any]:
    customer = _customer_or_404(db, organization_id, params)
    trips = sorted(customer.trips, key=lambda trip: trip.scheduled_date, reverse=True)
    invoices = sorted(customer.invoices, key=lambda invoice: invoice.issue_date, reverse=True)
    return {
        "customer": {
            "id": customer.id,
            "name": customer.name,
            "email": customer.email,
            "phone": customer.phone,
            "address": customer.address,
            "status": customer.status,
            "created_at": _iso(customer.created_at),
        },
        "stats": {
            "total_trips": len(trips),
            "total_invoiced": sum(float(invoice.total or 0) for invoice in invoices),
            "outstanding_balance": sum(float(invoice.balance or 0) for invoice in invoices),
        },
        "recent_trips": [
            {
                "id": trip.id,
                "route": f"{trip.origin_city} - {trip.destination_city}",
                "status": trip.status,
                "revenue": trip.revenue,
                "date": _iso(trip.scheduled_date),
            }
            for trip in trips[:10]
        ],
        "recent_invoices": [
            {
                "id": invoice.id,
                "invoice_number": invoice.invoice_number,
                "total": invoice.total,
                "balance": invoice.balance,
                "status": invoice.status,
                "due_date": _iso(invoice.due_date),
            }
            for invoice in invoices[:10]
        ],
    }


def customer_balance(db: Session, organization_id: str, params: dict[str, Any], now: datetime) -> dict[str, Any]:
    customer = _customer_or_404(db, organization_id, params)
    invoices = sorted(customer.invoices, key=lambda invoice: invoice.due_date)
    overdue = [invoice for invoice in invoices if _is_overdue(invoice, now)]
    return {
        "customer": {"id": customer.id, "name": customer.name},
        "balance": {
            "total_invoiced": sum(float(invoice.total or 0) for invoice in invoices),
            "total_paid": sum(float(invoice.amount_paid or 0) for invoice in invoices),
            "outstanding": sum(float(invoice.balance or 0) for invoice in invoices),
            "overdue_amount": sum(float(invoice.balance or 0) for invoice in overdue),
            "overdue_count": len(overdue),
        },
        "invoices": [
            {
                "id": invoice.id,
                "invoice_number": invoice.invoice_number,
                "total": invoice.total,
                "balance": invoice.balance,
                "status": invoice.status,
                "due_date": _iso(invoice.due_date),
                "is_overdue": _is_overdue(invoice, now),
            }
            for invoice in invoices
        ],
    }


def customer_summary(db: Session, organization_id: str, params: dict[str, Any], now: datetime) -> dict[str, Any]:
    counts = _count_by_status(db, Customer, organization_id)
    customers = db.query(Customer).filter(Customer.organization_id == organization_id).all()
    ranked = sorted(
        (
            {
                "id": customer.id,
                "name": customer.name,
                "trip_count": len(customer.trips),
                "total_revenue": sum(float(invoice.total or 0) for invoice in customer.invoices),
            }
            for customer in customers
        ),
        key=lambda row: row["total_revenue"],
        reverse=True,
    )
    return {
        "summary": {
            "total": sum(counts.values()),
            "active": counts.get("active", 0),
            "inactive": counts.get("inactive", 0),
        },
        "top_customers": ranked[:5],
    }


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------

def dashboard_summary(db: Session, organization_id: str, params: dict[str, Any], now: datetime) -> dict[str, Any]:
    window_start = now - timedelta(days=30)
    trucks = _count_by_status(db, Truck, organization_id)
    drivers = _count_by_status(db, Driver, organization_id)
    trips = (
        db.query(Trip)
        .filter(Trip.organization_id == organization_id, Trip.scheduled_date >= window_start)
        .all()
    )
    expenses_total = (
        db.query(func.coalesce(func.sum(Expense.amount), 0))
        .filter(Expense.organization_id == organization_id, Expense.date >= window_start)
        .scalar()
    )
    invoices = invoice_summary(db, organization_id, params, now)["summary"]

    return {
        "fleet": {
            "total": sum(trucks.values()),
            "active": trucks.get("active", 0),
            "in_repair": trucks.get("in_repair", 0),
        },
        "drivers": {
            "total": sum(drivers.values()),
            "active": drivers.get("active", 0),
            "on_leave": drivers.get("on_leave", 0),
        },
        "trips": {
            "total": len(trips),
            "completed": sum(1 for trip in trips if trip.status == "completed"),
            "in_progress": sum(1 for trip in trips if trip.status == "in_progress"),
            "scheduled": sum(1 for trip in trips if trip.status == "scheduled"),
            "total_revenue": sum(float(trip.revenue or 0) for trip in trips),
        },
        "invoices": {
            "total_amount": invoices["total_amount"],
            "total_paid": invoices["total_paid"],
            "total_outstanding": invoices["total_outstanding"],
            "overdue_count": invoices["overdue"],
        },
        "expenses": {"this_month": float(expenses_total or 0)},
        "period": {"start": window_start.isoformat(), "end": now.isoformat()},
    }


def dashboard_alerts(db: Session, organization_id: str, params: dict[str, Any], now: datetime) -> dict[str, Any]:
    overdue = overdue_invoices(db, organization_id, now=now, limit=5)
    expiring = expiring_contracts(db, organization_id, {"days": 30, "limit": 5}, now)["drivers"]
    in_repair = (
        db.query(Truck)
        .filter(Truck.organization_id == organization_id, Truck.status == "in_repair")
        .limit(5)
        .all()
    )
    day_start, day_end = _day_window(now)
    todays_count = (
        db.query(Trip)
        .filter(
            Trip.organization_id == organization_id,
            Trip.status == "scheduled",
            Trip.scheduled_date >= day_start,
            Trip.scheduled_date <= day_end,
        )
        .count()
    )

    return {
        "alerts": {
            "overdue_invoices": [
                {
                    "id": invoice.id,
                    "invoice_number": invoice.invoice_number,
                    "customer_name": invoice.customer.name if invoice.customer else None,
                    "balance": invoice.balance,
                    "days_overdue": days_overdue(invoice.due_date, now),
                }
                for invoice in overdue
            ],
            "expiring_contracts": expiring,
            "trucks_in_repair": [{"id": truck.id, "registration_no": truck.registration_no} for truck in in_repair],
            "todays_trips_count": todays_count,
        },
        "summary": {
            "overdue_invoices_count": len(overdue),
            "expiring_contracts_count": len(expiring),
            "trucks_in_repair_count": len(in_repair),
            "todays_trips_count": todays_count,
        },
    }


def recent_activity(db: Session, organization_id: str, params: dict[str, Any], now: datetime) -> dict[str, Any]:
    limit = _limit(params, default=10)
    trips = _trip_query(db, organization_id).order_by(Trip.updated_at.desc(), Trip.id.desc()).limit(limit).all()
    payments = (
        db.query(Payment)
        .filter(Payment.organization_id == organization_id)
        .order_by(Payment.payment_date.desc())
        .limit(limit)
        .all()
    )
    expenses = (
        db.query(Expense)
        .filter(Expense.organization_id == organization_id)
        .order_by(Expense.date.desc())
        .limit(limit)
        .all()
    )

    return {
        "recent_trips": [
            {
                "id": trip.id,
                "type": "trip",
                "description": f"{trip.origin_city} -> {trip.destination_city}",
                "truck": trip.truck.registration_no if trip.truck else None,
                "driver": trip.driver.full_name if trip.driver else None,
                "status": trip.status,
                "date": _iso(trip.updated_at),
            }
            for trip in trips
        ],
        "recent_payments": [
            {
                "id": payment.id,
                "type": "payment",
                "invoice_number": payment.invoice.invoice_number if payment.invoice else None,
                "customer_name": payment.customer.name if payment.customer else None,
                "amount": payment.amount,
                "method": payment.method,
                "date": _iso(payment.payment_date),
            }
            for payment in payments
        ],
        "recent_expenses": [
            {
                "id": expense.id,
                "type": "expense",
                "category": expense.category.name if expense.category else "Uncategorized",
                "amount": expense.amount,
                "description": expense.description,
                "date": _iso(expense.date),
            }
            for expense in expenses
        ],
    }


# ---------------------------------------------------------------------------
# Dispatch table
# ---------------------------------------------------------------------------

Handler = Callable[[Session, str, dict[str, Any], datetime], dict[str, Any]]

AGENT_HANDLERS: dict[str, dict[str, Handler]] = {
    "trips": {
        "list": list_trips,
        "details": trip_details,
        "stats": trip_stats,
        "today": todays_trips,
        "upcoming": upcoming_trips,
    },
    "trucks": {
        "list": list_trucks,
        "details": truck_details,
        "summary": truck_summary,
    },
    "drivers": {
        "list": list_drivers,
        "details": driver_details,
        "availability": driver_availability,
        "expiring-contracts": expiring_contracts,
        "summary": driver_summary,
    },
    "invoices": {
        "list": list_invoices,
        "details": invoice_details,
        "overdue": list_overdue_invoices,
        "summary": invoice_summary,
    },
    "customers": {
        "list": list_customers,
        "details": customer_details,
        "balance": customer_balance,
        "summary": customer_summary,
    },
    "dashboard": {
        "summary": dashboard_summary,
        "alerts": dashboard_alerts,
        "recent-activity": recent_activity,
    },
}


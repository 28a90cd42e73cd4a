"""
Report data for the reports page and CSV exports.

Every fetcher takes the organization and a resolved ``DateRange`` and
returns plain dict rows, ready for JSON or ``report_csv.render_report``.
"""
import logging
from collections import defaultdict
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session, joinedload

from app.models import Customer, Expense, Invoice, Payment, Trip, Truck
from app.services.periods import DateRange

logger = logging.getLogger(__name__)

REVENUE_STATUSES = ("sent", "paid", "partial")
STATEMENT_STATUSES = ("sent", "paid", "partial", "overdue")


def _amount(value) -> float:
    return float(value or 0)


def _driver_name(trip: Trip) -> str:
    if trip.driver is None:
        return "-"
    return trip.driver.full_name


def fetch_profit_per_unit(db: Session, organization_id: str, date_range: DateRange) -> list[dict[str, Any]]:
    trucks = db.query(Truck).filter(Truck.organization_id == organization_id).order_by(Truck.registration_no).all()

    trips = (
        db.query(Trip)
        .filter(
            Trip.organization_id == organization_id,
            Trip.status == "completed",
            Trip.end_date >= date_range.start,
            Trip.end_date <= date_range.end,
        )
        .all()
    )
    trip_ids = [trip.id for trip in trips]

    trip_expenses: dict[int, float] = defaultdict(float)
    if trip_ids:
        for expense in db.query(Expense).filter(Expense.trip_id.in_(trip_ids)).all():
            trip_expenses[expense.trip_id] += _amount(expense.amount)

    # Truck-level costs (no trip) booked inside the period
    truck_expenses: dict[int, float] = defaultdict(float)
    standalone = (
        db.query(Expense)
        .filter(
            Expense.organization_id == organization_id,
            Expense.truck_id.isnot(None),
            Expense.trip_id.is_(None),
            Expense.date >= date_range.start,
            Expense.date <= date_range.end,
        )
        .all()
    )
    for expense in standalone:
        truck_expenses[expense.truck_id] += _amount(expense.amount)

    trips_by_truck: dict[int, list[Trip]] = defaultdict(list)
    for trip in trips:
        trips_by_truck[trip.truck_id].append(trip)

    rows = []
    for truck in trucks:
        truck_trips = trips_by_truck.get(truck.id, [])
        revenue = sum(_amount(trip.revenue) for trip in truck_trips)
        expenses = sum(trip_expenses[trip.id] for trip in truck_trips) + truck_expenses[truck.id]
        profit = revenue - expenses
        rows.append(
            {
                "registration_no": truck.registration_no,
                "make": truck.make,
                "model": truck.model,
                "trips": len(truck_trips),
                "revenue": revenue,
                "expenses": expenses,
                "profit": profit,
                "profit_margin": (profit / revenue) * 100 if revenue > 0 else 0,
            }
        )
    return rows


def fetch_revenue(db: Session, organization_id: str, date_range: DateRange) -> list[dict[str, Any]]:
    invoices = (
        db.query(Invoice)
        .options(joinedload(Invoice.customer), joinedload(Invoice.trip))
        .filter(
            Invoice.organization_id == organization_id,
            Invoice.issue_date >= date_range.start,
            Invoice.issue_date <= date_range.end,
            Invoice.status.in_(REVENUE_STATUSES),
        )
        .order_by(Invoice.issue_date.desc())
        .all()
    )

    rows = []
    for invoice in invoices:
        trip = invoice.trip
        rows.append(
            {
                "date": invoice.issue_date,
                "customer": invoice.customer.name if invoice.customer else "-",
                "invoice_no": invoice.invoice_number,
                "trip": f"{trip.origin_city} - {trip.destination_city}" if trip else "-",
                "amount": _amount(invoice.total),
            }
        )
    return rows


def fetch_expenses(db: Session, organization_id: str, date_range: DateRange) -> list[dict[str, Any]]:
    expenses = (
        db.query(Expense)
        .options(joinedload(Expense.category), joinedload(Expense.truck), joinedload(Expense.trip))
        .filter(
            Expense.organization_id == organization_id,
            Expense.date >= date_range.start,
            Expense.date <= date_range.end,
        )
        .order_by(Expense.date.desc())
        .all()
    )

    return [
        {
            "date": expense.date,
            "category": expense.category.name if expense.category else "Uncategorized",
            "description": expense.description or "",
            "truck": expense.truck.registration_no if expense.truck else "-",
            "trip": f"{expense.trip.origin_city} - {expense.trip.destination_city}" if expense.trip else "-",
            "amount": _amount(expense.amount),
        }
        for expense in expenses
    ]


def fetch_trip_summary(db: Session, organization_id: str, date_range: DateRange) -> list[dict[str, Any]]:
    trips = (
        db.query(Trip)
        .options(joinedload(Trip.truck), joinedload(Trip.driver), joinedload(Trip.expenses))
        .filter(
            Trip.organization_id == organization_id,
            Trip.scheduled_date >= date_range.start,
            Trip.scheduled_date <= date_range.end,
        )
        .order_by(Trip.scheduled_date.desc())
        .all()
    )

    rows = []
    for index, trip in enumerate(trips, start=1):
        expenses = sum(_amount(expense.amount) for expense in trip.expenses)
        revenue = _amount(trip.revenue)
        rows.append(
            {
                "trip_number": f"TRP-{index:04d}",
                "date": trip.scheduled_date,
                "origin": trip.origin_city,
                "destination": trip.destination_city,
                "truck": trip.truck.registration_no if trip.truck else "-",
                "driver": _driver_name(trip),
                "revenue": revenue,
                "expenses": expenses,
                "profit": revenue - expenses,
            }
        )
    return rows


def build_statement(
    invoices: list[Any],
    payments: list[Any],
    opening_balance: float,
) -> tuple[list[dict[str, Any]], float]:
    """Merge invoices (debits) and payments (credits) by date with a running balance."""
    transactions = [
        {
            "date": invoice.issue_date,
            "type": "INVOICE",
            "reference": invoice.invoice_number,
            "description": f"Invoice {invoice.invoice_number}",
            "debit": _amount(invoice.total),
            "credit": 0.0,
        }
        for invoice in invoices
    ] + [
        {
            "date": payment.payment_date,
            "type": "PAYMENT",
            "reference": payment.reference or "-",
            "description": f"Payment - {payment.method}",
            "debit": 0.0,
            "credit": _amount(payment.amount),
        }
        for payment in payments
    ]
    # stable: an invoice sorts before a payment on the same instant
    transactions.sort(key=lambda entry: entry["date"])

    balance = opening_balance
    entries = []
    for entry in transactions:
        balance = balance + entry["debit"] - entry["credit"]
        entries.append({**entry, "balance": balance})
    return entries, balance


def fetch_customer_statement(
    db: Session,
    organization_id: str,
    date_range: DateRange,
    *,
    customer_id: int,
) -> dict[str, Any]:
    customer = (
        db.query(Customer)
        .filter(Customer.id == customer_id, Customer.organization_id == organization_id)
        .first()
    )
    if not customer:
        raise ValueError("customer_not_found")

    prior_invoiced = sum(
        _amount(invoice.total)
        for invoice in db.query(Invoice).filter(
            Invoice.customer_id == customer_id,
            Invoice.issue_date < date_range.start,
            Invoice.status.in_(STATEMENT_STATUSES),
        )
    )
    prior_paid = sum(
        _amount(payment.amount)
        for payment in db.query(Payment).filter(
            Payment.customer_id == customer_id,
            Payment.payment_date < date_range.start,
        )
    )
    opening_balance = prior_invoiced - prior_paid

    invoices = (
        db.query(Invoice)
        .filter(
            Invoice.customer_id == customer_id,
            Invoice.issue_date >= date_range.start,
            Invoice.issue_date <= date_range.end,
            Invoice.status.in_(STATEMENT_STATUSES),
        )
        .order_by(Invoice.issue_date.asc())
        .all()
    )
    payments = (
        db.query(Payment)
        .filter(
            Payment.customer_id == customer_id,
            Payment.payment_date >= date_range.start,
            Payment.payment_date <= date_range.end,
        )
        .order_by(Payment.payment_date.asc())
        .all()
    )

    entries, closing_balance = build_statement(invoices, payments, opening_balance)
    return {
        "customer": {"name": customer.name, "address": customer.address, "email": customer.email},
        "entries": entries,
        "opening_balance": opening_balance,
        "closing_balance": closing_balance,
    }


REPORT_FETCHERS = {
    "profit_per_unit": fetch_profit_per_unit,
    "revenue": fetch_revenue,
    "expenses": fetch_expenses,
    "trip_summary": fetch_trip_summary,
}

REPORT_TYPES = tuple(REPORT_FETCHERS) + ("customer_statement",)


def fetch_report(
    db: Session,
    report_type: str,
    organization_id: str,
    date_range: DateRange,
    *,
    customer_id: int | None = None,
) -> dict[str, Any]:
    if report_type == "customer_statement":
        if customer_id is None:
            raise ValueError("customer_id_required")
        return fetch_customer_statement(db, organization_id, date_range, customer_id=customer_id)

    fetcher = REPORT_FETCHERS.get(report_type)
    if fetcher is None:
        raise ValueError("unknown_report_type")

    rows = fetcher(db, organization_id, date_range)
    logger.info("report: type=%s org=%s period=%s rows=%d", report_type, organization_id, date_range.label, len(rows))
    return {"rows": rows}


def serialize_rows(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [
        {key: value.isoformat() if isinstance(value, datetime) else value for key, value in row.items()}
        for row in rows
    ]

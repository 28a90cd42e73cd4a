"""
Create and edit flows for trips, invoices and expenses.

Every lookup is scoped to the caller's organization; rule violations raise
``ValueError`` with a short machine-readable message that routes map to 4xx.
Editable fields are listed per entity so direct edits and approved edit
requests go through the same path.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Callable

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models import Customer, Driver, Expense, ExpenseCategory, Invoice, Trip, Truck
from app.services.invoicing import refresh_invoice_status

logger = logging.getLogger(__name__)

TRIP_STATUSES = ("scheduled", "in_progress", "completed", "cancelled")
# paid/partial are derived from payments, never set by hand
EDITABLE_INVOICE_STATUSES = ("draft", "sent", "cancelled")


def _round_money(value: float) -> float:
    return round(float(value or 0), 2)


def parse_datetime_value(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError as exc:
        raise ValueError("invalid_datetime") from exc


def _text(value: Any) -> str | None:
    cleaned = str(value).strip() if value is not None else ""
    return cleaned or None


def _required_text(value: Any) -> str:
    cleaned = _text(value)
    if not cleaned:
        raise ValueError("value_required")
    return cleaned


def _non_negative_float(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError("invalid_number") from exc
    if number < 0:
        raise ValueError("value_must_not_be_negative")
    return number


def _positive_float(value: Any) -> float:
    number = _non_negative_float(value)
    if number == 0:
        raise ValueError("value_must_be_positive")
    return number


def _optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError("invalid_number") from exc


def _optional_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    return parse_datetime_value(value)


def _choice(options: tuple[str, ...]) -> Callable[[Any], str]:
    def parse(value: Any) -> str:
        normalized = (str(value or "")).strip().lower()
        if normalized not in options:
            raise ValueError("invalid_status")
        return normalized

    return parse


EDITABLE_FIELDS: dict[str, dict[str, Callable[[Any], Any]]] = {
    "trip": {
        "origin_city": _required_text,
        "origin_address": _text,
        "destination_city": _required_text,
        "destination_address": _text,
        "load_description": _text,
        "estimated_mileage": lambda value: int(_non_negative_float(value)),
        "actual_mileage": _optional_int,
        "revenue": _non_negative_float,
        "status": _choice(TRIP_STATUSES),
        "scheduled_date": parse_datetime_value,
        "start_date": _optional_datetime,
        "end_date": _optional_datetime,
        "notes": _text,
    },
    "invoice": {
        "due_date": parse_datetime_value,
        "subtotal": _non_negative_float,
        "tax": _non_negative_float,
        "status": _choice(EDITABLE_INVOICE_STATUSES),
        "notes": _text,
    },
    "expense": {
        "amount": _positive_float,
        "date": parse_datetime_value,
        "description": _text,
        "category_id": _optional_int,
    },
}

_ENTITY_MODELS = {"trip": Trip, "invoice": Invoice, "expense": Expense}


def _scoped(db: Session, model, organization_id: str, record_id: int | None):
    if record_id is None:
        return None
    return (
        db.query(model)
        .filter(model.id == record_id, model.organization_id == organization_id)
        .first()
    )


def get_entity(db: Session, entity_type: str, organization_id: str, entity_id: int):
    model = _ENTITY_MODELS.get(entity_type)
    if model is None:
        raise ValueError("unknown_entity_type")
    entity = _scoped(db, model, organization_id, entity_id)
    if entity is None:
        raise ValueError(f"{entity_type}_not_found")
    return entity


def clean_changes(entity_type: str, changes: dict[str, Any]) -> dict[str, Any]:
    """Parse proposed field values; unknown fields are rejected."""
    fields = EDITABLE_FIELDS.get(entity_type)
    if fields is None:
        raise ValueError("unknown_entity_type")
    if not changes:
        raise ValueError("no_changes")

    cleaned: dict[str, Any] = {}
    for field, raw in changes.items():
        parser = fields.get(field)
        if parser is None:
            raise ValueError(f"field_not_editable:{field}")
        try:
            cleaned[field] = parser(raw)
        except ValueError as exc:
            raise ValueError(f"{exc}:{field}") from exc
    return cleaned


def _day_in_zone(value: datetime, now: datetime):
    if value.tzinfo is not None and now.tzinfo is not None:
        return value.astimezone(now.tzinfo).date()
    return value.date()


# ---------------------------------------------------------------------------
# Trips
# ---------------------------------------------------------------------------

def create_trip(
    db: Session,
    *,
    organization_id: str,
    truck_id: int,
    driver_id: int,
    origin_city: str,
    destination_city: str,
    scheduled_date: datetime,
    now: datetime,
    revenue: float = 0,
    estimated_mileage: int = 0,
    customer_id: int | None = None,
    origin_address: str | None = None,
    destination_address: str | None = None,
    load_description: str | None = None,
    load_weight: float | None = None,
    load_units: int | None = None,
    notes: str | None = None,
) -> Trip:
    truck = _scoped(db, Truck, organization_id, truck_id)
    if not truck:
        raise ValueError("truck_not_found")
    driver = _scoped(db, Driver, organization_id, driver_id)
    if not driver:
        raise ValueError("driver_not_found")
    customer = _scoped(db, Customer, organization_id, customer_id)
    if customer_id is not None and not customer:
        raise ValueError("customer_not_found")

    # a trip scheduled for today or earlier is already on the road
    started = _day_in_zone(scheduled_date, now) <= now.date()
    status = "in_progress" if started else "scheduled"

    trip = Trip(
        organization_id=organization_id,
        truck_id=truck.id,
        driver_id=driver.id,
        customer_id=customer.id if customer else None,
        origin_city=_required_text(origin_city),
        origin_address=_text(origin_address),
        destination_city=_required_text(destination_city),
        destination_address=_text(destination_address),
        load_description=_text(load_description),
        load_weight=load_weight,
        load_units=load_units,
        estimated_mileage=estimated_mileage,
        revenue=_round_money(revenue),
        status=status,
        scheduled_date=scheduled_date,
        notes=_text(notes),
    )
    db.add(trip)
    if started:
        truck.status = "in_service"
        driver.status = "active"
    db.flush()

    logger.info("trip_created: id=%s org=%s status=%s truck=%s", trip.id, organization_id, status, truck.registration_no)
    return trip


# ---------------------------------------------------------------------------
# Invoices
# ---------------------------------------------------------------------------

def next_invoice_number(db: Session, organization_id: str, *, year: int) -> str:
    prefix = f"INV-{year}-"
    numbers = (
        db.query(Invoice.invoice_number)
        .filter(Invoice.organization_id == organization_id, Invoice.invoice_number.like(f"{prefix}%"))
        .all()
    )
    highest = 0
    for (number,) in numbers:
        suffix = number[len(prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return f"{prefix}{highest + 1:04d}"


def create_invoice(
    db: Session,
    *,
    organization_id: str,
    customer_id: int,
    subtotal: float,
    now: datetime,
    tax: float = 0,
    invoice_number: str | None = None,
    trip_id: int | None = None,
    issue_date: datetime | None = None,
    due_date: datetime | None = None,
    status: str = "draft",
    notes: str | None = None,
) -> Invoice:
    customer = _scoped(db, Customer, organization_id, customer_id)
    if not customer:
        raise ValueError("customer_not_found")
    trip = _scoped(db, Trip, organization_id, trip_id)
    if trip_id is not None and not trip:
        raise ValueError("trip_not_found")

    status = _choice(("draft", "sent"))(status)
    subtotal = _round_money(_non_negative_float(subtotal))
    tax = _round_money(_non_negative_float(tax))

    issued = issue_date or now
    number = _text(invoice_number) or next_invoice_number(db, organization_id, year=issued.year)
    exists = (
        db.query(Invoice.id)
        .filter(Invoice.organization_id == organization_id, Invoice.invoice_number == number)
        .first()
    )
    if exists:
        raise ValueError("invoice_number_exists")

    total = _round_money(subtotal + tax)
    invoice = Invoice(
        organization_id=organization_id,
        invoice_number=number,
        customer_id=customer.id,
        trip_id=trip.id if trip else None,
        issue_date=issued,
        due_date=due_date or issued + timedelta(days=settings.INVOICE_DUE_DAYS),
        subtotal=subtotal,
        tax=tax,
        total=total,
        amount_paid=0,
        balance=total,
        status=status,
        notes=_text(notes),
    )
    db.add(invoice)
    db.flush()

    logger.info("invoice_created: number=%s org=%s total=%.2f", number, organization_id, total)
    return invoice


# ---------------------------------------------------------------------------
# Expenses
# ---------------------------------------------------------------------------

def create_expense(
    db: Session,
    *,
    organization_id: str,
    amount: float,
    date: datetime,
    category_id: int | None = None,
    truck_id: int | None = None,
    trip_id: int | None = None,
    description: str | None = None,
) -> Expense:
    category = _scoped(db, ExpenseCategory, organization_id, category_id)
    if category_id is not None and not category:
        raise ValueError("category_not_found")
    truck = _scoped(db, Truck, organization_id, truck_id)
    if truck_id is not None and not truck:
        raise ValueError("truck_not_found")
    trip = _scoped(db, Trip, organization_id, trip_id)
    if trip_id is not None and not trip:
        raise ValueError("trip_not_found")

    expense = Expense(
        organization_id=organization_id,
        category_id=category.id if category else None,
        # trip costs count against the trip's truck
        truck_id=truck.id if truck else (trip.truck_id if trip else None),
        trip_id=trip.id if trip else None,
        amount=_round_money(_positive_float(amount)),
        date=date,
        description=_text(description),
    )
    db.add(expense)
    db.flush()

    logger.info("expense_created: id=%s org=%s amount=%.2f", expense.id, organization_id, expense.amount)
    return expense


# ---------------------------------------------------------------------------
# Edits
# ---------------------------------------------------------------------------

def snapshot(entity, fields) -> dict[str, Any]:
    """JSON-safe copy of the current values of ``fields``."""
    values = {}
    for field in fields:
        value = getattr(entity, field)
        values[field] = value.isoformat() if isinstance(value, datetime) else value
    return values


def apply_changes(db: Session, entity_type: str, entity, changes: dict[str, Any]) -> None:
    """Write already-cleaned ``changes`` onto ``entity``."""
    if entity_type == "expense" and changes.get("category_id") is not None:
        if not _scoped(db, ExpenseCategory, entity.organization_id, changes["category_id"]):
            raise ValueError("category_not_found")

    for field, value in changes.items():
        setattr(entity, field, _round_money(value) if field in ("revenue", "subtotal", "tax", "amount") else value)

    if entity_type == "invoice":
        if entity.status == "draft" and float(entity.amount_paid or 0) > 0:
            raise ValueError("invoice_has_payments")
        entity.total = _round_money(float(entity.subtotal or 0) + float(entity.tax or 0))
        if entity.total + 0.005 < float(entity.amount_paid or 0):
            raise ValueError("invoice_total_below_amount_paid")
        refresh_invoice_status(entity)

    db.flush()
    logger.info("record_updated: type=%s id=%s fields=%s", entity_type, entity.id, ",".join(sorted(changes)))


def update_record(
    db: Session,
    *,
    entity_type: str,
    entity_id: int,
    organization_id: str,
    changes: dict[str, Any],
):
    entity = get_entity(db, entity_type, organization_id, entity_id)
    apply_changes(db, entity_type, entity, clean_changes(entity_type, changes))
    return entity

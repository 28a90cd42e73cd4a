from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies.auth import require_permission
from app.dependencies.clock import request_now
from app.dependencies.errors import http_error_from
from app.models.finance import Expense, Invoice
from app.models.user import User
from app.services.invoicing import delete_payment, record_payment
from app.services.records import create_expense, create_invoice, update_record

router = APIRouter(prefix="/api", tags=["finance"])


class RecordPaymentRequest(BaseModel):
    amount: float = Field(gt=0)
    method: str = "bank_transfer"
    payment_date: datetime | None = None
    reference: str | None = None
    notes: str | None = None


class CreateInvoiceRequest(BaseModel):
    customer_id: int
    trip_id: int | None = None
    invoice_number: str | None = None
    issue_date: datetime | None = None
    due_date: datetime | None = None
    subtotal: float = Field(ge=0)
    tax: float = Field(default=0, ge=0)
    status: str = "draft"
    notes: str | None = None


class CreateExpenseRequest(BaseModel):
    amount: float = Field(gt=0)
    date: datetime | None = None
    category_id: int | None = None
    truck_id: int | None = None
    trip_id: int | None = None
    description: str | None = None


def _invoice_payload(invoice: Invoice) -> dict[str, Any]:
    return {
        "id": invoice.id,
        "invoice_number": invoice.invoice_number,
        "amount_paid": invoice.amount_paid,
        "balance": invoice.balance,
        "status": invoice.status,
    }


def _invoice_detail(invoice: Invoice) -> dict[str, Any]:
    return {
        **_invoice_payload(invoice),
        "customer_id": invoice.customer_id,
        "trip_id": invoice.trip_id,
        "issue_date": invoice.issue_date.isoformat(),
        "due_date": invoice.due_date.isoformat(),
        "subtotal": invoice.subtotal,
        "tax": invoice.tax,
        "total": invoice.total,
    }


def _expense_payload(expense: Expense) -> dict[str, Any]:
    return {
        "id": expense.id,
        "amount": expense.amount,
        "date": expense.date.isoformat(),
        "category_id": expense.category_id,
        "truck_id": expense.truck_id,
        "trip_id": expense.trip_id,
        "description": expense.description,
    }


@router.post("/invoices")
def add_invoice(
    payload: CreateInvoiceRequest,
    user: User = Depends(require_permission("create")),
    db: Session = Depends(get_db),
    now: datetime = Depends(request_now),
):
    try:
        invoice = create_invoice(db, organization_id=user.organization_id, now=now, **payload.model_dump())
    except ValueError as exc:
        raise http_error_from(exc) from exc
    db.commit()
    return {"status": "ok", "invoice": _invoice_detail(invoice)}


@router.patch("/invoices/{invoice_id}")
def edit_invoice(
    invoice_id: int,
    changes: dict[str, Any],
    user: User = Depends(require_permission("edit")),
    db: Session = Depends(get_db),
):
    try:
        invoice = update_record(
            db, entity_type="invoice", entity_id=invoice_id, organization_id=user.organization_id, changes=changes
        )
    except ValueError as exc:
        raise http_error_from(exc) from exc
    db.commit()
    return {"status": "ok", "invoice": _invoice_detail(invoice)}


@router.post("/invoices/{invoice_id}/payments")
def create_payment(
    invoice_id: int,
    payload: RecordPaymentRequest,
    user: User = Depends(require_permission("create")),
    db: Session = Depends(get_db),
    now: datetime = Depends(request_now),
):
    try:
        payment = record_payment(
            db,
            invoice_id=invoice_id,
            organization_id=user.organization_id,
            amount=payload.amount,
            method=payload.method,
            payment_date=payload.payment_date or now,
            reference=payload.reference,
            notes=payload.notes,
        )
    except ValueError as exc:
        raise http_error_from(exc) from exc

    db.commit()
    return {"status": "ok", "payment_id": payment.id, "invoice": _invoice_payload(payment.invoice)}


@router.delete("/payments/{payment_id}")
def remove_payment(
    payment_id: int,
    user: User = Depends(require_permission("delete")),
    db: Session = Depends(get_db),
):
    try:
        invoice = delete_payment(db, payment_id=payment_id, organization_id=user.organization_id)
    except ValueError as exc:
        raise http_error_from(exc) from exc

    db.commit()
    return {"status": "ok", "invoice": _invoice_payload(invoice) if invoice else None}


@router.post("/expenses")
def add_expense(
    payload: CreateExpenseRequest,
    user: User = Depends(require_permission("create")),
    db: Session = Depends(get_db),
    now: datetime = Depends(request_now),
):
    fields = payload.model_dump()
    fields["date"] = fields["date"] or now
    try:
        expense = create_expense(db, organization_id=user.organization_id, **fields)
    except ValueError as exc:
        raise http_error_from(exc) from exc
    db.commit()
    return {"status": "ok", "expense": _expense_payload(expense)}


@router.patch("/expenses/{expense_id}")
def edit_expense(
    expense_id: int,
    changes: dict[str, Any],
    user: User = Depends(require_permission("edit")),
    db: Session = Depends(get_db),
):
    try:
        expense = update_record(
            db, entity_type="expense", entity_id=expense_id, organization_id=user.organization_id, changes=changes
        )
    except ValueError as exc:
        raise http_error_from(exc) from exc
    db.commit()
    return {"status": "ok", "expense": _expense_payload(expense)}

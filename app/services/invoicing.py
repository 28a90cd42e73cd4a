from __future__ import annotations

import logging
import math
from datetime import datetime

from sqlalchemy.orm import Session

from app.models import Invoice, Payment

logger = logging.getLogger(__name__)

PAYMENT_METHODS = {"cash", "bank_transfer", "check", "mobile_money", "other"}
CLOSED_STATUSES = ("paid", "cancelled")
BALANCE_EPSILON = 0.005


def _round_money(value: float) -> float:
    return round(float(value or 0), 2)


def refresh_invoice_status(invoice: Invoice) -> str:
    """Recompute balance and status from ``total`` and ``amount_paid``."""
    invoice.balance = _round_money(max(float(invoice.total or 0) - float(invoice.amount_paid or 0), 0))

    if invoice.status in ("cancelled", "draft"):
        return invoice.status

    if invoice.balance <= BALANCE_EPSILON:
        invoice.status = "paid"
    elif float(invoice.amount_paid or 0) > 0:
        invoice.status = "partial"
    else:
        invoice.status = "sent"
    return invoice.status


def record_payment(
    db: Session,
    *,
    invoice_id: int,
    organization_id: str,
    amount: float,
    method: str,
    payment_date: datetime,
    reference: str | None = None,
    notes: str | None = None,
) -> Payment:
    invoice = (
        db.query(Invoice)
        .filter(Invoice.id == invoice_id, Invoice.organization_id == organization_id)
        .first()
    )
    if not invoice:
        raise ValueError("invoice_not_found")
    if invoice.status == "cancelled":
        raise ValueError("invoice_cancelled")

    amount = _round_money(amount)
    if amount <= 0:
        raise ValueError("payment_amount_must_be_positive")

    outstanding = _round_money(float(invoice.total or 0) - float(invoice.amount_paid or 0))
    if amount > outstanding + BALANCE_EPSILON:
        raise ValueError(f"Payment amount exceeds balance of ${outstanding:.2f}")

    normalized_method = (method or "").strip().lower()
    if normalized_method not in PAYMENT_METHODS:
        normalized_method = "other"

    payment = Payment(
        organization_id=organization_id,
        invoice_id=invoice.id,
        customer_id=invoice.customer_id,
        amount=amount,
        method=normalized_method,
        payment_date=payment_date,
        reference=(reference or "").strip() or None,
        notes=notes,
    )
    db.add(payment)

    invoice.amount_paid = _round_money(float(invoice.amount_paid or 0) + amount)
    if invoice.status == "draft":
        invoice.status = "sent"
    refresh_invoice_status(invoice)
    db.flush()

    logger.info(
        "payment_recorded: invoice=%s amount=%.2f status=%s balance=%.2f",
        invoice.invoice_number, amount, invoice.status, invoice.balance,
    )
    return payment


def delete_payment(db: Session, *, payment_id: int, organization_id: str) -> Invoice | None:
    payment = (
        db.query(Payment)
        .filter(Payment.id == payment_id, Payment.organization_id == organization_id)
        .first()
    )
    if not payment:
        raise ValueError("payment_not_found")

    invoice = payment.invoice
    db.delete(payment)
    if invoice is not None:
        invoice.amount_paid = _round_money(max(float(invoice.amount_paid or 0) - float(payment.amount or 0), 0))
        refresh_invoice_status(invoice)
    db.flush()
    return invoice


def overdue_invoices(db: Session, organization_id: str, *, now: datetime, limit: int | None = None) -> list[Invoice]:
    query = (
        db.query(Invoice)
        .filter(
            Invoice.organization_id == organization_id,
            Invoice.due_date < now,
            Invoice.balance > 0,
            Invoice.status.notin_(CLOSED_STATUSES),
        )
        .order_by(Invoice.due_date.asc())
    )
    if limit:
        query = query.limit(limit)
    return query.all()


def days_overdue(due_date: datetime, now: datetime) -> int:
    return max(math.ceil((now - due_date).total_seconds() / 86400), 0)

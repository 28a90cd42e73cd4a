"""
Driver and customer notifications: trip assignments over WhatsApp and
overdue-invoice reminders over email.
"""
import logging
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session, joinedload

from app.core.config import settings
from app.models import Invoice, Trip
from app.services.email import send_invoice_reminder_email
from app.services.invoicing import days_overdue, overdue_invoices
from app.services.whatsapp import send_whatsapp_message

logger = logging.getLogger(__name__)


def format_money(amount: float) -> str:
    return f"${float(amount or 0):,.2f}"


def trip_assignment_message(trip: Any) -> str:
    driver = trip.driver
    origin = trip.origin_city + (f" ({trip.origin_address})" if trip.origin_address else "")
    destination = trip.destination_city + (f" ({trip.destination_address})" if trip.destination_address else "")

    lines = [
        "*New Trip Assignment*",
        "",
        f"Hello {driver.first_name}!",
        "",
        "You have been assigned a new trip:",
        "",
        "*Route:*",
        f"   From: {origin}",
        f"   To: {destination}",
        "",
        "*Scheduled Date:*",
        f"   {trip.scheduled_date.strftime('%A, %B %d, %Y')}",
        "",
        f"*Truck:* {trip.truck.registration_no if trip.truck else '-'}",
    ]
    if trip.customer is not None:
        lines.append(f"*Customer:* {trip.customer.name}")
    if trip.load_description:
        lines.append(f"*Load:* {trip.load_description}")
    if trip.notes:
        lines.extend(["", f"*Notes:* {trip.notes}"])
    lines.extend(["", "Please confirm receipt of this assignment."])
    return "\n".join(lines)


def invoice_reminder_message(invoice: Any, *, now: datetime) -> tuple[str, str]:
    overdue_days = days_overdue(invoice.due_date, now)
    subject = f"Payment reminder: invoice {invoice.invoice_number} is {overdue_days} day(s) overdue"
    body = "\n".join(
        [
            f"Dear {invoice.customer.name},",
            "",
            f"This is a reminder that invoice {invoice.invoice_number} for {format_money(invoice.total)} "
            f"was due on {invoice.due_date.strftime('%B %d, %Y')}.",
            f"Outstanding balance: {format_money(invoice.balance)}",
            "",
            "Please arrange payment at your earliest convenience.",
            "",
            settings.COMPANY_NAME,
        ]
    )
    return subject, body


def notify_driver_of_trip(db: Session, trip: Trip) -> dict[str, Any]:
    driver = trip.driver
    phone = driver.whatsapp_number or driver.phone
    result = send_whatsapp_message(phone, trip_assignment_message(trip))
    if result.get("ok"):
        trip.driver_notified = True
        db.flush()
        logger.info("notify_driver: trip=%s driver=%s sent", trip.id, driver.id)
    else:
        logger.warning("notify_driver: trip=%s driver=%s failed=%s", trip.id, driver.id, result.get("message"))
    return result


def run_invoice_reminders(db: Session, *, now: datetime, organization_id: str | None = None) -> dict[str, int]:
    """Email every overdue, not-yet-reminded invoice whose customer has an email."""
    if organization_id:
        candidates = overdue_invoices(db, organization_id, now=now)
    else:
        candidates = (
            db.query(Invoice)
            .options(joinedload(Invoice.customer))
            .filter(
                Invoice.due_date < now,
                Invoice.balance > 0,
                Invoice.status.notin_(("paid", "cancelled")),
            )
            .all()
        )

    counts = {"checked": 0, "sent": 0, "skipped": 0, "failed": 0}
    for invoice in candidates:
        counts["checked"] += 1
        if invoice.reminder_sent or not (invoice.customer and invoice.customer.email):
            counts["skipped"] += 1
            continue

        subject, body = invoice_reminder_message(invoice, now=now)
        if send_invoice_reminder_email(to_email=invoice.customer.email, subject=subject, body=body):
            invoice.reminder_sent = True
            counts["sent"] += 1
        else:
            counts["failed"] += 1

    db.flush()
    logger.info(
        "invoice_reminders: checked=%d sent=%d skipped=%d failed=%d",
        counts["checked"], counts["sent"], counts["skipped"], counts["failed"],
    )
    return counts

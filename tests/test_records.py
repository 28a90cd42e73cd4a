"""Tests for app/services/records.py and app/services/edit_requests.py

Run with:  pytest tests/test_records.py -v
"""

from datetime import datetime

import pytest

from app.models import EditRequest
from app.services.edit_requests import (
    approve_edit_request,
    list_edit_requests,
    reject_edit_request,
    submit_edit_request,
)
from app.services.records import (
    clean_changes,
    create_expense,
    create_invoice,
    create_trip,
    next_invoice_number,
    update_record,
)

ORG = "org-wd"
NOW = datetime(2024, 5, 15, 10, 0)


def _trip_fields(fleet, **overrides):
    truck, _ = fleet.trucks
    driver, _ = fleet.drivers
    fields = {
        "organization_id": ORG,
        "truck_id": truck.id,
        "driver_id": driver.id,
        "origin_city": "Harare",
        "destination_city": "Lusaka",
        "scheduled_date": datetime(2024, 5, 20, 8, 0),
        "revenue": 1800,
        "now": NOW,
    }
    fields.update(overrides)
    return fields


# ── trips ──────────────────────────────────────────────────────────────────────

class TestCreateTrip:
    def test_future_trip_is_scheduled(self, db, fleet):
        trip = create_trip(db, **_trip_fields(fleet))
        assert trip.status == "scheduled"
        assert trip.organization_id == ORG
        assert fleet.trucks[0].status == "active"

    def test_trip_for_today_starts_and_takes_the_truck(self, db, fleet):
        _, truck = fleet.trucks
        trip = create_trip(
            db,
            **_trip_fields(fleet, truck_id=truck.id, scheduled_date=datetime(2024, 5, 15, 16, 0)),
        )
        assert trip.status == "in_progress"
        assert truck.status == "in_service"

    def test_unknown_customer(self, db, fleet):
        with pytest.raises(ValueError, match="customer_not_found"):
            create_trip(db, **_trip_fields(fleet, customer_id=9999))

    def test_other_org_cannot_use_truck(self, db, fleet):
        with pytest.raises(ValueError, match="truck_not_found"):
            create_trip(db, **_trip_fields(fleet, organization_id="org-other"))


# ── invoices ───────────────────────────────────────────────────────────────────

class TestCreateInvoice:
    def test_numbering_and_totals(self, db, fleet):
        assert next_invoice_number(db, ORG, year=2024) == "INV-2024-0001"

        invoice = create_invoice(
            db, organization_id=ORG, customer_id=fleet.customer.id, subtotal=1000, tax=150, now=NOW,
        )

        assert invoice.invoice_number == "INV-2024-0001"
        assert invoice.total == 1150
        assert invoice.balance == 1150
        assert invoice.amount_paid == 0
        assert invoice.status == "draft"
        assert invoice.due_date == datetime(2024, 6, 14, 10, 0)
        assert next_invoice_number(db, ORG, year=2024) == "INV-2024-0002"

    def test_duplicate_number(self, db, fleet):
        with pytest.raises(ValueError, match="invoice_number_exists"):
            create_invoice(
                db, organization_id=ORG, customer_id=fleet.customer.id, subtotal=10, now=NOW,
                invoice_number="INV-0002",
            )

    def test_cannot_create_paid_invoice(self, db, fleet):
        with pytest.raises(ValueError, match="invalid_status"):
            create_invoice(
                db, organization_id=ORG, customer_id=fleet.customer.id, subtotal=10, now=NOW, status="paid",
            )


# ── expenses ───────────────────────────────────────────────────────────────────

class TestCreateExpense:
    def test_trip_expense_counts_against_the_trip_truck(self, db, fleet):
        expense = create_expense(
            db,
            organization_id=ORG,
            amount=75.5,
            date=NOW,
            category_id=fleet.categories.tolls.id,
            trip_id=fleet.trips.completed.id,
        )
        assert expense.truck_id == fleet.trucks[0].id
        assert expense.amount == 75.5

    def test_unknown_category(self, db, fleet):
        with pytest.raises(ValueError, match="category_not_found"):
            create_expense(db, organization_id=ORG, amount=10, date=NOW, category_id=9999)


# ── direct edits ───────────────────────────────────────────────────────────────

class TestUpdateRecord:
    def test_invoice_edit_recomputes_balance(self, db, fleet):
        invoice = update_record(
            db,
            entity_type="invoice",
            entity_id=fleet.invoices.overdue.id,
            organization_id=ORG,
            changes={"subtotal": 2500},
        )
        assert invoice.total == 2500
        assert invoice.balance == 1500
        assert invoice.status == "partial"

    def test_invoice_total_cannot_drop_below_payments(self, db, fleet):
        with pytest.raises(ValueError, match="invoice_total_below_amount_paid"):
            update_record(
                db,
                entity_type="invoice",
                entity_id=fleet.invoices.overdue.id,
                organization_id=ORG,
                changes={"subtotal": 500},
            )

    def test_trip_date_strings_are_parsed(self, db, fleet):
        trip = update_record(
            db,
            entity_type="trip",
            entity_id=fleet.trips.today.id,
            organization_id=ORG,
            changes={"scheduled_date": "2024-05-16T07:00:00", "revenue": "950"},
        )
        assert trip.scheduled_date == datetime(2024, 5, 16, 7, 0)
        assert trip.revenue == 950

    @pytest.mark.parametrize(
        "changes, message",
        [
            ({"organization_id": "org-other"}, "field_not_editable:organization_id"),
            ({"revenue": "lots"}, "invalid_number:revenue"),
            ({"status": "teleported"}, "invalid_status:status"),
            ({}, "no_changes"),
        ],
    )
    def test_rejected_changes(self, changes, message):
        with pytest.raises(ValueError, match=message):
            clean_changes("trip", changes)


# ── edit requests ──────────────────────────────────────────────────────────────

class TestEditRequests:
    def _submit(self, db, fleet, user=None, **overrides):
        fields = {
            "user": user or fleet.users.staff,
            "entity_type": "trip",
            "entity_id": fleet.trips.completed.id,
            "changes": {"revenue": 3200},
            "reason": "Rate corrected by customer",
        }
        fields.update(overrides)
        return submit_edit_request(db, **fields)

    def test_submit_keeps_record_unchanged(self, db, fleet):
        edit_request = self._submit(db, fleet)

        assert edit_request.status == "pending"
        assert edit_request.original_data == {"revenue": 3000}
        assert edit_request.proposed_data == {"revenue": 3200}
        assert fleet.trips.completed.revenue == 3000

    def test_approve_applies_changes(self, db, fleet):
        edit_request = self._submit(db, fleet)
        approve_edit_request(
            db, edit_request_id=edit_request.id, reviewer=fleet.users.admin, now=NOW, review_notes="ok",
        )

        assert edit_request.status == "approved"
        assert edit_request.reviewed_by_id == fleet.users.admin.id
        assert edit_request.reviewed_at == NOW
        assert fleet.trips.completed.revenue == 3200

    def test_approved_dates_round_trip_through_json(self, db, fleet):
        expense = fleet.expenses[2]
        edit_request = self._submit(
            db, fleet, entity_type="expense", entity_id=expense.id, changes={"date": "2024-05-11T09:00:00"},
        )
        assert edit_request.original_data == {"date": "2024-05-10T09:00:00"}

        approve_edit_request(db, edit_request_id=edit_request.id, reviewer=fleet.users.admin, now=NOW)
        assert expense.date == datetime(2024, 5, 11, 9, 0)

    def test_reject_leaves_record_alone(self, db, fleet):
        edit_request = self._submit(db, fleet)
        reject_edit_request(
            db, edit_request_id=edit_request.id, reviewer=fleet.users.admin, now=NOW, review_notes="no",
        )

        assert edit_request.status == "rejected"
        assert edit_request.review_notes == "no"
        assert fleet.trips.completed.revenue == 3000

    def test_cannot_review_twice(self, db, fleet):
        edit_request = self._submit(db, fleet)
        reject_edit_request(db, edit_request_id=edit_request.id, reviewer=fleet.users.admin, now=NOW)

        with pytest.raises(ValueError, match="edit_request_already_reviewed"):
            approve_edit_request(db, edit_request_id=edit_request.id, reviewer=fleet.users.admin, now=NOW)

    def test_reason_required(self, db, fleet):
        with pytest.raises(ValueError, match="reason_required"):
            self._submit(db, fleet, reason="  ")

    def test_other_org_record_is_not_found(self, db, fleet):
        fleet.users.staff.organization_id = "org-other"
        with pytest.raises(ValueError, match="trip_not_found"):
            self._submit(db, fleet)
        assert db.query(EditRequest).count() == 0

    def test_staff_only_see_their_own(self, db, fleet):
        self._submit(db, fleet)
        self._submit(db, fleet, user=fleet.users.admin, changes={"notes": "check tolls"})

        assert len(list_edit_requests(db, user=fleet.users.staff)) == 1
        assert len(list_edit_requests(db, user=fleet.users.admin)) == 2
        assert len(list_edit_requests(db, user=fleet.users.admin, status="approved")) == 0

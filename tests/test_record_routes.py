"""HTTP tests for trip, invoice and expense create/edit routes and edit requests

Run with:  pytest tests/test_record_routes.py -v
"""

from app.services import notifications

MAY = {"from": "2024-05-01", "to": "2024-05-31"}


def _login(client, email, password):
    return client.post(
        "/auth/login",
        data={"email": email, "password": password},
        follow_redirects=False,
    )


def _trip_body(fleet, **overrides):
    body = {
        "truck_id": fleet.trucks[0].id,
        "driver_id": fleet.drivers[0].id,
        "customer_id": fleet.customer.id,
        "origin_city": "Harare",
        "destination_city": "Lusaka",
        "scheduled_date": "2024-05-20T08:00:00",
        "revenue": 1800,
        "notify_driver": False,
    }
    body.update(overrides)
    return body


# ── trips ──────────────────────────────────────────────────────────────────────

class TestTrips:
    def test_staff_can_create(self, staff, fleet):
        response = staff.post("/api/trips", json=_trip_body(fleet))
        assert response.status_code == 200
        trip = response.json()["trip"]
        assert trip["status"] == "scheduled"
        assert trip["driver_notified"] is False

    def test_driver_is_notified(self, staff, fleet, monkeypatch):
        sent = []

        def fake_send(phone, body):
            sent.append(phone)
            return {"ok": True, "message_id": "m1"}

        monkeypatch.setattr(notifications, "send_whatsapp_message", fake_send)
        response = staff.post("/api/trips", json=_trip_body(fleet, notify_driver=True))

        assert response.json()["trip"]["driver_notified"] is True
        assert sent == ["263771234567"]

    def test_gateway_failure_still_creates_trip(self, staff, fleet, monkeypatch):
        monkeypatch.setattr(
            notifications,
            "send_whatsapp_message",
            lambda phone, body: {"ok": False, "message": "whatsapp_not_configured"},
        )
        response = staff.post("/api/trips", json=_trip_body(fleet, notify_driver=True))
        assert response.status_code == 200
        assert response.json()["trip"]["driver_notified"] is False

    def test_unknown_truck(self, staff, fleet):
        response = staff.post("/api/trips", json=_trip_body(fleet, truck_id=9999))
        assert response.status_code == 404
        assert response.json()["detail"] == "truck_not_found"

    def test_origin_required(self, staff, fleet):
        assert staff.post("/api/trips", json=_trip_body(fleet, origin_city="")).status_code == 422

    def test_staff_cannot_edit_directly(self, staff, fleet):
        response = staff.patch(f"/api/trips/{fleet.trips.completed.id}", json={"revenue": 3200})
        assert response.status_code == 403
        assert response.json()["detail"]["permission"] == "edit"

    def test_admin_edit(self, admin, fleet):
        response = admin.patch(f"/api/trips/{fleet.trips.completed.id}", json={"revenue": 3200, "actual_mileage": 590})
        assert response.status_code == 200
        assert response.json()["trip"]["revenue"] == 3200
        assert response.json()["trip"]["actual_mileage"] == 590

    def test_edit_rejects_unknown_field(self, admin, fleet):
        response = admin.patch(f"/api/trips/{fleet.trips.completed.id}", json={"truck_id": 1})
        assert response.status_code == 400
        assert response.json()["detail"] == "field_not_editable:truck_id"


# ── invoices & expenses ────────────────────────────────────────────────────────

class TestInvoicesAndExpenses:
    def test_create_invoice(self, staff, fleet):
        body = {"customer_id": fleet.customer.id, "trip_id": fleet.trips.today.id, "subtotal": 900, "tax": 135}
        invoice = staff.post("/api/invoices", json=body).json()["invoice"]

        assert invoice["invoice_number"] == "INV-2024-0001"
        assert invoice["total"] == 1035
        assert invoice["balance"] == 1035
        assert invoice["issue_date"] == "2024-05-15T10:00:00"
        assert invoice["due_date"] == "2024-06-14T10:00:00"

    def test_duplicate_invoice_number(self, staff, fleet):
        body = {"customer_id": fleet.customer.id, "subtotal": 10, "invoice_number": "INV-0001"}
        response = staff.post("/api/invoices", json=body)
        assert response.status_code == 409

    def test_invoice_for_unknown_customer(self, staff, fleet):
        assert staff.post("/api/invoices", json={"customer_id": 9999, "subtotal": 10}).status_code == 404

    def test_admin_edits_invoice(self, admin, fleet):
        response = admin.patch(f"/api/invoices/{fleet.invoices.draft.id}", json={"tax": 100, "status": "sent"})
        invoice = response.json()["invoice"]
        assert invoice["total"] == 1000
        assert invoice["balance"] == 1000
        assert invoice["status"] == "sent"

    def test_new_expense_shows_in_report(self, admin, fleet):
        body = {"amount": 75, "category_id": fleet.categories.tolls.id, "truck_id": fleet.trucks[1].id}
        response = admin.post("/api/expenses", json=body)
        assert response.status_code == 200
        assert response.json()["expense"]["date"] == "2024-05-15T10:00:00"

        rows = admin.get("/api/reports/expenses", params=MAY).json()["rows"]
        assert [row["amount"] for row in rows] == [75, 150, 50, 800]

    def test_expense_amount_must_be_positive(self, staff, fleet):
        assert staff.post("/api/expenses", json={"amount": 0}).status_code == 422


# ── edit requests ──────────────────────────────────────────────────────────────

class TestEditRequestFlow:
    def _submit(self, client, fleet, **overrides):
        body = {
            "entity_type": "trip",
            "entity_id": fleet.trips.completed.id,
            "changes": {"revenue": 3200},
            "reason": "Rate corrected by customer",
        }
        body.update(overrides)
        return client.post("/api/edit-requests", json=body)

    def test_submit_and_list(self, staff, fleet):
        response = self._submit(staff, fleet)
        assert response.status_code == 200
        edit_request = response.json()["edit_request"]
        assert edit_request["status"] == "pending"
        assert edit_request["requested_by"] == "staff@wd.test"
        assert edit_request["original_data"] == {"revenue": 3000}

        listed = staff.get("/api/edit-requests", params={"status": "pending"}).json()
        assert listed["total"] == 1

    def test_staff_cannot_approve(self, staff, fleet):
        edit_request_id = self._submit(staff, fleet).json()["edit_request"]["id"]
        assert staff.post(f"/api/edit-requests/{edit_request_id}/approve").status_code == 403

    def test_unknown_field_is_rejected_on_submit(self, staff, fleet):
        response = self._submit(staff, fleet, changes={"organization_id": "x"})
        assert response.status_code == 400

    def test_unknown_entity_type(self, staff, fleet):
        response = self._submit(staff, fleet, entity_type="truck")
        assert response.status_code == 400
        assert response.json()["detail"] == "unknown_entity_type"

    def test_approval_applies_change(self, client, fleet):
        _login(client, "staff@wd.test", "battery staple")
        edit_request_id = self._submit(client, fleet).json()["edit_request"]["id"]
        client.post("/auth/logout", follow_redirects=False)

        _login(client, "admin@wd.test", "correct horse")
        response = client.post(f"/api/edit-requests/{edit_request_id}/approve", json={"review_notes": "confirmed"})
        assert response.status_code == 200
        assert response.json()["edit_request"]["status"] == "approved"
        assert response.json()["edit_request"]["reviewed_by"] == "admin@wd.test"

        rows = client.get("/api/reports/trip_summary", params=MAY).json()["rows"]
        completed = next(row for row in rows if row["origin"] == "Harare")
        assert completed["revenue"] == 3200

        again = client.post(f"/api/edit-requests/{edit_request_id}/reject")
        assert again.status_code == 409

    def test_unknown_edit_request(self, admin, fleet):
        assert admin.post("/api/edit-requests/999/approve").status_code == 404

"""Tests for app/services/reports.py and app/services/report_csv.py

Run with:  pytest tests/test_reports.py -v
"""

import csv
import io
from datetime import datetime
from types import SimpleNamespace

import pytest

from app.services.periods import DateRange, end_of_day, resolve_date_range, start_of_day
from app.services.report_csv import format_currency, format_date, format_percentage, render_customer_statement, render_report
from app.services.reports import build_statement, fetch_report, serialize_rows

ORG = "org-wd"
NOW = datetime(2024, 5, 15, 10, 0)
MAY = DateRange(start_of_day(datetime(2024, 5, 1).date()), end_of_day(datetime(2024, 5, 31).date()), "Custom Range")
GENERATED = datetime(2024, 5, 15, 12, 0)


def _rows(text):
    return list(csv.reader(io.StringIO(text)))


# ── fetchers ───────────────────────────────────────────────────────────────────

class TestFetchers:
    def test_profit_per_unit(self, db, fleet):
        rows = fetch_report(db, "profit_per_unit", ORG, MAY)["rows"]
        by_reg = {row["registration_no"]: row for row in rows}

        # other organizations never show up
        assert set(by_reg) == {"ABC-1234", "XYZ-9876"}

        volvo = by_reg["ABC-1234"]
        assert volvo["trips"] == 1
        assert volvo["revenue"] == 3000
        # 800 + 50 on the trip, 150 booked on the truck alone
        assert volvo["expenses"] == 1000
        assert volvo["profit"] == 2000
        assert volvo["profit_margin"] == pytest.approx(66.6667, rel=1e-4)

        scania = by_reg["XYZ-9876"]
        assert scania["trips"] == 0
        assert scania["profit_margin"] == 0

    def test_revenue_excludes_drafts(self, db, fleet):
        rows = fetch_report(db, "revenue", ORG, MAY)["rows"]
        assert [row["invoice_no"] for row in rows] == ["INV-0002"]
        assert rows[0]["trip"] == "Harare - Beira"
        assert rows[0]["customer"] == "Acme Mining"

    def test_expenses(self, db, fleet):
        rows = fetch_report(db, "expenses", ORG, MAY)["rows"]
        assert [row["amount"] for row in rows] == [150, 50, 800]
        assert rows[0]["trip"] == "-"
        assert rows[1]["category"] == "Tolls"

    def test_trip_summary_numbering(self, db, fleet):
        rows = fetch_report(db, "trip_summary", ORG, MAY)["rows"]
        assert [row["trip_number"] for row in rows] == ["TRP-0001", "TRP-0002", "TRP-0003"]
        completed = next(row for row in rows if row["origin"] == "Harare")
        assert completed["driver"] == "Tendai Moyo"
        assert completed["profit"] == 2150

    def test_all_time_includes_old_trip(self, db, fleet):
        date_range = resolve_date_range("all", now=NOW)
        rows = fetch_report(db, "trip_summary", ORG, date_range)["rows"]
        assert len(rows) == 4

    def test_customer_statement(self, db, fleet):
        statement = fetch_report(db, "customer_statement", ORG, MAY, customer_id=fleet.customer.id)

        # INV-0001 (1200) fully paid before May
        assert statement["opening_balance"] == 0
        assert [entry["type"] for entry in statement["entries"]] == ["INVOICE", "PAYMENT"]
        assert statement["closing_balance"] == 2000
        assert statement["customer"]["name"] == "Acme Mining"

    def test_customer_statement_requires_customer(self, db, fleet):
        with pytest.raises(ValueError, match="customer_id_required"):
            fetch_report(db, "customer_statement", ORG, MAY)

    def test_customer_statement_other_org(self, db, fleet):
        with pytest.raises(ValueError, match="customer_not_found"):
            fetch_report(db, "customer_statement", "org-other", MAY, customer_id=fleet.customer.id)

    def test_unknown_type(self, db):
        with pytest.raises(ValueError, match="unknown_report_type"):
            fetch_report(db, "payroll", ORG, MAY)


# ── statement ──────────────────────────────────────────────────────────────────

def test_build_statement_running_balance():
    invoices = [
        SimpleNamespace(issue_date=datetime(2024, 5, 1), invoice_number="INV-1", total=1000),
        SimpleNamespace(issue_date=datetime(2024, 5, 20), invoice_number="INV-2", total=400),
    ]
    payments = [SimpleNamespace(payment_date=datetime(2024, 5, 10), reference=None, method="cash", amount=600)]

    entries, closing = build_statement(invoices, payments, opening_balance=250)

    assert [entry["balance"] for entry in entries] == [1250, 650, 1050]
    assert entries[1]["reference"] == "-"
    assert entries[1]["description"] == "Payment - cash"
    assert closing == 1050


def test_serialize_rows_formats_datetimes():
    rows = serialize_rows([{"date": datetime(2024, 5, 1, 8, 30), "amount": 12.5}])
    assert rows == [{"date": "2024-05-01T08:30:00", "amount": 12.5}]


# ── CSV ────────────────────────────────────────────────────────────────────────

class TestCsv:
    def test_formatters(self):
        assert format_currency(1234.5) == "1234.50"
        assert format_currency(None) == "0.00"
        assert format_percentage(12.345) == "12.35%"
        assert format_date(datetime(2024, 1, 2, 23, 0)) == "2024-01-02"

    def test_report_layout(self):
        rows = [
            {"registration_no": "ABC-1234", "make": "Volvo", "model": "FH16", "trips": 2,
             "revenue": 1000, "expenses": 250, "profit": 750, "profit_margin": 75},
            {"registration_no": "XYZ-9876", "make": "Scania", "model": "R450", "trips": 1,
             "revenue": 0, "expenses": 100, "profit": -100, "profit_margin": 0},
        ]
        lines = _rows(render_report("profit_per_unit", rows, MAY, generated_at=GENERATED))

        assert lines[0] == ["WD Logistics - Profit Per Unit Report"]
        assert lines[1] == ["Period: 2024-05-01 - 2024-05-31"]
        assert lines[2] == ["Generated: 2024-05-15T12:00:00"]
        assert lines[4][0] == "Truck Registration"
        assert lines[5] == ["ABC-1234", "Volvo", "FH16", "2", "1000.00", "250.00", "750.00", "75.00%"]
        assert lines[-1] == ["TOTAL", "", "", "3", "1000.00", "350.00", "650.00", "65.00%"]

    def test_values_are_quoted(self):
        text = render_report("revenue", [], MAY, generated_at=GENERATED)
        assert '"Date","Customer","Invoice #","Trip","Amount ($)"' in text
        assert text.rstrip("\n").endswith('"TOTAL","","","","0.00"')

    def test_unknown_layout(self):
        with pytest.raises(ValueError):
            render_report("payroll", [], MAY)

    def test_customer_statement(self):
        statement = {
            "customer": {"name": "Acme Mining"},
            "opening_balance": 100,
            "closing_balance": 400,
            "entries": [
                {"date": datetime(2024, 5, 3), "type": "INVOICE", "reference": "INV-0002",
                 "description": "Invoice INV-0002", "debit": 300, "credit": 0, "balance": 400},
            ],
        }
        lines = _rows(render_customer_statement(statement, MAY, generated_at=GENERATED))

        assert lines[0] == ["WD Logistics - Customer Statement"]
        assert lines[1] == ["Customer: Acme Mining"]
        assert ["Opening Balance: $100.00"] in lines
        assert lines[-2] == ["2024-05-03", "INVOICE", "INV-0002", "Invoice INV-0002", "300.00", "-", "400.00"]
        assert lines[-1] == ["", "", "", "CLOSING BALANCE", "", "", "400.00"]

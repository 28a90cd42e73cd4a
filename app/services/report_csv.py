import csv
import io
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Callable

from app.core.config import settings
from app.services.periods import DateRange


def format_currency(value: Any) -> str:
    return f"{float(value or 0):.2f}"


def format_percentage(value: Any) -> str:
    return f"{float(value or 0):.2f}%"


def format_date(value: Any) -> str:
    if isinstance(value, (datetime, date)):
        return value.strftime("%Y-%m-%d")
    return "" if value is None else str(value)


def _statement_amount(value: Any) -> str:
    return format_currency(value) if float(value or 0) > 0 else "-"


@dataclass(frozen=True)
class Column:
    key: str
    label: str
    fmt: Callable[[Any], str] | None = None

    def render(self, row: dict[str, Any]) -> str:
        value = row.get(self.key)
        if self.fmt is not None:
            return self.fmt(value)
        if value is None:
            return ""
        if isinstance(value, (datetime, date)):
            return format_date(value)
        return str(value)


REPORT_LAYOUTS: dict[str, tuple[str, list[Column], list[str]]] = {
    # report_type -> (title, columns, summed keys for the TOTAL row)
    "profit_per_unit": (
        "Profit Per Unit Report",
        [
            Column("registration_no", "Truck Registration"),
            Column("make", "Make"),
            Column("model", "Model"),
            Column("trips", "Number of Trips"),
            Column("revenue", "Revenue ($)", format_currency),
            Column("expenses", "Expenses ($)", format_currency),
            Column("profit", "Profit ($)", format_currency),
            Column("profit_margin", "Profit Margin (%)", format_percentage),
        ],
        ["trips", "revenue", "expenses", "profit"],
    ),
    "revenue": (
        "Revenue Report",
        [
            Column("date", "Date", format_date),
            Column("customer", "Customer"),
            Column("invoice_no", "Invoice #"),
            Column("trip", "Trip"),
            Column("amount", "Amount ($)", format_currency),
        ],
        ["amount"],
    ),
    "expenses": (
        "Expense Report",
        [
            Column("date", "Date", format_date),
            Column("category", "Category"),
            Column("description", "Description"),
            Column("truck", "Truck"),
            Column("trip", "Trip"),
            Column("amount", "Amount ($)", format_currency),
        ],
        ["amount"],
    ),
    "trip_summary": (
        "Trip Summary Report",
        [
            Column("trip_number", "Trip #"),
            Column("date", "Date", format_date),
            Column("origin", "Origin"),
            Column("destination", "Destination"),
            Column("truck", "Truck"),
            Column("driver", "Driver"),
            Column("revenue", "Revenue ($)", format_currency),
            Column("expenses", "Expenses ($)", format_currency),
            Column("profit", "Profit ($)", format_currency),
        ],
        ["revenue", "expenses", "profit"],
    ),
}

STATEMENT_COLUMNS = [
    Column("date", "Date", format_date),
    Column("type", "Type"),
    Column("reference", "Reference"),
    Column("description", "Description"),
    Column("debit", "Debit ($)", _statement_amount),
    Column("credit", "Credit ($)", _statement_amount),
    Column("balance", "Balance ($)", format_currency),
]


def _preamble(title: str, date_range: DateRange, generated_at: datetime, extra: list[str] | None = None) -> list[list[str]]:
    lines = [[f"{settings.COMPANY_NAME} - {title}"]]
    lines.extend([[line] for line in extra or []])
    lines.append([f"Period: {format_date(date_range.start)} - {format_date(date_range.end)}"])
    lines.append([f"Generated: {generated_at.isoformat()}"])
    lines.append([""])
    return lines


def _totals_row(columns: list[Column], rows: list[dict[str, Any]], summed: list[str]) -> list[str]:
    totals = {key: sum(float(row.get(key) or 0) for row in rows) for key in summed}
    cells = []
    for index, column in enumerate(columns):
        if index == 0:
            cells.append("TOTAL")
        elif column.key in totals:
            value = totals[column.key]
            cells.append(str(int(value)) if column.fmt is None else column.fmt(value))
        elif column.key == "profit_margin":
            revenue = totals.get("revenue", 0)
            cells.append(format_percentage((totals.get("profit", 0) / revenue) * 100 if revenue > 0 else 0))
        else:
            cells.append("")
    return cells


def _write(lines: list[list[str]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerows(lines)
    return buffer.getvalue()


def render_report(
    report_type: str,
    rows: list[dict[str, Any]],
    date_range: DateRange,
    *,
    generated_at: datetime | None = None,
) -> str:
    if report_type not in REPORT_LAYOUTS:
        raise ValueError("unknown_report_type")

    title, columns, summed = REPORT_LAYOUTS[report_type]
    generated_at = generated_at or datetime.now(timezone.utc)

    lines = _preamble(title, date_range, generated_at)
    lines.append([column.label for column in columns])
    lines.extend([column.render(row) for column in columns] for row in rows)
    lines.append(_totals_row(columns, rows, summed))
    return _write(lines)


def render_customer_statement(
    statement: dict[str, Any],
    date_range: DateRange,
    *,
    generated_at: datetime | None = None,
) -> str:
    generated_at = generated_at or datetime.now(timezone.utc)
    customer_name = (statement.get("customer") or {}).get("name") or "N/A"

    lines = _preamble("Customer Statement", date_range, generated_at, extra=[f"Customer: {customer_name}"])
    lines.append([f"Opening Balance: ${format_currency(statement['opening_balance'])}"])
    lines.append([""])
    lines.append([column.label for column in STATEMENT_COLUMNS])
    lines.extend([column.render(entry) for column in STATEMENT_COLUMNS] for entry in statement["entries"])
    lines.append(["", "", "", "CLOSING BALANCE", "", "", format_currency(statement["closing_balance"])])
    return _write(lines)

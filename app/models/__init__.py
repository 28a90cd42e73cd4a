from app.models.customer import Customer
from app.models.driver import Driver
from app.models.edit_request import EditRequest
from app.models.finance import Expense, ExpenseCategory, Invoice, Payment
from app.models.trip import Trip
from app.models.truck import Truck
from app.models.user import User

__all__ = [
    "Customer",
    "Driver",
    "EditRequest",
    "Expense",
    "ExpenseCategory",
    "Invoice",
    "Payment",
    "Trip",
    "Truck",
    "User",
]

from datetime import datetime
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app import models  # noqa: F401
from app.database import Base, get_db
from app.dependencies.clock import request_now
from app.main import app
from app.models import Customer, Driver, Expense, ExpenseCategory, Invoice, Payment, Trip, Truck, User
from app.services.passwords import hash_password

ORG = "org-wd"
OTHER_ORG = "org-other"
NOW = datetime(2024, 5, 15, 10, 0)


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fleet(db):
    """
    One organization with two trucks, two drivers, a customer, four trips,
    three invoices and a handful of expenses and payments around NOW.
    """
    fuel = ExpenseCategory(organization_id=ORG, name="Fuel")
    tolls = ExpenseCategory(organization_id=ORG, name="Tolls")

    truck_a = Truck(organization_id=ORG, registration_no="ABC-1234", make="Volvo", model="FH16", year=2020, status="active")
    truck_b = Truck(organization_id=ORG, registration_no="XYZ-9876", make="Scania", model="R450", year=2019, status="in_repair")
    db.add_all([fuel, tolls, truck_a, truck_b])
    db.flush()

    driver_a = Driver(
        organization_id=ORG,
        first_name="Tendai",
        last_name="Moyo",
        phone="+263 77 123 4567",
        whatsapp_number="263771234567",
        license_number="LIC-001",
        status="active",
        assigned_truck_id=truck_a.id,
        end_date=datetime(2024, 6, 1),
    )
    driver_b = Driver(
        organization_id=ORG,
        first_name="Rudo",
        last_name="Ncube",
        phone="0771112222",
        license_number="LIC-002",
        status="active",
    )
    customer = Customer(organization_id=ORG, name="Acme Mining", email="accounts@acme.test", address="1 Mine Rd")
    db.add_all([driver_a, driver_b, customer])
    db.flush()

    completed = Trip(
        organization_id=ORG,
        truck_id=truck_a.id,
        driver_id=driver_a.id,
        customer_id=customer.id,
        origin_city="Harare",
        destination_city="Beira",
        revenue=3000,
        estimated_mileage=560,
        actual_mileage=580,
        status="completed",
        scheduled_date=datetime(2024, 5, 2, 6, 0),
        start_date=datetime(2024, 5, 2, 6, 30),
        end_date=datetime(2024, 5, 3, 4, 0),
    )
    in_progress = Trip(
        organization_id=ORG,
        truck_id=truck_a.id,
        driver_id=driver_a.id,
        origin_city="Beira",
        destination_city="Harare",
        revenue=2500,
        estimated_mileage=560,
        status="in_progress",
        scheduled_date=datetime(2024, 5, 14, 7, 0),
    )
    today = Trip(
        organization_id=ORG,
        truck_id=truck_b.id,
        driver_id=driver_b.id,
        customer_id=customer.id,
        origin_city="Bulawayo",
        destination_city="Gweru",
        revenue=900,
        estimated_mileage=165,
        status="scheduled",
        scheduled_date=datetime(2024, 5, 15, 14, 0),
    )
    old = Trip(
        organization_id=ORG,
        truck_id=truck_b.id,
        driver_id=driver_b.id,
        origin_city="Mutare",
        destination_city="Harare",
        revenue=1200,
        estimated_mileage=260,
        status="completed",
        scheduled_date=datetime(2023, 12, 10, 6, 0),
        end_date=datetime(2023, 12, 10, 18, 0),
    )
    db.add_all([completed, in_progress, today, old])
    db.flush()

    expenses = [
        Expense(organization_id=ORG, category_id=fuel.id, truck_id=truck_a.id, trip_id=completed.id,
                amount=800, date=datetime(2024, 5, 2, 9, 0), description="Diesel"),
        Expense(organization_id=ORG, category_id=tolls.id, truck_id=truck_a.id, trip_id=completed.id,
                amount=50, date=datetime(2024, 5, 2, 12, 0), description="Tollgate"),
        Expense(organization_id=ORG, category_id=fuel.id, truck_id=truck_a.id,
                amount=150, date=datetime(2024, 5, 10, 9, 0), description="Service top-up"),
        Expense(organization_id=ORG, category_id=fuel.id, truck_id=truck_b.id, trip_id=old.id,
                amount=300, date=datetime(2023, 12, 10, 9, 0), description="Diesel"),
    ]
    db.add_all(expenses)

    paid = Invoice(
        organization_id=ORG, invoice_number="INV-0001", customer_id=customer.id, trip_id=old.id,
        issue_date=datetime(2023, 12, 11), due_date=datetime(2024, 1, 10),
        subtotal=1200, total=1200, amount_paid=1200, balance=0, status="paid",
    )
    overdue = Invoice(
        organization_id=ORG, invoice_number="INV-0002", customer_id=customer.id, trip_id=completed.id,
        issue_date=datetime(2024, 5, 3), due_date=datetime(2024, 5, 10),
        subtotal=3000, total=3000, amount_paid=1000, balance=2000, status="partial",
    )
    draft = Invoice(
        organization_id=ORG, invoice_number="INV-0003", customer_id=customer.id,
        issue_date=datetime(2024, 5, 14), due_date=datetime(2024, 6, 13),
        subtotal=900, total=900, amount_paid=0, balance=900, status="draft",
    )
    db.add_all([paid, overdue, draft])
    db.flush()

    db.add_all(
        [
            Payment(organization_id=ORG, invoice_id=paid.id, customer_id=customer.id, amount=1200,
                    method="bank_transfer", payment_date=datetime(2023, 12, 20), reference="EFT-77"),
            Payment(organization_id=ORG, invoice_id=overdue.id, customer_id=customer.id, amount=1000,
                    method="cash", payment_date=datetime(2024, 5, 8)),
        ]
    )

    # noise from another organization
    stranger = Truck(organization_id=OTHER_ORG, registration_no="OTH-0001", make="MAN", model="TGX", status="active")
    db.add(stranger)

    admin = User(organization_id=ORG, email="admin@wd.test", name="Admin", role="admin",
                 password_hash=hash_password("correct horse", rounds=4))
    staff = User(organization_id=ORG, email="staff@wd.test", name="Staff", role="staff",
                 password_hash=hash_password("battery staple", rounds=4))
    db.add_all([admin, staff])
    db.commit()

    return SimpleNamespace(
        trucks=(truck_a, truck_b),
        drivers=(driver_a, driver_b),
        customer=customer,
        trips=SimpleNamespace(completed=completed, in_progress=in_progress, today=today, old=old),
        invoices=SimpleNamespace(paid=paid, overdue=overdue, draft=draft),
        users=SimpleNamespace(admin=admin, staff=staff),
        categories=SimpleNamespace(fuel=fuel, tolls=tolls),
        expenses=expenses,
    )


def login(client, email, password):
    return client.post(
        "/auth/login",
        data={"email": email, "password": password},
        follow_redirects=False,
    )


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[request_now] = lambda: NOW
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin(client, fleet):
    assert login(client, "admin@wd.test", "correct horse").status_code == 303
    return client


@pytest.fixture
def staff(client, fleet):
    assert login(client, "staff@wd.test", "battery staple").status_code == 303
    return client

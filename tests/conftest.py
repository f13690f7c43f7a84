"""Pytest configuration and fixtures."""

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from loan_servicing.models.base import Address
from loan_servicing.models.loan import Customer, EmploymentStatus, Loan
from loan_servicing.service import LoanServicingService
from loan_servicing.store import InMemoryServicingStore


class TickingClock:
    """Deterministic clock that advances one second per reading."""

    def __init__(self, start: datetime = datetime(2025, 1, 31, 9, 0, 0)) -> None:
        self.now = start

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


def make_customer(customer_id: str = "cust-001") -> Customer:
    return Customer(
        customer_id=customer_id,
        first_name="Dana",
        last_name="Reyes",
        email="dana.reyes@example.com",
        phone="+1-555-0100",
        address=Address(
            street="12 Elm Street",
            city="Springfield",
            state="IL",
            postal_code="62701",
        ),
        annual_income=Decimal("85000"),
        employment_status=EmploymentStatus.EMPLOYED,
        credit_score=720,
        created_at=datetime(2024, 6, 1, 12, 0, 0),
    )


@pytest.fixture
def seed() -> int:
    """Fixed seed for reproducible tests."""
    return 42


@pytest.fixture
def clock() -> TickingClock:
    """Clock starting at 2025-01-31 09:00:00."""
    return TickingClock()


@pytest.fixture
def store() -> InMemoryServicingStore:
    """Create a fresh store for each test."""
    return InMemoryServicingStore()


@pytest.fixture
def service(store: InMemoryServicingStore, clock: TickingClock) -> LoanServicingService:
    """Servicing service over the in-memory store."""
    return LoanServicingService(store, clock=clock)


@pytest.fixture
def customer(service: LoanServicingService) -> Customer:
    """Registered borrower."""
    return service.register_customer(make_customer())


@pytest.fixture
def loan(service: LoanServicingService, customer: Customer) -> Loan:
    """$100,000 at 6% over 360 months."""
    return service.create_loan(
        customer_id=customer.customer_id,
        principal=Decimal("100000"),
        interest_rate=Decimal("6.0"),
        term_months=360,
        start_date=date(2025, 1, 1),
        loan_id="loan-001",
    )

"""Borrower model."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from loan_servicing.models.base import Address
from loan_servicing.models.loan.enums import EmploymentStatus


@dataclass
class Customer:
    """Borrower of one or more serviced loans."""

    customer_id: str
    first_name: str
    last_name: str
    email: str
    phone: str
    address: Address
    annual_income: Decimal
    employment_status: EmploymentStatus
    credit_score: int  # 300-850
    created_at: datetime
    updated_at: datetime | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

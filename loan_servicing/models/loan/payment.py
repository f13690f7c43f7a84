"""Payment and payment-audit models."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from loan_servicing.models.loan.enums import PaymentAuditAction, PaymentStatus

ZERO = Decimal("0")


@dataclass
class PaymentAllocation:
    """How a payment amount was split across buckets."""

    interest: Decimal = ZERO
    principal: Decimal = ZERO
    fees: Decimal = ZERO
    penalties: Decimal = ZERO
    escrow: Decimal = ZERO
    late_fees: Decimal = ZERO
    other_fees: Decimal = ZERO

    @property
    def total_fees(self) -> Decimal:
        return self.fees + self.late_fees + self.other_fees


@dataclass
class Payment:
    """Loan payment. Payments are soft-deleted, never removed."""

    payment_id: str
    loan_id: str
    payment_number: int  # Per loan, counting soft-deleted payments
    payment_date: date
    amount: Decimal
    allocation: PaymentAllocation
    status: PaymentStatus
    payment_method: str
    created_by: str
    reference: str | None = None
    notes: str | None = None
    is_deleted: bool = False
    overpayment: Decimal | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    updated_by: str | None = None

    @property
    def counts_toward_balance(self) -> bool:
        return self.status == PaymentStatus.COMPLETED and not self.is_deleted


@dataclass
class FieldChange:
    """Single field difference recorded in a payment audit entry."""

    field: str
    old_value: Any
    new_value: Any


@dataclass
class PaymentAuditEntry:
    """Audit trail record for a payment mutation."""

    audit_id: str
    payment_id: str
    action: PaymentAuditAction
    timestamp: datetime
    performed_by: str
    reason: str | None = None
    field_changes: list[FieldChange] = field(default_factory=list)

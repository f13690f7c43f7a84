"""Loan and loan-parameter models."""

from dataclasses import dataclass, fields
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping

from loan_servicing.models.base import to_date, to_decimal, to_int
from loan_servicing.models.loan.enums import (
    DayCountConvention,
    InterestType,
    LoanStatus,
    LoanType,
    PaymentFrequency,
    RoundingMethod,
)

# camelCase keys used by stored records and RESTRUCTURE snapshots
_MAPPING_ALIASES = {
    "interestRate": "interest_rate",
    "annualInterestRate": "interest_rate",
    "termMonths": "term_months",
    "startDate": "start_date",
    "paymentFrequency": "payment_frequency",
    "interestType": "interest_type",
    "calendarType": "day_count",
    "dayCountConvention": "day_count",
    "roundingMethod": "rounding_method",
    "paymentDueDay": "payment_due_day",
    "monthlyPayment": "monthly_payment",
    "temporaryPaymentAmount": "temporary_payment_amount",
    "temporaryPaymentTerms": "temporary_payment_terms",
    "temporaryInterestHandling": "temporary_interest_handling",
    "balloonPayment": "balloon_payment",
    "balloonDueDate": "balloon_due_date",
    "balloonReamortization": "balloon_reamortization",
    "forbearanceEndDate": "forbearance_end_date",
    "forbearanceType": "forbearance_type",
    "defermentEndDate": "deferment_end_date",
    "defermentReason": "deferment_reason",
    "interestSubsidy": "interest_subsidy",
}

_DECIMAL_FIELDS = frozenset(
    {"principal", "interest_rate", "monthly_payment", "temporary_payment_amount", "balloon_payment"}
)
_INT_FIELDS = frozenset({"term_months", "payment_due_day", "temporary_payment_terms"})
_DATE_FIELDS = frozenset({"start_date", "balloon_due_date", "forbearance_end_date", "deferment_end_date"})
_ENUM_FIELDS = {
    "payment_frequency": PaymentFrequency,
    "interest_type": InterestType,
    "day_count": DayCountConvention,
    "rounding_method": RoundingMethod,
}

BALLOON_FIELDS = ("balloon_payment", "balloon_due_date", "balloon_reamortization")


@dataclass(frozen=True)
class LoanParameters:
    """Loan terms at a point in the modification history.

    The same shape serves as the baseline captured at origination and as
    the effective parameters derived by replaying the ledger. Instances
    are frozen; every modification step produces a new one via
    ``dataclasses.replace``.
    """

    principal: Decimal
    interest_rate: Decimal  # Annual percent (e.g., 6.5 for 6.5%)
    term_months: int
    start_date: date | None = None
    payment_frequency: PaymentFrequency = PaymentFrequency.MONTHLY
    interest_type: InterestType = InterestType.AMORTIZED
    day_count: DayCountConvention = DayCountConvention.THIRTY_360
    rounding_method: RoundingMethod = RoundingMethod.HALF_UP
    payment_due_day: int = 1

    # Set by payment modifications
    monthly_payment: Decimal | None = None
    temporary_payment_amount: Decimal | None = None
    temporary_payment_terms: int | None = None
    temporary_interest_handling: str | None = None

    # Balloon
    balloon_payment: Decimal | None = None
    balloon_due_date: date | None = None
    balloon_reamortization: str | None = None

    # Forbearance / deferment overlays
    forbearance_end_date: date | None = None
    forbearance_type: str | None = None
    deferment_end_date: date | None = None
    deferment_reason: str | None = None
    interest_subsidy: bool | None = None

    @property
    def has_balloon(self) -> bool:
        return self.balloon_payment is not None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "LoanParameters":
        """Build parameters from a snake_case or camelCase mapping.

        Unknown keys are ignored and missing optional keys take their
        defaults, so partial snapshots (e.g. a restructure projection that
        only carries principal, rate and term) are accepted as-is.
        """
        known = {f.name for f in fields(cls)}
        values: dict[str, Any] = {}
        for key, value in data.items():
            name = _MAPPING_ALIASES.get(key, key)
            if name not in known or value is None:
                continue
            values[name] = _coerce(name, value)

        missing = [name for name in ("principal", "interest_rate", "term_months") if name not in values]
        if missing:
            raise ValueError(f"Loan parameters missing required fields: {', '.join(missing)}")
        return cls(**values)


def _coerce(name: str, value: Any) -> Any:
    if name in _DECIMAL_FIELDS:
        return to_decimal(value)
    if name in _INT_FIELDS:
        return to_int(value)
    if name in _DATE_FIELDS:
        return to_date(value)
    if name in _ENUM_FIELDS:
        return _ENUM_FIELDS[name](value)
    if name == "interest_subsidy":
        return bool(value)
    return value


LoanBaseline = LoanParameters
EffectiveLoanParameters = LoanParameters


@dataclass
class Loan:
    """Serviced loan with its captured baseline and current terms."""

    loan_id: str
    customer_id: str
    parameters: LoanParameters  # Current effective terms
    baseline: LoanParameters | None  # None only for legacy records
    status: LoanStatus = LoanStatus.ACTIVE
    loan_type: LoanType = LoanType.PERSONAL
    purpose: str = "OTHER"
    application_date: date | None = None
    current_balance: Decimal | None = None  # Cached projection of payments
    status_change_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

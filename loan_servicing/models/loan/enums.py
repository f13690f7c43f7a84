"""Enumeration types for loan-servicing entities."""

from decimal import (
    ROUND_DOWN,
    ROUND_HALF_DOWN,
    ROUND_HALF_EVEN,
    ROUND_HALF_UP,
    ROUND_UP,
)
from enum import Enum


class EmploymentStatus(str, Enum):
    EMPLOYED = "EMPLOYED"
    SELF_EMPLOYED = "SELF_EMPLOYED"
    RETIRED = "RETIRED"
    STUDENT = "STUDENT"


class ModificationType(str, Enum):
    RATE_CHANGE = "RATE_CHANGE"
    TERM_EXTENSION = "TERM_EXTENSION"
    PRINCIPAL_REDUCTION = "PRINCIPAL_REDUCTION"
    PAYMENT_REDUCTION_TEMPORARY = "PAYMENT_REDUCTION_TEMPORARY"
    PAYMENT_REDUCTION_PERMANENT = "PAYMENT_REDUCTION_PERMANENT"
    BALLOON_PAYMENT_ASSIGNMENT = "BALLOON_PAYMENT_ASSIGNMENT"
    BALLOON_PAYMENT_REMOVAL = "BALLOON_PAYMENT_REMOVAL"
    FORBEARANCE = "FORBEARANCE"
    DEFERMENT = "DEFERMENT"
    REAMORTIZATION = "REAMORTIZATION"
    RESTRUCTURE = "RESTRUCTURE"
    REVERSAL = "REVERSAL"


class ModificationStatus(str, Enum):
    ACTIVE = "ACTIVE"
    REVERSED = "REVERSED"
    SUPERSEDED = "SUPERSEDED"


class LoanStatus(str, Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    PAID_OFF = "PAID_OFF"
    DEFAULTED = "DEFAULTED"
    CLOSED = "CLOSED"


class LoanType(str, Enum):
    PERSONAL = "PERSONAL"
    AUTO = "AUTO"
    MORTGAGE = "MORTGAGE"
    BUSINESS = "BUSINESS"
    STUDENT = "STUDENT"


class PaymentStatus(str, Enum):
    COMPLETED = "COMPLETED"
    PENDING = "PENDING"
    FAILED = "FAILED"
    REVERSED = "REVERSED"
    PARTIAL = "PARTIAL"
    DELETED = "DELETED"


class PaymentAuditAction(str, Enum):
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    DELETED = "DELETED"


class PaymentFrequency(str, Enum):
    MONTHLY = "monthly"
    BI_WEEKLY = "bi-weekly"
    WEEKLY = "weekly"

    @classmethod
    def _missing_(cls, value: object) -> "PaymentFrequency | None":
        # Origination forms send "MONTHLY", "BI_WEEKLY", ...
        if isinstance(value, str):
            normalized = value.strip().lower().replace("_", "-")
            for member in cls:
                if member.value == normalized:
                    return member
        return None


class InterestType(str, Enum):
    AMORTIZED = "amortized"
    SIMPLE = "simple"


class DayCountConvention(str, Enum):
    THIRTY_360 = "30/360"
    ACTUAL_360 = "actual/360"
    ACTUAL_365 = "actual/365"
    ACTUAL_ACTUAL = "actual/actual"

    @classmethod
    def _missing_(cls, value: object) -> "DayCountConvention | None":
        if not isinstance(value, str):
            return None
        normalized = _CALENDAR_ALIASES.get(value.strip().upper(), value.strip().lower())
        for member in cls:
            if member.value == normalized:
                return member
        return None


_CALENDAR_ALIASES = {
    "THIRTY_360": "30/360",
    "ACTUAL_360": "actual/360",
    "ACTUAL_365": "actual/365",
    "ACTUAL_ACTUAL": "actual/actual",
}


class RoundingMethod(str, Enum):
    HALF_UP = "HALF_UP"
    HALF_DOWN = "HALF_DOWN"
    UP = "UP"
    DOWN = "DOWN"
    BANKERS = "BANKERS"

    @classmethod
    def _missing_(cls, value: object) -> "RoundingMethod | None":
        # Accepts the ROUND_* spelling of the decimal module as well
        if not isinstance(value, str):
            return None
        name = value.strip().upper()
        if name == "ROUND_HALF_EVEN":
            return cls.BANKERS
        name = name.removeprefix("ROUND_")
        return cls.__members__.get(name)

    @property
    def decimal_rounding(self) -> str:
        """The ``decimal`` module rounding constant for this method."""
        return _DECIMAL_ROUNDING[self]


_DECIMAL_ROUNDING = {
    RoundingMethod.HALF_UP: ROUND_HALF_UP,
    RoundingMethod.HALF_DOWN: ROUND_HALF_DOWN,
    RoundingMethod.UP: ROUND_UP,
    RoundingMethod.DOWN: ROUND_DOWN,
    RoundingMethod.BANKERS: ROUND_HALF_EVEN,
}

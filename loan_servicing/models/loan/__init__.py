"""Loan-servicing domain models."""

from loan_servicing.models.loan.customer import Customer
from loan_servicing.models.loan.enums import (
    DayCountConvention,
    EmploymentStatus,
    InterestType,
    LoanStatus,
    LoanType,
    ModificationStatus,
    ModificationType,
    PaymentAuditAction,
    PaymentFrequency,
    PaymentStatus,
    RoundingMethod,
)
from loan_servicing.models.loan.loan import (
    EffectiveLoanParameters,
    Loan,
    LoanBaseline,
    LoanParameters,
)
from loan_servicing.models.loan.modification import (
    BalloonAssignment,
    BalloonRemoval,
    Deferment,
    Forbearance,
    ModificationEntry,
    ModificationPayload,
    PermanentPaymentReduction,
    PrincipalReduction,
    RateChange,
    Reamortization,
    Restructure,
    Reversal,
    TemporaryPaymentReduction,
    TermExtension,
    UnknownPayload,
    parse_payload,
)
from loan_servicing.models.loan.payment import (
    FieldChange,
    Payment,
    PaymentAllocation,
    PaymentAuditEntry,
)

__all__ = [
    "BalloonAssignment",
    "BalloonRemoval",
    "Customer",
    "DayCountConvention",
    "Deferment",
    "EffectiveLoanParameters",
    "EmploymentStatus",
    "FieldChange",
    "Forbearance",
    "InterestType",
    "Loan",
    "LoanBaseline",
    "LoanParameters",
    "LoanStatus",
    "LoanType",
    "ModificationEntry",
    "ModificationPayload",
    "ModificationStatus",
    "ModificationType",
    "Payment",
    "PaymentAllocation",
    "PaymentAuditAction",
    "PaymentAuditEntry",
    "PaymentFrequency",
    "PaymentStatus",
    "PermanentPaymentReduction",
    "PrincipalReduction",
    "RateChange",
    "Reamortization",
    "Restructure",
    "Reversal",
    "RoundingMethod",
    "TemporaryPaymentReduction",
    "TermExtension",
    "UnknownPayload",
    "parse_payload",
]

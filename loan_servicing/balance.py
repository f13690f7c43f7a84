"""Outstanding-balance projection from payment history."""

from decimal import Decimal
from typing import Iterable

from loan_servicing.models.loan import Payment


def principal_paid(payments: Iterable[Payment]) -> Decimal:
    """Principal portion of completed, non-deleted payments."""
    return sum(
        (p.allocation.principal for p in payments if p.counts_toward_balance),
        Decimal("0"),
    )


def current_balance(principal: Decimal, payments: Iterable[Payment]) -> Decimal:
    """Baseline principal less the principal repaid by ``payments``.

    Soft-deleted payments and payments in any status other than COMPLETED
    are ignored, whatever the caller passes in.
    """
    return principal - principal_paid(payments)

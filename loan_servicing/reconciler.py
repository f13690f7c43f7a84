"""Derive effective loan parameters by replaying the modification ledger."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime
from typing import Callable, Iterable

from dateutil.relativedelta import relativedelta

from loan_servicing.exceptions import EntityNotFoundError
from loan_servicing.ledger import ModificationLedger
from loan_servicing.models.loan import (
    BalloonAssignment,
    BalloonRemoval,
    Deferment,
    EffectiveLoanParameters,
    Forbearance,
    Loan,
    LoanBaseline,
    ModificationEntry,
    ModificationPayload,
    PermanentPaymentReduction,
    PrincipalReduction,
    RateChange,
    Reamortization,
    Restructure,
    TemporaryPaymentReduction,
    TermExtension,
)
from loan_servicing.models.loan.loan import BALLOON_FIELDS
from loan_servicing.store.base import LoanStore

logger = logging.getLogger(__name__)

Step = Callable[[EffectiveLoanParameters, ModificationPayload, date], EffectiveLoanParameters]


def _rate_change(params: EffectiveLoanParameters, change: RateChange, applied_on: date) -> EffectiveLoanParameters:
    if change.new_rate is None:
        return params
    return replace(params, interest_rate=change.new_rate)


def _term_extension(
    params: EffectiveLoanParameters, change: TermExtension, applied_on: date
) -> EffectiveLoanParameters:
    if not change.additional_months:
        return params
    return replace(params, term_months=params.term_months + change.additional_months)


def _principal_reduction(
    params: EffectiveLoanParameters, change: PrincipalReduction, applied_on: date
) -> EffectiveLoanParameters:
    if not change.reduction_amount:
        return params
    return replace(params, principal=params.principal - change.reduction_amount)


def _temporary_payment(
    params: EffectiveLoanParameters, change: TemporaryPaymentReduction, applied_on: date
) -> EffectiveLoanParameters:
    # Advisory overlay only: principal, rate and term stay untouched.
    if change.new_payment_amount is None:
        return params
    return replace(
        params,
        temporary_payment_amount=change.new_payment_amount,
        temporary_payment_terms=change.number_of_terms,
        temporary_interest_handling=change.interest_handling,
    )


def _permanent_payment(
    params: EffectiveLoanParameters, change: PermanentPaymentReduction, applied_on: date
) -> EffectiveLoanParameters:
    if change.new_payment_amount is None:
        return params
    params = replace(params, monthly_payment=change.new_payment_amount)
    if change.new_term_months:
        params = replace(params, term_months=change.new_term_months)
    return params


def _balloon_assignment(
    params: EffectiveLoanParameters, change: BalloonAssignment, applied_on: date
) -> EffectiveLoanParameters:
    if change.balloon_amount is None:
        return params
    return replace(
        params,
        balloon_payment=change.balloon_amount,
        balloon_due_date=change.balloon_due_date,
        balloon_reamortization=change.reamortization_start_type,
    )


def _balloon_removal(
    params: EffectiveLoanParameters, change: BalloonRemoval, applied_on: date
) -> EffectiveLoanParameters:
    params = replace(params, **{name: None for name in BALLOON_FIELDS})
    if change.new_term_months:
        params = replace(params, term_months=change.new_term_months)
    if change.new_payment_amount is not None:
        params = replace(params, monthly_payment=change.new_payment_amount)
    return params


def _forbearance(params: EffectiveLoanParameters, change: Forbearance, applied_on: date) -> EffectiveLoanParameters:
    if not change.duration_months:
        return params
    return replace(
        params,
        forbearance_end_date=applied_on + relativedelta(months=change.duration_months),
        forbearance_type=change.forbearance_type,
    )


def _deferment(params: EffectiveLoanParameters, change: Deferment, applied_on: date) -> EffectiveLoanParameters:
    if not change.duration_months:
        return params
    return replace(
        params,
        deferment_end_date=applied_on + relativedelta(months=change.duration_months),
        deferment_reason=change.eligibility_reason,
        interest_subsidy=change.interest_subsidy,
    )


def _reamortization(
    params: EffectiveLoanParameters, change: Reamortization, applied_on: date
) -> EffectiveLoanParameters:
    if change.new_term_months:
        params = replace(params, term_months=change.new_term_months)
    if change.new_interest_rate is not None:
        params = replace(params, interest_rate=change.new_interest_rate)
    return params


def _restructure(params: EffectiveLoanParameters, change: Restructure, applied_on: date) -> EffectiveLoanParameters:
    # A precomputed projection is the whole package's result.
    if change.projected_parameters is not None:
        return change.projected_parameters
    for nested in change.modifications:
        params = apply_payload(params, nested, applied_on)
    return params


STEPS: dict[type[ModificationPayload], Step] = {
    RateChange: _rate_change,
    TermExtension: _term_extension,
    PrincipalReduction: _principal_reduction,
    TemporaryPaymentReduction: _temporary_payment,
    PermanentPaymentReduction: _permanent_payment,
    BalloonAssignment: _balloon_assignment,
    BalloonRemoval: _balloon_removal,
    Forbearance: _forbearance,
    Deferment: _deferment,
    Reamortization: _reamortization,
    Restructure: _restructure,
}


def apply_payload(
    params: EffectiveLoanParameters,
    payload: ModificationPayload,
    applied_on: date,
    entry_id: str | None = None,
) -> EffectiveLoanParameters:
    """Apply a single modification payload; unknown payloads are skipped."""
    step = STEPS.get(type(payload))
    if step is None:
        logger.warning(
            "Unknown modification type %s; skipping",
            getattr(payload, "type_name", type(payload).__name__),
            extra={"event": "UnknownModificationType", "entry_id": entry_id},
        )
        return params
    return step(params, payload, applied_on)


def fold(
    baseline: LoanBaseline,
    entries: Iterable[ModificationEntry],
    clock: Callable[[], datetime] = datetime.now,
) -> EffectiveLoanParameters:
    """Replay ``entries`` in order over ``baseline``.

    Forbearance and deferment end dates are anchored on each entry's own
    timestamp, so replaying the same entries always yields the same dates.
    """
    params = baseline
    for entry in entries:
        applied_on = (entry.created_at or clock()).date()
        params = apply_payload(params, entry.payload, applied_on, entry.entry_id)
    return params


class ParameterReconciler:
    """Recompute a loan's effective parameters from baseline + ledger.

    Parameters
    ----------
    loans : LoanStore
        Store holding the loan records.
    ledger : ModificationLedger
        Ledger providing the loan's entries.
    """

    def __init__(self, loans: LoanStore, ledger: ModificationLedger) -> None:
        self.loans = loans
        self.ledger = ledger

    def resolve_baseline(self, loan: Loan) -> LoanBaseline:
        """Stored baseline, or current parameters as a degraded fallback."""
        if loan.baseline is not None:
            return loan.baseline
        logger.warning(
            "Original loan parameters not found for loan %s, using current as baseline",
            loan.loan_id,
            extra={"event": "MissingBaseline", "loan_id": loan.loan_id},
        )
        return loan.parameters

    def derive(self, loan: Loan) -> EffectiveLoanParameters:
        """Effective parameters for ``loan`` without persisting them."""
        baseline = self.resolve_baseline(loan)
        return fold(baseline, self.ledger.active_entries(loan.loan_id), self.ledger.clock)

    def recompute(self, loan_id: str) -> EffectiveLoanParameters:
        """Re-derive and persist the effective parameters of a loan."""
        loan = self.loans.get_loan(loan_id)
        if loan is None:
            raise EntityNotFoundError(f"Loan {loan_id} not found")

        params = self.derive(loan)
        if params != loan.parameters:
            loan.parameters = params
            loan.updated_at = self.ledger.clock()
            self.loans.save_loan(loan)
            logger.info("Recomputed parameters for loan %s", loan_id)
        return params

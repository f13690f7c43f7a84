"""Loan-servicing facade: ledger writes, reconciliation and payments."""

from __future__ import annotations

import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Iterator, Mapping

from loan_servicing.balance import current_balance
from loan_servicing.config import LedgerConfig, ServicingConfig
from loan_servicing.exceptions import EntityNotFoundError, InvalidEntityStateError
from loan_servicing.ledger import ModificationLedger
from loan_servicing.logging import get_logger
from loan_servicing.models.loan import (
    Customer,
    DayCountConvention,
    EffectiveLoanParameters,
    InterestType,
    Loan,
    LoanParameters,
    LoanStatus,
    LoanType,
    ModificationEntry,
    ModificationType,
    Payment,
    PaymentAllocation,
    PaymentAuditEntry,
    PaymentFrequency,
    PaymentStatus,
    Reversal,
    RoundingMethod,
)
from loan_servicing.payments import PaymentBook
from loan_servicing.reconciler import ParameterReconciler
from loan_servicing.store.base import ServicingStore

logger = logging.getLogger(__name__)

EDIT_REVERSAL_REASON = "Automatically reversed due to modification edit"


class LoanServicingService:
    """Entry point for modification, reversal and payment operations.

    Every write follows the same sequence at the call site: append to the
    ledger (or payment book), then recompute the derived state. Writes to
    one loan are serialized by a per-loan lock so concurrent callers cannot
    interleave "append + reconcile".

    Parameters
    ----------
    store : ServicingStore
        Persistence backend.
    clock : Callable[[], datetime] | None
        Source of "now"; defaults to ``datetime.now``.
    config : ServicingConfig | None
        Ledger settings (default actor, id prefix).
    """

    def __init__(
        self,
        store: ServicingStore,
        clock: Callable[[], datetime] | None = None,
        config: ServicingConfig | None = None,
    ) -> None:
        self.store = store
        self.clock = clock or datetime.now
        self.ledger_config = config.ledger if config else LedgerConfig()
        self.ledger = ModificationLedger(store, self.clock, id_prefix=self.ledger_config.id_prefix)
        self.reconciler = ParameterReconciler(store, self.ledger)
        self.payments = PaymentBook(store, store, self.clock)
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _loan_lock(self, loan_id: str) -> Iterator[None]:
        with self._locks_guard:
            lock = self._locks.setdefault(loan_id, threading.Lock())
        with lock:
            yield

    def _require_loan(self, loan_id: str) -> Loan:
        loan = self.store.get_loan(loan_id)
        if loan is None:
            raise EntityNotFoundError(f"Loan {loan_id} not found")
        return loan

    # Loans
    def register_customer(self, customer: Customer) -> Customer:
        self.store.add_customer(customer)
        return customer

    def create_loan(
        self,
        customer_id: str,
        principal: Decimal,
        interest_rate: Decimal,
        term_months: int,
        start_date: date | None = None,
        payment_frequency: PaymentFrequency | str = PaymentFrequency.MONTHLY,
        day_count: DayCountConvention | str = DayCountConvention.THIRTY_360,
        rounding_method: RoundingMethod | str = RoundingMethod.HALF_UP,
        interest_type: InterestType | str = InterestType.AMORTIZED,
        payment_due_day: int = 1,
        monthly_payment: Decimal | None = None,
        loan_type: LoanType | str = LoanType.PERSONAL,
        purpose: str = "OTHER",
        loan_id: str | None = None,
    ) -> Loan:
        """Originate a loan and capture its baseline.

        Enumerated inputs accept the spellings origination forms send
        (``"BI_WEEKLY"``, ``"ACTUAL_365"``, ``"ROUND_HALF_EVEN"``...).
        """
        now = self.clock()
        parameters = LoanParameters(
            principal=Decimal(str(principal)),
            interest_rate=Decimal(str(interest_rate)),
            term_months=int(term_months),
            start_date=start_date or now.date(),
            payment_frequency=PaymentFrequency(payment_frequency),
            interest_type=InterestType(interest_type),
            day_count=DayCountConvention(day_count),
            rounding_method=RoundingMethod(rounding_method),
            payment_due_day=payment_due_day,
            monthly_payment=monthly_payment,
        )
        loan = Loan(
            loan_id=loan_id or f"loan_{uuid.uuid4().hex}",
            customer_id=customer_id,
            parameters=parameters,
            baseline=parameters,
            status=LoanStatus.ACTIVE,
            loan_type=LoanType(loan_type),
            purpose=purpose,
            application_date=now.date(),
            current_balance=parameters.principal,
            created_at=now,
            updated_at=now,
        )
        self.store.add_loan(loan)
        logger.info("Created loan %s for customer %s", loan.loan_id, customer_id)
        return loan

    def get_loan(self, loan_id: str) -> Loan:
        return self._require_loan(loan_id)

    def update_loan_status(self, loan_id: str, status: LoanStatus | str, reason: str | None = None) -> Loan:
        with self._loan_lock(loan_id):
            loan = self._require_loan(loan_id)
            loan.status = LoanStatus(status)
            loan.status_change_reason = reason
            loan.updated_at = self.clock()
            self.store.save_loan(loan)
            return loan

    # Modifications
    def append_modification(
        self,
        loan_id: str,
        modification_type: ModificationType | str,
        changes: Mapping[str, Any] | None,
        reason: str,
        approver: str | None = None,
    ) -> ModificationEntry:
        """Append a modification and recompute the loan's parameters.

        Raises
        ------
        EntityNotFoundError
            If the loan does not exist.
        InvalidEntityStateError
            If called with REVERSAL; use ``append_reversal``.
        """
        with self._loan_lock(loan_id):
            return self._append_modification(loan_id, modification_type, changes, reason, approver)

    def _append_modification(
        self,
        loan_id: str,
        modification_type: ModificationType | str,
        changes: Mapping[str, Any] | None,
        reason: str,
        approver: str | None,
    ) -> ModificationEntry:
        entry = self._build_modification(loan_id, modification_type, changes, reason, approver)
        stored = self.ledger.append(entry)
        self.reconciler.recompute(loan_id)
        return stored

    def _build_modification(
        self,
        loan_id: str,
        modification_type: ModificationType | str,
        changes: Mapping[str, Any] | None,
        reason: str,
        approver: str | None,
    ) -> ModificationEntry:
        if modification_type == ModificationType.REVERSAL:
            raise InvalidEntityStateError("Reversals must be appended with append_reversal")
        loan = self._require_loan(loan_id)
        entry = ModificationEntry.create(
            loan_id=loan_id,
            modification_type=modification_type,
            changes=changes,
            reason=reason,
            approved_by=approver or self.ledger_config.default_actor,
        )
        self._capture_legacy_baseline(loan)
        return entry

    def append_reversal(
        self,
        loan_id: str,
        target_entry_id: str,
        reason: str,
        actor: str | None = None,
    ) -> ModificationEntry:
        """Reverse a prior modification and replay the remaining ledger.

        Raises
        ------
        EntityNotFoundError
            If the loan does not exist.
        TargetNotFoundError
            If ``target_entry_id`` is not in this loan's ledger.
        AlreadyReversedError
            If the target was already reversed.
        IrreversibleEntryError
            If the target is itself a reversal.
        """
        with self._loan_lock(loan_id):
            stored = self.ledger.append(self._build_reversal(loan_id, target_entry_id, reason, actor))
            self.reconciler.recompute(loan_id)
            return stored

    def _build_reversal(
        self,
        loan_id: str,
        target_entry_id: str,
        reason: str,
        actor: str | None,
    ) -> ModificationEntry:
        self._require_loan(loan_id)
        target = self.ledger.get(target_entry_id)
        return ModificationEntry.create(
            loan_id=loan_id,
            modification_type=ModificationType.REVERSAL,
            changes=Reversal(
                original_modification_id=target_entry_id,
                original_modification_type=target.type_name if target else None,
                reversal_reason=reason,
            ),
            reason=reason,
            approved_by=actor or self.ledger_config.default_actor,
        )

    def amend_modification(
        self,
        loan_id: str,
        entry_id: str,
        modification_type: ModificationType | str,
        changes: Mapping[str, Any] | None,
        reason: str,
        approver: str | None = None,
    ) -> tuple[ModificationEntry, ModificationEntry]:
        """Replace a modification: reverse it, then append the new version.

        The replacement is parsed before anything is written, so a rejected
        replacement leaves the original entry active. Returns the reversal
        entry and the replacement entry.
        """
        with self._loan_lock(loan_id):
            replacement = self._build_modification(loan_id, modification_type, changes, reason, approver)
            reversal = self.ledger.append(self._build_reversal(loan_id, entry_id, EDIT_REVERSAL_REASON, approver))
            replacement = self.ledger.append(replacement)
            self.reconciler.recompute(loan_id)
            return reversal, replacement

    def list_modifications(self, loan_id: str) -> list[ModificationEntry]:
        return self.ledger.list(loan_id)

    def get_effective_parameters(self, loan_id: str) -> EffectiveLoanParameters:
        """Derive the loan's current terms from baseline and ledger."""
        return self.reconciler.derive(self._require_loan(loan_id))

    def _capture_legacy_baseline(self, loan: Loan) -> None:
        if loan.baseline is not None:
            return
        loan_logger = get_logger(__name__, loan.loan_id)
        if self.ledger.active_entries(loan.loan_id):
            # Current parameters already include earlier modifications.
            loan_logger.warning(
                "Loan %s has modifications but no baseline; leaving it unset",
                loan.loan_id,
                extra={"event": "MissingBaseline"},
            )
            return
        loan.baseline = loan.parameters
        self.store.save_loan(loan)
        loan_logger.info("Captured baseline for legacy loan %s", loan.loan_id)

    # Payments and balance
    def get_current_balance(self, loan_id: str) -> Decimal:
        """Baseline principal less principal repaid by completed payments."""
        loan = self._require_loan(loan_id)
        baseline = loan.baseline or loan.parameters
        return current_balance(baseline.principal, self.store.list_payments(loan_id))

    def _refresh_balance(self, loan_id: str) -> Decimal:
        loan = self._require_loan(loan_id)
        balance = self.get_current_balance(loan_id)
        if loan.current_balance != balance:
            loan.current_balance = balance
            loan.updated_at = self.clock()
            self.store.save_loan(loan)
        return balance

    def record_payment(
        self,
        loan_id: str,
        amount: Decimal,
        allocation: PaymentAllocation,
        created_by: str,
        **kwargs: Any,
    ) -> Payment:
        with self._loan_lock(loan_id):
            payment = self.payments.record_payment(loan_id, amount, allocation, created_by, **kwargs)
            if payment.status == PaymentStatus.COMPLETED:
                self._refresh_balance(loan_id)
            return payment

    def update_payment(
        self,
        payment_id: str,
        updates: Mapping[str, Any],
        updated_by: str,
        reason: str | None = None,
    ) -> Payment:
        loan_id = self.payments.get_payment(payment_id).loan_id
        with self._loan_lock(loan_id):
            previous, payment = self.payments.update_payment(payment_id, updates, updated_by, reason)
            if (
                previous.status != payment.status
                or previous.is_deleted != payment.is_deleted
                or previous.allocation != payment.allocation
            ):
                self._refresh_balance(loan_id)
            return payment

    def soft_delete_payment(self, payment_id: str, deleted_by: str, reason: str | None = None) -> Payment:
        loan_id = self.payments.get_payment(payment_id).loan_id
        with self._loan_lock(loan_id):
            payment = self.payments.soft_delete_payment(payment_id, deleted_by, reason)
            self._refresh_balance(loan_id)
            return payment

    def restore_payment(
        self,
        payment_id: str,
        restored_by: str,
        new_status: PaymentStatus | str,
        reason: str | None = None,
    ) -> Payment:
        loan_id = self.payments.get_payment(payment_id).loan_id
        with self._loan_lock(loan_id):
            payment = self.payments.restore_payment(payment_id, restored_by, PaymentStatus(new_status), reason)
            self._refresh_balance(loan_id)
            return payment

    def list_payments(self, loan_id: str, include_deleted: bool = False) -> list[Payment]:
        return self.payments.list_payments(loan_id, include_deleted=include_deleted)

    def payment_audit_trail(self, payment_id: str) -> list[PaymentAuditEntry]:
        return self.payments.audit_trail(payment_id)

    # Maintenance
    def export_data(self) -> dict[str, Any]:
        return self.store.export_data()

    def clear_all_data(self) -> None:
        self.store.clear()
        with self._locks_guard:
            self._locks.clear()

"""Payment book: append-only payments with soft delete and audit trail."""

from __future__ import annotations

import logging
import uuid
from dataclasses import fields, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Mapping

from loan_servicing.exceptions import EntityNotFoundError, InvalidEntityStateError
from loan_servicing.models.loan import (
    FieldChange,
    Payment,
    PaymentAllocation,
    PaymentAuditAction,
    PaymentAuditEntry,
    PaymentStatus,
)
from loan_servicing.store.base import LoanStore, PaymentStore

logger = logging.getLogger(__name__)

# Bookkeeping fields that never show up as audited changes
_UNAUDITED_FIELDS = frozenset({"updated_at", "updated_by"})
_IMMUTABLE_FIELDS = frozenset({"payment_id", "loan_id", "payment_number", "created_at", "created_by"})


class PaymentBook:
    """Record, amend and soft-delete loan payments.

    Parameters
    ----------
    loans : LoanStore
        Store used to validate the owning loan.
    payments : PaymentStore
        Store holding payments and their audit entries.
    clock : Callable[[], datetime] | None
        Source of "now" for timestamps.
    """

    def __init__(
        self,
        loans: LoanStore,
        payments: PaymentStore,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.loans = loans
        self.payments = payments
        self.clock = clock or datetime.now

    def record_payment(
        self,
        loan_id: str,
        amount: Decimal,
        allocation: PaymentAllocation,
        created_by: str,
        payment_date: date | None = None,
        status: PaymentStatus = PaymentStatus.COMPLETED,
        payment_method: str = "ACH",
        reference: str | None = None,
        notes: str | None = None,
        overpayment: Decimal | None = None,
    ) -> Payment:
        """Record a new payment against a loan.

        Returns
        -------
        Payment
            Stored payment with id, per-loan number and timestamps.

        Raises
        ------
        EntityNotFoundError
            If the loan does not exist.
        """
        if self.loans.get_loan(loan_id) is None:
            raise EntityNotFoundError(f"Loan {loan_id} not found")

        now = self.clock()
        existing = self.payments.list_payments(loan_id, include_deleted=True)
        payment = Payment(
            payment_id=f"pmt_{uuid.uuid4().hex}",
            loan_id=loan_id,
            payment_number=len(existing) + 1,
            payment_date=payment_date or now.date(),
            amount=amount,
            allocation=allocation,
            status=status,
            payment_method=payment_method,
            created_by=created_by,
            reference=reference,
            notes=notes,
            overpayment=overpayment,
            created_at=now,
            updated_at=now,
        )
        self.payments.add_payment(payment)
        self._audit(payment.payment_id, PaymentAuditAction.CREATED, created_by, "Payment created")
        logger.info("Recorded payment %s #%d on loan %s", payment.payment_id, payment.payment_number, loan_id)
        return payment

    def get_payment(self, payment_id: str) -> Payment:
        payment = self.payments.get_payment(payment_id)
        if payment is None:
            raise EntityNotFoundError(f"Payment {payment_id} not found")
        return payment

    def update_payment(
        self,
        payment_id: str,
        updates: Mapping[str, Any],
        updated_by: str,
        reason: str | None = None,
        action: PaymentAuditAction = PaymentAuditAction.UPDATED,
    ) -> tuple[Payment, Payment]:
        """Apply ``updates`` to a payment and audit the changed fields.

        Returns the payment before and after the update.
        """
        existing = self.get_payment(payment_id)
        known = {f.name for f in fields(Payment)}
        unknown = set(updates) - known
        if unknown:
            raise ValueError(f"Unknown payment fields: {', '.join(sorted(unknown))}")
        frozen = set(updates) & _IMMUTABLE_FIELDS
        if frozen:
            raise InvalidEntityStateError(f"Payment fields cannot be changed: {', '.join(sorted(frozen))}")

        changes = [
            FieldChange(field=name, old_value=getattr(existing, name), new_value=value)
            for name, value in updates.items()
            if name not in _UNAUDITED_FIELDS and getattr(existing, name) != value
        ]
        values = {**updates, "updated_at": self.clock(), "updated_by": updated_by}
        updated = replace(existing, **values)
        self.payments.save_payment(updated)
        self._audit(payment_id, action, updated_by, reason, changes)
        return existing, updated

    def soft_delete_payment(self, payment_id: str, deleted_by: str, reason: str | None = None) -> Payment:
        """Flag a payment deleted; it stays in storage and in the audit trail."""
        _, payment = self.update_payment(
            payment_id,
            {"is_deleted": True, "status": PaymentStatus.DELETED},
            deleted_by,
            reason,
            action=PaymentAuditAction.DELETED,
        )
        return payment

    def restore_payment(
        self,
        payment_id: str,
        restored_by: str,
        new_status: PaymentStatus,
        reason: str | None = None,
    ) -> Payment:
        """Undo a soft delete, giving the payment ``new_status``."""
        if not self.get_payment(payment_id).is_deleted:
            raise InvalidEntityStateError(f"Payment {payment_id} is not deleted")
        _, payment = self.update_payment(
            payment_id,
            {"is_deleted": False, "status": new_status},
            restored_by,
            reason,
        )
        return payment

    def list_payments(self, loan_id: str, include_deleted: bool = False) -> list[Payment]:
        return self.payments.list_payments(loan_id, include_deleted=include_deleted)

    def audit_trail(self, payment_id: str) -> list[PaymentAuditEntry]:
        """Audit entries for a payment, newest first."""
        entries = list(enumerate(self.payments.list_audit_entries(payment_id)))
        entries.sort(key=lambda item: (item[1].timestamp, item[0]), reverse=True)
        return [entry for _, entry in entries]

    def _audit(
        self,
        payment_id: str,
        action: PaymentAuditAction,
        performed_by: str,
        reason: str | None,
        changes: list[FieldChange] | None = None,
    ) -> None:
        self.payments.add_audit_entry(
            PaymentAuditEntry(
                audit_id=f"audit_{uuid.uuid4().hex}",
                payment_id=payment_id,
                action=action,
                timestamp=self.clock(),
                performed_by=performed_by,
                reason=reason,
                field_changes=changes or [],
            )
        )

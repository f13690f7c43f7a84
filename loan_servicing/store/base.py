"""Persistence ports for the servicing core.

The ledger, reconciler and payment book only talk to these protocols; any
backend with per-key read-your-writes semantics can implement them.
"""

from __future__ import annotations

from typing import Any, Protocol

from loan_servicing.models.loan import (
    Customer,
    Loan,
    ModificationEntry,
    Payment,
    PaymentAuditEntry,
)


class CustomerStore(Protocol):
    def add_customer(self, customer: Customer) -> None: ...

    def get_customer(self, customer_id: str) -> Customer | None: ...


class LoanStore(Protocol):
    def add_loan(self, loan: Loan) -> None: ...

    def get_loan(self, loan_id: str) -> Loan | None: ...

    def save_loan(self, loan: Loan) -> None: ...

    def list_loans(self) -> list[Loan]: ...


class LedgerStore(Protocol):
    def append_entry(self, entry: ModificationEntry, reversed_target: ModificationEntry | None = None) -> None: ...

    def get_entry(self, entry_id: str) -> ModificationEntry | None: ...

    def list_entries(self, loan_id: str) -> list[ModificationEntry]: ...

    def save_entry(self, entry: ModificationEntry) -> None: ...

    def next_sequence(self) -> int: ...


class PaymentStore(Protocol):
    def add_payment(self, payment: Payment) -> None: ...

    def get_payment(self, payment_id: str) -> Payment | None: ...

    def save_payment(self, payment: Payment) -> None: ...

    def list_payments(self, loan_id: str, include_deleted: bool = False) -> list[Payment]: ...

    def add_audit_entry(self, entry: PaymentAuditEntry) -> None: ...

    def list_audit_entries(self, payment_id: str) -> list[PaymentAuditEntry]: ...


class ServicingStore(CustomerStore, LoanStore, LedgerStore, PaymentStore, Protocol):
    """Everything the servicing facade needs from one backend."""

    def clear(self) -> None: ...

    def export_data(self) -> dict[str, Any]: ...

    def summary(self) -> dict[str, int]: ...

"""In-memory servicing store with referential integrity."""

from dataclasses import dataclass, field
from typing import Any

from loan_servicing.exceptions import DuplicateEntryError, EntityNotFoundError, ReferentialIntegrityError
from loan_servicing.models.loan import (
    Customer,
    Loan,
    ModificationEntry,
    Payment,
    PaymentAuditEntry,
)


@dataclass
class InMemoryServicingStore:
    """In-memory store for servicing entities with relationship tracking."""

    # Primary entities
    customers: dict[str, Customer] = field(default_factory=dict)
    loans: dict[str, Loan] = field(default_factory=dict)
    modifications: dict[str, ModificationEntry] = field(default_factory=dict)
    payments: dict[str, Payment] = field(default_factory=dict)

    # Payment audit log (append-only)
    audit_entries: list[PaymentAuditEntry] = field(default_factory=list)

    # Relationship indexes
    _customer_loans: dict[str, list[str]] = field(default_factory=dict)
    _loan_modifications: dict[str, list[str]] = field(default_factory=dict)
    _loan_payments: dict[str, list[str]] = field(default_factory=dict)
    _payment_audit: dict[str, list[int]] = field(default_factory=dict)
    _sequence: int = 0

    def add_customer(self, customer: Customer) -> None:
        """Add a customer to the store."""
        self.customers[customer.customer_id] = customer
        self._customer_loans.setdefault(customer.customer_id, [])

    def get_customer(self, customer_id: str) -> Customer | None:
        return self.customers.get(customer_id)

    def add_loan(self, loan: Loan) -> None:
        """Add a loan to the store."""
        if loan.customer_id not in self.customers:
            raise ReferentialIntegrityError(f"Customer {loan.customer_id} not found")

        self.loans[loan.loan_id] = loan
        self._customer_loans[loan.customer_id].append(loan.loan_id)
        self._loan_modifications[loan.loan_id] = []
        self._loan_payments[loan.loan_id] = []

    def get_loan(self, loan_id: str) -> Loan | None:
        return self.loans.get(loan_id)

    def save_loan(self, loan: Loan) -> None:
        """Persist changes to an existing loan."""
        if loan.loan_id not in self.loans:
            raise EntityNotFoundError(f"Loan {loan.loan_id} not found")
        self.loans[loan.loan_id] = loan

    def list_loans(self) -> list[Loan]:
        return list(self.loans.values())

    def append_entry(self, entry: ModificationEntry, reversed_target: ModificationEntry | None = None) -> None:
        """Append a modification entry to its loan's ledger.

        ``reversed_target`` is an existing entry updated in the same write,
        used when ``entry`` is the reversal that flips it.
        """
        if entry.loan_id not in self.loans:
            raise ReferentialIntegrityError(f"Loan {entry.loan_id} not found")
        if entry.entry_id in self.modifications:
            raise DuplicateEntryError(f"Modification {entry.entry_id} already exists")
        if reversed_target is not None and reversed_target.entry_id not in self.modifications:
            raise EntityNotFoundError(f"Modification {reversed_target.entry_id} not found")

        self.modifications[entry.entry_id] = entry
        self._loan_modifications[entry.loan_id].append(entry.entry_id)
        if reversed_target is not None:
            self.modifications[reversed_target.entry_id] = reversed_target

    def get_entry(self, entry_id: str) -> ModificationEntry | None:
        return self.modifications.get(entry_id)

    def list_entries(self, loan_id: str) -> list[ModificationEntry]:
        """Get all ledger entries for a loan in insertion order."""
        entry_ids = self._loan_modifications.get(loan_id, [])
        return [self.modifications[eid] for eid in entry_ids]

    def save_entry(self, entry: ModificationEntry) -> None:
        if entry.entry_id not in self.modifications:
            raise EntityNotFoundError(f"Modification {entry.entry_id} not found")
        self.modifications[entry.entry_id] = entry

    def next_sequence(self) -> int:
        self._sequence += 1
        return self._sequence

    def add_payment(self, payment: Payment) -> None:
        """Add a payment to the store."""
        if payment.loan_id not in self.loans:
            raise ReferentialIntegrityError(f"Loan {payment.loan_id} not found")

        self.payments[payment.payment_id] = payment
        self._loan_payments[payment.loan_id].append(payment.payment_id)

    def get_payment(self, payment_id: str) -> Payment | None:
        return self.payments.get(payment_id)

    def save_payment(self, payment: Payment) -> None:
        if payment.payment_id not in self.payments:
            raise EntityNotFoundError(f"Payment {payment.payment_id} not found")
        self.payments[payment.payment_id] = payment

    def list_payments(self, loan_id: str, include_deleted: bool = False) -> list[Payment]:
        """Get payments for a loan, hiding soft-deleted ones by default."""
        payment_ids = self._loan_payments.get(loan_id, [])
        payments = [self.payments[pid] for pid in payment_ids]
        if include_deleted:
            return payments
        return [p for p in payments if not p.is_deleted]

    def add_audit_entry(self, entry: PaymentAuditEntry) -> None:
        if entry.payment_id not in self.payments:
            raise ReferentialIntegrityError(f"Payment {entry.payment_id} not found")

        idx = len(self.audit_entries)
        self.audit_entries.append(entry)
        self._payment_audit.setdefault(entry.payment_id, []).append(idx)

    def list_audit_entries(self, payment_id: str) -> list[PaymentAuditEntry]:
        indices = self._payment_audit.get(payment_id, [])
        return [self.audit_entries[i] for i in indices]

    def clear(self) -> None:
        """Drop every entity."""
        self.customers.clear()
        self.loans.clear()
        self.modifications.clear()
        self.payments.clear()
        self.audit_entries.clear()
        self._customer_loans.clear()
        self._loan_modifications.clear()
        self._loan_payments.clear()
        self._payment_audit.clear()
        self._sequence = 0

    def export_data(self) -> dict[str, Any]:
        """Return a JSON-ready snapshot of every entity."""
        from loan_servicing.store.serialization import to_dict

        return {
            "customers": [to_dict(c) for c in self.customers.values()],
            "loans": [to_dict(loan) for loan in self.loans.values()],
            "modifications": [to_dict(m) for m in self.modifications.values()],
            "payments": [to_dict(p) for p in self.payments.values()],
            "payment_audit": [to_dict(a) for a in self.audit_entries],
        }

    def summary(self) -> dict[str, int]:
        """Return summary counts of all entities."""
        return {
            "customers": len(self.customers),
            "loans": len(self.loans),
            "modifications": len(self.modifications),
            "payments": len(self.payments),
            "payment_audit": len(self.audit_entries),
        }

"""JSON file store: durable key-value persistence for the servicing core."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable

from loan_servicing.exceptions import StorageError
from loan_servicing.models.loan import (
    Customer,
    Loan,
    ModificationEntry,
    Payment,
    PaymentAuditEntry,
)
from loan_servicing.store.memory import InMemoryServicingStore
from loan_servicing.store.serialization import (
    audit_entry_from_dict,
    customer_from_dict,
    entry_from_dict,
    loan_from_dict,
    payment_from_dict,
    to_dict,
)

logger = logging.getLogger(__name__)

CUSTOMERS_KEY = "customers"
LOANS_KEY = "loans"
MODIFICATIONS_KEY = "modifications"
PAYMENTS_KEY = "payments"
PAYMENT_AUDIT_KEY = "payment_audit"

DOCUMENT_KEYS = (CUSTOMERS_KEY, LOANS_KEY, MODIFICATIONS_KEY, PAYMENTS_KEY, PAYMENT_AUDIT_KEY)


class JsonFileServicingStore:
    """Persist servicing entities as one JSON document per entity type.

    Reads are served from an in-memory index loaded at start-up. Every
    mutation rewrites the affected document before returning, through a
    temporary file renamed over the original, so a reader never observes
    a partially written document.
    """

    def __init__(self, data_dir: str | Path, pretty: bool = False) -> None:
        """Initialize JSON file store.

        Parameters
        ----------
        data_dir : str | Path
            Directory holding the JSON documents.
        pretty : bool
            Pretty-print JSON output.
        """
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.pretty = pretty
        self._memory = InMemoryServicingStore()
        self._load()

    # Customers
    def add_customer(self, customer: Customer) -> None:
        self._memory.add_customer(customer)
        self._flush(CUSTOMERS_KEY)

    def get_customer(self, customer_id: str) -> Customer | None:
        return self._memory.get_customer(customer_id)

    # Loans
    def add_loan(self, loan: Loan) -> None:
        self._memory.add_loan(loan)
        self._flush(LOANS_KEY)

    def get_loan(self, loan_id: str) -> Loan | None:
        return self._memory.get_loan(loan_id)

    def save_loan(self, loan: Loan) -> None:
        self._memory.save_loan(loan)
        self._flush(LOANS_KEY)

    def list_loans(self) -> list[Loan]:
        return self._memory.list_loans()

    # Ledger
    def append_entry(self, entry: ModificationEntry, reversed_target: ModificationEntry | None = None) -> None:
        self._memory.append_entry(entry, reversed_target)
        self._flush(MODIFICATIONS_KEY)

    def get_entry(self, entry_id: str) -> ModificationEntry | None:
        return self._memory.get_entry(entry_id)

    def list_entries(self, loan_id: str) -> list[ModificationEntry]:
        return self._memory.list_entries(loan_id)

    def save_entry(self, entry: ModificationEntry) -> None:
        self._memory.save_entry(entry)
        self._flush(MODIFICATIONS_KEY)

    def next_sequence(self) -> int:
        return self._memory.next_sequence()

    # Payments
    def add_payment(self, payment: Payment) -> None:
        self._memory.add_payment(payment)
        self._flush(PAYMENTS_KEY)

    def get_payment(self, payment_id: str) -> Payment | None:
        return self._memory.get_payment(payment_id)

    def save_payment(self, payment: Payment) -> None:
        self._memory.save_payment(payment)
        self._flush(PAYMENTS_KEY)

    def list_payments(self, loan_id: str, include_deleted: bool = False) -> list[Payment]:
        return self._memory.list_payments(loan_id, include_deleted=include_deleted)

    def add_audit_entry(self, entry: PaymentAuditEntry) -> None:
        self._memory.add_audit_entry(entry)
        self._flush(PAYMENT_AUDIT_KEY)

    def list_audit_entries(self, payment_id: str) -> list[PaymentAuditEntry]:
        return self._memory.list_audit_entries(payment_id)

    def clear(self) -> None:
        """Remove every document and reset the in-memory index."""
        self._memory.clear()
        for key in DOCUMENT_KEYS:
            self._path(key).unlink(missing_ok=True)

    def export_data(self) -> dict[str, Any]:
        return self._memory.export_data()

    def summary(self) -> dict[str, int]:
        return self._memory.summary()

    def _path(self, key: str) -> Path:
        return self.data_dir / f"{key}.json"

    def _records(self, key: str) -> list[Any]:
        memory = self._memory
        if key == CUSTOMERS_KEY:
            return list(memory.customers.values())
        if key == LOANS_KEY:
            return list(memory.loans.values())
        if key == MODIFICATIONS_KEY:
            return list(memory.modifications.values())
        if key == PAYMENTS_KEY:
            return list(memory.payments.values())
        return list(memory.audit_entries)

    def _flush(self, key: str) -> None:
        """Atomically rewrite the document for ``key``."""
        data = [to_dict(record) for record in self._records(key)]
        path = self._path(key)
        fd, tmp_name = tempfile.mkstemp(dir=self.data_dir, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                if self.pretty:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                else:
                    json.dump(data, f, ensure_ascii=False)
            os.replace(tmp_name, path)
        except OSError as exc:
            Path(tmp_name).unlink(missing_ok=True)
            raise StorageError(f"Failed to write {path}: {exc}") from exc

    def _read(self, key: str) -> list[dict[str, Any]]:
        path = self._path(key)
        if not path.exists():
            return []
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageError(f"Failed to read {path}: {exc}") from exc
        if not isinstance(data, list):
            raise StorageError(f"Expected a JSON array in {path}")
        return data

    def _load(self) -> None:
        loaders: tuple[tuple[str, Callable[[dict[str, Any]], Any], Callable[[Any], None]], ...] = (
            (CUSTOMERS_KEY, customer_from_dict, self._memory.add_customer),
            (LOANS_KEY, loan_from_dict, self._memory.add_loan),
            (MODIFICATIONS_KEY, entry_from_dict, self._memory.append_entry),
            (PAYMENTS_KEY, payment_from_dict, self._memory.add_payment),
            (PAYMENT_AUDIT_KEY, audit_entry_from_dict, self._memory.add_audit_entry),
        )
        for key, decode, add in loaders:
            for record in self._read(key):
                try:
                    add(decode(record))
                except (KeyError, TypeError, ValueError) as exc:
                    raise StorageError(f"Corrupt record in {self._path(key)}: {exc}") from exc

        entries = self._memory.modifications.values()
        self._memory._sequence = max((e.sequence for e in entries), default=0)
        logger.debug("Loaded store from %s: %s", self.data_dir, self._memory.summary())

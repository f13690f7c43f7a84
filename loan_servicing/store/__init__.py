"""Persistence backends for the servicing core."""

from loan_servicing.store.base import LedgerStore, LoanStore, PaymentStore, ServicingStore
from loan_servicing.store.json_file import JsonFileServicingStore
from loan_servicing.store.memory import InMemoryServicingStore

__all__ = [
    "InMemoryServicingStore",
    "JsonFileServicingStore",
    "LedgerStore",
    "LoanStore",
    "PaymentStore",
    "ServicingStore",
]

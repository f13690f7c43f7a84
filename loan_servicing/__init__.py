"""Loan servicing: modification ledger, parameter reconciliation and payments."""

from loan_servicing.ledger import ModificationLedger
from loan_servicing.reconciler import ParameterReconciler
from loan_servicing.service import LoanServicingService

__version__ = "0.1.0"

__all__ = [
    "LoanServicingService",
    "ModificationLedger",
    "ParameterReconciler",
    "__version__",
]

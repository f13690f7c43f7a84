"""Domain models for loan servicing."""

from loan_servicing.models.base import Address

__all__ = ["Address"]

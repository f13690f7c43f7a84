"""Custom exception hierarchy for loan-servicing."""


class LoanServicingError(Exception):
    """Base exception for all loan-servicing errors."""


class EntityNotFoundError(LoanServicingError):
    """Raised when a referenced entity does not exist."""


class ReferentialIntegrityError(EntityNotFoundError):
    """Raised when a foreign key reference is violated."""


class TargetNotFoundError(EntityNotFoundError):
    """Raised when a reversal references a modification that does not exist."""


class InvalidEntityStateError(LoanServicingError):
    """Raised when an entity is in an invalid state for the operation."""


class AlreadyReversedError(InvalidEntityStateError):
    """Raised when a modification that is already reversed is reversed again."""


class IrreversibleEntryError(InvalidEntityStateError):
    """Raised when a reversal targets another reversal."""


class DuplicateEntryError(InvalidEntityStateError):
    """Raised when an entry id is already present in the ledger."""


class ConfigurationError(LoanServicingError):
    """Raised when configuration is invalid or missing."""


class StorageError(LoanServicingError):
    """Raised when the persistence layer cannot read or write a document."""

"""Modification ledger entries and their typed change payloads.

Every ledger entry carries exactly one payload variant matching its
``ModificationType``. Payloads are parsed from the free-form change maps
that forms and stored records use (camelCase keys, legacy aliases such as
``extensionMonths``) and written back in the same shape.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, ClassVar, Mapping, Union

from loan_servicing.models.base import to_date, to_decimal, to_int
from loan_servicing.models.loan.enums import ModificationStatus, ModificationType
from loan_servicing.models.loan.loan import LoanParameters


def _to_str(value: Any) -> str | None:
    return None if value is None else str(value)


def _to_bool(value: Any) -> bool | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


# (field name, accepted change-map keys with the canonical key first, converter)
FieldSpec = tuple[str, tuple[str, ...], Callable[[Any], Any]]


@dataclass(frozen=True)
class ModificationPayload:
    """Base class for typed change payloads."""

    effective_date: date | None = None

    modification_type: ClassVar[ModificationType]
    _fields: ClassVar[tuple[FieldSpec, ...]] = ()

    @classmethod
    def from_changes(cls, changes: Mapping[str, Any]) -> "ModificationPayload":
        values: dict[str, Any] = {}
        for name, keys, convert in cls._fields:
            for key in keys + (name,):
                if changes.get(key) is not None:
                    values[name] = convert(changes[key])
                    break
        effective = changes.get("effectiveDate", changes.get("effective_date"))
        return cls(effective_date=to_date(effective), **values)

    def to_changes(self) -> dict[str, Any]:
        changes: dict[str, Any] = {}
        for name, keys, _ in self._fields:
            value = getattr(self, name)
            if value is not None:
                changes[keys[0]] = value
        if self.effective_date is not None:
            changes["effectiveDate"] = self.effective_date
        return changes


@dataclass(frozen=True)
class RateChange(ModificationPayload):
    new_rate: Decimal | None = None

    modification_type = ModificationType.RATE_CHANGE
    _fields = (("new_rate", ("newRate",), to_decimal),)


@dataclass(frozen=True)
class TermExtension(ModificationPayload):
    additional_months: int | None = None

    modification_type = ModificationType.TERM_EXTENSION
    _fields = (("additional_months", ("additionalMonths", "extensionMonths"), to_int),)


@dataclass(frozen=True)
class PrincipalReduction(ModificationPayload):
    reduction_amount: Decimal | None = None

    modification_type = ModificationType.PRINCIPAL_REDUCTION
    _fields = (("reduction_amount", ("reductionAmount", "principalReduction"), to_decimal),)


@dataclass(frozen=True)
class TemporaryPaymentReduction(ModificationPayload):
    new_payment_amount: Decimal | None = None
    number_of_terms: int | None = None
    interest_handling: str | None = None

    modification_type = ModificationType.PAYMENT_REDUCTION_TEMPORARY
    _fields = (
        ("new_payment_amount", ("newPaymentAmount",), to_decimal),
        ("number_of_terms", ("numberOfTerms",), to_int),
        ("interest_handling", ("interestHandling",), _to_str),
    )


@dataclass(frozen=True)
class PermanentPaymentReduction(ModificationPayload):
    new_payment_amount: Decimal | None = None
    new_term_months: int | None = None

    modification_type = ModificationType.PAYMENT_REDUCTION_PERMANENT
    _fields = (
        ("new_payment_amount", ("newPaymentAmount",), to_decimal),
        ("new_term_months", ("newTermMonths",), to_int),
    )


@dataclass(frozen=True)
class BalloonAssignment(ModificationPayload):
    balloon_amount: Decimal | None = None
    balloon_due_date: date | None = None
    reamortization_start_type: str | None = None

    modification_type = ModificationType.BALLOON_PAYMENT_ASSIGNMENT
    _fields = (
        ("balloon_amount", ("balloonAmount",), to_decimal),
        ("balloon_due_date", ("balloonDueDate",), to_date),
        ("reamortization_start_type", ("reamortizationStartType",), _to_str),
    )


@dataclass(frozen=True)
class BalloonRemoval(ModificationPayload):
    new_term_months: int | None = None
    new_payment_amount: Decimal | None = None

    modification_type = ModificationType.BALLOON_PAYMENT_REMOVAL
    _fields = (
        ("new_term_months", ("newTermMonths",), to_int),
        ("new_payment_amount", ("newPaymentAmount",), to_decimal),
    )


@dataclass(frozen=True)
class Forbearance(ModificationPayload):
    duration_months: int | None = None
    forbearance_type: str | None = None

    modification_type = ModificationType.FORBEARANCE
    _fields = (
        ("duration_months", ("durationMonths",), to_int),
        ("forbearance_type", ("forbearanceType",), _to_str),
    )


@dataclass(frozen=True)
class Deferment(ModificationPayload):
    duration_months: int | None = None
    eligibility_reason: str | None = None
    interest_subsidy: bool | None = None

    modification_type = ModificationType.DEFERMENT
    _fields = (
        ("duration_months", ("durationMonths",), to_int),
        ("eligibility_reason", ("eligibilityReason",), _to_str),
        ("interest_subsidy", ("interestSubsidy",), _to_bool),
    )


@dataclass(frozen=True)
class Reamortization(ModificationPayload):
    new_term_months: int | None = None
    new_interest_rate: Decimal | None = None

    modification_type = ModificationType.REAMORTIZATION
    _fields = (
        ("new_term_months", ("newTermMonths",), to_int),
        ("new_interest_rate", ("newInterestRate",), to_decimal),
    )


@dataclass(frozen=True)
class Restructure(ModificationPayload):
    """A package of modifications committed as one ledger entry.

    When ``projected_parameters`` is present it is the complete resulting
    parameter set, computed up front by the caller.
    """

    modifications: tuple[ModificationPayload, ...] = ()
    projected_parameters: LoanParameters | None = None

    modification_type = ModificationType.RESTRUCTURE

    @classmethod
    def from_changes(cls, changes: Mapping[str, Any]) -> "Restructure":
        nested = tuple(
            parse_payload(item.get("type"), item.get("parameters") or item.get("changes") or {})
            for item in changes.get("modifications") or ()
        )
        projected = changes.get("projectedParameters", changes.get("projected_parameters"))
        if projected is not None and not isinstance(projected, LoanParameters):
            projected = LoanParameters.from_mapping(projected)
        effective = changes.get("effectiveDate", changes.get("effective_date"))
        return cls(
            effective_date=to_date(effective),
            modifications=nested,
            projected_parameters=projected,
        )

    def to_changes(self) -> dict[str, Any]:
        changes: dict[str, Any] = {
            "modifications": [
                {"type": payload_type_name(item), "parameters": item.to_changes()}
                for item in self.modifications
            ],
        }
        if self.projected_parameters is not None:
            changes["projectedParameters"] = self.projected_parameters
        if self.effective_date is not None:
            changes["effectiveDate"] = self.effective_date
        return changes


@dataclass(frozen=True)
class Reversal(ModificationPayload):
    original_modification_id: str = ""
    original_modification_type: str | None = None
    reversal_reason: str | None = None

    modification_type = ModificationType.REVERSAL
    _fields = (
        ("original_modification_id", ("originalModificationId",), str),
        ("original_modification_type", ("originalModificationType",), _to_str),
        ("reversal_reason", ("reversalReason",), _to_str),
    )


@dataclass(frozen=True)
class UnknownPayload(ModificationPayload):
    """Change map of a modification type this version does not recognize."""

    type_name: str = ""
    raw: Mapping[str, Any] = field(default_factory=dict)

    def to_changes(self) -> dict[str, Any]:
        return dict(self.raw)


PAYLOAD_TYPES: dict[ModificationType, type[ModificationPayload]] = {
    cls.modification_type: cls
    for cls in (
        RateChange,
        TermExtension,
        PrincipalReduction,
        TemporaryPaymentReduction,
        PermanentPaymentReduction,
        BalloonAssignment,
        BalloonRemoval,
        Forbearance,
        Deferment,
        Reamortization,
        Restructure,
        Reversal,
    )
}


def coerce_modification_type(value: Any) -> ModificationType | str:
    """Return the enum member for ``value``, or the raw string if unknown."""
    if isinstance(value, ModificationType):
        return value
    try:
        return ModificationType(str(value))
    except ValueError:
        return str(value)


def parse_payload(modification_type: Any, changes: Mapping[str, Any] | None) -> ModificationPayload:
    """Convert a free-form change map into the payload variant for its type."""
    changes = changes or {}
    mod_type = coerce_modification_type(modification_type)
    if isinstance(mod_type, ModificationType):
        return PAYLOAD_TYPES[mod_type].from_changes(changes)
    return UnknownPayload(type_name=mod_type, raw=dict(changes))


def payload_type_name(payload: ModificationPayload) -> str:
    if isinstance(payload, UnknownPayload):
        return payload.type_name
    return payload.modification_type.value


@dataclass
class ModificationEntry:
    """One record in a loan's modification ledger.

    Entries are never edited after they are appended, except for the single
    ACTIVE -> REVERSED transition made when a reversal targets them.
    """

    entry_id: str
    loan_id: str
    modification_type: ModificationType | str
    payload: ModificationPayload
    reason: str
    approved_by: str
    created_at: datetime | None = None
    status: ModificationStatus = ModificationStatus.ACTIVE
    reversed_at: datetime | None = None
    reversed_by: str | None = None
    reversal_reason: str | None = None
    sequence: int = 0  # Insertion order within the ledger

    @classmethod
    def create(
        cls,
        loan_id: str,
        modification_type: ModificationType | str,
        changes: Mapping[str, Any] | ModificationPayload | None,
        reason: str,
        approved_by: str,
        entry_id: str = "",
        created_at: datetime | None = None,
    ) -> "ModificationEntry":
        """Build an unsaved entry, parsing ``changes`` into a typed payload."""
        mod_type = coerce_modification_type(modification_type)
        if isinstance(changes, ModificationPayload):
            payload = changes
        else:
            payload = parse_payload(mod_type, changes)
        return cls(
            entry_id=entry_id,
            loan_id=loan_id,
            modification_type=mod_type,
            payload=payload,
            reason=reason,
            approved_by=approved_by,
            created_at=created_at,
        )

    @property
    def is_reversal(self) -> bool:
        return self.modification_type == ModificationType.REVERSAL

    @property
    def is_reversed(self) -> bool:
        return self.status == ModificationStatus.REVERSED

    @property
    def type_name(self) -> str:
        if isinstance(self.modification_type, ModificationType):
            return self.modification_type.value
        return self.modification_type

    def mark_reversed(self, reversed_at: datetime, reversed_by: str, reason: str | None) -> None:
        self.status = ModificationStatus.REVERSED
        self.reversed_at = reversed_at
        self.reversed_by = reversed_by
        self.reversal_reason = reason


ChangePayload = Union[
    RateChange,
    TermExtension,
    PrincipalReduction,
    TemporaryPaymentReduction,
    PermanentPaymentReduction,
    BalloonAssignment,
    BalloonRemoval,
    Forbearance,
    Deferment,
    Reamortization,
    Restructure,
    Reversal,
    UnknownPayload,
]

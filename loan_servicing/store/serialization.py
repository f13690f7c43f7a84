"""Shared serialization utilities for stores and exports."""

from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from loan_servicing.models.base import Address, to_date, to_datetime, to_decimal
from loan_servicing.models.loan import (
    Customer,
    EmploymentStatus,
    FieldChange,
    Loan,
    LoanParameters,
    LoanStatus,
    LoanType,
    ModificationEntry,
    ModificationStatus,
    Payment,
    PaymentAllocation,
    PaymentAuditAction,
    PaymentAuditEntry,
    PaymentStatus,
)


def to_dict(obj: Any) -> dict:
    """Convert object to dictionary."""
    if isinstance(obj, ModificationEntry):
        return entry_to_dict(obj)
    elif is_dataclass(obj):
        return dataclass_to_dict(obj)
    elif isinstance(obj, dict):
        return obj
    else:
        return {"value": str(obj)}


def dataclass_to_dict(obj: Any) -> dict:
    """Convert dataclass to dict with proper serialization."""
    result = {}
    for key, value in asdict(obj).items():
        result[key] = serialize_value(value)
    return result


def entry_to_dict(entry: ModificationEntry) -> dict:
    """Convert a ledger entry, writing its payload as a camelCase change map."""
    return {
        "entry_id": entry.entry_id,
        "loan_id": entry.loan_id,
        "type": entry.type_name,
        "changes": serialize_value(entry.payload.to_changes()),
        "reason": entry.reason,
        "approved_by": entry.approved_by,
        "created_at": serialize_value(entry.created_at),
        "status": entry.status.value,
        "reversed_at": serialize_value(entry.reversed_at),
        "reversed_by": entry.reversed_by,
        "reversal_reason": entry.reversal_reason,
        "sequence": entry.sequence,
    }


def serialize_value(value: Any) -> Any:
    """Serialize a value for JSON output.

    Decimals are written as strings so amounts survive a round trip
    without passing through binary floating point.
    """
    if isinstance(value, Decimal):
        return str(value)
    elif isinstance(value, Enum):
        return value.value
    elif isinstance(value, datetime):
        return value.isoformat()
    elif isinstance(value, date):
        return value.isoformat()
    elif is_dataclass(value) and not isinstance(value, type):
        return dataclass_to_dict(value)
    elif isinstance(value, dict):
        return {k: serialize_value(v) for k, v in value.items()}
    elif isinstance(value, (list, tuple)):
        return [serialize_value(v) for v in value]
    return value


def customer_from_dict(data: dict[str, Any]) -> Customer:
    return Customer(
        customer_id=data["customer_id"],
        first_name=data["first_name"],
        last_name=data["last_name"],
        email=data["email"],
        phone=data["phone"],
        address=Address(**data["address"]),
        annual_income=to_decimal(data["annual_income"]),
        employment_status=EmploymentStatus(data["employment_status"]),
        credit_score=int(data["credit_score"]),
        created_at=to_datetime(data["created_at"]),
        updated_at=to_datetime(data.get("updated_at")),
    )


def loan_from_dict(data: dict[str, Any]) -> Loan:
    baseline = data.get("baseline")
    return Loan(
        loan_id=data["loan_id"],
        customer_id=data["customer_id"],
        parameters=LoanParameters.from_mapping(data["parameters"]),
        baseline=LoanParameters.from_mapping(baseline) if baseline else None,
        status=LoanStatus(data.get("status", LoanStatus.ACTIVE.value)),
        loan_type=LoanType(data.get("loan_type", LoanType.PERSONAL.value)),
        purpose=data.get("purpose", "OTHER"),
        application_date=to_date(data.get("application_date")),
        current_balance=to_decimal(data.get("current_balance")),
        status_change_reason=data.get("status_change_reason"),
        created_at=to_datetime(data.get("created_at")),
        updated_at=to_datetime(data.get("updated_at")),
    )


def entry_from_dict(data: dict[str, Any]) -> ModificationEntry:
    entry = ModificationEntry.create(
        loan_id=data["loan_id"],
        modification_type=data["type"],
        changes=data.get("changes") or {},
        reason=data.get("reason", ""),
        approved_by=data.get("approved_by", ""),
        entry_id=data["entry_id"],
        created_at=to_datetime(data.get("created_at")),
    )
    entry.status = ModificationStatus(data.get("status", ModificationStatus.ACTIVE.value))
    entry.reversed_at = to_datetime(data.get("reversed_at"))
    entry.reversed_by = data.get("reversed_by")
    entry.reversal_reason = data.get("reversal_reason")
    entry.sequence = int(data.get("sequence", 0))
    return entry


def payment_from_dict(data: dict[str, Any]) -> Payment:
    allocation = data.get("allocation") or {}
    return Payment(
        payment_id=data["payment_id"],
        loan_id=data["loan_id"],
        payment_number=int(data["payment_number"]),
        payment_date=to_date(data["payment_date"]),
        amount=to_decimal(data["amount"]),
        allocation=PaymentAllocation(
            **{key: to_decimal(value) for key, value in allocation.items()}
        ),
        status=PaymentStatus(data["status"]),
        payment_method=data["payment_method"],
        created_by=data["created_by"],
        reference=data.get("reference"),
        notes=data.get("notes"),
        is_deleted=bool(data.get("is_deleted", False)),
        overpayment=to_decimal(data.get("overpayment")),
        created_at=to_datetime(data.get("created_at")),
        updated_at=to_datetime(data.get("updated_at")),
        updated_by=data.get("updated_by"),
    )


def audit_entry_from_dict(data: dict[str, Any]) -> PaymentAuditEntry:
    return PaymentAuditEntry(
        audit_id=data["audit_id"],
        payment_id=data["payment_id"],
        action=PaymentAuditAction(data["action"]),
        timestamp=to_datetime(data["timestamp"]),
        performed_by=data["performed_by"],
        reason=data.get("reason"),
        field_changes=[FieldChange(**change) for change in data.get("field_changes") or []],
    )


__all__ = [
    "audit_entry_from_dict",
    "customer_from_dict",
    "dataclass_to_dict",
    "entry_from_dict",
    "entry_to_dict",
    "loan_from_dict",
    "payment_from_dict",
    "serialize_value",
    "to_dict",
]

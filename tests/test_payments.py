"""Tests for the payment book and balance helpers."""

from datetime import date
from decimal import Decimal

import pytest

from loan_servicing.balance import current_balance, principal_paid
from loan_servicing.exceptions import EntityNotFoundError, InvalidEntityStateError
from loan_servicing.models.loan import (
    Loan,
    Payment,
    PaymentAllocation,
    PaymentAuditAction,
    PaymentStatus,
)
from loan_servicing.payments import PaymentBook
from loan_servicing.service import LoanServicingService


@pytest.fixture
def book(service: LoanServicingService) -> PaymentBook:
    """Payment book wired to the service's store and clock."""
    return service.payments


def _record(book: PaymentBook, loan: Loan, principal: str = "1000", **kwargs) -> Payment:
    return book.record_payment(
        loan.loan_id,
        Decimal(principal) + Decimal("500"),
        PaymentAllocation(interest=Decimal("500"), principal=Decimal(principal)),
        "teller",
        **kwargs,
    )


class TestRecordPayment:
    """Tests for recording payments."""

    def test_assigns_identity_and_number(self, book: PaymentBook, loan: Loan) -> None:
        first = _record(book, loan)
        second = _record(book, loan, payment_date=date(2025, 3, 1))

        assert first.payment_id.startswith("pmt_")
        assert (first.payment_number, second.payment_number) == (1, 2)
        assert first.payment_date == date(2025, 1, 31)
        assert second.payment_date == date(2025, 3, 1)
        assert first.status == PaymentStatus.COMPLETED
        assert first.payment_method == "ACH"

    def test_numbering_counts_deleted(self, book: PaymentBook, loan: Loan) -> None:
        first = _record(book, loan)
        book.soft_delete_payment(first.payment_id, "supervisor")

        assert _record(book, loan).payment_number == 2

    def test_unknown_loan(self, book: PaymentBook) -> None:
        with pytest.raises(EntityNotFoundError):
            book.record_payment("loan-missing", Decimal("1"), PaymentAllocation(), "teller")

    def test_creation_audited(self, book: PaymentBook, loan: Loan) -> None:
        payment = _record(book, loan)
        trail = book.audit_trail(payment.payment_id)

        assert len(trail) == 1
        assert trail[0].action == PaymentAuditAction.CREATED
        assert trail[0].performed_by == "teller"
        assert trail[0].reason == "Payment created"


class TestUpdatePayment:
    """Tests for amending payments."""

    def test_records_field_changes(self, book: PaymentBook, loan: Loan) -> None:
        payment = _record(book, loan)

        before, after = book.update_payment(
            payment.payment_id,
            {"reference": "CHK-1001", "payment_method": "ACH"},
            "teller",
            "Added check number",
        )

        assert before.reference is None
        assert after.reference == "CHK-1001"
        assert after.updated_by == "teller"
        latest = book.audit_trail(payment.payment_id)[0]
        assert latest.action == PaymentAuditAction.UPDATED
        assert [(c.field, c.old_value, c.new_value) for c in latest.field_changes] == [
            ("reference", None, "CHK-1001")
        ]

    def test_unknown_field(self, book: PaymentBook, loan: Loan) -> None:
        payment = _record(book, loan)
        with pytest.raises(ValueError, match="colour"):
            book.update_payment(payment.payment_id, {"colour": "blue"}, "teller")

    def test_immutable_field(self, book: PaymentBook, loan: Loan) -> None:
        payment = _record(book, loan)
        with pytest.raises(InvalidEntityStateError):
            book.update_payment(payment.payment_id, {"loan_id": "loan-002"}, "teller")

    def test_unknown_payment(self, book: PaymentBook) -> None:
        with pytest.raises(EntityNotFoundError):
            book.update_payment("pmt_missing", {"notes": "x"}, "teller")


class TestSoftDelete:
    """Tests for soft delete and restore."""

    def test_soft_delete_hides_payment(self, book: PaymentBook, loan: Loan) -> None:
        payment = _record(book, loan)
        deleted = book.soft_delete_payment(payment.payment_id, "supervisor", "Duplicate entry")

        assert deleted.is_deleted
        assert deleted.status == PaymentStatus.DELETED
        assert book.list_payments(loan.loan_id) == []
        assert book.list_payments(loan.loan_id, include_deleted=True) == [deleted]

        latest = book.audit_trail(payment.payment_id)[0]
        assert latest.action == PaymentAuditAction.DELETED
        assert latest.reason == "Duplicate entry"

    def test_restore(self, book: PaymentBook, loan: Loan) -> None:
        payment = _record(book, loan)
        book.soft_delete_payment(payment.payment_id, "supervisor")

        restored = book.restore_payment(payment.payment_id, "supervisor", PaymentStatus.COMPLETED, "Error")

        assert not restored.is_deleted
        assert restored.status == PaymentStatus.COMPLETED
        actions = [entry.action for entry in book.audit_trail(payment.payment_id)]
        assert actions == [PaymentAuditAction.UPDATED, PaymentAuditAction.DELETED, PaymentAuditAction.CREATED]

    def test_restore_requires_deleted(self, book: PaymentBook, loan: Loan) -> None:
        payment = _record(book, loan)
        with pytest.raises(InvalidEntityStateError):
            book.restore_payment(payment.payment_id, "supervisor", PaymentStatus.COMPLETED)


class TestBalanceHelpers:
    """Tests for balance projection functions."""

    def test_principal_paid_filters(self, book: PaymentBook, loan: Loan) -> None:
        completed = _record(book, loan, "1000")
        pending = _record(book, loan, "500", status=PaymentStatus.PENDING)
        failed = _record(book, loan, "700", status=PaymentStatus.FAILED)
        deleted = book.soft_delete_payment(_record(book, loan, "2000").payment_id, "supervisor")

        payments = [completed, pending, failed, deleted]
        assert principal_paid(payments) == Decimal("1000")
        assert current_balance(Decimal("100000"), payments) == Decimal("99000")

    def test_no_payments(self) -> None:
        assert current_balance(Decimal("100000"), []) == Decimal("100000")

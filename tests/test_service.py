"""Tests for LoanServicingService: modification workflow and balances."""

import logging
import threading
from datetime import date
from decimal import Decimal, InvalidOperation

import pytest

from loan_servicing.exceptions import (
    AlreadyReversedError,
    EntityNotFoundError,
    InvalidEntityStateError,
    TargetNotFoundError,
)
from loan_servicing.models.loan import (
    Customer,
    DayCountConvention,
    Loan,
    LoanParameters,
    LoanStatus,
    ModificationStatus,
    ModificationType,
    PaymentAllocation,
    PaymentFrequency,
    PaymentStatus,
    Reversal,
    RoundingMethod,
)
from loan_servicing.service import EDIT_REVERSAL_REASON, LoanServicingService
from loan_servicing.store import InMemoryServicingStore

# One well-formed change map per modification type
WELL_FORMED_CHANGES = {
    ModificationType.RATE_CHANGE: {"newRate": 5.0},
    ModificationType.TERM_EXTENSION: {"additionalMonths": 12},
    ModificationType.PRINCIPAL_REDUCTION: {"reductionAmount": 5000},
    ModificationType.PAYMENT_REDUCTION_TEMPORARY: {
        "newPaymentAmount": 400,
        "numberOfTerms": 6,
        "interestHandling": "capitalize",
    },
    ModificationType.PAYMENT_REDUCTION_PERMANENT: {"newPaymentAmount": 500, "newTermMonths": 420},
    ModificationType.BALLOON_PAYMENT_ASSIGNMENT: {
        "balloonAmount": 20000,
        "balloonDueDate": "2040-01-01",
        "reamortizationStartType": "next_payment",
    },
    ModificationType.BALLOON_PAYMENT_REMOVAL: {"newTermMonths": 300, "newPaymentAmount": 650},
    ModificationType.FORBEARANCE: {"durationMonths": 3, "forbearanceType": "FULL"},
    ModificationType.DEFERMENT: {"durationMonths": 6, "eligibilityReason": "military", "interestSubsidy": True},
    ModificationType.REAMORTIZATION: {"newTermMonths": 240, "newInterestRate": 4.5},
    ModificationType.RESTRUCTURE: {
        "modifications": [{"type": "RATE_CHANGE", "parameters": {"newRate": 5.5}}],
        "projectedParameters": {"principal": 190000, "interestRate": 5.5, "termMonths": 372},
    },
}


def _allocation(principal: str) -> PaymentAllocation:
    return PaymentAllocation(interest=Decimal("100"), principal=Decimal(principal))


class TestCreateLoan:
    """Tests for loan origination."""

    def test_captures_baseline(self, loan: Loan) -> None:
        assert loan.baseline == loan.parameters
        assert loan.baseline.principal == Decimal("100000")
        assert loan.current_balance == Decimal("100000")
        assert loan.status == LoanStatus.ACTIVE

    def test_normalises_form_values(self, service: LoanServicingService, customer: Customer) -> None:
        loan = service.create_loan(
            customer.customer_id,
            principal=Decimal("25000"),
            interest_rate=Decimal("7.25"),
            term_months=60,
            payment_frequency="BI_WEEKLY",
            day_count="ACTUAL_365",
            rounding_method="ROUND_HALF_EVEN",
        )

        assert loan.parameters.payment_frequency == PaymentFrequency.BI_WEEKLY
        assert loan.parameters.day_count == DayCountConvention.ACTUAL_365
        assert loan.parameters.rounding_method == RoundingMethod.BANKERS
        assert loan.loan_id.startswith("loan_")

    def test_unknown_customer(self, service: LoanServicingService) -> None:
        with pytest.raises(EntityNotFoundError):
            service.create_loan("cust-missing", Decimal("1000"), Decimal("5"), 12)

    def test_update_status(self, service: LoanServicingService, loan: Loan) -> None:
        updated = service.update_loan_status(loan.loan_id, "PAID_OFF", reason="Final payment received")
        assert updated.status == LoanStatus.PAID_OFF
        assert updated.status_change_reason == "Final payment received"


class TestAppendModification:
    """Tests for appending modifications."""

    def test_recomputes_parameters(self, service: LoanServicingService, store: InMemoryServicingStore, loan: Loan) -> None:
        entry = service.append_modification(
            loan.loan_id, ModificationType.RATE_CHANGE, {"newRate": 5.0}, "Hardship", "officer"
        )

        assert entry.approved_by == "officer"
        assert store.get_loan(loan.loan_id).parameters.interest_rate == Decimal("5.0")
        assert store.get_loan(loan.loan_id).baseline.interest_rate == Decimal("6.0")

    def test_default_approver(self, service: LoanServicingService, loan: Loan) -> None:
        entry = service.append_modification(loan.loan_id, "TERM_EXTENSION", {"additionalMonths": 6}, "r")
        assert entry.approved_by == "System"

    def test_unknown_loan(self, service: LoanServicingService) -> None:
        with pytest.raises(EntityNotFoundError):
            service.append_modification("loan-missing", "RATE_CHANGE", {"newRate": 5}, "r", "a")

    def test_rejects_reversal_type(self, service: LoanServicingService, loan: Loan) -> None:
        with pytest.raises(InvalidEntityStateError):
            service.append_modification(loan.loan_id, ModificationType.REVERSAL, {}, "r", "a")
        assert service.list_modifications(loan.loan_id) == []

    def test_two_principal_reductions_compound(self, service: LoanServicingService, loan: Loan) -> None:
        for _ in range(2):
            service.append_modification(loan.loan_id, "PRINCIPAL_REDUCTION", {"reductionAmount": 5000}, "r", "a")

        assert service.get_effective_parameters(loan.loan_id).principal == Decimal("90000")

    def test_append_order_of_independent_fields(self, service: LoanServicingService, customer: Customer) -> None:
        first = service.create_loan(customer.customer_id, Decimal("100000"), Decimal("6"), 360)
        second = service.create_loan(customer.customer_id, Decimal("100000"), Decimal("6"), 360)

        service.append_modification(first.loan_id, "RATE_CHANGE", {"newRate": 5}, "r", "a")
        service.append_modification(first.loan_id, "TERM_EXTENSION", {"additionalMonths": 12}, "r", "a")
        service.append_modification(second.loan_id, "TERM_EXTENSION", {"additionalMonths": 12}, "r", "a")
        service.append_modification(second.loan_id, "RATE_CHANGE", {"newRate": 5}, "r", "a")

        a = service.get_effective_parameters(first.loan_id)
        b = service.get_effective_parameters(second.loan_id)
        assert (a.interest_rate, a.term_months) == (b.interest_rate, b.term_months) == (Decimal("5"), 372)

    def test_unknown_type_stored_and_skipped(
        self, service: LoanServicingService, loan: Loan, caplog: pytest.LogCaptureFixture
    ) -> None:
        caplog.set_level(logging.WARNING, logger="loan_servicing")
        entry = service.append_modification(loan.loan_id, "SKIP_A_PAY", {"months": 1}, "r", "a")

        assert entry.type_name == "SKIP_A_PAY"
        assert service.get_effective_parameters(loan.loan_id) == loan.baseline
        assert any(getattr(r, "event", None) == "UnknownModificationType" for r in caplog.records)


class TestRestructureScenario:
    """A restructure with a projection short-circuits field folding."""

    def test_projection_returned_exactly(self, service: LoanServicingService, customer: Customer) -> None:
        loan = service.create_loan(customer.customer_id, Decimal("200000"), Decimal("6.0"), 360)
        service.append_modification(
            loan.loan_id,
            ModificationType.RESTRUCTURE,
            {"projectedParameters": {"principal": 190000, "interestRate": 5.5, "termMonths": 372}},
            "Workout package",
            "committee",
        )

        effective = service.get_effective_parameters(loan.loan_id)
        assert effective == LoanParameters(Decimal("190000"), Decimal("5.5"), 372)


class TestReversal:
    """Tests for reversals through the service."""

    def test_multi_entry_replay_after_reversal(self, service: LoanServicingService, loan: Loan) -> None:
        rate = service.append_modification(loan.loan_id, "RATE_CHANGE", {"newRate": 5}, "r", "a")
        service.append_modification(loan.loan_id, "PRINCIPAL_REDUCTION", {"reductionAmount": 10000}, "r", "a")
        service.append_reversal(loan.loan_id, rate.entry_id, "Entered in error", "supervisor")

        effective = service.get_effective_parameters(loan.loan_id)
        assert effective.interest_rate == Decimal("6.0")
        assert effective.principal == Decimal("90000")
        assert service.get_loan(loan.loan_id).parameters == effective

    def test_reversal_entry_records_target(self, service: LoanServicingService, loan: Loan) -> None:
        target = service.append_modification(loan.loan_id, "TERM_EXTENSION", {"additionalMonths": 12}, "r", "a")
        reversal = service.append_reversal(loan.loan_id, target.entry_id, "Duplicate", "supervisor")

        assert reversal.payload == Reversal(
            original_modification_id=target.entry_id,
            original_modification_type="TERM_EXTENSION",
            reversal_reason="Duplicate",
        )
        assert target.status == ModificationStatus.REVERSED
        assert [e.entry_id for e in service.list_modifications(loan.loan_id)] == [
            target.entry_id,
            reversal.entry_id,
        ]

    def test_missing_target_leaves_ledger_unchanged(self, service: LoanServicingService, loan: Loan) -> None:
        service.append_modification(loan.loan_id, "RATE_CHANGE", {"newRate": 5}, "r", "a")
        before = [(e.entry_id, e.status) for e in service.list_modifications(loan.loan_id)]

        with pytest.raises(TargetNotFoundError):
            service.append_reversal(loan.loan_id, "mod_missing", "r", "a")

        assert [(e.entry_id, e.status) for e in service.list_modifications(loan.loan_id)] == before

    def test_double_reversal(self, service: LoanServicingService, loan: Loan) -> None:
        target = service.append_modification(loan.loan_id, "RATE_CHANGE", {"newRate": 5}, "r", "a")
        service.append_reversal(loan.loan_id, target.entry_id, "r", "a")

        with pytest.raises(AlreadyReversedError):
            service.append_reversal(loan.loan_id, target.entry_id, "r", "a")

    @pytest.mark.parametrize("mod_type", list(WELL_FORMED_CHANGES), ids=lambda t: t.value)
    def test_round_trip_restores_baseline(
        self, service: LoanServicingService, loan: Loan, mod_type: ModificationType
    ) -> None:
        entry = service.append_modification(loan.loan_id, mod_type, WELL_FORMED_CHANGES[mod_type], "r", "a")
        assert service.get_effective_parameters(loan.loan_id) != loan.baseline

        service.append_reversal(loan.loan_id, entry.entry_id, "Undo", "a")

        assert service.get_effective_parameters(loan.loan_id) == loan.baseline


class TestAmendModification:
    """Tests for editing a modification."""

    def test_reverses_and_replaces(self, service: LoanServicingService, loan: Loan) -> None:
        original = service.append_modification(loan.loan_id, "RATE_CHANGE", {"newRate": 5}, "r", "a")

        reversal, replacement = service.amend_modification(
            loan.loan_id, original.entry_id, "RATE_CHANGE", {"newRate": 4.5}, "Corrected rate", "officer"
        )

        assert original.is_reversed
        assert reversal.reason == EDIT_REVERSAL_REASON
        assert replacement.reason == "Corrected rate"
        assert service.get_effective_parameters(loan.loan_id).interest_rate == Decimal("4.5")
        assert len(service.list_modifications(loan.loan_id)) == 3

    def test_malformed_replacement_leaves_ledger_unchanged(self, service: LoanServicingService, loan: Loan) -> None:
        original = service.append_modification(loan.loan_id, "RATE_CHANGE", {"newRate": 5}, "r", "a")

        with pytest.raises(InvalidOperation):
            service.amend_modification(loan.loan_id, original.entry_id, "RATE_CHANGE", {"newRate": "abc"}, "r", "a")

        assert [e.entry_id for e in service.list_modifications(loan.loan_id)] == [original.entry_id]
        assert original.status == ModificationStatus.ACTIVE
        assert service.get_loan(loan.loan_id).parameters.interest_rate == Decimal("5")

    def test_reversal_type_replacement_rejected_before_write(
        self, service: LoanServicingService, loan: Loan
    ) -> None:
        original = service.append_modification(loan.loan_id, "RATE_CHANGE", {"newRate": 5}, "r", "a")

        with pytest.raises(InvalidEntityStateError):
            service.amend_modification(loan.loan_id, original.entry_id, ModificationType.REVERSAL, {}, "r", "a")

        assert len(service.list_modifications(loan.loan_id)) == 1
        assert original.status == ModificationStatus.ACTIVE

    def test_missing_entry(self, service: LoanServicingService, loan: Loan) -> None:
        with pytest.raises(TargetNotFoundError):
            service.amend_modification(loan.loan_id, "mod_missing", "RATE_CHANGE", {"newRate": 4}, "r", "a")
        assert service.list_modifications(loan.loan_id) == []


class TestEffectiveParameters:
    """Tests for derived-parameter queries."""

    def test_idempotent(self, service: LoanServicingService, loan: Loan) -> None:
        service.append_modification(loan.loan_id, "FORBEARANCE", {"durationMonths": 3}, "r", "a")
        service.append_modification(loan.loan_id, "RATE_CHANGE", {"newRate": 5}, "r", "a")

        assert service.get_effective_parameters(loan.loan_id) == service.get_effective_parameters(loan.loan_id)

    def test_unknown_loan(self, service: LoanServicingService) -> None:
        with pytest.raises(EntityNotFoundError):
            service.get_effective_parameters("loan-missing")

    def test_legacy_loan_baseline_captured_on_first_modification(
        self, service: LoanServicingService, store: InMemoryServicingStore, loan: Loan
    ) -> None:
        loan.baseline = None

        service.append_modification(loan.loan_id, "RATE_CHANGE", {"newRate": 5}, "r", "a")

        stored = store.get_loan(loan.loan_id)
        assert stored.baseline is not None
        assert stored.baseline.interest_rate == Decimal("6.0")
        assert stored.parameters.interest_rate == Decimal("5")

    def test_legacy_loan_with_entries_left_without_baseline(
        self, service: LoanServicingService, loan: Loan, caplog: pytest.LogCaptureFixture
    ) -> None:
        service.append_modification(loan.loan_id, "RATE_CHANGE", {"newRate": 5}, "r", "a")
        loan.baseline = None
        caplog.set_level(logging.WARNING, logger="loan_servicing")

        service.append_modification(loan.loan_id, "TERM_EXTENSION", {"additionalMonths": 12}, "r", "a")

        assert service.get_loan(loan.loan_id).baseline is None
        service_warnings = [r for r in caplog.records if r.name == "loan_servicing.service"]
        assert service_warnings
        assert service_warnings[0].event == "MissingBaseline"
        assert service_warnings[0].loan_id == loan.loan_id

    def test_concurrent_appends_all_applied(self, service: LoanServicingService, loan: Loan) -> None:
        def reduce() -> None:
            service.append_modification(loan.loan_id, "PRINCIPAL_REDUCTION", {"reductionAmount": 1000}, "r", "a")

        threads = [threading.Thread(target=reduce) for _ in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(service.list_modifications(loan.loan_id)) == 10
        assert service.get_loan(loan.loan_id).parameters.principal == Decimal("90000")


class TestBalance:
    """Tests for balance derivation through the service."""

    def test_excludes_soft_deleted_and_non_completed(self, service: LoanServicingService, loan: Loan) -> None:
        service.record_payment(loan.loan_id, Decimal("1100"), _allocation("1000"), "teller")
        service.record_payment(
            loan.loan_id, Decimal("600"), _allocation("500"), "teller", status=PaymentStatus.PENDING
        )
        p3 = service.record_payment(loan.loan_id, Decimal("2100"), _allocation("2000"), "teller")
        service.soft_delete_payment(p3.payment_id, "supervisor", "Bounced")

        assert service.get_current_balance(loan.loan_id) == Decimal("99000")
        assert service.get_loan(loan.loan_id).current_balance == Decimal("99000")

    def test_uses_baseline_principal(self, service: LoanServicingService, loan: Loan) -> None:
        service.append_modification(loan.loan_id, "PRINCIPAL_REDUCTION", {"reductionAmount": 5000}, "r", "a")
        service.record_payment(loan.loan_id, Decimal("1100"), _allocation("1000"), "teller")

        assert service.get_current_balance(loan.loan_id) == Decimal("99000")

    def test_status_change_refreshes_cache(self, service: LoanServicingService, loan: Loan) -> None:
        pending = service.record_payment(
            loan.loan_id, Decimal("600"), _allocation("500"), "teller", status=PaymentStatus.PENDING
        )
        assert service.get_loan(loan.loan_id).current_balance == Decimal("100000")

        service.update_payment(pending.payment_id, {"status": PaymentStatus.COMPLETED}, "teller", "Cleared")

        assert service.get_loan(loan.loan_id).current_balance == Decimal("99500")

    def test_restore_refreshes_cache(self, service: LoanServicingService, loan: Loan) -> None:
        payment = service.record_payment(loan.loan_id, Decimal("1100"), _allocation("1000"), "teller")
        service.soft_delete_payment(payment.payment_id, "supervisor")
        assert service.get_loan(loan.loan_id).current_balance == Decimal("100000")

        service.restore_payment(payment.payment_id, "supervisor", "COMPLETED", "Deleted in error")

        assert service.get_loan(loan.loan_id).current_balance == Decimal("99000")

    def test_allocation_edit_refreshes_cache(self, service: LoanServicingService, loan: Loan) -> None:
        payment = service.record_payment(loan.loan_id, Decimal("1100"), _allocation("1000"), "teller")
        assert service.get_loan(loan.loan_id).current_balance == Decimal("99000")

        service.update_payment(payment.payment_id, {"allocation": _allocation("800")}, "teller", "Re-allocated")

        assert service.get_loan(loan.loan_id).current_balance == Decimal("99200")
        assert service.get_current_balance(loan.loan_id) == Decimal("99200")


class TestMaintenance:
    """Tests for export and reset."""

    def test_export_data(self, service: LoanServicingService, loan: Loan) -> None:
        service.append_modification(loan.loan_id, "RATE_CHANGE", {"newRate": 5}, "r", "a")

        data = service.export_data()

        assert len(data["loans"]) == 1
        assert data["modifications"][0]["type"] == "RATE_CHANGE"
        assert data["modifications"][0]["changes"] == {"newRate": "5"}
        assert data["loans"][0]["baseline"]["principal"] == "100000"

    def test_clear_all_data(self, service: LoanServicingService, loan: Loan) -> None:
        service.clear_all_data()

        with pytest.raises(EntityNotFoundError):
            service.get_loan(loan.loan_id)
        assert service.store.summary()["customers"] == 0


def test_start_date_defaults_to_clock(service: LoanServicingService, customer: Customer) -> None:
    loan = service.create_loan(customer.customer_id, Decimal("1000"), Decimal("5"), 12)
    assert loan.parameters.start_date == date(2025, 1, 31)

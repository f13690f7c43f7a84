"""Seeded demo portfolio: borrowers, loans, modifications and payments."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

from dateutil.relativedelta import relativedelta

from loan_servicing.config import DemoConfig
from loan_servicing.generators.base import BaseGenerator
from loan_servicing.models.loan import (
    Customer,
    EmploymentStatus,
    Loan,
    LoanParameters,
    LoanType,
    ModificationEntry,
    ModificationType,
    Payment,
    PaymentAllocation,
)
from loan_servicing.service import LoanServicingService

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def amortized_payment(principal: Decimal, annual_rate: Decimal, term_months: int) -> Decimal:
    """Level monthly payment for a fully amortizing loan."""
    if term_months <= 0:
        return principal
    monthly_rate = annual_rate / Decimal(1200)
    if monthly_rate == 0:
        return (principal / term_months).quantize(CENT, rounding=ROUND_HALF_UP)
    factor = (1 + monthly_rate) ** -term_months
    return (principal * monthly_rate / (1 - factor)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass
class DemoPortfolio:
    """Everything written by one ``DemoPortfolioGenerator.generate`` run."""

    customers: list[Customer] = field(default_factory=list)
    loans: list[Loan] = field(default_factory=list)
    modifications: list[ModificationEntry] = field(default_factory=list)
    payments: list[Payment] = field(default_factory=list)

    def summary(self) -> dict[str, int]:
        return {
            "customers": len(self.customers),
            "loans": len(self.loans),
            "modifications": len(self.modifications),
            "payments": len(self.payments),
        }


class DemoPortfolioGenerator(BaseGenerator):
    """Populate a servicing store with a realistic demo portfolio.

    Every record goes through ``LoanServicingService`` so the generated
    ledgers, baselines and balances obey the same rules as real data.
    """

    EMPLOYMENT_STATUS = list(EmploymentStatus)
    EMPLOYMENT_WEIGHTS = [0.70, 0.15, 0.10, 0.05]

    # (principal range in thousands, terms in months, annual rate range in percent)
    LOAN_PROFILES = {
        LoanType.PERSONAL: ((5, 50), [24, 36, 48, 60], (7.0, 18.0)),
        LoanType.AUTO: ((15, 60), [36, 48, 60, 72], (4.0, 9.0)),
        LoanType.MORTGAGE: ((150, 650), [180, 240, 360], (5.5, 7.5)),
        LoanType.BUSINESS: ((25, 250), [36, 60, 84, 120], (6.0, 12.0)),
        LoanType.STUDENT: ((10, 80), [120, 180], (4.0, 7.0)),
    }
    LOAN_WEIGHTS = [0.35, 0.25, 0.20, 0.10, 0.10]

    MODIFICATION_TYPES = [
        ModificationType.RATE_CHANGE,
        ModificationType.TERM_EXTENSION,
        ModificationType.PRINCIPAL_REDUCTION,
        ModificationType.PAYMENT_REDUCTION_TEMPORARY,
        ModificationType.FORBEARANCE,
    ]

    APPROVERS = ["Loan Officer", "Servicing Manager", "Credit Committee"]

    def __init__(
        self,
        service: LoanServicingService,
        seed: int | None = None,
        locale: str = "en_US",
    ) -> None:
        super().__init__(seed, locale)
        self.service = service

    @classmethod
    def from_config(cls, service: LoanServicingService, config: DemoConfig) -> "DemoPortfolioGenerator":
        return cls(service, seed=config.seed, locale=config.locale)

    def generate(
        self,
        num_customers: int = 5,
        loans_per_customer: int = 1,
        modifications_per_loan: int = 2,
        payments_per_loan: int = 3,
    ) -> DemoPortfolio:
        """Generate and store a complete demo portfolio.

        Returns
        -------
        DemoPortfolio
            The customers, loans, ledger entries and payments created.
        """
        portfolio = DemoPortfolio()
        for _ in range(num_customers):
            customer = self.generate_customer()
            portfolio.customers.append(customer)
            for _ in range(loans_per_customer):
                loan = self.generate_loan(customer)
                portfolio.modifications.extend(self.generate_modifications(loan, modifications_per_loan))
                portfolio.payments.extend(self.generate_payments(loan, payments_per_loan))
                portfolio.loans.append(self.service.get_loan(loan.loan_id))

        logger.info(
            "Generated demo portfolio: %d customers, %d loans, %d modifications, %d payments",
            *portfolio.summary().values(),
        )
        return portfolio

    def generate_customer(self) -> Customer:
        """Generate and register a single borrower."""
        employment = random.choices(self.EMPLOYMENT_STATUS, weights=self.EMPLOYMENT_WEIGHTS, k=1)[0]
        # Log-normal income, ~60k median
        income = max(15000, min(random.lognormvariate(mu=11.0, sigma=0.5), 400000))
        credit_score = int(max(300, min(random.gauss(690, 70), 850)))
        now = self.service.clock()

        customer = Customer(
            customer_id=self.fake.uuid4(),
            first_name=self.fake.first_name(),
            last_name=self.fake.last_name(),
            email=self.fake.email(),
            phone=self.fake.phone_number(),
            address=self.address(),
            annual_income=Decimal(str(round(income / 100) * 100)),
            employment_status=employment,
            credit_score=credit_score,
            created_at=now,
            updated_at=now,
        )
        return self.service.register_customer(customer)

    def generate_loan(self, customer: Customer, loan_type: LoanType | None = None) -> Loan:
        """Originate a loan for ``customer`` with terms typical of its type."""
        if loan_type is None:
            loan_type = random.choices(list(self.LOAN_PROFILES), weights=self.LOAN_WEIGHTS, k=1)[0]
        (low, high), terms, (rate_low, rate_high) = self.LOAN_PROFILES[loan_type]

        principal = Decimal(random.randint(low, high) * 1000)
        term_months = random.choice(terms)
        interest_rate = Decimal(str(round(random.uniform(rate_low, rate_high), 2)))
        start_date = self.service.clock().date() - relativedelta(months=random.randint(6, 36))

        return self.service.create_loan(
            customer_id=customer.customer_id,
            principal=principal,
            interest_rate=interest_rate,
            term_months=term_months,
            start_date=start_date,
            monthly_payment=amortized_payment(principal, interest_rate, term_months),
            loan_type=loan_type,
            purpose=loan_type.value,
        )

    def generate_modifications(self, loan: Loan, count: int) -> list[ModificationEntry]:
        """Append ``count`` plausible modifications to the loan's ledger."""
        entries = []
        for _ in range(count):
            mod_type = random.choice(self.MODIFICATION_TYPES)
            params = self.service.get_effective_parameters(loan.loan_id)
            entries.append(
                self.service.append_modification(
                    loan.loan_id,
                    mod_type,
                    self._changes_for(mod_type, params),
                    reason=self.fake.sentence(nb_words=6),
                    approver=random.choice(self.APPROVERS),
                )
            )
        return entries

    def _changes_for(self, mod_type: ModificationType, params: LoanParameters) -> dict:
        if mod_type == ModificationType.RATE_CHANGE:
            cut = Decimal(str(round(random.uniform(0.25, 1.5), 2)))
            return {"newRate": max(Decimal("1.00"), params.interest_rate - cut)}
        if mod_type == ModificationType.TERM_EXTENSION:
            return {"additionalMonths": random.choice([6, 12, 24])}
        if mod_type == ModificationType.PRINCIPAL_REDUCTION:
            share = Decimal(str(round(random.uniform(0.01, 0.05), 3)))
            return {"reductionAmount": (params.principal * share).quantize(Decimal("1"))}
        if mod_type == ModificationType.PAYMENT_REDUCTION_TEMPORARY:
            payment = params.monthly_payment or amortized_payment(
                params.principal, params.interest_rate, params.term_months
            )
            return {
                "newPaymentAmount": (payment * Decimal("0.6")).quantize(CENT),
                "numberOfTerms": random.choice([3, 6]),
                "interestHandling": random.choice(["capitalize", "defer"]),
            }
        return {
            "durationMonths": random.choice([3, 6]),
            "forbearanceType": random.choice(["FULL", "PARTIAL"]),
        }

    def generate_payments(self, loan: Loan, count: int) -> list[Payment]:
        """Record ``count`` completed monthly payments, oldest first."""
        params = self.service.get_effective_parameters(loan.loan_id)
        payment_amount = params.monthly_payment or amortized_payment(
            params.principal, params.interest_rate, params.term_months
        )
        monthly_rate = params.interest_rate / Decimal(1200)
        balance = self.service.get_current_balance(loan.loan_id)
        first_due = params.start_date or self.service.clock().date()

        payments = []
        for number in range(1, count + 1):
            interest = (balance * monthly_rate).quantize(CENT, rounding=ROUND_HALF_UP)
            principal = min(balance, max(Decimal("0"), payment_amount - interest))
            payments.append(
                self.service.record_payment(
                    loan.loan_id,
                    interest + principal,
                    PaymentAllocation(interest=interest, principal=principal),
                    created_by="Demo Seeder",
                    payment_date=first_due + relativedelta(months=number),
                    reference=f"DEMO-{self.fake.bothify('????-####').upper()}",
                )
            )
            balance -= principal
        return payments

"""Demo data generators."""

from loan_servicing.generators.base import BaseGenerator
from loan_servicing.generators.portfolio import DemoPortfolio, DemoPortfolioGenerator, amortized_payment

__all__ = [
    "BaseGenerator",
    "DemoPortfolio",
    "DemoPortfolioGenerator",
    "amortized_payment",
]

#!/usr/bin/env python3
"""Seed a loan-servicing store with a demo portfolio.

Generates borrowers, loans, ledger modifications and completed payments
through the servicing service, so every loan has a captured baseline,
reconciled parameters and a cached balance. Defaults come from the
environment (see ``ServicingConfig.from_env``); flags override them.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from loan_servicing.config import ServicingConfig, StorageConfig, build_store
from loan_servicing.exceptions import LoanServicingError
from loan_servicing.generators import DemoPortfolioGenerator
from loan_servicing.logging import configure_logging
from loan_servicing.service import LoanServicingService

logger = logging.getLogger("seed_demo_data")


def main() -> int:
    """Main entry point."""
    config = ServicingConfig.from_env()
    demo = config.demo

    parser = argparse.ArgumentParser(description="Seed a loan-servicing store with demo data")
    parser.add_argument(
        "--customers",
        type=int,
        default=demo.num_customers,
        help=f"Number of customers to generate (default: {demo.num_customers})",
    )
    parser.add_argument(
        "--loans-per-customer",
        type=int,
        default=demo.loans_per_customer,
        help=f"Loans per customer (default: {demo.loans_per_customer})",
    )
    parser.add_argument(
        "--modifications",
        type=int,
        default=demo.modifications_per_loan,
        help=f"Modifications per loan (default: {demo.modifications_per_loan})",
    )
    parser.add_argument(
        "--payments",
        type=int,
        default=demo.payments_per_loan,
        help=f"Completed payments per loan (default: {demo.payments_per_loan})",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=demo.seed if demo.seed is not None else 42,
        help="Random seed for reproducibility (default: 42)",
    )
    parser.add_argument(
        "--locale",
        type=str,
        default=demo.locale,
        help=f"Faker locale (default: {demo.locale})",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=config.storage.data_dir,
        help=f"Directory for the JSON store (default: {config.storage.data_dir})",
    )
    parser.add_argument(
        "--pretty",
        action="store_true",
        default=config.storage.pretty_json,
        help="Indent the JSON documents",
    )
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Clear existing data in the store before seeding",
    )
    args = parser.parse_args()

    configure_logging(config)

    storage = StorageConfig(backend="json", data_dir=args.data_dir, pretty_json=args.pretty)
    try:
        service = LoanServicingService(build_store(storage), config=config)
        if args.reset:
            logger.info("Clearing existing data in %s", args.data_dir)
            service.clear_all_data()

        generator = DemoPortfolioGenerator(service, seed=args.seed, locale=args.locale)
        portfolio = generator.generate(
            num_customers=args.customers,
            loans_per_customer=args.loans_per_customer,
            modifications_per_loan=args.modifications,
            payments_per_loan=args.payments,
        )
    except LoanServicingError as exc:
        logger.error("Seeding failed: %s", exc)
        return 1

    print(json.dumps({"data_dir": str(args.data_dir), **portfolio.summary()}, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""Base generator class for demo data generators."""

from __future__ import annotations

import random
from abc import ABC
from typing import Callable

from faker import Faker

from loan_servicing.exceptions import ConfigurationError
from loan_servicing.models.base import Address


def _address_us(fake: Faker) -> Address:
    return Address(
        street=fake.street_address(),
        city=fake.city(),
        state=fake.state_abbr(),
        postal_code=fake.zipcode(),
        country="US",
    )


def _address_gb(fake: Faker) -> Address:
    return Address(
        street=fake.street_address(),
        city=fake.city(),
        state=fake.county(),
        postal_code=fake.postcode(),
        country="GB",
    )


def _address_br(fake: Faker) -> Address:
    return Address(
        street=fake.street_address(),
        city=fake.city(),
        state=fake.estado_sigla(),
        postal_code=fake.postcode(),
        country="BR",
    )


ADDRESS_BUILDERS: dict[str, Callable[[Faker], Address]] = {
    "en_US": _address_us,
    "en_GB": _address_gb,
    "pt_BR": _address_br,
}


class BaseGenerator(ABC):
    """Base class for demo data generators.

    Provides a Faker instance and seed-based reproducibility.

    Parameters
    ----------
    seed : int | None
        Random seed for reproducibility.
    locale : str
        Faker locale; one of ``ADDRESS_BUILDERS``.
    """

    def __init__(self, seed: int | None = None, locale: str = "en_US") -> None:
        if locale not in ADDRESS_BUILDERS:
            raise ConfigurationError(
                f"Unsupported locale {locale!r}; expected one of {sorted(ADDRESS_BUILDERS)}"
            )
        self.locale = locale
        self.fake = Faker(locale)
        self._build_address = ADDRESS_BUILDERS[locale]
        if seed is not None:
            self.fake.seed_instance(seed)
            random.seed(seed)

    def address(self) -> Address:
        return self._build_address(self.fake)

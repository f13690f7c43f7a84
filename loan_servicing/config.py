"""Configuration management for loan-servicing."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from loan_servicing.exceptions import ConfigurationError

if TYPE_CHECKING:
    from loan_servicing.store.base import ServicingStore

STORAGE_BACKENDS = ("memory", "json")
LOG_FORMATS = ("standard", "json")


@dataclass
class StorageConfig:
    """Persistence backend configuration."""

    backend: str = "memory"
    data_dir: Path = field(default_factory=lambda: Path("data"))
    pretty_json: bool = False

    def __post_init__(self) -> None:
        if self.backend not in STORAGE_BACKENDS:
            raise ConfigurationError(
                f"Unknown storage backend {self.backend!r}; expected one of {STORAGE_BACKENDS}"
            )


@dataclass
class LedgerConfig:
    """Modification ledger configuration."""

    default_actor: str = "System"
    id_prefix: str = "mod"


@dataclass
class DemoConfig:
    """Demo portfolio generation configuration."""

    num_customers: int = 5
    loans_per_customer: int = 1
    modifications_per_loan: int = 2
    payments_per_loan: int = 3
    locale: str = "en_US"
    seed: int | None = None


@dataclass
class ServicingConfig:
    """Main configuration for loan-servicing."""

    storage: StorageConfig = field(default_factory=StorageConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    demo: DemoConfig = field(default_factory=DemoConfig)
    log_level: str = "INFO"
    log_format: str = "standard"

    def __post_init__(self) -> None:
        if self.log_format not in LOG_FORMATS:
            raise ConfigurationError(
                f"Unknown log format {self.log_format!r}; expected one of {LOG_FORMATS}"
            )

    @classmethod
    def from_env(cls) -> "ServicingConfig":
        """Create config from environment variables."""
        import os

        storage = StorageConfig(
            backend=os.getenv("LOAN_STORAGE_BACKEND", "memory").lower(),
            data_dir=Path(os.getenv("LOAN_DATA_DIR", "data")),
            pretty_json=os.getenv("PRETTY_JSON", "false").lower() == "true",
        )

        ledger = LedgerConfig(
            default_actor=os.getenv("LEDGER_DEFAULT_ACTOR", "System"),
            id_prefix=os.getenv("LEDGER_ID_PREFIX", "mod"),
        )

        try:
            demo = DemoConfig(
                num_customers=int(os.getenv("DEMO_NUM_CUSTOMERS", "5")),
                loans_per_customer=int(os.getenv("DEMO_LOANS_PER_CUSTOMER", "1")),
                modifications_per_loan=int(os.getenv("DEMO_MODIFICATIONS_PER_LOAN", "2")),
                payments_per_loan=int(os.getenv("DEMO_PAYMENTS_PER_LOAN", "3")),
                locale=os.getenv("DEMO_LOCALE", "en_US"),
                seed=int(os.getenv("SEED")) if os.getenv("SEED") else None,
            )
        except ValueError as exc:
            raise ConfigurationError(f"Invalid demo configuration: {exc}") from exc

        return cls(
            storage=storage,
            ledger=ledger,
            demo=demo,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "standard").lower(),
        )


def build_store(config: StorageConfig) -> "ServicingStore":
    """Instantiate the store selected by ``config.backend``."""
    if config.backend == "json":
        from loan_servicing.store.json_file import JsonFileServicingStore

        return JsonFileServicingStore(config.data_dir, pretty=config.pretty_json)

    from loan_servicing.store.memory import InMemoryServicingStore

    return InMemoryServicingStore()

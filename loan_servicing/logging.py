"""Logging setup for loan-servicing.

Degraded replays (a missing baseline, an unrecognized modification type)
are logged as warnings with structured context passed through ``extra``:
an ``event`` name plus the ``loan_id`` / ``entry_id`` involved. The JSON
formatter lifts those fields to top-level keys so they can be queried.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, TYPE_CHECKING, Any, MutableMapping

if TYPE_CHECKING:
    from loan_servicing.config import ServicingConfig

STANDARD_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Libraries whose INFO/DEBUG output drowns ours
QUIET_LOGGERS = ("faker",)

# Attributes every LogRecord carries; anything else arrived via ``extra``
_RESERVED_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
}


def setup_logging(
    level: str = "INFO",
    format_type: str = "standard",
    stream: IO[str] | None = None,
) -> None:
    """Route all logging to a single stream handler.

    Parameters
    ----------
    level : str
        Level name; unknown names fall back to INFO.
    format_type : str
        "standard" for pipe-separated text, "json" for one document per line.
    stream : IO[str] | None
        Destination, stdout by default.
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    formatter: logging.Formatter
    if format_type == "json":
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(fmt=STANDARD_FORMAT, datefmt=DATE_FORMAT)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)

    logging.getLogger("loan_servicing").setLevel(log_level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def configure_logging(config: ServicingConfig) -> None:
    """Apply the level and format from a ``ServicingConfig``."""
    setup_logging(config.log_level, config.log_format)


def structured_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Fields attached to ``record`` through ``extra``."""
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _RESERVED_ATTRS and not key.startswith("_")
    }


class JsonFormatter(logging.Formatter):
    """One JSON document per record, with ``extra`` fields merged in."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log_data.update(structured_fields(record))

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class LoanLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that stamps every record with a ``loan_id``."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**(self.extra or {}), **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger(name: str, loan_id: str | None = None) -> logging.Logger | LoanLoggerAdapter:
    """Module logger, optionally bound to one loan.

    Parameters
    ----------
    name : str
        Logger name (usually ``__name__``).
    loan_id : str | None
        When given, records logged through the result carry ``loan_id``.
    """
    logger = logging.getLogger(name)
    if loan_id is None:
        return logger
    return LoanLoggerAdapter(logger, {"loan_id": loan_id})

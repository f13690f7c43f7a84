"""Append-only modification ledger."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Callable

from loan_servicing.exceptions import (
    AlreadyReversedError,
    DuplicateEntryError,
    IrreversibleEntryError,
    TargetNotFoundError,
)
from loan_servicing.models.loan import ModificationEntry, ModificationStatus, Reversal
from loan_servicing.store.base import LedgerStore

logger = logging.getLogger(__name__)


class ModificationLedger:
    """Ordered, append-only log of modification and reversal entries.

    The ledger holds no derived loan state. Appending a reversal flips its
    target to REVERSED but does not recompute loan parameters; callers run
    the reconciler afterwards.

    Parameters
    ----------
    store : LedgerStore
        Persistence backend.
    clock : Callable[[], datetime] | None
        Source of "now" for entry and reversal timestamps.
    id_prefix : str
        Prefix for generated entry ids.
    """

    def __init__(
        self,
        store: LedgerStore,
        clock: Callable[[], datetime] | None = None,
        id_prefix: str = "mod",
    ) -> None:
        self.store = store
        self.clock = clock or datetime.now
        self.id_prefix = id_prefix

    def append(self, entry: ModificationEntry) -> ModificationEntry:
        """Store ``entry`` and return it with id, timestamp and status set.

        For a REVERSAL entry the target is validated first and marked
        REVERSED in the same store write as the reversal itself; if
        validation fails nothing is written.

        Raises
        ------
        DuplicateEntryError
            An entry with the same id is already in the ledger.
        TargetNotFoundError
            Reversal target does not exist in this loan's ledger.
        IrreversibleEntryError
            Reversal target is itself a reversal.
        AlreadyReversedError
            Reversal target was already reversed.
        """
        if not entry.entry_id:
            entry.entry_id = f"{self.id_prefix}_{uuid.uuid4().hex}"
        elif self.store.get_entry(entry.entry_id) is not None:
            raise DuplicateEntryError(f"Modification {entry.entry_id} already exists")
        if entry.created_at is None:
            entry.created_at = self.clock()
        entry.status = ModificationStatus.ACTIVE

        target = self._validate_reversal_target(entry) if entry.is_reversal else None

        entry.sequence = self.store.next_sequence()
        if target is not None:
            target.mark_reversed(entry.created_at, entry.approved_by, entry.reason)
        self.store.append_entry(entry, reversed_target=target)

        if target is not None:
            logger.info(
                "Reversed modification %s (%s) on loan %s",
                target.entry_id,
                target.type_name,
                entry.loan_id,
            )
        logger.debug("Appended %s entry %s to loan %s", entry.type_name, entry.entry_id, entry.loan_id)
        return entry

    def get(self, entry_id: str) -> ModificationEntry | None:
        return self.store.get_entry(entry_id)

    def list(self, loan_id: str) -> list[ModificationEntry]:
        """All entries for a loan, oldest first; ties keep insertion order."""
        return sorted(self.store.list_entries(loan_id), key=_replay_key)

    def active_entries(self, loan_id: str) -> list[ModificationEntry]:
        """Entries that contribute to the loan's effective parameters."""
        return select_active(self.store.list_entries(loan_id))

    def _validate_reversal_target(self, entry: ModificationEntry) -> ModificationEntry:
        payload = entry.payload
        target_id = payload.original_modification_id if isinstance(payload, Reversal) else ""
        target = self.store.get_entry(target_id) if target_id else None
        if target is None or target.loan_id != entry.loan_id:
            raise TargetNotFoundError(
                f"Modification {target_id or '<missing>'} not found for loan {entry.loan_id}"
            )
        if target.is_reversal:
            raise IrreversibleEntryError(f"Modification {target_id} is a reversal and cannot be reversed")
        if target.is_reversed:
            raise AlreadyReversedError(f"Modification {target_id} is already reversed")
        return target


def _replay_key(entry: ModificationEntry) -> tuple[datetime, int]:
    return (entry.created_at or datetime.min, entry.sequence)


def select_active(entries: list[ModificationEntry]) -> list[ModificationEntry]:
    """Non-reversed, non-reversal entries in replay order."""
    active = [e for e in entries if not e.is_reversed and not e.is_reversal]
    return sorted(active, key=_replay_key)

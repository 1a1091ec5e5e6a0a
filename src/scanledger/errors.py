"""Exception hierarchy for the scanning core."""

from __future__ import annotations


class ScanLedgerError(Exception):
    """Base exception for scanner failures surfaced to the caller."""


class InputUnavailableError(ScanLedgerError):
    """The camera or decoder could not be acquired. Not retried."""


class LedgerCommitError(ScanLedgerError):
    """A snapshot could not be made durable.

    The in-memory snapshot is left at its prior value, so the caller sees
    the same state that the next ``load()`` would return.
    """

    def __init__(self, message: str, attempts: int = 1) -> None:
        super().__init__(message)
        self.attempts = attempts


class LedgerLoadError(ScanLedgerError):
    """The store could not be read, so the persisted ledger is unknown.

    Scanning must not start: an empty in-memory ledger would overwrite
    the durable record on the first commit.
    """

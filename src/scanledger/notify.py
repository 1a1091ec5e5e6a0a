"""Presentation port: how scan outcomes reach the UI.

The session calls a ``Notifier`` after every committed scan, after a
reset, and for lifecycle status lines. Notifiers only read; they never
mutate the ledger.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from scanledger.constants import Classification, Cue, StatusLevel

if TYPE_CHECKING:
    from scanledger.classifier import ScanResult
    from scanledger.stats import LedgerStats

logger = logging.getLogger(__name__)

_STATUS_TEXT: dict[Classification, tuple[str, StatusLevel, Cue]] = {
    Classification.VALID: ("VALID TOKEN", StatusLevel.VALID, Cue.SUCCESS),
    Classification.DUPLICATE: ("DUPLICATE TOKEN", StatusLevel.ERROR, Cue.ERROR),
    Classification.INVALID: ("INVALID TOKEN", StatusLevel.ERROR, Cue.ERROR),
}


def status_for(result: ScanResult) -> tuple[str, StatusLevel, Cue]:
    """Status line, level and cue for a classification."""
    label, level, cue = _STATUS_TEXT[result.classification]
    return f"{label}: {result.token_id}", level, cue


@runtime_checkable
class Notifier(Protocol):
    def on_scan(self, result: ScanResult, stats: LedgerStats) -> None: ...

    def on_reset(self, stats: LedgerStats) -> None: ...

    def on_status(
        self, message: str, level: StatusLevel, cue: Cue | None = None,
    ) -> None: ...


class LoggingNotifier:
    """Notifier that writes status lines to the log. Useful headless."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    def on_scan(self, result: ScanResult, stats: LedgerStats) -> None:
        message, level, cue = status_for(result)
        self.on_status(message, level, cue)
        self._log.info(
            "total=%d valid=%d duplicates=%d remaining=%d",
            stats.total_scanned, stats.valid_scans, stats.duplicates, stats.remaining,
        )

    def on_reset(self, stats: LedgerStats) -> None:
        self._log.info("Ledger cleared; %d token(s) remaining.", stats.remaining)

    def on_status(
        self, message: str, level: StatusLevel, cue: Cue | None = None,
    ) -> None:
        if level is StatusLevel.ERROR:
            self._log.warning("%s", message)
        else:
            self._log.info("%s", message)

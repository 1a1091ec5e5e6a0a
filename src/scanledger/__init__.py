"""scanledger — single-station token check-in scanner core.

Validates decoded QR identifiers against a fixed universe, deduplicates
repeat presentations, and keeps durable scan statistics.
"""

__version__ = "0.1.0"

from scanledger.classifier import ScanResult, classify
from scanledger.config import ScannerConfig
from scanledger.constants import Classification, Cue, ResetDecision, StatusLevel
from scanledger.debounce import DebounceGate
from scanledger.errors import (
    InputUnavailableError,
    LedgerCommitError,
    LedgerLoadError,
    ScanLedgerError,
)
from scanledger.ledger import LedgerSnapshot
from scanledger.notify import LoggingNotifier, Notifier, status_for
from scanledger.scan_ledger import ScanLedger
from scanledger.session import Decoder, FrameSource, ScanSession
from scanledger.stats import LedgerStats, format_scan_time
from scanledger.store import PersistenceStore, StoreError
from scanledger.stores import HttpStore, JsonFileStore, MemoryStore
from scanledger.universe import TokenUniverse

__all__ = [
    "Classification",
    "Cue",
    "DebounceGate",
    "Decoder",
    "FrameSource",
    "HttpStore",
    "InputUnavailableError",
    "JsonFileStore",
    "LedgerCommitError",
    "LedgerLoadError",
    "LedgerSnapshot",
    "LedgerStats",
    "LoggingNotifier",
    "MemoryStore",
    "Notifier",
    "PersistenceStore",
    "ResetDecision",
    "ScanLedger",
    "ScanLedgerError",
    "ScanResult",
    "ScanSession",
    "ScannerConfig",
    "StatusLevel",
    "StoreError",
    "TokenUniverse",
    "classify",
    "format_scan_time",
    "status_for",
]

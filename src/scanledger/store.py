"""Abstract persistence interface for the scan ledger.

Defines the PersistenceStore Protocol that ScanLedger depends on, plus
the StoreError hierarchy concrete backends raise. Implementations live
in ``scanledger.stores``.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


# ---------------------------------------------------------------------------
# Exception hierarchy
# ---------------------------------------------------------------------------


class StoreError(Exception):
    """Base exception for persistence backend operations."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class StoreAuthError(StoreError):
    """401/403 — the backend rejected our credentials."""


class StoreServerError(StoreError):
    """5xx — server-side error (retryable)."""


class StoreConnectionError(StoreError):
    """Network/DNS failure or unwritable local path (retryable)."""


class StoreTimeoutError(StoreError):
    """Request timeout (retryable)."""


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class PersistenceStore(Protocol):
    """Async string key/value store.

    No multi-key transaction is assumed; ScanLedger writes its whole
    snapshot under one key so a single ``set`` is the unit of durability.
    ``delete`` of an absent key is a no-op. ``clear`` wipes everything the
    store holds and is never used by ScanLedger, since several ledgers
    may share one store.
    """

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def clear(self) -> None: ...

"""Durable scan ledger: loads, commits and resets snapshots in a store.

The in-memory snapshot only advances after the store accepted the
write, so memory and disk never diverge on a failed commit.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from scanledger.constants import DEFAULT_NAMESPACE
from scanledger.errors import LedgerCommitError, LedgerLoadError
from scanledger.ledger import LEGACY_KEYS, LedgerSnapshot
from scanledger.store import (
    StoreConnectionError,
    StoreError,
    StoreServerError,
    StoreTimeoutError,
)

if TYPE_CHECKING:
    from scanledger.store import PersistenceStore

logger = logging.getLogger(__name__)

_RETRYABLE = (StoreConnectionError, StoreTimeoutError, StoreServerError)


def _is_retryable(exc: Exception) -> bool:
    """Transport/server faults retry; other StoreErrors (auth, 4xx) do not."""
    return not isinstance(exc, StoreError) or isinstance(exc, _RETRYABLE)


class ScanLedger:
    """Snapshot persistence over a ``PersistenceStore``.

    - ``load()`` reads the namespaced record (or, in the default
      namespace, the legacy per-key layout). A missing or corrupt record
      loads as empty; a failing store raises LedgerLoadError.
    - ``commit()`` writes the whole snapshot with one ``set`` call,
      retrying transient failures ``commit_retries`` times before
      raising LedgerCommitError.
    - ``reset()`` deletes this ledger's keys only; other namespaces
      sharing the store are untouched.
    """

    def __init__(
        self,
        store: PersistenceStore,
        namespace: str = DEFAULT_NAMESPACE,
        commit_retries: int = 1,
        commit_retry_delay: float = 0.5,
    ) -> None:
        self._store = store
        self._namespace = namespace
        self._commit_retries = commit_retries
        self._commit_retry_delay = commit_retry_delay
        self._snapshot = LedgerSnapshot.empty()
        self._last_commit_at: str | None = None
        self._total_commits: int = 0
        self._failed_commits: int = 0

    @property
    def key(self) -> str:
        """Store key holding the snapshot record."""
        return f"{self._namespace}:snapshot"

    @property
    def _legacy_keys(self) -> tuple[str, ...]:
        # Earlier builds wrote un-namespaced keys; they belong to the default ledger.
        return LEGACY_KEYS if self._namespace == DEFAULT_NAMESPACE else ()

    @property
    def snapshot(self) -> LedgerSnapshot:
        """Last snapshot loaded from or committed to the store."""
        return self._snapshot

    async def load(self) -> LedgerSnapshot:
        """Read the persisted snapshot; empty on miss or corrupt record.

        Raises LedgerLoadError if the store itself cannot be read. Starting
        empty in that case would let the next commit overwrite every
        redeemed token.
        """
        try:
            record = await self._store.get(self.key)
            if record is None:
                snapshot = await self._load_legacy()
            else:
                snapshot = LedgerSnapshot.from_json(record)
        except Exception as exc:
            logger.error("Failed to read ledger from store: %s", exc)
            raise LedgerLoadError(f"ledger load failed: {exc}") from exc

        self._snapshot = snapshot
        logger.info(
            "Ledger loaded: total=%d valid=%d duplicates=%d.",
            snapshot.total_scanned, snapshot.valid_scans, snapshot.duplicates,
        )
        return snapshot

    async def _load_legacy(self) -> LedgerSnapshot:
        """Read the one-key-per-field layout written by earlier builds."""
        fields = {key: await self._store.get(key) for key in self._legacy_keys}
        if all(value is None for value in fields.values()):
            return LedgerSnapshot.empty()
        logger.info("Migrating ledger from legacy per-key layout.")
        return LedgerSnapshot.from_fields(fields)

    async def commit(self, snapshot: LedgerSnapshot) -> LedgerSnapshot:
        """Persist ``snapshot`` as a single record. Raises LedgerCommitError."""
        payload = snapshot.to_json()
        max_attempts = 1 + self._commit_retries
        for attempt in range(max_attempts):
            try:
                await self._store.set(self.key, payload)
            except Exception as exc:
                retryable = _is_retryable(exc)
                if retryable and attempt < max_attempts - 1:
                    logger.warning(
                        "Commit attempt %d/%d failed, retrying in %.1fs...",
                        attempt + 1, max_attempts, self._commit_retry_delay,
                    )
                    await asyncio.sleep(self._commit_retry_delay)
                    continue
                self._failed_commits += 1
                logger.error(
                    "Failed to commit ledger after %d attempt(s): %s",
                    attempt + 1, exc,
                )
                raise LedgerCommitError(
                    f"ledger commit failed after {attempt + 1} attempt(s): {exc}",
                    attempts=attempt + 1,
                ) from exc
            break

        self._snapshot = snapshot
        self._last_commit_at = datetime.now(timezone.utc).isoformat()
        self._total_commits += 1
        return snapshot

    async def reset(self) -> LedgerSnapshot:
        """Delete this ledger's persisted keys and return the empty snapshot."""
        try:
            # Legacy keys first: a half-done reset must not resurrect them.
            for key in (*self._legacy_keys, self.key):
                await self._store.delete(key)
        except Exception as exc:
            logger.error("Failed to clear ledger from store: %s", exc)
            raise LedgerCommitError(f"ledger reset failed: {exc}") from exc
        self._snapshot = LedgerSnapshot.empty()
        logger.info("Ledger reset (namespace=%s).", self._namespace)
        return self._snapshot

    def health(self) -> dict[str, object]:
        """Return commit metrics for monitoring."""
        return {
            "namespace": self._namespace,
            "last_commit_at": self._last_commit_at,
            "total_commits": self._total_commits,
            "failed_commits": self._failed_commits,
            "commit_retries": self._commit_retries,
            "used_tokens": len(self._snapshot.used_tokens),
        }

"""Scan classification: decoded text + universe + snapshot -> outcome.

Pure apart from reading the wall clock when ``now`` is not supplied.
The caller commits the returned snapshot.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import NamedTuple

from scanledger.constants import Classification
from scanledger.ledger import LedgerSnapshot
from scanledger.universe import TokenUniverse


class ScanResult(NamedTuple):
    classification: Classification
    token_id: str
    snapshot: LedgerSnapshot


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def classify(
    decoded_text: str,
    universe: TokenUniverse,
    snapshot: LedgerSnapshot,
    now: str | None = None,
) -> ScanResult:
    """Classify one admitted decode and compute the next snapshot.

    Order matters: universe membership first, then prior use. Every
    outcome bumps ``total_scanned`` and the timestamps; only VALID adds
    to ``used_tokens``.
    """
    token_id = decoded_text.strip()
    if now is None:
        now = utc_now_iso()

    stamped = replace(
        snapshot,
        total_scanned=snapshot.total_scanned + 1,
        last_scan_time=now,
        first_scan_time=snapshot.first_scan_time or now,
    )

    if not universe.contains(token_id):
        return ScanResult(Classification.INVALID, token_id, stamped)

    if snapshot.is_used(token_id):
        return ScanResult(
            Classification.DUPLICATE,
            token_id,
            replace(stamped, duplicates=snapshot.duplicates + 1),
        )

    return ScanResult(
        Classification.VALID,
        token_id,
        replace(
            stamped,
            used_tokens=snapshot.used_tokens | {token_id},
            valid_scans=snapshot.valid_scans + 1,
        ),
    )

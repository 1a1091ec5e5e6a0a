"""Scan ledger snapshot model and its persisted form.

Pure data model — no I/O. A ``LedgerSnapshot`` is the unit of
persistence and of atomic commit: which tokens are used, the three scan
counters, and the first/last scan timestamps (ISO-8601 strings).
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from scanledger.universe import TokenUniverse

logger = logging.getLogger(__name__)

_SCHEMA_VERSION = 1

# Persisted field names. These match the keys earlier browser builds wrote
# one-per-key, so the legacy layout parses with the same code.
USED_TOKENS_KEY = "usedTokens"
TOTAL_SCANNED_KEY = "totalScanned"
VALID_SCANS_KEY = "validScans"
DUPLICATES_KEY = "duplicates"
FIRST_SCAN_KEY = "firstScanTime"
LAST_SCAN_KEY = "lastScanTime"

LEGACY_KEYS = (
    USED_TOKENS_KEY,
    TOTAL_SCANNED_KEY,
    VALID_SCANS_KEY,
    DUPLICATES_KEY,
    FIRST_SCAN_KEY,
    LAST_SCAN_KEY,
)


# ---------------------------------------------------------------------------
# Field parsers (each falls back to its own default)
# ---------------------------------------------------------------------------


def _parse_used_tokens(raw: Any) -> frozenset[str]:
    if raw is None or raw == "":
        return frozenset()
    obj = raw
    if isinstance(raw, str):
        try:
            obj = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Persisted %s is not valid JSON; using empty set.", USED_TOKENS_KEY)
            return frozenset()
    if not isinstance(obj, dict):
        logger.warning("Persisted %s is not a mapping; using empty set.", USED_TOKENS_KEY)
        return frozenset()
    return frozenset(str(k) for k, v in obj.items() if v)


def _parse_count(name: str, raw: Any) -> int:
    if raw is None or raw == "":
        return 0
    try:
        value = int(raw)
    except (TypeError, ValueError):
        logger.warning("Persisted %s=%r is not an integer; using 0.", name, raw)
        return 0
    if value < 0:
        logger.warning("Persisted %s=%d is negative; using 0.", name, value)
        return 0
    return value


def _parse_timestamp(name: str, raw: Any) -> str | None:
    if raw is None or raw == "":
        return None
    if not isinstance(raw, str):
        logger.warning("Persisted %s=%r is not a string; using null.", name, raw)
        return None
    try:
        # JavaScript's toISOString() uses a trailing "Z".
        datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Persisted %s=%r is not ISO-8601; using null.", name, raw)
        return None
    return raw


# ---------------------------------------------------------------------------
# LedgerSnapshot
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerSnapshot:
    """Immutable ledger state.

    Invariants for every snapshot this package produces:
    ``valid_scans == len(used_tokens)`` and
    ``total_scanned >= valid_scans + duplicates``.
    """

    used_tokens: frozenset[str] = field(default_factory=frozenset)
    total_scanned: int = 0
    valid_scans: int = 0
    duplicates: int = 0
    first_scan_time: str | None = None
    last_scan_time: str | None = None

    @classmethod
    def empty(cls) -> LedgerSnapshot:
        return cls()

    @property
    def invalid_count(self) -> int:
        """Derived: scans that matched nothing in the universe."""
        return self.total_scanned - self.valid_scans - self.duplicates

    @property
    def is_empty(self) -> bool:
        return self == LedgerSnapshot()

    def is_used(self, token_id: str) -> bool:
        return token_id in self.used_tokens

    def foreign_tokens(self, universe: TokenUniverse) -> frozenset[str]:
        """Used ids that are not members of ``universe``."""
        return frozenset(t for t in self.used_tokens if t not in universe)

    def remaining(self, universe: TokenUniverse) -> int:
        """Tokens of ``universe`` not yet redeemed.

        Only ids inside the universe count, so a ledger carried over from
        a different universe cannot push this below the true figure.
        """
        return len(universe) - sum(1 for t in self.used_tokens if t in universe)

    # -- serialization --------------------------------------------------------

    def to_record(self) -> dict[str, Any]:
        """Persisted form: independently readable string-encoded fields."""
        return {
            "v": _SCHEMA_VERSION,
            USED_TOKENS_KEY: json.dumps(
                {t: True for t in sorted(self.used_tokens)}, sort_keys=True,
            ),
            TOTAL_SCANNED_KEY: str(self.total_scanned),
            VALID_SCANS_KEY: str(self.valid_scans),
            DUPLICATES_KEY: str(self.duplicates),
            FIRST_SCAN_KEY: self.first_scan_time,
            LAST_SCAN_KEY: self.last_scan_time,
        }

    def to_json(self) -> str:
        """Deterministic JSON, so re-committing a loaded snapshot is byte-stable."""
        return json.dumps(self.to_record(), sort_keys=True)

    @classmethod
    def from_fields(cls, fields: Mapping[str, Any]) -> LedgerSnapshot:
        """Build from persisted fields, defaulting any field that fails to parse.

        Accepts both the current record and the legacy one-key-per-field
        layout. Inconsistent counters are repaired so the invariants hold.
        """
        used = _parse_used_tokens(fields.get(USED_TOKENS_KEY))
        total = _parse_count(TOTAL_SCANNED_KEY, fields.get(TOTAL_SCANNED_KEY))
        valid = _parse_count(VALID_SCANS_KEY, fields.get(VALID_SCANS_KEY))
        dups = _parse_count(DUPLICATES_KEY, fields.get(DUPLICATES_KEY))
        first = _parse_timestamp(FIRST_SCAN_KEY, fields.get(FIRST_SCAN_KEY))
        last = _parse_timestamp(LAST_SCAN_KEY, fields.get(LAST_SCAN_KEY))

        if valid != len(used):
            logger.warning(
                "Persisted %s=%d disagrees with %d used token(s); using %d.",
                VALID_SCANS_KEY, valid, len(used), len(used),
            )
            valid = len(used)
        if total < valid + dups:
            logger.warning(
                "Persisted %s=%d is below valid+duplicates=%d; raising it.",
                TOTAL_SCANNED_KEY, total, valid + dups,
            )
            total = valid + dups
        if total > 0 and first is None and last is not None:
            first = last

        return cls(
            used_tokens=used,
            total_scanned=total,
            valid_scans=valid,
            duplicates=dups,
            first_scan_time=first,
            last_scan_time=last,
        )

    @classmethod
    def from_json(cls, data: str) -> LedgerSnapshot:
        """Deserialize a record. Returns the empty snapshot on corrupt data."""
        try:
            obj = json.loads(data)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Ledger record is corrupt; returning empty snapshot.")
            return cls()

        if not isinstance(obj, dict):
            logger.warning("Ledger record is not a dict; returning empty snapshot.")
            return cls()

        version = obj.get("v")
        if version is not None and version != _SCHEMA_VERSION:
            logger.warning(
                "Ledger record has schema v%s (expected v%d); reading known fields.",
                version, _SCHEMA_VERSION,
            )
        return cls.from_fields(obj)

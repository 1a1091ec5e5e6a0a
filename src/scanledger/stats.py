"""Read-only statistics view handed to the presentation layer."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from scanledger.ledger import LedgerSnapshot
from scanledger.universe import TokenUniverse

_NO_TIME = "--"


def format_scan_time(timestamp: str | None) -> str:
    """Render an ISO timestamp as local ``Oct 18, 02:03:04 PM``."""
    if not timestamp:
        return _NO_TIME
    try:
        dt = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    except ValueError:
        return _NO_TIME
    if dt.tzinfo is not None:
        dt = dt.astimezone()
    return f"{dt:%b} {dt.day}, {dt:%I:%M:%S %p}"


@dataclass(frozen=True)
class LedgerStats:
    """Counter panel for one ledger snapshot."""

    total_scanned: int
    valid_scans: int
    duplicates: int
    invalid: int
    remaining: int
    first_scan_time: str | None
    last_scan_time: str | None

    @classmethod
    def from_snapshot(cls, snapshot: LedgerSnapshot, universe: TokenUniverse) -> LedgerStats:
        return cls(
            total_scanned=snapshot.total_scanned,
            valid_scans=snapshot.valid_scans,
            duplicates=snapshot.duplicates,
            invalid=snapshot.invalid_count,
            remaining=snapshot.remaining(universe),
            first_scan_time=snapshot.first_scan_time,
            last_scan_time=snapshot.last_scan_time,
        )

    @property
    def first_scan_display(self) -> str:
        return format_scan_time(self.first_scan_time)

    @property
    def last_scan_display(self) -> str:
        return format_scan_time(self.last_scan_time)

    def to_dict(self) -> dict[str, object]:
        return {
            "total_scanned": self.total_scanned,
            "valid_scans": self.valid_scans,
            "duplicates": self.duplicates,
            "invalid": self.invalid,
            "remaining": self.remaining,
            "first_scan_time": self.first_scan_time,
            "last_scan_time": self.last_scan_time,
        }

#!/usr/bin/env python3
"""Run a scan session fed by decoded text on stdin.

Each input line is one decode, as typed by a keyboard-wedge barcode
scanner or replayed from a capture log. The ledger is kept in a JSON
file so counts survive restarts:

  python scripts/replay_scans.py --store ledger.json
  python scripts/replay_scans.py --store ledger.json --reset
  python scripts/replay_scans.py --debounce-ms 0 < scans.txt
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import AsyncIterator

from scanledger import (
    JsonFileStore,
    LoggingNotifier,
    ResetDecision,
    ScanLedger,
    ScanLedgerError,
    ScannerConfig,
    ScanSession,
)


class StdinSource:
    """FrameSource yielding one stripped-of-newline line per frame."""

    async def open(self) -> None:
        if sys.stdin is None or sys.stdin.closed:
            raise OSError("stdin is not available")

    async def frames(self) -> AsyncIterator[str]:
        while True:
            line = await asyncio.to_thread(sys.stdin.readline)
            if not line:
                return
            yield line.rstrip("\n")

    async def close(self) -> None:
        return None


class LineDecoder:
    """Every non-blank line is a decoded code; blank lines mean nothing seen."""

    def decode(self, frame: str) -> str | None:
        return frame if frame.strip() else None


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--store", default="scanledger.json", help="ledger JSON file")
    parser.add_argument("--total", type=int, default=ScannerConfig.total_tokens)
    parser.add_argument("--prefix", default=ScannerConfig.token_prefix)
    parser.add_argument("--pad-width", type=int, default=ScannerConfig.pad_width)
    parser.add_argument("--debounce-ms", type=int, default=ScannerConfig.debounce_ms)
    parser.add_argument("--interval-ms", type=int, default=0, help="pause between lines")
    parser.add_argument("--reset", action="store_true", help="clear the ledger and exit")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


async def _run(args: argparse.Namespace) -> int:
    config = ScannerConfig(
        total_tokens=args.total,
        token_prefix=args.prefix,
        pad_width=args.pad_width,
        debounce_ms=args.debounce_ms,
        scan_interval_ms=args.interval_ms,
    )
    ledger = ScanLedger(
        JsonFileStore(args.store),
        namespace=config.namespace,
        commit_retries=config.commit_retries,
        commit_retry_delay=config.commit_retry_delay,
    )
    session = ScanSession(ledger, LineDecoder(), config=config, notifier=LoggingNotifier())
    source = StdinSource()

    try:
        if args.reset:
            await ledger.load()
            await session.request_reset(ResetDecision.CONFIRMED)
            return 0

        await session.start(source)
        await session.run(source)
    except ScanLedgerError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    stats = session.stats
    print(
        f"total={stats.total_scanned} valid={stats.valid_scans} "
        f"duplicates={stats.duplicates} invalid={stats.invalid} "
        f"remaining={stats.remaining} first={stats.first_scan_display} "
        f"last={stats.last_scan_display}"
    )
    return 0


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    sys.exit(asyncio.run(_run(args)))


if __name__ == "__main__":
    main()

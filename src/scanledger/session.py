"""Tick-driven scan session: decode -> debounce -> classify -> commit -> notify.

All mutable scanning state (the scanning flag, the debounce gate) lives
on the ``ScanSession`` object. Exactly one tick is in flight at a time,
so ledger commits are applied in presentation order without locking.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Callable
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from scanledger.classifier import ScanResult, classify, utc_now_iso
from scanledger.config import ScannerConfig
from scanledger.constants import Cue, ResetDecision, StatusLevel
from scanledger.debounce import DebounceGate
from scanledger.errors import InputUnavailableError, LedgerCommitError, LedgerLoadError
from scanledger.notify import LoggingNotifier
from scanledger.stats import LedgerStats
from scanledger.universe import TokenUniverse

if TYPE_CHECKING:
    from scanledger.ledger import LedgerSnapshot
    from scanledger.notify import Notifier
    from scanledger.scan_ledger import ScanLedger

logger = logging.getLogger(__name__)


@runtime_checkable
class Decoder(Protocol):
    """Turns a captured frame into decoded text, or None if no code is visible."""

    def decode(self, frame: Any) -> str | None: ...


@runtime_checkable
class FrameSource(Protocol):
    """Camera (or any capture device) delivering frames at its own cadence."""

    async def open(self) -> None: ...

    def frames(self) -> AsyncIterator[Any]: ...

    async def close(self) -> None: ...


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class ScanSession:
    """One scanning station bound to a ledger, a universe and a decoder.

    ``clock`` returns milliseconds for the debounce gate; ``wall_clock``
    returns the ISO timestamp recorded on each classification. Both are
    injectable so tests can replay exact timelines.
    """

    def __init__(
        self,
        ledger: ScanLedger,
        decoder: Decoder,
        config: ScannerConfig | None = None,
        notifier: Notifier | None = None,
        universe: TokenUniverse | None = None,
        clock: Callable[[], float] = _monotonic_ms,
        wall_clock: Callable[[], str] = utc_now_iso,
    ) -> None:
        self.config = config or ScannerConfig()
        self.universe = universe or TokenUniverse.from_config(self.config)
        self.gate = DebounceGate(self.config.debounce_ms)
        self.scanning = False
        self._ledger = ledger
        self._decoder = decoder
        self._notifier: Notifier = notifier or LoggingNotifier()
        self._clock = clock
        self._wall_clock = wall_clock
        self._stopped = False

    @property
    def snapshot(self) -> LedgerSnapshot:
        return self._ledger.snapshot

    @property
    def stats(self) -> LedgerStats:
        return LedgerStats.from_snapshot(self._ledger.snapshot, self.universe)

    def _warn_foreign_tokens(self) -> None:
        foreign = self._ledger.snapshot.foreign_tokens(self.universe)
        if foreign:
            logger.warning(
                "Ledger holds %d used token(s) outside the current universe "
                "(e.g. %s); they do not count toward remaining.",
                len(foreign), sorted(foreign)[0],
            )

    # -- lifecycle ------------------------------------------------------------

    async def start(self, source: FrameSource) -> None:
        """Load the ledger and acquire the capture device.

        Raises LedgerLoadError or InputUnavailableError (after reporting
        it) if the ledger cannot be read or the device cannot be opened;
        scanning never starts in either case.
        """
        try:
            await self._ledger.load()
        except LedgerLoadError:
            self._notifier.on_status(
                "Saved scan data could not be read. Scanning disabled.",
                StatusLevel.ERROR,
            )
            raise

        self._warn_foreign_tokens()
        try:
            await source.open()
        except Exception as exc:
            logger.error("Camera error: %s", exc)
            self._notifier.on_status(
                "Camera access denied. Please allow camera permissions.",
                StatusLevel.ERROR,
            )
            raise InputUnavailableError(f"capture device unavailable: {exc}") from exc

        self.scanning = True
        self._stopped = False
        logger.info("Scan session started (universe=%d).", len(self.universe))
        self._notifier.on_status("Camera ready - Point at QR code", StatusLevel.NEUTRAL)

    async def run(self, source: FrameSource, max_ticks: int | None = None) -> int:
        """Drive ticks from ``source`` until it ends, ``stop()`` or ``max_ticks``.

        Returns the number of ticks processed. The source is closed on exit.
        """
        ticks = 0
        try:
            async for frame in source.frames():
                if self._stopped:
                    break
                await self.tick(frame)
                ticks += 1
                if max_ticks is not None and ticks >= max_ticks:
                    break
                await asyncio.sleep(self.config.scan_interval_secs)
        finally:
            await source.close()
            self.scanning = False
        return ticks

    def stop(self) -> None:
        """Ask ``run()`` to exit before the next tick."""
        self._stopped = True
        self.scanning = False

    def pause(self) -> None:
        """Suspend classification; ledger and debounce state are kept."""
        if self.scanning:
            logger.info("Scan session paused.")
        self.scanning = False

    def resume(self) -> None:
        if self.config.reset_debounce_on_resume:
            self.gate.reset()
        if not self.scanning:
            logger.info("Scan session resumed.")
        self.scanning = True

    # -- scanning -------------------------------------------------------------

    async def tick(self, frame: Any) -> ScanResult | None:
        """Process one captured frame. Returns the result if one was committed."""
        if not self.scanning:
            return None

        text = self._decoder.decode(frame)
        if text is None:
            return None

        if not self.gate.admit(self._clock()):
            return None

        result = classify(text, self.universe, self._ledger.snapshot, now=self._wall_clock())
        try:
            await self._ledger.commit(result.snapshot)
        except LedgerCommitError:
            self._notifier.on_status(
                f"Scan of {result.token_id} could not be saved", StatusLevel.ERROR, Cue.ERROR,
            )
            raise

        logger.debug("Scanned %s -> %s", result.token_id, result.classification.value)
        self._notifier.on_scan(result, self.stats)
        return result

    # -- reset ----------------------------------------------------------------

    async def request_reset(self, decision: ResetDecision) -> LedgerSnapshot:
        """Reset the ledger if the operator confirmed; otherwise do nothing."""
        if decision is not ResetDecision.CONFIRMED:
            logger.info("Reset cancelled by operator.")
            return self._ledger.snapshot

        try:
            snapshot = await self._ledger.reset()
        except LedgerCommitError:
            self._notifier.on_status("Reset failed", StatusLevel.ERROR, Cue.ERROR)
            raise

        self._notifier.on_reset(self.stats)
        self._notifier.on_status("System reset successfully", StatusLevel.NEUTRAL, Cue.SUCCESS)
        return snapshot

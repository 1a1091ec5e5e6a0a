"""Tests for ScanSession: tick pipeline, debounce timeline, pause/resume, reset."""

import logging
from collections.abc import AsyncIterator
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from scanledger.config import ScannerConfig
from scanledger.constants import Classification, Cue, ResetDecision, StatusLevel
from scanledger.errors import InputUnavailableError, LedgerCommitError, LedgerLoadError
from scanledger.ledger import LedgerSnapshot
from scanledger.scan_ledger import ScanLedger
from scanledger.session import Decoder, FrameSource, ScanSession
from scanledger.store import StoreConnectionError
from scanledger.stores.memory import MemoryStore


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class FakeClock:
    """Millisecond clock the test advances by hand."""

    def __init__(self) -> None:
        self.now_ms = 0

    def __call__(self) -> float:
        return self.now_ms

    def iso(self) -> str:
        secs, ms = divmod(self.now_ms, 1000)
        return f"2026-10-18T09:00:{secs:02d}.{ms:03d}000+00:00"


class TextDecoder:
    """Frames are already-decoded text (or None for an empty frame)."""

    def decode(self, frame: Any) -> str | None:
        return frame


class ListSource:
    def __init__(self, frames: list[Any], fail_open: bool = False) -> None:
        self._frames = frames
        self._fail_open = fail_open
        self.closed = False

    async def open(self) -> None:
        if self._fail_open:
            raise PermissionError("NotAllowedError")

    async def frames(self) -> AsyncIterator[Any]:
        for frame in self._frames:
            yield frame

    async def close(self) -> None:
        self.closed = True


class FlakyReadStore(MemoryStore):
    """MemoryStore whose first ``failures`` reads raise a connection error."""

    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures

    async def get(self, key: str) -> str | None:
        if self.failures > 0:
            self.failures -= 1
            raise StoreConnectionError("connection refused")
        return await super().get(key)


def _session(
    store: MemoryStore | None = None,
    config: ScannerConfig | None = None,
    clock: FakeClock | None = None,
    ledger: ScanLedger | None = None,
) -> tuple[ScanSession, MagicMock, FakeClock]:
    clock = clock or FakeClock()
    notifier = MagicMock()
    config = config or ScannerConfig(total_tokens=3, token_prefix="TOKEN", debounce_ms=1500)
    session = ScanSession(
        ledger or ScanLedger(store or MemoryStore()),
        TextDecoder(),
        config=config,
        notifier=notifier,
        clock=clock,
        wall_clock=clock.iso,
    )
    return session, notifier, clock


def _counts(session: ScanSession) -> tuple[int, int, int]:
    s = session.snapshot
    return s.total_scanned, s.valid_scans, s.duplicates


class TestProtocols:
    def test_fakes_satisfy_protocols(self) -> None:
        assert isinstance(TextDecoder(), Decoder)
        assert isinstance(ListSource([]), FrameSource)


# ---------------------------------------------------------------------------
# End-to-end timeline
# ---------------------------------------------------------------------------


class TestScenario:
    @pytest.mark.asyncio
    async def test_check_in_timeline(self) -> None:
        store = MemoryStore()
        session, notifier, clock = _session(store)
        await session.start(ListSource([]))

        clock.now_ms = 0
        r = await session.tick("TOKEN001")
        assert r is not None and r.classification is Classification.VALID
        assert _counts(session) == (1, 1, 0)
        assert session.stats.remaining == 2

        clock.now_ms = 2000
        r = await session.tick("TOKEN001")
        assert r is not None and r.classification is Classification.DUPLICATE
        assert _counts(session) == (2, 1, 1)
        assert session.stats.remaining == 2

        clock.now_ms = 4000
        r = await session.tick("TOKENXXX")
        assert r is not None and r.classification is Classification.INVALID
        assert _counts(session) == (3, 1, 1)

        clock.now_ms = 4200
        assert await session.tick("TOKEN002") is None
        assert _counts(session) == (3, 1, 1)

        clock.now_ms = 6000
        r = await session.tick("TOKEN002")
        assert r is not None and r.classification is Classification.VALID
        assert _counts(session) == (4, 2, 1)
        assert session.stats.remaining == 1
        assert session.snapshot.first_scan_time == "2026-10-18T09:00:00.000000+00:00"
        assert session.snapshot.last_scan_time == "2026-10-18T09:00:06.000000+00:00"
        assert notifier.on_scan.call_count == 4

        await session.request_reset(ResetDecision.CONFIRMED)
        assert session.snapshot == LedgerSnapshot.empty()
        assert store.data == {}

    @pytest.mark.asyncio
    async def test_state_survives_restart(self) -> None:
        store = MemoryStore()
        session, _, clock = _session(store)
        await session.start(ListSource([]))
        await session.tick("TOKEN001")

        restarted, _, _ = _session(store)
        await restarted.start(ListSource([]))
        assert _counts(restarted) == (1, 1, 0)
        r = await restarted.tick("TOKEN001")
        assert r is not None and r.classification is Classification.DUPLICATE


# ---------------------------------------------------------------------------
# tick()
# ---------------------------------------------------------------------------


class TestTick:
    @pytest.mark.asyncio
    async def test_inactive_session_does_nothing(self) -> None:
        session, notifier, _ = _session()
        assert session.scanning is False
        assert await session.tick("TOKEN001") is None
        assert session.gate.last_admitted_at is None
        notifier.on_scan.assert_not_called()

    @pytest.mark.asyncio
    async def test_absent_decode_does_not_touch_gate(self) -> None:
        session, notifier, clock = _session()
        await session.start(ListSource([]))
        assert await session.tick(None) is None
        assert session.gate.last_admitted_at is None
        clock.now_ms = 10
        assert await session.tick("TOKEN001") is not None

    @pytest.mark.asyncio
    async def test_different_token_inside_window_suppressed(self) -> None:
        session, notifier, clock = _session()
        await session.start(ListSource([]))
        await session.tick("TOKEN001")
        clock.now_ms = 500
        assert await session.tick("TOKEN003") is None
        assert notifier.on_scan.call_count == 1

    @pytest.mark.asyncio
    async def test_notifier_receives_result_and_stats(self) -> None:
        session, notifier, _ = _session()
        await session.start(ListSource([]))
        result = await session.tick(" TOKEN001 ")
        args = notifier.on_scan.call_args[0]
        assert args[0] == result
        assert args[0].token_id == "TOKEN001"
        assert args[1].valid_scans == 1
        assert args[1].remaining == 2

    @pytest.mark.asyncio
    async def test_commit_failure_surfaces(self) -> None:
        store = AsyncMock()
        store.get = AsyncMock(return_value=None)
        store.set = AsyncMock(side_effect=Exception("quota exceeded"))
        ledger = ScanLedger(store, commit_retries=0)
        session, notifier, _ = _session(ledger=ledger)
        await session.start(ListSource([]))

        with pytest.raises(LedgerCommitError):
            await session.tick("TOKEN001")
        assert session.snapshot.is_empty
        notifier.on_scan.assert_not_called()
        message, level, cue = notifier.on_status.call_args[0]
        assert "TOKEN001" in message
        assert level is StatusLevel.ERROR
        assert cue is Cue.ERROR


# ---------------------------------------------------------------------------
# start() / run() / pause() / resume()
# ---------------------------------------------------------------------------


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_reports_ready(self) -> None:
        session, notifier, _ = _session()
        await session.start(ListSource([]))
        assert session.scanning is True
        notifier.on_status.assert_called_with("Camera ready - Point at QR code", StatusLevel.NEUTRAL)

    @pytest.mark.asyncio
    async def test_unavailable_input_never_starts(self) -> None:
        session, notifier, _ = _session()
        with pytest.raises(InputUnavailableError):
            await session.start(ListSource([], fail_open=True))
        assert session.scanning is False
        assert notifier.on_status.call_args[0][1] is StatusLevel.ERROR

    @pytest.mark.asyncio
    async def test_unreadable_ledger_never_starts(self) -> None:
        store = FlakyReadStore(failures=1)
        await ScanLedger(store).commit(LedgerSnapshot(
            used_tokens=frozenset({"TOKEN001", "TOKEN002"}),
            total_scanned=2,
            valid_scans=2,
            first_scan_time="2026-10-18T08:00:00+00:00",
            last_scan_time="2026-10-18T08:00:05+00:00",
        ))
        before = store.data["scanledger:snapshot"]
        session, notifier, clock = _session(store)
        source = ListSource([])

        with pytest.raises(LedgerLoadError):
            await session.start(source)
        assert session.scanning is False
        assert notifier.on_status.call_args[0][1] is StatusLevel.ERROR
        assert await session.tick("TOKEN001") is None
        assert store.data["scanledger:snapshot"] == before

        await session.start(source)
        r = await session.tick("TOKEN001")
        assert r is not None and r.classification is Classification.DUPLICATE
        assert _counts(session) == (3, 2, 1)

    @pytest.mark.asyncio
    async def test_foreign_used_tokens_do_not_reduce_remaining(
        self, caplog: pytest.LogCaptureFixture,
    ) -> None:
        # Ledger written by a run with a 5-token universe; this run has 3.
        store = MemoryStore()
        await ScanLedger(store).commit(LedgerSnapshot(
            used_tokens=frozenset({"TOKEN001", "TOKEN004", "TOKEN005"}),
            total_scanned=3,
            valid_scans=3,
            first_scan_time="2026-10-18T08:00:00+00:00",
            last_scan_time="2026-10-18T08:00:05+00:00",
        ))
        session, _, _ = _session(store)
        with caplog.at_level(logging.WARNING, logger="scanledger.session"):
            await session.start(ListSource([]))
        assert "2 used token(s) outside the current universe" in caplog.text
        assert session.stats.remaining == 2

    @pytest.mark.asyncio
    async def test_run_processes_frames_in_order(self) -> None:
        config = ScannerConfig(total_tokens=3, debounce_ms=0, scan_interval_ms=0)
        session, notifier, clock = _session(config=config)

        class SteppingClock(FakeClock):
            def __call__(self) -> float:
                self.now_ms += 1
                return self.now_ms

        session._clock = SteppingClock()
        source = ListSource(["TOKEN002", None, "TOKEN002", "nope", "TOKEN001"])
        await session.start(source)
        ticks = await session.run(source)

        assert ticks == 5
        assert source.closed
        assert session.scanning is False
        outcomes = [c[0][0].classification for c in notifier.on_scan.call_args_list]
        assert outcomes == [
            Classification.VALID,
            Classification.DUPLICATE,
            Classification.INVALID,
            Classification.VALID,
        ]

    @pytest.mark.asyncio
    async def test_run_honours_max_ticks(self) -> None:
        config = ScannerConfig(total_tokens=3, scan_interval_ms=0)
        session, _, _ = _session(config=config)
        source = ListSource([None] * 10)
        await session.start(source)
        assert await session.run(source, max_ticks=3) == 3

    @pytest.mark.asyncio
    async def test_stop_ends_run(self) -> None:
        config = ScannerConfig(total_tokens=3, scan_interval_ms=0)
        session, _, _ = _session(config=config)
        session.stop()
        source = ListSource([None] * 10)
        assert await session.run(source) == 0
        assert source.closed

    @pytest.mark.asyncio
    async def test_pause_suppresses_ticks(self) -> None:
        session, notifier, clock = _session()
        await session.start(ListSource([]))
        session.pause()
        clock.now_ms = 5000
        assert await session.tick("TOKEN001") is None
        session.resume()
        assert await session.tick("TOKEN001") is not None

    @pytest.mark.asyncio
    async def test_debounce_window_survives_pause(self) -> None:
        session, _, clock = _session()
        await session.start(ListSource([]))
        await session.tick("TOKEN001")
        session.pause()
        session.resume()
        clock.now_ms = 1000
        assert await session.tick("TOKEN002") is None

    @pytest.mark.asyncio
    async def test_debounce_reset_on_resume_when_configured(self) -> None:
        config = ScannerConfig(total_tokens=3, reset_debounce_on_resume=True)
        session, _, clock = _session(config=config)
        await session.start(ListSource([]))
        await session.tick("TOKEN001")
        session.pause()
        session.resume()
        clock.now_ms = 1000
        assert await session.tick("TOKEN002") is not None


# ---------------------------------------------------------------------------
# request_reset()
# ---------------------------------------------------------------------------


class TestRequestReset:
    @pytest.mark.asyncio
    async def test_cancelled_reset_is_noop(self) -> None:
        store = MemoryStore()
        session, notifier, _ = _session(store)
        await session.start(ListSource([]))
        await session.tick("TOKEN001")

        snapshot = await session.request_reset(ResetDecision.CANCELLED)
        assert snapshot.valid_scans == 1
        assert "scanledger:snapshot" in store.data
        notifier.on_reset.assert_not_called()

    @pytest.mark.asyncio
    async def test_confirmed_reset_notifies(self) -> None:
        session, notifier, _ = _session()
        await session.start(ListSource([]))
        await session.tick("TOKEN001")

        await session.request_reset(ResetDecision.CONFIRMED)
        stats = notifier.on_reset.call_args[0][0]
        assert stats.total_scanned == 0
        assert stats.remaining == 3
        notifier.on_status.assert_called_with(
            "System reset successfully", StatusLevel.NEUTRAL, Cue.SUCCESS,
        )

    @pytest.mark.asyncio
    async def test_reset_keeps_debounce_and_scanning(self) -> None:
        session, _, clock = _session()
        await session.start(ListSource([]))
        await session.tick("TOKEN001")
        await session.request_reset(ResetDecision.CONFIRMED)
        assert session.scanning is True
        clock.now_ms = 2000
        r = await session.tick("TOKEN001")
        assert r is not None and r.classification is Classification.VALID

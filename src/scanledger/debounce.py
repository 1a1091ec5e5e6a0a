"""Global temporal gate over decode events."""

from __future__ import annotations

from scanledger.constants import DEFAULT_DEBOUNCE_MS


class DebounceGate:
    """Suppress decodes closer than ``debounce_ms`` to the last admitted one.

    One physical presentation spans many capture ticks. The gate is keyed
    only on time, not content: a different token decoded inside the
    window of a prior admission is suppressed too.
    """

    def __init__(self, debounce_ms: int = DEFAULT_DEBOUNCE_MS) -> None:
        self.debounce_ms = debounce_ms
        self.last_admitted_at: float | None = None

    def admit(self, now_ms: float) -> bool:
        """Return True (and record ``now_ms``) if the event may be classified."""
        if (
            self.last_admitted_at is not None
            and now_ms - self.last_admitted_at <= self.debounce_ms
        ):
            return False
        self.last_admitted_at = now_ms
        return True

    def reset(self) -> None:
        """Forget the last admission."""
        self.last_admitted_at = None

"""Scanner configuration — plain frozen dataclass.

The host application builds this from its own settings (CLI flags, env
vars, a settings file) and hands it to the session.
"""

from __future__ import annotations

from dataclasses import dataclass

from scanledger.constants import (
    DEFAULT_DEBOUNCE_MS,
    DEFAULT_NAMESPACE,
    DEFAULT_PAD_WIDTH,
    DEFAULT_SCAN_INTERVAL_MS,
    DEFAULT_TOKEN_PREFIX,
    DEFAULT_TOTAL_TOKENS,
)


@dataclass(frozen=True)
class ScannerConfig:
    total_tokens: int = DEFAULT_TOTAL_TOKENS
    token_prefix: str = DEFAULT_TOKEN_PREFIX
    pad_width: int = DEFAULT_PAD_WIDTH
    token_list: tuple[str, ...] | None = None
    debounce_ms: int = DEFAULT_DEBOUNCE_MS
    scan_interval_ms: int = DEFAULT_SCAN_INTERVAL_MS
    namespace: str = DEFAULT_NAMESPACE
    commit_retries: int = 1
    commit_retry_delay: float = 0.5
    reset_debounce_on_resume: bool = False

    def __post_init__(self) -> None:
        for name in (
            "total_tokens", "pad_width", "debounce_ms",
            "scan_interval_ms", "commit_retries",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative, got {getattr(self, name)}")
        if self.commit_retry_delay < 0:
            raise ValueError(
                f"commit_retry_delay must be non-negative, got {self.commit_retry_delay}"
            )
        if not self.namespace:
            raise ValueError("namespace must not be empty")

    @property
    def scan_interval_secs(self) -> float:
        return self.scan_interval_ms / 1000.0

"""Constants and enums for the scan ledger."""

from enum import Enum


DEFAULT_TOTAL_TOKENS = 400
DEFAULT_TOKEN_PREFIX = "TOKEN"
DEFAULT_PAD_WIDTH = 3
DEFAULT_DEBOUNCE_MS = 1500
DEFAULT_SCAN_INTERVAL_MS = 100  # capture tick cadence
DEFAULT_NAMESPACE = "scanledger"


class Classification(str, Enum):
    """Outcome of evaluating a decoded string against the universe."""

    INVALID = "invalid"
    DUPLICATE = "duplicate"
    VALID = "valid"


class StatusLevel(str, Enum):
    """Severity the presentation layer uses to style a status line."""

    NEUTRAL = "neutral"
    VALID = "valid"
    ERROR = "error"


class Cue(str, Enum):
    """Audible notification cue."""

    SUCCESS = "success"
    ERROR = "error"


class ResetDecision(str, Enum):
    """Answer to the reset confirmation prompt, supplied by the UI."""

    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"

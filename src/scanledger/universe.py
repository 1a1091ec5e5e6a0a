"""The fixed set of token identifiers a station will redeem."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from scanledger.config import ScannerConfig


class TokenUniverse:
    """Immutable, frozenset-backed universe of redeemable token ids.

    Build it with ``generate()`` for sequential ids (``TOKEN001`` ..
    ``TOKEN400``) or ``from_list()`` for an arbitrary enumerated set.
    Membership is exact string match; callers trim decoded input first.
    """

    __slots__ = ("_ids",)

    def __init__(self, ids: Iterable[str]) -> None:
        self._ids: frozenset[str] = frozenset(ids)

    @classmethod
    def generate(cls, prefix: str, count: int, pad_width: int) -> TokenUniverse:
        """``{prefix + zero_pad(i, pad_width) for i in 1..count}``."""
        if count < 0:
            raise ValueError(f"count must be non-negative, got {count}")
        if pad_width < 0:
            raise ValueError(f"pad_width must be non-negative, got {pad_width}")
        return cls(f"{prefix}{str(i).zfill(pad_width)}" for i in range(1, count + 1))

    @classmethod
    def from_list(cls, ids: Iterable[str]) -> TokenUniverse:
        """Explicit id list. Entries are trimmed; blank entries are dropped."""
        return cls(s.strip() for s in ids if s and s.strip())

    @classmethod
    def from_config(cls, config: ScannerConfig) -> TokenUniverse:
        if config.token_list is not None:
            return cls.from_list(config.token_list)
        return cls.generate(config.token_prefix, config.total_tokens, config.pad_width)

    def contains(self, token_id: str) -> bool:
        return token_id in self._ids

    def __contains__(self, token_id: object) -> bool:
        return token_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._ids))

    def __repr__(self) -> str:
        return f"TokenUniverse(size={len(self._ids)})"

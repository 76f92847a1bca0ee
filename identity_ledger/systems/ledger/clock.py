"""
IdentityLedger -- Logical Clock

The ledger reads time from an external monotonic source (a block height in a
chain host). It never advances the clock itself.
"""

from __future__ import annotations

from typing import Protocol


class LogicalClock(Protocol):
    def now(self) -> int: ...


class ManualClock:
    """A clock whose height is set by the host or by tests."""

    def __init__(self, height: int = 0) -> None:
        if height < 0:
            raise ValueError("clock height must be non-negative")
        self._height = height

    def now(self) -> int:
        return self._height

    def advance_to(self, height: int) -> None:
        """Move to an absolute height. Going backwards is rejected."""
        if height < self._height:
            raise ValueError(
                f"clock is monotonic: cannot move from {self._height} to {height}"
            )
        self._height = height

    def tick(self, blocks: int = 1) -> int:
        self.advance_to(self._height + blocks)
        return self._height

"""
Logical clock - the time axis of every auction.

Auction windows are expressed in heights of a monotonically
non-decreasing counter advanced by the host (a block height in a chain
deployment). The auction house only reads it.
"""

import threading
from typing import TYPE_CHECKING, Optional, Protocol, runtime_checkable

from sealbid.utils.logger import get_logger

if TYPE_CHECKING:
    from sealbid.core.storage.storage_manager import StorageManager

logger = get_logger("clock")


@runtime_checkable
class Clock(Protocol):
    def current_height(self) -> int:
        ...


class BlockClock:
    """Host-driven height counter that never moves backwards."""

    def __init__(self, height: int = 0, storage_manager: Optional["StorageManager"] = None):
        if height < 0:
            raise ValueError("Height must be non-negative")
        self._height = height
        self._lock = threading.Lock()
        self.storage_manager = storage_manager

        if storage_manager:
            stored = storage_manager.get_clock_height()
            if stored is not None:
                self._height = max(stored, height)

    def current_height(self) -> int:
        return self._height

    def advance(self, blocks: int = 1) -> int:
        """Move the clock forward and return the new height."""
        if blocks < 0:
            raise ValueError("Clock cannot move backwards")
        with self._lock:
            self._height += blocks
            self._save()
            return self._height

    def set_height(self, height: int) -> int:
        """Jump to an absolute height at or after the current one."""
        with self._lock:
            if height < self._height:
                raise ValueError(f"Clock cannot move backwards: {height} < {self._height}")
            self._height = height
            self._save()
            return self._height

    def _save(self) -> None:
        if self.storage_manager:
            self.storage_manager.save_clock_height(self._height)
        logger.debug(f"Clock at height {self._height}")

    def __repr__(self) -> str:
        return f"BlockClock(height={self._height})"

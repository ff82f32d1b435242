"""Rolling window of per-block transaction counts."""

from collections import deque
from typing import Deque, Iterable, List


class RollingOccupancy:
    """Fixed-size moving average of transactions per block."""
    
    def __init__(self, window_blocks: int):
        """
        Initialize an empty rolling window.
        
        Args:
            window_blocks: Number of most recent blocks to average over
        
        Raises:
            ValueError: If window_blocks is smaller than 1
        """
        if window_blocks < 1:
            raise ValueError(f"window_blocks must be >= 1, got {window_blocks}")
        self.window_blocks = window_blocks
        self._counts: Deque[int] = deque(maxlen=window_blocks)
        self._sum = 0
    
    def seed(self, counts: Iterable[int]):
        """
        Reset the window to exactly window_blocks entries.
        
        Missing slots repeat the last observed count (zero if there is none).
        When more counts than window_blocks are given only the most recent
        ones are kept.
        
        Args:
            counts: Observed transaction counts, oldest first
        """
        values = [int(c) for c in counts][-self.window_blocks:]
        last = values[-1] if values else 0
        values.extend([last] * (self.window_blocks - len(values)))
        
        self._counts.clear()
        self._counts.extend(values)
        self._sum = sum(values)
    
    def add(self, count: int):
        """
        Add the transaction count of a new block, evicting the oldest.
        
        Args:
            count: Number of transactions in the block
        """
        count = int(count)
        if len(self._counts) == self.window_blocks:
            self._sum -= self._counts[0]
        self._counts.append(count)
        self._sum += count
    
    def average(self) -> int:
        """Truncating integer average of the window (0 when empty)."""
        if not self._counts:
            return 0
        return self._sum // len(self._counts)
    
    def counts(self) -> List[int]:
        return list(self._counts)
    
    def __len__(self) -> int:
        return len(self._counts)

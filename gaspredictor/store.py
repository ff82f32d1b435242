"""Thread-safe holder of the latest gas price prediction."""

import threading
from datetime import datetime
from typing import Optional

from .pricing import PredictionSnapshot, wei_to_display


class PredictionStore:
    """Holds the current PredictionSnapshot for concurrent readers.

    Snapshots are immutable tuples swapped in whole, so a reader always sees
    one complete triple. The lock only serializes writers and their
    bookkeeping; reads never wait on it.
    """

    def __init__(self, initial: PredictionSnapshot):
        self._lock = threading.Lock()
        self._snapshot = PredictionSnapshot(*initial)
        self._updated_at: Optional[datetime] = None
        self._replace_count = 0

    @classmethod
    def seeded(cls, default_price_wei: int) -> "PredictionStore":
        """Store seeded from a default price, with the fast tier doubled."""
        price = wei_to_display(default_price_wei)
        return cls(PredictionSnapshot(price * 2, price, price))

    def read(self) -> PredictionSnapshot:
        # Attribute assignment swaps the whole tuple, so readers take no lock
        return self._snapshot

    def replace(self, snapshot: PredictionSnapshot):
        """Swap in a new snapshot."""
        snapshot = PredictionSnapshot(*snapshot)
        with self._lock:
            self._snapshot = snapshot
            self._updated_at = datetime.utcnow()
            self._replace_count += 1

    @property
    def updated_at(self) -> Optional[datetime]:
        """When the last replace happened; None while still seeded."""
        with self._lock:
            return self._updated_at

    @property
    def replace_count(self) -> int:
        with self._lock:
            return self._replace_count

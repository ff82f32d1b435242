"""Chain backend and transaction pool interfaces consumed by the predictor.

The predictor never talks to a node directly. It reads chain history and
chain-head notifications from a ``ChainBackend`` and pending transactions
from a ``TxPool``; ``node.py`` provides JSON-RPC implementations of both.
"""

import queue
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Mapping, Optional, Protocol, Sequence


@dataclass(frozen=True)
class Transaction:
    """A pending or mined transaction, reduced to what pricing needs."""
    hash: str
    sender: str
    gas_price: Optional[int]
    nonce: int = 0


@dataclass(frozen=True)
class Header:
    number: int
    hash: str = ""


@dataclass(frozen=True)
class Block:
    number: int
    transactions: List[Transaction] = field(default_factory=list)
    hash: str = ""

    @property
    def tx_count(self) -> int:
        return len(self.transactions)


@dataclass(frozen=True)
class ChainHeadEvent:
    """Notification that ``block`` became the new chain head."""
    block: Block


class SubscriptionClosed(Exception):
    """Raised by ChainHeadSubscription.get once the subscription has ended.

    ``error`` is None for a regular unsubscribe and holds the failure
    otherwise.
    """
    def __init__(self, error: Optional[BaseException] = None):
        self.error = error
        super().__init__(str(error) if error else "subscription closed")


class ChainHeadSubscription:
    """A stream of chain-head events with an error/closure signal.

    Producers call ``publish``; the single consumer calls ``get``. The
    subscription ends exactly once, either through ``unsubscribe`` or
    ``fail``; later calls to either are no-ops.
    """

    def __init__(self, on_unsubscribe: Optional[Callable[[], None]] = None):
        self._events: "queue.Queue" = queue.Queue()
        self._lock = threading.Lock()
        self._closed = threading.Event()
        self._error: Optional[BaseException] = None
        self._on_unsubscribe = on_unsubscribe

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    def publish(self, event: ChainHeadEvent) -> bool:
        """Queue an event; returns False if the subscription has ended."""
        if self._closed.is_set():
            return False
        self._events.put(event)
        return True

    def get(self, timeout: Optional[float] = None) -> Optional[ChainHeadEvent]:
        """
        Wait for the next event.

        Args:
            timeout: Seconds to wait; None waits indefinitely

        Returns:
            The next event, or None if the timeout elapsed

        Raises:
            SubscriptionClosed: Once the subscription has ended
        """
        if self._closed.is_set():
            raise SubscriptionClosed(self._error)
        try:
            item = self._events.get(timeout=timeout)
        except queue.Empty:
            return None
        if isinstance(item, SubscriptionClosed):
            raise item
        return item

    def fail(self, error: BaseException):
        """End the subscription with an error."""
        self._close(error)

    def unsubscribe(self):
        """End the subscription and release producer resources."""
        if self._close(None) and self._on_unsubscribe is not None:
            self._on_unsubscribe()

    def _close(self, error: Optional[BaseException]) -> bool:
        with self._lock:
            if self._closed.is_set():
                return False
            self._error = error
            self._closed.set()
        # Wakes a consumer blocked in get()
        self._events.put(SubscriptionClosed(error))
        return True


class ChainBackend(Protocol):
    """Read access to chain history and chain-head notifications."""

    def header_by_number(self, number: Optional[int] = None) -> Header:
        """Header at ``number``, or the latest header when number is None."""
        ...

    def block_by_number(self, number: int) -> Block:
        ...

    def subscribe_chain_head_events(self) -> ChainHeadSubscription:
        ...


class TxPool(Protocol):
    """Read access to the node's pending transactions."""

    def pending(self) -> Mapping[str, Sequence[Transaction]]:
        """Pending transactions grouped by sender, each group nonce-ordered."""
        ...

    def gas_price(self) -> int:
        """Minimum gas price (wei) the pool accepts."""
        ...

"""Shared fakes for the chain backend and transaction pool."""

import threading
import time

import pytest

from gaspredictor.backend import Block, ChainHeadEvent, ChainHeadSubscription, Header, Transaction

GWEI = 10**9


def make_tx(sender: str, gas_price: int, nonce: int = 0) -> Transaction:
    return Transaction(hash=f"{sender}-{nonce}", sender=sender, gas_price=gas_price, nonce=nonce)


def make_block(number: int, tx_count: int) -> Block:
    return Block(number=number, transactions=[make_tx("0xminer", GWEI, i) for i in range(tx_count)])


def pending_with_prices(prices, senders=1):
    """Spread transactions with the given prices round-robin over senders."""
    pending = {}
    for i, price in enumerate(prices):
        sender = f"0xsender{i % senders}"
        txs = pending.setdefault(sender, [])
        txs.append(make_tx(sender, price, len(txs)))
    return pending


def wait_for(predicate, timeout: float = 3.0, interval: float = 0.01) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


class FakeBackend:
    """In-memory chain: block number -> tx count."""

    def __init__(self, tx_counts=None, head=None, failing=()):
        self.tx_counts = dict(tx_counts or {})
        self.head = head if head is not None else max(self.tx_counts, default=0)
        self.failing = set(failing)
        self.header_error = None
        self.subscription = None
        self.requested = []

    def header_by_number(self, number=None):
        if self.header_error is not None:
            raise self.header_error
        return Header(number=self.head if number is None else number)

    def block_by_number(self, number):
        self.requested.append(number)
        if number in self.failing:
            raise ConnectionError(f"block {number} unavailable")
        return make_block(number, self.tx_counts.get(number, 0))

    def subscribe_chain_head_events(self):
        self.subscription = ChainHeadSubscription()
        return self.subscription

    def announce(self, number, tx_count):
        self.tx_counts[number] = tx_count
        self.head = number
        self.subscription.publish(ChainHeadEvent(make_block(number, tx_count)))


class FakePool:
    """In-memory pool returning a fixed pending set and floor price."""

    def __init__(self, pending=None, floor=GWEI // 10):
        self._lock = threading.Lock()
        self._pending = pending or {}
        self.floor = floor
        self.error = None
        self.calls = 0

    def set_pending(self, pending):
        with self._lock:
            self._pending = pending

    def pending(self):
        with self._lock:
            self.calls += 1
            if self.error is not None:
                raise self.error
            return self._pending

    def gas_price(self):
        return self.floor


@pytest.fixture
def backend():
    return FakeBackend({n: 10 for n in range(1, 11)})


@pytest.fixture
def pool():
    return FakePool()

"""Chain backend and transaction pool backed by a node's JSON-RPC API."""

import threading
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .backend import Block, ChainHeadEvent, ChainHeadSubscription, Header, Transaction
from .constants import DEFAULT_HEAD_POLL_SECS, DEFAULT_MAX_POLL_FAILURES
from .logging import get_logger
from .rpc import RPCClient, to_int, to_quantity

logger = get_logger(__name__)


class BlockNotFoundError(LookupError):
    """Raised when the node has no block (or header) at a height."""
    def __init__(self, number: Optional[int]):
        self.number = number
        super().__init__(f"block {'latest' if number is None else number} not found")


def _parse_transaction(raw: Any) -> Transaction:
    """Build a Transaction from a JSON-RPC transaction object or bare hash."""
    if isinstance(raw, str):
        return Transaction(hash=raw, sender="", gas_price=None)
    gas_price = raw.get("gasPrice")
    if gas_price is None:
        # Dynamic fee transactions may omit gasPrice in pool listings
        gas_price = raw.get("maxFeePerGas")
    return Transaction(
        hash=raw.get("hash", ""),
        sender=raw.get("from", ""),
        gas_price=to_int(gas_price),
        nonce=to_int(raw.get("nonce")) or 0,
    )


def _parse_block(raw: Dict[str, Any]) -> Block:
    return Block(
        number=to_int(raw.get("number")),
        transactions=[_parse_transaction(tx) for tx in raw.get("transactions", [])],
        hash=raw.get("hash", ""),
    )


class PollingHeadSubscription(ChainHeadSubscription):
    """Chain-head subscription that polls ``eth_blockNumber``.

    Each block past the last seen height is fetched and published in order.
    Poll failures are logged and retried at the next interval; after
    max_failures consecutive failures the subscription fails.
    """

    def __init__(
        self,
        backend: "RPCChainBackend",
        poll_secs: float = DEFAULT_HEAD_POLL_SECS,
        max_failures: int = DEFAULT_MAX_POLL_FAILURES,
    ):
        super().__init__(on_unsubscribe=self._stop_polling)
        self.backend = backend
        self.poll_secs = poll_secs
        self.max_failures = max_failures
        self._stop_event = threading.Event()
        self._last_number: Optional[int] = None
        self._thread = threading.Thread(target=self._poll_loop, name="chain-head-poller", daemon=True)

    def start(self) -> "PollingHeadSubscription":
        self._thread.start()
        return self

    def _stop_polling(self):
        self._stop_event.set()
        # Never started, or unsubscribed from the poller itself
        if self._thread.ident is not None and self._thread is not threading.current_thread():
            self._thread.join()

    def poll_once(self) -> int:
        """
        Publish every block added since the previous poll.

        Returns:
            Number of events published
        """
        current = self.backend.block_number()
        if self._last_number is None:
            self._last_number = current
            return 0

        published = 0
        for number in range(self._last_number + 1, current + 1):
            block = self.backend.block_by_number(number)
            if not self.publish(ChainHeadEvent(block)):
                break
            self._last_number = number
            published += 1
        return published

    def _poll_loop(self):
        failures = 0
        while not self._stop_event.is_set():
            try:
                self.poll_once()
                failures = 0
            except Exception as e:
                failures += 1
                logger.warning(f"Chain head poll failed ({failures}/{self.max_failures}): {e}")
                if failures >= self.max_failures:
                    logger.error(f"Chain head polling giving up after {failures} failures")
                    self.fail(e)
                    return
            self._stop_event.wait(self.poll_secs)


class RPCChainBackend:
    """ChainBackend over Ethereum JSON-RPC."""

    def __init__(
        self,
        rpc_client: RPCClient,
        head_poll_secs: float = DEFAULT_HEAD_POLL_SECS,
        max_poll_failures: int = DEFAULT_MAX_POLL_FAILURES,
    ):
        self.rpc_client = rpc_client
        self.head_poll_secs = head_poll_secs
        self.max_poll_failures = max_poll_failures

    def block_number(self) -> int:
        return to_int(self.rpc_client.call("eth_blockNumber"))

    def header_by_number(self, number: Optional[int] = None) -> Header:
        """
        Get a block header.

        Args:
            number: Block height, None for the latest block

        Raises:
            BlockNotFoundError: If the node has no such block
        """
        tag = "latest" if number is None else to_quantity(number)
        raw = self.rpc_client.call("eth_getBlockByNumber", tag, False)
        if raw is None:
            raise BlockNotFoundError(number)
        return Header(number=to_int(raw.get("number")), hash=raw.get("hash", ""))

    def block_by_number(self, number: int) -> Block:
        """
        Get a block with its transaction hashes.

        Raises:
            BlockNotFoundError: If the node has no such block
        """
        raw = self.rpc_client.call("eth_getBlockByNumber", to_quantity(number), False)
        if raw is None:
            raise BlockNotFoundError(number)
        return _parse_block(raw)

    def subscribe_chain_head_events(self) -> ChainHeadSubscription:
        return PollingHeadSubscription(
            self, poll_secs=self.head_poll_secs, max_failures=self.max_poll_failures
        ).start()


class RPCTxPool:
    """TxPool over the ``txpool_content`` and ``eth_gasPrice`` RPC methods."""

    def __init__(self, rpc_client: RPCClient):
        self.rpc_client = rpc_client

    def pending(self) -> Mapping[str, Sequence[Transaction]]:
        """
        Get pending transactions grouped by sender.

        Returns:
            Mapping of sender address to its transactions ordered by nonce
        """
        content = self.rpc_client.call("txpool_content") or {}
        grouped: Dict[str, List[Transaction]] = {}
        for sender, by_nonce in (content.get("pending") or {}).items():
            txs = [_parse_transaction(raw) for raw in by_nonce.values()]
            txs.sort(key=lambda tx: tx.nonce)
            grouped[sender] = txs
        return grouped

    def gas_price(self) -> int:
        return to_int(self.rpc_client.call("eth_gasPrice"))

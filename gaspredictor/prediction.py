"""Background gas price prediction engine.

A ``Prediction`` owns one update thread. The thread seeds a rolling window of
block transaction counts, then repeatedly samples the pending pool on a
timer and feeds the window from chain-head events. Readers get the latest
prices from a lock-guarded store and never wait on node I/O.
"""

import enum
import threading
import time
from datetime import datetime
from typing import List, Optional

from .backend import ChainBackend, ChainHeadEvent, ChainHeadSubscription, SubscriptionClosed, TxPool
from .config import PredictionConfig
from .logging import get_logger
from .pricing import PredictionSnapshot, sample_prices, wei_to_display
from .rolling import RollingOccupancy
from .store import PredictionStore
from .structured_output import StructuredOutputWriter

logger = get_logger(__name__)


class EngineState(enum.Enum):
    STARTING = "starting"
    RUNNING = "running"
    STOPPED = "stopped"


class Prediction:
    """Gas price prediction engine."""

    def __init__(
        self,
        config: PredictionConfig,
        backend: Optional[ChainBackend],
        pool: Optional[TxPool],
        structured_writer: Optional[StructuredOutputWriter] = None,
    ):
        """
        Initialize the engine. Call ``start`` to begin updating.

        A config with window_blocks == 0 builds a static engine: prices are
        fixed at the display floor and start/stop do nothing.

        Args:
            config: Prediction tunables
            backend: Chain history and head notifications
            pool: Pending transaction pool
            structured_writer: Optional JSONL writer for published snapshots
        """
        self.config = config.validate()
        self.backend = backend
        self.pool = pool
        self._structured_writer = structured_writer

        self._state = EngineState.STARTING
        self._state_lock = threading.Lock()
        self._stopped = False
        self._subscription: Optional[ChainHeadSubscription] = None
        self._thread: Optional[threading.Thread] = None
        self.tx_counts: Optional[RollingOccupancy] = None

        if config.is_static:
            self.store = PredictionStore(PredictionSnapshot(1, 1, 1))
        else:
            self.store = PredictionStore.seeded(config.default_price_wei)

    @property
    def state(self) -> EngineState:
        with self._state_lock:
            return self._state

    def _set_state(self, state: EngineState):
        with self._state_lock:
            self._state = state

    def start(self) -> "Prediction":
        """
        Seed the rolling window, subscribe to chain heads and start the
        update thread. Returns self.

        Raises:
            RuntimeError: If the engine was already started or stopped
        """
        if self.config.is_static:
            return self
        with self._state_lock:
            if self._thread is not None or self._stopped:
                raise RuntimeError("prediction engine already started")

        self.tx_counts = RollingOccupancy(self.config.window_blocks)
        self.tx_counts.seed(self._init_tx_counts())

        subscription = self.backend.subscribe_chain_head_events()
        thread = threading.Thread(target=self._loop, name="gas-prediction", daemon=True)
        with self._state_lock:
            if self._stopped:
                subscription.unsubscribe()
                return self
            self._subscription = subscription
            self._thread = thread
            thread.start()

        logger.info(
            f"Prediction started: window_blocks={self.config.window_blocks}, "
            f"update_interval_secs={self.config.update_interval_secs}, "
            f"max_median_index={self.config.max_median_index}, "
            f"max_low_index={self.config.max_low_index}, "
            f"fast_percentile={self.config.fast_percentile}, "
            f"median_percentile={self.config.median_percentile}, "
            f"min_tx_count_per_block={self.config.min_tx_count_per_block}"
        )
        return self

    def stop(self):
        """
        Unsubscribe from chain heads and wait for the update thread to exit.

        After this returns no further update happens. Safe to call more than
        once, and a no-op for an engine that was never started.
        """
        with self._state_lock:
            if self._stopped:
                return
            self._stopped = True
            subscription = self._subscription
            thread = self._thread
        if subscription is None:
            return

        subscription.unsubscribe()
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        self._set_state(EngineState.STOPPED)
        logger.info("Prediction quit")

    def run_once(self) -> PredictionSnapshot:
        """
        Seed the window from history and run a single update, without
        subscribing or starting the update thread (cron-friendly).

        Returns:
            The current prices after the update

        Raises:
            RuntimeError: If the engine was already started
            Exception: Whatever the pool raised while fetching pending
                transactions; nothing is published in that case
        """
        if self.config.is_static:
            return self.current_prices()
        if self._thread is not None:
            raise RuntimeError("run_once cannot be used on a started engine")
        if self.tx_counts is None:
            self.tx_counts = RollingOccupancy(self.config.window_blocks)
            self.tx_counts.seed(self._init_tx_counts())
        self._update_cycle()
        return self.current_prices()

    def current_prices(self) -> PredictionSnapshot:
        """Latest (fast, median, low) prediction in gwei."""
        return self.store.read()

    def _init_tx_counts(self) -> List[int]:
        """
        Collect transaction counts of the most recent blocks.

        With a chain longer than the window, the last window_blocks blocks
        before the head are read. Otherwise blocks 1..head are read and the
        rest of the window repeats the last count. Blocks that cannot be
        fetched keep their pre-fill value.

        Returns:
            Exactly window_blocks counts, oldest first
        """
        window = self.config.window_blocks
        counts = [0] * window
        try:
            head_number = self.backend.header_by_number(None).number
        except Exception as e:
            logger.warning(f"Prediction, get latest header failed: {e}")
            return counts

        if head_number > window:
            for slot, number in enumerate(range(head_number - window, head_number)):
                try:
                    counts[slot] = self.backend.block_by_number(number).tx_count
                except Exception as e:
                    logger.warning(f"Prediction, get block {number} failed: {e}")
        elif head_number > 0:
            for number in range(1, head_number + 1):
                try:
                    counts[number - 1] = self.backend.block_by_number(number).tx_count
                except Exception as e:
                    logger.warning(f"Prediction, get block {number} failed: {e}")
            for slot in range(head_number, window):
                counts[slot] = counts[slot - 1]

        logger.debug(f"Prediction window seeded from head {head_number}: {counts}")
        return counts

    def _loop(self):
        """Update on every tick, track chain heads until the subscription ends."""
        subscription = self._subscription
        interval = self.config.update_interval_secs
        try:
            self.update()
            with self._state_lock:
                if not self._stopped:
                    self._state = EngineState.RUNNING

            next_tick = time.monotonic() + interval
            while True:
                timeout = next_tick - time.monotonic()
                if timeout <= 0 and not subscription.closed:
                    # Tick is due even while head events are queued
                    event = None
                else:
                    try:
                        event = subscription.get(timeout=max(0.0, timeout))
                    except SubscriptionClosed as closed:
                        if closed.error is not None:
                            logger.warning(f"Prediction loop quitting: {closed.error}")
                        else:
                            logger.info("Prediction loop quitting")
                        return

                if event is None:
                    self.update()
                    next_tick = time.monotonic() + interval
                else:
                    self._on_chain_head(event)
        finally:
            self._set_state(EngineState.STOPPED)

    def _on_chain_head(self, event: ChainHeadEvent):
        block = event.block
        self.tx_counts.add(block.tx_count)
        logger.debug(
            f"Chain head {block.number}: {block.tx_count} txs, "
            f"rolling avg={self.tx_counts.average()}"
        )
        if self._structured_writer is not None:
            self._structured_writer.record_chain_head({
                "type": "chain_head",
                "number": block.number,
                "tx_count": block.tx_count,
                "rolling_avg": self.tx_counts.average(),
            })

    def update(self) -> Optional[PredictionSnapshot]:
        """
        Run one update cycle.

        A failed pool fetch is logged and the previous snapshot is kept.

        Returns:
            The published snapshot, or None if the cycle was skipped
        """
        try:
            return self._update_cycle()
        except Exception as e:
            logger.error(f"Failed to get pending transactions: {e}", exc_info=True)
            return None

    def _update_cycle(self) -> PredictionSnapshot:
        """Fetch the pool, sample and publish. Pool errors propagate."""
        pending = self.pool.pending()
        floor_price_wei = self.pool.gas_price()

        avg_occupancy = self.tx_counts.average()
        snapshot = sample_prices(pending, floor_price_wei, avg_occupancy, self.config)
        self.store.replace(snapshot)

        pending_count = sum(len(txs) for txs in pending.values())
        logger.debug(
            f"Prediction updated: fast={snapshot.fast} median={snapshot.median} "
            f"low={snapshot.low} | pending={pending_count} | "
            f"floor={wei_to_display(floor_price_wei)} | roll_avg={avg_occupancy}"
        )
        if self._structured_writer is not None:
            self._structured_writer.record_prediction({
                "type": "prediction",
                "fast": snapshot.fast,
                "median": snapshot.median,
                "low": snapshot.low,
                "pending_count": pending_count,
                "floor_price_wei": floor_price_wei,
                "rolling_avg": avg_occupancy,
                "timestamp": datetime.utcnow().isoformat() + "Z",
            })
        return snapshot


def start(
    config: PredictionConfig,
    backend: Optional[ChainBackend],
    pool: Optional[TxPool],
    structured_writer: Optional[StructuredOutputWriter] = None,
) -> Prediction:
    """Build and start a prediction engine."""
    return Prediction(config, backend, pool, structured_writer=structured_writer).start()


def current_prices(engine: Prediction) -> PredictionSnapshot:
    return engine.current_prices()


def stop(engine: Prediction):
    engine.stop()

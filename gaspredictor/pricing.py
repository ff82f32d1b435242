"""Gas price sampling over the pending transaction pool."""

from typing import List, Mapping, NamedTuple, Optional, Sequence

from .backend import Transaction
from .config import PredictionConfig
from .constants import MIN_DISPLAY_PRICE, PERCENTILE_SCALE, WEI_PER_TENTH_GWEI


class PredictionSnapshot(NamedTuple):
    """Predicted gas prices in gwei, from fastest to cheapest."""
    fast: int
    median: int
    low: int


def wei_to_display(wei: Optional[int]) -> int:
    """
    Convert a wei amount to the displayed gwei value.

    Prices under one gwei display as 1. Above that the value in tenths of a
    gwei ``t`` maps to ``(2t - 10) // 10``, which is not a linear conversion
    (2 gwei displays as 3).

    Args:
        wei: Price in wei; None displays as 1

    Returns:
        Display price
    """
    if wei is None:
        return MIN_DISPLAY_PRICE
    tenths = int(wei) // WEI_PER_TENTH_GWEI
    if tenths < 10:
        return MIN_DISPLAY_PRICE
    return (tenths * 2 - 10) // 10


def _price_key(tx: Transaction) -> int:
    return tx.gas_price if tx.gas_price is not None else 0


def flatten_pending(pending: Mapping[str, Sequence[Transaction]]) -> List[Transaction]:
    """Flatten per-sender groups into one list sorted ascending by gas price.

    The sort is stable, so equal prices keep their enumeration order.
    """
    by_price: List[Transaction] = []
    for txs in pending.values():
        by_price.extend(txs)
    by_price.sort(key=_price_key)
    return by_price


def _clamp(index: int, count: int) -> int:
    return min(max(index, 0), count - 1)


def sample_prices(
    pending: Mapping[str, Sequence[Transaction]],
    floor_price_wei: int,
    avg_occupancy: int,
    config: PredictionConfig,
) -> PredictionSnapshot:
    """
    Sample fast, median and low prices from the pending pool.

    The fast tier is the price a block's worth of transactions deep into the
    pool (sorted ascending), the median tier two blocks deep and the low tier
    five blocks deep, each with a configured minimum depth. When the pool is
    too shallow for a tier, the fast and median tiers fall back to a
    percentile of the pool and the low tier falls back to the pool's floor
    price.

    Args:
        pending: Pending transactions grouped by sender
        floor_price_wei: Minimum price the pool accepts
        avg_occupancy: Average transactions per recent block
        config: Prediction tunables

    Returns:
        The sampled snapshot
    """
    by_price = flatten_pending(pending)
    floor_price = wei_to_display(floor_price_wei)

    pending_count = len(by_price)
    if pending_count == 0:
        return PredictionSnapshot(floor_price, floor_price, floor_price)

    avg_tx_count = max(avg_occupancy, config.min_tx_count_per_block)

    fast_index = avg_tx_count
    if pending_count <= fast_index:
        fast_index = pending_count * config.fast_percentile // PERCENTILE_SCALE
    fast = wei_to_display(by_price[_clamp(fast_index, pending_count)].gas_price)

    median_index = max(2 * avg_tx_count, config.max_median_index)
    if pending_count <= median_index:
        median_index = pending_count * config.median_percentile // PERCENTILE_SCALE
    median = wei_to_display(by_price[_clamp(median_index, pending_count)].gas_price)

    # The low tier never samples a shallow pool
    low_index = max(5 * avg_tx_count, config.max_low_index)
    if pending_count <= low_index:
        low = floor_price
    else:
        low = wei_to_display(by_price[low_index].gas_price)

    return PredictionSnapshot(fast, median, low)

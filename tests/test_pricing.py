"""Tests for gas price sampling and display conversion."""

from gaspredictor.config import PredictionConfig
from gaspredictor.pricing import PredictionSnapshot, flatten_pending, sample_prices, wei_to_display

from conftest import GWEI, make_tx, pending_with_prices


def _config(**overrides):
    values = dict(
        window_blocks=5,
        update_interval_secs=1,
        fast_percentile=80,
        median_percentile=50,
        max_median_index=0,
        max_low_index=0,
        min_tx_count_per_block=50,
        default_price_wei=GWEI,
    )
    values.update(overrides)
    return PredictionConfig(**values)


def test_wei_to_display_below_one_gwei():
    """Test that anything under one gwei displays as 1."""
    assert wei_to_display(0) == 1
    assert wei_to_display(1) == 1
    assert wei_to_display(10**8) == 1
    assert wei_to_display(GWEI - 1) == 1


def test_wei_to_display_scaling():
    """Test the non-linear display formula."""
    assert wei_to_display(GWEI) == 1  # t=10 -> (20-10)//10
    assert wei_to_display(2 * GWEI) == 3  # t=20 -> (40-10)//10
    assert wei_to_display(15 * 10**8) == 2  # t=15 -> (30-10)//10
    assert wei_to_display(10 * GWEI) == 19  # t=100 -> (200-10)//10


def test_wei_to_display_truncates_tenths():
    """Test that sub-tenth amounts are dropped before scaling."""
    assert wei_to_display(2 * GWEI + 99_999_999) == 3


def test_wei_to_display_missing_price():
    assert wei_to_display(None) == 1


def test_flatten_pending_sorts_by_price():
    """Test that groups are flattened and sorted ascending."""
    pending = {
        "0xa": [make_tx("0xa", 30, 0), make_tx("0xa", 10, 1)],
        "0xb": [make_tx("0xb", 20, 0)],
    }
    prices = [tx.gas_price for tx in flatten_pending(pending)]
    assert prices == [10, 20, 30]


def test_flatten_pending_ties_keep_enumeration_order():
    pending = {
        "0xa": [make_tx("0xa", 5, 0)],
        "0xb": [make_tx("0xb", 5, 0)],
    }
    senders = [tx.sender for tx in flatten_pending(pending)]
    assert senders == ["0xa", "0xb"]


def test_sample_empty_pool_uses_floor():
    """Test that an empty pool yields the floor price for every tier."""
    snapshot = sample_prices({}, 3 * GWEI, 100, _config())
    floor = wei_to_display(3 * GWEI)
    assert snapshot == PredictionSnapshot(floor, floor, floor)


def test_sample_small_pool_end_to_end():
    """Test a 40-transaction pool below every depth threshold."""
    prices = [i * GWEI for i in range(1, 41)]
    pending = pending_with_prices(prices, senders=4)
    
    snapshot = sample_prices(pending, 10**8, 5, _config())
    
    # avg clamped to 50; n=40 <= 50 so fast index = 40 * 80 // 100 = 32
    assert snapshot.fast == wei_to_display(prices[32])
    # median threshold 100; index = 40 * 50 // 100 = 20
    assert snapshot.median == wei_to_display(prices[20])
    # low threshold 250 is never reached; low is the floor
    assert snapshot.low == 1


def test_sample_deep_pool_uses_block_depths():
    """Test index selection when the pool is deeper than every threshold."""
    prices = [i * GWEI for i in range(1, 301)]
    pending = pending_with_prices(prices, senders=7)
    
    snapshot = sample_prices(pending, 10**8, 50, _config())
    
    assert snapshot.fast == wei_to_display(prices[50])
    assert snapshot.median == wei_to_display(prices[100])
    assert snapshot.low == wei_to_display(prices[250])


def test_sample_uses_rolling_average_above_minimum():
    """Test that a busy chain pushes the sampling depth out."""
    prices = [i * GWEI for i in range(1, 101)]
    pending = pending_with_prices(prices)
    config = _config(min_tx_count_per_block=1)
    
    snapshot = sample_prices(pending, 10**8, 10, config)
    
    assert snapshot.fast == wei_to_display(prices[10])
    assert snapshot.median == wei_to_display(prices[20])
    assert snapshot.low == wei_to_display(prices[50])


def test_sample_index_floors():
    """Test the minimum depths of the median and low tiers."""
    prices = [i * GWEI for i in range(1, 401)]
    pending = pending_with_prices(prices)
    config = _config(min_tx_count_per_block=1, max_median_index=120, max_low_index=300)
    
    snapshot = sample_prices(pending, 10**8, 10, config)
    
    assert snapshot.fast == wei_to_display(prices[10])
    assert snapshot.median == wei_to_display(prices[120])
    assert snapshot.low == wei_to_display(prices[300])


def test_sample_low_threshold_boundary_uses_floor():
    """Test that a pool exactly as deep as the low threshold uses the floor."""
    prices = [i * GWEI for i in range(1, 251)]  # n == 5 * 50
    pending = pending_with_prices(prices)
    floor_wei = 2 * GWEI
    
    snapshot = sample_prices(pending, floor_wei, 50, _config())
    
    assert snapshot.low == wei_to_display(floor_wei)


def test_sample_one_past_low_threshold_samples_pool():
    prices = [i * GWEI for i in range(1, 252)]
    pending = pending_with_prices(prices)
    
    snapshot = sample_prices(pending, 2 * GWEI, 50, _config())
    
    assert snapshot.low == wei_to_display(prices[250])


def test_sample_fast_threshold_boundary():
    """Test that n == avg falls back to the fast percentile."""
    prices = [i * GWEI for i in range(1, 51)]
    pending = pending_with_prices(prices)
    
    snapshot = sample_prices(pending, 10**8, 50, _config())
    
    assert snapshot.fast == wei_to_display(prices[40])  # 50 * 80 // 100


def test_sample_full_percentile_is_clamped():
    """Test that a 100th percentile index is clamped into the pool."""
    prices = [i * GWEI for i in range(1, 11)]
    pending = pending_with_prices(prices)
    config = _config(fast_percentile=100, median_percentile=100)
    
    snapshot = sample_prices(pending, 10**8, 50, config)
    
    assert snapshot.fast == wei_to_display(prices[-1])
    assert snapshot.median == wei_to_display(prices[-1])


def test_sample_single_transaction():
    pending = pending_with_prices([5 * GWEI])
    snapshot = sample_prices(pending, 10**8, 0, _config())
    assert snapshot == PredictionSnapshot(9, 9, 1)


def test_sample_is_deterministic():
    """Test that repeated sampling of the same input is identical."""
    prices = [((i * 7919) % 97 + 1) * 10**8 for i in range(500)]
    pending = pending_with_prices(prices, senders=13)
    config = _config(min_tx_count_per_block=20)
    
    results = {sample_prices(pending, GWEI, 30, config) for _ in range(5)}
    
    assert len(results) == 1
    assert all(isinstance(v, int) for v in results.pop())

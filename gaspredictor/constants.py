"""Constants used throughout the gas predictor."""

# Unit conversions
WEI_PER_GWEI = 1_000_000_000  # 1e9
WEI_PER_TENTH_GWEI = 100_000_000  # 1e8

# Display conversion floor (prices under one gwei display as this)
MIN_DISPLAY_PRICE = 1

# Percentile calculation
PERCENTILE_SCALE = 100  # Percentile scale (0-100)

# Default prediction values
DEFAULT_WINDOW_BLOCKS = 20
DEFAULT_UPDATE_INTERVAL_SECS = 3
DEFAULT_FAST_PERCENTILE = 75
DEFAULT_MEDIAN_PERCENTILE = 40
DEFAULT_MAX_MEDIAN_INDEX = 500
DEFAULT_MAX_LOW_INDEX = 1000
DEFAULT_MIN_TX_COUNT_PER_BLOCK = 100
DEFAULT_PRICE_WEI = WEI_PER_GWEI

# Chain head polling (JSON-RPC nodes)
DEFAULT_HEAD_POLL_SECS = 2
DEFAULT_MAX_POLL_FAILURES = 30

# Log rotation defaults
DEFAULT_LOG_MAX_BYTES = 10_485_760  # 10MB
DEFAULT_LOG_BACKUP_COUNT = 30

# Network timeouts
DEFAULT_HTTP_TIMEOUT_SECS = 10

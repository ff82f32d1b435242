"""Gas price prediction from pending pool depth and recent block occupancy."""

from .config import Config, PredictionConfig
from .pricing import PredictionSnapshot, sample_prices, wei_to_display
from .prediction import EngineState, Prediction, current_prices, start, stop

__all__ = [
    "Config",
    "PredictionConfig",
    "PredictionSnapshot",
    "sample_prices",
    "wei_to_display",
    "EngineState",
    "Prediction",
    "start",
    "current_prices",
    "stop",
]

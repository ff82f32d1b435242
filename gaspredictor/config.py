"""Configuration loading and validation for the gas predictor."""

import os
import yaml
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any

from .constants import (
    DEFAULT_WINDOW_BLOCKS,
    DEFAULT_UPDATE_INTERVAL_SECS,
    DEFAULT_FAST_PERCENTILE,
    DEFAULT_MEDIAN_PERCENTILE,
    DEFAULT_MAX_MEDIAN_INDEX,
    DEFAULT_MAX_LOW_INDEX,
    DEFAULT_MIN_TX_COUNT_PER_BLOCK,
    DEFAULT_PRICE_WEI,
    DEFAULT_HEAD_POLL_SECS,
    DEFAULT_MAX_POLL_FAILURES,
    DEFAULT_HTTP_TIMEOUT_SECS,
    DEFAULT_LOG_MAX_BYTES,
    DEFAULT_LOG_BACKUP_COUNT,
    PERCENTILE_SCALE,
)


@dataclass(frozen=True)
class PredictionConfig:
    """Tunables of the prediction engine.

    A window_blocks of zero builds a static engine that never updates; it is
    meant for tests that need an engine but no live data.
    """

    window_blocks: int = DEFAULT_WINDOW_BLOCKS
    update_interval_secs: float = DEFAULT_UPDATE_INTERVAL_SECS
    fast_percentile: int = DEFAULT_FAST_PERCENTILE
    median_percentile: int = DEFAULT_MEDIAN_PERCENTILE
    max_median_index: int = DEFAULT_MAX_MEDIAN_INDEX
    max_low_index: int = DEFAULT_MAX_LOW_INDEX
    min_tx_count_per_block: int = DEFAULT_MIN_TX_COUNT_PER_BLOCK
    default_price_wei: int = DEFAULT_PRICE_WEI

    def validate(self) -> "PredictionConfig":
        """
        Check value ranges.

        Returns:
            self, so calls can be chained

        Raises:
            ValueError: If any value is out of range
        """
        for name in ("fast_percentile", "median_percentile"):
            value = getattr(self, name)
            if not 0 <= value <= PERCENTILE_SCALE:
                raise ValueError(f"{name} must be within [0, {PERCENTILE_SCALE}], got {value}")
        for name in ("window_blocks", "max_median_index", "max_low_index",
                     "min_tx_count_per_block", "default_price_wei"):
            value = getattr(self, name)
            if value < 0:
                raise ValueError(f"{name} must be non-negative, got {value}")
        if self.window_blocks > 0 and self.update_interval_secs <= 0:
            raise ValueError(
                f"update_interval_secs must be positive, got {self.update_interval_secs}"
            )
        return self

    @property
    def is_static(self) -> bool:
        return self.window_blocks == 0

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "PredictionConfig":
        """Build a config from a ``prediction`` section, applying defaults."""
        return cls(
            window_blocks=int(raw.get("window_blocks", DEFAULT_WINDOW_BLOCKS)),
            update_interval_secs=float(raw.get("update_interval_secs", DEFAULT_UPDATE_INTERVAL_SECS)),
            fast_percentile=int(raw.get("fast_percentile", DEFAULT_FAST_PERCENTILE)),
            median_percentile=int(raw.get("median_percentile", DEFAULT_MEDIAN_PERCENTILE)),
            max_median_index=int(raw.get("max_median_index", DEFAULT_MAX_MEDIAN_INDEX)),
            max_low_index=int(raw.get("max_low_index", DEFAULT_MAX_LOW_INDEX)),
            min_tx_count_per_block=int(raw.get("min_tx_count_per_block", DEFAULT_MIN_TX_COUNT_PER_BLOCK)),
            default_price_wei=int(raw.get("default_price_wei", DEFAULT_PRICE_WEI)),
        )


class Config:
    """Configuration container with environment variable overrides."""

    def __init__(self, config_path: str = None, create_if_missing: bool = True):
        """
        Load configuration from YAML file with environment variable overrides.

        Configuration precedence (highest to lowest):
        1. Environment variables (GP_* prefix)
        2. config.local.yaml (if exists, local overrides)
        3. config.yaml (main config file)
        4. Default values

        Args:
            config_path: Path to config.yaml. If None, searches for config.yaml
                        in current directory and parent directories.
            create_if_missing: If True and config_path is None, create default config
                              if not found. If config_path is explicitly provided,
                              this is ignored (file must exist).

        Raises:
            FileNotFoundError: If an explicit config_path does not exist
            ValueError: If prediction settings are out of range
        """
        if config_path is None:
            config_path = self._find_config_file()
            if create_if_missing and not Path(config_path).exists():
                self._create_default_config(config_path)
        elif not Path(config_path).exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        self.path = config_path
        with open(config_path, 'r') as f:
            self._raw = yaml.safe_load(f) or {}

        # Local overrides (gitignored, for node credentials)
        local_config_path = Path(config_path).parent / "config.local.yaml"
        if local_config_path.exists():
            with open(local_config_path, 'r') as f:
                local_config = yaml.safe_load(f) or {}
                self._deep_merge(self._raw, local_config)

        self._apply_env_overrides()
        self._validate()

    def _find_config_file(self) -> str:
        """Find config.yaml in current directory or parents."""
        current = Path.cwd()
        for path in [current] + list(current.parents):
            config_file = path / "config.yaml"
            if config_file.exists():
                return str(config_file)
        return str(current / "config.yaml")

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> None:
        """Recursively merge override dict into base dict."""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def _create_default_config(self, path: str):
        """Create a default config.yaml file."""
        default_config = {
            "rpc": {
                "url": "http://127.0.0.1:8545",
                "timeout_secs": DEFAULT_HTTP_TIMEOUT_SECS,
                "head_poll_secs": DEFAULT_HEAD_POLL_SECS,
                "max_poll_failures": DEFAULT_MAX_POLL_FAILURES,
            },
            "prediction": {
                "window_blocks": DEFAULT_WINDOW_BLOCKS,
                "update_interval_secs": DEFAULT_UPDATE_INTERVAL_SECS,
                "fast_percentile": DEFAULT_FAST_PERCENTILE,
                "median_percentile": DEFAULT_MEDIAN_PERCENTILE,
                "max_median_index": DEFAULT_MAX_MEDIAN_INDEX,
                "max_low_index": DEFAULT_MAX_LOW_INDEX,
                "min_tx_count_per_block": DEFAULT_MIN_TX_COUNT_PER_BLOCK,
                "default_price_wei": DEFAULT_PRICE_WEI,
            },
            "logging": {
                "level": "INFO",
                "log_dir": "logs",
                "console_level": "INFO",
                "rotation": {
                    "max_bytes": DEFAULT_LOG_MAX_BYTES,
                    "backup_count": DEFAULT_LOG_BACKUP_COUNT,
                    "when": "midnight"
                }
            },
            "structured_output": {
                "enabled": False,
                "base_dir": "logs/structured",
                "predictions_filename": "predictions.jsonl",
                "heads_filename": "chain_heads.jsonl",
            }
        }
        with open(path, 'w') as f:
            yaml.dump(default_config, f, default_flow_style=False, sort_keys=False)

    def _apply_env_overrides(self):
        """Apply environment variable overrides using GP_ prefix."""
        # RPC settings
        if os.getenv("GP_RPC_URL"):
            self._raw.setdefault("rpc", {})["url"] = os.getenv("GP_RPC_URL")
        if os.getenv("GP_RPC_TIMEOUT_SECS"):
            self._raw.setdefault("rpc", {})["timeout_secs"] = float(os.getenv("GP_RPC_TIMEOUT_SECS"))
        if os.getenv("GP_HEAD_POLL_SECS"):
            self._raw.setdefault("rpc", {})["head_poll_secs"] = float(os.getenv("GP_HEAD_POLL_SECS"))
        if os.getenv("GP_MAX_POLL_FAILURES"):
            self._raw.setdefault("rpc", {})["max_poll_failures"] = int(os.getenv("GP_MAX_POLL_FAILURES"))

        # Prediction settings
        if os.getenv("GP_WINDOW_BLOCKS"):
            self._raw.setdefault("prediction", {})["window_blocks"] = int(os.getenv("GP_WINDOW_BLOCKS"))
        if os.getenv("GP_UPDATE_INTERVAL_SECS"):
            self._raw.setdefault("prediction", {})["update_interval_secs"] = float(os.getenv("GP_UPDATE_INTERVAL_SECS"))
        if os.getenv("GP_FAST_PERCENTILE"):
            self._raw.setdefault("prediction", {})["fast_percentile"] = int(os.getenv("GP_FAST_PERCENTILE"))
        if os.getenv("GP_MEDIAN_PERCENTILE"):
            self._raw.setdefault("prediction", {})["median_percentile"] = int(os.getenv("GP_MEDIAN_PERCENTILE"))
        if os.getenv("GP_MAX_MEDIAN_INDEX"):
            self._raw.setdefault("prediction", {})["max_median_index"] = int(os.getenv("GP_MAX_MEDIAN_INDEX"))
        if os.getenv("GP_MAX_LOW_INDEX"):
            self._raw.setdefault("prediction", {})["max_low_index"] = int(os.getenv("GP_MAX_LOW_INDEX"))
        if os.getenv("GP_MIN_TX_COUNT_PER_BLOCK"):
            self._raw.setdefault("prediction", {})["min_tx_count_per_block"] = int(os.getenv("GP_MIN_TX_COUNT_PER_BLOCK"))
        if os.getenv("GP_DEFAULT_PRICE_WEI"):
            self._raw.setdefault("prediction", {})["default_price_wei"] = int(os.getenv("GP_DEFAULT_PRICE_WEI"))

        # Logging settings
        if os.getenv("GP_LOG_DIR"):
            self._raw.setdefault("logging", {})["log_dir"] = os.getenv("GP_LOG_DIR")
        if os.getenv("GP_LOG_LEVEL"):
            self._raw.setdefault("logging", {})["level"] = os.getenv("GP_LOG_LEVEL")
        if os.getenv("GP_CONSOLE_LEVEL"):
            self._raw.setdefault("logging", {})["console_level"] = os.getenv("GP_CONSOLE_LEVEL")

    def _validate(self):
        """Validate prediction settings."""
        self.prediction_config.validate()

    @property
    def rpc_url(self) -> str:
        return self._raw.get("rpc", {}).get("url", "http://127.0.0.1:8545")

    @property
    def rpc_timeout_secs(self) -> float:
        return float(self._raw.get("rpc", {}).get("timeout_secs", DEFAULT_HTTP_TIMEOUT_SECS))

    @property
    def head_poll_secs(self) -> float:
        return float(self._raw.get("rpc", {}).get("head_poll_secs", DEFAULT_HEAD_POLL_SECS))

    @property
    def max_poll_failures(self) -> int:
        return int(self._raw.get("rpc", {}).get("max_poll_failures", DEFAULT_MAX_POLL_FAILURES))

    @property
    def prediction_config(self) -> PredictionConfig:
        return PredictionConfig.from_dict(self._raw.get("prediction", {}) or {})

    @property
    def log_level(self) -> str:
        return self._raw.get("logging", {}).get("level", "INFO")

    @property
    def log_dir(self) -> str:
        return self._raw.get("logging", {}).get("log_dir", "logs")

    @property
    def console_level(self) -> str:
        return self._raw.get("logging", {}).get("console_level", "INFO")

    @property
    def log_rotation(self) -> Dict[str, Any]:
        """Get log rotation configuration with defaults."""
        rotation = self._raw.get("logging", {}).get("rotation", {})
        return {
            "max_bytes": rotation.get("max_bytes", DEFAULT_LOG_MAX_BYTES),
            "backup_count": rotation.get("backup_count", DEFAULT_LOG_BACKUP_COUNT),
            "when": rotation.get("when", "midnight")
        }

    @property
    def structured_output_config(self) -> Dict[str, Any]:
        """Get structured output configuration with defaults."""
        cfg = self._raw.get("structured_output", {})
        base_dir = cfg.get("base_dir", str(Path(self.log_dir) / "structured"))
        return {
            "enabled": cfg.get("enabled", False),
            "base_dir": base_dir,
            "predictions_filename": cfg.get("predictions_filename", "predictions.jsonl"),
            "heads_filename": cfg.get("heads_filename", "chain_heads.jsonl"),
        }
